"""
Request field checks shared by the blueprints.
Each returns an error string, or None when the value is acceptable.
"""

import re

EMAIL_REGEX = r'^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$'


def check_user_id(user_id):
    if not user_id or not isinstance(user_id, str):
        return "Missing user_id"
    if not re.match(EMAIL_REGEX, user_id):
        return "Invalid user_id: must be an e-mail address"
    return None


def check_order_id(order_id):
    if not order_id or not isinstance(order_id, str):
        return "Missing order_id"
    if len(order_id.strip()) < 3:
        return "Invalid order_id: at least 3 characters"
    return None


def check_scanner(scanner_id, allowed):
    if scanner_id not in allowed:
        return f"Invalid scanner_id: {scanner_id}. Must be one of {', '.join(allowed)}"
    return None


def check_products(products):
    if not isinstance(products, list) or not products:
        return "products must be a non-empty list"
    for product in products:
        if not isinstance(product, dict) or not isinstance(product.get("name"), str) or not product["name"]:
            return "Each product needs a name (string) and a price (number >= 0)"
        price = product.get("price")
        if isinstance(price, bool) or not isinstance(price, (int, float)) or price < 0:
            return "Each product needs a name (string) and a price (number >= 0)"
    return None
