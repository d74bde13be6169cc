"""
Order Routes — customer app and admin seeding
Handles POST /api/user/orders, POST /api/admin/orders
"""

from datetime import timedelta

from flask import Blueprint, current_app, jsonify, request

from corelay.routes.validation import check_order_id, check_products, check_scanner, check_user_id
from corelay.services.errors import OrderExistsError
from corelay.services.factory import current_clock, current_store
from corelay.services.lifecycle import PICKED_UP, READY_FOR_PICKUP, RETURN_PENDING
from corelay.services.store import OrderRecord

orders_bp = Blueprint("orders", __name__)

CREATABLE_STATUSES = (READY_FOR_PICKUP, PICKED_UP, RETURN_PENDING)
PICKUP_DEADLINE_DAYS = 7


@orders_bp.route("/api/user/orders", methods=["POST"])
def list_user_orders():
    """
    List a customer's orders
    ---
    tags:
      - Orders
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - user_id
          properties:
            user_id:
              type: string
    responses:
      200:
        description: Orders, oldest first
      400:
        description: Missing or invalid user_id
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    user_id = data.get("user_id")

    error = check_user_id(user_id)
    if error:
        return jsonify({"success": False, "error": error}), 400

    orders = current_store().orders_owned_by(user_id)
    return jsonify({
        "success": True,
        "user": user_id,
        "orders": [o.to_dict() for o in orders],
    }), 200


@orders_bp.route("/api/admin/orders", methods=["POST"])
def create_order_route():
    """
    Create an order (admin / demo seeding)
    ---
    tags:
      - Admin
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - user_id
            - order_id
            - store_id
            - products
          properties:
            user_id:
              type: string
            order_id:
              type: string
            store_id:
              type: string
            products:
              type: array
              items:
                type: object
            status:
              type: string
              default: READY_FOR_PICKUP
    responses:
      201:
        description: Order created
      400:
        description: Invalid input
      409:
        description: Duplicate order_id
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400

    required = ["user_id", "order_id", "store_id", "products"]
    missing = [f for f in required if not data.get(f)]
    if missing:
        return jsonify({"error": f"Missing fields: {', '.join(missing)}"}), 400

    status = data.get("status", READY_FOR_PICKUP)
    if status not in CREATABLE_STATUSES:
        return jsonify({"error": f"status must be one of {', '.join(CREATABLE_STATUSES)} on creation"}), 400

    error = (
        check_user_id(data["user_id"])
        or check_order_id(data["order_id"])
        or check_scanner(data["store_id"], current_app.config["SCANNER_IDS"])
        or check_products(data["products"])
    )
    if error:
        return jsonify({"error": error}), 400

    now = current_clock()()
    record = OrderRecord(
        order_id=data["order_id"].strip(),
        user_id=data["user_id"],
        store_id=data["store_id"],
        status=status,
        products=data["products"],
        created_at=now,
        pickup_deadline=(now + timedelta(days=PICKUP_DEADLINE_DAYS)).date() if status == READY_FOR_PICKUP else None,
        pickup_time=now if status == PICKED_UP else None,
        max_time=now + timedelta(days=current_app.config["RETURN_WINDOW_DAYS"]) if status == PICKED_UP else None,
    )

    try:
        order = current_store().create_order(record)
    except OrderExistsError:
        return jsonify({"error": f"Duplicate order_id: {record.order_id}"}), 409

    return jsonify(order.to_dict()), 201
