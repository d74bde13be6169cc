"""
Guest Code Routes — return initiation
Handles POST /api/user/generate_guest_pin
"""

from flask import Blueprint, current_app, jsonify, request

from corelay.routes.validation import check_order_id, check_user_id
from corelay.services.factory import current_issuer, current_store
from corelay.services.lifecycle import PICKED_UP

guest_codes_bp = Blueprint("guest_codes", __name__)


@guest_codes_bp.route("/api/user/generate_guest_pin", methods=["POST"])
def generate_guest_pin():
    """
    Issue a single-use guest PIN for returning an order
    ---
    tags:
      - Guest codes
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - user_id
            - order_id
          properties:
            user_id:
              type: string
            order_id:
              type: string
    responses:
      201:
        description: PIN issued; any earlier PIN for the order is void
      400:
        description: Invalid input or order not eligible for return
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    user_id = data.get("user_id")
    order_id = data.get("order_id")

    error = check_user_id(user_id) or check_order_id(order_id)
    if error:
        return jsonify({"success": False, "error": error}), 400

    # Only picked-up parcels can be handed back
    order = current_store().order_by_id(order_id)
    if not order or order.user_id != user_id or order.status != PICKED_UP:
        return jsonify({"success": False, "error": "Order is not eligible for return"}), 400

    issued = current_issuer().issue(user_id, order_id)
    current_app.logger.info("Guest PIN issued for order %s", order_id)

    return jsonify({
        "success": True,
        **issued.to_dict(),
        "message": "Guest code ready. Show it in the customer app.",
    }), 201
