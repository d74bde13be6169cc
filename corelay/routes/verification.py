"""
Verification Routes — store / locker scanners
Handles POST /api/verify_transaction
"""

from flask import Blueprint, current_app, jsonify, request

from corelay.routes.validation import check_scanner, check_user_id
from corelay.services.factory import current_verifier
from corelay.services.lifecycle import UNSUPPORTED_STATUS
from corelay.services.verifier import NO_MATCHING_ORDER, NO_ORDERS, ORDER_NOT_FOUND, ScanEvent
from corelay.utils import parse_timestamp

verification_bp = Blueprint("verification", __name__)

FAILURE_STATUS = {
    NO_ORDERS: 404,
    NO_MATCHING_ORDER: 404,
    ORDER_NOT_FOUND: 404,
    UNSUPPORTED_STATUS: 409,
}


@verification_bp.route("/api/verify_transaction", methods=["POST"])
def verify_transaction():
    """
    Verify a scanned code and finalise pickup or return
    ---
    tags:
      - Verification
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - scanner_id
          properties:
            user_id:
              type: string
            timestamp:
              type: string
              description: epoch milliseconds or ISO-8601
            scanner_id:
              type: string
            guest_pin:
              type: string
    responses:
      200:
        description: Pickup or return finalised
      400:
        description: Malformed scan, stale or invalid code
      404:
        description: No order matches the code
      409:
        description: Order changed state concurrently
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    user_id = data.get("user_id")
    raw_timestamp = data.get("timestamp")
    scanner_id = data.get("scanner_id")
    guest_pin = data.get("guest_pin")

    error = check_scanner(scanner_id, current_app.config["SCANNER_IDS"])
    if error:
        return jsonify({"error": error}), 400

    if guest_pin is not None and not isinstance(guest_pin, str):
        return jsonify({"error": "guest_pin must be a string"}), 400

    if user_id is not None:
        error = check_user_id(user_id)
        if error:
            return jsonify({"error": error}), 400

    timestamp = None
    if raw_timestamp is not None:
        try:
            timestamp = parse_timestamp(raw_timestamp)
        except (ValueError, OverflowError, OSError):
            return jsonify({"error": "Invalid timestamp: epoch milliseconds or ISO-8601"}), 400

    result = current_verifier().verify(ScanEvent(
        user_id=user_id,
        timestamp=timestamp,
        scanner_store_id=scanner_id,
        guest_code=guest_pin,
    ))

    if result.success:
        return jsonify(result.to_dict()), 200
    return jsonify(result.to_dict()), FAILURE_STATUS.get(result.error_code, 400)
