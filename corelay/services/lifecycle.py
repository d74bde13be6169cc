"""
Order Lifecycle — Corelay
Only writer of an order's status and return deadline.

READY_FOR_PICKUP -> PICKED_UP                 (pickup, opens the return window)
PICKED_UP        -> RETURNED_PENDING_REFUND   (return, while the window is open)

RETURN_PENDING is a recognised label that no scan ever reaches.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

logger = logging.getLogger(__name__)

READY_FOR_PICKUP = "READY_FOR_PICKUP"
PICKED_UP = "PICKED_UP"
RETURN_PENDING = "RETURN_PENDING"
RETURNED_PENDING_REFUND = "RETURNED_PENDING_REFUND"

ORDER_STATUSES = (READY_FOR_PICKUP, PICKED_UP, RETURN_PENDING, RETURNED_PENDING_REFUND)

PICKUP = "PICKUP"
RETURN = "RETURN"

# scannable status -> status after the scan
VALID_TRANSITIONS = {
    READY_FOR_PICKUP: PICKED_UP,
    PICKED_UP: RETURNED_PENDING_REFUND,
}

RETURN_WINDOW_DAYS = 14

# error codes
RETURN_WINDOW_CLOSED = "RETURN_WINDOW_CLOSED"
UNSUPPORTED_STATUS = "UNSUPPORTED_STATUS"


@dataclass
class Outcome:
    success: bool
    message: str
    transaction_type: Optional[str] = None
    error_code: Optional[str] = None
    order: Optional[object] = None


class OrderLifecycle:

    def __init__(self, return_window_days=RETURN_WINDOW_DAYS):
        self.return_window_days = return_window_days

    def advance(self, order, scanner_store_id, now, expected_status=None):
        """
        Move `order` one step forward in place and describe what happened.

        `expected_status` is the status the caller saw when it selected the
        order. If the order has moved since then (a concurrent scan got there
        first) nothing is changed.
        """
        if expected_status is not None and order.status != expected_status:
            logger.warning(
                "Order %s changed from %s to %s before finalisation",
                order.order_id, expected_status, order.status,
            )
            return Outcome(
                success=False,
                message=(
                    f"Unsupported order status: {order.status}. "
                    f"The order was changed by another scan."
                ),
                error_code=UNSUPPORTED_STATUS,
            )

        next_status = VALID_TRANSITIONS.get(order.status)
        if next_status is None:
            return Outcome(
                success=False,
                message=(
                    f"Unsupported order status: {order.status}. "
                    f"Scannable statuses: {', '.join(VALID_TRANSITIONS)}"
                ),
                error_code=UNSUPPORTED_STATUS,
            )

        if next_status == PICKED_UP:
            order.status = PICKED_UP
            order.pickup_time = now
            order.max_time = now + timedelta(days=self.return_window_days)
            order.updated_at = now
            return Outcome(
                success=True,
                transaction_type=PICKUP,
                order=order,
                message=(
                    f"Parcel picked up at {scanner_store_id}. Status: {PICKED_UP}. "
                    f"Return window: {self.return_window_days} days from now."
                ),
            )

        if order.max_time is None or order.max_time <= now:
            return Outcome(
                success=False,
                message=f"Return window ({self.return_window_days} days) has expired.",
                error_code=RETURN_WINDOW_CLOSED,
            )
        order.status = RETURNED_PENDING_REFUND
        order.return_time = now
        order.max_time = None
        order.updated_at = now
        return Outcome(
            success=True,
            transaction_type=RETURN,
            order=order,
            message=(
                f"Return accepted at {scanner_store_id}. "
                f"Status: {RETURNED_PENDING_REFUND}. Refund process started."
            ),
        )
