"""
Transaction Verifier — Corelay
Handles store and locker scans.

A scan is authenticated one of two ways:
  - guest code: a single-use PIN, consumed on the first lookup that finds it
  - dynamic code: the customer's app shows user id + the instant the code was
    drawn; the scan is accepted only while that instant is fresh

The order the code authorises is then advanced by the lifecycle.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from corelay.services.lifecycle import (
    PICKED_UP,
    READY_FOR_PICKUP,
    OrderLifecycle,
)
from corelay.utils import utcnow

logger = logging.getLogger(__name__)

DYNAMIC_CODE_TTL_SECONDS = 30
EXPIRY_TOLERANCE_MS = 1000

GUEST_CODE = "GUEST_CODE"
DYNAMIC_CODE = "DYNAMIC_CODE"

# error codes
INVALID_GUEST_CODE = "INVALID_GUEST_CODE"
GUEST_CODE_EXPIRED = "GUEST_CODE_EXPIRED"
ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
MISSING_IDENTITY = "MISSING_IDENTITY"
CODE_EXPIRED = "CODE_EXPIRED"
TIMESTAMP_IN_FUTURE = "TIMESTAMP_IN_FUTURE"
NO_ORDERS = "NO_ORDERS"
NO_MATCHING_ORDER = "NO_MATCHING_ORDER"


@dataclass
class ScanEvent:
    user_id: Optional[str]
    timestamp: Optional[datetime]
    scanner_store_id: str
    guest_code: Optional[str] = None


@dataclass
class VerificationResult:
    success: bool
    message: str
    transaction_type: Optional[str] = None
    auth_method: Optional[str] = None
    error_code: Optional[str] = None
    scanner: Optional[str] = None
    order: Optional[object] = None

    def to_dict(self):
        data = {
            "success": self.success,
            "message": self.message,
        }
        if self.success:
            data.update({
                "transaction_type": self.transaction_type,
                "type":             self.auth_method,
                "scanner":          self.scanner,
                "order_id":         self.order.order_id if self.order else None,
                "user_id":          self.order.user_id if self.order else None,
                "order":            self.order.to_dict() if self.order else None,
            })
        else:
            data["error_code"] = self.error_code
        return data


def _mask(code):
    return code[:2] + "*" * max(len(code) - 2, 0)


class TransactionVerifier:

    def __init__(self, store, clock=utcnow, lifecycle=None,
                 dynamic_code_ttl_seconds=DYNAMIC_CODE_TTL_SECONDS,
                 expiry_tolerance_ms=EXPIRY_TOLERANCE_MS):
        self.store = store
        self.clock = clock
        self.lifecycle = lifecycle or OrderLifecycle()
        self.dynamic_code_ttl_seconds = dynamic_code_ttl_seconds
        self.expiry_tolerance = timedelta(milliseconds=expiry_tolerance_ms)

    def verify(self, scan):
        """
        Returns a VerificationResult; validation problems never raise.
        PersistenceError from the store propagates to the caller.
        """
        guest_code = (scan.guest_code or "").strip()
        if guest_code:
            return self._verify_guest_code(guest_code, scan)
        return self._verify_dynamic_code(scan)

    # --- Path A: guest code ---------------------------------------------

    def _verify_guest_code(self, code, scan):
        credential = self.store.consume_credential(code)
        if credential is None:
            logger.info("Rejected guest code %s at %s: unknown or used", _mask(code), scan.scanner_store_id)
            return self._fail(INVALID_GUEST_CODE, "Guest code (PIN/QR) is invalid or expired. Use the dynamic code from the app.")

        now = self.clock()
        if credential.expires_at < now - self.expiry_tolerance:
            logger.info("Rejected guest code for order %s: expired at %s", credential.order_id, credential.expires_at.isoformat())
            return self._fail(GUEST_CODE_EXPIRED, "Guest code has expired. Generate a new one.")

        order = self.store.order_by_id(credential.order_id)
        if order is None or order.user_id != credential.user_id:
            logger.error("Guest code for order %s points at a missing order", credential.order_id)
            return self._fail(ORDER_NOT_FOUND, "The order linked to this code does not exist.")

        return self._finalize(order, scan.scanner_store_id, GUEST_CODE, now)

    # --- Path B: dynamic code -------------------------------------------

    def _verify_dynamic_code(self, scan):
        if not scan.user_id or not scan.user_id.strip() or scan.timestamp is None:
            return self._fail(MISSING_IDENTITY, "A dynamic code needs both a user id and a timestamp.")

        now = self.clock()
        age = (now - scan.timestamp).total_seconds()
        if age > self.dynamic_code_ttl_seconds:
            logger.info("Stale dynamic code for %s: %.1fs old", scan.user_id, age)
            return self._fail(
                CODE_EXPIRED,
                f"Dynamic code expired ({round(age)}s > {self.dynamic_code_ttl_seconds}s). "
                f"It may be a screenshot. Refresh the code in the app.",
            )
        if age < 0:
            logger.warning("Dynamic code for %s is %.1fs in the future", scan.user_id, -age)
            return self._fail(TIMESTAMP_IN_FUTURE, "Invalid timestamp: it lies in the future.")

        orders = self.store.orders_owned_by(scan.user_id)
        if not orders:
            return self._fail(NO_ORDERS, "No orders for this user. Check the e-mail address.")

        order = next((o for o in orders if self._is_eligible(o, scan.scanner_store_id, now)), None)
        if order is None:
            return self._fail(
                NO_MATCHING_ORDER,
                f"No matching order: no parcel ready for pickup at {scan.scanner_store_id} "
                f"and no active return window.",
            )

        return self._finalize(order, scan.scanner_store_id, DYNAMIC_CODE, now)

    @staticmethod
    def _is_eligible(order, scanner_store_id, now):
        if order.status == READY_FOR_PICKUP and order.store_id == scanner_store_id:
            return True
        # returns are accepted at any location
        if order.status == PICKED_UP and order.max_time is not None and order.max_time > now:
            return True
        return False

    # --- finalisation ---------------------------------------------------

    def _finalize(self, order, scanner_store_id, auth_method, now):
        expected_status = order.status
        outcome = self.store.update_order(
            order.order_id,
            lambda current: self.lifecycle.advance(current, scanner_store_id, now, expected_status=expected_status),
        )
        if outcome is None:
            return self._fail(ORDER_NOT_FOUND, "The order no longer exists.")

        if not outcome.success:
            return self._fail(outcome.error_code, outcome.message)

        logger.info(
            "%s finalised: order %s via %s at %s",
            outcome.transaction_type, order.order_id, auth_method, scanner_store_id,
        )
        return VerificationResult(
            success=True,
            message=outcome.message,
            transaction_type=outcome.transaction_type,
            auth_method=auth_method,
            scanner=scanner_store_id,
            order=outcome.order,
        )

    @staticmethod
    def _fail(error_code, message):
        return VerificationResult(success=False, message=message, error_code=error_code)
