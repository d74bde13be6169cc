"""
Guest code issuer.
Mints the single-use PIN a customer can hand to someone else to return a
parcel on their behalf. Eligibility (order owned by the user and PICKED_UP)
is checked by the caller before this runs.
"""

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta

from corelay.services.errors import DuplicateCodeError, PersistenceError
from corelay.utils import to_epoch_ms, utcnow

logger = logging.getLogger(__name__)

GUEST_CODE_VALIDITY_MINUTES = 60
GUEST_CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 5


@dataclass
class IssuedGuestCode:
    code: str
    order_id: str
    expires_at: datetime
    validity_minutes: int

    def to_dict(self):
        return {
            "pin":                self.code,
            "order_id":           self.order_id,
            "expires_at":         to_epoch_ms(self.expires_at),
            "expires_in_minutes": self.validity_minutes,
            "type":               "guest",
        }


def generate_pin(length=GUEST_CODE_LENGTH):
    return "".join(secrets.choice(string.digits) for _ in range(length))


class GuestCodeIssuer:

    def __init__(self, store, clock=utcnow,
                 validity_minutes=GUEST_CODE_VALIDITY_MINUTES,
                 code_length=GUEST_CODE_LENGTH,
                 code_factory=None):
        self.store = store
        self.clock = clock
        self.validity_minutes = validity_minutes
        self.code_length = code_length
        self.code_factory = code_factory or generate_pin

    def issue(self, user_id, order_id):
        """
        Supersede any live code of the order with a fresh one.
        Raises PersistenceError if the store write does not complete.
        """
        expires_at = self.clock() + timedelta(minutes=self.validity_minutes)

        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            code = self.code_factory(self.code_length)
            try:
                self.store.upsert_credential(order_id, code, expires_at, user_id)
            except DuplicateCodeError:
                logger.info("Guest code collision for order %s (attempt %d)", order_id, attempt)
                continue

            logger.info(
                "Guest code issued for order %s, user %s, expires %s",
                order_id, user_id, expires_at.isoformat(),
            )
            return IssuedGuestCode(
                code=code,
                order_id=order_id,
                expires_at=expires_at,
                validity_minutes=self.validity_minutes,
            )

        raise PersistenceError(f"Could not allocate a unique guest code for order {order_id}")
