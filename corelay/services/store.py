"""
Store contract consumed by the issuer and the verifier, plus the in-memory
implementation used by tests and the demo.

Ordering: orders_owned_by() returns orders by creation (created_at, then
order_id). The verifier's "first match wins" selection depends on it.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Optional

from corelay.services.errors import DuplicateCodeError, OrderExistsError
from corelay.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class OrderRecord:
    order_id: str
    user_id: str
    store_id: str
    status: str
    products: list = field(default_factory=list)
    pickup_deadline: Optional[date] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    pickup_time: Optional[datetime] = None
    return_time: Optional[datetime] = None
    max_time: Optional[datetime] = None

    def to_dict(self):
        return {
            "order_id":        self.order_id,
            "user_id":         self.user_id,
            "store_id":        self.store_id,
            "status":          self.status,
            "products":        list(self.products),
            "pickup_deadline": self.pickup_deadline.isoformat() if self.pickup_deadline else None,
            "created_at":      self.created_at.isoformat() if self.created_at else None,
            "updated_at":      self.updated_at.isoformat() if self.updated_at else None,
            "pickup_time":     self.pickup_time.isoformat() if self.pickup_time else None,
            "return_time":     self.return_time.isoformat() if self.return_time else None,
            "max_time":        self.max_time.isoformat() if self.max_time else None,
        }


@dataclass(frozen=True)
class GuestCredential:
    code: str
    order_id: str
    user_id: str
    expires_at: datetime


class OrderStore(ABC):

    @abstractmethod
    def orders_owned_by(self, user_id) -> list:
        """All orders of user_id, oldest first."""

    @abstractmethod
    def order_by_id(self, order_id) -> Optional[OrderRecord]:
        ...

    @abstractmethod
    def update_order(self, order_id, mutator: Callable):
        """
        Apply mutator to a fresh copy of the order while holding that order
        exclusively. The copy is persisted only if the returned object has a
        truthy `success`. Returns the mutator's result, or None when the
        order does not exist.
        """

    @abstractmethod
    def consume_credential(self, code) -> Optional[GuestCredential]:
        """Look up and delete in one step. Expiry is not checked here."""

    @abstractmethod
    def upsert_credential(self, order_id, code, expires_at, user_id) -> GuestCredential:
        """Replace any credential of order_id with this one."""

    @abstractmethod
    def create_order(self, record: OrderRecord) -> OrderRecord:
        ...

    @abstractmethod
    def cleanup_expired_credentials(self, now: datetime) -> int:
        ...


class InMemoryStore(OrderStore):
    """
    Process-local store. One lock per order so scans on different orders
    never wait on each other; one lock for the credential indexes.
    """

    def __init__(self, orders=None):
        self._orders = {}
        self._order_locks = {}
        self._registry_lock = threading.Lock()

        self._codes = {}           # code -> GuestCredential
        self._code_by_order = {}   # order_id -> code
        self._credentials_lock = threading.Lock()

        for record in orders or ():
            self.create_order(record)

    # --- orders ---------------------------------------------------------

    def _lock_for(self, order_id):
        with self._registry_lock:
            return self._order_locks.get(order_id)

    def orders_owned_by(self, user_id):
        with self._registry_lock:
            owned = [o for o in self._orders.values() if o.user_id == user_id]
        owned.sort(key=lambda o: (o.created_at, o.order_id))
        return [copy.deepcopy(o) for o in owned]

    def order_by_id(self, order_id):
        with self._registry_lock:
            order = self._orders.get(order_id)
        return copy.deepcopy(order) if order else None

    def update_order(self, order_id, mutator):
        lock = self._lock_for(order_id)
        if lock is None:
            return None

        with lock:
            current = self._orders[order_id]
            working = copy.deepcopy(current)
            result = mutator(working)
            if getattr(result, "success", False):
                with self._registry_lock:
                    self._orders[order_id] = copy.deepcopy(working)
        return result

    def create_order(self, record):
        with self._registry_lock:
            if record.order_id in self._orders:
                raise OrderExistsError(f"Order {record.order_id} already exists")
            self._orders[record.order_id] = copy.deepcopy(record)
            self._order_locks[record.order_id] = threading.Lock()
        logger.debug("Stored order %s for %s", record.order_id, record.user_id)
        return copy.deepcopy(record)

    # --- guest credentials ----------------------------------------------

    def consume_credential(self, code):
        with self._credentials_lock:
            credential = self._codes.pop(code, None)
            if credential is None:
                return None
            self._code_by_order.pop(credential.order_id, None)
            return credential

    def upsert_credential(self, order_id, code, expires_at, user_id):
        credential = GuestCredential(code=code, order_id=order_id, user_id=user_id, expires_at=expires_at)
        with self._credentials_lock:
            holder = self._codes.get(code)
            if holder is not None and holder.order_id != order_id:
                raise DuplicateCodeError("Guest code already in use")

            previous = self._code_by_order.pop(order_id, None)
            if previous is not None:
                self._codes.pop(previous, None)

            self._codes[code] = credential
            self._code_by_order[order_id] = code
        return credential

    def cleanup_expired_credentials(self, now):
        with self._credentials_lock:
            expired = [c for c in self._codes.values() if c.expires_at <= now]
            for credential in expired:
                del self._codes[credential.code]
                self._code_by_order.pop(credential.order_id, None)
        return len(expired)

    def credential_for_order(self, order_id):
        with self._credentials_lock:
            code = self._code_by_order.get(order_id)
            return self._codes.get(code) if code else None
