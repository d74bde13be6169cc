"""
Order Model — Corelay
Status: READY_FOR_PICKUP | PICKED_UP | RETURN_PENDING | RETURNED_PENDING_REFUND
"""

from datetime import datetime, timezone

from corelay.extensions import db
from corelay.services.lifecycle import ORDER_STATUSES, READY_FOR_PICKUP
from corelay.services.store import OrderRecord
from corelay.utils import as_utc


class Order(db.Model):
    __tablename__ = "orders"

    order_id = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.String(255), nullable=False, index=True)
    store_id = db.Column(db.String(32), nullable=False)
    status = db.Column(
        db.Enum(*ORDER_STATUSES, name="order_status"),
        nullable=False,
        default=READY_FOR_PICKUP
    )
    products = db.Column(db.JSON, nullable=False, default=list)
    pickup_deadline = db.Column(db.Date, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    pickup_time = db.Column(db.DateTime(timezone=True), nullable=True)
    return_time = db.Column(db.DateTime(timezone=True), nullable=True)
    max_time = db.Column(db.DateTime(timezone=True), nullable=True)  # return deadline, PICKED_UP only

    @classmethod
    def from_record(cls, record):
        return cls(
            order_id=record.order_id,
            user_id=record.user_id,
            store_id=record.store_id,
            status=record.status,
            products=list(record.products),
            pickup_deadline=record.pickup_deadline,
            created_at=record.created_at,
            updated_at=record.updated_at,
            pickup_time=record.pickup_time,
            return_time=record.return_time,
            max_time=record.max_time,
        )

    def to_record(self):
        return OrderRecord(
            order_id=self.order_id,
            user_id=self.user_id,
            store_id=self.store_id,
            status=self.status,
            products=list(self.products or []),
            pickup_deadline=self.pickup_deadline,
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
            pickup_time=as_utc(self.pickup_time),
            return_time=as_utc(self.return_time),
            max_time=as_utc(self.max_time),
        )

    @staticmethod
    def lifecycle_values(record):
        """Lifecycle-owned columns of a mutated record, ready for UPDATE."""
        return {
            "status": record.status,
            "updated_at": record.updated_at,
            "pickup_time": record.pickup_time,
            "return_time": record.return_time,
            "max_time": record.max_time,
        }

    def to_dict(self):
        return self.to_record().to_dict()
