"""
GuestCode Model — Corelay
Single-use PIN bound to one order. At most one row per order.
"""

from datetime import datetime, timezone

from corelay.extensions import db
from corelay.services.store import GuestCredential
from corelay.utils import as_utc


class GuestCode(db.Model):
    __tablename__ = "guest_codes"

    code = db.Column(db.String(16), primary_key=True)
    order_id = db.Column(
        db.String(64),
        db.ForeignKey("orders.order_id"),
        nullable=False,
        unique=True
    )
    user_id = db.Column(db.String(255), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    def to_credential(self):
        return GuestCredential(
            code=self.code,
            order_id=self.order_id,
            user_id=self.user_id,
            expires_at=as_utc(self.expires_at),
        )
