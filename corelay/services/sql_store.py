"""
SQL implementation of the store contract (Flask-SQLAlchemy).

Atomicity:
  - update_order locks the order row (SELECT ... FOR UPDATE) for the
    duration of the mutator, so concurrent scans of one order serialise
    while scans of other orders do not wait. The write itself is a
    compare-and-set on the status that was read, which also holds on
    backends that ignore FOR UPDATE (SQLite)
  - consume_credential decides the winner by the DELETE row count: only the
    caller whose DELETE removed the row gets the credential back
"""

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from corelay.models import GuestCode, Order
from corelay.services.errors import DuplicateCodeError, OrderExistsError, PersistenceError
from corelay.services.lifecycle import UNSUPPORTED_STATUS, Outcome
from corelay.services.store import GuestCredential, OrderStore

logger = logging.getLogger(__name__)


class SqlAlchemyStore(OrderStore):

    def __init__(self, db):
        self.db = db

    # --- orders ---------------------------------------------------------

    def orders_owned_by(self, user_id):
        try:
            rows = (
                Order.query.filter_by(user_id=user_id)
                .order_by(Order.created_at.asc(), Order.order_id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load orders for {user_id}") from e
        return [row.to_record() for row in rows]

    def order_by_id(self, order_id):
        try:
            row = Order.query.filter_by(order_id=order_id).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load order {order_id}") from e
        return row.to_record() if row else None

    def update_order(self, order_id, mutator):
        session = self.db.session
        try:
            # SELECT FOR UPDATE to lock the row
            row = (
                Order.query.with_for_update()
                .populate_existing()
                .filter_by(order_id=order_id)
                .first()
            )
            if row is None:
                session.rollback()
                return None

            seen_status = row.status
            working = row.to_record()
            result = mutator(working)
            if not getattr(result, "success", False):
                session.rollback()
                return result

            # compare-and-set on the status we read
            updated = (
                Order.query.filter_by(order_id=order_id, status=seen_status)
                .update(Order.lifecycle_values(working))
            )
            if updated != 1:
                session.rollback()
                logger.warning("Order %s left %s during update", order_id, seen_status)
                return Outcome(
                    success=False,
                    message=(
                        f"Unsupported order status: {seen_status} is no longer current. "
                        f"The order was changed by another scan."
                    ),
                    error_code=UNSUPPORTED_STATUS,
                )
            session.commit()
            return result

        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Could not update order {order_id}") from e

    def create_order(self, record):
        session = self.db.session
        row = Order.from_record(record)
        try:
            if Order.query.filter_by(order_id=record.order_id).first() is not None:
                raise OrderExistsError(f"Order {record.order_id} already exists")
            session.add(row)
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise OrderExistsError(f"Order {record.order_id} already exists") from e
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Could not create order {record.order_id}") from e

        logger.info("Created order %s for %s (status: %s)", row.order_id, row.user_id, row.status)
        return row.to_record()

    # --- guest credentials ----------------------------------------------

    def consume_credential(self, code):
        session = self.db.session
        try:
            row = GuestCode.query.filter_by(code=code).first()
            if row is None:
                session.rollback()
                return None
            credential = row.to_credential()

            deleted = (
                GuestCode.query.filter_by(code=code, order_id=credential.order_id)
                .delete()
            )
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError("Could not consume guest code") from e

        if deleted != 1:
            # another scan consumed it between our read and our delete
            return None
        return credential

    def upsert_credential(self, order_id, code, expires_at, user_id):
        session = self.db.session
        try:
            holder = session.query(GuestCode.order_id).filter_by(code=code).scalar()
            if holder is not None and holder != order_id:
                session.rollback()
                raise DuplicateCodeError("Guest code already in use")

            GuestCode.query.filter_by(order_id=order_id).delete()
            session.add(GuestCode(
                code=code,
                order_id=order_id,
                user_id=user_id,
                expires_at=expires_at,
            ))
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise DuplicateCodeError("Guest code clashed with a concurrent write") from e
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Could not store guest code for order {order_id}") from e

        return GuestCredential(code=code, order_id=order_id, user_id=user_id, expires_at=expires_at)

    def cleanup_expired_credentials(self, now):
        session = self.db.session
        try:
            removed = (
                GuestCode.query.filter(GuestCode.expires_at <= now)
                .delete(synchronize_session=False)
            )
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError("Could not clean up guest codes") from e

        if removed:
            logger.info("Removed %d expired guest codes", removed)
        return removed
