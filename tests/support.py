from datetime import datetime, timedelta, timezone

from corelay.services.lifecycle import PICKED_UP, READY_FOR_PICKUP
from corelay.services.store import OrderRecord

START = datetime(2025, 11, 11, 12, 0, tzinfo=timezone.utc)
USER = "wojtek@corelay.pl"


class FakeClock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def ready_order(order_id="ORD-1001", store_id="MODIVO", user_id=USER, created_at=START):
    return OrderRecord(
        order_id=order_id,
        user_id=user_id,
        store_id=store_id,
        status=READY_FOR_PICKUP,
        products=[{"name": "Blue Sweater M", "price": 199}],
        created_at=created_at,
    )


def picked_up_order(order_id="ORD-1002", store_id="LPP", user_id=USER,
                    max_time=START + timedelta(days=13), created_at=START):
    return OrderRecord(
        order_id=order_id,
        user_id=user_id,
        store_id=store_id,
        status=PICKED_UP,
        products=[{"name": "Denim Jacket L", "price": 299}],
        created_at=created_at,
        pickup_time=max_time - timedelta(days=14),
        max_time=max_time,
    )
