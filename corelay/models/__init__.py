from corelay.models.order import Order
from corelay.models.guest_code import GuestCode

__all__ = ["Order", "GuestCode"]
