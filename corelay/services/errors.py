"""
Errors raised by the core.

Validation failures (stale codes, unknown PINs, no matching order) are never
raised; the verifier returns them as negative results. Only store faults
surface as exceptions.
"""


class PersistenceError(Exception):
    """Store unreachable or write rejected. State after the call is uncertain."""


class DuplicateCodeError(PersistenceError):
    """A live guest credential already uses this code."""


class OrderExistsError(Exception):
    """An order with this order_id is already stored."""
