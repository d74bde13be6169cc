"""
Builds the core services for the running Flask app.
The store is created once in create_app(); issuer and verifier are cheap
and built per request from the app config.
"""

from flask import current_app

from corelay.services.issuer import GuestCodeIssuer
from corelay.services.lifecycle import OrderLifecycle
from corelay.services.verifier import TransactionVerifier


def current_store():
    return current_app.extensions["corelay_store"]


def current_clock():
    return current_app.config["CLOCK"]


def current_issuer():
    cfg = current_app.config
    return GuestCodeIssuer(
        current_store(),
        clock=current_clock(),
        validity_minutes=cfg["GUEST_CODE_VALIDITY_MINUTES"],
        code_length=cfg["GUEST_CODE_LENGTH"],
    )


def current_verifier():
    cfg = current_app.config
    return TransactionVerifier(
        current_store(),
        clock=current_clock(),
        lifecycle=OrderLifecycle(return_window_days=cfg["RETURN_WINDOW_DAYS"]),
        dynamic_code_ttl_seconds=cfg["DYNAMIC_CODE_TTL_SECONDS"],
        expiry_tolerance_ms=cfg["EXPIRY_TOLERANCE_MS"],
    )
