"""Unique business references and delivery codes."""

import secrets
import time
import uuid


def _reference(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:16]}"


def new_transaction_reference() -> str:
    """Globally unique wallet transaction reference, e.g. txn_1729300000000_9f2c..."""
    return _reference("txn")


def new_topup_reference() -> str:
    """Globally unique topup payment reference handed to the gateway."""
    return _reference("topup")


def new_delivery_code() -> str:
    """6-digit numeric code (100000-999999). Not unique across orders."""
    return str(100000 + secrets.randbelow(900000))
