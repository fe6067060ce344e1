"""Tie a consent proposal, its later decision and their telemetry together."""
import secrets

from src.constants import RESULT_ID_BYTES
from src.message_handler import Address


def new_correlation_id() -> str:
    return secrets.token_urlsafe(RESULT_ID_BYTES)


def ensure_correlation_id(address: Address) -> str:
    """Return the address's correlation id, minting and attaching one if it has none."""
    match address.correlation_id:
        case str() as existing if existing:
            return existing
        case _:
            address.correlation_id = new_correlation_id()
            return address.correlation_id


def set_correlation_id(address: Address, correlation_id: str) -> None:
    address.correlation_id = correlation_id


def get_correlation_id(address: Address) -> str:
    return address.correlation_id or ""
