"""Scenario start/stop and activity events, fire-and-forget.

Events go to the ``telemetry`` logger as a single line with a JSON payload so
any log shipper can pick them up. Nothing here may raise into a handler.
"""
import json
import logging
from typing import Any, Optional

from src.constants import (
    EVENT_BOT_ACTIVITY,
    EVENT_SCENARIO_START,
    EVENT_SCENARIO_STOP,
    EVENT_USER_ACTIVITY,
    TELEMETRY_LOGGER,
)
from src.correlation import ensure_correlation_id, get_correlation_id
from src.message_handler import Address

logger = logging.getLogger(__name__)
sink = logging.getLogger(TELEMETRY_LOGGER)


def strip_query_from_url(url: str) -> str:
    """Drop the query string; it can carry tokens or PII."""
    head, _, _ = url.partition("?")
    return head


def _scrub(value: Any) -> Any:
    match value:
        case str() as s if s.startswith(("http://", "https://")):
            return strip_query_from_url(s)
        case _:
            return value


def _address_properties(address: Optional[Address]) -> dict[str, Any]:
    match address:
        case None:
            return {}
        case a:
            return {
                "correlationId": get_correlation_id(a),
                "user": a.user_id,
                "conversation": a.conversation_id,
            }


def track_event(
    name: str, properties: Optional[dict[str, Any]] = None, address: Optional[Address] = None
) -> None:
    try:
        payload = {
            **_address_properties(address),
            **{k: _scrub(v) for k, v in (properties or {}).items()},
        }
        sink.info("%s %s", name, json.dumps(payload, default=str, sort_keys=True))
    except Exception as exc:
        logger.debug("Telemetry event %s dropped: %s", name, exc)


def track_scenario_start(
    scenario: str, properties: Optional[dict[str, Any]] = None, address: Optional[Address] = None
) -> None:
    track_event(EVENT_SCENARIO_START, {"scenario": scenario, **(properties or {})}, address)


def track_scenario_stop(
    scenario: str, properties: Optional[dict[str, Any]] = None, address: Optional[Address] = None
) -> None:
    track_event(EVENT_SCENARIO_STOP, {"scenario": scenario, **(properties or {})}, address)


def track_scenario(
    scenario: str, properties: Optional[dict[str, Any]] = None, address: Optional[Address] = None
) -> None:
    """One-shot scenario: start and stop together."""
    track_scenario_start(scenario, properties, address)
    track_scenario_stop(scenario, properties, address)


def log_incoming_activity(address: Address, kind: str, invoke_name: Optional[str] = None) -> None:
    ensure_correlation_id(address)
    payload: dict[str, Any] = {
        "type": kind,
        "activityId": address.message_id,
        "conversationType": address.conversation_type,
    }
    match invoke_name:
        case None:
            pass
        case name:
            payload["invokeName"] = name
    track_event(EVENT_USER_ACTIVITY, payload, address)


def log_outgoing_activity(address: Address, kind: str) -> None:
    track_event(EVENT_BOT_ACTIVITY, {"type": kind}, address)
