"""Map a raw webhook payload onto the canonical WebhookEvent."""
from datetime import datetime, timezone
from typing import Any, Dict
import uuid

from pydantic import TypeAdapter, ValidationError

from .event_models import WebhookEvent

UNKNOWN_EVENT_TYPE = "unknown"

_datetime_adapter = TypeAdapter(datetime)


def to_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or unix timestamp, returning None if unparseable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return to_utc(_datetime_adapter.validate_python(value))
    except (ValidationError, OverflowError, ValueError):
        return None


def normalize_event(payload: Dict[str, Any], now: datetime) -> WebhookEvent:
    """
    Build the storage-ready event for a verified payload.

    Missing or malformed fields fall back to defaults; this never raises.

    Args:
        payload: Parsed JSON object from the webhook body
        now: Ingest time

    Returns:
        WebhookEvent with a fresh server-side id
    """
    now = to_utc(now)

    event_type = payload.get("type")
    event_id = payload.get("id")

    return WebhookEvent(
        id=str(uuid.uuid4()),
        event_type=UNKNOWN_EVENT_TYPE if event_type is None else str(event_type),
        event_id=str(uuid.uuid4()) if event_id is None else str(event_id),
        data=payload,
        created_at=parse_timestamp(payload.get("created_at")) or now,
        received_at=now,
    )
