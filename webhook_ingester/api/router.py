from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Query, Request
import orjson
import structlog
from .schemas import EventListResponse, WebhookReceivedResponse
from ..adapters.base import DatabaseAdapter
from ..config import Settings
from ..errors import AuthenticationError, ValidationError
from ..event_models import QueryOptions
from ..metrics import Metrics
from ..normalizer import normalize_event
from ..verifier import SIGNATURE_HEADER, verify_webhook_signature

router = APIRouter()
log = structlog.get_logger()

DEFAULT_LIMIT = 50
MIN_LIMIT = 1
MAX_LIMIT = 1000


def get_adapter(request: Request) -> DatabaseAdapter:
    return request.app.state.adapter


def get_ingester_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_metrics(request: Request) -> Metrics:
    return request.app.state.metrics


def _parse_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def clamp_pagination(limit: str | None, offset: str | None) -> tuple[int, int]:
    """Parse raw limit/offset query values; bad integers fall back to defaults before clamping."""
    clamped_limit = min(max(_parse_int(limit, DEFAULT_LIMIT), MIN_LIMIT), MAX_LIMIT)
    clamped_offset = max(_parse_int(offset, 0), 0)
    return clamped_limit, clamped_offset


@router.post("/webhook", response_model=WebhookReceivedResponse)
async def receive_webhook(
    request: Request,
    adapter: DatabaseAdapter = Depends(get_adapter),
    settings: Settings = Depends(get_ingester_settings),
    metrics: Metrics = Depends(get_metrics),
):
    body = await request.body()

    # Missing and invalid signatures get the same response
    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        log.warning("webhook.rejected", reason="missing_signature")
        metrics.record_rejection("missing_signature")
        raise AuthenticationError("missing signature header")

    if not verify_webhook_signature(body, signature, settings.WEBHOOK_SECRET):
        log.warning("webhook.rejected", reason="invalid_signature")
        metrics.record_rejection("invalid_signature")
        raise AuthenticationError("signature mismatch")

    try:
        payload = orjson.loads(body)
    except orjson.JSONDecodeError as e:
        log.warning("webhook.rejected", reason="invalid_json", error=str(e))
        metrics.record_rejection("invalid_json")
        raise ValidationError("body is not valid JSON") from e

    if not isinstance(payload, dict):
        log.warning("webhook.rejected", reason="not_an_object", json_type=type(payload).__name__)
        metrics.record_rejection("invalid_json")
        raise ValidationError("body is not a JSON object")

    event = normalize_event(payload, datetime.now(timezone.utc))
    await adapter.insert(event)

    metrics.record_event_received(event.event_type, len(body))
    log.info(
        "webhook.received",
        id=event.id,
        event_id=event.event_id,
        event_type=event.event_type,
    )
    return WebhookReceivedResponse(id=event.id)


@router.get("/events", response_model=EventListResponse)
async def list_events(
    event_type: str | None = Query(None, alias="type"),
    limit: str | None = None,
    offset: str | None = None,
    adapter: DatabaseAdapter = Depends(get_adapter),
):
    clamped_limit, clamped_offset = clamp_pagination(limit, offset)
    events = await adapter.query(
        QueryOptions(type=event_type, limit=clamped_limit, offset=clamped_offset)
    )
    log.debug(
        "events.queried",
        type=event_type,
        limit=clamped_limit,
        offset=clamped_offset,
        count=len(events),
    )
    return EventListResponse(events=events, count=len(events))
