from pydantic import BaseModel
from typing import List
from ..event_models import WebhookEvent


class WebhookReceivedResponse(BaseModel):
    received: bool = True
    id: str


class EventListResponse(BaseModel):
    events: List[WebhookEvent]
    count: int


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    database: str
