from pydantic import BaseModel, Field
from typing import Any, Dict
from datetime import datetime


class WebhookEvent(BaseModel):
    id: str = Field(..., description="Server-generated record identifier")
    event_type: str = Field(..., description="Event type discriminator, e.g. email.delivered")
    event_id: str = Field(..., description="Sender-supplied idempotency key")
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    received_at: datetime


class QueryOptions(BaseModel):
    type: str | None = None
    limit: int = 50
    offset: int = 0
