"""Perception models — raw inputs and the structured signals derived from them."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


def to_naive_utc(value: datetime) -> datetime:
    """Offset-aware timestamps are converted to naive UTC; naive ones are taken as UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class SignalType(str, Enum):
    REVENUE_EVENT = "revenue_event"
    LEAD_ACTIVITY = "lead_activity"
    MARKET_CHANGE = "market_change"
    COMPETITOR_ACTION = "competitor_action"
    FOUNDER_STATE = "founder_state"
    CLIENT_SENTIMENT = "client_sentiment"
    RISK_INDICATOR = "risk_indicator"
    OPPORTUNITY_DETECTED = "opportunity_detected"


class EntityReference(BaseModel):
    type: str                               # "lead" | "client" | "deal" | "campaign" | "market" | ...
    id: str
    organization_id: str = ""


class PerceptionInput(BaseModel):
    """A raw observation handed to the perception layer."""

    source: str = "database"                # "database" | "api" | "user" | "agent" | "external"
    raw_data: dict
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    confidence: float = Field(ge=0.0, le=1.0, default=1.0)

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


class StructuredSignal(BaseModel):
    """An atomic perceived fact."""

    id: str = Field(default_factory=lambda: f"sig_{uuid4().hex}")
    type: SignalType
    value: Any = None
    confidence: float = Field(ge=0.0, le=1.0, default=1.0)
    entity: Optional[EntityReference] = None
    metadata: dict = {}
    perceived_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("perceived_at")
    @classmethod
    def normalize_perceived_at(cls, value: datetime) -> datetime:
        return to_naive_utc(value)
