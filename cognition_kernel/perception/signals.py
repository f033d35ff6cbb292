"""
Perception — turns raw observations into structured signals.

Every agent interprets inputs through this layer so that the same raw
payload always yields the same signal type and normalized value.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from cognition_kernel.models.signals import (
    EntityReference,
    PerceptionInput,
    SignalType,
    StructuredSignal,
    to_naive_utc,
)

# Ordered: the first matching rule wins
_CLASSIFIERS: List[tuple] = [
    (SignalType.REVENUE_EVENT, lambda d: bool(d.get("amount")) and d.get("type") == "payment"),
    (SignalType.REVENUE_EVENT, lambda d: bool(d.get("mrr") or d.get("revenue"))),
    (SignalType.LEAD_ACTIVITY, lambda d: bool(d.get("lead_id") or d.get("leadId"))),
    (SignalType.LEAD_ACTIVITY, lambda d: bool(d.get("email_opened") or d.get("link_clicked"))),
    (SignalType.MARKET_CHANGE, lambda d: bool(d.get("competitor") or d.get("market_trend"))),
    (SignalType.COMPETITOR_ACTION, lambda d: bool(d.get("competitor_price") or d.get("competitor_offer"))),
    (SignalType.FOUNDER_STATE, lambda d: bool(d.get("founder_mood") or d.get("energy_level"))),
    (SignalType.CLIENT_SENTIMENT, lambda d: bool(d.get("client_feedback") or d.get("nps_score"))),
    (SignalType.RISK_INDICATOR, lambda d: bool(d.get("churn_risk") or d.get("payment_failed"))),
    (SignalType.OPPORTUNITY_DETECTED, lambda d: bool(d.get("opportunity_score") or d.get("expansion_signal"))),
]

_ENTITY_KEYS = [
    ("lead_id", "lead"),
    ("client_id", "client"),
    ("deal_id", "deal"),
    ("campaign_id", "campaign"),
]


def classify_signal(data: Dict[str, Any]) -> SignalType:
    """Classify what type of signal a raw payload represents."""
    for signal_type, matches in _CLASSIFIERS:
        if matches(data):
            return signal_type
    return SignalType.LEAD_ACTIVITY


def extract_entity(data: Dict[str, Any]) -> EntityReference:
    organization_id = str(data.get("organization_id") or "")
    for key, entity_type in _ENTITY_KEYS:
        if data.get(key):
            return EntityReference(type=entity_type, id=str(data[key]), organization_id=organization_id)
    return EntityReference(type="market", id="global", organization_id=organization_id)


def _normalize_revenue(data: Dict[str, Any]) -> dict:
    return {
        "amount": float(data.get("amount") or 0),
        "currency": data.get("currency") or "USD",
        "type": data.get("type") or "payment",
        "recurring": bool(data.get("recurring")),
    }


def _normalize_lead(data: Dict[str, Any]) -> dict:
    return {
        "action": data.get("action") or data.get("event_type"),
        "score": float(data.get("score") or data.get("engagement_score") or 0),
        "stage": data.get("stage") or data.get("funnel_stage"),
    }


def _normalize_risk(data: Dict[str, Any]) -> dict:
    return {
        "risk_type": data.get("risk_type") or "unknown",
        "severity": float(data.get("severity") or data.get("risk_score") or 0.5),
        "description": data.get("description") or "",
    }


_NORMALIZERS: Dict[SignalType, Callable[[Dict[str, Any]], Any]] = {
    SignalType.REVENUE_EVENT: _normalize_revenue,
    SignalType.LEAD_ACTIVITY: _normalize_lead,
    SignalType.RISK_INDICATOR: _normalize_risk,
}


def _derive_confidence(observation: PerceptionInput, now: datetime) -> float:
    confidence = observation.confidence

    # Stale data is less trustworthy
    age_hours = (now - observation.timestamp).total_seconds() / 3600
    if age_hours > 24:
        confidence *= 0.8
    if age_hours > 72:
        confidence *= 0.6

    if observation.source == "external":
        confidence *= 0.9

    return max(0.0, min(1.0, confidence))


def perceive(observation: PerceptionInput, now: Optional[datetime] = None) -> StructuredSignal:
    """Perceive and structure a raw input into a queryable signal."""
    now = datetime.utcnow() if now is None else to_naive_utc(now)

    data = observation.raw_data
    signal_type = classify_signal(data)
    normalize = _NORMALIZERS.get(signal_type, dict)

    return StructuredSignal(
        type=signal_type,
        entity=extract_entity(data),
        value=normalize(data),
        metadata={
            "source": observation.source,
            "original_timestamp": observation.timestamp.isoformat(),
            "processing_latency_ms": (now - observation.timestamp).total_seconds() * 1000,
        },
        perceived_at=now,
        confidence=_derive_confidence(observation, now),
    )


def perceive_batch(
    inputs: List[PerceptionInput], now: Optional[datetime] = None
) -> List[StructuredSignal]:
    return [perceive(i, now) for i in inputs]


def filter_signals(
    signals: List[StructuredSignal], types: List[SignalType]
) -> List[StructuredSignal]:
    return [s for s in signals if s.type in types]


def prioritize_signals(
    signals: List[StructuredSignal], now: Optional[datetime] = None
) -> List[StructuredSignal]:
    """Sort by 0.6 x confidence + 0.4 x recency (one day horizon), best first."""
    now = datetime.utcnow() if now is None else to_naive_utc(now)

    def score(signal: StructuredSignal) -> float:
        age_days = (now - signal.perceived_at).total_seconds() / 86400
        return signal.confidence * 0.6 + (1 - age_days) * 0.4

    return sorted(signals, key=score, reverse=True)
