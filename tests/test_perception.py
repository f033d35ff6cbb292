"""Tests for the Perception layer."""

from datetime import datetime, timedelta, timezone

import pytest

from cognition_kernel.models.signals import PerceptionInput, SignalType, StructuredSignal
from cognition_kernel.perception.signals import (
    classify_signal,
    extract_entity,
    filter_signals,
    perceive,
    perceive_batch,
    prioritize_signals,
)

NOW = datetime(2026, 10, 18, 12, 0)


def _make_input(raw_data: dict, hours_old: float = 0, source: str = "database") -> PerceptionInput:
    return PerceptionInput(
        source=source,
        raw_data=raw_data,
        timestamp=NOW - timedelta(hours=hours_old),
        confidence=1.0,
    )


class TestClassification:
    def test_payment_is_revenue(self):
        assert classify_signal({"amount": 100, "type": "payment"}) == SignalType.REVENUE_EVENT

    def test_mrr_is_revenue(self):
        assert classify_signal({"mrr": 5000}) == SignalType.REVENUE_EVENT

    def test_lead(self):
        assert classify_signal({"lead_id": "l1"}) == SignalType.LEAD_ACTIVITY
        assert classify_signal({"email_opened": True}) == SignalType.LEAD_ACTIVITY

    def test_market_and_competitor(self):
        assert classify_signal({"market_trend": "up"}) == SignalType.MARKET_CHANGE
        assert classify_signal({"competitor_price": 49}) == SignalType.COMPETITOR_ACTION

    def test_risk(self):
        assert classify_signal({"payment_failed": True}) == SignalType.RISK_INDICATOR

    def test_first_rule_wins(self):
        # A lead id outranks the risk flag
        assert classify_signal({"lead_id": "l1", "churn_risk": 0.9}) == SignalType.LEAD_ACTIVITY

    def test_unmatched_defaults_to_lead_activity(self):
        assert classify_signal({"foo": "bar"}) == SignalType.LEAD_ACTIVITY


class TestEntityExtraction:
    def test_client_entity(self):
        entity = extract_entity({"client_id": "c9", "organization_id": "org_1"})
        assert entity.type == "client"
        assert entity.id == "c9"
        assert entity.organization_id == "org_1"

    def test_falls_back_to_market(self):
        entity = extract_entity({})
        assert (entity.type, entity.id) == ("market", "global")


class TestPerceive:
    def test_normalizes_revenue(self):
        signal = perceive(_make_input({"amount": "250", "type": "payment"}), now=NOW)
        assert signal.type == SignalType.REVENUE_EVENT
        assert signal.value == {
            "amount": 250.0, "currency": "USD", "type": "payment", "recurring": False,
        }
        assert signal.metadata["source"] == "database"
        assert signal.confidence == 1.0

    def test_normalizes_risk(self):
        signal = perceive(_make_input({"churn_risk": True, "risk_score": 0.8}), now=NOW)
        assert signal.type == SignalType.RISK_INDICATOR
        assert signal.value["severity"] == 0.8
        assert signal.value["risk_type"] == "unknown"

    def test_stale_inputs_lose_confidence(self):
        assert perceive(_make_input({"lead_id": "l1"}, hours_old=48), now=NOW).confidence == pytest.approx(0.8)
        assert perceive(_make_input({"lead_id": "l1"}, hours_old=100), now=NOW).confidence == pytest.approx(0.48)

    def test_external_sources_lose_confidence(self):
        signal = perceive(_make_input({"lead_id": "l1"}, source="external"), now=NOW)
        assert signal.confidence == pytest.approx(0.9)

    def test_offset_timestamps_are_read_as_utc(self):
        observation = PerceptionInput(raw_data={"mrr": 10}, timestamp="2026-10-18T10:00:00+02:00")
        signal = perceive(observation, now=NOW)

        assert signal.metadata["original_timestamp"] == "2026-10-18T08:00:00"
        assert signal.metadata["processing_latency_ms"] == pytest.approx(4 * 3600 * 1000)
        assert signal.confidence == 1.0

    def test_zulu_timestamp_against_wall_clock(self):
        signal = perceive(PerceptionInput(raw_data={"mrr": 10}, timestamp="2026-10-01T00:00:00Z"))
        assert signal.type == SignalType.REVENUE_EVENT
        assert signal.confidence == pytest.approx(0.48)

    def test_batch(self):
        signals = perceive_batch(
            [_make_input({"mrr": 1}), _make_input({"nps_score": 9})], now=NOW
        )
        assert [s.type for s in signals] == [SignalType.REVENUE_EVENT, SignalType.CLIENT_SENTIMENT]


class TestSignalSelection:
    def test_filter(self):
        signals = [
            StructuredSignal(type=SignalType.RISK_INDICATOR),
            StructuredSignal(type=SignalType.LEAD_ACTIVITY),
        ]
        filtered = filter_signals(signals, [SignalType.RISK_INDICATOR])
        assert [s.type for s in filtered] == [SignalType.RISK_INDICATOR]

    def test_prioritize_by_confidence_and_recency(self):
        fresh_low = StructuredSignal(type=SignalType.LEAD_ACTIVITY, confidence=0.5, perceived_at=NOW)
        fresh_high = StructuredSignal(type=SignalType.LEAD_ACTIVITY, confidence=0.9, perceived_at=NOW)
        old_high = StructuredSignal(
            type=SignalType.LEAD_ACTIVITY, confidence=0.9, perceived_at=NOW - timedelta(days=2)
        )
        ordered = prioritize_signals([old_high, fresh_low, fresh_high], now=NOW)
        assert [s.id for s in ordered] == [fresh_high.id, fresh_low.id, old_high.id]

    def test_prioritize_with_aware_times(self):
        newer = StructuredSignal(type=SignalType.LEAD_ACTIVITY, perceived_at="2026-10-18T11:00:00Z")
        older = StructuredSignal(type=SignalType.LEAD_ACTIVITY, perceived_at="2026-10-17T11:00:00Z")
        now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

        ordered = prioritize_signals([older, newer], now=now)
        assert [s.id for s in ordered] == [newer.id, older.id]
