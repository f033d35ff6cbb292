"""Tests for core data models."""

from datetime import datetime

import pytest

from cognition_kernel.models import (
    AUTONOMY_LEVELS,
    ActionPlan,
    ActionStep,
    ActionType,
    AutonomyLevel,
    CapitalState,
    CausalRelationship,
    Constraint,
    ConstraintType,
    DecisionOption,
    FailurePolicy,
    InferenceStep,
    Reversibility,
    StateDomain,
    StructuredSignal,
    SignalType,
    VerificationCheck,
    WorldModelSnapshot,
)


class TestWorldModelSnapshot:
    def test_defaults(self):
        snapshot = WorldModelSnapshot(organization_id="org_1")
        assert snapshot.id.startswith("snap_")
        assert snapshot.capital_state.runway_months == 12.0
        assert snapshot.capital_state.reserve_ratio == 0.2
        assert snapshot.risk_state.overall_risk == 0.3
        assert snapshot.market_state.pricing_pressure == 0.5
        assert snapshot.founder_state.energy_level == 0.7
        assert snapshot.causal_relationships == []

    def test_snapshot_is_immutable(self):
        snapshot = WorldModelSnapshot(organization_id="org_1")
        with pytest.raises(Exception):
            snapshot.organization_id = "org_2"
        with pytest.raises(Exception):
            snapshot.capital_state.runway_months = 1.0

    def test_ids_are_unique(self):
        ids = {WorldModelSnapshot(organization_id="org_1").id for _ in range(50)}
        assert len(ids) == 50

    def test_domain_field_names(self):
        assert StateDomain.CAPITAL.field_name == "capital_state"
        assert StateDomain("risk").field_name == "risk_state"

    def test_causal_confidence_bounds(self):
        with pytest.raises(Exception):
            CausalRelationship(cause="a", effect="b", strength=1.0, confidence=1.5)

    def test_json_round_trip_keeps_domains(self):
        snapshot = WorldModelSnapshot(
            organization_id="org_1",
            capital_state=CapitalState(runway_months=4),
        )
        restored = WorldModelSnapshot.model_validate_json(snapshot.model_dump_json())
        assert restored == snapshot


class TestDecisionOption:
    def test_probability_bounds(self):
        with pytest.raises(Exception):
            DecisionOption(
                id="o1", action="x", probability=1.2,
                upside=0.1, downside=0.1, reversibility=Reversibility.FULL,
            )

    def test_reversibility_from_string(self):
        option = DecisionOption(
            id="o1", action="x", probability=0.5,
            upside=0.1, downside=0.1, reversibility="partial",
        )
        assert option.reversibility == Reversibility.PARTIAL
        assert option.intents is None


class TestAutonomyLevels:
    def test_levels_are_ordered(self):
        assert AutonomyLevel.ADVISORY < AutonomyLevel.APPROVAL_REQUIRED
        assert AutonomyLevel.EXECUTE_AND_REVIEW < AutonomyLevel.AUTONOMOUS
        assert int(AutonomyLevel.AUTONOMOUS) == 3

    def test_table(self):
        assert AUTONOMY_LEVELS[AutonomyLevel.ADVISORY]["requires_approval"] is True
        assert AUTONOMY_LEVELS[AutonomyLevel.APPROVAL_REQUIRED]["name"] == "Approval Required"
        assert AUTONOMY_LEVELS[AutonomyLevel.EXECUTE_AND_REVIEW]["requires_approval"] is False
        assert AUTONOMY_LEVELS[AutonomyLevel.EXECUTE_AND_REVIEW]["requires_review"] is True
        assert AUTONOMY_LEVELS[AutonomyLevel.AUTONOMOUS]["name"] == "Autonomous (Bounded)"


class TestReasoningModels:
    def test_constraint_defaults_to_always_active(self):
        constraint = Constraint(type=ConstraintType.HARD, rule="Keep runway")
        assert constraint.id.startswith("con_")
        assert constraint.activation.always is True
        assert constraint.violated_when is None

    def test_inference_step_confidence_bounds(self):
        with pytest.raises(Exception):
            InferenceStep(premise="p", reasoning="r", confidence=-0.1)

    def test_signal_defaults(self):
        signal = StructuredSignal(type=SignalType.RISK_INDICATOR, value="high churn")
        assert signal.id.startswith("sig_")
        assert signal.confidence == 1.0
        assert isinstance(signal.perceived_at, datetime)


class TestActionModels:
    def test_plan_and_step_ids(self):
        step = ActionStep(order=1, type=ActionType.EMAIL, tool="email_sender")
        plan = ActionPlan(decision_id="dec_1", steps=[step], timeout_ms=40_000)
        assert step.id.startswith("step_")
        assert plan.id.startswith("plan_")
        assert plan.rollback_plan == []

    def test_verification_default_policy(self):
        check = VerificationCheck(after_step="step_1", condition="step_1_completed")
        assert check.on_failure == FailurePolicy.CONTINUE
        assert check.expected_value is True
