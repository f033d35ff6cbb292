"""Tests for the Decision Engine."""

from datetime import datetime

import pytest

from cognition_kernel.decision.engine import (
    DecisionEngine,
    adjusted_expected_value,
    analyze_opportunity_cost,
    assess_risk,
    build_decision_context,
    rank_options,
    record_outcome,
)
from cognition_kernel.models.decision import (
    AutonomyLevel,
    DecisionContext,
    DecisionOption,
    OpportunityCostAnalysis,
    Reversibility,
    RiskAssessment,
    RiskLevel,
)
from cognition_kernel.models.reasoning import (
    ConditionOperator,
    Constraint,
    ConstraintPredicate,
    ConstraintType,
    InferenceChain,
    InferenceStatus,
    PolicyActivation,
)


def _make_option(
    option_id: str,
    action: str = "Do something",
    upside: float = 0.2,
    downside: float = 0.05,
    probability: float = 0.9,
    reversibility: Reversibility = Reversibility.FULL,
) -> DecisionOption:
    return DecisionOption(
        id=option_id,
        action=action,
        expected_outcome=f"{action} works",
        probability=probability,
        upside=upside,
        downside=downside,
        reversibility=reversibility,
        time_to_result=48,
    )


def _make_inference() -> InferenceChain:
    return InferenceChain(
        question="what should we do?",
        steps=[],
        conclusion="Moderate confidence analysis complete.",
        confidence=0.7,
        status=InferenceStatus.REVIEW,
    )


def _pricing_options():
    return [
        _make_option("raise", "Raise prices", upside=0.5, downside=0.1,
                     probability=0.7, reversibility=Reversibility.PARTIAL),
        _make_option("cut", "Cut costs", upside=0.2, downside=0.05,
                     probability=0.9, reversibility=Reversibility.FULL),
    ]


def _decide(options, constraints=None, max_autonomy=3):
    context = build_decision_context(_make_inference(), options, constraints or [])
    return DecisionEngine().decide(context, "agent_1", "org_1", max_autonomy=max_autonomy)


class TestRanking:
    def test_adjusted_expected_value(self):
        raise_prices, cut_costs = _pricing_options()
        assert adjusted_expected_value(raise_prices) == pytest.approx(0.32)
        assert adjusted_expected_value(cut_costs) == pytest.approx(0.21)

    def test_ranked_best_first(self):
        ranked = rank_options(list(reversed(_pricing_options())))
        assert [o.id for o in ranked] == ["raise", "cut"]

    def test_tie_broken_by_probability(self):
        likely = _make_option("likely", upside=0.25, downside=0.0, probability=1.0)
        risky = _make_option("risky", upside=0.5, downside=0.0, probability=0.5)
        assert adjusted_expected_value(likely) == adjusted_expected_value(risky)
        assert [o.id for o in rank_options([risky, likely])] == ["likely", "risky"]

    def test_tie_broken_by_id(self):
        a = _make_option("a")
        b = _make_option("b")
        assert [o.id for o in rank_options([b, a])] == ["a", "b"]
        assert [o.id for o in rank_options([a, b])] == ["a", "b"]


class TestDecide:
    def test_selects_best_option(self):
        decision = _decide(_pricing_options())

        assert decision.selected_option.id == "raise"
        assert decision.required_autonomy == AutonomyLevel.EXECUTE_AND_REVIEW
        assert decision.autonomy_level == AutonomyLevel.EXECUTE_AND_REVIEW
        assert decision.escalated is False
        assert decision.id.startswith("dec_")
        assert 'Selected action: "Raise prices"' in decision.reasoning

    def test_all_options_excluded_escalates(self):
        options = [
            _make_option("o1", downside=0.4),
            _make_option("o2", downside=0.5),
        ]
        runway = Constraint(type=ConstraintType.HARD, rule="Protect runway at all costs")
        decision = _decide(options, [runway])

        assert decision.escalated is True
        assert decision.selected_option.id == "escalate"
        assert decision.selected_option.action == "Escalate to human decision maker"
        assert decision.selected_option.time_to_result == 24
        assert decision.autonomy_level == AutonomyLevel.ADVISORY
        assert decision.required_autonomy == AutonomyLevel.ADVISORY
        assert {e.option_id for e in decision.context.excluded_options} == {"o1", "o2"}

    def test_hand_built_context_is_still_filtered(self):
        runway = Constraint(type=ConstraintType.HARD, rule="Protect runway")
        context = DecisionContext(
            inference=_make_inference(),
            options=[_make_option("o1", downside=0.9)],
            constraints=[runway],
            risk_assessment=RiskAssessment(overall_risk=RiskLevel.LOW),
            opportunity_cost=OpportunityCostAnalysis(recommendation="Only one option available"),
        )
        decision = DecisionEngine().decide(context, "agent_1", "org_1")

        assert decision.escalated is True
        assert decision.selected_option.id == "escalate"

    def test_scheduled_constraint_uses_decision_time(self):
        weekday_mornings = Constraint(
            type=ConstraintType.HARD,
            rule="Protect runway",
            activation=PolicyActivation(always=False, schedule="0 9 * * 1-5"),
        )
        options = [_make_option("o1", downside=0.9)]
        context = build_decision_context(_make_inference(), options, [weekday_mornings])
        engine = DecisionEngine()

        monday = engine.decide(
            context, "agent_1", "org_1", current_time=datetime(2026, 10, 19, 9, 0)
        )
        sunday = engine.decide(
            context, "agent_1", "org_1", current_time=datetime(2026, 10, 18, 9, 0)
        )
        assert monday.escalated is True
        assert sunday.selected_option.id == "o1"

    def test_excluded_option_is_skipped(self):
        options = [
            _make_option("big", upside=0.9, downside=0.4),
            _make_option("small", upside=0.2, downside=0.1),
        ]
        runway = Constraint(type=ConstraintType.HARD, rule="Maintain minimum runway")
        decision = _decide(options, [runway])
        assert decision.selected_option.id == "small"
        assert decision.context.excluded_options[0].violated_constraints == [runway.id]

    def test_reputation_rule_excludes_irreversible(self):
        options = [
            _make_option("burn", upside=0.9, reversibility=Reversibility.NONE),
            _make_option("safe"),
        ]
        reputation = Constraint(type=ConstraintType.HARD, rule="Never damage reputation")
        assert _decide(options, [reputation]).selected_option.id == "safe"

    def test_structured_predicate_wins_over_rule_text(self):
        options = [
            _make_option("irreversible", upside=0.9, reversibility=Reversibility.NONE),
            _make_option("reversible"),
        ]
        constraint = Constraint(
            type=ConstraintType.HARD,
            rule="Protect runway",
            violated_when=ConstraintPredicate(
                field="reversibility", operator=ConditionOperator.EQUALS, value="none"
            ),
        )
        decision = _decide(options, [constraint])
        assert decision.selected_option.id == "reversible"

    def test_soft_constraints_never_veto(self):
        options = [_make_option("o1", downside=0.9)]
        soft = Constraint(type=ConstraintType.SOFT, rule="Protect runway")
        assert _decide(options, [soft]).selected_option.id == "o1"

    def test_irreversible_requires_approval(self):
        decision = _decide([_make_option("o1", reversibility=Reversibility.NONE)])
        assert decision.required_autonomy == AutonomyLevel.APPROVAL_REQUIRED

    def test_full_and_low_risk_is_autonomous(self):
        decision = _decide([_make_option("o1")])
        assert decision.required_autonomy == AutonomyLevel.AUTONOMOUS

    @pytest.mark.parametrize("ceiling,expected", [
        (-2, AutonomyLevel.ADVISORY),
        (0, AutonomyLevel.ADVISORY),
        (1, AutonomyLevel.APPROVAL_REQUIRED),
        (2, AutonomyLevel.EXECUTE_AND_REVIEW),
        (3, AutonomyLevel.EXECUTE_AND_REVIEW),
        (9, AutonomyLevel.EXECUTE_AND_REVIEW),
    ])
    def test_ceiling_is_authoritative(self, ceiling, expected):
        decision = _decide(_pricing_options(), max_autonomy=ceiling)
        assert decision.autonomy_level == expected
        assert decision.autonomy_level <= decision.required_autonomy <= AutonomyLevel.AUTONOMOUS
        assert decision.autonomy_level <= max(ceiling, 0)


class TestRiskAssessment:
    def test_no_options_is_low(self):
        risk = assess_risk([], [])
        assert risk.overall_risk == RiskLevel.LOW
        assert risk.factors == []

    def test_factors_per_option(self):
        risk = assess_risk(_pricing_options(), [])
        assert len(risk.factors) == 4
        assert risk.overall_risk == RiskLevel.LOW

    def test_mitigation_for_irreversible_option(self):
        risk = assess_risk([_make_option("o1", reversibility=Reversibility.NONE)], [])
        assert [m.strategy for m in risk.mitigations] == [
            "Document decision rationale for potential reversal"
        ]

    def test_mitigation_for_downside(self):
        option = _make_option(
            "o1", downside=0.9, probability=0.1, reversibility=Reversibility.NONE
        )
        risk = assess_risk([option], [])
        assert "Set stop-loss threshold and monitor closely" in [m.strategy for m in risk.mitigations]
        assert risk.overall_risk == RiskLevel.HIGH

    def test_kill_triggers_per_hard_constraint(self):
        constraints = [
            Constraint(type=ConstraintType.HARD, rule="Protect runway"),
            Constraint(type=ConstraintType.SOFT, rule="Prefer email"),
        ]
        risk = assess_risk(_pricing_options(), constraints)
        assert len(risk.kill_triggers) == 1
        assert risk.kill_triggers[0].threshold == 0.9
        assert risk.kill_triggers[0].action == "stop"


class TestOpportunityCost:
    def test_single_option(self):
        analysis = analyze_opportunity_cost([_make_option("o1")])
        assert analysis.foregone_value == 0.0
        assert analysis.confidence == 1.0
        assert analysis.alternatives_considered == []

    def test_clear_winner(self):
        analysis = analyze_opportunity_cost(_pricing_options())
        assert analysis.foregone_value == 0.0
        assert analysis.confidence == 0.9
        assert analysis.alternatives_considered == ["Cut costs"]
        assert analysis.recommendation.startswith("Clear best option")

    def test_close_options(self):
        options = [_make_option("a"), _make_option("b"), _make_option("c")]
        analysis = analyze_opportunity_cost(options)
        assert analysis.confidence == 0.8
        assert analysis.recommendation.startswith("Options are close")


class TestRecordOutcome:
    def test_regret_and_learnings(self):
        decision = _decide(_pricing_options())
        updated = record_outcome(decision, success=False, actual_value=0.1)

        assert decision.outcome is None
        assert updated.id == decision.id
        assert updated.outcome.expected_value == pytest.approx(0.35)
        assert updated.outcome.regret == pytest.approx(0.25)
        assert updated.outcome.learnings == [
            'Action "Raise prices" did not achieve expected outcome',
            "Risk assessment may have been optimistic",
        ]

    def test_large_variance_is_flagged(self):
        decision = _decide(_pricing_options())
        updated = record_outcome(decision, success=True, actual_value=0.9)
        assert updated.outcome.regret == 0.0
        assert any("Significant variance" in l for l in updated.outcome.learnings)
