"""
Decision Engine — tradeoffs, prioritization and kill rules.

Converts an inference chain plus a candidate option set into a single
committed DecisionRecord bounded by an autonomy ceiling.

Behavioral Contract:
- Never selects an option that violates an active hard constraint. When no
  option survives, a canonical escalation option is selected at autonomy 0.
- Granted autonomy = min(required autonomy, caller ceiling). The ceiling is
  always authoritative.
- Never raises on well-formed input; degraded states become data.
"""

import logging
from datetime import datetime
from typing import List, Optional

from cognition_kernel.constraints.policy import active_hard_constraints, option_violations
from cognition_kernel.models.decision import (
    AutonomyLevel,
    DecisionContext,
    DecisionOption,
    DecisionOutcome,
    DecisionRecord,
    ExcludedOption,
    KillTrigger,
    Mitigation,
    OpportunityCostAnalysis,
    Reversibility,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
)
from cognition_kernel.models.reasoning import Constraint, InferenceChain

logger = logging.getLogger(__name__)

REVERSIBILITY_MULTIPLIER = {
    Reversibility.FULL: 1.2,
    Reversibility.PARTIAL: 1.0,
    Reversibility.NONE: 0.8,
}

IRREVERSIBILITY_LIKELIHOOD = {
    Reversibility.NONE: 0.8,
    Reversibility.PARTIAL: 0.4,
    Reversibility.FULL: 0.1,
}

IRREVERSIBILITY_IMPACT = 0.7
MITIGATION_THRESHOLD = 0.3
KILL_TRIGGER_THRESHOLD = 0.9
CLEAR_WINNER_MARGIN = 1.2
VARIANCE_THRESHOLD = 0.3

ESCALATION_OPTION_ID = "escalate"


def expected_value(option: DecisionOption) -> float:
    """upside x p - downside x (1 - p)."""
    p = option.probability
    return option.upside * p - option.downside * (1 - p)


def adjusted_expected_value(option: DecisionOption) -> float:
    """Expected value scaled by how reversible the option is."""
    return expected_value(option) * REVERSIBILITY_MULTIPLIER[option.reversibility]


def rank_options(options: List[DecisionOption]) -> List[DecisionOption]:
    """
    Rank by adjusted expected value, best first.

    Equal adjusted values fall back to higher probability, then to option id
    ascending, so the order never depends on input order.
    """
    return sorted(
        options,
        key=lambda o: (-adjusted_expected_value(o), -o.probability, o.id),
    )


def _bucket_risk(avg_risk: float) -> RiskLevel:
    if avg_risk < 0.3:
        return RiskLevel.LOW
    if avg_risk < 0.5:
        return RiskLevel.MEDIUM
    if avg_risk < 0.7:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def _mitigation_for(factor: RiskFactor) -> Mitigation:
    if factor.type == "downside_exposure":
        strategy = "Set stop-loss threshold and monitor closely"
    else:
        strategy = "Document decision rationale for potential reversal"
    return Mitigation(
        risk_factor_type=factor.type,
        option_id=factor.option_id,
        strategy=strategy,
    )


def assess_risk(
    options: List[DecisionOption],
    constraints: List[Constraint],
    current_time: Optional[datetime] = None,
) -> RiskAssessment:
    """Score downside exposure and irreversibility across all options."""
    factors: List[RiskFactor] = []
    for opt in options:
        factors.append(RiskFactor(
            type="downside_exposure",
            option_id=opt.id,
            likelihood=1 - opt.probability,
            impact=opt.downside,
            description=(
                f'Option "{opt.action}" has {(1 - opt.probability) * 100:.0f}% '
                f"chance of {opt.downside:g} downside"
            ),
        ))
        factors.append(RiskFactor(
            type="irreversibility",
            option_id=opt.id,
            likelihood=IRREVERSIBILITY_LIKELIHOOD[opt.reversibility],
            impact=IRREVERSIBILITY_IMPACT,
            description=f'Option "{opt.action}" is {opt.reversibility.value} reversible',
        ))

    if factors:
        avg_risk = sum(f.likelihood * f.impact for f in factors) / len(factors)
    else:
        avg_risk = 0.0

    return RiskAssessment(
        overall_risk=_bucket_risk(avg_risk),
        factors=factors,
        mitigations=[
            _mitigation_for(f) for f in factors
            if f.likelihood * f.impact > MITIGATION_THRESHOLD
        ],
        kill_triggers=[
            KillTrigger(
                constraint_id=c.id,
                condition=c.rule,
                threshold=KILL_TRIGGER_THRESHOLD,
                action="stop",
            )
            for c in active_hard_constraints(constraints, current_time)
        ],
    )


def analyze_opportunity_cost(options: List[DecisionOption]) -> OpportunityCostAnalysis:
    """Value forgone by taking the top-ranked option over the runner-up."""
    if len(options) < 2:
        return OpportunityCostAnalysis(
            alternatives_considered=[],
            foregone_value=0.0,
            confidence=1.0,
            recommendation="Only one option available",
        )

    ranked = rank_options(options)
    best_ev = expected_value(ranked[0])
    second_ev = expected_value(ranked[1])

    return OpportunityCostAnalysis(
        alternatives_considered=[o.action for o in ranked[1:]],
        foregone_value=max(0.0, second_ev - best_ev),
        confidence=0.8 if len(ranked) > 2 else 0.9,
        recommendation=(
            "Clear best option - proceed with confidence"
            if best_ev > second_ev * CLEAR_WINNER_MARGIN
            else "Options are close - consider additional factors"
        ),
    )


def determine_required_autonomy(
    option: DecisionOption, risk: RiskAssessment
) -> AutonomyLevel:
    """High risk or irreversible needs approval; medium risk executes with review."""
    if risk.overall_risk == RiskLevel.CRITICAL or option.reversibility == Reversibility.NONE:
        return AutonomyLevel.APPROVAL_REQUIRED
    if risk.overall_risk == RiskLevel.HIGH or option.reversibility == Reversibility.PARTIAL:
        return AutonomyLevel.EXECUTE_AND_REVIEW
    return AutonomyLevel.AUTONOMOUS


def clamp_autonomy(level: int) -> AutonomyLevel:
    return AutonomyLevel(max(AutonomyLevel.ADVISORY, min(AutonomyLevel.AUTONOMOUS, int(level))))


def escalation_option() -> DecisionOption:
    return DecisionOption(
        id=ESCALATION_OPTION_ID,
        action="Escalate to human decision maker",
        expected_outcome="Human review and decision",
        probability=1.0,
        upside=0.0,
        downside=0.0,
        reversibility=Reversibility.FULL,
        time_to_result=24,
    )


def build_decision_context(
    inference: InferenceChain,
    options: List[DecisionOption],
    constraints: List[Constraint],
    current_time: Optional[datetime] = None,
) -> DecisionContext:
    """Rank options, assess risk and opportunity cost, and mark excluded options."""
    ranked = rank_options(options)
    excluded = []
    for opt in ranked:
        violated = option_violations(opt, constraints, current_time)
        if violated:
            excluded.append(ExcludedOption(option_id=opt.id, violated_constraints=violated))

    return DecisionContext(
        inference=inference,
        options=ranked,
        constraints=constraints,
        risk_assessment=assess_risk(options, constraints, current_time),
        opportunity_cost=analyze_opportunity_cost(options),
        excluded_options=excluded,
    )


def _generate_reasoning(context: DecisionContext, selected: DecisionOption) -> str:
    parts = [
        f'Selected action: "{selected.action}"',
        f"Expected outcome: {selected.expected_outcome}",
        f"Probability of success: {selected.probability * 100:.0f}%",
        f"Risk level: {context.risk_assessment.overall_risk.value}",
        f"Reversibility: {selected.reversibility.value}",
    ]
    if context.opportunity_cost.foregone_value > 0:
        parts.append(f"Opportunity cost: {context.opportunity_cost.foregone_value:.2f}")
    return "\n".join(parts)


class DecisionEngine:
    """Selects the best admissible option and gates its autonomy."""

    def decide(
        self,
        context: DecisionContext,
        agent_id: str,
        organization_id: str,
        max_autonomy: int = AutonomyLevel.AUTONOMOUS,
        current_time: Optional[datetime] = None,
    ) -> DecisionRecord:
        # excluded_options is only a trace; hard constraints are re-checked here
        valid_options = [
            o for o in context.options
            if not option_violations(o, context.constraints, current_time)
        ]

        if not valid_options:
            logger.info(
                "No admissible option, escalating",
                extra={"agent_id": agent_id, "organization_id": organization_id},
            )
            return DecisionRecord(
                agent_id=agent_id,
                organization_id=organization_id,
                context=context,
                selected_option=escalation_option(),
                autonomy_level=AutonomyLevel.ADVISORY,
                required_autonomy=AutonomyLevel.ADVISORY,
                escalated=True,
                reasoning="No valid options available within constraints. Human review required.",
                created_at=datetime.utcnow(),
            )

        selected = valid_options[0]
        required = determine_required_autonomy(selected, context.risk_assessment)
        granted = min(required, clamp_autonomy(max_autonomy))

        return DecisionRecord(
            agent_id=agent_id,
            organization_id=organization_id,
            context=context,
            selected_option=selected,
            autonomy_level=AutonomyLevel(granted),
            required_autonomy=required,
            reasoning=_generate_reasoning(context, selected),
            created_at=datetime.utcnow(),
        )


def _generate_learnings(
    decision: DecisionRecord, success: bool, actual_value: float, expected: float
) -> List[str]:
    action = decision.selected_option.action
    learnings: List[str] = []

    if success:
        learnings.append(f'Action "{action}" succeeded as expected')
    else:
        learnings.append(f'Action "{action}" did not achieve expected outcome')
        if decision.context.risk_assessment.overall_risk == RiskLevel.LOW:
            learnings.append("Risk assessment may have been optimistic")

    variance = abs(actual_value - expected)
    if variance > VARIANCE_THRESHOLD:
        learnings.append(
            f"Significant variance ({variance * 100:.0f}%) between expected and actual value"
        )

    return learnings


def record_outcome(
    decision: DecisionRecord,
    success: bool,
    actual_value: float,
) -> DecisionRecord:
    """Return a copy of `decision` carrying its observed outcome."""
    selected = decision.selected_option
    expected = selected.upside * selected.probability

    outcome = DecisionOutcome(
        success=success,
        actual_value=actual_value,
        expected_value=expected,
        regret=max(0.0, expected - actual_value),
        learnings=_generate_learnings(decision, success, actual_value, expected),
        recorded_at=datetime.utcnow(),
    )
    return decision.model_copy(update={"outcome": outcome})
