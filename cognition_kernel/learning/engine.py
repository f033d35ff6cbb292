"""
Learning Engine — outcome analysis, policy updates and bias correction.

Pattern discovery, bias detection and objective calibration run
automatically over recorded outcomes and produce LearningEvents.

Policy changes are never applied automatically. generate_policy_update()
only proposes; a human approves or rejects.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from cognition_kernel.models.decision import DecisionRecord, Reversibility, RiskLevel
from cognition_kernel.models.learning import (
    AgentObjective,
    BiasCorrection,
    BiasFinding,
    LearningEvent,
    LearningType,
    PolicyUpdate,
    ValidationResult,
)

MIN_PATTERN_SAMPLE = 3
MIN_BIAS_SAMPLE = 10
POLICY_CONFIDENCE_THRESHOLD = 0.7
MAX_POLICY_LENGTH = 10_000

_POLICY_PREFIXES = {
    LearningType.PATTERN_DISCOVERED: "APPLY",
    LearningType.BIAS_DETECTED: "CORRECT",
    LearningType.OBJECTIVE_CALIBRATED: "CALIBRATE",
}

_OPPOSING_DIRECTIVES: List[Tuple[str, str]] = [
    ("always", "never"),
    ("increase", "decrease"),
]


def discover_patterns(successful: List[DecisionRecord]) -> List[str]:
    """Recurring traits of successful decisions."""
    patterns: List[str] = []
    total = len(successful)
    if total < MIN_PATTERN_SAMPLE:
        return patterns

    action_counts: Dict[str, int] = {}
    for d in successful:
        words = d.selected_option.action.lower().split()
        key = words[0] if words else ""
        action_counts[key] = action_counts.get(key, 0) + 1

    for action, count in action_counts.items():
        if count >= total * 0.5:
            patterns.append(
                f'Actions involving "{action}" have high success rate '
                f"({count / total * 100:.0f}%)"
            )

    low_risk = sum(
        1 for d in successful
        if d.context.risk_assessment.overall_risk == RiskLevel.LOW
    )
    if low_risk > total * 0.7:
        patterns.append("Low-risk decisions significantly outperform higher-risk alternatives")

    reversible = sum(
        1 for d in successful
        if d.selected_option.reversibility == Reversibility.FULL
    )
    if reversible > total * 0.6:
        patterns.append("Fully reversible actions show higher success rates")

    return patterns


def pattern_confidence(decisions: List[DecisionRecord]) -> float:
    """Mean of sample-size, success-rate and low-regret confidence."""
    n = len(decisions)
    if n == 0:
        return 0.0
    size_confidence = min(1.0, n / 50)
    success_rate = sum(1 for d in decisions if d.outcome and d.outcome.success) / n
    avg_regret = sum(d.outcome.regret for d in decisions if d.outcome) / n
    regret_confidence = 1 - min(1.0, avg_regret)
    return (size_confidence + success_rate + regret_confidence) / 3


def detect_biases(decisions: List[DecisionRecord]) -> List[BiasFinding]:
    biases: List[BiasFinding] = []
    total = len(decisions)
    if total < MIN_BIAS_SAMPLE:
        return biases

    overconfident = [
        d for d in decisions
        if d.outcome and d.selected_option.probability > 0.8 and not d.outcome.success
    ]
    if len(overconfident) > total * 0.2:
        biases.append(BiasFinding(
            type="overconfidence",
            description="High-probability predictions failing more than expected",
            confidence=len(overconfident) / total,
        ))

    risky = [
        d for d in decisions
        if d.context.risk_assessment.overall_risk in (RiskLevel.HIGH, RiskLevel.CRITICAL)
    ]
    if len(risky) < total * 0.1:
        biases.append(BiasFinding(
            type="loss_aversion",
            description="System may be too conservative - very few high-risk decisions taken",
            confidence=0.6,
        ))

    first_chosen = [
        d for d in decisions
        if d.context.options and d.context.options[0].id == d.selected_option.id
    ]
    if len(first_chosen) > total * 0.9:
        biases.append(BiasFinding(
            type="anchoring",
            description="First presented option chosen too frequently",
            confidence=len(first_chosen) / total,
        ))

    return biases


def calibrate_objectives(failed: List[DecisionRecord]) -> List[str]:
    """Flag optimistic probability and upside estimates among failures."""
    calibrations: List[str] = []
    if not failed:
        return calibrations

    n = len(failed)
    avg_probability = sum(d.selected_option.probability for d in failed) / n
    if avg_probability > 0.7:
        calibrations.append(
            f"Probability estimates appear optimistic (avg {avg_probability * 100:.0f}% "
            f"for failed decisions). Consider calibrating down by 15-20%."
        )

    avg_upside = sum(d.selected_option.upside for d in failed) / n
    avg_actual = sum(d.outcome.actual_value for d in failed if d.outcome) / n
    if avg_upside > avg_actual * 1.5:
        if avg_actual > 0:
            calibrations.append(
                f"Upside estimates significantly exceed actual outcomes. Apply "
                f"{(avg_upside / avg_actual - 1) * 100:.0f}% discount to future estimates."
            )
        else:
            calibrations.append(
                "Upside estimates significantly exceed actual outcomes. "
                "No realized value recorded for failed decisions."
            )

    return calibrations


def has_contradictions(policy: str) -> bool:
    """Opposing directives on two lines that share a significant word."""
    lines = policy.lower().split("\n")
    for i, first in enumerate(lines):
        for second in lines[i + 1:]:
            for positive, negative in _OPPOSING_DIRECTIVES:
                if positive in first and negative in second:
                    if any(w in second for w in first.split() if len(w) > 3):
                        return True
    return False


def validate_policy(policy: str) -> List[ValidationResult]:
    return [
        ValidationResult(
            test_case="no_contradictions",
            passed=not has_contradictions(policy),
            notes="Policy should not contain conflicting rules",
        ),
        ValidationResult(
            test_case="has_constraints",
            passed="CONSTRAINT" in policy or "APPLY" in policy,
            notes="Policy should have actionable constraints",
        ),
        ValidationResult(
            test_case="reasonable_length",
            passed=len(policy) < MAX_POLICY_LENGTH,
            notes="Policy should not exceed reasonable length",
        ),
    ]


def apply_bias_correction(
    objective: AgentObjective, correction: BiasCorrection
) -> AgentObjective:
    """Return a copy of the objective with its constraints adjusted for a bias."""
    constraints = list(objective.constraints)

    if correction.bias_type == "overconfidence":
        constraints.append("Reduce probability estimates by 15% for high-confidence predictions")
    elif correction.bias_type == "loss_aversion":
        constraints = [
            c for c in constraints
            if "avoid risk" not in c and "minimize downside" not in c
        ]
    elif correction.bias_type == "anchoring":
        constraints.append("Must evaluate at least 3 options before deciding")

    return objective.model_copy(update={"constraints": constraints})


def calculate_regret(actual_outcome: float, counterfactual_outcomes: Dict[str, float]) -> float:
    """Best alternative outcome (floored at 0) minus the actual outcome, floored at 0."""
    best_alternative = max(list(counterfactual_outcomes.values()) + [0.0])
    return max(0.0, best_alternative - actual_outcome)


def _new_event(
    event_type: LearningType,
    insight: str,
    confidence: float,
    applicability: str,
    source: Optional[DecisionRecord],
) -> LearningEvent:
    return LearningEvent(
        id=f"learn_{uuid4().hex[:12]}",
        type=event_type,
        source_decision_id=source.id if source else None,
        insight=insight,
        confidence=max(0.0, min(1.0, confidence)),
        applicability=applicability,
        created_at=datetime.utcnow(),
    )


class LearningEngine:
    """
    Keeps learning events and proposed policy updates.
    Policy updates stay pending until a human reviews them.
    """

    def __init__(self):
        # One event per (type, insight); re-analysis refreshes its confidence
        self._events: Dict[Tuple[LearningType, str], LearningEvent] = {}
        self._policy_updates: Dict[str, PolicyUpdate] = {}

    # --- Outcome analysis (automatic) ---

    def analyze_outcomes(self, decisions: List[DecisionRecord]) -> List[LearningEvent]:
        """
        Run pattern, bias and calibration analysis over `decisions`.

        Re-analyzing an overlapping window never duplicates an insight. A known
        insight keeps its id and takes the latest confidence. Returns the events
        that are new or whose confidence changed.
        """
        events: List[LearningEvent] = []
        successful = [d for d in decisions if d.outcome and d.outcome.success]
        failed = [d for d in decisions if d.outcome and not d.outcome.success]

        patterns = discover_patterns(successful)
        if patterns:
            confidence = pattern_confidence(successful)
            for pattern in patterns:
                events.append(_new_event(
                    LearningType.PATTERN_DISCOVERED, pattern, confidence,
                    "general", successful[0],
                ))

        for bias in detect_biases(decisions):
            events.append(_new_event(
                LearningType.BIAS_DETECTED,
                f"Bias detected: {bias.type} - {bias.description}",
                bias.confidence,
                "universal",
                decisions[0],
            ))

        for calibration in calibrate_objectives(failed):
            events.append(_new_event(
                LearningType.OBJECTIVE_CALIBRATED, calibration, 0.7,
                "specific", failed[0],
            ))

        changed: List[LearningEvent] = []
        for event in events:
            key = (event.type, event.insight)
            existing = self._events.get(key)
            if existing is not None:
                if existing.confidence == event.confidence:
                    continue
                event = event.model_copy(update={"id": existing.id})
            self._events[key] = event
            changed.append(event)
        return changed

    def get_events(self) -> List[LearningEvent]:
        """All distinct learning events, oldest insight first."""
        return list(self._events.values())

    # --- Policy updates (human-approved only) ---

    def generate_policy_update(
        self,
        agent_id: str,
        events: List[LearningEvent],
        current_policy: str,
    ) -> Optional[PolicyUpdate]:
        """Propose a policy built from high-confidence events. Never auto-applies."""
        high_confidence = [e for e in events if e.confidence > POLICY_CONFIDENCE_THRESHOLD]
        updates = [
            f"{_POLICY_PREFIXES[e.type]}: {e.insight}"
            for e in high_confidence
            if e.type in _POLICY_PREFIXES
        ]
        if not updates:
            return None

        new_policy = (
            f"{current_policy}\n\n## Learned Adjustments ({datetime.utcnow().isoformat()})\n"
            + "\n".join(f"- {u}" for u in updates)
        )
        update = PolicyUpdate(
            id=f"pupd_{uuid4().hex[:12]}",
            agent_id=agent_id,
            previous_policy=current_policy,
            new_policy=new_policy,
            trigger_event_id=high_confidence[0].id,
            validation_results=validate_policy(new_policy),
        )
        self._policy_updates[update.id] = update
        return update

    def get_pending_updates(self) -> List[PolicyUpdate]:
        """Policy updates awaiting human review."""
        return [
            u for u in self._policy_updates.values()
            if u.status == "pending_review"
        ]

    def get_update(self, update_id: str) -> Optional[PolicyUpdate]:
        """Get a policy update by id."""
        return self._policy_updates.get(update_id)

    def _review(self, update_id: str, reviewer: str, status: str) -> Optional[PolicyUpdate]:
        update = self._policy_updates.get(update_id)
        if update is None or update.status != "pending_review":
            return None
        reviewed = update.model_copy(update={
            "status": status,
            "reviewed_by": reviewer,
            "reviewed_at": datetime.utcnow(),
        })
        self._policy_updates[update_id] = reviewed
        return reviewed

    def approve_update(self, update_id: str, reviewer: str) -> Optional[PolicyUpdate]:
        """Human approves a pending policy update."""
        return self._review(update_id, reviewer, "approved")

    def reject_update(self, update_id: str, reviewer: str) -> Optional[PolicyUpdate]:
        """Human rejects a pending policy update."""
        return self._review(update_id, reviewer, "rejected")
