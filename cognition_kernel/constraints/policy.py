"""
Constraint Policy — shared evaluation of constraints for reasoning and decision.

Behavioral Contract:
- Only active constraints are evaluated (temporal authority via cron schedule)
- Hard constraints veto; soft constraints never do
- A structured `violated_when` predicate takes precedence over free-text rule
  patterns. Rule patterns are the fallback for constraints authored as prose.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from croniter import croniter

from cognition_kernel.models.decision import DecisionOption, Reversibility
from cognition_kernel.models.reasoning import (
    ConditionOperator,
    Constraint,
    ConstraintPredicate,
    ConstraintSource,
    ConstraintType,
    Objective,
    TimeHorizon,
)
from cognition_kernel.models.world import WorldModelSnapshot

SOURCE_ORDER = [
    ConstraintSource.NORTH_STAR,
    ConstraintSource.REGULATORY,
    ConstraintSource.USER,
    ConstraintSource.LEARNED,
]

HORIZON_ORDER = [
    TimeHorizon.IMMEDIATE,
    TimeHorizon.SHORT,
    TimeHorizon.MEDIUM,
    TimeHorizon.LONG,
]

MIN_RUNWAY_MONTHS = 6
MAX_OVERALL_RISK = 0.7
MAX_RUNWAY_SAFE_DOWNSIDE = 0.3


def is_constraint_active(constraint: Constraint, current_time: Optional[datetime] = None) -> bool:
    """Determine if a constraint is active based on temporal authority."""
    activation = constraint.activation
    if activation.always:
        return True
    if not activation.schedule:
        return False
    if current_time is None:
        current_time = datetime.utcnow()
    try:
        return bool(croniter.match(activation.schedule, current_time))
    except (ValueError, KeyError):
        # Invalid cron expression is inactive
        return False


def active_hard_constraints(
    constraints: List[Constraint],
    current_time: Optional[datetime] = None,
) -> List[Constraint]:
    return [
        c for c in constraints
        if c.type == ConstraintType.HARD and is_constraint_active(c, current_time)
    ]


def prioritize_constraints(constraints: List[Constraint]) -> List[Constraint]:
    """Hard before soft, then north_star > regulatory > user > learned."""
    return sorted(
        constraints,
        key=lambda c: (
            0 if c.type == ConstraintType.HARD else 1,
            SOURCE_ORDER.index(c.source),
        ),
    )


def prioritize_objectives(objectives: List[Objective]) -> List[Objective]:
    """Heavier weight first, then shorter horizon."""
    return sorted(
        objectives,
        key=lambda o: (-o.weight, HORIZON_ORDER.index(o.time_horizon)),
    )


# --- World state checks (reasoning) ---

def _runway_below_minimum(world: WorldModelSnapshot) -> Optional[str]:
    runway = world.capital_state.runway_months
    if runway < MIN_RUNWAY_MONTHS:
        return f"Runway below minimum: {runway:g} months"
    return None


def _risk_too_high(world: WorldModelSnapshot) -> Optional[str]:
    risk = world.risk_state.overall_risk
    if risk > MAX_OVERALL_RISK:
        return f"Risk level too high: {risk * 100:.0f}%"
    return None


# Keyword in the rule text -> world state check
STATE_RULE_CHECKS: Dict[str, Callable[[WorldModelSnapshot], Optional[str]]] = {
    "runway": _runway_below_minimum,
    "risk": _risk_too_high,
}


def world_state_violations(
    constraints: List[Constraint],
    world: WorldModelSnapshot,
    current_time: Optional[datetime] = None,
) -> List[str]:
    """Describe every active hard constraint the current world state breaks."""
    violations = []
    for constraint in active_hard_constraints(constraints, current_time):
        rule = constraint.rule.lower()
        for keyword, check in STATE_RULE_CHECKS.items():
            if keyword in rule:
                message = check(world)
                if message:
                    violations.append(message)
    return violations


# --- Option checks (decision) ---

def _threatens_runway(option: DecisionOption) -> bool:
    return option.downside > MAX_RUNWAY_SAFE_DOWNSIDE


def _risks_reputation(option: DecisionOption) -> bool:
    return option.reversibility == Reversibility.NONE


# Keyword in the rule text -> option check
OPTION_RULE_CHECKS: Dict[str, Callable[[DecisionOption], bool]] = {
    "runway": _threatens_runway,
    "reputation": _risks_reputation,
}


def _plain(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


def evaluate_predicate(predicate: ConstraintPredicate, subject: Dict[str, Any]) -> bool:
    """Evaluate a structured condition against a flat mapping of fields."""
    value = _plain(subject.get(predicate.field))
    expected = predicate.value

    try:
        if predicate.operator == ConditionOperator.EQUALS:
            return value == expected
        if predicate.operator == ConditionOperator.NOT_EQUALS:
            return value != expected
        if predicate.operator == ConditionOperator.IN:
            return isinstance(expected, list) and value in expected
        if predicate.operator == ConditionOperator.NOT_IN:
            return isinstance(expected, list) and value not in expected
        if predicate.operator == ConditionOperator.GREATER_THAN:
            return value is not None and value > expected
        if predicate.operator == ConditionOperator.LESS_THAN:
            return value is not None and value < expected
    except TypeError:
        # Incomparable types never match
        return False
    return False


def violates_constraint(option: DecisionOption, constraint: Constraint) -> bool:
    if constraint.violated_when is not None:
        return evaluate_predicate(constraint.violated_when, option.model_dump())
    rule = constraint.rule.lower()
    return any(
        check(option)
        for keyword, check in OPTION_RULE_CHECKS.items()
        if keyword in rule
    )


def option_violations(
    option: DecisionOption,
    constraints: List[Constraint],
    current_time: Optional[datetime] = None,
) -> List[str]:
    """Ids of the active hard constraints an option violates."""
    return [
        c.id for c in active_hard_constraints(constraints, current_time)
        if violates_constraint(option, c)
    ]
