"""Reasoning models — constraints, objectives and the inference chain."""

from enum import Enum
from typing import Any, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from cognition_kernel.models.signals import StructuredSignal
from cognition_kernel.models.world import WorldModelSnapshot


class ConstraintType(str, Enum):
    HARD = "hard"   # Never violate. Options that break it are excluded.
    SOFT = "soft"   # Prefer to satisfy.


class ConstraintSource(str, Enum):
    NORTH_STAR = "north_star"
    REGULATORY = "regulatory"
    USER = "user"
    LEARNED = "learned"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    IN = "in"
    NOT_IN = "not_in"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class ConstraintPredicate(BaseModel):
    """Structured condition over a DecisionOption field, e.g. downside > 0.3."""

    field: str
    operator: ConditionOperator
    value: Any


class PolicyActivation(BaseModel):
    """Temporal authority: when this constraint is active."""

    always: bool = True
    schedule: Optional[str] = None          # Cron expression


class Constraint(BaseModel):
    """A governance rule attached to a reasoning or decision context."""

    id: str = Field(default_factory=lambda: f"con_{uuid4().hex}")
    type: ConstraintType
    source: ConstraintSource = ConstraintSource.USER
    rule: str                               # Human-readable rule
    priority: int = 0
    violated_when: Optional[ConstraintPredicate] = None
    activation: PolicyActivation = PolicyActivation()


class TimeHorizon(str, Enum):
    IMMEDIATE = "immediate"
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class Objective(BaseModel):
    id: str = Field(default_factory=lambda: f"obj_{uuid4().hex}")
    metric: str                             # e.g. "monthly_revenue", "runway_months"
    target: float
    weight: float = 1.0
    time_horizon: TimeHorizon = TimeHorizon.MEDIUM


class InferenceStep(BaseModel):
    premise: str
    reasoning: str
    evidence: List[str] = []
    confidence: float = Field(ge=0.0, le=1.0)


class InferenceStatus(str, Enum):
    PROCEED = "proceed"     # High confidence, no violations
    REVIEW = "review"       # Moderate confidence, human review recommended
    BLOCKED = "blocked"     # A hard constraint is violated by the world state


class InferenceChain(BaseModel):
    """Traceable, confidence-scored result of one reasoning pass."""

    id: str = Field(default_factory=lambda: f"inf_{uuid4().hex}")
    question: str = ""
    steps: List[InferenceStep]
    conclusion: str
    confidence: float
    alternative_conclusions: List[str] = []
    violations: List[str] = []
    status: InferenceStatus = InferenceStatus.REVIEW


class ReasoningContext(BaseModel):
    signals: List[StructuredSignal] = []
    world_state: WorldModelSnapshot
    constraints: List[Constraint] = []
    objectives: List[Objective] = []
