"""Decision models — options, risk, opportunity cost and the decision record."""

from datetime import datetime
from enum import Enum, IntEnum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from cognition_kernel.models.action import ActionIntent
from cognition_kernel.models.reasoning import Constraint, InferenceChain


class Reversibility(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"


class AutonomyLevel(IntEnum):
    """How much of a decision may execute without a human (0-3)."""
    ADVISORY = 0            # Suggest only, never act
    APPROVAL_REQUIRED = 1   # Propose and wait for human approval
    EXECUTE_AND_REVIEW = 2  # Act immediately, flag for review
    AUTONOMOUS = 3          # Act within defined constraints


AUTONOMY_LEVELS = {
    AutonomyLevel.ADVISORY: {
        "name": "Advisory",
        "description": "Suggest only, never act",
        "requires_approval": True,
        "requires_review": False,
    },
    AutonomyLevel.APPROVAL_REQUIRED: {
        "name": "Approval Required",
        "description": "Propose + wait for human approval",
        "requires_approval": True,
        "requires_review": True,
    },
    AutonomyLevel.EXECUTE_AND_REVIEW: {
        "name": "Execute + Review",
        "description": "Act immediately, flag for review",
        "requires_approval": False,
        "requires_review": True,
    },
    AutonomyLevel.AUTONOMOUS: {
        "name": "Autonomous (Bounded)",
        "description": "Act within defined constraints",
        "requires_approval": False,
        "requires_review": False,
    },
}


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class DecisionOption(BaseModel):
    """A candidate action supplied by an external option generator."""

    id: str
    action: str
    expected_outcome: str = ""
    probability: float = Field(ge=0.0, le=1.0)
    upside: float
    downside: float
    reversibility: Reversibility
    time_to_result: float = 0.0             # Hours
    intents: Optional[List[ActionIntent]] = None  # Pre-classified upstream


class RiskFactor(BaseModel):
    type: str                               # "downside_exposure" | "irreversibility"
    option_id: str
    likelihood: float
    impact: float
    description: str


class Mitigation(BaseModel):
    risk_factor_type: str
    option_id: str
    strategy: str
    cost: float = 0.1
    effectiveness: float = 0.7


class KillTrigger(BaseModel):
    constraint_id: str
    condition: str
    threshold: float = 0.9
    action: str = "stop"                    # "pause" | "stop" | "revert" | "escalate"


class RiskAssessment(BaseModel):
    overall_risk: RiskLevel
    factors: List[RiskFactor] = []
    mitigations: List[Mitigation] = []
    kill_triggers: List[KillTrigger] = []


class OpportunityCostAnalysis(BaseModel):
    alternatives_considered: List[str] = []
    foregone_value: float = 0.0
    confidence: float = 1.0
    recommendation: str


class ExcludedOption(BaseModel):
    option_id: str
    violated_constraints: List[str]


class DecisionContext(BaseModel):
    inference: InferenceChain
    options: List[DecisionOption]           # Ranked, best first
    constraints: List[Constraint] = []
    risk_assessment: RiskAssessment
    opportunity_cost: OpportunityCostAnalysis
    excluded_options: List[ExcludedOption] = []


class DecisionOutcome(BaseModel):
    success: bool
    actual_value: float
    expected_value: float
    regret: float                           # Counterfactual loss
    learnings: List[str] = []
    recorded_at: datetime


class DecisionRecord(BaseModel):
    """A committed decision, bounded by its granted autonomy level."""

    id: str = Field(default_factory=lambda: f"dec_{uuid4().hex}")
    agent_id: str
    organization_id: str
    context: DecisionContext
    selected_option: DecisionOption
    autonomy_level: AutonomyLevel           # Granted
    required_autonomy: AutonomyLevel
    escalated: bool = False
    reasoning: str
    created_at: datetime
    executed_at: Optional[datetime] = None
    outcome: Optional[DecisionOutcome] = None
