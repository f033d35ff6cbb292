"""Learning models — learning events, policy updates and bias corrections."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class LearningType(str, Enum):
    PATTERN_DISCOVERED = "pattern_discovered"
    POLICY_UPDATE = "policy_update"
    HEURISTIC_REFINED = "heuristic_refined"
    BIAS_DETECTED = "bias_detected"
    CONSTRAINT_LEARNED = "constraint_learned"
    OBJECTIVE_CALIBRATED = "objective_calibrated"


class LearningEvent(BaseModel):
    """An insight extracted from recorded decision outcomes."""

    id: str
    type: LearningType
    source_decision_id: Optional[str] = None
    insight: str
    confidence: float = Field(ge=0.0, le=1.0)
    applicability: str = "specific"         # "specific" | "general" | "universal"
    created_at: datetime


class BiasFinding(BaseModel):
    type: str                               # "overconfidence" | "loss_aversion" | "anchoring"
    description: str
    confidence: float


class ValidationResult(BaseModel):
    test_case: str
    passed: bool
    notes: str


class PolicyUpdate(BaseModel):
    """Proposed change to an agent policy. Must be human-approved."""

    id: str
    agent_id: str
    previous_policy: str
    new_policy: str
    trigger_event_id: str
    validation_results: List[ValidationResult] = []
    status: str = "pending_review"          # "pending_review" | "approved" | "rejected"
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None


class BiasCorrection(BaseModel):
    id: str
    bias_type: str
    detected_in: str
    correction_applied: str
    effectiveness_score: float = 0.0


class AgentObjective(BaseModel):
    agent_id: str
    primary_metric: str
    constraints: List[str] = []
    cost_function: str = ""
    kill_threshold: float = 0.0
    regret_tracker: bool = True
