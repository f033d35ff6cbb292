"""Action models — plans, rollback, verification and execution results."""

from enum import Enum
from typing import Any, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class ActionIntent(str, Enum):
    """Canonical intents an action string can be decomposed into."""
    SEND_EMAIL = "send_email"
    WRITE_RECORD = "write_record"
    NOTIFY = "notify"
    LOG = "log"


class ActionType(str, Enum):
    DATABASE_WRITE = "database_write"
    API_CALL = "api_call"
    NOTIFICATION = "notification"
    EMAIL = "email"
    SMS = "sms"
    CALENDAR = "calendar"
    PAYMENT = "payment"
    CONTENT_CREATION = "content_creation"
    AGENT_SPAWN = "agent_spawn"


class FailurePolicy(str, Enum):
    """What the orchestrator does when a step fails."""
    CONTINUE = "continue"   # Record the error, run the next step
    HALT = "halt"           # Record the error, stop without unwinding
    ROLLBACK = "rollback"   # Unwind succeeded steps in reverse order, then stop


class ActionStep(BaseModel):
    id: str = Field(default_factory=lambda: f"step_{uuid4().hex}")
    order: int
    type: ActionType
    tool: str
    parameters: dict = {}
    expected_result: str = ""
    depends_on: List[str] = []


class RollbackStep(BaseModel):
    action_step_id: str
    action_type: ActionType
    rollback_action: str                    # e.g. "restore_previous_state"
    parameters: dict = {}


class VerificationCheck(BaseModel):
    id: str = Field(default_factory=lambda: f"chk_{uuid4().hex}")
    after_step: str
    condition: str
    expected_value: Any = True
    on_failure: FailurePolicy = FailurePolicy.CONTINUE


class ActionPlan(BaseModel):
    id: str = Field(default_factory=lambda: f"plan_{uuid4().hex}")
    decision_id: str
    steps: List[ActionStep]
    rollback_plan: List[RollbackStep] = []
    verification_checks: List[VerificationCheck] = []
    timeout_ms: int                         # Advisory, not enforced


class StepResult(BaseModel):
    step_id: str
    success: bool
    result: Any = None
    duration_ms: float = 0.0
    verification_passed: Optional[bool] = None


class ActionError(BaseModel):
    step_id: str
    error: str
    recoverable: bool
    handled: bool = False


class RollbackFailure(BaseModel):
    """A rollback that raised. The step's effects may still be applied."""

    action_step_id: str
    rollback_action: str
    error: str


class ActionResult(BaseModel):
    action_plan_id: str
    step_results: List[StepResult] = []
    errors: List[ActionError] = []
    rolled_back_step_ids: List[str] = []
    rollback_failures: List[RollbackFailure] = []
    halted: bool = False
    overall_success: bool
    execution_time_ms: float
