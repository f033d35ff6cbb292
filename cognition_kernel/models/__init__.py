"""Cognition Kernel data models."""

from cognition_kernel.models.action import (
    ActionError,
    ActionIntent,
    ActionPlan,
    ActionResult,
    ActionStep,
    ActionType,
    FailurePolicy,
    RollbackFailure,
    RollbackStep,
    StepResult,
    VerificationCheck,
)
from cognition_kernel.models.decision import (
    AUTONOMY_LEVELS,
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
from cognition_kernel.models.learning import (
    AgentObjective,
    BiasCorrection,
    BiasFinding,
    LearningEvent,
    LearningType,
    PolicyUpdate,
    ValidationResult,
)
from cognition_kernel.models.reasoning import (
    ConditionOperator,
    Constraint,
    ConstraintPredicate,
    ConstraintSource,
    ConstraintType,
    InferenceChain,
    InferenceStatus,
    InferenceStep,
    Objective,
    PolicyActivation,
    ReasoningContext,
    TimeHorizon,
)
from cognition_kernel.models.signals import (
    EntityReference,
    PerceptionInput,
    SignalType,
    StructuredSignal,
)
from cognition_kernel.models.world import (
    BusinessState,
    CapitalState,
    CausalRelationship,
    ClientState,
    EntityGraph,
    FounderState,
    MarketState,
    RevenueStream,
    RiskState,
    StateDomain,
    WorldModelSnapshot,
)

__all__ = [
    "AUTONOMY_LEVELS",
    "ActionError",
    "ActionIntent",
    "ActionPlan",
    "ActionResult",
    "ActionStep",
    "ActionType",
    "AgentObjective",
    "AutonomyLevel",
    "BiasCorrection",
    "BiasFinding",
    "BusinessState",
    "CapitalState",
    "CausalRelationship",
    "ClientState",
    "ConditionOperator",
    "Constraint",
    "ConstraintPredicate",
    "ConstraintSource",
    "ConstraintType",
    "DecisionContext",
    "DecisionOption",
    "DecisionOutcome",
    "DecisionRecord",
    "EntityGraph",
    "EntityReference",
    "ExcludedOption",
    "FailurePolicy",
    "FounderState",
    "InferenceChain",
    "InferenceStatus",
    "InferenceStep",
    "KillTrigger",
    "LearningEvent",
    "LearningType",
    "MarketState",
    "Mitigation",
    "Objective",
    "OpportunityCostAnalysis",
    "PerceptionInput",
    "PolicyActivation",
    "PolicyUpdate",
    "ReasoningContext",
    "RevenueStream",
    "Reversibility",
    "RiskAssessment",
    "RiskFactor",
    "RiskLevel",
    "RiskState",
    "RollbackFailure",
    "RollbackStep",
    "SignalType",
    "StateDomain",
    "StepResult",
    "StructuredSignal",
    "TimeHorizon",
    "ValidationResult",
    "VerificationCheck",
    "WorldModelSnapshot",
]
