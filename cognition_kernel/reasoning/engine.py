"""
Reasoning Engine — multi-step inference over signals and world state.

Pipeline:
  GATHER EVIDENCE → CHECK CONSTRAINTS → EVALUATE OBJECTIVES → SYNTHESIZE

Behavioral Contract:
- Never raises on well-formed input. Missing evidence lowers confidence.
- Overall confidence is the mean of the three scored steps.
- Any world-state constraint violation blocks the conclusion.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from cognition_kernel.constraints.policy import (
    prioritize_constraints,
    prioritize_objectives,
    world_state_violations,
)
from cognition_kernel.models.reasoning import (
    Constraint,
    InferenceChain,
    InferenceStatus,
    InferenceStep,
    Objective,
    ReasoningContext,
)
from cognition_kernel.models.signals import SignalType, StructuredSignal
from cognition_kernel.models.world import WorldModelSnapshot

logger = logging.getLogger(__name__)

MAX_EVIDENCE_ITEMS = 5
HIGH_CONFIDENCE_THRESHOLD = 0.8

# Signal type -> question keywords that make it relevant
SIGNAL_RELEVANCE: Dict[SignalType, List[str]] = {
    SignalType.REVENUE_EVENT: ["revenue", "money", "income", "payment", "sales"],
    SignalType.LEAD_ACTIVITY: ["lead", "prospect", "customer", "conversion"],
    SignalType.MARKET_CHANGE: ["market", "trend", "industry", "economy"],
    SignalType.COMPETITOR_ACTION: ["competitor", "competition", "rival"],
    SignalType.FOUNDER_STATE: ["founder", "energy", "burnout", "focus"],
    SignalType.CLIENT_SENTIMENT: ["client", "customer", "satisfaction", "feedback"],
    SignalType.RISK_INDICATOR: ["risk", "danger", "threat", "warning"],
    SignalType.OPPORTUNITY_DETECTED: ["opportunity", "chance", "potential"],
}

# Question keywords -> world state slice pulled in as evidence
WORLD_STATE_SLICES: List[Tuple[Tuple[str, ...], str]] = [
    (("revenue", "money"), "business_state"),
    (("risk", "danger"), "risk_state"),
    (("runway", "cash"), "capital_state"),
]


def build_reasoning_context(
    signals: List[StructuredSignal],
    world_state: WorldModelSnapshot,
    constraints: List[Constraint],
    objectives: List[Objective],
) -> ReasoningContext:
    """Build a reasoning context with constraints and objectives in priority order."""
    return ReasoningContext(
        signals=signals,
        world_state=world_state,
        constraints=prioritize_constraints(constraints),
        objectives=prioritize_objectives(objectives),
    )


def _is_relevant_signal(signal: StructuredSignal, question: str) -> bool:
    keywords = SIGNAL_RELEVANCE.get(signal.type, [])
    return any(k in question for k in keywords)


def gather_evidence(context: ReasoningContext, question: str) -> List[Dict[str, Any]]:
    """Collect relevant signals and world state slices for a question."""
    evidence: List[Dict[str, Any]] = []
    question_lower = question.lower()

    for signal in context.signals:
        if _is_relevant_signal(signal, question_lower):
            evidence.append({
                "type": signal.type.value,
                "value": signal.value,
                "confidence": signal.confidence,
            })

    for keywords, field in WORLD_STATE_SLICES:
        if any(k in question_lower for k in keywords):
            evidence.append({
                "source": "world_state",
                "domain": field,
                "data": getattr(context.world_state, field).model_dump(mode="json"),
            })

    return evidence


def _objective_alignment(objective: Objective, world: WorldModelSnapshot) -> float:
    metric = objective.metric.lower()

    if "revenue" in metric:
        current = sum(r.mrr for r in world.business_state.revenue_streams)
        if objective.target <= 0:
            return 1.0
        return max(0.0, min(1.0, current / objective.target))

    if "runway" in metric:
        if objective.target <= 0:
            return 1.0
        return max(0.0, min(1.0, world.capital_state.runway_months / objective.target))

    if "risk" in metric:
        # Lower risk is better
        return max(0.0, min(1.0, 1 - world.risk_state.overall_risk))

    return 0.5


def evaluate_objectives(context: ReasoningContext) -> Tuple[float, List[str]]:
    """Weighted mean alignment across objectives, with per-objective details."""
    details: List[str] = []
    total_score = 0.0
    total_weight = 0.0

    for objective in context.objectives:
        alignment = _objective_alignment(objective, context.world_state)
        details.append(f"{objective.metric}: {alignment * 100:.0f}% aligned")
        total_score += alignment * objective.weight
        total_weight += objective.weight

    score = total_score / total_weight if total_weight > 0 else 0.5
    return score, details


def _synthesize(
    steps: List[InferenceStep],
    violations: List[str],
) -> Tuple[InferenceStatus, str, List[str]]:
    avg_confidence = sum(s.confidence for s in steps) / len(steps)

    if violations:
        return (
            InferenceStatus.BLOCKED,
            "Cannot proceed - constraint violations detected. Review required.",
            [
                "Modify approach to satisfy constraints",
                "Request exception approval",
                "Defer decision until constraints are met",
            ],
        )

    if avg_confidence > HIGH_CONFIDENCE_THRESHOLD:
        return (
            InferenceStatus.PROCEED,
            f"High confidence recommendation available based on {len(steps)} inference steps.",
            [
                "Proceed with primary recommendation",
                "Gather additional evidence for validation",
            ],
        )

    return (
        InferenceStatus.REVIEW,
        "Moderate confidence analysis complete. Human review recommended.",
        [
            "Proceed with caution",
            "Request additional data",
            "Escalate to human decision maker",
        ],
    )


class ReasoningEngine:
    """Fixed four-stage inference pipeline producing an InferenceChain."""

    def reason(
        self,
        context: ReasoningContext,
        question: str,
        current_time: Optional[datetime] = None,
    ) -> InferenceChain:
        steps: List[InferenceStep] = []

        # 1. Gather evidence
        evidence = gather_evidence(context, question)
        steps.append(InferenceStep(
            premise="Gather evidence relevant to the question",
            reasoning=f"Found {len(evidence)} relevant data points",
            evidence=[
                json.dumps(e, default=str, sort_keys=True)
                for e in evidence[:MAX_EVIDENCE_ITEMS]
            ],
            confidence=0.8 if evidence else 0.3,
        ))

        # 2. Check hard constraints against the world state
        violations = world_state_violations(
            context.constraints, context.world_state, current_time
        )
        steps.append(InferenceStep(
            premise="Verify no constraints are violated",
            reasoning=(
                "All constraints satisfied"
                if not violations
                else f"{len(violations)} constraint(s) may be affected"
            ),
            evidence=violations,
            confidence=0.95 if not violations else 0.6,
        ))

        # 3. Evaluate against objectives
        alignment, details = evaluate_objectives(context)
        steps.append(InferenceStep(
            premise="Evaluate alignment with stated objectives",
            reasoning=f"Objective alignment score: {alignment:.2f}",
            evidence=details,
            confidence=alignment,
        ))

        # 4. Synthesize
        status, conclusion, alternatives = _synthesize(steps, violations)
        confidence = sum(s.confidence for s in steps) / len(steps)

        chain = InferenceChain(
            question=question,
            steps=steps,
            conclusion=conclusion,
            confidence=confidence,
            alternative_conclusions=alternatives,
            violations=violations,
            status=status,
        )
        logger.debug(
            "Inference complete",
            extra={"inference_id": chain.id, "status": status.value},
        )
        return chain
