"""
Cognitive Loop — one decision cycle from question to action.

  REASON → DECIDE → LEDGER → (EXECUTE | QUEUE FOR APPROVAL | ADVISE | ESCALATE)

Autonomy gating:
  0 Advisory             — recorded, never executed
  1 Approval Required    — queued until a human approves
  2 Execute + Review     — executed immediately, flagged for review
  3 Autonomous (Bounded) — executed immediately

Escalated decisions are recorded and surfaced through the ledger's
escalation query; they are never executed.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from cognition_kernel.action.executors import DispatchingExecutor, Executor
from cognition_kernel.action.orchestrator import ActionOrchestrator
from cognition_kernel.decision.engine import (
    DecisionEngine,
    build_decision_context,
    record_outcome,
)
from cognition_kernel.learning.engine import LearningEngine
from cognition_kernel.lineage.store import DecisionLedger
from cognition_kernel.models.action import ActionPlan, ActionResult
from cognition_kernel.models.decision import AutonomyLevel, DecisionOption, DecisionRecord
from cognition_kernel.models.learning import LearningEvent
from cognition_kernel.models.reasoning import Constraint, InferenceChain, Objective
from cognition_kernel.models.signals import StructuredSignal
from cognition_kernel.reasoning.engine import ReasoningEngine, build_reasoning_context
from cognition_kernel.world_model.store import WorldModelStore

logger = logging.getLogger(__name__)


class LoopConfig(BaseModel):
    """Configuration for the Cognitive Loop."""

    agent_id: str = "cognition_agent"
    max_autonomy: int = Field(default=AutonomyLevel.AUTONOMOUS, ge=0, le=3)
    execution_threshold: int = AutonomyLevel.EXECUTE_AND_REVIEW
    learning_window: int = 50


class CycleResult(BaseModel):
    cycle_id: str
    organization_id: str
    inference: InferenceChain
    decision: DecisionRecord
    status: str                             # "executed" | "pending_approval" | "advisory" | "escalated"
    plan: Optional[ActionPlan] = None
    action_result: Optional[ActionResult] = None


class OutcomeReport(BaseModel):
    decision: DecisionRecord
    learning_events: List[LearningEvent] = []


class CognitiveLoop:
    """Wires the engines together and owns the approval queue."""

    def __init__(
        self,
        world_store: WorldModelStore,
        ledger: DecisionLedger,
        learning_engine: Optional[LearningEngine] = None,
        executor: Optional[Executor] = None,
        orchestrator: Optional[ActionOrchestrator] = None,
        config: Optional[LoopConfig] = None,
    ):
        self.world_store = world_store
        self.ledger = ledger
        self.learning = learning_engine or LearningEngine()
        self.executor = executor or DispatchingExecutor()
        self.orchestrator = orchestrator or ActionOrchestrator()
        self.config = config or LoopConfig()
        self.reasoning = ReasoningEngine()
        self.decisions = DecisionEngine()
        self._pending: Dict[str, DecisionRecord] = {}

    @property
    def pending_approvals(self) -> List[DecisionRecord]:
        """Decisions waiting for a human, oldest first."""
        return list(self._pending.values())

    async def run(
        self,
        organization_id: str,
        question: str,
        options: List[DecisionOption],
        signals: Optional[List[StructuredSignal]] = None,
        constraints: Optional[List[Constraint]] = None,
        objectives: Optional[List[Objective]] = None,
        max_autonomy: Optional[int] = None,
        current_time: Optional[datetime] = None,
    ) -> CycleResult:
        """Run one full cycle for an organization."""
        cycle_id = f"cycle_{uuid4().hex[:12]}"
        constraints = constraints or []
        ceiling = self.config.max_autonomy if max_autonomy is None else max_autonomy

        world = self.world_store.current(organization_id)
        if world is None:
            world = self.world_store.ingest(organization_id)

        context = build_reasoning_context(signals or [], world, constraints, objectives or [])
        inference = self.reasoning.reason(context, question, current_time)

        decision_context = build_decision_context(inference, options, constraints, current_time)
        decision = self.decisions.decide(
            decision_context,
            agent_id=self.config.agent_id,
            organization_id=organization_id,
            max_autonomy=ceiling,
            current_time=current_time,
        )
        self.ledger.append(decision)

        result = CycleResult(
            cycle_id=cycle_id,
            organization_id=organization_id,
            inference=inference,
            decision=decision,
            status="advisory",
        )

        if decision.escalated:
            result.status = "escalated"
        elif decision.autonomy_level >= self.config.execution_threshold:
            plan, action_result = await self._execute(decision)
            result.status = "executed"
            result.plan = plan
            result.action_result = action_result
            result.decision = decision.model_copy(update={"executed_at": datetime.utcnow()})
        elif decision.autonomy_level == AutonomyLevel.APPROVAL_REQUIRED:
            self._pending[decision.id] = decision
            result.status = "pending_approval"

        logger.info(
            "Cycle complete",
            extra={
                "cycle_id": cycle_id,
                "organization_id": organization_id,
                "decision_id": decision.id,
                "status": result.status,
                "autonomy_level": int(decision.autonomy_level),
            },
        )
        return result

    async def _execute(self, decision: DecisionRecord):
        plan = self.orchestrator.create_plan(decision)
        action_result = await self.orchestrator.execute(plan, self.executor)
        self.ledger.record_action_result(decision.id, action_result)
        return plan, action_result

    async def approve(self, decision_id: str, approver: str) -> Optional[CycleResult]:
        """Human approves a queued decision; it executes immediately."""
        decision = self._pending.pop(decision_id, None)
        if decision is None:
            return None

        logger.info(
            "Decision approved",
            extra={"decision_id": decision_id, "approver": approver},
        )
        plan, action_result = await self._execute(decision)
        return CycleResult(
            cycle_id=f"cycle_{uuid4().hex[:12]}",
            organization_id=decision.organization_id,
            inference=decision.context.inference,
            decision=decision.model_copy(update={"executed_at": datetime.utcnow()}),
            status="executed",
            plan=plan,
            action_result=action_result,
        )

    def reject(self, decision_id: str, reviewer: str) -> Optional[DecisionRecord]:
        """Human rejects a queued decision. It stays in the ledger, unexecuted."""
        decision = self._pending.pop(decision_id, None)
        if decision is not None:
            logger.info(
                "Decision rejected",
                extra={"decision_id": decision_id, "reviewer": reviewer},
            )
        return decision

    def record_outcome(
        self, decision_id: str, success: bool, actual_value: float
    ) -> OutcomeReport:
        """Store an observed outcome and re-run outcome analysis over recent decisions."""
        decision = self.ledger.get_decision(decision_id)
        updated = record_outcome(decision, success, actual_value)
        self.ledger.record_outcome(decision_id, updated.outcome)

        recent = self.ledger.query_recent(limit=self.config.learning_window)
        events = self.learning.analyze_outcomes([d for d in recent if d.outcome])
        return OutcomeReport(decision=updated, learning_events=events)
