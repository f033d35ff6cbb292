"""
Cognition Kernel API — FastAPI endpoints.

Exposes the kernel's functionality via a REST API for:
- World model snapshots, health, anomalies, simulation and causal chains
- Perception of raw observations
- Decision cycles and human approvals
- Decision ledger queries, outcomes and integrity verification
- Learning events and policy update review
"""

from typing import List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from cognition_kernel.action.executors import DispatchingExecutor, Executor
from cognition_kernel.action.orchestrator import ActionOrchestrator
from cognition_kernel.config import Settings, get_settings
from cognition_kernel.learning.engine import LearningEngine
from cognition_kernel.lineage.store import DecisionLedger, DecisionNotFoundError
from cognition_kernel.models.decision import AUTONOMY_LEVELS, DecisionOption
from cognition_kernel.models.reasoning import Constraint, Objective
from cognition_kernel.models.signals import PerceptionInput, StructuredSignal
from cognition_kernel.observability import setup_logging
from cognition_kernel.perception.signals import perceive_batch, prioritize_signals
from cognition_kernel.pipeline.cognitive_loop import CognitiveLoop, LoopConfig
from cognition_kernel.world_model.repository import SQLiteSnapshotRepository
from cognition_kernel.world_model.store import SnapshotNotFoundError, WorldModelStore


# --- Request/Response Models ---

class SnapshotIngestRequest(BaseModel):
    updates: dict = {}


class SimulateRequest(BaseModel):
    variable: str
    change: float
    horizon_hours: float = 24.0


class CausalRelationshipRequest(BaseModel):
    cause: str
    effect: str
    strength: float
    lag: float = 0.0
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class CycleRequest(BaseModel):
    organization_id: str
    question: str
    options: List[DecisionOption]
    signals: List[StructuredSignal] = []
    observations: List[PerceptionInput] = []
    constraints: List[Constraint] = []
    objectives: List[Objective] = []
    max_autonomy: Optional[int] = Field(default=None, ge=0, le=3)


class ReviewRequest(BaseModel):
    reviewer: str


class OutcomeRequest(BaseModel):
    success: bool
    actual_value: float


class PolicyUpdateRequest(BaseModel):
    agent_id: str
    current_policy: str


# --- Application Factory ---

def create_app(
    world_store: Optional[WorldModelStore] = None,
    ledger: Optional[DecisionLedger] = None,
    learning_engine: Optional[LearningEngine] = None,
    executor: Optional[Executor] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Cognition Kernel API",
        description="Decision and action orchestration engine",
        version="0.1.0",
    )

    # Initialize components
    ws = world_store or WorldModelStore(
        repository=SQLiteSnapshotRepository(settings.snapshot_db_path),
        anomaly_min_history=settings.anomaly_min_history,
    )
    dl = ledger or DecisionLedger(settings.ledger_db_path)
    le = learning_engine or LearningEngine()
    loop = CognitiveLoop(
        world_store=ws,
        ledger=dl,
        learning_engine=le,
        executor=executor or DispatchingExecutor(),
        orchestrator=ActionOrchestrator(
            base_timeout_ms=settings.plan_base_timeout_ms,
            per_step_timeout_ms=settings.plan_per_step_timeout_ms,
        ),
        config=LoopConfig(
            agent_id=settings.agent_id,
            max_autonomy=settings.default_max_autonomy,
            learning_window=settings.learning_window,
        ),
    )

    # Store components on app state for access in endpoints
    app.state.world_store = ws
    app.state.ledger = dl
    app.state.learning_engine = le
    app.state.loop = loop

    # === WORLD MODEL ===

    @app.post("/world/{organization_id}/snapshots")
    def ingest_snapshot(organization_id: str, req: SnapshotIngestRequest):
        """Create or update an organization's world model."""
        snapshot = ws.ingest(organization_id, req.updates)
        return snapshot.model_dump(mode="json")

    @app.get("/world/{organization_id}")
    def get_world_state(organization_id: str):
        """Latest world model snapshot."""
        try:
            return ws.require(organization_id).model_dump(mode="json")
        except SnapshotNotFoundError as e:
            raise HTTPException(404, str(e))

    @app.get("/world/{organization_id}/history")
    def get_world_history(organization_id: str, limit: Optional[int] = None):
        return [s.model_dump(mode="json") for s in ws.history(organization_id, limit)]

    @app.get("/world/{organization_id}/health")
    def get_health(organization_id: str):
        try:
            return {"organization_id": organization_id, "health_score": ws.health(organization_id)}
        except SnapshotNotFoundError as e:
            raise HTTPException(404, str(e))

    @app.get("/world/{organization_id}/anomalies")
    def get_anomalies(organization_id: str):
        try:
            return {"organization_id": organization_id, "anomalies": ws.anomalies(organization_id)}
        except SnapshotNotFoundError as e:
            raise HTTPException(404, str(e))

    @app.post("/world/{organization_id}/simulate")
    def simulate(organization_id: str, req: SimulateRequest):
        """Projected state. Nothing is persisted."""
        try:
            projected = ws.simulate(organization_id, req.variable, req.change, req.horizon_hours)
        except SnapshotNotFoundError as e:
            raise HTTPException(404, str(e))
        return projected.model_dump(mode="json")

    @app.post("/world/{organization_id}/causal-relationships")
    def add_causal_relationship(organization_id: str, req: CausalRelationshipRequest):
        try:
            snapshot = ws.add_causal_relationship(
                organization_id, req.cause, req.effect, req.strength, req.lag, req.confidence
            )
        except SnapshotNotFoundError as e:
            raise HTTPException(404, str(e))
        return snapshot.model_dump(mode="json")

    @app.get("/world/{organization_id}/causal-chains")
    def get_causal_chains(organization_id: str, source: str, target: str, max_depth: int = 3):
        try:
            chains = ws.causal_chains(organization_id, source, target, max_depth)
        except SnapshotNotFoundError as e:
            raise HTTPException(404, str(e))
        return [[r.model_dump(mode="json") for r in chain] for chain in chains]

    # === PERCEPTION ===

    @app.post("/perception/signals")
    def perceive_observations(observations: List[PerceptionInput]):
        """Structure raw observations, highest priority first."""
        signals = prioritize_signals(perceive_batch(observations))
        return [s.model_dump(mode="json") for s in signals]

    # === CYCLES ===

    @app.post("/cycles")
    async def run_cycle(req: CycleRequest):
        """Reason, decide, record and (autonomy permitting) execute."""
        signals = list(req.signals) + perceive_batch(req.observations)
        result = await loop.run(
            organization_id=req.organization_id,
            question=req.question,
            options=req.options,
            signals=signals,
            constraints=req.constraints,
            objectives=req.objectives,
            max_autonomy=req.max_autonomy,
        )
        return result.model_dump(mode="json")

    @app.get("/autonomy-levels")
    def get_autonomy_levels():
        return {int(level): info for level, info in AUTONOMY_LEVELS.items()}

    # === DECISIONS ===

    @app.get("/decisions")
    def list_decisions(organization_id: Optional[str] = None, limit: int = 50):
        if organization_id:
            records = dl.query_by_organization(organization_id)
        else:
            records = dl.query_recent(limit=limit)
        return [r.model_dump(mode="json") for r in records]

    @app.get("/decisions/escalations")
    def list_escalations():
        """Decisions that fell back to a human."""
        return [r.model_dump(mode="json") for r in dl.query_escalations()]

    @app.get("/decisions/{decision_id}")
    def get_decision(decision_id: str):
        try:
            return dl.get_decision(decision_id).model_dump(mode="json")
        except DecisionNotFoundError as e:
            raise HTTPException(404, str(e))

    @app.get("/decisions/{decision_id}/actions")
    def get_decision_actions(decision_id: str):
        return [r.model_dump(mode="json") for r in dl.get_action_results(decision_id)]

    @app.post("/decisions/{decision_id}/outcome")
    def record_decision_outcome(decision_id: str, req: OutcomeRequest):
        """Record what actually happened; feeds outcome analysis."""
        try:
            report = loop.record_outcome(decision_id, req.success, req.actual_value)
        except DecisionNotFoundError as e:
            raise HTTPException(404, str(e))
        return report.model_dump(mode="json")

    # === APPROVALS ===

    @app.get("/approvals/pending")
    def get_pending_approvals():
        return [d.model_dump(mode="json") for d in loop.pending_approvals]

    @app.post("/approvals/{decision_id}/approve")
    async def approve_decision(decision_id: str, req: ReviewRequest):
        """Human approves a queued decision; it executes immediately."""
        result = await loop.approve(decision_id, req.reviewer)
        if not result:
            raise HTTPException(404, "Decision not found or not pending approval")
        return result.model_dump(mode="json")

    @app.post("/approvals/{decision_id}/reject")
    def reject_decision(decision_id: str, req: ReviewRequest):
        result = loop.reject(decision_id, req.reviewer)
        if not result:
            raise HTTPException(404, "Decision not found or not pending approval")
        return {"status": "rejected", "decision_id": decision_id}

    # === LEDGER ===

    @app.get("/ledger/verify")
    def verify_ledger():
        """Verify chain integrity."""
        return {
            "integrity_valid": dl.verify_chain_integrity(),
            "total_records": dl.count(),
        }

    # === LEARNING ===

    @app.get("/learning/events")
    def get_learning_events():
        return [e.model_dump(mode="json") for e in le.get_events()]

    @app.post("/learning/policy-updates")
    def propose_policy_update(req: PolicyUpdateRequest):
        """Propose a policy update from accumulated learning events."""
        update = le.generate_policy_update(req.agent_id, le.get_events(), req.current_policy)
        if not update:
            raise HTTPException(422, "No high-confidence learning events to apply")
        return update.model_dump(mode="json")

    @app.get("/learning/policy-updates")
    def get_pending_policy_updates():
        return [u.model_dump(mode="json") for u in le.get_pending_updates()]

    @app.post("/learning/policy-updates/{update_id}/approve")
    def approve_policy_update(update_id: str, req: ReviewRequest):
        """Human approves a policy change."""
        result = le.approve_update(update_id, req.reviewer)
        if not result:
            raise HTTPException(404, "Policy update not found or not pending")
        return result.model_dump(mode="json")

    @app.post("/learning/policy-updates/{update_id}/reject")
    def reject_policy_update(update_id: str, req: ReviewRequest):
        """Human rejects a policy change."""
        result = le.reject_update(update_id, req.reviewer)
        if not result:
            raise HTTPException(404, "Policy update not found or not pending")
        return result.model_dump(mode="json")

    return app


# Default application instance
app = create_app()
