"""
World Model Store — immutable, time-indexed snapshots of the business universe.

Updated by: Perception ingest + Execution outcomes
Queried by: Reasoning Engine + Decision Engine + Cognitive Loop

Behavioral Contract:
- Snapshot functions are pure. No function mutates a snapshot in place;
  every change produces a new WorldModelSnapshot.
- Degraded input becomes data (empty chains, no anomalies), never an exception.
- Causal simulation is single-hop. Multi-hop effects require repeated calls.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel

from cognition_kernel.models.world import (
    BusinessState,
    CapitalState,
    CausalRelationship,
    ClientState,
    FounderState,
    StateDomain,
    WorldModelSnapshot,
)
from cognition_kernel.world_model.repository import (
    InMemorySnapshotRepository,
    SnapshotRepository,
)

logger = logging.getLogger(__name__)

_DOMAIN_FIELDS = tuple(d.field_name for d in StateDomain)
_GRAPH_FIELDS = ("entity_graph", "causal_relationships")

HEALTH_WEIGHTS = {
    StateDomain.BUSINESS: 0.25,
    StateDomain.CAPITAL: 0.25,
    StateDomain.RISK: 0.20,
    StateDomain.FOUNDER: 0.15,
    StateDomain.CLIENT: 0.15,
}


class SnapshotNotFoundError(Exception):
    """Raised when an organization has no world model snapshot yet."""
    pass


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _normalize_domain_key(key: str) -> Optional[str]:
    if key in _DOMAIN_FIELDS or key in _GRAPH_FIELDS:
        return key
    try:
        return StateDomain(key).field_name
    except ValueError:
        return None


# --- Snapshot lifecycle ---

def create_snapshot(
    organization_id: str,
    partial: Optional[Dict[str, Any]] = None,
) -> WorldModelSnapshot:
    """Create a snapshot, filling unspecified domains with defaults."""
    data: Dict[str, Any] = {}
    for key, value in (partial or {}).items():
        field = _normalize_domain_key(key)
        if field is None:
            logger.warning("Ignoring unknown world model field %r", key)
            continue
        data[field] = value
    data["organization_id"] = organization_id
    return WorldModelSnapshot.model_validate(data)


def _merge_domain(current: BaseModel, value: Union[BaseModel, dict]) -> BaseModel:
    """Replace the named fields of one domain. Nested values are not merged."""
    domain_cls = type(current)
    if isinstance(value, BaseModel):
        if isinstance(value, domain_cls):
            return value
        value = value.model_dump()
    merged = current.model_dump()
    merged.update(value)
    return domain_cls.model_validate(merged)


def update_snapshot(
    current: WorldModelSnapshot,
    updates: Dict[str, Any],
) -> WorldModelSnapshot:
    """
    Produce a new snapshot with per-domain updates applied.

    `current` is left untouched. The result carries a new id and timestamp.
    """
    data = {name: getattr(current, name) for name in WorldModelSnapshot.model_fields}
    for key, value in updates.items():
        field = _normalize_domain_key(key)
        if field is None:
            logger.warning("Ignoring unknown world model field %r", key)
            continue
        if field in _DOMAIN_FIELDS:
            data[field] = _merge_domain(getattr(current, field), value)
        else:
            data[field] = value

    data["id"] = f"snap_{uuid4().hex}"
    data["timestamp"] = datetime.utcnow()
    return WorldModelSnapshot.model_validate(data)


def query(snapshot: WorldModelSnapshot, domain: Union[StateDomain, str]) -> BaseModel:
    """Return one of the six state domains."""
    return getattr(snapshot, StateDomain(domain).field_name)


# --- Health ---

def _business_health(state: BusinessState) -> float:
    if not state.revenue_streams:
        return 0.3
    mrr_growth = sum(r.growth_rate for r in state.revenue_streams) / len(state.revenue_streams)
    churn_health = 1 - min(1.0, state.churn_rate * 10)  # 10% churn = 0 health
    return _clamp((mrr_growth + churn_health) / 2)


def _capital_health(state: CapitalState) -> float:
    runway_health = min(1.0, state.runway_months / 12)
    reserve_health = min(1.0, state.reserve_ratio / 0.3)
    return _clamp(runway_health * 0.7 + reserve_health * 0.3)


def _founder_health(state: FounderState) -> float:
    burnout_penalty = state.burnout_risk * 0.5
    fatigue_penalty = state.decision_fatigue * 0.3
    return _clamp((state.energy_level + state.focus_score) / 2 - burnout_penalty - fatigue_penalty)


def _client_health(state: ClientState) -> float:
    scores = list(state.health_scores.values())
    if not scores:
        return 0.5
    avg_health = sum(scores) / len(scores)
    return _clamp(avg_health - len(state.at_risk_clients) * 0.1)


def compute_health_score(snapshot: WorldModelSnapshot) -> float:
    """Weighted composite health in [0, 1]."""
    scores = {
        StateDomain.BUSINESS: _business_health(snapshot.business_state),
        StateDomain.CAPITAL: _capital_health(snapshot.capital_state),
        StateDomain.RISK: _clamp(1 - snapshot.risk_state.overall_risk),
        StateDomain.FOUNDER: _founder_health(snapshot.founder_state),
        StateDomain.CLIENT: _client_health(snapshot.client_state),
    }
    return sum(scores[domain] * weight for domain, weight in HEALTH_WEIGHTS.items())


# --- Causal graph ---

def add_causal_relationship(
    model: WorldModelSnapshot,
    cause: str,
    effect: str,
    strength: float,
    lag: float,
    confidence: float = 0.5,
) -> WorldModelSnapshot:
    """Return a copy of `model` with one more causal edge."""
    relationship = CausalRelationship(
        cause=cause,
        effect=effect,
        strength=strength,
        lag=lag,
        confidence=confidence,
    )
    return model.model_copy(
        update={"causal_relationships": [*model.causal_relationships, relationship]}
    )


def find_causal_chain(
    model: WorldModelSnapshot,
    source: str,
    target: str,
    max_depth: int = 3,
) -> List[List[CausalRelationship]]:
    """
    Find every edge sequence leading from `source` to `target`.

    Depth-first over outgoing edges, at most `max_depth` edges per path.
    An edge is never added when its effect already appears in the path,
    which keeps the search finite on cyclic graphs.
    """
    chains: List[List[CausalRelationship]] = []
    path: List[CausalRelationship] = []

    def dfs(current: str, depth: int) -> None:
        if depth > max_depth:
            return
        if current == target and path:
            chains.append(list(path))
            return
        for rel in model.causal_relationships:
            if rel.cause != current:
                continue
            if any(p.effect == rel.effect for p in path):
                continue
            path.append(rel)
            dfs(rel.effect, depth + 1)
            path.pop()

    dfs(source, 0)
    return chains


def _apply_effect(
    model: WorldModelSnapshot,
    variable: str,
    impact: float,
) -> WorldModelSnapshot:
    """
    Map a named variable onto the state fields it moves.

    Every keyword the name contains applies, in the order revenue, churn,
    risk, runway. "revenue_churn" moves both pipeline value and churn rate.
    """
    name = variable.lower()
    updates: Dict[str, Any] = {}
    business = model.business_state

    if "revenue" in name:
        business = business.model_copy(
            update={"pipeline_value": business.pipeline_value * (1 + impact)}
        )
        updates["business_state"] = business

    if "churn" in name:
        business = business.model_copy(
            update={"churn_rate": max(0.0, business.churn_rate + impact)}
        )
        updates["business_state"] = business

    if "risk" in name:
        risk = model.risk_state
        updates["risk_state"] = risk.model_copy(
            update={"overall_risk": _clamp(risk.overall_risk + impact)}
        )

    if "runway" in name:
        capital = model.capital_state
        updates["capital_state"] = capital.model_copy(
            update={"runway_months": max(0.0, capital.runway_months + impact * 12)}
        )

    if not updates:
        return model
    return model.model_copy(update=updates)


def simulate_future_state(
    model: WorldModelSnapshot,
    variable: str,
    change: float,
    horizon_hours: float,
) -> WorldModelSnapshot:
    """
    Project the direct effects of changing `variable` by `change`.

    Only edges whose cause is `variable` and whose lag fits within the
    horizon are applied (single hop). The projection keeps the input's id:
    it is a hypothetical view, not a new observation.
    """
    simulated = model
    for rel in model.causal_relationships:
        if rel.cause != variable or rel.lag > horizon_hours:
            continue
        simulated = _apply_effect(simulated, rel.effect, change * rel.strength)
    return simulated


# --- Anomalies ---

def detect_anomalies(
    current: WorldModelSnapshot,
    historical: List[WorldModelSnapshot],
    min_history: int = 5,
) -> List[str]:
    """Flag runway drops and risk spikes against the historical mean."""
    anomalies: List[str] = []
    if len(historical) < min_history:
        return anomalies

    avg_runway = sum(h.capital_state.runway_months for h in historical) / len(historical)
    runway = current.capital_state.runway_months
    if runway < avg_runway * 0.7:
        anomalies.append(
            f"Runway dropped significantly: {runway:g} vs avg {avg_runway:.1f}"
        )

    avg_risk = sum(h.risk_state.overall_risk for h in historical) / len(historical)
    risk = current.risk_state.overall_risk
    if risk > avg_risk * 1.5:
        anomalies.append(
            f"Risk level elevated: {risk * 100:.0f}% vs avg {avg_risk * 100:.0f}%"
        )

    return anomalies


class WorldModelStore:
    """
    Organization-scoped facade over an injected SnapshotRepository.

    Every write produces a new snapshot and appends it to history.
    """

    def __init__(
        self,
        repository: Optional[SnapshotRepository] = None,
        anomaly_min_history: int = 5,
    ):
        self.repository = repository or InMemorySnapshotRepository()
        self.anomaly_min_history = anomaly_min_history

    def current(self, organization_id: str) -> Optional[WorldModelSnapshot]:
        """Get the latest snapshot for an organization."""
        return self.repository.latest(organization_id)

    def require(self, organization_id: str) -> WorldModelSnapshot:
        """Latest snapshot, raising SnapshotNotFoundError when there is none."""
        snapshot = self.repository.latest(organization_id)
        if snapshot is None:
            raise SnapshotNotFoundError(
                f"No world model snapshot for organization {organization_id}"
            )
        return snapshot

    def ingest(
        self,
        organization_id: str,
        updates: Optional[Dict[str, Any]] = None,
    ) -> WorldModelSnapshot:
        """Create or update the organization's world model."""
        current = self.repository.latest(organization_id)
        if current is None:
            snapshot = create_snapshot(organization_id, updates)
        else:
            snapshot = update_snapshot(current, updates or {})
        self.repository.save(snapshot)
        logger.info(
            "World model updated",
            extra={"organization_id": organization_id, "snapshot_id": snapshot.id},
        )
        return snapshot

    def add_causal_relationship(
        self,
        organization_id: str,
        cause: str,
        effect: str,
        strength: float,
        lag: float,
        confidence: float = 0.5,
    ) -> WorldModelSnapshot:
        current = self.require(organization_id)
        with_edge = add_causal_relationship(current, cause, effect, strength, lag, confidence)
        snapshot = update_snapshot(
            current, {"causal_relationships": with_edge.causal_relationships}
        )
        self.repository.save(snapshot)
        return snapshot

    def history(
        self, organization_id: str, limit: Optional[int] = None
    ) -> List[WorldModelSnapshot]:
        """Snapshots oldest first."""
        return self.repository.history(organization_id, limit=limit)

    def health(self, organization_id: str) -> float:
        """Health score of the latest snapshot."""
        return compute_health_score(self.require(organization_id))

    def anomalies(self, organization_id: str) -> List[str]:
        """Compare the latest snapshot against every earlier one."""
        snapshots = self.repository.history(organization_id)
        if not snapshots:
            raise SnapshotNotFoundError(
                f"No world model snapshot for organization {organization_id}"
            )
        current, historical = snapshots[-1], snapshots[:-1]
        return detect_anomalies(current, historical, self.anomaly_min_history)

    def simulate(
        self,
        organization_id: str,
        variable: str,
        change: float,
        horizon_hours: float,
    ) -> WorldModelSnapshot:
        return simulate_future_state(
            self.require(organization_id), variable, change, horizon_hours
        )

    def causal_chains(
        self,
        organization_id: str,
        source: str,
        target: str,
        max_depth: int = 3,
    ) -> List[List[CausalRelationship]]:
        return find_causal_chain(self.require(organization_id), source, target, max_depth)
