"""World Model — time-indexed snapshot of the business universe."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class StateDomain(str, Enum):
    BUSINESS = "business"
    MARKET = "market"
    CLIENT = "client"
    FOUNDER = "founder"
    CAPITAL = "capital"
    RISK = "risk"

    @property
    def field_name(self) -> str:
        return f"{self.value}_state"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class RevenueStream(_Frozen):
    id: str
    name: str
    type: str = "recurring"                 # "recurring" | "one-time" | "usage-based"
    mrr: float = 0.0
    growth_rate: float = 0.0
    churn_risk: float = 0.0


class BusinessState(_Frozen):
    revenue_streams: List[RevenueStream] = []
    active_deals: int = 0
    pipeline_value: float = 0.0
    churn_rate: float = 0.0
    customer_count: int = 0
    avg_deal_size: float = 0.0


class CompetitorAction(_Frozen):
    competitor_id: str
    action: str
    detected_at: datetime
    impact: str = "low"                     # "low" | "medium" | "high"


class Trend(_Frozen):
    id: str
    description: str
    direction: str = "stable"               # "up" | "down" | "stable"
    strength: float = 0.0


class DemandSignal(_Frozen):
    source: str
    strength: float
    timestamp: datetime


class MarketState(_Frozen):
    competitor_actions: List[CompetitorAction] = []
    market_trends: List[Trend] = []
    pricing_pressure: float = 0.5
    demand_signals: List[DemandSignal] = []


class ClientState(_Frozen):
    health_scores: Dict[str, float] = {}    # client id -> health in [0, 1]
    at_risk_clients: List[str] = []
    expansion_opportunities: List[str] = []
    sentiment_trend: float = 0.0


class FounderState(_Frozen):
    energy_level: float = 0.7
    focus_score: float = 0.7
    burnout_risk: float = 0.3
    decision_fatigue: float = 0.3
    last_check_in: datetime = Field(default_factory=datetime.utcnow)


class CapitalState(_Frozen):
    cash_balance: float = 0.0
    burn_rate: float = 0.0
    runway_months: float = 12.0
    receivables: float = 0.0
    payables: float = 0.0
    reserve_ratio: float = 0.2


class Threat(_Frozen):
    id: str
    type: str                               # "strategic" | "market" | "operational" | "financial" | "reputational"
    severity: float
    likelihood: float
    description: str
    mitigation: Optional[str] = None


class RiskState(_Frozen):
    overall_risk: float = 0.3
    active_threats: List[Threat] = []
    mitigated_threats: List[Threat] = []
    risk_trend: str = "stable"              # "improving" | "stable" | "worsening"


class GraphNode(_Frozen):
    id: str
    type: str
    properties: dict = {}


class GraphEdge(_Frozen):
    source: str
    target: str
    relationship: str
    weight: float = 1.0


class EntityGraph(_Frozen):
    nodes: List[GraphNode] = []
    edges: List[GraphEdge] = []


class CausalRelationship(_Frozen):
    """Directed, weighted, lagged edge between two named state variables."""

    cause: str
    effect: str
    strength: float                         # Multiplier applied to an upstream change
    lag: float = 0.0                        # Hours before the effect materializes
    confidence: float = Field(ge=0.0, le=1.0, default=0.5)


class WorldModelSnapshot(_Frozen):
    """
    Immutable snapshot of six business-state domains plus the causal graph.

    Updates never mutate a snapshot; they produce a new one with a fresh id
    and timestamp (see world_model.store.update_snapshot).
    """

    id: str = Field(default_factory=lambda: f"snap_{uuid4().hex}")
    organization_id: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    business_state: BusinessState = BusinessState()
    market_state: MarketState = MarketState()
    client_state: ClientState = ClientState()
    founder_state: FounderState = Field(default_factory=FounderState)
    capital_state: CapitalState = CapitalState()
    risk_state: RiskState = RiskState()

    entity_graph: EntityGraph = EntityGraph()
    causal_relationships: List[CausalRelationship] = []
