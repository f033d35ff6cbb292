"""Tests for the World Model Store."""

import pytest

from cognition_kernel.models.world import (
    BusinessState,
    CapitalState,
    ClientState,
    RevenueStream,
    RiskState,
    StateDomain,
    WorldModelSnapshot,
)
from cognition_kernel.world_model.repository import (
    InMemorySnapshotRepository,
    SQLiteSnapshotRepository,
)
from cognition_kernel.world_model.store import (
    SnapshotNotFoundError,
    WorldModelStore,
    add_causal_relationship,
    compute_health_score,
    create_snapshot,
    detect_anomalies,
    find_causal_chain,
    query,
    simulate_future_state,
    update_snapshot,
)


def _make_snapshot(runway: float = 12.0, risk: float = 0.3) -> WorldModelSnapshot:
    return create_snapshot("org_1", {
        "capital": {"runway_months": runway},
        "risk": {"overall_risk": risk},
    })


def _make_graph(*edges) -> WorldModelSnapshot:
    snapshot = create_snapshot("org_1")
    for cause, effect in edges:
        snapshot = add_causal_relationship(snapshot, cause, effect, 1.0, 0)
    return snapshot


class TestSnapshotLifecycle:
    def test_create_with_defaults(self):
        snapshot = create_snapshot("org_1")
        assert snapshot.organization_id == "org_1"
        assert snapshot.capital_state.runway_months == 12.0

    def test_create_accepts_domain_and_field_names(self):
        snapshot = create_snapshot("org_1", {
            "capital": {"runway_months": 8},
            "risk_state": {"overall_risk": 0.6},
        })
        assert snapshot.capital_state.runway_months == 8
        assert snapshot.risk_state.overall_risk == 0.6

    def test_create_ignores_unknown_keys(self):
        snapshot = create_snapshot("org_1", {"weather": {"sunny": True}})
        assert not hasattr(snapshot, "weather")
        assert snapshot.capital_state == CapitalState()

    def test_update_produces_new_snapshot(self):
        original = _make_snapshot(runway=12)
        updated = update_snapshot(original, {"capital": {"runway_months": 9}})

        assert updated.id != original.id
        assert updated.timestamp >= original.timestamp
        assert updated.capital_state.runway_months == 9
        # Original untouched
        assert original.capital_state.runway_months == 12

    def test_update_replaces_only_named_fields(self):
        original = create_snapshot("org_1", {
            "capital": {"runway_months": 12, "cash_balance": 50_000},
        })
        updated = update_snapshot(original, {"capital": {"runway_months": 6}})
        assert updated.capital_state.cash_balance == 50_000
        assert updated.capital_state.runway_months == 6
        assert updated.risk_state == original.risk_state

    def test_update_accepts_domain_model(self):
        original = _make_snapshot()
        updated = update_snapshot(original, {"risk": RiskState(overall_risk=0.9)})
        assert updated.risk_state.overall_risk == 0.9

    def test_query_domain(self):
        snapshot = _make_snapshot(runway=7)
        assert query(snapshot, StateDomain.CAPITAL).runway_months == 7
        assert query(snapshot, "risk").overall_risk == 0.3


class TestHealthScore:
    def test_default_snapshot(self):
        # business 0.3, capital 0.9, risk 0.7, founder 0.46, client 0.5
        assert compute_health_score(create_snapshot("org_1")) == pytest.approx(0.584)

    def test_bounded_for_extreme_values(self):
        snapshot = create_snapshot("org_1", {
            "business": BusinessState(
                revenue_streams=[RevenueStream(id="r1", name="SaaS", growth_rate=50.0)],
                churn_rate=0.0,
            ),
            "capital": CapitalState(runway_months=500, reserve_ratio=5),
            "client": ClientState(health_scores={"c1": 7.0}),
            "risk": {"overall_risk": 0.0},
            "founder": {"energy_level": 1.0, "focus_score": 1.0, "burnout_risk": 0.0, "decision_fatigue": 0.0},
        })
        score = compute_health_score(snapshot)
        assert 0.0 <= score <= 1.0
        assert score == pytest.approx(1.0)

    def test_floor_at_zero(self):
        snapshot = create_snapshot("org_1", {
            "business": BusinessState(
                revenue_streams=[RevenueStream(id="r1", name="SaaS", growth_rate=-5.0)],
                churn_rate=0.9,
            ),
            "capital": {"runway_months": 0, "reserve_ratio": 0},
            "client": ClientState(health_scores={"c1": 0.0}, at_risk_clients=["c1", "c2"]),
            "risk": {"overall_risk": 1.0},
            "founder": {"energy_level": 0.0, "focus_score": 0.0, "burnout_risk": 1.0, "decision_fatigue": 1.0},
        })
        assert compute_health_score(snapshot) == 0.0


class TestCausalChains:
    def test_add_relationship_keeps_original(self):
        base = create_snapshot("org_1")
        with_edge = add_causal_relationship(base, "price", "revenue", 0.5, 24)
        assert base.causal_relationships == []
        assert len(with_edge.causal_relationships) == 1
        assert with_edge.causal_relationships[0].confidence == 0.5
        assert with_edge.id == base.id

    def test_finds_multi_hop_chain(self):
        model = _make_graph(("a", "b"), ("b", "c"))
        chains = find_causal_chain(model, "a", "c")
        assert len(chains) == 1
        assert [(r.cause, r.effect) for r in chains[0]] == [("a", "b"), ("b", "c")]

    def test_finds_every_path(self):
        model = _make_graph(("a", "b"), ("b", "d"), ("a", "c"), ("c", "d"))
        assert len(find_causal_chain(model, "a", "d")) == 2

    def test_respects_max_depth(self):
        model = _make_graph(("a", "b"), ("b", "c"), ("c", "d"))
        assert find_causal_chain(model, "a", "d", max_depth=2) == []
        assert len(find_causal_chain(model, "a", "d", max_depth=3)) == 1

    def test_terminates_on_cycles(self):
        model = _make_graph(("a", "b"), ("b", "a"), ("b", "c"), ("c", "b"))
        chains = find_causal_chain(model, "a", "c", max_depth=10)
        assert len(chains) == 1
        for chain in chains:
            effects = [r.effect for r in chain]
            assert len(effects) == len(set(effects))

    def test_no_path(self):
        model = _make_graph(("a", "b"))
        assert find_causal_chain(model, "b", "a") == []


class TestSimulation:
    def test_zero_change_is_identity(self):
        model = create_snapshot("org_1", {"business": {"pipeline_value": 1000, "churn_rate": 0.05}})
        for effect in ("revenue", "churn_rate", "risk", "runway"):
            model = add_causal_relationship(model, "price", effect, 0.8, 0)
        assert simulate_future_state(model, "price", 0.0, 24) == model

    def test_runway_effect(self):
        model = add_causal_relationship(_make_snapshot(runway=12), "burn", "runway", 0.5, 0)
        projected = simulate_future_state(model, "burn", -0.2, 24)
        assert projected.capital_state.runway_months == pytest.approx(10.8)
        assert projected.id == model.id
        assert model.capital_state.runway_months == 12

    def test_runway_never_negative(self):
        model = add_causal_relationship(_make_snapshot(runway=1), "burn", "runway", 1.0, 0)
        projected = simulate_future_state(model, "burn", -5.0, 24)
        assert projected.capital_state.runway_months == 0.0

    def test_lag_beyond_horizon_is_skipped(self):
        model = add_causal_relationship(_make_snapshot(), "hiring", "risk", 1.0, 72)
        assert simulate_future_state(model, "hiring", 0.5, 24) == model

    def test_effects_compose(self):
        model = create_snapshot("org_1", {"business": {"pipeline_value": 1000, "churn_rate": 0.05}})
        model = add_causal_relationship(model, "price", "revenue", 1.0, 0)
        model = add_causal_relationship(model, "price", "churn", 0.1, 0)
        projected = simulate_future_state(model, "price", 0.2, 24)
        assert projected.business_state.pipeline_value == pytest.approx(1200)
        assert projected.business_state.churn_rate == pytest.approx(0.07)

    def test_multi_keyword_effect_applies_each_match(self):
        model = create_snapshot("org_1", {"business": {"pipeline_value": 1000, "churn_rate": 0.05}})
        model = add_causal_relationship(model, "price", "revenue_churn", 1.0, 0)
        projected = simulate_future_state(model, "price", 0.1, 24)
        assert projected.business_state.pipeline_value == pytest.approx(1100)
        assert projected.business_state.churn_rate == pytest.approx(0.15)

    def test_single_hop_only(self):
        model = create_snapshot("org_1")
        model = add_causal_relationship(model, "price", "demand", 1.0, 0)
        model = add_causal_relationship(model, "demand", "risk", 1.0, 0)
        assert simulate_future_state(model, "price", 0.5, 24) == model


class TestAnomalies:
    def test_runway_drop(self):
        historical = [_make_snapshot(runway=10) for _ in range(5)]
        anomalies = detect_anomalies(_make_snapshot(runway=6), historical)
        assert any("Runway dropped significantly" in a for a in anomalies)
        assert anomalies[0] == "Runway dropped significantly: 6 vs avg 10.0"

    def test_risk_spike(self):
        historical = [_make_snapshot(risk=0.3) for _ in range(5)]
        anomalies = detect_anomalies(_make_snapshot(risk=0.5), historical)
        assert anomalies == ["Risk level elevated: 50% vs avg 30%"]

    def test_insufficient_history(self):
        historical = [_make_snapshot(runway=10) for _ in range(4)]
        assert detect_anomalies(_make_snapshot(runway=1), historical) == []

    def test_stable_state(self):
        historical = [_make_snapshot() for _ in range(6)]
        assert detect_anomalies(_make_snapshot(), historical) == []


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    if request.param == "memory":
        return WorldModelStore(repository=InMemorySnapshotRepository())
    return WorldModelStore(repository=SQLiteSnapshotRepository(":memory:"))


class TestWorldModelStore:
    def test_require_unknown_org(self, store):
        with pytest.raises(SnapshotNotFoundError):
            store.require("missing")
        assert store.current("missing") is None

    def test_ingest_creates_then_updates(self, store):
        first = store.ingest("org_1", {"capital": {"runway_months": 10}})
        second = store.ingest("org_1", {"risk": {"overall_risk": 0.4}})

        assert first.id != second.id
        current = store.require("org_1")
        assert current.id == second.id
        assert current.capital_state.runway_months == 10
        assert current.risk_state.overall_risk == 0.4
        assert [s.id for s in store.history("org_1")] == [first.id, second.id]
        assert [s.id for s in store.history("org_1", limit=1)] == [second.id]

    def test_organizations_are_isolated(self, store):
        store.ingest("org_1", {"capital": {"runway_months": 3}})
        store.ingest("org_2")
        assert store.require("org_2").capital_state.runway_months == 12
        assert len(store.history("org_1")) == 1

    def test_anomalies_against_history(self, store):
        for _ in range(5):
            store.ingest("org_1", {"capital": {"runway_months": 10}})
        store.ingest("org_1", {"capital": {"runway_months": 6}})
        assert store.anomalies("org_1") == ["Runway dropped significantly: 6 vs avg 10.0"]

    def test_causal_relationship_and_simulation(self, store):
        store.ingest("org_1")
        store.add_causal_relationship("org_1", "burn", "runway", 0.5, 0)
        store.add_causal_relationship("org_1", "runway", "risk", -0.2, 0)

        assert len(store.causal_chains("org_1", "burn", "risk")) == 1
        projected = store.simulate("org_1", "burn", -0.2, 24)
        assert projected.capital_state.runway_months == pytest.approx(10.8)
        # Simulation never persists
        assert store.require("org_1").capital_state.runway_months == 12

    def test_health(self, store):
        store.ingest("org_1")
        assert store.health("org_1") == pytest.approx(0.584)
