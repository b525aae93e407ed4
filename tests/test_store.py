"""
Tests for PortfolioStore: initialize, apply_price_update, edits, listeners, close.
"""

import copy
from concurrent.futures import ThreadPoolExecutor

import pytest

from folio_core import Holding, PortfolioStore, PricePatch, StoreClosedError, ValidationError


RAW = [
    {"name": "ACME", "qty": 10, "purchasePrice": 100.0, "cmp": 100.0, "sector": "Tech"},
    {"name": "HDFC", "qty": 20, "purchasePrice": 150.0, "cmp": 150.0, "sector": "Financials"},
    {"name": "INFY", "qty": 30, "purchasePrice": 100.0, "cmp": 100.0, "sector": "Tech"},
]


# --- initialize ---


def test_store_starts_empty():
    store = PortfolioStore()
    assert len(store.snapshot) == 0
    assert store.snapshot.version == 0


def test_initialize_builds_snapshot():
    store = PortfolioStore()
    snap = store.initialize(RAW)
    assert store.snapshot is snap
    assert snap.version == 1
    assert snap.names == ["ACME", "HDFC", "INFY"]
    acme = snap.get("ACME")
    assert acme.investment == 1000.0
    assert acme.present_value == 1000.0
    assert acme.gain_loss == 0.0
    assert [s.sector for s in snap.sectors] == ["Tech", "Financials"]


def test_initialize_accepts_holdings():
    store = PortfolioStore([Holding(name="ACME", quantity=1, purchase_price=5.0)])
    assert store.snapshot.names == ["ACME"]


def test_initialize_rejects_duplicate_names():
    store = PortfolioStore()
    with pytest.raises(ValidationError) as exc:
        store.initialize([RAW[0], dict(RAW[0])])
    assert exc.value.name == "ACME"
    assert len(store.snapshot) == 0


@pytest.mark.parametrize(
    "bad",
    [
        {"name": "BAD", "qty": -1, "purchasePrice": 10.0},
        {"name": "BAD", "qty": 1, "purchasePrice": 0},
        {"name": "BAD", "qty": 1, "purchasePrice": -2.5},
    ],
)
def test_initialize_failure_publishes_nothing(bad):
    store = PortfolioStore(RAW)
    before = store.snapshot
    with pytest.raises(ValidationError):
        store.initialize([*RAW[:1], bad])
    assert store.snapshot is before


def test_initialize_rejects_non_mapping():
    with pytest.raises(ValidationError):
        PortfolioStore().initialize(["ACME"])


# --- apply_price_update ---


def test_price_update_example():
    store = PortfolioStore(RAW)
    snap = store.apply_price_update("ACME", {"current_price": 120.0})
    acme = snap.get("ACME")
    assert acme.present_value == 1200.0
    assert acme.gain_loss == 200.0
    assert snap.version == 2
    assert store.snapshot is snap


def test_price_update_recomputes_sectors():
    store = PortfolioStore(RAW)
    snap = store.apply_price_update("ACME", PricePatch(current_price=120.0))
    tech = snap.sector("Tech")
    assert tech.total_present_value == 1200.0 + 3000.0
    assert tech.total_gain_loss == 200.0
    assert sum(s.weight_percentage for s in snap.sectors) == pytest.approx(1.0, abs=1e-9)
    assert snap.totals.total_gain_loss == 200.0


def test_price_update_preserves_order_and_other_holdings():
    store = PortfolioStore(RAW)
    before = store.snapshot
    snap = store.apply_price_update("HDFC", {"cmp": 160.0})
    assert snap.names == before.names
    assert snap.get("ACME") == before.get("ACME")
    assert snap.get("INFY") == before.get("INFY")


def test_price_update_missing_fields_retained():
    store = PortfolioStore([{"name": "ACME", "qty": 10, "purchasePrice": 100.0, "peRatio": 21.0, "earnings": 4.2}])
    snap = store.apply_price_update("ACME", {"cmp": 101.0})
    assert snap.get("ACME").pe_ratio == 21.0
    assert snap.get("ACME").earnings == 4.2


def test_price_update_miss_is_noop():
    store = PortfolioStore(RAW)
    before = store.snapshot
    expected = copy.deepcopy(before)
    snap = store.apply_price_update("nonexistent", {"current_price": 1.0})
    assert snap is before
    assert snap == expected
    assert store.snapshot is before


def test_price_update_idempotent():
    store = PortfolioStore(RAW)
    before = store.snapshot
    snap = store.apply_price_update("ACME", {"current_price": 100.0})
    assert snap.holdings == before.holdings
    assert snap.weights == before.weights
    assert snap.sectors == before.sectors
    assert snap.totals == before.totals


def test_price_update_invalid_price_publishes_nothing():
    store = PortfolioStore(RAW)
    before = store.snapshot
    with pytest.raises(ValidationError):
        store.apply_price_update("ACME", {"current_price": -1.0})
    assert store.snapshot is before


def test_price_update_order_independent():
    a = PortfolioStore(RAW)
    a.apply_price_update("ACME", {"cmp": 130.0})
    a.apply_price_update("HDFC", {"cmp": 120.0})
    b = PortfolioStore(RAW)
    b.apply_price_update("HDFC", {"cmp": 120.0})
    b.apply_price_update("ACME", {"cmp": 130.0})
    assert a.snapshot == b.snapshot


def test_concurrent_updates_are_all_applied():
    holdings = [{"name": f"S{i}", "qty": 1, "purchasePrice": 10.0, "sector": "X"} for i in range(50)]
    store = PortfolioStore(holdings)
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda i: store.apply_price_update(f"S{i}", {"cmp": 20.0}), range(50)))
    snap = store.snapshot
    assert snap.version == 51
    assert all(h.current_price == 20.0 for h in snap)
    assert snap.totals.total_present_value == pytest.approx(1000.0)


# --- add / remove ---


def test_add_and_remove_holding():
    store = PortfolioStore(RAW)
    snap = store.add_holding({"name": "TCS", "qty": 5, "purchasePrice": 3000.0, "sector": "Tech"})
    assert snap.names[-1] == "TCS"
    assert sum(snap.weights) == pytest.approx(1.0)
    snap = store.remove_holding("HDFC")
    assert snap.names == ["ACME", "INFY", "TCS"]
    assert [s.sector for s in snap.sectors] == ["Tech"]


def test_add_duplicate_rejected():
    store = PortfolioStore(RAW)
    before = store.snapshot
    with pytest.raises(ValidationError):
        store.add_holding({"name": "ACME", "qty": 1, "purchasePrice": 1.0})
    assert store.snapshot is before


def test_remove_unknown_is_noop():
    store = PortfolioStore(RAW)
    before = store.snapshot
    assert store.remove_holding("NOPE") is before


# --- listeners / close ---


def test_listeners_receive_published_snapshots():
    store = PortfolioStore()
    seen = []
    store.subscribe(seen.append)
    store.initialize(RAW)
    store.apply_price_update("ACME", {"cmp": 1.0})
    store.apply_price_update("nonexistent", {"cmp": 1.0})
    assert [s.version for s in seen] == [1, 2]
    store.unsubscribe(seen.append)
    store.apply_price_update("ACME", {"cmp": 2.0})
    assert len(seen) == 2


def test_listeners_see_versions_in_order_across_threads():
    holdings = [{"name": f"S{i}", "qty": 1, "purchasePrice": 10.0} for i in range(40)]
    store = PortfolioStore(holdings)
    seen = []
    store.subscribe(lambda snap: seen.append(snap.version))
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda i: store.apply_price_update(f"S{i}", {"cmp": 11.0}), range(40)))
    assert seen == list(range(2, 42))


def test_listener_may_write_to_store():
    store = PortfolioStore(RAW)

    def rebalance(snapshot):
        if snapshot.get("ACME").current_price == 120.0 and "TCS" not in snapshot:
            store.add_holding({"name": "TCS", "qty": 1, "purchasePrice": 3000.0})

    store.subscribe(rebalance)
    store.apply_price_update("ACME", {"cmp": 120.0})
    assert store.snapshot.names[-1] == "TCS"
    assert store.snapshot.version == 3


def test_failing_listener_does_not_break_publish():
    store = PortfolioStore(RAW)

    def boom(snapshot):
        raise RuntimeError("render failed")

    store.subscribe(boom)
    snap = store.apply_price_update("ACME", {"cmp": 110.0})
    assert store.snapshot is snap


def test_closed_store_rejects_writes_but_keeps_reads():
    store = PortfolioStore(RAW)
    last = store.snapshot
    store.close()
    assert store.closed
    with pytest.raises(StoreClosedError):
        store.apply_price_update("ACME", {"cmp": 1.0})
    with pytest.raises(StoreClosedError):
        store.initialize(RAW)
    assert store.snapshot is last
    store.close()
