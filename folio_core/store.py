"""
PortfolioStore: owns the single authoritative PortfolioSnapshot.

Every write builds a new snapshot from the latest one and swaps it in under a lock,
so readers always see a fully consistent (if possibly stale) snapshot. There is no
module-level instance; pass the store explicitly to the scheduler and to readers.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable, Mapping

from folio_core.errors import StoreClosedError, ValidationError
from folio_core.holding import Holding
from folio_core.snapshot import PortfolioSnapshot, PricePatch

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[PortfolioSnapshot], None]
RawHolding = Holding | Mapping[str, Any]


def _to_holding(raw: RawHolding) -> Holding:
    if isinstance(raw, Holding):
        return raw
    if isinstance(raw, Mapping):
        return Holding.from_raw(raw)
    raise ValidationError(f"expected a Holding or mapping, got {type(raw).__name__}")


def _check_unique(holdings: Iterable[Holding]) -> None:
    seen: set[str] = set()
    for h in holdings:
        if h.name in seen:
            raise ValidationError(f"duplicate holding name {h.name!r}", field="name", name=h.name)
        seen.add(h.name)


class PortfolioStore:
    """
    Thread-safe store of the current portfolio snapshot.

    Reads (snapshot) never take the lock. Writers hold a reentrant lock across
    the swap and listener notification, so listeners see snapshots in version
    order even with several writer threads, and a listener may itself write.
    """

    def __init__(self, holdings: Iterable[RawHolding] | None = None) -> None:
        self._lock = threading.RLock()
        self._snapshot = PortfolioSnapshot.build(())
        self._listeners: list[SnapshotListener] = []
        self._closed = False
        if holdings is not None:
            self.initialize(holdings)

    @property
    def snapshot(self) -> PortfolioSnapshot:
        """The current authoritative snapshot."""
        return self._snapshot

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: SnapshotListener) -> None:
        """Register a callable to receive every newly published snapshot."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: SnapshotListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def close(self) -> None:
        """Dispose the store. Later writes raise StoreClosedError; reads keep working."""
        if not self._closed:
            self._closed = True
            self._listeners.clear()
            logger.info("PortfolioStore closed at version %s", self._snapshot.version)

    def initialize(self, raw_holdings: Iterable[RawHolding]) -> PortfolioSnapshot:
        """
        Build and publish a snapshot from raw holdings, replacing any existing portfolio.

        Raises ValidationError for negative or fractional quantity, non-positive
        purchase price, empty or duplicate names. Nothing is published on failure.
        """
        self._ensure_open()
        holdings = [_to_holding(raw) for raw in raw_holdings]
        _check_unique(holdings)
        with self._lock:
            snapshot = PortfolioSnapshot.build(holdings, version=self._snapshot.version + 1)
            self._snapshot = snapshot
            self._notify(snapshot)
        logger.info(
            "Portfolio initialized: %d holdings, %d sectors, investment=%.2f",
            len(snapshot),
            len(snapshot.sectors),
            snapshot.totals.total_investment,
        )
        return snapshot

    def apply_price_update(
        self,
        name: str,
        patch: PricePatch | Mapping[str, Any],
    ) -> PortfolioSnapshot:
        """
        Merge live fields into one holding and publish a new snapshot.

        A name that is not in the snapshot is a lookup miss: nothing changes and the
        current snapshot object is returned. Otherwise the holding is rebuilt with the
        patch (missing fields retain prior values), and weights, sector summaries and
        totals are recomputed from the whole portfolio before the swap.
        """
        self._ensure_open()
        if not isinstance(patch, PricePatch):
            patch = PricePatch.from_mapping(patch)
        with self._lock:
            current = self._snapshot
            index = current.index_of(name)
            if index is None:
                logger.debug("Price update for %r ignored: not in portfolio", name)
                return current
            updated = patch.merge_into(current.holdings[index])
            holdings = list(current.holdings)
            holdings[index] = updated
            snapshot = PortfolioSnapshot.build(holdings, version=current.version + 1)
            self._snapshot = snapshot
            self._notify(snapshot)
        logger.debug("Merged price update for %s: cmp=%s", name, updated.current_price)
        return snapshot

    def add_holding(self, raw: RawHolding) -> PortfolioSnapshot:
        """Append a holding. Raises ValidationError if invalid or the name is taken."""
        self._ensure_open()
        holding = _to_holding(raw)
        with self._lock:
            current = self._snapshot
            holdings = [*current.holdings, holding]
            _check_unique(holdings)
            snapshot = PortfolioSnapshot.build(holdings, version=current.version + 1)
            self._snapshot = snapshot
            self._notify(snapshot)
        logger.info("Holding added: %s", holding.name)
        return snapshot

    def remove_holding(self, name: str) -> PortfolioSnapshot:
        """Remove a holding by name. Unknown names are a no-op."""
        self._ensure_open()
        with self._lock:
            current = self._snapshot
            if name not in current:
                return current
            holdings = [h for h in current.holdings if h.name != name]
            snapshot = PortfolioSnapshot.build(holdings, version=current.version + 1)
            self._snapshot = snapshot
            self._notify(snapshot)
        logger.info("Holding removed: %s", name)
        return snapshot

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreClosedError("PortfolioStore is closed")

    def _notify(self, snapshot: PortfolioSnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:  # noqa: BLE001
                logger.exception("Snapshot listener %r failed", listener)
