"""
PortfolioSnapshot: an immutable, internally consistent view of all holdings,
their weights and the derived sector aggregates at one instant.

PricePatch: a partial price update for one holding, with the merge rule
"missing field => retain, present field => overwrite".
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Mapping

import pandas as pd

from folio_core.holding import Holding, to_optional_float
from folio_core.metrics import (
    PortfolioTotals,
    SectorSummary,
    compute_portfolio_totals,
    compute_portfolio_weights,
    compute_sector_summaries,
)


class _Missing:
    """Sentinel type: the field was not supplied at all (as opposed to None)."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

_PATCH_ALIASES = {
    "current_price": "current_price",
    "cmp": "current_price",
    "pe_ratio": "pe_ratio",
    "peRatio": "pe_ratio",
    "earnings": "earnings",
}


@dataclass(frozen=True)
class PricePatch:
    """
    Live fields for one holding. Each field is MISSING unless the provider sent it.

    Merge rule (see merge_into):
    - MISSING: keep the holding's current value.
    - a value: overwrite.
    - None for pe_ratio/earnings: clear it (the provider has no value).
    - None for current_price: treated as MISSING; a holding always has a price.
    """

    current_price: Any = MISSING
    pe_ratio: Any = MISSING
    earnings: Any = MISSING

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PricePatch:
        """Accepts snake_case or the provider's camelCase keys (cmp, peRatio)."""
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            target = _PATCH_ALIASES.get(key)
            if target is not None:
                kwargs[target] = value
        return cls(**kwargs)

    def is_empty(self) -> bool:
        return all(v is MISSING for v in (self.current_price, self.pe_ratio, self.earnings))

    def merge_into(self, holding: Holding) -> Holding:
        """Return a new Holding with the patch applied. Raises ValidationError on bad values."""
        changes: dict[str, Any] = {}
        if self.current_price is not MISSING and self.current_price is not None:
            price = to_optional_float(self.current_price, "current_price", holding.name)
            if price is not None:
                changes["current_price"] = price
        if self.pe_ratio is not MISSING:
            changes["pe_ratio"] = self.pe_ratio
        if self.earnings is not MISSING:
            changes["earnings"] = self.earnings
        if not changes:
            return holding
        return dataclasses.replace(holding, **changes)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PortfolioSnapshot:
    """
    Holdings in insertion order, with weights aligned to them, sector summaries in
    first-seen sector order and portfolio totals. Build with PortfolioSnapshot.build;
    never mutated after construction.
    """

    holdings: tuple[Holding, ...] = ()
    weights: tuple[float, ...] = ()
    sectors: tuple[SectorSummary, ...] = ()
    totals: PortfolioTotals = field(default_factory=lambda: compute_portfolio_totals(()))
    version: int = 0
    created_at: datetime = field(default_factory=_utcnow, compare=False)

    @classmethod
    def build(cls, holdings: Iterable[Holding], version: int = 0) -> PortfolioSnapshot:
        """Run the metrics calculator over holdings and freeze the result."""
        items = tuple(holdings)
        weights = compute_portfolio_weights(items)
        return cls(
            holdings=items,
            weights=tuple(weights[h.name] for h in items),
            sectors=tuple(compute_sector_summaries(items)),
            totals=compute_portfolio_totals(items),
            version=version,
        )

    def __len__(self) -> int:
        return len(self.holdings)

    def __iter__(self) -> Iterator[Holding]:
        return iter(self.holdings)

    def __contains__(self, name: object) -> bool:
        return self.index_of(name) is not None

    @property
    def names(self) -> list[str]:
        return [h.name for h in self.holdings]

    def index_of(self, name: object) -> int | None:
        for i, h in enumerate(self.holdings):
            if h.name == name:
                return i
        return None

    def get(self, name: str) -> Holding | None:
        """Holding by name, or None."""
        i = self.index_of(name)
        return None if i is None else self.holdings[i]

    def weight(self, name: str) -> float:
        """Portfolio weight of a holding. 0 if not present."""
        i = self.index_of(name)
        return 0.0 if i is None else self.weights[i]

    def sector(self, sector: str) -> SectorSummary | None:
        for s in self.sectors:
            if s.sector == sector:
                return s
        return None

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        """
        Presentation payload: {"portfolio": [...], "sectors": [...]} with camelCase keys.
        """
        portfolio = []
        for h, w in zip(self.holdings, self.weights):
            portfolio.append(
                {
                    "name": h.name,
                    "purchasePrice": h.purchase_price,
                    "qty": h.quantity,
                    "investment": h.investment,
                    "portfolioPercentage": w,
                    "cmp": h.current_price,
                    "presentValue": h.present_value,
                    "gainLoss": h.gain_loss,
                    "changePercentage": h.price_change_pct,
                    "peRatio": h.pe_ratio,
                    "earnings": h.earnings,
                    "sector": h.sector,
                    "exchange": h.symbol,
                }
            )
        sectors = [
            {
                "sector": s.sector,
                "totalInvestment": s.total_investment,
                "totalPresentValue": s.total_present_value,
                "totalGainLoss": s.total_gain_loss,
                "weightPercentage": s.weight_percentage,
            }
            for s in self.sectors
        ]
        return {"portfolio": portfolio, "sectors": sectors}

    def to_frame(self) -> pd.DataFrame:
        """One row per holding, indexed by name, with derived metrics as columns."""
        columns = [
            "symbol",
            "sector",
            "quantity",
            "purchase_price",
            "current_price",
            "investment",
            "present_value",
            "gain_loss",
            "change_pct",
            "weight",
            "pe_ratio",
            "earnings",
        ]
        rows = [
            {
                "name": h.name,
                "symbol": h.lookup_symbol,
                "sector": h.sector,
                "quantity": h.quantity,
                "purchase_price": h.purchase_price,
                "current_price": h.current_price,
                "investment": h.investment,
                "present_value": h.present_value,
                "gain_loss": h.gain_loss,
                "change_pct": h.price_change_pct,
                "weight": w,
                "pe_ratio": h.pe_ratio,
                "earnings": h.earnings,
            }
            for h, w in zip(self.holdings, self.weights)
        ]
        if not rows:
            return pd.DataFrame(columns=columns, index=pd.Index([], name="name"))
        return pd.DataFrame(rows).set_index("name")[columns]
