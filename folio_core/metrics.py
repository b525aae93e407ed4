"""
Valuation metrics: per-holding cost, value and gain; portfolio weights; sector aggregates.

Pure functions over explicit inputs. No I/O, no state; safe to call from any thread.
Any ratio whose denominator is zero (e.g. an empty portfolio) is defined as 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

import numpy as np

if TYPE_CHECKING:
    from folio_core.holding import Holding


@dataclass(frozen=True)
class HoldingMetrics:
    """Cost basis, market value and unrealised gain of one holding."""

    investment: float
    present_value: float
    gain_loss: float


@dataclass(frozen=True)
class SectorSummary:
    """Aggregate over all holdings sharing a sector label."""

    sector: str
    total_investment: float
    total_present_value: float
    total_gain_loss: float
    weight_percentage: float
    holding_count: int = 0

    @property
    def gain_loss_pct(self) -> float:
        """Gain/loss as a fraction of the sector's invested capital."""
        return safe_ratio(self.total_gain_loss, self.total_investment)


@dataclass(frozen=True)
class PortfolioTotals:
    """Portfolio-wide totals."""

    total_investment: float
    total_present_value: float
    total_gain_loss: float
    gain_loss_pct: float
    holding_count: int


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0.0 when the denominator is zero."""
    if denominator == 0:
        return 0.0
    return numerator / denominator


def compute_holding_metrics(
    quantity: int,
    purchase_price: float,
    current_price: float,
) -> HoldingMetrics:
    """
    Derive investment, present value and gain/loss for one position.

    Parameters
    ----------
    quantity : int
        Units held (>= 0).
    purchase_price : float
        Cost basis per unit (> 0).
    current_price : float
        Latest market price per unit (>= 0). Zero yields gain_loss == -investment.

    Returns
    -------
    HoldingMetrics
    """
    investment = quantity * purchase_price
    present_value = quantity * current_price
    return HoldingMetrics(
        investment=investment,
        present_value=present_value,
        gain_loss=present_value - investment,
    )


def compute_portfolio_weights(holdings: Sequence[Holding]) -> dict[str, float]:
    """
    Share of total invested capital per holding, keyed by name in holding order.

    If total investment is zero every weight is 0.0.
    """
    if not holdings:
        return {}
    investments = np.array([h.investment for h in holdings], dtype=float)
    total = float(investments.sum())
    if total == 0:
        weights = np.zeros(len(holdings))
    else:
        weights = investments / total
    return {h.name: float(w) for h, w in zip(holdings, weights)}


def compute_sector_summaries(holdings: Sequence[Holding]) -> list[SectorSummary]:
    """
    Group holdings by sector (first-seen order) and aggregate their metrics.

    weight_percentage is the sector's share of total invested capital, as a
    fraction (0..1), not multiplied by 100.
    """
    grouped: dict[str, list[HoldingMetrics]] = {}
    for h in holdings:
        grouped.setdefault(h.sector, []).append(h.metrics)

    grand_total = sum(m.investment for group in grouped.values() for m in group)
    summaries: list[SectorSummary] = []
    for sector, group in grouped.items():
        total_investment = sum(m.investment for m in group)
        total_present_value = sum(m.present_value for m in group)
        summaries.append(
            SectorSummary(
                sector=sector,
                total_investment=total_investment,
                total_present_value=total_present_value,
                total_gain_loss=sum(m.gain_loss for m in group),
                weight_percentage=safe_ratio(total_investment, grand_total),
                holding_count=len(group),
            )
        )
    return summaries


def compute_portfolio_totals(holdings: Sequence[Holding]) -> PortfolioTotals:
    """Sum investment, present value and gain/loss across all holdings."""
    total_investment = sum(h.investment for h in holdings)
    total_present_value = sum(h.present_value for h in holdings)
    total_gain_loss = sum(h.gain_loss for h in holdings)
    return PortfolioTotals(
        total_investment=total_investment,
        total_present_value=total_present_value,
        total_gain_loss=total_gain_loss,
        gain_loss_pct=safe_ratio(total_gain_loss, total_investment),
        holding_count=len(holdings),
    )
