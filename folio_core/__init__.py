"""
folio-core: valuation and refresh engine for an equity portfolio.

Derives per-holding and per-sector metrics from positions and market prices, and
merges periodic live quotes into an immutable portfolio snapshot. No rendering,
no persistence.
"""

__version__ = "0.1.0"

from folio_core.errors import FetchError, FolioError, StoreClosedError, ValidationError
from folio_core.holding import Holding
from folio_core.metrics import (
    HoldingMetrics,
    PortfolioTotals,
    SectorSummary,
    compute_holding_metrics,
    compute_portfolio_totals,
    compute_portfolio_weights,
    compute_sector_summaries,
)
from folio_core.snapshot import MISSING, PortfolioSnapshot, PricePatch
from folio_core.store import PortfolioStore
from folio_core.config import Settings

__all__ = [
    "FetchError",
    "FolioError",
    "StoreClosedError",
    "ValidationError",
    "Holding",
    "HoldingMetrics",
    "PortfolioTotals",
    "SectorSummary",
    "compute_holding_metrics",
    "compute_portfolio_totals",
    "compute_portfolio_weights",
    "compute_sector_summaries",
    "MISSING",
    "PortfolioSnapshot",
    "PricePatch",
    "PortfolioStore",
    "Settings",
]
