"""
Refresh layer: quote providers and the periodic refresh scheduler.

QuoteProvider interface; static (in-memory) and HTTP providers; RefreshScheduler
merging live quotes into a PortfolioStore on a fixed cadence.
"""

from folio_core.refresh.provider import Quote, QuoteProvider
from folio_core.refresh.static import StaticQuoteProvider
from folio_core.refresh.http import HttpQuoteProvider
from folio_core.refresh.scheduler import RefreshScheduler
from folio_core.refresh.types import FetchFailure, SchedulerState, TickReport

__all__ = [
    "Quote",
    "QuoteProvider",
    "StaticQuoteProvider",
    "HttpQuoteProvider",
    "RefreshScheduler",
    "FetchFailure",
    "SchedulerState",
    "TickReport",
]
