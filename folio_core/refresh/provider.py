"""
Quote provider abstraction.

QuoteProvider ABC: fetch_quote per symbol, optional fetch_portfolio for the initial load.
StaticQuoteProvider (in-memory) and HttpQuoteProvider implement it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from folio_core.snapshot import MISSING, PricePatch


@dataclass(frozen=True)
class Quote:
    """
    Live data for one symbol. A field the provider did not send stays MISSING and
    leaves the holding's value unchanged; None means the provider has no value.
    """

    symbol: str
    cmp: Any = MISSING
    pe_ratio: Any = MISSING
    earnings: Any = MISSING

    def to_patch(self) -> PricePatch:
        return PricePatch(current_price=self.cmp, pe_ratio=self.pe_ratio, earnings=self.earnings)


class QuoteProvider(ABC):
    """
    Abstract live quote source, reachable by symbol.
    Implementations raise FetchError for any per-symbol failure.
    """

    @abstractmethod
    async def fetch_quote(self, symbol: str) -> Quote:
        """Return the latest quote for symbol. Raises FetchError on failure."""
        ...

    async def fetch_portfolio(self) -> list[dict[str, Any]]:
        """
        Raw starting holdings, for providers that also serve the initial load.
        Providers that do not override this raise NotImplementedError.
        """
        raise NotImplementedError(f"{type(self).__name__} does not serve portfolios")

    async def aclose(self) -> None:
        """Release any connections. No-op by default."""
        return None

    async def __aenter__(self) -> QuoteProvider:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
