"""
Static quote provider: serves quotes from an in-memory table.

No network. Used for demos and tests; quotes can be changed between ticks and
symbols can be marked as failing to simulate provider outages.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Mapping

from folio_core.errors import FetchError
from folio_core.refresh.provider import Quote, QuoteProvider
from folio_core.snapshot import MISSING

logger = logging.getLogger(__name__)


def _to_quote(symbol: str, value: Quote | Mapping[str, Any] | float) -> Quote:
    """Accept a Quote, a {cmp, peRatio, earnings} mapping, or a bare price."""
    if isinstance(value, Quote):
        return value
    if isinstance(value, Mapping):
        return Quote(
            symbol=symbol,
            cmp=value.get("cmp", MISSING),
            pe_ratio=value.get("peRatio", value.get("pe_ratio", MISSING)),
            earnings=value.get("earnings", MISSING),
        )
    return Quote(symbol=symbol, cmp=float(value))


class StaticQuoteProvider(QuoteProvider):
    """
    Quotes from a dict of symbol -> Quote / mapping / price.
    Unknown symbols and symbols in `failing` raise FetchError.
    `delay` (seconds) is awaited before every answer to simulate latency.
    """

    def __init__(
        self,
        quotes: Mapping[str, Quote | Mapping[str, Any] | float] | None = None,
        *,
        failing: Iterable[str] = (),
        delay: float = 0.0,
        portfolio: list[dict[str, Any]] | None = None,
    ) -> None:
        self._quotes: dict[str, Quote] = {s: _to_quote(s, q) for s, q in (quotes or {}).items()}
        self._failing: set[str] = set(failing)
        self._delay = delay
        self._portfolio = portfolio
        self._request_log: list[str] = []

    def set_quote(self, symbol: str, value: Quote | Mapping[str, Any] | float) -> None:
        """Replace the quote served for symbol."""
        self._quotes[symbol] = _to_quote(symbol, value)

    def set_failing(self, symbol: str, failing: bool = True) -> None:
        """Make fetches for symbol fail (or succeed again)."""
        if failing:
            self._failing.add(symbol)
        else:
            self._failing.discard(symbol)

    def get_request_log(self) -> list[str]:
        """Symbols requested so far, in request order."""
        return list(self._request_log)

    async def fetch_quote(self, symbol: str) -> Quote:
        self._request_log.append(symbol)
        if self._delay > 0:
            await asyncio.sleep(self._delay)
        if symbol in self._failing:
            raise FetchError(symbol, "provider unavailable")
        quote = self._quotes.get(symbol)
        if quote is None:
            raise FetchError(symbol, "no quote for symbol")
        logger.debug("Static quote for %s: cmp=%s", symbol, quote.cmp)
        return quote

    async def fetch_portfolio(self) -> list[dict[str, Any]]:
        if self._portfolio is None:
            return await super().fetch_portfolio()
        return [dict(row) for row in self._portfolio]
