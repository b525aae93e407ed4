"""
HTTP quote provider: live quotes and the starting portfolio from a REST backend.

GET {base_url}/api/stocks/{symbol}  -> {"cmp": 1234.5, "peRatio": 21.3, "earnings": 58.1}
GET {base_url}/api/portfolio        -> {"portfolio": [...], "sectors": [...]}

Every quote field is optional: an absent key leaves the holding's value unchanged,
a null clears it. Any transport, status or payload problem raises FetchError.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote as url_quote

import httpx

from folio_core.config import Settings
from folio_core.errors import FetchError
from folio_core.refresh.provider import Quote, QuoteProvider
from folio_core.snapshot import MISSING

logger = logging.getLogger(__name__)

QUOTE_PATH = "/api/stocks/{symbol}"
PORTFOLIO_PATH = "/api/portfolio"

# Payload key -> Quote field
QUOTE_FIELDS = {"cmp": "cmp", "peRatio": "pe_ratio", "earnings": "earnings"}


def _parse_number(symbol: str, key: str, value: Any) -> float | None:
    """Numbers may arrive as JSON numbers or as display strings like '1,234.50'."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise FetchError(symbol, f"field {key!r} is not numeric: {value!r}")
    if isinstance(value, str):
        cleaned = value.replace(",", "").strip()
        if not cleaned:
            return None
        value = cleaned
    try:
        return float(value)
    except (TypeError, ValueError):
        raise FetchError(symbol, f"field {key!r} is not numeric: {value!r}") from None


def parse_quote(symbol: str, payload: Any) -> Quote:
    """Map a provider JSON object to a Quote. Raises FetchError if it is not an object."""
    if not isinstance(payload, dict):
        raise FetchError(symbol, f"expected a JSON object, got {type(payload).__name__}")
    fields: dict[str, Any] = {}
    for key, attr in QUOTE_FIELDS.items():
        fields[attr] = _parse_number(symbol, key, payload[key]) if key in payload else MISSING
    return Quote(symbol=symbol, **fields)


class HttpQuoteProvider(QuoteProvider):
    """
    httpx-based provider. One AsyncClient is shared by all requests; pass `client`
    to reuse an existing one (it is then not closed by aclose()).
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or Settings()
        self.base_url = (base_url or settings.quote_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.fetch_timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)

    async def _get_json(self, path: str, symbol: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            raise FetchError(symbol, f"request failed: {e!s}") from e
        if not response.is_success:
            raise FetchError(symbol, f"HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(symbol, "invalid JSON payload") from e

    async def fetch_quote(self, symbol: str) -> Quote:
        payload = await self._get_json(QUOTE_PATH.format(symbol=url_quote(symbol, safe="")), symbol)
        quote = parse_quote(symbol, payload)
        logger.debug("Quote for %s: cmp=%s pe=%s earnings=%s", symbol, quote.cmp, quote.pe_ratio, quote.earnings)
        return quote

    async def fetch_portfolio(self) -> list[dict[str, Any]]:
        """Raw holdings from the portfolio endpoint (sector summaries are recomputed locally)."""
        payload = await self._get_json(PORTFOLIO_PATH, "portfolio")
        if isinstance(payload, dict):
            payload = payload.get("portfolio")
        if not isinstance(payload, list):
            raise FetchError("portfolio", "expected a list of holdings")
        logger.info("Fetched %d holdings from %s", len(payload), self.base_url)
        return payload

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
