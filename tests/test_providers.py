"""
Tests for quote providers: StaticQuoteProvider and HttpQuoteProvider (httpx.MockTransport).
"""

import httpx
import pytest

from folio_core import MISSING, FetchError, PortfolioStore, Settings
from folio_core.refresh import HttpQuoteProvider, Quote, QuoteProvider, StaticQuoteProvider
from folio_core.refresh.http import parse_quote


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# --- Quote ---


def test_quote_to_patch_keeps_missing():
    patch = Quote(symbol="ACME", cmp=101.0).to_patch()
    assert patch.current_price == 101.0
    assert patch.pe_ratio is MISSING
    assert patch.earnings is MISSING


# --- StaticQuoteProvider ---


@pytest.mark.asyncio
async def test_static_provider_serves_quotes():
    provider = StaticQuoteProvider({"ACME": 120.0, "BETA": {"cmp": 55.0, "peRatio": None}})
    acme = await provider.fetch_quote("ACME")
    assert acme.cmp == 120.0
    assert acme.pe_ratio is MISSING
    beta = await provider.fetch_quote("BETA")
    assert beta.pe_ratio is None
    assert provider.get_request_log() == ["ACME", "BETA"]


@pytest.mark.asyncio
async def test_static_provider_failures():
    provider = StaticQuoteProvider({"ACME": 120.0}, failing=["ACME"])
    with pytest.raises(FetchError):
        await provider.fetch_quote("ACME")
    with pytest.raises(FetchError) as exc:
        await provider.fetch_quote("UNKNOWN")
    assert exc.value.symbol == "UNKNOWN"
    provider.set_failing("ACME", False)
    assert (await provider.fetch_quote("ACME")).cmp == 120.0


@pytest.mark.asyncio
async def test_static_provider_set_quote():
    provider = StaticQuoteProvider()
    provider.set_quote("ACME", Quote(symbol="ACME", cmp=1.0, earnings=2.0))
    quote = await provider.fetch_quote("ACME")
    assert quote.earnings == 2.0


@pytest.mark.asyncio
async def test_static_provider_portfolio():
    rows = [{"name": "ACME", "qty": 1, "purchasePrice": 10.0}]
    assert await StaticQuoteProvider(portfolio=rows).fetch_portfolio() == rows
    with pytest.raises(NotImplementedError):
        await StaticQuoteProvider().fetch_portfolio()


@pytest.mark.asyncio
async def test_base_provider_fetch_portfolio_not_supported():
    class QuotesOnly(QuoteProvider):
        async def fetch_quote(self, symbol):
            return Quote(symbol=symbol)

    async with QuotesOnly() as provider:
        with pytest.raises(NotImplementedError, match="QuotesOnly"):
            await provider.fetch_portfolio()


# --- parse_quote ---


def test_parse_quote_absent_and_null_fields():
    quote = parse_quote("ACME", {"cmp": 101.5, "peRatio": None})
    assert quote.cmp == 101.5
    assert quote.pe_ratio is None
    assert quote.earnings is MISSING


def test_parse_quote_numeric_strings():
    quote = parse_quote("ACME", {"cmp": "1,234.50", "earnings": ""})
    assert quote.cmp == 1234.5
    assert quote.earnings is None


def test_parse_quote_rejects_garbage():
    with pytest.raises(FetchError):
        parse_quote("ACME", {"cmp": "n/a"})
    with pytest.raises(FetchError):
        parse_quote("ACME", [1, 2, 3])


# --- HttpQuoteProvider ---


@pytest.mark.asyncio
async def test_http_provider_fetch_quote():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"cmp": 1700.25, "peRatio": 19.5, "earnings": 87.0})

    provider = HttpQuoteProvider("http://quotes.test/", client=_client(handler))
    quote = await provider.fetch_quote("HDFCBANK")
    assert quote == Quote(symbol="HDFCBANK", cmp=1700.25, pe_ratio=19.5, earnings=87.0)
    assert seen == ["http://quotes.test/api/stocks/HDFCBANK"]


@pytest.mark.asyncio
async def test_http_provider_encodes_symbol():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.raw_path.decode())
        return httpx.Response(200, json={})

    provider = HttpQuoteProvider("http://quotes.test", client=_client(handler))
    quote = await provider.fetch_quote("M&M Ltd")
    assert seen == ["/api/stocks/M%26M%20Ltd"]
    assert quote.cmp is MISSING


@pytest.mark.asyncio
async def test_http_provider_status_error():
    provider = HttpQuoteProvider("http://quotes.test", client=_client(lambda r: httpx.Response(503)))
    with pytest.raises(FetchError) as exc:
        await provider.fetch_quote("ACME")
    assert exc.value.reason == "HTTP 503"


@pytest.mark.asyncio
async def test_http_provider_invalid_json():
    provider = HttpQuoteProvider(
        "http://quotes.test", client=_client(lambda r: httpx.Response(200, content=b"<html>"))
    )
    with pytest.raises(FetchError) as exc:
        await provider.fetch_quote("ACME")
    assert exc.value.reason == "invalid JSON payload"


@pytest.mark.asyncio
async def test_http_provider_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    provider = HttpQuoteProvider("http://quotes.test", client=_client(handler))
    with pytest.raises(FetchError) as exc:
        await provider.fetch_quote("ACME")
    assert "connection refused" in exc.value.reason


@pytest.mark.asyncio
async def test_http_provider_fetch_portfolio_seeds_store():
    payload = {
        "portfolio": [
            {"name": "ACME", "qty": 10, "purchasePrice": 100.0, "cmp": 110.0, "sector": "Tech", "investment": 1000},
            {"name": "GAMMA", "qty": 5, "purchasePrice": 200.0, "cmp": 180.0, "sector": "Energy"},
        ],
        "sectors": [{"sector": "stale", "totalInvestment": 1}],
    }
    provider = HttpQuoteProvider("http://quotes.test", client=_client(lambda r: httpx.Response(200, json=payload)))
    rows = await provider.fetch_portfolio()
    snap = PortfolioStore(rows).snapshot
    assert snap.names == ["ACME", "GAMMA"]
    assert [s.sector for s in snap.sectors] == ["Tech", "Energy"]
    assert snap.totals.total_gain_loss == 0.0


@pytest.mark.asyncio
async def test_http_provider_fetch_portfolio_rejects_bad_shape():
    provider = HttpQuoteProvider("http://quotes.test", client=_client(lambda r: httpx.Response(200, json={"x": 1})))
    with pytest.raises(FetchError):
        await provider.fetch_portfolio()


@pytest.mark.asyncio
async def test_http_provider_defaults_from_settings():
    provider = HttpQuoteProvider(settings=Settings(quote_base_url="http://quotes.test/", fetch_timeout=2.5))
    assert provider.base_url == "http://quotes.test"
    assert provider.timeout == 2.5
    await provider.aclose()


@pytest.mark.asyncio
async def test_http_provider_does_not_close_injected_client():
    client = _client(lambda r: httpx.Response(200, json={}))
    async with HttpQuoteProvider("http://quotes.test", client=client):
        pass
    assert not client.is_closed
    await client.aclose()
