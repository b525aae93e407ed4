"""
HTTP refresh example: seed the portfolio from a REST backend and keep it fresh.

Reads FOLIO_QUOTE_BASE_URL / FOLIO_TICK_INTERVAL / FOLIO_FETCH_TIMEOUT /
FOLIO_MAX_CONCURRENCY from the environment. Expects the backend to serve
GET /api/portfolio and GET /api/stocks/{symbol}. Stop with Ctrl+C.
"""

from __future__ import annotations

import asyncio
import json
import logging

from folio_core import PortfolioStore, Settings
from folio_core.refresh import HttpQuoteProvider, RefreshScheduler


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = Settings.from_env()
    async with HttpQuoteProvider(settings=settings) as provider:
        store = PortfolioStore(await provider.fetch_portfolio())
        store.subscribe(lambda snap: print(json.dumps(snap.to_dict()["sectors"], indent=2)))
        async with RefreshScheduler(store, provider, settings=settings):
            try:
                await asyncio.Event().wait()
            finally:
                store.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
