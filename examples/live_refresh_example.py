"""
Live refresh example: load a portfolio from CSV and refresh it from a simulated quote feed.

Shows: load_csv, PortfolioStore, StaticQuoteProvider with a failing symbol,
RefreshScheduler ticks, tick reports and snapshot listeners.
"""

from __future__ import annotations

import asyncio
import logging
import random
from pathlib import Path

from folio_core import PortfolioSnapshot, PortfolioStore
from folio_core.data_loader import load_csv
from folio_core.refresh import RefreshScheduler, StaticQuoteProvider, TickReport

DATA = Path(__file__).resolve().parent / "data" / "sample_portfolio.csv"


def print_sectors(snapshot: PortfolioSnapshot) -> None:
    """Listener: one line per sector for every published snapshot."""
    print(f"--- snapshot v{snapshot.version} ---")
    for s in snapshot.sectors:
        print(
            f"  {s.sector:<18} invested {s.total_investment:>12,.2f}  "
            f"value {s.total_present_value:>12,.2f}  "
            f"P&L {s.total_gain_loss:>+11,.2f}  weight {s.weight_percentage:6.1%}"
        )


def print_report(report: TickReport) -> None:
    """Observer: tick summary."""
    print(f"  [tick {report.tick}] updated={len(report.updated)} failed={report.failed}")


def jitter(provider: StaticQuoteProvider, snapshot: PortfolioSnapshot) -> None:
    """Move every simulated price by up to +/-2%."""
    for h in snapshot:
        provider.set_quote(
            h.lookup_symbol,
            {"cmp": round(h.current_price * random.uniform(0.98, 1.02), 2), "peRatio": round(random.uniform(10, 60), 1)},
        )


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    store = PortfolioStore(load_csv(DATA))
    provider = StaticQuoteProvider(failing=["DMART"], delay=0.05)
    jitter(provider, store.snapshot)

    last_version = -1

    def on_tick(report: TickReport) -> None:
        nonlocal last_version
        print_report(report)
        snapshot = store.snapshot
        if snapshot.version != last_version:
            print_sectors(snapshot)
            last_version = snapshot.version
        jitter(provider, snapshot)

    scheduler = RefreshScheduler(store, provider, interval=1.0, fetch_timeout=0.5, observers=[on_tick])
    async with scheduler:
        await asyncio.sleep(3.5)

    totals = store.snapshot.totals
    print(f"Invested {totals.total_investment:,.2f}  value {totals.total_present_value:,.2f}  P&L {totals.gain_loss_pct:+.2%}")
    for failure in scheduler.get_failure_log()[-3:]:
        print(f"  failure: {failure.name} ({failure.symbol}) tick {failure.tick}: {failure.reason}")


if __name__ == "__main__":
    asyncio.run(main())
