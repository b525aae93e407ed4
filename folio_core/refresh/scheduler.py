"""
Refresh scheduler: periodic concurrent quote fan-out merged into a PortfolioStore.

State machine IDLE -> TICK_IN_FLIGHT -> IDLE, looping on a fixed interval until
stop(). A tick fetches one quote per holding concurrently (bounded by
max_concurrency, each bounded by fetch_timeout) and merges every success into the
store as it arrives. One holding's failure never aborts the rest of the tick.
Ticks never overlap: an interval boundary reached while a tick is in flight is
dropped, not queued, so a stale response can never land after a newer one.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Callable

from folio_core.config import Settings
from folio_core.errors import FetchError, StoreClosedError, ValidationError
from folio_core.holding import Holding
from folio_core.refresh.provider import QuoteProvider
from folio_core.refresh.types import FetchFailure, SchedulerState, TickReport
from folio_core.store import PortfolioStore

logger = logging.getLogger(__name__)

TickObserver = Callable[[TickReport], None]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshScheduler:
    """
    Drive periodic refreshes of every holding in `store` from `provider`.

    interval, fetch_timeout and max_concurrency default to the values in `settings`
    (Settings() defaults if omitted). Observers receive each completed TickReport.
    """

    def __init__(
        self,
        store: PortfolioStore,
        provider: QuoteProvider,
        *,
        interval: float | None = None,
        fetch_timeout: float | None = None,
        max_concurrency: int | None = None,
        settings: Settings | None = None,
        observers: Sequence[TickObserver] = (),
        failure_log_size: int = 1000,
    ) -> None:
        settings = settings or Settings()
        self.store = store
        self.provider = provider
        self.interval = interval if interval is not None else settings.tick_interval
        self.fetch_timeout = fetch_timeout if fetch_timeout is not None else settings.fetch_timeout
        self.max_concurrency = max_concurrency if max_concurrency is not None else settings.max_concurrency
        if self.interval <= 0 or self.fetch_timeout <= 0 or self.max_concurrency <= 0:
            raise ValueError("interval, fetch_timeout and max_concurrency must be positive")
        self.observers: list[TickObserver] = list(observers)
        self._state = SchedulerState.IDLE
        self._task: asyncio.Task[None] | None = None
        self._tick_count = 0
        self._skipped_ticks = 0
        self._last_report: TickReport | None = None
        self._failure_log: deque[FetchFailure] = deque(maxlen=failure_log_size)

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def tick_count(self) -> int:
        """Ticks that actually fanned out."""
        return self._tick_count

    @property
    def skipped_ticks(self) -> int:
        """Tick boundaries dropped because the previous tick was still in flight."""
        return self._skipped_ticks

    @property
    def last_report(self) -> TickReport | None:
        return self._last_report

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_failure_log(self) -> list[FetchFailure]:
        """Most recent per-holding failures across ticks, oldest first."""
        return list(self._failure_log)

    # --- One tick ---

    async def run_tick(self) -> TickReport:
        """
        Run one refresh tick and return its report.

        If a tick is already in flight (or the scheduler is stopped) nothing is
        fetched and a report with skipped=True is returned.
        """
        if self._state is not SchedulerState.IDLE:
            if self._state is SchedulerState.TICK_IN_FLIGHT:
                self._skipped_ticks += 1
                logger.warning("Refresh tick skipped: previous tick still in flight")
            return TickReport(tick=self._tick_count, started_at=_now(), finished_at=_now(), skipped=True)

        self._state = SchedulerState.TICK_IN_FLIGHT
        self._tick_count += 1
        report = TickReport(tick=self._tick_count, started_at=_now())
        tasks: list[asyncio.Future[None]] = []
        try:
            holdings = self.store.snapshot.holdings
            semaphore = asyncio.Semaphore(self.max_concurrency)
            tasks = [asyncio.ensure_future(self._refresh_holding(h, semaphore, report)) for h in holdings]
            await asyncio.gather(*tasks)
        finally:
            # No fetch of this tick may merge once the tick is over.
            for task in tasks:
                task.cancel()
            if self._state is SchedulerState.TICK_IN_FLIGHT:
                self._state = SchedulerState.IDLE
            report.finished_at = _now()

        report.snapshot_version = self.store.snapshot.version
        self._last_report = report
        elapsed = (report.finished_at - report.started_at).total_seconds()
        log = logger.warning if report.failures else logger.info
        log(
            "Tick %d: %d updated, %d failed, %d missed in %.2fs",
            report.tick,
            len(report.updated),
            len(report.failures),
            len(report.missed),
            elapsed,
        )
        for obs in self.observers:
            try:
                obs(report)
            except Exception:  # noqa: BLE001
                logger.exception("Tick observer %r failed", obs)
        return report

    async def _refresh_holding(
        self,
        holding: Holding,
        semaphore: asyncio.Semaphore,
        report: TickReport,
    ) -> None:
        """Fetch and merge one holding. Records failures; never raises except on cancellation."""
        symbol = holding.lookup_symbol
        try:
            async with semaphore:
                quote = await asyncio.wait_for(self.provider.fetch_quote(symbol), timeout=self.fetch_timeout)
        except asyncio.TimeoutError:
            self._record_failure(report, holding, f"timed out after {self.fetch_timeout}s")
            return
        except FetchError as e:
            self._record_failure(report, holding, e.reason)
            return
        except Exception as e:  # noqa: BLE001
            logger.exception("Unexpected error fetching %s", symbol)
            self._record_failure(report, holding, f"{type(e).__name__}: {e!s}")
            return

        # Teardown may have happened while the fetch was pending.
        if self._state is SchedulerState.STOPPED or self.store.closed:
            logger.debug("Dropping quote for %s: scheduler stopped", symbol)
            return
        try:
            snapshot = self.store.apply_price_update(holding.name, quote.to_patch())
        except ValidationError as e:
            self._record_failure(report, holding, f"invalid quote: {e!s}")
            return
        except StoreClosedError:
            logger.debug("Dropping quote for %s: store closed", symbol)
            return
        except Exception as e:  # noqa: BLE001
            logger.exception("Unexpected error merging quote for %s", symbol)
            self._record_failure(report, holding, f"{type(e).__name__}: {e!s}")
            return
        if holding.name in snapshot:
            report.updated.append(holding.name)
        else:
            report.missed.append(holding.name)

    def _record_failure(self, report: TickReport, holding: Holding, reason: str) -> None:
        failure = FetchFailure(
            name=holding.name,
            symbol=holding.lookup_symbol,
            reason=reason,
            timestamp=_now(),
            tick=report.tick,
        )
        report.failures.append(failure)
        self._failure_log.append(failure)
        logger.warning("Refresh failed for %s (%s): %s", holding.name, failure.symbol, reason)

    # --- Loop and lifecycle ---

    async def run_forever(self) -> None:
        """
        Tick on every interval boundary until stopped. Boundaries that pass while a
        tick is in flight are dropped and counted in skipped_ticks.
        """
        loop = asyncio.get_running_loop()
        next_boundary = loop.time()
        while self._state is not SchedulerState.STOPPED:
            try:
                await self.run_tick()
            except Exception:  # noqa: BLE001
                logger.exception("Refresh tick %d failed; continuing on the next interval", self._tick_count)
            now = loop.time()
            next_boundary += self.interval
            if now >= next_boundary:
                dropped = int((now - next_boundary) // self.interval) + 1
                self._skipped_ticks += dropped
                next_boundary += dropped * self.interval
                logger.warning("Tick overran the interval; dropped %d boundary(ies)", dropped)
            await asyncio.sleep(next_boundary - now)

    def start(self) -> asyncio.Task[None]:
        """Start the background refresh loop on the running event loop."""
        if self._state is SchedulerState.STOPPED:
            raise RuntimeError("RefreshScheduler has been stopped")
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self.run_forever(), name="folio-refresh")
        logger.info(
            "Refresh scheduler started: interval=%ss, timeout=%ss, concurrency=%d",
            self.interval,
            self.fetch_timeout,
            self.max_concurrency,
        )
        return self._task

    async def stop(self) -> None:
        """
        Stop issuing ticks and abandon in-flight fetches. Nothing is written to the
        store after this returns. Idempotent.
        """
        if self._state is SchedulerState.STOPPED:
            return
        self._state = SchedulerState.STOPPED
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("Refresh scheduler stopped after %d tick(s)", self._tick_count)

    async def __aenter__(self) -> RefreshScheduler:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
