"""
Refresh-layer types: scheduler state, per-holding fetch failure, tick report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class SchedulerState(Enum):
    """Lifecycle of a RefreshScheduler. IDLE -> TICK_IN_FLIGHT -> IDLE until STOPPED."""

    IDLE = "idle"
    TICK_IN_FLIGHT = "tick_in_flight"
    STOPPED = "stopped"


@dataclass(frozen=True)
class FetchFailure:
    """One holding whose live data could not be fetched or merged during a tick."""

    name: str
    symbol: str
    reason: str
    timestamp: datetime
    tick: int = 0


@dataclass
class TickReport:
    """
    Outcome of one refresh tick. updated/missed hold holding names; failures keep
    the reason per holding. A skipped report means no fan-out happened.
    """

    tick: int
    started_at: datetime
    finished_at: datetime | None = None
    updated: list[str] = field(default_factory=list)
    failures: list[FetchFailure] = field(default_factory=list)
    missed: list[str] = field(default_factory=list)
    skipped: bool = False
    snapshot_version: int | None = None

    @property
    def failed(self) -> list[str]:
        return [f.name for f in self.failures]

    @property
    def ok(self) -> bool:
        """True when the tick ran and every holding was refreshed."""
        return not self.skipped and not self.failures

    @property
    def partial(self) -> bool:
        """True when some holdings refreshed and some failed."""
        return bool(self.updated) and bool(self.failures)
