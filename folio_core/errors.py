"""
Error taxonomy for the valuation and refresh engine.

Only ValidationError is meant to reach callers as a hard failure. FetchError is
raised by quote providers and absorbed per holding by the refresh scheduler.
"""

from __future__ import annotations


class FolioError(Exception):
    """Base class for all folio_core errors."""


class ValidationError(FolioError, ValueError):
    """Malformed holding or price input. Nothing is published when raised."""

    def __init__(self, message: str, *, field: str | None = None, name: str | None = None) -> None:
        super().__init__(message)
        self.field = field
        self.name = name


class FetchError(FolioError):
    """A quote provider could not deliver data for one symbol."""

    def __init__(self, symbol: str, reason: str) -> None:
        super().__init__(f"{symbol}: {reason}")
        self.symbol = symbol
        self.reason = reason


class StoreClosedError(FolioError):
    """Write attempted on a PortfolioStore after close()."""
