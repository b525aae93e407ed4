"""
Holding: one owned position. Immutable; derived metrics are computed on access.

Holdings are validated on construction, so an invalid one never exists.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Mapping

from folio_core.errors import ValidationError
from folio_core.metrics import HoldingMetrics, compute_holding_metrics, safe_ratio

UNCLASSIFIED = "Unclassified"

# Normalised key (lowercase, alphanumerics only) -> Holding field
FIELD_ALIASES: dict[str, str] = {
    "name": "name",
    "stock": "name",
    "stockname": "name",
    "particulars": "name",
    "quantity": "quantity",
    "qty": "quantity",
    "shares": "quantity",
    "purchaseprice": "purchase_price",
    "buyprice": "purchase_price",
    "avgprice": "purchase_price",
    "costbasis": "purchase_price",
    "currentprice": "current_price",
    "cmp": "current_price",
    "lastprice": "current_price",
    "peratio": "pe_ratio",
    "pe": "pe_ratio",
    "pettm": "pe_ratio",
    "earnings": "earnings",
    "eps": "earnings",
    "latestearnings": "earnings",
    "sector": "sector",
    "symbol": "symbol",
    "ticker": "symbol",
    "exchange": "symbol",
    "nsebse": "symbol",
}


def normalize_key(key: object) -> str:
    """'Purchase Price' / 'purchase_price' / 'purchasePrice' -> 'purchaseprice'."""
    return re.sub(r"[^a-z0-9]", "", str(key).lower())


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def to_optional_float(value: Any, field: str, name: str | None = None) -> float | None:
    """Coerce to float; blank values (None, NaN, '') become None."""
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be numeric, got {value!r}", field=field, name=name)
    try:
        out = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be numeric, got {value!r}", field=field, name=name) from None
    if not math.isfinite(out):
        raise ValidationError(f"{field} must be finite, got {value!r}", field=field, name=name)
    return out


def _to_symbol(value: Any) -> str | None:
    if _is_blank(value):
        return None
    # Exchange codes often arrive as numbers (e.g. BSE scrip codes read from a sheet).
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


@dataclass(frozen=True)
class Holding:
    """
    One position in the portfolio.

    current_price defaults to purchase_price when the initial load has no price.
    symbol is the identifier used for live quote lookups; name is used when absent.
    """

    name: str
    quantity: int
    purchase_price: float
    current_price: float | None = None
    sector: str = UNCLASSIFIED
    symbol: str | None = None
    pe_ratio: float | None = None
    earnings: float | None = None

    def __post_init__(self) -> None:
        name = str(self.name).strip() if not _is_blank(self.name) else ""
        if not name:
            raise ValidationError("holding name must not be empty", field="name")
        object.__setattr__(self, "name", name)

        qty = to_optional_float(self.quantity, "quantity", name)
        if qty is None or not qty.is_integer():
            raise ValidationError(f"quantity must be a whole number, got {self.quantity!r}", field="quantity", name=name)
        if qty < 0:
            raise ValidationError(f"quantity must be >= 0, got {self.quantity!r}", field="quantity", name=name)
        object.__setattr__(self, "quantity", int(qty))

        purchase_price = to_optional_float(self.purchase_price, "purchase_price", name)
        if purchase_price is None or purchase_price <= 0:
            raise ValidationError(
                f"purchase_price must be > 0, got {self.purchase_price!r}", field="purchase_price", name=name
            )
        object.__setattr__(self, "purchase_price", purchase_price)

        current_price = to_optional_float(self.current_price, "current_price", name)
        if current_price is None:
            current_price = purchase_price
        if current_price < 0:
            raise ValidationError(
                f"current_price must be >= 0, got {self.current_price!r}", field="current_price", name=name
            )
        object.__setattr__(self, "current_price", current_price)

        sector = self.sector
        object.__setattr__(self, "sector", UNCLASSIFIED if _is_blank(sector) else str(sector).strip())
        object.__setattr__(self, "symbol", _to_symbol(self.symbol))
        object.__setattr__(self, "pe_ratio", to_optional_float(self.pe_ratio, "pe_ratio", name))
        object.__setattr__(self, "earnings", to_optional_float(self.earnings, "earnings", name))

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> Holding:
        """
        Build a Holding from a loose mapping (JSON payload, spreadsheet row).

        Keys are matched case- and punctuation-insensitively against FIELD_ALIASES,
        so 'qty', 'purchasePrice', 'CMP', 'P/E' and 'exchange' are all accepted.
        Unknown keys (including derived values such as 'investment') are ignored.
        """
        kwargs: dict[str, Any] = {}
        for key, value in raw.items():
            field = FIELD_ALIASES.get(normalize_key(key))
            if field is not None and field not in kwargs:
                kwargs[field] = value
        for required in ("name", "quantity", "purchase_price"):
            if required not in kwargs:
                raise ValidationError(f"missing required field {required!r}", field=required, name=kwargs.get("name"))
        return cls(**kwargs)

    @property
    def lookup_symbol(self) -> str:
        """Identifier passed to the quote provider."""
        return self.symbol or self.name

    @property
    def metrics(self) -> HoldingMetrics:
        return compute_holding_metrics(self.quantity, self.purchase_price, self.current_price)

    @property
    def investment(self) -> float:
        return self.metrics.investment

    @property
    def present_value(self) -> float:
        return self.metrics.present_value

    @property
    def gain_loss(self) -> float:
        return self.metrics.gain_loss

    @property
    def gain_loss_pct(self) -> float:
        """Gain/loss as a fraction of investment (0 when nothing is invested)."""
        return safe_ratio(self.gain_loss, self.investment)

    @property
    def price_change_pct(self) -> float:
        """Move of current_price from purchase_price, as a fraction. Independent of quantity."""
        return safe_ratio(self.current_price - self.purchase_price, self.purchase_price)
