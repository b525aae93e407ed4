"""
Load the starting portfolio from CSV, a DataFrame, or a list of records.

Column names are normalised (case, spaces and punctuation ignored) and common
aliases are mapped to Holding fields: qty -> quantity, 'Purchase Price' ->
purchase_price, CMP -> current_price, 'P/E' -> pe_ratio, exchange -> symbol.
Columns that do not map to a field (e.g. precomputed investment) are dropped;
derived values are always recomputed from the raw inputs.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

import pandas as pd

from folio_core.errors import ValidationError
from folio_core.holding import FIELD_ALIASES, Holding, normalize_key

logger = logging.getLogger(__name__)

REQUIRED = ("name", "quantity", "purchase_price")


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename known aliases to Holding field names; drop everything else."""
    renames: dict[Any, str] = {}
    for col in df.columns:
        field = FIELD_ALIASES.get(normalize_key(col))
        if field is not None and field not in renames.values():
            renames[col] = field
    out = df[list(renames)].rename(columns=renames)
    missing = [c for c in REQUIRED if c not in out.columns]
    if missing:
        raise ValidationError(f"portfolio data is missing required column(s): {', '.join(missing)}")
    return out


def _row_to_holding(position: int, row: Mapping[str, Any]) -> Holding:
    try:
        return Holding(**row)
    except ValidationError as e:
        raise ValidationError(f"row {position}: {e}", field=e.field, name=e.name) from e


def load_dataframe(df: pd.DataFrame) -> list[Holding]:
    """
    Convert a DataFrame with one row per position into Holdings.

    Parameters
    ----------
    df : pd.DataFrame
        Raw positions; column names may be mixed case or aliased.

    Returns
    -------
    list[Holding]
        In row order. Fully blank rows (e.g. spreadsheet padding) are skipped.
    """
    out = _normalize_columns(df).dropna(how="all")
    out = out.astype(object).where(out.notna(), None)
    holdings = [_row_to_holding(i + 1, row) for i, row in enumerate(out.to_dict(orient="records"))]
    logger.debug("Loaded %d holdings from %d rows", len(holdings), len(df))
    return holdings


def load_csv(path: str | Path, **read_csv_kwargs: Any) -> list[Holding]:
    """
    Load positions from a CSV file.

    Parameters
    ----------
    path : str or Path
        Path to the CSV file.
    **read_csv_kwargs
        Passed through to pandas.read_csv (e.g. sep, encoding).
    """
    df = pd.read_csv(path, **read_csv_kwargs)
    logger.info("Read %d rows from %s", len(df), path)
    return load_dataframe(df)


def load_records(records: Iterable[Mapping[str, Any]]) -> list[Holding]:
    """
    Convert JSON-style records into Holdings.

    Accepts either a list of position mappings or the provider payload
    {"portfolio": [...], "sectors": [...]}; sector summaries in the payload are
    ignored and recomputed.
    """
    if isinstance(records, Mapping):
        records = records.get("portfolio", [])
    return [Holding.from_raw(r) for r in records]
