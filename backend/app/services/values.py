# backend/app/services/values.py
"""
Cell coercion for uploaded rows.

Parsed rows carry loosely typed scalars (CSV gives strings, Excel gives
numbers, datetimes and booleans). Everything downstream reads cells through
these helpers so that "missing", "number", "date" and "boolean" mean the same
thing in schema inference, statistics, detectors and charts.
"""
from __future__ import annotations

import math
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Iterable, List, Optional

import numpy as np
import pandas as pd

from ..schemas.dataset import ColumnType

BOOLEAN_LITERALS = frozenset({"true", "false", "1", "0"})
TRUE_LITERALS = frozenset({"true", "1"})


def is_missing(value: Any) -> bool:
    """None, empty string, NaN and NaT are missing; everything else is present."""
    if value is None or value is pd.NaT:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (float, np.floating)):
        return math.isnan(value)
    return False


def _is_bool(value: Any) -> bool:
    return isinstance(value, (bool, np.bool_))


def to_number(value: Any) -> Optional[float]:
    """Return the finite float a cell represents, or None."""
    if is_missing(value) or _is_bool(value):
        return None
    if isinstance(value, (int, float, np.integer, np.floating)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        # float() accepts digit separators; spreadsheet text never means that
        if not text or "_" in text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


@lru_cache(maxsize=8192)
def _parse_date_text(text: str) -> Optional[pd.Timestamp]:
    parsed = pd.to_datetime(text, errors="coerce")
    if parsed is pd.NaT or not isinstance(parsed, pd.Timestamp):
        return None
    return _as_utc(parsed)


def _as_utc(ts: pd.Timestamp) -> pd.Timestamp:
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


def to_date(value: Any) -> Optional[pd.Timestamp]:
    """Return a UTC timestamp for a cell that reads as a calendar date, or None."""
    if is_missing(value) or _is_bool(value):
        return None
    try:
        if isinstance(value, (datetime, date)):
            return _as_utc(pd.Timestamp(value))
        if isinstance(value, (int, float, np.integer, np.floating)):
            # Numeric cells are epoch milliseconds
            return pd.Timestamp(float(value), unit="ms", tz="UTC")
    except (ValueError, OverflowError):
        return None
    if isinstance(value, str):
        text = value.strip()
        return _parse_date_text(text) if text else None
    return None


def is_boolean_literal(value: Any) -> bool:
    if _is_bool(value):
        return True
    return str(value).lower() in BOOLEAN_LITERALS


def as_text(value: Any) -> str:
    """Render a cell the way it is shown and grouped on (category keys, samples)."""
    if _is_bool(value):
        return "true" if value else "false"
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def to_py(obj: Any) -> Any:
    """Convert numpy/pandas scalars to plain Python types for JSON safety."""
    if isinstance(obj, pd.Timestamp):
        return obj.isoformat()
    if isinstance(obj, (np.generic,)):
        return obj.item()
    if isinstance(obj, float) and not math.isfinite(obj):
        return None
    return obj


def infer_type(values: Iterable[Any]) -> ColumnType:
    """
    Classify a column from all of its values.

    Missing cells are ignored. The first rule every present value satisfies
    wins: number, then date, then boolean; anything else is a string.
    """
    present = [v for v in values if not is_missing(v)]
    if not present:
        return ColumnType.STRING
    if all(to_number(v) is not None for v in present):
        return ColumnType.NUMBER
    if all(to_date(v) is not None for v in present):
        return ColumnType.DATE
    if all(is_boolean_literal(v) for v in present):
        return ColumnType.BOOLEAN
    return ColumnType.STRING


def coerce_column(values: List[Any], column_type: ColumnType) -> pd.Series:
    """Typed view of a column: float, UTC timestamp, bool or text; missing stays missing."""
    if column_type == ColumnType.NUMBER:
        return pd.Series([to_number(v) for v in values], dtype="float64")
    if column_type == ColumnType.DATE:
        return pd.Series([to_date(v) for v in values], dtype="datetime64[ns, UTC]")
    if column_type == ColumnType.BOOLEAN:
        return pd.Series(
            [None if is_missing(v) else (bool(v) if _is_bool(v) else str(v).lower() in TRUE_LITERALS)
             for v in values],
            dtype=object,
        )
    return pd.Series([None if is_missing(v) else as_text(v) for v in values], dtype=object)
