# backend/app/services/profiling.py
"""
Descriptive statistics for a parsed dataset.

- Counts missing cells and exact duplicate rows.
- Summarises number columns (mean / median / min / max / population std).
- Summarises string columns (distinct count, top values by frequency).
- Returns JSON-ready dictionaries (validated by Pydantic in routers).
"""
from __future__ import annotations

import json
from collections import Counter
from typing import Any, Dict, List, Mapping, Sequence

from ..schemas.dataset import ColumnDescriptor, ColumnType
from . import stats
from .schema_inference import column_names
from .snapshot import DatasetSnapshot
from .values import coerce_column, is_missing, to_py

TOP_VALUES = 5

Row = Mapping[str, Any]


def count_missing_values(rows: Sequence[Row], names: Sequence[str]) -> int:
    """Missing cells over every row x every column."""
    return sum(1 for row in rows for name in names if is_missing(row.get(name)))


def count_duplicate_rows(rows: Sequence[Row]) -> int:
    """Rows whose serialised content matches an earlier row; first occurrences don't count."""
    seen = set()
    duplicates = 0
    for row in rows:
        key = json.dumps(row, default=str)
        if key in seen:
            duplicates += 1
        else:
            seen.add(key)
    return duplicates


def _numeric_summary(name: str, values: List[float]) -> Dict[str, Any]:
    return {
        "column": name,
        "mean": stats.mean(values),
        "median": stats.median(values),
        "min": float(min(values)),
        "max": float(max(values)),
        "std": stats.population_std(values),
    }


def _categorical_summary(name: str, values: List[str]) -> Dict[str, Any]:
    # Counter keeps first-seen order and most_common() sorts stably,
    # so ties stay in encounter order.
    counts = Counter(values)
    return {
        "column": name,
        "unique_values": len(counts),
        "top_values": [
            {"value": value, "count": count}
            for value, count in counts.most_common(TOP_VALUES)
        ],
    }


def compute_statistics(rows: Sequence[Row], columns: Sequence[ColumnDescriptor]) -> Dict[str, Any]:
    """Compute the dataset summary; a pure function of rows and their column descriptors."""
    names = [c.name for c in columns] or column_names(rows)

    numeric_columns: List[Dict[str, Any]] = []
    categorical_columns: List[Dict[str, Any]] = []

    for col in columns:
        raw = [row.get(col.name) for row in rows]
        if col.type == ColumnType.NUMBER:
            values = coerce_column(raw, col.type).dropna().tolist()
            if values:
                numeric_columns.append(_numeric_summary(col.name, values))
        elif col.type == ColumnType.STRING:
            values = coerce_column(raw, col.type).dropna().tolist()
            if values:
                categorical_columns.append(_categorical_summary(col.name, values))

    return {
        "total_rows": len(rows),
        "total_columns": len(columns),
        "missing_values": count_missing_values(rows, names),
        "duplicate_rows": count_duplicate_rows(rows),
        "numeric_columns": numeric_columns,
        "categorical_columns": categorical_columns,
    }


def snapshot_statistics(snapshot: DatasetSnapshot) -> Dict[str, Any]:
    return compute_statistics(snapshot.rows, snapshot.columns)


def build_preview(snapshot: DatasetSnapshot, n: int = 10) -> Dict[str, Any]:
    """Return preview JSON: first N rows (records), inferred columns and shape."""
    n = max(1, int(n))
    records = [
        {key: (None if is_missing(value) else to_py(value)) for key, value in row.items()}
        for row in snapshot.rows[:n]
    ]
    return {
        "rows": snapshot.row_count,
        "cols": snapshot.column_count,
        "columns": [c.model_dump(mode="json") for c in snapshot.columns],
        "data": records,
    }
