# backend/app/services/snapshot.py
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from ..core.errors import EmptyDataset
from ..schemas.dataset import ColumnDescriptor, ColumnType
from .schema_inference import infer_schema
from .values import coerce_column


@dataclass(frozen=True)
class DatasetSnapshot:
    """
    Parsed-and-typed view of one dataset file.

    Produced once per processing run and never mutated afterwards; typed
    column views are derived lazily and memoised.
    """

    rows: Tuple[Mapping[str, Any], ...]
    columns: Tuple[ColumnDescriptor, ...]
    fingerprint: str = ""
    _typed: Dict[str, pd.Series] = field(default_factory=dict, repr=False, compare=False)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def column(self, name: str) -> Optional[ColumnDescriptor]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def columns_of_type(self, column_type: ColumnType) -> List[ColumnDescriptor]:
        return [c for c in self.columns if c.type == column_type]

    def raw_values(self, name: str) -> List[Any]:
        return [row.get(name) for row in self.rows]

    def typed(self, name: str) -> pd.Series:
        """Column values coerced to the column's inferred type (positionally aligned with rows)."""
        series = self._typed.get(name)
        if series is None:
            descriptor = self.column(name)
            if descriptor is None:
                raise KeyError(f"Unknown column: {name}")
            series = coerce_column(self.raw_values(name), descriptor.type)
            self._typed[name] = series
        return series


def rows_fingerprint(rows: Sequence[Mapping[str, Any]]) -> str:
    digest = hashlib.sha256()
    for row in rows:
        digest.update(json.dumps(row, default=str).encode("utf-8"))
        digest.update(b"\n")
    return digest.hexdigest()


def build_snapshot(rows: Sequence[Mapping[str, Any]], fingerprint: Optional[str] = None) -> DatasetSnapshot:
    if not rows:
        raise EmptyDataset()
    columns = infer_schema(rows)
    return DatasetSnapshot(
        rows=tuple(rows),
        columns=tuple(columns),
        fingerprint=fingerprint or rows_fingerprint(rows),
    )
