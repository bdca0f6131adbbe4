# backend/app/services/schema_inference.py
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

from ..core.errors import EmptyDataset
from ..schemas.dataset import ColumnDescriptor
from .values import as_text, infer_type, is_missing

SAMPLE_SIZE = 5

Row = Mapping[str, Any]


def column_names(rows: Sequence[Row]) -> List[str]:
    """Column order comes from the first row; rows are assumed to share keys."""
    if not rows:
        return []
    return [str(k) for k in rows[0].keys()]


def sample_values(values: Sequence[Any], count: int = SAMPLE_SIZE) -> List[str]:
    """First `count` distinct non-missing values, in row order."""
    seen: Dict[str, None] = {}
    for value in values:
        if is_missing(value):
            continue
        seen.setdefault(as_text(value), None)
        if len(seen) >= count:
            break
    return list(seen)


def infer_schema(rows: Sequence[Row]) -> List[ColumnDescriptor]:
    """Infer one ColumnDescriptor per column, classifying each column from all of its rows."""
    if not rows:
        raise EmptyDataset()

    descriptors: List[ColumnDescriptor] = []
    for name in column_names(rows):
        values = [row.get(name) for row in rows]
        descriptors.append(
            ColumnDescriptor(
                name=name,
                type=infer_type(values),
                sample_values=sample_values(values),
            )
        )
    return descriptors
