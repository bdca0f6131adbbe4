from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
from pandas.errors import EmptyDataError

from ..core.errors import EmptyDataset, UnsupportedFileType
from ..services.values import is_missing

SUPPORTED_TYPES = ("csv", "xlsx", "xls")


def file_type_of(filename: str) -> str:
    """Lower-case extension without the dot; raises for anything we can't read."""
    ext = Path(filename or "").suffix.lower().lstrip(".")
    if ext not in SUPPORTED_TYPES:
        raise UnsupportedFileType(ext)
    return ext


def _cell(value: Any) -> Any:
    if is_missing(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if hasattr(value, "item") and not isinstance(value, datetime):
        return value.item()
    return value


def read_rows(path: str, file_type: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Decode a CSV or Excel file into a list of flat records.

    CSV cells stay text (an empty cell is ""), Excel cells keep the type the
    workbook stores, with blanks as None. Only the first worksheet is read.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Dataset file not found: {path}")
    kind = (file_type or p.suffix.lstrip(".")).lower()

    if kind == "csv":
        try:
            df = pd.read_csv(p, dtype=str, keep_default_na=False, encoding="utf-8-sig")
        except EmptyDataError:
            raise EmptyDataset()
        df.columns = [str(c) for c in df.columns]
        rows = df.to_dict(orient="records")
    elif kind in ("xlsx", "xls"):
        df = pd.read_excel(p, sheet_name=0)
        if df.empty:
            raise EmptyDataset("Excel file must have at least a header row and one data row")
        df.columns = [str(c) for c in df.columns]
        rows = [
            {key: _cell(value) for key, value in record.items()}
            for record in df.to_dict(orient="records")
        ]
    else:
        raise UnsupportedFileType(kind)

    if not rows:
        raise EmptyDataset()
    return rows
