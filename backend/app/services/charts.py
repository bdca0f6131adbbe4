# backend/app/services/charts.py

"""
Chart Data Projector
--------------------
Maps dataset rows into the fixed payload shapes the dashboard draws:

    bar / pie   {name, value}             category counts, top 20 / top 10
    line        {date, value}             ascending by date
    scatter     {x, y}                    row order
    area        {date, value, cumulative} ascending by date, running sum
    summary     {column, count, mean, median, min, max, std}

Rows are cut to `limit` BEFORE anything is computed, and default columns are
chosen by probing that same prefix, so a chart only ever reflects the first
`limit` rows of the file.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from ..core.errors import UnsupportedChartRequest
from ..schemas.chart import ChartKind
from ..schemas.dataset import ColumnDescriptor, ColumnType
from . import stats
from .snapshot import DatasetSnapshot
from .values import as_text, is_missing, to_date, to_number

Row = Mapping[str, Any]

INTERACTIVE_LIMIT = 100
EXPORT_LIMIT = 1000

BAR_TOP = 20
PIE_TOP = 10
UNKNOWN_CATEGORY = "Unknown"

CHART_COLUMNS: Dict[ChartKind, List[str]] = {
    ChartKind.BAR: ["name", "value"],
    ChartKind.PIE: ["name", "value"],
    ChartKind.LINE: ["date", "value"],
    ChartKind.SCATTER: ["x", "y"],
    ChartKind.AREA: ["date", "value", "cumulative"],
    ChartKind.SUMMARY: ["column", "count", "mean", "median", "min", "max", "std"],
}


# ------------------------------------------------------------
# Column probing over the limited slice
# ------------------------------------------------------------
def _present(rows: Sequence[Row], key: str) -> List[Any]:
    return [row.get(key) for row in rows if not is_missing(row.get(key))]


def _is_numeric_key(rows: Sequence[Row], key: str) -> bool:
    values = _present(rows, key)
    return bool(values) and all(to_number(v) is not None for v in values)


def _is_date_key(rows: Sequence[Row], key: str) -> bool:
    values = _present(rows, key)
    return bool(values) and all(to_date(v) is not None for v in values)


def classify_keys(rows: Sequence[Row]) -> Tuple[List[str], List[str], List[str]]:
    """Split the slice's keys into (numeric, date, categorical), each in column order."""
    numeric: List[str] = []
    dates: List[str] = []
    categorical: List[str] = []
    if not rows:
        return numeric, dates, categorical

    for key in rows[0].keys():
        if not _present(rows, key):
            continue
        if _is_numeric_key(rows, key):
            numeric.append(key)
        elif _is_date_key(rows, key):
            dates.append(key)
        else:
            categorical.append(key)
    return numeric, dates, categorical


# ------------------------------------------------------------
# Builders
# ------------------------------------------------------------
def _category_counts(rows: Sequence[Row], columns: List[str], top: int, label: str) -> Dict[str, Any]:
    if not columns:
        _, _, categorical = classify_keys(rows)
        if not categorical:
            raise UnsupportedChartRequest(f"No suitable categorical columns found for {label} chart")
        columns = [categorical[0]]

    column = columns[0]
    counts = Counter(
        UNKNOWN_CATEGORY if is_missing(row.get(column)) else as_text(row.get(column))
        for row in rows
    )
    return {"data": [{"name": name, "value": count} for name, count in counts.most_common(top)]}


def _bar(rows: Sequence[Row], columns: List[str]) -> Dict[str, Any]:
    return _category_counts(rows, columns, BAR_TOP, "bar")


def _pie(rows: Sequence[Row], columns: List[str]) -> Dict[str, Any]:
    return _category_counts(rows, columns, PIE_TOP, "pie")


def _time_columns(rows: Sequence[Row], columns: List[str], label: str) -> Tuple[str, str]:
    if len(columns) >= 2:
        return columns[0], columns[1]
    numeric, dates, _ = classify_keys(rows)
    if not dates or not numeric:
        raise UnsupportedChartRequest(
            f"{label} chart requires at least one date column and one numeric column"
        )
    return dates[0], numeric[0]


def _dated_points(rows: Sequence[Row], date_col: str, value_col: str) -> List[Tuple[Any, Any, float]]:
    points = []
    for row in rows:
        when = to_date(row.get(date_col))
        value = to_number(row.get(value_col))
        if when is None or value is None:
            continue
        points.append((when, row.get(date_col), value))
    # sorted() is stable: equal dates keep row order
    return sorted(points, key=lambda p: p[0])


def _line(rows: Sequence[Row], columns: List[str]) -> Dict[str, Any]:
    date_col, value_col = _time_columns(rows, columns, "Line")
    return {"data": [
        {"date": as_text(raw), "value": value}
        for _, raw, value in _dated_points(rows, date_col, value_col)
    ]}


def _area(rows: Sequence[Row], columns: List[str]) -> Dict[str, Any]:
    date_col, value_col = _time_columns(rows, columns, "Area")
    data = []
    cumulative = 0.0
    for _, raw, value in _dated_points(rows, date_col, value_col):
        cumulative += value
        data.append({"date": as_text(raw), "value": value, "cumulative": cumulative})
    return {"data": data}


def _scatter(rows: Sequence[Row], columns: List[str]) -> Dict[str, Any]:
    if len(columns) < 2:
        numeric, _, _ = classify_keys(rows)
        if len(numeric) < 2:
            raise UnsupportedChartRequest("Scatter chart requires at least two numeric columns")
        columns = numeric[:2]

    x_col, y_col = columns[0], columns[1]
    data = []
    for row in rows:
        x = to_number(row.get(x_col))
        y = to_number(row.get(y_col))
        if x is None or y is None:
            continue
        data.append({"x": x, "y": y})
    return {"data": data}


def summarize_column(rows: Sequence[Row], column: str) -> Dict[str, Any]:
    values = [v for v in (to_number(row.get(column)) for row in rows) if v is not None]
    if not values:
        return {"column": column, "count": 0, "mean": 0, "median": 0, "min": 0, "max": 0, "std": 0}
    return {
        "column": column,
        "count": len(values),
        "mean": round(stats.mean(values), 2),
        "median": round(stats.median(values), 2),
        "min": min(values),
        "max": max(values),
        "std": round(stats.population_std(values), 2),
    }


def _summary(rows: Sequence[Row], columns: List[str]) -> Dict[str, Any]:
    if not columns:
        numeric, _, _ = classify_keys(rows)
        if not numeric:
            raise UnsupportedChartRequest("No numeric columns found for summary statistics")
        columns = numeric
    return {"data": [summarize_column(rows, column) for column in columns]}


_BUILDERS: Dict[ChartKind, Callable[[Sequence[Row], List[str]], Dict[str, Any]]] = {
    ChartKind.BAR: _bar,
    ChartKind.PIE: _pie,
    ChartKind.LINE: _line,
    ChartKind.SCATTER: _scatter,
    ChartKind.AREA: _area,
    ChartKind.SUMMARY: _summary,
}


# ------------------------------------------------------------
# Public API
# ------------------------------------------------------------
def parse_column_list(columns: Optional[str]) -> Optional[List[str]]:
    """Split a comma-separated query value; blank means 'let the projector choose'."""
    if not columns:
        return None
    names = [c.strip() for c in columns.split(",") if c.strip()]
    return names or None


def project(
    rows: Sequence[Row],
    chart_kind: str,
    requested_columns: Optional[Sequence[str]] = None,
    limit: int = INTERACTIVE_LIMIT,
) -> Dict[str, Any]:
    """Build a {columns, data} chart payload from the first `limit` rows."""
    try:
        kind = ChartKind(chart_kind)
    except ValueError:
        raise UnsupportedChartRequest(f"Unsupported chart type: {chart_kind}")
    if limit < 1:
        raise UnsupportedChartRequest("limit must be a positive integer")

    limited = list(rows[:limit])
    columns = list(requested_columns or [])

    if columns and limited:
        known = set(limited[0].keys())
        unknown = [c for c in columns if c not in known]
        if unknown:
            raise UnsupportedChartRequest(f"Unknown column(s): {', '.join(unknown)}")

    payload = _BUILDERS[kind](limited, columns)
    return {"columns": list(CHART_COLUMNS[kind]), "data": payload["data"]}


def available_chart_types(columns: Sequence[ColumnDescriptor]) -> List[Dict[str, Any]]:
    """Chart kinds a dataset can draw, judged from its inferred column types."""
    numeric = [c.name for c in columns if c.type == ColumnType.NUMBER]
    categorical = [c.name for c in columns if c.type == ColumnType.STRING]
    dates = [c.name for c in columns if c.type == ColumnType.DATE]

    options: List[Dict[str, Any]] = []

    def add(kind: ChartKind, name: str, description: str, suitable: List[str]):
        options.append({
            "type": kind.value,
            "name": name,
            "description": description,
            "suitable_columns": suitable,
        })

    if categorical:
        add(ChartKind.BAR, "Bar Chart", "Compare categories", categorical)
    if numeric and dates:
        add(ChartKind.LINE, "Line Chart", "Show trends over time", numeric)
    if categorical:
        add(ChartKind.PIE, "Pie Chart", "Show proportions", categorical)
    if len(numeric) >= 2:
        add(ChartKind.SCATTER, "Scatter Plot", "Show correlation between variables", numeric)
    if numeric and dates:
        add(ChartKind.AREA, "Area Chart", "Show cumulative data", numeric)
    if numeric:
        add(ChartKind.SUMMARY, "Summary Statistics", "Show statistical summary", numeric)

    return options


def dashboard_charts(snapshot: DatasetSnapshot) -> List[Dict[str, Any]]:
    """Summary, distribution and trend charts picked from the inferred schema."""
    charts: List[Dict[str, Any]] = []
    numeric = [c.name for c in snapshot.columns_of_type(ColumnType.NUMBER)]
    categorical = [c.name for c in snapshot.columns_of_type(ColumnType.STRING)]
    dates = [c.name for c in snapshot.columns_of_type(ColumnType.DATE)]

    if numeric:
        charts.append({
            "type": "summary",
            "title": "Summary Statistics",
            "data": project(snapshot.rows, ChartKind.SUMMARY.value, numeric, limit=10),
        })
    if categorical:
        charts.append({
            "type": "distribution",
            "title": "Data Distribution",
            "data": project(snapshot.rows, ChartKind.PIE.value, [categorical[0]], limit=10),
        })
    if dates and numeric:
        charts.append({
            "type": "trend",
            "title": "Trend Analysis",
            "data": project(snapshot.rows, ChartKind.LINE.value, [dates[0], numeric[0]], limit=50),
        })
    return charts


def to_csv(records: Sequence[Mapping[str, Any]], delimiter: str = ",") -> str:
    """
    Delimited-text export: header of the first record's keys, one line per
    record, values containing the delimiter quoted.
    """
    if not records:
        return ""
    header = list(records[0].keys())
    frame = pd.DataFrame.from_records(list(records), columns=header)
    return frame.to_csv(index=False, sep=delimiter, lineterminator="\n").rstrip("\n")
