# backend/tests/test_charts.py
import pytest

from backend.app.core.errors import UnsupportedChartRequest
from backend.app.schemas.dataset import ColumnDescriptor, ColumnType
from backend.app.services.charts import (
    available_chart_types,
    dashboard_charts,
    parse_column_list,
    project,
    to_csv,
)
from backend.app.services.snapshot import build_snapshot


ROWS = [
    {"date": "2024-01-03", "region": "north", "sales": "30", "units": "3"},
    {"date": "2024-01-01", "region": "south", "sales": "10", "units": "1"},
    {"date": "2024-01-02", "region": "north", "sales": "20", "units": "2"},
    {"date": "bad", "region": "", "sales": "x", "units": "4"},
]


def test_bar_counts_categories_with_unknown_bucket():
    result = project(ROWS, "bar", ["region"])
    assert result["columns"] == ["name", "value"]
    assert result["data"] == [
        {"name": "north", "value": 2},
        {"name": "south", "value": 1},
        {"name": "Unknown", "value": 1},
    ]


def test_pie_defaults_to_first_categorical_column():
    result = project(ROWS[:3], "pie")
    assert result["data"][0] == {"name": "north", "value": 2}


def test_pie_caps_at_ten_slices():
    rows = [{"c": f"cat{i}"} for i in range(15)]
    assert len(project(rows, "pie")["data"]) == 10
    assert len(project(rows, "bar")["data"]) == 15


def test_bar_caps_at_twenty_categories():
    rows = [{"c": f"cat{i}"} for i in range(25)]
    data = project(rows, "bar")["data"]
    assert len(data) == 20
    assert data[0] == {"name": "cat0", "value": 1}


def test_line_sorted_by_date_and_skips_unparseable_rows():
    result = project(ROWS, "line", ["date", "sales"])
    assert result["columns"] == ["date", "value"]
    assert [p["date"] for p in result["data"]] == ["2024-01-01", "2024-01-02", "2024-01-03"]
    assert [p["value"] for p in result["data"]] == [10.0, 20.0, 30.0]


def test_line_default_columns():
    result = project(ROWS[:3], "line")
    assert [p["value"] for p in result["data"]] == [10.0, 20.0, 30.0]


def test_area_running_total():
    result = project(ROWS[:3], "area", ["date", "sales"])
    assert [p["cumulative"] for p in result["data"]] == [10.0, 30.0, 60.0]


def test_scatter_pairs_numeric_rows_in_order():
    result = project(ROWS, "scatter", ["units", "sales"])
    assert result["data"] == [
        {"x": 3.0, "y": 30.0},
        {"x": 1.0, "y": 10.0},
        {"x": 2.0, "y": 20.0},
    ]


def test_scatter_requires_two_numeric_columns():
    with pytest.raises(UnsupportedChartRequest):
        project([{"a": "1", "b": "red"}], "scatter")


def test_summary_chart_rounds():
    rows = [{"v": v} for v in [1, 2, 2]]
    (row,) = project(rows, "summary")["data"]
    assert row == {"column": "v", "count": 3, "mean": 1.67, "median": 2.0, "min": 1.0, "max": 2.0, "std": 0.47}


def test_summary_chart_zeroes_non_numeric_column():
    (row,) = project([{"s": "red"}], "summary", ["s"])["data"]
    assert row["count"] == 0 and row["mean"] == 0


def test_limit_applies_before_projection():
    rows = [{"c": "a"}] * 5 + [{"c": "b"}] * 5
    assert project(rows, "bar", limit=5)["data"] == [{"name": "a", "value": 5}]


@pytest.mark.parametrize("kind,columns,limit", [
    ("histogram", None, 100),
    ("bar", ["nope"], 100),
    ("bar", None, 0),
])
def test_rejected_requests(kind, columns, limit):
    with pytest.raises(UnsupportedChartRequest):
        project(ROWS, kind, columns, limit=limit)


def test_line_without_dates_is_rejected():
    with pytest.raises(UnsupportedChartRequest):
        project([{"a": "1"}], "line")


def test_parse_column_list():
    assert parse_column_list(" a, b ,,c ") == ["a", "b", "c"]
    assert parse_column_list("") is None
    assert parse_column_list(None) is None


def test_available_chart_types():
    cols = [
        ColumnDescriptor(name="d", type=ColumnType.DATE),
        ColumnDescriptor(name="n1", type=ColumnType.NUMBER),
        ColumnDescriptor(name="n2", type=ColumnType.NUMBER),
        ColumnDescriptor(name="s", type=ColumnType.STRING),
    ]
    kinds = [o["type"] for o in available_chart_types(cols)]
    assert kinds == ["bar", "line", "pie", "scatter", "area", "summary"]

    only_numeric = available_chart_types([ColumnDescriptor(name="n", type=ColumnType.NUMBER)])
    assert [o["type"] for o in only_numeric] == ["summary"]


def test_dashboard_charts():
    snap = build_snapshot(ROWS[:3])
    charts = dashboard_charts(snap)
    assert [c["type"] for c in charts] == ["summary", "distribution", "trend"]
    assert charts[1]["data"]["columns"] == ["name", "value"]


def test_to_csv_quotes_delimiters():
    text = to_csv([{"name": "a,b", "value": 1}, {"name": "c", "value": 2}])
    assert text == 'name,value\n"a,b",1\nc,2'
    assert to_csv([]) == ""
