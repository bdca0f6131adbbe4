# backend/tests/test_insights.py
from datetime import timedelta

import pytest

from backend.app.schemas.insight import InsightCategory, InsightType, Severity
from backend.app.services import insights
from backend.app.services.insights import (
    detect_anomalies,
    detect_correlations,
    detect_predictions,
    detect_recommendations,
    detect_summary,
    detect_trends,
    find_outliers,
    generate_insights,
)
from backend.app.services.snapshot import build_snapshot


def _series(values, start_day=1):
    return [{"day": f"2024-01-{start_day + i:02d}", "value": v} for i, v in enumerate(values)]


def _pairs(xs, ys):
    return build_snapshot([{"x": x, "y": y} for x, y in zip(xs, ys)])


# -----------------------------------------------------------
# Summary
# -----------------------------------------------------------
def test_summary_flags_missing_data():
    rows = [{"a": i, "b": "" if i < 3 else "x"} for i in range(10)]
    (insight,) = detect_summary(build_snapshot(rows))

    assert insight.title == "High Missing Data Detected"
    assert insight.severity == Severity.MEDIUM
    assert insight.category == InsightCategory.DATA_QUALITY
    assert insight.data.values == [3, 20, 15.0]
    assert "15.0%" in insight.description


def test_summary_critical_missing_is_high_severity():
    rows = [{"a": "" if i < 5 else i} for i in range(10)]
    (insight,) = detect_summary(build_snapshot(rows))
    assert insight.severity == Severity.HIGH


def test_summary_quiet_on_clean_small_data():
    assert detect_summary(build_snapshot(_series(range(5)))) == []


def test_summary_flags_large_dataset_above_ten_thousand_rows():
    (insight,) = detect_summary(build_snapshot([{"a": i} for i in range(10_001)]))

    assert insight.title == "Large Dataset Detected"
    assert insight.severity == Severity.LOW
    assert insight.category == InsightCategory.BUSINESS_INSIGHT
    assert insight.data.values == [10_001, 1, 10_001]
    assert "10,001 rows" in insight.description


def test_summary_quiet_at_exactly_ten_thousand_rows():
    assert detect_summary(build_snapshot([{"a": i} for i in range(10_000)])) == []


# -----------------------------------------------------------
# Anomaly
# -----------------------------------------------------------
def test_find_outliers_is_strict():
    mu, outliers = find_outliers([-2, 2, 0, 0, 0, 0, 0, 0, -1, 1])
    assert mu == 0.0
    assert outliers == []


def test_anomaly_detected_beyond_two_std():
    snap = build_snapshot([{"v": v} for v in [0] * 9 + [10]])
    (insight,) = detect_anomalies(snap)

    assert insight.type == InsightType.ANOMALY
    assert insight.title == "Anomalies Detected in v"
    assert insight.severity == Severity.HIGH
    assert insight.data.values == [[10.0, 9.0]]
    assert "v" in insight.tags


def test_anomaly_needs_ten_values():
    snap = build_snapshot([{"v": v} for v in [0] * 8 + [100]])
    assert detect_anomalies(snap) == []


# -----------------------------------------------------------
# Trend
# -----------------------------------------------------------
def test_trend_sorts_by_date_before_fitting():
    rows = list(reversed(_series([1, 2, 3, 4, 5, 6])))
    (insight,) = detect_trends(build_snapshot(rows))

    assert insight.title == "Increasing Trend Detected"
    assert insight.data.columns == ["day", "value"]
    assert insight.data.values[0] == ["2024-01-01", 1]
    assert insight.data.values[-1] == ["2024-01-06", 6]


def test_trend_decreasing():
    (insight,) = detect_trends(build_snapshot(_series([50, 40, 30, 20, 10])))
    assert insight.title == "Decreasing Trend Detected"
    assert "decreasing" in insight.description


def test_trend_skips_flat_or_short_series():
    assert detect_trends(build_snapshot(_series([5, 5, 5, 5, 5, 5]))) == []
    assert detect_trends(build_snapshot(_series([1, 2, 3, 4]))) == []


def test_trend_needs_a_date_column():
    snap = build_snapshot([{"value": v} for v in range(10)])
    assert detect_trends(snap) == []


# -----------------------------------------------------------
# Correlation
# -----------------------------------------------------------
def test_correlation_positive_and_negative():
    xs = list(range(1, 11))
    (pos,) = detect_correlations(_pairs(xs, [2 * x for x in xs]))
    assert pos.title == "Strong positive correlation found"
    assert pos.data.columns == ["x", "y"]
    assert len(pos.data.values) == 10

    (neg,) = detect_correlations(_pairs(xs, [-x for x in xs]))
    assert neg.title == "Strong negative correlation found"


def test_correlation_skips_undefined_and_small_samples():
    xs = list(range(1, 11))
    assert detect_correlations(_pairs(xs, [7] * 10)) == []
    assert detect_correlations(_pairs(xs[:9], xs[:9])) == []


def test_correlation_uses_paired_rows_only():
    rows = [{"x": i, "y": 3 * i} for i in range(12)]
    rows[0]["y"] = ""
    rows[1]["x"] = None
    (insight,) = detect_correlations(build_snapshot(rows))
    assert len(insight.data.values) == 10


# -----------------------------------------------------------
# Prediction
# -----------------------------------------------------------
def test_prediction_extrapolates_three_steps():
    snap = build_snapshot(_series([10, 20, 30, 40, 50, 60, 70, 80, 90, 100]))
    (insight,) = detect_predictions(snap)

    current, predicted, slope = insight.data.values[0]
    assert current == 100.0
    assert slope == pytest.approx(10.0)
    assert predicted == pytest.approx(130.0)
    assert "130.00" in insight.description


def test_prediction_needs_ten_rows():
    assert detect_predictions(build_snapshot(_series(range(0, 90, 10)))) == []


# -----------------------------------------------------------
# Recommendation
# -----------------------------------------------------------
def test_recommendations_for_missing_and_size():
    rows = [{"a": "" if i % 10 == 0 else i, "b": i} for i in range(1200)]
    found = detect_recommendations(build_snapshot(rows))
    titles = [i.title for i in found]
    assert titles == ["Advanced Analytics Opportunity"]

    rows = [{"a": "" if i % 5 == 0 else i, "b": i} for i in range(20)]
    (quality,) = detect_recommendations(build_snapshot(rows))
    assert quality.title == "Improve Data Quality"
    assert len(quality.recommendations) == 2


# -----------------------------------------------------------
# Orchestration
# -----------------------------------------------------------
def test_generate_insights_stamps_identity_and_expiry():
    snap = build_snapshot(_series([10, 20, 30, 40, 50, 60, 70, 80, 90, 100]))
    found = generate_insights(
        snap,
        [InsightType.TREND, InsightType.PREDICTION],
        dataset_id="ds_1",
        user_id="alice",
    )

    assert [i.type for i in found] == [InsightType.TREND, InsightType.PREDICTION]
    assert len({i.id for i in found}) == 2
    assert all(i.dataset_id == "ds_1" and i.user_id == "alice" for i in found)

    trend, prediction = found
    assert trend.expires_at - trend.generated_at == timedelta(days=30)
    assert prediction.expires_at - prediction.generated_at == timedelta(days=7)
    assert not prediction.is_expired()


def test_generate_insights_isolates_failing_detector(monkeypatch):
    def broken(snapshot):
        raise RuntimeError("boom")

    monkeypatch.setitem(insights.DETECTORS, InsightType.SUMMARY, broken)
    snap = build_snapshot(_series([1, 2, 3, 4, 5, 6]))

    found = generate_insights(snap)
    assert [i.type for i in found] == [InsightType.TREND]
