# backend/app/services/insights.py

"""
Insight Detectors
-----------------
Heuristic observations over a dataset snapshot:
- summary         data quality / dataset size
- anomaly         values further than 2 population std devs from the mean
- trend           index-based OLS slope of the first number column over the first date column
- correlation     Pearson r between every pair of number columns
- prediction      three-step linear extrapolation of the trend
- recommendation  follow-up actions derived from missing data and size

Confidences are fixed per detector, not statistically derived. Each
detector is independent; generate_insights() runs a selection of them and
isolates failures so one broken detector never blocks the rest.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from itertools import combinations
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import pandas as pd
from loguru import logger

from ..core.errors import InsufficientData
from ..schemas.dataset import ColumnType
from ..schemas.insight import (
    DEFAULT_INSIGHT_TYPES,
    Insight,
    InsightCategory,
    InsightData,
    InsightType,
    Level,
    Recommendation,
    Severity,
)
from . import stats
from .profiling import count_missing_values
from .snapshot import DatasetSnapshot
from .values import to_py


# ------------------------------------------------------------
# Thresholds
# ------------------------------------------------------------
HIGH_MISSING_PCT = 10.0
CRITICAL_MISSING_PCT = 20.0
LARGE_DATASET_ROWS = 10_000

ANOMALY_MIN_VALUES = 10
ANOMALY_STD_THRESHOLD = 2
ANOMALY_HIGH_PCT = 5.0

TREND_MIN_ROWS = 5
TREND_MIN_SLOPE = 0.1

CORRELATION_MIN_PAIRS = 10
CORRELATION_MIN_ABS_R = 0.7
CORRELATION_SAMPLE_SIZE = 50

PREDICTION_MIN_ROWS = 10
PREDICTION_MIN_SLOPE = 0.05
PREDICTION_STEPS = 3

RECOMMEND_MISSING_PCT = 5.0
RECOMMEND_ANALYTICS_ROWS = 1000


def _rec(action: str, description: str, impact: str, effort: str) -> Recommendation:
    return Recommendation(action=action, description=description, impact=Level(impact), effort=Level(effort))


def _missing_stats(snapshot: DatasetSnapshot) -> Tuple[int, int, float]:
    missing = count_missing_values(snapshot.rows, snapshot.column_names)
    total = snapshot.row_count * snapshot.column_count
    pct = (missing / total * 100.0) if total else 0.0
    return missing, total, pct


def _first_of(snapshot: DatasetSnapshot, column_type: ColumnType) -> Optional[str]:
    cols = snapshot.columns_of_type(column_type)
    return cols[0].name if cols else None


def _ordered_series(snapshot: DatasetSnapshot, minimum: int) -> Tuple[str, str, pd.DataFrame]:
    """
    Rows of (first date column, first number column) with both present,
    stably sorted ascending by date.
    """
    date_col = _first_of(snapshot, ColumnType.DATE)
    value_col = _first_of(snapshot, ColumnType.NUMBER)
    if date_col is None or value_col is None:
        raise InsufficientData("needs a date column and a number column")

    frame = pd.DataFrame({
        "date": snapshot.typed(date_col),
        "value": snapshot.typed(value_col),
        "raw_date": snapshot.raw_values(date_col),
        "raw_value": snapshot.raw_values(value_col),
    })
    frame = frame[frame["date"].notna() & frame["value"].notna()]
    if len(frame) < minimum:
        raise InsufficientData(f"{len(frame)} dated rows, need {minimum}")
    frame = frame.sort_values("date", kind="stable").reset_index(drop=True)
    return date_col, value_col, frame


# ------------------------------------------------------------
# Summary
# ------------------------------------------------------------
def detect_summary(snapshot: DatasetSnapshot) -> List[Insight]:
    insights: List[Insight] = []
    missing, total, pct = _missing_stats(snapshot)

    if pct > HIGH_MISSING_PCT:
        insights.append(Insight(
            type=InsightType.SUMMARY,
            title="High Missing Data Detected",
            description=f"{pct:.1f}% of your data contains missing values. Consider data cleaning strategies.",
            confidence=0.9,
            severity=Severity.HIGH if pct > CRITICAL_MISSING_PCT else Severity.MEDIUM,
            category=InsightCategory.DATA_QUALITY,
            data=InsightData(
                columns=["Missing Values", "Total Values", "Percentage"],
                values=[missing, total, pct],
            ),
            recommendations=[
                _rec("Data Cleaning", "Implement data imputation strategies for missing values", "high", "medium"),
            ],
            tags=["data-quality", "missing-values"],
        ))

    rows = snapshot.row_count
    if rows > LARGE_DATASET_ROWS:
        insights.append(Insight(
            type=InsightType.SUMMARY,
            title="Large Dataset Detected",
            description=f"Your dataset contains {rows:,} rows, which is excellent for robust analysis.",
            confidence=0.95,
            severity=Severity.LOW,
            category=InsightCategory.BUSINESS_INSIGHT,
            data=InsightData(
                columns=["Rows", "Columns", "Total Cells"],
                values=[rows, snapshot.column_count, total],
            ),
            recommendations=[
                _rec("Advanced Analytics", "Consider using machine learning models for deeper insights", "high", "high"),
            ],
            tags=["large-dataset", "analytics-opportunity"],
        ))

    return insights


# ------------------------------------------------------------
# Anomaly
# ------------------------------------------------------------
def find_outliers(values: List[float], threshold: float = ANOMALY_STD_THRESHOLD) -> Tuple[float, List[float]]:
    """Values strictly further than `threshold` population std devs from the mean."""
    mu = stats.mean(values)
    sigma = stats.population_std(values)
    return mu, [v for v in values if abs(v - mu) > threshold * sigma]


def detect_anomalies(snapshot: DatasetSnapshot) -> List[Insight]:
    insights: List[Insight] = []

    for col in snapshot.columns_of_type(ColumnType.NUMBER):
        values = snapshot.typed(col.name).dropna().tolist()
        if len(values) < ANOMALY_MIN_VALUES:
            continue

        mu, outliers = find_outliers(values)
        if not outliers:
            continue

        pct = len(outliers) / len(values) * 100.0
        insights.append(Insight(
            type=InsightType.ANOMALY,
            title=f"Anomalies Detected in {col.name}",
            description=(
                f"Found {len(outliers)} outliers ({pct:.1f}%) in {col.name}. "
                "These may indicate data quality issues or interesting patterns."
            ),
            confidence=0.85,
            severity=Severity.HIGH if pct > ANOMALY_HIGH_PCT else Severity.MEDIUM,
            category=InsightCategory.DATA_QUALITY,
            data=InsightData(
                columns=["Value", "Deviation from Mean"],
                values=[[v, abs(v - mu)] for v in outliers],
            ),
            recommendations=[
                _rec(
                    "Investigate Outliers",
                    "Review these values to determine if they are errors or legitimate anomalies",
                    "medium", "low",
                ),
            ],
            tags=["anomaly", "outliers", col.name.lower()],
        ))

    return insights


# ------------------------------------------------------------
# Trend
# ------------------------------------------------------------
def detect_trends(snapshot: DatasetSnapshot) -> List[Insight]:
    try:
        date_col, value_col, frame = _ordered_series(snapshot, TREND_MIN_ROWS)
    except InsufficientData as exc:
        logger.debug("Trend detector skipped: {}", exc)
        return []

    slope = stats.index_slope(frame["value"].tolist())
    if abs(slope) <= TREND_MIN_SLOPE:
        return []

    direction = "increasing" if slope > 0 else "decreasing"
    return [Insight(
        type=InsightType.TREND,
        title=f"{direction.capitalize()} Trend Detected",
        description=(
            f"{value_col} shows a {direction} trend over time. "
            "This could indicate important business patterns."
        ),
        confidence=0.8,
        severity=Severity.MEDIUM,
        category=InsightCategory.TREND_ANALYSIS,
        data=InsightData(
            columns=[date_col, value_col],
            values=[[to_py(d), to_py(v)] for d, v in zip(frame["raw_date"], frame["raw_value"])],
        ),
        recommendations=[
            _rec("Monitor Trend", "Continue tracking this trend to understand its business impact", "medium", "low"),
        ],
        tags=["trend", "time-series", value_col.lower()],
    )]


# ------------------------------------------------------------
# Correlation
# ------------------------------------------------------------
def detect_correlations(snapshot: DatasetSnapshot) -> List[Insight]:
    insights: List[Insight] = []
    numeric = snapshot.columns_of_type(ColumnType.NUMBER)

    for left, right in combinations(numeric, 2):
        a = snapshot.typed(left.name)
        b = snapshot.typed(right.name)
        paired = a.notna() & b.notna()
        if int(paired.sum()) < CORRELATION_MIN_PAIRS:
            continue

        xs = a[paired].tolist()
        ys = b[paired].tolist()
        r = stats.pearson(xs, ys)
        if r is None or abs(r) <= CORRELATION_MIN_ABS_R:
            continue

        kind = "positive" if r > 0 else "negative"
        insights.append(Insight(
            type=InsightType.CORRELATION,
            title=f"Strong {kind} correlation found",
            description=(
                f"{left.name} and {right.name} have a strong {kind} correlation ({r:.2f}). "
                "This relationship could be valuable for analysis."
            ),
            confidence=0.85,
            severity=Severity.MEDIUM,
            category=InsightCategory.BUSINESS_INSIGHT,
            data=InsightData(
                columns=[left.name, right.name],
                values=[[x, y] for x, y in zip(xs, ys)][:CORRELATION_SAMPLE_SIZE],
            ),
            recommendations=[
                _rec(
                    "Investigate Relationship",
                    "Explore why these variables are correlated and how to leverage this insight",
                    "high", "medium",
                ),
            ],
            tags=["correlation", left.name.lower(), right.name.lower()],
        ))

    return insights


# ------------------------------------------------------------
# Prediction
# ------------------------------------------------------------
def detect_predictions(snapshot: DatasetSnapshot) -> List[Insight]:
    try:
        _, value_col, frame = _ordered_series(snapshot, PREDICTION_MIN_ROWS)
    except InsufficientData as exc:
        logger.debug("Prediction detector skipped: {}", exc)
        return []

    values = frame["value"].tolist()
    slope = stats.index_slope(values)
    if abs(slope) <= PREDICTION_MIN_SLOPE:
        return []

    last_value = values[-1]
    predicted = last_value + slope * PREDICTION_STEPS
    return [Insight(
        type=InsightType.PREDICTION,
        title=f"Prediction for {value_col}",
        description=(
            f"Based on current trends, {value_col} is predicted to be {predicted:.2f} in the next period."
        ),
        confidence=0.7,
        severity=Severity.MEDIUM,
        category=InsightCategory.BUSINESS_INSIGHT,
        data=InsightData(
            columns=["Current Value", "Predicted Value", "Trend"],
            values=[[last_value, predicted, slope]],
        ),
        recommendations=[
            _rec(
                "Validate Prediction",
                "Use this prediction to inform business decisions, but validate with additional data",
                "high", "medium",
            ),
        ],
        tags=["prediction", "forecasting", value_col.lower()],
    )]


# ------------------------------------------------------------
# Recommendation
# ------------------------------------------------------------
def detect_recommendations(snapshot: DatasetSnapshot) -> List[Insight]:
    insights: List[Insight] = []
    missing, _, pct = _missing_stats(snapshot)

    if pct > RECOMMEND_MISSING_PCT:
        insights.append(Insight(
            type=InsightType.RECOMMENDATION,
            title="Improve Data Quality",
            description="Your dataset has missing values that could affect analysis accuracy.",
            confidence=0.9,
            severity=Severity.MEDIUM,
            category=InsightCategory.DATA_QUALITY,
            data=InsightData(columns=["Missing Values", "Percentage"], values=[missing, pct]),
            recommendations=[
                _rec("Data Cleaning", "Implement data validation and cleaning procedures", "high", "medium"),
                _rec("Data Collection", "Improve data collection processes to reduce missing values", "high", "high"),
            ],
            tags=["data-quality", "recommendations"],
        ))

    if snapshot.row_count > RECOMMEND_ANALYTICS_ROWS:
        insights.append(Insight(
            type=InsightType.RECOMMENDATION,
            title="Advanced Analytics Opportunity",
            description="Your dataset size supports advanced analytics and machine learning.",
            confidence=0.8,
            severity=Severity.LOW,
            category=InsightCategory.BUSINESS_INSIGHT,
            data=InsightData(columns=["Dataset Size", "Analytics Level"], values=[snapshot.row_count, "Advanced"]),
            recommendations=[
                _rec("Machine Learning", "Consider implementing ML models for predictive analytics", "high", "high"),
                _rec("Real-time Analytics", "Set up real-time data processing for immediate insights", "medium", "medium"),
            ],
            tags=["advanced-analytics", "machine-learning"],
        ))

    return insights


DETECTORS: Dict[InsightType, Callable[[DatasetSnapshot], List[Insight]]] = {
    InsightType.SUMMARY: detect_summary,
    InsightType.ANOMALY: detect_anomalies,
    InsightType.TREND: detect_trends,
    InsightType.CORRELATION: detect_correlations,
    InsightType.PREDICTION: detect_predictions,
    InsightType.RECOMMENDATION: detect_recommendations,
}


# ------------------------------------------------------------
# Orchestration
# ------------------------------------------------------------
def generate_insights(
    snapshot: DatasetSnapshot,
    types: Optional[Iterable[InsightType]] = None,
    dataset_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> List[Insight]:
    """
    Run the requested detectors in order and concatenate their output.

    A detector that raises is logged and skipped; the others still run.
    """
    requested = [InsightType(t) for t in (types if types is not None else DEFAULT_INSIGHT_TYPES)]
    now = datetime.now(timezone.utc)
    results: List[Insight] = []

    for insight_type in requested:
        detector = DETECTORS[insight_type]
        try:
            found = detector(snapshot)
        except Exception:
            logger.exception("Detector '{}' failed for dataset {}", insight_type.value, dataset_id)
            continue

        for insight in found:
            stamped = insight.model_dump()
            stamped.update(
                id=uuid.uuid4().hex,
                dataset_id=dataset_id,
                user_id=user_id,
                generated_at=now,
                expires_at=None,
                created_at=now,
                updated_at=now,
            )
            results.append(Insight.model_validate(stamped))

    return results
