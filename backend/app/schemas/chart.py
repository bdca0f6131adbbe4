# backend/app/schemas/chart.py
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List
from pydantic import BaseModel


class ChartKind(str, Enum):
    BAR = "bar"
    PIE = "pie"
    LINE = "line"
    SCATTER = "scatter"
    AREA = "area"
    SUMMARY = "summary"


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


class ChartPayload(BaseModel):
    columns: List[str]
    data: List[Dict[str, Any]]


class ChartOption(BaseModel):
    type: ChartKind
    name: str
    description: str
    suitable_columns: List[str]


class DashboardChart(BaseModel):
    type: str
    title: str
    data: ChartPayload
