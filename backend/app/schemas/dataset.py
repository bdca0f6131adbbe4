# backend/app/schemas/dataset.py
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ColumnType(str, Enum):
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    STRING = "string"


class DatasetStatus(str, Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class ColumnDescriptor(BaseModel):
    name: str
    type: ColumnType
    sample_values: List[str] = Field(default_factory=list)


class NumericColumnStats(BaseModel):
    column: str
    mean: float
    median: float
    min: float
    max: float
    std: float


class TopValue(BaseModel):
    value: str
    count: int


class CategoricalColumnStats(BaseModel):
    column: str
    unique_values: int
    top_values: List[TopValue]


class DatasetStatistics(BaseModel):
    total_rows: int
    total_columns: int
    missing_values: int
    duplicate_rows: int
    numeric_columns: List[NumericColumnStats]
    categorical_columns: List[CategoricalColumnStats]


class DatasetPreview(BaseModel):
    rows: int
    cols: int
    columns: List[ColumnDescriptor]
    data: List[Dict[str, Any]]


class DatasetUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    tags: Optional[str] = None          # comma-separated
    is_public: Optional[bool] = None
