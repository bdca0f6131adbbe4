# backend/app/schemas/insight.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class InsightType(str, Enum):
    SUMMARY = "summary"
    ANOMALY = "anomaly"
    TREND = "trend"
    CORRELATION = "correlation"
    PREDICTION = "prediction"
    RECOMMENDATION = "recommendation"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class InsightCategory(str, Enum):
    DATA_QUALITY = "data_quality"
    BUSINESS_INSIGHT = "business_insight"
    PERFORMANCE = "performance"
    SECURITY = "security"
    TREND_ANALYSIS = "trend_analysis"


class Level(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


DEFAULT_INSIGHT_TYPES = [InsightType.SUMMARY, InsightType.ANOMALY, InsightType.TREND]

# Predictions go stale faster than descriptive findings
EXPIRY_DAYS = {InsightType.PREDICTION: 7}
DEFAULT_EXPIRY_DAYS = 30


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Recommendation(BaseModel):
    action: str
    description: str
    impact: Level
    effort: Level


class InsightData(BaseModel):
    columns: List[str] = Field(default_factory=list)
    values: Any = None


class Insight(BaseModel):
    id: Optional[str] = None
    dataset_id: Optional[str] = None
    user_id: Optional[str] = None

    type: InsightType
    title: str = Field(max_length=200)
    description: str = Field(max_length=1000)
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    severity: Severity = Severity.MEDIUM
    category: InsightCategory
    data: InsightData = Field(default_factory=InsightData)
    recommendations: List[Recommendation] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    is_active: bool = True
    generated_at: datetime = Field(default_factory=_utcnow)
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _default_expiry(self) -> "Insight":
        if self.expires_at is None:
            days = EXPIRY_DAYS.get(self.type, DEFAULT_EXPIRY_DAYS)
            self.expires_at = self.generated_at + timedelta(days=days)
        return self

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or _utcnow()) > self.expires_at

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "confidence": self.confidence,
            "severity": self.severity.value,
            "category": self.category.value,
            "generated_at": self.generated_at.isoformat(),
            "is_expired": self.is_expired(),
            "recommendations_count": len(self.recommendations),
        }


class GenerateInsightsRequest(BaseModel):
    types: List[InsightType] = Field(default_factory=lambda: list(DEFAULT_INSIGHT_TYPES))


class InsightUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    tags: Optional[str] = None          # comma-separated
    is_active: Optional[bool] = None
