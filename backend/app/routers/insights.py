# backend/app/routers/insights.py
from __future__ import annotations

from collections import defaultdict
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

from ..core.dependencies import get_user_id
from ..schemas.base import APIResponse
from ..schemas.insight import GenerateInsightsRequest, InsightCategory, InsightType, InsightUpdateRequest
from ..services import processing, registry
from .common import require_dataset, split_tags

router = APIRouter(tags=["insights"])

NOT_READY_FOR_ANALYSIS = "Dataset not found or not ready for analysis"
INSIGHT_NOT_FOUND = "Insight not found"
RECENT_COUNT = 5


@router.get("/{dataset_id}", response_model=APIResponse)
def list_insights(
    dataset_id: str,
    type: Optional[InsightType] = None,
    category: Optional[InsightCategory] = None,
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_user_id),
) -> APIResponse:
    """Active insights for a dataset, newest first."""
    require_dataset(dataset_id, user_id)
    found = registry.list_insights(
        dataset_id,
        user_id,
        insight_type=type.value if type else None,
        category=category.value if category else None,
        limit=limit,
    )
    return APIResponse(data=found, metadata={"count": len(found)})


@router.post("/{dataset_id}/generate", status_code=202, response_model=APIResponse)
def generate(
    dataset_id: str,
    background_tasks: BackgroundTasks,
    body: Optional[GenerateInsightsRequest] = None,
    user_id: str = Depends(get_user_id),
) -> APIResponse:
    """
    Queue the requested detectors (summary, anomaly and trend by default).
    """
    require_dataset(dataset_id, user_id, ready=True, not_ready_message=NOT_READY_FOR_ANALYSIS)
    types = (body or GenerateInsightsRequest()).types
    background_tasks.add_task(processing.run_insight_generation, dataset_id, user_id, types)
    return APIResponse(
        message="Insight generation started",
        data={"dataset_id": dataset_id, "requested_types": [t.value for t in types]},
    )


@router.get("/{dataset_id}/summary", response_model=APIResponse)
def insights_summary(dataset_id: str, user_id: str = Depends(get_user_id)) -> APIResponse:
    """Per-type counts and mean confidence, plus the most recent insights."""
    require_dataset(dataset_id, user_id)
    active = registry.list_insights(dataset_id, user_id)

    grouped = defaultdict(list)
    for entry in active:
        grouped[entry["type"]].append(float(entry.get("confidence", 0.0)))

    by_type = [
        {"type": t, "count": len(conf), "avg_confidence": round(sum(conf) / len(conf), 3)}
        for t, conf in sorted(grouped.items())
    ]
    recent = [
        {k: e.get(k) for k in ("id", "title", "type", "confidence", "created_at")}
        for e in active[:RECENT_COUNT]
    ]
    return APIResponse(data={
        "total_insights": len(active),
        "by_type": by_type,
        "recent_insights": recent,
    })


@router.get("/{dataset_id}/{insight_id}", response_model=APIResponse)
def get_insight(dataset_id: str, insight_id: str, user_id: str = Depends(get_user_id)) -> APIResponse:
    entry = registry.get_insight(dataset_id, insight_id, user_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=INSIGHT_NOT_FOUND)
    return APIResponse(data=entry)


@router.put("/{dataset_id}/{insight_id}", response_model=APIResponse)
def update_insight(
    dataset_id: str,
    insight_id: str,
    body: InsightUpdateRequest,
    user_id: str = Depends(get_user_id),
) -> APIResponse:
    fields = body.model_dump(exclude_none=True)
    if "tags" in fields:
        fields["tags"] = split_tags(fields["tags"])
    entry = registry.update_insight(dataset_id, insight_id, user_id, **fields)
    if entry is None:
        raise HTTPException(status_code=404, detail=INSIGHT_NOT_FOUND)
    return APIResponse(message="Insight updated successfully", data=entry)


@router.delete("/{dataset_id}/{insight_id}", response_model=APIResponse)
def delete_insight(dataset_id: str, insight_id: str, user_id: str = Depends(get_user_id)) -> APIResponse:
    if not registry.delete_insight(dataset_id, insight_id, user_id):
        raise HTTPException(status_code=404, detail=INSIGHT_NOT_FOUND)
    return APIResponse(message="Insight deleted successfully")
