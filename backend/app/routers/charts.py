# backend/app/routers/charts.py
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from loguru import logger

from ..core.config import settings
from ..core.dependencies import get_user_id
from ..schemas.base import APIResponse
from ..schemas.chart import ExportFormat
from ..schemas.dataset import ColumnDescriptor
from ..services import charts
from .common import SERVER_ERROR, load_snapshot_or_raise, require_dataset

router = APIRouter(tags=["charts"])


def _safe_filename(text: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", text).strip("_") or "dataset"


def _project_or_raise(rows, chart_type: str, columns: Optional[str], limit: int):
    try:
        return charts.project(rows, chart_type, charts.parse_column_list(columns), limit=limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Chart projection failed ({})", chart_type)
        raise HTTPException(status_code=500, detail=SERVER_ERROR)


@router.get("/{dataset_id}", response_model=APIResponse)
def get_chart_data(
    dataset_id: str,
    chart_type: str = Query(..., description="bar | pie | line | scatter | area | summary"),
    columns: Optional[str] = Query(None, description="Comma-separated column names"),
    limit: int = Query(settings.chart_default_limit, ge=1, le=10_000),
    user_id: str = Depends(get_user_id),
) -> APIResponse:
    """
    Project the first `limit` rows into the payload shape of one chart kind.
    """
    ds = require_dataset(dataset_id, user_id, ready=True)
    snapshot = load_snapshot_or_raise(ds)
    payload = _project_or_raise(snapshot.rows, chart_type, columns, limit)

    return APIResponse(
        data={"chart_type": chart_type, **payload},
        metadata={
            "dataset_name": ds.get("name"),
            "row_count": snapshot.row_count,
            "column_count": snapshot.column_count,
        },
    )


@router.get("/{dataset_id}/types", response_model=APIResponse)
def get_chart_types(dataset_id: str, user_id: str = Depends(get_user_id)) -> APIResponse:
    ds = require_dataset(dataset_id, user_id, ready=True)
    columns = [ColumnDescriptor.model_validate(c) for c in ds.get("columns", [])]
    return APIResponse(data={
        "available_charts": charts.available_chart_types(columns),
        "columns": [c.model_dump(mode="json") for c in columns],
        "dataset_info": {
            "name": ds.get("name"),
            "row_count": ds.get("row_count", 0),
            "column_count": ds.get("column_count", 0),
        },
    })


@router.get("/{dataset_id}/dashboard", response_model=APIResponse)
def get_dashboard(dataset_id: str, user_id: str = Depends(get_user_id)) -> APIResponse:
    ds = require_dataset(dataset_id, user_id, ready=True)
    snapshot = load_snapshot_or_raise(ds)
    try:
        dashboard = charts.dashboard_charts(snapshot)
    except Exception:
        logger.exception("Dashboard build failed for dataset {}", dataset_id)
        raise HTTPException(status_code=500, detail=SERVER_ERROR)

    return APIResponse(data={
        "charts": dashboard,
        "dataset_info": {
            "name": ds.get("name"),
            "row_count": snapshot.row_count,
            "column_count": snapshot.column_count,
            "last_updated": ds.get("updated_at"),
        },
    })


@router.get("/{dataset_id}/export")
def export_chart_data(
    dataset_id: str,
    chart_type: str = Query(...),
    columns: Optional[str] = Query(None),
    format: ExportFormat = Query(ExportFormat.JSON),
    user_id: str = Depends(get_user_id),
):
    """
    Chart data over the first `export_limit` rows, as JSON or a CSV attachment.
    """
    ds = require_dataset(dataset_id, user_id, ready=True)
    snapshot = load_snapshot_or_raise(ds)
    payload = _project_or_raise(snapshot.rows, chart_type, columns, settings.export_limit)

    if format == ExportFormat.CSV:
        filename = f"{_safe_filename(ds.get('name') or dataset_id)}-{chart_type}-data.csv"
        return Response(
            content=charts.to_csv(payload["data"]),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return APIResponse(
        data={"chart_type": chart_type, **payload},
        metadata={
            "dataset_name": ds.get("name"),
            "export_date": datetime.now(timezone.utc).isoformat(),
            "row_count": len(payload["data"]),
        },
    )
