# backend/app/routers/ingest.py
from __future__ import annotations

import math
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile
from loguru import logger

from ..core.config import settings
from ..core.dependencies import get_user_id
from ..core.errors import UnsupportedFileType
from ..schemas.base import APIResponse
from ..schemas.dataset import DatasetPreview, DatasetStatus, DatasetUpdateRequest
from ..services import processing, registry
from ..services.profiling import build_preview
from ..utils.io import file_type_of
from .common import SERVER_ERROR, load_snapshot_or_raise, public_view, require_dataset, split_tags

router = APIRouter(tags=["ingest"])

_CHUNK = 1 << 20


def _store_upload(file: UploadFile, dataset_id: str) -> tuple[str, str, int]:
    """Write an upload to the upload dir; returns (path, file_type, size)."""
    try:
        file_type = file_type_of(file.filename or "")
    except UnsupportedFileType as e:
        raise HTTPException(status_code=400, detail=str(e))

    limit = settings.max_upload_mb * 1024 * 1024
    too_large = HTTPException(status_code=413, detail=f"File exceeds {settings.max_upload_mb} MB limit")
    if file.size is not None and file.size > limit:
        raise too_large

    os.makedirs(settings.upload_dir, exist_ok=True)
    path = os.path.join(settings.upload_dir, f"{dataset_id}_{uuid.uuid4().hex[:8]}.{file_type}")
    size = 0
    with open(path, "wb") as out:
        # file.size is optional; cap the copy as well
        for chunk in iter(lambda: file.file.read(_CHUNK), b""):
            size += len(chunk)
            if size > limit:
                break
            out.write(chunk)

    if size > limit:
        _remove_file(path)
        raise too_large
    return path, file_type, size


def _remove_file(path: Optional[str]):
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.exception("Could not delete dataset file {}", path)


@router.post("/upload", status_code=201, response_model=APIResponse)
def upload_dataset(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    name: Optional[str] = Form(default=None, max_length=100),
    description: Optional[str] = Form(default=None, max_length=500),
    tags: Optional[str] = Form(default=None),
    user_id: str = Depends(get_user_id),
) -> APIResponse:
    """
    Accept a CSV/Excel upload, register it and start processing in the background.
    """
    dataset_id = f"ds_{uuid.uuid4().hex}"
    path, file_type, size = _store_upload(file, dataset_id)
    now = datetime.now(timezone.utc).isoformat()

    try:
        registry.upsert_dataset({
            "id": dataset_id,
            "name": name or Path(file.filename or dataset_id).stem,
            "description": description or "",
            "user_id": user_id,
            "original_name": file.filename,
            "file_name": os.path.basename(path),
            "path": path,
            "file_type": file_type,
            "file_size": size,
            "tags": split_tags(tags) or [],
            "is_public": False,
            "status": DatasetStatus.UPLOADING.value,
            "processing_error": None,
            "columns": [],
            "row_count": 0,
            "column_count": 0,
            "statistics": None,
            "metadata": {"upload_date": now, "last_accessed": now, "access_count": 0},
        })
        processing.transition(dataset_id, DatasetStatus.PROCESSING)
    except Exception:
        logger.exception("Failed to register upload {}", file.filename)
        _remove_file(path)
        raise HTTPException(status_code=500, detail=SERVER_ERROR)

    background_tasks.add_task(processing.run_processing, dataset_id)
    logger.info("Dataset {} uploaded by {} ({} bytes)", dataset_id, user_id, size)

    ds = registry.get_dataset(dataset_id)
    return APIResponse(
        message="Dataset uploaded successfully. Processing in progress.",
        data={"id": dataset_id, "name": ds["name"], "status": ds["status"]},
    )


@router.get("/list", response_model=APIResponse)
def list_datasets(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[DatasetStatus] = None,
    search: Optional[str] = None,
    user_id: str = Depends(get_user_id),
) -> APIResponse:
    """
    Return the caller's datasets, newest first, one page at a time.
    `search` matches name, description or tags case-insensitively.
    """
    datasets = registry.list_datasets(user_id)
    if status is not None:
        datasets = [d for d in datasets if d.get("status") == status.value]
    if search:
        needle = search.lower()
        datasets = [
            d for d in datasets
            if needle in (d.get("name") or "").lower()
            or needle in (d.get("description") or "").lower()
            or any(needle in t.lower() for t in d.get("tags", []))
        ]

    total = len(datasets)
    start = (page - 1) * limit
    page_items = [public_view(d) for d in datasets[start:start + limit]]
    return APIResponse(
        data=page_items,
        metadata={
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    )


@router.get("/preview/{dataset_id}", response_model=APIResponse)
def get_preview(
    dataset_id: str,
    n: int = Query(10, ge=1, le=1000),
    user_id: str = Depends(get_user_id),
) -> APIResponse:
    """
    Return first N rows for a dataset together with its inferred columns.
    """
    ds = require_dataset(dataset_id, user_id, ready=True)
    snapshot = load_snapshot_or_raise(ds)
    preview = DatasetPreview(**build_preview(snapshot, n=n))
    return APIResponse(data=preview.model_dump(mode="json"), metadata={"dataset_name": ds.get("name")})


@router.get("/{dataset_id}", response_model=APIResponse)
def get_dataset(dataset_id: str, user_id: str = Depends(get_user_id)) -> APIResponse:
    require_dataset(dataset_id, user_id)
    ds = registry.touch_dataset(dataset_id)
    return APIResponse(data=public_view(ds))


@router.put("/{dataset_id}", response_model=APIResponse)
def update_dataset(
    dataset_id: str,
    body: DatasetUpdateRequest,
    user_id: str = Depends(get_user_id),
) -> APIResponse:
    require_dataset(dataset_id, user_id)
    fields: dict[str, Any] = body.model_dump(exclude_none=True)
    if "tags" in fields:
        fields["tags"] = split_tags(fields["tags"])
    ds = registry.update_dataset(dataset_id, **fields)
    return APIResponse(message="Dataset updated successfully", data=public_view(ds))


@router.delete("/{dataset_id}", response_model=APIResponse)
def delete_dataset(dataset_id: str, user_id: str = Depends(get_user_id)) -> APIResponse:
    """Delete the file, the record and every insight generated from it."""
    ds = require_dataset(dataset_id, user_id)
    _remove_file(ds.get("path"))
    registry.delete_dataset(dataset_id)
    processing.snapshot_cache.invalidate(dataset_id)
    logger.info("Dataset {} deleted by {}", dataset_id, user_id)
    return APIResponse(message="Dataset deleted successfully")


@router.post("/{dataset_id}/file", response_model=APIResponse)
def replace_file(
    dataset_id: str,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    user_id: str = Depends(get_user_id),
) -> APIResponse:
    """
    Swap in a new file for an existing dataset and reprocess it.
    Rejected while a previous run is still in progress.
    """
    ds = require_dataset(dataset_id, user_id)
    if ds.get("status") in (DatasetStatus.UPLOADING.value, DatasetStatus.PROCESSING.value):
        raise HTTPException(status_code=409, detail="Dataset is still being processed")

    path, file_type, size = _store_upload(file, dataset_id)
    old_path = ds.get("path")
    try:
        processing.transition(
            dataset_id,
            DatasetStatus.PROCESSING,
            path=path,
            file_type=file_type,
            file_size=size,
            original_name=file.filename,
            file_name=os.path.basename(path),
            processing_error=None,
        )
    except ValueError as e:
        _remove_file(path)
        raise HTTPException(status_code=409, detail=str(e))

    if old_path and old_path != path:
        _remove_file(old_path)
    processing.snapshot_cache.invalidate(dataset_id)
    background_tasks.add_task(processing.run_processing, dataset_id)

    return APIResponse(
        message="File replaced. Processing in progress.",
        data={"id": dataset_id, "status": DatasetStatus.PROCESSING.value},
    )


@router.get("/{dataset_id}/stats", response_model=APIResponse)
def get_statistics(dataset_id: str, user_id: str = Depends(get_user_id)) -> APIResponse:
    ds = require_dataset(dataset_id, user_id)
    meta = ds.get("metadata", {})
    return APIResponse(data={
        "id": ds["id"],
        "name": ds.get("name"),
        "description": ds.get("description"),
        "file_type": ds.get("file_type"),
        "row_count": ds.get("row_count", 0),
        "column_count": ds.get("column_count", 0),
        "status": ds.get("status"),
        "processing_error": ds.get("processing_error"),
        "upload_date": meta.get("upload_date"),
        "last_accessed": meta.get("last_accessed"),
        "access_count": meta.get("access_count", 0),
        "statistics": ds.get("statistics"),
    })
