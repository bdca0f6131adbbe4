# backend/app/routers/common.py
from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException
from loguru import logger

from ..schemas.dataset import DatasetStatus
from ..services import processing, registry
from ..services.snapshot import DatasetSnapshot

SERVER_ERROR = "Server error"
NOT_FOUND = "Dataset not found"
NOT_READY = "Dataset not found or not ready"


def require_dataset(
    dataset_id: str,
    user_id: str,
    ready: bool = False,
    not_ready_message: str = NOT_READY,
) -> Dict[str, Any]:
    """
    Fetch a dataset owned by `user_id`, or 404.

    With ready=True the dataset must also have finished processing.
    """
    ds = registry.get_dataset(dataset_id, user_id)
    if not ds:
        raise HTTPException(status_code=404, detail=not_ready_message if ready else NOT_FOUND)
    if ready and ds.get("status") != DatasetStatus.COMPLETED.value:
        raise HTTPException(status_code=404, detail=not_ready_message)
    return ds


def load_snapshot_or_raise(dataset: Dict[str, Any]) -> DatasetSnapshot:
    try:
        return processing.load_snapshot(dataset)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Failed to load dataset {}", dataset.get("id"))
        raise HTTPException(status_code=500, detail=SERVER_ERROR)


def public_view(dataset: Dict[str, Any]) -> Dict[str, Any]:
    """Dataset record without server-side fields."""
    return {k: v for k, v in dataset.items() if k != "path"}


def split_tags(tags: str | None) -> list[str] | None:
    if tags is None:
        return None
    return [t.strip() for t in tags.split(",") if t.strip()]
