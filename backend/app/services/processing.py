# backend/app/services/processing.py

"""
Processing Orchestration
------------------------
Ties file ingestion to schema inference, statistics and insight generation.

Dataset status moves through a small state machine:

    uploading -> processing -> completed | error
    completed | error -> processing          (re-upload / reprocess)

Runs are started as FastAPI background tasks. A failed run records its
error on the dataset exactly once and is never retried automatically.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from ..core.config import settings
from ..core.errors import ProcessingFailure
from ..schemas.dataset import DatasetStatus
from ..schemas.insight import Insight, InsightType
from ..utils.io import read_rows
from . import registry
from .insights import generate_insights
from .profiling import snapshot_statistics
from .snapshot import DatasetSnapshot, build_snapshot
from .snapshot_cache import SnapshotCache

ALLOWED_TRANSITIONS = {
    DatasetStatus.UPLOADING: {DatasetStatus.PROCESSING, DatasetStatus.ERROR},
    DatasetStatus.PROCESSING: {DatasetStatus.COMPLETED, DatasetStatus.ERROR},
    DatasetStatus.COMPLETED: {DatasetStatus.PROCESSING},
    DatasetStatus.ERROR: {DatasetStatus.PROCESSING},
}

snapshot_cache = SnapshotCache(settings.snapshot_cache_size)


def transition(dataset_id: str, new_status: DatasetStatus, **fields) -> Dict[str, Any]:
    """Move a dataset to `new_status`, rejecting transitions the state machine doesn't allow."""
    dataset = registry.get_dataset(dataset_id)
    if dataset is None:
        raise KeyError(f"Dataset '{dataset_id}' not found")

    current = DatasetStatus(dataset.get("status", DatasetStatus.UPLOADING.value))
    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise ValueError(f"Dataset '{dataset_id}' cannot move from {current.value} to {new_status.value}")
    return registry.update_dataset(dataset_id, status=new_status.value, **fields)


def _transition_if_present(dataset_id: str, new_status: DatasetStatus, **fields) -> Optional[Dict[str, Any]]:
    """transition() for background runs: a dataset deleted mid-run is logged and skipped."""
    try:
        return transition(dataset_id, new_status, **fields)
    except KeyError:
        logger.warning("Dataset {} was deleted before it could move to {}", dataset_id, new_status.value)
        return None


def process_file(path: str, file_type: Optional[str] = None, fingerprint: Optional[str] = None) -> DatasetSnapshot:
    """Read a file and infer its schema. Raises EmptyDataset / UnsupportedFileType."""
    rows = read_rows(path, file_type)
    return build_snapshot(rows, fingerprint)


def load_snapshot(dataset: Dict[str, Any]) -> DatasetSnapshot:
    """Snapshot for a registered dataset, from the cache when the file content is unchanged."""
    path = dataset["path"]
    file_type = dataset.get("file_type")
    return snapshot_cache.get_or_build(
        dataset["id"],
        path,
        lambda fingerprint: process_file(path, file_type, fingerprint),
    )


def run_processing(dataset_id: str) -> Optional[ProcessingFailure]:
    """
    Background task: parse the file, infer columns, compute statistics.

    Moves the dataset to `completed` with the results, or to `error` with the
    failure message. Returns the failure (if any) for callers that run it inline.
    """
    dataset = registry.get_dataset(dataset_id)
    if dataset is None:
        logger.warning("Dataset {} vanished before processing started", dataset_id)
        return None

    if dataset.get("status") != DatasetStatus.PROCESSING.value:
        if _transition_if_present(dataset_id, DatasetStatus.PROCESSING, processing_error=None) is None:
            return None

    try:
        snapshot = load_snapshot(dataset)
        statistics = snapshot_statistics(snapshot)
    except Exception as exc:
        failure = ProcessingFailure(dataset_id, str(exc) or exc.__class__.__name__)
        logger.exception("Processing failed for dataset {}", dataset_id)
        _transition_if_present(dataset_id, DatasetStatus.ERROR, processing_error=str(failure))
        return failure

    completed = _transition_if_present(
        dataset_id,
        DatasetStatus.COMPLETED,
        processing_error=None,
        columns=[c.model_dump(mode="json") for c in snapshot.columns],
        row_count=snapshot.row_count,
        column_count=snapshot.column_count,
        statistics=statistics,
    )
    if completed is not None:
        logger.info(
            "Processed dataset {}: {} rows x {} columns",
            dataset_id, snapshot.row_count, snapshot.column_count,
        )
    return None


def run_insight_generation(
    dataset_id: str,
    user_id: str,
    types: Optional[Iterable[InsightType]] = None,
) -> List[Insight]:
    """Background task: run the requested detectors and persist what they find."""
    dataset = registry.get_dataset(dataset_id, user_id)
    if dataset is None:
        logger.warning("Dataset {} not found for insight generation", dataset_id)
        return []

    try:
        snapshot = load_snapshot(dataset)
    except Exception:
        logger.exception("Insight generation could not load dataset {}", dataset_id)
        return []

    insights = generate_insights(snapshot, types, dataset_id=dataset_id, user_id=user_id)
    registry.add_insights([i.model_dump(mode="json") for i in insights])
    logger.info("Generated {} insights for dataset {}", len(insights), dataset_id)
    return insights
