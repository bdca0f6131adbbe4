# backend/tests/test_processing.py
import threading

import pytest

from backend.app.schemas.dataset import DatasetStatus
from backend.app.services import processing, registry
from backend.app.services.snapshot import build_snapshot
from backend.app.services.snapshot_cache import SnapshotCache


def _register(tmp_path, content, status="uploading", name="sales.csv"):
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    registry.upsert_dataset({
        "id": "ds_1",
        "name": "Sales",
        "user_id": "anonymous",
        "path": str(path),
        "file_type": name.rsplit(".", 1)[-1],
        "status": status,
    })
    return path


# -----------------------------------------------------------
# Snapshot cache
# -----------------------------------------------------------
def test_cache_reuses_snapshot_until_file_changes(tmp_path):
    path = tmp_path / "a.csv"
    path.write_text("a\n1\n")
    cache = SnapshotCache(max_entries=4)
    calls = []

    def build(fingerprint):
        calls.append(fingerprint)
        return build_snapshot([{"a": "1"}], fingerprint)

    first = cache.get_or_build("ds", str(path), build)
    assert cache.get_or_build("ds", str(path), build) is first
    assert len(calls) == 1

    path.write_text("a\n2\n")
    cache.get_or_build("ds", str(path), build)
    assert len(calls) == 2
    assert calls[0] != calls[1]


def test_cache_evicts_least_recently_used(tmp_path):
    cache = SnapshotCache(max_entries=2)
    for i in range(3):
        p = tmp_path / f"{i}.csv"
        p.write_text(f"a\n{i}\n")
        cache.get_or_build(f"ds{i}", str(p), lambda fp: build_snapshot([{"a": 1}], fp))
    assert len(cache) == 2
    assert cache.invalidate("ds0") == 0
    assert cache.invalidate("ds2") == 1


def test_cache_builds_once_under_concurrency(tmp_path):
    path = tmp_path / "a.csv"
    path.write_text("a\n1\n")
    cache = SnapshotCache()
    calls = []
    gate = threading.Event()

    def slow_build(fingerprint):
        calls.append(fingerprint)
        gate.wait(timeout=2)
        return build_snapshot([{"a": "1"}], fingerprint)

    results = []
    threads = [
        threading.Thread(target=lambda: results.append(cache.get_or_build("ds", str(path), slow_build)))
        for _ in range(4)
    ]
    for t in threads:
        t.start()
    gate.set()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert len({id(r) for r in results}) == 1


# -----------------------------------------------------------
# Status machine & processing runs
# -----------------------------------------------------------
def test_run_processing_completes(isolated_registry, tmp_path, sales_csv):
    _register(tmp_path, sales_csv)
    assert processing.run_processing("ds_1") is None

    ds = registry.get_dataset("ds_1")
    assert ds["status"] == DatasetStatus.COMPLETED.value
    assert ds["row_count"] == 10
    assert ds["column_count"] == 4
    assert [c["type"] for c in ds["columns"]] == ["date", "string", "number", "number"]
    assert ds["statistics"]["total_rows"] == 10


def test_run_processing_records_failure(isolated_registry, tmp_path):
    _register(tmp_path, "a,b\n")
    failure = processing.run_processing("ds_1")

    assert failure is not None
    ds = registry.get_dataset("ds_1")
    assert ds["status"] == DatasetStatus.ERROR.value
    assert ds["processing_error"] == "No data found in file"


def test_illegal_transition_rejected(isolated_registry, tmp_path, sales_csv):
    _register(tmp_path, sales_csv, status="uploading")
    with pytest.raises(ValueError):
        processing.transition("ds_1", DatasetStatus.COMPLETED)
    with pytest.raises(KeyError):
        processing.transition("nope", DatasetStatus.PROCESSING)


def test_run_insight_generation_persists(isolated_registry, tmp_path, sales_csv):
    _register(tmp_path, sales_csv)
    processing.run_processing("ds_1")

    found = processing.run_insight_generation("ds_1", "anonymous", ["trend", "correlation"])
    assert {i.type.value for i in found} == {"trend", "correlation"}
    stored = registry.list_insights("ds_1", "anonymous")
    assert len(stored) == len(found)


def test_run_processing_tolerates_dataset_deleted_mid_run(isolated_registry, tmp_path, sales_csv, monkeypatch):
    _register(tmp_path, sales_csv)

    def load_then_delete(dataset):
        registry.delete_dataset("ds_1")
        return build_snapshot([{"a": "1"}])

    monkeypatch.setattr(processing, "load_snapshot", load_then_delete)
    assert processing.run_processing("ds_1") is None
    assert registry.get_dataset("ds_1") is None


def test_failed_run_tolerates_dataset_deleted_mid_run(isolated_registry, tmp_path, sales_csv, monkeypatch):
    _register(tmp_path, sales_csv)

    def delete_then_fail(dataset):
        registry.delete_dataset("ds_1")
        raise ValueError("bad file")

    monkeypatch.setattr(processing, "load_snapshot", delete_then_fail)
    failure = processing.run_processing("ds_1")
    assert str(failure) == "bad file"
    assert registry.get_dataset("ds_1") is None
