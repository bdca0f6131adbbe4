import sys
import os

import pytest

# project root = datasight/
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
BACKEND_ROOT = os.path.join(PROJECT_ROOT, "backend")

# Add PROJECT_ROOT and BACKEND_ROOT to sys.path
for path in [PROJECT_ROOT, BACKEND_ROOT]:
    if path not in sys.path:
        sys.path.insert(0, path)


SALES_CSV = (
    "date,region,sales,units\n"
    "2024-01-01,north,100,10\n"
    "2024-01-02,south,110,11\n"
    "2024-01-03,north,120,12\n"
    "2024-01-04,east,130,13\n"
    "2024-01-05,north,140,14\n"
    "2024-01-06,south,150,15\n"
    "2024-01-07,north,160,16\n"
    "2024-01-08,east,170,17\n"
    "2024-01-09,south,180,18\n"
    "2024-01-10,north,190,19\n"
)


@pytest.fixture
def isolated_registry(tmp_path, monkeypatch):
    """Fresh registry file and upload dir per test; snapshot cache emptied."""
    from backend.app.core.config import settings
    from backend.app.services import processing
    from backend.app.services import registry as registry_module

    reg = registry_module.Registry(str(tmp_path / "registry.json"))
    monkeypatch.setattr(registry_module, "registry", reg)
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))
    processing.snapshot_cache.clear()
    yield reg
    processing.snapshot_cache.clear()


@pytest.fixture
def client(isolated_registry):
    from fastapi.testclient import TestClient
    from backend.app.main import app

    return TestClient(app)


@pytest.fixture
def upload(client):
    """Upload CSV text and return the new dataset id (processing has run by the time it returns)."""

    def _upload(content: str = SALES_CSV, filename: str = "sales.csv", user_id: str = None, **form):
        headers = {"X-User-Id": user_id} if user_id else {}
        r = client.post(
            "/ingest/upload",
            files={"file": (filename, content.encode("utf-8"), "text/csv")},
            data=form,
            headers=headers,
        )
        assert r.status_code == 201, r.text
        return r.json()["data"]["id"]

    return _upload


@pytest.fixture
def sales_csv():
    return SALES_CSV
