import os

from fastapi import APIRouter

from ..core.config import settings
from ..services import processing, registry

router = APIRouter(tags=["health"])


@router.get("", summary="Liveness check")
def health():
    return {"status": "ok"}


@router.get("/ready", summary="Readiness check")
def ready():
    """Storage locations the service writes to, and how warm the snapshot cache is."""
    upload_dir = os.path.abspath(settings.upload_dir)
    return {
        "status": "ok",
        "upload_dir": upload_dir,
        "upload_dir_exists": os.path.isdir(upload_dir),
        "registry_path": os.path.abspath(registry.registry_path()),
        "cached_snapshots": len(processing.snapshot_cache),
    }
