# backend/app/services/registry.py

import os
import json
from datetime import datetime, timezone
from threading import RLock
from typing import Dict, Any, List, Optional

from ..core.config import settings


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Registry:
    """
    JSON-file store for dataset records and generated insights.

    Every record carries the owning user's id; lookups that pass a user_id
    only see that user's records.
    """

    def __init__(self, reg_path: Optional[str] = None):
        self.reg_path = reg_path or settings.registry_path
        self._lock = RLock()
        self.data = self._load()

    # ----------------------------------------------------
    # Internal Load / Save
    # ----------------------------------------------------
    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.reg_path):
            return {"datasets": {}, "insights": {}}

        try:
            with open(self.reg_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            return {"datasets": {}, "insights": {}}

        data.setdefault("datasets", {})
        data.setdefault("insights", {})
        return data

    def save(self):
        with self._lock:
            directory = os.path.dirname(os.path.abspath(self.reg_path))
            os.makedirs(directory, exist_ok=True)
            tmp = self.reg_path + ".tmp"
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(self.data, f, indent=2, default=str)
            os.replace(tmp, self.reg_path)

    @staticmethod
    def _owned(entry: Optional[Dict[str, Any]], user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if entry is None:
            return None
        if user_id is not None and entry.get("user_id") != user_id:
            return None
        return entry

    # ----------------------------------------------------
    # DATASET METHODS
    # ----------------------------------------------------
    def get_dataset(self, dataset_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._owned(self.data["datasets"].get(dataset_id), user_id)
            return dict(entry) if entry is not None else None

    def upsert_dataset(self, entry: Dict[str, Any]):
        if not {"id", "name", "path"}.issubset(entry):
            raise ValueError("Dataset entry must include id, name, path")

        with self._lock:
            ds_id = entry["id"]
            existing = self.data["datasets"].get(ds_id, {})
            merged = {**existing, **entry}
            merged.setdefault("created_at", _now())
            merged["updated_at"] = _now()
            self.data["datasets"][ds_id] = merged
            self.save()
            return dict(merged)

    def update_dataset(self, dataset_id: str, **fields) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self.data["datasets"].get(dataset_id)
            if entry is None:
                return None
            entry.update(fields)
            entry["updated_at"] = _now()
            self.save()
            return dict(entry)

    def touch_dataset(self, dataset_id: str) -> Optional[Dict[str, Any]]:
        """Record an access: bump last_accessed and access_count."""
        with self._lock:
            entry = self.data["datasets"].get(dataset_id)
            if entry is None:
                return None
            meta = entry.setdefault("metadata", {})
            meta["last_accessed"] = _now()
            meta["access_count"] = int(meta.get("access_count", 0)) + 1
            self.save()
            return dict(entry)

    def delete_dataset(self, dataset_id: str) -> bool:
        with self._lock:
            if dataset_id not in self.data["datasets"]:
                return False
            del self.data["datasets"][dataset_id]
            self.data["insights"] = {
                k: v for k, v in self.data["insights"].items()
                if v.get("dataset_id") != dataset_id
            }
            self.save()
            return True

    def list_datasets(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Return copies of the registered datasets, newest first.
        """
        with self._lock:
            entries = [dict(e) for e in self.data["datasets"].values() if self._owned(e, user_id)]
        return sorted(entries, key=lambda e: e.get("created_at", ""), reverse=True)

    # ----------------------------------------------------
    # INSIGHT METHODS
    # ----------------------------------------------------
    def add_insights(self, insights: List[Dict[str, Any]]):
        with self._lock:
            for entry in insights:
                self.data["insights"][entry["id"]] = entry
            self.save()

    def list_insights(
        self,
        dataset_id: str,
        user_id: Optional[str] = None,
        insight_type: Optional[str] = None,
        category: Optional[str] = None,
        active_only: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        found = []
        with self._lock:
            for entry in self.data["insights"].values():
                if entry.get("dataset_id") != dataset_id or not self._owned(entry, user_id):
                    continue
                if active_only and not entry.get("is_active", True):
                    continue
                if insight_type and entry.get("type") != insight_type:
                    continue
                if category and entry.get("category") != category:
                    continue
                found.append(dict(entry))
        found.sort(key=lambda e: e.get("created_at") or "", reverse=True)
        return found[:limit] if limit is not None else found

    def _insight_entry(self, dataset_id: str, insight_id: str, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        entry = self._owned(self.data["insights"].get(insight_id), user_id)
        if entry is None or entry.get("dataset_id") != dataset_id:
            return None
        return entry

    def get_insight(self, dataset_id: str, insight_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._insight_entry(dataset_id, insight_id, user_id)
            return dict(entry) if entry is not None else None

    def update_insight(self, dataset_id: str, insight_id: str, user_id: Optional[str] = None, **fields):
        with self._lock:
            entry = self._insight_entry(dataset_id, insight_id, user_id)
            if entry is None:
                return None
            entry.update(fields)
            entry["updated_at"] = _now()
            self.save()
            return dict(entry)

    def delete_insight(self, dataset_id: str, insight_id: str, user_id: Optional[str] = None) -> bool:
        with self._lock:
            if self._insight_entry(dataset_id, insight_id, user_id) is None:
                return False
            del self.data["insights"][insight_id]
            self.save()
            return True


# =============================================================
# GLOBAL REGISTRY INSTANCE
# =============================================================
registry = Registry()


# =============================================================
# Top-Level Helper Functions (used by routers & services)
# =============================================================
def upsert_dataset(entry: Dict[str, Any]):
    return registry.upsert_dataset(entry)

def get_dataset(dataset_id: str, user_id: Optional[str] = None):
    return registry.get_dataset(dataset_id, user_id)

def update_dataset(dataset_id: str, **fields):
    return registry.update_dataset(dataset_id, **fields)

def touch_dataset(dataset_id: str):
    return registry.touch_dataset(dataset_id)

def delete_dataset(dataset_id: str):
    return registry.delete_dataset(dataset_id)

def list_datasets(user_id: Optional[str] = None):
    return registry.list_datasets(user_id)

def add_insights(insights: List[Dict[str, Any]]):
    return registry.add_insights(insights)

def list_insights(dataset_id: str, user_id: Optional[str] = None, **filters):
    return registry.list_insights(dataset_id, user_id, **filters)

def get_insight(dataset_id: str, insight_id: str, user_id: Optional[str] = None):
    return registry.get_insight(dataset_id, insight_id, user_id)

def update_insight(dataset_id: str, insight_id: str, user_id: Optional[str] = None, **fields):
    return registry.update_insight(dataset_id, insight_id, user_id, **fields)

def delete_insight(dataset_id: str, insight_id: str, user_id: Optional[str] = None):
    return registry.delete_insight(dataset_id, insight_id, user_id)

def registry_path():
    return registry.reg_path
