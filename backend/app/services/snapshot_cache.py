# backend/app/services/snapshot_cache.py
"""
Per-dataset snapshot cache.

Entries are keyed by (dataset id, sha256 of the file bytes), so a replaced
file can never be served from a stale snapshot. Concurrent requests for the
same key wait on one build instead of each re-parsing the file.
"""
from __future__ import annotations

import hashlib
from collections import OrderedDict
from threading import Lock
from typing import Callable, Dict, Tuple

from loguru import logger

from .snapshot import DatasetSnapshot

CacheKey = Tuple[str, str]
_CHUNK = 1 << 20


def file_fingerprint(path: str) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


class SnapshotCache:
    def __init__(self, max_entries: int = 16):
        self.max_entries = max(1, int(max_entries))
        self._entries: "OrderedDict[CacheKey, DatasetSnapshot]" = OrderedDict()
        self._building: Dict[CacheKey, Lock] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def _lookup(self, key: CacheKey):
        snapshot = self._entries.get(key)
        if snapshot is not None:
            self._entries.move_to_end(key)
        return snapshot

    def get_or_build(
        self,
        dataset_id: str,
        path: str,
        build: Callable[[str], DatasetSnapshot],
    ) -> DatasetSnapshot:
        """Return the cached snapshot for this file content, building it at most once."""
        key = (dataset_id, file_fingerprint(path))

        with self._lock:
            snapshot = self._lookup(key)
            if snapshot is not None:
                logger.debug("Snapshot cache hit for dataset {}", dataset_id)
                return snapshot
            key_lock = self._building.setdefault(key, Lock())

        with key_lock:
            with self._lock:
                snapshot = self._lookup(key)
            if snapshot is not None:
                return snapshot

            logger.debug("Snapshot cache miss for dataset {}", dataset_id)
            try:
                snapshot = build(key[1])
                with self._lock:
                    self._entries[key] = snapshot
                    while len(self._entries) > self.max_entries:
                        self._entries.popitem(last=False)
            finally:
                with self._lock:
                    self._building.pop(key, None)
            return snapshot

    def invalidate(self, dataset_id: str) -> int:
        """Drop every cached snapshot of a dataset; returns how many were removed."""
        with self._lock:
            stale = [k for k in self._entries if k[0] == dataset_id]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def clear(self):
        with self._lock:
            self._entries.clear()
