# backend/app/utils/api_client.py
import os
from typing import Any, Dict, Iterable, Optional

import requests

API_BASE = os.environ.get("DATASIGHT_API_BASE", "http://localhost:8000")


class APIClientError(RuntimeError):
    """Raised when the API answers with {success: false} or a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class APIClient:
    """Thin HTTP client for the dataset / chart / insight endpoints."""

    def __init__(self, base_url: str = API_BASE, user_id: Optional[str] = None, timeout: int = 25):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {"X-User-Id": self.user_id} if self.user_id else {}

    def _safe_request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        r = requests.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        if r.headers.get("content-type", "").startswith("text/csv"):
            if not r.ok:
                raise APIClientError(r.status_code, r.text)
            return r.text

        try:
            body = r.json()
        except ValueError:
            raise APIClientError(r.status_code, r.text or "Invalid JSON response")
        if not r.ok or not body.get("success", False):
            raise APIClientError(r.status_code, body.get("message") or "Request failed")
        return body

    # -------------------- datasets --------------------
    def upload_dataset(self, path: str, name: Optional[str] = None,
                       description: Optional[str] = None, tags: Optional[Iterable[str]] = None):
        form = {k: v for k, v in {
            "name": name,
            "description": description,
            "tags": ",".join(tags) if tags else None,
        }.items() if v is not None}
        with open(path, "rb") as f:
            files = {"file": (os.path.basename(path), f)}
            return self._safe_request("POST", "/ingest/upload", files=files, data=form)

    def list_datasets(self, page: int = 1, limit: int = 10, status: Optional[str] = None,
                      search: Optional[str] = None):
        params = {"page": page, "limit": limit, "status": status, "search": search}
        return self._safe_request("GET", "/ingest/list", params={k: v for k, v in params.items() if v is not None})

    def get_dataset(self, dataset_id: str):
        return self._safe_request("GET", f"/ingest/{dataset_id}")

    def update_dataset(self, dataset_id: str, **fields):
        return self._safe_request("PUT", f"/ingest/{dataset_id}", json=fields)

    def delete_dataset(self, dataset_id: str):
        return self._safe_request("DELETE", f"/ingest/{dataset_id}")

    def get_statistics(self, dataset_id: str):
        return self._safe_request("GET", f"/ingest/{dataset_id}/stats")

    def get_preview(self, dataset_id: str, n: int = 10):
        return self._safe_request("GET", f"/ingest/preview/{dataset_id}", params={"n": n})

    # -------------------- charts --------------------
    def get_chart(self, dataset_id: str, chart_type: str, columns: Optional[Iterable[str]] = None,
                  limit: Optional[int] = None):
        params: Dict[str, Any] = {"chart_type": chart_type}
        if columns:
            params["columns"] = ",".join(columns)
        if limit is not None:
            params["limit"] = limit
        return self._safe_request("GET", f"/charts/{dataset_id}", params=params)

    def get_chart_types(self, dataset_id: str):
        return self._safe_request("GET", f"/charts/{dataset_id}/types")

    def get_dashboard(self, dataset_id: str):
        return self._safe_request("GET", f"/charts/{dataset_id}/dashboard")

    def export_chart(self, dataset_id: str, chart_type: str, columns: Optional[Iterable[str]] = None,
                     format: str = "json"):
        params: Dict[str, Any] = {"chart_type": chart_type, "format": format}
        if columns:
            params["columns"] = ",".join(columns)
        return self._safe_request("GET", f"/charts/{dataset_id}/export", params=params)

    # -------------------- insights --------------------
    def list_insights(self, dataset_id: str, type: Optional[str] = None,
                      category: Optional[str] = None, limit: int = 20):
        params = {"type": type, "category": category, "limit": limit}
        return self._safe_request("GET", f"/insights/{dataset_id}",
                                  params={k: v for k, v in params.items() if v is not None})

    def generate_insights(self, dataset_id: str, types: Optional[Iterable[str]] = None):
        body = {"types": list(types)} if types else None
        return self._safe_request("POST", f"/insights/{dataset_id}/generate", json=body)

    def get_insights_summary(self, dataset_id: str):
        return self._safe_request("GET", f"/insights/{dataset_id}/summary")
