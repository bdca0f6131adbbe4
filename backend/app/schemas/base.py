# backend/app/schemas/base.py
from __future__ import annotations
from typing import Any, Dict, Optional
from pydantic import BaseModel


class APIResponse(BaseModel):
    """Envelope for success responses."""
    success: bool = True
    message: Optional[str] = None
    data: Any = None
    metadata: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
