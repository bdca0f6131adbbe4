# backend/app/core/errors.py
"""
Domain errors raised by the analysis engine.

Validation-class errors subclass ValueError so routers can map them to a
400 with their message, the same way file-loading ValueErrors are handled.
"""
from __future__ import annotations


class AnalysisError(Exception):
    """Base class for every error raised by the analysis engine."""


class EmptyDataset(AnalysisError, ValueError):
    """The uploaded file produced zero rows."""

    def __init__(self, message: str = "No data found in file"):
        super().__init__(message)


class UnsupportedFileType(AnalysisError, ValueError):
    def __init__(self, file_type: str):
        self.file_type = file_type
        super().__init__(f"Unsupported file type: {file_type or '<none>'}")


class UnsupportedChartRequest(AnalysisError, ValueError):
    """Unknown chart kind, or a column requirement that cannot be met."""


class InsufficientData(AnalysisError):
    """A detector's minimum sample size was not met. Never surfaced to callers."""


class ProcessingFailure(AnalysisError):
    """A background processing run failed; the message is stored on the dataset."""

    def __init__(self, dataset_id: str, message: str):
        self.dataset_id = dataset_id
        super().__init__(message)
