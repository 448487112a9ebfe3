"""Custom exception hierarchy for the phase report service."""

from errors.exceptions import (
    BatchAlreadyRunningError,
    InvalidBatchRequestError,
    NoResolvedSubjectsError,
    ReportError,
    StudentNotFoundError,
    SummaryUnavailableError,
    TaskFailedError,
)

__all__ = [
    "BatchAlreadyRunningError",
    "InvalidBatchRequestError",
    "NoResolvedSubjectsError",
    "ReportError",
    "StudentNotFoundError",
    "SummaryUnavailableError",
    "TaskFailedError",
]
