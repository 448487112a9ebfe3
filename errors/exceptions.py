"""Domain-specific exceptions for the phase report service.

These exceptions let the scheduler and API layers distinguish caller-input
errors (rejected before any work is scheduled) from per-task failures
(tallied by the batch scheduler and never propagated to sibling tasks).
"""

from __future__ import annotations


class ReportError(Exception):
    """Base class for report pipeline errors."""


class InvalidBatchRequestError(ReportError):
    """The caller's selection cannot be scheduled (empty students or phases)."""

    def __init__(self, message: str, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class BatchAlreadyRunningError(ReportError):
    """A batch was submitted while another one is still running."""

    def __init__(self) -> None:
        super().__init__("A batch export is already running; cancel it or wait for it to finish")


class TaskFailedError(ReportError):
    """A single (student, phase) pipeline could not produce its report.

    Carries the student and phase so the scheduler can log a useful line
    without inspecting the cause.
    """

    def __init__(self, student_id: str, phase: str, message: str) -> None:
        self.student_id = student_id
        self.phase = phase
        super().__init__(f"Report for student '{student_id}' ({phase}) failed: {message}")


class SummaryUnavailableError(TaskFailedError):
    """The phase summary does not exist and could not be generated."""

    def __init__(self, student_id: str, phase: str, detail: str = "") -> None:
        message = detail or (
            "academic summary is missing and could not be generated; "
            "the student must complete the 7 required evaluations"
        )
        super().__init__(student_id, phase, message)


class NoResolvedSubjectsError(TaskFailedError):
    """No completed evaluation resolved for (student, phase)."""

    def __init__(self, student_id: str, phase: str) -> None:
        super().__init__(student_id, phase, "no completed evaluations were found")


class StudentNotFoundError(TaskFailedError):
    """The record store has no profile for the student."""

    def __init__(self, student_id: str, phase: str = "") -> None:
        super().__init__(student_id, phase, "student profile not found")
