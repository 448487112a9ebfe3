"""Batch export models — tasks, progress snapshots and request bodies."""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from models.base import CamelModel, FrozenCamelModel
from models.evaluation import Phase, StudentRef


class BatchStatus(str, Enum):
    """Lifecycle of one batch run: IDLE -> RUNNING -> (COMPLETED | CANCELLED)."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (BatchStatus.COMPLETED, BatchStatus.CANCELLED)


class BatchTask(FrozenCamelModel):
    """One (student, phase) unit of work; immutable once enqueued."""

    index: int
    student: StudentRef
    phase: Phase

    @property
    def label(self) -> str:
        return f"{self.student.label} - {self.phase.label}"


class BatchJobState(FrozenCamelModel):
    """Read-only progress snapshot handed to callers and subscribers."""

    status: BatchStatus = BatchStatus.IDLE
    total: int = 0
    completed_count: int = 0
    success_count: int = 0
    error_count: int = 0
    current_student: str = ""
    estimated_seconds_remaining: int = 0
    cancel_requested: bool = False
    elapsed_seconds: float = 0.0


class BatchSummary(FrozenCamelModel):
    """End-of-run tally, produced for completed and cancelled runs alike."""

    status: BatchStatus
    total: int
    attempted: int
    success_count: int
    error_count: int
    elapsed_seconds: float
    phases: list[Phase] = Field(default_factory=list)
    student_count: int = 0

    @property
    def cancelled(self) -> bool:
        return self.status is BatchStatus.CANCELLED

    @property
    def message(self) -> str:
        if self.cancelled:
            return (
                f"Batch cancelled: {self.success_count} report(s) generated "
                f"out of {self.attempted} attempted ({self.total} planned)."
            )
        if self.error_count == 0:
            return (
                f"Generated {self.success_count} report(s) for {self.student_count} "
                f"student(s) in {self.elapsed_seconds:.1f}s."
            )
        return (
            f"Generated {self.success_count} report(s) with {self.error_count} "
            f"error(s) in {self.elapsed_seconds:.1f}s."
        )


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class StudentSelection(CamelModel):
    student_id: str = ""
    name: str = ""

    def to_ref(self) -> StudentRef:
        return StudentRef(student_id=self.student_id, name=self.name)


class BatchSubmitRequest(CamelModel):
    """Body of POST /api/reports/batch."""

    students: list[StudentSelection] = Field(default_factory=list)
    phases: list[Phase] = Field(default_factory=list)


class StudentExportRequest(CamelModel):
    """Body of POST /api/students/{id}/reports."""

    phases: list[Phase] = Field(default_factory=list)
