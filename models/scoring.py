"""Scoring and ranking output models — derived on demand, never persisted."""

from __future__ import annotations

from datetime import date

from pydantic import Field

from models.base import CamelModel, FrozenCamelModel
from models.evaluation import CanonicalSubject, Phase, PhaseSummary, StudentProfile


class PhaseMetrics(FrozenCamelModel):
    """Aggregate metrics for one (student, phase)."""

    global_score: int = 0  # 0..500
    phase_percentage: int = 0  # share of the 7 subjects completed
    average_time_per_question: float = 0.0  # minutes
    fraud_attempts: int = 0
    luck_percentage: int = 0
    completed_subjects: int = 0
    total_questions: int = 0


class RankResult(FrozenCamelModel):
    """Position of a student inside a cohort. ``position`` is None when unranked."""

    student_id: str
    position: int | None = None
    cohort_size: int = 0

    @property
    def ranked(self) -> bool:
        return self.position is not None


class SubjectScoreEntry(CamelModel):
    """Best observed result for one canonical subject."""

    subject: CanonicalSubject
    percentage: float
    score: int
    percentile: int
    rank: RankResult | None = None


class SubjectSnapshot(FrozenCamelModel):
    """Subject percentage from a prior phase, used for trend rendering."""

    subject: CanonicalSubject
    percentage: float


class PhaseAvailability(CamelModel):
    """Whether each phase has all seven subjects completed."""

    student_id: str
    phases: dict[Phase, bool] = Field(default_factory=dict)

    @property
    def available(self) -> list[Phase]:
        return [phase for phase, ok in self.phases.items() if ok]


class ReportContext(CamelModel):
    """Everything the report assembler needs to render one (student, phase) document."""

    student: StudentProfile
    student_name: str
    id_number: str
    institution_name: str
    phase: Phase
    phase_label: str
    generated_on: date
    summary: PhaseSummary
    metrics: PhaseMetrics
    subjects: list[SubjectScoreEntry] = Field(default_factory=list)
    global_score: int = 0
    global_percentile: int = 0
    global_rank: RankResult | None = None
    previous_phases: dict[Phase, list[SubjectSnapshot]] = Field(default_factory=dict)


class PhaseScorecard(CamelModel):
    """Metrics and subject rows for one (student, phase), without cohort ranks."""

    student_id: str
    phase: Phase
    metrics: PhaseMetrics
    subjects: list[SubjectScoreEntry] = Field(default_factory=list)
    global_percentile: int = 0
