"""Internal evaluation models — the canonical representation of record-store data.

Adapters in ``adapters/`` convert record-store DTOs into these models; the
resolver, scoring engine and ranking service only ever see these types.
Evaluation records are read-only inputs: nothing in this service mutates them.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class CanonicalSubject(str, Enum):
    """The seven subjects every phase is scored over.

    Values are the display labels printed on reports.
    """

    MATHEMATICS = "Matemáticas"
    LANGUAGE = "Lenguaje"
    SOCIAL_SCIENCES = "Ciencias Sociales"
    BIOLOGY = "Biologia"
    CHEMISTRY = "Quimica"
    PHYSICS = "Física"
    ENGLISH = "Inglés"


# Report order; also the iteration order for per-subject work.
SUBJECT_ORDER: tuple[CanonicalSubject, ...] = (
    CanonicalSubject.MATHEMATICS,
    CanonicalSubject.LANGUAGE,
    CanonicalSubject.SOCIAL_SCIENCES,
    CanonicalSubject.BIOLOGY,
    CanonicalSubject.CHEMISTRY,
    CanonicalSubject.PHYSICS,
    CanonicalSubject.ENGLISH,
)

NATURAL_SCIENCES: frozenset[CanonicalSubject] = frozenset({
    CanonicalSubject.BIOLOGY,
    CanonicalSubject.CHEMISTRY,
    CanonicalSubject.PHYSICS,
})


class Phase(str, Enum):
    """The three sequential assessment rounds."""

    FIRST = "first"
    SECOND = "second"
    THIRD = "third"

    @property
    def label(self) -> str:
        return _PHASE_LABELS[self]

    @property
    def is_final(self) -> bool:
        return self is Phase.THIRD


_PHASE_LABELS = {
    Phase.FIRST: "Fase I",
    Phase.SECOND: "Fase II",
    Phase.THIRD: "Fase III",
}


# ---------------------------------------------------------------------------
# Evaluation records
# ---------------------------------------------------------------------------

class QuestionOutcome(BaseModel):
    """One question inside an attempt."""
    question_id: str = ""
    is_correct: bool = False
    answered: bool = False
    time_spent: float | None = None  # seconds


class ScoreBlock(BaseModel):
    """Score fields as stored; any of them may be missing on legacy records."""
    overall_percentage: float | None = None
    correct_answers: int | None = None
    total_questions: int | None = None


class EvaluationRecord(BaseModel):
    """A completed attempt by one student, for one subject, within one phase."""
    student_id: str
    exam_id: str = ""
    subject_label: str = ""  # raw, not normalized
    phase: Phase
    phase_variant: str = ""  # collection name the record was read from
    score: ScoreBlock = Field(default_factory=ScoreBlock)
    question_outcomes: list[QuestionOutcome] = Field(default_factory=list)
    tab_change_count: int = 0
    locked_by_tab_change: bool = False
    completed: bool = True

    @property
    def time_samples(self) -> list[float]:
        """Per-question time-spent samples that were actually recorded."""
        return [q.time_spent for q in self.question_outcomes if q.time_spent is not None]

    @property
    def suspected_fraud(self) -> bool:
        return self.tab_change_count > 0 or self.locked_by_tab_change


# ---------------------------------------------------------------------------
# Students / institutions
# ---------------------------------------------------------------------------

class StudentRef(BaseModel):
    """A student as listed in a grade roster or batch selection."""
    student_id: str
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or "Sin nombre"


class StudentProfile(BaseModel):
    """Identity data used in report headers and for cohort lookup."""
    student_id: str
    name: str = ""
    id_number: str = ""
    institution_id: str = ""
    campus_id: str = ""
    grade_id: str = ""

    @property
    def has_cohort(self) -> bool:
        return bool(self.institution_id and self.campus_id and self.grade_id)


class PhaseSummary(BaseModel):
    """Narrative academic summary produced by the external summary service."""
    student_id: str
    phase: Phase
    summary: str = ""
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    generated_at: str | None = None
