"""Record store — the external source of results, rosters and summaries.

Provides an abstract interface with two implementations:

- :class:`HttpRecordStore` — the production store, reached through
  ``RecordStoreClient`` and the ``adapters/`` DTO converters.
- :class:`InMemoryRecordStore` — serves raw documents held in memory
  (``services/mock_data`` by default); used for local development and tests.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from typing import Any

from adapters import evaluation_adapter, student_adapter, summary_adapter
from adapters.evaluation_adapter import is_completed, parse_evaluation
from adapters.student_adapter import _parse_profile, _parse_student_ref
from adapters.summary_adapter import _parse_summary
from models.evaluation import (
    EvaluationRecord,
    Phase,
    PhaseSummary,
    StudentProfile,
    StudentRef,
)
from services.record_store_client import RecordStoreClient, get_record_store_client
from services.subject_normalizer import is_canonical, normalize

logger = logging.getLogger(__name__)

_store: HttpRecordStore | InMemoryRecordStore | None = None


class RecordStore(ABC):
    """Read interface every pipeline stage depends on."""

    @abstractmethod
    async def list_completed_evaluations(
        self, student_id: str, phase_variant: str, phase: Phase
    ) -> list[EvaluationRecord]:
        """Completed evaluations stored under one phase spelling (may be empty)."""

    @abstractmethod
    async def list_cohort_students(
        self, institution_id: str, campus_id: str, grade_id: str, active_only: bool = True
    ) -> list[StudentRef]:
        """Classmates sharing institution, campus and grade."""

    @abstractmethod
    async def get_student_profile(self, student_id: str) -> StudentProfile | None:
        """Identity data, or None for an unknown student."""

    @abstractmethod
    async def get_institution_name(self, institution_id: str) -> str | None:
        """Display name of an institution, or None."""


class SummaryProvider(ABC):
    """Source of the narrative academic summary embedded in each report."""

    @abstractmethod
    async def get_summary(self, student_id: str, phase: Phase) -> PhaseSummary | None:
        """Stored academic summary, or None when not generated yet."""

    @abstractmethod
    async def generate_summary(self, student_id: str, phase: Phase) -> PhaseSummary | None:
        """Generate and store the academic summary; None when it cannot be produced."""


class HttpRecordStore(RecordStore, SummaryProvider):
    """Record store backed by the remote HTTP API."""

    def __init__(self, client: RecordStoreClient) -> None:
        self._client = client

    async def list_completed_evaluations(
        self, student_id: str, phase_variant: str, phase: Phase
    ) -> list[EvaluationRecord]:
        return await evaluation_adapter.list_completed_evaluations(
            self._client, student_id, phase_variant, phase
        )

    async def list_cohort_students(
        self, institution_id: str, campus_id: str, grade_id: str, active_only: bool = True
    ) -> list[StudentRef]:
        return await student_adapter.list_cohort_students(
            self._client, institution_id, campus_id, grade_id, active_only
        )

    async def get_student_profile(self, student_id: str) -> StudentProfile | None:
        return await student_adapter.get_student_profile(self._client, student_id)

    async def get_institution_name(self, institution_id: str) -> str | None:
        return await student_adapter.get_institution_name(self._client, institution_id)

    async def get_summary(self, student_id: str, phase: Phase) -> PhaseSummary | None:
        return await summary_adapter.get_summary(self._client, student_id, phase)

    async def generate_summary(self, student_id: str, phase: Phase) -> PhaseSummary | None:
        return await summary_adapter.generate_summary(self._client, student_id, phase)


class InMemoryRecordStore(RecordStore, SummaryProvider):
    """Record store over raw documents kept in memory.

    ``failing_reads`` holds ``(student_id, phase_variant)`` pairs whose read
    raises, and ``failing_students`` student ids whose every read raises;
    both simulate transient store failures. ``read_delay`` adds a suspension
    point to every evaluation read.
    """

    def __init__(
        self,
        results: dict[str, dict[str, list[dict[str, Any]]]] | None = None,
        students: dict[str, dict[str, Any]] | None = None,
        institutions: dict[str, dict[str, Any]] | None = None,
        summaries: dict[tuple[str, str], dict[str, Any]] | None = None,
        *,
        failing_reads: set[tuple[str, str]] | None = None,
        failing_students: set[str] | None = None,
        read_delay: float = 0.0,
    ) -> None:
        self.results = results if results is not None else {}
        self.students = students if students is not None else {}
        self.institutions = institutions if institutions is not None else {}
        self.summaries = summaries if summaries is not None else {}
        self.failing_reads = failing_reads or set()
        self.failing_students = failing_students or set()
        self.read_delay = read_delay
        self.evaluation_reads = 0

    @classmethod
    def from_mock_data(cls) -> InMemoryRecordStore:
        from services import mock_data

        return cls(
            results=copy.deepcopy(mock_data.RESULTS),
            students=copy.deepcopy(mock_data.STUDENTS),
            institutions=copy.deepcopy(mock_data.INSTITUTIONS),
            summaries=copy.deepcopy(mock_data.SUMMARIES),
        )

    async def list_completed_evaluations(
        self, student_id: str, phase_variant: str, phase: Phase
    ) -> list[EvaluationRecord]:
        self.evaluation_reads += 1
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        if student_id in self.failing_students or (student_id, phase_variant) in self.failing_reads:
            raise RuntimeError(f"simulated read failure for {student_id}/{phase_variant}")
        docs = self.results.get(student_id, {}).get(phase_variant, [])
        return [
            parse_evaluation(doc, student_id, phase, phase_variant)
            for doc in docs
            if is_completed(doc) and doc.get("subject")
        ]

    async def list_cohort_students(
        self, institution_id: str, campus_id: str, grade_id: str, active_only: bool = True
    ) -> list[StudentRef]:
        cohort: list[StudentRef] = []
        for sid, raw in self.students.items():
            profile = _parse_profile(raw, sid)
            if (profile.institution_id, profile.campus_id, profile.grade_id) != (
                institution_id, campus_id, grade_id,
            ):
                continue
            if active_only and raw.get("isActive") is False:
                continue
            ref = _parse_student_ref(raw)
            cohort.append(ref if ref.student_id else StudentRef(student_id=sid, name=ref.name))
        return cohort

    async def get_student_profile(self, student_id: str) -> StudentProfile | None:
        if student_id in self.failing_students:
            raise RuntimeError(f"simulated profile failure for {student_id}")
        raw = self.students.get(student_id)
        return _parse_profile(raw, student_id) if raw is not None else None

    async def get_institution_name(self, institution_id: str) -> str | None:
        raw = self.institutions.get(institution_id)
        return str(raw["name"]) if raw and raw.get("name") else None

    async def get_summary(self, student_id: str, phase: Phase) -> PhaseSummary | None:
        raw = self.summaries.get((student_id, phase.value))
        return _parse_summary(raw, student_id, phase) if raw is not None else None

    async def generate_summary(self, student_id: str, phase: Phase) -> PhaseSummary | None:
        """Mirror the summary service: refuse unless all seven subjects are completed."""
        from services.evaluation_resolver import phase_variants

        subjects = set()
        for variant in phase_variants(phase):
            for doc in self.results.get(student_id, {}).get(variant, []):
                if not is_completed(doc) or not doc.get("subject"):
                    continue
                subject = normalize(str(doc["subject"]))
                if is_canonical(subject):
                    subjects.add(subject)
        if len(subjects) < 7:
            return None
        raw = {
            "summary": f"Resumen generado para {phase.label}.",
            "strengths": [],
            "improvements": [],
        }
        self.summaries[(student_id, phase.value)] = raw
        return _parse_summary(raw, student_id, phase)


def get_record_store() -> HttpRecordStore | InMemoryRecordStore:
    """Get the singleton record store selected by settings."""
    global _store
    if _store is None:
        from config.settings import get_settings

        if get_settings().use_mock_data:
            _store = InMemoryRecordStore.from_mock_data()
            logger.info("Initialized InMemoryRecordStore (mock data)")
        else:
            _store = HttpRecordStore(get_record_store_client())
            logger.info("Initialized HttpRecordStore")
    return _store


def set_record_store(store: HttpRecordStore | InMemoryRecordStore | None) -> None:
    """Replace the singleton (tests and embedding applications)."""
    global _store
    _store = store
