"""Per-(student, phase) report pipeline.

resolve → score → rank → summary → assemble. One pipeline run owns its
resolved records and metrics; nothing is shared between concurrent runs.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import date

from errors.exceptions import (
    NoResolvedSubjectsError,
    StudentNotFoundError,
    SummaryUnavailableError,
)
from models.evaluation import Phase, PhaseSummary, StudentProfile, StudentRef
from models.scoring import (
    PhaseScorecard,
    RankResult,
    ReportContext,
    SubjectScoreEntry,
    SubjectSnapshot,
)
from services.evaluation_resolver import resolve
from services.ranking import RankingService
from services.record_store import RecordStore, SummaryProvider
from services.report_assembler import ReportAssembler, ReportHandle
from services.scoring import global_percentile, score, subject_entries, subject_percentages

logger = logging.getLogger(__name__)

DEFAULT_STUDENT_NAME = "Estudiante"
DEFAULT_INSTITUTION_NAME = "No especificada"

PRIOR_PHASES: dict[Phase, tuple[Phase, ...]] = {
    Phase.FIRST: (),
    Phase.SECOND: (),
    Phase.THIRD: (Phase.FIRST, Phase.SECOND),
}


async def phase_scorecard(store: RecordStore, student_id: str, phase: Phase) -> PhaseScorecard:
    """Metrics and subject rows for one phase (no ranking, no summary)."""
    records = await resolve(store, student_id, phase)
    metrics = score(records)
    return PhaseScorecard(
        student_id=student_id,
        phase=phase,
        metrics=metrics,
        subjects=subject_entries(records),
        global_percentile=global_percentile(metrics.global_score),
    )


async def fetch_or_generate_summary(
    summaries: SummaryProvider, student_id: str, phase: Phase
) -> PhaseSummary:
    """Return the stored summary, generating it first when missing.

    Raises:
        SummaryUnavailableError: Neither stored nor generated.
    """
    summary = await summaries.get_summary(student_id, phase)
    if summary is not None:
        return summary
    logger.info("Summary for %s (%s) missing; requesting generation", student_id, phase.value)
    summary = await summaries.generate_summary(student_id, phase)
    if summary is None:
        raise SummaryUnavailableError(student_id, phase.value)
    return summary


class ReportPipeline:
    """Builds report contexts and hands them to the assembler."""

    def __init__(
        self,
        store: RecordStore,
        summaries: SummaryProvider,
        ranking: RankingService,
        assembler: ReportAssembler,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.store = store
        self.summaries = summaries
        self.ranking = ranking
        self.assembler = assembler
        self._today = today

    async def _profile(self, student_id: str, phase: Phase) -> StudentProfile:
        profile = await self.store.get_student_profile(student_id)
        if profile is None:
            raise StudentNotFoundError(student_id, phase.value)
        return profile

    async def _institution_name(self, profile: StudentProfile) -> str:
        if not profile.institution_id:
            return DEFAULT_INSTITUTION_NAME
        name = await self.store.get_institution_name(profile.institution_id)
        return name or DEFAULT_INSTITUTION_NAME

    async def _previous_phases(
        self, student_id: str, phase: Phase
    ) -> dict[Phase, list[SubjectSnapshot]]:
        snapshots: dict[Phase, list[SubjectSnapshot]] = {}
        for prior in PRIOR_PHASES[phase]:
            records = await resolve(self.store, student_id, prior)
            snapshots[prior] = [
                SubjectSnapshot(subject=subject, percentage=percentage)
                for subject, percentage in subject_percentages(records).items()
                if percentage > 0
            ]
        return snapshots

    async def _rank(
        self,
        student_id: str,
        profile: StudentProfile,
        phase: Phase,
        subjects: list[SubjectScoreEntry],
    ) -> tuple[RankResult, list[SubjectScoreEntry]]:
        """Global rank, plus per-subject ranks on the final phase.

        A failed roster or cohort read leaves the report unranked.
        """
        try:
            cohort = await self.ranking.cohort_for(profile)
            cohort_scores = await self.ranking.cohort_scores(cohort, phase)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning(
                "Ranking unavailable for %s (%s); report continues unranked: %s",
                student_id, phase.value, exc,
            )
            return RankResult(student_id=student_id, position=None, cohort_size=0), subjects
        if phase.is_final:
            subjects = [
                entry.model_copy(update={"rank": cohort_scores.rank_subject(student_id, entry.subject)})
                for entry in subjects
            ]
        return cohort_scores.rank_global(student_id), subjects

    async def build_context(
        self, student_id: str, phase: Phase, name_hint: str = ""
    ) -> ReportContext:
        """Gather everything one report needs.

        Raises:
            StudentNotFoundError: Unknown student.
            SummaryUnavailableError: Summary missing and not generatable.
            NoResolvedSubjectsError: Zero subjects resolved for the phase.
        """
        profile = await self._profile(student_id, phase)
        summary = await fetch_or_generate_summary(self.summaries, student_id, phase)

        records = await resolve(self.store, student_id, phase)
        if not records:
            raise NoResolvedSubjectsError(student_id, phase.value)

        metrics = score(records)
        subjects = subject_entries(records)

        global_rank, subjects = await self._rank(student_id, profile, phase, subjects)

        return ReportContext(
            student=profile,
            student_name=profile.name or name_hint or DEFAULT_STUDENT_NAME,
            id_number=profile.id_number or student_id,
            institution_name=await self._institution_name(profile),
            phase=phase,
            phase_label=phase.label,
            generated_on=self._today(),
            summary=summary,
            metrics=metrics,
            subjects=subjects,
            global_score=metrics.global_score,
            global_percentile=global_percentile(metrics.global_score),
            global_rank=global_rank,
            previous_phases=await self._previous_phases(student_id, phase),
        )

    async def run(self, student: StudentRef, phase: Phase) -> ReportHandle:
        context = await self.build_context(student.student_id, phase, student.name)
        return await self.assembler.assemble(context)
