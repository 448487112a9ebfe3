"""Ranking service — classmate positions for a phase.

Every cohort member needs its own resolver + scoring pass, so cohort
scores are computed once per call and shared by the global and the
per-subject rankings. Classmates whose resolution fails, and classmates
scoring 0 (no attempt), are left out of the ranked list; the cohort size
still counts them.

Ties are broken by student id (ascending) so positions do not depend on
the order the roster was returned in.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping, Sequence

from models.evaluation import CanonicalSubject, Phase, StudentProfile
from models.scoring import RankResult
from services.concurrency import bounded_gather
from services.evaluation_resolver import resolve
from services.record_store import RecordStore
from services.scoring import subject_percentages, weighted_total

logger = logging.getLogger(__name__)

# Cohort comparisons keep two decimals of the weighted total.
COHORT_SCORE_PRECISION = 2


def rank_from_scores(student_id: str, scores: Mapping[str, float], cohort_size: int) -> RankResult:
    """Locate *student_id* in *scores* sorted by score desc, then student id asc."""
    ranked = sorted(
        ((sid, value) for sid, value in scores.items() if value > 0),
        key=lambda item: (-item[1], item[0]),
    )
    position = next(
        (index + 1 for index, (sid, _) in enumerate(ranked) if sid == student_id),
        None,
    )
    return RankResult(student_id=student_id, position=position, cohort_size=cohort_size)


class CohortScores:
    """Subject percentages of every classmate that resolved, for one phase."""

    def __init__(
        self,
        phase: Phase,
        cohort: Sequence[str],
        percentages: Mapping[str, Mapping[CanonicalSubject, float]],
    ) -> None:
        self.phase = phase
        self.cohort = list(cohort)
        self.percentages = dict(percentages)

    @property
    def size(self) -> int:
        return len(self.cohort)

    def global_scores(self) -> dict[str, float]:
        return {
            sid: round(weighted_total(subjects), COHORT_SCORE_PRECISION)
            for sid, subjects in self.percentages.items()
        }

    def subject_scores(self, subject: CanonicalSubject) -> dict[str, float]:
        return {
            sid: subjects[subject]
            for sid, subjects in self.percentages.items()
            if subjects.get(subject)
        }

    def rank_global(self, student_id: str) -> RankResult:
        return rank_from_scores(student_id, self.global_scores(), self.size)

    def rank_subject(self, student_id: str, subject: CanonicalSubject) -> RankResult:
        return rank_from_scores(student_id, self.subject_scores(subject), self.size)


class RankingService:
    """Compute cohort ranks with a bounded number of concurrent classmate reads."""

    def __init__(self, store: RecordStore, read_concurrency: int = 5) -> None:
        self._store = store
        self._read_concurrency = read_concurrency

    async def cohort_for(self, profile: StudentProfile) -> list[str]:
        """Active classmates sharing institution, campus and grade (ids, roster order)."""
        if not profile.has_cohort:
            logger.info("Student %s has no institution/campus/grade; empty cohort", profile.student_id)
            return []
        students = await self._store.list_cohort_students(
            profile.institution_id, profile.campus_id, profile.grade_id, active_only=True,
        )
        return [s.student_id for s in students]

    async def cohort_scores(self, cohort: Iterable[str], phase: Phase) -> CohortScores:
        members = list(dict.fromkeys(cohort))
        results = await bounded_gather(
            [lambda sid=sid: resolve(self._store, sid, phase) for sid in members],
            self._read_concurrency,
        )
        percentages: dict[str, dict[CanonicalSubject, float]] = {}
        for sid, result in zip(members, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.debug("Excluding classmate %s from %s ranking: %s", sid, phase.value, result)
                continue
            percentages[sid] = subject_percentages(result)
        return CohortScores(phase, members, percentages)

    async def rank_global(self, student_id: str, cohort: Sequence[str], phase: Phase) -> RankResult:
        scores = await self.cohort_scores(cohort, phase)
        return scores.rank_global(student_id)

    async def rank_subject(
        self,
        student_id: str,
        subject: CanonicalSubject,
        cohort: Sequence[str],
        phase: Phase,
    ) -> RankResult:
        scores = await self.cohort_scores(cohort, phase)
        return scores.rank_subject(student_id, subject)
