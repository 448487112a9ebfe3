"""Evaluation resolver — one best completed record per canonical subject.

Phase results have been stored under several spellings over the years, so a
phase read fans out over every known variant and merges the results. When a
subject has several records (re-takes, legacy duplicates) the one with the
highest derived percentage wins; on equal percentages the first record seen
wins, where "seen" follows the variant order in ``PHASE_VARIANTS`` and then
the store's document order.
"""

from __future__ import annotations

import asyncio
import logging

from models.evaluation import SUBJECT_ORDER, CanonicalSubject, EvaluationRecord, Phase
from models.scoring import PhaseAvailability
from services.record_store import RecordStore
from services.scoring import record_percentage
from services.subject_normalizer import is_canonical, normalize

logger = logging.getLogger(__name__)

PHASE_VARIANTS: dict[Phase, tuple[str, ...]] = {
    Phase.FIRST: ("fase I", "Fase I", "Fase 1", "fase 1", "first"),
    Phase.SECOND: ("Fase II", "fase II", "Fase 2", "fase 2", "second"),
    Phase.THIRD: ("fase III", "Fase III", "Fase 3", "fase 3", "third"),
}


def phase_variants(phase: Phase) -> tuple[str, ...]:
    return PHASE_VARIANTS[phase]


async def fetch_phase_evaluations(
    store: RecordStore, student_id: str, phase: Phase
) -> list[EvaluationRecord]:
    """Read every variant collection of *phase*; a failing variant is logged and skipped."""
    variants = phase_variants(phase)
    results = await asyncio.gather(
        *(store.list_completed_evaluations(student_id, v, phase) for v in variants),
        return_exceptions=True,
    )

    records: list[EvaluationRecord] = []
    for variant, result in zip(variants, results):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            logger.warning(
                "Phase variant read failed for %s (%s): %s", student_id, variant, result,
            )
            continue
        records.extend(result)
    return records


def pick_best(records: list[EvaluationRecord]) -> dict[CanonicalSubject, EvaluationRecord]:
    """Keep the highest-percentage record per recognized subject (first seen on ties)."""
    best: dict[CanonicalSubject, tuple[float, EvaluationRecord]] = {}
    for record in records:
        subject = normalize(record.subject_label)
        if not is_canonical(subject):
            logger.debug("Dropping unrecognized subject %r for %s", record.subject_label, record.student_id)
            continue
        percentage = record_percentage(record)
        current = best.get(subject)
        if current is None or percentage > current[0]:
            best[subject] = (percentage, record)
    return {subject: best[subject][1] for subject in SUBJECT_ORDER if subject in best}


async def resolve_by_subject(
    store: RecordStore, student_id: str, phase: Phase
) -> dict[CanonicalSubject, EvaluationRecord]:
    """Resolved records keyed by subject, in report order."""
    return pick_best(await fetch_phase_evaluations(store, student_id, phase))


async def resolve(store: RecordStore, student_id: str, phase: Phase) -> list[EvaluationRecord]:
    """One record per canonical subject that has at least one completed attempt."""
    return list((await resolve_by_subject(store, student_id, phase)).values())


async def check_phase_availability(store: RecordStore, student_id: str) -> PhaseAvailability:
    """A phase is available for export once all seven subjects are resolved."""
    phases = list(Phase)
    results = await asyncio.gather(
        *(resolve_by_subject(store, student_id, phase) for phase in phases),
        return_exceptions=True,
    )
    availability: dict[Phase, bool] = {}
    for phase, result in zip(phases, results):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            logger.warning("Availability check failed for %s (%s): %s", student_id, phase.value, result)
            availability[phase] = False
        else:
            availability[phase] = len(result) == len(SUBJECT_ORDER)
    return PhaseAvailability(student_id=student_id, phases=availability)
