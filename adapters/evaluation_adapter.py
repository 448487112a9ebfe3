"""Adapter for record-store exam results → internal EvaluationRecord.

Record-store endpoints handled:
- GET /results/{studentId}/phases/{phaseName}/evaluations → list[EvaluationRecord]

Results are stored per phase *spelling* (``"Fase I"``, ``"fase 1"``, ``"first"``…),
so callers query once per known variant; see ``services/evaluation_resolver``.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from models.evaluation import EvaluationRecord, Phase, QuestionOutcome, ScoreBlock
from services.record_store_client import RecordStoreClient

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response → Internal Model conversions
# ---------------------------------------------------------------------------

def _float_or_none(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _int_or_none(value: Any) -> int | None:
    number = _float_or_none(value)
    return int(number) if number is not None else None


def _parse_score(raw: Any) -> ScoreBlock:
    if not isinstance(raw, dict):
        return ScoreBlock()
    return ScoreBlock(
        overall_percentage=_float_or_none(raw.get("overallPercentage")),
        correct_answers=_int_or_none(raw.get("correctAnswers")),
        total_questions=_int_or_none(raw.get("totalQuestions")),
    )


def _parse_question(raw: dict[str, Any]) -> QuestionOutcome:
    return QuestionOutcome(
        question_id=str(raw.get("questionId", "")),
        is_correct=raw.get("isCorrect") is True,
        answered=raw.get("answered") is True,
        time_spent=_float_or_none(raw.get("timeSpent")),
    )


def is_completed(raw: dict[str, Any]) -> bool:
    """A result counts unless one of its completion flags is explicitly false."""
    return raw.get("isCompleted") is not False and raw.get("completed") is not False


def parse_evaluation(
    raw: dict[str, Any], student_id: str, phase: Phase, phase_variant: str = ""
) -> EvaluationRecord:
    """Convert one stored exam result document to :class:`EvaluationRecord`."""
    details = raw.get("questionDetails")
    outcomes = [
        _parse_question(q) for q in details if isinstance(q, dict)
    ] if isinstance(details, list) else []

    return EvaluationRecord(
        student_id=student_id,
        exam_id=str(raw.get("examId") or raw.get("id") or ""),
        subject_label=str(raw.get("subject") or raw.get("examTitle") or ""),
        phase=phase,
        phase_variant=phase_variant,
        score=_parse_score(raw.get("score")),
        question_outcomes=outcomes,
        tab_change_count=_int_or_none(raw.get("tabChangeCount")) or 0,
        locked_by_tab_change=raw.get("lockedByTabChange") is True,
        completed=is_completed(raw),
    )


# ---------------------------------------------------------------------------
# High-level API calls (through RecordStoreClient)
# ---------------------------------------------------------------------------

async def list_completed_evaluations(
    client: RecordStoreClient,
    student_id: str,
    phase_variant: str,
    phase: Phase,
) -> list[EvaluationRecord]:
    """Fetch completed evaluations stored under one phase spelling.

    GET /results/{studentId}/phases/{phaseName}/evaluations

    Documents without a subject label are skipped, as are documents whose
    completion flag is explicitly false. An empty collection is not an error.
    """
    items = await client.fetch(
        f"/results/{quote(student_id, safe='')}/phases/{quote(phase_variant, safe='')}/evaluations"
    )
    if items is None:
        return []
    if not isinstance(items, list):
        logger.warning("list_completed_evaluations: expected list, got %s", type(items))
        return []

    records: list[EvaluationRecord] = []
    for raw in items:
        if not isinstance(raw, dict) or not is_completed(raw) or not raw.get("subject"):
            continue
        records.append(parse_evaluation(raw, student_id, phase, phase_variant))
    return records

