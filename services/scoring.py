"""Scoring engine — pure functions from resolved evaluation records to metrics.

Weighting: the three natural sciences share the weight of one regular
subject (``100 / 3`` points each); the other four subjects are worth up to
100 points each, so a phase scores between 0 and 500.

Rounding follows the report convention of rounding halves up
(``round_half_up(2.5) == 3``), not Python's banker's rounding.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping

from models.evaluation import (
    NATURAL_SCIENCES,
    SUBJECT_ORDER,
    CanonicalSubject,
    EvaluationRecord,
)
from models.scoring import PhaseMetrics, SubjectScoreEntry
from services.subject_normalizer import is_canonical, normalize

NATURAL_SCIENCE_POINTS = 100 / 3
REGULAR_SUBJECT_POINTS = 100.0
TOTAL_SUBJECTS = len(SUBJECT_ORDER)
MAX_GLOBAL_SCORE = 500

LUCK_THRESHOLD_SECONDS = 10

# (minimum score, percentile), checked top-down.
PERCENTILE_STEPS: tuple[tuple[int, int], ...] = (
    (90, 95),
    (85, 90),
    (80, 85),
    (75, 78),
    (70, 70),
    (65, 62),
    (60, 55),
    (55, 47),
    (50, 40),
    (45, 33),
    (40, 27),
    (35, 20),
    (30, 15),
)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp_percentage(value: float) -> float:
    return min(100.0, max(0.0, value))


# ---------------------------------------------------------------------------
# Per-record
# ---------------------------------------------------------------------------

def record_percentage(record: EvaluationRecord) -> float:
    """Derive the 0-100 percentage of one attempt.

    Preference order: explicit overall percentage, then correct/total counts
    (only when total > 0), then the share of per-question outcomes marked
    correct. Records with none of these score 0.
    """
    score = record.score
    if score.overall_percentage is not None:
        return _clamp_percentage(score.overall_percentage)
    if (
        score.correct_answers is not None
        and score.total_questions is not None
        and score.total_questions > 0
    ):
        return _clamp_percentage(score.correct_answers / score.total_questions * 100)
    if record.question_outcomes:
        correct = sum(1 for q in record.question_outcomes if q.is_correct)
        return correct / len(record.question_outcomes) * 100
    return 0.0


def record_question_count(record: EvaluationRecord) -> int:
    """Questions counted toward the phase total.

    Only attempts scored from counts or per-question outcomes contribute;
    an explicit overall percentage carries no question count.
    """
    score = record.score
    if score.overall_percentage is not None:
        return 0
    if (
        score.correct_answers is not None
        and score.total_questions is not None
        and score.total_questions > 0
    ):
        return score.total_questions
    return len(record.question_outcomes)


def subject_points(subject: CanonicalSubject) -> float:
    """Maximum contribution of *subject* to the global score."""
    if subject in NATURAL_SCIENCES:
        return NATURAL_SCIENCE_POINTS
    return REGULAR_SUBJECT_POINTS


# ---------------------------------------------------------------------------
# Per-phase
# ---------------------------------------------------------------------------

def subject_percentages(records: Iterable[EvaluationRecord]) -> dict[CanonicalSubject, float]:
    """Best percentage per recognized subject, in report order."""
    best: dict[CanonicalSubject, float] = {}
    for record in records:
        subject = normalize(record.subject_label)
        if not is_canonical(subject):
            continue
        percentage = record_percentage(record)
        if subject not in best or percentage > best[subject]:
            best[subject] = percentage
    return {s: best[s] for s in SUBJECT_ORDER if s in best}


def weighted_total(percentages: Mapping[CanonicalSubject, float]) -> float:
    """Unrounded weighted sum of subject percentages (0..500)."""
    return sum(p / 100 * subject_points(s) for s, p in percentages.items())


def global_score(percentages: Mapping[CanonicalSubject, float]) -> int:
    return min(MAX_GLOBAL_SCORE, round_half_up(weighted_total(percentages)))


def phase_percentage(completed_subjects: int) -> int:
    return round_half_up(completed_subjects / TOTAL_SUBJECTS * 100)


def average_time_minutes(records: Iterable[EvaluationRecord]) -> float:
    """Mean of positive time samples across all outcomes, in minutes."""
    samples = [t for r in records for t in r.time_samples if t > 0]
    if not samples:
        return 0.0
    return sum(samples) / len(samples) / 60


def luck_percentage(records: Iterable[EvaluationRecord]) -> int:
    """Share of answered, timed, non-English questions answered in under 10 s."""
    timed = 0
    lucky = 0
    for record in records:
        if normalize(record.subject_label) is CanonicalSubject.ENGLISH:
            continue
        for q in record.question_outcomes:
            if not q.answered or q.time_spent is None or q.time_spent <= 0:
                continue
            timed += 1
            if q.time_spent < LUCK_THRESHOLD_SECONDS:
                lucky += 1
    if timed == 0:
        return 0
    return round_half_up(lucky / timed * 100)


def fraud_attempts(records: Iterable[EvaluationRecord]) -> int:
    return sum(1 for r in records if r.suspected_fraud)


def score(records: list[EvaluationRecord]) -> PhaseMetrics:
    """Compute :class:`PhaseMetrics` for one resolved (student, phase) record set."""
    percentages = subject_percentages(records)
    return PhaseMetrics(
        global_score=global_score(percentages),
        phase_percentage=phase_percentage(len(percentages)),
        average_time_per_question=average_time_minutes(records),
        fraud_attempts=fraud_attempts(records),
        luck_percentage=luck_percentage(records),
        completed_subjects=len(percentages),
        total_questions=sum(record_question_count(r) for r in records),
    )


# ---------------------------------------------------------------------------
# Percentiles / subject entries
# ---------------------------------------------------------------------------

def percentile_bucket(value: float) -> int:
    """Hand-authored step table from a 0-100 score to a percentile estimate."""
    for threshold, percentile in PERCENTILE_STEPS:
        if value >= threshold:
            return percentile
    return max(5, round_half_up(value / 2))


def global_percentile(global_points: int) -> int:
    return percentile_bucket(global_points / MAX_GLOBAL_SCORE * 100)


def subject_entries(records: list[EvaluationRecord]) -> list[SubjectScoreEntry]:
    """Per-subject report rows in canonical order, without ranks."""
    entries = []
    for subject, percentage in subject_percentages(records).items():
        points = round_half_up(percentage)
        entries.append(SubjectScoreEntry(
            subject=subject,
            percentage=percentage,
            score=points,
            percentile=percentile_bucket(percentage),
        ))
    return entries
