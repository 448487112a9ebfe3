"""Tests for services/ranking.py — cohort scores, tie-breaks and exclusions."""

import pytest

from models.evaluation import CanonicalSubject, Phase, StudentProfile
from services.ranking import RankingService, rank_from_scores
from services.record_store import InMemoryRecordStore

COHORT = ["stu-001", "stu-002", "stu-003"]


# ---------------------------------------------------------------------------
# rank_from_scores
# ---------------------------------------------------------------------------

def test_descending_order():
    scores = {"a": 10.0, "b": 30.0, "c": 20.0}
    assert rank_from_scores("b", scores, 3).position == 1
    assert rank_from_scores("c", scores, 3).position == 2
    assert rank_from_scores("a", scores, 3).position == 3


def test_ties_broken_by_student_id():
    scores = {"zeta": 50.0, "alpha": 50.0, "mid": 50.0}
    assert rank_from_scores("alpha", scores, 3).position == 1
    assert rank_from_scores("mid", scores, 3).position == 2
    assert rank_from_scores("zeta", scores, 3).position == 3


def test_zero_score_is_unranked_but_counted():
    result = rank_from_scores("a", {"a": 0.0, "b": 10.0}, 2)
    assert result.position is None
    assert result.cohort_size == 2
    assert not result.ranked


def test_absent_student_is_unranked():
    result = rank_from_scores("ghost", {"a": 1.0}, 4)
    assert result.position is None
    assert result.cohort_size == 4


# ---------------------------------------------------------------------------
# RankingService over the mock store
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_rank_global_final_phase(store):
    service = RankingService(store)
    result = await service.rank_global("stu-001", COHORT, Phase.THIRD)
    assert result.position == 1
    assert result.cohort_size == 3


@pytest.mark.asyncio
async def test_rank_global_first_phase(store):
    service = RankingService(store)
    result = await service.rank_global("stu-001", COHORT, Phase.FIRST)
    # stu-003 leads phase one
    assert result.position == 2


@pytest.mark.asyncio
async def test_student_without_attempts_is_unranked(store):
    service = RankingService(store)
    result = await service.rank_global("stu-003", COHORT, Phase.SECOND)
    assert result.position is None
    assert result.cohort_size == 3


@pytest.mark.asyncio
async def test_failing_classmate_is_excluded(store):
    store.failing_students = {"stu-003"}
    service = RankingService(store)
    result = await service.rank_global("stu-001", COHORT, Phase.FIRST)
    assert result.position == 1
    assert result.cohort_size == 3


@pytest.mark.asyncio
async def test_rank_subject(store):
    service = RankingService(store)
    # Lenguaje, phase three: stu-001 83, stu-002 67, stu-003 55
    result = await service.rank_subject("stu-002", CanonicalSubject.LANGUAGE, COHORT, Phase.THIRD)
    assert result.position == 2
    assert result.cohort_size == 3


@pytest.mark.asyncio
async def test_rank_subject_skips_classmates_without_that_subject(store):
    service = RankingService(store)
    result = await service.rank_subject("stu-002", CanonicalSubject.ENGLISH, COHORT, Phase.SECOND)
    assert result.position is None


@pytest.mark.asyncio
async def test_cohort_scores_computed_once_for_all_subjects(store):
    service = RankingService(store)
    scores = await service.cohort_scores(COHORT, Phase.THIRD)
    reads = store.evaluation_reads
    for subject in CanonicalSubject:
        scores.rank_subject("stu-001", subject)
    scores.rank_global("stu-001")
    assert store.evaluation_reads == reads == 3 * 5


@pytest.mark.asyncio
async def test_duplicate_cohort_entries_counted_once(store):
    service = RankingService(store)
    scores = await service.cohort_scores(["stu-001", "stu-001", "stu-002"], Phase.FIRST)
    assert scores.size == 2


@pytest.mark.asyncio
async def test_cohort_for_profile(store):
    service = RankingService(store)
    profile = await store.get_student_profile("stu-002")
    assert await service.cohort_for(profile) == COHORT


@pytest.mark.asyncio
async def test_cohort_for_profile_without_grade():
    service = RankingService(InMemoryRecordStore())
    assert await service.cohort_for(StudentProfile(student_id="x")) == []


@pytest.mark.asyncio
async def test_read_concurrency_is_bounded():
    class CountingStore(InMemoryRecordStore):
        def __init__(self):
            super().__init__(read_delay=0.01)
            self.active = 0
            self.peak = 0

        async def list_completed_evaluations(self, student_id, phase_variant, phase):
            self.active += 1
            self.peak = max(self.peak, self.active)
            try:
                return await super().list_completed_evaluations(student_id, phase_variant, phase)
            finally:
                self.active -= 1

    counting = CountingStore()
    service = RankingService(counting, read_concurrency=2)
    await service.cohort_scores([f"s{i}" for i in range(6)], Phase.FIRST)
    # each resolution fans out over the five phase spellings
    assert counting.peak <= 2 * 5
