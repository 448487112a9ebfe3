"""Property-based tests for scoring and ranking rules."""

from hypothesis import given, settings
from hypothesis import strategies as st

from models.evaluation import CanonicalSubject, EvaluationRecord, Phase, QuestionOutcome, ScoreBlock
from services.ranking import rank_from_scores
from services.scoring import score
from services.subject_normalizer import normalize

SUBJECT_LABELS = [
    "Matemáticas", "matematicas", "Lenguaje", "Sociales", "Ciencias Sociales",
    "Biología", "biologia", "Quimica", "química", "Física", "FISICA", "Inglés", "ingles",
    "Filosofía", "",
]

outcomes = st.lists(
    st.builds(
        QuestionOutcome,
        is_correct=st.booleans(),
        answered=st.booleans(),
        time_spent=st.one_of(st.none(), st.floats(min_value=-5, max_value=600, allow_nan=False)),
    ),
    max_size=8,
)

score_blocks = st.builds(
    ScoreBlock,
    overall_percentage=st.one_of(st.none(), st.floats(min_value=-50, max_value=200, allow_nan=False)),
    correct_answers=st.one_of(st.none(), st.integers(min_value=0, max_value=60)),
    total_questions=st.one_of(st.none(), st.integers(min_value=0, max_value=50)),
)

records = st.builds(
    EvaluationRecord,
    student_id=st.just("stu-prop"),
    subject_label=st.sampled_from(SUBJECT_LABELS),
    phase=st.just(Phase.FIRST),
    score=score_blocks,
    question_outcomes=outcomes,
    tab_change_count=st.integers(min_value=0, max_value=3),
    locked_by_tab_change=st.booleans(),
)


@settings(max_examples=200, deadline=None)
@given(record_set=st.lists(records, max_size=20))
def test_global_score_bounded_integer(record_set):
    metrics = score(record_set)
    assert isinstance(metrics.global_score, int)
    assert 0 <= metrics.global_score <= 500
    assert 0 <= metrics.luck_percentage <= 100
    assert metrics.fraud_attempts <= len(record_set)


@settings(max_examples=200, deadline=None)
@given(record_set=st.lists(records, max_size=20))
def test_phase_percentage_full_iff_all_seven(record_set):
    recognized = {normalize(r.subject_label) for r in record_set} & set(CanonicalSubject)
    metrics = score(record_set)
    assert (metrics.phase_percentage == 100) == (len(recognized) == 7)
    assert metrics.completed_subjects == len(recognized)


@settings(max_examples=100, deadline=None)
@given(record_set=st.lists(records, max_size=20))
def test_scoring_is_idempotent(record_set):
    assert score(record_set) == score(list(record_set))


@settings(max_examples=100, deadline=None)
@given(
    others=st.dictionaries(
        st.text(alphabet="abcdef0123456789", min_size=1, max_size=6),
        st.floats(min_value=0, max_value=499, allow_nan=False),
        max_size=15,
    ),
)
def test_unique_top_score_ranks_first(others):
    scores = {f"peer-{sid}": value for sid, value in others.items()}
    scores["target"] = 500.0
    result = rank_from_scores("target", scores, len(scores))
    assert result.position == 1
    assert result.cohort_size == len(scores)


@settings(max_examples=100, deadline=None)
@given(
    scores=st.dictionaries(
        st.text(alphabet="abcdef", min_size=1, max_size=4),
        st.integers(min_value=0, max_value=5).map(float),
        min_size=1,
        max_size=12,
    ),
)
def test_rank_positions_are_a_permutation(scores):
    ranked = [rank_from_scores(sid, scores, len(scores)) for sid in scores]
    positions = sorted(r.position for r in ranked if r.position is not None)
    assert positions == list(range(1, len(positions) + 1))
    assert all((r.position is None) == (scores[r.student_id] <= 0) for r in ranked)
