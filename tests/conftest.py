"""Shared pytest fixtures for the phase report service tests.

Provides:
- ``make_record``: factory for EvaluationRecord instances
- ``store``: fresh InMemoryRecordStore over the mock data set
- ``fake_assembler``: assembler that records contexts instead of writing files
- ``pipeline``: ReportPipeline over ``store`` and ``fake_assembler``
- ``scheduler_factory``: BatchExportScheduler builder with zero pacing delays
"""

from __future__ import annotations

from datetime import date

import pytest

from models.evaluation import EvaluationRecord, Phase, QuestionOutcome, ScoreBlock
from models.scoring import ReportContext
from services.batch_scheduler import BatchExportScheduler
from services.output_pool import BoundedResourcePool
from services.ranking import RankingService
from services.record_store import InMemoryRecordStore
from services.report_assembler import ReportAssembler, ReportHandle
from services.report_builder import ReportPipeline


def _record(
    subject: str,
    percentage: float | None = None,
    *,
    correct: int | None = None,
    total: int | None = None,
    outcomes: list[tuple[bool, bool, float | None]] | None = None,
    student_id: str = "stu-test",
    phase: Phase = Phase.FIRST,
    tab_changes: int = 0,
    locked: bool = False,
) -> EvaluationRecord:
    """``outcomes`` items are ``(is_correct, answered, time_spent)``."""
    return EvaluationRecord(
        student_id=student_id,
        subject_label=subject,
        phase=phase,
        score=ScoreBlock(
            overall_percentage=percentage,
            correct_answers=correct,
            total_questions=total,
        ),
        question_outcomes=[
            QuestionOutcome(question_id=f"q{i}", is_correct=c, answered=a, time_spent=t)
            for i, (c, a, t) in enumerate(outcomes or [])
        ],
        tab_change_count=tab_changes,
        locked_by_tab_change=locked,
    )


class FakeAssembler(ReportAssembler):
    """Collects contexts and hands back in-memory handles."""

    def __init__(self) -> None:
        self.contexts: list[ReportContext] = []
        self.handles: list[ReportHandle] = []

    async def assemble(self, context: ReportContext) -> ReportHandle:
        self.contexts.append(context)
        handle = ReportHandle(name=f"{context.student.student_id}-{context.phase.value}")
        self.handles.append(handle)
        return handle


@pytest.fixture
def make_record():
    return _record


@pytest.fixture
def store() -> InMemoryRecordStore:
    """Fresh in-memory record store over the mock data set — isolated per test."""
    return InMemoryRecordStore.from_mock_data()


@pytest.fixture
def fake_assembler() -> FakeAssembler:
    return FakeAssembler()


@pytest.fixture
def pipeline(store, fake_assembler) -> ReportPipeline:
    return ReportPipeline(
        store=store,
        summaries=store,
        ranking=RankingService(store, read_concurrency=3),
        assembler=fake_assembler,
        today=lambda: date(2025, 10, 20),
    )


@pytest.fixture
def scheduler_factory(pipeline):
    """Build schedulers with zero pacing delays unless overridden."""

    def _build(**overrides) -> BatchExportScheduler:
        options = {
            "batch_size": 3,
            "task_start_delay": 0.0,
            "group_delay": 0.0,
            "phase_export_delay": 0.0,
        }
        capacity = overrides.pop("max_open_reports", 5)
        target = overrides.pop("pipeline", pipeline)
        options.update(overrides)
        return BatchExportScheduler(target, BoundedResourcePool(capacity), **options)

    return _build
