"""Batch export scheduler — many (student, phase) report pipelines under throttling.

Lifecycle of one run: ``IDLE → RUNNING → (COMPLETED | CANCELLED)``.

The task list is the student × phase cross-product (phases nested per
student). Tasks are processed in fixed-size groups; inside a group a
:class:`WorkerPool` paces task starts, and between groups the scheduler
waits ``group_delay`` seconds. Cancellation is cooperative: the token is
checked before each group starts, and tasks already dispatched always run
to completion.

Progress lives in a :class:`BatchRun` owned by the scheduler. It is only
mutated from the scheduler's own control flow; callers get immutable
:class:`BatchJobState` snapshots, either polled through ``get_progress`` or
pushed to ``subscribe()`` queues after every change.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Sequence

from errors.exceptions import (
    BatchAlreadyRunningError,
    InvalidBatchRequestError,
    TaskFailedError,
)
from models.batch import BatchJobState, BatchStatus, BatchSummary, BatchTask
from models.evaluation import Phase, StudentRef
from services.output_pool import BoundedResourcePool
from services.report_assembler import ReportHandle
from services.report_builder import ReportPipeline
from services.scoring import round_half_up
from services.worker_pool import TaskOutcome, WorkerPool

logger = logging.getLogger(__name__)

SUBSCRIBER_QUEUE_SIZE = 100


class CancellationToken:
    """Cooperative cancellation flag with an interruptible wait."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self, timeout: float) -> bool:
        """Sleep up to *timeout* seconds; returns True if cancelled meanwhile."""
        if timeout <= 0:
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True


class BatchRun:
    """Mutable counters of one run. Owned by the scheduler; never handed out."""

    def __init__(
        self,
        tasks: Sequence[BatchTask],
        phases: Sequence[Phase],
        student_count: int,
        clock: Callable[[], float],
    ) -> None:
        self.tasks = list(tasks)
        self.phases = list(phases)
        self.student_count = student_count
        self.token = CancellationToken()
        self.status = BatchStatus.RUNNING
        self.completed_count = 0
        self.success_count = 0
        self.error_count = 0
        self.current_student = ""
        self.estimated_seconds_remaining = 0
        self._clock = clock
        self.started_at = clock()
        self.finished_at: float | None = None

    @property
    def total(self) -> int:
        return len(self.tasks)

    @property
    def elapsed(self) -> float:
        end = self.finished_at if self.finished_at is not None else self._clock()
        return end - self.started_at

    def record(self, ok: bool) -> None:
        self.completed_count += 1
        if ok:
            self.success_count += 1
        else:
            self.error_count += 1
        remaining = self.total - self.completed_count
        self.estimated_seconds_remaining = round_half_up(
            self.elapsed / self.completed_count * remaining
        )

    def finish(self) -> None:
        self.finished_at = self._clock()
        self.current_student = ""
        self.estimated_seconds_remaining = 0
        if self.token.cancelled and self.completed_count < self.total:
            self.status = BatchStatus.CANCELLED
        else:
            self.status = BatchStatus.COMPLETED

    def snapshot(self) -> BatchJobState:
        return BatchJobState(
            status=self.status,
            total=self.total,
            completed_count=self.completed_count,
            success_count=self.success_count,
            error_count=self.error_count,
            current_student=self.current_student,
            estimated_seconds_remaining=self.estimated_seconds_remaining,
            cancel_requested=self.token.cancelled,
            elapsed_seconds=round(self.elapsed, 3),
        )

    def summary(self) -> BatchSummary:
        return BatchSummary(
            status=self.status,
            total=self.total,
            attempted=self.completed_count,
            success_count=self.success_count,
            error_count=self.error_count,
            elapsed_seconds=round(self.elapsed, 3),
            phases=self.phases,
            student_count=self.student_count,
        )


def build_tasks(students: Sequence[StudentRef], phases: Iterable[Phase]) -> list[BatchTask]:
    """Cross-product of students × phases, phases nested per student.

    Raises:
        InvalidBatchRequestError: Empty student list or empty phase set.
    """
    if not students:
        raise InvalidBatchRequestError("Select at least one student", field="students")
    selected = set(phases)
    ordered = [p for p in Phase if p in selected]
    if not ordered:
        raise InvalidBatchRequestError("Select at least one phase", field="phases")
    tasks: list[BatchTask] = []
    for student in students:
        for phase in ordered:
            tasks.append(BatchTask(index=len(tasks), student=student, phase=phase))
    return tasks


class BatchExportScheduler:
    """Drives batch runs through a :class:`ReportPipeline`.

    Args:
        pipeline: Per-task report pipeline.
        resources: Pool retaining the open report handles.
        batch_size: Tasks per group.
        workers: Concurrent tasks inside a group (``<= batch_size``).
        task_start_delay: Pause between task starts inside a group.
        group_delay: Pause between groups.
        task_timeout: Per-task timeout; ``None`` means no timeout.
        phase_export_delay: Pause between phases of a single-student export.
    """

    def __init__(
        self,
        pipeline: ReportPipeline,
        resources: BoundedResourcePool,
        *,
        batch_size: int = 3,
        workers: int | None = None,
        task_start_delay: float = 0.5,
        group_delay: float = 2.0,
        task_timeout: float | None = None,
        phase_export_delay: float = 1.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.pipeline = pipeline
        self.resources = resources
        self.batch_size = batch_size
        self.workers = min(workers or batch_size, batch_size)
        self.task_start_delay = task_start_delay
        self.group_delay = group_delay
        self.task_timeout = task_timeout
        self.phase_export_delay = phase_export_delay
        self._clock = clock
        self._run: BatchRun | None = None
        self._runner: asyncio.Task[BatchSummary] | None = None
        self._subscribers: list[asyncio.Queue[BatchJobState]] = []
        self.last_summary: BatchSummary | None = None

    # ── Public API ───────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._run is not None and self._run.status is BatchStatus.RUNNING

    def submit_batch(self, students: Sequence[StudentRef], phases: Iterable[Phase]) -> BatchJobState:
        """Validate and start a run in the background; returns the initial snapshot.

        Raises:
            InvalidBatchRequestError: Empty selection (nothing is scheduled).
            BatchAlreadyRunningError: Another run has not finished yet.
        """
        if self.running:
            raise BatchAlreadyRunningError()
        tasks = build_tasks(students, phases)
        phase_list = list(dict.fromkeys(t.phase for t in tasks))
        run = BatchRun(tasks, phase_list, len(students), self._clock)
        self._run = run
        self.last_summary = None
        logger.info(
            "Batch started: %d student(s) x %d phase(s) = %d task(s), group size %d",
            len(students), len(phase_list), run.total, self.batch_size,
        )
        self._publish(run)
        self._runner = asyncio.create_task(self._execute_run(run))
        return run.snapshot()

    def cancel_batch(self) -> BatchJobState:
        """Request cooperative cancellation; in-flight tasks still finish."""
        run = self._run
        if run is not None and run.status is BatchStatus.RUNNING and not run.token.cancelled:
            run.token.cancel()
            logger.info(
                "Batch cancellation requested at %d/%d task(s)", run.completed_count, run.total,
            )
            self._publish(run)
        return self.get_progress()

    def get_progress(self) -> BatchJobState:
        if self._run is None:
            return BatchJobState()
        return self._run.snapshot()

    async def wait(self) -> BatchSummary | None:
        """Wait for the current run (if any) and return its summary."""
        if self._runner is not None:
            await asyncio.shield(self._runner)
        return self.last_summary

    def subscribe(self) -> asyncio.Queue[BatchJobState]:
        """Queue receiving a snapshot after every progress change."""
        queue: asyncio.Queue[BatchJobState] = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        queue.put_nowait(self.get_progress())
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[BatchJobState]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    async def shutdown(self) -> None:
        """Cancel and stop the background runner (application shutdown)."""
        if self._runner is not None and not self._runner.done():
            self.cancel_batch()
            self._runner.cancel()
            try:
                await self._runner
            except asyncio.CancelledError:
                pass

    # ── Single-student export ────────────────────────────────────

    async def export_student_phases(self, student: StudentRef, phases: Iterable[Phase]) -> BatchSummary:
        """Export the selected phases of one student, one after another.

        Raises:
            InvalidBatchRequestError: Missing student id or empty phase set.
        """
        if not student.student_id:
            raise InvalidBatchRequestError("Student id is required", field="studentId")
        tasks = build_tasks([student], phases)
        run = BatchRun(tasks, [t.phase for t in tasks], 1, self._clock)
        for task in tasks:
            if task.index and self.phase_export_delay > 0:
                await asyncio.sleep(self.phase_export_delay)
            run.current_student = task.label
            outcome = await self._attempt(task)
            self._settle(run, outcome, publish=False)
        run.finish()
        summary = run.summary()
        logger.info("Single-student export for %s: %s", student.label, summary.message)
        return summary

    # ── Internals ────────────────────────────────────────────────

    def _publish(self, run: BatchRun) -> None:
        if run is not self._run or not self._subscribers:
            return
        snapshot = run.snapshot()
        for queue in self._subscribers:
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(snapshot)

    async def _run_task(self, task: BatchTask) -> ReportHandle:
        if not task.student.student_id:
            raise TaskFailedError("", task.phase.value, "student id is missing")
        return await self.pipeline.run(task.student, task.phase)

    async def _attempt(self, task: BatchTask) -> TaskOutcome[BatchTask, ReportHandle]:
        pool = WorkerPool(1, task_timeout=self.task_timeout)
        outcomes = await pool.run([task], self._run_task)
        return outcomes[0]

    def _settle(self, run: BatchRun, outcome: TaskOutcome[BatchTask, ReportHandle], publish: bool = True) -> None:
        task = outcome.item
        if outcome.ok and outcome.result is not None:
            self.resources.add(outcome.result)
            run.record(True)
        else:
            run.record(False)
            error = outcome.error
            if isinstance(error, (TaskFailedError, asyncio.TimeoutError)):
                logger.error("Report failed for %s: %s", task.label, str(error) or "timed out")
            else:
                logger.error(
                    "Report failed for %s: %s", task.label, error,
                    exc_info=(type(error), error, error.__traceback__) if error else None,
                )
        if publish:
            self._publish(run)

    def _on_task_start(self, run: BatchRun, task: BatchTask) -> None:
        run.current_student = task.label
        self._publish(run)

    async def _execute_run(self, run: BatchRun) -> BatchSummary:
        groups = [
            run.tasks[i:i + self.batch_size]
            for i in range(0, run.total, self.batch_size)
        ]
        pool = WorkerPool(self.workers, self.task_start_delay, self.task_timeout)

        async def handle(task: BatchTask) -> ReportHandle:
            self._on_task_start(run, task)
            return await self._run_task(task)

        try:
            for number, group in enumerate(groups, start=1):
                if run.token.cancelled:
                    logger.info("Batch cancelled before group %d/%d", number, len(groups))
                    break
                logger.info("Starting group %d/%d (%d task(s))", number, len(groups), len(group))
                await pool.run(group, handle, on_settled=lambda o: self._settle(run, o))
                if number < len(groups) and await run.token.wait(self.group_delay):
                    logger.info("Batch cancelled after group %d/%d", number, len(groups))
                    break
        finally:
            run.finish()
            summary = run.summary()
            self.last_summary = summary
            logger.info("Batch %s: %s", summary.status.value, summary.message)
            self._publish(run)
        return summary


def build_batch_scheduler(settings, store) -> BatchExportScheduler:
    """Wire a scheduler from settings and a record store (which also provides summaries)."""
    from services.ranking import RankingService
    from services.report_assembler import DocxReportAssembler

    pipeline = ReportPipeline(
        store=store,
        summaries=store,
        ranking=RankingService(store, read_concurrency=settings.cohort_read_concurrency),
        assembler=DocxReportAssembler(settings.report_output_dir),
    )
    return BatchExportScheduler(
        pipeline,
        BoundedResourcePool(settings.max_open_reports),
        batch_size=settings.batch_size,
        workers=settings.effective_batch_workers,
        task_start_delay=settings.task_start_delay,
        group_delay=settings.group_delay,
        task_timeout=settings.task_timeout,
        phase_export_delay=settings.phase_export_delay,
    )


_scheduler: BatchExportScheduler | None = None


def get_batch_scheduler() -> BatchExportScheduler:
    """Get the process-wide scheduler, built from settings on first use."""
    global _scheduler
    if _scheduler is None:
        from config.settings import get_settings
        from services.record_store import get_record_store

        _scheduler = build_batch_scheduler(get_settings(), get_record_store())
        logger.info("Initialized BatchExportScheduler (group size %d)", _scheduler.batch_size)
    return _scheduler


def set_batch_scheduler(scheduler: BatchExportScheduler | None) -> None:
    global _scheduler
    _scheduler = scheduler
