"""Per-student endpoints — phase availability, phase metrics, single-student export."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from errors.exceptions import InvalidBatchRequestError
from models.batch import StudentExportRequest
from models.evaluation import Phase, StudentRef
from models.scoring import PhaseAvailability, PhaseScorecard
from services.batch_scheduler import get_batch_scheduler
from services.evaluation_resolver import check_phase_availability
from services.record_store import get_record_store
from services.report_builder import phase_scorecard

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/students", tags=["students"])


@router.get("/{student_id}/phases", response_model=PhaseAvailability)
async def student_phases(student_id: str):
    """Which phases have all seven subjects completed (and can be exported)."""
    return await check_phase_availability(get_record_store(), student_id)


@router.get("/{student_id}/phases/{phase}/metrics", response_model=PhaseScorecard)
async def student_phase_metrics(student_id: str, phase: Phase):
    """Scoring-engine output for one phase, without cohort ranks."""
    return await phase_scorecard(get_record_store(), student_id, phase)


@router.post("/{student_id}/reports")
async def export_student_reports(student_id: str, req: StudentExportRequest):
    """Export the selected phases of one student, sequentially."""
    scheduler = get_batch_scheduler()
    try:
        summary = await scheduler.export_student_phases(StudentRef(student_id=student_id), req.phases)
    except InvalidBatchRequestError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {**summary.model_dump(mode="json", by_alias=True), "message": summary.message}
