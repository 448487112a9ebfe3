"""Batch export API — submit, cancel and observe bulk report runs."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, HTTPException
from starlette.responses import StreamingResponse

from errors.exceptions import BatchAlreadyRunningError, InvalidBatchRequestError
from models.batch import BatchJobState, BatchStatus, BatchSubmitRequest
from services.batch_scheduler import get_batch_scheduler
from services.datastream import ProgressStreamEncoder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])

_KEEPALIVE_SECONDS = 15.0


@router.post("/batch", response_model=BatchJobState, status_code=202)
async def submit_batch(req: BatchSubmitRequest):
    """Start a bulk export of every selected student × phase.

    Returns immediately with the initial progress snapshot; the run continues
    in the background.
    """
    scheduler = get_batch_scheduler()
    try:
        return scheduler.submit_batch([s.to_ref() for s in req.students], req.phases)
    except InvalidBatchRequestError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except BatchAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e


@router.post("/batch/cancel", response_model=BatchJobState)
async def cancel_batch():
    """Request cooperative cancellation; tasks already started still finish."""
    return get_batch_scheduler().cancel_batch()


@router.get("/batch/progress", response_model=BatchJobState)
async def batch_progress():
    return get_batch_scheduler().get_progress()


@router.get("/batch/summary")
async def batch_summary():
    """Final tally of the last finished run."""
    summary = get_batch_scheduler().last_summary
    if summary is None:
        raise HTTPException(status_code=404, detail="No finished batch run")
    return {**summary.model_dump(mode="json", by_alias=True), "message": summary.message}


@router.get("/batch/progress/stream")
async def batch_progress_stream():
    """Push every progress snapshot as Server-Sent Events until the run ends."""
    return StreamingResponse(
        _progress_stream_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-transform",
            "X-Accel-Buffering": "no",
        },
    )


async def _progress_stream_generator() -> AsyncGenerator[str, None]:
    scheduler = get_batch_scheduler()
    enc = ProgressStreamEncoder()
    queue = scheduler.subscribe()
    try:
        while True:
            try:
                state = await asyncio.wait_for(queue.get(), timeout=_KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                yield enc.keepalive()
                continue
            yield enc.progress(state)
            if state.status.terminal or state.status is BatchStatus.IDLE:
                if scheduler.last_summary is not None:
                    yield enc.summary(scheduler.last_summary)
                break
        yield enc.finish()
    finally:
        scheduler.unsubscribe(queue)
