"""FastAPI endpoint tests using httpx.AsyncClient."""

import json

import pytest
from httpx import ASGITransport, AsyncClient

from main import app
from services.batch_scheduler import set_batch_scheduler
from services.record_store import set_record_store


@pytest.fixture
def scheduler(scheduler_factory):
    return scheduler_factory()


@pytest.fixture
async def client(store, scheduler):
    set_record_store(store)
    set_batch_scheduler(scheduler)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await scheduler.shutdown()
    set_batch_scheduler(None)
    set_record_store(None)


def _sse_events(body: str) -> list:
    events = []
    for line in body.split("\n"):
        if not line.startswith("data: "):
            continue
        payload = line[len("data: "):]
        events.append(payload if payload == "[DONE]" else json.loads(payload))
    return events


BATCH_BODY = {
    "students": [
        {"studentId": "stu-001", "name": "Ana Gómez"},
        {"studentId": "stu-002", "name": "Carlos Ruiz"},
    ],
    "phases": ["third", "first"],
}


# ── Health ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["batch"] == "idle"
    assert resp.headers["x-request-id"]


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    resp = await client.get("/api/health", headers={"X-Request-ID": "abc123"})
    assert resp.headers["x-request-id"] == "abc123"


# ── Batch export ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_submit_batch_and_read_summary(client, scheduler):
    resp = await client.post("/api/reports/batch", json=BATCH_BODY)
    assert resp.status_code == 202
    data = resp.json()
    assert data["status"] == "running"
    assert data["total"] == 4

    await scheduler.wait()

    progress = (await client.get("/api/reports/batch/progress")).json()
    assert progress["status"] == "completed"
    assert progress["completedCount"] == 4

    summary = (await client.get("/api/reports/batch/summary")).json()
    assert summary["successCount"] == 4
    assert summary["phases"] == ["first", "third"]
    assert summary["message"].startswith("Generated 4 report(s)")


@pytest.mark.asyncio
async def test_submit_empty_selection_is_rejected(client):
    resp = await client.post("/api/reports/batch", json={"students": [], "phases": ["first"]})
    assert resp.status_code == 400
    resp = await client.post(
        "/api/reports/batch", json={"students": BATCH_BODY["students"], "phases": []}
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_submit_unknown_phase_is_422(client):
    resp = await client.post(
        "/api/reports/batch", json={"students": BATCH_BODY["students"], "phases": ["fourth"]}
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_second_submit_while_running_is_409(scheduler_factory, store):
    slow = scheduler_factory(batch_size=1, group_delay=30.0)
    set_record_store(store)
    set_batch_scheduler(slow)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            assert (await ac.post("/api/reports/batch", json=BATCH_BODY)).status_code == 202
            assert (await ac.post("/api/reports/batch", json=BATCH_BODY)).status_code == 409

            cancelled = (await ac.post("/api/reports/batch/cancel")).json()
            assert cancelled["cancelRequested"] is True
            summary = await slow.wait()
            assert summary.status.value == "cancelled"
            assert summary.attempted < summary.total
    finally:
        await slow.shutdown()
        set_batch_scheduler(None)
        set_record_store(None)


@pytest.mark.asyncio
async def test_cancel_without_run_is_idle(client):
    resp = await client.post("/api/reports/batch/cancel")
    assert resp.status_code == 200
    assert resp.json()["status"] == "idle"


@pytest.mark.asyncio
async def test_summary_before_any_run_is_404(client):
    resp = await client.get("/api/reports/batch/summary")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_progress_stream_after_finished_run(client, scheduler):
    await client.post("/api/reports/batch", json=BATCH_BODY)
    await scheduler.wait()

    resp = await client.get("/api/reports/batch/progress/stream")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")

    events = _sse_events(resp.text)
    assert events[0]["type"] == "progress"
    assert events[0]["status"] == "completed"
    assert events[1]["type"] == "summary"
    assert events[1]["successCount"] == 4
    assert events[-1] == "[DONE]"
    assert scheduler._subscribers == []


@pytest.mark.asyncio
async def test_progress_stream_when_idle(client):
    resp = await client.get("/api/reports/batch/progress/stream")
    events = _sse_events(resp.text)
    assert events[0]["status"] == "idle"
    assert events[-1] == "[DONE]"
    assert len(events) == 2


# ── Students ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_student_phase_availability(client):
    resp = await client.get("/api/students/stu-002/phases")
    assert resp.status_code == 200
    data = resp.json()
    assert data["studentId"] == "stu-002"
    assert data["phases"] == {"first": True, "second": False, "third": True}


@pytest.mark.asyncio
async def test_student_phase_metrics(client):
    resp = await client.get("/api/students/stu-001/phases/first/metrics")
    assert resp.status_code == 200
    data = resp.json()
    assert data["metrics"]["globalScore"] == 396
    assert data["metrics"]["completedSubjects"] == 7
    assert [s["subject"] for s in data["subjects"]][0] == "Matemáticas"


@pytest.mark.asyncio
async def test_student_phase_metrics_unknown_phase(client):
    resp = await client.get("/api/students/stu-001/phases/fourth/metrics")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_single_student_export(client, fake_assembler):
    resp = await client.post("/api/students/stu-001/reports", json={"phases": ["third", "first"]})
    assert resp.status_code == 200
    data = resp.json()
    assert data["successCount"] == 2
    assert data["errorCount"] == 0
    assert [c.phase.value for c in fake_assembler.contexts] == ["first", "third"]


@pytest.mark.asyncio
async def test_single_student_export_counts_failures(client):
    resp = await client.post("/api/students/stu-003/reports", json={"phases": ["second"]})
    data = resp.json()
    assert data["successCount"] == 0
    assert data["errorCount"] == 1


@pytest.mark.asyncio
async def test_single_student_export_requires_phases(client):
    resp = await client.post("/api/students/stu-001/reports", json={"phases": []})
    assert resp.status_code == 400
