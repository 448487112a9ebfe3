"""Tests for ProgressStreamEncoder — SSE framing of batch progress."""

from __future__ import annotations

import json

from models.batch import BatchJobState, BatchStatus, BatchSummary
from models.evaluation import Phase
from services.datastream import ProgressStreamEncoder


def _parse_first(sse_str: str) -> dict:
    assert sse_str.startswith("data: ")
    assert sse_str.endswith("\n\n")
    return json.loads(sse_str[len("data: "):].strip())


def test_progress_event_is_camel_case():
    enc = ProgressStreamEncoder()
    state = BatchJobState(
        status=BatchStatus.RUNNING,
        total=6,
        completed_count=2,
        current_student="Ana Gómez - Fase I",
    )
    payload = _parse_first(enc.progress(state))
    assert payload["type"] == "progress"
    assert payload["status"] == "running"
    assert payload["completedCount"] == 2
    assert payload["currentStudent"] == "Ana Gómez - Fase I"


def test_non_ascii_is_kept_verbatim():
    enc = ProgressStreamEncoder()
    out = enc.progress(BatchJobState(current_student="Lucía Pérez"))
    assert "Lucía Pérez" in out


def test_summary_event_carries_message():
    enc = ProgressStreamEncoder()
    summary = BatchSummary(
        status=BatchStatus.CANCELLED,
        total=6,
        attempted=3,
        success_count=2,
        error_count=1,
        elapsed_seconds=4.2,
        phases=[Phase.FIRST],
        student_count=6,
    )
    payload = _parse_first(enc.summary(summary))
    assert payload["type"] == "summary"
    assert payload["status"] == "cancelled"
    assert payload["phases"] == ["first"]
    assert payload["message"].startswith("Batch cancelled: 2 report(s)")


def test_keepalive_is_a_comment_line():
    assert ProgressStreamEncoder().keepalive() == ": keepalive\n\n"


def test_finish_marker():
    assert ProgressStreamEncoder().finish() == "data: [DONE]\n\n"
