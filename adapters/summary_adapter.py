"""Adapter for the academic summary API → internal PhaseSummary.

Record-store endpoints handled:
- GET  /summaries/{studentId}/{phase}           → PhaseSummary | None
- POST /summaries/{studentId}/{phase}/generate  → PhaseSummary | None
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from models.evaluation import Phase, PhaseSummary
from services.record_store_client import RecordStoreClient, RecordStoreError

logger = logging.getLogger(__name__)


def _parse_summary(raw: dict[str, Any], student_id: str, phase: Phase) -> PhaseSummary:
    def _str_list(value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [str(v) for v in value if v]

    return PhaseSummary(
        student_id=student_id,
        phase=phase,
        summary=str(raw.get("summary") or raw.get("resumen") or ""),
        strengths=_str_list(raw.get("strengths")),
        improvements=_str_list(raw.get("improvements")),
        generated_at=str(raw["generatedAt"]) if raw.get("generatedAt") else None,
    )


def _summary_path(student_id: str, phase: Phase) -> str:
    return f"/summaries/{quote(student_id, safe='')}/{phase.value}"


async def get_summary(client: RecordStoreClient, student_id: str, phase: Phase) -> PhaseSummary | None:
    """Fetch the stored summary; ``None`` when it has not been generated yet."""
    raw = await client.fetch(_summary_path(student_id, phase), missing_ok=True)
    if not isinstance(raw, dict):
        return None
    return _parse_summary(raw, student_id, phase)


async def generate_summary(
    client: RecordStoreClient, student_id: str, phase: Phase
) -> PhaseSummary | None:
    """Ask the summary service to generate (and store) the phase summary.

    Returns ``None`` when the service refuses, typically because the student
    has not completed the seven required evaluations.
    """
    try:
        raw = await client.submit(
            f"{_summary_path(student_id, phase)}/generate", json_body={"force": False}
        )
    except RecordStoreError as exc:
        if 400 <= exc.status_code < 500:
            logger.info(
                "Summary generation refused for %s (%s): %s",
                student_id, phase.value, exc.detail,
            )
            return None
        raise
    if not isinstance(raw, dict):
        return None
    return _parse_summary(raw, student_id, phase)

