"""Adapter for record-store student / institution APIs → internal models.

Record-store endpoints handled:
- GET /students?institutionId=&campusId=&gradeId=&isActive= → list[StudentRef]
- GET /students/{studentId}                                 → StudentProfile
- GET /institutions/{institutionId}                         → institution name
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from models.evaluation import StudentProfile, StudentRef
from services.record_store_client import RecordStoreClient

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response → Internal Model conversions
# ---------------------------------------------------------------------------

def _string_or_empty(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _student_id(raw: dict[str, Any]) -> str:
    return _string_or_empty(raw.get("id") or raw.get("uid"))


def _parse_student_ref(raw: dict[str, Any]) -> StudentRef:
    return StudentRef(student_id=_student_id(raw), name=_string_or_empty(raw.get("name")))


def _parse_profile(raw: dict[str, Any], student_id: str) -> StudentProfile:
    """Legacy user documents use short keys (``inst``, ``campus``, ``grade``)."""
    return StudentProfile(
        student_id=_student_id(raw) or student_id,
        name=_string_or_empty(raw.get("name")),
        id_number=_string_or_empty(raw.get("idNumber") or raw.get("identification")),
        institution_id=_string_or_empty(raw.get("inst") or raw.get("institutionId")),
        campus_id=_string_or_empty(raw.get("campus") or raw.get("campusId")),
        grade_id=_string_or_empty(raw.get("grade") or raw.get("gradeId")),
    )


# ---------------------------------------------------------------------------
# High-level API calls (through RecordStoreClient)
# ---------------------------------------------------------------------------

async def list_cohort_students(
    client: RecordStoreClient,
    institution_id: str,
    campus_id: str,
    grade_id: str,
    active_only: bool = True,
) -> list[StudentRef]:
    """Fetch the classmates sharing institution, campus and grade.

    GET /students?institutionId=&campusId=&gradeId=&isActive=

    Raises:
        ValueError: When the record store returns null data; a cohort can
            never legitimately be null, so this is treated as transient.
    """
    params: dict[str, Any] = {
        "institutionId": institution_id,
        "campusId": campus_id,
        "gradeId": grade_id,
    }
    if active_only:
        params["isActive"] = "true"
    items = await client.fetch("/students", params=params)
    if items is None:
        raise ValueError(
            f"list_cohort_students: record store returned null data for grade {grade_id}"
        )
    if not isinstance(items, list):
        logger.warning("list_cohort_students: expected list, got %s", type(items))
        return []
    students = [_parse_student_ref(s) for s in items if isinstance(s, dict)]
    return [s for s in students if s.student_id]


async def get_student_profile(client: RecordStoreClient, student_id: str) -> StudentProfile | None:
    """Fetch identity data for one student; ``None`` when the student does not exist.

    GET /students/{studentId}
    """
    raw = await client.fetch(f"/students/{quote(student_id, safe='')}", missing_ok=True)
    if not isinstance(raw, dict):
        return None
    return _parse_profile(raw, student_id)


async def get_institution_name(client: RecordStoreClient, institution_id: str) -> str | None:
    """GET /institutions/{institutionId} → ``name`` or None."""
    raw = await client.fetch(f"/institutions/{quote(institution_id, safe='')}", missing_ok=True)
    if isinstance(raw, dict) and raw.get("name"):
        return str(raw["name"])
    return None

