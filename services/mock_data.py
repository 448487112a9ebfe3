"""Centralized mock data for development and testing.

Used by the in-memory record store when ``use_mock_data`` is enabled or the
record store is not reachable in a local setup. Documents mirror the
record-store wire shape (camelCase, legacy key variants included).
"""

INSTITUTIONS = {
    "inst-001": {"id": "inst-001", "name": "Colegio San José"},
}

STUDENTS = {
    "stu-001": {
        "id": "stu-001",
        "name": "Ana Gómez",
        "idNumber": "1001001",
        "inst": "inst-001",
        "campus": "campus-norte",
        "grade": "grade-11a",
        "isActive": True,
    },
    "stu-002": {
        "id": "stu-002",
        "name": "Carlos Ruiz",
        "identification": "1001002",
        "institutionId": "inst-001",
        "campusId": "campus-norte",
        "gradeId": "grade-11a",
        "isActive": True,
    },
    "stu-003": {
        "id": "stu-003",
        "name": "Lucía Pérez",
        "idNumber": "1001003",
        "inst": "inst-001",
        "campus": "campus-norte",
        "grade": "grade-11a",
        "isActive": True,
    },
    "stu-004": {
        "uid": "stu-004",
        "name": "Mateo Díaz",
        "idNumber": "1001004",
        "inst": "inst-001",
        "campus": "campus-norte",
        "grade": "grade-11a",
        "isActive": False,
    },
}


def _result(subject: str, percentage: float | None = None, correct: int | None = None,
            total: int | None = None, times: list[float] | None = None, **extra) -> dict:
    score: dict = {}
    if percentage is not None:
        score["overallPercentage"] = percentage
    if correct is not None:
        score["correctAnswers"] = correct
    if total is not None:
        score["totalQuestions"] = total
    details = [
        {"questionId": f"q{i + 1}", "isCorrect": i % 2 == 0, "answered": True, "timeSpent": t}
        for i, t in enumerate(times or [])
    ]
    doc = {"subject": subject, "score": score, "questionDetails": details, "completed": True}
    doc.update(extra)
    return doc


def _full_phase(base: float) -> list[dict]:
    return [
        _result("Matemáticas", percentage=base, times=[35, 42, 8]),
        _result("lenguaje", percentage=base - 5, times=[50, 61]),
        _result("Sociales", correct=int(base // 10), total=10, times=[30, 25]),
        _result("biología", percentage=base + 2, times=[12, 7]),
        _result("Quimica", percentage=base - 10),
        _result("FISICA", percentage=base - 3, tabChangeCount=1),
        _result("inglés", percentage=base + 5, times=[4, 6, 9]),
    ]


# results[student_id][phase_variant] -> list of result documents
RESULTS = {
    "stu-001": {
        "Fase I": _full_phase(80),
        "fase II": _full_phase(84),
        "Fase III": _full_phase(88),
        # legacy retake stored under a different spelling
        "fase 3": [_result("Matemáticas", percentage=70)],
    },
    "stu-002": {
        "fase I": _full_phase(65),
        "Fase 2": _full_phase(70)[:6],
        "third": _full_phase(72),
    },
    "stu-003": {
        "Fase I": _full_phase(90),
        "Fase III": _full_phase(60) + [_result("Física", percentage=55, completed=False)],
    },
    "stu-004": {
        "Fase III": _full_phase(95),
    },
}

SUMMARIES = {
    ("stu-001", "first"): {
        "summary": "Desempeño alto y estable en todas las áreas.",
        "strengths": ["Matemáticas", "Inglés"],
        "improvements": ["Química"],
        "generatedAt": "2025-05-10T12:00:00Z",
    },
    ("stu-001", "third"): {
        "summary": "Progreso sostenido a lo largo de las tres fases.",
        "strengths": ["Biologia"],
        "improvements": [],
        "generatedAt": "2025-10-01T12:00:00Z",
    },
}
