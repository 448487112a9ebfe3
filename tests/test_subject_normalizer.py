"""Tests for services/subject_normalizer.py — free-text subject labels."""

import pytest

from models.evaluation import CanonicalSubject
from services.subject_normalizer import fold, is_canonical, normalize


def test_accent_and_case_insensitive():
    assert normalize("Física") == normalize("fisica") == normalize("FÍSICA") == CanonicalSubject.PHYSICS


@pytest.mark.parametrize(
    "label, expected",
    [
        ("biologia", CanonicalSubject.BIOLOGY),
        ("Biología", CanonicalSubject.BIOLOGY),
        ("química", CanonicalSubject.CHEMISTRY),
        ("Matemáticas", CanonicalSubject.MATHEMATICS),
        ("  lenguaje ", CanonicalSubject.LANGUAGE),
        ("Sociales", CanonicalSubject.SOCIAL_SCIENCES),
        ("Ciencias  Sociales", CanonicalSubject.SOCIAL_SCIENCES),
        ("INGLES", CanonicalSubject.ENGLISH),
    ],
)
def test_synonyms(label, expected):
    assert normalize(label) is expected


def test_unknown_label_passes_through_unchanged():
    assert normalize("Educación Física ") == "Educación Física "
    assert not is_canonical(normalize("Filosofía"))


def test_canonical_display_values_normalize_to_themselves():
    for subject in CanonicalSubject:
        assert normalize(subject.value) is subject


def test_fold():
    assert fold("  Ciencias   SOCIALES ") == "ciencias sociales"
    assert fold("Inglés") == "ingles"
