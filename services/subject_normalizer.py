"""Subject label normalization.

Record-store subject labels are free text typed by exam authors over several
years ("Biología", "biologia", "FISICA", "Sociales"...). ``normalize`` maps them
onto :class:`CanonicalSubject`; unknown labels pass through unchanged and are
dropped later by the resolver.
"""

from __future__ import annotations

import unicodedata

from models.evaluation import CanonicalSubject

# Keys are already folded (lowercase, no accents, single spaces).
_SYNONYMS: dict[str, CanonicalSubject] = {
    "matematicas": CanonicalSubject.MATHEMATICS,
    "matematica": CanonicalSubject.MATHEMATICS,
    "mathematics": CanonicalSubject.MATHEMATICS,
    "lenguaje": CanonicalSubject.LANGUAGE,
    "lectura critica": CanonicalSubject.LANGUAGE,
    "language": CanonicalSubject.LANGUAGE,
    "ciencias sociales": CanonicalSubject.SOCIAL_SCIENCES,
    "sociales": CanonicalSubject.SOCIAL_SCIENCES,
    "social science": CanonicalSubject.SOCIAL_SCIENCES,
    "biologia": CanonicalSubject.BIOLOGY,
    "biology": CanonicalSubject.BIOLOGY,
    "quimica": CanonicalSubject.CHEMISTRY,
    "chemistry": CanonicalSubject.CHEMISTRY,
    "fisica": CanonicalSubject.PHYSICS,
    "physics": CanonicalSubject.PHYSICS,
    "ingles": CanonicalSubject.ENGLISH,
    "english": CanonicalSubject.ENGLISH,
}


def fold(label: str) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    decomposed = unicodedata.normalize("NFKD", label.strip().lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.split())


def normalize(label: str) -> CanonicalSubject | str:
    """Map a free-text subject label to its canonical subject.

    Total function: labels missing from the synonym table are returned as-is.
    """
    return _SYNONYMS.get(fold(label), label)


def is_canonical(value: CanonicalSubject | str) -> bool:
    return isinstance(value, CanonicalSubject)
