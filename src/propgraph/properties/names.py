"""Property name normalization and duplicate detection."""

import re
from collections.abc import Iterable
from difflib import SequenceMatcher

_SEPARATORS = re.compile(r"[\s\-_]+")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

SIMILARITY_THRESHOLD = 0.85


def normalize_property_name(name: str) -> str:
    """Case- and whitespace-insensitive form: ``"  Due_Date "`` -> ``"due date"``."""
    return _SEPARATORS.sub(" ", name.strip().lower()).strip()


def _compact(name: str) -> str:
    return _NON_ALNUM.sub("", normalize_property_name(name))


def find_conflicting_name(name: str, existing: Iterable[str]) -> str | None:
    """Existing name that normalizes to the same form as ``name``, if any."""
    normalized = normalize_property_name(name)
    for candidate in existing:
        if normalize_property_name(candidate) == normalized:
            return candidate
    return None


def find_similar_name(
    name: str,
    existing: Iterable[str],
    *,
    threshold: float = SIMILARITY_THRESHOLD,
) -> str | None:
    """Existing name close enough to ``name`` to warrant a warning.

    Exact normalized matches are conflicts, not near-misses, and are skipped.
    """
    normalized = normalize_property_name(name)
    compact = _compact(name)
    for candidate in existing:
        other = normalize_property_name(candidate)
        if other == normalized:
            continue
        if compact and _compact(candidate) == compact:
            return candidate
        if SequenceMatcher(None, normalized, other).ratio() >= threshold:
            return candidate
    return None


def similar_name_warning(name: str, similar: str) -> str:
    return f'A similar property "{similar}" already exists. Did you mean to use it instead of "{name}"?'
