"""Canonical keys and fuzzy name matching for person/organization deduplication.

Two records sharing a canonical key are treated as the same real-world entity:

- email is the canonical identifier for a person, domain for an organization
- without one, a normalized name is used, prefixed with ``name:``
- normalization drops punctuation, legal suffixes and whitespace noise

Every function here is total. Deduplication must never block entity creation, so
malformed input yields a best-effort key rather than an error.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Final

NAME_KEY_PREFIX: Final[str] = "name:"
PERSON_SIMILARITY_THRESHOLD: Final[float] = 0.85
ORGANIZATION_SIMILARITY_THRESHOLD: Final[float] = 0.80

_LEGAL_SUFFIX_RE: Final = re.compile(
    r"\b(?:inc\.?|llc\.?|ltd\.?|corp\.?|corporation|limited|company|co\.?)(?=\W|$)",
    re.IGNORECASE,
)
_NON_KEY_CHARS_RE: Final = re.compile(r"[^a-z0-9\s]")
_WHITESPACE_RE: Final = re.compile(r"\s+")
_SCHEME_RE: Final = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


def generate_person_key(
    *,
    first_name: str | None,
    last_name: str | None,
    email: str | None = None,
) -> str:
    """Return the dedup key for a person.

    >>> generate_person_key(first_name="Sarah", last_name="Chen", email="Sarah@Example.com ")
    'sarah@example.com'
    >>> generate_person_key(first_name="Sarah", last_name="Chen")
    'name:sarah_chen'
    """

    if email and email.strip():
        return email.strip().lower()
    full_name = f"{first_name or ''} {last_name or ''}"
    return NAME_KEY_PREFIX + _key_text(full_name)


def generate_org_key(*, name: str | None, domain: str | None = None) -> str:
    """Return the dedup key for an organization.

    >>> generate_org_key(name="Acme Corp", domain="AcmeCorp.com")
    'acmecorp.com'
    >>> generate_org_key(name="Acme Corporation, Inc.")
    'name:acme'
    """

    if domain and domain.strip():
        return domain.strip().lower()
    without_suffixes = _LEGAL_SUFFIX_RE.sub("", (name or "").lower())
    return NAME_KEY_PREFIX + _key_text(without_suffixes)


def extract_domain(value: str | None) -> str | None:
    """Extract a bare domain from a domain, URL or email address.

    Returns ``None`` when nothing resembling a domain (no ``.``) remains.
    """

    if not value or not value.strip():
        return None

    domain = value.strip().lower()
    if "@" in domain:
        domain = domain.rsplit("@", 1)[-1]
    domain = _SCHEME_RE.sub("", domain)
    domain = domain.split("/", 1)[0]
    domain = domain.removeprefix("www.")
    domain = domain.split(":", 1)[0]

    if "." not in domain:
        return None
    return domain


def normalize_name(name: str | None) -> str:
    """Normalize a display name for fuzzy comparison.

    >>> normalize_name("  Sarah-Jane  O'Brien  ")
    'sarahjane obrien'
    >>> normalize_name("José García")
    'jose garcia'
    """

    if not name:
        return ""
    decomposed = unicodedata.normalize("NFD", name.lower().strip())
    without_marks = "".join(char for char in decomposed if not unicodedata.combining(char))
    stripped = _NON_KEY_CHARS_RE.sub("", without_marks)
    return _WHITESPACE_RE.sub(" ", stripped).strip()


def calculate_similarity(first: str | None, second: str | None) -> float:
    """Levenshtein similarity of the normalized names, in ``[0, 1]``."""

    left = normalize_name(first)
    right = normalize_name(second)

    if left == right:
        return 1.0
    if not left or not right:
        return 0.0

    distance = levenshtein_distance(left, right)
    return 1.0 - distance / max(len(left), len(right))


def levenshtein_distance(first: str, second: str) -> int:
    # Single-row dynamic programming, O(len(first) * len(second)).
    if len(first) < len(second):
        first, second = second, first
    previous = list(range(len(second) + 1))
    for i, left_char in enumerate(first, start=1):
        current = [i]
        for j, right_char in enumerate(second, start=1):
            cost = 0 if left_char == right_char else 1
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + cost,
                )
            )
        previous = current
    return previous[-1]


def is_same_person(
    first: str | None,
    second: str | None,
    *,
    threshold: float = PERSON_SIMILARITY_THRESHOLD,
) -> bool:
    return calculate_similarity(first, second) > threshold


def is_same_organization(
    first: str | None,
    second: str | None,
    *,
    threshold: float = ORGANIZATION_SIMILARITY_THRESHOLD,
) -> bool:
    return calculate_similarity(first, second) > threshold


def _key_text(value: str) -> str:
    stripped = _NON_KEY_CHARS_RE.sub("", value.lower()).strip()
    return _WHITESPACE_RE.sub("_", stripped)
