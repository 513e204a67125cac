"""Conflict policy and deduplication thresholds."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_float
from .errors import ConfigurationError

DEFAULT_CONFIDENCE_MARGIN = 0.0
DEFAULT_PERSON_SIMILARITY = 0.85
DEFAULT_ORGANIZATION_SIMILARITY = 0.80


@dataclass(frozen=True, slots=True)
class ConflictPolicyConfig:
    """Knobs for automatic fact supersession and duplicate detection.

    ``confidence_margin`` is how far an incoming confidence must exceed the
    current one before a different-source value supersedes it. Zero means
    "strictly greater".
    """

    confidence_margin: float = DEFAULT_CONFIDENCE_MARGIN
    person_similarity: float = DEFAULT_PERSON_SIMILARITY
    organization_similarity: float = DEFAULT_ORGANIZATION_SIMILARITY

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence_margin < 1.0:
            raise ConfigurationError("Confidence margin must be within [0, 1)")
        for name in ("person_similarity", "organization_similarity"):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ConfigurationError(f"{name} must be within (0, 1]")


def get_conflict_policy_config() -> ConflictPolicyConfig:
    return ConflictPolicyConfig(
        confidence_margin=optional_env_float(
            "FACTLEDGER_CONFIDENCE_MARGIN", DEFAULT_CONFIDENCE_MARGIN
        ),
        person_similarity=optional_env_float(
            "FACTLEDGER_PERSON_SIMILARITY", DEFAULT_PERSON_SIMILARITY
        ),
        organization_similarity=optional_env_float(
            "FACTLEDGER_ORG_SIMILARITY", DEFAULT_ORGANIZATION_SIMILARITY
        ),
    )
