"""Conflict detection.

Responsibilities of this stage:
- load the current fact of the incoming fact's slot
- classify the incoming fact as NEW/DUPLICATE/UPDATE/CONFLICT
- never write

Classification is deterministic for a fixed (incoming, existing) pair.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Final

from .contracts import Classification, Detection

if TYPE_CHECKING:
    from factledger.domain.model import Fact, FactInput
    from factledger.domain.ports import FactRepository

log = logging.getLogger(__name__)

_NUMERIC_RE: Final = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")


def detect(
    facts: FactRepository,
    incoming: FactInput,
    *,
    confidence_margin: float = 0.0,
) -> Detection:
    """Classify ``incoming`` against the slot's current fact in ``facts``."""

    existing = facts.get_current(incoming.subject, incoming.fact_type, incoming.key)
    detection = classify(incoming, existing, confidence_margin=confidence_margin)
    log.debug(
        "Classified %s/%s/%s as %s (%s)",
        incoming.subject,
        incoming.fact_type,
        incoming.key,
        detection.classification,
        detection.reason,
    )
    return detection


def classify(
    incoming: FactInput,
    existing: Fact | None,
    *,
    confidence_margin: float = 0.0,
) -> Detection:
    if existing is None:
        return Detection(classification=Classification.NEW, reason="no_current_fact")

    if values_equivalent(existing.value, incoming.value):
        return Detection(
            classification=Classification.DUPLICATE,
            existing=existing,
            reason="same_value",
        )

    if incoming.source_type == existing.source_type:
        return Detection(
            classification=Classification.UPDATE,
            existing=existing,
            reason="same_source_refresh",
        )

    if float(incoming.confidence) > existing.confidence + confidence_margin:
        return Detection(
            classification=Classification.UPDATE,
            existing=existing,
            reason="higher_confidence",
        )

    return Detection(
        classification=Classification.CONFLICT,
        existing=existing,
        reason="different_source_not_more_confident",
    )


def values_equivalent(left: str, right: str) -> bool:
    """Compare fact values: numerically when both look numeric, else case-insensitively."""

    left_text = left.strip()
    right_text = right.strip()
    left_number = _as_number(left_text)
    right_number = _as_number(right_text)
    if left_number is not None and right_number is not None:
        return left_number == right_number
    return left_text.casefold() == right_text.casefold()


def _as_number(text: str) -> Decimal | None:
    if not _NUMERIC_RE.match(text):
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        return None
