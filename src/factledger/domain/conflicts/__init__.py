"""Fact conflict detection and resolution."""

from __future__ import annotations

from .contracts import (
    ApplyAction,
    Classification,
    ConflictReason,
    ConflictRecord,
    ConflictStrategy,
    Decision,
    Detection,
    FactOutcome,
    FactResolution,
)
from .detect import classify, detect, values_equivalent
from .ingest import Clock, add_fact_with_conflict_detection, apply_decision, utcnow
from .policy import (
    CONFLICT_STRATEGIES,
    DEFAULT_CONFLICT_STRATEGY,
    build_conflict_record,
    decide,
    merged_value,
    suggested_strategy,
)

__all__ = [
    "CONFLICT_STRATEGIES",
    "DEFAULT_CONFLICT_STRATEGY",
    "ApplyAction",
    "Classification",
    "Clock",
    "ConflictReason",
    "ConflictRecord",
    "ConflictStrategy",
    "Decision",
    "Detection",
    "FactOutcome",
    "FactResolution",
    "add_fact_with_conflict_detection",
    "apply_decision",
    "build_conflict_record",
    "classify",
    "decide",
    "detect",
    "merged_value",
    "suggested_strategy",
    "utcnow",
    "values_equivalent",
]
