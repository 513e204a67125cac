"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class SubjectType(StrEnum):
    """Kinds of entity a fact can attach to."""

    PERSON = "person"
    ORGANIZATION = "organization"
    DEAL = "deal"
    CONVERSATION = "conversation"


class EntityType(StrEnum):
    """Discriminator for entities resolved and merged by canonical key."""

    PERSON = "person"
    ORGANIZATION = "organization"


class MergeReason(StrEnum):
    MANUAL = "manual"
    CANONICAL_KEY = "canonical_key"
    SIMILAR_NAME = "similar_name"
