"""The entity a fact is asserted about."""

from __future__ import annotations

from dataclasses import dataclass

from factledger.domain.errors import FactValidationError
from factledger.domain.model.enums import SubjectType


@dataclass(frozen=True, slots=True)
class Subject:
    """Tagged reference to exactly one person, organization, deal or conversation."""

    subject_type: SubjectType
    subject_id: str

    def __post_init__(self) -> None:
        if not isinstance(self.subject_type, SubjectType):
            raise FactValidationError(f"Invalid entity type: {self.subject_type!r}")
        if not self.subject_id or not self.subject_id.strip():
            raise FactValidationError("Subject id must not be blank", missing=("entityId",))

    @classmethod
    def person(cls, subject_id: str) -> Subject:
        return cls(SubjectType.PERSON, subject_id)

    @classmethod
    def organization(cls, subject_id: str) -> Subject:
        return cls(SubjectType.ORGANIZATION, subject_id)

    @classmethod
    def deal(cls, subject_id: str) -> Subject:
        return cls(SubjectType.DEAL, subject_id)

    @classmethod
    def conversation(cls, subject_id: str) -> Subject:
        return cls(SubjectType.CONVERSATION, subject_id)

    @classmethod
    def parse(cls, entity_type: str | None, entity_id: str | None) -> Subject:
        """Build a subject from loosely-typed request values."""

        missing = [
            name
            for name, value in (("entityType", entity_type), ("entityId", entity_id))
            if value is None or not str(value).strip()
        ]
        if missing:
            raise FactValidationError("Missing required fields", missing=missing)
        try:
            subject_type = SubjectType(str(entity_type).strip().lower())
        except ValueError as exc:
            raise FactValidationError("Invalid entityType") from exc
        return cls(subject_type, str(entity_id).strip())

    def __composite_values__(self) -> tuple[SubjectType, str]:
        """For SQLAlchemy composite columns (adapter-side convenience)."""
        return (self.subject_type, self.subject_id)

    def __str__(self) -> str:
        return f"{self.subject_type}:{self.subject_id}"
