"""People and organizations resolved by canonical key."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import ClassVar

from factledger.domain.canonical_keys import extract_domain, generate_org_key, generate_person_key
from factledger.domain.model.entity import Entity
from factledger.domain.model.enums import EntityType, SubjectType
from factledger.domain.model.subject import Subject


@dataclass(eq=False, kw_only=True)
class Party(Entity):
    """A person or organization: resolvable by canonical key and a subject of facts."""

    ENTITY_TYPE: ClassVar[EntityType]

    @property
    def subject(self) -> Subject:
        return Subject(SubjectType(self.ENTITY_TYPE.value), str(self.id))


@dataclass(eq=False, kw_only=True)
class Person(Party):
    ENTITY_TYPE: ClassVar[EntityType] = EntityType.PERSON

    first_name: str
    last_name: str
    email: str | None = None
    linkedin_url: str | None = None
    twitter_handle: str | None = None
    phone: str | None = None
    canonical_key: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    last_contacted_at: datetime | None = None

    def __post_init__(self) -> None:
        self.refresh_canonical_key()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def refresh_canonical_key(self) -> str:
        """Recompute the key after the email or name changed."""
        self.canonical_key = generate_person_key(
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
        )
        return self.canonical_key


@dataclass(eq=False, kw_only=True)
class Organization(Party):
    ENTITY_TYPE: ClassVar[EntityType] = EntityType.ORGANIZATION

    name: str
    domain: str | None = None
    legal_name: str | None = None
    website: str | None = None
    description: str | None = None
    canonical_key: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def __post_init__(self) -> None:
        if not self.domain and self.website:
            self.domain = extract_domain(self.website)
        self.refresh_canonical_key()

    def refresh_canonical_key(self) -> str:
        """Recompute the key after the domain or name changed."""
        self.canonical_key = generate_org_key(name=self.name, domain=self.domain)
        return self.canonical_key
