"""Identity for everything the fact store persists."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID, uuid4


def new_id() -> UUID:
    return uuid4()


@dataclass(eq=False, kw_only=True)
class Entity:
    """Ids are minted in the domain, before anything is stored.

    A superseded fact can point at its successor within the same transaction.
    """

    id: UUID = field(default_factory=new_id)
