import uuid
from abc import ABC
from dataclasses import dataclass, field
from datetime import UTC, datetime


def utcnow() -> datetime:
    """Timezone-aware current time used for every persisted timestamp."""
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from stores that drop tzinfo."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass(kw_only=True)
class Entity(ABC):
    """
    Base class for Domain Entities.
    Entities have a unique identity that persists throughout their lifecycle.
    Equality is based on identity, not attributes.
    """

    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def generate_id(cls) -> str:
        return str(uuid.uuid4())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, self.__class__):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass(frozen=True)
class ValueObject(ABC):
    """
    Base class for Value Objects.
    Value Objects are immutable and defined by their attributes.
    """


class DomainException(Exception):
    """Base exception for all domain errors."""
