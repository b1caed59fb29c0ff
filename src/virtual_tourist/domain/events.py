"""Change events emitted by the record store."""

from dataclasses import dataclass
from enum import StrEnum

from virtual_tourist.domain.models import Location, Photo


class ChangeKind(StrEnum):
    """Type of mutation applied to a record."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class RecordKind(StrEnum):
    """Type of record a change applies to."""

    LOCATION = "location"
    PHOTO = "photo"


@dataclass(frozen=True)
class ChangeEvent:
    """Single record mutation, delivered to store observers."""

    kind: ChangeKind
    record_kind: RecordKind
    key: str
    location_key: str
    record: Location | Photo
