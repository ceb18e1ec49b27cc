from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


def is_null(value: Any) -> bool:
    """Platform notion of an empty field: missing, None or an empty string."""
    return value is None or (isinstance(value, str) and value.strip() == "")


@dataclass(frozen=True, slots=True)
class ObjectRef:
    """Identity of a capturable unit.

    Two refs are equal when both the identifier and the container match.
    """

    store_identifier: str
    container_name: str

    def __str__(self) -> str:
        return f"{self.container_name}:{self.store_identifier}"


@dataclass(slots=True)
class Row:
    """One record returned by a RecordStore."""

    container: str
    sys_id: str
    fields: dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        if name == "sys_id":
            return self.sys_id
        return self.fields.get(name, default)

    def is_null(self, name: str) -> bool:
        return is_null(self.get(name))

    @property
    def ref(self) -> ObjectRef:
        return ObjectRef(store_identifier=self.sys_id, container_name=self.container)


@dataclass(frozen=True, slots=True)
class Bundle:
    """Named, scoped deployment container (an update set)."""

    sys_id: str
    name: str
    scope: str


@dataclass(frozen=True, slots=True)
class Written:
    ref: ObjectRef


@dataclass(frozen=True, slots=True)
class Skipped:
    ref: ObjectRef
    reason: str


EntryResult = Union[Written, Skipped]


@dataclass
class CommitResult:
    """Outcome of flushing a CaptureSet into a bundle."""

    bundle: Bundle
    created: bool = False
    entries: list[EntryResult] = field(default_factory=list)
    restored: bool = True
    warnings: list[Warning] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.entries)

    @property
    def written(self) -> int:
        return sum(1 for e in self.entries if isinstance(e, Written))

    @property
    def skipped(self) -> list[Skipped]:
        return [e for e in self.entries if isinstance(e, Skipped)]
