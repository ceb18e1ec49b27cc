"""Step primitives that strategies are composed from.

Steps are inert data. ``TraversalEngine`` interprets them against a
``Frame``: the parameters of the running strategy plus the current row.
"""

from __future__ import annotations

from dataclasses import dataclass, field as dc_field
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Union

from ..models import Row

if TYPE_CHECKING:
    from .engine import TraversalEngine


@dataclass(slots=True)
class Frame:
    engine: "TraversalEngine"
    params: Mapping[str, Any]
    row: Optional[Row] = None

    def child(self, row: Row) -> "Frame":
        return Frame(engine=self.engine, params=self.params, row=row)

    @property
    def scope(self) -> str:
        return self.engine.current_scope()


Resolver = Callable[[Frame], Any]
Predicate = Callable[[Frame], bool]


def param(name: str) -> Resolver:
    return lambda frame: frame.params.get(name)


def field(name: str) -> Resolver:
    def resolve(frame: Frame) -> Any:
        return frame.row.get(name) if frame.row is not None else None

    return resolve


def const(value: Any) -> Resolver:
    return lambda frame: value


def current_scope() -> Resolver:
    return lambda frame: frame.scope


def scoped(inner: Resolver) -> Resolver:
    """Prefix a value with the normalized current scope: ``<scope>.<value>``."""
    return lambda frame: f"{frame.scope}.{inner(frame)}"


def ref_name_startswith(ref_field: str, container: str, prefix: str) -> Predicate:
    """True when the row referenced by ``ref_field`` has a name starting with ``prefix``."""

    def check(frame: Frame) -> bool:
        if frame.row is None or frame.row.is_null(ref_field):
            return False
        target = frame.engine.store.get(container, str(frame.row.get(ref_field)))
        if target is None:
            return False
        return str(target.get("name") or "").upper().startswith(prefix.upper())

    return check


@dataclass(frozen=True)
class Direct:
    """Capture the current row."""


@dataclass(frozen=True)
class QueryChildren:
    rule: str
    then: tuple["Step", ...] = ()
    capture: bool = True
    # explicit key for parameter-rooted queries; defaults to the rule's source key
    key: Optional[Resolver] = None
    skip_if: Optional[Predicate] = None
    first_only: bool = False
    warn_if_empty: bool = False
    note: Optional[str] = None


@dataclass(frozen=True)
class QueryAndRecurse:
    rule: str
    recurse_field: str
    strategy: str
    param: str = "sys_id"


@dataclass(frozen=True)
class UniqueLookup:
    container: Union[str, Resolver]
    where: Mapping[str, Resolver] = dc_field(default_factory=dict)
    then: tuple["Step", ...] = ()
    capture: bool = True
    null: tuple[str, ...] = ()
    not_null: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConditionalBranch:
    field: str
    branches: Mapping[str, tuple["Step", ...]]
    default: tuple["Step", ...] = ()


@dataclass(frozen=True)
class Invoke:
    strategy: str
    params: Mapping[str, Resolver] = dc_field(default_factory=dict)


@dataclass(frozen=True)
class Check:
    field: str
    expected: str
    message: str


Step = Union[Direct, QueryChildren, QueryAndRecurse, UniqueLookup, ConditionalBranch, Invoke, Check]


@dataclass(frozen=True)
class Strategy:
    name: str
    steps: tuple[Step, ...]
    required: tuple[str, ...] = ()
    description: str = ""
