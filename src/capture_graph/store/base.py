"""
Port abstractions for the platform collaborators of capture-graph.

The record store, the bundle manager and the scope resolver are owned by the
host platform. This module only fixes the calls the capture engine and the
commit orchestrator make against them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping, Optional

from ..errors import NotFoundError
from ..models import Bundle, Row, is_null


class RecordStore(ABC):
    """Read-only access to platform records."""

    @abstractmethod
    def query(
        self,
        container: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        null: Iterable[str] = (),
        not_null: Iterable[str] = (),
        limit: Optional[int] = None,
    ) -> list[Row]:
        """Enumerate rows matching every predicate (AND-combined)."""
        pass

    @abstractmethod
    def get(self, container: str, sys_id: str) -> Optional[Row]:
        """Retrieve a row by identifier."""
        pass


class BundleManager(ABC):
    """Bundle lookup and the session-wide "active bundle" switch.

    The active bundle is shared session state; concurrent switching by another
    actor in the same session is the caller's responsibility.
    """

    @abstractmethod
    def find_bundle(self, scope: str, name: str) -> Optional[Bundle]:
        """Find a bundle by name within a scope."""
        pass

    @abstractmethod
    def create_bundle(self, scope: str, name: str) -> Bundle:
        """Create a new bundle in a scope."""
        pass

    @abstractmethod
    def get_active(self) -> Optional[str]:
        """Identifier of the session's active bundle."""
        pass

    @abstractmethod
    def set_active(self, bundle_id: Optional[str]) -> None:
        """Switch the session's active bundle."""
        pass

    @abstractmethod
    def save_row(self, row: Row) -> None:
        """Write a row into the active bundle.

        Platform-defined child records cascade from this call on the platform
        side; callers must not capture them a second time.
        """
        pass


class ScopeResolver(ABC):
    """Returns the caller's current logical scope."""

    @abstractmethod
    def current_scope(self) -> str:
        pass


def normalize_scope(raw: Optional[str], sentinel: str = "rhino.global", default: str = "global") -> str:
    """Map the platform's "no scope" sentinel to the canonical default label."""
    if is_null(raw):
        raise NotFoundError("sys_scope", message="No scope name found for the current session")
    raw = str(raw).strip()
    return default if raw == sentinel else raw


class StaticScopeResolver(ScopeResolver):
    """Scope taken from configuration rather than a live session."""

    def __init__(self, raw: Optional[str], sentinel: str = "rhino.global", default: str = "global"):
        self.raw = raw
        self.sentinel = sentinel
        self.default = default

    def current_scope(self) -> str:
        return normalize_scope(self.raw, self.sentinel, self.default)
