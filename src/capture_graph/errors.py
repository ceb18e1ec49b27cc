"""Error taxonomy for capture traversals and commits.

Hard errors abort the traversal call that raised them and surface to the
caller. Warnings are never raised: they are logged and collected so callers
can inspect them after a traversal or commit.
"""

from __future__ import annotations

from typing import Any, Mapping


class CaptureError(Exception):
    """Base class for every error raised by capture-graph."""


class InvalidArgument(CaptureError, ValueError):
    """A required parameter is missing or null."""


class NotFoundError(CaptureError, LookupError):
    """A required unique entity is absent."""

    def __init__(self, container: str, filters: Mapping[str, Any] | None = None, message: str | None = None):
        self.container = container
        self.filters = dict(filters or {})
        super().__init__(message or f"No {container} found for query {_describe(self.filters)}")


class AmbiguousResultError(CaptureError, LookupError):
    """A unique lookup matched more than one row."""

    def __init__(self, container: str, filters: Mapping[str, Any] | None = None):
        self.container = container
        self.filters = dict(filters or {})
        super().__init__(f"Found multiple {container} rows for query {_describe(self.filters)}")


class CaptureStateError(CaptureError, RuntimeError):
    """An operation was attempted while the builder is committing."""


class PartialCaptureWarning(UserWarning):
    """Optional related data was absent; the capture continued without it."""


class BundleRestoreWarning(UserWarning):
    """The caller's original active bundle could not be confirmed after a commit."""


def _describe(filters: Mapping[str, Any]) -> str:
    if not filters:
        return "'<all>'"
    return "'" + "^".join(f"{k}={v}" for k, v in filters.items()) + "'"
