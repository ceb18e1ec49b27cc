"""
capture-graph - capture graphs of related platform records into bundles.
"""

from .builder import BuilderState, CaptureGraphBuilder
from .capture_set import CaptureSet
from .errors import (
    AmbiguousResultError,
    BundleRestoreWarning,
    CaptureError,
    CaptureStateError,
    InvalidArgument,
    NotFoundError,
    PartialCaptureWarning,
)
from .models import Bundle, CommitResult, ObjectRef, Row, Skipped, Written

__version__ = "0.3.0"

__all__ = [
    "CaptureGraphBuilder",
    "BuilderState",
    "CaptureSet",
    "ObjectRef",
    "Row",
    "Bundle",
    "CommitResult",
    "Written",
    "Skipped",
    "CaptureError",
    "InvalidArgument",
    "NotFoundError",
    "AmbiguousResultError",
    "CaptureStateError",
    "PartialCaptureWarning",
    "BundleRestoreWarning",
]
