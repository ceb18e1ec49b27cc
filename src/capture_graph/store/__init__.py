"""Record store and bundle manager implementations."""

from .base import BundleManager, RecordStore, ScopeResolver, StaticScopeResolver, normalize_scope
from .memory import InMemoryBundleManager, InMemoryRecordStore, MemoryBackend

__all__ = [
    "RecordStore",
    "BundleManager",
    "ScopeResolver",
    "StaticScopeResolver",
    "normalize_scope",
    "InMemoryRecordStore",
    "InMemoryBundleManager",
    "MemoryBackend",
]
