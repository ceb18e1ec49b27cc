"""In-memory record store and bundle manager.

Used by the test-suite and by the ``memory`` backend, which loads a JSON dump
shaped ``{"container": [{"sys_id": "...", ...}, ...]}``.
"""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from ..models import Bundle, ObjectRef, Row, is_null
from .base import BundleManager, RecordStore, StaticScopeResolver

logger = logging.getLogger(__name__)


def _matches(value: Any, expected: Any) -> bool:
    if is_null(expected):
        return is_null(value)
    return value is not None and str(value) == str(expected)


class InMemoryRecordStore(RecordStore):
    def __init__(self, rows: Optional[Mapping[str, Iterable[Mapping[str, Any]]]] = None):
        self._containers: dict[str, dict[str, dict[str, Any]]] = {}
        for container, items in (rows or {}).items():
            for item in items:
                self.add(container, **dict(item))

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryRecordStore":
        data = json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
        store = cls(data)
        logger.info(f"Loaded {sum(len(v) for v in store._containers.values())} rows from {path}")
        return store

    def add(self, container: str, sys_id: Optional[str] = None, **fields: Any) -> Row:
        sys_id = sys_id or uuid.uuid4().hex
        self._containers.setdefault(container, {})[sys_id] = fields
        return Row(container=container, sys_id=sys_id, fields=dict(fields))

    def query(
        self,
        container: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        null: Iterable[str] = (),
        not_null: Iterable[str] = (),
        limit: Optional[int] = None,
    ) -> list[Row]:
        filters = dict(filters or {})
        null = tuple(null)
        not_null = tuple(not_null)

        out: list[Row] = []
        for sys_id, fields in self._containers.get(container, {}).items():
            row = Row(container=container, sys_id=sys_id, fields=dict(fields))
            if not all(_matches(row.get(k), v) for k, v in filters.items()):
                continue
            if not all(row.is_null(k) for k in null):
                continue
            if any(row.is_null(k) for k in not_null):
                continue
            out.append(row)
            if limit is not None and len(out) >= limit:
                break
        return out

    def get(self, container: str, sys_id: str) -> Optional[Row]:
        fields = self._containers.get(container, {}).get(str(sys_id))
        if fields is None:
            return None
        return Row(container=container, sys_id=str(sys_id), fields=dict(fields))


class InMemoryBundleManager(BundleManager):
    def __init__(self, active: Optional[str] = None):
        self.bundles: dict[str, Bundle] = {}
        self.writes: dict[str, list[ObjectRef]] = {}
        self.switches: list[Optional[str]] = []
        self._active = active

    def find_bundle(self, scope: str, name: str) -> Optional[Bundle]:
        for bundle in self.bundles.values():
            if bundle.scope == scope and bundle.name == name:
                return bundle
        return None

    def create_bundle(self, scope: str, name: str) -> Bundle:
        bundle = Bundle(sys_id=uuid.uuid4().hex, name=name, scope=scope)
        self.bundles[bundle.sys_id] = bundle
        return bundle

    def get_active(self) -> Optional[str]:
        return self._active

    def set_active(self, bundle_id: Optional[str]) -> None:
        self.switches.append(bundle_id)
        self._active = bundle_id

    def save_row(self, row: Row) -> None:
        if self._active is None:
            raise RuntimeError("No active bundle to write into")
        self.writes.setdefault(self._active, []).append(row.ref)


class MemoryBackend:
    """Bundles the in-memory ports the way ArangoBackend bundles the Arango ones."""

    def __init__(self, store: InMemoryRecordStore, bundles: InMemoryBundleManager, scope: StaticScopeResolver):
        self.store = store
        self.bundles = bundles
        self.scope = scope

    @classmethod
    def from_settings(cls, cfg) -> "MemoryBackend":
        store = InMemoryRecordStore.from_json(cfg.memory_seed) if cfg.memory_seed else InMemoryRecordStore()
        return cls(
            store=store,
            bundles=InMemoryBundleManager(),
            scope=StaticScopeResolver(cfg.scope, cfg.global_scope_sentinel, cfg.default_scope),
        )

    def close(self) -> None:
        pass
