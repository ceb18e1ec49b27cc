"""
ArangoDB implementation of the capture-graph ports.

Each platform container maps to one collection whose documents use the record
identifier as ``_key``. Bundles, written rows and the session's active bundle
live in their own collections.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from arango import ArangoClient
from arango.database import StandardDatabase
from arango.exceptions import DocumentGetError, DocumentInsertError

from ..models import Bundle, Row
from .base import BundleManager, RecordStore, StaticScopeResolver

logger = logging.getLogger(__name__)


def _doc_to_row(container: str, doc: Dict[str, Any]) -> Row:
    """Convert ArangoDB document to Row object."""
    sys_id = str(doc.get("sys_id") or doc["_key"])
    fields = {k: v for k, v in doc.items() if not k.startswith("_")}
    fields["sys_id"] = sys_id
    return Row(container=container, sys_id=sys_id, fields=fields)


def build_filter_query(
    container: str,
    filters: Mapping[str, Any],
    null: Iterable[str] = (),
    not_null: Iterable[str] = (),
    limit: Optional[int] = None,
) -> Tuple[str, Dict[str, Any]]:
    """Build an AQL query from equality and null predicates."""
    bind_vars: Dict[str, Any] = {"@col": container}
    aql_parts = ["FOR d IN @@col"]
    predicates: List[str] = []

    for i, (key, value) in enumerate(filters.items()):
        if key == "sys_id":
            # the record identifier is the document _key
            predicates.append(f"(d._key == @v{i} OR d.sys_id == @v{i})")
        else:
            predicates.append(f"d.@f{i} == @v{i}")
            bind_vars[f"f{i}"] = key
        bind_vars[f"v{i}"] = value

    for i, key in enumerate(null):
        predicates.append(f'(d.@n{i} == null OR d.@n{i} == "")')
        bind_vars[f"n{i}"] = key

    for i, key in enumerate(not_null):
        predicates.append(f'(d.@nn{i} != null AND d.@nn{i} != "")')
        bind_vars[f"nn{i}"] = key

    if predicates:
        aql_parts.append(f"FILTER {' AND '.join(predicates)}")

    if limit is not None:
        aql_parts.append("LIMIT @limit")
        bind_vars["limit"] = limit

    aql_parts.append("RETURN d")
    return " ".join(aql_parts), bind_vars


class ArangoRecordStore(RecordStore):
    def __init__(self, db: StandardDatabase):
        self.db = db

    def query(
        self,
        container: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        null: Iterable[str] = (),
        not_null: Iterable[str] = (),
        limit: Optional[int] = None,
    ) -> List[Row]:
        if not self.db.has_collection(container):
            logger.debug(f"No collection '{container}'; treating as empty")
            return []

        aql, bind_vars = build_filter_query(container, dict(filters or {}), tuple(null), tuple(not_null), limit)
        cursor = self.db.aql.execute(aql, bind_vars=bind_vars)
        return [_doc_to_row(container, doc) for doc in cursor]

    def get(self, container: str, sys_id: str) -> Optional[Row]:
        if not self.db.has_collection(container):
            return None
        try:
            doc = self.db.collection(container).get(str(sys_id))
            if doc:
                return _doc_to_row(container, doc)
            return None
        except DocumentGetError:
            return None


class ArangoBundleManager(BundleManager):
    """Bundles as documents; the active bundle as a per-session document."""

    def __init__(
        self,
        db: StandardDatabase,
        bundle_collection: str = "sys_update_set",
        update_collection: str = "sys_update_xml",
        session_collection: str = "capture_session",
        session_key: str = "default",
    ):
        self.db = db
        self.bundle_collection = bundle_collection
        self.update_collection = update_collection
        self.session_collection = session_collection
        self.session_key = session_key

    def _collection(self, name: str):
        if not self.db.has_collection(name):
            self.db.create_collection(name)
        return self.db.collection(name)

    def find_bundle(self, scope: str, name: str) -> Optional[Bundle]:
        aql, bind_vars = build_filter_query(
            self.bundle_collection, {"application": scope, "name": name}, limit=1
        )
        self._collection(self.bundle_collection)
        for doc in self.db.aql.execute(aql, bind_vars=bind_vars):
            return Bundle(sys_id=doc["_key"], name=doc["name"], scope=doc["application"])
        return None

    def create_bundle(self, scope: str, name: str) -> Bundle:
        try:
            result = self._collection(self.bundle_collection).insert(
                {"name": name, "application": scope, "state": "in progress"}
            )
        except DocumentInsertError as e:
            logger.error(f"Failed to create bundle '{name}': {e}")
            raise
        return Bundle(sys_id=result["_key"], name=name, scope=scope)

    def get_active(self) -> Optional[str]:
        doc = self._collection(self.session_collection).get(self.session_key)
        if not doc:
            return None
        return doc.get("update_set")

    def set_active(self, bundle_id: Optional[str]) -> None:
        self._collection(self.session_collection).insert(
            {"_key": self.session_key, "update_set": bundle_id}, overwrite=True
        )

    def save_row(self, row: Row) -> None:
        active = self.get_active()
        if not active:
            raise RuntimeError("No active bundle to write into")
        doc = {
            "_key": f"{active}-{row.container}-{row.sys_id}",
            "update_set": active,
            "name": f"{row.container}_{row.sys_id}",
            "table": row.container,
            "target_sys_id": row.sys_id,
            "payload": row.fields,
        }
        self._collection(self.update_collection).insert(doc, overwrite=True)


class ArangoBackend:
    """Connection holder handing out the Arango-backed ports."""

    def __init__(
        self,
        url: str = "http://localhost:8529",
        username: str = "root",
        password: str = "",
        database: str = "platform",
    ):
        self.url = url
        self.username = username
        self.password = password
        self.database_name = database

        self.client: Optional[ArangoClient] = None
        self.db: Optional[StandardDatabase] = None
        self.store: Optional[ArangoRecordStore] = None
        self.bundles: Optional[ArangoBundleManager] = None
        self.scope: Optional[StaticScopeResolver] = None

    @classmethod
    def from_settings(cls, cfg) -> "ArangoBackend":
        backend = cls(
            url=cfg.arango_url,
            username=cfg.arango_username,
            password=cfg.arango_password,
            database=cfg.arango_database,
        )
        backend.connect()
        backend.bundles = ArangoBundleManager(
            backend.db,
            bundle_collection=cfg.bundle_collection,
            update_collection=cfg.update_collection,
            session_collection=cfg.session_collection,
            session_key=cfg.session_key,
        )
        backend.scope = StaticScopeResolver(cfg.scope, cfg.global_scope_sentinel, cfg.default_scope)
        return backend

    def connect(self) -> None:
        """Establish connection to ArangoDB."""
        try:
            self.client = ArangoClient(hosts=self.url)
            self.db = self.client.db(self.database_name, username=self.username, password=self.password)
            self.store = ArangoRecordStore(self.db)
            logger.info(f"Connected to ArangoDB at {self.url} (database '{self.database_name}')")
        except Exception as e:
            logger.error(f"Failed to connect to ArangoDB: {e}")
            raise

    def close(self) -> None:
        """Close the connection to ArangoDB."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from ArangoDB")
