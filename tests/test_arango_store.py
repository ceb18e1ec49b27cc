import itertools

import pytest

from capture_graph.models import Row
from capture_graph.settings import CaptureGraphSettings
from capture_graph.store import arango as arango_module
from capture_graph.store.arango import ArangoBackend, ArangoBundleManager, ArangoRecordStore, build_filter_query

from conftest import WIDGET_ROWS, WIDGET_TABLE_CAPTURE, captured_ids, make_builder


def _blank(value):
    return value is None or value == ""


class FakeCollection:
    _ids = itertools.count(1)

    def __init__(self):
        self.docs = {}

    def get(self, key):
        doc = self.docs.get(key)
        return dict(doc) if doc is not None else None

    def insert(self, doc, overwrite=False):
        doc = dict(doc)
        key = doc.setdefault("_key", str(next(self._ids)))
        if key in self.docs and not overwrite:
            raise AssertionError(f"duplicate key {key}")
        self.docs[key] = doc
        return {"_key": key}


class FakeAQL:
    """Evaluates the queries build_filter_query produces."""

    def __init__(self, db):
        self.db = db
        self.executed = []

    def execute(self, aql, bind_vars):
        self.executed.append((aql, bind_vars))
        docs = self.db.collections[bind_vars["@col"]].docs.values()
        out = []
        for doc in docs:
            if not all(self._equals(doc, bind_vars, i) for i in self._indexes(bind_vars, "v")):
                continue
            if not all(_blank(doc.get(bind_vars[f"n{i}"])) for i in self._indexes(bind_vars, "n")):
                continue
            if any(_blank(doc.get(bind_vars[f"nn{i}"])) for i in self._indexes(bind_vars, "nn")):
                continue
            out.append(dict(doc))
        if "limit" in bind_vars:
            out = out[: bind_vars["limit"]]
        return iter(out)

    @staticmethod
    def _equals(doc, bind_vars, i):
        value = bind_vars[f"v{i}"]
        if f"f{i}" in bind_vars:
            return doc.get(bind_vars[f"f{i}"]) == value
        return value in (doc.get("_key"), doc.get("sys_id"))

    @staticmethod
    def _indexes(bind_vars, prefix):
        return [int(k[len(prefix):]) for k in bind_vars if k.startswith(prefix) and k[len(prefix):].isdigit()]


class FakeDatabase:
    def __init__(self, data=None):
        self.collections = {}
        self.aql = FakeAQL(self)
        for name, docs in (data or {}).items():
            col = self.create_collection(name)
            for doc in docs:
                col.insert(doc)

    def has_collection(self, name):
        return name in self.collections

    def create_collection(self, name):
        self.collections[name] = FakeCollection()
        return self.collections[name]

    def collection(self, name):
        return self.collections[name]


@pytest.fixture
def db():
    return FakeDatabase(
        {
            "sys_dictionary": [
                {"_key": "dcol", "name": "u_widget", "element": ""},
                {"_key": "dcolor", "name": "u_widget", "element": "color"},
                {"_key": "dsize", "name": "u_widget", "element": "size"},
                {"_key": "dother", "name": "u_other", "element": "color"},
            ]
        }
    )


def test_build_filter_query_binds_attribute_names():
    aql, bind_vars = build_filter_query("sys_ui_list", {"name": "u_widget"}, null=("sys_user",), limit=2)
    assert aql.startswith("FOR d IN @@col FILTER d.@f0 == @v0 AND")
    assert aql.endswith("LIMIT @limit RETURN d")
    assert bind_vars == {"@col": "sys_ui_list", "f0": "name", "v0": "u_widget", "n0": "sys_user", "limit": 2}


def test_build_filter_query_without_predicates():
    aql, bind_vars = build_filter_query("sys_app", {})
    assert aql == "FOR d IN @@col RETURN d"
    assert bind_vars == {"@col": "sys_app"}


def test_query_with_null_predicates(db):
    store = ArangoRecordStore(db)
    rows = store.query("sys_dictionary", {"name": "u_widget"}, not_null=("element",))
    assert sorted(r.sys_id for r in rows) == ["dcolor", "dsize"]

    rows = store.query("sys_dictionary", {"name": "u_widget"}, null=("element",))
    assert [r.sys_id for r in rows] == ["dcol"]


def test_query_limit_and_missing_collection(db):
    store = ArangoRecordStore(db)
    assert len(store.query("sys_dictionary", {"name": "u_widget"}, limit=2)) == 2
    assert store.query("sys_ui_view", {"name": "Default view"}) == []


def test_get_converts_documents(db):
    store = ArangoRecordStore(db)
    row = store.get("sys_dictionary", "dcolor")
    assert row.container == "sys_dictionary"
    assert row.sys_id == "dcolor"
    assert row.get("element") == "color"
    assert "_key" not in row.fields
    assert store.get("sys_dictionary", "nope") is None
    assert store.get("sys_ui_view", "nope") is None


def test_bundle_lifecycle(db):
    bundles = ArangoBundleManager(db)

    assert bundles.find_bundle("global", "Sprint 12") is None
    created = bundles.create_bundle("global", "Sprint 12")
    assert bundles.find_bundle("global", "Sprint 12") == created
    assert bundles.find_bundle("x_acme", "Sprint 12") is None

    assert bundles.get_active() is None
    bundles.set_active(created.sys_id)
    assert bundles.get_active() == created.sys_id

    bundles.save_row(Row("sys_dictionary", "dcolor", {"name": "u_widget", "element": "color"}))
    bundles.save_row(Row("sys_dictionary", "dcolor", {"name": "u_widget", "element": "color"}))
    updates = db.collection("sys_update_xml").docs
    assert len(updates) == 1
    (doc,) = updates.values()
    assert doc["update_set"] == created.sys_id
    assert doc["target_sys_id"] == "dcolor"

    bundles.set_active(None)
    assert bundles.get_active() is None


def test_save_row_needs_active_bundle(db):
    with pytest.raises(RuntimeError):
        ArangoBundleManager(db).save_row(Row("sys_dictionary", "dcolor"))


def _as_documents(rows):
    return {
        container: [{"_key": r["sys_id"], **{k: v for k, v in r.items() if k != "sys_id"}} for r in items]
        for container, items in rows.items()
    }


@pytest.fixture
def widget_db():
    return FakeDatabase(_as_documents(WIDGET_ROWS))


def test_sys_id_filter_matches_document_key():
    aql, bind_vars = build_filter_query("sys_archive", {"sys_id": "A"}, limit=2)
    assert "(d._key == @v0 OR d.sys_id == @v0)" in aql
    assert bind_vars == {"@col": "sys_archive", "v0": "A", "limit": 2}

    db = FakeDatabase({"sys_archive": [{"_key": "A"}, {"_key": "B"}]})
    assert [r.sys_id for r in ArangoRecordStore(db).query("sys_archive", {"sys_id": "A"})] == ["A"]


def test_sys_id_rooted_strategies_on_arango():
    db = FakeDatabase(
        {
            "sys_archive": [{"_key": "A"}, {"_key": "B"}],
            "sys_archive_related": [
                {"_key": "rA", "archive_map": "A", "table_archive_rule": "B"},
                {"_key": "rB", "archive_map": "B", "table_archive_rule": "A"},
            ],
            "sys_script": [{"_key": "br1"}],
        }
    )
    b = make_builder(ArangoRecordStore(db), ArangoBundleManager(db))

    b.capture_archival_rule("A")
    b.begin_traversal("object", container="sys_script", sys_id="br1")

    assert captured_ids(b) == {"A", "rA", "B", "rB", "br1"}


def test_table_strategy_and_commit_on_arango(widget_db):
    bundles = ArangoBundleManager(widget_db)
    b = make_builder(ArangoRecordStore(widget_db), bundles)

    b.capture_table_with_related_objects("u_widget")
    assert captured_ids(b) == WIDGET_TABLE_CAPTURE

    result = b.commit("Widget release")
    assert result.written == len(WIDGET_TABLE_CAPTURE)
    assert result.restored is True
    assert bundles.get_active() is None
    updates = widget_db.collection("sys_update_xml").docs.values()
    assert {doc["target_sys_id"] for doc in updates} == WIDGET_TABLE_CAPTURE


class FakeClient:
    def __init__(self, hosts):
        self.hosts = hosts
        self.closed = False

    def db(self, name, username, password):
        return FakeDatabase()

    def close(self):
        self.closed = True


def test_backend_from_settings_uses_configured_collections(monkeypatch):
    monkeypatch.setattr(arango_module, "ArangoClient", FakeClient)
    cfg = CaptureGraphSettings(bundle_collection="bundles", update_collection="bundle_rows")

    backend = ArangoBackend.from_settings(cfg)

    assert backend.bundles.bundle_collection == "bundles"
    assert backend.bundles.update_collection == "bundle_rows"
    assert backend.scope.current_scope() == "global"
    backend.close()
    assert backend.client.closed is True


def test_connect_only_opens_the_record_store(monkeypatch):
    monkeypatch.setattr(arango_module, "ArangoClient", FakeClient)
    backend = ArangoBackend()
    backend.connect()
    assert isinstance(backend.store, ArangoRecordStore)
    assert backend.bundles is None
