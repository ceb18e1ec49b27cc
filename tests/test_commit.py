import pytest

from capture_graph.builder import BuilderState
from capture_graph.errors import BundleRestoreWarning, CaptureStateError, InvalidArgument
from capture_graph.models import ObjectRef, Skipped, Written
from capture_graph.store.memory import InMemoryBundleManager, InMemoryRecordStore

from conftest import make_builder


@pytest.fixture
def store():
    return InMemoryRecordStore(
        {
            "sys_script": [{"sys_id": "br1"}, {"sys_id": "br2"}],
            "sys_script_include": [{"sys_id": "si1", "api_name": "global.Util"}],
        }
    )


class FailingSaveBundles(InMemoryBundleManager):
    def __init__(self, fail_on, **kwargs):
        super().__init__(**kwargs)
        self.fail_on = fail_on

    def save_row(self, row):
        if row.sys_id == self.fail_on:
            raise RuntimeError("write rejected")
        super().save_row(row)


class StuckBundles(InMemoryBundleManager):
    """Accepts the first switch and then refuses to move back."""

    def set_active(self, bundle_id):
        if self.switches:
            self.switches.append(bundle_id)
            raise ConnectionError("session lost")
        super().set_active(bundle_id)


class BrokenSwitchBundles(InMemoryBundleManager):
    def set_active(self, bundle_id):
        self.switches.append(bundle_id)
        if bundle_id != "orig":
            raise ConnectionError("cannot switch")
        self._active = bundle_id


def test_commit_writes_existing_rows_and_restores(store, bundles):
    b = make_builder(store, bundles)
    b.record(ObjectRef("br1", "sys_script"))
    b.record(ObjectRef("gone", "sys_script"))
    b.record(ObjectRef("si1", "sys_script_include"))

    result = b.commit("Sprint 12")

    assert result.created is True
    assert result.attempted == 3
    assert result.written == 2
    assert [s.ref.store_identifier for s in result.skipped] == ["gone"]
    assert result.restored is True
    assert bundles.get_active() == "orig"
    assert bundles.switches == [result.bundle.sys_id, "orig"]
    assert set(bundles.writes[result.bundle.sys_id]) == {
        ObjectRef("br1", "sys_script"),
        ObjectRef("si1", "sys_script_include"),
    }
    assert b.count() == 0
    assert b.state is BuilderState.IDLE


def test_one_entry_per_captured_object(store, bundles):
    b = make_builder(store, bundles)
    b.record(ObjectRef("br2", "sys_script"))
    b.record(ObjectRef("br1", "sys_script"))
    result = b.commit("Entries")
    assert set(result.entries) == {Written(ObjectRef("br2", "sys_script")), Written(ObjectRef("br1", "sys_script"))}


def test_failed_write_is_skipped_not_raised(store):
    bundles = FailingSaveBundles("br1", active="orig")
    b = make_builder(store, bundles)
    b.record(ObjectRef("br1", "sys_script"))
    b.record(ObjectRef("br2", "sys_script"))

    result = b.commit("Partial")

    assert result.written == 1
    assert result.skipped == [Skipped(ObjectRef("br1", "sys_script"), "RuntimeError: write rejected")]
    assert bundles.get_active() == "orig"


def test_existing_bundle_is_reused(store, bundles):
    b = make_builder(store, bundles)
    b.record(ObjectRef("br1", "sys_script"))
    first = b.commit("Reused")
    b.record(ObjectRef("br2", "sys_script"))
    second = b.commit("Reused")

    assert first.created is True
    assert second.created is False
    assert second.bundle == first.bundle
    assert len(bundles.bundles) == 1


def test_bundle_is_created_in_normalized_scope(store, bundles):
    b = make_builder(store, bundles, scope="rhino.global")
    result = b.commit("Global work")
    assert result.bundle.scope == "global"

    other = make_builder(store, bundles, scope="x_acme")
    assert other.commit("Global work").created is True


def test_empty_commit_still_switches_and_restores(store, bundles):
    result = make_builder(store, bundles).commit("Empty")
    assert result.attempted == 0
    assert bundles.switches == [result.bundle.sys_id, "orig"]


def test_null_bundle_name_leaves_capture_set_untouched(store, bundles):
    b = make_builder(store, bundles)
    b.record(ObjectRef("br1", "sys_script"))
    with pytest.raises(InvalidArgument):
        b.commit("")
    assert b.count() == 1
    assert bundles.switches == []
    assert b.state is BuilderState.CAPTURING


def test_restore_failure_is_reported(store):
    bundles = StuckBundles(active="orig")
    b = make_builder(store, bundles)
    b.record(ObjectRef("br1", "sys_script"))

    result = b.commit("Stuck")

    assert result.written == 1
    assert result.restored is False
    assert len(result.warnings) == 1
    assert isinstance(result.warnings[0], BundleRestoreWarning)
    assert b.count() == 0


def test_switch_failure_propagates_but_set_is_cleared(store):
    bundles = BrokenSwitchBundles(active="orig")
    b = make_builder(store, bundles)
    b.record(ObjectRef("br1", "sys_script"))

    with pytest.raises(ConnectionError):
        b.commit("Broken")

    assert b.count() == 0
    assert bundles.switches[-1] == "orig"
    assert bundles.get_active() == "orig"
    assert bundles.writes == {}
    assert b.state is BuilderState.IDLE


def test_capture_during_commit_is_rejected(store):
    class ReentrantBundles(InMemoryBundleManager):
        builder = None
        errors = []

        def save_row(self, row):
            try:
                self.builder.capture_table_with_related_objects("u_widget")
            except CaptureStateError as e:
                self.errors.append(e)
            super().save_row(row)

    bundles = ReentrantBundles(active="orig")
    b = make_builder(store, bundles)
    bundles.builder = b
    b.record(ObjectRef("br1", "sys_script"))

    result = b.commit("Reentrant")

    assert result.written == 1
    assert len(bundles.errors) == 1
    assert b.state is BuilderState.IDLE


def test_data_records(store, bundles):
    b = make_builder(store, bundles)
    assert b.capture_data_records("sys_script") == 2
    assert b.capture_data_records("sys_script_include", {"api_name": "global.Util"}) == 1
    assert b.count() == 3

    row = store.get("sys_script", "br1")
    assert b.capture_data_record(row) is False

    with pytest.raises(InvalidArgument):
        b.capture_data_records("")
    with pytest.raises(InvalidArgument):
        b.capture_data_record(None)


def test_commit_starts_a_fresh_session(widget_store, bundles):
    b = make_builder(widget_store, bundles)
    b.capture_table_with_related_objects("u_widget")
    assert len(b.warnings) == 1

    b.commit("Widget release")
    assert b.warnings == []

    b.capture_list_layouts_for_table("u_widget")
    assert b.warnings == []


def test_rejected_commit_keeps_warnings(widget_store, bundles):
    b = make_builder(widget_store, bundles)
    b.capture_table_with_related_objects("u_widget")
    with pytest.raises(InvalidArgument):
        b.commit("")
    assert len(b.warnings) == 1
