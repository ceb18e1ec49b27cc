import pytest

from capture_graph.builder import CaptureGraphBuilder
from capture_graph.store.base import StaticScopeResolver
from capture_graph.store.memory import InMemoryBundleManager, InMemoryRecordStore

# A small platform dump centred on the u_widget table. Rows named "noise_*"
# belong to other tables and must never be captured from u_widget.
WIDGET_ROWS = {
    "sys_db_object": [
        {"sys_id": "tbl1", "name": "u_widget"},
        {"sys_id": "tbl_other", "name": "u_other"},
    ],
    "sys_dictionary": [
        {"sys_id": "dcol", "name": "u_widget", "element": ""},
        {"sys_id": "dcolor", "name": "u_widget", "element": "color"},
        {"sys_id": "noise_dict", "name": "u_other", "element": "color"},
    ],
    "sys_documentation": [
        {"sys_id": "lbl_color", "name": "u_widget", "element": "color"},
        {"sys_id": "noise_lbl", "name": "u_other", "element": "color"},
    ],
    "sys_choice": [
        {"sys_id": "cho_red", "name": "u_widget", "element": "color", "value": "red"},
        {"sys_id": "cho_blue", "name": "u_widget", "element": "color", "value": "blue"},
    ],
    "sys_security_acl": [
        {"sys_id": "acl_t", "name": "u_widget"},
        {"sys_id": "acl_f", "name": "u_widget.color"},
        {"sys_id": "noise_acl", "name": "u_other"},
    ],
    "sys_security_acl_role": [
        {"sys_id": "acl_t_role", "sys_security_acl": "acl_t"},
        {"sys_id": "acl_f_role", "sys_security_acl": "acl_f"},
        {"sys_id": "noise_acl_role", "sys_security_acl": "noise_acl"},
    ],
    "sys_dictionary_override": [
        {"sys_id": "ovr_color", "name": "u_widget", "element": "color"},
    ],
    "sys_number": [{"sys_id": "num1", "category": "u_widget", "prefix": "WID"}],
    "sys_script": [
        {"sys_id": "br1", "collection": "u_widget"},
        {"sys_id": "noise_br", "collection": "u_other"},
    ],
    "sys_script_client": [{"sys_id": "cs1", "table": "u_widget"}],
    "sys_ui_action": [{"sys_id": "ua1", "table": "u_widget"}],
    "sys_ui_policy": [{"sys_id": "pol1", "table": "u_widget"}],
    "sys_ui_policy_action": [{"sys_id": "pola1", "ui_policy": "pol1"}],
    "sys_data_policy2": [{"sys_id": "dp1", "model_table": "u_widget"}],
    "sys_data_policy_rule": [{"sys_id": "dpr1", "sys_data_policy": "dp1"}],
    "sys_ui_style": [{"sys_id": "style1", "name": "u_widget"}],
    "sysrule_view": [{"sys_id": "vr1", "table": "u_widget"}],
    "sys_ui_view": [
        {"sys_id": "vdef", "name": "Default view", "title": "Default view"},
        {"sys_id": "vrpt", "name": "RPT5a1b2c", "title": "Report view"},
    ],
    "sys_ui_form": [
        {"sys_id": "form1", "name": "u_widget", "view": "vdef"},
        {"sys_id": "form_rpt", "name": "u_widget", "view": "vrpt"},
    ],
    "sys_ui_form_section": [
        {"sys_id": "fs1", "sys_ui_form": "form1", "sys_ui_section": "sec1"},
        {"sys_id": "fs_rpt", "sys_ui_form": "form_rpt", "sys_ui_section": "sec_rpt"},
    ],
    "sys_ui_section": [
        {"sys_id": "sec1", "name": "u_widget"},
        {"sys_id": "sec_rpt", "name": "u_widget"},
    ],
    "sys_ui_list": [
        {"sys_id": "list1", "name": "u_widget", "view": "vdef"},
        {"sys_id": "list_personal", "name": "u_widget", "view": "vdef", "sys_user": "user1"},
        {"sys_id": "list_rel", "name": "u_widget", "view": "vdef", "relationship": "rel1"},
        {"sys_id": "list_rpt", "name": "u_widget", "view": "vrpt"},
    ],
    "sys_ui_list_control": [{"sys_id": "lc1", "name": "u_widget"}],
}

WIDGET_TABLE_CAPTURE = {
    "tbl1",
    "dcol",
    "dcolor",
    "lbl_color",
    "cho_red",
    "cho_blue",
    "acl_t",
    "acl_t_role",
    "acl_f",
    "acl_f_role",
    "ovr_color",
    "num1",
    "br1",
    "cs1",
    "ua1",
    "pol1",
    "pola1",
    "dp1",
    "dpr1",
    "style1",
    "vr1",
    "form1",
    "sec1",
    "vdef",
    "list1",
    "lc1",
}


def make_builder(store, bundles=None, scope="rhino.global", **kwargs):
    return CaptureGraphBuilder(
        store,
        bundles if bundles is not None else InMemoryBundleManager(active="orig"),
        StaticScopeResolver(scope),
        **kwargs,
    )


@pytest.fixture
def widget_store():
    return InMemoryRecordStore(WIDGET_ROWS)


@pytest.fixture
def bundles():
    return InMemoryBundleManager(active="orig")


@pytest.fixture
def builder(widget_store, bundles):
    return make_builder(widget_store, bundles)


def captured_ids(builder):
    return {ref.store_identifier for ref in builder.capture_set}
