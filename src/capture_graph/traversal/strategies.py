"""Catalog of named capture strategies.

Each strategy is an ordered composition of step primitives over the rule
table in ``rules.py``. Composite strategies share step tuples instead of
repeating lookups per entity kind.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .rules import CATALOG_ITEM, CATALOG_UI_POLICY, CATALOG_VARIABLE, DB_VIEW, DICTIONARY, TABLE, UI_VIEW
from .steps import (
    Check,
    ConditionalBranch,
    Direct,
    QueryAndRecurse,
    QueryChildren,
    Resolver,
    Step,
    Strategy,
    UniqueLookup,
    current_scope,
    param,
    ref_name_startswith,
    scoped,
)

# Views whose name starts with RPT belong to reports, not to the table's own UI.
_REPORT_VIEW = ref_name_startswith("view", UI_VIEW, "RPT")

ACL_ROLES: tuple[Step, ...] = (QueryChildren("acl.roles"),)

FIELD_STEPS: tuple[Step, ...] = (
    Direct(),
    QueryChildren("field.labels"),
    QueryChildren("field.choices"),
    QueryChildren("field.acls", then=ACL_ROLES),
    QueryChildren("field.overrides"),
)


def form_layout_steps(prefix: str, key: Optional[Resolver] = None) -> tuple[Step, ...]:
    # Form sections and related list entries cascade from their parents on write.
    return (
        QueryChildren(
            f"{prefix}.forms",
            key=key,
            skip_if=_REPORT_VIEW,
            then=(
                QueryChildren("form.sections", capture=False, then=(QueryChildren("form_section.section"),)),
                QueryChildren("form.related_lists", first_only=True, warn_if_empty=True),
            ),
        ),
    )


def list_layout_steps(prefix: str, key: Optional[Resolver] = None) -> tuple[Step, ...]:
    return (
        QueryChildren(
            f"{prefix}.list_layouts",
            key=key,
            capture=False,
            skip_if=_REPORT_VIEW,
            then=(QueryChildren("list.view"), Direct()),
        ),
        QueryChildren(f"{prefix}.list_controls", key=key),
    )


TABLE_STEPS: tuple[Step, ...] = (
    QueryChildren("table.collection"),
    QueryChildren("table.numbers"),
    QueryChildren("table.acls", then=ACL_ROLES),
    QueryChildren("table.client_scripts"),
    QueryChildren("table.business_rules"),
    QueryChildren("table.ui_actions"),
    QueryChildren("table.ui_policies", then=(QueryChildren("ui_policy.actions"),)),
    QueryChildren("table.data_policies", then=(QueryChildren("data_policy.rules"),)),
    QueryChildren("table.styles"),
    QueryChildren("table.view_rules"),
    QueryChildren("table.fields", capture=False, then=FIELD_STEPS),
    *form_layout_steps("table"),
    *list_layout_steps("table"),
)

_CUSTOM_VARIABLE: tuple[Step, ...] = (
    QueryChildren("variable.macro"),
    QueryChildren("variable.summary_macro"),
    QueryChildren(
        "variable.sp_widget",
        note="Variable links to an SP Widget, which is not fully supported; some dependencies may need a manual export",
    ),
    QueryChildren(
        "variable.macroponent",
        note="Variable links to a Macroponent, which is not fully supported; some dependencies may need a manual export",
    ),
)
_CHOICE_VARIABLE: tuple[Step, ...] = (QueryChildren("variable.choices"),)

# item_option_new.type: 3 multiple choice, 5 select box, 14 custom, 15 UI page, 17 custom with label
VARIABLE_BRANCH = ConditionalBranch(
    "type",
    {
        "3": _CHOICE_VARIABLE,
        "5": _CHOICE_VARIABLE,
        "14": _CUSTOM_VARIABLE,
        "15": (QueryChildren("variable.ui_page"),),
        "17": _CUSTOM_VARIABLE,
    },
)

CATALOG_POLICY_ACTIONS: tuple[Step, ...] = (QueryChildren("catalog_ui_policy.actions"),)

CATALOG_ITEM_STEPS: tuple[Step, ...] = (
    Check(
        "sys_class_name",
        CATALOG_ITEM,
        "Catalog Item '{sys_id}' is a '{actual}'; Catalog Item subclasses are not supported",
    ),
    Direct(),
    QueryChildren("cat_item.variables", then=(VARIABLE_BRANCH,)),
    QueryChildren(
        "cat_item.variable_set_links",
        then=(
            QueryChildren(
                "variable_set_link.variable_set",
                then=(
                    QueryChildren("variable_set.variables", then=(VARIABLE_BRANCH,)),
                    QueryChildren("variable_set.ui_policies", then=CATALOG_POLICY_ACTIONS),
                    QueryChildren("variable_set.client_scripts"),
                ),
            ),
        ),
    ),
    QueryChildren("cat_item.ui_policies", then=CATALOG_POLICY_ACTIONS),
    QueryChildren("cat_item.client_scripts"),
)


def _by_sys_id(container: str, then: tuple[Step, ...] = (), capture: bool = True) -> UniqueLookup:
    return UniqueLookup(container, {"sys_id": param("sys_id")}, then=then, capture=capture)


def _table(then: tuple[Step, ...], capture: bool = False) -> UniqueLookup:
    return UniqueLookup(TABLE, {"name": param("table")}, then=then, capture=capture)


def _field(then: tuple[Step, ...]) -> UniqueLookup:
    return UniqueLookup(DICTIONARY, {"name": param("table"), "element": param("field")}, then=then, capture=False)


_CATALOG = (
    Strategy(
        "object",
        (UniqueLookup(param("container"), {"sys_id": param("sys_id")}),),
        required=("container", "sys_id"),
        description="A single record by container and sys_id",
    ),
    Strategy(
        "table",
        (_table(TABLE_STEPS, capture=True),),
        required=("table",),
        description="A table with its dictionary, ACLs, scripts, policies, styles, fields and layouts",
    ),
    Strategy(
        "table_field",
        (_field(FIELD_STEPS),),
        required=("table", "field"),
        description="A field with labels, choices, field ACLs and dictionary overrides",
    ),
    Strategy(
        "table_number",
        (_table((QueryChildren("table.numbers"),)),),
        required=("table",),
        description="Number maintenance records of a table",
    ),
    Strategy(
        "table_acls",
        (_table((QueryChildren("table.acls", then=ACL_ROLES),)),),
        required=("table",),
        description="Table-level ACLs and their roles",
    ),
    Strategy(
        "field_acls",
        (_field((QueryChildren("field.acls", then=ACL_ROLES),)),),
        required=("table", "field"),
        description="Field-level ACLs and their roles",
    ),
    Strategy(
        "ui_policies",
        (_table((QueryChildren("table.ui_policies", then=(QueryChildren("ui_policy.actions"),)),)),),
        required=("table",),
        description="UI policies and UI policy actions of a table",
    ),
    Strategy(
        "data_policies",
        (_table((QueryChildren("table.data_policies", then=(QueryChildren("data_policy.rules"),)),)),),
        required=("table",),
        description="Data policies and data policy rules of a table",
    ),
    Strategy(
        "form_layouts",
        form_layout_steps("table", key=param("table")),
        required=("table",),
        description="Form layouts, sections and related lists for every non-report view",
    ),
    Strategy(
        "list_layouts",
        list_layout_steps("table", key=param("table")),
        required=("table",),
        description="List layouts with their views, and list controls",
    ),
    Strategy(
        "catalog_item",
        (_by_sys_id(CATALOG_ITEM, CATALOG_ITEM_STEPS, capture=False),),
        required=("sys_id",),
        description="A catalog item with variables, variable sets, catalog UI policies and client scripts",
    ),
    Strategy(
        "catalog_variable",
        (_by_sys_id(CATALOG_VARIABLE, (VARIABLE_BRANCH,)),),
        required=("sys_id",),
        description="A catalog variable and the auxiliary objects its type needs",
    ),
    Strategy(
        "catalog_ui_policy",
        (_by_sys_id(CATALOG_UI_POLICY, CATALOG_POLICY_ACTIONS),),
        required=("sys_id",),
        description="A catalog UI policy and its actions",
    ),
    Strategy(
        "database_view",
        (
            UniqueLookup(
                DB_VIEW,
                {"name": param("name")},
                then=(
                    *form_layout_steps("db_view"),
                    *list_layout_steps("db_view"),
                    QueryChildren("db_view.tables", then=(QueryChildren("db_view_table.fields"),)),
                ),
            ),
        ),
        required=("name",),
        description="A database view with its tables, fields and layouts",
    ),
    Strategy(
        "application_menu",
        (_by_sys_id("sys_app_application", (QueryChildren("app_menu.modules"),)),),
        required=("sys_id",),
        description="An application menu and its modules",
    ),
    Strategy(
        "script_include",
        (UniqueLookup("sys_script_include", {"api_name": scoped(param("name"))}),),
        required=("name",),
        description="A script include by API name in the current scope",
    ),
    Strategy(
        "user_role",
        (UniqueLookup("sys_user_role", {"sys_scope": current_scope(), "name": param("name")}),),
        required=("name",),
        description="A role of the current scope",
    ),
    Strategy(
        "application",
        (UniqueLookup("sys_app", {"name": param("name")}),),
        required=("name",),
        description="An application record",
    ),
    Strategy(
        "property_category",
        (
            UniqueLookup(
                "sys_properties_category",
                {"name": param("name")},
                then=(
                    QueryChildren(
                        "property_category.links",
                        capture=False,
                        then=(QueryChildren("property_link.property"), Direct()),
                    ),
                ),
            ),
        ),
        required=("name",),
        description="A system property category, its properties and their category links",
    ),
    Strategy(
        "system_property",
        (UniqueLookup("sys_properties", {"name": param("name")}),),
        required=("name",),
        description="A system property by full name",
    ),
    Strategy(
        "event_registration",
        (UniqueLookup("sysevent_register", {"event_name": param("name")}),),
        required=("name",),
        description="An event registration by event name",
    ),
    Strategy(
        "archive_rule",
        (_by_sys_id("sys_archive", (QueryAndRecurse("archive.related", "table_archive_rule", "archive_rule"),)),),
        required=("sys_id",),
        description="An archive rule, its related records and every archive rule they reference",
    ),
)


def build_catalog(strategies: Iterable[Strategy] = _CATALOG) -> dict[str, Strategy]:
    catalog: dict[str, Strategy] = {}
    for strategy in strategies:
        if strategy.name in catalog:
            raise ValueError(f"duplicate strategy {strategy.name!r}")
        catalog[strategy.name] = strategy
    return catalog


STRATEGIES = build_catalog()
