"""Fixed table of relations between platform containers.

Every expansion the traversal engine performs goes through one of these rows,
so a capture never reaches a container the table does not name.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator, Optional

from ..errors import InvalidArgument
from ..models import Row, is_null


class Cardinality(Enum):
    # source.relation_field holds the identifier of a single target row
    ONE = "one"
    # target.relation_field equals source.source_key
    MANY = "many"


def _as_tuple(value: str | tuple[str, ...]) -> tuple[str, ...]:
    return (value,) if isinstance(value, str) else tuple(value)


@dataclass(frozen=True, slots=True)
class TraversalRule:
    source_container: str
    relation_field: str | tuple[str, ...]
    target_container: str
    cardinality: Cardinality = Cardinality.MANY
    # source-side key for MANY rules; "{a}.{b}" templates are formatted from the row
    source_key: str | tuple[str, ...] = "sys_id"
    where: tuple[tuple[str, str], ...] = ()
    null: tuple[str, ...] = ()
    not_null: tuple[str, ...] = ()
    name: str = ""

    def __post_init__(self) -> None:
        if self.cardinality is Cardinality.MANY and len(_as_tuple(self.relation_field)) != len(
            _as_tuple(self.source_key)
        ):
            raise ValueError(f"rule {self.name!r}: relation_field and source_key arity differ")

    @property
    def relation_fields(self) -> tuple[str, ...]:
        return _as_tuple(self.relation_field)

    def source_values(self, row: Row) -> Optional[tuple[Any, ...]]:
        """Key values taken from the source row; None if any of them is null."""
        values = []
        for key in _as_tuple(self.source_key):
            if "{" in key:
                try:
                    value = key.format(**{**row.fields, "sys_id": row.sys_id})
                except KeyError:
                    return None
            else:
                value = row.get(key)
            if is_null(value):
                return None
            values.append(value)
        return tuple(values)

    def filters_for(self, values: tuple[Any, ...]) -> dict[str, Any]:
        filters = dict(zip(self.relation_fields, values))
        filters.update(dict(self.where))
        return filters


class RuleTable:
    """Rules keyed by name and indexed by source container."""

    def __init__(self, rules: Iterable[TraversalRule] = ()):
        self._by_name: dict[str, TraversalRule] = {}
        self._by_container: dict[str, list[TraversalRule]] = defaultdict(list)
        for rule in rules:
            self.add(rule)

    def add(self, rule: TraversalRule) -> None:
        if not rule.name:
            raise ValueError("rules must be named")
        if rule.name in self._by_name:
            raise ValueError(f"duplicate rule {rule.name!r}")
        self._by_name[rule.name] = rule
        self._by_container[rule.source_container].append(rule)

    def get(self, name: str) -> TraversalRule:
        try:
            return self._by_name[name]
        except KeyError:
            raise InvalidArgument(f"Unknown traversal rule '{name}'") from None

    def for_container(self, container: str) -> list[TraversalRule]:
        return list(self._by_container.get(container, ()))

    def targets(self) -> set[str]:
        return {r.target_container for r in self._by_name.values()}

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[TraversalRule]:
        return iter(self._by_name.values())

    def __len__(self) -> int:
        return len(self._by_name)


def _many(name, source, field, target, *, key="sys_id", where=(), null=(), not_null=()) -> TraversalRule:
    return TraversalRule(
        source_container=source,
        relation_field=field,
        target_container=target,
        cardinality=Cardinality.MANY,
        source_key=key,
        where=tuple(where),
        null=tuple(null),
        not_null=tuple(not_null),
        name=name,
    )


def _one(name, source, field, target) -> TraversalRule:
    return TraversalRule(
        source_container=source,
        relation_field=field,
        target_container=target,
        cardinality=Cardinality.ONE,
        name=name,
    )


# Containers
TABLE = "sys_db_object"
DICTIONARY = "sys_dictionary"
ACL = "sys_security_acl"
FORM = "sys_ui_form"
FORM_SECTION = "sys_ui_form_section"
LIST_LAYOUT = "sys_ui_list"
UI_VIEW = "sys_ui_view"
DB_VIEW = "sys_db_view"
CATALOG_ITEM = "sc_cat_item"
CATALOG_VARIABLE = "item_option_new"
VARIABLE_SET = "item_option_new_set"
VARIABLE_SET_LINK = "io_set_item"
CATALOG_UI_POLICY = "catalog_ui_policy"


def _layout_rules(prefix: str, source: str) -> list[TraversalRule]:
    """Form and list layout relations for anything addressed by ``name``."""
    return [
        _many(f"{prefix}.forms", source, "name", FORM, key="name", not_null=("view",)),
        _many(
            f"{prefix}.list_layouts",
            source,
            "name",
            LIST_LAYOUT,
            key="name",
            null=("sys_user", "relationship"),
            not_null=("view",),
        ),
        _many(f"{prefix}.list_controls", source, "name", "sys_ui_list_control", key="name"),
    ]


RULES = RuleTable(
    [
        # tables
        _many("table.collection", TABLE, "name", DICTIONARY, key="name", null=("element",)),
        _many("table.fields", TABLE, "name", DICTIONARY, key="name", not_null=("element",)),
        _many("table.numbers", TABLE, "category", "sys_number", key="name"),
        _many("table.acls", TABLE, "name", ACL, key="name"),
        _many("table.client_scripts", TABLE, "table", "sys_script_client", key="name"),
        _many("table.business_rules", TABLE, "collection", "sys_script", key="name"),
        _many("table.ui_actions", TABLE, "table", "sys_ui_action", key="name"),
        _many("table.ui_policies", TABLE, "table", "sys_ui_policy", key="name"),
        _many("table.data_policies", TABLE, "model_table", "sys_data_policy2", key="name"),
        _many("table.styles", TABLE, "name", "sys_ui_style", key="name"),
        _many("table.view_rules", TABLE, "table", "sysrule_view", key="name"),
        *_layout_rules("table", TABLE),
        _many("acl.roles", ACL, "sys_security_acl", "sys_security_acl_role"),
        _many("ui_policy.actions", "sys_ui_policy", "ui_policy", "sys_ui_policy_action"),
        _many("data_policy.rules", "sys_data_policy2", "sys_data_policy", "sys_data_policy_rule"),
        # fields
        _many("field.labels", DICTIONARY, ("name", "element"), "sys_documentation", key=("name", "element")),
        _many("field.choices", DICTIONARY, ("name", "element"), "sys_choice", key=("name", "element")),
        _many("field.acls", DICTIONARY, "name", ACL, key="{name}.{element}"),
        _many(
            "field.overrides", DICTIONARY, ("name", "element"), "sys_dictionary_override", key=("name", "element")
        ),
        # layouts
        _many("form.sections", FORM, "sys_ui_form", FORM_SECTION, not_null=("sys_ui_section",)),
        _one("form_section.section", FORM_SECTION, "sys_ui_section", "sys_ui_section"),
        _many("form.related_lists", FORM, ("name", "view"), "sys_ui_related_list", key=("name", "view")),
        _one("list.view", LIST_LAYOUT, "view", UI_VIEW),
        # database views
        _many("db_view.tables", DB_VIEW, "view", "sys_db_view_table"),
        _many("db_view_table.fields", "sys_db_view_table", "view_table", "sys_db_view_table_field"),
        *_layout_rules("db_view", DB_VIEW),
        # service catalog
        _many("cat_item.variables", CATALOG_ITEM, "cat_item", CATALOG_VARIABLE),
        _many("cat_item.variable_set_links", CATALOG_ITEM, "sc_cat_item", VARIABLE_SET_LINK, not_null=("variable_set",)),
        _many("cat_item.ui_policies", CATALOG_ITEM, "catalog_item", CATALOG_UI_POLICY, where=(("applies_to", "item"),)),
        _many(
            "cat_item.client_scripts",
            CATALOG_ITEM,
            "cat_item",
            "catalog_script_client",
            where=(("applies_to", "item"),),
        ),
        _one("variable_set_link.variable_set", VARIABLE_SET_LINK, "variable_set", VARIABLE_SET),
        _many("variable_set.variables", VARIABLE_SET, "variable_set", CATALOG_VARIABLE),
        _many(
            "variable_set.ui_policies",
            VARIABLE_SET,
            "variable_set",
            CATALOG_UI_POLICY,
            where=(("applies_to", "set"),),
        ),
        _many(
            "variable_set.client_scripts",
            VARIABLE_SET,
            "variable_set",
            "catalog_script_client",
            where=(("applies_to", "set"),),
        ),
        _many("catalog_ui_policy.actions", CATALOG_UI_POLICY, "ui_policy", "catalog_ui_policy_action"),
        _many("variable.choices", CATALOG_VARIABLE, "question", "question_choice"),
        _one("variable.macro", CATALOG_VARIABLE, "macro", "sys_ui_macro"),
        _one("variable.summary_macro", CATALOG_VARIABLE, "summary_macro", "sys_ui_macro"),
        _one("variable.sp_widget", CATALOG_VARIABLE, "sp_widget", "sp_widget"),
        _one("variable.macroponent", CATALOG_VARIABLE, "macroponent", "sys_ux_macroponent"),
        _one("variable.ui_page", CATALOG_VARIABLE, "ui_page", "sys_ui_page"),
        # navigation, properties, archiving
        _many("app_menu.modules", "sys_app_application", "application", "sys_app_module"),
        _many(
            "property_category.links",
            "sys_properties_category",
            "category",
            "sys_properties_category_m2m",
            not_null=("property",),
        ),
        _one("property_link.property", "sys_properties_category_m2m", "property", "sys_properties"),
        _many("archive.related", "sys_archive", "archive_map", "sys_archive_related"),
    ]
)
