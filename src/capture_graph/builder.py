"""
High level API for building bundles out of captured platform objects.

Capture calls only queue objects; nothing is written until ``commit`` is
called, so a capture script can be dry-run before a bundle is produced::

    builder = CaptureGraphBuilder(store, bundles, scope_resolver)
    builder.capture_table_with_related_objects("incident")
    builder.capture_script_include_by_name("MyScriptInclude")
    builder.capture_application_menu_and_modules("12345fbc0fa10300e608b36be10abcdef")
    builder.commit("My New Update Set")
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping, Optional, Union

from .capture_set import CaptureSet
from .commit import CommitOrchestrator
from .errors import CaptureStateError, InvalidArgument, PartialCaptureWarning
from .models import CommitResult, ObjectRef, Row, is_null
from .store.base import BundleManager, RecordStore, ScopeResolver
from .traversal.engine import TraversalEngine
from .traversal.rules import RULES, RuleTable
from .traversal.steps import Strategy
from .traversal.strategies import STRATEGIES

logger = logging.getLogger(__name__)


class BuilderState(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    COMMITTING = "committing"


class CaptureGraphBuilder:
    def __init__(
        self,
        store: RecordStore,
        bundles: BundleManager,
        scope_resolver: ScopeResolver,
        *,
        strategies: Optional[Mapping[str, Strategy]] = None,
        rules: RuleTable = RULES,
    ):
        self.store = store
        self.capture_set = CaptureSet()
        self.state = BuilderState.IDLE
        self.engine = TraversalEngine(
            store,
            self.record,
            strategies if strategies is not None else STRATEGIES,
            rules=rules,
            scope_resolver=scope_resolver,
        )
        self.orchestrator = CommitOrchestrator(store, bundles, scope_resolver)

    # core API ---------------------------------------------------------- #

    def record(self, ref: Optional[ObjectRef]) -> bool:
        self._ensure_not_committing("record")
        inserted = self.capture_set.record(ref)
        if inserted and self.state is BuilderState.IDLE:
            self.state = BuilderState.CAPTURING
        return inserted

    def begin_traversal(
        self, strategy_name: str, root_params: Union[Mapping[str, Any], ObjectRef, None] = None, **params: Any
    ) -> int:
        """Run a named strategy; returns how many new objects it captured."""
        self._ensure_not_committing("begin_traversal")
        if isinstance(root_params, ObjectRef):
            merged: dict[str, Any] = {
                "sys_id": root_params.store_identifier,
                "container": root_params.container_name,
            }
        else:
            merged = dict(root_params or {})
        merged.update(params)

        captured = self.engine.run(strategy_name, merged)
        logger.info(f"{strategy_name}: captured {captured} new objects ({self.count()} total)")
        return captured

    def commit(self, bundle_name: str) -> CommitResult:
        self._ensure_not_committing("commit")
        self.state = BuilderState.COMMITTING
        try:
            return self.orchestrator.commit(bundle_name, self.capture_set)
        finally:
            if len(self.capture_set):
                self.state = BuilderState.CAPTURING
            else:
                self.state = BuilderState.IDLE
                self.engine.warnings.clear()

    def count(self) -> int:
        return self.capture_set.count()

    @property
    def warnings(self) -> list[PartialCaptureWarning]:
        return list(self.engine.warnings)

    def _ensure_not_committing(self, operation: str) -> None:
        if self.state is BuilderState.COMMITTING:
            raise CaptureStateError(f"{operation} is not allowed while a commit is in progress")

    # data records ------------------------------------------------------ #

    def capture_data_records(self, container: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        """Capture rows of a container that bundles do not normally track."""
        if is_null(container):
            raise InvalidArgument("capture_data_records: parameter 'container' is nil!")
        rows = self.store.query(str(container), filters or None)
        for row in rows:
            self.record(row.ref)
        logger.info(f"capture_data_records: captured {len(rows)} records from {container}")
        return len(rows)

    def capture_data_record(self, row: Optional[Row]) -> bool:
        if row is None:
            raise InvalidArgument("capture_data_record: parameter 'row' is None!")
        if not isinstance(row, Row):
            raise InvalidArgument("capture_data_record: parameter 'row' must be a Row!")
        if is_null(row.container):
            raise InvalidArgument("capture_data_record: parameter 'row' must name its container!")
        return self.record(row.ref)

    # catalog shortcuts ------------------------------------------------- #

    def capture_table_with_related_objects(self, table: str) -> int:
        return self.begin_traversal("table", table=table)

    def capture_table_field_and_associated_objects(self, table: str, field: str) -> int:
        return self.begin_traversal("table_field", table=table, field=field)

    def capture_table_number(self, table: str) -> int:
        return self.begin_traversal("table_number", table=table)

    def capture_acls_for_table(self, table: str) -> int:
        return self.begin_traversal("table_acls", table=table)

    def capture_acls_for_table_and_field(self, table: str, field: str) -> int:
        return self.begin_traversal("field_acls", table=table, field=field)

    def capture_ui_policies_for_table(self, table: str) -> int:
        return self.begin_traversal("ui_policies", table=table)

    def capture_data_policies_for_table(self, table: str) -> int:
        return self.begin_traversal("data_policies", table=table)

    def capture_form_layouts_for_table(self, table: str) -> int:
        return self.begin_traversal("form_layouts", table=table)

    def capture_list_layouts_for_table(self, table: str) -> int:
        return self.begin_traversal("list_layouts", table=table)

    def capture_service_catalog_item(self, sys_id: str) -> int:
        return self.begin_traversal("catalog_item", sys_id=sys_id)

    def capture_service_catalog_variable(self, sys_id: str) -> int:
        return self.begin_traversal("catalog_variable", sys_id=sys_id)

    def capture_catalog_ui_policy(self, sys_id: str) -> int:
        return self.begin_traversal("catalog_ui_policy", sys_id=sys_id)

    def capture_database_view(self, name: str) -> int:
        return self.begin_traversal("database_view", name=name)

    def capture_application_menu_and_modules(self, sys_id: str) -> int:
        return self.begin_traversal("application_menu", sys_id=sys_id)

    def capture_script_include_by_name(self, name: str) -> int:
        return self.begin_traversal("script_include", name=name)

    def capture_user_role(self, name: str) -> int:
        return self.begin_traversal("user_role", name=name)

    def capture_application_record(self, name: str) -> int:
        return self.begin_traversal("application", name=name)

    def capture_system_property_category_with_associations(self, name: str) -> int:
        return self.begin_traversal("property_category", name=name)

    def capture_system_property(self, name: str) -> int:
        return self.begin_traversal("system_property", name=name)

    def capture_event_registration(self, name: str) -> int:
        return self.begin_traversal("event_registration", name=name)

    def capture_archival_rule(self, sys_id: str) -> int:
        return self.begin_traversal("archive_rule", sys_id=sys_id)
