from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from ..errors import AmbiguousResultError, InvalidArgument, NotFoundError, PartialCaptureWarning
from ..models import ObjectRef, Row, is_null
from ..store.base import RecordStore, ScopeResolver
from .rules import RULES, Cardinality, RuleTable, TraversalRule
from .steps import (
    Check,
    ConditionalBranch,
    Direct,
    Frame,
    Invoke,
    QueryAndRecurse,
    QueryChildren,
    Step,
    Strategy,
    UniqueLookup,
)

logger = logging.getLogger(__name__)

Recorder = Callable[[ObjectRef], bool]


class TraversalEngine:
    """Generic interpreter for capture strategies.

    Every discovered row is handed to ``record``; the engine itself keeps no
    capture state besides the active invocation path and collected warnings.
    """

    def __init__(
        self,
        store: RecordStore,
        record: Recorder,
        strategies: Mapping[str, Strategy],
        rules: RuleTable = RULES,
        scope_resolver: Optional[ScopeResolver] = None,
    ):
        self.store = store
        self.record = record
        self.strategies = strategies
        self.rules = rules
        self.scope_resolver = scope_resolver
        self.warnings: list[PartialCaptureWarning] = []
        self.captured = 0
        self._path: list[tuple[str, tuple[tuple[str, str], ...]]] = []
        self._handlers = {
            Direct: self._direct,
            QueryChildren: self._query_children,
            QueryAndRecurse: self._query_and_recurse,
            UniqueLookup: self._unique_lookup,
            ConditionalBranch: self._branch,
            Invoke: self._invoke_step,
            Check: self._check,
        }

    def current_scope(self) -> str:
        if self.scope_resolver is None:
            raise InvalidArgument("This traversal needs the current scope but no scope resolver is configured")
        return self.scope_resolver.current_scope()

    def strategy(self, name: str) -> Strategy:
        if is_null(name):
            raise InvalidArgument("parameter 'strategy_name' is nil!")
        try:
            return self.strategies[name]
        except KeyError:
            raise InvalidArgument(f"Unknown traversal strategy '{name}'") from None

    def run(self, strategy_name: str, params: Optional[Mapping[str, Any]] = None) -> int:
        """Run a named strategy; returns how many objects the recorder newly accepted."""
        strategy = self.strategy(strategy_name)
        before = self.captured
        self._invoke(strategy, dict(params or {}))
        return self.captured - before

    # ------------------------------------------------------------------ #

    def _invoke(self, strategy: Strategy, params: dict[str, Any]) -> None:
        for name in strategy.required:
            if is_null(params.get(name)):
                raise InvalidArgument(f"{strategy.name}: parameter '{name}' is nil!")

        key = (strategy.name, tuple(sorted((k, str(v)) for k, v in params.items())))
        if key in self._path:
            logger.debug(f"Skipping {strategy.name} {dict(key[1])}: already on the active path")
            return

        self._path.append(key)
        try:
            self._run_steps(strategy.steps, Frame(engine=self, params=params))
        finally:
            self._path.pop()

    def _run_steps(self, steps: Iterable[Step], frame: Frame) -> None:
        for step in steps:
            self._handlers[type(step)](step, frame)

    def _capture(self, ref: ObjectRef) -> None:
        if self.record(ref):
            self.captured += 1

    def _warn(self, message: str) -> None:
        warning = PartialCaptureWarning(message)
        self.warnings.append(warning)
        logger.warning(message)

    def _resolve(self, value: Any, frame: Frame) -> Any:
        return value(frame) if callable(value) else value

    def _expand(self, rule: TraversalRule, frame: Frame, key=None) -> list[Row]:
        if key is None:
            if frame.row is None:
                raise InvalidArgument(f"Rule '{rule.name}' needs a current row or an explicit key")
            if frame.row.container != rule.source_container:
                raise InvalidArgument(
                    f"Rule '{rule.name}' expands {rule.source_container} rows, got {frame.row.container}"
                )

        if rule.cardinality is Cardinality.ONE:
            target_id = frame.row.get(rule.relation_fields[0]) if key is None else key(frame)
            if is_null(target_id):
                return []
            target = self.store.get(rule.target_container, str(target_id))
            if target is None:
                self._warn(f"{rule.name}: no {rule.target_container} found for sys_id '{target_id}'")
                return []
            return [target]

        if key is None:
            values = rule.source_values(frame.row)
        else:
            resolved = key(frame)
            values = resolved if isinstance(resolved, tuple) else (resolved,)
            if any(is_null(v) for v in values):
                values = None
        if values is None:
            return []

        return self.store.query(
            rule.target_container,
            rule.filters_for(values),
            null=rule.null,
            not_null=rule.not_null,
        )

    # step handlers ----------------------------------------------------- #

    def _direct(self, step: Direct, frame: Frame) -> None:
        if frame.row is None:
            raise InvalidArgument("Direct capture needs a current row")
        self._capture(frame.row.ref)

    def _query_children(self, step: QueryChildren, frame: Frame) -> None:
        rule = self.rules.get(step.rule)
        rows = self._expand(rule, frame, step.key)
        if step.first_only:
            rows = rows[:1]

        if not rows and step.warn_if_empty:
            source = frame.row.get("name") if frame.row is not None else None
            self._warn(f"No {rule.target_container} found via {rule.name} for '{source}'")

        for row in rows:
            child = frame.child(row)
            if step.skip_if is not None and step.skip_if(child):
                logger.debug(f"Skipping {row.container} '{row.sys_id}'")
                continue
            if step.capture:
                self._capture(row.ref)
            if step.note:
                self._warn(f"{step.note} ({row.container} '{row.sys_id}')")
            self._run_steps(step.then, child)

    def _query_and_recurse(self, step: QueryAndRecurse, frame: Frame) -> None:
        rule = self.rules.get(step.rule)
        strategy = self.strategy(step.strategy)
        for row in self._expand(rule, frame):
            self._capture(row.ref)
            target = row.get(step.recurse_field)
            if is_null(target):
                continue
            self._invoke(strategy, {step.param: str(target)})

    def _unique_lookup(self, step: UniqueLookup, frame: Frame) -> None:
        container = self._resolve(step.container, frame)
        if is_null(container):
            raise InvalidArgument("Unique lookup needs a container")
        filters = {k: self._resolve(v, frame) for k, v in step.where.items()}
        for k, v in filters.items():
            if is_null(v):
                raise InvalidArgument(f"Unique lookup on {container}: value for '{k}' is nil!")

        rows = self.store.query(container, filters, null=step.null, not_null=step.not_null, limit=2)
        if not rows:
            raise NotFoundError(container, filters)
        if len(rows) > 1:
            raise AmbiguousResultError(container, filters)

        row = rows[0]
        if step.capture:
            self._capture(row.ref)
        self._run_steps(step.then, frame.child(row))

    def _branch(self, step: ConditionalBranch, frame: Frame) -> None:
        if frame.row is None:
            raise InvalidArgument(f"Branch on '{step.field}' needs a current row")
        value = frame.row.get(step.field)
        steps = step.branches.get("" if value is None else str(value), step.default)
        self._run_steps(steps, frame)

    def _invoke_step(self, step: Invoke, frame: Frame) -> None:
        strategy = self.strategy(step.strategy)
        params = {k: self._resolve(v, frame) for k, v in step.params.items()}
        self._invoke(strategy, params)

    def _check(self, step: Check, frame: Frame) -> None:
        if frame.row is None:
            raise InvalidArgument(f"Check on '{step.field}' needs a current row")
        actual = str(frame.row.get(step.field) or "")
        if actual != step.expected:
            raise InvalidArgument(step.message.format(sys_id=frame.row.sys_id, actual=actual))
