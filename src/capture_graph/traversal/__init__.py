"""Rule table, step primitives, strategy catalog and their interpreter."""

from .engine import TraversalEngine
from .rules import RULES, Cardinality, RuleTable, TraversalRule
from .steps import (
    Check,
    ConditionalBranch,
    Direct,
    Invoke,
    QueryAndRecurse,
    QueryChildren,
    Strategy,
    UniqueLookup,
    const,
    current_scope,
    field,
    param,
    scoped,
)
from .strategies import STRATEGIES, build_catalog

__all__ = [
    "TraversalEngine",
    "TraversalRule",
    "RuleTable",
    "Cardinality",
    "RULES",
    "Strategy",
    "STRATEGIES",
    "build_catalog",
    "Direct",
    "QueryChildren",
    "QueryAndRecurse",
    "UniqueLookup",
    "ConditionalBranch",
    "Invoke",
    "Check",
    "param",
    "field",
    "const",
    "current_scope",
    "scoped",
]
