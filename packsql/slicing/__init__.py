"""
Schema slicing.

Partitioners that split a schema into packs, the naming rules they use,
the active-slice cache and the question router.
"""

from packsql.slicing.cache import ActiveSlice, InMemoryPackCache, PackStore, ReadWriteLock
from packsql.slicing.graph import GraphSlicer, ensure_consistent, partition_by_graph
from packsql.slicing.naming import DomainNamer, NamingRule, load_naming_rules, slugify
from packsql.slicing.policy import (
    DepartmentPolicy,
    PolicySlicer,
    SliceOptions,
    partition_by_policy,
)
from packsql.slicing.router import QuestionRouter, RouteDecision, RouteTopic

__all__ = [
    "ActiveSlice",
    "DepartmentPolicy",
    "DomainNamer",
    "GraphSlicer",
    "InMemoryPackCache",
    "NamingRule",
    "PackStore",
    "PolicySlicer",
    "QuestionRouter",
    "ReadWriteLock",
    "RouteDecision",
    "RouteTopic",
    "SliceOptions",
    "ensure_consistent",
    "load_naming_rules",
    "partition_by_graph",
    "partition_by_policy",
    "slugify",
]
