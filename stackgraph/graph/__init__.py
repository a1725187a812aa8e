"""Provisioning dependency graph.

Builds a DAG from declared resource nodes (explicit ``depends_on`` edges plus
implicit edges from deferred ``Ref`` properties) and orders it for
materialization and teardown.
"""

from stackgraph.graph.dependency_graph import DependencyGraph
from stackgraph.graph.references import (
    declared_subresources,
    iter_refs,
    iter_subrefs,
    resolve_refs,
    resolve_subrefs,
)

__all__ = [
    "DependencyGraph",
    "declared_subresources",
    "iter_refs",
    "iter_subrefs",
    "resolve_refs",
    "resolve_subrefs",
]
