"""Dependency graph over declared resource nodes.

Edges come from two sources:

    explicit -- ``ResourceNode.depends_on``
    implicit -- every ``Ref`` inside ``ResourceNode.properties``

``resolve()`` produces a total order in which every node follows all nodes
it references. Independent nodes keep their declaration order so the output
is deterministic for diffing.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterable, Iterator

import structlog

from stackgraph.errors import CycleError, DuplicateNodeError, UnresolvedReferenceError
from stackgraph.graph.references import declared_subresources, iter_refs, iter_subrefs
from stackgraph.models.resources import NodeRef, ResourceNode

_log = structlog.get_logger(component="graph.dependency_graph")


class DependencyGraph:
    """In-memory DAG of resource nodes keyed by ``NodeRef``."""

    def __init__(self, nodes: Iterable[ResourceNode] = ()) -> None:
        self._nodes: dict[NodeRef, ResourceNode] = {}
        for node in nodes:
            self.add(node)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add(self, node: ResourceNode) -> ResourceNode:
        """Declare *node*; raises DuplicateNodeError on a repeated kind/name."""
        if node.ref in self._nodes:
            raise DuplicateNodeError(node.ref)
        self._nodes[node.ref] = node
        return node

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __contains__(self, ref: object) -> bool:
        return ref in self._nodes

    def __iter__(self) -> Iterator[ResourceNode]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return sum(len(self.dependencies(ref)) for ref in self._nodes)

    def get(self, ref: NodeRef) -> ResourceNode:
        return self._nodes[ref]

    def dependencies(self, ref: NodeRef) -> list[NodeRef]:
        """Direct dependencies of *ref*, explicit first, without duplicates."""
        node = self._nodes[ref]
        seen: dict[NodeRef, None] = {}
        for dep in sorted(node.depends_on):
            seen.setdefault(dep, None)
        for reference in iter_refs(node.properties):
            seen.setdefault(reference.target, None)
        return list(seen)

    def dependents(self, ref: NodeRef) -> set[NodeRef]:
        """Every node that transitively depends on *ref*."""
        reverse: dict[NodeRef, set[NodeRef]] = {r: set() for r in self._nodes}
        for node_ref in self._nodes:
            for dep in self.dependencies(node_ref):
                if dep in reverse:
                    reverse[dep].add(node_ref)

        found: set[NodeRef] = set()
        stack = [ref]
        while stack:
            for child in reverse.get(stack.pop(), ()):
                if child not in found:
                    found.add(child)
                    stack.append(child)
        return found

    # ------------------------------------------------------------------
    # Validation and ordering
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Raise UnresolvedReferenceError for any dangling reference.

        Checks node references (explicit and implicit) against the declared
        set, and sub-resource references against the owning node's nested
        configuration.
        """
        for ref, node in self._nodes.items():
            for dep in node.depends_on:
                if dep not in self._nodes:
                    raise UnresolvedReferenceError(ref, str(dep), "depends_on")
            for reference in iter_refs(node.properties):
                if reference.target not in self._nodes:
                    raise UnresolvedReferenceError(ref, str(reference.target), f"attribute {reference.attribute!r}")

            subrefs = list(iter_subrefs(node.properties))
            if not subrefs:
                continue
            declared = declared_subresources(node.properties)
            for sub in subrefs:
                if sub.name not in declared.get(sub.collection, set()):
                    raise UnresolvedReferenceError(
                        ref,
                        f"{sub.collection}/{sub.name}",
                        "sub-resource not declared in node configuration",
                    )

    def resolve(self) -> list[ResourceNode]:
        """Return nodes in dependency order.

        Raises:
            UnresolvedReferenceError: a reference names an undeclared node.
            CycleError: the edges contain a cycle; no order is produced.
        """
        self.validate()

        index = {ref: i for i, ref in enumerate(self._nodes)}
        in_degree = {ref: 0 for ref in self._nodes}
        children: dict[NodeRef, list[NodeRef]] = {ref: [] for ref in self._nodes}
        for ref in self._nodes:
            for dep in self.dependencies(ref):
                in_degree[ref] += 1
                children[dep].append(ref)

        ready = [(index[ref], ref) for ref, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        order: list[ResourceNode] = []
        while ready:
            _, ref = heapq.heappop(ready)
            order.append(self._nodes[ref])
            for child in children[ref]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    heapq.heappush(ready, (index[child], child))

        if len(order) != len(self._nodes):
            remaining = [ref for ref, degree in in_degree.items() if degree > 0]
            cycle = self._find_cycle(remaining)
            _log.error("dependency_cycle", cycle=[str(r) for r in cycle])
            raise CycleError(cycle)

        return order

    def teardown_order(self) -> list[ResourceNode]:
        """Reverse dependency order: dependents before their dependencies."""
        return list(reversed(self.resolve()))

    def _find_cycle(self, candidates: list[NodeRef]) -> list[NodeRef]:
        """Return one concrete cycle among *candidates* (first node repeated at the end)."""
        allowed = set(candidates)
        for start in candidates:
            path: list[NodeRef] = []
            on_path: set[NodeRef] = set()
            cycle = self._walk_for_cycle(start, allowed, path, on_path, set())
            if cycle:
                return cycle
        return candidates

    def _walk_for_cycle(
        self,
        ref: NodeRef,
        allowed: set[NodeRef],
        path: list[NodeRef],
        on_path: set[NodeRef],
        visited: set[NodeRef],
    ) -> list[NodeRef] | None:
        if ref in on_path:
            return path[path.index(ref) :] + [ref]
        if ref in visited:
            return None
        visited.add(ref)
        path.append(ref)
        on_path.add(ref)
        for dep in self.dependencies(ref):
            if dep in allowed:
                cycle = self._walk_for_cycle(dep, allowed, path, on_path, visited)
                if cycle:
                    return cycle
        path.pop()
        on_path.discard(ref)
        return None
