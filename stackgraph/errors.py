"""Error taxonomy for stackgraph.

Graph-build errors (``GraphBuildError`` subclasses) are raised before any
provider call is made. Runtime errors are collected per node by the
materializer; credential errors are degraded to a placeholder by the exporter.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stackgraph.models.resources import NodeRef


class StackGraphError(Exception):
    """Base class for every error raised by stackgraph."""


class ConfigError(StackGraphError, ValueError):
    """A required configuration value is missing or malformed."""


# ---------------------------------------------------------------------------
# Graph build
# ---------------------------------------------------------------------------


class GraphBuildError(StackGraphError):
    """The declared node set cannot be turned into a provisioning order."""


class DuplicateNodeError(GraphBuildError):
    """Two nodes were declared with the same kind and name."""

    def __init__(self, ref: NodeRef) -> None:
        super().__init__(f"Node {ref} is declared more than once")
        self.ref = ref


class UnresolvedReferenceError(GraphBuildError):
    """A node references a node or sub-resource that is not declared."""

    def __init__(self, source: NodeRef, target: str, detail: str = "") -> None:
        message = f"Node {source} references undeclared {target}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.source = source
        self.target = target


class CycleError(GraphBuildError):
    """The dependency edges contain a cycle."""

    def __init__(self, cycle: list[NodeRef]) -> None:
        path = " -> ".join(str(ref) for ref in cycle)
        super().__init__(f"Dependency cycle detected: {path}")
        self.cycle = cycle


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------


class ProviderRequestError(StackGraphError):
    """The provider rejected a create/update/delete request."""

    def __init__(self, ref: NodeRef | None, detail: str) -> None:
        prefix = f"{ref}: " if ref is not None else ""
        super().__init__(f"{prefix}{detail}")
        self.ref = ref
        self.detail = detail


class ProvisioningTimeoutError(StackGraphError, TimeoutError):
    """A terminal provisioning state was not reached within the bound."""

    def __init__(self, what: str, timeout: float) -> None:
        super().__init__(f"{what} did not reach a terminal state within {timeout:g}s")
        self.what = what
        self.timeout = timeout


class CredentialUnavailableError(StackGraphError):
    """Cluster credentials were requested before the cluster was ready."""

    def __init__(self, message: str, state: str = "") -> None:
        super().__init__(message)
        self.state = state
