"""Run result data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from stackgraph.models.resources import CredentialBundle, MaterializedOutput, NodeRef
from stackgraph.secrets import Secret

CLUSTER_NOT_READY = "Cluster not ready"


class AttemptStatus(StrEnum):
    """Lifecycle of a single materialization attempt."""

    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABANDONED = "abandoned"


@dataclass
class MaterializationAttempt:
    """Recorded before the provider call is issued."""

    ref: NodeRef
    fingerprint: str
    started_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    error: str = ""


@dataclass
class MaterializationReport:
    """Outcome of one materializer run.

    ``unmaterialized`` holds every node that has no output at the end of the
    run: failed nodes, their dependents, and nodes skipped by cancellation.
    """

    order: list[NodeRef] = field(default_factory=list)
    outputs: dict[NodeRef, MaterializedOutput] = field(default_factory=dict)
    created: list[NodeRef] = field(default_factory=list)
    unchanged: list[NodeRef] = field(default_factory=list)
    failed: dict[NodeRef, Exception] = field(default_factory=dict)
    unmaterialized: set[NodeRef] = field(default_factory=set)
    cancelled: bool = False
    duration_ms: float = 0.0

    @property
    def first_error(self) -> Exception | None:
        # dicts preserve insertion order, i.e. failure order
        return next(iter(self.failed.values()), None)

    @property
    def success(self) -> bool:
        return not self.failed and not self.unmaterialized and not self.cancelled

    @property
    def provider_calls(self) -> int:
        return len(self.created) + len(self.failed)


@dataclass
class TeardownReport:
    """Outcome of a reverse-order teardown."""

    deleted: list[NodeRef] = field(default_factory=list)
    skipped: list[NodeRef] = field(default_factory=list)
    remaining: list[NodeRef] = field(default_factory=list)
    error: Exception | None = None

    @property
    def success(self) -> bool:
        return self.error is None


class CredentialStatus(StrEnum):
    """Outcome of a credential export."""

    AVAILABLE = "available"
    NOT_READY = "not_ready"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class ExportedCredential:
    """Credential export result; carries a placeholder when no bundle exists."""

    status: CredentialStatus
    bundle: CredentialBundle | None = None
    error: str = ""
    placeholder: str = CLUSTER_NOT_READY

    @property
    def value(self) -> Secret[str] | str:
        """Secret-wrapped document when available, the placeholder otherwise."""
        if self.bundle is not None:
            return self.bundle.document
        return self.placeholder
