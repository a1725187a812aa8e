"""Core data structures for stackgraph."""

from stackgraph.models.config import StackConfig, StackGraphConfig
from stackgraph.models.resources import (
    CredentialBundle,
    MaterializedOutput,
    NodeRef,
    ProvisioningState,
    Ref,
    ResourceKind,
    ResourceNode,
    SubRef,
)
from stackgraph.models.results import (
    AttemptStatus,
    CredentialStatus,
    ExportedCredential,
    MaterializationAttempt,
    MaterializationReport,
    TeardownReport,
)

__all__ = [
    "AttemptStatus",
    "CredentialBundle",
    "CredentialStatus",
    "ExportedCredential",
    "MaterializationAttempt",
    "MaterializationReport",
    "MaterializedOutput",
    "NodeRef",
    "ProvisioningState",
    "Ref",
    "ResourceKind",
    "ResourceNode",
    "StackConfig",
    "StackGraphConfig",
    "SubRef",
    "TeardownReport",
]
