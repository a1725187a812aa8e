"""Resource node data structures."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from stackgraph.secrets import Secret


class ResourceKind(StrEnum):
    """Kinds of cloud objects a stack can declare."""

    RESOURCE_GROUP = "resource_group"
    VIRTUAL_NETWORK = "virtual_network"
    SUBNET = "subnet"
    PUBLIC_IP = "public_ip"
    FIREWALL_POLICY = "firewall_policy"
    APPLICATION_GATEWAY = "application_gateway"
    MANAGED_CLUSTER = "managed_cluster"


class ProvisioningState(StrEnum):
    """ARM provisioning states."""

    PENDING = "Pending"
    CREATING = "Creating"
    UPDATING = "Updating"
    DELETING = "Deleting"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELED = "Canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (ProvisioningState.SUCCEEDED, ProvisioningState.FAILED, ProvisioningState.CANCELED)

    @classmethod
    def parse(cls, value: object) -> ProvisioningState:
        """Map a provider-reported state onto the enum (unknown -> PENDING)."""
        text = str(value or "")
        for member in cls:
            if member.value.lower() == text.lower():
                return member
        return cls.PENDING


@dataclass(frozen=True, order=True)
class NodeRef:
    """Weak reference to a declared node, by kind and name."""

    kind: ResourceKind
    name: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.name}"


@dataclass(frozen=True)
class Ref:
    """Deferred reference to another node's materialized attribute.

    ``attribute`` is a dotted path into the provider attributes
    (``"id"``, ``"name"``, ``"properties.ipAddress"``).
    """

    target: NodeRef
    attribute: str = "id"
    transform: Callable[[Any], Any] | None = field(default=None, compare=False)


@dataclass(frozen=True)
class SubRef:
    """Reference to a named sub-resource inside the same node's configuration.

    Resolved to ``{"id": "<node id>/<collection>/<name>"}`` once the owning
    node's identifier is known.
    """

    collection: str
    name: str


@dataclass(frozen=True)
class ResourceNode:
    """One declared cloud object and its configuration."""

    kind: ResourceKind
    name: str
    properties: dict[str, Any] = field(default_factory=dict, compare=False)
    depends_on: frozenset[NodeRef] = frozenset()

    @property
    def ref(self) -> NodeRef:
        return NodeRef(self.kind, self.name)

    def output(self, attribute: str = "id", transform: Callable[[Any], Any] | None = None) -> Ref:
        """Return a deferred reference to one of this node's attributes."""
        return Ref(self.ref, attribute, transform)


def lookup_attribute(attributes: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted attribute path; raises KeyError when absent."""
    value: Any = attributes
    for part in path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            raise KeyError(path)
        value = value[part]
    return value


@dataclass(frozen=True)
class MaterializedOutput:
    """Attributes captured after a node was successfully created.

    Immutable: provider-side attribute refreshes produce a new instance via
    ``with_attributes``.
    """

    ref: NodeRef
    resource_id: str
    attributes: Mapping[str, Any]
    fingerprint: str
    materialized_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def __post_init__(self) -> None:
        if not isinstance(self.attributes, MappingProxyType):
            object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def get(self, path: str) -> Any:
        return lookup_attribute(self.attributes, path)

    @property
    def provisioning_state(self) -> ProvisioningState:
        props = self.attributes.get("properties") or {}
        return ProvisioningState.parse(props.get("provisioningState"))

    def with_attributes(self, attributes: Mapping[str, Any]) -> MaterializedOutput:
        return replace(self, attributes=MappingProxyType(dict(attributes)))


@dataclass(frozen=True)
class CredentialBundle:
    """Decoded cluster-access configuration document.

    ``document`` is secret-wrapped; it is only reachable via ``reveal()``.
    """

    cluster: NodeRef
    document: Secret[str]
    retrieved_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
