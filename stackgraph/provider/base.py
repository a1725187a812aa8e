"""Provider boundary.

Provider -- ABC every control-plane adapter must implement. stackgraph is a
            caller only: create/update/delete semantics, retries and
            eventual consistency belong to the provider.

Attribute dictionaries returned by a provider mirror the ARM resource JSON:
``id``, ``name``, ``type``, ``location`` and a ``properties`` mapping that
carries ``provisioningState``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from stackgraph.models.resources import ResourceNode

CREDENTIAL_SCOPES = ("user", "admin")


class Provider(ABC):
    """Abstract base class for all providers.

    Implementations raise ``ProviderRequestError`` when a request is
    rejected; transport-level timeouts are enforced by the caller.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Identifier used in logs."""

    @abstractmethod
    def resource_id(self, node: ResourceNode, properties: dict[str, Any]) -> str:
        """Return the deterministic identifier *node* will have.

        *properties* has all node references already resolved, so routing
        values such as ``resourceGroupName`` are concrete strings.
        """

    @abstractmethod
    async def create_or_update(
        self,
        node: ResourceNode,
        properties: dict[str, Any],
        resource_id: str,
    ) -> dict[str, Any]:
        """Create or update the object.

        Returns the provider attributes of the resulting object. When the
        reported ``provisioningState`` is not terminal the caller polls
        ``get()`` until it is.
        """

    @abstractmethod
    async def get(self, resource_id: str) -> dict[str, Any] | None:
        """Return current attributes, or None when the object does not exist."""

    @abstractmethod
    async def delete(self, resource_id: str) -> None:
        """Delete the object; deleting a missing object is not an error."""

    @abstractmethod
    async def list_cluster_credentials(self, resource_id: str, scope: str = "user") -> list[str | bytes]:
        """Return the kubeconfig payloads for a managed cluster.

        ``str`` payloads are base64 transport-encoded (raw ARM);
        ``bytes`` payloads were already decoded by an SDK.
        """

    async def close(self) -> None:  # noqa: B027
        """Release client resources; optional."""
