"""Azure Resource Manager provider using the Azure SDK for Python.

Every resource except the resource group itself is driven through the
generic ``resources.*_by_id`` operations so that one code path covers all
network and container-service kinds. The SDK is synchronous; calls run in
the default executor so the materializer's event loop keeps scheduling
independent branches.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from azure.core.exceptions import AzureError, HttpResponseError, ResourceNotFoundError

from stackgraph.errors import ProviderRequestError
from stackgraph.models.resources import ResourceKind, ResourceNode
from stackgraph.provider.base import CREDENTIAL_SCOPES, Provider
from stackgraph.provider.ids import (
    ARM_TYPES,
    api_version_for,
    arm_resource_id,
    is_resource_group_id,
    split_resource_id,
)

if TYPE_CHECKING:
    from azure.core.credentials import TokenCredential

_log = structlog.get_logger(component="provider.azure")

T = TypeVar("T")

# Top-level keys ARM accepts on a generic resource body. Routing keys such
# as resourceGroupName only address the resource and are never sent.
_BODY_KEYS = ("location", "tags", "sku", "identity", "kind", "properties")


def arm_body(properties: dict[str, Any]) -> dict[str, Any]:
    """Return the generic-resource body for a resolved property bag."""
    return {key: properties[key] for key in _BODY_KEYS if key in properties}


class AzureProvider(Provider):
    """Provider backed by azure-mgmt-resource and azure-mgmt-containerservice.

    Args:
        subscription_id: Target subscription.
        credential:      Optional TokenCredential; ``DefaultAzureCredential``
                         is created lazily when omitted.
    """

    def __init__(self, subscription_id: str, credential: TokenCredential | None = None) -> None:
        if not subscription_id:
            raise ValueError("subscription_id must not be empty")
        self._subscription_id = subscription_id
        self._credential = credential
        self._resource_client: Any = None
        self._container_client: Any = None

    @property
    def provider_name(self) -> str:
        return "azure"

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def _get_credential(self) -> TokenCredential:
        if self._credential is None:
            from azure.identity import DefaultAzureCredential

            self._credential = DefaultAzureCredential()
        return self._credential

    @property
    def resource_client(self) -> Any:
        if self._resource_client is None:
            from azure.mgmt.resource import ResourceManagementClient

            self._resource_client = ResourceManagementClient(self._get_credential(), self._subscription_id)
        return self._resource_client

    @property
    def container_client(self) -> Any:
        if self._container_client is None:
            from azure.mgmt.containerservice import ContainerServiceClient

            self._container_client = ContainerServiceClient(self._get_credential(), self._subscription_id)
        return self._container_client

    async def _run(self, fn: Callable[[], T], what: str) -> T:
        """Run a blocking SDK call in the executor, wrapping Azure errors."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn)
        except ResourceNotFoundError:
            raise
        except HttpResponseError as exc:
            code = getattr(exc.error, "code", None) if exc.error is not None else None
            suffix = f" {code}" if code else ""
            raise ProviderRequestError(None, f"{what} rejected ({exc.status_code}{suffix}): {exc.message}") from exc
        except AzureError as exc:
            raise ProviderRequestError(None, f"{what} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Provider interface
    # ------------------------------------------------------------------

    def resource_id(self, node: ResourceNode, properties: dict[str, Any]) -> str:
        return arm_resource_id(self._subscription_id, node, properties)

    async def create_or_update(
        self,
        node: ResourceNode,
        properties: dict[str, Any],
        resource_id: str,
    ) -> dict[str, Any]:
        _log.debug("arm_create_or_update", node=str(node.ref), resource_id=resource_id)
        try:
            if node.kind is ResourceKind.RESOURCE_GROUP:
                group_body = {"location": properties["location"], "tags": properties.get("tags") or {}}
                result = await self._run(
                    lambda: self.resource_client.resource_groups.create_or_update(node.name, group_body),
                    f"create resource group {node.name}",
                )
            else:
                _, api_version = ARM_TYPES[node.kind]
                body = arm_body(properties)
                result = await self._run(
                    lambda: self.resource_client.resources.begin_create_or_update_by_id(
                        resource_id, api_version, body
                    ).result(),
                    f"create {node.ref}",
                )
        except ResourceNotFoundError as exc:
            # ARM answers a PUT under a missing group or parent with 404.
            raise ProviderRequestError(node.ref, f"parent resource not found: {exc.message}") from exc
        except ProviderRequestError as exc:
            raise ProviderRequestError(node.ref, exc.detail) from exc
        return dict(result.serialize(keep_readonly=True))

    async def get(self, resource_id: str) -> dict[str, Any] | None:
        try:
            if is_resource_group_id(resource_id):
                _, name = split_resource_id(resource_id)
                result = await self._run(lambda: self.resource_client.resource_groups.get(name), f"get {resource_id}")
            else:
                api_version = api_version_for(resource_id)
                result = await self._run(
                    lambda: self.resource_client.resources.get_by_id(resource_id, api_version),
                    f"get {resource_id}",
                )
        except ResourceNotFoundError:
            return None
        return dict(result.serialize(keep_readonly=True))

    async def delete(self, resource_id: str) -> None:
        _log.debug("arm_delete", resource_id=resource_id)
        try:
            if is_resource_group_id(resource_id):
                _, name = split_resource_id(resource_id)
                await self._run(
                    lambda: self.resource_client.resource_groups.begin_delete(name).result(),
                    f"delete {resource_id}",
                )
            else:
                api_version = api_version_for(resource_id)
                await self._run(
                    lambda: self.resource_client.resources.begin_delete_by_id(resource_id, api_version).result(),
                    f"delete {resource_id}",
                )
        except ResourceNotFoundError:
            _log.debug("arm_delete_not_found", resource_id=resource_id)

    async def list_cluster_credentials(self, resource_id: str, scope: str = "user") -> list[str | bytes]:
        if scope not in CREDENTIAL_SCOPES:
            raise ValueError(f"Invalid credential scope: {scope}")
        group, name = split_resource_id(resource_id)
        clusters = self.container_client.managed_clusters
        if scope == "admin":
            list_fn = clusters.list_cluster_admin_credentials
        else:
            list_fn = clusters.list_cluster_user_credentials
        try:
            result = await self._run(lambda: list_fn(group, name), f"list {scope} credentials for {name}")
        except ResourceNotFoundError as exc:
            raise ProviderRequestError(None, f"Managed cluster {resource_id} not found") from exc
        # The SDK deserializes the base64 wire value into a bytearray.
        return [bytes(item.value) for item in (result.kubeconfigs or []) if item.value is not None]

    async def close(self) -> None:
        for client in (self._resource_client, self._container_client):
            if client is not None:
                client.close()
        close_credential = getattr(self._credential, "close", None)
        if close_credential is not None:
            close_credential()
