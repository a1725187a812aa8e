"""ARM resource identifiers."""

from __future__ import annotations

from typing import Any

from stackgraph.errors import ProviderRequestError
from stackgraph.models.resources import ResourceKind, ResourceNode

NETWORK_API_VERSION = "2023-09-01"
CONTAINER_SERVICE_API_VERSION = "2024-02-01"

# kind -> (ARM resource type, api version)
ARM_TYPES: dict[ResourceKind, tuple[str, str]] = {
    ResourceKind.RESOURCE_GROUP: ("Microsoft.Resources/resourceGroups", "2022-09-01"),
    ResourceKind.VIRTUAL_NETWORK: ("Microsoft.Network/virtualNetworks", NETWORK_API_VERSION),
    ResourceKind.SUBNET: ("Microsoft.Network/virtualNetworks/subnets", NETWORK_API_VERSION),
    ResourceKind.PUBLIC_IP: ("Microsoft.Network/publicIPAddresses", NETWORK_API_VERSION),
    ResourceKind.FIREWALL_POLICY: (
        "Microsoft.Network/ApplicationGatewayWebApplicationFirewallPolicies",
        NETWORK_API_VERSION,
    ),
    ResourceKind.APPLICATION_GATEWAY: ("Microsoft.Network/applicationGateways", NETWORK_API_VERSION),
    ResourceKind.MANAGED_CLUSTER: ("Microsoft.ContainerService/managedClusters", CONTAINER_SERVICE_API_VERSION),
}


def arm_resource_id(subscription_id: str, node: ResourceNode, properties: dict[str, Any]) -> str:
    """Build the ARM id *node* will have once created.

    ``properties`` must already have node references resolved; the resource
    group and parent network names are read from the routing keys
    ``resourceGroupName`` and ``virtualNetworkName``.
    """
    scope = f"/subscriptions/{subscription_id}/resourceGroups"
    if node.kind is ResourceKind.RESOURCE_GROUP:
        return f"{scope}/{node.name}"

    group = properties.get("resourceGroupName")
    if not group:
        raise ProviderRequestError(node.ref, "resourceGroupName is required")
    base = f"{scope}/{group}/providers"
    if node.kind is ResourceKind.SUBNET:
        vnet = properties.get("virtualNetworkName")
        if not vnet:
            raise ProviderRequestError(node.ref, "virtualNetworkName is required")
        return f"{base}/Microsoft.Network/virtualNetworks/{vnet}/subnets/{node.name}"
    arm_type, _ = ARM_TYPES[node.kind]
    return f"{base}/{arm_type}/{node.name}"


def split_resource_id(resource_id: str) -> tuple[str, str]:
    """Return (resource group, leaf name) parsed from an ARM id."""
    parts = resource_id.strip("/").split("/")
    lowered = [p.lower() for p in parts]
    try:
        group = parts[lowered.index("resourcegroups") + 1]
    except (ValueError, IndexError) as exc:
        raise ProviderRequestError(None, f"Not an ARM resource id: {resource_id}") from exc
    return group, parts[-1]


def is_resource_group_id(resource_id: str) -> bool:
    return "/providers/" not in resource_id.lower()


def api_version_for(resource_id: str) -> str:
    """Pick the api version from the provider namespace in *resource_id*."""
    if "/providers/microsoft.containerservice/" in resource_id.lower():
        return CONTAINER_SERVICE_API_VERSION
    return NETWORK_API_VERSION
