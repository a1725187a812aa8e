"""AKS + Application Gateway stack blueprint.

Declares the resource nodes for one deployment from an explicit
``StackConfig``:

    resource group -> virtual network -> subnet
                   -> public IP
                   -> WAF policy
    (subnet, public IP, WAF policy) -> application gateway
    (subnet[, application gateway]) -> managed cluster

The gateway is a single node. Its listeners, ports, pools and routing rules
are nested data that refer to each other with ``SubRef`` and are resolved
against the gateway's own id at materialization time.

Deployment variants (ingress wiring on/off, address plans, credential
scope) are selected through configuration; they are never merged.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from stackgraph.graph import DependencyGraph
from stackgraph.models.config import StackConfig
from stackgraph.models.resources import NodeRef, Ref, ResourceKind, ResourceNode, SubRef

# Output names exposed to the invoking orchestration.
OUTPUT_CLUSTER_NAME = "aksClusterName"
OUTPUT_CLUSTER_ID = "aksClusterId"
OUTPUT_GATEWAY_IP = "appGatewayIp"
OUTPUT_KUBECONFIG = "kubeconfigSecret"

_FRONTEND_IP_CONFIG = "appGwFrontendIPConfig"
_GATEWAY_IP_CONFIG = "appGwIPConfig"
_FRONTEND_PORT = "httpPort"
_BACKEND_POOL = "appGwBackendPool"
_HTTP_SETTINGS = "httpSettings"
_LISTENER = "httpListener"
_ROUTING_RULE = "rule1"


@dataclass
class Stack:
    """A declared graph plus the outputs it exports."""

    graph: DependencyGraph
    exports: dict[str, Ref] = field(default_factory=dict)
    cluster: NodeRef | None = None


def normalize_waf_policy_id(policy_id: str) -> str:
    """Lower-case the leading letter of the WAF policy type segment.

    ARM reports the policy type as ``ApplicationGatewayWebApplicationFirewallPolicies``
    while the gateway's ``firewallPolicy`` reference is compared case-sensitively
    by some API versions.
    """
    return policy_id.replace(
        "/ApplicationGatewayWebApplicationFirewallPolicies/",
        "/applicationGatewayWebApplicationFirewallPolicies/",
    )


def build_stack(config: StackConfig) -> Stack:
    """Declare every node of the stack described by *config*."""
    graph = DependencyGraph()
    net = config.network
    gw = config.gateway
    waf = config.firewall

    rg = graph.add(
        ResourceNode(
            kind=ResourceKind.RESOURCE_GROUP,
            name=config.resource_group_name,
            properties={"location": config.location},
        )
    )
    in_group = {"resourceGroupName": rg.output("name"), "location": rg.output("location")}

    vnet = graph.add(
        ResourceNode(
            kind=ResourceKind.VIRTUAL_NETWORK,
            name=net.vnet_name,
            properties={
                **in_group,
                "properties": {"addressSpace": {"addressPrefixes": list(net.vnet_address_space)}},
            },
        )
    )

    subnet = graph.add(
        ResourceNode(
            kind=ResourceKind.SUBNET,
            name=net.subnet_name,
            properties={
                "resourceGroupName": rg.output("name"),
                "virtualNetworkName": vnet.output("name"),
                "properties": {"addressPrefix": net.subnet_prefix},
            },
        )
    )

    public_ip = graph.add(
        ResourceNode(
            kind=ResourceKind.PUBLIC_IP,
            name=gw.public_ip_name,
            properties={
                **in_group,
                "sku": {"name": "Standard"},
                "properties": {"publicIPAllocationMethod": "Static"},
            },
        )
    )

    policy = graph.add(
        ResourceNode(
            kind=ResourceKind.FIREWALL_POLICY,
            name=waf.name,
            properties={
                **in_group,
                "properties": {
                    "policySettings": {
                        "mode": waf.mode,
                        "state": "Enabled",
                        "requestBodyCheck": waf.request_body_check,
                    },
                    "managedRules": {
                        "managedRuleSets": [
                            {"ruleSetType": waf.rule_set_type, "ruleSetVersion": waf.rule_set_version},
                        ],
                    },
                },
            },
        )
    )

    gateway = graph.add(
        ResourceNode(
            kind=ResourceKind.APPLICATION_GATEWAY,
            name=gw.name,
            properties={
                **in_group,
                "properties": gateway_configuration(config, subnet, public_ip, policy),
            },
        )
    )

    cluster_profile: dict[str, object] = {
        "dnsPrefix": config.dns_prefix,
        "agentPoolProfiles": [
            {
                "name": config.node_pool.name,
                "count": config.node_pool.count,
                "vmSize": config.node_pool.vm_size,
                "mode": "System",
                "osType": "Linux",
                "vnetSubnetID": subnet.output("id"),
            },
        ],
        "networkProfile": {
            "networkPlugin": net.network_plugin,
            "serviceCidr": net.service_cidr,
            "dnsServiceIP": net.dns_service_ip,
        },
    }
    depends_on: frozenset[NodeRef] = frozenset()
    if config.ingress.enabled:
        cluster_profile["addonProfiles"] = {
            "ingressApplicationGateway": {
                "enabled": True,
                "config": {"applicationGatewayId": gateway.output("id")},
            },
        }
        depends_on = frozenset({gateway.ref})

    cluster = graph.add(
        ResourceNode(
            kind=ResourceKind.MANAGED_CLUSTER,
            name=config.cluster_name,
            properties={
                **in_group,
                "identity": {"type": "SystemAssigned"},
                "properties": cluster_profile,
            },
            depends_on=depends_on,
        )
    )

    exports = {
        OUTPUT_CLUSTER_NAME: cluster.output("name"),
        OUTPUT_CLUSTER_ID: cluster.output("id"),
        OUTPUT_GATEWAY_IP: public_ip.output("properties.ipAddress"),
    }
    return Stack(graph=graph, exports=exports, cluster=cluster.ref)


def gateway_configuration(
    config: StackConfig,
    subnet: ResourceNode,
    public_ip: ResourceNode,
    policy: ResourceNode,
) -> dict[str, object]:
    """Nested Application Gateway configuration.

    Cross-references between listeners, ports, pools and rules are
    ``SubRef`` placeholders; references to sibling nodes are ``Ref``.
    """
    gw = config.gateway
    return {
        "sku": {"name": gw.sku_name, "tier": gw.tier, "capacity": gw.capacity},
        "firewallPolicy": {"id": policy.output("id", transform=normalize_waf_policy_id)},
        "gatewayIPConfigurations": [
            {"name": _GATEWAY_IP_CONFIG, "properties": {"subnet": {"id": subnet.output("id")}}},
        ],
        "frontendIPConfigurations": [
            {"name": _FRONTEND_IP_CONFIG, "properties": {"publicIPAddress": {"id": public_ip.output("id")}}},
        ],
        "frontendPorts": [
            {"name": _FRONTEND_PORT, "properties": {"port": gw.frontend_port}},
        ],
        "backendAddressPools": [
            {"name": _BACKEND_POOL},
        ],
        "backendHttpSettingsCollection": [
            {
                "name": _HTTP_SETTINGS,
                "properties": {
                    "port": gw.backend_port,
                    "protocol": "Http",
                    "requestTimeout": gw.request_timeout,
                    "cookieBasedAffinity": "Disabled",
                },
            },
        ],
        "httpListeners": [
            {
                "name": _LISTENER,
                "properties": {
                    "frontendIPConfiguration": SubRef("frontendIPConfigurations", _FRONTEND_IP_CONFIG),
                    "frontendPort": SubRef("frontendPorts", _FRONTEND_PORT),
                    "protocol": "Http",
                },
            },
        ],
        "requestRoutingRules": [
            {
                "name": _ROUTING_RULE,
                "properties": {
                    "ruleType": "Basic",
                    "priority": 100,
                    "httpListener": SubRef("httpListeners", _LISTENER),
                    "backendAddressPool": SubRef("backendAddressPools", _BACKEND_POOL),
                    "backendHttpSettings": SubRef("backendHttpSettingsCollection", _HTTP_SETTINGS),
                },
            },
        ],
    }
