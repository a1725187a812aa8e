"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class NetworkConfig:
    """Address plan for the virtual network and the cluster service range."""

    vnet_name: str = "aks-vnet"
    vnet_address_space: list[str] = field(default_factory=lambda: ["10.1.0.0/16"])
    subnet_name: str = "aks-subnet"
    subnet_prefix: str = "10.1.1.0/24"
    network_plugin: str = "azure"
    service_cidr: str = "10.0.0.0/16"
    dns_service_ip: str = "10.0.0.10"


@dataclass
class NodePoolConfig:
    """Default (system) node pool sizing."""

    name: str = "agentpool"
    count: int = 2
    vm_size: str = "Standard_D2_v2"


@dataclass
class GatewayConfig:
    """Application Gateway SKU and listener settings."""

    name: str = "appGateway"
    public_ip_name: str = "appgw-public-ip"
    sku_name: str = "WAF_v2"
    tier: str = "WAF_v2"
    capacity: int = 2
    frontend_port: int = 80
    backend_port: int = 80
    request_timeout: int = 20


@dataclass
class FirewallConfig:
    """WAF policy settings."""

    name: str = "wafPolicy"
    mode: str = "Prevention"
    rule_set_type: str = "OWASP"
    rule_set_version: str = "3.2"
    request_body_check: bool = True


@dataclass
class IngressConfig:
    """Application Gateway Ingress Controller wiring."""

    enabled: bool = True


@dataclass
class CredentialConfig:
    """Cluster credential export settings."""

    scope: str = "user"  # "user" or "admin"
    poll_interval_seconds: float = 15.0
    timeout_seconds: float = 1800.0


@dataclass
class StackConfig:
    """Everything needed to declare the stack's resource nodes."""

    location: str = "uaenorth"
    resource_group_name: str = "aks-rg-s5"
    cluster_name: str = "aks-cluster"
    dns_prefix: str = "myaks"
    network: NetworkConfig = field(default_factory=NetworkConfig)
    node_pool: NodePoolConfig = field(default_factory=NodePoolConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    firewall: FirewallConfig = field(default_factory=FirewallConfig)
    ingress: IngressConfig = field(default_factory=IngressConfig)
    credentials: CredentialConfig = field(default_factory=CredentialConfig)


@dataclass
class RunConfig:
    """Materializer settings."""

    max_concurrency: int = 4
    operation_timeout_seconds: float = 1800.0
    poll_interval_seconds: float = 5.0
    state_path: str = ""


@dataclass
class ProviderConfig:
    """Provider selection."""

    name: str = "azure"  # "azure" or "memory"
    subscription_id: str = ""


@dataclass
class APIConfig:
    """Read-only REST API configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class StackGraphConfig:
    """Top-level stackgraph configuration."""

    stack: StackConfig = field(default_factory=StackConfig)
    run: RunConfig = field(default_factory=RunConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
