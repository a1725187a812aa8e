"""Configuration loading from environment variables."""

from __future__ import annotations

import ipaddress
import os

from stackgraph.errors import ConfigError
from stackgraph.models.config import (
    APIConfig,
    CredentialConfig,
    FirewallConfig,
    GatewayConfig,
    IngressConfig,
    LogConfig,
    NetworkConfig,
    NodePoolConfig,
    ProviderConfig,
    RunConfig,
    StackConfig,
    StackGraphConfig,
)

_PROVIDERS = {"azure", "memory"}
_CREDENTIAL_SCOPES = {"user", "admin"}


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"STACKGRAPH_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    raw = _env(key, str(default))
    try:
        val = int(raw)
    except ValueError as exc:
        raise ConfigError(f"STACKGRAPH_{key} must be an integer, got {raw!r}") from exc
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    raw = _env(key, str(default))
    try:
        val = float(raw)
    except ValueError as exc:
        raise ConfigError(f"STACKGRAPH_{key} must be a number, got {raw!r}") from exc
    if min_val is not None:
        val = max(val, min_val)
    return val


def _env_list(key: str, default: list[str]) -> list[str]:
    raw = _env(key, "")
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _require(key: str, value: str) -> str:
    if not value:
        raise ConfigError(f"STACKGRAPH_{key} is required")
    return value


def _validate_cidr(value: str) -> str:
    try:
        ipaddress.ip_network(value, strict=True)
    except ValueError as exc:
        raise ConfigError(f"Invalid CIDR: {value}") from exc
    return value


def _validate_choice(key: str, value: str, valid: set[str]) -> str:
    if value.lower() not in valid:
        raise ConfigError(f"Invalid STACKGRAPH_{key}: {value}. Must be one of {sorted(valid)}")
    return value.lower()


def _validate_log_level(value: str) -> str:
    return _validate_choice("LOG_LEVEL", value, {"debug", "info", "warning", "error"})


def load_stack_config() -> StackConfig:
    """Load the stack declaration inputs from STACKGRAPH_* environment variables."""
    return StackConfig(
        location=_require("LOCATION", _env("LOCATION", "uaenorth")),
        resource_group_name=_require("RESOURCE_GROUP", _env("RESOURCE_GROUP", "aks-rg-s5")),
        cluster_name=_require("CLUSTER_NAME", _env("CLUSTER_NAME", "aks-cluster")),
        dns_prefix=_require("DNS_PREFIX", _env("DNS_PREFIX", "myaks")),
        network=NetworkConfig(
            vnet_name=_env("VNET_NAME", "aks-vnet"),
            vnet_address_space=[_validate_cidr(c) for c in _env_list("VNET_ADDRESS_SPACE", ["10.1.0.0/16"])],
            subnet_name=_env("SUBNET_NAME", "aks-subnet"),
            subnet_prefix=_validate_cidr(_env("SUBNET_PREFIX", "10.1.1.0/24")),
            network_plugin=_env("NETWORK_PLUGIN", "azure"),
            service_cidr=_validate_cidr(_env("SERVICE_CIDR", "10.0.0.0/16")),
            dns_service_ip=_env("DNS_SERVICE_IP", "10.0.0.10"),
        ),
        node_pool=NodePoolConfig(
            name=_env("NODE_POOL_NAME", "agentpool"),
            count=_env_int("NODE_POOL_COUNT", 2, min_val=1, max_val=100),
            vm_size=_require("NODE_POOL_VM_SIZE", _env("NODE_POOL_VM_SIZE", "Standard_D2_v2")),
        ),
        gateway=GatewayConfig(
            name=_env("GATEWAY_NAME", "appGateway"),
            public_ip_name=_env("GATEWAY_PUBLIC_IP_NAME", "appgw-public-ip"),
            sku_name=_require("GATEWAY_SKU", _env("GATEWAY_SKU", "WAF_v2")),
            tier=_require("GATEWAY_TIER", _env("GATEWAY_TIER", "WAF_v2")),
            capacity=_env_int("GATEWAY_CAPACITY", 2, min_val=1, max_val=125),
            frontend_port=_env_int("GATEWAY_FRONTEND_PORT", 80, min_val=1, max_val=65535),
            backend_port=_env_int("GATEWAY_BACKEND_PORT", 80, min_val=1, max_val=65535),
            request_timeout=_env_int("GATEWAY_REQUEST_TIMEOUT", 20, min_val=1, max_val=86400),
        ),
        firewall=FirewallConfig(
            name=_env("WAF_POLICY_NAME", "wafPolicy"),
            mode=_validate_choice("WAF_MODE", _env("WAF_MODE", "Prevention"), {"prevention", "detection"}).title(),
            rule_set_type=_require("WAF_RULE_SET_TYPE", _env("WAF_RULE_SET_TYPE", "OWASP")),
            rule_set_version=_require("WAF_RULE_SET_VERSION", _env("WAF_RULE_SET_VERSION", "3.2")),
            request_body_check=_env_bool("WAF_REQUEST_BODY_CHECK", True),
        ),
        ingress=IngressConfig(
            enabled=_env_bool("INGRESS_ENABLED", True),
        ),
        credentials=CredentialConfig(
            scope=_validate_choice("CREDENTIAL_SCOPE", _env("CREDENTIAL_SCOPE", "user"), _CREDENTIAL_SCOPES),
            poll_interval_seconds=_env_float("CREDENTIAL_POLL_INTERVAL", 15.0, min_val=0.0),
            timeout_seconds=_env_float("CREDENTIAL_TIMEOUT", 1800.0, min_val=0.0),
        ),
    )


def load_config(provider: str | None = None) -> StackGraphConfig:
    """Load configuration from STACKGRAPH_* environment variables.

    *provider* overrides STACKGRAPH_PROVIDER; the subscription id is only
    required for the azure provider.
    """
    provider_name = _validate_choice("PROVIDER", provider or _env("PROVIDER", "azure"), _PROVIDERS)
    subscription_id = _env("SUBSCRIPTION_ID", os.environ.get("AZURE_SUBSCRIPTION_ID", ""))
    if provider_name == "azure":
        _require("SUBSCRIPTION_ID", subscription_id)

    return StackGraphConfig(
        stack=load_stack_config(),
        run=RunConfig(
            max_concurrency=_env_int("MAX_CONCURRENCY", 4, min_val=1, max_val=32),
            operation_timeout_seconds=_env_float("OPERATION_TIMEOUT", 1800.0, min_val=1.0),
            poll_interval_seconds=_env_float("POLL_INTERVAL", 5.0, min_val=0.0),
            state_path=_env("STATE_PATH", ""),
        ),
        provider=ProviderConfig(
            name=provider_name,
            subscription_id=subscription_id,
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
