"""Tests for environment-driven configuration loading."""

from __future__ import annotations

import os

import pytest

from stackgraph.config import load_config, load_stack_config
from stackgraph.errors import ConfigError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("STACKGRAPH_") or key == "AZURE_SUBSCRIPTION_ID":
            monkeypatch.delenv(key, raising=False)


class TestDefaults:
    def test_stack_defaults(self) -> None:
        stack = load_stack_config()
        assert stack.location == "uaenorth"
        assert stack.resource_group_name == "aks-rg-s5"
        assert stack.network.vnet_address_space == ["10.1.0.0/16"]
        assert stack.network.subnet_prefix == "10.1.1.0/24"
        assert stack.gateway.sku_name == "WAF_v2"
        assert stack.firewall.mode == "Prevention"
        assert stack.ingress.enabled is True
        assert stack.credentials.scope == "user"

    def test_memory_provider_needs_no_subscription(self) -> None:
        config = load_config(provider="memory")
        assert config.provider.name == "memory"
        assert config.provider.subscription_id == ""
        assert config.run.max_concurrency == 4
        assert config.log.level == "info"

    def test_azure_requires_subscription(self) -> None:
        with pytest.raises(ConfigError, match="SUBSCRIPTION_ID"):
            load_config()

    def test_azure_subscription_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AZURE_SUBSCRIPTION_ID", "sub-123")
        config = load_config()
        assert config.provider.name == "azure"
        assert config.provider.subscription_id == "sub-123"


class TestOverrides:
    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STACKGRAPH_LOCATION", "westeurope")
        monkeypatch.setenv("STACKGRAPH_VNET_ADDRESS_SPACE", "10.2.0.0/16, 10.3.0.0/16")
        monkeypatch.setenv("STACKGRAPH_INGRESS_ENABLED", "false")
        monkeypatch.setenv("STACKGRAPH_WAF_MODE", "detection")
        monkeypatch.setenv("STACKGRAPH_CREDENTIAL_SCOPE", "ADMIN")
        stack = load_stack_config()
        assert stack.location == "westeurope"
        assert stack.network.vnet_address_space == ["10.2.0.0/16", "10.3.0.0/16"]
        assert stack.ingress.enabled is False
        assert stack.firewall.mode == "Detection"
        assert stack.credentials.scope == "admin"

    def test_provider_argument_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STACKGRAPH_PROVIDER", "azure")
        assert load_config(provider="memory").provider.name == "memory"

    def test_integers_are_clamped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STACKGRAPH_MAX_CONCURRENCY", "500")
        monkeypatch.setenv("STACKGRAPH_NODE_POOL_COUNT", "0")
        config = load_config(provider="memory")
        assert config.run.max_concurrency == 32
        assert config.stack.node_pool.count == 1

    def test_run_timings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STACKGRAPH_POLL_INTERVAL", "0.5")
        monkeypatch.setenv("STACKGRAPH_OPERATION_TIMEOUT", "0")
        config = load_config(provider="memory")
        assert config.run.poll_interval_seconds == 0.5
        assert config.run.operation_timeout_seconds == 1.0


class TestValidation:
    @pytest.mark.parametrize(
        ("key", "value"),
        [
            ("SUBNET_PREFIX", "10.1.1.5/24"),
            ("VNET_ADDRESS_SPACE", "not-a-cidr"),
            ("SERVICE_CIDR", "300.0.0.0/16"),
            ("WAF_MODE", "block"),
            ("CREDENTIAL_SCOPE", "root"),
            ("LOG_LEVEL", "verbose"),
            ("PROVIDER", "gcp"),
            ("NODE_POOL_COUNT", "two"),
            ("OPERATION_TIMEOUT", "soon"),
        ],
    )
    def test_invalid_values_rejected(self, monkeypatch: pytest.MonkeyPatch, key: str, value: str) -> None:
        monkeypatch.setenv(f"STACKGRAPH_{key}", value)
        with pytest.raises(ConfigError):
            load_config(provider=None if key == "PROVIDER" else "memory")

    def test_required_value_cannot_be_blank(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STACKGRAPH_CLUSTER_NAME", "")
        with pytest.raises(ConfigError, match="CLUSTER_NAME"):
            load_stack_config()

    def test_config_error_is_value_error(self) -> None:
        assert issubclass(ConfigError, ValueError)
