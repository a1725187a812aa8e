"""Tests for CredentialExporter and kubeconfig decoding."""

from __future__ import annotations

import base64

import pytest

from stackgraph.credentials import CredentialExporter, decode_kubeconfig
from stackgraph.errors import CredentialUnavailableError
from stackgraph.models.resources import MaterializedOutput, NodeRef, ResourceKind
from stackgraph.models.results import CLUSTER_NOT_READY, CredentialStatus
from stackgraph.provider import InMemoryProvider
from stackgraph.secrets import MASK, Secret

_CLUSTER_ID = (
    "/subscriptions/00000000-0000-0000-0000-000000000000/resourceGroups/aks-rg-s5"
    "/providers/Microsoft.ContainerService/managedClusters/aks-cluster"
)
_CLUSTER = NodeRef(ResourceKind.MANAGED_CLUSTER, "aks-cluster")


def _cluster_output() -> MaterializedOutput:
    return MaterializedOutput(ref=_CLUSTER, resource_id=_CLUSTER_ID, attributes={"id": _CLUSTER_ID}, fingerprint="f")


def _provider(state: str = "Succeeded") -> InMemoryProvider:
    provider = InMemoryProvider()
    provider.seed(
        _CLUSTER_ID,
        {
            "id": _CLUSTER_ID,
            "name": "aks-cluster",
            "location": "uaenorth",
            "properties": {"provisioningState": state},
        },
    )
    return provider


def _exporter(provider: InMemoryProvider, **kwargs: object) -> CredentialExporter:
    kwargs.setdefault("poll_interval", 0.0)
    kwargs.setdefault("timeout", 1.0)
    return CredentialExporter(provider, **kwargs)  # type: ignore[arg-type]


class TestDecodeKubeconfig:
    def test_base64_string(self) -> None:
        payload = base64.b64encode(b"apiVersion: v1\n").decode()
        assert decode_kubeconfig(payload) == "apiVersion: v1\n"

    def test_raw_bytes_from_sdk(self) -> None:
        assert decode_kubeconfig(b"apiVersion: v1\n") == "apiVersion: v1\n"

    def test_invalid_base64(self) -> None:
        with pytest.raises(CredentialUnavailableError):
            decode_kubeconfig("not base64!!")

    def test_non_utf8(self) -> None:
        with pytest.raises(CredentialUnavailableError):
            decode_kubeconfig(b"\xff\xfe\xfd")


class TestExport:
    async def test_available_when_succeeded(self) -> None:
        exported = await _exporter(_provider()).export(_cluster_output())

        assert exported.status is CredentialStatus.AVAILABLE
        assert exported.bundle is not None
        assert isinstance(exported.value, Secret)
        document = exported.bundle.document.reveal()
        assert "kind: Config" in document
        assert "token: user-token-aks-cluster" in document

    async def test_admin_scope(self) -> None:
        exported = await _exporter(_provider(), scope="admin").export(_cluster_output())
        assert exported.bundle is not None
        assert "admin-token-aks-cluster" in exported.bundle.document.reveal()

    async def test_waits_for_pending_cluster(self) -> None:
        provider = _provider(state="Creating")
        provider.script_states("aks-cluster", ["Creating", "Creating", "Succeeded"])

        exported = await _exporter(provider).export(_cluster_output())

        assert exported.status is CredentialStatus.AVAILABLE
        assert provider.calls["get"] == 3
        assert provider.calls["list_cluster_credentials"] == 1

    async def test_placeholder_before_ready(self) -> None:
        provider = _provider(state="Creating")
        exported = await _exporter(provider, timeout=0.0).export(_cluster_output())

        assert exported.status is CredentialStatus.TIMED_OUT
        assert exported.bundle is None
        assert exported.value == CLUSTER_NOT_READY
        assert provider.calls["list_cluster_credentials"] == 0

    async def test_failed_cluster(self) -> None:
        exported = await _exporter(_provider(state="Failed")).export(_cluster_output())
        assert exported.status is CredentialStatus.FAILED
        assert exported.value == CLUSTER_NOT_READY

    async def test_missing_cluster_not_ready(self) -> None:
        exported = await _exporter(InMemoryProvider()).export(_cluster_output())
        assert exported.status is CredentialStatus.NOT_READY

    async def test_unmaterialized_cluster(self) -> None:
        provider = _provider()
        exported = await _exporter(provider).export(None)
        assert exported.status is CredentialStatus.NOT_READY
        assert sum(provider.calls.values()) == 0

    async def test_secret_never_rendered(self) -> None:
        exported = await _exporter(_provider()).export(_cluster_output())
        assert exported.bundle is not None
        assert "token" not in repr(exported)
        assert str(exported.value) == MASK
        assert f"{exported.value}" == MASK


class TestExporterArgs:
    def test_rejects_unknown_scope(self) -> None:
        with pytest.raises(ValueError):
            CredentialExporter(InMemoryProvider(), scope="root")
