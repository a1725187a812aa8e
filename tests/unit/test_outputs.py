"""Tests for stack output collection and rendering."""

from __future__ import annotations

from stackgraph.blueprint import OUTPUT_GATEWAY_IP, OUTPUT_KUBECONFIG, build_stack
from stackgraph.materializer import Materializer
from stackgraph.models.config import StackConfig
from stackgraph.models.resources import CredentialBundle, NodeRef, ResourceKind
from stackgraph.models.results import CLUSTER_NOT_READY, CredentialStatus, ExportedCredential
from stackgraph.outputs import collect_outputs, render_outputs, secret_output_names
from stackgraph.provider import InMemoryProvider
from stackgraph.secrets import MASK, Secret

_CLUSTER = NodeRef(ResourceKind.MANAGED_CLUSTER, "aks-cluster")


def _available(document: str = "apiVersion: v1\n") -> ExportedCredential:
    return ExportedCredential(
        status=CredentialStatus.AVAILABLE,
        bundle=CredentialBundle(cluster=_CLUSTER, document=Secret(document)),
    )


class TestCollectOutputs:
    async def test_resolves_exports(self) -> None:
        stack = build_stack(StackConfig())
        report = await Materializer(InMemoryProvider()).materialize(stack.graph)

        values = collect_outputs(stack, report.outputs, _available())

        assert values["aksClusterName"] == "aks-cluster"
        assert values["aksClusterId"].endswith("/managedClusters/aks-cluster")
        assert values[OUTPUT_GATEWAY_IP].startswith("20.74.")
        assert isinstance(values[OUTPUT_KUBECONFIG], Secret)

    def test_unmaterialized_exports_are_none(self) -> None:
        values = collect_outputs(build_stack(StackConfig()), {})
        assert values == {"aksClusterName": None, "aksClusterId": None, "appGatewayIp": None}

    def test_placeholder_when_not_ready(self) -> None:
        credential = ExportedCredential(status=CredentialStatus.NOT_READY)
        values = collect_outputs(build_stack(StackConfig()), {}, credential)
        assert values[OUTPUT_KUBECONFIG] == CLUSTER_NOT_READY


class TestRenderOutputs:
    def test_masks_by_default(self) -> None:
        values = {"a": 1, OUTPUT_KUBECONFIG: Secret("doc")}
        assert render_outputs(values) == {"a": 1, OUTPUT_KUBECONFIG: MASK}

    def test_show_secrets(self) -> None:
        values = {OUTPUT_KUBECONFIG: Secret("doc")}
        assert render_outputs(values, show_secrets=True) == {OUTPUT_KUBECONFIG: "doc"}

    def test_secret_output_names(self) -> None:
        assert secret_output_names({"b": Secret("x"), "a": "plain", "c": Secret("y")}) == ["b", "c"]
