"""In-memory provider that simulates the ARM control plane.

Used by the test-suite and by ``STACKGRAPH_PROVIDER=memory`` dry runs.

Key features:
- Deterministic ARM-shaped ids and attributes
- Scripted provisioning-state sequences per resource name
- Error injection per resource name
- Call counters and in-flight tracking for concurrency assertions
"""

from __future__ import annotations

import asyncio
import base64
from collections import Counter
from collections.abc import Iterable
from typing import Any

import structlog

from stackgraph.errors import ProviderRequestError
from stackgraph.models.resources import NodeRef, ProvisioningState, ResourceKind, ResourceNode
from stackgraph.provider.base import CREDENTIAL_SCOPES, Provider
from stackgraph.provider.ids import ARM_TYPES, arm_resource_id, is_resource_group_id, split_resource_id

_log = structlog.get_logger(component="provider.memory")

DEFAULT_SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000000"

_KUBECONFIG_TEMPLATE = """apiVersion: v1
kind: Config
clusters:
- cluster:
    server: https://{name}-dns.hcp.{location}.azmk8s.io:443
  name: {name}
contexts:
- context:
    cluster: {name}
    user: clusterUser_{group}_{name}
  name: {name}
current-context: {name}
users:
- name: clusterUser_{group}_{name}
  user:
    token: {token}
"""


class InMemoryProvider(Provider):
    """Simulated provider holding resources in a dict keyed by ARM id.

    Args:
        subscription_id: Subscription segment used in generated ids.
        latency:         Seconds each call sleeps, to exercise concurrency.
        fail_on:         Resource names whose create/update is rejected.
    """

    def __init__(
        self,
        subscription_id: str = DEFAULT_SUBSCRIPTION_ID,
        latency: float = 0.0,
        fail_on: Iterable[str] = (),
    ) -> None:
        self._subscription_id = subscription_id
        self.latency = latency
        self.resources: dict[str, dict[str, Any]] = {}
        self.calls: Counter[str] = Counter()
        self.created: list[NodeRef] = []
        self.deleted: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._failures: dict[str, str] = {name: "injected failure" for name in fail_on}
        self._scripts: dict[str, list[ProvisioningState]] = {}
        self._ip_counter = 0

    @property
    def provider_name(self) -> str:
        return "memory"

    # ------------------------------------------------------------------
    # Test controls
    # ------------------------------------------------------------------

    def fail(self, name: str, message: str = "injected failure") -> None:
        """Reject the next create/update requests for *name*."""
        self._failures[name] = message

    def heal(self, name: str) -> None:
        self._failures.pop(name, None)

    def script_states(self, name: str, states: Iterable[ProvisioningState | str]) -> None:
        """Provisioning states reported for *name*, one per create/get.

        The last state sticks once the script is exhausted.
        """
        self._scripts[name] = [ProvisioningState.parse(s) for s in states]

    def seed(self, resource_id: str, attributes: dict[str, Any]) -> None:
        """Place an object directly into the simulated control plane."""
        self.resources[resource_id] = dict(attributes)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _call(self, name: str) -> None:
        self.calls[name] += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.latency:
                await asyncio.sleep(self.latency)
        finally:
            self.in_flight -= 1

    def _next_state(self, name: str) -> ProvisioningState:
        script = self._scripts.get(name)
        if not script:
            return ProvisioningState.SUCCEEDED
        if len(script) > 1:
            return script.pop(0)
        return script[0]

    def _set_state(self, resource_id: str, state: ProvisioningState) -> dict[str, Any]:
        attributes = self.resources[resource_id]
        props = dict(attributes.get("properties") or {})
        props["provisioningState"] = state.value
        attributes["properties"] = props
        return attributes

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
        await self._call("create_or_update")
        if node.name in self._failures:
            raise ProviderRequestError(node.ref, self._failures[node.name])

        arm_type, _ = ARM_TYPES[node.kind]
        existing = self.resources.get(resource_id, {})
        props = dict(properties.get("properties") or {})

        if node.kind is ResourceKind.PUBLIC_IP:
            ip = (existing.get("properties") or {}).get("ipAddress")
            if ip is None:
                self._ip_counter += 1
                ip = f"20.74.{self._ip_counter // 256}.{self._ip_counter % 256}"
            props["ipAddress"] = ip
        if node.kind is ResourceKind.MANAGED_CLUSTER:
            props.setdefault("fqdn", f"{props.get('dnsPrefix', node.name)}.hcp.{properties.get('location')}.azmk8s.io")

        attributes: dict[str, Any] = {"id": resource_id, "name": node.name, "type": arm_type}
        for key in ("location", "tags", "sku", "identity"):
            if key in properties:
                attributes[key] = properties[key]
        attributes["properties"] = props
        self.resources[resource_id] = attributes
        self.created.append(node.ref)
        _log.debug("memory_create_or_update", node=str(node.ref), resource_id=resource_id)
        return dict(self._set_state(resource_id, self._next_state(node.name)))

    async def get(self, resource_id: str) -> dict[str, Any] | None:
        await self._call("get")
        if resource_id not in self.resources:
            return None
        name = self.resources[resource_id]["name"]
        if name in self._scripts:
            self._set_state(resource_id, self._next_state(name))
        return dict(self.resources[resource_id])

    async def delete(self, resource_id: str) -> None:
        await self._call("delete")
        doomed = [resource_id]
        if is_resource_group_id(resource_id):
            prefix = f"{resource_id}/".lower()
            doomed.extend(rid for rid in self.resources if rid.lower().startswith(prefix))
        for rid in doomed:
            if self.resources.pop(rid, None) is not None:
                self.deleted.append(rid)

    async def list_cluster_credentials(self, resource_id: str, scope: str = "user") -> list[str | bytes]:
        await self._call("list_cluster_credentials")
        if scope not in CREDENTIAL_SCOPES:
            raise ValueError(f"Invalid credential scope: {scope}")
        cluster = self.resources.get(resource_id)
        if cluster is None:
            raise ProviderRequestError(None, f"Managed cluster {resource_id} not found")
        group, name = split_resource_id(resource_id)
        document = _KUBECONFIG_TEMPLATE.format(
            name=name,
            group=group,
            location=cluster.get("location", ""),
            token=f"{scope}-token-{name}",
        )
        return [base64.b64encode(document.encode()).decode()]
