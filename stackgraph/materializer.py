"""Materializer: realizes a dependency graph against a provider.

Each node runs as its own asyncio task that first awaits the completion
futures of its dependencies, so nodes sharing an edge serialize while
independent branches proceed concurrently. A semaphore bounds the number of
in-flight provider calls.

Failure policy:
    - graph-build errors are raised before any provider call;
    - a failed node leaves every dependent unmaterialized (never attempted);
    - independent branches keep running, whatever a provider raises;
    - the report carries the first error and the unmaterialized set.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import time
from collections.abc import Iterator, Mapping
from typing import Any

import structlog

from stackgraph.errors import ProviderRequestError, ProvisioningTimeoutError, StackGraphError
from stackgraph.graph import DependencyGraph, resolve_refs, resolve_subrefs
from stackgraph.models.resources import MaterializedOutput, NodeRef, ProvisioningState, ResourceNode
from stackgraph.models.results import AttemptStatus, MaterializationReport, TeardownReport
from stackgraph.provider.base import Provider
from stackgraph.state import StateStore

_log = structlog.get_logger(component="materializer")

_DEFAULT_POLL_INTERVAL = 5.0


def fingerprint(node: ResourceNode, properties: dict[str, Any]) -> str:
    """SHA-256 of kind, name and resolved properties in canonical JSON."""
    canonical = json.dumps(
        {"kind": node.kind.value, "name": node.name, "properties": properties},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(canonical.encode()).hexdigest()


class OutputMap(Mapping[NodeRef, MaterializedOutput]):
    """Per-run output map; each node's entry is written exactly once."""

    def __init__(self) -> None:
        self._data: dict[NodeRef, MaterializedOutput] = {}

    def publish(self, output: MaterializedOutput) -> None:
        if output.ref in self._data:
            raise RuntimeError(f"Output for {output.ref} already published")
        self._data[output.ref] = output

    def __getitem__(self, ref: NodeRef) -> MaterializedOutput:
        return self._data[ref]

    def __iter__(self) -> Iterator[NodeRef]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)


class Materializer:
    """Walks a DependencyGraph and realizes every node through a Provider.

    Args:
        provider:          Control-plane adapter.
        state:             Store of prior outputs and attempts. A fresh
                           in-memory store is used when omitted.
        max_concurrency:   Upper bound on concurrent provider calls.
        operation_timeout: Seconds a single node may take to reach a
                           terminal provisioning state.
        poll_interval:     Seconds between status polls for nodes the
                           provider reports as still provisioning.
    """

    def __init__(
        self,
        provider: Provider,
        state: StateStore | None = None,
        *,
        max_concurrency: int = 4,
        operation_timeout: float = 1800.0,
        poll_interval: float = _DEFAULT_POLL_INTERVAL,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._provider = provider
        self._state = state if state is not None else StateStore()
        self._max_concurrency = max_concurrency
        self._operation_timeout = operation_timeout
        self._poll_interval = poll_interval

    @property
    def state(self) -> StateStore:
        return self._state

    # ------------------------------------------------------------------
    # Materialize
    # ------------------------------------------------------------------

    async def materialize(
        self,
        graph: DependencyGraph,
        cancel: asyncio.Event | None = None,
    ) -> MaterializationReport:
        """Realize every node of *graph* in dependency order.

        Raises graph-build errors (CycleError, UnresolvedReferenceError)
        before touching the provider. Provider errors are collected in the
        returned report. When *cancel* is set, nodes that have not started
        are left unmaterialized and the report is flagged ``cancelled``.
        """
        order = graph.resolve()
        started = time.monotonic()
        report = MaterializationReport(order=[node.ref for node in order])
        outputs = OutputMap()
        loop = asyncio.get_running_loop()
        done: dict[NodeRef, asyncio.Future[bool]] = {node.ref: loop.create_future() for node in order}
        semaphore = asyncio.Semaphore(self._max_concurrency)

        _log.info("materialize_started", nodes=len(order), provider=self._provider.provider_name)

        def _cancelled(node: ResourceNode) -> bool:
            if cancel is not None and cancel.is_set():
                report.cancelled = True
                report.unmaterialized.add(node.ref)
                _log.warning("node_skipped", node=str(node.ref), reason="cancelled")
                return True
            return False

        async def _run_node(node: ResourceNode) -> None:
            ok = False
            try:
                for dep in graph.dependencies(node.ref):
                    if not await done[dep]:
                        report.unmaterialized.add(node.ref)
                        _log.warning("node_skipped", node=str(node.ref), reason="dependency_failed", dependency=str(dep))
                        return
                if _cancelled(node):
                    return
                async with semaphore:
                    if _cancelled(node):
                        return
                    output, changed = await self._realize(node, outputs)
                outputs.publish(output)
                report.outputs[node.ref] = output
                (report.created if changed else report.unchanged).append(node.ref)
                ok = True
            except Exception as exc:
                # Anything a provider raises stays inside this node's subtree.
                error = exc if isinstance(exc, StackGraphError) else ProviderRequestError(node.ref, f"unexpected error: {exc!r}")
                report.failed[node.ref] = error
                report.unmaterialized.add(node.ref)
                _log.error(
                    "node_failed",
                    node=str(node.ref),
                    error=str(error),
                    blocked=sorted(str(r) for r in graph.dependents(node.ref)),
                )
            finally:
                if not done[node.ref].done():
                    done[node.ref].set_result(ok)

        tasks = [asyncio.create_task(_run_node(node), name=f"materialize:{node.ref}") for node in order]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        finally:
            report.duration_ms = (time.monotonic() - started) * 1000

        log = _log.info if report.success else _log.warning
        log(
            "materialize_finished",
            created=len(report.created),
            unchanged=len(report.unchanged),
            failed=len(report.failed),
            unmaterialized=sorted(str(r) for r in report.unmaterialized),
            cancelled=report.cancelled,
            duration_ms=round(report.duration_ms, 1),
        )
        return report

    async def _realize(self, node: ResourceNode, outputs: Mapping[NodeRef, MaterializedOutput]) -> tuple[MaterializedOutput, bool]:
        """Resolve references, then create/update unless nothing changed.

        Returns the output and whether a provider call was made.
        """
        try:
            properties = resolve_refs(node.properties, outputs)
        except KeyError as exc:
            raise ProviderRequestError(node.ref, f"referenced attribute {exc} is not available") from exc

        # Second pass: sub-resource references need the node's own id.
        resource_id = self._provider.resource_id(node, properties)
        properties = resolve_subrefs(properties, resource_id)
        digest = fingerprint(node, properties)

        prior = self._state.get(node.ref)
        if prior is not None and prior.fingerprint == digest and prior.resource_id.lower() == resource_id.lower():
            _log.debug("node_unchanged", node=str(node.ref), resource_id=resource_id)
            return prior, False

        attempt = self._state.record_attempt(node.ref, digest)
        _log.info("node_materializing", node=str(node.ref), resource_id=resource_id)
        try:
            async with asyncio.timeout(self._operation_timeout):
                attributes = await self._provider.create_or_update(node, properties, resource_id)
                attributes = await self._await_terminal(node, resource_id, attributes)
        except asyncio.CancelledError:
            self._state.finish_attempt(attempt, AttemptStatus.ABANDONED, "cancelled")
            raise
        except ProviderRequestError as exc:
            self._state.finish_attempt(attempt, AttemptStatus.FAILED, exc.detail)
            raise
        except TimeoutError as exc:
            self._state.finish_attempt(attempt, AttemptStatus.FAILED, "timeout")
            raise ProvisioningTimeoutError(str(node.ref), self._operation_timeout) from exc
        except Exception as exc:
            self._state.finish_attempt(attempt, AttemptStatus.FAILED, repr(exc))
            raise ProviderRequestError(node.ref, f"unexpected provider error: {exc!r}") from exc

        output = MaterializedOutput(
            ref=node.ref,
            resource_id=str(attributes.get("id") or resource_id),
            attributes=attributes,
            fingerprint=digest,
        )
        self._state.put(output)
        self._state.finish_attempt(attempt, AttemptStatus.SUCCEEDED)
        _log.info("node_materialized", node=str(node.ref), resource_id=output.resource_id)
        return output, True

    async def _await_terminal(self, node: ResourceNode, resource_id: str, attributes: dict[str, Any]) -> dict[str, Any]:
        """Poll until the provider reports a terminal state; reject non-success."""
        state = ProvisioningState.parse((attributes.get("properties") or {}).get("provisioningState"))
        while not state.is_terminal:
            await asyncio.sleep(self._poll_interval)
            current = await self._provider.get(resource_id)
            if current is None:
                raise ProviderRequestError(node.ref, "resource disappeared while provisioning")
            attributes = current
            state = ProvisioningState.parse((attributes.get("properties") or {}).get("provisioningState"))
        if state is not ProvisioningState.SUCCEEDED:
            raise ProviderRequestError(node.ref, f"provisioning ended in state {state.value}")
        return attributes

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def teardown(self, graph: DependencyGraph) -> TeardownReport:
        """Delete recorded nodes in reverse dependency order.

        Stops at the first provider error; nodes not yet deleted are listed
        in ``remaining``.
        """
        order = graph.teardown_order()
        report = TeardownReport()
        _log.info("teardown_started", nodes=len(order))

        for position, node in enumerate(order):
            output = self._state.get(node.ref)
            if output is None:
                report.skipped.append(node.ref)
                continue
            try:
                async with asyncio.timeout(self._operation_timeout):
                    await self._provider.delete(output.resource_id)
            except ProviderRequestError as exc:
                report.error = exc
            except TimeoutError as exc:
                report.error = ProvisioningTimeoutError(f"delete {node.ref}", self._operation_timeout)
                report.error.__cause__ = exc
            if report.error is not None:
                report.remaining = [n.ref for n in order[position:] if n.ref in self._state]
                _log.error("teardown_failed", node=str(node.ref), error=str(report.error))
                break
            self._state.forget(node.ref)
            report.deleted.append(node.ref)
            _log.info("node_deleted", node=str(node.ref), resource_id=output.resource_id)

        return report
