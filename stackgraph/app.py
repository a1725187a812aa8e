"""Application bootstrap for stackgraph.

Wires the components of one provisioning run in dependency order:
config → logging → provider → stack → state → materializer → credentials
→ outputs.

SIGINT/SIGTERM set a cancel event: nodes that have not started are left
unmaterialized, in-flight provider calls run to completion, and the run
reports what it did before exiting non-zero.
"""

from __future__ import annotations

import asyncio
import json
import signal
import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from stackgraph.blueprint import Stack, build_stack
from stackgraph.config import load_config
from stackgraph.credentials import CredentialExporter
from stackgraph.errors import ConfigError, GraphBuildError
from stackgraph.materializer import Materializer
from stackgraph.models.config import StackGraphConfig
from stackgraph.models.results import ExportedCredential, MaterializationReport, TeardownReport
from stackgraph.observability.logging import get_logger, setup_logging
from stackgraph.outputs import collect_outputs, render_outputs
from stackgraph.provider import Provider, build_provider
from stackgraph.state import StateStore

if TYPE_CHECKING:
    import structlog

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2


@dataclass
class RunResult:
    """Everything one apply run produced."""

    report: MaterializationReport
    credential: ExportedCredential | None = None
    outputs: dict[str, Any] = field(default_factory=dict)

    @property
    def exit_code(self) -> int:
        return EXIT_OK if self.report.success else EXIT_FAILED


class StackGraphApp:
    """Application root. Owns the provider, state store and stack.

    Components are built lazily by ``setup()``; tests inject a config and a
    provider directly.
    """

    def __init__(
        self,
        config: StackGraphConfig | None = None,
        provider: Provider | None = None,
        state: StateStore | None = None,
    ) -> None:
        self.config = config
        self.provider = provider
        self.state = state
        self.stack: Stack | None = None
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def setup(self, configure_logging: bool = True) -> None:
        """Load config and build every component not injected by the caller.

        Raises ConfigError for missing/invalid configuration and
        GraphBuildError for an invalid stack declaration; both happen before
        any provider call.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        if configure_logging:
            setup_logging(self.config.log.level)
        self._log = get_logger("app")

        # --- 3. Provider ------------------------------------------------
        if self.provider is None:
            self.provider = build_provider(self.config.provider)

        # --- 4. Stack declaration ---------------------------------------
        self.stack = build_stack(self.config.stack)
        self.stack.graph.validate()

        # --- 5. State ---------------------------------------------------
        if self.state is None:
            self.state = StateStore(self.config.run.state_path or None)

        self._log.info(
            "stackgraph_ready",
            provider=self.provider.provider_name,
            nodes=self.stack.graph.node_count,
            edges=self.stack.graph.edge_count,
            ingress=self.config.stack.ingress.enabled,
        )

    def _materializer(self) -> Materializer:
        assert self.config is not None
        assert self.provider is not None
        return Materializer(
            self.provider,
            self.state,
            max_concurrency=self.config.run.max_concurrency,
            operation_timeout=self.config.run.operation_timeout_seconds,
            poll_interval=self.config.run.poll_interval_seconds,
        )

    def _exporter(self) -> CredentialExporter:
        assert self.config is not None
        assert self.provider is not None
        creds = self.config.stack.credentials
        return CredentialExporter(
            self.provider,
            scope=creds.scope,
            poll_interval=creds.poll_interval_seconds,
            timeout=creds.timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def plan(self) -> list[str]:
        """Return the materialization order as ``kind/name`` strings."""
        assert self.stack is not None
        return [str(node.ref) for node in self.stack.graph.resolve()]

    async def apply(self, cancel: asyncio.Event | None = None) -> RunResult:
        """Materialize the stack, export credentials and collect outputs."""
        assert self.stack is not None
        assert self._log is not None

        report = await self._materializer().materialize(self.stack.graph, cancel=cancel)

        credential: ExportedCredential | None = None
        if self.stack.cluster is not None:
            credential = await self._exporter().export(report.outputs.get(self.stack.cluster))

        outputs = collect_outputs(self.stack, report.outputs, credential)
        result = RunResult(report=report, credential=credential, outputs=outputs)
        if report.first_error is not None:
            self._log.error(
                "apply_failed",
                first_error=str(report.first_error),
                unmaterialized=sorted(str(r) for r in report.unmaterialized),
            )
        else:
            self._log.info("apply_finished", cancelled=report.cancelled)
        return result

    async def destroy(self) -> TeardownReport:
        """Delete every recorded node in reverse dependency order."""
        assert self.stack is not None
        return await self._materializer().teardown(self.stack.graph)

    async def export_credentials(self) -> ExportedCredential:
        """Export credentials for the cluster recorded in the state store."""
        assert self.stack is not None
        assert self.state is not None
        cluster = self.state.get(self.stack.cluster) if self.stack.cluster is not None else None
        return await self._exporter().export(cluster)

    def recorded_outputs(self) -> dict[str, Any]:
        """Outputs from the state store, without contacting the provider."""
        assert self.stack is not None
        assert self.state is not None
        return collect_outputs(self.stack, self.state.outputs())

    async def close(self) -> None:
        if self.provider is not None:
            await self.provider.close()


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


def cancel_on_signals(cancel: asyncio.Event) -> None:
    """Set *cancel* on SIGINT/SIGTERM for the lifetime of the running loop."""
    loop = asyncio.get_running_loop()

    def _request_cancel() -> None:
        if not cancel.is_set():
            get_logger("app").warning("cancel_requested")
            cancel.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_cancel)


async def main() -> None:
    """Run one apply, register OS signals for cancellation, exit with status."""
    app = StackGraphApp()
    try:
        app.setup()
    except (ConfigError, GraphBuildError) as exc:
        get_logger("app").critical("fatal_setup_error", error=str(exc))
        raise SystemExit(EXIT_INVALID) from exc

    cancel = asyncio.Event()
    cancel_on_signals(cancel)

    try:
        result = await app.apply(cancel=cancel)
    finally:
        await app.close()

    json.dump(render_outputs(result.outputs), sys.stdout, indent=2)
    sys.stdout.write("\n")
    if result.exit_code != EXIT_OK:
        raise SystemExit(result.exit_code)
