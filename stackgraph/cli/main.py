"""stackgraph command-line interface.

Commands:
    plan        -- print the materialization order
    apply       -- materialize the stack and print its outputs
    destroy     -- delete recorded resources in reverse dependency order
    outputs     -- print recorded outputs (no provider calls)
    kubeconfig  -- fetch cluster credentials and write them to a file
    serve       -- run the read-only REST API over the recorded state
"""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import click

from stackgraph.app import EXIT_FAILED, EXIT_INVALID, StackGraphApp, cancel_on_signals
from stackgraph.config import load_config
from stackgraph.errors import ConfigError, GraphBuildError
from stackgraph.models.results import CredentialStatus
from stackgraph.outputs import render_outputs

T = TypeVar("T")


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


def _build_app(ctx: click.Context) -> StackGraphApp:
    """Load config, apply CLI overrides and set up the app."""
    opts = ctx.obj or {}
    try:
        config = load_config(provider=opts.get("provider"))
        if opts.get("state"):
            config.run.state_path = opts["state"]
        if opts.get("log_level"):
            config.log.level = opts["log_level"]
        app = StackGraphApp(config=config)
        app.setup()
    except (ConfigError, GraphBuildError) as exc:
        click.echo(f"error: {exc}", err=True)
        raise click.exceptions.Exit(EXIT_INVALID) from exc
    return app


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


@click.group()
@click.option("--provider", type=click.Choice(["azure", "memory"]), default=None, help="Override STACKGRAPH_PROVIDER.")
@click.option("--state", "state", type=click.Path(dir_okay=False), default=None, help="State file path.")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default=None,
    help="Override STACKGRAPH_LOG_LEVEL.",
)
@click.pass_context
def cli(ctx: click.Context, provider: str | None, state: str | None, log_level: str | None) -> None:
    """Provision an AKS + Application Gateway stack as a dependency graph."""
    ctx.obj = {"provider": provider, "state": state, "log_level": log_level}


@cli.command()
@click.pass_context
def plan(ctx: click.Context) -> None:
    """Print the materialization order."""
    app = _build_app(ctx)
    try:
        order = app.plan()
    except GraphBuildError as exc:
        click.echo(f"error: {exc}", err=True)
        raise click.exceptions.Exit(EXIT_INVALID) from exc
    for position, ref in enumerate(order, start=1):
        click.echo(f"{position:>2}. {ref}")


@cli.command()
@click.option("--show-secrets", is_flag=True, help="Print secret outputs in clear text.")
@click.pass_context
def apply(ctx: click.Context, show_secrets: bool) -> None:
    """Materialize the stack and print its outputs as JSON."""
    app = _build_app(ctx)

    async def _apply() -> Any:
        cancel = asyncio.Event()
        cancel_on_signals(cancel)
        try:
            return await app.apply(cancel=cancel)
        finally:
            await app.close()

    result = _run(_apply())
    _echo_json(render_outputs(result.outputs, show_secrets=show_secrets))
    report = result.report
    if report.cancelled:
        click.echo("cancelled: in-flight operations finished, remaining nodes skipped", err=True)
    if report.first_error is not None:
        click.echo(f"error: {report.first_error}", err=True)
        click.echo(f"unmaterialized: {', '.join(sorted(str(r) for r in report.unmaterialized))}", err=True)
    raise click.exceptions.Exit(result.exit_code)


@cli.command()
@click.option("--yes", is_flag=True, help="Do not prompt for confirmation.")
@click.pass_context
def destroy(ctx: click.Context, yes: bool) -> None:
    """Delete recorded resources in reverse dependency order."""
    app = _build_app(ctx)
    if not yes:
        click.confirm("Delete every recorded resource?", abort=True)

    async def _destroy() -> Any:
        try:
            return await app.destroy()
        finally:
            await app.close()

    report = _run(_destroy())
    for ref in report.deleted:
        click.echo(f"deleted {ref}")
    if report.error is not None:
        click.echo(f"error: {report.error}", err=True)
        raise click.exceptions.Exit(EXIT_FAILED)


@cli.command()
@click.option("--show-secrets", is_flag=True, help="Print secret outputs in clear text.")
@click.pass_context
def outputs(ctx: click.Context, show_secrets: bool) -> None:
    """Print outputs recorded in the state store."""
    app = _build_app(ctx)
    _echo_json(render_outputs(app.recorded_outputs(), show_secrets=show_secrets))


@cli.command()
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="File to write the kubeconfig to (mode 0600).",
)
@click.pass_context
def kubeconfig(ctx: click.Context, output_path: Path) -> None:
    """Fetch cluster credentials and write the kubeconfig to a file."""
    app = _build_app(ctx)

    async def _export() -> Any:
        try:
            return await app.export_credentials()
        finally:
            await app.close()

    credential = _run(_export())
    if credential.status is not CredentialStatus.AVAILABLE or credential.bundle is None:
        click.echo(f"error: {credential.placeholder} ({credential.error})", err=True)
        raise click.exceptions.Exit(EXIT_FAILED)

    fd = os.open(output_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as fh:
        fh.write(credential.bundle.document.reveal())
    click.echo(f"Kubeconfig file written to {output_path}")


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", type=int, default=None, help="Override STACKGRAPH_API_PORT.")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int | None) -> None:
    """Serve recorded graph state and masked outputs over HTTP."""
    import uvicorn

    from stackgraph.api import create_app

    app = _build_app(ctx)
    assert app.config is not None
    api = create_app(stack=app.stack, state=app.state, config=app.config)
    uvicorn.run(api, host=host, port=port or app.config.api.port, log_config=None, access_log=False)
