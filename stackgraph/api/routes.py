"""Read-only API routes: health, graph status and masked outputs."""

from __future__ import annotations

from fastapi import APIRouter, Request

from stackgraph.api.schemas import GraphResponse, HealthResponse, NodeStatus, OutputsResponse
from stackgraph.outputs import collect_outputs, render_outputs, secret_output_names

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    from stackgraph import __version__

    stack = request.app.state.stack
    state = request.app.state.state
    config = request.app.state.config
    return HealthResponse(
        version=__version__,
        provider=config.provider.name if config is not None else "",
        nodes=stack.graph.node_count if stack is not None else 0,
        materialized=len(state) if state is not None else 0,
    )


@router.get("/graph", response_model=GraphResponse)
async def graph(request: Request) -> GraphResponse:
    """Materialization order with the recorded status of every node."""
    stack = request.app.state.stack
    state = request.app.state.state

    nodes: list[NodeStatus] = []
    for node in stack.graph.resolve():
        status = NodeStatus(
            ref=str(node.ref),
            kind=str(node.kind),
            name=node.name,
            depends_on=[str(dep) for dep in stack.graph.dependencies(node.ref)],
        )
        output = state.get(node.ref)
        if output is not None:
            status.materialized = True
            status.resource_id = output.resource_id
            status.provisioning_state = str(output.provisioning_state)
        attempts = state.attempts(node.ref)
        if attempts:
            last = attempts[-1]
            status.last_attempt = str(last.status)
            status.last_error = last.error or None
        nodes.append(status)

    return GraphResponse(
        order=[n.ref for n in nodes],
        edges=stack.graph.edge_count,
        nodes=nodes,
    )


@router.get("/outputs", response_model=OutputsResponse)
async def outputs(request: Request) -> OutputsResponse:
    """Recorded outputs. Secret values are always masked here."""
    values = collect_outputs(request.app.state.stack, request.app.state.state.outputs())
    return OutputsResponse(outputs=render_outputs(values), secrets=secret_output_names(values))
