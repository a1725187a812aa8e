"""Tests for the read-only REST API.

Uses FastAPI's TestClient against a stack materialized by the in-memory
provider, plus hypothesis-generated paths to check that every response is
JSON and nothing leaks a stack trace.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from hypothesis import given, settings
from hypothesis import strategies as st

from stackgraph.api import create_app
from stackgraph.blueprint import Stack, build_stack
from stackgraph.materializer import Materializer
from stackgraph.models.config import ProviderConfig, StackConfig, StackGraphConfig
from stackgraph.provider import InMemoryProvider
from stackgraph.state import StateStore

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _config() -> StackGraphConfig:
    return StackGraphConfig(provider=ProviderConfig(name="memory"))


async def _materialized(fail_on: tuple[str, ...] = ()) -> tuple[Stack, StateStore]:
    stack = build_stack(StackConfig())
    state = StateStore()
    await Materializer(InMemoryProvider(fail_on=fail_on), state).materialize(stack.graph)
    return stack, state


def _client(stack: Stack, state: StateStore | MagicMock) -> TestClient:
    return TestClient(create_app(stack=stack, state=state, config=_config()), raise_server_exceptions=False)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


class TestHealth:
    def test_empty_state(self) -> None:
        client = _client(build_stack(StackConfig()), StateStore())
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["provider"] == "memory"
        assert body["nodes"] == 7
        assert body["materialized"] == 0

    async def test_after_materialize(self) -> None:
        stack, state = await _materialized()
        assert _client(stack, state).get("/api/v1/health").json()["materialized"] == 7


class TestGraph:
    async def test_reports_order_and_status(self) -> None:
        stack, state = await _materialized()
        body = _client(stack, state).get("/api/v1/graph").json()

        assert body["order"][0] == "resource_group/aks-rg-s5"
        assert body["order"][-1] == "managed_cluster/aks-cluster"
        assert body["edges"] == stack.graph.edge_count
        cluster = body["nodes"][-1]
        assert cluster["materialized"] is True
        assert cluster["provisioning_state"] == "Succeeded"
        assert cluster["last_attempt"] == "succeeded"
        assert "application_gateway/appGateway" in cluster["depends_on"]

    async def test_reports_failures(self) -> None:
        stack, state = await _materialized(fail_on=("appGateway",))
        nodes = {n["ref"]: n for n in _client(stack, state).get("/api/v1/graph").json()["nodes"]}

        gateway = nodes["application_gateway/appGateway"]
        assert gateway["materialized"] is False
        assert gateway["last_attempt"] == "failed"
        assert gateway["last_error"] == "injected failure"

        cluster = nodes["managed_cluster/aks-cluster"]
        assert cluster["materialized"] is False
        assert cluster["last_attempt"] is None


class TestOutputs:
    async def test_outputs(self) -> None:
        stack, state = await _materialized()
        body = _client(stack, state).get("/api/v1/outputs").json()
        assert body["outputs"]["aksClusterName"] == "aks-cluster"
        assert body["outputs"]["appGatewayIp"].startswith("20.74.")
        assert body["secrets"] == []

    def test_nothing_materialized(self) -> None:
        body = _client(build_stack(StackConfig()), StateStore()).get("/api/v1/outputs").json()
        assert body["outputs"]["aksClusterId"] is None


class TestErrors:
    def test_unhandled_exception_is_enveloped(self) -> None:
        state = MagicMock()
        state.outputs.side_effect = RuntimeError("disk on fire")
        resp = _client(build_stack(StackConfig()), state).get("/api/v1/outputs")
        assert resp.status_code == 500
        assert resp.json() == {"error": "INTERNAL_ERROR", "detail": "An unexpected error occurred."}
        assert "disk on fire" not in resp.text

    def test_unknown_route(self) -> None:
        resp = _client(build_stack(StackConfig()), StateStore()).get("/api/v1/nope")
        assert resp.status_code == 404

    @pytest.mark.parametrize("path", ["/api/v1/health", "/api/v1/graph", "/api/v1/outputs"])
    def test_read_only(self, path: str) -> None:
        resp = _client(build_stack(StackConfig()), StateStore()).post(path)
        assert resp.status_code == 405


_SEGMENT = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789-_", min_size=1, max_size=20)


class TestFuzz:
    @given(segments=st.lists(_SEGMENT, min_size=1, max_size=4).filter(lambda s: s != ["docs"]))
    @settings(max_examples=50, deadline=None)
    def test_random_paths_return_json(self, segments: list[str]) -> None:
        client = _client(build_stack(StackConfig()), StateStore())
        resp = client.get("/api/v1/" + "/".join(segments))
        assert resp.status_code in (200, 404)
        assert resp.headers["content-type"].startswith("application/json")
        resp.json()
