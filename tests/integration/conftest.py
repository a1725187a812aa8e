"""Shared fixtures for stackgraph integration tests.

Provides a fully wired StackGraphApp backed by the in-memory provider so
integration tests can exercise whole apply/destroy runs without touching a
real subscription.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from stackgraph.app import StackGraphApp
from stackgraph.models.config import (
    CredentialConfig,
    IngressConfig,
    ProviderConfig,
    RunConfig,
    StackConfig,
    StackGraphConfig,
)
from stackgraph.provider import InMemoryProvider
from stackgraph.state import StateStore

# ---------------------------------------------------------------------------
# Config factories
# ---------------------------------------------------------------------------


def make_config(
    ingress: bool = True,
    scope: str = "user",
    credential_timeout: float = 5.0,
    state_path: str = "",
    max_concurrency: int = 4,
) -> StackGraphConfig:
    """Create a StackGraphConfig with fast polling for tests."""
    return StackGraphConfig(
        stack=StackConfig(
            ingress=IngressConfig(enabled=ingress),
            credentials=CredentialConfig(scope=scope, poll_interval_seconds=0.0, timeout_seconds=credential_timeout),
        ),
        run=RunConfig(
            max_concurrency=max_concurrency,
            operation_timeout_seconds=5.0,
            poll_interval_seconds=0.0,
            state_path=state_path,
        ),
        provider=ProviderConfig(name="memory"),
    )


def make_app(
    provider: InMemoryProvider,
    config: StackGraphConfig | None = None,
    state: StateStore | None = None,
) -> StackGraphApp:
    """Create and set up a StackGraphApp without touching global logging."""
    app = StackGraphApp(config=config or make_config(), provider=provider, state=state)
    app.setup(configure_logging=False)
    return app


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def provider() -> InMemoryProvider:
    return InMemoryProvider(latency=0.005)


@pytest.fixture
def app(provider: InMemoryProvider) -> StackGraphApp:
    return make_app(provider)


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / "state" / "stack.json"
