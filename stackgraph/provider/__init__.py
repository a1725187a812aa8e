"""Provider adapters for stackgraph.

Provider          -- ABC for control-plane adapters.
AzureProvider     -- Azure Resource Manager via the Azure SDK for Python.
InMemoryProvider  -- Simulated control plane for tests and dry runs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from stackgraph.provider.base import Provider
from stackgraph.provider.memory import InMemoryProvider

if TYPE_CHECKING:
    from stackgraph.models.config import ProviderConfig

__all__ = ["InMemoryProvider", "Provider", "build_provider"]


def build_provider(config: ProviderConfig) -> Provider:
    """Instantiate the provider selected by *config*."""
    if config.name == "memory":
        return InMemoryProvider(subscription_id=config.subscription_id or "00000000-0000-0000-0000-000000000000")

    # Import lazily; the Azure SDK is heavy and unused by memory runs.
    from stackgraph.provider.azure import AzureProvider

    return AzureProvider(subscription_id=config.subscription_id)
