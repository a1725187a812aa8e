"""Read-only REST API over the recorded graph state.

Exposes:
    create_app -- FastAPI application factory.
"""

from stackgraph.api.app import create_app

__all__ = ["create_app"]
