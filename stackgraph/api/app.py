"""FastAPI application factory for stackgraph.

Usage::

    from stackgraph.api.app import create_app

    app = create_app(stack=stack, state=state, config=config)

The API only reads the declared stack and the state store; it never calls
the provider.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stackgraph.api.routes import router
from stackgraph.api.schemas import ErrorResponse

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def create_app(stack: Any, state: Any, config: Any = None) -> FastAPI:
    """Create the stackgraph FastAPI application.

    Args:
        stack:  Declared ``Stack`` (graph plus exports).
        state:  ``StateStore`` holding recorded outputs and attempts.
        config: Optional ``StackGraphConfig`` used for metadata.
    """
    from stackgraph import __version__

    app = FastAPI(
        title="stackgraph",
        summary="Dependency-graph provisioning status API",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url=None,
        openapi_url="/api/v1/openapi.json",
    )

    app.state.stack = stack
    app.state.state = state
    app.state.config = config

    app.include_router(router, prefix=_API_PREFIX)

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app
