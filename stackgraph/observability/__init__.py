"""Logging for stackgraph."""

from stackgraph.observability.logging import get_logger, mask_secrets, setup_logging

__all__ = ["get_logger", "mask_secrets", "setup_logging"]
