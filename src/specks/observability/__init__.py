"""Public observability primitives: structlog configuration and logger access."""

from specks.observability.logging import configure_logging, get_logger, reset_logging

__all__ = ["configure_logging", "get_logger", "reset_logging"]
