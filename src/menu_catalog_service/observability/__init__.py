"""Logging, OpenTelemetry instrumentation and custom metrics."""

from menu_catalog_service.observability.config import configure_logging, setup_observability
from menu_catalog_service.observability.decorators import traced

__all__ = ["setup_observability", "configure_logging", "traced"]
