"""Shared telemetry: logging setup, OpenTelemetry config, and tracing helpers."""

from store_tenancy.shared.telemetry.logging import setup_logging
from store_tenancy.shared.telemetry.telemetry import (
    TenancyTelemetry,
    get_telemetry,
    set_telemetry,
)
from store_tenancy.shared.telemetry.tracing import (
    add_span_attributes,
    add_span_event,
    set_span_error,
    traced,
)

__all__ = [
    "setup_logging",
    "TenancyTelemetry",
    "get_telemetry",
    "set_telemetry",
    "traced",
    "add_span_attributes",
    "add_span_event",
    "set_span_error",
]
