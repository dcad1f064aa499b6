"""OpenTelemetry setup for the tenancy runtime.

Spans go to an OTLP (gRPC) collector, the console, or nowhere. The master
engine, the Redis token store and log records are instrumented once tracing
is up; tenant engines are not.
"""

import logging
import threading
from dataclasses import dataclass, field

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from sqlalchemy.ext.asyncio import AsyncEngine

from store_tenancy.core.config import Settings

logger = logging.getLogger(__name__)

EXPORTERS = ("console", "otlp", "none")


def build_span_exporter(kind: str, otlp_endpoint: str | None) -> SpanExporter | None:
    """Exporter for TELEMETRY_EXPORTER; None means spans are sampled but dropped."""
    if kind == "none":
        return None
    if kind == "otlp":
        if not otlp_endpoint:
            logger.warning("TELEMETRY_EXPORTER=otlp without an endpoint; exporting to console")
            return ConsoleSpanExporter()
        return OTLPSpanExporter(
            endpoint=otlp_endpoint, insecure=otlp_endpoint.startswith("http://")
        )
    if kind not in EXPORTERS:
        logger.warning("Unknown telemetry exporter %r; exporting to console", kind)
    return ConsoleSpanExporter()


@dataclass
class TenancyTelemetry:
    """Tracer provider and instrumentation for one process."""

    service_name: str
    service_version: str
    environment: str = "development"
    provider: TracerProvider | None = field(default=None, init=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TenancyTelemetry":
        return cls(
            service_name=settings.app_name,
            service_version=settings.app_version,
            environment=settings.telemetry_environment,
        )

    def start(
        self, exporter: str = "console", otlp_endpoint: str | None = None, sample_rate: float = 1.0
    ) -> bool:
        """Install the global tracer provider.

        Returns:
            True when tracing is active. Setup errors are logged, never raised.
        """
        try:
            provider = TracerProvider(
                resource=Resource(
                    attributes={
                        SERVICE_NAME: self.service_name,
                        SERVICE_VERSION: self.service_version,
                        "deployment.environment": self.environment,
                    }
                ),
                sampler=TraceIdRatioBased(sample_rate),
            )
            span_exporter = build_span_exporter(exporter, otlp_endpoint)
            if span_exporter is not None:
                provider.add_span_processor(BatchSpanProcessor(span_exporter))
            trace.set_tracer_provider(provider)
        except Exception:
            logger.exception("Tracing setup failed; continuing without spans")
            return False
        self.provider = provider
        logger.info(
            "Tracing started: service=%s version=%s exporter=%s sample_rate=%s",
            self.service_name,
            self.service_version,
            exporter,
            sample_rate,
        )
        return True

    def instrument(self, master_engine: AsyncEngine, *, redis: bool) -> None:
        """Instrument the master engine, log records and (optionally) Redis."""
        if self.provider is None:
            return
        steps = [
            (
                "sqlalchemy",
                lambda: SQLAlchemyInstrumentor().instrument(
                    engine=master_engine.sync_engine, tracer_provider=self.provider
                ),
            ),
            (
                "logging",
                lambda: LoggingInstrumentor().instrument(
                    tracer_provider=self.provider, set_logging_format=True
                ),
            ),
        ]
        if redis:
            steps.append(
                ("redis", lambda: RedisInstrumentor().instrument(tracer_provider=self.provider))
            )
        for name, apply in steps:
            try:
                apply()
            except Exception:
                logger.exception("Failed to instrument %s", name)

    def shutdown(self) -> None:
        """Flush pending spans."""
        if self.provider is None:
            return
        try:
            self.provider.shutdown()
        except Exception:
            logger.exception("Tracer provider shutdown failed")
        finally:
            self.provider = None


_telemetry: TenancyTelemetry | None = None
_telemetry_lock = threading.RLock()


def get_telemetry() -> TenancyTelemetry | None:
    with _telemetry_lock:
        return _telemetry


def set_telemetry(telemetry: TenancyTelemetry | None) -> None:
    global _telemetry
    with _telemetry_lock:
        _telemetry = telemetry
