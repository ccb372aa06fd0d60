"""Telemetry setup for OpenTelemetry traces and metrics.

Configures tracing and metrics export over OTLP when OTLP_ENABLED=true.
Otherwise in-memory providers are installed and nothing is exported.
"""

import logging
import os

from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.trace import TracerProvider

from phaseops.config import PhaseOpsConfig

# Suppress gRPC warnings when collector is unavailable
logging.getLogger("opentelemetry.exporter.otlp.proto.grpc").setLevel(logging.ERROR)


class CycleMetrics:
    """Metric instruments recorded by the daily cycle."""

    def __init__(self, meter: metrics.Meter) -> None:
        self.tasks = meter.create_counter(
            "phaseops_tasks_total",
            description="Total tasks processed, by status",
        )
        self.task_duration = meter.create_histogram(
            "phaseops_task_duration_seconds",
            description="Task execution duration",
            unit="s",
        )
        self.cycles = meter.create_counter(
            "phaseops_cycles_total",
            description="Total daily cycles, by outcome",
        )
        self.notifications_failed = meter.create_counter(
            "phaseops_notifications_failed_total",
            description="Notifications that could not be delivered",
        )


def setup_telemetry(config: PhaseOpsConfig) -> tuple[trace.Tracer, metrics.Meter]:
    """Initialize OpenTelemetry with OTLP export.

    If OTLP_ENABLED is not "true" or no endpoint is configured, uses
    providers without exporters.

    Args:
        config: Configuration with OTLP endpoint and service name

    Returns:
        Tuple of (tracer, meter) for creating spans and recording metrics
    """
    otlp_enabled = os.getenv("OTLP_ENABLED", "false").lower() == "true"

    if otlp_enabled and config.otlp_endpoint:
        # Import OTLP exporters only when needed
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
            OTLPMetricExporter,
        )
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        trace_provider = TracerProvider()
        trace_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=config.otlp_endpoint))
        )
        trace.set_tracer_provider(trace_provider)

        metric_reader = PeriodicExportingMetricReader(
            OTLPMetricExporter(endpoint=config.otlp_endpoint)
        )
        metrics.set_meter_provider(MeterProvider(metric_readers=[metric_reader]))
    else:
        trace.set_tracer_provider(TracerProvider())
        metrics.set_meter_provider(MeterProvider())

    tracer = trace.get_tracer(config.service_name)
    meter = metrics.get_meter(config.service_name)

    return tracer, meter
