"""Prometheus metrics for MineTwin observability."""

import os

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    multiprocess,
)

# === Counters ===

QUERIES_TOTAL = Counter(
    "minetwin_queries_total",
    "Total number of executed queries",
    ["intent", "outcome"],  # outcome: ok, no_data, rejected, error
)

COMMAND_UPDATES_TOTAL = Counter(
    "minetwin_command_updates_total",
    "Per-entity property updates attempted by commands",
    ["outcome"],  # outcome: applied, rejected, failed
)

VALIDATION_REJECTIONS_TOTAL = Counter(
    "minetwin_validation_rejections_total",
    "Property updates rejected by the update validator",
    ["rule"],  # rule: exists, read_only, editable, type, finite, minimum, maximum, allowed_values
)

ENTITY_RESOLUTIONS_TOTAL = Counter(
    "minetwin_entity_resolutions_total",
    "Entity references resolved, by cascade stage",
    ["stage"],
)

PROPERTY_RESOLUTIONS_TOTAL = Counter(
    "minetwin_property_resolutions_total",
    "Property phrases resolved, by source",
    ["source"],  # source: schema, telemetry, not_found
)

# === Histograms ===

QUERY_LATENCY = Histogram(
    "minetwin_query_latency_seconds",
    "End-to-end query latency in seconds",
    ["intent"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

COMMAND_LATENCY = Histogram(
    "minetwin_command_latency_seconds",
    "End-to-end command latency in seconds",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)


# === Helper Functions ===


def record_query(intent: str, outcome: str, latency: float) -> None:
    """Record an executed query."""
    QUERIES_TOTAL.labels(intent=intent, outcome=outcome).inc()
    QUERY_LATENCY.labels(intent=intent).observe(latency)


def record_command(latency: float) -> None:
    """Record an executed command."""
    COMMAND_LATENCY.observe(latency)


def record_update(outcome: str) -> None:
    """Record the outcome of one entity update."""
    COMMAND_UPDATES_TOTAL.labels(outcome=outcome).inc()


def record_validation_rejection(rule: str) -> None:
    """Record a validator rejection."""
    VALIDATION_REJECTIONS_TOTAL.labels(rule=rule).inc()


def record_entity_resolution(stage: str) -> None:
    """Record which cascade stage resolved an entity reference."""
    ENTITY_RESOLUTIONS_TOTAL.labels(stage=stage).inc()


def record_property_resolution(source: str) -> None:
    """Record where a property phrase was resolved."""
    PROPERTY_RESOLUTIONS_TOTAL.labels(source=source).inc()


def render_metrics() -> bytes:
    """Render all metrics in Prometheus text format."""
    multiproc_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
    if multiproc_dir:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)  # type: ignore[no-untyped-call]
        return generate_latest(registry)
    return generate_latest()
