"""Telemetry, constraint and twin persistence stores."""

from minetwin.stores.base import ConstraintStore, PropertyConstraint, TelemetryStore, TwinRepository
from minetwin.stores.memory import (
    InMemoryConstraintStore,
    InMemoryTelemetryStore,
    InMemoryTwinRepository,
)
from minetwin.stores.sqlite import SqliteConstraintStore, SqliteTelemetryStore, SqliteTwinRepository

__all__ = [
    "ConstraintStore",
    "InMemoryConstraintStore",
    "InMemoryTelemetryStore",
    "InMemoryTwinRepository",
    "PropertyConstraint",
    "SqliteConstraintStore",
    "SqliteTelemetryStore",
    "SqliteTwinRepository",
    "TelemetryStore",
    "TwinRepository",
]
