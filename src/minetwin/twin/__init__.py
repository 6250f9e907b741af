"""Twin model: entities, DTDL conversion and telemetry schema."""

from minetwin.twin.model import Entity, PropertyValue, TwinModel, UpdateResult
from minetwin.twin.telemetry import TELEMETRY_FIELDS, TelemetryRecord

__all__ = [
    "Entity",
    "PropertyValue",
    "TwinModel",
    "UpdateResult",
    "TelemetryRecord",
    "TELEMETRY_FIELDS",
]
