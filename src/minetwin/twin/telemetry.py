"""Truck telemetry records and the shared telemetry field schema."""

import re
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any

MPH_TO_KPH = 1.60934

SPEED_FIELD = "speedMph"


@dataclass(frozen=True)
class TelemetryField:
    """Schema entry for one telemetry field."""

    type: str
    units: str | None = None


# Every truck emits the same sensor schema, so these fields are global.
TELEMETRY_FIELDS: dict[str, TelemetryField] = {
    # Status and identification
    "status": TelemetryField("string"),
    "truckId": TelemetryField("string"),
    "haulPathId": TelemetryField("string"),
    "haulPhase": TelemetryField("string"),
    # Position and movement
    "speedMph": TelemetryField("number", "mph"),
    "posX": TelemetryField("number"),
    "posY": TelemetryField("number"),
    "posZ": TelemetryField("number"),
    "headingDeg": TelemetryField("number", "degrees"),
    # Equipment state
    "payload": TelemetryField("number", "tonnes"),
    "engineTemp": TelemetryField("number", "°F"),
    "fuelLevel": TelemetryField("number", "%"),
    "fuelConsumptionRate": TelemetryField("number"),
    "brakePedalPos": TelemetryField("number", "%"),
    "throttlePos": TelemetryField("number", "%"),
    "vibrationLevel": TelemetryField("number"),
    # Tire pressures
    "tirePressureFL": TelemetryField("number", "psi"),
    "tirePressureFR": TelemetryField("number", "psi"),
    "tirePressureRLO": TelemetryField("number", "psi"),
    "tirePressureRLI": TelemetryField("number", "psi"),
    "tirePressureRRO": TelemetryField("number", "psi"),
    "tirePressureRRI": TelemetryField("number", "psi"),
}


def to_snake(name: str) -> str:
    """``tirePressureRLO`` -> ``tire_pressure_rlo``."""
    snake = re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", name)
    return snake.lower()


@dataclass(frozen=True)
class TelemetryRecord:
    """One timestamped observation for a truck. Every sensor field is optional."""

    timestamp: datetime
    truck_id: str
    id: str | None = None
    status: str | None = None
    haul_path_id: str | None = None
    haul_phase: str | None = None
    payload: float | None = None
    speed_mph: float | None = None
    pos_x: float | None = None
    pos_y: float | None = None
    pos_z: float | None = None
    heading_deg: float | None = None
    engine_temp: float | None = None
    fuel_level: float | None = None
    fuel_consumption_rate: float | None = None
    brake_pedal_pos: float | None = None
    throttle_pos: float | None = None
    vibration_level: float | None = None
    tire_pressure_fl: float | None = None
    tire_pressure_fr: float | None = None
    tire_pressure_rlo: float | None = None
    tire_pressure_rli: float | None = None
    tire_pressure_rro: float | None = None
    tire_pressure_rri: float | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def get(self, field_name: str) -> Any:
        """Read a field by canonical (camelCase) or attribute (snake_case) name."""
        attr = to_snake(field_name)
        if attr in _RECORD_ATTRS:
            return getattr(self, attr)
        return self.raw.get(field_name)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TelemetryRecord":
        """
        Build a record from a telemetry row.

        Accepts camelCase or snake_case keys; ``time`` is accepted for
        ``timestamp``.
        """
        values: dict[str, Any] = {}
        for key, value in data.items():
            attr = to_snake(key)
            if attr == "time":
                attr = "timestamp"
            if attr in _RECORD_ATTRS and attr != "raw":
                values[attr] = value

        timestamp = values.get("timestamp")
        if isinstance(timestamp, str):
            values["timestamp"] = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        if "timestamp" not in values or "truck_id" not in values:
            raise ValueError("Telemetry row requires 'timestamp' and 'truckId'")

        return cls(**values, raw=dict(data))

    def to_dict(self) -> dict[str, Any]:
        """Canonical camelCase representation (unset fields omitted)."""
        data: dict[str, Any] = {"timestamp": self.timestamp.isoformat()}
        for name in TELEMETRY_FIELDS:
            value = self.get(name)
            if value is not None:
                data[name] = value
        if self.id is not None:
            data["id"] = self.id
        return data


_RECORD_ATTRS = frozenset(f.name for f in fields(TelemetryRecord))


def is_speed_field(field_name: str) -> bool:
    return field_name == SPEED_FIELD


def convert_speed(value_mph: float) -> float:
    """Convert a telemetry speed from mph to km/h."""
    return value_mph * MPH_TO_KPH


def infer_units(name: str, source: str | None = None) -> str:
    """Guess display units from a property name when none are declared."""
    lowered = name.lower()
    if "temp" in lowered:
        return "°F"
    if "level" in lowered or "fuel" in lowered:
        return "%"
    if "heading" in lowered:
        return "degrees"
    if "payload" in lowered:
        return "tonnes"
    if "speed" in lowered and source != "schema":
        return "km/h"
    return ""
