"""Property executor - current value of a schema property or telemetry field."""

from collections.abc import Sequence

from minetwin.engine.executors.base import NO_DATA, QueryExecutor, QueryResult, units_for
from minetwin.engine.intents import GenericIntent, PropertySource, ResolvedQuery
from minetwin.twin.telemetry import TelemetryRecord, convert_speed, is_speed_field


class PropertyExecutor(QueryExecutor):
    """Answers "what is the haul path id / status / engine temp of X"."""

    name = "PropertyExecutor"
    intents = frozenset({GenericIntent.GET_PROPERTY})

    def execute(
        self,
        query: ResolvedQuery,
        records: Sequence[TelemetryRecord],
    ) -> QueryResult:
        descriptor = query.property
        if descriptor is None:
            raise ValueError("Property executor requires a resolved property")

        if descriptor.source == PropertySource.SCHEMA:
            value = descriptor.value
            if value is None:
                value = descriptor.initial_value
            return QueryResult(
                value=NO_DATA if value is None else value,
                units=units_for(descriptor),
                metadata={"source": "schema"},
            )

        if not records:
            return QueryResult(
                value=NO_DATA,
                units=units_for(descriptor),
                metadata={"record_count": 0, "source": "telemetry"},
            )

        latest = max(records, key=lambda record: record.timestamp)
        field_name = descriptor.telemetry_field or descriptor.name
        value = latest.get(field_name)
        units = units_for(descriptor)
        if is_speed_field(field_name) and isinstance(value, (int, float)):
            value = convert_speed(value)
            units = "km/h"

        return QueryResult(
            value=NO_DATA if value is None else value,
            units=units,
            metadata={
                "record_count": len(records),
                "source": "telemetry",
                "timestamp": latest.timestamp.isoformat(),
            },
        )
