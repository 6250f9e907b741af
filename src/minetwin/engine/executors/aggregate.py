"""Aggregate executor - average/max/min/sum over telemetry, and route utilization."""

from collections.abc import Sequence

import numpy as np

from minetwin.engine.executors.base import QueryExecutor, QueryResult, units_for
from minetwin.engine.intents import AggregateOp, GenericIntent, PropertySource, ResolvedQuery
from minetwin.twin.telemetry import (
    SPEED_FIELD,
    TelemetryRecord,
    convert_speed,
    is_speed_field,
)

_REDUCERS = {
    AggregateOp.AVERAGE: np.mean,
    AggregateOp.MAX: np.max,
    AggregateOp.MIN: np.min,
    AggregateOp.SUM: np.sum,
}


def route_utilization(record_count: int, window_minutes: int) -> float:
    """
    Share of the window a path was occupied, as a percentage.

    Each record stands for roughly one minute of occupancy.

    >>> route_utilization(15, 60)
    25.0
    """
    if window_minutes <= 0:
        return 0.0
    return record_count / window_minutes * 100


def extract_values(records: Sequence[TelemetryRecord], field_name: str) -> np.ndarray:
    """Numeric values of a field, with speeds converted to km/h."""
    values = [
        float(value)
        for value in (record.get(field_name) for record in records)
        if isinstance(value, (int, float)) and not isinstance(value, bool)
    ]
    array = np.asarray(values, dtype=float)
    array = array[~np.isnan(array)]
    if is_speed_field(field_name):
        array = convert_speed(array)
    return array


class AggregateExecutor(QueryExecutor):
    """Answers "what was the average/maximum/minimum speed of X"."""

    name = "AggregateExecutor"
    intents = frozenset({GenericIntent.AGGREGATE})

    def execute(
        self,
        query: ResolvedQuery,
        records: Sequence[TelemetryRecord],
    ) -> QueryResult:
        if query.operation is None:
            raise ValueError("Aggregate executor requires an operation (average, max, min, sum)")

        field_name = self._field_for(query)
        units = "km/h" if is_speed_field(field_name) else units_for(query.property)

        if query.is_route_utilization:
            return QueryResult(
                value=route_utilization(len(records), query.time_window.minutes),
                units="%",
                metadata={
                    "record_count": len(records),
                    "time_window": query.time_window.to_dict(),
                    "path_id": query.source_path,
                },
            )

        if not records:
            return QueryResult(value=0, units=units, metadata={"record_count": 0})

        values = extract_values(records, field_name)
        if values.size == 0:
            # Records exist but none carry a number for this field.
            return QueryResult(
                value=0,
                units=units,
                metadata={"record_count": len(records), "field": field_name},
            )

        result = float(_REDUCERS[query.operation](values))
        return QueryResult(
            value=result,
            units=units,
            metadata={
                "record_count": len(records),
                "value_count": int(values.size),
                "field": field_name,
                "operation": query.operation.value,
                "time_window": query.time_window.to_dict(),
            },
        )

    @staticmethod
    def _field_for(query: ResolvedQuery) -> str:
        descriptor = query.property
        if descriptor is not None and descriptor.source == PropertySource.TELEMETRY:
            return descriptor.telemetry_field or descriptor.name
        return SPEED_FIELD
