"""Structured intents and their grounded (resolved) forms."""

import builtins
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Literal

from minetwin.twin.model import Entity


class QuestionType(str, Enum):
    """Question categories an intent parser may produce."""

    AVERAGE_SPEED = "average_speed"
    CURRENT_SPEED = "current_speed"
    TRIP_COUNT = "trip_count"
    ROUTE_UTILIZATION = "route_utilization"
    MAX_SPEED = "max_speed"
    MIN_SPEED = "min_speed"
    PROPERTY = "property"
    RELATIONSHIP = "relationship"


class GenericIntent(str, Enum):
    """Execution intents; every question type maps onto exactly one."""

    AGGREGATE = "aggregate"
    GET_PROPERTY = "get_property"
    COUNT = "count"
    RELATIONSHIP = "relationship"


class AggregateOp(str, Enum):
    AVERAGE = "average"
    MAX = "max"
    MIN = "min"
    SUM = "sum"


class PropertySource(str, Enum):
    """Where a property descriptor was resolved."""

    SCHEMA = "schema"
    TELEMETRY = "telemetry"


QUESTION_TO_INTENT: dict[QuestionType, GenericIntent] = {
    QuestionType.AVERAGE_SPEED: GenericIntent.AGGREGATE,
    QuestionType.MAX_SPEED: GenericIntent.AGGREGATE,
    QuestionType.MIN_SPEED: GenericIntent.AGGREGATE,
    QuestionType.ROUTE_UTILIZATION: GenericIntent.AGGREGATE,
    QuestionType.CURRENT_SPEED: GenericIntent.GET_PROPERTY,
    QuestionType.PROPERTY: GenericIntent.GET_PROPERTY,
    QuestionType.TRIP_COUNT: GenericIntent.COUNT,
    QuestionType.RELATIONSHIP: GenericIntent.RELATIONSHIP,
}

QUESTION_TO_OPERATION: dict[QuestionType, AggregateOp] = {
    QuestionType.AVERAGE_SPEED: AggregateOp.AVERAGE,
    QuestionType.MAX_SPEED: AggregateOp.MAX,
    QuestionType.MIN_SPEED: AggregateOp.MIN,
    QuestionType.ROUTE_UTILIZATION: AggregateOp.AVERAGE,
}


@dataclass
class TimeWindow:
    """A look-back window, optionally pinned to explicit bounds."""

    minutes: int
    start_time: datetime | None = None
    end_time: datetime | None = None

    def bounds(self, now: datetime | None = None) -> tuple[datetime, datetime]:
        """Concrete ``(start, end)`` for this window."""
        end = self.end_time or now or datetime.now(timezone.utc)
        start = self.start_time or end - timedelta(minutes=self.minutes)
        return start, end

    def widened(self, minimum_minutes: int) -> "TimeWindow":
        return TimeWindow(
            minutes=max(self.minutes, minimum_minutes),
            start_time=self.start_time,
            end_time=self.end_time,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"minutes": self.minutes}
        if self.start_time:
            data["start_time"] = self.start_time.isoformat()
        if self.end_time:
            data["end_time"] = self.end_time.isoformat()
        return data


@dataclass
class QueryIntent:
    """Read request as produced by the intent parser."""

    question_type: QuestionType
    target_entity: str
    time_window: TimeWindow
    source_path: str | None = None
    destination_path: str | None = None
    property_name: str | None = None


@dataclass
class RelationshipFilter:
    name: str
    target_id: str


@dataclass
class BulkFilter:
    """Narrows an "all ..." reference in a bulk command."""

    type: str | None = None
    relationship: RelationshipFilter | None = None


@dataclass
class CommandIntent:
    """Write request as produced by the intent parser."""

    target_entity: str
    property: str
    value: Any
    action: Literal["set", "update", "change"] = "set"
    scope: Literal["single", "bulk"] | None = None
    filter: BulkFilter | None = None


@dataclass
class PropertyDescriptor:
    """A property phrase grounded to the twin schema or the telemetry schema."""

    name: str
    type: str
    source: PropertySource
    units: str | None = None
    display_name: str | None = None
    value: Any = None
    initial_value: Any = None
    writable: bool = True
    telemetry_field: str | None = None
    schema_item: dict[str, Any] | None = field(default=None, repr=False)

    @property
    def is_telemetry(self) -> bool:
        return self.source == PropertySource.TELEMETRY

    @property
    def label(self) -> str:
        return self.display_name or self.name


@dataclass
class ResolvedQuery:
    """A query whose references are grounded to concrete entities/properties."""

    intent: GenericIntent
    target_entity: Entity
    time_window: TimeWindow
    question_type: QuestionType | None = None
    property: PropertyDescriptor | None = None
    operation: AggregateOp | None = None
    source_path: str | None = None
    destination_path: str | None = None
    relationship_name: str | None = None
    data_source: Literal["schema", "telemetry"] = "telemetry"

    @builtins.property
    def is_route_utilization(self) -> bool:
        return (
            self.operation == AggregateOp.AVERAGE
            and self.property is None
            and bool(self.source_path)
        )


@dataclass
class ResolvedCommand:
    """A command grounded to target entities and a schema property."""

    action: str
    target_entities: list[Entity]
    property: PropertyDescriptor
    value: Any
    scope: Literal["single", "bulk"]
    filter: BulkFilter | None = None
