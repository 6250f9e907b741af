"""Query service - grounded reads over the twin model and telemetry."""

import re
import time
from dataclasses import dataclass
from typing import Any

from minetwin.common.errors import DomainError
from minetwin.common.logging import get_logger
from minetwin.common.metrics import record_query
from minetwin.common.tracing import set_span_attribute, span
from minetwin.engine.executors.base import NO_DATA, QueryResult
from minetwin.engine.executors.registry import QueryExecutorRegistry
from minetwin.engine.intents import (
    AggregateOp,
    GenericIntent,
    QueryIntent,
    QuestionType,
    ResolvedQuery,
)
from minetwin.engine.schema_resolver import SchemaResolver
from minetwin.parsing.base import IntentParser
from minetwin.stores.base import TelemetryStore
from minetwin.twin.telemetry import TelemetryRecord

logger = get_logger(__name__)

OPERATION_WORDS = {
    AggregateOp.AVERAGE: "average",
    AggregateOp.MAX: "maximum",
    AggregateOp.MIN: "minimum",
    AggregateOp.SUM: "total",
}

# Question types asking for a latest value; a short window would often be empty.
CURRENT_VALUE_QUESTIONS = frozenset({QuestionType.CURRENT_SPEED, QuestionType.PROPERTY})


@dataclass
class QueryResponse:
    """Executor result plus a natural-language answer."""

    answer: str
    value: Any
    units: str
    entity_id: str
    record_count: int
    time_window_minutes: int
    metadata: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "answer": self.answer,
            "value": self.value,
            "units": self.units,
            "entity_id": self.entity_id,
            "data_used": {
                "record_count": self.record_count,
                "time_window": {"minutes": self.time_window_minutes},
            },
        }


def _minutes_text(minutes: int) -> str:
    return f"{minutes} minute{'' if minutes == 1 else 's'}"


def _value_text(value: Any) -> str:
    if isinstance(value, float) or (isinstance(value, int) and not isinstance(value, bool)):
        return f"{value:.1f}"
    return str(value)


def display_property_name(name: str, telemetry: bool = True) -> str:
    """
    Readable label for a property name.

    >>> display_property_name("engineTemp")
    'Engine Temp'
    >>> display_property_name("speedMph")
    'Current Speed'
    """
    if telemetry and "speed" in name.lower():
        return "Current Speed"
    spaced = re.sub(r"(?<=[a-z0-9])([A-Z])", r" \1", name)
    spaced = re.sub(r"\s*\b(Mph|Deg)\b\s*", " ", spaced)
    spaced = spaced.strip()
    return spaced[:1].upper() + spaced[1:]


def format_answer(query: ResolvedQuery, result: QueryResult, record_count: int) -> str:
    """Render a one-sentence answer for a query result."""
    entity_name = query.target_entity.id.replace("_", " ")
    window = _minutes_text(query.time_window.minutes)
    value = _value_text(result.value)
    units = f" {result.units}" if result.units else ""
    descriptor = query.property

    if query.intent == GenericIntent.AGGREGATE:
        operation = OPERATION_WORDS.get(query.operation, "average")
        article = "an" if operation[0] in "aeiou" else "a"
        if query.is_route_utilization:
            return (
                f"Route {query.source_path} had a utilization of {value}{units} "
                f"over the past {window} (based on {record_count} records)."
            )
        label = descriptor.label if descriptor and descriptor.is_telemetry else "speed"
        return (
            f"{entity_name} had {article} {operation} {label} of {value}{units} "
            f"over the past {window} (based on {record_count} records)."
        )

    if query.intent == GenericIntent.GET_PROPERTY:
        label = descriptor.label if descriptor else "property"
        if result.value == NO_DATA and (descriptor is None or descriptor.is_telemetry):
            return f"{entity_name} has no recent data available for {label}."
        shown = display_property_name(label, descriptor is None or descriptor.is_telemetry)
        return f"The {shown} of {entity_name} is {value}{units}."

    if query.intent == GenericIntent.COUNT:
        trips = "trip" if result.value == 1 else "trips"
        source = query.source_path
        destination = query.destination_path
        if source and destination and source != destination:
            return (
                f"{entity_name} made {result.value} {trips} from {source} to "
                f"{destination} over the past {window}."
            )
        return (
            f"{entity_name} made {result.value} {trips} on {source or 'any path'} "
            f"over the past {window}."
        )

    if query.intent == GenericIntent.RELATIONSHIP:
        relationship = query.relationship_name or "relationship"
        if result.value == NO_DATA:
            return f"{entity_name} has no {relationship} relationship."
        return f"The {relationship} of {entity_name} is {result.value}."

    return f"{entity_name}: {value}{units}"


class QueryService:
    """Resolve a query, fetch its telemetry and run the matching executor."""

    def __init__(
        self,
        resolver: SchemaResolver,
        telemetry: TelemetryStore,
        registry: QueryExecutorRegistry | None = None,
        parser: IntentParser | None = None,
        current_min_window_minutes: int = 30,
    ):
        self._resolver = resolver
        self._telemetry = telemetry
        self._registry = registry or QueryExecutorRegistry()
        self._parser = parser
        self._current_min_window = current_min_window_minutes

    async def execute_query(self, intent: QueryIntent) -> QueryResponse:
        """
        Execute a structured query.

        Raises:
            DomainError: Entity or property could not be grounded
            ExecutorNotFoundError: No executor registered for the intent
        """
        start = time.perf_counter()
        outcome = "error"
        label = str(getattr(intent.question_type, "value", intent.question_type))
        try:
            with span(
                "query.execute",
                {"query.question_type": label, "query.target": intent.target_entity},
            ):
                response = await self._execute(intent)
            outcome = "no_data" if response.value == NO_DATA else "ok"
            return response
        except DomainError:
            outcome = "rejected"
            raise
        finally:
            record_query(label, outcome, time.perf_counter() - start)

    async def ask(self, text: str) -> QueryResponse:
        """
        Parse free text into a query and execute it.

        Raises:
            IntentParseError: Text is not a recognizable question
        """
        if self._parser is None:
            raise RuntimeError("QueryService has no intent parser configured")
        intent = await self._parser.parse_query(text)
        return await self.execute_query(intent)

    async def _execute(self, intent: QueryIntent) -> QueryResponse:
        query = self._resolver.resolve_query(intent)
        if intent.question_type in CURRENT_VALUE_QUESTIONS:
            query.time_window = query.time_window.widened(self._current_min_window)

        records = await self._fetch(query)
        set_span_attribute("query.record_count", len(records))

        executor = self._registry.get_executor(query)
        result = executor.execute(query, records)
        record_count = result.record_count if result.record_count is not None else len(records)

        logger.info(
            "Query executed",
            intent=query.intent.value,
            entity_id=query.target_entity.id,
            executor=executor.name,
            record_count=record_count,
        )
        return QueryResponse(
            answer=format_answer(query, result, record_count),
            value=result.value,
            units=result.units,
            entity_id=query.target_entity.id,
            record_count=record_count,
            time_window_minutes=query.time_window.minutes,
            metadata=result.metadata,
        )

    async def _fetch(self, query: ResolvedQuery) -> list[TelemetryRecord]:
        # Schema values come from the model; aggregates and counts always read telemetry.
        if query.intent == GenericIntent.RELATIONSHIP:
            return []
        if query.intent == GenericIntent.GET_PROPERTY and query.data_source == "schema":
            return []

        start, end = query.time_window.bounds()
        if query.question_type == QuestionType.ROUTE_UTILIZATION and query.source_path:
            return await self._telemetry.find_by_path_and_window(query.source_path, start, end)
        return await self._telemetry.find_by_entity_and_window(query.target_entity.id, start, end)
