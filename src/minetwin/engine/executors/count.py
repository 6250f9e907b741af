"""Count executor - trip counting by edge detection over haul path ids."""

from collections.abc import Sequence

from minetwin.engine.executors.base import QueryExecutor, QueryResult
from minetwin.engine.intents import GenericIntent, ResolvedQuery
from minetwin.twin.telemetry import TelemetryRecord

TRIP_UNITS = "trips"


def count_trips_between(path_ids: Sequence[str | None], source: str, destination: str) -> int:
    """
    Count one-way transitions from ``source`` onto ``destination``.

    Being on the source arms the counter; reaching the destination while
    armed counts a trip and disarms it.

    >>> count_trips_between(["A", "A", "B", "A", "B", "B", "C"], "A", "B")
    2
    """
    trips = 0
    armed = False
    for path_id in path_ids:
        if path_id == source:
            armed = True
        elif path_id == destination and armed:
            trips += 1
            armed = False
    return trips


def count_entries(path_ids: Sequence[str | None], path: str) -> int:
    """
    Count entries into ``path`` from anywhere else.

    >>> count_entries(["A", "A", "B", "A", "B", "B", "C"], "A")
    2
    """
    entries = 0
    on_path = False
    for path_id in path_ids:
        now_on_path = path_id == path
        if now_on_path and not on_path:
            entries += 1
        on_path = now_on_path
    return entries


def count_path_changes(path_ids: Sequence[str | None]) -> int:
    """Count every switch to a new (non-empty) path id, the first one included."""
    changes = 0
    last: str | None = None
    for path_id in path_ids:
        if path_id and path_id != last:
            changes += 1
        last = path_id
    return changes


class CountExecutor(QueryExecutor):
    """Answers "how many trips did X make (from A to B)"."""

    name = "CountExecutor"
    intents = frozenset({GenericIntent.COUNT})

    def execute(
        self,
        query: ResolvedQuery,
        records: Sequence[TelemetryRecord],
    ) -> QueryResult:
        if not records:
            return QueryResult(value=0, units=TRIP_UNITS, metadata={"record_count": 0})

        ordered = sorted(records, key=lambda record: record.timestamp)
        path_ids = [record.haul_path_id for record in ordered]
        source = query.source_path
        destination = query.destination_path

        if source and destination and source != destination:
            mode = "between_paths"
            count = count_trips_between(path_ids, source, destination)
        elif source:
            mode = "path_entries"
            count = count_entries(path_ids, source)
        else:
            mode = "path_changes"
            count = count_path_changes(path_ids)

        return QueryResult(
            value=count,
            units=TRIP_UNITS,
            metadata={
                "record_count": len(records),
                "mode": mode,
                "time_window": query.time_window.to_dict(),
            },
        )
