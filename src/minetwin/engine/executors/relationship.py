"""Relationship executor - follows a named relationship of the target entity."""

from collections.abc import Sequence

from minetwin.engine.executors.base import NO_DATA, QueryExecutor, QueryResult
from minetwin.engine.intents import GenericIntent, ResolvedQuery
from minetwin.twin.telemetry import TelemetryRecord


class RelationshipExecutor(QueryExecutor):
    """Answers "which route is truck 56 assigned to"."""

    name = "RelationshipExecutor"
    intents = frozenset({GenericIntent.RELATIONSHIP})

    def execute(
        self,
        query: ResolvedQuery,
        records: Sequence[TelemetryRecord],
    ) -> QueryResult:
        name = query.relationship_name
        if not name:
            raise ValueError("Relationship executor requires a relationship name")

        target = query.target_entity.relationships.get(name)
        return QueryResult(
            value=target if target else NO_DATA,
            units="",
            metadata={"relationship": name, "source": "schema"},
        )
