"""Query executors and their registry."""

from minetwin.engine.executors.aggregate import AggregateExecutor
from minetwin.engine.executors.base import NO_DATA, QueryExecutor, QueryResult
from minetwin.engine.executors.count import CountExecutor
from minetwin.engine.executors.property import PropertyExecutor
from minetwin.engine.executors.registry import QueryExecutorRegistry
from minetwin.engine.executors.relationship import RelationshipExecutor

__all__ = [
    "NO_DATA",
    "AggregateExecutor",
    "CountExecutor",
    "PropertyExecutor",
    "QueryExecutor",
    "QueryExecutorRegistry",
    "QueryResult",
    "RelationshipExecutor",
]
