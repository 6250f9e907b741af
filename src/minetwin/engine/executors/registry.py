"""Ordered registry selecting the executor for a generic intent."""

from minetwin.common.errors import ExecutorNotFoundError
from minetwin.common.logging import get_logger
from minetwin.engine.executors.aggregate import AggregateExecutor
from minetwin.engine.executors.base import QueryExecutor
from minetwin.engine.executors.count import CountExecutor
from minetwin.engine.executors.property import PropertyExecutor
from minetwin.engine.executors.relationship import RelationshipExecutor
from minetwin.engine.intents import GenericIntent, ResolvedQuery

logger = get_logger(__name__)


def default_executors() -> list[QueryExecutor]:
    return [PropertyExecutor(), AggregateExecutor(), CountExecutor(), RelationshipExecutor()]


class QueryExecutorRegistry:
    """
    Executors in registration order; the first that can handle an intent wins.

    Registering an executor under an existing name replaces the old one.
    """

    def __init__(self, executors: list[QueryExecutor] | None = None):
        self._executors: list[QueryExecutor] = []
        for executor in default_executors() if executors is None else executors:
            self.register(executor)

    def register(self, executor: QueryExecutor) -> None:
        if any(e.name == executor.name for e in self._executors):
            logger.warning("Executor already registered, replacing", executor=executor.name)
            self._executors = [e for e in self._executors if e.name != executor.name]
        self._executors.append(executor)

    def get_executor(self, query: ResolvedQuery | GenericIntent) -> QueryExecutor:
        """
        Select the executor for a query or a bare intent.

        Raises:
            ExecutorNotFoundError: Nothing registered handles the intent
        """
        intent = query.intent if isinstance(query, ResolvedQuery) else query
        for executor in self._executors:
            if executor.can_handle(intent):
                return executor

        available = ", ".join(e.name for e in self._executors) or "none"
        logger.error("No executor for intent", intent=intent.value, available=available)
        raise ExecutorNotFoundError(
            f"No executor found for intent type: {intent.value}. "
            f"Available executors: {available}"
        )

    def get_executor_by_name(self, name: str) -> QueryExecutor | None:
        for executor in self._executors:
            if executor.name == name:
                return executor
        return None

    def all_executors(self) -> list[QueryExecutor]:
        return list(self._executors)
