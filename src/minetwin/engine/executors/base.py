"""Base classes for query executors."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar

from minetwin.engine.intents import GenericIntent, PropertyDescriptor, ResolvedQuery
from minetwin.twin.telemetry import TelemetryRecord, infer_units

NO_DATA = "N/A"


@dataclass
class QueryResult:
    """Value computed by an executor."""

    value: Any
    units: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def record_count(self) -> int | None:
        return self.metadata.get("record_count")

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "units": self.units, "metadata": dict(self.metadata)}


class QueryExecutor(ABC):
    """
    Computes a result for one family of grounded queries.

    Subclasses declare the generic intents they serve in ``intents``.
    """

    name: ClassVar[str]
    intents: ClassVar[frozenset[GenericIntent]]

    def can_handle(self, intent: GenericIntent) -> bool:
        return intent in self.intents

    @abstractmethod
    def execute(
        self,
        query: ResolvedQuery,
        records: Sequence[TelemetryRecord],
    ) -> QueryResult:
        """
        Execute a grounded query.

        Args:
            query: Resolved query
            records: Telemetry for the query window, oldest first

        Returns:
            QueryResult with value, units and metadata
        """
        pass


def units_for(descriptor: PropertyDescriptor | None) -> str:
    """Declared units of a descriptor, else units inferred from its name."""
    if descriptor is None:
        return ""
    if descriptor.units:
        return descriptor.units
    return infer_units(descriptor.name, source=descriptor.source.value)
