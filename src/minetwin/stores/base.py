"""Repository interfaces consumed by the engine."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from minetwin.twin.model import Entity
from minetwin.twin.telemetry import TelemetryRecord


@dataclass
class PropertyConstraint:
    """
    Persisted edit rules for one property of an entity category.

    When a row exists its flags are authoritative over whatever the twin
    schema declares.
    """

    entity_type: str
    property: str
    min_value: float | None = None
    max_value: float | None = None
    read_only: bool = False
    editable: bool = True
    allowed_values: list[Any] | None = None

    @property
    def is_editable(self) -> bool:
        return self.editable and not self.read_only

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "property": self.property,
            "min_value": self.min_value,
            "max_value": self.max_value,
            "read_only": self.read_only,
            "editable": self.editable,
            "allowed_values": self.allowed_values,
        }


class TelemetryStore(ABC):
    """Time-series telemetry lookups. Results are oldest first."""

    @abstractmethod
    async def find_by_entity_and_window(
        self,
        entity_id: str,
        start: datetime,
        end: datetime,
    ) -> list[TelemetryRecord]:
        pass

    @abstractmethod
    async def find_by_path_and_window(
        self,
        path_id: str,
        start: datetime,
        end: datetime,
    ) -> list[TelemetryRecord]:
        pass

    async def add_records(self, records: list[TelemetryRecord]) -> None:
        raise NotImplementedError(f"{type(self).__name__} is read-only")


class ConstraintStore(ABC):
    """Property constraints keyed by ``(entity_type, property)``."""

    @abstractmethod
    async def get_constraint(self, entity_type: str, property: str) -> PropertyConstraint | None:
        pass

    @abstractmethod
    async def save_constraint(self, constraint: PropertyConstraint) -> None:
        pass

    @abstractmethod
    async def all_constraints(self) -> list[PropertyConstraint]:
        pass


class TwinRepository(ABC):
    """Durable storage of entity content lists."""

    @abstractmethod
    async def save(self, entity: Entity) -> None:
        """Upsert the full content list of one entity."""
        pass

    @abstractmethod
    async def load_all(self) -> list[Entity]:
        pass
