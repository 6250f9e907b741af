"""In-memory store implementations."""

from __future__ import annotations

import bisect
import copy
from datetime import datetime

from minetwin.stores.base import ConstraintStore, PropertyConstraint, TelemetryStore, TwinRepository
from minetwin.twin.model import Entity
from minetwin.twin.telemetry import TelemetryRecord


class InMemoryTelemetryStore(TelemetryStore):
    """Telemetry kept sorted by timestamp."""

    def __init__(self, records: list[TelemetryRecord] | None = None):
        self._records: list[TelemetryRecord] = sorted(
            records or [], key=lambda record: record.timestamp
        )

    def __len__(self) -> int:
        return len(self._records)

    async def add_records(self, records: list[TelemetryRecord]) -> None:
        for record in records:
            keys = [r.timestamp for r in self._records]
            self._records.insert(bisect.bisect_right(keys, record.timestamp), record)

    def _window(self, start: datetime, end: datetime) -> list[TelemetryRecord]:
        return [r for r in self._records if start <= r.timestamp <= end]

    async def find_by_entity_and_window(
        self,
        entity_id: str,
        start: datetime,
        end: datetime,
    ) -> list[TelemetryRecord]:
        return [r for r in self._window(start, end) if r.truck_id == entity_id]

    async def find_by_path_and_window(
        self,
        path_id: str,
        start: datetime,
        end: datetime,
    ) -> list[TelemetryRecord]:
        return [r for r in self._window(start, end) if r.haul_path_id == path_id]


class InMemoryConstraintStore(ConstraintStore):
    def __init__(self, constraints: list[PropertyConstraint] | None = None):
        self._constraints: dict[tuple[str, str], PropertyConstraint] = {}
        for constraint in constraints or []:
            self._constraints[(constraint.entity_type, constraint.property)] = constraint

    async def get_constraint(self, entity_type: str, property: str) -> PropertyConstraint | None:
        return self._constraints.get((entity_type, property))

    async def save_constraint(self, constraint: PropertyConstraint) -> None:
        self._constraints[(constraint.entity_type, constraint.property)] = constraint

    async def all_constraints(self) -> list[PropertyConstraint]:
        return list(self._constraints.values())


class InMemoryTwinRepository(TwinRepository):
    """Keeps deep copies of saved entity records."""

    def __init__(self, entities: list[Entity] | None = None):
        self._records: dict[str, dict] = {}
        for entity in entities or []:
            self._records[entity.id] = copy.deepcopy(entity.to_record())

    async def save(self, entity: Entity) -> None:
        self._records[entity.id] = copy.deepcopy(entity.to_record())

    async def load_all(self) -> list[Entity]:
        return [Entity.from_record(copy.deepcopy(r)) for r in self._records.values()]

    def saved_record(self, entity_id: str) -> dict | None:
        return self._records.get(entity_id)
