"""SQLite-backed stores for twins, constraints and telemetry."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from minetwin.common.logging import get_logger
from minetwin.stores.base import ConstraintStore, PropertyConstraint, TelemetryStore, TwinRepository
from minetwin.twin.model import Entity
from minetwin.twin.telemetry import TelemetryRecord

logger = get_logger(__name__)


class _SqliteStore:
    """Shared connection handling; statements run off the event loop."""

    _schema: tuple[str, ...] = ()

    def __init__(self, path: str) -> None:
        self._path = Path(path)
        if str(path) != ":memory:":
            self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        for statement in self._schema:
            self._conn.execute(statement)
        self._conn.commit()

    def _execute(self, sql: str, params: tuple[Any, ...] = ()) -> list[tuple[Any, ...]]:
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
            self._conn.commit()
            return rows

    def _executemany(self, sql: str, params: list[tuple[Any, ...]]) -> None:
        with self._lock:
            self._conn.executemany(sql, params)
            self._conn.commit()

    async def _run(self, sql: str, params: tuple[Any, ...] = ()) -> list[tuple[Any, ...]]:
        return await asyncio.to_thread(self._execute, sql, params)

    def close(self) -> None:
        with self._lock:
            self._conn.close()


class SqliteTwinRepository(_SqliteStore, TwinRepository):
    """One row per entity holding its JSON content list."""

    _schema = (
        "CREATE TABLE IF NOT EXISTS twins ("
        "id TEXT PRIMARY KEY,"
        "category TEXT NOT NULL,"
        "dtdl_id TEXT NOT NULL DEFAULT '',"
        "display_name TEXT,"
        "contents TEXT NOT NULL,"
        "raw TEXT,"
        "position INTEGER NOT NULL,"
        "updated_at REAL NOT NULL"
        ")",
    )

    async def save(self, entity: Entity) -> None:
        record = entity.to_record()
        await self._run(
            "INSERT INTO twins (id, category, dtdl_id, display_name, contents, raw, position, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, (SELECT COALESCE(MAX(position), -1) + 1 FROM twins), ?) "
            "ON CONFLICT(id) DO UPDATE SET "
            "category = excluded.category, dtdl_id = excluded.dtdl_id, "
            "display_name = excluded.display_name, contents = excluded.contents, "
            "raw = excluded.raw, updated_at = excluded.updated_at",
            (
                record["id"],
                record["category"],
                record["dtdl_id"],
                record["display_name"],
                json.dumps(record["contents"]),
                json.dumps(record["raw"]) if record["raw"] is not None else None,
                time.time(),
            ),
        )

    async def load_all(self) -> list[Entity]:
        rows = await self._run(
            "SELECT id, category, dtdl_id, display_name, contents, raw FROM twins ORDER BY position"
        )
        entities = [
            Entity.from_record(
                {
                    "id": row[0],
                    "category": row[1],
                    "dtdl_id": row[2],
                    "display_name": row[3],
                    "contents": json.loads(row[4]),
                    "raw": json.loads(row[5]) if row[5] else None,
                }
            )
            for row in rows
        ]
        logger.debug("Twins loaded", path=str(self._path), count=len(entities))
        return entities


class SqliteConstraintStore(_SqliteStore, ConstraintStore):
    _schema = (
        "CREATE TABLE IF NOT EXISTS property_constraints ("
        "entity_type TEXT NOT NULL,"
        "property TEXT NOT NULL,"
        "min_value REAL,"
        "max_value REAL,"
        "read_only INTEGER NOT NULL DEFAULT 0,"
        "editable INTEGER NOT NULL DEFAULT 1,"
        "allowed_values TEXT,"
        "PRIMARY KEY (entity_type, property)"
        ")",
    )

    _columns = "entity_type, property, min_value, max_value, read_only, editable, allowed_values"

    @staticmethod
    def _from_row(row: tuple[Any, ...]) -> PropertyConstraint:
        return PropertyConstraint(
            entity_type=row[0],
            property=row[1],
            min_value=row[2],
            max_value=row[3],
            read_only=bool(row[4]),
            editable=bool(row[5]),
            allowed_values=json.loads(row[6]) if row[6] else None,
        )

    async def get_constraint(self, entity_type: str, property: str) -> PropertyConstraint | None:
        rows = await self._run(
            f"SELECT {self._columns} FROM property_constraints "
            "WHERE entity_type = ? AND property = ?",
            (entity_type, property),
        )
        return self._from_row(rows[0]) if rows else None

    async def save_constraint(self, constraint: PropertyConstraint) -> None:
        await self._run(
            f"REPLACE INTO property_constraints ({self._columns}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                constraint.entity_type,
                constraint.property,
                constraint.min_value,
                constraint.max_value,
                int(constraint.read_only),
                int(constraint.editable),
                json.dumps(constraint.allowed_values)
                if constraint.allowed_values is not None
                else None,
            ),
        )

    async def all_constraints(self) -> list[PropertyConstraint]:
        rows = await self._run(
            f"SELECT {self._columns} FROM property_constraints ORDER BY entity_type, property"
        )
        return [self._from_row(row) for row in rows]


class SqliteTelemetryStore(_SqliteStore, TelemetryStore):
    """Telemetry rows indexed by truck, path and epoch timestamp."""

    _schema = (
        "CREATE TABLE IF NOT EXISTS telemetry ("
        "seq INTEGER PRIMARY KEY AUTOINCREMENT,"
        "ts REAL NOT NULL,"
        "truck_id TEXT NOT NULL,"
        "haul_path_id TEXT,"
        "data TEXT NOT NULL"
        ")",
        "CREATE INDEX IF NOT EXISTS idx_telemetry_truck ON telemetry (truck_id, ts)",
        "CREATE INDEX IF NOT EXISTS idx_telemetry_path ON telemetry (haul_path_id, ts)",
    )

    async def add_records(self, records: list[TelemetryRecord]) -> None:
        rows = [
            (
                record.timestamp.timestamp(),
                record.truck_id,
                record.haul_path_id,
                json.dumps(record.to_dict()),
            )
            for record in records
        ]
        await asyncio.to_thread(
            self._executemany,
            "INSERT INTO telemetry (ts, truck_id, haul_path_id, data) VALUES (?, ?, ?, ?)",
            rows,
        )

    async def _find(self, column: str, value: str, start: datetime, end: datetime) -> list[TelemetryRecord]:
        rows = await self._run(
            f"SELECT data FROM telemetry WHERE {column} = ? AND ts BETWEEN ? AND ? "
            "ORDER BY ts, seq",
            (value, start.timestamp(), end.timestamp()),
        )
        return [TelemetryRecord.from_dict(json.loads(row[0])) for row in rows]

    async def find_by_entity_and_window(
        self,
        entity_id: str,
        start: datetime,
        end: datetime,
    ) -> list[TelemetryRecord]:
        return await self._find("truck_id", entity_id, start, end)

    async def find_by_path_and_window(
        self,
        path_id: str,
        start: datetime,
        end: datetime,
    ) -> list[TelemetryRecord]:
        return await self._find("haul_path_id", path_id, start, end)
