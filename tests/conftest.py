"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from minetwin.common.settings import Settings
from minetwin.engine.factory import Engine, create_engine
from minetwin.parsing.rules import RulesIntentParser
from minetwin.stores.base import PropertyConstraint
from minetwin.stores.memory import (
    InMemoryConstraintStore,
    InMemoryTelemetryStore,
    InMemoryTwinRepository,
)
from minetwin.twin.dtdl import entities_from_document
from minetwin.twin.model import TwinModel
from minetwin.twin.telemetry import TelemetryRecord


def _dtmi(model: str, twin: str) -> str:
    return f"dtmi:mine:{model};1__twin_{twin}"


def _truck(
    twin: str,
    display_name: str,
    route: str,
    max_speed: float = 60.0,
    max_speed_limit: float = 100.0,
) -> dict[str, Any]:
    return {
        "@id": _dtmi("HaulTruck", twin),
        "@type": "Interface",
        "@context": "dtmi:dtdl:context;3",
        "displayName": display_name,
        "contents": [
            {
                "@type": "Property",
                "name": "maxSpeedKph",
                "schema": "double",
                "value": max_speed,
                "minimum": 0,
                "maximum": max_speed_limit,
            },
            {
                "@type": "Property",
                "name": "operatingMode",
                "schema": "string",
                "value": "Hauling",
                "allowedValues": ["Hauling", "Idle", "Maintenance"],
            },
            {
                "@type": "Property",
                "name": "serialNumber",
                "schema": "string",
                "value": f"SN-{twin}",
                "writable": False,
            },
            {
                "@type": "Property",
                "name": "fleetTag",
                "schema": "string",
                "value": "north-pit",
                "readOnly": True,
            },
            {"@type": "Telemetry", "name": "speedMph", "schema": "double"},
            {
                "@type": "Relationship",
                "name": "assignedRoute",
                "target": _dtmi("HaulPath", route),
            },
        ],
    }


def _path(twin: str, display_name: str) -> dict[str, Any]:
    return {
        "@id": _dtmi("HaulPath", twin),
        "@type": "Interface",
        "displayName": display_name,
        "contents": [
            {"@type": "Property", "name": "lengthMeters", "schema": "double", "value": 1250.0},
        ],
    }


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        database_path=":memory:",
        default_window_minutes=60,
        current_query_min_window_minutes=30,
        tracing_enabled=False,
    )


@pytest.fixture
def dtdl_document() -> list[dict[str, Any]]:
    """
    Sample DTDL document.

    The decoy truck ``Haul_Truck_CAT_777_20`` is declared after
    ``Haul_Truck_CAT_777_2`` and shares every token of its id.
    """
    return [
        {
            "@id": "dtmi:mine:HaulTruck;1",
            "@type": "Interface",
            "displayName": "Haul Truck model",
            "contents": [],
        },
        _truck("Haul_Truck_CAT_777_2", "Haul Truck CAT 777 #2", "Path_A"),
        _truck("Haul_Truck_CAT_777_20", "Haul Truck CAT 777 #20", "Path_B", max_speed_limit=40.0),
        _truck("Truck_56", "Haul Truck 56", "Path_A", max_speed=40.0),
        {
            "@id": _dtmi("MineLayout", "Mine_Layout"),
            "@type": "Interface",
            "displayName": {"en": "Mine Layout"},
            "contents": [
                {
                    "@type": "Property",
                    "name": "focusSnapDistanceMeters",
                    "schema": "double",
                    "initialValue": 150,
                    "displayName": "Focus Snap Distance",
                },
                {
                    "@type": "Property",
                    "name": "builderIsPhysical",
                    "schema": "boolean",
                    "value": True,
                },
            ],
        },
        _path("Path_A", "HaulPath A"),
        _path("Path_B", "HaulPath B"),
    ]


@pytest.fixture
def model(dtdl_document) -> TwinModel:
    """Twin model loaded from the sample document."""
    return TwinModel(entities_from_document(dtdl_document))


@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def telemetry_records(now) -> list[TelemetryRecord]:
    """
    Recent telemetry for Truck_56 plus one stale and one foreign record.

    Truck_56 drives A, A, B, A, B, B, C at 10..70 mph, one record a minute
    from 10.5 to 4.5 minutes ago.
    """
    paths = ["Path_A", "Path_A", "Path_B", "Path_A", "Path_B", "Path_B", "Path_C"]
    records = [
        TelemetryRecord(
            timestamp=now - timedelta(minutes=10 - i, seconds=30),
            truck_id="Truck_56",
            haul_path_id=path,
            status="Hauling",
            speed_mph=10.0 * (i + 1),
            engine_temp=190.0 + i,
            fuel_level=80.0 - i,
        )
        for i, path in enumerate(paths)
    ]
    records.append(
        TelemetryRecord(
            timestamp=now - timedelta(hours=5),
            truck_id="Truck_56",
            haul_path_id="Path_A",
            speed_mph=99.0,
        )
    )
    records.append(
        TelemetryRecord(
            timestamp=now - timedelta(minutes=5),
            truck_id="Haul_Truck_CAT_777_2",
            haul_path_id="Path_A",
            speed_mph=15.0,
        )
    )
    return records


@pytest.fixture
def telemetry_store(telemetry_records) -> InMemoryTelemetryStore:
    return InMemoryTelemetryStore(telemetry_records)


@pytest.fixture
def constraint_store() -> InMemoryConstraintStore:
    """Constraint rows for the mine layout."""
    return InMemoryConstraintStore(
        [
            PropertyConstraint(
                entity_type="MineLayout",
                property="focusSnapDistanceMeters",
                min_value=0,
                max_value=1000,
            ),
            PropertyConstraint(
                entity_type="MineLayout",
                property="builderIsPhysical",
                editable=False,
            ),
        ]
    )


@pytest.fixture
def repository(model) -> InMemoryTwinRepository:
    return InMemoryTwinRepository(model.all_entities())


@pytest.fixture
def engine(model, telemetry_store, constraint_store, repository, settings) -> Engine:
    """Fully wired engine over in-memory stores."""
    return create_engine(
        model,
        telemetry_store,
        constraint_store,
        repository,
        settings=settings,
        parser=RulesIntentParser(default_window_minutes=settings.default_window_minutes),
    )
