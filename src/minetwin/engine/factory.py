"""Factory wiring the engine from settings and stores."""

import json
from dataclasses import dataclass
from pathlib import Path

from minetwin.common.logging import get_logger
from minetwin.common.settings import Settings
from minetwin.common.tracing import setup_tracing
from minetwin.engine.commands import CommandApplier, CommandService
from minetwin.engine.entity_resolver import EntityResolver
from minetwin.engine.executors.registry import QueryExecutorRegistry
from minetwin.engine.property_resolver import PropertyResolver
from minetwin.engine.queries import QueryService
from minetwin.engine.schema_resolver import SchemaResolver
from minetwin.engine.validator import UpdateValidator
from minetwin.parsing.base import IntentParser
from minetwin.parsing.rules import RulesIntentParser
from minetwin.stores.base import ConstraintStore, TelemetryStore, TwinRepository
from minetwin.stores.sqlite import SqliteConstraintStore, SqliteTelemetryStore, SqliteTwinRepository
from minetwin.twin.dtdl import entities_from_document
from minetwin.twin.model import Entity, TwinModel

logger = get_logger(__name__)


@dataclass
class Engine:
    """A fully wired engine and the stores behind it."""

    model: TwinModel
    resolver: SchemaResolver
    queries: QueryService
    commands: CommandService
    telemetry: TelemetryStore
    constraints: ConstraintStore
    repository: TwinRepository


def load_dtdl_file(path: str | Path) -> list[Entity]:
    """Read a DTDL JSON document into entities."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    entities = entities_from_document(data)
    logger.info("DTDL file loaded", path=str(path), entity_count=len(entities))
    return entities


def create_engine(
    model: TwinModel,
    telemetry: TelemetryStore,
    constraints: ConstraintStore,
    repository: TwinRepository,
    settings: Settings | None = None,
    parser: IntentParser | None = None,
    registry: QueryExecutorRegistry | None = None,
) -> Engine:
    """
    Wire resolvers, validator, executors and services around a twin model.

    Args:
        model: Loaded twin model
        telemetry: Telemetry store
        constraints: Constraint store
        repository: Twin persistence
        settings: Application settings (defaults to environment settings)
        parser: Intent parser for the text entry points
        registry: Executor registry (defaults to the built-in executors)

    Returns:
        Configured Engine
    """
    if settings is None:
        from minetwin.common.settings import get_settings

        settings = get_settings()

    if settings.tracing_enabled:
        setup_tracing(
            service_name=settings.tracing_service_name,
            otlp_endpoint=settings.tracing_otlp_endpoint,
            enable_console=settings.tracing_console,
        )

    parser = parser or RulesIntentParser(default_window_minutes=settings.default_window_minutes)
    resolver = SchemaResolver(
        model,
        EntityResolver(),
        PropertyResolver(
            suggestion_limit=settings.suggestion_limit,
            max_distance=settings.suggestion_max_distance,
        ),
    )
    queries = QueryService(
        resolver,
        telemetry,
        registry=registry,
        parser=parser,
        current_min_window_minutes=settings.current_query_min_window_minutes,
    )
    commands = CommandService(
        resolver,
        UpdateValidator(constraints),
        CommandApplier(model, repository),
        parser=parser,
    )
    logger.info("Engine created", entity_count=len(model))
    return Engine(
        model=model,
        resolver=resolver,
        queries=queries,
        commands=commands,
        telemetry=telemetry,
        constraints=constraints,
        repository=repository,
    )


async def create_sqlite_engine(settings: Settings | None = None) -> Engine:
    """Engine over the SQLite database named in settings; twins are loaded from it."""
    if settings is None:
        from minetwin.common.settings import get_settings

        settings = get_settings()

    path = settings.database_path
    repository = SqliteTwinRepository(path)
    model = TwinModel(await repository.load_all())
    return create_engine(
        model,
        SqliteTelemetryStore(path),
        SqliteConstraintStore(path),
        repository,
        settings=settings,
    )
