"""MineTwin engine - grounding, validation and execution of intents."""

from minetwin.engine.entity_resolver import EntityResolver
from minetwin.engine.intents import (
    CommandIntent,
    GenericIntent,
    QueryIntent,
    QuestionType,
    ResolvedCommand,
    ResolvedQuery,
    TimeWindow,
)
from minetwin.engine.property_resolver import PropertyResolver
from minetwin.engine.schema_resolver import SchemaResolver
from minetwin.engine.validator import UpdateValidator, ValidationResult

__all__ = [
    "CommandIntent",
    "EntityResolver",
    "GenericIntent",
    "PropertyResolver",
    "QueryIntent",
    "QuestionType",
    "ResolvedCommand",
    "ResolvedQuery",
    "SchemaResolver",
    "TimeWindow",
    "UpdateValidator",
    "ValidationResult",
]
