"""Schema Resolver - turns intents into grounded queries and commands."""

from minetwin.common.errors import (
    EntityNotFoundError,
    PropertyNotEditableError,
    PropertyNotFoundError,
)
from minetwin.common.logging import get_logger
from minetwin.engine.entity_resolver import EntityResolver
from minetwin.engine.intents import (
    QUESTION_TO_INTENT,
    QUESTION_TO_OPERATION,
    CommandIntent,
    GenericIntent,
    PropertyDescriptor,
    PropertySource,
    QueryIntent,
    QuestionType,
    ResolvedCommand,
    ResolvedQuery,
)
from minetwin.engine.property_resolver import PropertyResolver, normalize_property_name
from minetwin.twin.model import Entity, TwinModel
from minetwin.twin.telemetry import SPEED_FIELD, TELEMETRY_FIELDS

logger = get_logger(__name__)

ALL_ENTITIES = "ALL"
PATH_MARKERS = ("path_", "route_")


def all_entities_placeholder() -> Entity:
    """Stand-in target for fleet-wide route queries keyed only by path."""
    return Entity(id=ALL_ENTITIES, category="All", display_name="All entities")


def generic_intent_for(question_type: QuestionType | str) -> GenericIntent:
    """Map a question type to its execution intent (unknown types read a property)."""
    try:
        return QUESTION_TO_INTENT[QuestionType(question_type)]
    except ValueError:
        return GenericIntent.GET_PROPERTY


class SchemaResolver:
    """Grounds intents against the twin model and the telemetry schema."""

    def __init__(
        self,
        model: TwinModel,
        entity_resolver: EntityResolver | None = None,
        property_resolver: PropertyResolver | None = None,
    ):
        self._model = model
        self._entities = entity_resolver or EntityResolver()
        self._properties = property_resolver or PropertyResolver()

    @property
    def model(self) -> TwinModel:
        return self._model

    def resolve_query(self, intent: QueryIntent) -> ResolvedQuery:
        """
        Resolve a query intent.

        Raises:
            EntityNotFoundError: Target entity could not be grounded
            PropertyNotFoundError: Named property could not be grounded
        """
        question_type = intent.question_type
        is_route_query = question_type == QuestionType.ROUTE_UTILIZATION

        if is_route_query and intent.target_entity.upper() == ALL_ENTITIES:
            entity = all_entities_placeholder()
        else:
            entity = self._entities.resolve(intent.target_entity, self._model)

        property_descriptor: PropertyDescriptor | None = None
        relationship_name: str | None = None
        if question_type == QuestionType.RELATIONSHIP:
            relationship_name = self._resolve_relationship(entity, intent.property_name)
        elif intent.property_name:
            property_descriptor = self._properties.resolve_property(entity, intent.property_name)
        elif question_type == QuestionType.CURRENT_SPEED:
            property_descriptor = self._implicit_speed(entity)

        source_path = intent.source_path
        if is_route_query and not source_path:
            lowered = intent.target_entity.lower()
            if any(marker in lowered for marker in PATH_MARKERS):
                source_path = intent.target_entity

        data_source = "telemetry"
        if property_descriptor is not None and property_descriptor.source == PropertySource.SCHEMA:
            data_source = "schema"

        resolved = ResolvedQuery(
            intent=generic_intent_for(question_type),
            target_entity=entity,
            time_window=intent.time_window,
            question_type=question_type,
            property=property_descriptor,
            operation=QUESTION_TO_OPERATION.get(question_type),
            source_path=source_path,
            destination_path=intent.destination_path,
            relationship_name=relationship_name,
            data_source=data_source,
        )
        logger.debug(
            "Query resolved",
            question_type=str(getattr(question_type, "value", question_type)),
            intent=resolved.intent.value,
            entity_id=entity.id,
            property=property_descriptor.name if property_descriptor else None,
        )
        return resolved

    def resolve_command(self, intent: CommandIntent) -> ResolvedCommand:
        """
        Resolve a command intent.

        Raises:
            EntityNotFoundError: No entity matched the target
            PropertyNotFoundError: Property could not be grounded
            PropertyNotEditableError: Property is telemetry, not twin schema
        """
        entities = self._entities.resolve_bulk(intent.target_entity, self._model, intent.filter)
        if not entities:
            raise EntityNotFoundError(
                intent.target_entity,
                message=f"No entities found matching '{intent.target_entity}'",
            )

        # Bulk targets share a schema, so the first entity grounds the property.
        descriptor = self._properties.resolve_property(entities[0], intent.property)
        if descriptor.source != PropertySource.SCHEMA:
            raise PropertyNotEditableError(
                intent.property,
                message=(
                    f"Property '{intent.property}' is a telemetry field and cannot be "
                    "modified. Only twin schema properties can be updated."
                ),
            )

        scope = intent.scope or ("bulk" if len(entities) > 1 else "single")
        logger.debug(
            "Command resolved",
            property=descriptor.name,
            entity_count=len(entities),
            scope=scope,
        )
        return ResolvedCommand(
            action=intent.action,
            target_entities=entities,
            property=descriptor,
            value=intent.value,
            scope=scope,
            filter=intent.filter,
        )

    def available_properties(self, entity_id: str) -> list[PropertyDescriptor]:
        """Every property resolvable on an entity; empty for unknown ids."""
        entity = self._model.get_entity(entity_id)
        if entity is None:
            return []
        return self._properties.all_properties(entity)

    @staticmethod
    def _resolve_relationship(entity: Entity, phrase: str | None) -> str:
        names = list(entity.relationships)
        if not phrase:
            if len(names) == 1:
                return names[0]
            raise PropertyNotFoundError(
                "relationship",
                entity.id,
                names,
                message=f"Entity '{entity.id}' needs a relationship name",
            )

        wanted = normalize_property_name(phrase)
        for name in names:
            if normalize_property_name(name) == wanted:
                return name
        for name in names:
            normalized = normalize_property_name(name)
            if wanted in normalized or normalized in wanted:
                return name
        raise PropertyNotFoundError(
            phrase,
            entity.id,
            names,
            message=f"Relationship '{phrase}' not found on entity '{entity.id}'"
            + (f". Available relationships: {', '.join(names)}" if names else ""),
        )

    def _implicit_speed(self, entity: Entity) -> PropertyDescriptor:
        descriptor = self._properties.find_property(
            entity, "speed", sources=(PropertySource.TELEMETRY,)
        )
        if descriptor is not None:
            return descriptor
        return PropertyDescriptor(
            name=SPEED_FIELD,
            type=TELEMETRY_FIELDS[SPEED_FIELD].type,
            source=PropertySource.TELEMETRY,
            units="km/h",
            display_name="Speed",
            writable=False,
            telemetry_field=SPEED_FIELD,
        )
