"""Digital twin model - registry of twin entities and their properties."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from minetwin.common.logging import get_logger

logger = get_logger(__name__)


class ContentType(str, Enum):
    """Kinds of items in an entity's content list."""

    PROPERTY = "Property"
    RELATIONSHIP = "Relationship"
    TELEMETRY = "Telemetry"


# DTDL primitive schema to property value type
SCHEMA_TO_TYPE: dict[str, str] = {
    "double": "number",
    "float": "number",
    "int": "number",
    "integer": "number",
    "long": "number",
    "boolean": "boolean",
    "string": "string",
    "date": "string",
    "dateTime": "string",
    "duration": "string",
    "time": "string",
    "Array": "array",
    "Object": "object",
}


def schema_to_type(schema: Any) -> str:
    """Map a DTDL schema (primitive name or complex schema object) to a value type."""
    if isinstance(schema, str):
        return SCHEMA_TO_TYPE.get(schema, "string")
    if isinstance(schema, dict):
        complex_type = schema.get("@type")
        if complex_type == "Array":
            return "array"
        if complex_type in ("Object", "Map"):
            return "object"
        if complex_type == "Enum":
            return "string"
    return "string"


def content_kind(item: dict[str, Any]) -> str | None:
    """Return the content type tag of an item (``@type`` may be a list in DTDL)."""
    tag = item.get("@type")
    if isinstance(tag, list):
        for kind in ContentType:
            if kind.value in tag:
                return kind.value
        return None
    return tag


@dataclass
class PropertyConstraints:
    """Constraints a property declares on itself."""

    min: float | None = None
    max: float | None = None
    allowed_values: list[Any] | None = None
    read_only: bool = False


@dataclass
class PropertyValue:
    """Cached view of one property."""

    value: Any
    type: str
    editable: bool = True
    constraints: PropertyConstraints | None = None


@dataclass
class UpdateResult:
    """Outcome of a single property update."""

    success: bool
    entity_id: str
    property: str
    old_value: Any = None
    new_value: Any = None
    error: str | None = None
    warning: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "entity_id": self.entity_id,
            "property": self.property,
            "old_value": self.old_value,
            "new_value": self.new_value,
        }
        if self.error:
            data["error"] = self.error
        if self.warning:
            data["warning"] = self.warning
        return data


def _constraints_from_item(item: dict[str, Any]) -> PropertyConstraints | None:
    minimum = item.get("minimum", item.get("min"))
    maximum = item.get("maximum", item.get("max"))
    allowed = item.get("allowedValues")
    read_only = bool(item.get("readOnly", False))
    if minimum is None and maximum is None and allowed is None and not read_only:
        return None
    return PropertyConstraints(
        min=float(minimum) if minimum is not None else None,
        max=float(maximum) if maximum is not None else None,
        allowed_values=list(allowed) if allowed is not None else None,
        read_only=read_only,
    )


def property_from_item(item: dict[str, Any]) -> PropertyValue:
    """Build the cached view of a Property content item."""
    value = item["value"] if "value" in item else item.get("initialValue")
    return PropertyValue(
        value=value,
        type=schema_to_type(item.get("schema")),
        editable=item.get("writable") is not False,
        constraints=_constraints_from_item(item),
    )


class Entity:
    """
    A twin instance.

    The ordered ``contents`` list is the canonical representation and the
    only thing that gets persisted. ``properties`` and ``relationships`` are
    derived indexes, rebuilt lazily after ``invalidate()``.
    """

    def __init__(
        self,
        id: str,
        category: str,
        contents: list[dict[str, Any]] | None = None,
        dtdl_id: str = "",
        display_name: str | None = None,
        raw: dict[str, Any] | None = None,
    ):
        self.id = id
        self.category = category
        self.contents: list[dict[str, Any]] = list(contents or [])
        self.dtdl_id = dtdl_id
        self.display_name = display_name
        self.raw = raw
        self.version = 0
        self._target_aliases: dict[str, str] = {}
        self._properties: dict[str, PropertyValue] | None = None
        self._relationships: dict[str, str] | None = None

    def __repr__(self) -> str:
        return f"Entity(id={self.id!r}, category={self.category!r})"

    @property
    def properties(self) -> dict[str, PropertyValue]:
        """Property cache derived from the content list."""
        if self._properties is None:
            self._properties = {
                item["name"]: property_from_item(item)
                for item in self.property_items()
                if item.get("name")
            }
        return self._properties

    @property
    def relationships(self) -> dict[str, str]:
        """Relationship name to target entity id."""
        if self._relationships is None:
            relationships: dict[str, str] = {}
            for item in self.contents:
                if content_kind(item) != ContentType.RELATIONSHIP.value:
                    continue
                name = item.get("name")
                target = item.get("target")
                if name and target:
                    relationships[name] = self._target_aliases.get(target, target)
            self._relationships = relationships
        return self._relationships

    @property
    def telemetry_definitions(self) -> list[dict[str, Any]]:
        return [i for i in self.contents if content_kind(i) == ContentType.TELEMETRY.value]

    def property_items(self) -> list[dict[str, Any]]:
        """Property items of the content list, in declaration order."""
        return [i for i in self.contents if content_kind(i) == ContentType.PROPERTY.value]

    def find_property_item(self, name: str) -> dict[str, Any] | None:
        for item in self.property_items():
            if item.get("name") == name:
                return item
        return None

    def set_target_aliases(self, aliases: dict[str, str]) -> None:
        """Map raw relationship targets (e.g. DTMIs) to entity ids."""
        self._target_aliases = dict(aliases)
        self._relationships = None

    def invalidate(self) -> None:
        """Drop derived indexes so they are rebuilt from the content list."""
        self._properties = None
        self._relationships = None

    def to_record(self) -> dict[str, Any]:
        """Serializable form used by twin persistence."""
        return {
            "id": self.id,
            "category": self.category,
            "dtdl_id": self.dtdl_id,
            "display_name": self.display_name,
            "contents": self.contents,
            "raw": self.raw,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Entity":
        return cls(
            id=record["id"],
            category=record.get("category") or "Unknown",
            contents=record.get("contents") or [],
            dtdl_id=record.get("dtdl_id") or "",
            display_name=record.get("display_name"),
            raw=record.get("raw"),
        )


class TwinModel:
    """
    In-memory registry of twin entities.

    Insertion order is preserved and used as the tie-break order by every
    resolution scan. Entities are only mutated through ``update_property``.
    """

    def __init__(self, entities: list[Entity] | None = None):
        self._entities: dict[str, Entity] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        for entity in entities or []:
            self._entities[entity.id] = entity
        self._link_relationships()

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    def _link_relationships(self) -> None:
        aliases = {e.dtdl_id: e.id for e in self._entities.values() if e.dtdl_id}
        for entity in self._entities.values():
            entity.set_target_aliases(aliases)

    def add_entity(self, entity: Entity) -> None:
        """Add or replace an entity (load time only)."""
        self._entities[entity.id] = entity
        self._link_relationships()

    def get_entity(self, entity_id: str) -> Entity | None:
        return self._entities.get(entity_id)

    def all_entities(self) -> list[Entity]:
        return list(self._entities.values())

    def get_entities_by_category(self, category: str) -> list[Entity]:
        return [e for e in self._entities.values() if e.category == category]

    def get_related_entities(
        self,
        entity_id: str,
        relationship_name: str | None = None,
    ) -> list[Entity]:
        """Entities targeted by an entity's relationships."""
        entity = self.get_entity(entity_id)
        if entity is None:
            return []

        if relationship_name:
            target = entity.relationships.get(relationship_name)
            target_ids = [target] if target else []
        else:
            target_ids = list(entity.relationships.values())

        related = []
        for target_id in target_ids:
            target_entity = self.get_entity(target_id)
            if target_entity is not None:
                related.append(target_entity)
        return related

    def get_property_value(self, entity_id: str, name: str) -> Any:
        """Current cached value of a property, or None."""
        entity = self.get_entity(entity_id)
        if entity is None:
            return None
        prop = entity.properties.get(name)
        return prop.value if prop else None

    def lock_for(self, entity_id: str) -> asyncio.Lock:
        """Write lock serializing mutations of one entity."""
        lock = self._locks.get(entity_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[entity_id] = lock
        return lock

    def update_property(
        self,
        entity_id: str,
        prop: str,
        value: Any,
        expected_version: int | None = None,
    ) -> UpdateResult:
        """
        Write a property value into the content list and the cache.

        Only the content item's ``value`` is overwritten; a declared
        ``initialValue`` is left untouched.
        """
        entity = self.get_entity(entity_id)
        if entity is None:
            return UpdateResult(
                success=False,
                entity_id=entity_id,
                property=prop,
                new_value=value,
                error=f"Entity '{entity_id}' not found",
            )

        cached = entity.properties.get(prop)
        if cached is None:
            return UpdateResult(
                success=False,
                entity_id=entity_id,
                property=prop,
                new_value=value,
                error=f"Property '{prop}' does not exist on entity '{entity_id}'",
            )

        if expected_version is not None and expected_version != entity.version:
            return UpdateResult(
                success=False,
                entity_id=entity_id,
                property=prop,
                old_value=cached.value,
                new_value=value,
                error=(
                    f"Entity '{entity_id}' changed concurrently "
                    f"(expected version {expected_version}, found {entity.version})"
                ),
            )

        old_value = cached.value
        warning = None
        item = entity.find_property_item(prop)
        if item is not None:
            item["value"] = value
            entity.invalidate()
        else:
            # Cache survives without a backing item; persistence will disagree.
            cached.value = value
            warning = (
                f"Property '{prop}' found in cache but not in contents "
                f"for entity '{entity_id}'"
            )
            logger.warning(
                "Property cache diverged from content list",
                entity_id=entity_id,
                property=prop,
            )

        entity.version += 1
        return UpdateResult(
            success=True,
            entity_id=entity_id,
            property=prop,
            old_value=old_value,
            new_value=value,
            warning=warning,
        )
