"""Property Resolver - grounds property phrases to the twin or telemetry schema."""

import re
from collections.abc import Iterable
from typing import Any

import numpy as np

from minetwin.common.errors import PropertyNotFoundError
from minetwin.common.logging import get_logger
from minetwin.common.metrics import record_property_resolution
from minetwin.engine.intents import PropertyDescriptor, PropertySource
from minetwin.twin.model import Entity, schema_to_type
from minetwin.twin.telemetry import TELEMETRY_FIELDS, infer_units

logger = get_logger(__name__)

# Canonical property name to the phrases operators use for it
PROPERTY_NAME_VARIATIONS: dict[str, list[str]] = {
    # Path / route
    "haulPathId": [
        "haul path id", "haul path", "path id", "pathid",
        "route id", "routeid", "current path",
    ],
    "haulPhase": ["haul phase", "phase", "current phase"],
    # Speed
    "speedMph": ["speed", "current speed", "speed mph", "velocity"],
    "maxSpeedKph": ["speed limit", "max speed", "maximum speed", "maxspeed"],
    # Status
    "status": ["status", "current status", "state", "equipment status"],
    # Engine and fuel
    "engineTemp": ["engine temperature", "engine temp", "temperature", "enginetemp"],
    "fuelLevel": ["fuel level", "fuel", "fuellevel", "fuel percentage"],
    "fuelConsumptionRate": ["fuel consumption", "fuel consumption rate", "fuel rate"],
    # Position
    "posX": ["position x", "x position", "x coordinate", "pos x"],
    "posY": ["position y", "y position", "y coordinate", "pos y"],
    "posZ": ["position z", "z position", "z coordinate", "pos z", "altitude"],
    "headingDeg": ["heading", "direction", "heading degrees", "headingdeg"],
    # Load
    "payload": ["payload", "load", "weight", "tonnage"],
    # Twin schema properties
    "focusSnapDistanceMeters": [
        "focus snap distance", "snap distance", "focus distance",
        "focussnapdistancemeters",
    ],
    "builderCategory": ["builder category", "category", "buildercategory"],
    "builderIsPhysical": [
        "builder is physical", "is physical", "physical", "builderisphysical",
    ],
}

DEFAULT_SOURCES = (PropertySource.SCHEMA, PropertySource.TELEMETRY)


def normalize_property_name(name: str) -> str:
    """
    Lowercase and strip spaces, hyphens and underscores entirely.

    >>> normalize_property_name("Focus-Snap distance_Meters")
    'focussnapdistancemeters'
    """
    return re.sub(r"[\s_\-]+", "", name.strip().lower())


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance (insertions, deletions, substitutions)."""
    if a == b:
        return 0
    if not a or not b:
        return max(len(a), len(b))

    previous = np.arange(len(b) + 1, dtype=np.int64)
    target = np.frombuffer(b.encode("utf-32-le"), dtype=np.uint32)
    for i, char in enumerate(a, start=1):
        cost = (target != ord(char)).astype(np.int64)
        current = np.empty_like(previous)
        current[0] = i
        # Substitution and deletion are vectorized; insertion depends on the
        # left neighbour so it is resolved in the scan below.
        current[1:] = np.minimum(previous[:-1] + cost, previous[1:] + 1)
        for j in range(1, len(current)):
            if current[j - 1] + 1 < current[j]:
                current[j] = current[j - 1] + 1
        previous = current
    return int(previous[-1])


def _is_exact(candidate: str, normalized_phrase: str) -> bool:
    return normalize_property_name(candidate) == normalized_phrase


def _is_variation(candidate: str, normalized_phrase: str) -> bool:
    variations = PROPERTY_NAME_VARIATIONS.get(candidate, [])
    return any(normalize_property_name(v) == normalized_phrase for v in variations)


def _contains_either(candidate: str, normalized_phrase: str) -> bool:
    normalized_candidate = normalize_property_name(candidate)
    return normalized_phrase in normalized_candidate or normalized_candidate in normalized_phrase


class PropertyResolver:
    """
    Resolves "snap distance", "engine temp", "speed limit" and the like.

    The entity's own Property items are searched first, then the global
    telemetry field table. A miss produces ranked suggestions.
    """

    def __init__(self, suggestion_limit: int = 5, max_distance: int = 3):
        self._suggestion_limit = suggestion_limit
        self._max_distance = max_distance

    def find_property(
        self,
        entity: Entity,
        phrase: str,
        sources: Iterable[PropertySource] = DEFAULT_SOURCES,
    ) -> PropertyDescriptor | None:
        """Resolve a phrase, returning None on a miss."""
        normalized = normalize_property_name(phrase)
        if not normalized:
            return None

        for source in sources:
            if source == PropertySource.SCHEMA:
                descriptor = self._find_in_schema(entity, normalized)
            else:
                descriptor = self._find_in_telemetry(normalized)
            if descriptor is not None:
                record_property_resolution(source.value)
                logger.debug(
                    "Property resolved",
                    entity_id=entity.id,
                    phrase=phrase,
                    property=descriptor.name,
                    source=source.value,
                )
                return descriptor
        return None

    def resolve_property(
        self,
        entity: Entity,
        phrase: str,
        sources: Iterable[PropertySource] = DEFAULT_SOURCES,
    ) -> PropertyDescriptor:
        """
        Resolve a phrase against the entity schema, then telemetry.

        Raises:
            PropertyNotFoundError: Carries up to ``suggestion_limit`` suggestions
        """
        descriptor = self.find_property(entity, phrase, sources)
        if descriptor is not None:
            return descriptor

        suggestions = self.suggest(entity, phrase)
        record_property_resolution("not_found")
        logger.info(
            "Property phrase unresolved",
            entity_id=entity.id,
            phrase=phrase,
            suggestions=suggestions,
        )
        raise PropertyNotFoundError(
            phrase,
            entity.id,
            suggestions,
            message=(
                f"Property '{phrase}' not found in the twin schema or telemetry "
                f"schema for entity '{entity.id}'"
                + (f". Did you mean: {', '.join(suggestions)}" if suggestions else "")
            ),
        )

    def suggest(self, entity: Entity, phrase: str) -> list[str]:
        """
        Rank candidate names against a phrase.

        Containment scores 0, otherwise the edit distance (kept only up to
        ``max_distance``). Ties keep declaration order: entity properties
        first, then telemetry fields.
        """
        normalized = normalize_property_name(phrase)
        candidates: list[str] = []
        for item in entity.property_items():
            name = item.get("name")
            if name and name not in candidates:
                candidates.append(name)
        for name in TELEMETRY_FIELDS:
            if name not in candidates:
                candidates.append(name)

        scored: list[tuple[int, int, str]] = []
        for order, name in enumerate(candidates):
            if normalized and _contains_either(name, normalized):
                score = 0
            else:
                score = levenshtein_distance(normalize_property_name(name), normalized)
                if score > self._max_distance:
                    continue
            scored.append((score, order, name))

        scored.sort()
        return [name for _, _, name in scored[: self._suggestion_limit]]

    def all_properties(self, entity: Entity) -> list[PropertyDescriptor]:
        """Every property available on an entity: its schema, then telemetry."""
        descriptors = [self._schema_descriptor(item) for item in entity.property_items()]
        descriptors.extend(self._telemetry_descriptor(name) for name in TELEMETRY_FIELDS)
        return descriptors

    def _find_in_schema(self, entity: Entity, normalized: str) -> PropertyDescriptor | None:
        items = [item for item in entity.property_items() if item.get("name")]
        for matcher in (_is_exact, _is_variation, _contains_either):
            for item in items:
                if matcher(item["name"], normalized):
                    return self._schema_descriptor(item)
        return None

    def _find_in_telemetry(self, normalized: str) -> PropertyDescriptor | None:
        for matcher in (_is_exact, _is_variation, _contains_either):
            for name in TELEMETRY_FIELDS:
                if matcher(name, normalized):
                    return self._telemetry_descriptor(name)
        return None

    @staticmethod
    def _schema_descriptor(item: dict[str, Any]) -> PropertyDescriptor:
        name = item["name"]
        display_name = item.get("displayName")
        if isinstance(display_name, dict):
            display_name = display_name.get("en") or next(iter(display_name.values()), None)
        return PropertyDescriptor(
            name=name,
            type=schema_to_type(item.get("schema")),
            source=PropertySource.SCHEMA,
            units=item.get("unit") or infer_units(name, source="schema") or None,
            display_name=display_name,
            value=item["value"] if "value" in item else item.get("initialValue"),
            initial_value=item.get("initialValue"),
            writable=item.get("writable") is not False,
            schema_item=item,
        )

    @staticmethod
    def _telemetry_descriptor(name: str) -> PropertyDescriptor:
        definition = TELEMETRY_FIELDS[name]
        return PropertyDescriptor(
            name=name,
            type=definition.type,
            source=PropertySource.TELEMETRY,
            units=definition.units or infer_units(name) or None,
            writable=False,
            telemetry_field=name,
        )
