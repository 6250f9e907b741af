"""DTDL interface to twin entity conversion."""

from typing import Any

from minetwin.common.logging import get_logger
from minetwin.twin.model import Entity

logger = get_logger(__name__)

TWIN_MARKER = "__twin_"

# Display-name fragment to canonical category, checked in order
CATEGORY_MARKERS: list[tuple[str, str]] = [
    ("Haul Truck", "HaulTruck"),
    ("Loader", "Loader"),
    ("HaulPath", "HaulRoute"),
    ("Path", "HaulRoute"),
    ("Stockpile", "Stockpile"),
    ("Mine Layout", "MineLayout"),
]


def derive_category(display_name: str | None) -> str:
    """
    Derive an entity category from its display name.

    >>> derive_category("Haul Truck CAT 777 #2")
    'HaulTruck'
    >>> derive_category("Crusher Unit")
    'CrusherUnit'
    """
    name = display_name or ""
    for marker, category in CATEGORY_MARKERS:
        if marker in name:
            return category
    return "".join(name.split()) or "Unknown"


def twin_id_from_dtmi(dtdl_id: str) -> str | None:
    """Extract the twin name from ``dtmi:...;1__twin_<Name>``."""
    if TWIN_MARKER not in dtdl_id:
        return None
    return dtdl_id.split(TWIN_MARKER, 1)[1] or None


def _display_name_text(value: Any) -> str | None:
    # DTDL allows localized display names: {"en": "..."}
    if isinstance(value, dict):
        return value.get("en") or next(iter(value.values()), None)
    return value


def entity_from_interface(interface: dict[str, Any]) -> Entity | None:
    """
    Build an Entity from one DTDL interface.

    Returns None for interfaces that are model definitions rather than twins.
    """
    if interface.get("@type") != "Interface":
        return None

    dtdl_id = interface.get("@id", "")
    entity_id = twin_id_from_dtmi(dtdl_id)
    if not entity_id:
        return None

    display_name = _display_name_text(interface.get("displayName"))
    return Entity(
        id=entity_id,
        category=derive_category(display_name),
        contents=interface.get("contents") or [],
        dtdl_id=dtdl_id,
        display_name=display_name,
        raw=interface,
    )


def entity_from_simple(record: dict[str, Any]) -> Entity:
    """Build an Entity from the plain ``{"id", "type", "contents"}`` form."""
    display_name = record.get("displayName") or record.get("display_name")
    return Entity(
        id=record["id"],
        category=record.get("type") or record.get("category") or derive_category(display_name),
        contents=record.get("contents") or [],
        dtdl_id=record.get("dtdlId") or record.get("dtdl_id") or "",
        display_name=display_name,
        raw=record,
    )


def entities_from_document(data: Any) -> list[Entity]:
    """
    Convert a parsed DTDL document into entities.

    Accepts a list of interfaces, a list of plain entity records, or an
    object with an ``entities`` list.
    """
    if isinstance(data, dict) and isinstance(data.get("entities"), list):
        items = data["entities"]
    elif isinstance(data, list):
        items = data
    else:
        raise ValueError("Invalid DTDL document: expected a list or an 'entities' list")

    entities: list[Entity] = []
    skipped = 0
    for item in items:
        if "@id" in item and "@type" in item:
            entity = entity_from_interface(item)
            if entity is None:
                skipped += 1
                continue
            entities.append(entity)
        elif "id" in item:
            entities.append(entity_from_simple(item))
        else:
            skipped += 1

    logger.debug("DTDL document converted", entity_count=len(entities), skipped=skipped)
    return entities
