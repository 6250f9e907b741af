"""Entity Resolver - grounds free-text entity references to twin entities."""

import re
from collections.abc import Callable

from minetwin.common.errors import EntityNotFoundError
from minetwin.common.logging import get_logger
from minetwin.common.metrics import record_entity_resolution
from minetwin.engine.intents import BulkFilter
from minetwin.twin.model import Entity, TwinModel

logger = get_logger(__name__)

# "haul truck cat 777 2", "loader 994", "route a"
TYPED_REFERENCE_PATTERN = re.compile(
    r"^(haul[\s_]*)?(truck|loader|route|stockpile|mill|layout)[\s_]*(cat[\s_]*)?(\d+|[a-z]+)([\s_]*(\d+))?$",
    re.IGNORECASE,
)

TYPE_WORD_CATEGORIES: dict[str, str] = {
    "truck": "HaulTruck",
    "loader": "Loader",
    "route": "HaulRoute",
    "stockpile": "Stockpile",
    "mill": "Mill",
    "layout": "MineLayout",
}

_TOKEN_SPLIT = re.compile(r"[_\s]+")


def normalize_reference(reference: str) -> str:
    """
    Normalize an entity reference for matching.

    >>> normalize_reference("  Truck   56 ")
    'truck_56'
    """
    return re.sub(r"\s+", "_", reference.strip().lower())


def reference_tokens(normalized: str) -> list[str]:
    return [token for token in _TOKEN_SPLIT.split(normalized) if token]


def token_in_id(token: str, entity_id: str) -> bool:
    """
    Whether a reference token occurs in a lowercased entity id.

    Numeric tokens must not sit inside a longer digit run, so "2" does not
    match "777_20".

    >>> token_in_id("2", "haul_truck_cat_777_20"), token_in_id("12", "unit_12b")
    (False, True)
    """
    if token.isdigit():
        return re.search(rf"(?<!\d){token}(?!\d)", entity_id) is not None
    return token in entity_id


def category_for_type_word(word: str) -> str:
    word = word.lower()
    return TYPE_WORD_CATEGORIES.get(word, word[:1].upper() + word[1:])


class EntityResolver:
    """
    Resolves references like "truck 56", "Truck_56" or "haul truck 777 2".

    Stages run strict to loose; the first stage producing a match wins and,
    within a stage, the first entity in model insertion order wins.
    """

    def resolve(self, reference: str, model: TwinModel) -> Entity:
        """
        Resolve a single entity.

        Raises:
            EntityNotFoundError: No stage matched the reference
        """
        normalized = normalize_reference(reference)
        stages: list[tuple[str, Callable[[str, str, TwinModel], Entity | None]]] = [
            ("exact", self._match_exact),
            ("normalized", self._match_normalized),
            ("case_insensitive", self._match_case_insensitive),
            ("token_subset", self._match_token_subset),
            ("typed_identifier", self._match_typed_identifier),
            ("token_overlap", self._match_token_overlap),
        ]

        for stage, matcher in stages:
            entity = matcher(reference, normalized, model)
            if entity is not None:
                logger.debug(
                    "Entity resolved",
                    reference=reference,
                    entity_id=entity.id,
                    stage=stage,
                )
                record_entity_resolution(stage)
                return entity

        record_entity_resolution("not_found")
        logger.info("Entity reference unresolved", reference=reference)
        raise EntityNotFoundError(reference)

    def resolve_bulk(
        self,
        reference: str,
        model: TwinModel,
        filter: BulkFilter | None = None,
    ) -> list[Entity]:
        """
        Resolve a possibly-bulk reference.

        References mentioning "all" select every entity passing the filter
        (which may be an empty list); anything else resolves one entity.
        """
        if "all" not in reference.lower():
            return [self.resolve(reference, model)]

        entities = model.all_entities()
        if filter and filter.type:
            entities = [e for e in entities if e.category == filter.type]
        if filter and filter.relationship:
            rel = filter.relationship
            entities = [e for e in entities if e.relationships.get(rel.name) == rel.target_id]

        logger.debug("Bulk reference resolved", reference=reference, count=len(entities))
        return entities

    @staticmethod
    def _match_exact(reference: str, normalized: str, model: TwinModel) -> Entity | None:
        return model.get_entity(reference)

    @staticmethod
    def _match_normalized(reference: str, normalized: str, model: TwinModel) -> Entity | None:
        return model.get_entity(normalized)

    @staticmethod
    def _match_case_insensitive(
        reference: str, normalized: str, model: TwinModel
    ) -> Entity | None:
        for entity in model.all_entities():
            if entity.id.lower() == normalized:
                return entity
        return None

    @staticmethod
    def _match_token_subset(reference: str, normalized: str, model: TwinModel) -> Entity | None:
        tokens = reference_tokens(normalized)
        if not tokens:
            return None
        for entity in model.all_entities():
            entity_id = entity.id.lower()
            if all(token_in_id(token, entity_id) for token in tokens):
                return entity
        return None

    @staticmethod
    def _match_typed_identifier(
        reference: str, normalized: str, model: TwinModel
    ) -> Entity | None:
        match = TYPED_REFERENCE_PATTERN.match(normalized)
        if not match:
            return None

        category = category_for_type_word(match.group(2))
        identifier = match.group(4).lower()
        sub_identifier = match.group(6)

        for entity in model.get_entities_by_category(category):
            entity_id = entity.id.lower()
            if not token_in_id(identifier, entity_id):
                continue
            if sub_identifier and not token_in_id(sub_identifier, entity_id):
                continue
            return entity
        return None

    @staticmethod
    def _match_token_overlap(reference: str, normalized: str, model: TwinModel) -> Entity | None:
        key_tokens = [
            token
            for token in reference_tokens(normalized)
            if (len(token) > 1 and token.isdigit()) or re.search(r"[a-z]{2,}", token)
        ]
        if not key_tokens:
            return None

        required = min(2, len(key_tokens))
        for entity in model.all_entities():
            entity_id = entity.id.lower()
            hits = sum(1 for token in key_tokens if token_in_id(token, entity_id))
            if hits >= required:
                return entity
        return None
