"""Rules-based intent parser for operation without a language model."""

import re
from collections.abc import Callable
from typing import Any

from minetwin.common.errors import IntentParseError
from minetwin.common.logging import get_logger
from minetwin.engine.entity_resolver import TYPE_WORD_CATEGORIES
from minetwin.engine.intents import (
    BulkFilter,
    CommandIntent,
    QueryIntent,
    QuestionType,
    RelationshipFilter,
    TimeWindow,
)
from minetwin.parsing.base import IntentParser

logger = get_logger(__name__)


# Common prefixes to strip from operator messages
STRIP_PREFIXES = [
    r"^(?:please\s+)?(?:can\s+you\s+)?(?:could\s+you\s+)?(?:would\s+you\s+)?",
    r"^(?:tell\s+me\s+)?",
    r"^(?:i\s+want\s+(?:you\s+)?to\s+)?",
    r"^(?:i\s+need\s+(?:you\s+)?to\s+)?",
]

UNIT_MINUTES = {"minute": 1, "min": 1, "hour": 60, "hr": 60, "day": 1440}

WINDOW_PATTERN = re.compile(
    r"\s*(?:in|over|during|for|within)?\s*(?:the\s+)?(?:last|past|previous)\s+"
    r"(?:(\d+)\s*)?(minute|min|hour|hr|day)s?\b",
    re.IGNORECASE,
)

# Entity text runs until the window phrase or the end of the message
_ENTITY = r"(?P<entity>.+?)"


def normalize_message(msg: str) -> str:
    """Strip common politeness prefixes and trailing punctuation, keeping case."""
    result = msg.strip()
    for prefix in STRIP_PREFIXES:
        result = re.sub(prefix, "", result, flags=re.IGNORECASE)
    return result.strip().rstrip("?.!").strip()


def extract_window(text: str, default_minutes: int) -> tuple[TimeWindow, str]:
    """
    Pull a look-back window out of a message.

    >>> extract_window("average speed of truck 56 in the last 2 hours", 60)[0].minutes
    120
    """
    match = WINDOW_PATTERN.search(text)
    if not match:
        return TimeWindow(minutes=default_minutes), text
    amount = int(match.group(1)) if match.group(1) else 1
    minutes = amount * UNIT_MINUTES[match.group(2).lower()]
    remainder = (text[: match.start()] + text[match.end():]).strip()
    return TimeWindow(minutes=minutes), remainder


def parse_value(raw: str) -> Any:
    """
    Interpret a command value.

    >>> parse_value("300 meters"), parse_value("true"), parse_value("'Idle'")
    (300, True, 'Idle')
    """
    text = raw.strip().strip("'\"")
    lowered = text.lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    number = re.match(r"^-?\d+(?:\.\d+)?(?=\s|$)", text)
    if number:
        token = number.group(0)
        return float(token) if "." in token else int(token)
    return text


def category_from_plural(word: str) -> str | None:
    singular = word.lower()
    if singular.endswith("s"):
        singular = singular[:-1]
    return TYPE_WORD_CATEGORIES.get(singular)


def bulk_filter_for(target: str) -> BulkFilter | None:
    """
    Derive a bulk filter from references like "all trucks" or
    "all trucks with assignedRoute Route_A".
    """
    match = re.match(
        r"^all\s+(?P<type>\w+)(?:\s+(?:with|where)\s+(?P<rel>\w+)\s+(?:is\s+|=\s*)?(?P<target>\S+))?$",
        target.strip(),
        re.IGNORECASE,
    )
    if not match:
        return None
    relationship = None
    if match.group("rel"):
        relationship = RelationshipFilter(name=match.group("rel"), target_id=match.group("target"))
    category = category_from_plural(match.group("type"))
    if category is None and relationship is None:
        return None
    return BulkFilter(type=category, relationship=relationship)


QueryExtractor = Callable[[re.Match[str]], dict[str, Any]]


class RulesIntentParser(IntentParser):
    """
    Pattern-matching parser for common operator phrasings.

    Supports:
    - average / maximum / minimum / current speed
    - trip counts (on a path, or from one path to another)
    - route utilization
    - "what is the <property> of <entity>" and relationship lookups
    - "set the <property> of <entity> to <value>" commands, including "all ..."
    """

    QUERY_PATTERNS: list[tuple[str, QuestionType, QueryExtractor]] = [
        (
            rf"how\s+many\s+trips\s+(?:did|has|have)\s+{_ENTITY}\s+(?:made|make|done|do|completed|complete)"
            r"(?:\s+from\s+(?P<source>\S+)\s+to\s+(?P<destination>\S+)|\s+on\s+(?P<path>\S+))?$",
            QuestionType.TRIP_COUNT,
            lambda m: {
                "target_entity": m.group("entity"),
                "source_path": m.group("source") or m.group("path"),
                "destination_path": m.group("destination"),
            },
        ),
        (
            r"(?:what\s+(?:is|was)\s+(?:the\s+)?)?(?:route\s+|path\s+)?utili[sz]ation\s+(?:of|for|on)\s+"
            r"(?:route\s+|path\s+)?(?P<path>\S+)$",
            QuestionType.ROUTE_UTILIZATION,
            lambda m: {"target_entity": "ALL", "source_path": m.group("path")},
        ),
        (
            rf"(?:what\s+(?:is|was)\s+(?:the\s+)?)?(?:average|avg|mean)\s+speed\s+(?:of|for)\s+{_ENTITY}$",
            QuestionType.AVERAGE_SPEED,
            lambda m: {"target_entity": m.group("entity")},
        ),
        (
            rf"(?:what\s+(?:is|was)\s+(?:the\s+)?)?(?:max(?:imum)?|highest|top)\s+speed\s+(?:of|for)\s+{_ENTITY}$",
            QuestionType.MAX_SPEED,
            lambda m: {"target_entity": m.group("entity")},
        ),
        (
            rf"(?:what\s+(?:is|was)\s+(?:the\s+)?)?(?:min(?:imum)?|lowest)\s+speed\s+(?:of|for)\s+{_ENTITY}$",
            QuestionType.MIN_SPEED,
            lambda m: {"target_entity": m.group("entity")},
        ),
        (
            rf"(?:(?:what\s+(?:is|was)\s+(?:the\s+)?)?current\s+speed\s+(?:of|for)\s+|how\s+fast\s+is\s+){_ENTITY}"
            r"(?:\s+(?:going|moving|driving))?$",
            QuestionType.CURRENT_SPEED,
            lambda m: {"target_entity": m.group("entity")},
        ),
        (
            rf"(?:which|what)\s+(?P<rel>\w+)\s+is\s+{_ENTITY}\s+(?:assigned|attached|linked|connected)\s+to$",
            QuestionType.RELATIONSHIP,
            lambda m: {"target_entity": m.group("entity"), "property_name": m.group("rel")},
        ),
        (
            rf"(?:what\s+is\s+)?(?:the\s+)?(?P<rel>\w+)\s+relationship\s+(?:of|for)\s+{_ENTITY}$",
            QuestionType.RELATIONSHIP,
            lambda m: {"target_entity": m.group("entity"), "property_name": m.group("rel")},
        ),
        (
            rf"(?:what(?:'s|\s+is|\s+was)|show|get|read)\s+(?:me\s+)?(?:the\s+)?(?P<prop>.+?)\s+(?:of|for|on)\s+{_ENTITY}$",
            QuestionType.PROPERTY,
            lambda m: {"target_entity": m.group("entity"), "property_name": m.group("prop")},
        ),
    ]

    COMMAND_PATTERNS: list[tuple[str, Callable[[re.Match[str]], dict[str, Any]]]] = [
        # "set the snap distance of the mine layout to 300"
        (
            r"^(?P<action>set|update|change)\s+(?:the\s+)?(?P<prop>.+?)\s+(?:of|for|on)\s+"
            r"(?P<entity>.+?)\s+to\s+(?P<value>.+)$",
            lambda m: {
                "action": m.group("action").lower(),
                "target_entity": m.group("entity"),
                "property": m.group("prop"),
                "value": m.group("value"),
            },
        ),
        # "set truck 56's speed limit to 40"
        (
            r"^(?P<action>set|update|change)\s+(?P<entity>.+?)(?:'s|s')\s+(?P<prop>.+?)\s+to\s+(?P<value>.+)$",
            lambda m: {
                "action": m.group("action").lower(),
                "target_entity": m.group("entity"),
                "property": m.group("prop"),
                "value": m.group("value"),
            },
        ),
    ]

    def __init__(self, default_window_minutes: int = 60):
        self._default_window = default_window_minutes

    async def parse_query(self, text: str) -> QueryIntent:
        normalized = normalize_message(text)
        window, remainder = extract_window(normalized, self._default_window)

        for pattern, question_type, extractor in self.QUERY_PATTERNS:
            match = re.search(pattern, remainder, re.IGNORECASE)
            if not match:
                continue
            fields = extractor(match)
            target = re.sub(r"^the\s+", "", fields.pop("target_entity").strip(), flags=re.IGNORECASE)
            logger.debug(
                "Query parsed",
                question_type=question_type.value,
                target=target,
                window_minutes=window.minutes,
            )
            return QueryIntent(
                question_type=question_type,
                target_entity=target,
                time_window=window,
                **fields,
            )

        raise IntentParseError(
            "I couldn't understand that question. Try 'average speed of truck 56 in the "
            "last hour', 'how many trips did truck 56 make from path_1 to path_2' or "
            "'what is the status of truck 56'.",
            text=text,
        )

    async def parse_command(self, text: str) -> CommandIntent:
        normalized = normalize_message(text)

        for pattern, extractor in self.COMMAND_PATTERNS:
            match = re.search(pattern, normalized, re.IGNORECASE)
            if not match:
                continue
            fields = extractor(match)
            target = re.sub(r"^the\s+", "", fields["target_entity"].strip(), flags=re.IGNORECASE)
            bulk = bulk_filter_for(target)
            intent = CommandIntent(
                action=fields["action"],
                target_entity=target,
                property=fields["property"].strip(),
                value=parse_value(fields["value"]),
                scope="bulk" if target.lower().startswith("all") else None,
                filter=bulk,
            )
            logger.debug(
                "Command parsed",
                target=intent.target_entity,
                property=intent.property,
                scope=intent.scope,
            )
            return intent

        raise IntentParseError(
            "I couldn't understand that command. Try 'set the speed limit of truck 56 to 40' "
            "or 'set the snap distance of the mine layout to 300'.",
            text=text,
        )
