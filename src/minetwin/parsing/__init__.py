"""Intent parsing - operator text to structured intents."""

from minetwin.parsing.base import IntentParser
from minetwin.parsing.rules import RulesIntentParser

__all__ = ["IntentParser", "RulesIntentParser"]
