"""Intent parser boundary."""

from abc import ABC, abstractmethod

from minetwin.engine.intents import CommandIntent, QueryIntent


class IntentParser(ABC):
    """Turns operator text into structured intents."""

    @abstractmethod
    async def parse_query(self, text: str) -> QueryIntent:
        """
        Parse a question.

        Raises:
            IntentParseError: Text is not a recognizable question
        """
        pass

    @abstractmethod
    async def parse_command(self, text: str) -> CommandIntent:
        """
        Parse a write command.

        Raises:
            IntentParseError: Text is not a recognizable command
        """
        pass
