"""Command application - validated, serialized, persisted property writes."""

import time
from dataclasses import dataclass, field
from typing import Any

from minetwin.common.errors import DomainError
from minetwin.common.logging import get_logger
from minetwin.common.metrics import record_command, record_update
from minetwin.common.tracing import span
from minetwin.engine.intents import CommandIntent, ResolvedCommand
from minetwin.engine.schema_resolver import SchemaResolver
from minetwin.engine.validator import UpdateValidator
from minetwin.parsing.base import IntentParser
from minetwin.stores.base import TwinRepository
from minetwin.twin.model import TwinModel, UpdateResult

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Per-entity outcome of a command; bulk commands can partially succeed."""

    success: bool
    updates: list[UpdateResult] = field(default_factory=list)
    message: str = ""
    errors: list[str] = field(default_factory=list)
    rejections: list[DomainError] = field(default_factory=list, repr=False)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "updates": [u.to_dict() for u in self.updates],
            "message": self.message,
        }
        if self.errors:
            data["errors"] = list(self.errors)
        return data


class CommandApplier:
    """
    Applies one property write to the twin model and persists it.

    Writes to the same entity are serialized. A failed save marks the result
    failed but leaves the in-memory change in place.
    """

    def __init__(self, model: TwinModel, repository: TwinRepository):
        self._model = model
        self._repository = repository

    async def update_property(
        self,
        entity_id: str,
        prop: str,
        value: Any,
        expected_version: int | None = None,
    ) -> UpdateResult:
        async with self._model.lock_for(entity_id):
            result = self._model.update_property(entity_id, prop, value, expected_version)
            if not result.success:
                return result

            entity = self._model.get_entity(entity_id)
            try:
                await self._repository.save(entity)
            except Exception as e:
                logger.error(
                    "Failed to persist update",
                    entity_id=entity_id,
                    property=prop,
                    error=str(e),
                )
                result.success = False
                result.error = f"Database persistence failed: {e}"
                return result

        logger.info(
            "Property updated",
            entity_id=entity_id,
            property=prop,
            old_value=result.old_value,
            new_value=result.new_value,
        )
        return result


def summarize(updates: list[UpdateResult], rejections: list[str]) -> tuple[str, list[str]]:
    """Human-readable summary plus the combined error list."""
    successful = [u for u in updates if u.success]
    failed = [u for u in updates if not u.success]

    message = ""
    if len(successful) == 1:
        update = successful[0]
        message = (
            f"Updated {update.entity_id}.{update.property}: "
            f"{update.old_value} → {update.new_value}"
        )
    elif successful:
        message = f"Successfully updated {len(successful)} entities"

    errors = [u.error or "Unknown error" for u in failed] + list(rejections)
    if errors:
        suffix = "" if len(errors) == 1 else "s"
        error_text = f"{len(errors)} error{suffix}: {'; '.join(errors)}"
        message = f"{message}\n{error_text}" if message else error_text
    return message, errors


class CommandService:
    """Resolve, validate and apply write commands."""

    def __init__(
        self,
        resolver: SchemaResolver,
        validator: UpdateValidator,
        applier: CommandApplier,
        parser: IntentParser | None = None,
    ):
        self._resolver = resolver
        self._validator = validator
        self._applier = applier
        self._parser = parser

    async def execute_command(self, intent: CommandIntent) -> CommandResult:
        """
        Execute a structured command.

        Entities that fail validation are skipped and reported; the rest are
        applied.

        Raises:
            DomainError: Target or property could not be grounded
        """
        start = time.perf_counter()
        try:
            with span(
                "command.execute",
                {"command.target": intent.target_entity, "command.property": intent.property},
            ):
                resolved = self._resolver.resolve_command(intent)
                return await self._apply(resolved)
        finally:
            record_command(time.perf_counter() - start)

    async def run(self, text: str) -> CommandResult:
        """
        Parse free text into a command and execute it.

        Raises:
            IntentParseError: Text is not a recognizable command
        """
        if self._parser is None:
            raise RuntimeError("CommandService has no intent parser configured")
        intent = await self._parser.parse_command(text)
        return await self.execute_command(intent)

    async def _apply(self, resolved: ResolvedCommand) -> CommandResult:
        prop = resolved.property.name
        validations = await self._validator.validate_bulk(
            resolved.target_entities, prop, resolved.value
        )

        rejection_messages: list[str] = []
        rejections: list[DomainError] = []
        updates: list[UpdateResult] = []
        for entity, validation in zip(resolved.target_entities, validations):
            if not validation.valid:
                rejection_messages.append(f"{entity.id}: {validation.error}")
                rejections.append(validation.to_error(entity.id, prop, resolved.value))
                record_update("rejected")
                continue

            result = await self._applier.update_property(entity.id, prop, resolved.value)
            record_update("applied" if result.success else "failed")
            updates.append(result)

        message, errors = summarize(updates, rejection_messages)
        success = any(u.success for u in updates)
        logger.info(
            "Command executed",
            property=prop,
            scope=resolved.scope,
            applied=sum(1 for u in updates if u.success),
            failed=sum(1 for u in updates if not u.success),
            rejected=len(rejections),
        )
        return CommandResult(
            success=success,
            updates=updates,
            message=message,
            errors=errors,
            rejections=rejections,
        )
