"""Update Validator - layered checks applied before any property write."""

import asyncio
import math
from dataclasses import dataclass
from typing import Any

from minetwin.common.errors import (
    DomainError,
    InvalidValueError,
    PropertyNotEditableError,
    PropertyNotFoundError,
)
from minetwin.common.logging import get_logger
from minetwin.common.metrics import record_validation_rejection
from minetwin.stores.base import ConstraintStore
from minetwin.twin.model import Entity

logger = get_logger(__name__)


@dataclass
class ValidationResult:
    """Outcome of validating one update."""

    valid: bool
    error: str | None = None
    rule: str | None = None
    error_class: type[DomainError] | None = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    def to_error(self, entity_id: str, prop: str, value: Any) -> DomainError:
        """Typed domain error carrying the rejection reason verbatim."""
        if self.error_class is PropertyNotFoundError:
            return PropertyNotFoundError(prop, entity_id, message=self.error)
        if self.error_class is PropertyNotEditableError:
            return PropertyNotEditableError(prop, message=self.error)
        return InvalidValueError(prop, value, self.error or "invalid value")


def value_type_name(value: Any) -> str:
    """Type name as reported in type-mismatch messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return type(value).__name__


def matches_type(expected: str, value: Any) -> bool:
    """Strict runtime type check; booleans are never numbers."""
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "string":
        return isinstance(value, str)
    if expected == "boolean":
        return isinstance(value, bool)
    return True


def format_number(value: float) -> str:
    """
    >>> format_number(100.0), format_number(100.0001), format_number(-10)
    ('100', '100.0001', '-10')
    """
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class UpdateValidator:
    """
    Checks run in order; the first failure wins.

    1. property exists on the entity
    2. property is not declared read-only
    3. persisted constraint (or, without one, the schema) allows editing
    4. value type matches the declared type (numbers must be finite)
    5. numeric range
    6. allowed values
    """

    def __init__(self, constraints: ConstraintStore):
        self._constraints = constraints

    async def validate(self, entity: Entity, prop: str, value: Any) -> ValidationResult:
        result = await self._check(entity, prop, value)
        if not result.valid:
            record_validation_rejection(result.rule or "unknown")
            logger.info(
                "Update rejected",
                entity_id=entity.id,
                property=prop,
                rule=result.rule,
                reason=result.error,
            )
        return result

    async def validate_bulk(
        self,
        entities: list[Entity],
        prop: str,
        value: Any,
    ) -> list[ValidationResult]:
        """Validate the same update against several entities, results in order."""
        return list(await asyncio.gather(*(self.validate(e, prop, value) for e in entities)))

    async def _check(self, entity: Entity, prop: str, value: Any) -> ValidationResult:
        definition = entity.properties.get(prop)
        if definition is None:
            return ValidationResult(
                valid=False,
                error=f"Property '{prop}' does not exist on entity '{entity.id}'",
                rule="exists",
                error_class=PropertyNotFoundError,
            )

        declared = definition.constraints
        if declared is not None and declared.read_only:
            return ValidationResult(
                valid=False,
                error=f"Property '{prop}' is read-only",
                rule="read_only",
                error_class=PropertyNotEditableError,
            )

        constraint = await self._constraints.get_constraint(entity.category or "Unknown", prop)
        editable = constraint.is_editable if constraint is not None else definition.editable
        if not editable:
            return ValidationResult(
                valid=False,
                error=f"Property '{prop}' is not editable",
                rule="editable",
                error_class=PropertyNotEditableError,
            )

        expected = definition.type
        if not matches_type(expected, value):
            return ValidationResult(
                valid=False,
                error=f"Property '{prop}' must be a {expected}, got {value_type_name(value)}",
                rule="type",
                error_class=InvalidValueError,
            )

        if expected == "number" and isinstance(value, float) and not math.isfinite(value):
            return ValidationResult(
                valid=False,
                error=f"Value {value} is not a finite number",
                rule="finite",
                error_class=InvalidValueError,
            )

        if expected == "number":
            minimum = constraint.min_value if constraint is not None else None
            if minimum is None and declared is not None:
                minimum = declared.min
            if minimum is not None and value < minimum:
                return ValidationResult(
                    valid=False,
                    error=f"Value {format_number(value)} is below minimum {format_number(minimum)}",
                    rule="minimum",
                    error_class=InvalidValueError,
                )

            maximum = constraint.max_value if constraint is not None else None
            if maximum is None and declared is not None:
                maximum = declared.max
            if maximum is not None and value > maximum:
                return ValidationResult(
                    valid=False,
                    error=f"Value {format_number(value)} is above maximum {format_number(maximum)}",
                    rule="maximum",
                    error_class=InvalidValueError,
                )

        allowed = constraint.allowed_values if constraint is not None else None
        if allowed is None and declared is not None:
            allowed = declared.allowed_values
        if allowed and value not in allowed:
            return ValidationResult(
                valid=False,
                error=(
                    f"Value '{value}' is not in allowed values: "
                    f"{', '.join(str(v) for v in allowed)}"
                ),
                rule="allowed_values",
                error_class=InvalidValueError,
            )

        return ValidationResult.ok()
