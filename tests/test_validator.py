"""Tests for update validation."""

import pytest

from minetwin.common.errors import (
    InvalidValueError,
    PropertyNotEditableError,
    PropertyNotFoundError,
)
from minetwin.engine.validator import (
    UpdateValidator,
    ValidationResult,
    matches_type,
    value_type_name,
)
from minetwin.stores.base import PropertyConstraint
from minetwin.stores.memory import InMemoryConstraintStore


@pytest.fixture
def validator(constraint_store) -> UpdateValidator:
    return UpdateValidator(constraint_store)


class TestTypeHelpers:
    """Test runtime type checks."""

    def test_booleans_are_not_numbers(self):
        """Test bool is rejected where a number is expected."""
        assert not matches_type("number", True)
        assert matches_type("number", 3)
        assert matches_type("number", 2.5)
        assert matches_type("boolean", False)
        assert not matches_type("string", 3)

    def test_unknown_types_accept_anything(self):
        """Test complex schema types are not type-checked."""
        assert matches_type("object", {"a": 1})

    def test_value_type_name(self):
        """Test type names used in messages."""
        assert value_type_name(True) == "boolean"
        assert value_type_name(1.5) == "number"
        assert value_type_name("x") == "string"
        assert value_type_name(None) == "null"


class TestRules:
    """Test each validation rule in order."""

    @pytest.mark.asyncio
    async def test_valid_update(self, validator, model):
        """Test a value inside the constraint passes."""
        result = await validator.validate(
            model.get_entity("Mine_Layout"), "focusSnapDistanceMeters", 300
        )

        assert result == ValidationResult.ok()

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    @pytest.mark.asyncio
    async def test_non_finite_number_rejected(self, validator, model, value):
        """Test NaN and infinities never satisfy a numeric range."""
        result = await validator.validate(
            model.get_entity("Mine_Layout"), "focusSnapDistanceMeters", value
        )

        assert not result.valid
        assert result.rule == "finite"
        assert result.error_class is InvalidValueError

    @pytest.mark.asyncio
    async def test_missing_property(self, validator, model):
        """Test an unknown property is rejected first."""
        result = await validator.validate(model.get_entity("Truck_56"), "wheelCount", 6)

        assert not result.valid
        assert result.rule == "exists"
        assert result.error == "Property 'wheelCount' does not exist on entity 'Truck_56'"

    @pytest.mark.asyncio
    async def test_read_only(self, validator, model):
        """Test a property declared read-only is rejected."""
        result = await validator.validate(model.get_entity("Truck_56"), "fleetTag", "south-pit")

        assert result.rule == "read_only"
        assert result.error == "Property 'fleetTag' is read-only"

    @pytest.mark.asyncio
    async def test_not_writable_without_constraint(self, validator, model):
        """Test the schema's writable flag applies when no constraint row exists."""
        result = await validator.validate(model.get_entity("Truck_56"), "serialNumber", "SN-1")

        assert result.rule == "editable"
        assert result.error == "Property 'serialNumber' is not editable"

    @pytest.mark.asyncio
    async def test_constraint_row_is_authoritative(self, model):
        """Test an explicit editable constraint overrides the schema's writable flag."""
        store = InMemoryConstraintStore(
            [PropertyConstraint(entity_type="HaulTruck", property="serialNumber", editable=True)]
        )

        result = await UpdateValidator(store).validate(
            model.get_entity("Truck_56"), "serialNumber", "SN-1"
        )

        assert result.valid

    @pytest.mark.asyncio
    async def test_constraint_not_editable(self, validator, model):
        """Test a constraint row can lock an otherwise writable property."""
        result = await validator.validate(model.get_entity("Mine_Layout"), "builderIsPhysical", False)

        assert result.rule == "editable"

    @pytest.mark.asyncio
    async def test_type_mismatch(self, validator, model):
        """Test a string for a numeric property."""
        result = await validator.validate(
            model.get_entity("Mine_Layout"), "focusSnapDistanceMeters", "far"
        )

        assert result.rule == "type"
        assert result.error == "Property 'focusSnapDistanceMeters' must be a number, got string"

    @pytest.mark.asyncio
    async def test_boolean_for_number(self, validator, model):
        """Test a boolean is not accepted as a number."""
        result = await validator.validate(
            model.get_entity("Mine_Layout"), "focusSnapDistanceMeters", True
        )

        assert result.rule == "type"
        assert result.error.endswith("got boolean")

    @pytest.mark.asyncio
    async def test_below_minimum(self, model):
        """Test the constraint minimum is inclusive and reported."""
        store = InMemoryConstraintStore(
            [
                PropertyConstraint(
                    entity_type="MineLayout",
                    property="focusSnapDistanceMeters",
                    min_value=0,
                    max_value=100,
                )
            ]
        )
        validator = UpdateValidator(store)
        layout = model.get_entity("Mine_Layout")

        below = await validator.validate(layout, "focusSnapDistanceMeters", -10)
        at_min = await validator.validate(layout, "focusSnapDistanceMeters", 0)

        assert below.rule == "minimum"
        assert below.error == "Value -10 is below minimum 0"
        assert at_min.valid

    @pytest.mark.asyncio
    async def test_maximum_boundary(self, model):
        """Test the constraint maximum is inclusive."""
        store = InMemoryConstraintStore(
            [
                PropertyConstraint(
                    entity_type="MineLayout",
                    property="focusSnapDistanceMeters",
                    min_value=0,
                    max_value=100,
                )
            ]
        )
        validator = UpdateValidator(store)
        layout = model.get_entity("Mine_Layout")

        at_max = await validator.validate(layout, "focusSnapDistanceMeters", 100)
        above = await validator.validate(layout, "focusSnapDistanceMeters", 100.0001)

        assert at_max.valid
        assert above.rule == "maximum"
        assert above.error == "Value 100.0001 is above maximum 100"

    @pytest.mark.asyncio
    async def test_declared_range_without_constraint_row(self, validator, model):
        """Test the property's own minimum and maximum apply without a row."""
        result = await validator.validate(model.get_entity("Truck_56"), "maxSpeedKph", 120)

        assert result.rule == "maximum"
        assert result.error == "Value 120 is above maximum 100"

    @pytest.mark.asyncio
    async def test_declared_allowed_values(self, validator, model):
        """Test the property's own allowed values."""
        truck = model.get_entity("Truck_56")

        rejected = await validator.validate(truck, "operatingMode", "Racing")
        accepted = await validator.validate(truck, "operatingMode", "Idle")

        assert rejected.rule == "allowed_values"
        assert rejected.error == "Value 'Racing' is not in allowed values: Hauling, Idle, Maintenance"
        assert accepted.valid

    @pytest.mark.asyncio
    async def test_constraint_allowed_values_take_precedence(self, model):
        """Test a constraint row's allowed values replace the declared list."""
        store = InMemoryConstraintStore(
            [
                PropertyConstraint(
                    entity_type="HaulTruck",
                    property="operatingMode",
                    allowed_values=["Hauling", "Idle"],
                )
            ]
        )

        result = await UpdateValidator(store).validate(
            model.get_entity("Truck_56"), "operatingMode", "Maintenance"
        )

        assert result.rule == "allowed_values"


class TestBulkAndErrors:
    """Test bulk validation and error conversion."""

    @pytest.mark.asyncio
    async def test_validate_bulk_keeps_order(self, validator, model):
        """Test per-entity results come back in input order."""
        trucks = model.get_entities_by_category("HaulTruck")

        results = await validator.validate_bulk(trucks, "maxSpeedKph", 50)

        assert [r.valid for r in results] == [True, False, True]
        assert results[1].error == "Value 50 is above maximum 40"

    @pytest.mark.parametrize(
        ("error_class", "expected"),
        [
            (PropertyNotFoundError, PropertyNotFoundError),
            (PropertyNotEditableError, PropertyNotEditableError),
            (InvalidValueError, InvalidValueError),
            (None, InvalidValueError),
        ],
    )
    def test_to_error(self, error_class, expected):
        """Test rejections convert to typed domain errors."""
        result = ValidationResult(valid=False, error="nope", rule="x", error_class=error_class)

        error = result.to_error("Truck_56", "maxSpeedKph", 5)

        assert isinstance(error, expected)
        assert "nope" in error.message
