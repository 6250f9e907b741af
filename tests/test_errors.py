"""Tests for domain errors and error payloads."""

import json

from minetwin.common.errors import (
    DomainError,
    EntityNotFoundError,
    ErrorCode,
    ExecutorNotFoundError,
    IntentParseError,
    InvalidValueError,
    PropertyNotEditableError,
    PropertyNotFoundError,
    ValidationError,
    error_body,
)


class TestDomainErrors:
    """Test error codes and messages."""

    def test_entity_not_found(self):
        error = EntityNotFoundError("excavator 9")

        assert error.code == ErrorCode.ENTITY_NOT_FOUND
        assert error.message == "Entity 'excavator 9' not found"
        assert error.details == {"reference": "excavator 9"}

    def test_property_not_found_with_suggestions(self):
        """Test suggestions are appended to the message and details."""
        error = PropertyNotFoundError("spd", "Truck_56", ["speedMph", "maxSpeedKph"])

        assert error.message == (
            "Property 'spd' not found on entity 'Truck_56'. Did you mean: speedMph, maxSpeedKph"
        )
        assert error.to_dict()["error"]["details"]["suggestions"] == ["speedMph", "maxSpeedKph"]

    def test_property_not_found_custom_message(self):
        error = PropertyNotFoundError("spd", "Truck_56", message="No such thing")

        assert str(error) == "No such thing"
        assert "suggestions" not in error.details

    def test_not_editable_and_invalid_value(self):
        not_editable = PropertyNotEditableError("serialNumber")
        invalid = InvalidValueError("maxSpeedKph", -5, "Value -5 is below minimum 0")

        assert not_editable.code == ErrorCode.PROPERTY_NOT_EDITABLE
        assert invalid.code == ErrorCode.INVALID_VALUE
        assert invalid.message == (
            "Invalid value '-5' for property 'maxSpeedKph': Value -5 is below minimum 0"
        )

    def test_validation_error_has_no_details(self):
        payload = ValidationError("Bad request").to_dict()

        assert payload == {"error": {"code": "VALIDATION_ERROR", "message": "Bad request"}}

    def test_parse_and_executor_errors_are_not_domain_errors(self):
        """Test parse and configuration failures sit outside the domain hierarchy."""
        assert not issubclass(IntentParseError, DomainError)
        assert issubclass(ExecutorNotFoundError, RuntimeError)
        assert IntentParseError("x").code == "PARSE_ERROR"
        assert ExecutorNotFoundError.code == "INTERNAL_ERROR"


class TestErrorBody:
    """Test the JSON error envelope."""

    def test_domain_error_to_dict(self):
        assert EntityNotFoundError("excavator 9").to_dict() == {
            "error": {
                "code": "ENTITY_NOT_FOUND",
                "message": "Entity 'excavator 9' not found",
                "details": {"reference": "excavator 9"},
            }
        }

    def test_error_body_without_details(self):
        assert error_body(ErrorCode.INTERNAL_ERROR, "boom") == {
            "error": {"code": "INTERNAL_ERROR", "message": "boom"}
        }
