"""Tests for the twin model and DTDL conversion."""

import pytest

from minetwin.twin.dtdl import (
    derive_category,
    entities_from_document,
    entity_from_interface,
    twin_id_from_dtmi,
)
from minetwin.twin.model import Entity, TwinModel, content_kind, schema_to_type


class TestDtdlConversion:
    """Test DTDL interfaces to entities."""

    def test_twin_interfaces_become_entities(self, dtdl_document):
        """Test that only twin interfaces are converted, in order."""
        entities = entities_from_document(dtdl_document)

        assert [e.id for e in entities] == [
            "Haul_Truck_CAT_777_2",
            "Haul_Truck_CAT_777_20",
            "Truck_56",
            "Mine_Layout",
            "Path_A",
            "Path_B",
        ]

    def test_categories_from_display_name(self, dtdl_document):
        """Test category derivation, including localized display names."""
        entities = {e.id: e for e in entities_from_document(dtdl_document)}

        assert entities["Truck_56"].category == "HaulTruck"
        assert entities["Mine_Layout"].category == "MineLayout"
        assert entities["Path_A"].category == "HaulRoute"

    def test_derive_category_fallback(self):
        """Test unknown display names are squashed into a category."""
        assert derive_category("Primary Crusher") == "PrimaryCrusher"
        assert derive_category(None) == "Unknown"

    def test_twin_id_from_dtmi(self):
        """Test extracting the twin name from a DTMI."""
        assert twin_id_from_dtmi("dtmi:mine:HaulTruck;1__twin_Truck_56") == "Truck_56"
        assert twin_id_from_dtmi("dtmi:mine:HaulTruck;1") is None

    def test_non_interface_skipped(self):
        """Test non-interface items are not entities."""
        assert entity_from_interface({"@id": "dtmi:x;1__twin_A", "@type": "Property"}) is None

    def test_simple_records(self):
        """Test the plain entity record form."""
        entities = entities_from_document(
            {"entities": [{"id": "Loader_994", "type": "Loader", "contents": []}]}
        )

        assert entities[0].id == "Loader_994"
        assert entities[0].category == "Loader"

    def test_invalid_document(self):
        """Test a scalar document is rejected."""
        with pytest.raises(ValueError):
            entities_from_document("not a document")


class TestEntity:
    """Test entity derived indexes."""

    def test_property_cache(self, model):
        """Test property values and types come from the content list."""
        truck = model.get_entity("Truck_56")

        assert truck.properties["maxSpeedKph"].value == 40.0
        assert truck.properties["maxSpeedKph"].type == "number"
        assert truck.properties["maxSpeedKph"].constraints.max == 100.0
        assert truck.properties["serialNumber"].editable is False
        assert truck.properties["fleetTag"].constraints.read_only is True

    def test_initial_value_used_when_no_value(self, model):
        """Test initialValue backs the cache when no value is set."""
        layout = model.get_entity("Mine_Layout")

        assert layout.properties["focusSnapDistanceMeters"].value == 150

    def test_relationship_targets_resolved_to_ids(self, model):
        """Test DTMI relationship targets map to entity ids."""
        truck = model.get_entity("Truck_56")

        assert truck.relationships == {"assignedRoute": "Path_A"}

    def test_telemetry_definitions(self, model):
        """Test telemetry content items are listed separately."""
        truck = model.get_entity("Truck_56")

        assert [t["name"] for t in truck.telemetry_definitions] == ["speedMph"]
        assert "speedMph" not in truck.properties

    def test_record_round_trip(self, model):
        """Test persistence record form rebuilds an equivalent entity."""
        truck = model.get_entity("Truck_56")
        restored = Entity.from_record(truck.to_record())

        assert restored.id == truck.id
        assert restored.category == truck.category
        assert restored.contents == truck.contents

    def test_content_kind_with_list_type(self):
        """Test DTDL semantic types given as a list."""
        assert content_kind({"@type": ["Property", "Distance"]}) == "Property"
        assert content_kind({"@type": ["Distance"]}) is None

    def test_schema_to_type(self):
        """Test DTDL schema mapping."""
        assert schema_to_type("double") == "number"
        assert schema_to_type("boolean") == "boolean"
        assert schema_to_type({"@type": "Enum"}) == "string"
        assert schema_to_type({"@type": "Array"}) == "array"


class TestTwinModel:
    """Test the twin model registry."""

    def test_lookup(self, model):
        """Test entity lookups by id and category."""
        assert len(model) == 6
        assert "Truck_56" in model
        assert model.get_entity("Missing") is None
        assert [e.id for e in model.get_entities_by_category("HaulRoute")] == ["Path_A", "Path_B"]

    def test_related_entities(self, model):
        """Test following relationships to entities."""
        related = model.get_related_entities("Truck_56", "assignedRoute")

        assert [e.id for e in related] == ["Path_A"]
        assert model.get_related_entities("Missing") == []

    def test_update_writes_value_and_keeps_initial_value(self, model):
        """Test an update overwrites only the current value."""
        result = model.update_property("Mine_Layout", "focusSnapDistanceMeters", 300)

        assert result.success
        assert result.old_value == 150
        assert result.new_value == 300
        item = model.get_entity("Mine_Layout").find_property_item("focusSnapDistanceMeters")
        assert item["value"] == 300
        assert item["initialValue"] == 150
        assert model.get_property_value("Mine_Layout", "focusSnapDistanceMeters") == 300

    def test_update_bumps_version(self, model):
        """Test each successful write increments the entity version."""
        entity = model.get_entity("Truck_56")
        model.update_property("Truck_56", "maxSpeedKph", 45.0)
        model.update_property("Truck_56", "maxSpeedKph", 50.0)

        assert entity.version == 2

    def test_update_version_mismatch(self, model):
        """Test a stale expected version is refused without writing."""
        result = model.update_property("Truck_56", "maxSpeedKph", 45.0, expected_version=3)

        assert not result.success
        assert "changed concurrently" in result.error
        assert model.get_property_value("Truck_56", "maxSpeedKph") == 40.0

    def test_update_unknown_entity(self, model):
        """Test updating a missing entity fails."""
        result = model.update_property("Missing", "maxSpeedKph", 1)

        assert not result.success
        assert result.error == "Entity 'Missing' not found"

    def test_update_unknown_property(self, model):
        """Test updating a missing property fails."""
        result = model.update_property("Truck_56", "wheelCount", 6)

        assert not result.success
        assert result.error == "Property 'wheelCount' does not exist on entity 'Truck_56'"

    def test_update_diverged_cache_warns(self, model):
        """Test a cache entry without a content item still updates, with a warning."""
        entity = model.get_entity("Truck_56")
        cached = entity.properties
        entity.contents = [i for i in entity.contents if i.get("name") != "operatingMode"]

        result = model.update_property("Truck_56", "operatingMode", "Idle")

        assert result.success
        assert result.warning is not None
        assert cached["operatingMode"].value == "Idle"

    def test_lock_is_per_entity(self, model):
        """Test write locks are reused per entity and distinct across entities."""
        assert model.lock_for("Truck_56") is model.lock_for("Truck_56")
        assert model.lock_for("Truck_56") is not model.lock_for("Mine_Layout")

    def test_empty_model(self):
        """Test an empty model."""
        model = TwinModel()

        assert len(model) == 0
        assert model.all_entities() == []
