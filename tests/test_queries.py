"""Tests for the query service and answer formatting."""

from unittest.mock import patch

import pytest

from minetwin.common.errors import EntityNotFoundError, ExecutorNotFoundError
from minetwin.engine.executors import NO_DATA, CountExecutor, QueryExecutorRegistry
from minetwin.engine.intents import QueryIntent, QuestionType, TimeWindow
from minetwin.engine.queries import QueryService, display_property_name
from minetwin.engine.schema_resolver import SchemaResolver


class TestDisplayNames:
    """Test property labels used in answers."""

    def test_camel_case_split(self):
        """Test camelCase names are spaced and capitalized."""
        assert display_property_name("fuelLevel") == "Fuel Level"
        assert display_property_name("headingDeg") == "Heading"

    def test_schema_speed_not_renamed(self):
        """Test schema speed properties keep their own name."""
        assert display_property_name("maxSpeedKph", telemetry=False) == "Max Speed Kph"


class TestAskQueries:
    """Test free-text questions end to end."""

    @pytest.mark.asyncio
    async def test_average_speed(self, engine):
        """Test average speed over the default window."""
        response = await engine.queries.ask("What is the average speed of truck 56?")

        assert response.entity_id == "Truck_56"
        assert response.value == pytest.approx(40.0 * 1.60934)
        assert response.units == "km/h"
        assert response.record_count == 7
        assert response.answer == (
            "Truck 56 had an average speed of 64.4 km/h over the past 60 minutes "
            "(based on 7 records)."
        )

    @pytest.mark.asyncio
    async def test_maximum_speed(self, engine):
        """Test maximum speed."""
        response = await engine.queries.ask("max speed of truck 56 in the last hour")

        assert response.value == pytest.approx(70.0 * 1.60934)
        assert "maximum speed" in response.answer

    @pytest.mark.asyncio
    async def test_short_window_excludes_older_records(self, engine):
        """Test the look-back window limits the records used."""
        response = await engine.queries.ask("minimum speed of truck 56 in the last 6 minutes")

        assert response.time_window_minutes == 6
        assert response.record_count == 2
        assert response.value == pytest.approx(60.0 * 1.60934)

    @pytest.mark.asyncio
    async def test_current_speed(self, engine):
        """Test current speed reads the latest record."""
        response = await engine.queries.ask("How fast is truck 56 going?")

        assert response.value == pytest.approx(70.0 * 1.60934)
        assert response.answer == "The Current Speed of Truck 56 is 112.7 km/h."

    @pytest.mark.asyncio
    async def test_telemetry_property(self, engine):
        """Test a telemetry property question."""
        response = await engine.queries.ask("what is the engine temp of truck 56")

        assert response.value == 196.0
        assert response.units == "°F"
        assert response.answer == "The Engine Temp of Truck 56 is 196.0 °F."

    @pytest.mark.asyncio
    async def test_schema_property(self, engine):
        """Test a schema property is answered from the twin model."""
        response = await engine.queries.ask("what is the snap distance of the mine layout")

        assert response.entity_id == "Mine_Layout"
        assert response.value == 150
        assert response.answer.startswith("The Focus Snap Distance of Mine Layout is 150")

    @pytest.mark.asyncio
    async def test_property_without_data(self, engine):
        """Test an empty telemetry window is answered, not raised."""
        response = await engine.queries.ask("what is the engine temp of truck 777 20")

        assert response.value == NO_DATA
        assert response.record_count == 0
        assert response.answer == (
            "Haul Truck CAT 777 20 has no recent data available for engineTemp."
        )

    @pytest.mark.asyncio
    async def test_trip_count_between_paths(self, engine):
        """Test counting trips from one path to another."""
        response = await engine.queries.ask(
            "how many trips did truck 56 make from Path_A to Path_B"
        )

        assert response.value == 2
        assert response.answer == (
            "Truck 56 made 2 trips from Path_A to Path_B over the past 60 minutes."
        )

    @pytest.mark.asyncio
    async def test_trip_count_on_path(self, engine):
        """Test counting entries into one path."""
        response = await engine.queries.ask("how many trips did truck 56 make on Path_A")

        assert response.value == 2
        assert "on Path_A" in response.answer

    @pytest.mark.asyncio
    async def test_route_utilization(self, engine):
        """Test fleet-wide route utilization keyed by path."""
        response = await engine.queries.ask("what is the utilization of route Path_A")

        assert response.entity_id == "ALL"
        assert response.record_count == 4
        assert response.value == pytest.approx(4 / 60 * 100)
        assert response.units == "%"
        assert response.answer.startswith("Route Path_A had a utilization of 6.7 %")

    @pytest.mark.asyncio
    async def test_relationship(self, engine):
        """Test following a relationship."""
        response = await engine.queries.ask("which route is truck 56 assigned to")

        assert response.value == "Path_A"
        assert response.answer == "The assignedRoute of Truck 56 is Path_A."


class TestExecuteQuery:
    """Test structured query execution."""

    @pytest.mark.asyncio
    async def test_current_value_window_widened(self, engine):
        """Test current-value questions use at least the minimum window."""
        response = await engine.queries.execute_query(
            QueryIntent(
                question_type=QuestionType.CURRENT_SPEED,
                target_entity="truck 56",
                time_window=TimeWindow(minutes=5),
            )
        )

        assert response.time_window_minutes == 30
        assert response.record_count == 7

    @pytest.mark.asyncio
    async def test_aggregate_window_not_widened(self, engine):
        """Test aggregate questions keep the requested window."""
        response = await engine.queries.execute_query(
            QueryIntent(
                question_type=QuestionType.AVERAGE_SPEED,
                target_entity="truck 56",
                time_window=TimeWindow(minutes=5),
            )
        )

        assert response.time_window_minutes == 5

    @pytest.mark.asyncio
    async def test_aggregate_with_schema_property_reads_telemetry(self, engine):
        """Test an aggregate over a schema-matched phrase still averages telemetry speed."""
        response = await engine.queries.execute_query(
            QueryIntent(
                question_type=QuestionType.AVERAGE_SPEED,
                target_entity="Truck_56",
                property_name="speed",
                time_window=TimeWindow(minutes=60),
            )
        )

        assert response.record_count == 7
        assert response.value == pytest.approx(40.0 * 1.60934)
        assert response.units == "km/h"
        assert response.answer.startswith("Truck 56 had an average speed of 64.4 km/h")

    @pytest.mark.asyncio
    async def test_count_with_schema_property_reads_telemetry(self, engine):
        """Test trip counting is not cut short by a schema-matched phrase."""
        response = await engine.queries.execute_query(
            QueryIntent(
                question_type=QuestionType.TRIP_COUNT,
                target_entity="Truck_56",
                property_name="speed limit",
                source_path="Path_A",
                destination_path="Path_B",
                time_window=TimeWindow(minutes=60),
            )
        )

        assert response.value == 2

    @pytest.mark.asyncio
    async def test_maximum_answer_article(self, engine):
        """Test the article follows the operation word."""
        response = await engine.queries.ask("max speed of truck 56 in the last hour")

        assert response.answer.startswith("Truck 56 had a maximum speed of")

    @pytest.mark.asyncio
    async def test_unknown_entity_recorded_as_rejected(self, engine):
        """Test grounding failures propagate and are counted as rejected."""
        with patch("minetwin.engine.queries.record_query") as record:
            with pytest.raises(EntityNotFoundError):
                await engine.queries.execute_query(
                    QueryIntent(
                        question_type=QuestionType.AVERAGE_SPEED,
                        target_entity="excavator 9",
                        time_window=TimeWindow(minutes=60),
                    )
                )

        assert record.call_args.args[:2] == ("average_speed", "rejected")

    @pytest.mark.asyncio
    async def test_missing_executor(self, model, telemetry_store):
        """Test a missing executor is a configuration error."""
        service = QueryService(
            SchemaResolver(model),
            telemetry_store,
            registry=QueryExecutorRegistry([CountExecutor()]),
        )

        with pytest.raises(ExecutorNotFoundError):
            await service.execute_query(
                QueryIntent(
                    question_type=QuestionType.AVERAGE_SPEED,
                    target_entity="truck 56",
                    time_window=TimeWindow(minutes=60),
                )
            )

    @pytest.mark.asyncio
    async def test_ask_without_parser(self, model, telemetry_store):
        """Test the text entry point needs a parser."""
        service = QueryService(SchemaResolver(model), telemetry_store)

        with pytest.raises(RuntimeError):
            await service.ask("average speed of truck 56")

    @pytest.mark.asyncio
    async def test_response_to_dict(self, engine):
        """Test the serialized response shape."""
        response = await engine.queries.ask("average speed of truck 56")

        data = response.to_dict()

        assert set(data) == {"answer", "value", "units", "entity_id", "data_used"}
        assert data["data_used"] == {"record_count": 7, "time_window": {"minutes": 60}}
