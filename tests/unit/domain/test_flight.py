"""Unit tests for flight record and compute engine value types"""

from datetime import datetime
from decimal import Decimal

from src.domain.flight import (
    AircraftData,
    ComputeOutputEntry,
    ComputeResult,
    FeeBreakdown,
    FlightRecord,
    TaskEnvelope,
    normalize_position,
    parse_timestamp,
)


class TestFlightRecord:
    def test_positions_decoded_from_json_string(self):
        record = FlightRecord.model_validate(
            {"flightId": 2605577812, "positions": '[{"lat": "51.47", "lon": "-0.45"}]', "cs": "BAW123"}
        )

        assert record.flight_id == "2605577812"
        assert record.positions == [{"lat": "51.47", "lon": "-0.45"}]
        assert record.model_extra["cs"] == "BAW123"

    def test_malformed_positions_become_empty(self):
        record = FlightRecord.model_validate({"flightId": "1", "positions": "not json"})

        assert record.positions == []

    def test_payload_keeps_passthrough_fields(self):
        record = FlightRecord.model_validate({"flightId": "1", "positions": [], "acr": "G-ABCD"})

        payload = record.to_payload()

        assert payload["flightId"] == "1"
        assert payload["acr"] == "G-ABCD"


class TestNormalizePosition:
    def test_alternative_keys_folded_in(self):
        """
        Given: A raw position using alternative key names
        When: It is normalized
        Then: Canonical keys carry the values with stable types
        """
        # Arrange
        raw = {"lat": 51.47, "lon": -0.45, "alt": "35000", "spd": 450, "onground": "false", "vsi": -64}

        # Act
        normalized = normalize_position(raw)

        # Assert
        assert normalized["lat"] == "51.47"
        assert normalized["fal"] == 35000.0
        assert normalized["altbaro"] == 35000.0
        assert normalized["fgs"] == 450.0
        assert normalized["fvr"] == -64.0
        assert normalized["gnd"] is False
        assert normalized["repType"] == "position"
        assert normalized["so"] == "ADSB"

    def test_missing_numbers_default(self):
        normalized = normalize_position({})

        assert normalized["track"] == 0
        assert normalized["fal"] is None
        assert normalized["silType"] is None

    def test_record_normalizes_every_position(self):
        record = FlightRecord.model_validate({"flightId": "1", "positions": [{"alt": 100}, {"fal": 200}]})

        normalized = record.with_normalized_positions()

        assert [position["fal"] for position in normalized.positions] == [100.0, 200.0]
        assert record.positions == [{"alt": 100}, {"fal": 200}]


class TestComputeOutput:
    def test_other_fees_empty_list_is_zero(self):
        fees = FeeBreakdown.model_validate({"fee": "120.5", "other_fees": [], "fx_rate_usd": "1.1"})

        assert fees.other_fees == Decimal("0")
        assert fees.total_original_amount() == Decimal("120.5")
        assert fees.effective_fx_rate() == Decimal("1.1")

    def test_nested_operator_ids(self):
        aircraft = AircraftData.model_validate(
            {"operatorName": "Acme", "currentState": {"operator": {"id": {"iba": 42, "jetnet": "J-7"}}}}
        )

        assert aircraft.resolved_iba_id() == "42"
        assert aircraft.resolved_jetnet_id() == "J-7"
        assert aircraft.display_name() == "Acme"

    def test_unknown_operator_name(self):
        assert AircraftData().display_name() == "Unknown Operator"

    def test_entry_fields(self):
        entry = ComputeOutputEntry.model_validate(
            {
                "flight_id": 1,
                "fir_label": "EGTT",
                "fir_name": "LONDON",
                "earliest_entry_time": "2025-01-10T10:00:00Z",
                "flight_data": {"ident": "BAW123"},
                "aircraft_data": None,
            }
        )

        assert entry.resolved_fir_name() == "EGTT"
        assert entry.flight_number() == "BAW123"
        assert entry.earliest_entry_time == datetime(2025, 1, 10, 10, 0)
        assert entry.aircraft_data.display_name() == "Unknown Operator"

    def test_no_output_soft_failure(self):
        result = ComputeResult.model_validate(
            {"success": False, "error_message": "No output entries generated", "output_entries": None}
        )

        assert result.is_no_output() is True
        assert result.output_entries == []

    def test_other_soft_failure_is_not_no_output(self):
        result = ComputeResult.model_validate({"success": False, "error_message": "Geometry failed"})

        assert result.is_no_output() is False


class TestTaskEnvelope:
    def test_round_trip_body(self):
        task = TaskEnvelope.for_flight(2605577812, "automated-ingestion")

        body = task.parse_body()

        assert task.message_id == "internal-2605577812"
        assert body.flight_id == "2605577812"
        assert body.service == "automated-ingestion"
        assert body.flight_data is None


def test_parse_timestamp_handles_garbage():
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None
    assert parse_timestamp("2025-01-10T12:00:00+02:00") == datetime(2025, 1, 10, 10, 0)
