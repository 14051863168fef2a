"""Flight Record and Compute Engine Value Types

Typed views over the loosely structured payloads exchanged with the
upstream flight source and the compute engine. Each model declares the
fields the billing core consumes; every other key is kept as a
passthrough extra (``model_extra``).
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

NO_OUTPUT_ENTRIES_MARKER = "No output entries"
UNKNOWN_OPERATOR = "Unknown Operator"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 value into a naive UTC datetime, None when unparseable"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a numeric value into Decimal, None when missing or not numeric"""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _clean(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _first(position: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if position.get(key) is not None:
            return position[key]
    return None


def _number(value: Any, default: Optional[float] = 0) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def normalize_position(position: Dict[str, Any]) -> Dict[str, Any]:
    """
    Coerce one raw position report into the shape the compute engine expects

    Alternative source keys are folded in (e.g. ``alt``/``altbaro`` into
    ``fal``, ``onground`` into ``gnd``) and values get stable types.
    """
    def text(value: Any, default: str = "") -> str:
        return default if value is None else str(value)

    return {
        "svd": text(position.get("svd")),
        "lat": text(position.get("lat")),
        "lon": text(position.get("lon")),
        "fal": _number(_first(position, "fal", "alt", "altbaro"), None),
        "track": _number(_first(position, "track", "fhd")),
        "fhd": _number(position.get("fhd"), None),
        "fgs": _number(_first(position, "fgs", "spd")),
        "fvr": _number(_first(position, "fvr", "vsi"), None),
        "sq": _number(position.get("sq")),
        "gnd": _flag(_first(position, "gnd", "onground")),
        "altbaro": _number(_first(position, "altbaro", "alt"), None),
        "altgps": _number(_first(position, "altgps", "geomalt"), None),
        "nic": _number(position.get("nic")),
        "nicbaro": _number(position.get("nicbaro")),
        "nacp": _number(position.get("nacp")),
        "nacv": _number(position.get("nacv")),
        "sil": _number(position.get("sil")),
        "silType": _clean(_first(position, "silType", "siltype")),
        "repType": text(_first(position, "repType", "reptype"), "position"),
        "so": text(position.get("so"), "ADSB"),
        "stcenla": _number(position.get("stcenla")),
        "stcenlo": _number(position.get("stcenlo")),
    }


class FlightRecord(BaseModel):
    """Flight record as returned by the upstream source"""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    flight_id: str = Field(alias="flightId")
    positions: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("flight_id", mode="before")
    @classmethod
    def _flight_id_as_str(cls, value: Any) -> str:
        return str(value)

    @field_validator("positions", mode="before")
    @classmethod
    def _decode_positions(cls, value: Any) -> List[Dict[str, Any]]:
        # The broker stores positions as a JSON encoded string column
        if value is None:
            return []
        if isinstance(value, str):
            try:
                decoded = json.loads(value)
            except ValueError:
                return []
            return decoded if isinstance(decoded, list) else []
        return value

    def with_normalized_positions(self) -> "FlightRecord":
        return self.model_copy(
            update={"positions": [normalize_position(position) for position in self.positions]}
        )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class FeeBreakdown(BaseModel):
    """Nested fee breakdown of a compute output entry"""

    model_config = ConfigDict(extra="allow")

    fee: Optional[Decimal] = None
    other_fees: Optional[Decimal] = None
    currency: Optional[str] = None
    fx_rate: Optional[Decimal] = None
    total_amount_usd: Optional[Decimal] = None
    calculation_description: Optional[str] = None

    @field_validator("fee", "fx_rate", "total_amount_usd", mode="before")
    @classmethod
    def _numeric(cls, value: Any) -> Optional[Decimal]:
        return to_decimal(value)

    @field_validator("other_fees", mode="before")
    @classmethod
    def _other_fees(cls, value: Any) -> Optional[Decimal]:
        # The engine emits [] when there are no other fees
        if isinstance(value, (list, tuple)):
            return Decimal("0")
        return to_decimal(value)

    def effective_fx_rate(self) -> Optional[Decimal]:
        if self.fx_rate is not None:
            return self.fx_rate
        return to_decimal((self.model_extra or {}).get("fx_rate_usd"))

    def total_original_amount(self) -> Optional[Decimal]:
        if self.fee is None:
            return None
        return self.fee + (self.other_fees or Decimal("0"))


class AircraftData(BaseModel):
    """Aircraft and operator attributes attached to compute output"""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    registration: Optional[str] = None
    operator_name: Optional[str] = Field(default=None, alias="operatorName")
    owner_name: Optional[str] = Field(default=None, alias="ownerName")
    aircraft_model_name: Optional[str] = Field(default=None, alias="aircraftModelName")
    model: Optional[str] = None
    iba_operator_id: Optional[str] = Field(default=None, alias="ibaOperatorId")
    jetnet_operator_id: Optional[str] = Field(default=None, alias="jetnetOperatorId")
    current_state: Optional[Dict[str, Any]] = Field(default=None, alias="currentState")

    @field_validator("iba_operator_id", "jetnet_operator_id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> Optional[str]:
        return _clean(value)

    def _nested_operator_id(self, key: str) -> Optional[str]:
        operator = (self.current_state or {}).get("operator") or {}
        ids = operator.get("id") or {}
        if not isinstance(ids, dict):
            return None
        return _clean(ids.get(key))

    def resolved_iba_id(self) -> Optional[str]:
        return self.iba_operator_id or self._nested_operator_id("iba")

    def resolved_jetnet_id(self) -> Optional[str]:
        return self.jetnet_operator_id or self._nested_operator_id("jetnet")

    def display_name(self) -> str:
        return self.operator_name or self.owner_name or UNKNOWN_OPERATOR

    def model_name(self) -> Optional[str]:
        return self.aircraft_model_name or self.model


class ComputeOutputEntry(BaseModel):
    """One billable FIR crossing returned by the compute engine"""

    model_config = ConfigDict(extra="allow")

    flight_id: Union[int, str]
    country: Optional[str] = None
    fir_label: Optional[str] = None
    fir_name: Optional[str] = None
    flight_date: Optional[datetime] = None
    earliest_entry_time: Optional[datetime] = None
    latest_exit_time: Optional[datetime] = None
    takeoff_airport_icao: Optional[str] = None
    landing_airport_icao: Optional[str] = None
    takeoff_airport_iata: Optional[str] = None
    landing_airport_iata: Optional[str] = None
    act: Optional[str] = None
    flight_data: Dict[str, Any] = Field(default_factory=dict)
    fee_details: Optional[FeeBreakdown] = None
    aircraft_data: AircraftData = Field(default_factory=AircraftData)

    @field_validator("flight_date", "earliest_entry_time", "latest_exit_time", mode="before")
    @classmethod
    def _timestamp(cls, value: Any) -> Optional[datetime]:
        return parse_timestamp(value)

    @field_validator("flight_data", mode="before")
    @classmethod
    def _flight_data(cls, value: Any) -> Dict[str, Any]:
        return value or {}

    @field_validator("aircraft_data", mode="before")
    @classmethod
    def _aircraft_data(cls, value: Any) -> Any:
        return value or {}

    def resolved_fir_name(self) -> Optional[str]:
        return self.fir_label or self.fir_name

    def flight_number(self) -> str:
        return self.flight_data.get("cs") or self.flight_data.get("ident") or "Unknown"

    def fees(self) -> FeeBreakdown:
        return self.fee_details or FeeBreakdown()


class ComputeErrorEntry(BaseModel):
    """Structured data-quality error returned by the compute engine"""

    model_config = ConfigDict(extra="allow")

    flight_id: Union[int, str]
    error_type: Optional[str] = None
    error_type_detected: Optional[str] = None
    error_message: Optional[str] = None
    error_details: Optional[str] = None
    country: Optional[str] = None
    registration: Optional[str] = None
    flight_data: Dict[str, Any] = Field(default_factory=dict)
    aircraft_data: AircraftData = Field(default_factory=AircraftData)

    @field_validator("flight_data", mode="before")
    @classmethod
    def _flight_data(cls, value: Any) -> Dict[str, Any]:
        return value or {}

    @field_validator("aircraft_data", mode="before")
    @classmethod
    def _aircraft_data(cls, value: Any) -> Any:
        return value or {}


class ComputeResult(BaseModel):
    """Compute engine response envelope"""

    model_config = ConfigDict(extra="allow")

    success: bool
    output_entries: List[ComputeOutputEntry] = Field(default_factory=list)
    errors: List[ComputeErrorEntry] = Field(default_factory=list)
    error_message: Optional[str] = None
    error_traceback: Optional[str] = None

    @field_validator("output_entries", "errors", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return value or []

    def is_no_output(self) -> bool:
        """A failed run whose only problem is that no FIR was crossed"""
        return (
            not self.success
            and self.error_message is not None
            and NO_OUTPUT_ENTRIES_MARKER in self.error_message
        )


class FlightTaskBody(BaseModel):
    """JSON body of an internal flight task"""

    model_config = ConfigDict(populate_by_name=True)

    flight_id: str = Field(alias="flightId")
    service: str
    timestamp: datetime
    flight_data: Optional[Dict[str, Any]] = Field(default=None, alias="flightData")

    @field_validator("flight_id", mode="before")
    @classmethod
    def _flight_id_as_str(cls, value: Any) -> str:
        return str(value)


class TaskEnvelope(BaseModel):
    """Internal task passed to the per-flight pipeline"""

    model_config = ConfigDict(populate_by_name=True)

    message_id: str = Field(alias="messageId")
    body: str
    receipt_handle: str = Field(alias="receiptHandle")

    @classmethod
    def for_flight(
        cls,
        flight_id: Union[int, str],
        service: str,
        flight_data: Optional[Dict[str, Any]] = None,
    ) -> "TaskEnvelope":
        body = FlightTaskBody(
            flight_id=str(flight_id),
            service=service,
            timestamp=datetime.utcnow(),
            flight_data=flight_data,
        )
        return cls(
            message_id=f"internal-{flight_id}",
            body=body.model_dump_json(by_alias=True, exclude_none=True),
            receipt_handle="internal",
        )

    def parse_body(self) -> FlightTaskBody:
        return FlightTaskBody.model_validate_json(self.body)
