"""HTTP Flight Source

Reads flight telemetry rows through the broker's SQL query endpoint.
"""

import logging
from typing import Any, Dict, Optional
import httpx
from src.app.services.flight_source import FlightSource
from src.domain.errors import FetchError
from src.domain.flight import FlightRecord

logger = logging.getLogger(__name__)


class HttpFlightSource(FlightSource):
    """
    Flight source backed by a broker exposing ``POST /query/sql``

    The broker answers with ``resultTable.dataSchema.columnNames`` and
    ``resultTable.rows``; the first row is mapped to a FlightRecord.
    """

    def __init__(
        self,
        broker_url: str,
        table: str = "tracked_flights",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize flight source

        Args:
            broker_url: Broker base URL (e.g., http://localhost:8099)
            table: Table holding tracked flights
            timeout: Request timeout in seconds
            client: Shared client (a short-lived one is created per call otherwise)
        """
        self.broker_url = broker_url.rstrip("/")
        self.table = table
        self.timeout = timeout
        self.client = client

    def _query_for(self, flight_id: str) -> str:
        if not str(flight_id).isdigit():
            raise FetchError(flight_id, "flight id must be numeric")
        return f"SELECT * FROM {self.table} WHERE flightId = '{flight_id}' LIMIT 1"

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.broker_url}/query/sql"
        if self.client is not None:
            response = await self.client.post(url, json=payload)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload)
        response.raise_for_status()
        return response.json()

    async def fetch(self, flight_id: str) -> FlightRecord:
        """
        Fetch one flight record

        Raises:
            FetchError: if the broker is unreachable, errors, or has no such flight
        """
        sql = self._query_for(flight_id)
        logger.info(f"Querying flight source for flight: {flight_id}")

        try:
            body = await self._post({"sql": sql})
        except (httpx.HTTPError, ValueError) as e:
            raise FetchError(flight_id, f"flight source query failed: {e}") from e

        table = body.get("resultTable") or {}
        rows = table.get("rows") or []
        if not rows:
            raise FetchError(flight_id, "no flight data found")

        columns = (table.get("dataSchema") or {}).get("columnNames") or []
        record = dict(zip(columns, rows[0]))
        record["flightId"] = flight_id

        flight = FlightRecord.model_validate(record)
        logger.info(f"Found flight data with {len(flight.positions)} positions")
        return flight
