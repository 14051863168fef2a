"""HTTP Compute Engine Client"""

import logging
from typing import Optional
import httpx
from pydantic import ValidationError
from src.app.services.compute_engine import ComputeEngine
from src.domain.errors import ComputeEngineError
from src.domain.flight import ComputeResult, FlightRecord

logger = logging.getLogger(__name__)


class HttpComputeEngine(ComputeEngine):
    """
    Compute engine reached over HTTP

    POSTs the flight record as JSON to ``{base_url}/process`` and parses the
    response envelope. Transport errors, non-2xx responses and malformed
    bodies are hard failures; ``success: false`` in a well-formed body is a
    soft failure returned to the caller.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = client

    async def process(self, flight: FlightRecord) -> ComputeResult:
        url = f"{self.base_url}/process"
        logger.info(f"Calling compute engine for flight {flight.flight_id}")

        try:
            if self.client is not None:
                response = await self.client.post(url, json=flight.to_payload())
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=flight.to_payload())
            response.raise_for_status()
            result = ComputeResult.model_validate(response.json())
        except httpx.HTTPError as e:
            raise ComputeEngineError(f"Compute engine request failed: {e}") from e
        except (ValidationError, ValueError) as e:
            raise ComputeEngineError(f"Invalid compute engine response: {e}") from e

        logger.info(
            f"Compute engine returned success={result.success} for flight {flight.flight_id}: "
            f"{len(result.output_entries)} entries, {len(result.errors)} errors"
        )
        return result
