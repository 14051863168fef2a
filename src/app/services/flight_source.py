"""Flight Source Interface

Upstream store of flight telemetry records.
"""

from abc import ABC, abstractmethod
from src.domain.flight import FlightRecord


class FlightSource(ABC):
    """Fetches a flight record by upstream flight id"""

    @abstractmethod
    async def fetch(self, flight_id: str) -> FlightRecord:
        """
        Fetch one flight record

        Args:
            flight_id: Upstream flight identifier

        Returns:
            FlightRecord with the fields the upstream source provides

        Raises:
            FetchError: if the source is unreachable or has no such flight
        """
        pass
