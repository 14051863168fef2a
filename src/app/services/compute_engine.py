"""Compute Engine Interface

External geometry/fee engine that turns a flight path into FIR crossings.
"""

from abc import ABC, abstractmethod
from src.domain.flight import ComputeResult, FlightRecord


class ComputeEngine(ABC):
    """Computes FIR crossings and fees for a flight"""

    @abstractmethod
    async def process(self, flight: FlightRecord) -> ComputeResult:
        """
        Run fee computation for one flight

        Args:
            flight: Flight record to process

        Returns:
            ComputeResult with output entries and structured errors; a result
            with success=False is a soft failure reported by the engine

        Raises:
            ComputeEngineError: on a hard failure (engine unreachable, bad response)
        """
        pass
