"""Flight ingestion use cases"""
from .process_flight import ProcessFlight
from .drain_queue import DrainQueue
from .dtos import (
    ProcessingOutcome,
    ProcessFlightResultDTO,
    BatchItemResultDTO,
    BatchReportDTO,
)

__all__ = [
    "ProcessFlight",
    "DrainQueue",
    "ProcessingOutcome",
    "ProcessFlightResultDTO",
    "BatchItemResultDTO",
    "BatchReportDTO",
]
