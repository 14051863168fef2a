"""Background workers for flight billing"""
from .flight_ingestion import FlightIngestionWorker
from .scheduler import JobScheduler

__all__ = ["FlightIngestionWorker", "JobScheduler"]
