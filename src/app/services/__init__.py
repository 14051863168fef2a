from .unit_of_work import UnitOfWork
from .flight_source import FlightSource
from .compute_engine import ComputeEngine
from .audit_trail import AuditTrail, ProcessedRecordEvent, ProcessedRecordStatus
from .distributed_lock import AdvisoryLockBackend, DistributedLock, lock_key_for
from .worker_pool import BoundedWorkerPool, WorkOutcome
from .operator_matching import OperatorCandidate, OperatorLookupResult, OperatorResolver

__all__ = [
    "UnitOfWork",
    "FlightSource",
    "ComputeEngine",
    "AuditTrail",
    "ProcessedRecordEvent",
    "ProcessedRecordStatus",
    "AdvisoryLockBackend",
    "DistributedLock",
    "lock_key_for",
    "BoundedWorkerPool",
    "WorkOutcome",
    "OperatorCandidate",
    "OperatorLookupResult",
    "OperatorResolver",
]
