from .unit_of_work import SqlAlchemyUnitOfWork
from .flight_source import HttpFlightSource
from .compute_engine import HttpComputeEngine
from .advisory_lock import (
    PostgresAdvisoryLockBackend,
    InProcessAdvisoryLockBackend,
    create_advisory_lock_backend,
)
from .audit_trail import (
    LoggingAuditTrail,
    DailyFileAuditTrail,
    CompositeAuditTrail,
    create_audit_trail,
)

__all__ = [
    "SqlAlchemyUnitOfWork",
    "HttpFlightSource",
    "HttpComputeEngine",
    "PostgresAdvisoryLockBackend",
    "InProcessAdvisoryLockBackend",
    "create_advisory_lock_backend",
    "LoggingAuditTrail",
    "DailyFileAuditTrail",
    "CompositeAuditTrail",
    "create_audit_trail",
]
