"""Audit Trail Interface

Receives one "record processed" event per written compute entry for
downstream reconciliation.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class ProcessedRecordStatus(str, Enum):
    INVOICED = "INVOICED"
    ERROR = "ERROR"
    NON_BILLABLE = "NON_BILLABLE"
    SKIPPED = "SKIPPED"


class ProcessedRecordEvent(BaseModel):
    """Outcome of writing one compute entry"""

    flight_id: str
    status: ProcessedRecordStatus
    result_type: str
    reference_id: Optional[str] = None
    message: Optional[str] = None
    occurred_at: datetime = Field(default_factory=datetime.utcnow)


class AuditTrail(ABC):
    """Sink for processed record events"""

    @abstractmethod
    async def record_processed(self, event: ProcessedRecordEvent) -> None:
        """
        Append one processed record event

        Implementations must not raise: a failing sink never fails the write.
        """
        pass
