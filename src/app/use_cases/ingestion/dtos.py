"""Data Transfer Objects for Ingestion Use Cases

Pydantic models for per-flight and per-batch results.
"""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class ProcessingOutcome(str, Enum):
    """Per-item outcome; NO_CROSSINGS and SUCCESS delete the queue entry"""
    EXTERNAL_FETCH_ERROR = "external_fetch_error"
    COMPUTE_ERROR = "compute_error"
    WRITE_ERROR = "write_error"
    NO_CROSSINGS = "no_crossings"
    SUCCESS = "success"

    @property
    def is_success(self) -> bool:
        return self in (ProcessingOutcome.NO_CROSSINGS, ProcessingOutcome.SUCCESS)


# Error.code -> outcome for failed items
OUTCOME_BY_ERROR_CODE = {
    "EXTERNAL_FETCH_ERROR": ProcessingOutcome.EXTERNAL_FETCH_ERROR,
    "COMPUTE_ERROR": ProcessingOutcome.COMPUTE_ERROR,
    "WRITE_ERROR": ProcessingOutcome.WRITE_ERROR,
}


class ProcessFlightResultDTO(BaseModel):
    """
    Response DTO for one processed flight
    """

    flight_id: str = Field(..., description="Upstream flight identifier")
    outcome: ProcessingOutcome = Field(..., description="SUCCESS or NO_CROSSINGS")
    invoices_created: int = Field(default=0, ge=0)
    error_invoices_created: int = Field(default=0, ge=0)
    duplicates_skipped: int = Field(default=0, ge=0)
    message: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "flight_id": "2605577812",
                "outcome": "success",
                "invoices_created": 3,
                "error_invoices_created": 0,
                "duplicates_skipped": 0,
                "message": None,
            }
        }


class BatchItemResultDTO(BaseModel):
    entry_id: int
    flight_id: int
    outcome: ProcessingOutcome
    invoices_created: int = 0
    error_invoices_created: int = 0
    message: Optional[str] = None


class BatchReportDTO(BaseModel):
    """
    Report of one drain cycle

    succeeded_ids and failed_ids are disjoint and together cover every
    fetched entry; only succeeded_ids are deleted from the queue.
    """

    attempted: int = Field(default=0, ge=0, description="Entries fetched")
    succeeded: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    deleted: int = Field(default=0, ge=0, description="Queue rows removed")
    succeeded_ids: List[int] = Field(default_factory=list)
    failed_ids: List[int] = Field(default_factory=list)
    invoices_created: int = Field(default=0, ge=0)
    error_invoices_created: int = Field(default=0, ge=0)
    outcomes: Dict[ProcessingOutcome, int] = Field(default_factory=dict)
    items: List[BatchItemResultDTO] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "attempted": 10,
                "succeeded": 9,
                "failed": 1,
                "deleted": 9,
                "succeeded_ids": [1, 2, 3, 4, 5, 6, 7, 8, 9],
                "failed_ids": [10],
                "invoices_created": 14,
                "error_invoices_created": 2,
                "outcomes": {"success": 8, "no_crossings": 1, "compute_error": 1},
            }
        }
