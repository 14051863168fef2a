"""Data Transfer Objects for Invoice Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field
from src.domain.invoice import InvoiceStatus


class PersistComputeOutputResponseDTO(BaseModel):
    """
    Response DTO for persisting one flight's compute output

    Operator match failures count as error invoices, not as failures.
    """

    invoices_created: int = Field(
        default=0,
        ge=0,
        description="Invoice rows written"
    )

    error_invoices_created: int = Field(
        default=0,
        ge=0,
        description="InvoiceError rows written (engine errors and operator match failures)"
    )

    duplicates_skipped: int = Field(
        default=0,
        ge=0,
        description="Entries skipped because an invoice for the same flight and FIR exists"
    )

    invoice_numbers: List[str] = Field(
        default_factory=list,
        description="Numbers of the invoices written"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "invoices_created": 2,
                "error_invoices_created": 1,
                "duplicates_skipped": 0,
                "invoice_numbers": ["INV-20250114-3F9A1B2C4D", "INV-20250114-8E7D6C5B4A"],
            }
        }


class MarkOverdueResultDTO(BaseModel):
    """
    Metrics of one overdue marking run
    """

    total_found: int = Field(..., ge=0, description="PENDING invoices past due")
    total_updated: int = Field(..., ge=0, description="Invoices moved to OVERDUE")
    execution_time_ms: int = Field(..., ge=0, description="Run duration in milliseconds")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    errors: List[str] = Field(default_factory=list, description="Warnings and errors")

    class Config:
        json_schema_extra = {
            "example": {
                "total_found": 3,
                "total_updated": 3,
                "execution_time_ms": 42,
                "timestamp": "2025-01-15T10:00:00",
                "errors": [],
            }
        }


class UpdateInvoiceCommandDTO(BaseModel):
    """
    Command DTO for editing an invoice

    Only supplied fields are applied.
    """

    invoice_id: int = Field(..., description="Invoice to update")

    status: Optional[InvoiceStatus] = Field(
        default=None,
        description="Target status (must be reachable from the current status)"
    )

    fee_amount: Optional[Decimal] = Field(default=None, ge=0)
    other_fees_amount: Optional[Decimal] = Field(default=None, ge=0)
    fx_rate: Optional[Decimal] = Field(default=None, gt=0)
    total_usd_amount: Optional[Decimal] = Field(default=None, ge=0)
    fee_description: Optional[str] = Field(default=None)
    due_date: Optional[datetime] = Field(default=None)

    class Config:
        json_schema_extra = {
            "example": {
                "invoice_id": 1024,
                "status": "PAID",
                "total_usd_amount": "1250.00",
            }
        }


class InvoiceResponseDTO(BaseModel):
    """Invoice summary returned after an update"""

    id: int
    invoice_number: str
    flight_id: int
    status: InvoiceStatus
    operator_id: Optional[int] = None
    fee_amount: Optional[Decimal] = None
    other_fees_amount: Optional[Decimal] = None
    total_usd_amount: Optional[Decimal] = None
    due_date: Optional[datetime] = None
    included_in_consolidated_invoice_id: Optional[int] = None
    consolidated_totals_recalculated: bool = Field(
        default=False,
        description="True when the linked consolidated invoice was recalculated"
    )
