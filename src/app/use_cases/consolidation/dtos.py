"""Data Transfer Objects for Consolidation Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator
from src.domain.customer import BillingPeriodType


class ConsolidationStatus(str, Enum):
    """Outcome of one consolidation attempt; only GENERATED writes a row"""
    GENERATED = "GENERATED"
    ALREADY_CONSOLIDATED = "ALREADY_CONSOLIDATED"
    NOTHING_TO_CONSOLIDATE = "NOTHING_TO_CONSOLIDATE"
    BILLING_DISABLED = "BILLING_DISABLED"
    NOT_APPROVED = "NOT_APPROVED"


class GenerateConsolidatedInvoiceCommandDTO(BaseModel):
    """
    Command DTO for consolidating one customer's billing period

    When period bounds are omitted the period containing reference_date is used.
    """

    customer_id: int = Field(..., description="Customer (operator) identifier")

    period_start: Optional[date] = Field(
        default=None,
        description="Explicit period start (inclusive)"
    )

    period_end: Optional[date] = Field(
        default=None,
        description="Explicit period end (inclusive)"
    )

    reference_date: date = Field(
        default_factory=lambda: datetime.utcnow().date(),
        description="Date used to derive the period when bounds are omitted"
    )

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.period_start and self.period_end and self.period_start > self.period_end:
            raise ValueError("period_start must not be after period_end")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": 42,
                "period_start": "2025-01-07",
                "period_end": "2025-01-13",
                "reference_date": "2025-01-13",
            }
        }


class ConsolidatedInvoiceSummaryDTO(BaseModel):
    """Summary of a consolidated invoice"""

    id: int
    invoice_number: str
    operator_id: int
    billing_period_start: date
    billing_period_end: date
    billing_period_type: BillingPeriodType
    total_flights: int
    total_invoices: int
    total_fee_usd: Decimal
    total_other_usd: Decimal
    total_usd: Decimal
    firs_crossed: List[str] = Field(default_factory=list)
    countries: List[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None


class ConsolidationResultDTO(BaseModel):
    """
    Response DTO for one consolidation attempt

    Skips (already consolidated, nothing to consolidate, billing disabled,
    not approved) are successful results with a non-GENERATED status.
    """

    status: ConsolidationStatus
    customer_id: int
    message: Optional[str] = None
    consolidated_invoice: Optional[ConsolidatedInvoiceSummaryDTO] = None

    @property
    def generated(self) -> bool:
        return self.status == ConsolidationStatus.GENERATED


class ConsolidationErrorDTO(BaseModel):
    customer_id: int
    customer_name: str
    error: str


class ConsolidationMetricsDTO(BaseModel):
    """
    Metrics of one consolidation run over all billing-enabled customers
    """

    customers_processed: int = Field(default=0, ge=0)
    invoices_generated: int = Field(default=0, ge=0)
    total_invoices_consolidated: int = Field(default=0, ge=0)
    errors: List[ConsolidationErrorDTO] = Field(default_factory=list)
    execution_time_ms: int = Field(default=0, ge=0)
    reference_date: Optional[date] = None

    class Config:
        json_schema_extra = {
            "example": {
                "customers_processed": 12,
                "invoices_generated": 3,
                "total_invoices_consolidated": 87,
                "errors": [],
                "execution_time_ms": 950,
                "reference_date": "2025-01-31",
            }
        }


class RecalculationResultDTO(BaseModel):
    consolidated_invoice_id: int
    total_invoices: int
    total_flights: int
    total_usd: Decimal
