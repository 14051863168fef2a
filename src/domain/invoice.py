"""Invoice Domain Entity

One invoice per billable FIR crossing of a flight.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, Numeric, String, DateTime
from src.domain.base import BaseModel, IdentityType
from src.domain.errors import InvalidStatusTransitionError


class InvoiceStatus(str, Enum):
    """Invoice status types"""
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


# PAID and CANCELLED are terminal
ALLOWED_STATUS_TRANSITIONS = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.PENDING, InvoiceStatus.CANCELLED}),
    InvoiceStatus.PENDING: frozenset(
        {InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED}
    ),
    InvoiceStatus.OVERDUE: frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
    InvoiceStatus.PAID: frozenset(),
    InvoiceStatus.CANCELLED: frozenset(),
}


def can_transition(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    return target in ALLOWED_STATUS_TRANSITIONS[current]


class Invoice(BaseModel, table=True):
    """
    Invoice - Fee invoice for one FIR crossing

    Domain Rules:
    - invoice_number must be unique
    - Status transitions: DRAFT -> PENDING/CANCELLED,
      PENDING -> PAID/OVERDUE/CANCELLED, OVERDUE -> PAID/CANCELLED
    - included_in_consolidated_invoice_id is set once, by consolidation
    - Fee and FIR fields come from the compute engine output
    """

    __tablename__ = "invoices"
    __table_args__ = (
        Index('ix_invoices_invoice_number', 'invoice_number', unique=True),
        Index('ix_invoices_flight_id', 'flight_id'),
        Index('ix_invoices_operator_issue_date', 'operator_id', 'issue_date'),
        Index('ix_invoices_status_due_date', 'status', 'due_date'),
        Index('ix_invoices_consolidated', 'included_in_consolidated_invoice_id'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdentityType, primary_key=True, autoincrement=True),
        description="Unique invoice identifier (auto-increment)"
    )

    invoice_number: str = Field(
        sa_column=Column(String(50), nullable=False),
        description="Unique invoice number (e.g., INV-20240115-4F7A2C9E01)"
    )

    flight_id: int = Field(
        sa_column=Column(BigInteger, nullable=False),
        description="Upstream flight identifier"
    )

    status: InvoiceStatus = Field(
        default=InvoiceStatus.PENDING,
        description="Invoice status (DRAFT, PENDING, PAID, OVERDUE, CANCELLED)"
    )

    issue_date: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime, nullable=False),
        description="Issue timestamp"
    )

    due_date: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
        description="Payment due timestamp"
    )

    # Customer
    client_name: str = Field(default="Unknown Operator", sa_column=Column(String(255), nullable=False))
    operator_id: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    iba_id: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    jetnet_id: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))

    # Flight / FIR metadata
    flight_number: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))
    origin_icao: Optional[str] = Field(default=None, sa_column=Column(String(8), nullable=True))
    destination_icao: Optional[str] = Field(default=None, sa_column=Column(String(8), nullable=True))
    origin_iata: Optional[str] = Field(default=None, sa_column=Column(String(8), nullable=True))
    destination_iata: Optional[str] = Field(default=None, sa_column=Column(String(8), nullable=True))
    registration_number: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))
    aircraft_model_name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    aircraft_type: Optional[str] = Field(default=None, sa_column=Column(String(16), nullable=True))
    flight_date: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    fir_name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    fir_country: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    fir_entry_time_utc: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    fir_exit_time_utc: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    # Fee breakdown / FX
    fee_description: Optional[str] = Field(default=None, sa_column=Column(String(1024), nullable=True))
    fee_amount: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(18, 6), nullable=True))
    other_fees_amount: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(18, 6), nullable=True))
    total_original_amount: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(18, 6), nullable=True))
    original_currency: Optional[str] = Field(default=None, sa_column=Column(String(3), nullable=True))
    fx_rate: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(18, 8), nullable=True))
    total_usd_amount: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(18, 6), nullable=True))

    included_in_consolidated_invoice_id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger, nullable=True),
        description="Consolidated invoice this invoice was rolled up into"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime, nullable=False),
        description="Invoice creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime, nullable=False),
        description="Last update timestamp"
    )

    def transition_to(self, target: InvoiceStatus) -> None:
        """
        Move the invoice to a new status

        Raises:
            InvalidStatusTransitionError: if target is not reachable from the current status
        """
        if not can_transition(self.status, target):
            raise InvalidStatusTransitionError(self.status, target)
        self.status = target
        self.updated_at = datetime.utcnow()
