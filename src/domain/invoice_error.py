"""Invoice Error Domain Entity

Records flights whose compute output could not become an invoice.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, Numeric, String, DateTime, Text
from src.domain.base import BaseModel, IdentityType


class ErrorStatus(str, Enum):
    """Review status of an error record"""
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    IGNORED = "IGNORED"


class OperatorMatchErrorType(str, Enum):
    """Error types for operator matching failures"""

    # Neither IBA nor JetNet id present in the compute output
    OPERATOR_ID_NOT_FOUND = "OPERATOR_ID_NOT_FOUND"

    # Ids were present but no customer carries them (and no name match)
    OPERATOR_ID_MISMATCH = "OPERATOR_ID_MISMATCH"


UNKNOWN_ERROR_TYPE = "UNKNOWN_ERROR"


class InvoiceError(BaseModel, table=True):
    """
    InvoiceError - Data quality or operator resolution failure

    Domain Rules:
    - Created by the invoice writer, never converted into an Invoice automatically
    - Fee and FIR fields are kept when already computed so the record can be
      re-resolved without recomputation
    - error_status tracks manual review
    """

    __tablename__ = "invoice_errors"
    __table_args__ = (
        Index('ix_invoice_errors_invoice_number', 'invoice_number', unique=True),
        Index('ix_invoice_errors_flight_id', 'flight_id'),
        Index('ix_invoice_errors_error_type', 'error_type'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdentityType, primary_key=True, autoincrement=True),
        description="Unique error record identifier (auto-increment)"
    )

    invoice_number: str = Field(
        sa_column=Column(String(50), nullable=False),
        description="Unique error record number (e.g., ERR-20240115-4F7A2C9E01)"
    )

    flight_id: int = Field(
        sa_column=Column(BigInteger, nullable=False),
        description="Upstream flight identifier"
    )

    error_type: str = Field(
        sa_column=Column(String(64), nullable=False),
        description="Error type reported by the compute engine or operator matching"
    )

    error_message: str = Field(
        sa_column=Column(Text, nullable=False),
        description="Human readable error description"
    )

    error_status: ErrorStatus = Field(
        default=ErrorStatus.PENDING,
        description="Review status (PENDING, RESOLVED, IGNORED)"
    )

    issue_date: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))
    client_name: str = Field(default="Unknown Operator", sa_column=Column(String(255), nullable=False))
    iba_id: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    jetnet_id: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))

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

    fee_description: Optional[str] = Field(default=None, sa_column=Column(String(1024), nullable=True))
    fee_amount: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(18, 6), nullable=True))
    other_fees_amount: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(18, 6), nullable=True))
    total_original_amount: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(18, 6), nullable=True))
    original_currency: Optional[str] = Field(default=None, sa_column=Column(String(3), nullable=True))
    fx_rate: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(18, 8), nullable=True))
    total_usd_amount: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(18, 6), nullable=True))

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime, nullable=False),
        description="Record creation timestamp"
    )
