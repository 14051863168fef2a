"""Customer Domain Entity

Billing subject (aircraft operator) that invoices are matched to.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import String, Integer, DateTime
from src.domain.base import BaseModel, IdentityType


class CustomerStatus(str, Enum):
    """Onboarding status"""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SUSPENDED = "SUSPENDED"


class BillingPeriodType(str, Enum):
    """Consolidated billing cadence"""
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class Customer(BaseModel, table=True):
    """
    Customer - Operator identity and billing configuration

    Domain Rules:
    - iba_id and jetnet_id are external operator identifiers used for matching
    - billing_period_start_day is 1..7 (Monday..Sunday) for WEEKLY and
      1..31 (day of month) for MONTHLY
    - Only APPROVED customers with billing_period_enabled are consolidated
    """

    __tablename__ = "customers"
    __table_args__ = (
        Index('ix_customers_iba_id', 'iba_id'),
        Index('ix_customers_jetnet_id', 'jetnet_id'),
        Index('ix_customers_billing_enabled', 'billing_period_enabled', 'status'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdentityType, primary_key=True, autoincrement=True),
        description="Unique customer identifier (operator id)"
    )

    full_legal_name: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Registered legal name"
    )

    trading_brand_name: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Trading / brand name"
    )

    iba_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True),
        description="External IBA operator identifier"
    )

    jetnet_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True),
        description="External JetNet operator identifier"
    )

    billing_address: Optional[str] = Field(
        default=None,
        sa_column=Column(String(1024), nullable=True),
    )

    status: CustomerStatus = Field(
        default=CustomerStatus.PENDING,
        description="Onboarding status"
    )

    billing_period_enabled: bool = Field(
        default=False,
        description="Whether invoices are rolled up into consolidated invoices"
    )

    billing_period_type: Optional[BillingPeriodType] = Field(
        default=None,
        description="WEEKLY or MONTHLY"
    )

    billing_period_start_day: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, nullable=True),
        description="Weekday (1=Monday..7=Sunday) or day of month the period starts on"
    )

    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))

    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))
