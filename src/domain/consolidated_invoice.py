"""Consolidated Invoice Domain Entity

Single billing document rolling up a customer's invoices for one billing period.
"""

from dataclasses import dataclass
from datetime import datetime, date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, Numeric, String, Date, DateTime, Integer, JSON, UniqueConstraint
from src.domain.base import BaseModel, IdentityType
from src.domain.customer import BillingPeriodType
from src.domain.invoice import Invoice, InvoiceStatus


class ConsolidatedInvoice(BaseModel, table=True):
    """
    ConsolidatedInvoice - Periodic rollup of a customer's invoices

    Domain Rules:
    - Exactly one row per (operator_id, billing_period_start, billing_period_end)
    - invoice_number must be unique (CONS-YYYY-WNN-SSS / CONS-YYYY-MNN-SSS)
    - Totals are a live aggregate of the linked invoices and are overwritten
      whenever a linked invoice changes
    - Never deleted (append-only ledger)
    """

    __tablename__ = "consolidated_invoices"
    __table_args__ = (
        UniqueConstraint(
            'operator_id', 'billing_period_start', 'billing_period_end',
            name='uq_consolidated_invoices_operator_period',
        ),
        Index('ix_consolidated_invoices_invoice_number', 'invoice_number', unique=True),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdentityType, primary_key=True, autoincrement=True),
        description="Unique consolidated invoice identifier (auto-increment)"
    )

    invoice_number: str = Field(
        sa_column=Column(String(50), nullable=False),
        description="Unique consolidated invoice number"
    )

    operator_id: int = Field(
        sa_column=Column(BigInteger, nullable=False),
        description="Customer the invoice is billed to"
    )

    billing_period_start: date = Field(
        sa_column=Column(Date, nullable=False),
        description="First day of the billing period (inclusive)"
    )

    billing_period_end: date = Field(
        sa_column=Column(Date, nullable=False),
        description="Last day of the billing period (inclusive)"
    )

    billing_period_type: BillingPeriodType = Field(
        description="WEEKLY or MONTHLY"
    )

    issue_date: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))
    due_date: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    billed_to_name: str = Field(sa_column=Column(String(255), nullable=False))
    billed_to_address: Optional[str] = Field(default=None, sa_column=Column(String(1024), nullable=True))

    total_flights: int = Field(default=0, sa_column=Column(Integer, nullable=False))
    total_invoices: int = Field(default=0, sa_column=Column(Integer, nullable=False))
    total_fee_usd: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(18, 2), nullable=False))
    total_other_usd: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(18, 2), nullable=False))
    total_usd: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(18, 2), nullable=False))

    firs_crossed: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    countries: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    status: InvoiceStatus = Field(default=InvoiceStatus.PENDING)
    auto_generated: bool = Field(default=True)

    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))

    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))

    def apply_totals(self, totals: "ConsolidationTotals") -> None:
        """Overwrite the aggregate columns with freshly computed totals"""
        self.total_flights = totals.total_flights
        self.total_invoices = totals.total_invoices
        self.total_fee_usd = totals.total_fee_usd
        self.total_other_usd = totals.total_other_usd
        self.total_usd = totals.total_usd
        self.firs_crossed = list(totals.firs_crossed)
        self.countries = list(totals.countries)
        self.updated_at = datetime.utcnow()


CENTS = Decimal("0.01")


@dataclass(frozen=True)
class ConsolidationTotals:
    total_flights: int
    total_invoices: int
    total_fee_usd: Decimal
    total_other_usd: Decimal
    total_usd: Decimal
    firs_crossed: List[str]
    countries: List[str]


def _to_usd(amount: Optional[Decimal], fx_rate: Optional[Decimal]) -> Decimal:
    if amount is None:
        return Decimal("0")
    return Decimal(amount) * (Decimal(fx_rate) if fx_rate else Decimal("1"))


def calculate_period_totals(invoices: Sequence[Invoice]) -> ConsolidationTotals:
    """
    Aggregate a set of invoices into consolidated totals

    Fee and other-fee subtotals are converted with each invoice's fx rate
    (1 when missing). The USD total uses the invoice's own USD amount and
    falls back to the converted fee plus other fees when it is missing.
    Amounts are rounded half-up to cents after summing.
    """
    fee_usd = Decimal("0")
    other_usd = Decimal("0")
    total_usd = Decimal("0")
    flights = set()
    firs = set()
    countries = set()

    for invoice in invoices:
        invoice_fee_usd = _to_usd(invoice.fee_amount, invoice.fx_rate)
        invoice_other_usd = _to_usd(invoice.other_fees_amount, invoice.fx_rate)
        fee_usd += invoice_fee_usd
        other_usd += invoice_other_usd
        if invoice.total_usd_amount is not None:
            total_usd += Decimal(invoice.total_usd_amount)
        else:
            total_usd += invoice_fee_usd + invoice_other_usd

        flights.add(invoice.flight_id)
        if invoice.fir_name:
            firs.add(invoice.fir_name)
        if invoice.fir_country:
            countries.add(invoice.fir_country)

    return ConsolidationTotals(
        total_flights=len(flights),
        total_invoices=len(invoices),
        total_fee_usd=fee_usd.quantize(CENTS, rounding=ROUND_HALF_UP),
        total_other_usd=other_usd.quantize(CENTS, rounding=ROUND_HALF_UP),
        total_usd=total_usd.quantize(CENTS, rounding=ROUND_HALF_UP),
        firs_crossed=sorted(firs),
        countries=sorted(countries),
    )
