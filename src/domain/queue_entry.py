"""Flight Processing Queue Domain Entity

Durable backlog of flights awaiting fee computation.
"""

from datetime import datetime
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, DateTime
from src.domain.base import BaseModel, IdentityType


class QueueEntry(BaseModel, table=True):
    """
    QueueEntry - One flight awaiting processing

    Domain Rules:
    - Created by the upstream ingestion source
    - Read and deleted only by the ingestion pipeline
    - Deleted only after the flight was fully processed
    - An entry is either queued or processed, never both
    """

    __tablename__ = "flight_processing_queue"
    __table_args__ = (
        Index('ix_flight_processing_queue_enqueued_at', 'enqueued_at'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdentityType, primary_key=True, autoincrement=True),
        description="Unique queue entry identifier (auto-increment)"
    )

    flight_id: int = Field(
        sa_column=Column(BigInteger, nullable=False),
        description="Upstream flight identifier (64-bit)"
    )

    enqueued_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime, nullable=False),
        description="Timestamp when the flight was enqueued"
    )
