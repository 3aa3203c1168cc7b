"""
SQLAlchemy model for the append-only transactions ledger.
Used by transactions_real when DATABASE_URL is set.
"""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from uuid import uuid4
from sqlalchemy import BigInteger, DateTime, Index, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class TransactionRow(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_session_status", "source_session_id", "payment_status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    customer_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)  # minor units
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False)  # completed / partial / failed
    source_session_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    source_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    invoice_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    contract_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    unsent_contract_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    squadron_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    pcp_assigned: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    failure_stage: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    failure_kind: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    failure_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
