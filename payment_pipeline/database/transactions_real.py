"""
Real SQLAlchemy-backed transaction store for production when DATABASE_URL is set.
Implements the same interface as payment_pipeline.database.transactions (in-memory stub).
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from typing import List

from sqlalchemy import create_engine, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from payment_pipeline.database.models import Base, TransactionRow
from payment_pipeline.integrations.contracts.errors import PersistenceUnavailable
from payment_pipeline.integrations.contracts.interfaces import (
    RecordStatus,
    TransactionRecord,
    TransactionStore,
)


def _normalize_connection_string(s: str) -> str:
    """Strip common mistakes: 'psql \'...\'', extra quotes, whitespace, bare postgres:// schemes."""
    s = s.strip()
    if re.match(r"^psql\s+", s, re.IGNORECASE):
        s = re.sub(r"^psql\s+", "", s, flags=re.IGNORECASE).strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        s = s[1:-1].strip()
    if s.startswith("postgres://"):
        s = "postgresql+psycopg://" + s[len("postgres://"):]
    elif s.startswith("postgresql://"):
        s = "postgresql+psycopg://" + s[len("postgresql://"):]
    return s


class SqlTransactionStore(TransactionStore):
    """
    Append-only transaction ledger using SQLAlchemy. Rows are inserted and
    read; there is deliberately no update or delete path.
    """

    def __init__(self, connection_string: str) -> None:
        connection_string = _normalize_connection_string(connection_string)
        engine_kwargs = {"pool_pre_ping": True}
        if connection_string.startswith("sqlite"):
            # appends run in worker threads
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs.update(pool_size=5, max_overflow=10)
        self.engine = create_engine(connection_string, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine, expire_on_commit=False)

    def create_tables(self) -> None:
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as exc:
            raise PersistenceUnavailable(f"could not create tables: {exc}") from exc

    @contextmanager
    def _session(self) -> Session:
        s = self.SessionLocal()
        try:
            yield s
            s.commit()
        except SQLAlchemyError as exc:
            s.rollback()
            raise PersistenceUnavailable(f"transaction store error: {exc}") from exc
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    def append(self, record: TransactionRecord) -> TransactionRecord:
        with self._session() as s:
            row = TransactionRow(
                customer_id=record.customer_id,
                customer_email=record.customer_email,
                amount=record.amount,
                currency=record.currency,
                payment_status=RecordStatus(record.payment_status).value,
                source_session_id=record.source_session_id,
                source_event_id=record.source_event_id,
                invoice_id=record.invoice_id,
                contract_id=record.contract_id,
                unsent_contract_id=record.unsent_contract_id,
                squadron_id=record.squadron_id,
                pcp_assigned=record.pcp_assigned,
                failure_stage=record.failure_stage,
                failure_kind=record.failure_kind,
                failure_message=record.failure_message,
            )
            s.add(row)
            s.flush()
            s.refresh(row)
            return _to_record(row)

    def find_by_session(self, session_id: str) -> List[TransactionRecord]:
        with self._session() as s:
            stmt = (
                select(TransactionRow)
                .where(TransactionRow.source_session_id == session_id)
                .order_by(TransactionRow.timestamp.asc())
            )
            return [_to_record(row) for row in s.execute(stmt).scalars().all()]

    def ping(self) -> bool:
        try:
            with self._session() as s:
                s.execute(text("SELECT 1"))
            return True
        except PersistenceUnavailable:
            return False


def _to_record(row: TransactionRow) -> TransactionRecord:
    return TransactionRecord(
        record_id=row.id,
        customer_id=row.customer_id,
        customer_email=row.customer_email,
        amount=row.amount,
        currency=row.currency,
        payment_status=RecordStatus(row.payment_status),
        source_session_id=row.source_session_id,
        source_event_id=row.source_event_id,
        invoice_id=row.invoice_id,
        contract_id=row.contract_id,
        unsent_contract_id=row.unsent_contract_id,
        squadron_id=row.squadron_id,
        pcp_assigned=row.pcp_assigned,
        failure_stage=row.failure_stage,
        failure_kind=row.failure_kind,
        failure_message=row.failure_message,
        timestamp=row.timestamp,
    )
