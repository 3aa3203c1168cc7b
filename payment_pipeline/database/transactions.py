"""
Lightweight in-memory transaction store for local development and tests.

Implements the same interface as payment_pipeline.database.transactions_real
so the API and the checkout saga can run without a real database. It is NOT
intended for production use: records vanish on restart.
"""

from __future__ import annotations

import dataclasses
import threading
import uuid
from datetime import datetime, timezone
from typing import List

from payment_pipeline.integrations.contracts.interfaces import TransactionRecord, TransactionStore


class InMemoryTransactionStore(TransactionStore):
    """
    In-memory stand-in for the SQLAlchemy-backed store.

    Records are only ever appended; nothing here updates or deletes one.
    """

    def __init__(self) -> None:
        self._records: List[TransactionRecord] = []
        self._lock = threading.Lock()

    def create_tables(self) -> None:
        """
        No-op for the in-memory implementation. Kept for compatibility
        with the startup hook in `payment_pipeline/api/main.py`.
        """
        return None

    def append(self, record: TransactionRecord) -> TransactionRecord:
        stored = dataclasses.replace(
            record,
            record_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
        )
        with self._lock:
            self._records.append(stored)
        return stored

    def find_by_session(self, session_id: str) -> List[TransactionRecord]:
        with self._lock:
            return [r for r in self._records if r.source_session_id == session_id]

    def all_records(self) -> List[TransactionRecord]:
        with self._lock:
            return list(self._records)

    def ping(self) -> bool:
        return True
