"""
Transaction recording.

Appends one immutable record per saga run. The append is the proof that a
checkout was processed, so a store outage is retried here with exponential
backoff before the failure is allowed to escape.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import List, Optional

from payment_pipeline.integrations.contracts.errors import PersistenceUnavailable
from payment_pipeline.integrations.contracts.interfaces import (
    Customer,
    RecordStatus,
    TransactionRecord,
    TransactionStore,
)
from payment_pipeline.integrations.contracts.payments import PaymentEvent

logger = logging.getLogger(__name__)


class TransactionRecorder:
    def __init__(
        self,
        store: TransactionStore,
        max_attempts: int = 5,
        backoff_seconds: float = 0.5,
    ) -> None:
        self.store = store
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds

    async def record(
        self,
        customer: Optional[Customer],
        event: PaymentEvent,
        invoice_id: Optional[str],
        contract_id: Optional[str],
        unsent_contract_id: Optional[str] = None,
        status: RecordStatus = RecordStatus.COMPLETED,
        failure_stage: Optional[str] = None,
        failure_kind: Optional[str] = None,
        failure_message: Optional[str] = None,
    ) -> str:
        metadata = customer.metadata if customer else None
        record = TransactionRecord(
            customer_id=customer.external_id if customer else event.customer_key,
            customer_email=customer.email if customer else event.customer_email,
            amount=event.amount_minor_units,
            currency=event.currency,
            payment_status=status,
            source_session_id=event.session_id,
            source_event_id=event.event_id,
            invoice_id=invoice_id,
            contract_id=contract_id,
            unsent_contract_id=unsent_contract_id,
            squadron_id=metadata.squadron_id if metadata else None,
            pcp_assigned=metadata.pcp_assigned if metadata else None,
            failure_stage=failure_stage,
            failure_kind=failure_kind,
            failure_message=failure_message,
        )
        stored = await self._append_with_retry(record)
        logger.info(
            "Recorded %s transaction %s for session %s",
            status.value,
            stored.record_id,
            event.session_id,
        )
        return str(stored.record_id)

    async def history(self, session_id: str) -> List[TransactionRecord]:
        try:
            return await asyncio.to_thread(self.store.find_by_session, session_id)
        except PersistenceUnavailable:
            raise
        except Exception as exc:
            raise PersistenceUnavailable(f"could not read records for session {session_id}: {exc}") from exc

    async def _append_with_retry(self, record: TransactionRecord) -> TransactionRecord:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await asyncio.to_thread(self.store.append, record)
            except Exception as exc:
                last_error = exc
                if attempt >= self.max_attempts:
                    break
                backoff = self.backoff_seconds * (2 ** (attempt - 1)) + random.uniform(0, self.backoff_seconds)
                logger.warning(
                    "Transaction append failed on attempt %s/%s (%s). Retrying in %.2fs...",
                    attempt,
                    self.max_attempts,
                    type(exc).__name__,
                    backoff,
                )
                await asyncio.sleep(backoff)

        # External side effects may already exist without a durable record of them.
        logger.critical(
            "UNRECORDED TRANSACTION session=%s event=%s status=%s invoice=%s contract=%s unsent_contract=%s customer=%s error=%s",
            record.source_session_id,
            record.source_event_id,
            RecordStatus(record.payment_status).value,
            record.invoice_id,
            record.contract_id,
            record.unsent_contract_id,
            record.customer_id,
            last_error,
        )
        if isinstance(last_error, PersistenceUnavailable):
            raise last_error
        raise PersistenceUnavailable(f"could not append transaction record: {last_error}") from last_error
