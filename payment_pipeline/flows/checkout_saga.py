"""Checkout Saga: drives Stripe → Xero → PandaDoc → ledger for one paid session.

There is no transaction spanning the three external systems, so the saga
relies on three things instead:

    1. Idempotency: the checkout session id is the dedup key. A session with a
       ``completed`` record is acknowledged without touching anything.
    2. Resumption: a ``partial`` record left by an earlier delivery carries the
       invoice / contract ids already created; a redelivery reuses them instead
       of issuing a second invoice or sending a second contract.
    3. Recording every outcome: completed, partial (some side effects exist) or
       failed (none exist), before the event source is acknowledged.

Flow:
    RECEIVED → CONTACT_RESOLVED → INVOICED → CONTRACT_DISPATCHED → RECORDED → ACKNOWLEDGED
    any step failing → FAILED(stage, kind), still recorded when the store is up.

Acknowledgement policy:
    - completed / duplicate / ignored            → 200 {"received": true}
    - upstream rejected (recorded for follow-up)   → 200 {"received": true}
    - upstream unavailable / store unavailable     → 500 {"error": ...} so the source redelivers
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Tuple, TypeVar

from payment_pipeline.flows.contact_resolution import ContactResolver
from payment_pipeline.flows.contract_dispatch import ContractDispatcher
from payment_pipeline.flows.invoicing import InvoiceIssuer
from payment_pipeline.flows.recording import TransactionRecorder
from payment_pipeline.integrations.contracts.errors import (
    FailureKind,
    PersistenceUnavailable,
    PipelineError,
    UpstreamUnavailable,
)
from payment_pipeline.integrations.contracts.interfaces import (
    Customer,
    PaymentProcessorClient,
    RecordStatus,
    TransactionRecord,
)
from payment_pipeline.integrations.contracts.payments import PaymentEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SagaStage(str, Enum):
    RECEIVED = "received"
    CONTACT_RESOLVED = "contact_resolved"
    INVOICED = "invoiced"
    CONTRACT_DISPATCHED = "contract_dispatched"
    RECORDED = "recorded"
    ACKNOWLEDGED = "acknowledged"
    FAILED = "failed"


class SagaStep(str, Enum):
    IDEMPOTENCY = "idempotency"
    CUSTOMER = "customer"
    CONTACT = "contact"
    INVOICE = "invoice"
    CONTRACT = "contract"
    RECORD = "record"


@dataclass(frozen=True)
class SagaFailure:
    step: SagaStep
    kind: FailureKind
    message: str
    system: str = "unknown"

    @classmethod
    def from_error(cls, step: SagaStep, error: PipelineError) -> "SagaFailure":
        return cls(step=step, kind=error.kind, message=error.message, system=error.system)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


@dataclass(frozen=True)
class SagaOutcome:
    session_id: str
    stage: SagaStage
    status: str                      # completed | partial | failed | duplicate | ignored
    record_id: Optional[str] = None
    invoice_id: Optional[str] = None
    contract_id: Optional[str] = None
    unsent_contract_id: Optional[str] = None
    failure: Optional[SagaFailure] = None
    resumed: bool = False

    def acknowledgement(self) -> Tuple[int, Dict[str, Any]]:
        """HTTP status and body to answer the event source with."""
        if self.failure is not None and self.failure.retryable:
            return 500, {"error": f"{self.failure.step.value}: {self.failure.message}"}
        return 200, {"received": True}


class CheckoutSaga:
    def __init__(
        self,
        payments: PaymentProcessorClient,
        contacts: ContactResolver,
        invoices: InvoiceIssuer,
        contracts: ContractDispatcher,
        recorder: TransactionRecorder,
        step_timeout_seconds: float = 30.0,
    ) -> None:
        self.payments = payments
        self.contacts = contacts
        self.invoices = invoices
        self.contracts = contracts
        self.recorder = recorder
        self.step_timeout_seconds = step_timeout_seconds

    async def handle(self, event: PaymentEvent) -> SagaOutcome:
        session_id = event.session_id

        if not event.is_checkout_completed:
            logger.info("Ignoring %s event %s", event.type, event.event_id)
            return SagaOutcome(session_id=session_id, stage=SagaStage.ACKNOWLEDGED, status="ignored")
        if not event.is_paid:
            logger.warning("Session %s completed with payment_status=%s; nothing to fulfil yet", session_id, event.payment_status)
            return SagaOutcome(session_id=session_id, stage=SagaStage.ACKNOWLEDGED, status="ignored")

        # 1) Idempotency
        try:
            history = await self.recorder.history(session_id)
        except PersistenceUnavailable as exc:
            failure = SagaFailure.from_error(SagaStep.IDEMPOTENCY, exc)
            logger.error("Cannot check prior outcomes for session %s: %s", session_id, exc)
            return SagaOutcome(session_id=session_id, stage=SagaStage.FAILED, status="failed", failure=failure)

        completed = next((r for r in history if r.payment_status == RecordStatus.COMPLETED), None)
        if completed is not None:
            logger.info("Session %s already recorded as %s; skipping", session_id, completed.record_id)
            return SagaOutcome(
                session_id=session_id,
                stage=SagaStage.ACKNOWLEDGED,
                status="duplicate",
                record_id=completed.record_id,
                invoice_id=completed.invoice_id,
                contract_id=completed.contract_id,
            )

        invoice_id = _latest(history, "invoice_id")
        contract_id = _latest(history, "contract_id")
        unsent_contract_id = None if contract_id else _latest(history, "unsent_contract_id")
        resumed = bool(invoice_id or contract_id or unsent_contract_id)
        if resumed:
            logger.info(
                "Resuming session %s from partial outcome (invoice=%s, contract=%s, unsent contract=%s)",
                session_id,
                invoice_id,
                contract_id,
                unsent_contract_id,
            )

        # 2) + 3) Customer, contact, invoice, contract
        stage = SagaStage.RECEIVED
        step = SagaStep.CUSTOMER
        customer: Optional[Customer] = None
        failure: Optional[SagaFailure] = None
        try:
            if event.is_guest:
                customer = _guest_customer(event)
            else:
                customer = await self._bounded(step, self.payments.get_customer(event.customer_ref))
            logger.info("Fetched customer %s for session %s", customer.external_id, session_id)

            if invoice_id is None:
                step = SagaStep.CONTACT
                contact = await self._bounded(step, self.contacts.resolve(customer))
                stage = SagaStage.CONTACT_RESOLVED

                step = SagaStep.INVOICE
                invoice = await self._bounded(
                    step,
                    self.invoices.issue(
                        contact,
                        event.amount_minor_units,
                        event.currency,
                        idempotency_key=f"{session_id}:invoice",
                    ),
                )
                invoice_id = invoice.invoice_id
            stage = SagaStage.INVOICED

            if contract_id is None:
                step = SagaStep.CONTRACT
                if unsent_contract_id is None:
                    contract = await self._bounded(
                        step,
                        self.contracts.prepare(customer, event.amount_minor_units, event.currency),
                    )
                    # known before sending, so a failed send still leaves a trace
                    unsent_contract_id = contract.contract_id
                    await self._bounded(step, self.contracts.send(unsent_contract_id))
                else:
                    await self._bounded(step, self.contracts.resume(unsent_contract_id))
                contract_id, unsent_contract_id = unsent_contract_id, None
            stage = SagaStage.CONTRACT_DISPATCHED
        except PipelineError as exc:
            failure = SagaFailure.from_error(step, exc)
        except Exception as exc:
            logger.exception("Unexpected error in checkout saga step %s for session %s", step.value, session_id)
            failure = SagaFailure(step=step, kind=FailureKind.UNAVAILABLE, message=f"{type(exc).__name__}: {exc}")

        if failure is None:
            status = RecordStatus.COMPLETED
        elif invoice_id or contract_id or unsent_contract_id:
            status = RecordStatus.PARTIAL
        else:
            status = RecordStatus.FAILED

        if failure is not None:
            logger.error(
                "Checkout saga for session %s failed at %s after %s (%s from %s): %s%s",
                session_id,
                failure.step.value,
                stage.value,
                failure.kind.value,
                failure.system,
                failure.message,
                "" if failure.retryable else "; manual remediation required",
            )

        # 4) Record
        try:
            record_id = await self.recorder.record(
                customer,
                event,
                invoice_id,
                contract_id,
                unsent_contract_id=unsent_contract_id,
                status=status,
                failure_stage=failure.step.value if failure else None,
                failure_kind=failure.kind.value if failure else None,
                failure_message=failure.message if failure else None,
            )
        except PersistenceUnavailable as exc:
            return SagaOutcome(
                session_id=session_id,
                stage=SagaStage.FAILED,
                status=status.value,
                invoice_id=invoice_id,
                contract_id=contract_id,
                unsent_contract_id=unsent_contract_id,
                failure=SagaFailure.from_error(SagaStep.RECORD, exc),
                resumed=resumed,
            )

        stage = SagaStage.RECORDED if failure is None else SagaStage.FAILED
        logger.debug("Session %s reached %s (record %s)", session_id, stage.value, record_id)

        # 5) Acknowledge
        if failure is None:
            logger.info("Payment processed successfully: %s", session_id)
        return SagaOutcome(
            session_id=session_id,
            stage=SagaStage.ACKNOWLEDGED if failure is None else SagaStage.FAILED,
            status=status.value,
            record_id=record_id,
            invoice_id=invoice_id,
            contract_id=contract_id,
            unsent_contract_id=unsent_contract_id,
            failure=failure,
            resumed=resumed,
        )

    async def _bounded(self, step: SagaStep, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.step_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise UpstreamUnavailable(
                f"{step.value} step timed out after {self.step_timeout_seconds:.0f}s",
                system=step.value,
            ) from exc


def _latest(history: List[TransactionRecord], attr: str) -> Optional[str]:
    for record in reversed(history):
        value = getattr(record, attr)
        if value:
            return value
    return None


def _guest_customer(event: PaymentEvent) -> Customer:
    return Customer(
        external_id=event.customer_key,
        name=event.customer_name,
        email=event.customer_email,
        phone=event.customer_phone,
    )
