import asyncio
import logging
from decimal import Decimal

import pytest

from payment_pipeline.database.transactions_real import SqlTransactionStore
from payment_pipeline.flows.checkout_saga import SagaStage, SagaStep
from payment_pipeline.integrations.contracts.errors import (
    FailureKind,
    PersistenceUnavailable,
    UpstreamRejected,
    UpstreamUnavailable,
)
from payment_pipeline.integrations.contracts.interfaces import RecordStatus


class DownStore:
    """Store that is unreachable for reads and writes."""

    def create_tables(self):
        return None

    def append(self, record):
        raise PersistenceUnavailable("connection refused")

    def find_by_session(self, session_id):
        raise PersistenceUnavailable("connection refused")

    def ping(self):
        return False


class WriteOnlyDownStore(DownStore):
    def __init__(self):
        self.appends = 0

    def find_by_session(self, session_id):
        return []

    def append(self, record):
        self.appends += 1
        raise PersistenceUnavailable("disk full")


@pytest.mark.asyncio
async def test_paid_checkout_issues_invoice_sends_premium_contract_and_records(
    saga, make_event, store, xero_client, pandadoc_client
):
    outcome = await saga.handle(make_event())

    assert outcome.status == "completed"
    assert outcome.stage == SagaStage.ACKNOWLEDGED
    assert outcome.acknowledgement() == (200, {"received": True})

    assert len(xero_client.contacts) == 1
    assert xero_client.contacts[0].email == "a@x.com"
    assert len(xero_client.invoices) == 1
    invoice = xero_client.invoices[0]
    assert invoice.total == Decimal("500.00")
    assert invoice.line_items[0].description == "Vision Lake Subscription"
    assert invoice.line_items[0].account_code == "200"
    assert invoice.status == "AUTHORISED"

    assert len(pandadoc_client.sent) == 1
    contract = pandadoc_client.sent_to("a@x.com")
    assert contract.template_id == "tpl-premium"
    tokens = {t.name: t.value for t in contract.tokens}
    assert tokens == {
        "client.name": "Ada Lovelace",
        "subscription.amount": "$500.00",
        "subscription.date": "10/7/2026",
    }
    recipient = pandadoc_client.recipients[contract.contract_id]
    assert (recipient.first_name, recipient.last_name, recipient.role) == ("Ada", "Lovelace", "Client")

    records = store.all_records()
    assert len(records) == 1
    record = records[0]
    assert record.payment_status == RecordStatus.COMPLETED
    assert record.record_id == outcome.record_id
    assert record.invoice_id == invoice.invoice_id
    assert record.contract_id == contract.contract_id
    assert record.amount == 50000
    assert record.currency == "usd"
    assert record.customer_id == "cus_1"
    assert record.customer_email == "a@x.com"
    assert record.squadron_id == "sq-7"
    assert record.pcp_assigned == "dr-lee"
    assert record.source_session_id == "s1"
    assert record.source_event_id == "evt_1"


@pytest.mark.asyncio
async def test_redelivered_session_is_acknowledged_without_side_effects(
    saga, make_event, store, stripe_client, xero_client, pandadoc_client
):
    first = await saga.handle(make_event())
    second = await saga.handle(make_event(event_id="evt_2"))

    assert second.status == "duplicate"
    assert second.record_id == first.record_id
    assert second.acknowledgement() == (200, {"received": True})
    assert stripe_client.calls == 1
    assert len(xero_client.invoices) == 1
    assert len(pandadoc_client.sent) == 1
    assert len(store.all_records()) == 1


@pytest.mark.asyncio
async def test_existing_contact_is_reused(saga, make_event, xero_client):
    await saga.handle(make_event(session_id="s1"))
    await saga.handle(make_event(session_id="s2", event_id="evt_2"))

    assert len(xero_client.contacts) == 1
    assert len(xero_client.invoices) == 2
    assert {i.contact_id for i in xero_client.invoices} == {xero_client.contacts[0].contact_id}


@pytest.mark.asyncio
async def test_rejected_contact_records_failure_and_acknowledges(
    saga, make_event, store, xero_client, pandadoc_client
):
    xero_client.fail_on["create_contact"] = UpstreamRejected(
        "A validation exception occurred", system="xero", status_code=400
    )

    outcome = await saga.handle(make_event())

    assert outcome.status == "failed"
    assert outcome.stage == SagaStage.FAILED
    assert outcome.failure.step == SagaStep.CONTACT
    assert outcome.failure.kind == FailureKind.REJECTED
    assert outcome.acknowledgement() == (200, {"received": True})
    assert xero_client.invoices == []
    assert pandadoc_client.sent == []

    (record,) = store.all_records()
    assert record.payment_status == RecordStatus.FAILED
    assert record.invoice_id is None
    assert record.contract_id is None
    assert record.failure_stage == "contact"
    assert record.failure_kind == "upstream_rejected"


@pytest.mark.asyncio
async def test_contract_outage_leaves_partial_record_and_redelivery_resumes(
    saga, make_event, store, xero_client, pandadoc_client
):
    pandadoc_client.fail_on["send_document"] = UpstreamUnavailable("503 from pandadoc", system="pandadoc")

    first = await saga.handle(make_event())

    assert first.status == "partial"
    assert first.failure.step == SagaStep.CONTRACT
    status_code, body = first.acknowledgement()
    assert status_code == 500
    assert "contract" in body["error"]
    (partial,) = store.all_records()
    assert partial.payment_status == RecordStatus.PARTIAL
    assert partial.invoice_id == xero_client.invoices[0].invoice_id
    assert partial.contract_id is None
    (document_id,) = pandadoc_client.documents
    assert partial.unsent_contract_id == document_id

    pandadoc_client.fail_on.clear()
    second = await saga.handle(make_event(event_id="evt_1_retry"))

    assert second.status == "completed"
    assert second.resumed is True
    assert second.invoice_id == partial.invoice_id
    assert len(xero_client.invoices) == 1
    assert len(pandadoc_client.sent) == 1
    assert len(pandadoc_client.documents) == 1
    assert second.contract_id == document_id

    records = store.all_records()
    assert [r.payment_status for r in records] == [RecordStatus.PARTIAL, RecordStatus.COMPLETED]
    assert records[1].invoice_id == partial.invoice_id
    assert records[1].contract_id == document_id
    assert records[1].unsent_contract_id is None

    third = await saga.handle(make_event(event_id="evt_1_again"))
    assert third.status == "duplicate"
    assert len(store.all_records()) == 2


@pytest.mark.asyncio
async def test_redelivery_does_not_resend_a_contract_that_went_out(saga, make_event, store, pandadoc_client):
    pandadoc_client.fail_on["send_document"] = UpstreamUnavailable("connection reset", system="pandadoc")
    await saga.handle(make_event())
    (document_id,) = pandadoc_client.documents
    # the send reached PandaDoc even though the response was lost
    pandadoc_client.statuses[document_id] = "document.sent"
    pandadoc_client.fail_on.clear()

    outcome = await saga.handle(make_event(event_id="evt_1_retry"))

    assert outcome.status == "completed"
    assert outcome.contract_id == document_id
    assert pandadoc_client.sent == []
    assert len(pandadoc_client.documents) == 1
    assert store.all_records()[-1].contract_id == document_id


@pytest.mark.asyncio
async def test_voided_unsent_contract_is_rejected_on_redelivery(saga, make_event, store, pandadoc_client):
    pandadoc_client.fail_on["send_document"] = UpstreamUnavailable("503 from pandadoc", system="pandadoc")
    await saga.handle(make_event())
    (document_id,) = pandadoc_client.documents
    pandadoc_client.statuses[document_id] = "document.voided"
    pandadoc_client.fail_on.clear()

    outcome = await saga.handle(make_event(event_id="evt_1_retry"))

    assert outcome.status == "partial"
    assert outcome.failure.kind == FailureKind.REJECTED
    assert outcome.acknowledgement() == (200, {"received": True})
    assert store.all_records()[-1].unsent_contract_id == document_id
    assert len(pandadoc_client.documents) == 1


@pytest.mark.asyncio
async def test_send_timeout_still_records_the_created_document(make_saga, make_event, store, pandadoc_client):
    original = pandadoc_client.send_document

    async def slow_send(contract_id, message, silent=False):
        await asyncio.sleep(1)
        return await original(contract_id, message, silent)

    pandadoc_client.send_document = slow_send
    saga = make_saga(store, step_timeout_seconds=0.05)

    outcome = await saga.handle(make_event())

    assert outcome.failure.step == SagaStep.CONTRACT
    assert "timed out" in outcome.failure.message
    (document_id,) = pandadoc_client.documents
    assert outcome.unsent_contract_id == document_id
    (record,) = store.all_records()
    assert record.payment_status == RecordStatus.PARTIAL
    assert record.unsent_contract_id == document_id
    assert record.contract_id is None


@pytest.mark.asyncio
async def test_guest_checkout_uses_session_customer_details(saga, make_event, store, stripe_client, pandadoc_client):
    event = make_event(customer_ref=None, customer_email="g@x.com", customer_name="Grace Hopper")

    outcome = await saga.handle(event)

    assert outcome.status == "completed"
    assert stripe_client.calls == 0
    assert pandadoc_client.sent_to("g@x.com") is not None
    (record,) = store.all_records()
    assert record.customer_id == "guest:s1"
    assert record.customer_email == "g@x.com"


@pytest.mark.asyncio
async def test_rejected_contract_after_invoice_is_partial_and_acknowledged(
    saga, make_event, store, pandadoc_client
):
    pandadoc_client.fail_on["create_document"] = UpstreamRejected("template not found", system="pandadoc", status_code=404)

    outcome = await saga.handle(make_event())

    assert outcome.status == "partial"
    assert outcome.failure.kind == FailureKind.REJECTED
    assert outcome.acknowledgement() == (200, {"received": True})
    (record,) = store.all_records()
    assert record.invoice_id is not None
    assert record.failure_stage == "contract"


@pytest.mark.asyncio
async def test_stripe_outage_is_retryable_and_next_delivery_completes(saga, make_event, store, stripe_client):
    stripe_client.fail_with = UpstreamUnavailable("stripe timed out", system="stripe")

    first = await saga.handle(make_event())

    assert first.status == "failed"
    assert first.failure.step == SagaStep.CUSTOMER
    assert first.acknowledgement()[0] == 500
    (failed,) = store.all_records()
    assert failed.payment_status == RecordStatus.FAILED
    assert failed.customer_id == "cus_1"
    assert failed.customer_email is None

    stripe_client.fail_with = None
    second = await saga.handle(make_event())

    assert second.status == "completed"
    assert second.resumed is False


@pytest.mark.asyncio
async def test_slow_step_times_out_as_unavailable(make_saga, make_event, store, stripe_client):
    original = stripe_client.get_customer

    async def slow_get_customer(customer_ref):
        await asyncio.sleep(1)
        return await original(customer_ref)

    stripe_client.get_customer = slow_get_customer
    saga = make_saga(store, step_timeout_seconds=0.05)

    outcome = await saga.handle(make_event())

    assert outcome.failure.step == SagaStep.CUSTOMER
    assert outcome.failure.kind == FailureKind.UNAVAILABLE
    assert "timed out" in outcome.failure.message
    assert outcome.acknowledgement()[0] == 500


@pytest.mark.asyncio
async def test_unexpected_error_is_treated_as_retryable(saga, make_event, store, pandadoc_client):
    pandadoc_client.fail_on["create_document"] = RuntimeError("boom")

    outcome = await saga.handle(make_event())

    assert outcome.status == "partial"
    assert outcome.failure.kind == FailureKind.UNAVAILABLE
    assert "RuntimeError" in outcome.failure.message
    assert outcome.acknowledgement()[0] == 500


@pytest.mark.asyncio
async def test_unreadable_store_fails_before_any_side_effect(make_saga, make_event, stripe_client, xero_client):
    saga = make_saga(DownStore())

    outcome = await saga.handle(make_event())

    assert outcome.failure.step == SagaStep.IDEMPOTENCY
    assert outcome.failure.kind == FailureKind.PERSISTENCE
    assert outcome.acknowledgement()[0] == 500
    assert stripe_client.calls == 0
    assert xero_client.invoices == []


@pytest.mark.asyncio
async def test_unwritable_store_is_retried_then_reported(make_saga, make_event, caplog):
    store = WriteOnlyDownStore()
    saga = make_saga(store, max_attempts=3)

    with caplog.at_level(logging.CRITICAL):
        outcome = await saga.handle(make_event())

    assert store.appends == 3
    assert outcome.stage == SagaStage.FAILED
    assert outcome.failure.step == SagaStep.RECORD
    assert outcome.failure.kind == FailureKind.PERSISTENCE
    assert outcome.invoice_id is not None
    assert outcome.contract_id is not None
    assert outcome.acknowledgement()[0] == 500
    assert any("UNRECORDED TRANSACTION" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_unpaid_session_is_ignored(saga, make_event, store, stripe_client):
    outcome = await saga.handle(make_event(payment_status="unpaid"))

    assert outcome.status == "ignored"
    assert outcome.acknowledgement() == (200, {"received": True})
    assert stripe_client.calls == 0
    assert store.all_records() == []


@pytest.mark.asyncio
async def test_other_event_types_are_ignored(saga, make_event, store):
    outcome = await saga.handle(make_event(type="invoice.paid"))

    assert outcome.status == "ignored"
    assert store.all_records() == []


@pytest.mark.asyncio
async def test_redelivery_is_deduplicated_with_sql_store(make_saga, make_event, tmp_path, xero_client, pandadoc_client):
    store = SqlTransactionStore(f"sqlite:///{tmp_path / 'ledger.db'}")
    store.create_tables()
    saga = make_saga(store)

    first = await saga.handle(make_event())
    second = await saga.handle(make_event(event_id="evt_2"))

    assert first.status == "completed"
    assert second.status == "duplicate"
    assert len(xero_client.invoices) == 1
    assert len(pandadoc_client.sent) == 1
    assert len(store.find_by_session("s1")) == 1
