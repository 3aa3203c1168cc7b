"""Pytest fixtures for the checkout saga and its collaborators."""

from datetime import date

import pytest

from payment_pipeline.database.transactions import InMemoryTransactionStore
from payment_pipeline.flows.checkout_saga import CheckoutSaga
from payment_pipeline.flows.contact_resolution import ContactResolver
from payment_pipeline.flows.contract_dispatch import ContractDispatcher
from payment_pipeline.flows.invoicing import InvoiceIssuer
from payment_pipeline.flows.recording import TransactionRecorder
from payment_pipeline.integrations.clients.mocks import (
    MockPandaDocClient,
    MockStripeCustomersClient,
    MockXeroClient,
)
from payment_pipeline.integrations.contracts.interfaces import Customer, CustomerMetadata
from payment_pipeline.integrations.contracts.payments import PaymentEvent
from payment_pipeline.utils.config_loader import PandaDocConfig, TemplateConfig

TODAY = date(2026, 10, 7)


@pytest.fixture
def customer():
    return Customer(
        external_id="cus_1",
        name="Ada Lovelace",
        email="a@x.com",
        phone="+15550100",
        metadata=CustomerMetadata(squadron_id="sq-7", pcp_assigned="dr-lee"),
    )


@pytest.fixture
def stripe_client(customer):
    return MockStripeCustomersClient(customers=[customer], autocreate=False)


@pytest.fixture
def xero_client():
    return MockXeroClient()


@pytest.fixture
def pandadoc_client():
    return MockPandaDocClient()


@pytest.fixture
def store():
    """In-memory transaction store stub for tests."""
    return InMemoryTransactionStore()


@pytest.fixture
def pandadoc_config():
    return PandaDocConfig(
        templates=TemplateConfig(basic="tpl-basic", premium="tpl-premium", enterprise="tpl-enterprise"),
    )


@pytest.fixture
def make_saga(stripe_client, xero_client, pandadoc_client, pandadoc_config):
    def _make(store, step_timeout_seconds=5.0, max_attempts=3):
        return CheckoutSaga(
            payments=stripe_client,
            contacts=ContactResolver(xero_client),
            invoices=InvoiceIssuer(xero_client, today=lambda: TODAY),
            contracts=ContractDispatcher(pandadoc_client, pandadoc_config, today=lambda: TODAY),
            recorder=TransactionRecorder(store, max_attempts=max_attempts, backoff_seconds=0),
            step_timeout_seconds=step_timeout_seconds,
        )

    return _make


@pytest.fixture
def saga(make_saga, store):
    return make_saga(store)


@pytest.fixture
def make_event():
    def _make(**overrides):
        fields = {
            "event_id": "evt_1",
            "type": "checkout.session.completed",
            "session_id": "s1",
            "customer_ref": "cus_1",
            "amount_minor_units": 50000,
            "currency": "usd",
            "payment_status": "paid",
        }
        fields.update(overrides)
        return PaymentEvent(**fields)

    return _make


def checkout_payload(session_id="s1", customer="cus_1", amount=50000, currency="usd", event_id="evt_1", **extra):
    """Raw Stripe webhook body for a completed checkout session."""
    session = {
        "id": session_id,
        "object": "checkout.session",
        "customer": customer,
        "amount_total": amount,
        "currency": currency,
        "payment_status": "paid",
    }
    session.update(extra)
    return {"id": event_id, "type": "checkout.session.completed", "data": {"object": session}}


@pytest.fixture(name="checkout_payload")
def checkout_payload_fixture():
    return checkout_payload
