import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from payment_pipeline.integrations.clients.real_http.xero import XeroClient
from payment_pipeline.integrations.contracts.errors import UpstreamRejected, UpstreamUnavailable
from payment_pipeline.integrations.contracts.interfaces import InvoiceLineItem


class FakeXero:
    """httpx handler standing in for the Xero identity and accounting APIs."""

    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.body = body or {}
        self.requests = []
        self.token_requests = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "identity.xero.com":
            self.token_requests += 1
            return httpx.Response(200, json={"access_token": "tok-1", "expires_in": 1800})
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)


def _client(fake):
    return XeroClient(
        client_id="cid",
        client_secret="secret",
        tenant_id="tenant-1",
        transport=httpx.MockTransport(fake),
    )


@pytest.mark.asyncio
async def test_find_contact_uses_filtered_query_and_auth_headers():
    fake = FakeXero(body={"Contacts": [{"ContactID": "c-1", "Name": "Ada", "EmailAddress": "a@x.com"}]})

    contact = await _client(fake).find_contact_by_email("a@x.com")

    assert contact.contact_id == "c-1"
    (request,) = fake.requests
    assert request.method == "GET"
    assert request.url.path.endswith("/Contacts")
    assert request.url.params["where"] == 'EmailAddress=="a@x.com"'
    assert request.headers["Authorization"] == "Bearer tok-1"
    assert request.headers["xero-tenant-id"] == "tenant-1"


@pytest.mark.asyncio
async def test_find_contact_returns_none_when_no_exact_match():
    fake = FakeXero(body={"Contacts": [{"ContactID": "c-1", "Name": "Ada", "EmailAddress": "A@X.COM"}]})

    assert await _client(fake).find_contact_by_email("a@x.com") is None


@pytest.mark.asyncio
async def test_create_contact_omits_phone_when_absent():
    fake = FakeXero(body={"Contacts": [{"ContactID": "c-2", "Name": "Ada", "EmailAddress": "a@x.com"}]})
    client = _client(fake)

    await client.create_contact("Ada", "a@x.com")
    await client.create_contact("Ada", "a@x.com", phone="555")

    first, second = (json.loads(r.content)["Contacts"][0] for r in fake.requests)
    assert fake.requests[0].method == "PUT"
    assert "Phones" not in first
    assert second["Phones"] == [{"PhoneType": "MOBILE", "PhoneNumber": "555"}]
    assert fake.token_requests == 1


@pytest.mark.asyncio
async def test_create_invoice_payload_and_idempotency_header():
    fake = FakeXero(
        body={"Invoices": [{"InvoiceID": "inv-1", "Status": "AUTHORISED", "Contact": {"ContactID": "c-1"}}]}
    )
    line = InvoiceLineItem(
        description="Vision Lake Subscription", quantity=1, unit_amount=Decimal("500.00"), account_code="200"
    )

    invoice = await _client(fake).create_invoice(
        "c-1", [line], date(2026, 10, 7), "usd", idempotency_key="s1:invoice"
    )

    assert invoice.invoice_id == "inv-1"
    assert invoice.issue_date == date(2026, 10, 7)
    (request,) = fake.requests
    assert request.method == "PUT"
    assert request.headers["Idempotency-Key"] == "s1:invoice"
    body = json.loads(request.content)["Invoices"][0]
    assert body["Type"] == "ACCREC"
    assert body["Contact"] == {"ContactID": "c-1"}
    assert body["Status"] == "AUTHORISED"
    assert body["Date"] == "2026-10-07"
    assert body["CurrencyCode"] == "USD"
    assert body["LineItems"] == [
        {"Description": "Vision Lake Subscription", "Quantity": 1, "UnitAmount": 500.0, "AccountCode": "200"}
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code, error", [(503, UpstreamUnavailable), (429, UpstreamUnavailable), (400, UpstreamRejected)])
async def test_http_errors_are_classified(status_code, error):
    fake = FakeXero(status_code=status_code, body={"Message": "nope"})

    with pytest.raises(error) as info:
        await _client(fake).find_contact_by_email("a@x.com")
    assert info.value.status_code == status_code
    assert info.value.system == "xero"


@pytest.mark.asyncio
async def test_connection_failure_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = XeroClient(client_id="cid", client_secret="secret", transport=httpx.MockTransport(handler))

    with pytest.raises(UpstreamUnavailable):
        await client.find_contact_by_email("a@x.com")


@pytest.mark.asyncio
async def test_missing_credentials_are_rejected(monkeypatch):
    monkeypatch.delenv("XERO_CLIENT_ID", raising=False)
    monkeypatch.delenv("XERO_CLIENT_SECRET", raising=False)
    fake = FakeXero()

    with pytest.raises(UpstreamRejected):
        await XeroClient(transport=httpx.MockTransport(fake)).find_contact_by_email("a@x.com")
    assert fake.requests == []
