"""
Real Xero accounting HTTP client.

Used when Xero custom-connection credentials are configured. Tokens come from
the client-credentials grant and are cached until shortly before expiry.
"""

from __future__ import annotations

import logging
import os
import time
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from payment_pipeline.integrations.contracts.errors import UpstreamRejected
from payment_pipeline.integrations.contracts.interfaces import (
    AccountingClient,
    Contact,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
)
from payment_pipeline.integrations.policy.response_wrappers import (
    IntegrationResponseError,
    normalize_xero_contact,
    normalize_xero_invoice,
)
from payment_pipeline.integrations.policy.upstream_errors import translate_http_error

logger = logging.getLogger(__name__)

_TOKEN_REFRESH_MARGIN_SECONDS = 60


class XeroClient(AccountingClient):
    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        tenant_id: Optional[str] = None,
        base_url: str = "https://api.xero.com/api.xro/2.0",
        token_url: str = "https://identity.xero.com/connect/token",
        scopes: str = "accounting.transactions accounting.contacts",
        timeout_seconds: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.client_id = client_id or os.getenv("XERO_CLIENT_ID", "")
        self.client_secret = client_secret or os.getenv("XERO_CLIENT_SECRET", "")
        self.tenant_id = tenant_id or os.getenv("XERO_TENANT_ID", "")
        self.base_url = base_url.rstrip("/")
        self.token_url = token_url
        self.scopes = scopes
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    async def find_contact_by_email(self, email: str) -> Optional[Contact]:
        escaped = email.replace('"', '\\"')
        data = await self._request("GET", "/Contacts", params={"where": f'EmailAddress=="{escaped}"'})
        for raw in data.get("Contacts") or []:
            if isinstance(raw, dict) and raw.get("EmailAddress") == email:
                return self._normalize(normalize_xero_contact, raw)
        return None

    async def create_contact(self, name: str, email: str, phone: Optional[str] = None) -> Contact:
        new_contact: Dict[str, Any] = {"Name": name, "EmailAddress": email}
        if phone:
            new_contact["Phones"] = [{"PhoneType": "MOBILE", "PhoneNumber": phone}]

        data = await self._request("PUT", "/Contacts", json={"Contacts": [new_contact]})
        contacts = data.get("Contacts") or []
        if not contacts:
            raise UpstreamRejected("Xero returned no contact for create request", system="xero", payload=data)
        return self._normalize(normalize_xero_contact, contacts[0])

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    async def create_invoice(
        self,
        contact_id: str,
        line_items: List[InvoiceLineItem],
        issue_date: date,
        currency: str,
        idempotency_key: Optional[str] = None,
    ) -> Invoice:
        invoice = {
            "Type": "ACCREC",
            "Contact": {"ContactID": contact_id},
            "LineItems": [
                {
                    "Description": item.description,
                    "Quantity": item.quantity,
                    # float() of a 2dp Decimal round-trips to the same shortest repr on the wire
                    "UnitAmount": float(item.unit_amount),
                    "AccountCode": item.account_code,
                }
                for item in line_items
            ],
            "Status": InvoiceStatus.AUTHORISED.value,
            "Date": issue_date.isoformat(),
            "CurrencyCode": currency.upper(),
        }
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None

        data = await self._request("PUT", "/Invoices", json={"Invoices": [invoice]}, headers=headers)
        invoices = data.get("Invoices") or []
        if not invoices:
            raise UpstreamRejected("Xero returned no invoice for create request", system="xero", payload=data)
        return self._normalize(
            normalize_xero_invoice,
            invoices[0],
            fallback_contact_id=contact_id,
            fallback_date=issue_date,
            fallback_currency=currency,
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            token = await self._get_access_token()
            request_headers = {
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            }
            if self.tenant_id:
                request_headers["xero-tenant-id"] = self.tenant_id
            request_headers.update(headers or {})

            logger.info("Xero %s %s", method, path)
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.request(method, url, params=params, json=json, headers=request_headers)
                response.raise_for_status()
                return response.json() if response.content else {}
        except Exception as exc:
            raise translate_http_error(exc, system="xero") from exc

    async def _get_access_token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        if not self.client_id or not self.client_secret:
            raise UpstreamRejected("XERO_CLIENT_ID / XERO_CLIENT_SECRET are not configured.", system="xero")

        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            response = await client.post(
                self.token_url,
                data={"grant_type": "client_credentials", "scope": self.scopes},
                auth=(self.client_id, self.client_secret),
            )
            response.raise_for_status()
            payload = response.json()

        token = payload.get("access_token")
        if not token:
            raise UpstreamRejected("Xero token response had no access_token", system="xero")
        expires_in = float(payload.get("expires_in") or 1800)
        self._access_token = token
        self._token_expires_at = time.monotonic() + max(expires_in - _TOKEN_REFRESH_MARGIN_SECONDS, 0.0)
        return token

    @staticmethod
    def _normalize(normalizer, raw: Dict[str, Any], **kwargs: Any):
        try:
            return normalizer(raw, **kwargs)
        except IntegrationResponseError as exc:
            raise translate_http_error(exc, system="xero") from exc
