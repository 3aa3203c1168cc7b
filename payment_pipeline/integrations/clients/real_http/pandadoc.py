"""
Real PandaDoc HTTP client.

Used when PANDADOC_API_KEY is configured. PandaDoc builds a document from a
template asynchronously (``document.uploaded`` -> ``document.draft``); a
document can only be sent once it is a draft, so creation polls for that
state before returning.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from payment_pipeline.integrations.contracts.errors import UpstreamRejected, UpstreamUnavailable
from payment_pipeline.integrations.contracts.interfaces import (
    Contract,
    ContractRecipient,
    ContractToken,
    DocumentSigningClient,
)
from payment_pipeline.integrations.policy.response_wrappers import (
    IntegrationResponseError,
    normalize_pandadoc_document,
)
from payment_pipeline.integrations.policy.upstream_errors import translate_http_error

logger = logging.getLogger(__name__)

DRAFT_STATUS = "document.draft"
ERROR_STATUS = "document.error"


class PandaDocClient(DocumentSigningClient):
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "https://api.pandadoc.com/public/v1",
        draft_poll_attempts: int = 10,
        draft_poll_interval_seconds: float = 1.0,
        timeout_seconds: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key or os.getenv("PANDADOC_API_KEY", "")
        self.base_url = base_url.rstrip("/")
        self.draft_poll_attempts = draft_poll_attempts
        self.draft_poll_interval_seconds = draft_poll_interval_seconds
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def create_document_from_template(
        self,
        template_id: str,
        name: str,
        recipient: ContractRecipient,
        tokens: List[ContractToken],
    ) -> Contract:
        payload = {
            "name": name,
            "template_uuid": template_id,
            "recipients": [
                {
                    "email": recipient.email,
                    "first_name": recipient.first_name,
                    "last_name": recipient.last_name,
                    "role": recipient.role,
                }
            ],
            "tokens": [{"name": t.name, "value": t.value} for t in tokens],
        }
        data = await self._request("POST", "/documents", json=payload)
        contract = self._normalize(data, template_id=template_id, recipient_email=recipient.email, tokens=tokens)
        logger.info("PandaDoc document %s created from template %s", contract.contract_id, template_id)

        status = await self._wait_for_draft(contract.contract_id, contract.status)
        return Contract(
            contract_id=contract.contract_id,
            template_id=contract.template_id,
            recipient_email=contract.recipient_email,
            tokens=contract.tokens,
            status=status,
        )

    async def send_document(self, contract_id: str, message: str, silent: bool = False) -> str:
        data = await self._request(
            "POST",
            f"/documents/{contract_id}/send",
            json={"message": message, "silent": silent},
        )
        return str(data.get("status") or "document.sent")

    async def get_document_status(self, contract_id: str) -> str:
        data = await self._request("GET", f"/documents/{contract_id}")
        status = data.get("status")
        if not status:
            raise UpstreamRejected(f"PandaDoc returned no status for document {contract_id}", system="pandadoc")
        return str(status)

    async def _wait_for_draft(self, document_id: str, status: str) -> str:
        for attempt in range(1, self.draft_poll_attempts + 1):
            if status == DRAFT_STATUS:
                return status
            if status == ERROR_STATUS:
                raise UpstreamRejected(f"PandaDoc failed to build document {document_id}", system="pandadoc")
            await asyncio.sleep(self.draft_poll_interval_seconds)
            data = await self._request("GET", f"/documents/{document_id}")
            status = str(data.get("status") or "")
            logger.debug("PandaDoc document %s status=%s (poll %s)", document_id, status, attempt)

        if status == DRAFT_STATUS:
            return status
        raise UpstreamUnavailable(
            f"PandaDoc document {document_id} still '{status}' after {self.draft_poll_attempts} polls",
            system="pandadoc",
        )

    async def _request(self, method: str, path: str, *, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            if not self.api_key:
                raise UpstreamRejected("PANDADOC_API_KEY is not configured.", system="pandadoc")
            headers = {"Authorization": f"API-Key {self.api_key}", "Content-Type": "application/json"}
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.request(method, url, json=json, headers=headers)
                response.raise_for_status()
                return response.json() if response.content else {}
        except Exception as exc:
            raise translate_http_error(exc, system="pandadoc") from exc

    @staticmethod
    def _normalize(raw: Dict[str, Any], **kwargs: Any) -> Contract:
        try:
            return normalize_pandadoc_document(raw, **kwargs)
        except IntegrationResponseError as exc:
            raise translate_http_error(exc, system="pandadoc") from exc
