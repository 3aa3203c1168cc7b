"""
PandaDoc documents: MOCK client.

⚠️  This is a mock implementation for development and testing.
    Documents are created straight into ``document.draft`` and "sending"
    only flips the status; no e-mail leaves the process.
"""

import logging
import uuid
from typing import Dict, List, Optional

from payment_pipeline.integrations.contracts.errors import PipelineError, UpstreamRejected
from payment_pipeline.integrations.contracts.interfaces import (
    Contract,
    ContractRecipient,
    ContractToken,
    DocumentSigningClient,
)

logger = logging.getLogger(__name__)


class MockPandaDocClient(DocumentSigningClient):
    def __init__(self) -> None:
        self.documents: Dict[str, Contract] = {}
        self.recipients: Dict[str, ContractRecipient] = {}
        self.sent: List[Dict[str, object]] = []
        self.statuses: Dict[str, str] = {}
        # "create_document" / "send_document" / "get_document" -> error to raise
        self.fail_on: Dict[str, PipelineError] = {}

    def _maybe_fail(self, operation: str) -> None:
        error = self.fail_on.get(operation)
        if error is not None:
            raise error

    async def create_document_from_template(
        self,
        template_id: str,
        name: str,
        recipient: ContractRecipient,
        tokens: List[ContractToken],
    ) -> Contract:
        self._maybe_fail("create_document")
        if not template_id:
            raise UpstreamRejected("template_uuid is required", system="pandadoc", status_code=400)

        contract = Contract(
            contract_id=uuid.uuid4().hex[:22],
            template_id=template_id,
            recipient_email=recipient.email,
            tokens=list(tokens),
            status="document.draft",
        )
        self.documents[contract.contract_id] = contract
        self.recipients[contract.contract_id] = recipient
        self.statuses[contract.contract_id] = contract.status
        logger.info("[PANDADOC MOCK] Created document %s (%s)", contract.contract_id, name)
        return contract

    async def send_document(self, contract_id: str, message: str, silent: bool = False) -> str:
        self._maybe_fail("send_document")
        if contract_id not in self.documents:
            raise UpstreamRejected(f"Document {contract_id} not found", system="pandadoc", status_code=404)
        if self.statuses.get(contract_id) != "document.draft":
            raise UpstreamRejected(
                f"Document {contract_id} is {self.statuses.get(contract_id)}; only drafts can be sent",
                system="pandadoc",
                status_code=409,
            )
        self.sent.append({"contract_id": contract_id, "message": message, "silent": silent})
        self.statuses[contract_id] = "document.sent"
        return "document.sent"

    async def get_document_status(self, contract_id: str) -> str:
        self._maybe_fail("get_document")
        if contract_id not in self.statuses:
            raise UpstreamRejected(f"Document {contract_id} not found", system="pandadoc", status_code=404)
        return self.statuses[contract_id]

    def sent_to(self, email: str) -> Optional[Contract]:
        for entry in self.sent:
            contract = self.documents[str(entry["contract_id"])]
            if contract.recipient_email == email:
                return contract
        return None
