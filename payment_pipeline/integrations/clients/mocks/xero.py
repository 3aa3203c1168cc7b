"""
Xero accounting: MOCK client.

⚠️  This is a mock implementation for development and testing.
    Contacts and invoices live in memory; the contact lookup is a linear
    scan by email, exactly what the real API's filtered query replaces.
    Failures can be injected per operation via ``fail_on``.
"""

import logging
import uuid
from datetime import date
from typing import Dict, List, Optional

from payment_pipeline.integrations.contracts.errors import PipelineError
from payment_pipeline.integrations.contracts.interfaces import (
    AccountingClient,
    Contact,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
)

logger = logging.getLogger(__name__)


class MockXeroClient(AccountingClient):
    def __init__(self, contacts: Optional[List[Contact]] = None):
        self.contacts: List[Contact] = list(contacts or [])
        self.invoices: List[Invoice] = []
        # operation name ("find_contact", "create_contact", "create_invoice") -> error to raise
        self.fail_on: Dict[str, PipelineError] = {}
        self._invoices_by_key: Dict[str, Invoice] = {}

    def _maybe_fail(self, operation: str) -> None:
        error = self.fail_on.get(operation)
        if error is not None:
            raise error

    async def find_contact_by_email(self, email: str) -> Optional[Contact]:
        self._maybe_fail("find_contact")
        return next((c for c in self.contacts if c.email == email), None)

    async def create_contact(self, name: str, email: str, phone: Optional[str] = None) -> Contact:
        self._maybe_fail("create_contact")
        contact = Contact(contact_id=str(uuid.uuid4()), name=name, email=email, phone=phone)
        self.contacts.append(contact)
        logger.info("[XERO MOCK] Created contact %s for %s", contact.contact_id, email)
        return contact

    async def create_invoice(
        self,
        contact_id: str,
        line_items: List[InvoiceLineItem],
        issue_date: date,
        currency: str,
        idempotency_key: Optional[str] = None,
    ) -> Invoice:
        self._maybe_fail("create_invoice")
        if idempotency_key and idempotency_key in self._invoices_by_key:
            return self._invoices_by_key[idempotency_key]

        invoice = Invoice(
            invoice_id=str(uuid.uuid4()),
            contact_id=contact_id,
            line_items=list(line_items),
            status=InvoiceStatus.AUTHORISED.value,
            issue_date=issue_date,
            currency=currency,
        )
        self.invoices.append(invoice)
        if idempotency_key:
            self._invoices_by_key[idempotency_key] = invoice
        logger.info("[XERO MOCK] Created invoice %s (total=%s)", invoice.invoice_id, invoice.total)
        return invoice
