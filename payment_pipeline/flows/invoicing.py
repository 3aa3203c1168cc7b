"""Issue the single-line subscription invoice for a resolved contact."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable, Optional

from payment_pipeline.integrations.contracts.interfaces import (
    AccountingClient,
    Contact,
    Invoice,
    InvoiceLineItem,
)
from payment_pipeline.integrations.contracts.payments import format_major_amount, minor_to_major
from payment_pipeline.utils.config_loader import InvoiceConfig

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class InvoiceIssuer:
    """
    Builds and submits an AUTHORISED invoice.

    Creating an invoice changes accounting state and is not idempotent on its
    own; callers pass ``idempotency_key`` (the checkout session) so a retried
    request inside the provider's replay window returns the first invoice.
    """

    def __init__(
        self,
        accounting: AccountingClient,
        config: Optional[InvoiceConfig] = None,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self.accounting = accounting
        self.config = config or InvoiceConfig()
        self.today = today

    def build_line_item(self, amount_minor_units: int, currency: str = "usd") -> InvoiceLineItem:
        return InvoiceLineItem(
            description=self.config.description,
            quantity=1,
            unit_amount=minor_to_major(amount_minor_units, currency),
            account_code=self.config.account_code,
        )

    async def issue(
        self,
        contact: Contact,
        amount_minor_units: int,
        currency: str = "usd",
        idempotency_key: Optional[str] = None,
    ) -> Invoice:
        line_item = self.build_line_item(amount_minor_units, currency)
        invoice = await self.accounting.create_invoice(
            contact_id=contact.contact_id,
            line_items=[line_item],
            issue_date=self.today(),
            currency=currency,
            idempotency_key=idempotency_key,
        )
        logger.info(
            "Issued invoice %s to contact %s for %s %s",
            invoice.invoice_id,
            contact.contact_id,
            format_major_amount(amount_minor_units, currency),
            currency.upper(),
        )
        return invoice
