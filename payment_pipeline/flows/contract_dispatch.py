"""
Contract dispatch.

Creates a contract from the template matching the customer's pricing tier
and sends it for e-signature. Sending notifies the customer, so like
invoicing this is not idempotent by itself: creation and sending are separate
calls so that a document created by a failed delivery can be finished later
without creating a second one.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Callable, List, Optional, Tuple

from payment_pipeline.flows.invoicing import utc_today
from payment_pipeline.flows.tiers import classify
from payment_pipeline.integrations.contracts.errors import UpstreamRejected, UpstreamUnavailable
from payment_pipeline.integrations.contracts.interfaces import (
    Contract,
    ContractRecipient,
    ContractToken,
    Customer,
    DocumentSigningClient,
)
from payment_pipeline.integrations.contracts.payments import format_currency
from payment_pipeline.utils.config_loader import PandaDocConfig

logger = logging.getLogger(__name__)

DRAFT_STATUS = "document.draft"
# Statuses a document only reaches after it was sent for signature
SENT_STATUSES = frozenset(
    {
        "document.sent",
        "document.viewed",
        "document.waiting_approval",
        "document.approved",
        "document.waiting_pay",
        "document.paid",
        "document.completed",
    }
)
DEAD_STATUSES = frozenset({"document.error", "document.declined", "document.rejected", "document.voided"})


def split_name(full_name: Optional[str]) -> Tuple[str, str]:
    """
    First token is the first name; the remaining tokens, joined with single
    spaces, are the last name.

    >>> split_name("Ada Lovelace")
    ('Ada', 'Lovelace')
    >>> split_name("Prince")
    ('Prince', '')
    """
    parts = (full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def format_locale_date(value: date) -> str:
    # en-US short date, no zero padding: 10/7/2026
    return f"{value.month}/{value.day}/{value.year}"


class ContractDispatcher:
    def __init__(
        self,
        documents: DocumentSigningClient,
        config: Optional[PandaDocConfig] = None,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self.documents = documents
        self.config = config or PandaDocConfig()
        self.today = today

    def build_tokens(self, customer: Customer, amount_minor_units: int, currency: str = "usd") -> List[ContractToken]:
        return [
            ContractToken(name="client.name", value=customer.display_name),
            ContractToken(name="subscription.amount", value=format_currency(amount_minor_units, currency)),
            ContractToken(name="subscription.date", value=format_locale_date(self.today())),
        ]

    async def dispatch(self, customer: Customer, amount_minor_units: int, currency: str = "usd") -> Contract:
        contract = await self.prepare(customer, amount_minor_units, currency)
        status = await self.send(contract.contract_id)
        return replace(contract, status=status)

    async def prepare(self, customer: Customer, amount_minor_units: int, currency: str = "usd") -> Contract:
        """Create the tier's document for the customer without sending it."""
        template_id = classify(amount_minor_units, self.config.templates)
        if not template_id:
            raise UpstreamRejected(
                f"No contract template configured for amount {amount_minor_units}",
                system="pandadoc",
            )

        email = (customer.email or "").strip()
        if not email:
            raise UpstreamRejected(f"Customer {customer.external_id} has no email to sign with", system="stripe")

        first_name, last_name = split_name(customer.name)
        recipient = ContractRecipient(email=email, first_name=first_name, last_name=last_name, role="Client")

        contract = await self.documents.create_document_from_template(
            template_id=template_id,
            name=f"{self.config.document_name_prefix} - {customer.display_name}",
            recipient=recipient,
            tokens=self.build_tokens(customer, amount_minor_units, currency),
        )
        logger.info("Created contract %s (template %s) for %s", contract.contract_id, template_id, email)
        return replace(contract, template_id=template_id, recipient_email=email)

    async def send(self, contract_id: str) -> str:
        status = await self.documents.send_document(contract_id, message=self.config.send_message, silent=False)
        logger.info("Sent contract %s for signature", contract_id)
        return status

    async def resume(self, contract_id: str) -> str:
        """
        Finish a contract created by an earlier delivery.

        The earlier send may have reached the signing service even though it
        reported a failure, so the document is only sent while still a draft.
        """
        status = await self.documents.get_document_status(contract_id)
        if status == DRAFT_STATUS:
            return await self.send(contract_id)
        if status in SENT_STATUSES:
            logger.info("Contract %s already %s; not sending again", contract_id, status)
            return status
        if status in DEAD_STATUSES:
            raise UpstreamRejected(f"Contract {contract_id} is {status}", system="pandadoc")
        raise UpstreamUnavailable(f"Contract {contract_id} is still {status}", system="pandadoc")
