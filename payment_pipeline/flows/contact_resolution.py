"""Find-or-create the paying customer's contact in the accounting system."""

from __future__ import annotations

import logging

from payment_pipeline.integrations.contracts.errors import UpstreamRejected
from payment_pipeline.integrations.contracts.interfaces import AccountingClient, Contact, Customer

logger = logging.getLogger(__name__)


class ContactResolver:
    def __init__(self, accounting: AccountingClient) -> None:
        self.accounting = accounting

    async def resolve(self, customer: Customer) -> Contact:
        email = (customer.email or "").strip()
        if not email:
            raise UpstreamRejected(
                f"Customer {customer.external_id} has no email; cannot key an accounting contact",
                system="stripe",
            )

        existing = await self.accounting.find_contact_by_email(email)
        if existing is not None:
            logger.info("Reusing accounting contact %s for %s", existing.contact_id, email)
            return existing

        phone = (customer.phone or "").strip() or None
        contact = await self.accounting.create_contact(name=customer.display_name, email=email, phone=phone)
        logger.info("Created accounting contact %s for %s", contact.contact_id, email)
        return contact
