"""
Stripe customers: MOCK client.

⚠️  This is a mock implementation for development and testing.
    Customers are seeded in memory; nothing is fetched from Stripe.
"""

import logging
from typing import Dict, Iterable, Optional

from payment_pipeline.integrations.contracts.errors import PipelineError, UpstreamRejected
from payment_pipeline.integrations.contracts.interfaces import (
    Customer,
    CustomerMetadata,
    PaymentProcessorClient,
)

logger = logging.getLogger(__name__)


class MockStripeCustomersClient(PaymentProcessorClient):
    """
    Mock Stripe customer lookup.

    Parameters
    ----------
    customers : iterable of Customer
        Seed customers, keyed by ``external_id``.
    autocreate : bool
        If True, unknown references resolve to a generated demo customer
        instead of a 404-style rejection. Default True, so the dev server
        accepts any test event.
    """

    def __init__(self, customers: Iterable[Customer] = (), autocreate: bool = True):
        self._customers: Dict[str, Customer] = {c.external_id: c for c in customers}
        self._autocreate = autocreate
        self.fail_with: Optional[PipelineError] = None
        self.calls = 0

    def add_customer(self, customer: Customer) -> None:
        self._customers[customer.external_id] = customer

    async def get_customer(self, customer_ref: str) -> Customer:
        self.calls += 1
        if self.fail_with is not None:
            raise self.fail_with

        customer = self._customers.get(customer_ref)
        if customer is not None:
            return customer

        if not self._autocreate:
            raise UpstreamRejected(f"No such customer: '{customer_ref}'", system="stripe", status_code=404)

        customer = Customer(
            external_id=customer_ref,
            name="Demo Customer",
            email=f"{customer_ref}@example.com",
            metadata=CustomerMetadata(),
        )
        self._customers[customer_ref] = customer
        logger.info("[STRIPE MOCK] Generated demo customer %s", customer_ref)
        return customer
