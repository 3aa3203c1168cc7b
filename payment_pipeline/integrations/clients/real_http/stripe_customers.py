"""
Real Stripe customer client.

Used when STRIPE_SECRET_KEY is configured. The Stripe SDK is blocking, so
calls run in a worker thread and are bounded by ``timeout_seconds``.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Optional

import stripe

from payment_pipeline.integrations.contracts.errors import (
    PipelineError,
    UpstreamRejected,
    UpstreamUnavailable,
)
from payment_pipeline.integrations.contracts.interfaces import (
    Customer,
    CustomerMetadata,
    PaymentProcessorClient,
)

logger = logging.getLogger(__name__)


class StripeCustomersClient(PaymentProcessorClient):
    def __init__(self, api_key: Optional[str] = None, timeout_seconds: float = 20.0) -> None:
        self.api_key = api_key or os.getenv("STRIPE_SECRET_KEY", "")
        self.timeout_seconds = timeout_seconds

    async def get_customer(self, customer_ref: str) -> Customer:
        if not self.api_key:
            raise UpstreamRejected("STRIPE_SECRET_KEY is not configured.", system="stripe")

        try:
            customer = await asyncio.wait_for(
                asyncio.to_thread(stripe.Customer.retrieve, customer_ref, api_key=self.api_key),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            logger.error("Timeout retrieving Stripe customer %s", customer_ref)
            raise UpstreamUnavailable("stripe timed out", system="stripe") from exc
        except stripe.StripeError as exc:
            raise translate_stripe_error(exc) from exc

        if _field(customer, "deleted"):
            raise UpstreamRejected(f"Stripe customer {customer_ref} has been deleted", system="stripe")

        return stripe_customer_to_model(customer)


def translate_stripe_error(exc: "stripe.StripeError") -> PipelineError:
    status_code = getattr(exc, "http_status", None)
    message = getattr(exc, "user_message", None) or str(exc)
    logger.error("Stripe error (status=%s): %s", status_code, message)

    if isinstance(exc, (stripe.APIConnectionError, stripe.RateLimitError)):
        return UpstreamUnavailable(message, system="stripe", status_code=status_code)
    if status_code is None or status_code >= 500:
        return UpstreamUnavailable(message, system="stripe", status_code=status_code)
    return UpstreamRejected(message, system="stripe", status_code=status_code)


def stripe_customer_to_model(customer: Any) -> Customer:
    metadata = _field(customer, "metadata")
    return Customer(
        external_id=str(_field(customer, "id")),
        name=_field(customer, "name"),
        email=_field(customer, "email"),
        phone=_field(customer, "phone"),
        metadata=CustomerMetadata(
            squadron_id=_field(metadata, "squadronId"),
            pcp_assigned=_field(metadata, "pcpAssigned"),
        ),
    )


def _field(obj: Any, key: str) -> Any:
    # StripeObject supports item access across SDK versions; plain dicts work too.
    if obj is None:
        return None
    try:
        value = obj[key]
    except (KeyError, TypeError, AttributeError):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value
