import json
import logging
from typing import Any, Dict, Optional

import stripe
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from payment_pipeline.flows.checkout_saga import CheckoutSaga
from payment_pipeline.integrations.contracts.payments import CHECKOUT_SESSION_COMPLETED
from payment_pipeline.integrations.policy.response_wrappers import (
    IntegrationResponseError,
    normalize_checkout_event,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class WebhookPayloadError(ValueError):
    pass


def get_checkout_saga(request: Request) -> CheckoutSaga:
    return request.app.state.saga


def get_webhook_secret(request: Request) -> str:
    config = getattr(request.app.state, "config", None)
    return config.stripe.webhook_secret if config is not None else ""


def parse_webhook_payload(payload: bytes, signature: Optional[str], secret: str) -> Dict[str, Any]:
    """Verify the Stripe signature when a secret is configured, then decode the JSON body."""
    if secret:
        if not signature:
            raise WebhookPayloadError("Missing Stripe-Signature header")
        try:
            stripe.Webhook.construct_event(payload, signature, secret)
        except stripe.SignatureVerificationError as exc:
            raise WebhookPayloadError(f"Invalid signature: {exc}") from exc
        except ValueError as exc:
            raise WebhookPayloadError(f"Invalid payload: {exc}") from exc

    try:
        raw = json.loads(payload or b"null")
    except (TypeError, ValueError) as exc:
        raise WebhookPayloadError(f"Invalid JSON body: {exc}") from exc
    if not isinstance(raw, dict):
        raise WebhookPayloadError("Event payload must be a JSON object")
    return raw


@router.post("/webhook/stripe", tags=["Webhooks"])
async def stripe_webhook(
    request: Request,
    saga: CheckoutSaga = Depends(get_checkout_saga),
    secret: str = Depends(get_webhook_secret),
):
    """
    Stripe webhook receiver.
    - Acknowledges and ignores every event type except checkout.session.completed.
    - Runs the checkout saga and answers only after its outcome is recorded.
    """
    payload = await request.body()
    try:
        raw = parse_webhook_payload(payload, request.headers.get("stripe-signature"), secret)
    except WebhookPayloadError as e:
        logger.warning("Rejected webhook delivery: %s", e)
        return JSONResponse(status_code=400, content={"error": str(e)})

    event_type = raw.get("type")
    if event_type != CHECKOUT_SESSION_COMPLETED:
        logger.info("Ignoring Stripe event %s of type %s", raw.get("id"), event_type)
        return {"received": True}

    try:
        event = normalize_checkout_event(raw)
    except IntegrationResponseError as e:
        data = raw.get("data") if isinstance(raw.get("data"), dict) else {}
        session = data.get("object")
        session_id = session.get("id") if isinstance(session, dict) else None
        logger.error("Unprocessed checkout session %s (event %s): %s", session_id, raw.get("id"), e)
        return JSONResponse(status_code=400, content={"error": str(e)})

    outcome = await saga.handle(event)
    status_code, body = outcome.acknowledgement()
    return JSONResponse(status_code=status_code, content=body)
