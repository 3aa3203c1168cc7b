from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from payment_pipeline.integrations.contracts.interfaces import (
    Contact,
    Contract,
    ContractToken,
    Invoice,
    InvoiceLineItem,
)
from payment_pipeline.integrations.contracts.payments import PaymentEvent


class IntegrationResponseError(ValueError):
    def __init__(self, message: str, *, payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.payload = payload or {}


class XeroContactModel(BaseModel):
    contact_id: str
    name: str
    email: str = ""
    phone: Optional[str] = None


class XeroInvoiceModel(BaseModel):
    invoice_id: str
    contact_id: str
    status: str
    issue_date: date
    currency: str = "usd"
    line_items: List[Dict[str, Any]] = Field(default_factory=list)


class PandaDocDocumentModel(BaseModel):
    document_id: str
    status: str
    name: str = ""


def normalize_checkout_event(raw: Any) -> PaymentEvent:
    """Build a validated PaymentEvent from a Stripe ``checkout.session.completed`` payload."""
    if not isinstance(raw, dict):
        raise IntegrationResponseError("Event payload must be a JSON object.")

    data = raw.get("data")
    session = data.get("object") if isinstance(data, dict) else None
    if not isinstance(session, dict):
        raise IntegrationResponseError("Event payload has no data.object session.", payload=raw)

    customer = session.get("customer")
    if isinstance(customer, dict):
        # expanded customer object
        customer = customer.get("id")

    # guest checkouts leave customer null and describe the buyer here
    details = session.get("customer_details") if isinstance(session.get("customer_details"), dict) else {}

    return _build_model(
        PaymentEvent,
        {
            "event_id": str(_first_non_empty(raw, "id")),
            "type": str(_first_non_empty(raw, "type")),
            "session_id": str(_first_non_empty(session, "id")),
            "customer_ref": _optional_str(customer),
            "amount_minor_units": _first_non_empty(session, "amount_total"),
            "currency": str(_first_non_empty(session, "currency")),
            "payment_status": str(_first_non_empty(session, "payment_status", default="paid")),
            "customer_name": _optional_str(details.get("name")),
            "customer_email": _optional_str(details.get("email") or session.get("customer_email")),
            "customer_phone": _optional_str(details.get("phone")),
        },
        raw,
    )


def normalize_xero_contact(raw: Dict[str, Any]) -> Contact:
    phones = raw.get("Phones") if isinstance(raw.get("Phones"), list) else []
    phone = next(
        (p.get("PhoneNumber") for p in phones if isinstance(p, dict) and p.get("PhoneNumber")),
        None,
    )
    model = _build_model(
        XeroContactModel,
        {
            "contact_id": str(_first_non_empty(raw, "ContactID", "contact_id")),
            "name": str(_first_non_empty(raw, "Name", "name")),
            "email": str(_first_non_empty(raw, "EmailAddress", "email", default="")),
            "phone": phone,
        },
        raw,
    )
    return Contact(contact_id=model.contact_id, name=model.name, email=model.email, phone=model.phone)


def normalize_xero_invoice(
    raw: Dict[str, Any],
    *,
    fallback_contact_id: str,
    fallback_date: date,
    fallback_currency: str,
) -> Invoice:
    contact = raw.get("Contact") if isinstance(raw.get("Contact"), dict) else {}
    model = _build_model(
        XeroInvoiceModel,
        {
            "invoice_id": str(_first_non_empty(raw, "InvoiceID", "invoice_id")),
            "contact_id": str(_first_non_empty(contact, "ContactID", default=fallback_contact_id)),
            "status": str(_first_non_empty(raw, "Status", default="AUTHORISED")).upper(),
            "issue_date": _parse_xero_date(raw.get("DateString") or raw.get("Date"), fallback_date),
            "currency": str(_first_non_empty(raw, "CurrencyCode", default=fallback_currency)).lower(),
            "line_items": raw.get("LineItems") if isinstance(raw.get("LineItems"), list) else [],
        },
        raw,
    )
    return Invoice(
        invoice_id=model.invoice_id,
        contact_id=model.contact_id,
        line_items=[_line_item(item) for item in model.line_items],
        status=model.status,
        issue_date=model.issue_date,
        currency=model.currency,
    )


def normalize_pandadoc_document(
    raw: Dict[str, Any],
    *,
    template_id: str,
    recipient_email: str,
    tokens: List[ContractToken],
) -> Contract:
    model = _build_model(
        PandaDocDocumentModel,
        {
            "document_id": str(_first_non_empty(raw, "id", "uuid")),
            "status": str(_first_non_empty(raw, "status", default="document.uploaded")),
            "name": str(_first_non_empty(raw, "name", default="")),
        },
        raw,
    )
    return Contract(
        contract_id=model.document_id,
        template_id=template_id,
        recipient_email=recipient_email,
        tokens=list(tokens),
        status=model.status,
    )


def _line_item(raw: Dict[str, Any]) -> InvoiceLineItem:
    try:
        unit_amount = Decimal(str(raw.get("UnitAmount", "0")))
    except InvalidOperation as exc:
        raise IntegrationResponseError(f"Invalid line item amount: {raw.get('UnitAmount')!r}", payload=raw) from exc
    return InvoiceLineItem(
        description=str(raw.get("Description", "")),
        quantity=int(Decimal(str(raw.get("Quantity", 1)))),
        unit_amount=unit_amount,
        account_code=str(raw.get("AccountCode", "")),
    )


def _parse_xero_date(value: Any, fallback: date) -> date:
    # Xero answers with "2026-10-17T00:00:00" in DateString; "Date" is a /Date(ms)/ literal.
    if isinstance(value, str) and len(value) >= 10 and value[4] == "-":
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            pass
    return fallback


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _first_non_empty(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    if default is not None:
        return default
    raise IntegrationResponseError(f"Missing required field. Checked keys: {', '.join(keys)}", payload=data)


def _build_model(model_type, payload: Dict[str, Any], raw: Dict[str, Any]):
    try:
        return model_type(**payload)
    except ValidationError as exc:
        raise IntegrationResponseError(f"Response validation failed: {exc}", payload=raw) from exc
