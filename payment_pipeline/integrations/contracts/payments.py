
from decimal import Decimal
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

"""
Payment contracts.

Defines the inbound payment event consumed by the checkout saga and the
money helpers shared by invoicing and contract dispatch.

The event is built once at the webhook boundary
(integrations/policy/response_wrappers.normalize_checkout_event) so the saga
only ever sees a validated, typed value.
"""

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"

# Stripe charges these currencies in whole units; there is no minor unit to divide out.
ZERO_DECIMAL_CURRENCIES: FrozenSet[str] = frozenset(
    {
        "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
        "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
    }
)

_CURRENCY_SYMBOLS = {
    "usd": "$",
    "aud": "A$",
    "nzd": "NZ$",
    "cad": "CA$",
    "gbp": "£",
    "eur": "€",
}


# ---------------------------------------------------------------------------
# Inbound event
# ---------------------------------------------------------------------------


class PaymentEvent(BaseModel):
    """
    A completed checkout session, as delivered by the payment processor.

    ``customer_ref`` is the processor's customer id. Guest checkouts have
    none; their buyer is described by the ``customer_*`` details instead.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    customer_ref: Optional[str] = None
    amount_minor_units: int = Field(..., ge=0)
    currency: str = Field(..., min_length=3, max_length=3)
    payment_status: str = "paid"
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def _lower_currency(cls, value: str) -> str:
        return value.lower()

    @model_validator(mode="after")
    def _require_buyer(self) -> "PaymentEvent":
        if not self.customer_ref and not self.customer_email:
            raise ValueError("session has neither a customer nor customer_details.email")
        return self

    @property
    def is_guest(self) -> bool:
        return not self.customer_ref

    @property
    def customer_key(self) -> str:
        """Customer id for the ledger; guests are keyed by their session."""
        return self.customer_ref or f"guest:{self.session_id}"

    @property
    def is_checkout_completed(self) -> bool:
        return self.type == CHECKOUT_SESSION_COMPLETED

    @property
    def is_paid(self) -> bool:
        return self.payment_status in {"paid", "no_payment_required"}


# ---------------------------------------------------------------------------
# Money helpers
# ---------------------------------------------------------------------------

def minor_unit_exponent(currency: str) -> int:
    return 0 if (currency or "").lower() in ZERO_DECIMAL_CURRENCIES else 2


def minor_to_major(amount_minor_units: int, currency: str = "usd") -> Decimal:
    """
    Convert an integer minor-unit amount to an exact Decimal in major units.

    >>> minor_to_major(123456)
    Decimal('1234.56')
    """
    exponent = minor_unit_exponent(currency)
    return Decimal(int(amount_minor_units)).scaleb(-exponent)


def format_major_amount(amount_minor_units: int, currency: str = "usd") -> str:
    """Plain major-unit string, e.g. 35001 -> '350.01'."""
    exponent = minor_unit_exponent(currency)
    quantum = Decimal(1).scaleb(-exponent)
    return str(minor_to_major(amount_minor_units, currency).quantize(quantum))


def format_currency(amount_minor_units: int, currency: str = "usd") -> str:
    """Human currency string used in contract tokens, e.g. 50000 usd -> '$500.00'."""
    exponent = minor_unit_exponent(currency)
    major = minor_to_major(amount_minor_units, currency)
    grouped = f"{major:,.{exponent}f}"
    symbol = _CURRENCY_SYMBOLS.get((currency or "").lower())
    if symbol:
        return f"{symbol}{grouped}"
    return f"{grouped} {(currency or '').upper()}".strip()
