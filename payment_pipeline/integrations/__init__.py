"""
Integrations layer.
This package contains all code used to communicate with external systems:
- Stripe (customer lookup for a completed checkout session)
- Xero (contacts and invoices)
- PandaDoc (contracts sent for e-signature)

Key rule:
- Flows MUST NOT call external APIs directly.
- Flows call integration clients (under payment_pipeline/integrations/clients)
  through the interfaces in contracts/interfaces.py.
- MOCK clients are used in development and tests; REAL_HTTP clients when
  credentials are configured.

Switching implementations:
- The selection of mock vs real clients happens in ONE place (payment_pipeline/api/main.py).
"""

from .contracts.errors import (
    FailureKind,
    PersistenceUnavailable,
    PipelineError,
    UpstreamRejected,
    UpstreamUnavailable,
)
from .contracts.interfaces import (
    AccountingClient,
    Contact,
    Contract,
    ContractRecipient,
    ContractTier,
    ContractToken,
    Customer,
    CustomerMetadata,
    DocumentSigningClient,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    PaymentProcessorClient,
    RecordStatus,
    TransactionRecord,
    TransactionStore,
)
from .contracts.payments import (
    CHECKOUT_SESSION_COMPLETED,
    PaymentEvent,
    format_currency,
    format_major_amount,
    minor_to_major,
)

__all__ = [
    # errors
    "FailureKind", "PersistenceUnavailable", "PipelineError",
    "UpstreamRejected", "UpstreamUnavailable",
    # interfaces
    "AccountingClient", "Contact", "Contract", "ContractRecipient",
    "ContractTier", "ContractToken", "Customer", "CustomerMetadata",
    "DocumentSigningClient", "Invoice", "InvoiceLineItem", "InvoiceStatus",
    "PaymentProcessorClient", "RecordStatus", "TransactionRecord", "TransactionStore",
    # payments
    "CHECKOUT_SESSION_COMPLETED", "PaymentEvent", "format_currency",
    "format_major_amount", "minor_to_major",
]
