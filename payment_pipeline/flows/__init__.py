"""
Checkout flows.

Each module is one step of the paid-checkout saga; checkout_saga.CheckoutSaga
sequences them. Steps talk to external systems only through the client
interfaces in payment_pipeline/integrations/contracts/interfaces.py.
"""

from .checkout_saga import CheckoutSaga, SagaFailure, SagaOutcome, SagaStage, SagaStep
from .contact_resolution import ContactResolver
from .contract_dispatch import ContractDispatcher, split_name
from .invoicing import InvoiceIssuer
from .recording import TransactionRecorder
from .tiers import classify, tier_for

__all__ = [
    "CheckoutSaga", "SagaFailure", "SagaOutcome", "SagaStage", "SagaStep",
    "ContactResolver", "ContractDispatcher", "split_name",
    "InvoiceIssuer", "TransactionRecorder", "classify", "tier_for",
]
