from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ContractTier(str, Enum):
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class RecordStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    AUTHORISED = "AUTHORISED"
    PAID = "PAID"
    VOIDED = "VOIDED"


# ---------------------------------------------------------------------------
# Shared data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CustomerMetadata:
    squadron_id: Optional[str] = None
    pcp_assigned: Optional[str] = None


@dataclass(frozen=True)
class Customer:
    """Paying customer as held by the payment processor. Read-only here."""
    external_id: str
    name: Optional[str]
    email: Optional[str]
    phone: Optional[str] = None
    metadata: CustomerMetadata = field(default_factory=CustomerMetadata)

    @property
    def display_name(self) -> str:
        return (self.name or "").strip() or (self.email or "").strip()


@dataclass(frozen=True)
class Contact:
    contact_id: str
    name: str
    email: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class InvoiceLineItem:
    description: str
    quantity: int
    unit_amount: Decimal
    account_code: str


@dataclass(frozen=True)
class Invoice:
    invoice_id: str
    contact_id: str
    line_items: List[InvoiceLineItem]
    status: str
    issue_date: date
    currency: str = "usd"

    @property
    def total(self) -> Decimal:
        return sum((item.unit_amount * item.quantity for item in self.line_items), Decimal("0"))


@dataclass(frozen=True)
class ContractRecipient:
    email: str
    first_name: str
    last_name: str
    role: str = "Client"


@dataclass(frozen=True)
class ContractToken:
    name: str
    value: str


@dataclass(frozen=True)
class Contract:
    contract_id: str
    template_id: str
    recipient_email: str
    tokens: List[ContractToken] = field(default_factory=list)
    status: str = "document.draft"


@dataclass(frozen=True)
class TransactionRecord:
    """One append-only ledger entry describing how a checkout saga ended.

    ``record_id`` and ``timestamp`` are assigned by the store on append.
    """
    customer_id: str
    customer_email: Optional[str]
    amount: int                          # minor units, as charged
    currency: str
    payment_status: RecordStatus
    source_session_id: str
    source_event_id: Optional[str] = None
    invoice_id: Optional[str] = None
    contract_id: Optional[str] = None
    unsent_contract_id: Optional[str] = None   # created, send not confirmed
    squadron_id: Optional[str] = None
    pcp_assigned: Optional[str] = None
    failure_stage: Optional[str] = None
    failure_kind: Optional[str] = None
    failure_message: Optional[str] = None
    record_id: Optional[str] = None
    timestamp: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Abstract collaborator interfaces
# ---------------------------------------------------------------------------

class PaymentProcessorClient(ABC):
    """Read access to the payment processor's customer records."""

    @abstractmethod
    async def get_customer(self, customer_ref: str) -> Customer:
        """Fetch a customer by the processor's reference."""


class AccountingClient(ABC):
    """Contact and invoice operations of the accounting system."""

    @abstractmethod
    async def find_contact_by_email(self, email: str) -> Optional[Contact]:
        """Return the contact registered under ``email``, if any."""

    @abstractmethod
    async def create_contact(self, name: str, email: str, phone: Optional[str] = None) -> Contact:
        """Create a contact. ``phone`` is omitted from the request when None."""

    @abstractmethod
    async def create_invoice(
        self,
        contact_id: str,
        line_items: List[InvoiceLineItem],
        issue_date: date,
        currency: str,
        idempotency_key: Optional[str] = None,
    ) -> Invoice:
        """Create an AUTHORISED sales invoice for the contact."""


class DocumentSigningClient(ABC):
    """Template documents and signature requests."""

    @abstractmethod
    async def create_document_from_template(
        self,
        template_id: str,
        name: str,
        recipient: ContractRecipient,
        tokens: List[ContractToken],
    ) -> Contract:
        """Create a document from a template."""

    @abstractmethod
    async def send_document(self, contract_id: str, message: str, silent: bool = False) -> str:
        """Send a created document for signature; returns the new status."""

    @abstractmethod
    async def get_document_status(self, contract_id: str) -> str:
        """Current status of a document, e.g. ``document.draft`` or ``document.sent``."""


class TransactionStore(ABC):
    """Append-only store of transaction records. Methods are blocking."""

    @abstractmethod
    def create_tables(self) -> None:
        """Prepare the schema if the backend needs one."""

    @abstractmethod
    def append(self, record: TransactionRecord) -> TransactionRecord:
        """Persist a new record and return it with id and timestamp set."""

    @abstractmethod
    def find_by_session(self, session_id: str) -> List[TransactionRecord]:
        """All records for a checkout session, oldest first."""

    @abstractmethod
    def ping(self) -> bool:
        """Return True when the backend is reachable."""
