"""
Domain models for invoice ingestion and tax deadlines.

These are plain value objects; persistence lives in
taxcore.infrastructure.database and HTTP shapes in taxcore.api.schemas.

Design Decisions:
- Using dataclasses for immutable, typed domain objects
- Decimal for all monetary values to avoid floating-point errors
- Deadline status is derived, never stored
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from .vat import VATBreakdown

# Fixed payment terms text printed on ingested invoices
DEFAULT_PAYMENT_TERMS = "Betaling binnen 14 dagen"


class InvoiceStatus(str, Enum):
    """Lifecycle status of an invoice."""
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"


class InvoiceSource(str, Enum):
    """Where an invoice record originated."""
    MANUAL = "manual"
    AI = "ai"
    WEBHOOK = "webhook"


class DeadlineKind(str, Enum):
    """Statutory filing kinds."""
    INCOME_TAX = "income_tax"
    VAT_RETURN = "vat_return"


class DeadlineStatus(str, Enum):
    """Derived status of a deadline relative to today."""
    UPCOMING = "upcoming"
    OVERDUE = "overdue"
    ACKNOWLEDGED = "acknowledged"


@dataclass(frozen=True)
class IncomingInvoice:
    """
    Validated webhook notification.

    Required fields are guaranteed non-blank; amount and date are still raw
    and go through the normalizer.
    """
    sender: str
    subject: str
    date: str
    amount: str | int | float | None = None


@dataclass(frozen=True)
class DraftInvoice:
    """
    A draft invoice ready to persist.

    Amounts are held at full precision in the breakdown; the record fields
    are rounded to cents only when they are written.
    """
    owner_id: str
    invoice_number: str
    client_name: str
    invoice_date: date
    due_date: date
    breakdown: VATBreakdown
    notes: str | None = None
    payment_terms: str = DEFAULT_PAYMENT_TERMS
    status: InvoiceStatus = InvoiceStatus.DRAFT
    source: InvoiceSource = InvoiceSource.WEBHOOK
    idempotency_key: str | None = None

    @property
    def subtotal(self) -> Decimal:
        return self.breakdown.rounded().amount_excl

    @property
    def vat_amount(self) -> Decimal:
        return self.breakdown.rounded().vat_amount

    @property
    def total_amount(self) -> Decimal:
        return self.breakdown.rounded().amount_incl


@dataclass(frozen=True)
class CreatedInvoice:
    """Outcome of an ingestion: the stored invoice's identity."""
    invoice_id: str
    invoice_number: str
    replayed: bool = False


@dataclass(frozen=True)
class DeadlineTemplate:
    """One statutory deadline of a fiscal year, before it is stored."""
    kind: DeadlineKind
    period: int
    fiscal_year: int
    due_date: date


@dataclass(frozen=True)
class DeadlineView:
    """A stored deadline with its status computed for a given day."""
    id: str
    kind: DeadlineKind
    period: int
    fiscal_year: int
    due_date: date
    acknowledged: bool
    acknowledged_at: datetime | None
    status: DeadlineStatus
    days_until: int
    display_name: str


@dataclass
class DeadlineGroups:
    """Deadlines partitioned by status for presentation."""
    overdue: list[DeadlineView] = field(default_factory=list)
    upcoming: list[DeadlineView] = field(default_factory=list)
    acknowledged: list[DeadlineView] = field(default_factory=list)
