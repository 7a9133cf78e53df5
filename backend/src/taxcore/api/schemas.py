"""
Pydantic schemas for API request/response validation.

These schemas define the contract with webhook callers and the frontend.
The webhook request model is validated by the ingestion service rather
than by FastAPI, so that malformed JSON and missing fields map to the
webhook error contract instead of the default 422.
"""

import logging
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from taxcore.domain.models import DeadlineGroups, DeadlineKind, DeadlineStatus, DeadlineView

logger = logging.getLogger(__name__)


# =============================================================================
# Webhook
# =============================================================================

class IncomingInvoiceRequest(BaseModel):
    """Invoice notification from the mail automation."""
    sender: str = Field(..., description="Sender display name, becomes the client name")
    subject: str = Field(..., description="Mail subject, stored as invoice notes")
    date: str = Field(..., description="Invoice date in any common format")
    amount: str | int | float | None = Field(
        default=None,
        description="Gross amount including VAT, e.g. 121 or '€121,00'",
    )

    @field_validator("sender", "subject", "date")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("amount", mode="before")
    @classmethod
    def _drop_unsupported_amount(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (str, int, float, type(None))):
            logger.warning(f"Ignoring amount of unsupported type {type(value).__name__}")
            return None
        return value


class IncomingInvoiceResponse(BaseModel):
    """Successful ingestion."""
    success: bool = True
    invoice_id: str
    invoice_number: str


class WebhookErrorResponse(BaseModel):
    """Failed ingestion."""
    success: bool = False
    error: str
    details: str | None = None


# =============================================================================
# Tax deadlines
# =============================================================================

class TaxDeadlineResponse(BaseModel):
    """One deadline with its live status."""
    id: str
    kind: DeadlineKind
    period: int = Field(description="0 for the annual filing, 1-4 for quarters")
    fiscal_year: int
    due_date: date
    acknowledged: bool
    acknowledged_at: datetime | None = None
    status: DeadlineStatus
    days_until: int
    display_name: str

    @classmethod
    def from_view(cls, view: DeadlineView) -> "TaxDeadlineResponse":
        return cls(
            id=view.id,
            kind=view.kind,
            period=view.period,
            fiscal_year=view.fiscal_year,
            due_date=view.due_date,
            acknowledged=view.acknowledged,
            acknowledged_at=view.acknowledged_at,
            status=view.status,
            days_until=view.days_until,
            display_name=view.display_name,
        )


class DeadlineGroupsResponse(BaseModel):
    """Deadlines partitioned by status."""
    overdue: list[TaxDeadlineResponse] = []
    upcoming: list[TaxDeadlineResponse] = []
    acknowledged: list[TaxDeadlineResponse] = []

    @classmethod
    def from_groups(cls, groups: DeadlineGroups) -> "DeadlineGroupsResponse":
        return cls(
            overdue=[TaxDeadlineResponse.from_view(d) for d in groups.overdue],
            upcoming=[TaxDeadlineResponse.from_view(d) for d in groups.upcoming],
            acknowledged=[TaxDeadlineResponse.from_view(d) for d in groups.acknowledged],
        )


class TaxDeadlinesResponse(BaseModel):
    """All deadlines of a fiscal year."""
    fiscal_year: int
    deadlines: list[TaxDeadlineResponse]
    groups: DeadlineGroupsResponse


class DueSoonResponse(BaseModel):
    """Count of unacknowledged deadlines in the reminder window."""
    count: int
    window_days: int


# =============================================================================
# Health
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    version: str
    database: str = "connected"
