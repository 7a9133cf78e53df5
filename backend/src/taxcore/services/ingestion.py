"""
Webhook invoice ingestion pipeline.

Turns an inbound invoice notification from a mail automation into a draft
invoice:
1. Authenticate the shared-secret credential
2. Parse the JSON body
3. Validate required fields (sender, subject, date)
4. Resolve the owning account
5. Allocate an invoice number
6. Normalize the amount and back-compute VAT (21% included)
7. Normalize the invoice date; due date = invoice date + payment term
8. Persist the draft invoice

Design Decisions:
- Steps run strictly in order; any terminal failure raises a TaxCoreError
  subclass and nothing is committed
- Allocation and insert share one transaction, so a failed insert does not
  burn an invoice number
- An unparsable date is a soft failure: logged, replaced by today
- Every directory, allocator and storage call is bounded by a timeout
- An optional idempotency key makes client retries safe; without one,
  every call creates a new draft
"""

import asyncio
import hmac
import logging
from collections.abc import Awaitable
from datetime import timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Any, TypeVar

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taxcore.api.schemas import IncomingInvoiceRequest
from taxcore.domain.clock import Clock, SystemClock
from taxcore.domain.models import (
    CreatedInvoice,
    DraftInvoice,
    IncomingInvoice,
    InvoiceSource,
    InvoiceStatus,
)
from taxcore.domain.vat import VATTreatment, decompose
from taxcore.errors import (
    AuthorizationError,
    ConfigurationError,
    DependencyError,
    MalformedPayloadError,
    MissingFieldsError,
    PersistenceError,
)
from taxcore.infrastructure.database import InvoiceRecord

from .allocator import InvoiceNumberAllocator
from .directory import OwnerDirectory
from .normalize import FieldNormalizer

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Body is not JSON, or is JSON but not an object
_MALFORMED_ERROR_TYPES = {"json_invalid", "json_type", "model_type", "model_attributes_type"}


def parse_payload(body: bytes) -> IncomingInvoice:
    """
    Parse and validate a raw webhook body.

    Raises:
        MalformedPayloadError: Body is not a JSON object
        MissingFieldsError: A required field is absent, blank or not a string
    """
    try:
        request = IncomingInvoiceRequest.model_validate_json(body)
    except ValidationError as e:
        errors = e.errors()
        if any(err["type"] in _MALFORMED_ERROR_TYPES or not err["loc"] for err in errors):
            raise MalformedPayloadError(details=errors[0]["msg"]) from e

        failed = {err["loc"][0] for err in errors}
        raise MissingFieldsError(
            [name for name in IncomingInvoiceRequest.model_fields if name in failed]
        ) from e

    return IncomingInvoice(
        sender=request.sender,
        subject=request.subject,
        date=request.date,
        amount=request.amount,
    )


class InvoiceIngestionService:
    """
    Runs the ingestion pipeline against one database session.

    Example:
        service = InvoiceIngestionService(
            webhook_secret="s3cret",
            directory=SqlOwnerDirectory(),
            allocator=SqlInvoiceNumberAllocator(),
        )
        service.authenticate(request.headers.get("x-api-key"))
        payload = parse_payload(await request.body())
        created = await service.ingest(session, payload)
    """

    def __init__(
        self,
        webhook_secret: str | None,
        directory: OwnerDirectory,
        allocator: InvoiceNumberAllocator,
        normalizer: FieldNormalizer | None = None,
        clock: Clock | None = None,
        tz: tzinfo | None = None,
        vat_rate: Decimal = Decimal("21"),
        payment_term_days: int = 14,
        timeout_seconds: float = 10.0,
    ) -> None:
        """
        Initialize ingestion service.

        Args:
            webhook_secret: Expected credential; None means not configured
            directory: Owner lookup
            allocator: Invoice number allocator
            normalizer: Amount/date normalizer (created if None)
            clock: Time source (system clock if None)
            tz: Business timezone for "today"
            vat_rate: VAT rate assumed included in ingested amounts
            payment_term_days: Days until the due date
            timeout_seconds: Bound on each dependency call
        """
        self.webhook_secret = webhook_secret
        self.directory = directory
        self.allocator = allocator
        self.clock = clock or SystemClock()
        self.tz = tz or timezone.utc
        self.normalizer = normalizer or FieldNormalizer(tz=self.tz, clock=self.clock)
        self.vat_rate = vat_rate
        self.payment_term_days = payment_term_days
        self.timeout_seconds = timeout_seconds

    def authenticate(self, presented: str | None) -> None:
        """
        Check the presented credential against the configured secret.

        Raises:
            ConfigurationError: No secret configured on the server
            AuthorizationError: Credential missing or wrong
        """
        if not self.webhook_secret:
            logger.error("Webhook secret not configured")
            raise ConfigurationError()

        if not presented or not hmac.compare_digest(
            presented.encode("utf-8"), self.webhook_secret.encode("utf-8")
        ):
            logger.warning("Webhook request rejected: invalid credential")
            raise AuthorizationError()

    async def ingest(
        self,
        session: AsyncSession,
        payload: IncomingInvoice,
        idempotency_key: str | None = None,
    ) -> CreatedInvoice:
        """
        Create a draft invoice from a validated payload.

        Returns:
            The created invoice, or the earlier one when the idempotency
            key has been seen for this owner

        Raises:
            OwnerResolutionError, AllocationError, PersistenceError,
            DependencyError (timeouts)
        """
        owner_id = await self._bounded(self.directory.resolve_owner(session), "Owner lookup")
        logger.info(f"Resolved owner {owner_id}")

        if idempotency_key:
            replay = await self._find_replay(session, owner_id, idempotency_key)
            if replay is not None:
                logger.info(f"Idempotent replay of {idempotency_key}, returning {replay.invoice_number}")
                return replay

        today = self.clock.today(self.tz)
        invoice_number = await self._bounded(
            self.allocator.allocate(session, owner_id, today), "Invoice number allocation"
        )

        draft = self.build_draft(owner_id, invoice_number, payload, idempotency_key)
        record = self._to_record(draft)

        try:
            session.add(record)
            await self._bounded(session.flush(), "Invoice insert")
            await self._bounded(session.commit(), "Invoice commit")
        except IntegrityError as e:
            await session.rollback()
            if idempotency_key:
                # A concurrent request with the same key won the race
                replay = await self._find_replay(session, owner_id, idempotency_key)
                if replay is not None:
                    return replay
            logger.error(f"Error inserting invoice: {e.orig}")
            raise PersistenceError(details=str(e.orig)) from e
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Error inserting invoice: {e}")
            raise PersistenceError(details=str(getattr(e, "orig", None) or e)) from e

        logger.info(
            f"Created draft invoice {record.invoice_number} ({record.id}) "
            f"for {draft.client_name}: total {draft.total_amount}"
        )
        return CreatedInvoice(invoice_id=record.id, invoice_number=record.invoice_number)

    def build_draft(
        self,
        owner_id: str,
        invoice_number: str,
        payload: IncomingInvoice,
        idempotency_key: str | None = None,
    ) -> DraftInvoice:
        """Normalize amount and dates into a draft (steps 6 and 7)."""
        amount = self.normalizer.normalize_amount(payload.amount)
        if amount.errors:
            logger.warning(f"Amount normalization issues: {amount.errors}")
        breakdown = decompose(amount.value, self.vat_rate, VATTreatment.DOMESTIC)

        invoice_date = self.normalizer.normalize_date(payload.date)
        if invoice_date.fallback:
            logger.warning(f"Invalid date received, using current date: {payload.date!r}")

        return DraftInvoice(
            owner_id=owner_id,
            invoice_number=invoice_number,
            client_name=self.normalizer.normalize_text(payload.sender),
            invoice_date=invoice_date.value,
            due_date=invoice_date.value + timedelta(days=self.payment_term_days),
            breakdown=breakdown,
            notes=payload.subject,
            status=InvoiceStatus.DRAFT,
            source=InvoiceSource.WEBHOOK,
            idempotency_key=idempotency_key,
        )

    @staticmethod
    def _to_record(draft: DraftInvoice) -> InvoiceRecord:
        rounded = draft.breakdown.rounded()
        return InvoiceRecord(
            owner_id=draft.owner_id,
            invoice_number=draft.invoice_number,
            status=draft.status.value,
            source=draft.source.value,
            client_name=draft.client_name,
            invoice_date=draft.invoice_date,
            due_date=draft.due_date,
            payment_terms=draft.payment_terms,
            subtotal=rounded.amount_excl,
            vat_rate=rounded.vat_rate,
            vat_treatment=rounded.treatment.value,
            vat_amount=rounded.vat_amount,
            total_amount=rounded.amount_incl,
            notes=draft.notes,
            idempotency_key=draft.idempotency_key,
        )

    async def _find_replay(
        self, session: AsyncSession, owner_id: str, idempotency_key: str
    ) -> CreatedInvoice | None:
        result = await self._bounded(
            session.execute(
                select(InvoiceRecord.id, InvoiceRecord.invoice_number).where(
                    InvoiceRecord.owner_id == owner_id,
                    InvoiceRecord.idempotency_key == idempotency_key,
                )
            ),
            "Idempotency lookup",
        )
        row = result.first()
        if row is None:
            return None
        return CreatedInvoice(invoice_id=row.id, invoice_number=row.invoice_number, replayed=True)

    async def _bounded(self, awaitable: Awaitable[T], step: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except TimeoutError as e:
            logger.error(f"{step} timed out after {self.timeout_seconds}s")
            raise DependencyError(details=f"{step} timed out after {self.timeout_seconds}s") from e


def payload_summary(payload: IncomingInvoice) -> dict[str, Any]:
    """Loggable view of a payload."""
    return {
        "sender": payload.sender,
        "subject": payload.subject[:80],
        "date": payload.date,
        "amount": payload.amount,
    }
