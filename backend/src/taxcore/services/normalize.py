"""
Field normalization for webhook payloads.

Mail automations deliver amounts and dates as free text. This module turns
them into typed values:
- Monetary amounts: strip currency symbols, resolve European/US separators,
  parse decimals
- Dates: parse ISO, RFC 2822 (mail headers) and common numeric formats

Design Decisions:
- Parse failures never raise; they produce a fallback value and an error
  list so the pipeline decides whether the failure is fatal
- Amounts fall back to 0, dates to today in the business timezone
- Timezone-aware timestamps are converted to UTC before the date is taken
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from email.utils import parsedate_to_datetime
from typing import Generic, TypeVar

from taxcore.domain.clock import Clock, SystemClock
from taxcore.domain.vat import round_money

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Currency markers to strip before separator detection
CURRENCY_SYMBOLS = ["€", "$", "£", "EUR", "USD", "GBP"]

# Exclusive upper bound for amounts; invoice amounts are stored as NUMERIC(10, 2)
MAX_AMOUNT = Decimal("100000000")

# Date format patterns to try (in order of preference)
DATE_FORMATS = [
    "%Y-%m-%d",      # ISO format: 2024-01-15
    "%d-%m-%Y",      # Dutch: 15-01-2024
    "%d/%m/%Y",      # European: 15/01/2024
    "%d.%m.%Y",      # German: 15.01.2024
    "%m/%d/%Y",      # US: 01/15/2024
    "%d %b %Y",      # 15 Jan 2024
    "%d %B %Y",      # 15 January 2024
    "%b %d, %Y",     # Jan 15, 2024
    "%B %d, %Y",     # January 15, 2024
]


@dataclass
class NormalizationResult(Generic[T]):
    """Result of normalizing a raw value."""
    value: T
    raw: object
    errors: list[str] = field(default_factory=list)
    fallback: bool = False

    @property
    def success(self) -> bool:
        return not self.fallback and len(self.errors) == 0


class FieldNormalizer:
    """
    Normalizes raw payload values into typed domain values.

    Example:
        normalizer = FieldNormalizer(tz=ZoneInfo("Europe/Amsterdam"))
        normalizer.normalize_amount("€1.234,56").value
        # Decimal("1234.56")
    """

    def __init__(self, tz: tzinfo = timezone.utc, clock: Clock | None = None) -> None:
        """
        Initialize normalizer.

        Args:
            tz: Timezone that defines "today" for the date fallback
            clock: Time source for the date fallback
        """
        self.tz = tz
        self.clock = clock or SystemClock()

    def normalize_amount(self, raw: str | int | float | Decimal | None) -> NormalizationResult[Decimal]:
        """
        Parse a monetary amount.

        Handles:
        - Numbers passed as JSON numbers
        - Currency symbols (€, EUR, etc.)
        - Thousands separators (1,234.56 or 1.234,56)
        - Dutch decimal comma (121,00)

        Absent or unparsable input yields 0.
        """
        if raw is None or raw == "":
            return NormalizationResult(value=Decimal("0"), raw=raw, fallback=True)

        if isinstance(raw, bool):
            return NormalizationResult(
                value=Decimal("0"), raw=raw, errors=["Boolean is not an amount"], fallback=True
            )
        if isinstance(raw, (int, Decimal)):
            return self._checked_amount(Decimal(raw), raw)
        if isinstance(raw, float):
            return self._checked_amount(Decimal(str(raw)), raw)

        cleaned = str(raw).strip()
        for symbol in CURRENCY_SYMBOLS:
            cleaned = cleaned.replace(symbol, "")
        cleaned = cleaned.strip()

        # Handle European vs US number format
        # European: 1.234,56 -> need to swap
        # US: 1,234.56 -> standard
        if "," in cleaned and "." in cleaned:
            if cleaned.rindex(",") > cleaned.rindex("."):
                cleaned = cleaned.replace(".", "").replace(",", ".")
            else:
                cleaned = cleaned.replace(",", "")
        elif "," in cleaned:
            # One comma followed by 1-2 digits is a decimal comma, otherwise thousands
            parts = cleaned.split(",")
            if len(parts) == 2 and 1 <= len(re.sub(r"\D", "", parts[1])) <= 2:
                cleaned = cleaned.replace(",", ".")
            else:
                cleaned = cleaned.replace(",", "")

        # Remove any remaining non-numeric chars except decimal point
        cleaned = re.sub(r"[^\d.]", "", cleaned)

        try:
            value = Decimal(cleaned)
        except InvalidOperation:
            logger.warning(f"Failed to parse amount {raw!r}, using 0")
            return NormalizationResult(
                value=Decimal("0"), raw=raw, errors=[f"Unparsable amount: {raw!r}"], fallback=True
            )

        return self._checked_amount(value, raw)

    def normalize_date(self, raw: str) -> NormalizationResult[date]:
        """
        Parse a calendar date.

        Tries ISO dates and timestamps, RFC 2822 mail dates, then the
        numeric and month-name formats in DATE_FORMATS. Falls back to today
        with fallback=True.
        """
        cleaned = raw.strip()

        parsed = self._parse_iso(cleaned) or self._parse_mail_date(cleaned)
        if parsed is None:
            for fmt in DATE_FORMATS:
                try:
                    parsed = datetime.strptime(cleaned, fmt).date()
                    break
                except ValueError:
                    continue

        if parsed is not None:
            return NormalizationResult(value=parsed, raw=raw)

        today = self.clock.today(self.tz)
        logger.warning(f"Failed to parse date {raw!r}, using today ({today.isoformat()})")
        return NormalizationResult(
            value=today, raw=raw, errors=[f"Unparsable date: {raw!r}"], fallback=True
        )

    def normalize_text(self, raw: str) -> str:
        """Remove control characters and collapse whitespace."""
        cleaned = re.sub(r"[\x00-\x1f\x7f-\x9f]", " ", raw)
        return " ".join(cleaned.split())

    def _checked_amount(self, value: Decimal, raw: object) -> NormalizationResult[Decimal]:
        if not value.is_finite():
            return NormalizationResult(
                value=Decimal("0"), raw=raw, errors=["Amount is not finite"], fallback=True
            )
        errors = []
        if value < 0:
            # Amounts are gross invoice totals; credit notes do not come through this path
            value = abs(value)
            errors.append("Negative amount detected")
        if value >= MAX_AMOUNT or round_money(value) >= MAX_AMOUNT:
            logger.warning(f"Amount {raw!r} out of range, using 0")
            return NormalizationResult(
                value=Decimal("0"), raw=raw, errors=errors + [f"Amount out of range: {raw!r}"], fallback=True
            )
        return NormalizationResult(value=value, raw=raw, errors=errors)

    def _parse_iso(self, text: str) -> date | None:
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return self._to_date(parsed)

    def _parse_mail_date(self, text: str) -> date | None:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            return None
        if parsed is None:
            return None
        return self._to_date(parsed)

    @staticmethod
    def _to_date(value: datetime) -> date:
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
