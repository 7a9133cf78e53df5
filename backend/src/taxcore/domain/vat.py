"""
VAT (BTW) decomposition for Dutch tax compliance.

Amounts are stored INCLUDING VAT for domestic transactions and must be
decomposed into a net amount and a VAT amount wherever they are displayed
or booked. Under the reverse-charge treatment for foreign services the
stored amount is already net and the VAT amount is zero.

Design Decisions:
- Decimal for all monetary values, never float
- Division runs in a fixed module-level decimal context, so results do not
  depend on whatever context the calling thread has configured
- Rounding to cents happens once, at serialization, via round_money()
- decompose() takes the VAT treatment itself; callers never have to apply
  the reverse-charge short-circuit before calling it
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Context, Decimal, InvalidOperation
from enum import Enum

# Dutch zero, reduced and standard rates (percent)
SUPPORTED_VAT_RATES: tuple[Decimal, ...] = (Decimal("0"), Decimal("9"), Decimal("21"))

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# Arithmetic context for intermediate results (full precision, no traps)
_CONTEXT = Context(prec=28, rounding=ROUND_HALF_EVEN, traps=[])

# Cent rounding raises instead of producing NaN when the result does not fit
_ROUNDING_CONTEXT = Context(prec=28, rounding=ROUND_HALF_UP, traps=[InvalidOperation])


class VATTreatment(str, Enum):
    """How VAT applies to a stored amount."""
    DOMESTIC = "domestic"
    FOREIGN_SERVICE_REVERSE_CHARGE = "foreign_service_reverse_charge"


@dataclass(frozen=True)
class VATBreakdown:
    """
    A VAT-inclusive amount split into net and VAT parts.

    Invariant: amount_excl + vat_amount == amount_incl. Full precision until
    rounded() is called.
    """
    amount_incl: Decimal
    amount_excl: Decimal
    vat_amount: Decimal
    vat_rate: Decimal
    treatment: VATTreatment = VATTreatment.DOMESTIC

    def rounded(self) -> "VATBreakdown":
        """
        Two-decimal view for storage and display.

        Gross and net are rounded; VAT is their difference, so the rounded
        parts still add up to the rounded total to the cent.
        """
        incl = round_money(self.amount_incl)
        excl = round_money(self.amount_excl)
        return VATBreakdown(
            amount_incl=incl,
            amount_excl=excl,
            vat_amount=_CONTEXT.subtract(incl, excl),
            vat_rate=self.vat_rate,
            treatment=self.treatment,
        )


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert a domain input to Decimal; floats go through str() for stable digits."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Decimal) -> Decimal:
    """
    Round to cents, half-up.

    Raises:
        InvalidOperation: Value is not finite or too large to hold in cents
    """
    if not value.is_finite():
        raise InvalidOperation(f"Cannot round non-finite amount {value}")
    return value.quantize(CENT, context=_ROUNDING_CONTEXT)


def is_supported_rate(vat_rate: Decimal | int | float | str) -> bool:
    """True if the rate is one of the Dutch VAT rates."""
    return to_decimal(vat_rate) in SUPPORTED_VAT_RATES


def _needs_decomposition(rate: Decimal, treatment: VATTreatment) -> bool:
    if treatment == VATTreatment.FOREIGN_SERVICE_REVERSE_CHARGE:
        return False
    return rate != 0


def _divisor(rate: Decimal) -> Decimal:
    return _CONTEXT.add(1, _CONTEXT.divide(rate, HUNDRED))


def excl_vat(
    amount_incl: Decimal | int | float | str,
    vat_rate: Decimal | int | float | str,
    treatment: VATTreatment = VATTreatment.DOMESTIC,
) -> Decimal:
    """
    Amount excluding VAT from an amount that includes VAT.

    Args:
        amount_incl: Stored amount (gross for domestic, net for reverse charge)
        vat_rate: VAT rate in percent, e.g. 21
        treatment: VAT treatment of the stored amount

    Returns:
        Net amount at full precision
    """
    amount = to_decimal(amount_incl)
    rate = to_decimal(vat_rate)
    if not _needs_decomposition(rate, treatment):
        return amount
    return _CONTEXT.divide(amount, _divisor(rate))


def decompose(
    amount_incl: Decimal | int | float | str,
    vat_rate: Decimal | int | float | str,
    treatment: VATTreatment = VATTreatment.DOMESTIC,
) -> VATBreakdown:
    """
    Split a stored amount into net and VAT parts.

    Zero rate and reverse charge return the amount unchanged with zero VAT.
    Otherwise net = gross / (1 + rate/100) and VAT = gross - net.

    Example:
        >>> decompose(Decimal("121"), 21).rounded().vat_amount
        Decimal('21.00')
    """
    amount = to_decimal(amount_incl)
    rate = to_decimal(vat_rate)
    if not _needs_decomposition(rate, treatment):
        return VATBreakdown(
            amount_incl=amount,
            amount_excl=amount,
            vat_amount=Decimal("0"),
            vat_rate=rate,
            treatment=treatment,
        )

    amount_excl = _CONTEXT.divide(amount, _divisor(rate))
    return VATBreakdown(
        amount_incl=amount,
        amount_excl=amount_excl,
        vat_amount=_CONTEXT.subtract(amount, amount_excl),
        vat_rate=rate,
        treatment=treatment,
    )
