"""
Invoice number allocation.

Numbers have the form YYYY-NNN (e.g. 2026-001), counted per owner and
calendar year. The default allocator keeps a counter row per (owner, year)
and bumps it with a single INSERT ... ON CONFLICT DO UPDATE ... RETURNING,
so concurrent callers for the same owner serialize on that row and never
receive the same number.

The allocation runs inside the caller's transaction: if the invoice insert
fails and the transaction rolls back, the counter rolls back with it and
no number is burned.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taxcore.errors import AllocationError
from taxcore.infrastructure.database import InvoiceNumberSequence, dialect_insert

logger = logging.getLogger(__name__)


def format_invoice_number(year: int, sequence: int) -> str:
    """Format as YYYY-NNN; widens past 999 instead of wrapping."""
    return f"{year}-{sequence:03d}"


class InvoiceNumberAllocator(ABC):
    """Abstract interface for invoice number allocation."""

    @abstractmethod
    async def allocate(self, session: AsyncSession, owner_id: str, today: date) -> str:
        """
        Issue the next invoice number for an owner.

        Raises:
            AllocationError: If no number could be issued
        """
        pass


class SqlInvoiceNumberAllocator(InvoiceNumberAllocator):
    """Counter-table allocator (PostgreSQL and SQLite)."""

    async def allocate(self, session: AsyncSession, owner_id: str, today: date) -> str:
        table = InvoiceNumberSequence.__table__
        insert = dialect_insert(session)

        stmt = (
            insert(table)
            .values(owner_id=owner_id, year=today.year, last_value=1)
            .on_conflict_do_update(
                index_elements=[table.c.owner_id, table.c.year],
                set_={"last_value": table.c.last_value + 1},
            )
            .returning(table.c.last_value)
        )

        try:
            result = await session.execute(stmt)
            sequence = result.scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Invoice number allocation failed for owner {owner_id}: {e}")
            raise AllocationError(details=str(e)) from e

        number = format_invoice_number(today.year, sequence)
        logger.info(f"Allocated invoice number {number} for owner {owner_id}")
        return number
