"""
Tax deadline tracking service.

Lazily generates an owner's statutory deadlines for a fiscal year, returns
them with a status computed against today, and records acknowledgments.

Design Decisions:
- Generation is insert-if-absent on (owner, year, kind, period); two
  first visits racing each other both succeed and leave five rows
- Rows are never regenerated once a year exists for an owner
- Acknowledgment is one-way and uses a conditional update, so repeating
  it keeps the first timestamp
"""

import logging
from datetime import tzinfo

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taxcore.domain.clock import Clock, SystemClock
from taxcore.domain.deadlines import (
    days_until,
    deadline_status,
    display_name,
    is_due_soon,
    statutory_deadlines,
)
from taxcore.domain.models import DeadlineKind, DeadlineView
from taxcore.errors import DeadlineNotFoundError
from taxcore.infrastructure.database import TaxDeadlineRecord, dialect_insert, new_id

logger = logging.getLogger(__name__)


class TaxDeadlineService:
    """
    Deadline lifecycle for one owner at a time.

    Example:
        service = TaxDeadlineService(clock=SystemClock(), tz=ZoneInfo("Europe/Amsterdam"))
        deadlines = await service.get_deadlines(session, owner_id, 2025)
        await service.acknowledge(session, owner_id, deadlines[0].id)
    """

    def __init__(
        self,
        tz: tzinfo,
        clock: Clock | None = None,
        reminder_days: int = 30,
    ) -> None:
        self.tz = tz
        self.clock = clock or SystemClock()
        self.reminder_days = reminder_days

    async def get_deadlines(
        self,
        session: AsyncSession,
        owner_id: str,
        fiscal_year: int,
    ) -> list[DeadlineView]:
        """
        Return the owner's five deadlines for a fiscal year, generating them
        on first access. Ordered by due date.
        """
        records = await self._load(session, owner_id, fiscal_year)
        if not records:
            await self._generate(session, owner_id, fiscal_year)
            records = await self._load(session, owner_id, fiscal_year)

        return [self._to_view(record) for record in records]

    async def acknowledge(
        self,
        session: AsyncSession,
        owner_id: str,
        deadline_id: str,
    ) -> DeadlineView:
        """
        Mark a deadline as acknowledged.

        Acknowledging twice is allowed and changes nothing the second time.

        Raises:
            DeadlineNotFoundError: No such deadline for this owner
        """
        result = await session.execute(
            update(TaxDeadlineRecord)
            .where(
                TaxDeadlineRecord.id == deadline_id,
                TaxDeadlineRecord.owner_id == owner_id,
                TaxDeadlineRecord.acknowledged.is_(False),
            )
            .values(acknowledged=True, acknowledged_at=self.clock.now())
        )
        await session.commit()

        record = await session.scalar(
            select(TaxDeadlineRecord)
            .where(
                TaxDeadlineRecord.id == deadline_id,
                TaxDeadlineRecord.owner_id == owner_id,
            )
            .execution_options(populate_existing=True)
        )
        if record is None:
            logger.warning(f"Acknowledge failed: deadline {deadline_id} not found for owner {owner_id}")
            raise DeadlineNotFoundError(deadline_id)

        if result.rowcount:
            logger.info(f"Deadline {deadline_id} acknowledged")
        else:
            logger.info(f"Deadline {deadline_id} was already acknowledged")
        return self._to_view(record)

    async def count_due_soon(self, session: AsyncSession, owner_id: str) -> int:
        """Unacknowledged deadlines due within the reminder window, across years."""
        today = self.clock.today(self.tz)
        records = await session.scalars(
            select(TaxDeadlineRecord).where(
                TaxDeadlineRecord.owner_id == owner_id,
                TaxDeadlineRecord.acknowledged.is_(False),
                TaxDeadlineRecord.due_date >= today,
            )
        )
        return sum(
            1 for record in records
            if is_due_soon(self._to_view(record), today, self.reminder_days)
        )

    async def _load(
        self,
        session: AsyncSession,
        owner_id: str,
        fiscal_year: int,
    ) -> list[TaxDeadlineRecord]:
        records = await session.scalars(
            select(TaxDeadlineRecord)
            .where(
                TaxDeadlineRecord.owner_id == owner_id,
                TaxDeadlineRecord.fiscal_year == fiscal_year,
            )
            .order_by(TaxDeadlineRecord.due_date, TaxDeadlineRecord.period)
        )
        return list(records)

    async def _generate(self, session: AsyncSession, owner_id: str, fiscal_year: int) -> None:
        table = TaxDeadlineRecord.__table__
        insert = dialect_insert(session)
        rows = [
            {
                "id": new_id(),
                "owner_id": owner_id,
                "fiscal_year": template.fiscal_year,
                "kind": template.kind.value,
                "period": template.period,
                "due_date": template.due_date,
                "acknowledged": False,
                "created_at": self.clock.now(),
            }
            for template in statutory_deadlines(fiscal_year)
        ]
        await session.execute(
            insert(table)
            .values(rows)
            .on_conflict_do_nothing(
                index_elements=[table.c.owner_id, table.c.fiscal_year, table.c.kind, table.c.period]
            )
        )
        await session.commit()
        logger.info(f"Generated tax deadlines {fiscal_year} for owner {owner_id}")

    def _to_view(self, record: TaxDeadlineRecord) -> DeadlineView:
        today = self.clock.today(self.tz)
        kind = DeadlineKind(record.kind)
        return DeadlineView(
            id=record.id,
            kind=kind,
            period=record.period,
            fiscal_year=record.fiscal_year,
            due_date=record.due_date,
            acknowledged=record.acknowledged,
            acknowledged_at=record.acknowledged_at,
            status=deadline_status(record.due_date, record.acknowledged, today),
            days_until=days_until(record.due_date, today),
            display_name=display_name(kind, record.period, fiscal_year=record.fiscal_year),
        )
