"""Tests for tax deadline generation and acknowledgment (service level)."""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import func, select

from conftest import AMSTERDAM
from taxcore.domain.models import DeadlineKind, DeadlineStatus
from taxcore.errors import DeadlineNotFoundError
from taxcore.infrastructure.database import TaxDeadlineRecord
from taxcore.services.deadlines import TaxDeadlineService


@pytest.fixture
def service(clock) -> TaxDeadlineService:
    return TaxDeadlineService(tz=AMSTERDAM, clock=clock, reminder_days=30)


async def count_deadlines(session) -> int:
    return await session.scalar(select(func.count()).select_from(TaxDeadlineRecord))


class TestGetDeadlines:
    """First view of a year generates its five deadlines."""

    async def test_generates_five_ordered_by_due_date(self, session, service, owner_id):
        deadlines = await service.get_deadlines(session, owner_id, 2025)

        assert [(d.kind, d.period) for d in deadlines] == [
            (DeadlineKind.VAT_RETURN, 1),
            (DeadlineKind.INCOME_TAX, 0),
            (DeadlineKind.VAT_RETURN, 2),
            (DeadlineKind.VAT_RETURN, 3),
            (DeadlineKind.VAT_RETURN, 4),
        ]
        assert deadlines[-1].due_date == date(2026, 1, 31)
        assert deadlines[1].display_name == "Inkomstenbelasting 2024"

    async def test_status_relative_to_today(self, session, service, owner_id):
        # Today is 2025-06-15
        deadlines = await service.get_deadlines(session, owner_id, 2025)
        by_period = {d.period: d for d in deadlines}

        assert by_period[1].status == DeadlineStatus.OVERDUE
        assert by_period[0].status == DeadlineStatus.OVERDUE
        assert by_period[2].status == DeadlineStatus.UPCOMING
        assert by_period[2].days_until == 46
        assert by_period[1].days_until == -46

    async def test_second_view_returns_same_rows(self, session, service, owner_id):
        first = await service.get_deadlines(session, owner_id, 2025)
        second = await service.get_deadlines(session, owner_id, 2025)

        assert [d.id for d in first] == [d.id for d in second]
        assert await count_deadlines(session) == 5

    async def test_repeated_generation_is_a_no_op(self, session, service, owner_id):
        # Two racing first visits both run the insert
        await service._generate(session, owner_id, 2025)
        await service._generate(session, owner_id, 2025)

        assert await count_deadlines(session) == 5

    async def test_years_and_owners_are_independent(self, session, service, owner_id):
        await service.get_deadlines(session, owner_id, 2025)
        await service.get_deadlines(session, owner_id, 2026)
        await service.get_deadlines(session, "other-owner", 2025)

        assert await count_deadlines(session) == 15


class TestAcknowledge:
    """Acknowledgment is one-way and keeps the first timestamp."""

    async def test_overdue_becomes_acknowledged(self, session, service, owner_id, clock):
        deadlines = await service.get_deadlines(session, owner_id, 2025)
        overdue = next(d for d in deadlines if d.status == DeadlineStatus.OVERDUE)

        acknowledged = await service.acknowledge(session, owner_id, overdue.id)

        assert acknowledged.acknowledged
        assert acknowledged.status == DeadlineStatus.ACKNOWLEDGED
        assert acknowledged.acknowledged_at.replace(tzinfo=timezone.utc) == clock.now()

    async def test_second_acknowledge_keeps_first_timestamp(self, session, service, owner_id, clock):
        deadlines = await service.get_deadlines(session, owner_id, 2025)
        first = await service.acknowledge(session, owner_id, deadlines[2].id)

        clock.advance(days=3)
        second = await service.acknowledge(session, owner_id, deadlines[2].id)

        assert second.acknowledged
        assert second.acknowledged_at == first.acknowledged_at

    async def test_acknowledged_state_is_persisted(self, session, service, owner_id):
        deadlines = await service.get_deadlines(session, owner_id, 2025)
        await service.acknowledge(session, owner_id, deadlines[0].id)

        reloaded = await service.get_deadlines(session, owner_id, 2025)
        assert reloaded[0].status == DeadlineStatus.ACKNOWLEDGED
        assert all(not d.acknowledged for d in reloaded[1:])

    async def test_unknown_id(self, session, service, owner_id):
        with pytest.raises(DeadlineNotFoundError) as exc_info:
            await service.acknowledge(session, owner_id, "does-not-exist")
        assert exc_info.value.status_code == 404

    async def test_other_owners_deadline_is_not_found(self, session, service, owner_id):
        deadlines = await service.get_deadlines(session, "other-owner", 2025)

        with pytest.raises(DeadlineNotFoundError):
            await service.acknowledge(session, owner_id, deadlines[0].id)

        untouched = await service.get_deadlines(session, "other-owner", 2025)
        assert not untouched[0].acknowledged


class TestCountDueSoon:

    async def test_counts_unacknowledged_within_window(self, session, service, owner_id, clock):
        clock.set_time(datetime(2025, 7, 10, 9, 0, 0, tzinfo=timezone.utc))
        deadlines = await service.get_deadlines(session, owner_id, 2025)

        # Only Q2 (31 July) falls inside 30 days of 10 July
        assert await service.count_due_soon(session, owner_id) == 1

        q2 = next(d for d in deadlines if d.period == 2)
        await service.acknowledge(session, owner_id, q2.id)
        assert await service.count_due_soon(session, owner_id) == 0

    async def test_nothing_generated_counts_zero(self, session, service, owner_id):
        assert await service.count_due_soon(session, owner_id) == 0
