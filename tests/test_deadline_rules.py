"""Tests for the statutory deadline schedule and status rules."""

from datetime import date

from taxcore.domain.deadlines import (
    days_until,
    deadline_status,
    display_name,
    group_by_status,
    is_due_soon,
    statutory_deadlines,
)
from taxcore.domain.models import DeadlineKind, DeadlineStatus, DeadlineView


def make_view(due: date, acknowledged: bool = False, today: date = date(2025, 6, 15)) -> DeadlineView:
    return DeadlineView(
        id=f"d-{due.isoformat()}",
        kind=DeadlineKind.VAT_RETURN,
        period=1,
        fiscal_year=due.year,
        due_date=due,
        acknowledged=acknowledged,
        acknowledged_at=None,
        status=deadline_status(due, acknowledged, today),
        days_until=days_until(due, today),
        display_name="test",
    )


class TestStatutorySchedule:
    """Five deadlines per fiscal year."""

    def test_due_dates_2025(self):
        by_key = {(d.kind, d.period): d.due_date for d in statutory_deadlines(2025)}
        assert by_key == {
            (DeadlineKind.INCOME_TAX, 0): date(2025, 5, 1),
            (DeadlineKind.VAT_RETURN, 1): date(2025, 4, 30),
            (DeadlineKind.VAT_RETURN, 2): date(2025, 7, 31),
            (DeadlineKind.VAT_RETURN, 3): date(2025, 10, 31),
            (DeadlineKind.VAT_RETURN, 4): date(2026, 1, 31),
        }

    def test_all_belong_to_the_fiscal_year(self):
        assert {d.fiscal_year for d in statutory_deadlines(2030)} == {2030}

    def test_display_names(self):
        assert display_name(DeadlineKind.INCOME_TAX, 0, 2025) == "Inkomstenbelasting 2024"
        assert display_name(DeadlineKind.VAT_RETURN, 3, 2025) == "BTW-aangifte Q3 2025"


class TestDeadlineStatus:
    """Status is derived from due date, acknowledgment and today."""

    today = date(2025, 6, 15)

    def test_past_due_is_overdue(self):
        assert deadline_status(date(2025, 4, 30), False, self.today) == DeadlineStatus.OVERDUE

    def test_due_today_is_upcoming(self):
        assert deadline_status(self.today, False, self.today) == DeadlineStatus.UPCOMING

    def test_acknowledged_wins_over_overdue(self):
        assert deadline_status(date(2025, 4, 30), True, self.today) == DeadlineStatus.ACKNOWLEDGED

    def test_days_until_is_signed(self):
        assert days_until(date(2025, 6, 20), self.today) == 5
        assert days_until(date(2025, 6, 10), self.today) == -5
        assert days_until(self.today, self.today) == 0


class TestDueSoon:

    today = date(2025, 6, 15)

    def test_inside_window(self):
        assert is_due_soon(make_view(date(2025, 7, 15)), self.today, 30)

    def test_outside_window(self):
        assert not is_due_soon(make_view(date(2025, 7, 16)), self.today, 30)

    def test_overdue_is_not_due_soon(self):
        assert not is_due_soon(make_view(date(2025, 6, 14)), self.today, 30)

    def test_acknowledged_is_not_due_soon(self):
        assert not is_due_soon(make_view(date(2025, 6, 20), acknowledged=True), self.today, 30)


class TestGroupByStatus:

    def test_partitions_every_deadline_once(self):
        views = [
            make_view(date(2025, 4, 30)),
            make_view(date(2025, 5, 1), acknowledged=True),
            make_view(date(2025, 7, 31)),
            make_view(date(2025, 10, 31)),
        ]
        groups = group_by_status(views)

        assert [v.due_date for v in groups.overdue] == [date(2025, 4, 30)]
        assert [v.due_date for v in groups.acknowledged] == [date(2025, 5, 1)]
        assert [v.due_date for v in groups.upcoming] == [date(2025, 7, 31), date(2025, 10, 31)]
