"""
Dutch statutory tax deadlines.

Pure functions: the deadline schedule of a fiscal year, status and
day-count derivation relative to a given "today", and grouping for display.
No I/O; storage and the current date are supplied by the caller.

Schedule for fiscal year Y:
- Inkomstenbelasting over Y-1: due 1 May Y
- BTW-aangifte Q1-Q3: due the last day of the month after the quarter
- BTW-aangifte Q4: due 31 January Y+1
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta

from .models import (
    DeadlineGroups,
    DeadlineKind,
    DeadlineStatus,
    DeadlineTemplate,
    DeadlineView,
)


@dataclass(frozen=True)
class DeadlineRule:
    """Where a deadline falls relative to its fiscal year."""
    kind: DeadlineKind
    period: int
    month: int
    day: int
    year_offset: int = 0


# Period 0 is the single annual filing; 1-4 are quarters
STATUTORY_SCHEDULE: tuple[DeadlineRule, ...] = (
    DeadlineRule(DeadlineKind.INCOME_TAX, 0, month=5, day=1),
    DeadlineRule(DeadlineKind.VAT_RETURN, 1, month=4, day=30),
    DeadlineRule(DeadlineKind.VAT_RETURN, 2, month=7, day=31),
    DeadlineRule(DeadlineKind.VAT_RETURN, 3, month=10, day=31),
    DeadlineRule(DeadlineKind.VAT_RETURN, 4, month=1, day=31, year_offset=1),
)


def statutory_deadlines(fiscal_year: int) -> list[DeadlineTemplate]:
    """Generate the five deadlines of a fiscal year."""
    return [
        DeadlineTemplate(
            kind=rule.kind,
            period=rule.period,
            fiscal_year=fiscal_year,
            due_date=date(fiscal_year + rule.year_offset, rule.month, rule.day),
        )
        for rule in STATUTORY_SCHEDULE
    ]


def display_name(kind: DeadlineKind, period: int, fiscal_year: int) -> str:
    """Human-readable (Dutch) name, e.g. 'BTW-aangifte Q2 2025'."""
    if kind == DeadlineKind.INCOME_TAX:
        # The filing due in year Y covers income earned in Y-1
        return f"Inkomstenbelasting {fiscal_year - 1}"
    return f"BTW-aangifte Q{period} {fiscal_year}"


def days_until(due_date: date, today: date) -> int:
    """Signed whole days from today to the due date; negative once past."""
    return (due_date - today).days


def deadline_status(due_date: date, acknowledged: bool, today: date) -> DeadlineStatus:
    """Acknowledged wins over overdue; a deadline due today is still upcoming."""
    if acknowledged:
        return DeadlineStatus.ACKNOWLEDGED
    if due_date < today:
        return DeadlineStatus.OVERDUE
    return DeadlineStatus.UPCOMING


def is_due_soon(deadline: DeadlineView, today: date, window_days: int) -> bool:
    """Unacknowledged and due within [today, today + window_days]."""
    if deadline.acknowledged:
        return False
    return today <= deadline.due_date <= today + timedelta(days=window_days)


def group_by_status(deadlines: Iterable[DeadlineView]) -> DeadlineGroups:
    """Partition deadlines into overdue, upcoming and acknowledged."""
    groups = DeadlineGroups()
    for deadline in deadlines:
        if deadline.status == DeadlineStatus.ACKNOWLEDGED:
            groups.acknowledged.append(deadline)
        elif deadline.status == DeadlineStatus.OVERDUE:
            groups.overdue.append(deadline)
        else:
            groups.upcoming.append(deadline)
    return groups
