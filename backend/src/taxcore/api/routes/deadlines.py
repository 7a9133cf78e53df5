"""
Tax deadline endpoints.

Lists an owner's statutory deadlines for a fiscal year (generated on first
view) and records acknowledgments. The owner id arrives in the path; binding
it to an authenticated session is the gateway's job.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from taxcore.api.dependencies import get_deadline_service, get_session
from taxcore.api.schemas import (
    DeadlineGroupsResponse,
    DueSoonResponse,
    TaxDeadlineResponse,
    TaxDeadlinesResponse,
)
from taxcore.domain.deadlines import group_by_status
from taxcore.errors import DeadlineNotFoundError
from taxcore.services.deadlines import TaxDeadlineService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/owners/{owner_id}/deadlines", tags=["tax deadlines"])


@router.get("/{fiscal_year}", response_model=TaxDeadlinesResponse)
async def list_deadlines(
    owner_id: str,
    fiscal_year: Annotated[int, Path(ge=2000, le=2100)],
    service: Annotated[TaxDeadlineService, Depends(get_deadline_service)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> TaxDeadlinesResponse:
    """
    Get the deadlines of a fiscal year.

    Creates the year's income tax and four VAT return deadlines the first
    time the year is requested.
    """
    deadlines = await service.get_deadlines(session, owner_id, fiscal_year)

    return TaxDeadlinesResponse(
        fiscal_year=fiscal_year,
        deadlines=[TaxDeadlineResponse.from_view(d) for d in deadlines],
        groups=DeadlineGroupsResponse.from_groups(group_by_status(deadlines)),
    )


@router.post(
    "/{deadline_id}/acknowledge",
    response_model=TaxDeadlineResponse,
    responses={
        404: {"description": "Deadline not found for this owner"},
    },
)
async def acknowledge_deadline(
    owner_id: str,
    deadline_id: str,
    service: Annotated[TaxDeadlineService, Depends(get_deadline_service)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> TaxDeadlineResponse:
    """
    Mark a deadline as handled.

    Repeating the call is harmless and keeps the original timestamp.
    """
    try:
        deadline = await service.acknowledge(session, owner_id, deadline_id)
    except DeadlineNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Deadline not found: {e.deadline_id}",
        )

    return TaxDeadlineResponse.from_view(deadline)


@router.get("/due-soon/count", response_model=DueSoonResponse)
async def due_soon_count(
    owner_id: str,
    service: Annotated[TaxDeadlineService, Depends(get_deadline_service)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DueSoonResponse:
    """Number of unacknowledged deadlines due within the reminder window (badge)."""
    count = await service.count_due_soon(session, owner_id)
    return DueSoonResponse(count=count, window_days=service.reminder_days)
