"""
FastAPI dependencies.

Everything a route needs is built once in create_app() and stored on
app.state; these functions hand it to routes per request.
"""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from taxcore.infrastructure.database import Database
from taxcore.services.deadlines import TaxDeadlineService
from taxcore.services.ingestion import InvoiceIngestionService


def get_database(request: Request) -> Database:
    return request.app.state.database


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """One session per request, closed when the response is done."""
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session


def get_ingestion_service(request: Request) -> InvoiceIngestionService:
    return request.app.state.ingestion_service


def get_deadline_service(request: Request) -> TaxDeadlineService:
    return request.app.state.deadline_service
