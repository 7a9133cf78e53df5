"""
FastAPI application entry point.

This is the main application that ties together all components:
- Webhook invoice ingestion
- Tax deadline tracking
- Database lifecycle management
- Error handling and logging
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taxcore import __version__
from taxcore.api.routes import deadlines, health, webhooks
from taxcore.config import Settings, get_settings
from taxcore.domain.clock import Clock, SystemClock
from taxcore.errors import TaxCoreError
from taxcore.infrastructure.database import Database
from taxcore.services.allocator import InvoiceNumberAllocator, SqlInvoiceNumberAllocator
from taxcore.services.deadlines import TaxDeadlineService
from taxcore.services.directory import OwnerDirectory, SqlOwnerDirectory
from taxcore.services.ingestion import InvoiceIngestionService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup (best effort) and release the pool on shutdown."""
    settings: Settings = app.state.settings
    database: Database = app.state.database

    logger.info(f"Starting taxcore v{__version__}")
    logger.info(f"Business timezone: {settings.business_timezone}")
    logger.info(f"Webhook secret configured: {settings.webhook_secret is not None}")
    logger.info(f"Debug mode: {settings.debug}")

    try:
        await database.create_all()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        # Keep serving; /health reports the database as unavailable

    yield  # Application runs here

    logger.info("Shutting down taxcore")
    await database.dispose()


def create_app(
    settings: Settings | None = None,
    clock: Clock | None = None,
    directory: OwnerDirectory | None = None,
    allocator: InvoiceNumberAllocator | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration (environment if None)
        clock: Time source (system clock if None)
        directory: Owner lookup for ingestion (accounts table if None)
        allocator: Invoice number allocator (counter table if None)

    Returns:
        Configured FastAPI instance ready to serve requests.
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()

    app = FastAPI(
        title="taxcore API",
        description=(
            "Tax compliance core for small-business bookkeeping.\n\n"
            "Ingests webhook invoices as VAT-decomposed drafts and tracks "
            "Dutch income tax and VAT return deadlines."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Explicitly constructed collaborators, shared read-only by all requests
    database = Database(settings.database_url, echo=settings.debug)
    secret = settings.webhook_secret.get_secret_value() if settings.webhook_secret else None

    app.state.settings = settings
    app.state.database = database
    app.state.ingestion_service = InvoiceIngestionService(
        webhook_secret=secret,
        directory=directory or SqlOwnerDirectory(),
        allocator=allocator or SqlInvoiceNumberAllocator(),
        clock=clock,
        tz=settings.timezone,
        vat_rate=settings.default_vat_rate,
        payment_term_days=settings.payment_term_days,
        timeout_seconds=settings.dependency_timeout_seconds,
    )
    app.state.deadline_service = TaxDeadlineService(
        tz=settings.timezone,
        clock=clock,
        reminder_days=settings.deadline_reminder_days,
    )

    # Browser access only matters for the interactive docs
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(health.router)
    app.include_router(webhooks.router)
    app.include_router(deadlines.router, prefix="/api/v1")

    @app.exception_handler(TaxCoreError)
    async def tax_core_error_handler(request: Request, exc: TaxCoreError):
        """Typed errors raised outside the webhook route keep their status code."""
        logger.warning(f"{request.method} {request.url.path} failed [{exc.code}]: {exc}")
        content = {"error": exc.message}
        if exc.details is not None:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        content = {"error": "Internal server error"}
        if settings.debug:
            content["details"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "taxcore.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
