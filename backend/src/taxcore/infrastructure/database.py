"""
Database models and session management with SQLAlchemy.

Uses async SQLAlchemy for non-blocking database operations.

Design Decisions:
- AsyncSession for non-blocking operations
- Connection pooling with sensible defaults (PostgreSQL)
- Explicit transaction management
- Session-per-request pattern
- One Database object per application, constructed explicitly and passed
  around; no module-level engine
- Uniqueness rules live in the schema so concurrent writers collapse into
  no-ops instead of duplicate rows
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

logger = logging.getLogger(__name__)


def new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class Account(Base):
    """
    An owning account (bookkeeping customer).

    The webhook pipeline resolves its owner from this table.
    """
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str | None] = mapped_column(String(256), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class InvoiceRecord(Base):
    """
    Stored invoice.

    Webhook ingestion only ever creates drafts; later status changes
    (sent, paid) belong to the invoicing workflow.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("owner_id", "invoice_number", name="uq_invoices_owner_number"),
        UniqueConstraint("owner_id", "idempotency_key", name="uq_invoices_owner_idempotency"),
        Index("ix_invoices_owner_date", "owner_id", "invoice_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    owner_id: Mapped[str] = mapped_column(String(36), ForeignKey("accounts.id"), index=True)
    invoice_number: Mapped[str] = mapped_column(String(32))
    status: Mapped[str] = mapped_column(String(16), default="draft")  # draft, sent, paid
    source: Mapped[str] = mapped_column(String(16), default="manual", index=True)  # manual, ai, webhook

    # Client
    client_name: Mapped[str] = mapped_column(String(256))

    # Dates and terms
    invoice_date: Mapped[date] = mapped_column(Date)
    due_date: Mapped[date | None] = mapped_column(Date)
    payment_terms: Mapped[str | None] = mapped_column(String(128))

    # Financial (EUR, cents precision)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("21.00"))
    vat_treatment: Mapped[str] = mapped_column(String(40), default="domestic")
    vat_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))

    notes: Mapped[str | None] = mapped_column(Text)
    idempotency_key: Mapped[str | None] = mapped_column(String(128))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class InvoiceNumberSequence(Base):
    """Per-owner, per-year invoice counter backing the number allocator."""
    __tablename__ = "invoice_number_sequences"

    owner_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, default=0)


class TaxDeadlineRecord(Base):
    """
    A statutory deadline for one owner and fiscal year.

    At most one row per (owner, fiscal year, kind, period).
    """
    __tablename__ = "tax_deadlines"
    __table_args__ = (
        UniqueConstraint(
            "owner_id", "fiscal_year", "kind", "period",
            name="uq_tax_deadlines_owner_year_kind_period",
        ),
        Index("ix_tax_deadlines_owner_year", "owner_id", "fiscal_year"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    owner_id: Mapped[str] = mapped_column(String(36))
    fiscal_year: Mapped[int] = mapped_column(Integer)
    kind: Mapped[str] = mapped_column(String(16))  # income_tax, vat_return
    period: Mapped[int] = mapped_column(Integer)  # 0 annual, 1-4 quarters
    due_date: Mapped[date] = mapped_column(Date, index=True)
    acknowledged: Mapped[bool] = mapped_column(Boolean, default=False)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


def dialect_insert(session: AsyncSession) -> Any:
    """
    Return the dialect-specific insert() supporting ON CONFLICT.

    Both PostgreSQL and SQLite support ON CONFLICT ... DO NOTHING / DO UPDATE
    and RETURNING, which the allocator and deadline generation rely on.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise NotImplementedError(f"Unsupported database dialect: {dialect}")


class Database:
    """
    Engine and session factory for one application instance.

    Constructed once in create_app(), disposed on shutdown. Never mutated
    after construction.

    Usage:
        async with database.session() as session:
            session.add(record)
            await session.commit()
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        engine_options: dict[str, Any] = {"echo": echo}
        if not url.startswith("sqlite"):
            engine_options.update(pool_size=5, max_overflow=10, pool_timeout=30)

        self.url = url
        self.engine = create_async_engine(url, **engine_options)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info(f"Database engine created for {self.engine.url.render_as_string(hide_password=True)}")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session; roll back on error, always close."""
        session = self.session_factory()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_all(self) -> None:
        """
        Initialize database tables.

        Call this on application startup to ensure tables exist.
        In production, use Alembic migrations instead.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialized")

    async def ping(self) -> bool:
        """True if a trivial query succeeds."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    async def dispose(self) -> None:
        """Close database connections on shutdown."""
        await self.engine.dispose()
        logger.info("Database connections closed")
