"""
Owner directory - resolves which account owns an ingested invoice.

Webhook notifications carry no owner. The directory answers the question
for the current single-tenant deployment: the one account that exists.
Multi-tenant deployments should bind the owner to a per-tenant credential
or webhook URL and provide their own OwnerDirectory.
"""

import logging
from abc import ABC, abstractmethod

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taxcore.errors import OwnerResolutionError
from taxcore.infrastructure.database import Account

logger = logging.getLogger(__name__)


class OwnerDirectory(ABC):
    """Abstract interface for owner lookup."""

    @abstractmethod
    async def resolve_owner(self, session: AsyncSession) -> str:
        """
        Return the id of the single eligible account.

        Raises:
            OwnerResolutionError: If zero or several accounts are eligible
        """
        pass


class SqlOwnerDirectory(OwnerDirectory):
    """Looks the owner up in the accounts table."""

    async def resolve_owner(self, session: AsyncSession) -> str:
        # Two rows are enough to tell "exactly one" from "ambiguous"
        try:
            result = await session.execute(
                select(Account.id).order_by(Account.created_at).limit(2)
            )
        except SQLAlchemyError as e:
            logger.error(f"Error fetching accounts: {e}")
            raise OwnerResolutionError(details=str(e)) from e
        candidates = list(result.scalars())

        if not candidates:
            logger.error("Owner resolution failed: no accounts")
            raise OwnerResolutionError(details="No accounts exist")
        if len(candidates) > 1:
            logger.error("Owner resolution failed: more than one account")
            raise OwnerResolutionError(details="More than one account is eligible")

        return candidates[0]
