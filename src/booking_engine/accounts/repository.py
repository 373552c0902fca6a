"""
Repository for business accounts and their messaging credentials.
"""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.accounts.models import BusinessAccount
from booking_engine.shared.database import DatabaseManager


@dataclass(frozen=True)
class WhatsAppCredential:
    """Active WhatsApp Business credential of an account."""

    phone_id: str
    access_token: str


@dataclass(frozen=True)
class AccountInfo:
    id: UUID
    name: str
    whatsapp: WhatsAppCredential | None = None

    @property
    def has_messaging_channel(self) -> bool:
        return self.whatsapp is not None


class AccountStore(Protocol):
    """Protocol for account lookups."""

    async def get(self, owner_id: UUID) -> AccountInfo | None:
        """Get an account by ID."""
        ...


def account_to_info(account: BusinessAccount) -> AccountInfo:
    credential = None
    if account.whatsapp_connected and account.whatsapp_phone_id and account.whatsapp_access_token:
        credential = WhatsAppCredential(
            phone_id=account.whatsapp_phone_id,
            access_token=account.whatsapp_access_token,
        )
    return AccountInfo(id=account.id, name=account.name, whatsapp=credential)


class AccountRepository:
    """Repository for business account reads."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, owner_id: UUID) -> AccountInfo | None:
        account = await self._session.get(BusinessAccount, owner_id)
        return account_to_info(account) if account is not None else None


class AccountCredentialResolver:
    """Looks up WhatsApp credentials in a short-lived session of its own."""

    def __init__(self, db_manager: DatabaseManager) -> None:
        self._db = db_manager

    async def resolve(self, owner_id: UUID) -> WhatsAppCredential | None:
        async with self._db.session() as session:
            info = await AccountRepository(session).get(owner_id)
        return info.whatsapp if info is not None else None
