"""
Repository for outreach sessions (one active record per phone number) and
the messages sent within them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Protocol, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.outreach.models import (
    ACTIVE_SESSION_STATUSES,
    MessageDirection,
    MessageSender,
    OutreachMessage,
    OutreachRecord,
    OutreachSessionStatus,
)
from booking_engine.shared.timezone import ensure_aware, utcnow


@dataclass(frozen=True)
class OutreachSession:
    """Outreach record as seen by the schedulers."""

    phone: str
    owner_id: UUID
    status: OutreachSessionStatus = OutreachSessionStatus.PENDING_RESPONSE
    lead_id: UUID | None = None
    agent_id: UUID | None = None
    last_message_id: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    id: UUID | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SESSION_STATUSES


@dataclass(frozen=True)
class SessionMessage:
    """Message stored against an outreach session."""

    session_id: UUID
    body: str
    direction: MessageDirection = MessageDirection.OUTBOUND
    sender: MessageSender = MessageSender.SYSTEM
    external_message_id: str | None = None
    is_template: bool = False
    payload: Mapping[str, Any] = field(default_factory=dict)
    id: UUID | None = None
    created_at: datetime | None = None


class OutreachRecordStore(Protocol):
    """Protocol for outreach record persistence."""

    async def find_active_by_phone(self, phone: str) -> OutreachSession | None:
        """Most recent open or pending record for a normalized phone."""
        ...

    async def upsert(self, session: OutreachSession) -> OutreachSession:
        """Update the record with ``session.id`` or the active one for its phone, else insert."""
        ...

    async def add_message(self, message: SessionMessage) -> SessionMessage:
        """Append a message to its session."""
        ...

    async def list_messages(self, session_id: UUID) -> Sequence[SessionMessage]:
        """Messages of a session, oldest first."""
        ...


def record_to_session(record: OutreachRecord) -> OutreachSession:
    return OutreachSession(
        id=record.id,
        phone=record.phone,
        owner_id=record.owner_id,
        status=OutreachSessionStatus(record.status),
        lead_id=record.lead_id,
        agent_id=record.agent_id,
        last_message_id=record.last_message_id,
        metadata=dict(record.session_metadata or {}),
        updated_at=ensure_aware(record.updated_at) if record.updated_at else None,
    )


def message_to_entry(message: OutreachMessage) -> SessionMessage:
    return SessionMessage(
        id=message.id,
        session_id=message.outreach_record_id,
        body=message.body,
        direction=MessageDirection(message.direction),
        sender=MessageSender(message.sender),
        external_message_id=message.external_message_id,
        is_template=message.is_template,
        payload=dict(message.payload or {}),
        created_at=ensure_aware(message.created_at) if message.created_at else None,
    )


class OutreachRecordRepository:
    """Repository for outreach record database operations."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _active_row(self, phone: str) -> OutreachRecord | None:
        stmt = (
            select(OutreachRecord)
            .where(
                OutreachRecord.phone == phone,
                OutreachRecord.status.in_(list(ACTIVE_SESSION_STATUSES)),
            )
            .order_by(OutreachRecord.updated_at.desc(), OutreachRecord.created_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_active_by_phone(self, phone: str) -> OutreachSession | None:
        record = await self._active_row(phone)
        return record_to_session(record) if record is not None else None

    async def upsert(self, session: OutreachSession) -> OutreachSession:
        """Reuse the phone's active record when there is one.

        Args:
            session: Desired state of the record.

        Returns:
            The stored record.
        """
        record = None
        if session.id is not None:
            record = await self._session.get(OutreachRecord, session.id)
        if record is None:
            record = await self._active_row(session.phone)
        if record is None:
            record = OutreachRecord(phone=session.phone, owner_id=session.owner_id)
            self._session.add(record)

        record.owner_id = session.owner_id
        record.lead_id = session.lead_id
        record.agent_id = session.agent_id
        record.status = session.status
        record.last_message_id = session.last_message_id
        record.session_metadata = dict(session.metadata)
        record.updated_at = utcnow()
        await self._session.flush()
        return record_to_session(record)

    async def add_message(self, message: SessionMessage) -> SessionMessage:
        row = OutreachMessage(
            outreach_record_id=message.session_id,
            direction=message.direction,
            sender=message.sender,
            external_message_id=message.external_message_id,
            body=message.body,
            is_template=message.is_template,
            payload=dict(message.payload),
            created_at=message.created_at or utcnow(),
        )
        self._session.add(row)
        await self._session.flush()
        return message_to_entry(row)

    async def list_messages(self, session_id: UUID) -> Sequence[SessionMessage]:
        stmt = (
            select(OutreachMessage)
            .where(OutreachMessage.outreach_record_id == session_id)
            .order_by(OutreachMessage.created_at, OutreachMessage.id)
        )
        result = await self._session.execute(stmt)
        return [message_to_entry(m) for m in result.scalars().all()]
