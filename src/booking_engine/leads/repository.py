"""
Repositories for leads and call attempts.
"""

from datetime import datetime
from typing import Any, Iterable, Mapping, Protocol, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.leads.lifecycle import RETRY_STATUSES, LeadStatus
from booking_engine.leads.models import CallAttempt, CallOutcome, Lead
from booking_engine.leads.records import CallAttemptRecord, LeadRecord
from booking_engine.shared.timezone import ensure_aware, utcnow

UPDATABLE_LEAD_FIELDS = frozenset({"next_retry_at", "agent_id", "resource_id", "agent_variables"})


class LeadStore(Protocol):
    """Protocol for lead persistence used by the schedulers."""

    async def find_eligible(
        self,
        statuses: Iterable[LeadStatus],
        due_before: datetime | None = None,
        limit: int | None = None,
    ) -> Sequence[LeadRecord]:
        """Leads in ``statuses`` whose ``next_retry_at`` is at or before ``due_before``."""
        ...

    async def get(self, lead_id: UUID) -> LeadRecord | None:
        """Get a lead by ID."""
        ...

    async def update_status(
        self,
        lead_id: UUID,
        status: LeadStatus,
        fields: Mapping[str, Any] | None = None,
        expected: Iterable[LeadStatus] | None = None,
    ) -> bool:
        """Write ``status`` (and ``fields``) only while the lead is in ``expected``."""
        ...

    async def claim_for_call(
        self,
        lead_id: UUID,
        expected: Iterable[LeadStatus] = RETRY_STATUSES,
    ) -> bool:
        """Atomically move the lead to ``calling``; False when already claimed."""
        ...

    async def assign(
        self,
        lead_id: UUID,
        agent_id: UUID,
        resource_id: UUID | None,
    ) -> bool:
        """Persist an agent (and resource) assignment."""
        ...


class CallAttemptStore(Protocol):
    """Protocol for call attempt persistence."""

    async def has_in_flight(self, lead_id: UUID) -> bool:
        """True when an ``initiated`` attempt without an end time exists."""
        ...

    async def last_started_at(self, lead_id: UUID) -> datetime | None:
        """Start time of the most recent attempt."""
        ...

    async def max_attempt_no(self, lead_id: UUID) -> int:
        """Highest attempt number recorded, 0 when none."""
        ...

    async def create(
        self,
        lead_id: UUID,
        attempt_no: int,
        started_at: datetime,
        agent_id: UUID | None = None,
        external_call_id: str | None = None,
    ) -> CallAttemptRecord:
        """Insert an ``initiated`` attempt."""
        ...

    async def record_placement(self, lead_id: UUID, attempt_no: int, external_call_id: str) -> bool:
        """Attach the engine's call id to an attempt."""
        ...

    async def close(
        self,
        lead_id: UUID,
        attempt_no: int,
        outcome: CallOutcome,
        ended_at: datetime,
    ) -> bool:
        """End an in-flight attempt; False when it had already ended."""
        ...


def _check_fields(fields: Mapping[str, Any]) -> None:
    unknown = set(fields) - UPDATABLE_LEAD_FIELDS
    if unknown:
        raise ValueError(f"Unsupported lead fields: {sorted(unknown)}")


def lead_to_record(lead: Lead) -> LeadRecord:
    return LeadRecord(
        id=lead.id,
        owner_id=lead.owner_id,
        status=LeadStatus(lead.status),
        name=lead.name or "",
        phone=lead.phone,
        resource_id=lead.resource_id,
        agent_id=lead.agent_id,
        next_retry_at=ensure_aware(lead.next_retry_at) if lead.next_retry_at else None,
        max_attempts=lead.max_attempts,
        agent_variables=dict(lead.agent_variables or {}),
    )


def attempt_to_record(attempt: CallAttempt) -> CallAttemptRecord:
    return CallAttemptRecord(
        lead_id=attempt.lead_id,
        attempt_no=attempt.attempt_no,
        started_at=ensure_aware(attempt.started_at),
        outcome=CallOutcome(attempt.outcome),
        ended_at=ensure_aware(attempt.ended_at) if attempt.ended_at else None,
        external_call_id=attempt.external_call_id,
        agent_id=attempt.agent_id,
    )


class LeadRepository:
    """Repository for lead database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def find_eligible(
        self,
        statuses: Iterable[LeadStatus],
        due_before: datetime | None = None,
        limit: int | None = None,
    ) -> Sequence[LeadRecord]:
        """Select leads waiting in one of ``statuses``.

        Args:
            statuses: Interest set of the calling scheduler.
            due_before: When given, only leads with ``next_retry_at <= due_before``
                (NULL never matches).
            limit: Optional batch size.

        Returns:
            Lead snapshots ordered by due time, then creation.
        """
        stmt = select(Lead).where(Lead.status.in_(list(statuses)))
        if due_before is not None:
            stmt = stmt.where(
                Lead.next_retry_at.is_not(None),
                Lead.next_retry_at <= due_before,
            )
        stmt = stmt.order_by(Lead.next_retry_at, Lead.created_at, Lead.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._session.execute(stmt)
        return [lead_to_record(lead) for lead in result.scalars().all()]

    async def get(self, lead_id: UUID) -> LeadRecord | None:
        lead = await self._session.get(Lead, lead_id)
        return lead_to_record(lead) if lead is not None else None

    async def update_status(
        self,
        lead_id: UUID,
        status: LeadStatus,
        fields: Mapping[str, Any] | None = None,
        expected: Iterable[LeadStatus] | None = None,
    ) -> bool:
        """Conditionally update a lead's status.

        Args:
            lead_id: Lead UUID.
            status: New status.
            fields: Extra columns to write (``next_retry_at``, ``agent_id``,
                ``resource_id``, ``agent_variables``).
            expected: Statuses the lead must currently be in. None writes
                unconditionally.

        Returns:
            True when a row was updated; False means another writer moved
            the lead first.
        """
        values: dict[str, Any] = dict(fields or {})
        _check_fields(values)
        values.update(status=status, updated_at=utcnow())

        stmt = update(Lead).where(Lead.id == lead_id)
        if expected is not None:
            stmt = stmt.where(Lead.status.in_(list(expected)))
        result = await self._session.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1

    async def claim_for_call(
        self,
        lead_id: UUID,
        expected: Iterable[LeadStatus] = RETRY_STATUSES,
    ) -> bool:
        """Atomically move a retryable lead to ``calling``."""
        return await self.update_status(
            lead_id,
            LeadStatus.CALLING,
            {"next_retry_at": None},
            expected=expected,
        )

    async def assign(
        self,
        lead_id: UUID,
        agent_id: UUID,
        resource_id: UUID | None,
    ) -> bool:
        values: dict[str, Any] = {"agent_id": agent_id, "updated_at": utcnow()}
        if resource_id is not None:
            values["resource_id"] = resource_id
        result = await self._session.execute(
            update(Lead)
            .where(Lead.id == lead_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1


class CallAttemptRepository:
    """Repository for call attempt database operations."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def has_in_flight(self, lead_id: UUID) -> bool:
        stmt = (
            select(func.count())
            .select_from(CallAttempt)
            .where(
                CallAttempt.lead_id == lead_id,
                CallAttempt.outcome == CallOutcome.INITIATED,
                CallAttempt.ended_at.is_(None),
            )
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one()) > 0

    async def last_started_at(self, lead_id: UUID) -> datetime | None:
        stmt = select(func.max(CallAttempt.started_at)).where(CallAttempt.lead_id == lead_id)
        result = await self._session.execute(stmt)
        value = result.scalar_one_or_none()
        return ensure_aware(value) if value is not None else None

    async def max_attempt_no(self, lead_id: UUID) -> int:
        stmt = select(func.max(CallAttempt.attempt_no)).where(CallAttempt.lead_id == lead_id)
        result = await self._session.execute(stmt)
        return int(result.scalar_one_or_none() or 0)

    async def create(
        self,
        lead_id: UUID,
        attempt_no: int,
        started_at: datetime,
        agent_id: UUID | None = None,
        external_call_id: str | None = None,
    ) -> CallAttemptRecord:
        """Create a new call attempt record.

        Args:
            lead_id: Lead UUID.
            attempt_no: Sequence number, unique per lead.
            started_at: When the call was placed.
            agent_id: Voice agent that placed the call.
            external_call_id: Conversation engine call identifier.

        Returns:
            The stored attempt.
        """
        attempt = CallAttempt(
            lead_id=lead_id,
            attempt_no=attempt_no,
            started_at=started_at,
            agent_id=agent_id,
            external_call_id=external_call_id,
            outcome=CallOutcome.INITIATED,
        )
        self._session.add(attempt)
        await self._session.flush()
        return attempt_to_record(attempt)

    async def record_placement(self, lead_id: UUID, attempt_no: int, external_call_id: str) -> bool:
        result = await self._session.execute(
            update(CallAttempt)
            .where(CallAttempt.lead_id == lead_id, CallAttempt.attempt_no == attempt_no)
            .values(external_call_id=external_call_id)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1

    async def close(
        self,
        lead_id: UUID,
        attempt_no: int,
        outcome: CallOutcome,
        ended_at: datetime,
    ) -> bool:
        result = await self._session.execute(
            update(CallAttempt)
            .where(
                CallAttempt.lead_id == lead_id,
                CallAttempt.attempt_no == attempt_no,
                CallAttempt.ended_at.is_(None),
            )
            .values(outcome=outcome, ended_at=ended_at)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1

    async def list_for_lead(self, lead_id: UUID) -> Sequence[CallAttemptRecord]:
        stmt = (
            select(CallAttempt)
            .where(CallAttempt.lead_id == lead_id)
            .order_by(CallAttempt.attempt_no)
        )
        result = await self._session.execute(stmt)
        return [attempt_to_record(a) for a in result.scalars().all()]
