"""
Call-retry scheduler.

Walks leads waiting in a retryable status and either places the next call or
hands them to messaging outreach once their attempt cap is reached.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Sequence
from uuid import UUID

from booking_engine.agents.repository import AgentInfo
from booking_engine.config import Settings
from booking_engine.conversation.interface import ConversationEngine
from booking_engine.leads.lifecycle import RETRY_STATUSES, LeadStatus, ensure_transition
from booking_engine.leads.models import CallOutcome
from booking_engine.leads.records import LeadRecord
from booking_engine.scheduling.batch import Clock, LeadBatchTask, LeadOutcome
from booking_engine.scheduling.stores import StoreFactory, Stores
from booking_engine.shared.exceptions import AgentNotConfiguredError, ConfigurationError
from booking_engine.shared.logging import get_logger
from booking_engine.shared.timezone import utcnow

logger = get_logger(__name__)


class RetryScheduler(LeadBatchTask):
    """Places follow-up calls for leads in ``RETRY_STATUSES``.

    Per lead, in order:
    1. assign a voice agent (and resource) when the lead has none;
    2. skip while an attempt is still in flight;
    3. skip while the cooldown since the last attempt start is running;
    4. past the attempt cap, move to ``whatsapp_outreach``;
    5. otherwise claim the lead (``retryable -> calling``), place the call
       and record the attempt.
    """

    name = "call-retry"

    def __init__(
        self,
        stores: StoreFactory,
        engine: ConversationEngine,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(stores, settings, clock)
        self._engine = engine
        self._claimed: dict[UUID, int] = {}

    @property
    def cooldown(self) -> timedelta:
        return timedelta(hours=self._settings.retry_cooldown_hours)

    async def select(self, stores: Stores, now: datetime) -> Sequence[LeadRecord]:
        return await stores.leads.find_eligible(RETRY_STATUSES, due_before=now)

    async def _ensure_agent(self, lead: LeadRecord) -> tuple[LeadRecord, AgentInfo | None]:
        async with self._stores() as stores:
            if lead.agent_id is not None:
                return lead, await stores.agents.get(lead.agent_id)

            agent = await stores.agents.find_voice_agent(lead.owner_id)
            if agent is None:
                raise AgentNotConfiguredError(f"No active voice agent for owner {lead.owner_id}")

            resource_id = lead.resource_id
            if resource_id is None:
                resource = await stores.resources.first_active_for_owner(lead.owner_id)
                resource_id = resource.id if resource is not None else None

            await stores.leads.assign(lead.id, agent.id, resource_id)

        logger.info(
            "Auto-assigned voice agent",
            extra={"lead_id": str(lead.id), "agent_id": str(agent.id), "resource_id": str(resource_id)},
        )
        return replace(lead, agent_id=agent.id, resource_id=resource_id), agent

    async def process(self, lead: LeadRecord, now: datetime) -> LeadOutcome:
        lead, agent = await self._ensure_agent(lead)

        async with self._stores() as stores:
            if await stores.attempts.has_in_flight(lead.id):
                logger.info("Call already in flight, skipping", extra={"lead_id": str(lead.id)})
                return LeadOutcome.SKIPPED

            last_started = await stores.attempts.last_started_at(lead.id)
            if last_started is not None and now - last_started < self.cooldown:
                logger.info(
                    "Cooldown since last attempt not elapsed, skipping",
                    extra={"lead_id": str(lead.id), "last_started_at": last_started.isoformat()},
                )
                return LeadOutcome.SKIPPED

            attempt_no = await stores.attempts.max_attempt_no(lead.id) + 1
            cap = lead.attempt_cap(self._settings.default_max_attempts)
            if attempt_no > cap:
                ensure_transition(lead.status, LeadStatus.WHATSAPP_OUTREACH)
                moved = await stores.leads.update_status(
                    lead.id,
                    LeadStatus.WHATSAPP_OUTREACH,
                    {"next_retry_at": None},
                    expected=RETRY_STATUSES,
                )
                if not moved:
                    return LeadOutcome.ALREADY_CLAIMED
                logger.info(
                    "Attempt cap reached, handing lead to outreach",
                    extra={"lead_id": str(lead.id), "attempts": attempt_no - 1, "cap": cap},
                )
                return LeadOutcome.EXHAUSTED

        try:
            request = self._engine.prepare_call(lead, agent)
        except ConfigurationError as exc:
            return await self._park(lead, None, exc)

        ensure_transition(lead.status, LeadStatus.CALLING)
        # Claim and attempt share one unit of work; the attempt exists before
        # the engine is contacted.
        async with self._stores() as stores:
            claimed = await stores.leads.claim_for_call(lead.id, expected=RETRY_STATUSES)
            if claimed:
                await stores.attempts.create(
                    lead.id,
                    attempt_no,
                    started_at=now,
                    agent_id=agent.id if agent is not None else None,
                )
        if not claimed:
            logger.info("Lead already claimed by another worker", extra={"lead_id": str(lead.id)})
            return LeadOutcome.ALREADY_CLAIMED

        self._claimed[lead.id] = attempt_no
        try:
            placement = await self._engine.initiate_call(request)
        except ConfigurationError as exc:
            return await self._park(lead, attempt_no, exc, now)

        async with self._stores() as stores:
            await stores.attempts.record_placement(lead.id, attempt_no, placement.call_id)
        self._claimed.pop(lead.id, None)

        logger.info(
            "Retry call placed",
            extra={"lead_id": str(lead.id), "attempt_no": attempt_no, "call_id": placement.call_id},
        )
        return LeadOutcome.CALLED

    async def _park(
        self,
        lead: LeadRecord,
        attempt_no: int | None,
        exc: ConfigurationError,
        now: datetime | None = None,
    ) -> LeadOutcome:
        logger.warning(
            "Call not placed, lead parked until reconfigured",
            extra={"lead_id": str(lead.id), "reason": str(exc)},
        )
        expected = set(RETRY_STATUSES)
        if attempt_no is not None:
            expected.add(LeadStatus.CALLING)
            self._claimed.pop(lead.id, None)
        await self._mark_retry_failed(lead.id, None, expected, attempt_no, now)
        return LeadOutcome.PARKED

    async def on_failure(self, lead: LeadRecord, now: datetime, exc: BaseException) -> LeadOutcome:
        expected = set(RETRY_STATUSES)
        attempt_no = self._claimed.pop(lead.id, None)
        if attempt_no is not None:
            expected.add(LeadStatus.CALLING)
        retry_at = now + timedelta(minutes=self._settings.retry_failed_backoff_minutes)
        moved = await self._mark_retry_failed(lead.id, retry_at, expected, attempt_no, now)
        return LeadOutcome.RESCHEDULED if moved else LeadOutcome.FAILED

    async def _mark_retry_failed(
        self,
        lead_id: UUID,
        retry_at: datetime | None,
        expected: set[LeadStatus],
        attempt_no: int | None = None,
        now: datetime | None = None,
    ) -> bool:
        async with self._stores() as stores:
            if attempt_no is not None:
                await stores.attempts.close(lead_id, attempt_no, CallOutcome.FAILED, now or utcnow())
            return await stores.leads.update_status(
                lead_id,
                LeadStatus.RETRY_FAILED,
                {"next_retry_at": retry_at},
                expected=expected,
            )
