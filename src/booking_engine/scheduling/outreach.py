"""
Messaging outreach schedulers.

``ExhaustedRetryOutreach`` greets leads whose call attempts ran out.
``ScarcityCallbackOutreach`` follows up on a promised earlier-availability
callback with two real slots before the date the lead mentioned.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Sequence

from booking_engine.accounts.repository import AccountInfo
from booking_engine.agents.models import ServiceType
from booking_engine.agents.repository import AgentInfo
from booking_engine.availability.models import ResourceCategory
from booking_engine.availability.repository import AppointmentInfo, ResourceInfo
from booking_engine.availability.schedule import Slot
from booking_engine.availability.slot_finder import SlotFinder
from booking_engine.config import Settings
from booking_engine.leads.lifecycle import LeadStatus, ensure_transition
from booking_engine.leads.records import LeadRecord
from booking_engine.messaging.interface import MessagingGateway, SendResult, TextChannel
from booking_engine.messaging.templates import (
    CHANNEL_PREFERENCE_TEXT,
    EARLIER_SLOTS,
    SLOTS_AVAILABLE_TEXT,
    WELCOME,
    EarlierSlotsParams,
    MessageTemplate,
    TextTemplate,
    WelcomeParams,
)
from booking_engine.outreach.models import OutreachSessionStatus
from booking_engine.outreach.phone import require_phone_number
from booking_engine.outreach.repository import OutreachSession, SessionMessage
from booking_engine.scheduling.batch import Clock, LeadBatchTask, LeadOutcome
from booking_engine.scheduling.stores import StoreFactory, Stores
from booking_engine.shared.exceptions import (
    AgentNotConfiguredError,
    ChannelNotConnectedError,
    NotFoundError,
    ResourceNotAssignedError,
)
from booking_engine.shared.logging import get_logger
from booking_engine.shared.timezone import (
    date_in_zone,
    format_date_display,
    format_slot_display,
    resolve_zone,
)

logger = get_logger(__name__)

DEFAULT_FIRST_NAME = "Cliente"
DEFAULT_AGENT_NAME = "Assistente"
DEFAULT_BUSINESS_NAME = "Clínica"
DEFAULT_RESOURCE_NAME = "nossa equipe"
UNKNOWN_PROMISED_DATE = "a data mencionada"


def service_type_for(resource: ResourceInfo | None) -> ServiceType:
    if resource is not None and resource.category is ResourceCategory.TREATMENT:
        return ServiceType.BEAUTY_CLINIC
    return ServiceType.CLINIC


def appointments_summary(appointments: Sequence[AppointmentInfo], tz_name: str) -> dict[str, Any]:
    tz = resolve_zone(tz_name)
    return {
        "all_appointments": [
            {
                "appointment_id": str(a.id),
                "resource_id": str(a.resource_id),
                "start_at": a.start_at.isoformat(),
                "formatted": format_slot_display(a.start_at, tz),
            }
            for a in appointments
        ],
        "appointments_count": len(appointments),
    }


def offered_slot(slot: Slot, tz_name: str | None = None) -> dict[str, str]:
    tz = slot.start.tzinfo if tz_name is None else resolve_zone(tz_name)
    local = slot.start.astimezone(tz)
    return {
        "date": local.date().isoformat(),
        "time": f"{local:%H:%M}",
        "formatted": format_slot_display(slot.start, tz),
        "start": slot.start.isoformat(),
    }


@dataclass(frozen=True)
class OutreachContext:
    """Everything resolved for one lead before a message goes out."""

    lead: LeadRecord
    phone: str
    account: AccountInfo
    resource: ResourceInfo | None

    @property
    def first_name(self) -> str:
        return self.lead.first_name or DEFAULT_FIRST_NAME

    @property
    def business_name(self) -> str:
        return self.account.name or DEFAULT_BUSINESS_NAME


class _OutreachTask(LeadBatchTask):
    source_status: LeadStatus = LeadStatus.WHATSAPP_OUTREACH

    def __init__(
        self,
        stores: StoreFactory,
        gateway: MessagingGateway,
        text_channel: TextChannel,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(stores, settings, clock)
        self._gateway = gateway
        self._text_channel = text_channel

    async def _context(self, stores: Stores, lead: LeadRecord) -> OutreachContext:
        phone = require_phone_number(lead.phone)
        account = await stores.accounts.get(lead.owner_id)
        if account is None:
            raise NotFoundError(f"Account {lead.owner_id} not found")
        resource = await stores.resources.get(lead.resource_id) if lead.resource_id else None
        return OutreachContext(lead=lead, phone=phone, account=account, resource=resource)

    async def _chat_agent(self, stores: Stores, ctx: OutreachContext) -> AgentInfo:
        agent = await stores.agents.find_chat_agent(ctx.lead.owner_id, service_type_for(ctx.resource))
        if agent is None:
            raise AgentNotConfiguredError(f"No chat agent for owner {ctx.lead.owner_id}")
        return agent

    async def _send_fallback(self, ctx: OutreachContext, text: TextTemplate) -> LeadOutcome:
        """Plain-text message and ``waiting_preference`` for accounts without a channel."""
        ensure_transition(ctx.lead.status, LeadStatus.WAITING_PREFERENCE)
        logger.warning(
            "Account has no messaging channel, using plain-text fallback",
            extra={"task": self.name, "lead_id": str(ctx.lead.id), "owner_id": str(ctx.lead.owner_id)},
        )
        await self._text_channel.send_text(
            ctx.lead.owner_id,
            ctx.phone,
            text.render(first_name=ctx.first_name),
        )
        async with self._stores() as stores:
            await stores.leads.update_status(
                ctx.lead.id,
                LeadStatus.WAITING_PREFERENCE,
                expected={self.source_status},
            )
        return LeadOutcome.FALLBACK_SENT

    async def _send_template(
        self,
        ctx: OutreachContext,
        template: MessageTemplate,
        params: tuple[str, ...],
    ) -> SendResult:
        return await self._gateway.send_template(
            ctx.lead.owner_id,
            ctx.phone,
            template.name,
            self._settings.messaging_language_tag,
            params,
        )

    async def _record_session(
        self,
        stores: Stores,
        ctx: OutreachContext,
        agent: AgentInfo,
        sent: SendResult,
        metadata: dict[str, Any],
        template: MessageTemplate,
        params: tuple[str, ...],
        payload: dict[str, Any] | None = None,
    ) -> OutreachSession:
        """Upsert the phone's session and log the template send against it."""
        existing = await stores.outreach.find_active_by_phone(ctx.phone)
        session = await stores.outreach.upsert(
            OutreachSession(
                id=existing.id if existing is not None else None,
                phone=ctx.phone,
                owner_id=ctx.lead.owner_id,
                lead_id=ctx.lead.id,
                agent_id=agent.id,
                status=OutreachSessionStatus.PENDING_RESPONSE,
                last_message_id=sent.message_id,
                metadata=metadata,
            )
        )
        await stores.outreach.add_message(
            SessionMessage(
                session_id=session.id,
                body=template.describe(params),
                external_message_id=sent.message_id,
                is_template=True,
                payload={"template_name": template.name, **(payload or {})},
            )
        )
        return session


class ExhaustedRetryOutreach(_OutreachTask):
    """Sends the welcome template to leads in ``whatsapp_outreach``."""

    name = "exhausted-outreach"
    source_status = LeadStatus.WHATSAPP_OUTREACH

    async def select(self, stores: Stores, now: datetime) -> Sequence[LeadRecord]:
        return await stores.leads.find_eligible({LeadStatus.WHATSAPP_OUTREACH})

    async def process(self, lead: LeadRecord, now: datetime) -> LeadOutcome:
        async with self._stores() as stores:
            ctx = await self._context(stores, lead)
        if not ctx.account.has_messaging_channel:
            return await self._send_fallback(ctx, CHANNEL_PREFERENCE_TEXT)

        async with self._stores() as stores:
            agent = await self._chat_agent(stores, ctx)
            appointments = await stores.appointments.list_for_lead(lead.id)

        ensure_transition(lead.status, LeadStatus.WHATSAPP_OUTREACH_SENT)
        agent_name = agent.display_name or DEFAULT_AGENT_NAME
        params = WelcomeParams(
            first_name=ctx.first_name,
            agent_name=agent_name,
            business_name=ctx.business_name,
        )
        bound = params.bind()
        try:
            sent = await self._send_template(ctx, WELCOME, bound)
        except ChannelNotConnectedError:
            return await self._send_fallback(ctx, CHANNEL_PREFERENCE_TEXT)

        summary = appointments_summary(appointments, self._settings.default_resource_timezone)
        metadata: dict[str, Any] = {
            "chat_type": "welcome",
            "initiated_by": "scheduler_whatsapp_outreach",
            "resource_id": str(lead.resource_id) if lead.resource_id else None,
            "resource_category": ctx.resource.category.value if ctx.resource else None,
            "agent_variables": {
                **dict(lead.agent_variables),
                "name": ctx.first_name,
                "client_name": lead.name,
                "business_name": ctx.business_name,
                "agent_name": agent_name,
                **summary,
            },
        }

        async with self._stores() as stores:
            await self._record_session(stores, ctx, agent, sent, metadata, WELCOME, bound)
            moved = await stores.leads.update_status(
                lead.id,
                LeadStatus.WHATSAPP_OUTREACH_SENT,
                expected={LeadStatus.WHATSAPP_OUTREACH},
            )

        logger.info(
            "Welcome template sent",
            extra={"lead_id": str(lead.id), "message_id": sent.message_id, "status_written": moved},
        )
        return LeadOutcome.MESSAGE_SENT


class ScarcityCallbackOutreach(_OutreachTask):
    """Offers two real slots before the lead's promised date, or closes the lead."""

    name = "scarcity-callback"
    source_status = LeadStatus.AVAILABLE_TIME
    slots_needed = 2

    async def select(self, stores: Stores, now: datetime) -> Sequence[LeadRecord]:
        return await stores.leads.find_eligible({LeadStatus.AVAILABLE_TIME}, due_before=now)

    def _cutoff(self, suggested: date | None, now: datetime, tz_name: str) -> date:
        if suggested is not None:
            return suggested
        today = date_in_zone(now, resolve_zone(tz_name))
        return today + timedelta(days=self._settings.scarcity_default_cutoff_days)

    async def process(self, lead: LeadRecord, now: datetime) -> LeadOutcome:
        if lead.resource_id is None:
            raise ResourceNotAssignedError(f"Lead {lead.id} has no resource")

        suggested = lead.variables.suggested_date
        async with self._stores() as stores:
            schedule = await stores.resources.get_schedule(lead.resource_id)
            finder = SlotFinder.from_settings(stores.appointments, self._settings, clock=lambda: now)
            cutoff = self._cutoff(suggested, now, schedule.timezone.key)
            slots = await finder.slots_before(schedule, cutoff, self.slots_needed, from_=now)

        if len(slots) < self.slots_needed:
            ensure_transition(lead.status, LeadStatus.NO_EARLIER_SLOTS)
            async with self._stores() as stores:
                await stores.leads.update_status(
                    lead.id,
                    LeadStatus.NO_EARLIER_SLOTS,
                    {"next_retry_at": None},
                    expected={LeadStatus.AVAILABLE_TIME},
                )
            logger.info(
                "Not enough earlier slots, closing callback",
                extra={
                    "lead_id": str(lead.id),
                    "cutoff": cutoff.isoformat(),
                    "slots_found": len(slots),
                },
            )
            return LeadOutcome.NO_EARLIER_SLOTS

        async with self._stores() as stores:
            ctx = await self._context(stores, lead)
            peers = await stores.resources.list_peers(lead.owner_id, lead.resource_id)
            appointments = await stores.appointments.list_for_lead(lead.id)
            agent = None
            if ctx.account.has_messaging_channel:
                agent = await self._chat_agent(stores, ctx)
        if agent is None:
            return await self._send_fallback(ctx, SLOTS_AVAILABLE_TEXT)

        ensure_transition(lead.status, LeadStatus.WHATSAPP_SCARITY_SENT)
        tz_name = schedule.timezone.key
        offered = [offered_slot(s, tz_name) for s in slots]
        promised = format_date_display(suggested) if suggested else UNKNOWN_PROMISED_DATE
        agent_name = agent.display_name or DEFAULT_AGENT_NAME
        resource_name = ctx.resource.name if ctx.resource else DEFAULT_RESOURCE_NAME
        params = EarlierSlotsParams(
            first_name=ctx.first_name,
            agent_name=agent_name,
            business_name=ctx.business_name,
            promised_date=promised,
            slot_1=offered[0]["formatted"],
            slot_2=offered[1]["formatted"],
        )
        bound = params.bind()
        try:
            sent = await self._send_template(ctx, EARLIER_SLOTS, bound)
        except ChannelNotConnectedError:
            return await self._send_fallback(ctx, SLOTS_AVAILABLE_TEXT)

        summary = appointments_summary(appointments, tz_name)
        metadata: dict[str, Any] = {
            "chat_type": "real_available_time",
            "initiated_by": "scheduler_scarity",
            "suggested_date": suggested.isoformat() if suggested else None,
            "cutoff_date": cutoff.isoformat(),
            "offered_slots": offered,
            "resource_id": str(lead.resource_id),
            "resource_name": resource_name,
            "other_services": [p.name for p in peers],
            "agent_variables": {
                **dict(lead.agent_variables),
                "name": ctx.first_name,
                "client_name": lead.name,
                "resource_name": resource_name,
                "business_name": ctx.business_name,
                "agent_name": agent_name,
                "suggested_date": promised,
                "available_slots": "\n".join(o["formatted"] for o in offered),
                "slot_1": offered[0]["formatted"],
                "slot_1_date": offered[0]["date"],
                "slot_1_time": offered[0]["time"],
                "slot_2": offered[1]["formatted"],
                "slot_2_date": offered[1]["date"],
                "slot_2_time": offered[1]["time"],
                **summary,
            },
        }

        async with self._stores() as stores:
            await self._record_session(
                stores, ctx, agent, sent, metadata, EARLIER_SLOTS, bound, payload={"slots_offered": offered}
            )
            moved = await stores.leads.update_status(
                lead.id,
                LeadStatus.WHATSAPP_SCARITY_SENT,
                {"next_retry_at": None},
                expected={LeadStatus.AVAILABLE_TIME},
            )

        logger.info(
            "Earlier-slot offer sent",
            extra={
                "lead_id": str(lead.id),
                "message_id": sent.message_id,
                "slots": [o["start"] for o in offered],
                "status_written": moved,
            },
        )
        return LeadOutcome.MESSAGE_SENT
