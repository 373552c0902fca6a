"""
Shared tick skeleton for the lead schedulers.

Each tick binds a correlation id, checks the business-hours gate, selects its
batch in one unit of work and then processes leads one at a time. A failure
on one lead is logged with its id and never stops the rest of the batch.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Sequence
from uuid import UUID, uuid4

import anyio

from booking_engine.config import Settings, get_settings
from booking_engine.leads.records import LeadRecord
from booking_engine.scheduling.stores import StoreFactory, Stores
from booking_engine.shared.exceptions import ConfigurationError, DataIntegrityError
from booking_engine.shared.logging import correlation_id_var, get_logger
from booking_engine.shared.timezone import ensure_aware, is_within_business_hours, resolve_zone, utcnow

logger = get_logger(__name__)

Clock = Callable[[], datetime]


class LeadOutcome(str, Enum):
    """What a tick did with one lead."""

    CALLED = "called"
    EXHAUSTED = "exhausted"
    MESSAGE_SENT = "message_sent"
    FALLBACK_SENT = "fallback_sent"
    NO_EARLIER_SLOTS = "no_earlier_slots"
    PARKED = "parked"
    RESCHEDULED = "rescheduled"
    SKIPPED = "skipped"
    ALREADY_CLAIMED = "already_claimed"
    FAILED = "failed"


_SKIP_OUTCOMES = frozenset({LeadOutcome.SKIPPED, LeadOutcome.ALREADY_CLAIMED})
_FAIL_OUTCOMES = frozenset({LeadOutcome.FAILED, LeadOutcome.RESCHEDULED, LeadOutcome.PARKED})


@dataclass
class TickResult:
    """Summary of one scheduler tick."""

    task: str
    gated: bool = False
    outcomes: dict[UUID, LeadOutcome] = field(default_factory=dict)

    def record(self, lead_id: UUID, outcome: LeadOutcome) -> None:
        self.outcomes[lead_id] = outcome

    @property
    def processed(self) -> int:
        return sum(1 for o in self.outcomes.values() if o not in _SKIP_OUTCOMES | _FAIL_OUTCOMES)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes.values() if o in _SKIP_OUTCOMES)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes.values() if o in _FAIL_OUTCOMES)


def business_gate_open(now: datetime, settings: Settings) -> bool:
    return is_within_business_hours(
        now,
        resolve_zone(settings.business_timezone),
        settings.business_hours_start,
        settings.business_hours_end,
        settings.business_days_list,
    )


class LeadBatchTask(ABC):
    """Base class for a periodic task that walks a batch of leads."""

    name: str = "lead-batch"

    def __init__(
        self,
        stores: StoreFactory,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._stores = stores
        self._settings = settings or get_settings()
        self._clock = clock or utcnow

    @abstractmethod
    async def select(self, stores: Stores, now: datetime) -> Sequence[LeadRecord]:
        """Eligible leads for this tick."""

    @abstractmethod
    async def process(self, lead: LeadRecord, now: datetime) -> LeadOutcome:
        """Advance one lead."""

    async def on_failure(self, lead: LeadRecord, now: datetime, exc: BaseException) -> LeadOutcome:
        """Hook for failures escaping ``process``; the lead is left as is by default."""
        return LeadOutcome.FAILED

    async def run_once(self, now: datetime | None = None) -> TickResult:
        """Execute one tick."""
        now = ensure_aware(now or self._clock())
        result = TickResult(task=self.name)
        token = correlation_id_var.set(f"{self.name}-{uuid4().hex[:12]}")
        try:
            if not business_gate_open(now, self._settings):
                result.gated = True
                logger.info("Outside business hours, tick skipped", extra={"task": self.name})
                return result

            async with self._stores() as stores:
                leads = list(await self.select(stores, now))

            for lead in leads:
                result.record(lead.id, await self._process_isolated(lead, now))

            logger.info(
                "Scheduler tick finished",
                extra={
                    "task": self.name,
                    "eligible": len(leads),
                    "processed": result.processed,
                    "skipped": result.skipped,
                    "failed": result.failed,
                },
            )
            return result
        finally:
            correlation_id_var.reset(token)

    async def _process_isolated(self, lead: LeadRecord, now: datetime) -> LeadOutcome:
        try:
            with anyio.fail_after(self._settings.operation_timeout_seconds):
                return await self.process(lead, now)
        except ConfigurationError as exc:
            logger.warning(
                "Lead skipped, configuration required",
                extra={"task": self.name, "lead_id": str(lead.id), "reason": str(exc)},
            )
            return LeadOutcome.SKIPPED
        except DataIntegrityError as exc:
            logger.warning(
                "Lead skipped, referenced data missing",
                extra={"task": self.name, "lead_id": str(lead.id), "reason": str(exc)},
            )
            return LeadOutcome.SKIPPED
        except TimeoutError as exc:
            logger.error(
                "Lead processing timed out",
                extra={
                    "task": self.name,
                    "lead_id": str(lead.id),
                    "timeout_seconds": self._settings.operation_timeout_seconds,
                },
            )
            return await self._safe_on_failure(lead, now, exc)
        except Exception as exc:
            logger.exception(
                "Lead processing failed",
                extra={"task": self.name, "lead_id": str(lead.id)},
            )
            return await self._safe_on_failure(lead, now, exc)

    async def _safe_on_failure(self, lead: LeadRecord, now: datetime, exc: BaseException) -> LeadOutcome:
        try:
            return await self.on_failure(lead, now, exc)
        except Exception:
            logger.exception(
                "Failed to record lead failure",
                extra={"task": self.name, "lead_id": str(lead.id)},
            )
            return LeadOutcome.FAILED
