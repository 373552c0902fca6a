"""
Per-unit-of-work bundle of the stores the schedulers read and write.

A ``StoreFactory`` is called for every unit of work (selecting a batch,
claiming a lead, recording an attempt) and commits when its context exits.
"""

from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable

from booking_engine.accounts.repository import AccountRepository, AccountStore
from booking_engine.agents.repository import AgentRepository, AgentStore
from booking_engine.availability.repository import (
    AppointmentRepository,
    AppointmentStore,
    ResourceRepository,
    ResourceStore,
)
from booking_engine.leads.repository import (
    CallAttemptRepository,
    CallAttemptStore,
    LeadRepository,
    LeadStore,
)
from booking_engine.outreach.repository import OutreachRecordRepository, OutreachRecordStore
from booking_engine.shared.database import DatabaseManager


@dataclass
class Stores:
    leads: LeadStore
    attempts: CallAttemptStore
    resources: ResourceStore
    appointments: AppointmentStore
    agents: AgentStore
    accounts: AccountStore
    outreach: OutreachRecordStore


StoreFactory = Callable[[], AbstractAsyncContextManager[Stores]]


class SqlStoreFactory:
    """Builds SQLAlchemy repositories over one session per unit of work."""

    def __init__(self, db_manager: DatabaseManager) -> None:
        self._db = db_manager

    @asynccontextmanager
    async def __call__(self) -> AsyncIterator[Stores]:
        async with self._db.session() as session:
            yield Stores(
                leads=LeadRepository(session),
                attempts=CallAttemptRepository(session),
                resources=ResourceRepository(session),
                appointments=AppointmentRepository(session),
                agents=AgentRepository(session),
                accounts=AccountRepository(session),
                outreach=OutreachRecordRepository(session),
            )
