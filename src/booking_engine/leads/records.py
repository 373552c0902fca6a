"""
Immutable views of leads and call attempts handed to the schedulers.

Repositories map ORM rows into these; in-memory test stores build them
directly.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping
from uuid import UUID

from booking_engine.leads.lifecycle import LeadStatus
from booking_engine.leads.models import CallOutcome
from booking_engine.shared.timezone import normalize_date_string


@dataclass(frozen=True)
class LeadVariables:
    """Typed view over a lead's free-form agent variables.

    Only ``suggested_date`` drives scheduling; everything else is carried
    through untouched for the conversation engine.
    """

    suggested_date: date | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "LeadVariables":
        raw = dict(raw or {})
        return cls(
            suggested_date=normalize_date_string(raw.get("suggested_date")),
            extra={k: v for k, v in raw.items() if k != "suggested_date"},
        )

    def as_strings(self) -> dict[str, str]:
        """Flatten for the call engine, which only accepts string values."""
        flat: dict[str, str] = {}
        for key, value in self.extra.items():
            if value is None:
                continue
            if isinstance(value, (dict, list)):
                flat[key] = json.dumps(value, ensure_ascii=False, default=str)
            else:
                flat[key] = str(value)
        if self.suggested_date is not None:
            flat["suggested_date"] = self.suggested_date.isoformat()
        return flat


@dataclass(frozen=True)
class LeadRecord:
    """Snapshot of a lead row."""

    id: UUID
    owner_id: UUID
    status: LeadStatus
    name: str = ""
    phone: str | None = None
    resource_id: UUID | None = None
    agent_id: UUID | None = None
    next_retry_at: datetime | None = None
    max_attempts: int | None = None
    agent_variables: Mapping[str, Any] = field(default_factory=dict)

    @property
    def first_name(self) -> str:
        parts = self.name.split()
        return parts[0] if parts else ""

    @property
    def variables(self) -> LeadVariables:
        return LeadVariables.from_mapping(self.agent_variables)

    def attempt_cap(self, default: int) -> int:
        if self.max_attempts is None or self.max_attempts < 1:
            return default
        return self.max_attempts


@dataclass(frozen=True)
class CallAttemptRecord:
    """Snapshot of a call attempt row."""

    lead_id: UUID
    attempt_no: int
    started_at: datetime
    outcome: CallOutcome = CallOutcome.INITIATED
    ended_at: datetime | None = None
    external_call_id: str | None = None
    agent_id: UUID | None = None

    @property
    def in_flight(self) -> bool:
        return self.outcome is CallOutcome.INITIATED and self.ended_at is None
