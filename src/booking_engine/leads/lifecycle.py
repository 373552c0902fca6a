"""
Lead lifecycle: statuses, named status sets and the legal transitions.

Schedulers never write a status without first checking it here, and every
write is conditional on the status they read.
"""

from enum import Enum

from booking_engine.shared.exceptions import InvalidTransitionError


class LeadStatus(str, Enum):
    """Lead lifecycle status."""

    NEW = "new"
    CALLING = "calling"
    NO_ANSWER = "no_answer"
    RESCHEDULE = "reschedule"
    CALL_FAILED = "call_failed"
    RETRY_FAILED = "retry_failed"
    WHATSAPP_OUTREACH = "whatsapp_outreach"
    WHATSAPP_OUTREACH_SENT = "whatsapp_outreach_sent"
    WAITING_PREFERENCE = "waiting_preference"
    AVAILABLE_TIME = "available_time"
    NO_EARLIER_SLOTS = "no_earlier_slots"
    WHATSAPP_SCARITY_SENT = "whatsapp_scarity_sent"
    APPOINTMENT_SCHEDULED = "appointment_scheduled"
    CONFIRMED = "confirmed"
    NOT_INTERESTED = "not_interested"


RETRY_STATUSES: frozenset[LeadStatus] = frozenset(
    {
        LeadStatus.NO_ANSWER,
        LeadStatus.RESCHEDULE,
        LeadStatus.CALL_FAILED,
        LeadStatus.RETRY_FAILED,
    }
)

TERMINAL_STATUSES: frozenset[LeadStatus] = frozenset(
    {
        LeadStatus.NO_EARLIER_SLOTS,
        LeadStatus.CONFIRMED,
        LeadStatus.NOT_INTERESTED,
    }
)

_RETRY_EXITS = frozenset(
    {
        LeadStatus.CALLING,
        LeadStatus.WHATSAPP_OUTREACH,
        LeadStatus.RETRY_FAILED,
        LeadStatus.NOT_INTERESTED,
    }
)

TRANSITIONS: dict[LeadStatus, frozenset[LeadStatus]] = {
    LeadStatus.NEW: frozenset(
        {
            LeadStatus.CALLING,
            LeadStatus.APPOINTMENT_SCHEDULED,
            LeadStatus.NOT_INTERESTED,
        }
    ),
    LeadStatus.CALLING: frozenset(
        {
            LeadStatus.NO_ANSWER,
            LeadStatus.RESCHEDULE,
            LeadStatus.CALL_FAILED,
            LeadStatus.RETRY_FAILED,
            LeadStatus.AVAILABLE_TIME,
            LeadStatus.APPOINTMENT_SCHEDULED,
            LeadStatus.CONFIRMED,
            LeadStatus.NOT_INTERESTED,
        }
    ),
    LeadStatus.NO_ANSWER: _RETRY_EXITS,
    LeadStatus.RESCHEDULE: _RETRY_EXITS,
    LeadStatus.CALL_FAILED: _RETRY_EXITS,
    LeadStatus.RETRY_FAILED: _RETRY_EXITS,
    LeadStatus.WHATSAPP_OUTREACH: frozenset(
        {
            LeadStatus.WHATSAPP_OUTREACH_SENT,
            LeadStatus.WAITING_PREFERENCE,
            LeadStatus.NOT_INTERESTED,
        }
    ),
    LeadStatus.WHATSAPP_OUTREACH_SENT: frozenset(
        {
            LeadStatus.AVAILABLE_TIME,
            LeadStatus.WAITING_PREFERENCE,
            LeadStatus.APPOINTMENT_SCHEDULED,
            LeadStatus.CONFIRMED,
            LeadStatus.NOT_INTERESTED,
        }
    ),
    LeadStatus.WAITING_PREFERENCE: frozenset(
        {
            LeadStatus.CALLING,
            LeadStatus.WHATSAPP_OUTREACH,
            LeadStatus.AVAILABLE_TIME,
            LeadStatus.APPOINTMENT_SCHEDULED,
            LeadStatus.NOT_INTERESTED,
        }
    ),
    LeadStatus.AVAILABLE_TIME: frozenset(
        {
            LeadStatus.WHATSAPP_SCARITY_SENT,
            LeadStatus.NO_EARLIER_SLOTS,
            LeadStatus.WAITING_PREFERENCE,
            LeadStatus.APPOINTMENT_SCHEDULED,
            LeadStatus.NOT_INTERESTED,
        }
    ),
    LeadStatus.WHATSAPP_SCARITY_SENT: frozenset(
        {
            LeadStatus.AVAILABLE_TIME,
            LeadStatus.APPOINTMENT_SCHEDULED,
            LeadStatus.CONFIRMED,
            LeadStatus.NOT_INTERESTED,
        }
    ),
    LeadStatus.APPOINTMENT_SCHEDULED: frozenset(
        {
            LeadStatus.CONFIRMED,
            LeadStatus.RESCHEDULE,
            LeadStatus.NOT_INTERESTED,
        }
    ),
    LeadStatus.NO_EARLIER_SLOTS: frozenset(),
    LeadStatus.CONFIRMED: frozenset(),
    LeadStatus.NOT_INTERESTED: frozenset(),
}


def can_transition(current: LeadStatus, target: LeadStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: LeadStatus | str, target: LeadStatus | str) -> LeadStatus:
    """Validate ``current -> target`` and return the target status.

    Raises:
        InvalidTransitionError: If the transition is not in the table or a
            status value is unknown.
    """
    try:
        current_status = LeadStatus(current)
        target_status = LeadStatus(target)
    except ValueError as exc:
        raise InvalidTransitionError(str(current), str(target)) from exc

    if not can_transition(current_status, target_status):
        raise InvalidTransitionError(current_status.value, target_status.value)
    return target_status


def is_terminal(status: LeadStatus | str) -> bool:
    return LeadStatus(status) in TERMINAL_STATUSES


def is_retryable(status: LeadStatus | str) -> bool:
    return LeadStatus(status) in RETRY_STATUSES
