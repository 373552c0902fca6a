"""Tests for lead statuses and legal transitions."""

import pytest

from booking_engine.leads.lifecycle import (
    RETRY_STATUSES,
    TERMINAL_STATUSES,
    TRANSITIONS,
    LeadStatus,
    can_transition,
    ensure_transition,
    is_retryable,
    is_terminal,
)
from booking_engine.shared.exceptions import InvalidTransitionError


class TestStatusSets:
    def test_every_status_has_a_transition_entry(self) -> None:
        assert set(TRANSITIONS) == set(LeadStatus)

    def test_retry_set(self) -> None:
        assert RETRY_STATUSES == {
            LeadStatus.NO_ANSWER,
            LeadStatus.RESCHEDULE,
            LeadStatus.CALL_FAILED,
            LeadStatus.RETRY_FAILED,
        }
        assert is_retryable("retry_failed")
        assert not is_retryable(LeadStatus.CALLING)

    def test_terminal_statuses_have_no_exits(self) -> None:
        for status in TERMINAL_STATUSES:
            assert TRANSITIONS[status] == frozenset()
            assert is_terminal(status)
        assert not is_terminal(LeadStatus.WHATSAPP_OUTREACH)


class TestTransitions:
    @pytest.mark.parametrize("status", sorted(RETRY_STATUSES, key=lambda s: s.value))
    def test_retryable_can_be_claimed_or_exhausted(self, status: LeadStatus) -> None:
        assert can_transition(status, LeadStatus.CALLING)
        assert can_transition(status, LeadStatus.WHATSAPP_OUTREACH)
        assert can_transition(status, LeadStatus.RETRY_FAILED)

    def test_outreach_paths(self) -> None:
        assert ensure_transition("whatsapp_outreach", "whatsapp_outreach_sent") is LeadStatus.WHATSAPP_OUTREACH_SENT
        assert ensure_transition(LeadStatus.WHATSAPP_OUTREACH, LeadStatus.WAITING_PREFERENCE)
        assert ensure_transition(LeadStatus.AVAILABLE_TIME, LeadStatus.NO_EARLIER_SLOTS)
        assert ensure_transition(LeadStatus.AVAILABLE_TIME, LeadStatus.WHATSAPP_SCARITY_SENT)

    def test_calling_cannot_be_claimed_again(self) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            ensure_transition(LeadStatus.CALLING, LeadStatus.CALLING)
        assert exc_info.value.current == "calling"
        assert exc_info.value.target == "calling"

    def test_terminal_cannot_leave(self) -> None:
        with pytest.raises(InvalidTransitionError):
            ensure_transition(LeadStatus.NO_EARLIER_SLOTS, LeadStatus.AVAILABLE_TIME)

    def test_unknown_status_value(self) -> None:
        with pytest.raises(InvalidTransitionError):
            ensure_transition("archived", LeadStatus.CALLING)
        assert not can_transition(LeadStatus.NEW, LeadStatus.WHATSAPP_SCARITY_SENT)
