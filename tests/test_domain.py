import pytest

from ticketflow.automation.domain import (
    Draft,
    EscalationPolicy,
    Ticket,
    TranscriptEntry,
    escalate,
)
from ticketflow.config import TicketStatus, normalize_status
from ticketflow.core import InvalidStateTransitionException, ValidationException


def _ticket(status=TicketStatus.OPEN):
    return Ticket(id=1, ticket_number="INC-1", subject="s", body="b", status=status)


class TestEscalation:

    def test_boundary(self):
        assert escalate(0.70).escalate is False
        assert escalate(0.7000001).escalate is True

    def test_messages(self):
        assert escalate(0.85).message == (
            "SLA risk above threshold. Auto-page on-call and raise comms urgency."
        )
        assert escalate(0.30).message == "No escalation required."

    def test_custom_threshold(self):
        assert EscalationPolicy.evaluate(0.5, threshold=0.4).escalate is True


class TestTicketTransitions:

    def test_open_to_pending_info(self):
        ticket = _ticket()
        ticket.transition_to(TicketStatus.PENDING_INFO)
        assert ticket.status == TicketStatus.PENDING_INFO
        assert ticket.updated_at is not None

    def test_pending_info_can_be_rewritten(self):
        ticket = _ticket(TicketStatus.PENDING_INFO)
        ticket.transition_to(TicketStatus.PENDING_INFO)
        assert ticket.status == TicketStatus.PENDING_INFO

    def test_open_cannot_jump_to_resolved(self):
        with pytest.raises(InvalidStateTransitionException):
            _ticket().transition_to(TicketStatus.RESOLVED)

    @pytest.mark.parametrize("target", list(TicketStatus))
    def test_resolved_is_terminal(self, target):
        ticket = _ticket(TicketStatus.RESOLVED)
        assert not ticket.can_transition_to(target)
        with pytest.raises(InvalidStateTransitionException):
            ticket.transition_to(target)


class TestDraft:

    def test_rejects_out_of_range_confidence(self):
        with pytest.raises(ValueError):
            Draft("p", "e", "r", "i", "u", confidence={"impact": 1.2})

    def test_overrides_truncate_problem(self):
        draft = Draft("p", "e", "r", "i", "u")
        updated = draft.with_overrides(problem="x" * 500, impact="Revenue impact")
        assert len(updated.problem) == 140
        assert updated.impact == "Revenue impact"
        assert draft.problem == "p"


def test_transcript_entry_omits_missing_evidence():
    entry = TranscriptEntry(id="a", agent="Routing Agent", message="Route to auth team.")
    assert "evidence" not in entry.to_dict()
    assert TranscriptEntry.from_dict(entry.to_dict()) == entry


class TestNormalizeStatus:

    @pytest.mark.parametrize("value, expected", [
        ("open", TicketStatus.OPEN),
        ("Pending-Info", TicketStatus.PENDING_INFO),
        ("in progress", TicketStatus.IN_PROGRESS),
        ("pending_approval", TicketStatus.PENDING_INFO),
        ("awaiting_approval", TicketStatus.PENDING_INFO),
        ("triaged", TicketStatus.PENDING_INFO),
        ("new", TicketStatus.OPEN),
        ("closed", TicketStatus.RESOLVED),
        ("DONE", TicketStatus.RESOLVED),
        (TicketStatus.RESOLVED, TicketStatus.RESOLVED),
    ])
    def test_known_spellings(self, value, expected):
        assert normalize_status(value) == expected

    @pytest.mark.parametrize("value", ["archived", "", None])
    def test_unknown_spelling(self, value):
        with pytest.raises(ValidationException):
            normalize_status(value)
