"""
Automation Domain Entities
==========================

Pure Python business objects for ticket automation.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ticketflow.config import TicketStatus, Severity
from ticketflow.core import InvalidStateTransitionException


PROBLEM_MAX_LENGTH = 140

# Transitions the automation core may perform; same-state writes are allowed
ALLOWED_TRANSITIONS: Dict[TicketStatus, tuple] = {
    TicketStatus.OPEN: (TicketStatus.PENDING_INFO, TicketStatus.IN_PROGRESS),
    TicketStatus.PENDING_INFO: (TicketStatus.PENDING_INFO, TicketStatus.IN_PROGRESS),
    TicketStatus.IN_PROGRESS: (TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED),
    TicketStatus.RESOLVED: (),
}


@dataclass
class Ticket:
    """
    Ticket entity representing a support ticket.

    Status changes go through ``transition_to`` so that a resolved
    ticket is never re-opened.
    """

    id: Optional[int]
    ticket_number: str
    subject: str
    body: str
    status: TicketStatus = TicketStatus.OPEN
    priority: str = "medium"
    severity: Optional[Severity] = None
    company: Optional[str] = None
    assignees: List[str] = field(default_factory=list)
    source: str = "web"
    created_by: str = "unknown"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None

    @property
    def title(self) -> str:
        return self.subject

    @property
    def is_open(self) -> bool:
        return self.status == TicketStatus.OPEN

    def can_transition_to(self, new_status: TicketStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS.get(self.status, ())

    def transition_to(self, new_status: TicketStatus) -> None:
        """
        Move the ticket to ``new_status``.

        Raises:
            InvalidStateTransitionException: If the move is not allowed
        """
        if not self.can_transition_to(new_status):
            raise InvalidStateTransitionException(
                self.id, self.status.value, new_status.value
            )
        self.status = new_status
        self.updated_at = datetime.now(timezone.utc)


@dataclass(frozen=True)
class Draft:
    """
    Structured extraction of a raw ticket report.

    Immutable: a stored draft is never rewritten by later stages.
    """
    problem: str
    environment: str
    reproduction: str
    impact: str
    user_intent: str
    confidence: Dict[str, float] = field(default_factory=dict)
    evidence: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        """Validate confidence scores."""
        for name, score in self.confidence.items():
            if not 0.0 <= score <= 1.0:
                raise ValueError(f"Confidence for {name} must be between 0 and 1")

    def with_overrides(self, **fields) -> "Draft":
        """Copy of the draft with the given fields replaced."""
        problem = fields.get("problem")
        if problem is not None:
            fields["problem"] = problem[:PROBLEM_MAX_LENGTH]
        return replace(self, **fields)


@dataclass(frozen=True)
class TranscriptEntry:
    """One agent finding in a debate transcript."""
    id: str
    agent: str
    message: str
    evidence: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"id": self.id, "agent": self.agent, "message": self.message}
        if self.evidence is not None:
            data["evidence"] = self.evidence
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "TranscriptEntry":
        return cls(
            id=str(data.get("id", "")),
            agent=data.get("agent", ""),
            message=data.get("message", ""),
            evidence=data.get("evidence"),
        )


@dataclass(frozen=True)
class Verdict:
    """
    Output of the triage debate.

    Transient: persisted only through ticket severity/status,
    the negotiation transcript and an optional ticket link.
    """
    severity: Severity
    sla_risk: float
    team: str
    transcript: List[TranscriptEntry]
    status: str = "triaged"
    requires_human: bool = True
    duplicate_of: Optional[int] = None
    duplicate_confidence: float = 0.0


@dataclass
class Negotiation:
    """Persisted transcript of one triage run."""
    ticket_id: int
    phase: str
    sequence: int
    transcript: List[TranscriptEntry]
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class TicketLink:
    """Lookup-only cross reference to a suspected duplicate."""
    ticket_id: int
    duplicate_of_ticket_id: int
    confidence: float
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class TicketUpdate:
    """Audit log entry shown to humans."""
    ticket_id: int
    author: str
    message: str
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class AutomationOutcome:
    """Result of one automation invocation."""
    status: TicketStatus
    verdict: Verdict
    resolution: Optional[str] = None

    @property
    def halted(self) -> bool:
        return self.status == TicketStatus.PENDING_INFO


@dataclass(frozen=True)
class ApprovalOutcome:
    """Result of resuming a halted ticket."""
    status: TicketStatus
    resolution: str


@dataclass(frozen=True)
class BatchResult:
    """Counts reported by the batch runner."""
    processed: int = 0
    skipped: int = 0
    failed: int = 0
