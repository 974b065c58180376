"""
Automation Application DTOs
===========================

Data Transfer Objects for the automation API layer.

Pydantic models for request/response validation. Domain dataclasses are
converted here so the interfaces layer never touches ORM rows.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ticketflow.automation.domain import (
    ApprovalOutcome,
    AutomationOutcome,
    Draft,
    EscalationDecision,
    Negotiation,
    Ticket,
    TicketLink,
    TicketUpdate,
    Verdict,
)


# ========== Type Aliases for Literals ==========
TicketStatusStr = Literal["open", "pending_info", "in_progress", "resolved"]
SeverityStr = Literal["S1", "S2", "S3"]


# ========== Request DTOs ==========

class CreateTicketRequest(BaseModel):
    """Request model for ticket creation."""
    raw_text: str = Field(..., min_length=1, description="Free text report from the user")
    title: Optional[str] = Field(None, max_length=500, description="Ticket title; derived from the report when empty")
    priority: Optional[str] = Field(None, max_length=50, description="Priority or 'Automatic'")
    company: Optional[str] = Field(None, max_length=255, description="Reporting company")
    assignees: Optional[List[str]] = Field(None, description="Assignee labels or ['Automatic']")
    type: Optional[Literal["INC", "TSK"]] = Field(None, description="Ticket number prefix")

    @field_validator("raw_text")
    @classmethod
    def validate_raw_text(cls, v: str) -> str:
        """Reject blank reports."""
        if not v.strip():
            raise ValueError("raw_text is required")
        if len(v) > 20000:
            raise ValueError("raw_text too long (max 20000 characters)")
        return v


class ApproveRequest(BaseModel):
    """Request model for approving a halted ticket."""
    approved_by: str = Field(default="user", min_length=1, max_length=255, description="Label of the approver")


# ========== Response DTOs ==========

class DraftInfo(BaseModel):
    """Structured draft."""
    problem: str
    environment: str
    reproduction: str
    impact: str
    user_intent: str
    confidence: Dict[str, float]
    evidence: Dict[str, str]

    @classmethod
    def from_domain(cls, draft: Draft) -> "DraftInfo":
        return cls(
            problem=draft.problem,
            environment=draft.environment,
            reproduction=draft.reproduction,
            impact=draft.impact,
            user_intent=draft.user_intent,
            confidence=dict(draft.confidence),
            evidence=dict(draft.evidence),
        )


class TicketInfo(BaseModel):
    """Ticket summary."""
    id: int
    ticket_number: str
    title: str
    status: TicketStatusStr
    priority: str
    severity: Optional[SeverityStr] = None
    company: Optional[str] = None
    assignees: List[str]
    created_by: str
    created_at: datetime

    @classmethod
    def from_domain(cls, ticket: Ticket) -> "TicketInfo":
        return cls(
            id=ticket.id,
            ticket_number=ticket.ticket_number,
            title=ticket.subject,
            status=ticket.status.value,
            priority=ticket.priority,
            severity=ticket.severity.value if ticket.severity else None,
            company=ticket.company,
            assignees=list(ticket.assignees),
            created_by=ticket.created_by,
            created_at=ticket.created_at,
        )


class TranscriptEntryInfo(BaseModel):
    id: str
    agent: str
    message: str
    evidence: Optional[str] = None


class VerdictInfo(BaseModel):
    """Debate verdict."""
    severity: SeverityStr
    sla_risk: float
    team: str
    status: str
    requires_human: bool
    duplicate_of: Optional[int] = None
    duplicate_confidence: float
    transcript: List[TranscriptEntryInfo]

    @classmethod
    def from_domain(cls, verdict: Verdict) -> "VerdictInfo":
        return cls(
            severity=verdict.severity.value,
            sla_risk=verdict.sla_risk,
            team=verdict.team,
            status=verdict.status,
            requires_human=verdict.requires_human,
            duplicate_of=verdict.duplicate_of,
            duplicate_confidence=verdict.duplicate_confidence,
            transcript=[TranscriptEntryInfo(**entry.to_dict()) for entry in verdict.transcript],
        )


class EscalationInfo(BaseModel):
    escalate: bool
    message: str

    @classmethod
    def from_domain(cls, decision: EscalationDecision) -> "EscalationInfo":
        return cls(escalate=decision.escalate, message=decision.message)


class UpdateInfo(BaseModel):
    id: int
    author: str
    message: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, update: TicketUpdate) -> "UpdateInfo":
        return cls(
            id=update.id,
            author=update.author,
            message=update.message,
            created_at=update.created_at,
        )


class NegotiationInfo(BaseModel):
    id: int
    phase: str
    sequence: int
    transcript: List[TranscriptEntryInfo]
    created_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, negotiation: Negotiation) -> "NegotiationInfo":
        return cls(
            id=negotiation.id,
            phase=negotiation.phase,
            sequence=negotiation.sequence,
            transcript=[TranscriptEntryInfo(**entry.to_dict()) for entry in negotiation.transcript],
            created_at=negotiation.created_at,
        )


class LinkInfo(BaseModel):
    id: int
    duplicate_of_ticket_id: int
    confidence: float
    created_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, link: TicketLink) -> "LinkInfo":
        return cls(
            id=link.id,
            duplicate_of_ticket_id=link.duplicate_of_ticket_id,
            confidence=link.confidence,
            created_at=link.created_at,
        )


class CreateTicketResponse(BaseModel):
    """Response model for ticket creation."""
    id: int
    ticket_number: str
    status: TicketStatusStr
    draft: DraftInfo


class AutomationResponse(BaseModel):
    """Response model for a single automation run."""
    status: TicketStatusStr
    resolution: Optional[str] = None
    verdict: VerdictInfo

    @classmethod
    def from_domain(cls, outcome: AutomationOutcome) -> "AutomationResponse":
        return cls(
            status=outcome.status.value,
            resolution=outcome.resolution,
            verdict=VerdictInfo.from_domain(outcome.verdict),
        )


class BatchAutomationResponse(BaseModel):
    """Response model for the batch pass."""
    processed: int
    skipped: int
    failed: int = 0


class ApproveResponse(BaseModel):
    ok: bool = True
    status: TicketStatusStr
    resolution: str

    @classmethod
    def from_domain(cls, outcome: ApprovalOutcome) -> "ApproveResponse":
        return cls(status=outcome.status.value, resolution=outcome.resolution)


class TriageResponse(BaseModel):
    debate: VerdictInfo
    escalation: EscalationInfo


class ClarifyResponse(BaseModel):
    questions: List[str]


class TicketListResponse(BaseModel):
    tickets: List[TicketInfo]


class TicketDetailResponse(BaseModel):
    """Ticket with its draft and automation records."""
    ticket: TicketInfo
    draft: Optional[DraftInfo] = None
    updates: List[UpdateInfo]
    negotiations: List[NegotiationInfo]
    links: List[LinkInfo]


class NegotiationListResponse(BaseModel):
    negotiations: List[NegotiationInfo]


class AgentListResponse(BaseModel):
    agents: List[str]
