"""
Automation Domain Layer
=======================

Domain layer for the ticket automation module.

Contains:
- Entities: Ticket, Draft, Verdict, Negotiation, TicketLink, TicketUpdate
- Heuristics: keyword scans used by the simulated agents
- Value Objects: EscalationPolicy and its decision

This layer is framework-agnostic and contains pure business logic.
"""

from ticketflow.automation.domain.entities import (
    ALLOWED_TRANSITIONS,
    PROBLEM_MAX_LENGTH,
    Ticket,
    Draft,
    TranscriptEntry,
    Verdict,
    Negotiation,
    TicketLink,
    TicketUpdate,
    AutomationOutcome,
    ApprovalOutcome,
    BatchResult,
)
from ticketflow.automation.domain.value_objects import (
    ESCALATION_THRESHOLD,
    EscalationDecision,
    EscalationPolicy,
    escalate,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "PROBLEM_MAX_LENGTH",
    "Ticket",
    "Draft",
    "TranscriptEntry",
    "Verdict",
    "Negotiation",
    "TicketLink",
    "TicketUpdate",
    "AutomationOutcome",
    "ApprovalOutcome",
    "BatchResult",
    "ESCALATION_THRESHOLD",
    "EscalationDecision",
    "EscalationPolicy",
    "escalate",
]
