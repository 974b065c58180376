"""
Automation Application Layer
============================

Application layer for the ticket automation module.

Contains:
- Ports: repository, unit of work and text extraction interfaces
- Stages: intake, clarify, debate, resolution
- Services: AutomationController, BatchRunner, TicketService
- DTOs: Data transfer objects for API serialization
"""

from ticketflow.automation.application.ports import (
    ITicketRepository,
    ITicketSequenceRepository,
    IDraftRepository,
    INegotiationRepository,
    ITicketLinkRepository,
    ITicketUpdateRepository,
    IUnitOfWork,
    ITextExtractor,
    NullTextExtractor,
)
from ticketflow.automation.application.stages import (
    DraftBuilder,
    heuristic_draft,
    clarify,
    debate,
    propose_resolution,
)
from ticketflow.automation.application.services import (
    AGENT_ROSTER,
    AutomationController,
    BatchRunner,
    TicketService,
    CreateTicketCommand,
    CreatedTicket,
    TicketDetail,
    TriageOutcome,
)

__all__ = [
    # Ports
    "ITicketRepository",
    "ITicketSequenceRepository",
    "IDraftRepository",
    "INegotiationRepository",
    "ITicketLinkRepository",
    "ITicketUpdateRepository",
    "IUnitOfWork",
    "ITextExtractor",
    "NullTextExtractor",
    # Stages
    "DraftBuilder",
    "heuristic_draft",
    "clarify",
    "debate",
    "propose_resolution",
    # Services
    "AGENT_ROSTER",
    "AutomationController",
    "BatchRunner",
    "TicketService",
    "CreateTicketCommand",
    "CreatedTicket",
    "TicketDetail",
    "TriageOutcome",
]
