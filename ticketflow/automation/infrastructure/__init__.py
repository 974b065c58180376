"""
Automation Infrastructure Layer
===============================

Infrastructure implementations for the ticket automation module.

Contains:
- Models: SQLAlchemy ORM models
- Repositories: Data access implementations and the unit of work
- External: Text extraction adapter over the LLM client
"""

from ticketflow.automation.infrastructure.models import (
    TicketModel,
    TicketSequenceModel,
    DraftModel,
    NegotiationModel,
    TicketLinkModel,
    TicketUpdateModel,
)
from ticketflow.automation.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    SQLAlchemyTicketSequenceRepository,
    SQLAlchemyDraftRepository,
    SQLAlchemyNegotiationRepository,
    SQLAlchemyTicketLinkRepository,
    SQLAlchemyTicketUpdateRepository,
    SQLAlchemyUnitOfWork,
)
from ticketflow.automation.infrastructure.external import (
    LLMTextExtractor,
    build_text_extractor,
)

__all__ = [
    "TicketModel",
    "TicketSequenceModel",
    "DraftModel",
    "NegotiationModel",
    "TicketLinkModel",
    "TicketUpdateModel",
    "SQLAlchemyTicketRepository",
    "SQLAlchemyTicketSequenceRepository",
    "SQLAlchemyDraftRepository",
    "SQLAlchemyNegotiationRepository",
    "SQLAlchemyTicketLinkRepository",
    "SQLAlchemyTicketUpdateRepository",
    "SQLAlchemyUnitOfWork",
    "LLMTextExtractor",
    "build_text_extractor",
]
