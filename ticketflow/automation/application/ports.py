"""
Automation Application Ports
============================

Abstract interfaces the application layer depends on (Dependency Inversion).
Concrete SQLAlchemy and LLM adapters live in the infrastructure layer.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ticketflow.automation.domain import (
    Draft, Negotiation, Ticket, TicketLink, TicketUpdate, TranscriptEntry
)
from ticketflow.config import TicketStatus


# ========== Repository Interfaces ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def get_by_id(self, ticket_id: int, for_update: bool = False) -> Optional[Ticket]:
        """Get ticket by internal ID, optionally locking the row."""

    @abstractmethod
    async def get_by_number(self, ticket_number: str) -> Optional[Ticket]:
        """Get ticket by human-facing number."""

    @abstractmethod
    async def create(self, ticket: Ticket) -> Ticket:
        """Insert a new ticket and return it with its id."""

    @abstractmethod
    async def save_state(self, ticket: Ticket) -> None:
        """Persist the ticket's status and severity."""

    @abstractmethod
    async def list_ids_by_status(self, status: TicketStatus) -> List[int]:
        """Ids of tickets in a status, oldest first."""

    @abstractmethod
    async def list(self, status: Optional[TicketStatus] = None, limit: int = 100) -> List[Ticket]:
        """List tickets, newest first."""


class ITicketSequenceRepository(ABC):
    """Interface for the per-prefix ticket number counter."""

    @abstractmethod
    async def next_value(self, prefix: str) -> int:
        """Reserve and return the next number for a prefix."""


class IDraftRepository(ABC):
    """Interface for draft storage."""

    @abstractmethod
    async def get_for_ticket(self, ticket_id: int) -> Optional[Draft]:
        """Get the draft of a ticket."""

    @abstractmethod
    async def add_if_absent(self, ticket_id: int, draft: Draft) -> Draft:
        """Store the draft unless one exists; return the stored draft."""


class INegotiationRepository(ABC):
    """Interface for negotiation transcripts."""

    @abstractmethod
    async def append(
        self,
        ticket_id: int,
        phase: str,
        transcript: List[TranscriptEntry]
    ) -> Negotiation:
        """Append a transcript for a ticket."""

    @abstractmethod
    async def exists_for_ticket(self, ticket_id: int) -> bool:
        """Check whether any negotiation exists for the ticket."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: int) -> List[Negotiation]:
        """Negotiations of a ticket, newest first."""


class ITicketLinkRepository(ABC):
    """Interface for duplicate links."""

    @abstractmethod
    async def append(self, link: TicketLink) -> TicketLink:
        """Store a link."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: int) -> List[TicketLink]:
        """Links of a ticket, newest first."""


class ITicketUpdateRepository(ABC):
    """Interface for the audit log."""

    @abstractmethod
    async def append(self, ticket_id: int, author: str, message: str) -> TicketUpdate:
        """Append an audit entry."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: int) -> List[TicketUpdate]:
        """Audit entries of a ticket, newest first."""


class IUnitOfWork(ABC):
    """
    Transactional scope for one automation invocation.

    ``async with uow:`` begins a transaction; a clean exit commits it and
    an exception rolls every write back.
    """

    tickets: ITicketRepository
    sequences: ITicketSequenceRepository
    drafts: IDraftRepository
    negotiations: INegotiationRepository
    links: ITicketLinkRepository
    updates: ITicketUpdateRepository

    async def __aenter__(self) -> "IUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                await self.commit()
            else:
                await self.rollback()
        finally:
            await self.close()

    @abstractmethod
    async def commit(self) -> None:
        """Commit the transaction."""

    @abstractmethod
    async def rollback(self) -> None:
        """Roll back the transaction."""

    async def close(self) -> None:
        """Release resources."""


# ========== Capability Interfaces ==========

class ITextExtractor(ABC):
    """
    Optional capability turning raw text into draft fields.

    Implementations raise LLMException on any failure.
    """

    @property
    def enabled(self) -> bool:
        return True

    @abstractmethod
    async def extract(self, raw_text: str) -> Optional[Dict[str, Any]]:
        """
        Extract draft fields from raw text.

        Returns:
            Mapping of Draft field names to values, or None for no refinement
        """


class NullTextExtractor(ITextExtractor):
    """Extraction capability when nothing is configured."""

    @property
    def enabled(self) -> bool:
        return False

    async def extract(self, raw_text: str) -> Optional[Dict[str, Any]]:
        return None
