"""
Automation Infrastructure Repositories
======================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database. Repositories only flush; the unit of work
owns commit and rollback.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketflow.automation.application.ports import (
    IDraftRepository,
    INegotiationRepository,
    ITicketLinkRepository,
    ITicketRepository,
    ITicketSequenceRepository,
    ITicketUpdateRepository,
    IUnitOfWork,
)
from ticketflow.automation.domain import (
    Draft,
    Negotiation,
    Ticket,
    TicketLink,
    TicketUpdate,
    TranscriptEntry,
)
from ticketflow.automation.infrastructure.models import (
    DraftModel,
    NegotiationModel,
    TicketLinkModel,
    TicketModel,
    TicketSequenceModel,
    TicketUpdateModel,
)
from ticketflow.config import Severity, TicketStatus, normalize_status
from ticketflow.core import ConcurrencyConflictException, RepositoryException
from ticketflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


async def _flush(session: AsyncSession, what: str) -> None:
    """Flush pending writes, translating driver errors."""
    try:
        await session.flush()
    except IntegrityError as e:
        raise ConcurrencyConflictException(
            f"Concurrent write rejected for {what}",
            {"error": str(e.orig)}
        )
    except SQLAlchemyError as e:
        raise RepositoryException(f"Failed to write {what}: {str(e)}")


# ========== Mapping ==========

def _to_ticket(model: TicketModel) -> Ticket:
    return Ticket(
        id=model.id,
        ticket_number=model.ticket_number,
        subject=model.subject,
        body=model.body,
        status=normalize_status(model.status),
        priority=model.priority,
        severity=Severity(model.severity) if model.severity else None,
        company=model.company,
        assignees=list(model.assignees or []),
        source=model.source,
        created_by=model.created_by,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _to_draft(model: DraftModel) -> Draft:
    return Draft(
        problem=model.problem,
        environment=model.environment,
        reproduction=model.reproduction,
        impact=model.impact,
        user_intent=model.user_intent,
        confidence=dict(model.confidence or {}),
        evidence=dict(model.evidence or {}),
    )


def _to_negotiation(model: NegotiationModel) -> Negotiation:
    return Negotiation(
        id=model.id,
        ticket_id=model.ticket_id,
        phase=model.phase,
        sequence=model.sequence,
        transcript=[TranscriptEntry.from_dict(item) for item in model.transcript or []],
        created_at=model.created_at,
    )


def _to_link(model: TicketLinkModel) -> TicketLink:
    return TicketLink(
        id=model.id,
        ticket_id=model.ticket_id,
        duplicate_of_ticket_id=model.duplicate_of_ticket_id,
        confidence=model.confidence,
        created_at=model.created_at,
    )


def _to_update(model: TicketUpdateModel) -> TicketUpdate:
    return TicketUpdate(
        id=model.id,
        ticket_id=model.ticket_id,
        author=model.author,
        message=model.message,
        created_at=model.created_at,
    )


# ========== Repositories ==========

class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Stored statuses are normalized on load, so legacy spellings never
    reach the domain.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get_model(self, ticket_id: int, for_update: bool = False) -> Optional[TicketModel]:
        stmt = select(TicketModel).where(TicketModel.id == ticket_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, ticket_id: int, for_update: bool = False) -> Optional[Ticket]:
        """Get ticket by internal ID."""
        model = await self._get_model(ticket_id, for_update)
        return _to_ticket(model) if model else None

    async def get_by_number(self, ticket_number: str) -> Optional[Ticket]:
        """Get ticket by human-facing number."""
        stmt = select(TicketModel).where(TicketModel.ticket_number == ticket_number)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_ticket(model) if model else None

    async def create(self, ticket: Ticket) -> Ticket:
        """Create new ticket."""
        model = TicketModel(
            ticket_number=ticket.ticket_number,
            source=ticket.source,
            subject=ticket.subject,
            body=ticket.body or "",
            status=normalize_status(ticket.status).value,
            priority=ticket.priority,
            severity=ticket.severity.value if ticket.severity else None,
            company=ticket.company,
            assignees=list(ticket.assignees),
            created_by=ticket.created_by,
            created_at=ticket.created_at,
        )

        self._session.add(model)
        await _flush(self._session, f"ticket {ticket.ticket_number}")

        ticket.id = model.id
        return ticket

    async def save_state(self, ticket: Ticket) -> None:
        """Persist status and severity of an existing ticket."""
        model = await self._get_model(ticket.id)
        if not model:
            raise RepositoryException(f"Ticket {ticket.id} not found")

        model.status = normalize_status(ticket.status).value
        model.severity = ticket.severity.value if ticket.severity else None
        model.updated_at = ticket.updated_at or datetime.now(timezone.utc)

        await _flush(self._session, f"ticket {ticket.id}")

    async def list_ids_by_status(self, status: TicketStatus) -> List[int]:
        stmt = (
            select(TicketModel.id)
            .where(TicketModel.status == status.value)
            .order_by(TicketModel.id.asc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list(self, status: Optional[TicketStatus] = None, limit: int = 100) -> List[Ticket]:
        """List tickets, newest first."""
        stmt = select(TicketModel)
        if status is not None:
            stmt = stmt.where(TicketModel.status == status.value)

        stmt = stmt.order_by(TicketModel.created_at.desc(), TicketModel.id.desc()).limit(limit)

        result = await self._session.execute(stmt)
        return [_to_ticket(model) for model in result.scalars().all()]


class SQLAlchemyTicketSequenceRepository(ITicketSequenceRepository):
    """
    Ticket number counter backed by the ticket_sequences table.

    A missing prefix row is inserted; if two transactions insert it at
    once, the loser fails on the primary key.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def next_value(self, prefix: str) -> int:
        stmt = (
            select(TicketSequenceModel)
            .where(TicketSequenceModel.prefix == prefix)
            .with_for_update()
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            model = TicketSequenceModel(prefix=prefix, last_value=1)
            self._session.add(model)
        else:
            model.last_value += 1

        await _flush(self._session, f"ticket sequence {prefix}")
        return model.last_value


class SQLAlchemyDraftRepository(IDraftRepository):
    """SQLAlchemy implementation of draft storage (first write wins)."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get_model(self, ticket_id: int) -> Optional[DraftModel]:
        stmt = select(DraftModel).where(DraftModel.ticket_id == ticket_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_ticket(self, ticket_id: int) -> Optional[Draft]:
        model = await self._get_model(ticket_id)
        return _to_draft(model) if model else None

    async def add_if_absent(self, ticket_id: int, draft: Draft) -> Draft:
        """Store the draft unless the ticket already has one."""
        existing = await self._get_model(ticket_id)
        if existing is not None:
            return _to_draft(existing)

        self._session.add(DraftModel(
            ticket_id=ticket_id,
            problem=draft.problem,
            environment=draft.environment,
            reproduction=draft.reproduction,
            impact=draft.impact,
            user_intent=draft.user_intent,
            confidence=dict(draft.confidence),
            evidence=dict(draft.evidence),
        ))
        await _flush(self._session, f"draft of ticket {ticket_id}")
        return draft


class SQLAlchemyNegotiationRepository(INegotiationRepository):
    """
    SQLAlchemy implementation of negotiation transcripts.

    Each append takes the next per-ticket sequence number; the unique
    (ticket_id, sequence) constraint turns a concurrent append into a
    ConcurrencyConflictException.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(
        self,
        ticket_id: int,
        phase: str,
        transcript: List[TranscriptEntry]
    ) -> Negotiation:
        stmt = select(func.max(NegotiationModel.sequence)).where(
            NegotiationModel.ticket_id == ticket_id
        )
        result = await self._session.execute(stmt)
        sequence = (result.scalar_one_or_none() or 0) + 1

        model = NegotiationModel(
            ticket_id=ticket_id,
            phase=phase,
            sequence=sequence,
            transcript=[entry.to_dict() for entry in transcript],
        )
        self._session.add(model)
        await _flush(self._session, f"negotiation {sequence} of ticket {ticket_id}")

        return _to_negotiation(model)

    async def exists_for_ticket(self, ticket_id: int) -> bool:
        stmt = select(NegotiationModel.id).where(NegotiationModel.ticket_id == ticket_id).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list_for_ticket(self, ticket_id: int) -> List[Negotiation]:
        stmt = (
            select(NegotiationModel)
            .where(NegotiationModel.ticket_id == ticket_id)
            .order_by(NegotiationModel.sequence.desc())
        )
        result = await self._session.execute(stmt)
        return [_to_negotiation(model) for model in result.scalars().all()]


class SQLAlchemyTicketLinkRepository(ITicketLinkRepository):
    """SQLAlchemy implementation of duplicate links."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(self, link: TicketLink) -> TicketLink:
        model = TicketLinkModel(
            ticket_id=link.ticket_id,
            duplicate_of_ticket_id=link.duplicate_of_ticket_id,
            confidence=link.confidence,
        )
        self._session.add(model)
        await _flush(self._session, f"link of ticket {link.ticket_id}")

        link.id = model.id
        link.created_at = model.created_at
        return link

    async def list_for_ticket(self, ticket_id: int) -> List[TicketLink]:
        stmt = (
            select(TicketLinkModel)
            .where(TicketLinkModel.ticket_id == ticket_id)
            .order_by(TicketLinkModel.created_at.desc(), TicketLinkModel.id.desc())
        )
        result = await self._session.execute(stmt)
        return [_to_link(model) for model in result.scalars().all()]


class SQLAlchemyTicketUpdateRepository(ITicketUpdateRepository):
    """SQLAlchemy implementation of the audit log."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(self, ticket_id: int, author: str, message: str) -> TicketUpdate:
        model = TicketUpdateModel(ticket_id=ticket_id, author=author, message=message)
        self._session.add(model)
        await _flush(self._session, f"update of ticket {ticket_id}")
        return _to_update(model)

    async def list_for_ticket(self, ticket_id: int) -> List[TicketUpdate]:
        stmt = (
            select(TicketUpdateModel)
            .where(TicketUpdateModel.ticket_id == ticket_id)
            .order_by(TicketUpdateModel.created_at.desc(), TicketUpdateModel.id.desc())
        )
        result = await self._session.execute(stmt)
        return [_to_update(model) for model in result.scalars().all()]


# ========== Unit of Work ==========

class SQLAlchemyUnitOfWork(IUnitOfWork):
    """
    Unit of work over one AsyncSession.

    Usage:
        async with SQLAlchemyUnitOfWork(session_maker) as uow:
            ticket = await uow.tickets.get_by_id(ticket_id, for_update=True)
            ...
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        self._session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        self._session = self._session_maker()
        self.tickets = SQLAlchemyTicketRepository(self._session)
        self.sequences = SQLAlchemyTicketSequenceRepository(self._session)
        self.drafts = SQLAlchemyDraftRepository(self._session)
        self.negotiations = SQLAlchemyNegotiationRepository(self._session)
        self.links = SQLAlchemyTicketLinkRepository(self._session)
        self.updates = SQLAlchemyTicketUpdateRepository(self._session)
        return self

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            raise ConcurrencyConflictException(
                "Concurrent write rejected on commit",
                {"error": str(e.orig)}
            )
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise RepositoryException(f"Commit failed: {str(e)}")

    async def rollback(self) -> None:
        await self._session.rollback()
        logger.debug("Unit of work rolled back")

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
