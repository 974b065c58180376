"""Shared fixtures: in-memory SQLite database, units of work and services."""

from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from ticketflow.automation.application import (
    AutomationController,
    DraftBuilder,
    TicketService,
)
from ticketflow.automation.domain import Ticket, TranscriptEntry
from ticketflow.automation.infrastructure import SQLAlchemyUnitOfWork
from ticketflow.config import TicketStatus
from ticketflow.infrastructure.database import build_session_maker, create_tables


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
def uow_factory(session_maker):
    return lambda: SQLAlchemyUnitOfWork(session_maker)


@pytest.fixture
def controller():
    return AutomationController(DraftBuilder())


@pytest.fixture
def service(uow_factory, controller):
    return TicketService(uow_factory, controller)


@pytest.fixture
def make_ticket(uow_factory):
    """Insert a bare open ticket (no draft, no automation) and return its id."""
    counter = {"n": 0}

    async def _make(
        subject: str,
        body: Optional[str] = None,
        status: TicketStatus = TicketStatus.OPEN,
        negotiated: bool = False,
    ) -> int:
        counter["n"] += 1
        async with uow_factory() as uow:
            ticket = await uow.tickets.create(Ticket(
                id=None,
                ticket_number=f"INC-{900 + counter['n']}",
                subject=subject,
                body=body if body is not None else subject,
                status=status,
            ))
            if negotiated:
                await uow.negotiations.append(
                    ticket.id, "triage",
                    [TranscriptEntry(id="seed", agent="Manager Agent", message="seeded")]
                )
            return ticket.id

    return _make


@pytest.fixture
def load(uow_factory):
    """Read back a ticket with its records after a unit of work finished."""

    async def _load(ticket_id: int):
        async with uow_factory() as uow:
            ticket = await uow.tickets.get_by_id(ticket_id)
            draft = await uow.drafts.get_for_ticket(ticket_id)
            negotiations = await uow.negotiations.list_for_ticket(ticket_id)
            links = await uow.links.list_for_ticket(ticket_id)
            updates = await uow.updates.list_for_ticket(ticket_id)
        return ticket, draft, negotiations, links, updates

    return _load
