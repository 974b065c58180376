"""
Automation Infrastructure Models
================================

SQLAlchemy ORM models for the automation module.

These are the database representations of the domain entities. JSON
columns (assignees, confidence, evidence, transcripts) exist only here;
repositories hand plain dataclasses to the application layer.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ticketflow.config import TicketStatus
from ticketflow.infrastructure.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TicketModel(Base):
    """
    Database model for Ticket entity.

    Maps to the 'tickets' table.
    """
    __tablename__ = "tickets"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Business identifier, e.g. INC-12
    ticket_number: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    source: Mapped[str] = mapped_column(String(50), nullable=False, default="web")

    # Ticket content
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Workflow attributes
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, index=True, default=TicketStatus.OPEN.value
    )
    priority: Mapped[str] = mapped_column(String(50), nullable=False, default="medium")
    severity: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    company: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    assignees: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False, default="unknown")

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class TicketSequenceModel(Base):
    """
    Per-prefix ticket number counter.

    The row is read FOR UPDATE by the creating transaction, so two
    tickets never receive the same number.
    """
    __tablename__ = "ticket_sequences"

    prefix: Mapped[str] = mapped_column(String(10), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class DraftModel(Base):
    """
    Database model for Draft value object.

    One row per ticket; never updated once written.
    """
    __tablename__ = "ticket_drafts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    ticket_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tickets.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    problem: Mapped[str] = mapped_column(Text, nullable=False)
    environment: Mapped[str] = mapped_column(String(100), nullable=False)
    reproduction: Mapped[str] = mapped_column(Text, nullable=False)
    impact: Mapped[str] = mapped_column(String(255), nullable=False)
    user_intent: Mapped[str] = mapped_column(Text, nullable=False)
    confidence: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    evidence: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class NegotiationModel(Base):
    """
    Database model for Negotiation transcripts.

    (ticket_id, sequence) is unique: two transactions that both try to
    write a ticket's first negotiation cannot both commit.
    """
    __tablename__ = "ticket_negotiations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    ticket_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    phase: Mapped[str] = mapped_column(String(50), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    transcript: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("ticket_id", "sequence", name="uq_ticket_negotiations_ticket_sequence"),
    )


class TicketLinkModel(Base):
    """
    Database model for duplicate links.

    duplicate_of_ticket_id is lookup only and carries no foreign key.
    """
    __tablename__ = "ticket_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    ticket_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    duplicate_of_ticket_id: Mapped[int] = mapped_column(Integer, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class TicketUpdateModel(Base):
    """Database model for the ticket audit log."""
    __tablename__ = "ticket_updates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    ticket_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
