"""
Automation Application Services
===============================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

- AutomationController: the per-ticket state machine
- BatchRunner: automates every open ticket once
- TicketService: single-ticket use cases, each in its own transaction

The controller never commits; atomicity belongs to the unit of work
opened by its caller.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional

from ticketflow.automation.application.ports import IUnitOfWork
from ticketflow.automation.application.stages import (
    DraftBuilder,
    clarify,
    debate,
    propose_resolution,
)
from ticketflow.automation.domain import (
    ApprovalOutcome,
    AutomationOutcome,
    BatchResult,
    Draft,
    EscalationDecision,
    Negotiation,
    Ticket,
    TicketLink,
    TicketUpdate,
    Verdict,
    escalate,
)
from ticketflow.automation.domain.heuristics import infer_assignees, infer_priority
from ticketflow.config import TicketPrefix, TicketStatus, normalize_status
from ticketflow.core import (
    InvalidStateTransitionException,
    ResourceNotFoundException,
    ValidationException,
)
from ticketflow.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


TRIAGE_PHASE = "triage"

AUTOMATION_RUNNER = "Automation Runner"
APPROVAL_GATE = "Approval Gate"
POLICY_ENGINE = "Policy Engine"
RESOLUTION_AGENT = "Resolution Agent"
CLARIFIER_AGENT = "Clarifier Agent"

APPROVAL_PROMPT = "Approval required to continue automation."
TITLE_MAX_LENGTH = 500
TICKET_NUMBER_PATTERN = re.compile(r"^(INC|TSK)-(\d+)$")

AGENT_ROSTER = [
    "Intake Agent",
    "Clarifier Agent",
    "Duplicate Detective Agent",
    "Severity + SLA Risk Agent",
    "Routing Agent",
    "Resolution Agent",
    "Customer Comms Agent",
    "Manager Agent",
]

UnitOfWorkFactory = Callable[[], IUnitOfWork]


@dataclass(frozen=True)
class TriageOutcome:
    """Result of a standalone triage pass."""
    verdict: Verdict
    escalation: EscalationDecision
    status: TicketStatus


@dataclass(frozen=True)
class CreateTicketCommand:
    """Input for ticket creation; raw_text is validated by the caller."""
    raw_text: str
    title: Optional[str] = None
    priority: Optional[str] = None
    company: Optional[str] = None
    assignees: Optional[List[str]] = None
    ticket_type: Optional[str] = None
    created_by: str = "unknown"


@dataclass(frozen=True)
class CreatedTicket:
    """Ticket created by TicketService together with its automation result."""
    ticket: Ticket
    draft: Draft
    outcome: AutomationOutcome


@dataclass(frozen=True)
class TicketDetail:
    """Ticket with everything automation has recorded for it."""
    ticket: Ticket
    draft: Optional[Draft]
    updates: List[TicketUpdate]
    negotiations: List[Negotiation]
    links: List[TicketLink]


class AutomationController:
    """
    State machine for one automation invocation on one ticket.

    NEW -> DRAFTED -> DEBATED -> HALTED (pending_info)
                              -> RESOLVING -> RESOLVED
    """

    def __init__(
        self,
        draft_builder: Optional[DraftBuilder] = None,
        debate_stage: Callable[[str, Optional[Draft]], Verdict] = debate
    ):
        self._draft_builder = draft_builder or DraftBuilder()
        self._debate = debate_stage

    @property
    def draft_builder(self) -> DraftBuilder:
        return self._draft_builder

    async def run(
        self,
        uow: IUnitOfWork,
        ticket: Ticket,
        draft: Optional[Draft] = None,
        actor: str = AUTOMATION_RUNNER
    ) -> AutomationOutcome:
        """
        Automate a ticket inside the caller's unit of work.

        Args:
            uow: Open unit of work; every write goes through it
            ticket: Ticket to automate
            draft: Existing draft, built and stored when omitted
            actor: Author of the approval prompt

        Returns:
            AutomationOutcome, halted in pending_info or resolved
        """
        if draft is None:
            built = await self._draft_builder.build(ticket.body or ticket.subject or "")
            draft = await uow.drafts.add_if_absent(ticket.id, built)

        verdict, _ = await self._apply_verdict(uow, ticket, draft)

        if verdict.requires_human:
            await uow.updates.append(ticket.id, actor, APPROVAL_PROMPT)
            ticket.transition_to(TicketStatus.PENDING_INFO)
            await uow.tickets.save_state(ticket)
            logger.info(
                "Automation halted for approval",
                extra={"ticket_id": ticket.id, "severity": verdict.severity.value}
            )
            return AutomationOutcome(status=TicketStatus.PENDING_INFO, verdict=verdict)

        resolution = await self._resolve(uow, ticket, draft)
        return AutomationOutcome(
            status=TicketStatus.RESOLVED, verdict=verdict, resolution=resolution
        )

    async def triage(
        self,
        uow: IUnitOfWork,
        ticket: Ticket,
        draft: Optional[Draft] = None
    ) -> TriageOutcome:
        """Debate and escalation only, without the approval gate."""
        verdict, escalation = await self._apply_verdict(uow, ticket, draft)
        return TriageOutcome(verdict=verdict, escalation=escalation, status=ticket.status)

    async def approve_and_resume(
        self,
        uow: IUnitOfWork,
        ticket: Ticket,
        draft: Optional[Draft] = None,
        approver: str = "user"
    ) -> ApprovalOutcome:
        """
        Resume a ticket halted at the approval gate and resolve it.

        Raises:
            InvalidStateTransitionException: If the ticket is not pending_info
        """
        if ticket.status != TicketStatus.PENDING_INFO:
            raise InvalidStateTransitionException(
                ticket.id, ticket.status.value, TicketStatus.IN_PROGRESS.value
            )

        await uow.updates.append(
            ticket.id, APPROVAL_GATE, f"Approved by {approver}. Resuming automation."
        )
        ticket.transition_to(TicketStatus.IN_PROGRESS)
        await uow.tickets.save_state(ticket)

        resolution = await self._resolve(uow, ticket, draft)
        return ApprovalOutcome(status=TicketStatus.RESOLVED, resolution=resolution)

    async def _apply_verdict(
        self,
        uow: IUnitOfWork,
        ticket: Ticket,
        draft: Optional[Draft]
    ):
        verdict = self._debate(ticket.subject, draft)

        ticket.severity = verdict.severity
        ticket.transition_to(
            TicketStatus.PENDING_INFO if verdict.requires_human else TicketStatus.IN_PROGRESS
        )
        await uow.tickets.save_state(ticket)

        await uow.negotiations.append(ticket.id, TRIAGE_PHASE, verdict.transcript)

        if verdict.duplicate_of:
            await uow.links.append(TicketLink(
                ticket_id=ticket.id,
                duplicate_of_ticket_id=verdict.duplicate_of,
                confidence=verdict.duplicate_confidence,
            ))

        escalation = escalate(verdict.sla_risk)
        if escalation.escalate:
            await uow.updates.append(ticket.id, POLICY_ENGINE, escalation.message)

        return verdict, escalation

    async def _resolve(
        self,
        uow: IUnitOfWork,
        ticket: Ticket,
        draft: Optional[Draft]
    ) -> str:
        resolution = propose_resolution(ticket.subject, draft)
        ticket.transition_to(TicketStatus.RESOLVED)
        await uow.tickets.save_state(ticket)
        await uow.updates.append(ticket.id, RESOLUTION_AGENT, resolution)
        logger.info("Ticket resolved", extra={"ticket_id": ticket.id})
        return resolution


class BatchRunner:
    """
    Automates every open ticket that has never been negotiated.

    Tickets are processed sequentially, each in its own unit of work.
    A failing ticket is rolled back, logged and counted as neither
    processed nor skipped.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory, controller: AutomationController):
        self._uow_factory = uow_factory
        self._controller = controller

    async def run(self) -> BatchResult:
        """
        Run one batch pass.

        Returns:
            BatchResult with processed / skipped / failed counts
        """
        async with self._uow_factory() as uow:
            ticket_ids = await uow.tickets.list_ids_by_status(TicketStatus.OPEN)

        processed = 0
        skipped = 0
        failed = 0

        with log_latency(logger, "batch_automation", tickets=len(ticket_ids)):
            for ticket_id in ticket_ids:
                try:
                    ran = await self._run_one(ticket_id)
                except Exception as e:
                    failed += 1
                    logger.exception(
                        "Batch automation failed for ticket",
                        extra={"ticket_id": ticket_id, "error": str(e)}
                    )
                    continue

                if ran:
                    processed += 1
                else:
                    skipped += 1

        logger.info(
            "Batch automation finished",
            extra={"processed": processed, "skipped": skipped, "failed": failed}
        )
        return BatchResult(processed=processed, skipped=skipped, failed=failed)

    async def _run_one(self, ticket_id: int) -> bool:
        async with self._uow_factory() as uow:
            ticket = await uow.tickets.get_by_id(ticket_id, for_update=True)
            if ticket is None or not ticket.is_open:
                return False
            if await uow.negotiations.exists_for_ticket(ticket_id):
                return False

            draft = await uow.drafts.get_for_ticket(ticket_id)
            await self._controller.run(uow, ticket, draft, actor=AUTOMATION_RUNNER)
            return True


class TicketService:
    """
    Single-ticket use cases.

    Each public method opens one unit of work; its writes commit together
    or not at all.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory, controller: AutomationController):
        self._uow_factory = uow_factory
        self._controller = controller

    async def create_ticket(self, command: CreateTicketCommand) -> CreatedTicket:
        """
        Create a ticket from raw text and run automation on it.

        The draft is built before the transaction opens so the optional
        extraction call never holds database locks.

        Raises:
            ValidationException: If the title is longer than TITLE_MAX_LENGTH
        """
        if command.title and len(command.title.strip()) > TITLE_MAX_LENGTH:
            raise ValidationException(
                f"title too long (max {TITLE_MAX_LENGTH} characters)",
                {"length": len(command.title.strip())}
            )

        draft = await self._controller.draft_builder.build(command.raw_text)

        if not command.priority or command.priority == "Automatic":
            priority = infer_priority(draft).value
        else:
            priority = str(command.priority).lower()

        if not command.assignees or "Automatic" in command.assignees:
            assignees = infer_assignees(draft)
        else:
            assignees = list(command.assignees)

        if command.title and command.title.strip():
            title = command.title.strip()
        else:
            title = draft.problem[:90] if draft.problem else "New incident"

        prefix = TicketPrefix.TASK if command.ticket_type == TicketPrefix.TASK.value else TicketPrefix.INCIDENT

        async with self._uow_factory() as uow:
            number = await uow.sequences.next_value(prefix.value)
            ticket = await uow.tickets.create(Ticket(
                id=None,
                ticket_number=f"{prefix.value}-{number}",
                subject=title,
                body=command.raw_text,
                status=TicketStatus.OPEN,
                priority=priority,
                company=command.company,
                assignees=assignees,
                created_by=command.created_by,
            ))
            draft = await uow.drafts.add_if_absent(ticket.id, draft)
            outcome = await self._controller.run(uow, ticket, draft, actor=APPROVAL_GATE)

        logger.info(
            "Ticket created",
            extra={
                "ticket_id": ticket.id,
                "ticket_number": ticket.ticket_number,
                "status": outcome.status.value,
            }
        )
        return CreatedTicket(ticket=ticket, draft=draft, outcome=outcome)

    async def run_automation(self, ticket_id: int) -> AutomationOutcome:
        """Re-trigger automation for one ticket."""
        async with self._uow_factory() as uow:
            ticket = await self._require_ticket(uow, ticket_id)
            draft = await uow.drafts.get_for_ticket(ticket_id)
            with log_latency(logger, "ticket_automation", ticket_id=ticket_id):
                return await self._controller.run(uow, ticket, draft, actor=AUTOMATION_RUNNER)

    async def approve_ticket(self, ticket_id: int, approver: str = "user") -> ApprovalOutcome:
        """Approve a halted ticket and resolve it."""
        async with self._uow_factory() as uow:
            ticket = await self._require_ticket(uow, ticket_id)
            draft = await uow.drafts.get_for_ticket(ticket_id)
            return await self._controller.approve_and_resume(uow, ticket, draft, approver)

    async def triage_ticket(self, ticket_id: int) -> TriageOutcome:
        """Re-run the debate for a ticket and record its results."""
        async with self._uow_factory() as uow:
            ticket = await self._require_ticket(uow, ticket_id)
            draft = await uow.drafts.get_for_ticket(ticket_id)
            return await self._controller.triage(uow, ticket, draft)

    async def clarify_ticket(self, ticket_id: int) -> List[str]:
        """Ask for the information the ticket's draft is missing."""
        async with self._uow_factory() as uow:
            draft = await uow.drafts.get_for_ticket(ticket_id)
            if draft is None:
                raise ResourceNotFoundException("Ticket draft", str(ticket_id))

            questions = clarify(draft)
            await uow.updates.append(ticket_id, CLARIFIER_AGENT, " | ".join(questions))
            return questions

    async def get_ticket_detail(self, ticket_id: int) -> TicketDetail:
        async with self._uow_factory() as uow:
            ticket = await self._require_ticket(uow, ticket_id)
            return await self._detail(uow, ticket)

    async def get_ticket_detail_by_number(self, ticket_number: str) -> TicketDetail:
        """
        Look a ticket up by its number, e.g. "inc-12".

        A well-formed number that matches nothing falls back to the
        internal id, so rows stored before numbering stay reachable.
        """
        number = (ticket_number or "").strip().upper()
        if not number:
            raise ValidationException("ticket_number is required")

        async with self._uow_factory() as uow:
            ticket = await uow.tickets.get_by_number(number)
            match = TICKET_NUMBER_PATTERN.match(number)
            if ticket is None and match:
                ticket = await uow.tickets.get_by_id(int(match.group(2)))
            if ticket is None:
                raise ResourceNotFoundException("Ticket", ticket_number)
            return await self._detail(uow, ticket)

    async def list_negotiations(self, ticket_id: int) -> List[Negotiation]:
        async with self._uow_factory() as uow:
            return await uow.negotiations.list_for_ticket(ticket_id)

    async def list_tickets(self, status: Optional[str] = None, limit: int = 100) -> List[Ticket]:
        """List tickets, optionally filtered by any accepted status spelling."""
        wanted = normalize_status(status) if status else None
        async with self._uow_factory() as uow:
            return await uow.tickets.list(wanted, limit=limit)

    async def _require_ticket(self, uow: IUnitOfWork, ticket_id: int) -> Ticket:
        ticket = await uow.tickets.get_by_id(ticket_id, for_update=True)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", str(ticket_id))
        return ticket

    async def _detail(self, uow: IUnitOfWork, ticket: Ticket) -> TicketDetail:
        return TicketDetail(
            ticket=ticket,
            draft=await uow.drafts.get_for_ticket(ticket.id),
            updates=await uow.updates.list_for_ticket(ticket.id),
            negotiations=await uow.negotiations.list_for_ticket(ticket.id),
            links=await uow.links.list_for_ticket(ticket.id),
        )
