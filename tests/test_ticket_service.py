import pytest

from ticketflow.automation.application import CreateTicketCommand, heuristic_draft
from ticketflow.automation.infrastructure.models import NegotiationModel
from ticketflow.config import Severity, TicketStatus
from ticketflow.core import (
    ConcurrencyConflictException,
    ResourceNotFoundException,
    ValidationException,
)

CHECKOUT_OUTAGE = "Checkout payment is failing for all users, outage since 9am"


class TestCreateTicket:

    async def test_checkout_outage_end_to_end(self, service, load):
        created = await service.create_ticket(CreateTicketCommand(raw_text=CHECKOUT_OUTAGE))

        assert created.draft.impact == "Service unavailable"
        assert created.outcome.verdict.severity == Severity.S1
        assert created.outcome.verdict.sla_risk == 0.85
        assert created.outcome.verdict.team == "billing"
        assert created.outcome.status == TicketStatus.PENDING_INFO

        ticket, draft, negotiations, links, updates = await load(created.ticket.id)
        assert ticket.ticket_number == "INC-1"
        assert ticket.status == TicketStatus.PENDING_INFO
        assert ticket.priority == "critical"
        assert ticket.assignees == ["Billing Team"]
        assert ticket.subject == CHECKOUT_OUTAGE
        assert ticket.body == CHECKOUT_OUTAGE
        assert draft == created.draft
        assert len(negotiations) == 1
        assert links == []
        assert sorted(u.author for u in updates) == ["Approval Gate", "Policy Engine"]

    async def test_no_keywords_end_to_end(self, service):
        created = await service.create_ticket(
            CreateTicketCommand(raw_text="Something feels slightly off today")
        )

        verdict = created.outcome.verdict
        assert created.draft.environment == "Unknown"
        assert created.draft.impact == "Degraded experience"
        assert verdict.severity == Severity.S3
        assert verdict.sla_risk == 0.30
        assert verdict.team == "backend"
        assert created.ticket.priority == "medium"
        assert created.ticket.assignees == ["Backend Team"]

    async def test_numbering_per_prefix(self, service):
        numbers = []
        for ticket_type in ("INC", None, "TSK", "TSK", "BOGUS"):
            created = await service.create_ticket(
                CreateTicketCommand(raw_text="printer jam", ticket_type=ticket_type)
            )
            numbers.append(created.ticket.ticket_number)

        assert numbers == ["INC-1", "INC-2", "TSK-1", "TSK-2", "INC-3"]

    async def test_explicit_fields_win(self, service):
        created = await service.create_ticket(CreateTicketCommand(
            raw_text="outage",
            title="  Custom title  ",
            priority="Low",
            company="Acme",
            assignees=["Ops Team", "Alice"],
            created_by="alice@example.com",
        ))

        ticket = created.ticket
        assert ticket.subject == "Custom title"
        assert ticket.priority == "low"
        assert ticket.company == "Acme"
        assert ticket.assignees == ["Ops Team", "Alice"]
        assert ticket.created_by == "alice@example.com"

    async def test_automatic_placeholders_are_inferred(self, service):
        created = await service.create_ticket(CreateTicketCommand(
            raw_text="Login page rejects SSO users",
            priority="Automatic",
            assignees=["Automatic"],
        ))
        assert created.ticket.priority == "medium"
        assert created.ticket.assignees == ["Auth Team"]

    async def test_title_over_column_length_is_rejected(self, service):
        with pytest.raises(ValidationException):
            await service.create_ticket(CreateTicketCommand(raw_text="outage", title="t" * 501))

        created = await service.create_ticket(CreateTicketCommand(raw_text="outage", title="t" * 500))
        assert created.ticket.subject == "t" * 500

    async def test_long_report_title_is_truncated(self, service):
        created = await service.create_ticket(CreateTicketCommand(raw_text="z" * 400))
        assert created.ticket.subject == "z" * 90
        assert created.draft.problem == "z" * 140


class TestClarify:

    async def test_records_questions(self, service, load):
        created = await service.create_ticket(CreateTicketCommand(raw_text="it is broken"))

        questions = await service.clarify_ticket(created.ticket.id)

        assert questions == [
            "Which OS and app version are you using?",
            "Can you share the exact steps to reproduce?",
        ]
        _, _, _, _, updates = await load(created.ticket.id)
        clarifier = [u for u in updates if u.author == "Clarifier Agent"]
        assert [u.message for u in clarifier] == [" | ".join(questions)]

    async def test_missing_draft_is_not_found(self, service, make_ticket):
        ticket_id = await make_ticket("no draft yet")
        with pytest.raises(ResourceNotFoundException):
            await service.clarify_ticket(ticket_id)


class TestLookup:

    async def test_detail_by_number_is_case_insensitive(self, service):
        created = await service.create_ticket(CreateTicketCommand(raw_text="login loop"))

        detail = await service.get_ticket_detail_by_number("inc-1")

        assert detail.ticket.id == created.ticket.id
        assert detail.draft == created.draft
        assert len(detail.negotiations) == 1
        assert len(detail.links) == 1
        assert detail.updates[0].author == "Approval Gate"

    async def test_unknown_ticket(self, service):
        with pytest.raises(ResourceNotFoundException):
            await service.get_ticket_detail(12345)
        with pytest.raises(ResourceNotFoundException):
            await service.get_ticket_detail_by_number("INC-404")
        with pytest.raises(ResourceNotFoundException):
            await service.run_automation(12345)

    async def test_well_formed_number_falls_back_to_internal_id(self, service, make_ticket):
        ticket_id = await make_ticket("stored before numbering")

        detail = await service.get_ticket_detail_by_number(f"INC-{ticket_id}")

        assert detail.ticket.id == ticket_id
        assert detail.ticket.ticket_number == f"INC-{900 + ticket_id}"

    async def test_free_form_number_has_no_fallback(self, service, make_ticket):
        ticket_id = await make_ticket("x")
        with pytest.raises(ResourceNotFoundException):
            await service.get_ticket_detail_by_number(str(ticket_id))
        with pytest.raises(ValidationException):
            await service.get_ticket_detail_by_number("   ")

    async def test_list_filters_by_normalized_status(self, service, make_ticket):
        await service.create_ticket(CreateTicketCommand(raw_text="billing"))
        await make_ticket("still open")

        halted = await service.list_tickets("pending_approval")
        opened = await service.list_tickets("NEW")
        everything = await service.list_tickets()

        assert [t.status for t in halted] == [TicketStatus.PENDING_INFO]
        assert [t.subject for t in opened] == ["still open"]
        assert len(everything) == 2

        with pytest.raises(ValidationException):
            await service.list_tickets("archived")


class TestStorageGuards:

    async def test_draft_first_write_wins(self, uow_factory, make_ticket):
        ticket_id = await make_ticket("x")
        first = heuristic_draft("first draft")
        async with uow_factory() as uow:
            assert await uow.drafts.add_if_absent(ticket_id, first) == first
        async with uow_factory() as uow:
            assert await uow.drafts.add_if_absent(ticket_id, heuristic_draft("second")) == first

    async def test_duplicate_negotiation_sequence_conflicts(self, uow_factory, make_ticket, load):
        ticket_id = await make_ticket("x", negotiated=True)

        with pytest.raises(ConcurrencyConflictException):
            async with uow_factory() as uow:
                # A second writer that also believed this was the first negotiation
                uow._session.add(NegotiationModel(
                    ticket_id=ticket_id, phase="triage", sequence=1, transcript=[]
                ))
                await uow.updates.append(ticket_id, "Automation Runner", "racing")

        _, _, negotiations, _, updates = await load(ticket_id)
        assert len(negotiations) == 1
        assert updates == []
