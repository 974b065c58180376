from ticketflow.automation.application import AutomationController, BatchRunner, DraftBuilder, debate
from ticketflow.config import TicketStatus


def exploding_debate(title, draft=None):
    if "explode" in title:
        raise RuntimeError("debate crashed")
    return debate(title, draft)


async def test_processes_open_tickets(uow_factory, controller, make_ticket, load):
    first = await make_ticket("billing broken")
    second = await make_ticket("outage in eu")

    result = await BatchRunner(uow_factory, controller).run()

    assert (result.processed, result.skipped, result.failed) == (2, 0, 0)
    for ticket_id in (first, second):
        ticket, draft, negotiations, _, _ = await load(ticket_id)
        assert ticket.status == TicketStatus.PENDING_INFO
        assert draft is not None
        assert len(negotiations) == 1


async def test_second_pass_does_not_rerun(uow_factory, controller, make_ticket, load):
    ticket_id = await make_ticket("billing broken")
    runner = BatchRunner(uow_factory, controller)

    await runner.run()
    result = await runner.run()

    assert (result.processed, result.skipped) == (0, 0)
    _, _, negotiations, _, updates = await load(ticket_id)
    assert len(negotiations) == 1
    assert len(updates) == 1


async def test_skips_open_ticket_with_negotiation(uow_factory, controller, make_ticket, load):
    seeded = await make_ticket("billing broken", negotiated=True)
    fresh = await make_ticket("login broken")

    result = await BatchRunner(uow_factory, controller).run()

    assert (result.processed, result.skipped) == (1, 1)
    ticket, draft, negotiations, _, updates = await load(seeded)
    assert ticket.status == TicketStatus.OPEN
    assert draft is None
    assert len(negotiations) == 1
    assert updates == []

    ticket, _, _, _, _ = await load(fresh)
    assert ticket.status == TicketStatus.PENDING_INFO


async def test_ignores_tickets_that_are_not_open(uow_factory, controller, make_ticket):
    await make_ticket("already halted", status=TicketStatus.PENDING_INFO)
    await make_ticket("already done", status=TicketStatus.RESOLVED)

    result = await BatchRunner(uow_factory, controller).run()

    assert (result.processed, result.skipped, result.failed) == (0, 0, 0)


async def test_failure_is_isolated(uow_factory, make_ticket, load):
    before = await make_ticket("billing broken")
    broken = await make_ticket("please explode")
    after = await make_ticket("outage in eu")
    controller = AutomationController(DraftBuilder(), debate_stage=exploding_debate)

    result = await BatchRunner(uow_factory, controller).run()

    assert (result.processed, result.skipped, result.failed) == (2, 0, 1)

    ticket, draft, negotiations, links, updates = await load(broken)
    assert ticket.status == TicketStatus.OPEN
    assert draft is None
    assert negotiations == [] and links == [] and updates == []

    for ticket_id in (before, after):
        ticket, _, _, _, _ = await load(ticket_id)
        assert ticket.status == TicketStatus.PENDING_INFO

    # The failed ticket is picked up again by the next pass
    retry = await BatchRunner(uow_factory, AutomationController(DraftBuilder())).run()
    assert (retry.processed, retry.skipped) == (1, 0)
