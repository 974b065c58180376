import httpx
import pytest

from ticketflow.automation.interfaces.controllers import (
    get_automation_controller,
    get_uow_factory,
)
from ticketflow.main import create_app

CHECKOUT_OUTAGE = "Checkout payment is failing for all users, outage since 9am"


@pytest.fixture
async def client(uow_factory, controller):
    app = create_app()
    app.dependency_overrides[get_uow_factory] = lambda: uow_factory
    app.dependency_overrides[get_automation_controller] = lambda: controller

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _create(client, raw_text=CHECKOUT_OUTAGE, **extra):
    response = await client.post("/tickets", json={"raw_text": raw_text, **extra})
    assert response.status_code == 201, response.text
    return response.json()


async def test_create_ticket(client):
    body = await _create(client, type="INC")

    assert body["ticket_number"] == "INC-1"
    assert body["status"] == "pending_info"
    assert body["draft"]["impact"] == "Service unavailable"
    assert body["draft"]["problem"] == CHECKOUT_OUTAGE


@pytest.mark.parametrize("payload", [{"raw_text": ""}, {"raw_text": "   "}, {}])
async def test_create_rejects_empty_text(client, payload):
    response = await client.post("/tickets", json=payload)
    assert response.status_code == 422


@pytest.mark.parametrize("extra", [
    {"title": "t" * 501},
    {"priority": "p" * 51},
    {"company": "c" * 256},
])
async def test_create_rejects_fields_longer_than_storage(client, extra):
    response = await client.post("/tickets", json={"raw_text": "outage", **extra})
    assert response.status_code == 422


async def test_create_rejects_oversized_user_header(client):
    response = await client.post(
        "/tickets",
        json={"raw_text": "outage"},
        headers={"X-User-Email": "a" * 256},
    )
    assert response.status_code == 422


async def test_created_by_comes_from_header(client):
    response = await client.post(
        "/tickets",
        json={"raw_text": "printer jam", "type": "TSK"},
        headers={"X-User-Email": "alice@example.com"},
    )
    assert response.status_code == 201

    detail = (await client.get("/tickets/by-number/tsk-1")).json()
    assert detail["ticket"]["created_by"] == "alice@example.com"


async def test_ticket_detail(client):
    created = await _create(client)

    response = await client.get(f"/tickets/{created['id']}")

    assert response.status_code == 200
    body = response.json()
    assert body["ticket"]["severity"] == "S1"
    assert body["ticket"]["status"] == "pending_info"
    assert len(body["negotiations"]) == 1
    assert len(body["negotiations"][0]["transcript"]) == 4
    assert {u["author"] for u in body["updates"]} == {"Approval Gate", "Policy Engine"}
    assert response.headers["X-Correlation-ID"]


async def test_not_found(client):
    response = await client.get("/tickets/999")
    assert response.status_code == 404
    assert response.json()["error"] == "Ticket with id '999' not found"

    response = await client.post("/tickets/999/approve", json={"approved_by": "bob"})
    assert response.status_code == 404


async def test_approve_flow(client):
    created = await _create(client)

    response = await client.post(f"/tickets/{created['id']}/approve", json={"approved_by": "bob"})
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["status"] == "resolved"
    assert body["resolution"].endswith("Summary: " + CHECKOUT_OUTAGE)

    response = await client.post(f"/tickets/{created['id']}/approve")
    assert response.status_code == 409


async def test_clarify_and_triage(client):
    created = await _create(client, raw_text="Login loop on mac")

    clarify = await client.post(f"/tickets/{created['id']}/clarify")
    assert clarify.status_code == 200
    assert clarify.json()["questions"] == ["Can you share the exact steps to reproduce?"]

    triage = await client.post(f"/tickets/{created['id']}/triage")
    assert triage.status_code == 200
    body = triage.json()
    assert body["debate"]["duplicate_of"] == 8142
    assert body["debate"]["team"] == "auth"
    assert body["escalation"] == {"escalate": False, "message": "No escalation required."}

    negotiations = (await client.get(f"/tickets/{created['id']}/negotiations")).json()
    assert [n["sequence"] for n in negotiations["negotiations"]] == [2, 1]


async def test_automate_open(client, make_ticket):
    await make_ticket("billing broken")
    await make_ticket("seeded", negotiated=True)

    response = await client.post("/tickets/automate-open")

    assert response.status_code == 200
    assert response.json() == {"processed": 1, "skipped": 1, "failed": 0}


async def test_automate_single_ticket(client, make_ticket):
    ticket_id = await make_ticket("outage in eu")

    response = await client.post(f"/tickets/{ticket_id}/automate")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "pending_info"
    assert body["verdict"]["severity"] == "S1"
    assert body["verdict"]["requires_human"] is True


async def test_list_tickets(client):
    await _create(client)

    response = await client.get("/tickets", params={"status": "awaiting-approval"})
    assert response.status_code == 200
    assert [t["ticket_number"] for t in response.json()["tickets"]] == ["INC-1"]

    response = await client.get("/tickets", params={"status": "archived"})
    assert response.status_code == 400


async def test_agents(client):
    response = await client.get("/agents")
    assert response.status_code == 200
    agents = response.json()["agents"]
    assert len(agents) == 8
    assert agents[0] == "Intake Agent"
