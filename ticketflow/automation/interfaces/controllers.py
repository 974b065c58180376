"""
Automation Controllers (API Routes)
===================================

FastAPI routes for ticket automation endpoints.

Controllers delegate to application services; each service call runs in
its own unit of work. Identity is issued upstream, the caller's email
arrives in the X-User-Email header.
"""

from typing import Callable, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status

from ticketflow.automation.application import (
    AGENT_ROSTER,
    AutomationController,
    BatchRunner,
    CreateTicketCommand,
    IUnitOfWork,
    TicketService,
)
from ticketflow.automation.application.dto import (
    AgentListResponse,
    ApproveRequest,
    ApproveResponse,
    AutomationResponse,
    BatchAutomationResponse,
    ClarifyResponse,
    CreateTicketRequest,
    CreateTicketResponse,
    DraftInfo,
    EscalationInfo,
    LinkInfo,
    NegotiationInfo,
    NegotiationListResponse,
    TicketDetailResponse,
    TicketInfo,
    TicketListResponse,
    TriageResponse,
    UpdateInfo,
    VerdictInfo,
)
from ticketflow.automation.infrastructure import SQLAlchemyUnitOfWork
from ticketflow.infrastructure.database import get_session_maker
from ticketflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/tickets", tags=["Ticket Automation"])
agents_router = APIRouter(prefix="/agents", tags=["Agents"])


# ========== Example payloads for Swagger ==========

CREATE_REQUEST_EXAMPLE = {
    "raw_text": "Checkout payment failing on Chrome for all EU users, full outage since 9am",
    "priority": "Automatic",
    "assignees": ["Automatic"],
    "type": "INC",
}

CREATE_RESPONSE_EXAMPLE = {
    "id": 1,
    "ticket_number": "INC-1",
    "status": "pending_info",
    "draft": {
        "problem": "Checkout payment failing on Chrome for all EU users, full outage since 9am",
        "environment": "Chrome",
        "reproduction": "User reported issue, steps pending.",
        "impact": "Service unavailable",
        "user_intent": "Resolve and confirm service health.",
        "confidence": {"environment": 0.42, "impact": 0.5},
        "evidence": {"environment": "Keyword scan", "impact": "Keyword scan"},
    },
}


# ========== Dependencies ==========

def get_uow_factory() -> Callable[[], IUnitOfWork]:
    """Unit of work factory bound to the application session maker."""
    session_maker = get_session_maker()
    return lambda: SQLAlchemyUnitOfWork(session_maker)


def get_automation_controller(request: Request) -> AutomationController:
    """Get the automation controller built at startup."""
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(
            status_code=503,
            detail="Automation controller not initialized"
        )
    return controller


def get_ticket_service(
    uow_factory: Callable[[], IUnitOfWork] = Depends(get_uow_factory),
    controller: AutomationController = Depends(get_automation_controller)
) -> TicketService:
    return TicketService(uow_factory, controller)


def get_batch_runner(
    uow_factory: Callable[[], IUnitOfWork] = Depends(get_uow_factory),
    controller: AutomationController = Depends(get_automation_controller)
) -> BatchRunner:
    return BatchRunner(uow_factory, controller)


# ========== Route Handlers ==========

@router.get(
    "",
    response_model=TicketListResponse,
    summary="List tickets",
    description="Newest first. `status` accepts canonical values and legacy spellings such as `pending_approval`."
)
async def list_tickets(
    status_filter: Optional[str] = Query(None, alias="status", description="Status filter"),
    limit: int = Query(100, ge=1, le=500),
    service: TicketService = Depends(get_ticket_service)
):
    tickets = await service.list_tickets(status_filter, limit=limit)
    return TicketListResponse(tickets=[TicketInfo.from_domain(t) for t in tickets])


@router.post(
    "",
    response_model=CreateTicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a ticket from raw text",
    description="""
    Builds a draft from the report, allocates the next `INC-n` / `TSK-n` number
    and runs automation. Every automated ticket halts in `pending_info` until
    approved.
    """,
    responses={
        201: {
            "description": "Ticket created and automated",
            "content": {"application/json": {"example": CREATE_RESPONSE_EXAMPLE}}
        },
        422: {"description": "Empty raw_text"}
    }
)
async def create_ticket(
    request: Request,
    payload: CreateTicketRequest,
    user_email: Optional[str] = Header(None, alias="X-User-Email", max_length=255),
    service: TicketService = Depends(get_ticket_service)
):
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    logger.info(
        "Creating ticket",
        extra={
            "correlation_id": correlation_id,
            "raw_text_length": len(payload.raw_text),
            "priority": payload.priority,
        }
    )

    created = await service.create_ticket(CreateTicketCommand(
        raw_text=payload.raw_text,
        title=payload.title,
        priority=payload.priority,
        company=payload.company,
        assignees=payload.assignees,
        ticket_type=payload.type,
        created_by=user_email or "unknown",
    ))

    return CreateTicketResponse(
        id=created.ticket.id,
        ticket_number=created.ticket.ticket_number,
        status=created.outcome.status.value,
        draft=DraftInfo.from_domain(created.draft),
    )


@router.post(
    "/automate-open",
    response_model=BatchAutomationResponse,
    summary="Automate every open ticket",
    description="Runs automation once per open ticket that has no negotiation yet."
)
async def automate_open_tickets(runner: BatchRunner = Depends(get_batch_runner)):
    result = await runner.run()
    return BatchAutomationResponse(
        processed=result.processed,
        skipped=result.skipped,
        failed=result.failed,
    )


def _detail_response(detail) -> TicketDetailResponse:
    return TicketDetailResponse(
        ticket=TicketInfo.from_domain(detail.ticket),
        draft=DraftInfo.from_domain(detail.draft) if detail.draft else None,
        updates=[UpdateInfo.from_domain(u) for u in detail.updates],
        negotiations=[NegotiationInfo.from_domain(n) for n in detail.negotiations],
        links=[LinkInfo.from_domain(link) for link in detail.links],
    )


@router.get(
    "/by-number/{ticket_number}",
    response_model=TicketDetailResponse,
    summary="Get ticket by number",
    description="Case-insensitive lookup, e.g. `INC-12` or `tsk-3`."
)
async def get_ticket_by_number(
    ticket_number: str,
    service: TicketService = Depends(get_ticket_service)
):
    detail = await service.get_ticket_detail_by_number(ticket_number)
    return _detail_response(detail)


@router.get(
    "/{ticket_id}",
    response_model=TicketDetailResponse,
    summary="Get ticket with draft, updates, negotiations and links"
)
async def get_ticket(ticket_id: int, service: TicketService = Depends(get_ticket_service)):
    detail = await service.get_ticket_detail(ticket_id)
    return _detail_response(detail)


@router.post(
    "/{ticket_id}/clarify",
    response_model=ClarifyResponse,
    summary="Ask clarifying questions"
)
async def clarify_ticket(ticket_id: int, service: TicketService = Depends(get_ticket_service)):
    questions = await service.clarify_ticket(ticket_id)
    return ClarifyResponse(questions=questions)


@router.post(
    "/{ticket_id}/triage",
    response_model=TriageResponse,
    summary="Re-run the triage debate",
    description="Records a new negotiation, optional duplicate link and escalation note."
)
async def triage_ticket(ticket_id: int, service: TicketService = Depends(get_ticket_service)):
    outcome = await service.triage_ticket(ticket_id)
    return TriageResponse(
        debate=VerdictInfo.from_domain(outcome.verdict),
        escalation=EscalationInfo.from_domain(outcome.escalation),
    )


@router.post(
    "/{ticket_id}/automate",
    response_model=AutomationResponse,
    summary="Re-trigger automation for one ticket"
)
async def automate_ticket(ticket_id: int, service: TicketService = Depends(get_ticket_service)):
    outcome = await service.run_automation(ticket_id)
    return AutomationResponse.from_domain(outcome)


@router.post(
    "/{ticket_id}/approve",
    response_model=ApproveResponse,
    summary="Approve a halted ticket",
    description="Only tickets in `pending_info` can be approved; others return 409."
)
async def approve_ticket(
    ticket_id: int,
    payload: Optional[ApproveRequest] = None,
    user_email: Optional[str] = Header(None, alias="X-User-Email", max_length=255),
    service: TicketService = Depends(get_ticket_service)
):
    approver = payload.approved_by if payload and payload.approved_by != "user" else (user_email or "user")
    outcome = await service.approve_ticket(ticket_id, approver)

    logger.info(
        "Ticket approved",
        extra={"ticket_id": ticket_id, "approved_by": approver}
    )

    return ApproveResponse.from_domain(outcome)


@router.get(
    "/{ticket_id}/negotiations",
    response_model=NegotiationListResponse,
    summary="List negotiation transcripts"
)
async def list_negotiations(ticket_id: int, service: TicketService = Depends(get_ticket_service)):
    negotiations = await service.list_negotiations(ticket_id)
    return NegotiationListResponse(
        negotiations=[NegotiationInfo.from_domain(n) for n in negotiations]
    )


@agents_router.get(
    "",
    response_model=AgentListResponse,
    summary="List automation agents"
)
async def list_agents():
    return AgentListResponse(agents=list(AGENT_ROSTER))
