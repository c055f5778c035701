"""Support ticket endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, Response

from app.api.deps import AdminUser, CurrentUser, Tickets
from app.models.ticket import TicketCategory, TicketPriority, TicketStatus
from app.schemas.ticket import (
    TicketAssign,
    TicketCreate,
    TicketDetailResponse,
    TicketMessageCreate,
    TicketMessageResponse,
    TicketResponse,
    TicketStats,
    TicketStatusUpdate,
)

router = APIRouter(prefix="/api/tickets", tags=["Tickets"])


@router.post("", response_model=TicketResponse, status_code=201)
async def create_ticket(payload: TicketCreate, user: CurrentUser, tickets: Tickets) -> TicketResponse:
    return TicketResponse.model_validate(await tickets.create(user, payload))


@router.get("", response_model=list[TicketResponse])
async def list_tickets(
    user: CurrentUser,
    tickets: Tickets,
    status: TicketStatus | None = Query(default=None),
    priority: TicketPriority | None = Query(default=None),
    category: TicketCategory | None = Query(default=None),
    assigned_to_me: bool = Query(default=False),
) -> list[TicketResponse]:
    """Admins see every ticket, everyone else only their own."""
    items = await tickets.list_tickets(
        user,
        status=status,
        priority=priority,
        category=category,
        assigned_to_me=assigned_to_me,
    )
    return [TicketResponse.model_validate(t) for t in items]


# Registered before /{ticket_id} so "stats" is not parsed as an id
@router.get("/stats", response_model=TicketStats)
async def ticket_stats(_admin: AdminUser, tickets: Tickets) -> TicketStats:
    return TicketStats(**await tickets.stats())


@router.get("/{ticket_id}", response_model=TicketDetailResponse)
async def get_ticket(ticket_id: UUID, user: CurrentUser, tickets: Tickets) -> TicketDetailResponse:
    ticket = await tickets.get(ticket_id, user)
    messages = await tickets.messages(ticket, user)
    return TicketDetailResponse(
        ticket=TicketResponse.model_validate(ticket),
        messages=[TicketMessageResponse.model_validate(m) for m in messages],
    )


@router.post("/{ticket_id}/messages", response_model=TicketMessageResponse, status_code=201)
async def add_ticket_message(
    ticket_id: UUID,
    payload: TicketMessageCreate,
    user: CurrentUser,
    tickets: Tickets,
) -> TicketMessageResponse:
    return TicketMessageResponse.model_validate(await tickets.add_message(ticket_id, user, payload))


@router.patch("/{ticket_id}/status", response_model=TicketResponse)
async def update_ticket_status(
    ticket_id: UUID,
    payload: TicketStatusUpdate,
    admin: AdminUser,
    tickets: Tickets,
) -> TicketResponse:
    return TicketResponse.model_validate(await tickets.update_status(ticket_id, admin, payload.status))


@router.patch("/{ticket_id}/assign", response_model=TicketResponse)
async def assign_ticket(
    ticket_id: UUID,
    payload: TicketAssign,
    admin: AdminUser,
    tickets: Tickets,
) -> TicketResponse:
    return TicketResponse.model_validate(await tickets.assign(ticket_id, admin, payload.assigned_to))


@router.delete("/{ticket_id}", status_code=204)
async def delete_ticket(ticket_id: UUID, admin: AdminUser, tickets: Tickets) -> Response:
    await tickets.delete(ticket_id, admin)
    return Response(status_code=204)
