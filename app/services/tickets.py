"""Support tickets and their message threads."""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import NotificationType
from app.models.ticket import (
    Ticket,
    TicketCategory,
    TicketMessage,
    TicketPriority,
    TicketStatus,
)
from app.models.user import User, UserRole
from app.schemas.ticket import (
    TicketCreate,
    TicketMessageCreate,
    TicketMessageResponse,
    TicketResponse,
)
from app.services.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from app.services.notifications import NotificationService
from app.services.realtime import ConnectionManager, EventType

logger = logging.getLogger(__name__)


def short_id(ticket: Ticket) -> str:
    return str(ticket.id)[-8:]


class TicketService:
    """Storage adapter for tickets; notifies the other side of every change."""

    def __init__(
        self,
        db: AsyncSession,
        notifications: NotificationService,
        manager: ConnectionManager,
    ) -> None:
        self._db = db
        self._notifications = notifications
        self._manager = manager

    async def create(self, user: User, data: TicketCreate) -> Ticket:
        ticket = Ticket(
            user_id=user.id,
            subject=data.subject,
            body=data.body,
            priority=data.priority,
            category=data.category,
        )
        self._db.add(ticket)
        await self._db.flush()
        logger.info(f"Ticket created: {ticket.id} by user {user.id} ({data.priority.value})")

        await self._notifications.notify_admins(
            NotificationType.TICKET_CREATED,
            "New support ticket",
            f"{user.full_name} opened a ticket: {ticket.subject}",
            exclude=user.id,
            ticket_id=ticket.id,
        )
        await self._manager.send_to_role(
            UserRole.ADMIN,
            EventType.NEW_TICKET,
            TicketResponse.model_validate(ticket).model_dump(mode="json"),
        )
        return ticket

    async def list_tickets(
        self,
        user: User,
        status: TicketStatus | None = None,
        priority: TicketPriority | None = None,
        category: TicketCategory | None = None,
        assigned_to_me: bool = False,
    ) -> list[Ticket]:
        query = select(Ticket)
        if not user.is_admin:
            query = query.where(Ticket.user_id == user.id)
        if status:
            query = query.where(Ticket.status == status)
        if priority:
            query = query.where(Ticket.priority == priority)
        if category:
            query = query.where(Ticket.category == category)
        if assigned_to_me:
            query = query.where(Ticket.assigned_to == user.id)

        result = await self._db.execute(query.order_by(Ticket.updated_at.desc()))
        return list(result.scalars().all())

    async def get(self, ticket_id: uuid.UUID, user: User) -> Ticket:
        ticket = await self._db.get(Ticket, ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket not found")
        if not user.is_admin and ticket.user_id != user.id:
            raise PermissionDeniedError("Access denied")
        return ticket

    async def messages(self, ticket: Ticket, user: User) -> list[TicketMessage]:
        """Thread of a ticket, oldest first; internal notes only for admins."""
        query = select(TicketMessage).where(TicketMessage.ticket_id == ticket.id)
        if not user.is_admin:
            query = query.where(TicketMessage.is_internal.is_(False))
        result = await self._db.execute(query.order_by(TicketMessage.created_at.asc()))
        return list(result.scalars().all())

    async def add_message(
        self,
        ticket_id: uuid.UUID,
        sender: User,
        data: TicketMessageCreate,
    ) -> TicketMessage:
        """Append a reply and move the ticket status along.

        An admin reply answers an open ticket; the owner's reply on an answered
        ticket reopens it. Internal notes never change the status.
        """
        ticket = await self.get(ticket_id, sender)
        if ticket.status == TicketStatus.CLOSED:
            raise ValidationFailedError("Ticket is closed")

        is_admin = sender.is_admin
        is_internal = data.is_internal and is_admin
        message = TicketMessage(
            ticket_id=ticket.id,
            sender_id=sender.id,
            content=data.content,
            is_admin=is_admin,
            is_internal=is_internal,
        )
        self._db.add(message)
        await self._db.flush()

        old_status = ticket.status
        if not is_internal:
            if is_admin and ticket.status == TicketStatus.OPEN:
                ticket.status = TicketStatus.ANSWERED
            elif not is_admin and ticket.status == TicketStatus.ANSWERED:
                ticket.status = TicketStatus.OPEN
        ticket.updated_at = datetime.now(timezone.utc)
        await self._db.flush()

        if ticket.status != old_status:
            logger.info(f"Ticket {ticket.id} status {old_status.value} -> {ticket.status.value}")

        payload = {
            "ticket_id": str(ticket.id),
            "status": ticket.status.value,
            "message": TicketMessageResponse.model_validate(message).model_dump(mode="json"),
        }
        if is_internal:
            await self._manager.send_to_role(UserRole.ADMIN, EventType.NEW_TICKET_MESSAGE, payload)
        elif is_admin:
            await self._notifications.notify(
                ticket.user_id,
                NotificationType.TICKET_UPDATED,
                "Reply to your support ticket",
                f"There is a new reply on your ticket #{short_id(ticket)}.",
                ticket_id=ticket.id,
            )
            await self._manager.send_to_user(ticket.user_id, EventType.NEW_TICKET_MESSAGE, payload)
        else:
            await self._notify_staff(ticket, sender)
            await self._manager.send_to_role(UserRole.ADMIN, EventType.NEW_TICKET_MESSAGE, payload)
        return message

    async def _notify_staff(self, ticket: Ticket, sender: User) -> None:
        title = "New message on a support ticket"
        text = f"{sender.full_name} wrote on ticket \"{ticket.subject}\"."
        if ticket.assigned_to is not None:
            await self._notifications.notify(
                ticket.assigned_to,
                NotificationType.TICKET_UPDATED,
                title,
                text,
                ticket_id=ticket.id,
            )
        else:
            await self._notifications.notify_admins(
                NotificationType.TICKET_UPDATED,
                title,
                text,
                exclude=sender.id,
                ticket_id=ticket.id,
            )

    async def update_status(self, ticket_id: uuid.UUID, admin: User, status: TicketStatus) -> Ticket:
        if not admin.is_admin:
            raise PermissionDeniedError("Admin access required")
        ticket = await self.get(ticket_id, admin)

        old_status = ticket.status
        ticket.status = status
        ticket.updated_at = datetime.now(timezone.utc)
        await self._db.flush()
        logger.info(f"Ticket {ticket.id} status {old_status.value} -> {status.value} by {admin.id}")

        if status == TicketStatus.CLOSED:
            type_, title = NotificationType.TICKET_CLOSED, "Your support ticket was closed"
        else:
            type_, title = NotificationType.TICKET_UPDATED, "Your support ticket was updated"
        await self._notifications.notify(
            ticket.user_id,
            type_,
            title,
            f"Ticket #{short_id(ticket)} is now {status.value.lower()}.",
            ticket_id=ticket.id,
            data={"from": old_status.value, "to": status.value},
        )

        payload = TicketResponse.model_validate(ticket).model_dump(mode="json")
        await self._manager.send_to_user(ticket.user_id, EventType.TICKET_STATUS_UPDATED, payload)
        await self._manager.send_to_role(UserRole.ADMIN, EventType.TICKET_STATUS_UPDATED, payload)
        return ticket

    async def assign(
        self,
        ticket_id: uuid.UUID,
        admin: User,
        assignee_id: uuid.UUID | None,
    ) -> Ticket:
        if not admin.is_admin:
            raise PermissionDeniedError("Admin access required")
        ticket = await self.get(ticket_id, admin)

        if assignee_id is not None:
            assignee = await self._db.get(User, assignee_id)
            if assignee is None:
                raise NotFoundError("Assignee not found")
            if not assignee.is_admin:
                raise ValidationFailedError("Tickets can only be assigned to admins")

        ticket.assigned_to = assignee_id
        ticket.updated_at = datetime.now(timezone.utc)
        await self._db.flush()
        logger.info(f"Ticket {ticket.id} assigned to {assignee_id} by {admin.id}")
        return ticket

    async def delete(self, ticket_id: uuid.UUID, admin: User) -> None:
        if not admin.is_admin:
            raise PermissionDeniedError("Admin access required")
        ticket = await self.get(ticket_id, admin)

        await self._db.execute(delete(TicketMessage).where(TicketMessage.ticket_id == ticket.id))
        await self._db.delete(ticket)
        await self._db.flush()
        logger.info(f"Ticket {ticket_id} deleted by {admin.id}")

    async def stats(self) -> dict[str, dict[str, int] | int]:
        by_status = {status.value: 0 for status in TicketStatus}
        rows = await self._db.execute(select(Ticket.status, func.count(Ticket.id)).group_by(Ticket.status))
        for status, count in rows.all():
            by_status[status.value] = count

        by_priority = {priority.value: 0 for priority in TicketPriority}
        rows = await self._db.execute(
            select(Ticket.priority, func.count(Ticket.id)).group_by(Ticket.priority)
        )
        for priority, count in rows.all():
            by_priority[priority.value] = count

        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_priority": by_priority,
        }
