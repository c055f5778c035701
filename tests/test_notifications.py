"""In-app notifications: listing, read tracking and delivery."""

import json
import uuid

import httpx
import pytest
from fastapi import BackgroundTasks

from app.models.notification import Notification, NotificationType
from app.models.user import UserRole
from app.services.errors import NotFoundError
from app.services.mailer import EmailClient, EmailError
from app.services.notifications import NotificationService
from app.services.realtime import ConnectionManager
from tests.conftest import FakeWebSocket, create_user


async def seed_notifications(session_maker, user_id, count=3, read=0):
    async with session_maker() as session:
        service = NotificationService(session)
        created = []
        for i in range(count):
            created.append(
                await service.notify(user_id, NotificationType.GENERAL, f"Duyuru {i}", "Bakım çalışması")
            )
        for notification in created[:read]:
            await service.mark_read(notification.id, user_id)
        await session.commit()
    return created


async def test_list_and_unread_count(client, session_maker, buyer):
    await seed_notifications(session_maker, buyer.id, count=3, read=1)

    everything = await client.get("/api/notifications", headers=buyer.headers)
    unread = await client.get("/api/notifications", params={"unread_only": True}, headers=buyer.headers)
    count = await client.get("/api/notifications/unread-count", headers=buyer.headers)

    assert len(everything.json()) == 3
    assert len(unread.json()) == 2
    assert all(n["is_read"] is False for n in unread.json())
    assert count.json() == {"count": 2}


async def test_mark_read(client, session_maker, buyer):
    created = await seed_notifications(session_maker, buyer.id, count=1)

    response = await client.put(f"/api/notifications/{created[0].id}/read", headers=buyer.headers)

    assert response.status_code == 200
    assert response.json()["is_read"] is True
    assert response.json()["read_at"] is not None


async def test_mark_read_foreign_notification(client, session_maker, buyer, seller):
    created = await seed_notifications(session_maker, seller.id, count=1)

    response = await client.put(f"/api/notifications/{created[0].id}/read", headers=buyer.headers)

    assert response.status_code == 404


async def test_mark_all_read(client, session_maker, buyer, seller):
    await seed_notifications(session_maker, buyer.id, count=4, read=1)
    await seed_notifications(session_maker, seller.id, count=2)

    response = await client.put("/api/notifications/read-all", headers=buyer.headers)

    assert response.json() == {"updated": 3}
    assert (await client.get("/api/notifications/unread-count", headers=buyer.headers)).json() == {"count": 0}
    assert (await client.get("/api/notifications/unread-count", headers=seller.headers)).json() == {"count": 2}


async def test_notify_pushes_to_online_user(db, session_maker):
    user = await create_user(session_maker, "canli@destek.io")
    manager = ConnectionManager()
    ws = FakeWebSocket()
    manager.register(ws, user.id, UserRole.BUYER)

    notification = await NotificationService(db, manager).notify(
        user.id, NotificationType.GENERAL, "Merhaba", "Hoş geldiniz"
    )

    frames = [json.loads(f) for f in ws.sent]
    assert frames == [
        {
            "type": "notification",
            "data": {
                "id": str(notification.id),
                "user_id": str(user.id),
                "type": "GENERAL",
                "title": "Merhaba",
                "message": "Hoş geldiniz",
                "data": None,
                "order_id": None,
                "ticket_id": None,
                "is_read": False,
                "read_at": None,
                "created_at": frames[0]["data"]["created_at"],
            },
        }
    ]


async def test_notify_unknown_user(db):
    with pytest.raises(NotFoundError):
        await NotificationService(db).notify(uuid.uuid4(), NotificationType.GENERAL, "x", "y")


class RecordingEmailClient(EmailClient):
    def __init__(self, fail: bool = False) -> None:
        super().__init__()
        self.fail = fail
        self.messages: list[tuple[str, str, str]] = []

    @property
    def enabled(self) -> bool:
        return True

    async def send(self, to: str, subject: str, text: str) -> bool:
        if self.fail:
            raise EmailError("provider down")
        self.messages.append((to, subject, text))
        return True


async def test_notify_sends_email_when_opted_in(db, session_maker):
    opted_in = await create_user(session_maker, "eposta@destek.io")
    opted_out = await create_user(session_maker, "sessiz@destek.io", email_notifications=False)
    mailer = RecordingEmailClient()
    service = NotificationService(db, email_client=mailer)

    await service.notify(opted_in.id, NotificationType.GENERAL, "Konu", "Metin")
    await service.notify(opted_out.id, NotificationType.GENERAL, "Konu", "Metin")

    assert mailer.messages == [("eposta@destek.io", "Konu", "Metin")]


async def test_email_waits_for_background_tasks(db, session_maker):
    user = await create_user(session_maker, "eposta@destek.io")
    mailer = RecordingEmailClient()
    tasks = BackgroundTasks()
    service = NotificationService(db, email_client=mailer, background=tasks)

    await service.notify(user.id, NotificationType.GENERAL, "Konu", "Metin")
    assert mailer.messages == []

    await tasks()
    assert mailer.messages == [("eposta@destek.io", "Konu", "Metin")]


async def test_background_email_failure_is_logged_not_raised(db, session_maker, caplog):
    user = await create_user(session_maker, "eposta@destek.io")
    tasks = BackgroundTasks()
    service = NotificationService(db, email_client=RecordingEmailClient(fail=True), background=tasks)

    await service.notify(user.id, NotificationType.GENERAL, "Konu", "Metin")
    await tasks()

    assert "provider down" in caplog.text


async def test_email_failure_keeps_notification(db, session_maker):
    user = await create_user(session_maker, "eposta@destek.io")
    service = NotificationService(db, email_client=RecordingEmailClient(fail=True))

    notification = await service.notify(user.id, NotificationType.GENERAL, "Konu", "Metin")

    assert await db.get(Notification, notification.id) is not None


async def test_email_client_disabled_without_url():
    client = EmailClient()

    assert client.enabled is False
    assert await client.send("a@destek.io", "Konu", "Metin") is False


async def test_email_client_posts_to_provider(monkeypatch):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(202, json={"id": "msg-1"})

    client = EmailClient()
    monkeypatch.setattr(client._settings, "email_api_url", "https://mail.destek.io/send")
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    assert await client.send("a@destek.io", "Konu", "Metin") is True
    assert json.loads(requests[0].content)["to"] == ["a@destek.io"]
    await client.close()


async def test_email_client_raises_on_provider_error(monkeypatch):
    client = EmailClient()
    monkeypatch.setattr(client._settings, "email_api_url", "https://mail.destek.io/send")
    client._client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(500))
    )

    with pytest.raises(EmailError):
        await client.send("a@destek.io", "Konu", "Metin")
    await client.close()
