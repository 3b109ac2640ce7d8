from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.core.errors import NotFoundError
from equipcare.domain.models import Notification, User
from equipcare.persistence.repos import notifications as notifications_repo
from equipcare.services.notifications.routing import NotificationCategory, route


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_notification(
    *,
    user: User,
    title: str,
    message: str,
    category: NotificationCategory,
    priority: str = "normal",
    metadata: dict[str, Any] | None = None,
) -> Notification:
    # Deep link is resolved against the recipient's role at creation time.
    return Notification(
        id=uuid4().hex,
        user_id=user.id,
        title=title,
        message=message,
        category=category.value,
        priority=priority,
        action_url=route(category, user.role),
        is_read=False,
        metadata_json=metadata or {},
    )


def add_notifications(
    session: AsyncSession,
    *,
    users: list[User],
    title: str,
    message: str,
    category: NotificationCategory,
    priority: str = "normal",
    metadata: dict[str, Any] | None = None,
) -> list[Notification]:
    # Stage rows on the caller's transaction; the caller decides when to commit.
    rows = [
        build_notification(
            user=user,
            title=title,
            message=message,
            category=category,
            priority=priority,
            metadata=metadata,
        )
        for user in users
    ]
    session.add_all(rows)
    return rows


async def list_notifications(
    *,
    session: AsyncSession,
    user_id: str,
    unread_only: bool = False,
    offset: int = 0,
    limit: int = 50,
) -> dict[str, Any]:
    rows = await notifications_repo.list_user_notifications(
        session, user_id=user_id, unread_only=unread_only, offset=offset, limit=limit
    )
    unread = await notifications_repo.count_unread(session, user_id=user_id)
    return {"items": [serialize_notification(row) for row in rows], "unread_count": unread}


async def mark_notification_read(*, session: AsyncSession, user_id: str, notification_id: str) -> None:
    updated = await notifications_repo.mark_read(
        session, user_id=user_id, notification_id=notification_id, now=_utc_now()
    )
    if not updated:
        await session.rollback()
        raise NotFoundError("notification", notification_id)
    await session.commit()


def serialize_notification(row: Notification) -> dict[str, Any]:
    return {
        "id": row.id,
        "title": row.title,
        "message": row.message,
        "category": row.category,
        "priority": row.priority,
        "action_url": row.action_url,
        "is_read": bool(row.is_read),
        "metadata": row.metadata_json or {},
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }
