from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from equipcare.domain.models import User


async def list_vendor_users(session: AsyncSession, *, vendor_id: str) -> list[User]:
    result = await session.execute(
        select(User)
        .where(User.vendor_id == vendor_id, User.is_active.is_(True))
        .order_by(User.created_at.asc(), User.id.asc())
    )
    return list(result.scalars().all())


async def list_client_users(session: AsyncSession, *, client_id: str) -> list[User]:
    result = await session.execute(
        select(User)
        .where(User.client_id == client_id, User.is_active.is_(True))
        .order_by(User.created_at.asc(), User.id.asc())
    )
    return list(result.scalars().all())
