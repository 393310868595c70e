from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError
from ..models import Message, User


async def message_exists(db: AsyncSession, message_id: int) -> bool:
    """Return True if the message can be reacted to."""
    result = await db.execute(select(Message.id).where(Message.id == message_id))
    return result.scalar_one_or_none() is not None


async def user_exists(db: AsyncSession, user_id: int) -> bool:
    result = await db.execute(select(User.id).where(User.id == user_id))
    return result.scalar_one_or_none() is not None


async def ensure_reaction_targets(db: AsyncSession, message_id: int, user_id: int) -> None:
    """Raise NotFoundError unless both the message and the user exist."""
    if not await message_exists(db, message_id):
        raise NotFoundError("message", message_id)
    if not await user_exists(db, user_id):
        raise NotFoundError("user", user_id)
