"""
Reaction store: the single source of truth for active message reactions.

Each (message, user) pair holds at most one reaction. Writes for the same
pair are serialized through a per-key lock, and every write moves the
message's denormalized like/dislike counters by the same delta inside the
transaction that changes the reaction row.
"""

from datetime import datetime, timezone
from typing import Dict, Optional, Union
import logging

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import SameTypePolicy, settings
from ..database import AsyncSessionLocal
from ..exceptions import InvalidReactionTypeError, ReactionConflictError
from ..models import Message, MessageReaction
from ..schemas import (
    ReactionAction,
    ReactionChangeResult,
    ReactionResponse,
    ReactionType,
    zero_delta,
)
from .keyed_lock import KeyedLock, LockTimeoutError
from .lookup_service import ensure_reaction_targets

logger = logging.getLogger(__name__)

# Message column holding the running count for each reaction type
COUNTER_COLUMNS = {
    ReactionType.LIKE: Message.like_count,
    ReactionType.DISLIKE: Message.dislike_count,
}


def coerce_reaction_type(value: Union[ReactionType, str]) -> ReactionType:
    """Map a raw value onto ReactionType or raise InvalidReactionTypeError.

    Strings must spell a member exactly; "like" is rejected like any other
    unknown value.
    """
    if isinstance(value, ReactionType):
        return value
    if isinstance(value, str):
        try:
            return ReactionType(value)
        except ValueError:
            pass
    raise InvalidReactionTypeError(value)


async def apply_counter_delta(db: AsyncSession, message_id: int, delta: Dict[ReactionType, int]) -> None:
    """Move the message counters by `delta` in one atomic UPDATE."""
    values = {}
    for reaction_type, column in COUNTER_COLUMNS.items():
        amount = delta.get(reaction_type, 0)
        if amount:
            values[column.key] = column + amount
    if not values:
        return
    await db.execute(
        update(Message)
        .where(Message.id == message_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )


class ReactionSequence:
    """Finite, restartable view over a message's active reactions.

    Every `async for` opens a fresh session and streams the rows as they are
    at that moment; order is unspecified.
    """

    def __init__(self, session_factory: async_sessionmaker, message_id: int):
        self._session_factory = session_factory
        self.message_id = message_id

    async def __aiter__(self):
        async with self._session_factory() as db:
            rows = await db.stream_scalars(
                select(MessageReaction).where(
                    MessageReaction.message_id == self.message_id)
            )
            async for row in rows:
                yield ReactionResponse.model_validate(row)

    async def to_list(self):
        return [reaction async for reaction in self]


class ReactionStore:
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        same_type_policy: Optional[SameTypePolicy] = None,
        lock_timeout: Optional[float] = None,
    ):
        self._session_factory = session_factory or AsyncSessionLocal
        self.same_type_policy = SameTypePolicy(
            same_type_policy or settings.reaction_same_type_policy)
        self.lock_timeout = (
            settings.reaction_lock_timeout_seconds if lock_timeout is None else lock_timeout
        )
        self._locks = KeyedLock()

    @property
    def session_factory(self) -> async_sessionmaker:
        return self._session_factory

    async def apply(self, message_id: int, user_id: int, type: Union[ReactionType, str]) -> ReactionChangeResult:
        """Record `type` as the user's reaction to the message.

        - no reaction yet: insert it (+1 for the type)
        - a different type: replace it in place (-1 old, +1 new)
        - the same type: remove it under the toggle policy (-1), leave it
          untouched under the idempotent policy (zero delta)
        """
        reaction_type = coerce_reaction_type(type)
        try:
            async with self._locks.hold((message_id, user_id), timeout=self.lock_timeout):
                return await self._apply_locked(message_id, user_id, reaction_type)
        except LockTimeoutError as e:
            logger.warning(
                f"Reaction lock timeout for message {message_id} user {user_id}")
            raise ReactionConflictError(
                message_id, user_id, "timed out waiting for a concurrent write") from e

    async def _apply_locked(self, message_id: int, user_id: int, reaction_type: ReactionType) -> ReactionChangeResult:
        async with self._session_factory() as db:
            try:
                await ensure_reaction_targets(db, message_id, user_id)
                existing = await self._find(db, message_id, user_id)
                delta = zero_delta()
                now = datetime.now(timezone.utc)

                if existing is None:
                    reaction = MessageReaction(
                        message_id=message_id,
                        user_id=user_id,
                        type=reaction_type.value,
                        created_at=now,
                    )
                    db.add(reaction)
                    delta[reaction_type] += 1
                    previous_type = None
                    action = ReactionAction.added
                else:
                    previous_type = ReactionType(existing.type)
                    if previous_type != reaction_type:
                        existing.type = reaction_type.value
                        existing.created_at = now
                        reaction = existing
                        delta[previous_type] -= 1
                        delta[reaction_type] += 1
                        action = ReactionAction.updated
                    elif self.same_type_policy == SameTypePolicy.toggle:
                        await db.delete(existing)
                        reaction = None
                        delta[reaction_type] -= 1
                        action = ReactionAction.removed
                    else:
                        logger.debug(
                            f"Reaction {reaction_type.value} already set on message {message_id} by user {user_id}")
                        return ReactionChangeResult(
                            message_id=message_id,
                            user_id=user_id,
                            action=ReactionAction.unchanged,
                            previous_type=previous_type,
                            current_type=previous_type,
                            delta=delta,
                            reaction=ReactionResponse.model_validate(existing),
                        )

                await db.flush()
                await apply_counter_delta(db, message_id, delta)
                response = ReactionResponse.model_validate(
                    reaction) if reaction is not None else None
                await db.commit()

            except IntegrityError as e:
                await db.rollback()
                logger.warning(
                    f"Reaction insert for message {message_id} user {user_id} lost a race: {e}")
                raise ReactionConflictError(
                    message_id, user_id, "another writer stored a reaction first") from e
            except Exception:
                await db.rollback()
                raise

        logger.info(
            f"Reaction {action.value} on message {message_id} by user {user_id}: "
            f"{previous_type.value if previous_type else None} -> {reaction_type.value if reaction is not None else None}")
        return ReactionChangeResult(
            message_id=message_id,
            user_id=user_id,
            action=action,
            previous_type=previous_type,
            current_type=reaction_type if reaction is not None else None,
            delta=delta,
            reaction=response,
        )

    async def remove(self, message_id: int, user_id: int) -> ReactionChangeResult:
        """Remove the user's reaction to the message, if there is one."""
        try:
            async with self._locks.hold((message_id, user_id), timeout=self.lock_timeout):
                return await self._remove_locked(message_id, user_id)
        except LockTimeoutError as e:
            logger.warning(
                f"Reaction lock timeout for message {message_id} user {user_id}")
            raise ReactionConflictError(
                message_id, user_id, "timed out waiting for a concurrent write") from e

    async def _remove_locked(self, message_id: int, user_id: int) -> ReactionChangeResult:
        delta = zero_delta()
        async with self._session_factory() as db:
            try:
                existing = await self._find(db, message_id, user_id)
                if existing is None:
                    logger.debug(
                        f"No reaction to remove on message {message_id} for user {user_id}")
                    return ReactionChangeResult(
                        message_id=message_id,
                        user_id=user_id,
                        action=ReactionAction.unchanged,
                        delta=delta,
                    )

                previous_type = ReactionType(existing.type)
                await db.delete(existing)
                await db.flush()
                delta[previous_type] -= 1
                await apply_counter_delta(db, message_id, delta)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            f"Reaction removed on message {message_id} by user {user_id}: {previous_type.value}")
        return ReactionChangeResult(
            message_id=message_id,
            user_id=user_id,
            action=ReactionAction.removed,
            previous_type=previous_type,
            delta=delta,
        )

    async def get(self, message_id: int, user_id: int) -> Optional[ReactionResponse]:
        async with self._session_factory() as db:
            existing = await self._find(db, message_id, user_id)
            return ReactionResponse.model_validate(existing) if existing is not None else None

    def list_by_message(self, message_id: int) -> ReactionSequence:
        return ReactionSequence(self._session_factory, message_id)

    async def clear_message(self, message_id: int) -> int:
        """Delete every reaction on the message and zero its counters."""
        async with self._session_factory() as db:
            try:
                result = await db.execute(
                    delete(MessageReaction)
                    .where(MessageReaction.message_id == message_id)
                    .execution_options(synchronize_session=False)
                )
                await db.execute(
                    update(Message)
                    .where(Message.id == message_id)
                    .values(like_count=0, dislike_count=0)
                    .execution_options(synchronize_session=False)
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        removed = result.rowcount or 0
        logger.info(f"Cleared {removed} reactions from message {message_id}")
        return removed

    @staticmethod
    async def _find(db: AsyncSession, message_id: int, user_id: int) -> Optional[MessageReaction]:
        result = await db.execute(
            select(MessageReaction).where(
                MessageReaction.message_id == message_id,
                MessageReaction.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()
