"""
Per-message reaction summaries.

Two strategies produce the same ReactionSummary:

    recompute   - tally the message's reactions on every call
    incremental - read the counters the store moves with every delta

Either way the counts and the viewer's own reaction come from one SELECT,
so a summary always describes a single committed state of the message.
"""

from typing import Dict, Iterable, Optional
import logging

from sqlalchemy import func, select, update

from ..config import AggregationStrategy, settings
from ..exceptions import NotFoundError
from ..models import Message, MessageReaction
from ..schemas import ReactionResponse, ReactionSummary, ReactionType
from .reaction_store import COUNTER_COLUMNS, ReactionStore

logger = logging.getLogger(__name__)


def tally(reactions: Iterable[ReactionResponse]) -> Dict[ReactionType, int]:
    """Count reactions per type; every ReactionType is present in the result."""
    counts = {reaction_type: 0 for reaction_type in ReactionType}
    for reaction in reactions:
        counts[reaction.type] += 1
    return counts


def build_summary(message_id: int, counts: Dict[ReactionType, int],
                  user_reaction: Optional[ReactionType] = None) -> ReactionSummary:
    return ReactionSummary(
        message_id=message_id,
        like_count=counts[ReactionType.LIKE],
        dislike_count=counts[ReactionType.DISLIKE],
        user_reaction=user_reaction,
    )


def _clamp_counters(values) -> Dict[ReactionType, int]:
    # Counters never go below zero even if an out-of-band write drifted them
    return {reaction_type: max(int(value or 0), 0) for reaction_type, value in zip(ReactionType, values)}


class ReactionAggregator:
    def __init__(self, store: ReactionStore, strategy: Optional[AggregationStrategy] = None):
        self.store = store
        self.strategy = AggregationStrategy(
            strategy or settings.reaction_aggregation_strategy)

    async def summarize(self, message_id: int, viewer_user_id: Optional[int] = None) -> ReactionSummary:
        """Like/dislike counts for the message plus the viewer's own reaction.

        Raises NotFoundError when the message does not exist, whatever the
        strategy.
        """
        if self.strategy == AggregationStrategy.incremental:
            counts, user_reaction = await self._read_counters(message_id, viewer_user_id)
        else:
            counts, user_reaction = await self._recount(message_id, viewer_user_id)
        return build_summary(message_id, counts, user_reaction)

    async def _recount(self, message_id: int, viewer_user_id: Optional[int]):
        # Outer join keeps the message row even when it has no reactions
        stmt = (
            select(Message.id, MessageReaction)
            .outerjoin(MessageReaction, MessageReaction.message_id == Message.id)
            .where(Message.id == message_id)
        )
        async with self.store.session_factory() as db:
            rows = (await db.execute(stmt)).all()
            reactions = [
                ReactionResponse.model_validate(reaction)
                for _, reaction in rows if reaction is not None
            ]
        if not rows:
            raise NotFoundError("message", message_id)

        user_reaction = None
        if viewer_user_id is not None:
            for reaction in reactions:
                if reaction.user_id == viewer_user_id:
                    user_reaction = reaction.type
                    break
        return tally(reactions), user_reaction

    async def _read_counters(self, message_id: int, viewer_user_id: Optional[int]):
        columns = [COUNTER_COLUMNS[reaction_type] for reaction_type in ReactionType]
        if viewer_user_id is not None:
            columns.append(
                select(MessageReaction.type)
                .where(
                    MessageReaction.message_id == message_id,
                    MessageReaction.user_id == viewer_user_id,
                )
                .scalar_subquery()
            )
        async with self.store.session_factory() as db:
            result = await db.execute(select(*columns).where(Message.id == message_id))
            row = result.one_or_none()
        if row is None:
            raise NotFoundError("message", message_id)

        values = tuple(row)
        counts = _clamp_counters(values[:len(COUNTER_COLUMNS)])
        user_reaction = None
        if viewer_user_id is not None and values[-1] is not None:
            user_reaction = ReactionType(values[-1])
        return counts, user_reaction

    async def rebuild_counts(self, message_id: int) -> ReactionSummary:
        """Recount the message's reactions and overwrite its stored counters.

        Repairs counters that drifted from the reaction rows, e.g. after a
        manual data fix. The message row is locked before the recount, so a
        store write that commits meanwhile is either counted or applies its
        delta on top of the rebuilt values.
        """
        values = {}
        for reaction_type, column in COUNTER_COLUMNS.items():
            values[column.key] = (
                select(func.count(MessageReaction.id))
                .where(
                    MessageReaction.message_id == message_id,
                    MessageReaction.type == reaction_type.value,
                )
                .scalar_subquery()
            )
        columns = [COUNTER_COLUMNS[reaction_type] for reaction_type in ReactionType]

        async with self.store.session_factory() as db:
            try:
                locked = await db.execute(
                    select(Message.id).where(Message.id == message_id).with_for_update()
                )
                if locked.scalar_one_or_none() is None:
                    raise NotFoundError("message", message_id)

                await db.execute(
                    update(Message)
                    .where(Message.id == message_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                result = await db.execute(select(*columns).where(Message.id == message_id))
                counts = _clamp_counters(result.one())
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            f"Rebuilt reaction counts for message {message_id}: "
            f"{counts[ReactionType.LIKE]} likes, {counts[ReactionType.DISLIKE]} dislikes")
        return build_summary(message_id, counts)
