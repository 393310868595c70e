from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, Any
from enum import Enum
from datetime import datetime


class ReactionType(str, Enum):
    LIKE = "LIKE"
    DISLIKE = "DISLIKE"


class ReactionAction(str, Enum):
    added = "added"
    updated = "updated"
    removed = "removed"
    unchanged = "unchanged"


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, dumps camelCase with by_alias=True."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AddReactionRequest(BaseModel):
    type: ReactionType


class ReactionResponse(CamelModel):
    id: int
    message_id: int
    user_id: int
    type: ReactionType
    created_at: datetime


def zero_delta() -> Dict[ReactionType, int]:
    return {reaction_type: 0 for reaction_type in ReactionType}


class ReactionChangeResult(BaseModel):
    """Outcome of one apply/remove call on a (message, user) pair.

    `delta` carries the signed count change for every reaction type, so
    counters can be moved without rescanning the message's reactions.
    """

    message_id: int
    user_id: int
    action: ReactionAction
    previous_type: Optional[ReactionType] = None
    current_type: Optional[ReactionType] = None
    delta: Dict[ReactionType, int]
    reaction: Optional[ReactionResponse] = None

    @property
    def changed(self) -> bool:
        return any(self.delta.values())

    @property
    def like_delta(self) -> int:
        return self.delta.get(ReactionType.LIKE, 0)

    @property
    def dislike_delta(self) -> int:
        return self.delta.get(ReactionType.DISLIKE, 0)


class ReactionSummary(CamelModel):
    message_id: int
    like_count: int = 0
    dislike_count: int = 0
    user_reaction: Optional[ReactionType] = None
