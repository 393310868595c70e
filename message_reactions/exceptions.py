"""
Reaction errors surfaced to callers of the store and aggregator
"""

from .schemas import ReactionType


class ReactionError(Exception):
    """Base class for reaction errors"""
    pass


class NotFoundError(ReactionError):
    """Raised when the message or user of a reaction does not exist"""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} {entity_id} not found")


class InvalidReactionTypeError(ReactionError):
    """Raised when a reaction type is outside the ReactionType enumeration"""

    def __init__(self, value):
        self.value = value
        allowed = ", ".join(member.value for member in ReactionType)
        super().__init__(
            f"Invalid reaction type {value!r}. Expected one of: {allowed}.")


class ReactionConflictError(ReactionError):
    """Raised when a concurrent writer of the same (message, user) pair won the race"""

    def __init__(self, message_id: int, user_id: int, reason: str):
        self.message_id = message_id
        self.user_id = user_id
        self.reason = reason
        super().__init__(
            f"Conflicting reaction write for message {message_id} by user {user_id}: {reason}")
