from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

Base = declarative_base()


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    messages = relationship("Message", back_populates="sender")
    message_reactions = relationship("MessageReaction", back_populates="user")


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    sender_id = Column(Integer, ForeignKey(
        "users.id"), nullable=False, index=True)
    text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    # Denormalized reaction counters, moved only by reaction deltas
    like_count = Column(Integer, nullable=False,
                        default=0, server_default="0")
    dislike_count = Column(Integer, nullable=False,
                           default=0, server_default="0")

    sender = relationship("User", back_populates="messages")
    reactions = relationship(
        "MessageReaction", back_populates="message", cascade="all, delete-orphan")


class MessageReaction(Base):
    __tablename__ = "message_reactions"

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(Integer, ForeignKey(
        "messages.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"),
                     nullable=False, index=True)
    # LIKE | DISLIKE
    type = Column(String(16), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False,
                        server_default=func.now())

    message = relationship("Message", back_populates="reactions")
    user = relationship("User", back_populates="message_reactions")

    # One active reaction per user per message
    __table_args__ = (
        UniqueConstraint('message_id', 'user_id',
                         name='uq_message_reaction_user'),
    )
