"""Interaction ORM model.

Append-only log of user actions. Rows are written as a side effect of asking,
viewing and answering, and are read only to derive the tag signal used for
question recommendations.
"""

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Column, DateTime, ForeignKey, String, Table, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow

if TYPE_CHECKING:
    from .tag import Tag


class InteractionAction(str, enum.Enum):
    ask_question = "ask_question"
    view_question = "view_question"
    answer = "answer"


interaction_tags = Table(
    "interaction_tags",
    Base.metadata,
    Column("interaction_id", Uuid, ForeignKey("interactions.id"), primary_key=True),
    Column("tag_id", Uuid, ForeignKey("tags.id"), primary_key=True),
)


class Interaction(Base):
    __tablename__ = "interactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    question_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("questions.id"), nullable=True, index=True
    )
    answer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("answers.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    tags: Mapped[list["Tag"]] = relationship("Tag", secondary="interaction_tags", lazy="raise")
