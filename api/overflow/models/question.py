import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Table, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow

if TYPE_CHECKING:
    from .answer import Answer
    from .tag import Tag
    from .user import User


# Vote sets: composite PK means a user appears at most once per set
question_upvotes = Table(
    "question_upvotes",
    Base.metadata,
    Column("question_id", Uuid, ForeignKey("questions.id"), primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id"), primary_key=True),
)

question_downvotes = Table(
    "question_downvotes",
    Base.metadata,
    Column("question_id", Uuid, ForeignKey("questions.id"), primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id"), primary_key=True),
)


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    # lazy="raise": queries must selectinload what they read
    author: Mapped["User"] = relationship("User", back_populates="questions", lazy="raise")
    tags: Mapped[list["Tag"]] = relationship(
        "Tag", secondary="question_tags", back_populates="questions", lazy="raise"
    )
    upvoters: Mapped[list["User"]] = relationship(
        "User", secondary="question_upvotes", lazy="raise", viewonly=True
    )
    downvoters: Mapped[list["User"]] = relationship(
        "User", secondary="question_downvotes", lazy="raise", viewonly=True
    )
    answers: Mapped[list["Answer"]] = relationship(
        "Answer", back_populates="question", lazy="raise"
    )
