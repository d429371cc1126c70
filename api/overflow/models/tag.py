import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Table, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow

if TYPE_CHECKING:
    from .question import Question


# Join table, composite PK (question_id, tag_id)
question_tags = Table(
    "question_tags",
    Base.metadata,
    Column("question_id", Uuid, ForeignKey("questions.id"), primary_key=True),
    Column("tag_id", Uuid, ForeignKey("tags.id"), primary_key=True),
)


class Tag(Base):
    __tablename__ = "tags"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    # Back-references to questions via join table
    questions: Mapped[list["Question"]] = relationship(
        "Question", secondary="question_tags", back_populates="tags", lazy="raise"
    )


# Case-insensitive uniqueness: "Rust" and "rust" are the same tag
Index("uq_tags_name_lower", func.lower(Tag.name), unique=True)
