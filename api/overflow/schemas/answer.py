"""Pydantic schemas for answers."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from overflow.schemas.user import AuthorSummary


class AnswerCreate(BaseModel):
    content: str = Field(min_length=20)
    path: Optional[str] = None


class AnswerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    question_id: uuid.UUID
    author: AuthorSummary
    content: str
    upvotes: int = 0
    downvotes: int = 0
    created_at: datetime
