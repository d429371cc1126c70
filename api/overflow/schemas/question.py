"""Pydantic schemas for question submission, voting and responses."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from overflow.schemas.tag import TagSummary
from overflow.schemas.user import AuthorSummary


class QuestionCreate(BaseModel):
    """Request schema for asking a question."""

    title: str = Field(min_length=5, max_length=130)
    content: str = Field(min_length=20)
    # max_length on list applies to the number of tags
    tags: list[str] = Field(min_length=1, max_length=3)
    # Page to revalidate once the question is stored
    path: Optional[str] = "/"

    @field_validator("tags")
    @classmethod
    def tags_not_blank(cls, tags: list[str]) -> list[str]:
        if any(not tag.strip() for tag in tags):
            raise ValueError("tags must not be blank")
        if any(len(tag.strip()) > 15 for tag in tags):
            raise ValueError("tags must be at most 15 characters")
        return tags


class QuestionUpdate(BaseModel):
    title: str = Field(min_length=5, max_length=130)
    content: str = Field(min_length=20)
    path: Optional[str] = None


class VoteRequest(BaseModel):
    """Vote on a question or answer.

    has_upvoted / has_downvoted describe the vote state the client displayed.
    They are optional; the stored state decides the transition.
    """

    has_upvoted: Optional[bool] = None
    has_downvoted: Optional[bool] = None
    path: Optional[str] = None


class VoteResponse(BaseModel):
    state: str  # none | up | down
    transition: str  # add | retract | swap
    upvotes: int
    downvotes: int


class QuestionSummary(BaseModel):
    """A question as shown in listings."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    tags: list[TagSummary] = Field(default_factory=list)
    author: AuthorSummary
    upvotes: int = 0
    answers: int = 0
    views: int
    created_at: datetime


class QuestionDetail(QuestionSummary):
    content: str
    downvotes: int = 0
    has_upvoted: bool = False
    has_downvoted: bool = False
    updated_at: datetime
