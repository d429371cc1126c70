"""Pydantic schemas for users and the community listing."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AuthorSummary(BaseModel):
    """The slice of a user shown next to their posts."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    clerk_id: str
    name: str
    username: str
    picture: Optional[str] = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    clerk_id: str
    name: str
    username: str
    picture: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    portfolio_website: Optional[str] = None
    reputation: int
    joined_at: datetime


class UserProfileResponse(BaseModel):
    user: UserResponse
    total_questions: int
    total_answers: int
