"""Overflow Pydantic schemas package.

Re-exports all request and response schemas for convenient importing:

    from overflow.schemas import QuestionCreate, QuestionSummary, VoteRequest, ...
"""

from overflow.schemas.answer import AnswerCreate, AnswerResponse
from overflow.schemas.common import ErrorResponse, PaginatedResponse
from overflow.schemas.question import (
    QuestionCreate,
    QuestionDetail,
    QuestionSummary,
    QuestionUpdate,
    VoteRequest,
    VoteResponse,
)
from overflow.schemas.tag import TagResponse, TagSummary
from overflow.schemas.user import AuthorSummary, UserProfileResponse, UserResponse
from overflow.schemas.webhook import WebhookEvent

__all__ = [
    # Question
    "QuestionCreate",
    "QuestionUpdate",
    "QuestionSummary",
    "QuestionDetail",
    "VoteRequest",
    "VoteResponse",
    # Answer
    "AnswerCreate",
    "AnswerResponse",
    # Tag
    "TagSummary",
    "TagResponse",
    # User
    "AuthorSummary",
    "UserResponse",
    "UserProfileResponse",
    # Webhook
    "WebhookEvent",
    # Common
    "ErrorResponse",
    "PaginatedResponse",
]
