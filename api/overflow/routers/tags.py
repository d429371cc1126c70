"""Tag endpoints.

GET /api/v1/tags                   -- all tags with question counts
GET /api/v1/tags/popular           -- top tags by question count
GET /api/v1/tags/{id}/questions    -- questions carrying a tag
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Query

from overflow.config import settings
from overflow.dependencies import DbSession
from overflow.models.tag import Tag
from overflow.routers.questions import summarize
from overflow.schemas.common import PaginatedResponse
from overflow.schemas.question import QuestionSummary
from overflow.schemas.tag import TagResponse
from overflow.services import tags as tag_service

router = APIRouter(prefix="/api/v1", tags=["tags"])


def tag_response(tag: Tag, question_count: int) -> TagResponse:
    return TagResponse(
        id=tag.id,
        name=tag.name,
        description=tag.description,
        question_count=question_count,
        created_at=tag.created_at,
    )


@router.get("/tags", response_model=PaginatedResponse[TagResponse])
async def list_tags(
    db: DbSession,
    q: Optional[str] = Query(default=None, max_length=100),
    filter: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.tags_page_size, ge=1, le=100),
) -> PaginatedResponse[TagResponse]:
    """filter: popular (default) | recent | name | old."""
    result = await tag_service.get_all_tags(
        db, search_query=q, filter=filter, page=page, page_size=page_size
    )
    return PaginatedResponse[TagResponse](
        items=[tag_response(tag, count) for tag, count in result.items],
        is_next=result.is_next,
        total=result.total,
        page=page,
        page_size=page_size,
    )


@router.get("/tags/popular", response_model=list[TagResponse])
async def popular_tags(
    db: DbSession,
    limit: int = Query(default=5, ge=1, le=50),
) -> list[TagResponse]:
    rows = await tag_service.get_top_popular_tags(db, limit=limit)
    return [tag_response(tag, count) for tag, count in rows]


@router.get("/tags/{tag_id}/questions", response_model=PaginatedResponse[QuestionSummary])
async def tag_questions(
    tag_id: uuid.UUID,
    db: DbSession,
    q: Optional[str] = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.questions_page_size, ge=1, le=100),
) -> PaginatedResponse[QuestionSummary]:
    _tag, result = await tag_service.get_questions_by_tag_id(
        db, tag_id, search_query=q, page=page, page_size=page_size
    )
    return PaginatedResponse[QuestionSummary](
        items=await summarize(db, result.items),
        is_next=result.is_next,
        total=result.total,
        page=page,
        page_size=page_size,
    )
