"""Community endpoints.

GET /api/v1/users              -- community listing with search and filter
GET /api/v1/users/{clerk_id}   -- profile with question and answer totals
"""

from typing import Optional

from fastapi import APIRouter, Query

from overflow.config import settings
from overflow.dependencies import DbSession
from overflow.schemas.common import PaginatedResponse
from overflow.schemas.user import UserProfileResponse, UserResponse
from overflow.services import users as user_service

router = APIRouter(prefix="/api/v1", tags=["users"])


@router.get("/users", response_model=PaginatedResponse[UserResponse])
async def list_users(
    db: DbSession,
    q: Optional[str] = Query(default=None, max_length=200),
    filter: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.users_page_size, ge=1, le=100),
) -> PaginatedResponse[UserResponse]:
    """filter: new_users (default) | old_users | top_contributors."""
    result = await user_service.get_all_users(
        db, search_query=q, filter=filter, page=page, page_size=page_size
    )
    return PaginatedResponse[UserResponse](
        items=[UserResponse.model_validate(u) for u in result.items],
        is_next=result.is_next,
        total=result.total,
        page=page,
        page_size=page_size,
    )


@router.get("/users/{clerk_id}", response_model=UserProfileResponse)
async def get_user(clerk_id: str, db: DbSession) -> UserProfileResponse:
    info = await user_service.get_user_info(db, clerk_id)
    return UserProfileResponse(
        user=UserResponse.model_validate(info.user),
        total_questions=info.total_questions,
        total_answers=info.total_answers,
    )
