"""Question endpoints.

GET    /api/v1/questions                  -- list / search / filter, paginated
POST   /api/v1/questions                  -- ask a question
GET    /api/v1/questions/hot              -- most viewed questions
GET    /api/v1/questions/recommended      -- questions matching the caller's tag history
GET    /api/v1/questions/{id}             -- question detail
PATCH  /api/v1/questions/{id}             -- edit (author only)
DELETE /api/v1/questions/{id}             -- delete with answers and interactions (author only)
POST   /api/v1/questions/{id}/view        -- count a view
POST   /api/v1/questions/{id}/upvote      -- toggle / swap upvote
POST   /api/v1/questions/{id}/downvote    -- toggle / swap downvote
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Query

from overflow.config import settings
from overflow.dependencies import Cache, CurrentUser, DbSession, OptionalUser
from overflow.models.question import Question
from overflow.schemas.common import PaginatedResponse
from overflow.schemas.question import (
    QuestionCreate,
    QuestionDetail,
    QuestionSummary,
    QuestionUpdate,
    VoteRequest,
    VoteResponse,
)
from overflow.schemas.tag import TagSummary
from overflow.schemas.user import AuthorSummary
from overflow.services import questions as question_service
from overflow.services.questions import QUESTION_VOTES, QuestionStats
from overflow.services.voting import VoteTransition, vote_counts, voters

router = APIRouter(prefix="/api/v1", tags=["questions"])


def question_summary(question: Question, stats: QuestionStats) -> QuestionSummary:
    return QuestionSummary(
        id=question.id,
        title=question.title,
        tags=[TagSummary.model_validate(tag) for tag in question.tags],
        author=AuthorSummary.model_validate(question.author),
        upvotes=stats.upvotes,
        answers=stats.answers,
        views=question.views,
        created_at=question.created_at,
    )


async def summarize(db, questions: list[Question]) -> list[QuestionSummary]:
    stats = await question_service.question_stats(db, [q.id for q in questions])
    return [question_summary(q, stats.get(q.id, QuestionStats())) for q in questions]


async def vote_response(db, question_id: uuid.UUID, transition: VoteTransition) -> VoteResponse:
    counts = await vote_counts(db, QUESTION_VOTES, [question_id])
    upvotes, downvotes = counts.get(question_id, (0, 0))
    return VoteResponse(
        state=transition.new_state.value,
        transition=transition.kind,
        upvotes=upvotes,
        downvotes=downvotes,
    )


@router.get("/questions", response_model=PaginatedResponse[QuestionSummary])
async def list_questions(
    db: DbSession,
    q: Optional[str] = Query(default=None, max_length=200),
    filter: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.questions_page_size, ge=1, le=100),
) -> PaginatedResponse[QuestionSummary]:
    """List questions. filter: newest | frequent | unanswered."""
    result = await question_service.get_questions(
        db, search_query=q, filter=filter, page=page, page_size=page_size
    )
    return PaginatedResponse[QuestionSummary](
        items=await summarize(db, result.items),
        is_next=result.is_next,
        total=result.total,
        page=page,
        page_size=page_size,
    )


@router.post("/questions", response_model=QuestionSummary, status_code=201)
async def ask_question(
    body: QuestionCreate,
    user: CurrentUser,
    db: DbSession,
    cache: Cache,
) -> QuestionSummary:
    """Ask a question. Tags are matched case-insensitively and created on first use."""
    question = await question_service.create_question(
        db,
        title=body.title,
        content=body.content,
        author_id=user.id,
        tags=body.tags,
        path=body.path,
        cache=cache,
    )
    question = await question_service.get_question_by_id(db, question.id)
    return question_summary(question, QuestionStats())


@router.get("/questions/hot", response_model=list[QuestionSummary])
async def hot_questions(
    db: DbSession,
    limit: int = Query(default=5, ge=1, le=20),
) -> list[QuestionSummary]:
    return await summarize(db, await question_service.get_hot_questions(db, limit=limit))


@router.get("/questions/recommended", response_model=PaginatedResponse[QuestionSummary])
async def recommended_questions(
    user: CurrentUser,
    db: DbSession,
    q: Optional[str] = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.recommended_page_size, ge=1, le=100),
) -> PaginatedResponse[QuestionSummary]:
    """Questions by other users that share a tag with the caller's activity."""
    result = await question_service.get_recommended_questions(
        db, clerk_id=user.clerk_id, page=page, page_size=page_size, search_query=q
    )
    return PaginatedResponse[QuestionSummary](
        items=await summarize(db, result.items),
        is_next=result.is_next,
        total=result.total,
        page=page,
        page_size=page_size,
    )


@router.get("/questions/{question_id}", response_model=QuestionDetail)
async def get_question(
    question_id: uuid.UUID,
    db: DbSession,
    viewer: OptionalUser,
) -> QuestionDetail:
    question = await question_service.get_question_by_id(db, question_id)
    stats = (await question_service.question_stats(db, [question_id]))[question_id]
    upvoter_ids, downvoter_ids = await voters(db, QUESTION_VOTES, question_id)
    summary = question_summary(question, stats)
    return QuestionDetail(
        **summary.model_dump(),
        content=question.content,
        downvotes=stats.downvotes,
        has_upvoted=viewer is not None and viewer.id in upvoter_ids,
        has_downvoted=viewer is not None and viewer.id in downvoter_ids,
        updated_at=question.updated_at,
    )


@router.patch("/questions/{question_id}", response_model=QuestionSummary)
async def edit_question(
    question_id: uuid.UUID,
    body: QuestionUpdate,
    user: CurrentUser,
    db: DbSession,
    cache: Cache,
) -> QuestionSummary:
    await question_service.edit_question(
        db,
        question_id=question_id,
        user_id=user.id,
        title=body.title,
        content=body.content,
        path=body.path or f"/question/{question_id}",
        cache=cache,
    )
    question = await question_service.get_question_by_id(db, question_id)
    return (await summarize(db, [question]))[0]


@router.delete("/questions/{question_id}")
async def delete_question(
    question_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    cache: Cache,
    path: Optional[str] = Query(default="/"),
) -> dict:
    """Delete a question together with its answers, interactions and tag links."""
    await question_service.delete_question(
        db, question_id=question_id, user_id=user.id, path=path, cache=cache
    )
    return {"deleted": True, "question_id": str(question_id)}


@router.post("/questions/{question_id}/view", status_code=204)
async def view_question(
    question_id: uuid.UUID,
    db: DbSession,
    viewer: OptionalUser,
) -> None:
    await question_service.view_question(
        db, question_id, user_id=viewer.id if viewer is not None else None
    )


@router.post("/questions/{question_id}/upvote", response_model=VoteResponse)
async def upvote_question(
    question_id: uuid.UUID,
    body: VoteRequest,
    user: CurrentUser,
    db: DbSession,
    cache: Cache,
) -> VoteResponse:
    transition = await question_service.upvote_question(
        db,
        question_id=question_id,
        user_id=user.id,
        has_upvoted=body.has_upvoted,
        has_downvoted=body.has_downvoted,
        path=body.path or f"/question/{question_id}",
        cache=cache,
    )
    return await vote_response(db, question_id, transition)


@router.post("/questions/{question_id}/downvote", response_model=VoteResponse)
async def downvote_question(
    question_id: uuid.UUID,
    body: VoteRequest,
    user: CurrentUser,
    db: DbSession,
    cache: Cache,
) -> VoteResponse:
    transition = await question_service.downvote_question(
        db,
        question_id=question_id,
        user_id=user.id,
        has_upvoted=body.has_upvoted,
        has_downvoted=body.has_downvoted,
        path=body.path or f"/question/{question_id}",
        cache=cache,
    )
    return await vote_response(db, question_id, transition)
