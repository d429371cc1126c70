"""Answer endpoints.

GET    /api/v1/questions/{id}/answers   -- answers to a question, sortable, paginated
POST   /api/v1/questions/{id}/answers   -- post an answer
DELETE /api/v1/answers/{id}             -- delete an answer (author only)
POST   /api/v1/answers/{id}/upvote      -- toggle / swap upvote
POST   /api/v1/answers/{id}/downvote    -- toggle / swap downvote
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Query

from overflow.config import settings
from overflow.dependencies import Cache, CurrentUser, DbSession
from overflow.models.answer import Answer
from overflow.schemas.answer import AnswerCreate, AnswerResponse
from overflow.schemas.common import PaginatedResponse
from overflow.schemas.question import VoteRequest, VoteResponse
from overflow.schemas.user import AuthorSummary
from overflow.services import answers as answer_service
from overflow.services.answers import ANSWER_VOTES
from overflow.services.voting import vote_counts

router = APIRouter(prefix="/api/v1", tags=["answers"])


def answer_response(answer: Answer, counts: tuple[int, int] = (0, 0)) -> AnswerResponse:
    return AnswerResponse(
        id=answer.id,
        question_id=answer.question_id,
        author=AuthorSummary.model_validate(answer.author),
        content=answer.content,
        upvotes=counts[0],
        downvotes=counts[1],
        created_at=answer.created_at,
    )


@router.get("/questions/{question_id}/answers", response_model=PaginatedResponse[AnswerResponse])
async def list_answers(
    question_id: uuid.UUID,
    db: DbSession,
    sort_by: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.answers_page_size, ge=1, le=100),
) -> PaginatedResponse[AnswerResponse]:
    """sort_by: highest_upvotes | lowest_upvotes | recent | old (default)."""
    result = await answer_service.get_answers(
        db, question_id, sort_by=sort_by, page=page, page_size=page_size
    )
    counts = await vote_counts(db, ANSWER_VOTES, [a.id for a in result.items])
    return PaginatedResponse[AnswerResponse](
        items=[answer_response(a, counts.get(a.id, (0, 0))) for a in result.items],
        is_next=result.is_next,
        total=result.total,
        page=page,
        page_size=page_size,
    )


@router.post(
    "/questions/{question_id}/answers",
    response_model=AnswerResponse,
    status_code=201,
)
async def post_answer(
    question_id: uuid.UUID,
    body: AnswerCreate,
    user: CurrentUser,
    db: DbSession,
    cache: Cache,
) -> AnswerResponse:
    answer = await answer_service.create_answer(
        db,
        question_id=question_id,
        author_id=user.id,
        content=body.content,
        path=body.path or f"/question/{question_id}",
        cache=cache,
    )
    return AnswerResponse(
        id=answer.id,
        question_id=question_id,
        author=AuthorSummary.model_validate(user),
        content=answer.content,
        created_at=answer.created_at,
    )


@router.delete("/answers/{answer_id}")
async def delete_answer(
    answer_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    cache: Cache,
    path: Optional[str] = Query(default=None),
) -> dict:
    await answer_service.delete_answer(
        db, answer_id=answer_id, user_id=user.id, path=path, cache=cache
    )
    return {"deleted": True, "answer_id": str(answer_id)}


async def _vote_response(db, answer_id: uuid.UUID, transition) -> VoteResponse:
    upvotes, downvotes = (await vote_counts(db, ANSWER_VOTES, [answer_id]))[answer_id]
    return VoteResponse(
        state=transition.new_state.value,
        transition=transition.kind,
        upvotes=upvotes,
        downvotes=downvotes,
    )


@router.post("/answers/{answer_id}/upvote", response_model=VoteResponse)
async def upvote_answer(
    answer_id: uuid.UUID,
    body: VoteRequest,
    user: CurrentUser,
    db: DbSession,
    cache: Cache,
) -> VoteResponse:
    transition = await answer_service.upvote_answer(
        db, answer_id=answer_id, user_id=user.id, path=body.path, cache=cache
    )
    return await _vote_response(db, answer_id, transition)


@router.post("/answers/{answer_id}/downvote", response_model=VoteResponse)
async def downvote_answer(
    answer_id: uuid.UUID,
    body: VoteRequest,
    user: CurrentUser,
    db: DbSession,
    cache: Cache,
) -> VoteResponse:
    transition = await answer_service.downvote_answer(
        db, answer_id=answer_id, user_id=user.id, path=body.path, cache=cache
    )
    return await _vote_response(db, answer_id, transition)
