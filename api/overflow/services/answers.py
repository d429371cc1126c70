"""Answer actions. Voting shares the question vote state machine."""

import enum
import uuid
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from overflow.exceptions import NotFoundError, PermissionDeniedError
from overflow.metrics import answers_created
from overflow.models.answer import Answer, answer_downvotes, answer_upvotes
from overflow.models.interaction import InteractionAction
from overflow.models.question import Question
from overflow.models.user import User
from overflow.models.tag import question_tags
from overflow.services import reputation
from overflow.services.actions import action
from overflow.services.page_cache import COMMUNITY_ROUTE, PageCache, profile_route, revalidate
from overflow.services.pagination import PageResult, has_next, skip_amount
from overflow.services.questions import purge_answers, question_routes, record_interaction
from overflow.services.voting import (
    VoteDirection,
    VoteTables,
    VoteTransition,
    apply_vote,
    lock_post,
)

log = structlog.get_logger(__name__)

ANSWER_VOTES = VoteTables(
    target="answer",
    upvotes=answer_upvotes,
    downvotes=answer_downvotes,
    post_column="answer_id",
)


class AnswerSort(str, enum.Enum):
    highest_upvotes = "highest_upvotes"
    lowest_upvotes = "lowest_upvotes"
    recent = "recent"
    old = "old"


def _upvote_count():
    return (
        select(func.count())
        .select_from(answer_upvotes)
        .where(answer_upvotes.c.answer_id == Answer.id)
        .correlate(Answer)
        .scalar_subquery()
    )


async def _load_answer(db: AsyncSession, answer_id: uuid.UUID) -> Answer:
    answer = await db.get(Answer, answer_id)
    if answer is None:
        raise NotFoundError("Answer not found")
    return answer


@action("create_answer")
async def create_answer(
    db: AsyncSession,
    question_id: uuid.UUID,
    author_id: uuid.UUID,
    content: str,
    path: Optional[str] = None,
    cache: Optional[PageCache] = None,
) -> Answer:
    """Post an answer, log an interaction carrying the question's tags, reward the author."""
    if await db.get(Question, question_id) is None:
        raise NotFoundError("Question not found")

    answer = Answer(question_id=question_id, author_id=author_id, content=content)
    db.add(answer)
    await db.flush()

    tag_result = await db.execute(
        select(question_tags.c.tag_id).where(question_tags.c.question_id == question_id)
    )
    await record_interaction(
        db,
        author_id,
        InteractionAction.answer,
        question_id,
        list(tag_result.scalars().all()),
        answer_id=answer.id,
    )
    await reputation.adjust_reputation(db, author_id, reputation.POST_ANSWER)
    routes = await question_routes(db, question_id, [author_id])

    await db.commit()
    answers_created.inc()
    log.info("answer_created", answer_id=str(answer.id), question_id=str(question_id))

    await revalidate(cache, path, *routes, COMMUNITY_ROUTE)
    return answer


@action("get_answers")
async def get_answers(
    db: AsyncSession,
    question_id: uuid.UUID,
    sort_by: Optional[str] = None,
    page: int = 1,
    page_size: int = 10,
) -> PageResult[Answer]:
    """Answers to a question. Sorts: highest_upvotes, lowest_upvotes, recent, old (default)."""
    skip = skip_amount(page, page_size)
    upvote_count = _upvote_count()

    if sort_by == AnswerSort.highest_upvotes:
        order_by = [upvote_count.desc(), Answer.created_at.asc()]
    elif sort_by == AnswerSort.lowest_upvotes:
        order_by = [upvote_count.asc(), Answer.created_at.asc()]
    elif sort_by == AnswerSort.recent:
        order_by = [Answer.created_at.desc()]
    else:
        order_by = [Answer.created_at.asc()]

    total = await db.scalar(
        select(func.count()).select_from(Answer).where(Answer.question_id == question_id)
    )
    result = await db.execute(
        select(Answer)
        .where(Answer.question_id == question_id)
        .options(selectinload(Answer.author))
        .order_by(*order_by)
        .offset(skip)
        .limit(page_size)
    )
    answers = list(result.scalars().all())
    return PageResult(answers, has_next(total, skip, len(answers)), total)


async def _vote_on_answer(
    db: AsyncSession,
    direction: VoteDirection,
    answer_id: uuid.UUID,
    user_id: uuid.UUID,
    path: Optional[str],
    cache: Optional[PageCache],
) -> VoteTransition:
    answer = await lock_post(db, Answer, answer_id, "Answer not found")
    if answer.author_id == user_id:
        raise PermissionDeniedError("Cannot vote on your own answer")

    transition = await apply_vote(db, ANSWER_VOTES, answer_id, answer.author_id, user_id, direction)
    result = await db.execute(
        select(User.clerk_id).where(User.id.in_([answer.author_id, user_id]))
    )
    profiles = [profile_route(clerk_id) for clerk_id in result.scalars().all()]
    await db.commit()
    log.info(
        "answer_voted",
        answer_id=str(answer_id),
        direction=direction.value,
        transition=transition.kind,
    )

    await revalidate(cache, path, *profiles, COMMUNITY_ROUTE)
    return transition


@action("upvote_answer")
async def upvote_answer(
    db: AsyncSession,
    answer_id: uuid.UUID,
    user_id: uuid.UUID,
    path: Optional[str] = None,
    cache: Optional[PageCache] = None,
) -> VoteTransition:
    return await _vote_on_answer(db, VoteDirection.up, answer_id, user_id, path, cache)


@action("downvote_answer")
async def downvote_answer(
    db: AsyncSession,
    answer_id: uuid.UUID,
    user_id: uuid.UUID,
    path: Optional[str] = None,
    cache: Optional[PageCache] = None,
) -> VoteTransition:
    return await _vote_on_answer(db, VoteDirection.down, answer_id, user_id, path, cache)


@action("delete_answer")
async def delete_answer(
    db: AsyncSession,
    answer_id: uuid.UUID,
    user_id: uuid.UUID,
    path: Optional[str] = None,
    cache: Optional[PageCache] = None,
) -> None:
    answer = await _load_answer(db, answer_id)
    if answer.author_id != user_id:
        raise PermissionDeniedError("Only the author can delete this answer")

    routes = await question_routes(db, answer.question_id, [answer.author_id])
    await purge_answers(db, [answer_id])
    db.expunge(answer)
    await db.commit()
    log.info("answer_deleted", answer_id=str(answer_id))

    await revalidate(cache, path, *routes)
