"""Question actions: listing, search, creation, voting, editing, deletion, recommendation.

Each mutating action runs in the request's session and commits once, after
every write it performs. A failure at any step rolls back the whole action
(tags, links, interaction and reputation included), then the error is logged
and re-raised. Affected pages are revalidated only after a successful commit.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

import structlog
from sqlalchemy import delete, exists, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from overflow.exceptions import NotFoundError, PermissionDeniedError
from overflow.metrics import questions_created
from overflow.models.answer import Answer, answer_downvotes, answer_upvotes
from overflow.models.interaction import Interaction, InteractionAction, interaction_tags
from overflow.models.question import Question, question_downvotes, question_upvotes
from overflow.models.tag import question_tags
from overflow.models.user import User
from overflow.services import reputation
from overflow.services.actions import action
from overflow.services.page_cache import (
    COMMUNITY_ROUTE,
    HOME_ROUTE,
    TAGS_ROUTE,
    PageCache,
    profile_route,
    revalidate,
    tag_route,
)
from overflow.services.pagination import PageResult, has_next, skip_amount
from overflow.services.tags import dedupe_tag_names, get_or_create_tag
from overflow.services.text_search import matches_any
from overflow.services.voting import (
    VoteDirection,
    VoteState,
    VoteTables,
    VoteTransition,
    apply_vote,
    current_vote_state,
    lock_post,
    vote_counts,
)

log = structlog.get_logger(__name__)

QUESTION_VOTES = VoteTables(
    target="question",
    upvotes=question_upvotes,
    downvotes=question_downvotes,
    post_column="question_id",
)


class QuestionFilter(str, enum.Enum):
    newest = "newest"
    recommended = "recommended"
    frequent = "frequent"
    unanswered = "unanswered"


@dataclass(frozen=True)
class QuestionStats:
    upvotes: int = 0
    downvotes: int = 0
    answers: int = 0


def _with_author_and_tags(stmt):
    return stmt.options(selectinload(Question.tags), selectinload(Question.author))


async def _paginate_questions(
    db: AsyncSession,
    conditions: list,
    order_by: list,
    page: int,
    page_size: int,
) -> PageResult[Question]:
    skip = skip_amount(page, page_size)
    total = await db.scalar(select(func.count()).select_from(Question).where(*conditions))
    result = await db.execute(
        _with_author_and_tags(select(Question))
        .where(*conditions)
        .order_by(*order_by)
        .offset(skip)
        .limit(page_size)
    )
    questions = list(result.scalars().all())
    return PageResult(questions, has_next(total, skip, len(questions)), total)


async def _load_question(db: AsyncSession, question_id: uuid.UUID) -> Question:
    question = await db.get(Question, question_id)
    if question is None:
        raise NotFoundError("Question not found")
    return question


async def _question_tag_ids(db: AsyncSession, question_id: uuid.UUID) -> list[uuid.UUID]:
    result = await db.execute(
        select(question_tags.c.tag_id).where(question_tags.c.question_id == question_id)
    )
    return list(result.scalars().all())


async def question_routes(
    db: AsyncSession,
    question_id: uuid.UUID,
    user_ids: Iterable[uuid.UUID] = (),
) -> list[str]:
    """Cached routes that render this question: the listings, its tag pages and
    the profiles of its author and of user_ids.
    """
    tag_ids = await _question_tag_ids(db, question_id)
    author_id = await db.scalar(select(Question.author_id).where(Question.id == question_id))
    result = await db.execute(
        select(User.clerk_id).where(User.id.in_([author_id, *user_ids]))
    )
    return [
        HOME_ROUTE,
        TAGS_ROUTE,
        *(tag_route(tag_id) for tag_id in tag_ids),
        *(profile_route(clerk_id) for clerk_id in result.scalars().all()),
    ]


async def record_interaction(
    db: AsyncSession,
    user_id: uuid.UUID,
    action_name: InteractionAction,
    question_id: Optional[uuid.UUID],
    tag_ids: list[uuid.UUID],
    answer_id: Optional[uuid.UUID] = None,
) -> Interaction:
    """Append an interaction row and its tag links (caller commits)."""
    interaction = Interaction(
        user_id=user_id,
        action=action_name.value,
        question_id=question_id,
        answer_id=answer_id,
    )
    db.add(interaction)
    await db.flush()
    if tag_ids:
        await db.execute(
            insert(interaction_tags),
            [{"interaction_id": interaction.id, "tag_id": tag_id} for tag_id in tag_ids],
        )
    return interaction


async def question_stats(
    db: AsyncSession, question_ids: list[uuid.UUID]
) -> dict[uuid.UUID, QuestionStats]:
    """Vote and answer counts for a page of questions, in three grouped queries."""
    if not question_ids:
        return {}
    votes = await vote_counts(db, QUESTION_VOTES, question_ids)
    result = await db.execute(
        select(Answer.question_id, func.count())
        .where(Answer.question_id.in_(question_ids))
        .group_by(Answer.question_id)
    )
    answers = dict(result.all())
    return {
        question_id: QuestionStats(
            upvotes=votes[question_id][0],
            downvotes=votes[question_id][1],
            answers=answers.get(question_id, 0),
        )
        for question_id in question_ids
    }


# ---------------------------------------------------------------------------
# Listing and search
# ---------------------------------------------------------------------------


@action("get_questions")
async def get_questions(
    db: AsyncSession,
    search_query: Optional[str] = None,
    filter: Optional[str] = None,
    page: int = 1,
    page_size: int = 10,
) -> PageResult[Question]:
    """List questions, optionally searched and filtered.

    - search_query: case-insensitive substring of title or content
    - filter: newest (default) | frequent (most viewed) | unanswered
    """
    conditions = []
    if search_query:
        conditions.append(matches_any(search_query, Question.title, Question.content))

    order_by = [Question.created_at.desc()]
    if filter == QuestionFilter.frequent:
        order_by = [Question.views.desc(), Question.created_at.desc()]
    elif filter == QuestionFilter.unanswered:
        conditions.append(~exists().where(Answer.question_id == Question.id))

    return await _paginate_questions(db, conditions, order_by, page, page_size)


@action("get_question_by_id")
async def get_question_by_id(db: AsyncSession, question_id: uuid.UUID) -> Question:
    result = await db.execute(
        _with_author_and_tags(select(Question))
        .where(Question.id == question_id)
        .execution_options(populate_existing=True)
    )
    question = result.scalar_one_or_none()
    if question is None:
        raise NotFoundError("Question not found")
    return question


@action("get_hot_questions")
async def get_hot_questions(db: AsyncSession, limit: int = 5) -> list[Question]:
    """Most viewed questions, ties broken by upvote count."""
    upvote_count = (
        select(func.count())
        .select_from(question_upvotes)
        .where(question_upvotes.c.question_id == Question.id)
        .correlate(Question)
        .scalar_subquery()
    )
    result = await db.execute(
        _with_author_and_tags(select(Question))
        .order_by(Question.views.desc(), upvote_count.desc(), Question.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


@action("get_recommended_questions")
async def get_recommended_questions(
    db: AsyncSession,
    clerk_id: str,
    page: int = 1,
    page_size: int = 20,
    search_query: Optional[str] = None,
) -> PageResult[Question]:
    """Questions by other users sharing a tag with the user's interaction history.

    The tag signal is the distinct set of tags attached to every interaction
    the user has recorded (asking, viewing, answering). A user with no tagged
    interactions gets an empty page.
    """
    result = await db.execute(select(User).where(User.clerk_id == clerk_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")

    tag_result = await db.execute(
        select(interaction_tags.c.tag_id)
        .join(Interaction, Interaction.id == interaction_tags.c.interaction_id)
        .where(Interaction.user_id == user.id)
        .distinct()
    )
    tag_ids = list(tag_result.scalars().all())
    if not tag_ids:
        return PageResult([], False, 0)

    conditions = [
        Question.id.in_(
            select(question_tags.c.question_id).where(question_tags.c.tag_id.in_(tag_ids))
        ),
        Question.author_id != user.id,
    ]
    if search_query:
        conditions.append(matches_any(search_query, Question.title, Question.content))

    return await _paginate_questions(
        db, conditions, [Question.created_at.desc()], page, page_size
    )


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


@action("create_question")
async def create_question(
    db: AsyncSession,
    title: str,
    content: str,
    author_id: uuid.UUID,
    tags: list[str],
    path: Optional[str] = None,
    cache: Optional[PageCache] = None,
) -> Question:
    """Create a question with its tags, log the interaction and reward the author.

    Tags are matched case-insensitively; unknown tags are created with the
    spelling given here.
    """
    question = Question(title=title, content=content, author_id=author_id)
    db.add(question)
    # Flush to get question.id before inserting tag associations
    await db.flush()

    tag_ids: list[uuid.UUID] = []
    for name in dedupe_tag_names(tags):
        tag = await get_or_create_tag(db, name)
        tag_ids.append(tag.id)

    if tag_ids:
        await db.execute(
            insert(question_tags),
            [{"question_id": question.id, "tag_id": tag_id} for tag_id in tag_ids],
        )

    await record_interaction(
        db, author_id, InteractionAction.ask_question, question.id, tag_ids
    )
    await reputation.adjust_reputation(db, author_id, reputation.ASK_QUESTION)
    routes = await question_routes(db, question.id)

    await db.commit()
    questions_created.inc()
    log.info("question_created", question_id=str(question.id), tag_count=len(tag_ids))

    # Reputation changed, so the community listing too
    await revalidate(cache, path, *routes, COMMUNITY_ROUTE)
    return question


@action("view_question")
async def view_question(
    db: AsyncSession,
    question_id: uuid.UUID,
    user_id: Optional[uuid.UUID] = None,
) -> None:
    """Count a view; signed-in viewers also get a view interaction with the question's tags."""
    result = await db.execute(
        update(Question)
        .where(Question.id == question_id)
        .values(views=Question.views + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError("Question not found")

    if user_id is not None:
        tag_ids = await _question_tag_ids(db, question_id)
        await record_interaction(
            db, user_id, InteractionAction.view_question, question_id, tag_ids
        )

    await db.commit()


async def _vote_on_question(
    db: AsyncSession,
    direction: VoteDirection,
    question_id: uuid.UUID,
    user_id: uuid.UUID,
    has_upvoted: Optional[bool],
    has_downvoted: Optional[bool],
    path: Optional[str],
    cache: Optional[PageCache],
) -> VoteTransition:
    question = await lock_post(db, Question, question_id, "Question not found")
    if question.author_id == user_id:
        raise PermissionDeniedError("Cannot vote on your own question")

    if has_upvoted is not None or has_downvoted is not None:
        stored = await current_vote_state(db, QUESTION_VOTES, question_id, user_id)
        claimed = (
            VoteState.up if has_upvoted else VoteState.down if has_downvoted else VoteState.none
        )
        if claimed is not stored:
            # Client view is stale; the stored state decides the transition
            log.warning(
                "vote_state_mismatch",
                question_id=str(question_id),
                claimed=claimed.value,
                stored=stored.value,
            )

    transition = await apply_vote(
        db, QUESTION_VOTES, question_id, question.author_id, user_id, direction
    )
    routes = await question_routes(db, question_id, [user_id])
    await db.commit()
    log.info(
        "question_voted",
        question_id=str(question_id),
        direction=direction.value,
        transition=transition.kind,
        new_state=transition.new_state.value,
    )

    await revalidate(cache, path, *routes, COMMUNITY_ROUTE)
    return transition


@action("upvote_question")
async def upvote_question(
    db: AsyncSession,
    question_id: uuid.UUID,
    user_id: uuid.UUID,
    has_upvoted: Optional[bool] = None,
    has_downvoted: Optional[bool] = None,
    path: Optional[str] = None,
    cache: Optional[PageCache] = None,
) -> VoteTransition:
    return await _vote_on_question(
        db, VoteDirection.up, question_id, user_id, has_upvoted, has_downvoted, path, cache
    )


@action("downvote_question")
async def downvote_question(
    db: AsyncSession,
    question_id: uuid.UUID,
    user_id: uuid.UUID,
    has_upvoted: Optional[bool] = None,
    has_downvoted: Optional[bool] = None,
    path: Optional[str] = None,
    cache: Optional[PageCache] = None,
) -> VoteTransition:
    return await _vote_on_question(
        db, VoteDirection.down, question_id, user_id, has_upvoted, has_downvoted, path, cache
    )


@action("edit_question")
async def edit_question(
    db: AsyncSession,
    question_id: uuid.UUID,
    user_id: uuid.UUID,
    title: str,
    content: str,
    path: Optional[str] = None,
    cache: Optional[PageCache] = None,
) -> Question:
    question = await _load_question(db, question_id)
    if question.author_id != user_id:
        raise PermissionDeniedError("Only the author can edit this question")

    question.title = title
    question.content = content
    routes = await question_routes(db, question_id)
    await db.commit()
    log.info("question_edited", question_id=str(question_id))

    await revalidate(cache, path, *routes)
    return question


async def purge_answers(db: AsyncSession, answer_ids) -> None:
    """Delete answers with their vote rows and interactions (caller commits).

    answer_ids may be a list of ids or a SELECT producing them.
    """
    await db.execute(delete(answer_upvotes).where(answer_upvotes.c.answer_id.in_(answer_ids)))
    await db.execute(
        delete(answer_downvotes).where(answer_downvotes.c.answer_id.in_(answer_ids))
    )
    interaction_ids = select(Interaction.id).where(Interaction.answer_id.in_(answer_ids))
    await db.execute(
        delete(interaction_tags).where(interaction_tags.c.interaction_id.in_(interaction_ids))
    )
    await db.execute(
        delete(Interaction)
        .where(Interaction.answer_id.in_(answer_ids))
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(Answer)
        .where(Answer.id.in_(answer_ids))
        .execution_options(synchronize_session=False)
    )


async def purge_question(db: AsyncSession, question_id: uuid.UUID) -> None:
    """Delete a question and everything that references it (caller commits).

    Deletes in dependency order (no cascade FKs in schema):
      1. answers, with their vote rows and interactions
      2. interactions about the question (and their tag links)
      3. vote rows and tag links of the question
      4. the question itself
    """
    answer_ids = list(
        (await db.execute(select(Answer.id).where(Answer.question_id == question_id)))
        .scalars()
        .all()
    )
    if answer_ids:
        await purge_answers(db, answer_ids)

    interaction_ids = select(Interaction.id).where(Interaction.question_id == question_id)
    await db.execute(
        delete(interaction_tags).where(interaction_tags.c.interaction_id.in_(interaction_ids))
    )
    await db.execute(
        delete(Interaction)
        .where(Interaction.question_id == question_id)
        .execution_options(synchronize_session=False)
    )

    await db.execute(delete(question_upvotes).where(question_upvotes.c.question_id == question_id))
    await db.execute(
        delete(question_downvotes).where(question_downvotes.c.question_id == question_id)
    )
    await db.execute(delete(question_tags).where(question_tags.c.question_id == question_id))
    await db.execute(
        delete(Question)
        .where(Question.id == question_id)
        .execution_options(synchronize_session=False)
    )


@action("delete_question")
async def delete_question(
    db: AsyncSession,
    question_id: uuid.UUID,
    user_id: uuid.UUID,
    path: Optional[str] = None,
    cache: Optional[PageCache] = None,
) -> None:
    question = await _load_question(db, question_id)
    if question.author_id != user_id:
        raise PermissionDeniedError("Only the author can delete this question")

    answerer_ids = (
        await db.execute(select(Answer.author_id).where(Answer.question_id == question_id))
    ).scalars().all()
    routes = await question_routes(db, question_id, answerer_ids)

    await purge_question(db, question_id)
    db.expunge(question)
    await db.commit()
    log.info("question_deleted", question_id=str(question_id))

    await revalidate(cache, path, *routes)
