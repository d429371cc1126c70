"""User actions: community listing, profiles, and identity-provider sync.

Users are created, updated and deleted only through the identity provider's
webhook; clerk_id is the key shared between the two systems.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from overflow.exceptions import NotFoundError
from overflow.models.answer import Answer, answer_downvotes, answer_upvotes
from overflow.models.interaction import Interaction, interaction_tags
from overflow.models.question import Question, question_downvotes, question_upvotes
from overflow.models.user import User
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
from overflow.models.tag import question_tags
from overflow.services.questions import purge_answers, purge_question
from overflow.services.text_search import matches_any

log = structlog.get_logger(__name__)

# Profile fields the identity provider may set
SYNCED_FIELDS = ("name", "username", "email", "picture")

MAX_USERNAME_LENGTH = 100


class UserFilter(str, enum.Enum):
    new_users = "new_users"
    old_users = "old_users"
    top_contributors = "top_contributors"


@dataclass(frozen=True)
class UserInfo:
    user: User
    total_questions: int
    total_answers: int


async def _load_by_clerk_id(db: AsyncSession, clerk_id: str) -> User:
    result = await db.execute(select(User).where(User.clerk_id == clerk_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


@action("get_all_users")
async def get_all_users(
    db: AsyncSession,
    search_query: Optional[str] = None,
    filter: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> PageResult[User]:
    """Community listing.

    - search_query: case-insensitive substring of name or username
    - filter: new_users (default) | old_users | top_contributors
    """
    skip = skip_amount(page, page_size)

    conditions = []
    if search_query:
        conditions.append(matches_any(search_query, User.name, User.username))

    if filter == UserFilter.old_users:
        order_by = [User.joined_at.asc()]
    elif filter == UserFilter.top_contributors:
        order_by = [User.reputation.desc(), User.joined_at.desc()]
    else:
        order_by = [User.joined_at.desc()]

    total = await db.scalar(select(func.count()).select_from(User).where(*conditions))
    result = await db.execute(
        select(User).where(*conditions).order_by(*order_by).offset(skip).limit(page_size)
    )
    users = list(result.scalars().all())
    return PageResult(users, has_next(total, skip, len(users)), total)


@action("get_user_by_clerk_id")
async def get_user_by_clerk_id(db: AsyncSession, clerk_id: str) -> User:
    return await _load_by_clerk_id(db, clerk_id)


@action("get_user_info")
async def get_user_info(db: AsyncSession, clerk_id: str) -> UserInfo:
    user = await _load_by_clerk_id(db, clerk_id)
    total_questions = await db.scalar(
        select(func.count()).select_from(Question).where(Question.author_id == user.id)
    )
    total_answers = await db.scalar(
        select(func.count()).select_from(Answer).where(Answer.author_id == user.id)
    )
    return UserInfo(user=user, total_questions=total_questions, total_answers=total_answers)


@action("get_user_questions")
async def get_user_questions(
    db: AsyncSession,
    user_id: uuid.UUID,
    page: int = 1,
    page_size: int = 10,
) -> PageResult[Question]:
    """A user's questions, most viewed first."""
    skip = skip_amount(page, page_size)
    total = await db.scalar(
        select(func.count()).select_from(Question).where(Question.author_id == user_id)
    )
    result = await db.execute(
        select(Question)
        .where(Question.author_id == user_id)
        .options(selectinload(Question.tags), selectinload(Question.author))
        .order_by(Question.views.desc(), Question.created_at.desc())
        .offset(skip)
        .limit(page_size)
    )
    questions = list(result.scalars().all())
    return PageResult(questions, has_next(total, skip, len(questions)), total)


@action("get_user_answers")
async def get_user_answers(
    db: AsyncSession,
    user_id: uuid.UUID,
    page: int = 1,
    page_size: int = 10,
) -> PageResult[Answer]:
    """A user's answers, most upvoted first."""
    skip = skip_amount(page, page_size)
    upvote_count = (
        select(func.count())
        .select_from(answer_upvotes)
        .where(answer_upvotes.c.answer_id == Answer.id)
        .correlate(Answer)
        .scalar_subquery()
    )
    total = await db.scalar(
        select(func.count()).select_from(Answer).where(Answer.author_id == user_id)
    )
    result = await db.execute(
        select(Answer)
        .where(Answer.author_id == user_id)
        .options(selectinload(Answer.question), selectinload(Answer.author))
        .order_by(upvote_count.desc(), Answer.created_at.desc())
        .offset(skip)
        .limit(page_size)
    )
    answers = list(result.scalars().all())
    return PageResult(answers, has_next(total, skip, len(answers)), total)


# ---------------------------------------------------------------------------
# Identity provider sync
# ---------------------------------------------------------------------------


async def unique_username(
    db: AsyncSession,
    username: str,
    clerk_id: str,
    user_id: Optional[uuid.UUID] = None,
) -> str:
    """Return username, or username suffixed with clerk_id when another user holds it.

    Providers may omit usernames, in which case the email's local part is
    used and "john@a.com" / "john@b.com" would collide.
    """
    taken = select(User.id).where(User.username == username)
    if user_id is not None:
        taken = taken.where(User.id != user_id)
    if await db.scalar(taken) is None:
        return username
    suffix = f"-{clerk_id}"
    return username[: MAX_USERNAME_LENGTH - len(suffix)] + suffix


@action("create_user")
async def create_user(
    db: AsyncSession,
    clerk_id: str,
    cache: Optional[PageCache] = None,
    **fields: Any,
) -> User:
    fields = {k: v for k, v in fields.items() if k in SYNCED_FIELDS}
    fields["username"] = await unique_username(db, fields.get("username") or clerk_id, clerk_id)
    fields.setdefault("name", fields["username"])
    user = User(clerk_id=clerk_id, **fields)
    db.add(user)
    await db.commit()
    log.info("user_created", user_id=str(user.id), clerk_id=clerk_id)

    await revalidate(cache, COMMUNITY_ROUTE)
    return user


@action("update_user")
async def update_user(
    db: AsyncSession,
    clerk_id: str,
    update_data: dict[str, Any],
    path: Optional[str] = None,
    cache: Optional[PageCache] = None,
) -> User:
    user = await _load_by_clerk_id(db, clerk_id)
    for field, value in update_data.items():
        if field in SYNCED_FIELDS or field in ("bio", "location", "portfolio_website"):
            if field == "username" and value != user.username:
                value = await unique_username(db, value, clerk_id, user_id=user.id)
            setattr(user, field, value)
    await db.commit()
    log.info("user_updated", user_id=str(user.id), fields=sorted(update_data))

    # Names and avatars also show on question cards
    await revalidate(cache, path, profile_route(clerk_id), COMMUNITY_ROUTE, HOME_ROUTE)
    return user


@action("delete_user")
async def delete_user(db: AsyncSession, clerk_id: str, cache: Optional[PageCache] = None) -> None:
    """Delete a user and all content they authored.

    Their questions are removed with the full question cascade; their answers
    on other questions, their votes and their interactions follow.
    """
    user = await _load_by_clerk_id(db, clerk_id)

    question_ids = (
        await db.execute(select(Question.id).where(Question.author_id == user.id))
    ).scalars().all()
    tag_ids = (
        await db.execute(
            select(question_tags.c.tag_id)
            .where(question_tags.c.question_id.in_(question_ids))
            .distinct()
        )
    ).scalars().all()
    for question_id in question_ids:
        await purge_question(db, question_id)

    answer_ids = (
        await db.execute(select(Answer.id).where(Answer.author_id == user.id))
    ).scalars().all()
    if answer_ids:
        await purge_answers(db, list(answer_ids))

    for table in (question_upvotes, question_downvotes, answer_upvotes, answer_downvotes):
        await db.execute(delete(table).where(table.c.user_id == user.id))

    interaction_ids = select(Interaction.id).where(Interaction.user_id == user.id)
    await db.execute(
        delete(interaction_tags).where(interaction_tags.c.interaction_id.in_(interaction_ids))
    )
    await db.execute(
        delete(Interaction)
        .where(Interaction.user_id == user.id)
        .execution_options(synchronize_session=False)
    )

    await db.execute(
        delete(User).where(User.id == user.id).execution_options(synchronize_session=False)
    )
    db.expunge(user)
    await db.commit()
    log.info(
        "user_deleted",
        clerk_id=clerk_id,
        questions_removed=len(question_ids),
        answers_removed=len(answer_ids),
    )

    await revalidate(
        cache,
        profile_route(clerk_id),
        COMMUNITY_ROUTE,
        HOME_ROUTE,
        TAGS_ROUTE,
        *(tag_route(tag_id) for tag_id in tag_ids),
    )


async def upsert_user(
    db: AsyncSession,
    clerk_id: str,
    cache: Optional[PageCache] = None,
    **fields: Any,
) -> User:
    """Create the user, or update the synced fields when the clerk_id is already known."""
    result = await db.execute(select(User).where(User.clerk_id == clerk_id))
    if result.scalar_one_or_none() is None:
        return await create_user(db, clerk_id, cache=cache, **fields)
    return await update_user(db, clerk_id, fields, cache=cache)
