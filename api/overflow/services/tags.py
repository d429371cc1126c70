"""Tag actions: normalization, case-insensitive lookup, listings and counts.

Tags are unique by lower(name); the first spelling used is the one stored.
"""

import enum
import re
import uuid
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from overflow.exceptions import NotFoundError
from overflow.models.question import Question
from overflow.models.tag import Tag, question_tags
from overflow.services.actions import action
from overflow.services.pagination import PageResult, has_next, skip_amount
from overflow.services.text_search import icontains, matches_any

log = structlog.get_logger(__name__)

MAX_TAG_LENGTH = 50

_WHITESPACE = re.compile(r"\s+")


class TagFilter(str, enum.Enum):
    popular = "popular"
    recent = "recent"
    name = "name"
    old = "old"


def normalize_tag_name(raw: str) -> str:
    """Normalize a tag to its display form.

    Strips and collapses whitespace and truncates to 50 characters. Case is
    preserved; matching against stored tags is case-insensitive.
    """
    return _WHITESPACE.sub(" ", raw.strip())[:MAX_TAG_LENGTH]


def dedupe_tag_names(raw_tags: list[str]) -> list[str]:
    """Normalize each tag, drop empties, and deduplicate case-insensitively.

    The first spelling encountered wins, so ["Rust", "rust"] -> ["Rust"].
    """
    seen: set[str] = set()
    result: list[str] = []
    for raw in raw_tags:
        name = normalize_tag_name(raw)
        key = name.lower()
        if name and key not in seen:
            seen.add(key)
            result.append(name)
    return result


async def find_tag_by_name(db: AsyncSession, name: str) -> Optional[Tag]:
    result = await db.execute(
        select(Tag).where(func.lower(Tag.name) == normalize_tag_name(name).lower())
    )
    return result.scalar_one_or_none()


async def get_or_create_tag(db: AsyncSession, name: str) -> Tag:
    """Find a tag case-insensitively, creating it with this spelling if absent.

    Runs in the caller's transaction. The unique index on lower(name) rejects
    a concurrent duplicate insert, which fails the caller's whole action.
    """
    tag = await find_tag_by_name(db, name)
    if tag is None:
        tag = Tag(name=normalize_tag_name(name))
        db.add(tag)
        await db.flush()  # Flush to get tag.id
        log.info("tag_created", tag_id=str(tag.id), name=tag.name)
    return tag


def _question_count():
    return (
        select(func.count())
        .select_from(question_tags)
        .where(question_tags.c.tag_id == Tag.id)
        .correlate(Tag)
        .scalar_subquery()
    )


@action("get_all_tags")
async def get_all_tags(
    db: AsyncSession,
    search_query: Optional[str] = None,
    filter: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> PageResult[tuple[Tag, int]]:
    """List tags with their question counts.

    Filters: popular (most questions first), recent (newest first),
    name (alphabetical), old (oldest first). Default is popular.
    """
    skip = skip_amount(page, page_size)
    question_count = _question_count().label("question_count")

    conditions = []
    if search_query:
        conditions.append(icontains(Tag.name, search_query))

    if filter == TagFilter.recent:
        order_by = [Tag.created_at.desc()]
    elif filter == TagFilter.name:
        order_by = [func.lower(Tag.name).asc()]
    elif filter == TagFilter.old:
        order_by = [Tag.created_at.asc()]
    else:
        order_by = [question_count.desc(), func.lower(Tag.name).asc()]

    total = await db.scalar(select(func.count()).select_from(Tag).where(*conditions))
    result = await db.execute(
        select(Tag, question_count)
        .where(*conditions)
        .order_by(*order_by)
        .offset(skip)
        .limit(page_size)
    )
    rows = [(row.Tag, row.question_count) for row in result.all()]

    return PageResult(rows, has_next(total, skip, len(rows)), total)


async def _load_tag(db: AsyncSession, tag_id: uuid.UUID) -> Tag:
    tag = await db.get(Tag, tag_id)
    if tag is None:
        raise NotFoundError("Tag not found")
    return tag


@action("get_tag_by_id")
async def get_tag_by_id(db: AsyncSession, tag_id: uuid.UUID) -> Tag:
    return await _load_tag(db, tag_id)


@action("get_questions_by_tag_id")
async def get_questions_by_tag_id(
    db: AsyncSession,
    tag_id: uuid.UUID,
    search_query: Optional[str] = None,
    page: int = 1,
    page_size: int = 10,
) -> tuple[Tag, PageResult[Question]]:
    """Return the tag and a page of its questions, newest first."""
    tag = await _load_tag(db, tag_id)

    skip = skip_amount(page, page_size)
    conditions = [
        Question.id.in_(
            select(question_tags.c.question_id).where(question_tags.c.tag_id == tag_id)
        )
    ]
    if search_query:
        conditions.append(matches_any(search_query, Question.title, Question.content))

    total = await db.scalar(select(func.count()).select_from(Question).where(*conditions))
    result = await db.execute(
        select(Question)
        .where(*conditions)
        .options(selectinload(Question.tags), selectinload(Question.author))
        .order_by(Question.created_at.desc())
        .offset(skip)
        .limit(page_size)
    )
    questions = list(result.scalars().all())

    return tag, PageResult(questions, has_next(total, skip, len(questions)), total)


@action("get_top_popular_tags")
async def get_top_popular_tags(db: AsyncSession, limit: int = 5) -> list[tuple[Tag, int]]:
    """Tags with the most questions, for the sidebar."""
    question_count = _question_count().label("question_count")
    result = await db.execute(
        select(Tag, question_count)
        .order_by(question_count.desc(), func.lower(Tag.name).asc())
        .limit(limit)
    )
    return [(row.Tag, row.question_count) for row in result.all()]
