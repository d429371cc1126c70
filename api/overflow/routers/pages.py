"""Server-rendered pages.

GET /                 -- question feed: search, filter, pagination
GET /community        -- community members
GET /question/{id}    -- question detail with answers (counts a view)
GET /tags             -- all tags
GET /tags/{id}        -- questions carrying a tag
GET /profile/{id}     -- a member's profile, keyed by clerk_id

Signed-out renders are served from the page cache; mutating actions
revalidate the routes they affect. Signed-in renders always hit the database
because they carry per-user state. The question page is never cached since
every request counts a view.
"""

import uuid
from typing import Awaitable, Callable, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse

from overflow.config import settings
from overflow.dependencies import Cache, DbSession, OptionalUser
from overflow.routers.answers import answer_response
from overflow.routers.questions import summarize
from overflow.routers.tags import tag_response
from overflow.rendering import render_page
from overflow.services import answers as answer_service
from overflow.services import questions as question_service
from overflow.services import tags as tag_service
from overflow.services import users as user_service
from overflow.services.answers import ANSWER_VOTES, AnswerSort
from overflow.services.page_cache import PageCache
from overflow.services.pagination import PageResult
from overflow.services.questions import QUESTION_VOTES, QuestionFilter
from overflow.services.tags import TagFilter
from overflow.services.users import UserFilter
from overflow.services.voting import vote_counts, voters

router = APIRouter(include_in_schema=False)


async def cached_page(
    request: Request,
    cache: PageCache,
    signed_in: bool,
    render: Callable[[], Awaitable[str]],
) -> HTMLResponse:
    if signed_in:
        return HTMLResponse(await render())

    path, query = request.url.path, request.url.query
    html = await cache.get(path, query)
    if html is None:
        html = await render()
        await cache.set(path, query, html)
    return HTMLResponse(html)


def pagination(page: int, result: PageResult) -> dict:
    return {"page": page, "is_next": result.is_next, "total": result.total}


@router.get("/", response_class=HTMLResponse)
async def home(
    request: Request,
    db: DbSession,
    cache: Cache,
    viewer: OptionalUser,
    q: Optional[str] = Query(default=None, max_length=200),
    filter: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
) -> HTMLResponse:
    async def render() -> str:
        if filter == QuestionFilter.recommended:
            if viewer is None:
                result = PageResult([], False, 0)
            else:
                result = await question_service.get_recommended_questions(
                    db,
                    clerk_id=viewer.clerk_id,
                    page=page,
                    page_size=settings.questions_page_size,
                    search_query=q,
                )
        else:
            result = await question_service.get_questions(
                db,
                search_query=q,
                filter=filter,
                page=page,
                page_size=settings.questions_page_size,
            )
        hot = await question_service.get_hot_questions(db)
        popular = await tag_service.get_top_popular_tags(db)
        return render_page(
            request,
            "home.html",
            {
                "page_title": f"Home | {settings.app_name}",
                "questions": await summarize(db, result.items),
                "hot_questions": hot,
                "popular_tags": [tag_response(tag, count) for tag, count in popular],
                "filters": [f.value for f in QuestionFilter],
                "q": q or "",
                "filter": filter,
                "viewer": viewer,
                **pagination(page, result),
            },
        )

    return await cached_page(request, cache, viewer is not None, render)


@router.get("/community", response_class=HTMLResponse)
async def community(
    request: Request,
    db: DbSession,
    cache: Cache,
    viewer: OptionalUser,
    q: Optional[str] = Query(default=None, max_length=200),
    filter: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
) -> HTMLResponse:
    async def render() -> str:
        result = await user_service.get_all_users(
            db,
            search_query=q,
            filter=filter,
            page=page,
            page_size=settings.users_page_size,
        )
        return render_page(
            request,
            "community.html",
            {
                "page_title": f"Community | {settings.app_name}",
                "users": result.items,
                "filters": [f.value for f in UserFilter],
                "q": q or "",
                "filter": filter,
                "viewer": viewer,
                **pagination(page, result),
            },
        )

    return await cached_page(request, cache, viewer is not None, render)


@router.get("/question/{question_id}", response_class=HTMLResponse)
async def question_detail(
    question_id: uuid.UUID,
    request: Request,
    db: DbSession,
    viewer: OptionalUser,
    filter: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
) -> HTMLResponse:
    await question_service.view_question(
        db, question_id, user_id=viewer.id if viewer is not None else None
    )
    question = await question_service.get_question_by_id(db, question_id)
    stats = (await question_service.question_stats(db, [question_id]))[question_id]
    upvoter_ids, downvoter_ids = await voters(db, QUESTION_VOTES, question_id)

    answers = await answer_service.get_answers(
        db,
        question_id,
        sort_by=filter,
        page=page,
        page_size=settings.answers_page_size,
    )
    counts = await vote_counts(db, ANSWER_VOTES, [a.id for a in answers.items])

    html = render_page(
        request,
        "question.html",
        {
            "page_title": f"{question.title} | {settings.app_name}",
            "question": question,
            "stats": stats,
            "has_upvoted": viewer is not None and viewer.id in upvoter_ids,
            "has_downvoted": viewer is not None and viewer.id in downvoter_ids,
            "answers": [answer_response(a, counts.get(a.id, (0, 0))) for a in answers.items],
            "filters": [s.value for s in AnswerSort],
            "filter": filter,
            "viewer": viewer,
            **pagination(page, answers),
        },
    )
    return HTMLResponse(html)


@router.get("/tags", response_class=HTMLResponse)
async def tags(
    request: Request,
    db: DbSession,
    cache: Cache,
    viewer: OptionalUser,
    q: Optional[str] = Query(default=None, max_length=100),
    filter: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
) -> HTMLResponse:
    async def render() -> str:
        result = await tag_service.get_all_tags(
            db,
            search_query=q,
            filter=filter,
            page=page,
            page_size=settings.tags_page_size,
        )
        return render_page(
            request,
            "tags.html",
            {
                "page_title": f"Tags | {settings.app_name}",
                "tags": [tag_response(tag, count) for tag, count in result.items],
                "filters": [f.value for f in TagFilter],
                "q": q or "",
                "filter": filter,
                "viewer": viewer,
                **pagination(page, result),
            },
        )

    return await cached_page(request, cache, viewer is not None, render)


@router.get("/tags/{tag_id}", response_class=HTMLResponse)
async def tag_detail(
    tag_id: uuid.UUID,
    request: Request,
    db: DbSession,
    cache: Cache,
    viewer: OptionalUser,
    q: Optional[str] = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
) -> HTMLResponse:
    async def render() -> str:
        tag, result = await tag_service.get_questions_by_tag_id(
            db,
            tag_id,
            search_query=q,
            page=page,
            page_size=settings.questions_page_size,
        )
        return render_page(
            request,
            "tag_detail.html",
            {
                "page_title": f"{tag.name} | {settings.app_name}",
                "tag": tag,
                "questions": await summarize(db, result.items),
                "q": q or "",
                "viewer": viewer,
                **pagination(page, result),
            },
        )

    return await cached_page(request, cache, viewer is not None, render)


@router.get("/profile/{clerk_id}", response_class=HTMLResponse)
async def profile(
    clerk_id: str,
    request: Request,
    db: DbSession,
    cache: Cache,
    viewer: OptionalUser,
    page: int = Query(default=1, ge=1),
) -> HTMLResponse:
    async def render() -> str:
        info = await user_service.get_user_info(db, clerk_id)
        questions = await user_service.get_user_questions(
            db, info.user.id, page=page, page_size=settings.questions_page_size
        )
        answers = await user_service.get_user_answers(
            db, info.user.id, page=1, page_size=settings.answers_page_size
        )
        counts = await vote_counts(db, ANSWER_VOTES, [a.id for a in answers.items])
        return render_page(
            request,
            "profile.html",
            {
                "page_title": f"{info.user.name} | {settings.app_name}",
                "info": info,
                "is_own_profile": viewer is not None and viewer.clerk_id == clerk_id,
                "questions": await summarize(db, questions.items),
                "answers": [
                    {"answer": a, "upvotes": counts.get(a.id, (0, 0))[0]}
                    for a in answers.items
                ],
                "viewer": viewer,
                **pagination(page, questions),
            },
        )

    return await cached_page(request, cache, viewer is not None, render)
