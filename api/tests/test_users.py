"""Service-level tests for the community listing, profiles and identity sync."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from overflow.exceptions import NotFoundError
from overflow.models.answer import Answer
from overflow.models.question import Question, question_upvotes
from overflow.models.tag import Tag
from overflow.models.user import User
from overflow.services import answers as answer_service
from overflow.services import questions as question_service
from overflow.services import users as user_service

CONTENT = "A question body that is long enough to pass validation."


async def _count(db, table, *conditions) -> int:
    return await db.scalar(select(func.count()).select_from(table).where(*conditions))


@pytest.fixture
async def community(make_user):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    veteran = await make_user(name="Grace Hopper", username="grace", reputation=50, joined_at=base)
    middle = await make_user(
        name="Alan Turing", username="alan", reputation=500, joined_at=base + timedelta(days=30)
    )
    newest = await make_user(
        name="Ada Lovelace", username="ada", reputation=5, joined_at=base + timedelta(days=60)
    )
    return veteran, middle, newest


class TestGetAllUsers:
    async def test_default_is_newest_first(self, db, community):
        veteran, middle, newest = community
        result = await user_service.get_all_users(db)
        assert [u.id for u in result.items] == [newest.id, middle.id, veteran.id]

    async def test_old_users_filter(self, db, community):
        veteran, middle, newest = community
        result = await user_service.get_all_users(db, filter="old_users")
        assert [u.id for u in result.items] == [veteran.id, middle.id, newest.id]

    async def test_top_contributors_filter(self, db, community):
        veteran, middle, newest = community
        result = await user_service.get_all_users(db, filter="top_contributors")
        assert [u.id for u in result.items] == [middle.id, veteran.id, newest.id]

    async def test_search_matches_name_or_username(self, db, community):
        _, middle, newest = community
        by_name = await user_service.get_all_users(db, search_query="turing")
        assert [u.id for u in by_name.items] == [middle.id]

        by_username = await user_service.get_all_users(db, search_query="AD")
        assert [u.id for u in by_username.items] == [newest.id]

    async def test_pagination(self, db, community):
        result = await user_service.get_all_users(db, page=1, page_size=2)
        assert (len(result.items), result.is_next, result.total) == (2, True, 3)

    async def test_empty_community(self, db):
        result = await user_service.get_all_users(db)
        assert (result.items, result.is_next, result.total) == ([], False, 0)


async def test_get_user_info_counts_posts(db, make_user):
    author = await make_user(clerk_id="clerk_author")
    other = await make_user()
    question = await question_service.create_question(
        db, title="Counting my questions", content=CONTENT, author_id=author.id, tags=["meta"]
    )
    await answer_service.create_answer(
        db, question_id=question.id, author_id=author.id, content=CONTENT
    )
    await answer_service.create_answer(
        db, question_id=question.id, author_id=other.id, content=CONTENT
    )

    info = await user_service.get_user_info(db, "clerk_author")
    assert info.user.id == author.id
    assert (info.total_questions, info.total_answers) == (1, 1)


async def test_get_user_info_unknown_user(db):
    with pytest.raises(NotFoundError):
        await user_service.get_user_info(db, "nobody")


async def test_upsert_creates_then_updates(db, cache):
    created = await user_service.upsert_user(
        db, "clerk_1", name="First Name", username="first", email="first@example.com"
    )
    assert created.reputation == 0

    await user_service.upsert_user(
        db, "clerk_1", name="Renamed", username="first", email="first@example.com"
    )
    names = (await db.execute(select(User.name).where(User.clerk_id == "clerk_1"))).scalars().all()
    assert names == ["Renamed"]


async def test_update_user_ignores_unknown_fields_and_revalidates(db, make_user, cache):
    await make_user(clerk_id="clerk_2", name="Old")
    await user_service.update_user(
        db,
        "clerk_2",
        {"name": "New", "bio": "Writes Python", "reputation": 9999},
        path="/profile/clerk_2",
        cache=cache,
    )
    row = (
        await db.execute(
            select(User.name, User.bio, User.reputation).where(User.clerk_id == "clerk_2")
        )
    ).one()
    assert tuple(row) == ("New", "Writes Python", 0)
    assert cache.revalidated == ["/profile/clerk_2", "/community", "/"]


async def test_delete_user_removes_their_content(db, make_user):
    leaving = await make_user(clerk_id="leaving")
    staying = await make_user()
    own_question = await question_service.create_question(
        db, title="Soon to be deleted", content=CONTENT, author_id=leaving.id, tags=["bye"]
    )
    other_question = await question_service.create_question(
        db, title="This question stays", content=CONTENT, author_id=staying.id, tags=["hi"]
    )
    await answer_service.create_answer(
        db, question_id=other_question.id, author_id=leaving.id, content=CONTENT
    )
    await answer_service.create_answer(
        db, question_id=own_question.id, author_id=staying.id, content=CONTENT
    )
    await question_service.upvote_question(db, other_question.id, leaving.id)
    leaving_id, own_id, other_id = leaving.id, own_question.id, other_question.id

    await user_service.delete_user(db, "leaving")

    assert await _count(db, User, User.id == leaving_id) == 0
    assert await _count(db, Question, Question.id == own_id) == 0
    assert await _count(db, Question, Question.id == other_id) == 1
    assert await _count(db, Answer) == 0
    assert await _count(db, question_upvotes) == 0


class TestUserSync:
    async def test_created_user_appears_on_community_page(self, db, cache):
        await user_service.upsert_user(db, "clerk_new", cache=cache, name="New", username="new")
        assert cache.revalidated == ["/community"]

    async def test_colliding_username_gets_clerk_id_suffix(self, db):
        await user_service.create_user(db, "clerk_a", name="John A", username="john")
        second = await user_service.create_user(db, "clerk_b", name="John B", username="john")
        assert second.username == "john-clerk_b"

    async def test_missing_username_falls_back_to_clerk_id(self, db):
        user = await user_service.create_user(db, "clerk_c", name="Anonymous")
        assert user.username == "clerk_c"

    async def test_update_to_taken_username_is_suffixed(self, db, make_user):
        await make_user(clerk_id="clerk_d", username="taken")
        await make_user(clerk_id="clerk_e", username="free")
        await user_service.update_user(db, "clerk_e", {"username": "taken"})
        username = await db.scalar(select(User.username).where(User.clerk_id == "clerk_e"))
        assert username == "taken-clerk_e"

    async def test_keeping_own_username_is_not_a_collision(self, db, make_user):
        await make_user(clerk_id="clerk_f", username="mine")
        await user_service.update_user(db, "clerk_f", {"username": "mine", "name": "Me"})
        username = await db.scalar(select(User.username).where(User.clerk_id == "clerk_f"))
        assert username == "mine"

    async def test_delete_revalidates_listings_and_tag_pages(self, db, make_user, cache):
        leaving = await make_user(clerk_id="leaving")
        await question_service.create_question(
            db, title="Soon to be deleted", content=CONTENT, author_id=leaving.id, tags=["bye"]
        )
        tag_id = await db.scalar(select(Tag.id).where(Tag.name == "bye"))

        await user_service.delete_user(db, "leaving", cache=cache)

        assert set(cache.revalidated) == {
            "/profile/leaving",
            "/community",
            "/",
            "/tags",
            f"/tags/{tag_id}",
        }
