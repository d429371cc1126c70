"""HTTP tests: access control, JSON API round trips, pages and the webhook."""

import base64
import json
import time

from sqlalchemy import select

from overflow.config import settings
from overflow.models.user import User
from overflow.services.webhooks import sign_payload

CONTENT = "A question body that is long enough to pass validation."
WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"api-webhook-test-key").decode()


async def _ask(client, headers, title="How do I paginate a query?", tags=("python",)):
    resp = await client.post(
        "/api/v1/questions",
        json={"title": title, "content": CONTENT, "tags": list(tags)},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


class TestAccessControl:
    async def test_protected_page_redirects_to_sign_in(self, client):
        resp = await client.get("/ask-question")
        assert resp.status_code == 307
        assert resp.headers["location"] == "/sign-in?redirect_url=/ask-question"

    async def test_protected_api_returns_401(self, client):
        resp = await client.get("/api/v1/answers/whatever/votes")
        assert resp.status_code == 401

    async def test_writes_on_public_paths_still_need_a_session(self, client):
        resp = await client.post(
            "/api/v1/questions", json={"title": "Anonymous", "content": CONTENT, "tags": ["x"]}
        )
        assert resp.status_code == 401

    async def test_sign_in_page_is_not_redirected(self, client):
        resp = await client.get("/sign-in")
        assert resp.status_code != 307

    async def test_invalid_token_treated_as_signed_out(self, client):
        resp = await client.get("/ask-question", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 307

    async def test_session_without_local_profile_is_forbidden(self, client, auth_headers):
        resp = await client.post(
            "/api/v1/questions",
            json={"title": "Who am I really?", "content": CONTENT, "tags": ["x"]},
            headers=auth_headers("not_synced_yet"),
        )
        assert resp.status_code == 403


class TestQuestionsApi:
    async def test_ask_list_and_fetch(self, client, make_user, auth_headers, cache):
        await make_user(clerk_id="asker")
        created = await _ask(client, auth_headers("asker"), tags=["Python", "SQL"])
        assert sorted(t["name"] for t in created["tags"]) == ["Python", "SQL"]
        assert "/" in cache.revalidated

        listing = (await client.get("/api/v1/questions")).json()
        assert listing["total"] == 1
        assert listing["is_next"] is False
        assert listing["items"][0]["id"] == created["id"]

        detail = (await client.get(f"/api/v1/questions/{created['id']}")).json()
        assert detail["content"] == CONTENT
        assert detail["has_upvoted"] is False

    async def test_validation_rejects_too_many_tags(self, client, make_user, auth_headers):
        await make_user(clerk_id="asker")
        resp = await client.post(
            "/api/v1/questions",
            json={"title": "Too many tags", "content": CONTENT, "tags": ["a", "b", "c", "d"]},
            headers=auth_headers("asker"),
        )
        assert resp.status_code == 422

    async def test_vote_round_trip(self, client, make_user, auth_headers):
        await make_user(clerk_id="asker")
        await make_user(clerk_id="voter")
        question = await _ask(client, auth_headers("asker"))

        resp = await client.post(
            f"/api/v1/questions/{question['id']}/upvote",
            json={"has_upvoted": False, "has_downvoted": False},
            headers=auth_headers("voter"),
        )
        assert resp.status_code == 200
        assert resp.json() == {"state": "up", "transition": "add", "upvotes": 1, "downvotes": 0}

        resp = await client.post(
            f"/api/v1/questions/{question['id']}/downvote",
            json={"has_upvoted": True, "has_downvoted": False},
            headers=auth_headers("voter"),
        )
        assert resp.json() == {"state": "down", "transition": "swap", "upvotes": 0, "downvotes": 1}

        detail = (
            await client.get(f"/api/v1/questions/{question['id']}", headers=auth_headers("voter"))
        ).json()
        assert (detail["has_upvoted"], detail["has_downvoted"]) == (False, True)

    async def test_self_vote_forbidden(self, client, make_user, auth_headers):
        await make_user(clerk_id="asker")
        question = await _ask(client, auth_headers("asker"))
        resp = await client.post(
            f"/api/v1/questions/{question['id']}/upvote", json={}, headers=auth_headers("asker")
        )
        assert resp.status_code == 403

    async def test_only_author_can_delete(self, client, make_user, auth_headers):
        await make_user(clerk_id="asker")
        await make_user(clerk_id="stranger")
        question = await _ask(client, auth_headers("asker"))

        resp = await client.delete(
            f"/api/v1/questions/{question['id']}", headers=auth_headers("stranger")
        )
        assert resp.status_code == 403

        resp = await client.delete(
            f"/api/v1/questions/{question['id']}", headers=auth_headers("asker")
        )
        assert resp.status_code == 200
        assert (await client.get(f"/api/v1/questions/{question['id']}")).status_code == 404

    async def test_answers_round_trip(self, client, make_user, auth_headers):
        await make_user(clerk_id="asker")
        await make_user(clerk_id="helper")
        question = await _ask(client, auth_headers("asker"))

        resp = await client.post(
            f"/api/v1/questions/{question['id']}/answers",
            json={"content": "Use LIMIT and OFFSET, then compare the total count."},
            headers=auth_headers("helper"),
        )
        assert resp.status_code == 201
        answer = resp.json()

        resp = await client.post(
            f"/api/v1/answers/{answer['id']}/upvote", json={}, headers=auth_headers("asker")
        )
        assert resp.json()["upvotes"] == 1

        listing = (await client.get(f"/api/v1/questions/{question['id']}/answers")).json()
        assert [a["id"] for a in listing["items"]] == [answer["id"]]
        assert listing["items"][0]["upvotes"] == 1


class TestPages:
    async def test_empty_community_page(self, client):
        resp = await client.get("/community")
        assert resp.status_code == 200
        assert "<title>Community | Overflow</title>" in resp.text
        assert "No Users yet" in resp.text

    async def test_signed_out_pages_are_cached_until_revalidated(self, client, db, make_user, cache):
        assert "No Users yet" in (await client.get("/community")).text

        await make_user(name="Late Joiner")
        assert "No Users yet" in (await client.get("/community")).text

        await cache.revalidate_path("/community")
        resp = await client.get("/community")
        assert "Late Joiner" in resp.text

    async def test_question_page_renders_markdown_and_counts_views(
        self, client, db, make_user, auth_headers
    ):
        await make_user(clerk_id="asker")
        question = await _ask(client, auth_headers("asker"))

        resp = await client.get(f"/question/{question['id']}")
        assert resp.status_code == 200
        assert f"<p>{CONTENT}</p>" in resp.text

        detail = (await client.get(f"/api/v1/questions/{question['id']}")).json()
        assert detail["views"] == 1

    async def test_question_page_strips_raw_html(self, client, make_user, auth_headers):
        await make_user(clerk_id="asker")
        resp = await client.post(
            "/api/v1/questions",
            json={
                "title": "Harmless looking question",
                "content": "<script>alert('pwned')</script> and then **bold** text.",
                "tags": ["html"],
            },
            headers=auth_headers("asker"),
        )
        question_id = resp.json()["id"]

        page = await client.get(f"/question/{question_id}")
        assert "<script>alert" not in page.text
        assert "<strong>bold</strong>" in page.text

    async def test_unknown_question_page_is_404(self, client):
        resp = await client.get("/question/00000000-0000-0000-0000-000000000000")
        assert resp.status_code == 404
        assert "Not found" in resp.text

    async def test_home_and_tags_pages(self, client, make_user, auth_headers):
        await make_user(clerk_id="asker")
        await _ask(client, auth_headers("asker"), title="Tagged with docker", tags=["docker"])

        home = await client.get("/", params={"filter": "newest"})
        assert "Tagged with docker" in home.text

        tags = await client.get("/tags")
        assert "docker" in tags.text


class TestWebhook:
    def _signed(self, event: dict) -> tuple[bytes, dict[str, str]]:
        body = json.dumps(event).encode()
        timestamp = int(time.time())
        headers = {
            "svix-id": "msg_test",
            "svix-timestamp": str(timestamp),
            "svix-signature": sign_payload(WEBHOOK_SECRET, "msg_test", timestamp, body),
            "content-type": "application/json",
        }
        return body, headers

    async def test_user_lifecycle(self, client, db, monkeypatch):
        monkeypatch.setattr(settings, "webhook_signing_secret", WEBHOOK_SECRET)
        data = {
            "id": "user_hook",
            "first_name": "Hook",
            "last_name": "User",
            "username": "hook",
            "email_addresses": [{"email_address": "hook@example.com"}],
        }

        body, headers = self._signed({"type": "user.created", "data": data})
        resp = await client.post("/api/webhook", content=body, headers=headers)
        assert resp.status_code == 200

        body, headers = self._signed({"type": "user.updated", "data": {**data, "first_name": "Renamed"}})
        resp = await client.post("/api/webhook", content=body, headers=headers)
        assert resp.status_code == 200
        name = await db.scalar(select(User.name).where(User.clerk_id == "user_hook"))
        assert name == "Renamed User"

        body, headers = self._signed({"type": "user.deleted", "data": {"id": "user_hook"}})
        resp = await client.post("/api/webhook", content=body, headers=headers)
        assert resp.status_code == 200
        assert await db.scalar(select(User.id).where(User.clerk_id == "user_hook")) is None

    async def test_new_user_shows_on_cached_community_page(self, client, monkeypatch):
        monkeypatch.setattr(settings, "webhook_signing_secret", WEBHOOK_SECRET)
        assert "No Users yet" in (await client.get("/community")).text

        body, headers = self._signed(
            {"type": "user.created", "data": {"id": "user_new", "first_name": "Newcomer"}}
        )
        await client.post("/api/webhook", content=body, headers=headers)

        assert "Newcomer" in (await client.get("/community")).text

    async def test_same_email_local_part_creates_two_users(self, client, db, monkeypatch):
        monkeypatch.setattr(settings, "webhook_signing_secret", WEBHOOK_SECRET)
        for clerk_id, email in (("user_a", "john@a.com"), ("user_b", "john@b.com")):
            body, headers = self._signed(
                {
                    "type": "user.created",
                    "data": {"id": clerk_id, "email_addresses": [{"email_address": email}]},
                }
            )
            resp = await client.post("/api/webhook", content=body, headers=headers)
            assert resp.status_code == 200

        usernames = (await db.execute(select(User.username).order_by(User.username))).scalars().all()
        assert usernames == ["john", "john-user_b"]

    async def test_signed_garbage_is_a_bad_request(self, client, monkeypatch):
        monkeypatch.setattr(settings, "webhook_signing_secret", WEBHOOK_SECRET)
        body = b"not json at all"
        timestamp = int(time.time())
        headers = {
            "svix-id": "msg_test",
            "svix-timestamp": str(timestamp),
            "svix-signature": sign_payload(WEBHOOK_SECRET, "msg_test", timestamp, body),
        }
        resp = await client.post("/api/webhook", content=body, headers=headers)
        assert resp.status_code == 400

    async def test_user_event_without_id_is_a_bad_request(self, client, monkeypatch):
        monkeypatch.setattr(settings, "webhook_signing_secret", WEBHOOK_SECRET)
        body, headers = self._signed({"type": "user.deleted", "data": {}})
        resp = await client.post("/api/webhook", content=body, headers=headers)
        assert resp.status_code == 400

    async def test_bad_signature_rejected(self, client, monkeypatch):
        monkeypatch.setattr(settings, "webhook_signing_secret", WEBHOOK_SECRET)
        body, headers = self._signed({"type": "user.created", "data": {"id": "x"}})
        headers["svix-signature"] = "v1,Zm9yZ2Vk"
        resp = await client.post("/api/webhook", content=body, headers=headers)
        assert resp.status_code == 400


class TestMutationsRefreshCachedPages:
    async def test_new_tag_shows_on_cached_tags_page(self, client, make_user, auth_headers):
        await make_user(clerk_id="asker")
        assert "brandnewtag" not in (await client.get("/tags")).text

        await _ask(client, auth_headers("asker"), tags=["brandnewtag"])
        assert "brandnewtag" in (await client.get("/tags")).text

    async def test_deleted_question_leaves_cached_tag_page(self, client, make_user, auth_headers):
        await make_user(clerk_id="asker")
        question = await _ask(
            client, auth_headers("asker"), title="Short lived question", tags=["ephemeral"]
        )
        tag_id = question["tags"][0]["id"]
        assert "Short lived question" in (await client.get(f"/tags/{tag_id}")).text
        assert "Short lived question" in (await client.get("/profile/asker")).text

        await client.delete(f"/api/v1/questions/{question['id']}", headers=auth_headers("asker"))

        assert "Short lived question" not in (await client.get(f"/tags/{tag_id}")).text
        assert "Short lived question" not in (await client.get("/profile/asker")).text

    async def test_vote_refreshes_cached_home_page(self, client, make_user, auth_headers, cache):
        await make_user(clerk_id="asker")
        await make_user(clerk_id="voter")
        question = await _ask(client, auth_headers("asker"))
        await client.get("/")

        await client.post(
            f"/api/v1/questions/{question['id']}/upvote", json={}, headers=auth_headers("voter")
        )
        assert "/" in cache.revalidated
        assert await cache.get("/") is None
