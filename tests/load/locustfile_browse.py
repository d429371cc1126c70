"""Locust load test: signed-out browsing of the public pages and read API.

Exercises the page cache (repeat renders of / , /community, /tags are served
from Redis) and the paginated JSON listings. Question detail pages are never
cached, so they measure the full read path including the view counter.

Run command:
    locust -f tests/load/locustfile_browse.py \\
      --host http://localhost:8000 \\
      --users 50 --spawn-rate 10 --run-time 60s \\
      --headless --only-summary --csv=results/browse

Prerequisites:
    1. Start the stack (Postgres, Redis, API)
    2. Seed sample data: cd api && python -m fixtures.seed_fixtures
    3. mkdir -p results/
"""

import random

from locust import HttpUser, between, task

SEARCH_TERMS = ["python", "react", "error", "docker", "async", "sql", "css"]
QUESTION_FILTERS = ["newest", "frequent", "unanswered"]
USER_FILTERS = ["new_users", "old_users", "top_contributors"]


class BrowsingUser(HttpUser):
    """A signed-out visitor paging through questions, tags and members."""

    wait_time = between(0.5, 2)

    def on_start(self) -> None:
        self.question_ids: list[str] = []
        self.tag_ids: list[str] = []
        resp = self.client.get("/api/v1/questions", params={"page_size": 50})
        if resp.status_code == 200:
            self.question_ids = [q["id"] for q in resp.json()["items"]]
        resp = self.client.get("/api/v1/tags", params={"page_size": 50})
        if resp.status_code == 200:
            self.tag_ids = [t["id"] for t in resp.json()["items"]]

    @task(5)
    def home(self) -> None:
        self.client.get(
            "/",
            params={"filter": random.choice(QUESTION_FILTERS), "page": random.randint(1, 3)},
            name="/ [filter,page]",
        )

    @task(2)
    def search_home(self) -> None:
        self.client.get("/", params={"q": random.choice(SEARCH_TERMS)}, name="/ [q]")

    @task(3)
    def question_page(self) -> None:
        if not self.question_ids:
            return
        self.client.get(
            f"/question/{random.choice(self.question_ids)}", name="/question/:id"
        )

    @task(2)
    def community(self) -> None:
        self.client.get(
            "/community", params={"filter": random.choice(USER_FILTERS)}, name="/community"
        )

    @task(2)
    def tags(self) -> None:
        self.client.get("/tags", name="/tags")
        if self.tag_ids:
            self.client.get(f"/tags/{random.choice(self.tag_ids)}", name="/tags/:id")

    @task(1)
    def api_listing(self) -> None:
        self.client.get(
            "/api/v1/questions",
            params={"q": random.choice(SEARCH_TERMS)},
            name="/api/v1/questions [q]",
        )
