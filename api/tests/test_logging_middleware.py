"""Tests for request id propagation and metric path normalization."""

from overflow.middleware.logging_middleware import normalize_path


class TestNormalizePath:
    def test_uuid_segments_collapsed(self):
        path = "/api/v1/questions/0b5e8f1c-3f5a-4d2e-9c41-7a6d2f0e9b11/answers"
        assert normalize_path(path) == "/api/v1/questions/:id/answers"

    def test_profile_ids_collapsed(self):
        assert normalize_path("/profile/user_2abcXYZ") == "/profile/:id"
        assert normalize_path("/api/v1/users/user_2abcXYZ") == "/api/v1/users/:id"

    def test_static_paths_untouched(self):
        assert normalize_path("/community") == "/community"
        assert normalize_path("/api/v1/users") == "/api/v1/users"


async def test_request_id_echoed(client):
    resp = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"


async def test_request_id_generated_when_absent(client):
    resp = await client.get("/health")
    assert len(resp.headers["X-Request-ID"]) == 32
