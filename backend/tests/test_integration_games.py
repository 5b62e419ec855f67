"""Integration tests for game sessions, leaderboard and profile endpoints."""
import pytest

from mismatched.core.config import settings
from mismatched.services.rate_limiter import RequestRateLimiter


def _start_game(client, headers):
    """Helper: start a game and return its session id."""
    resp = client.post("/api/games/start", headers=headers)
    assert resp.status_code == 200, f"Start failed: {resp.text}"
    return resp.json()["session_id"]


def _submit(client, headers, session_id, score=300, time_remaining=60, matches_found=3):
    return client.post(
        "/api/games",
        json={
            "gameId": session_id,
            "score": score,
            "timeRemaining": time_remaining,
            "matchesFound": matches_found,
        },
        headers=headers,
    )


class TestGameStart:
    """POST /api/games/start"""

    def test_start_game(self, client, make_user):
        _, headers = make_user()

        resp = client.post("/api/games/start", headers=headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["session_id"]
        assert data["duration_seconds"] == 90
        assert data["expires_at"].endswith("Z")

    def test_start_requires_auth(self, client):
        resp = client.post("/api/games/start")
        assert resp.status_code == 401

    def test_start_rejects_bad_token(self, client):
        resp = client.post("/api/games/start", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_unconfigured_jwt_secret_is_401(self, client, make_user, monkeypatch):
        _, headers = make_user()
        monkeypatch.setattr(settings, "JWT_SECRET_KEY", "")

        resp = client.post("/api/games/start", headers=headers)

        assert resp.status_code == 401
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    def test_too_many_active_sessions(self, client, make_user):
        _, headers = make_user()
        for _ in range(3):
            _start_game(client, headers)

        resp = client.post("/api/games/start", headers=headers)

        assert resp.status_code == 429
        assert resp.json()["error"] == "TOO_MANY_ACTIVE_SESSIONS"


class TestGameSubmit:
    """POST /api/games"""

    def test_submit_game(self, client, make_user, clock):
        user_id, headers = make_user()
        session_id = _start_game(client, headers)
        clock.advance(20)

        resp = _submit(client, headers, session_id, score=999999, time_remaining=90, matches_found=2)

        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["user_id"] == user_id
        assert data["score"] == 200
        assert data["time_remaining"] == 70
        assert data["bonus"] == 700
        assert data["total_points"] == 900
        assert data["matches_found"] == 2

    def test_session_cannot_be_reused(self, client, make_user, clock):
        _, headers = make_user()
        session_id = _start_game(client, headers)
        clock.advance(20)
        assert _submit(client, headers, session_id).status_code == 201
        clock.advance(10)

        resp = _submit(client, headers, session_id)

        assert resp.status_code == 400
        assert resp.json()["error"] == "INVALID_OR_EXPIRED_SESSION"

    def test_submit_requires_auth(self, client):
        resp = client.post("/api/games", json={"gameId": "x", "score": 1})
        assert resp.status_code == 401

    def test_missing_session(self, client, make_user):
        _, headers = make_user()

        resp = client.post("/api/games", json={"score": 100}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"] == "MISSING_SESSION"

        resp = client.post("/api/games", headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"] == "MISSING_SESSION"

    def test_ownership_mismatch(self, client, make_user, clock):
        _, owner_headers = make_user()
        _, other_headers = make_user()
        session_id = _start_game(client, owner_headers)
        clock.advance(20)

        resp = _submit(client, other_headers, session_id)

        assert resp.status_code == 403
        assert resp.json()["error"] == "SESSION_OWNERSHIP_MISMATCH"

    def test_too_fast(self, client, make_user, clock):
        _, headers = make_user()
        session_id = _start_game(client, headers)
        clock.advance(10)

        resp = _submit(client, headers, session_id)

        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "TOO_FAST"
        assert body["details"]["min_game_duration_seconds"] == 15

    def test_expired_session(self, client, make_user, clock):
        _, headers = make_user()
        session_id = _start_game(client, headers)
        clock.advance(151)

        resp = _submit(client, headers, session_id)

        assert resp.status_code == 400
        assert resp.json()["error"] == "SESSION_EXPIRED"

    def test_invalid_game_data(self, client, make_user, clock):
        _, headers = make_user()
        session_id = _start_game(client, headers)
        clock.advance(20)

        resp = client.post(
            "/api/games",
            json={"gameId": session_id, "score": 1.5, "timeRemaining": 10, "matchesFound": 1},
            headers=headers,
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "INVALID_GAME_DATA"
        # Session is still usable with a valid body
        assert _submit(client, headers, session_id).status_code == 201

    def test_cooldown_sets_retry_after(self, client, make_user, clock):
        _, headers = make_user()
        first = _start_game(client, headers)
        second = _start_game(client, headers)
        clock.advance(20)
        assert _submit(client, headers, first).status_code == 201
        clock.advance(2)

        resp = _submit(client, headers, second)

        assert resp.status_code == 429
        assert resp.json()["error"] == "SUBMISSION_TOO_FREQUENT"
        assert resp.headers["Retry-After"] == "3"


class TestLeaderboardAndProfile:
    """GET /api/leaderboard and /api/profile/{user_id}/..."""

    def _play_two_games(self, client, headers, clock):
        first = _start_game(client, headers)
        second = _start_game(client, headers)
        clock.advance(20)
        # time 60, bonus 600, total 900
        assert _submit(client, headers, first, score=300, time_remaining=60, matches_found=3).status_code == 201
        clock.advance(10)
        # time 50, bonus 500, total 1300
        assert _submit(client, headers, second, score=800, time_remaining=50, matches_found=8).status_code == 201

    def test_empty_leaderboard(self, client):
        resp = client.get("/api/leaderboard")
        assert resp.status_code == 200
        assert resp.json() == []

    def test_leaderboard_ordering(self, client, make_user, clock):
        top_id, top_headers = make_user("top_player")
        low_id, low_headers = make_user("low_player")
        make_user("no_games")

        self._play_two_games(client, top_headers, clock)
        session_id = _start_game(client, low_headers)
        clock.advance(20)
        assert _submit(client, low_headers, session_id, score=100, time_remaining=10, matches_found=1).status_code == 201

        resp = client.get("/api/leaderboard")

        assert resp.status_code == 200
        entries = resp.json()
        assert [e["user_id"] for e in entries] == [top_id, low_id]
        assert entries[0]["username"] == "top_player"
        assert entries[0]["total_points"] == 2200
        assert entries[0]["games_played"] == 2
        assert entries[0]["best_score"] == 1300
        assert entries[1]["total_points"] == 200

    def test_profile_stats(self, client, make_user, clock):
        user_id, headers = make_user()
        self._play_two_games(client, headers, clock)

        resp = client.get(f"/api/profile/{user_id}/stats", headers=headers)

        assert resp.status_code == 200
        assert resp.json() == {
            "total_points": 2200,
            "games_played": 2,
            "average_score": 1100.0,
            "best_score": 1300,
            "total_matches": 11,
        }

    def test_profile_stats_without_games(self, client, make_user):
        user_id, headers = make_user()

        resp = client.get(f"/api/profile/{user_id}/stats", headers=headers)

        assert resp.status_code == 200
        assert resp.json()["games_played"] == 0
        assert resp.json()["average_score"] == 0.0

    def test_profile_games_newest_first(self, client, make_user, clock):
        user_id, headers = make_user()
        self._play_two_games(client, headers, clock)

        resp = client.get(f"/api/profile/{user_id}/games", headers=headers)

        assert resp.status_code == 200
        assert [g["total_points"] for g in resp.json()] == [1300, 900]

    def test_cannot_read_other_profile(self, client, make_user):
        _, headers = make_user()
        other_id, _ = make_user()

        for path in (f"/api/profile/{other_id}/stats", f"/api/profile/{other_id}/games"):
            resp = client.get(path, headers=headers)
            assert resp.status_code == 403
            assert resp.json()["error"] == "FORBIDDEN"

    def test_profile_requires_auth(self, client, make_user):
        user_id, _ = make_user()
        assert client.get(f"/api/profile/{user_id}/stats").status_code == 401


class TestRequestRateLimit:
    """Per-IP request budget on /api routes."""

    def test_api_requests_rate_limited(self, client):
        client.app.state.request_limiter = RequestRateLimiter(max_requests=2, window_seconds=60)

        assert client.get("/api/leaderboard").status_code == 200
        assert client.get("/api/leaderboard").status_code == 200
        resp = client.get("/api/leaderboard")

        assert resp.status_code == 429
        assert resp.json()["error"] == "RATE_LIMITED"
        assert int(resp.headers["Retry-After"]) >= 1

    def test_non_api_routes_not_limited(self, client):
        client.app.state.request_limiter = RequestRateLimiter(max_requests=1, window_seconds=60)

        for _ in range(3):
            assert client.get("/health").status_code == 200
        assert client.get("/").json()["status"] == "ok"


class TestAsyncClient:
    """Same flow through httpx.AsyncClient, without the app lifespan."""

    @pytest.mark.asyncio
    async def test_start_and_submit(self, async_client, make_user, clock):
        user_id, headers = make_user()

        resp = await async_client.post("/api/games/start", headers=headers)
        assert resp.status_code == 200
        session_id = resp.json()["session_id"]
        clock.advance(30)

        resp = await async_client.post(
            "/api/games",
            json={"game_id": session_id, "score": 500, "time_remaining": 80, "matches_found": 5},
            headers=headers,
        )

        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["user_id"] == user_id
        assert data["time_remaining"] == 60
        assert data["total_points"] == 1100
        assert data["completed_at"].endswith("Z")
