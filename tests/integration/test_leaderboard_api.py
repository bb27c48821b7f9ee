"""Leaderboard API integration tests over the in-memory Redis."""

from __future__ import annotations

import json

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


def _body(claim: dict, username: str = "alice") -> dict:
    return {"username": username, "time": claim["time"], "gameData": claim}


class TestReadLeaderboard:
    async def test_empty_tier(self, client: AsyncClient) -> None:
        response = await client.get("/api/leaderboard/expert")
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["data"] == []
        assert data["meta"]["count"] == 0
        assert data["meta"]["difficulty"] == "expert"
        assert data["meta"]["rateLimit"]["remaining"] == 14
        assert "cacheStats" in data["meta"]
        assert response.headers["cache-control"] == "public, max-age=30"
        assert "etag" in response.headers

    async def test_unknown_difficulty(self, client: AsyncClient) -> None:
        response = await client.get("/api/leaderboard/nightmare")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_DIFFICULTY"

    async def test_conditional_get_returns_304(self, client: AsyncClient) -> None:
        first = await client.get("/api/leaderboard/beginner")
        etag = first.headers["etag"]
        second = await client.get("/api/leaderboard/beginner", headers={"If-None-Match": etag})
        assert second.status_code == 304
        assert second.headers["etag"] == etag

    async def test_stale_etag_after_write(self, client: AsyncClient, make_claim) -> None:
        first = await client.get("/api/leaderboard/beginner")
        await client.post("/api/leaderboard/beginner", json=_body(make_claim()))
        second = await client.get("/api/leaderboard/beginner", headers={"If-None-Match": first.headers["etag"]})
        assert second.status_code == 200
        assert len(second.json()["data"]) == 1


class TestSubmitScore:
    async def test_valid_beginner_game_accepted(self, client: AsyncClient, make_claim) -> None:
        claim = make_claim("beginner", time=45, moves=12)
        response = await client.post("/api/leaderboard/beginner", json=_body(claim), headers={"X-Request-Id": "r-1"})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["data"][0]["username"] == "alice"
        assert data["data"][0]["gameId"] == claim["gameId"]
        assert data["data"][0]["verified"] is True
        submitted = data["meta"]["submitted"]
        assert submitted["rank"] >= 1
        assert submitted["improved"] is True
        assert submitted["time"] == 45
        assert data["meta"]["security"] == {"scoreValidated": True, "behaviorAnalyzed": True, "requestId": "r-1"}

        board = (await client.get("/api/leaderboard/beginner")).json()["data"]
        assert [r["username"] for r in board] == ["alice"]

    async def test_username_trimmed(self, client: AsyncClient, make_claim) -> None:
        response = await client.post("/api/leaderboard/beginner", json=_body(make_claim(), username="  alice  "))
        assert response.json()["data"][0]["username"] == "alice"

    async def test_numeric_string_time(self, client: AsyncClient, make_claim) -> None:
        claim = make_claim()
        body = {"username": "alice", "time": "45", "gameData": claim}
        response = await client.post("/api/leaderboard/beginner", json=body)
        assert response.status_code == 200

    async def test_world_record_rejected(self, client: AsyncClient, make_claim, fake_redis) -> None:
        claim = make_claim("expert", time=10, moves=30)
        response = await client.post("/api/leaderboard/expert", json=_body(claim))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "UNREASONABLE_SCORE"
        assert fake_redis.keys_matching("leaderboard:") == []

    async def test_missing_game_data(self, client: AsyncClient) -> None:
        response = await client.post("/api/leaderboard/beginner", json={"username": "alice", "time": 45})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_GAME_DATA"

    async def test_incomplete_game_data(self, client: AsyncClient, make_claim) -> None:
        claim = make_claim()
        del claim["firstClickTime"]
        response = await client.post("/api/leaderboard/beginner", json=_body(claim))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_GAME_DATA"

    async def test_board_for_wrong_tier(self, client: AsyncClient, make_claim) -> None:
        claim = make_claim("beginner", boardSize={"width": 16, "height": 16}, mineCount=40)
        response = await client.post("/api/leaderboard/beginner", json=_body(claim))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "UNREASONABLE_SCORE"

    @pytest.mark.parametrize("username", ["", "<script>", "x" * 17])
    async def test_invalid_username(self, client: AsyncClient, make_claim, username: str) -> None:
        response = await client.post("/api/leaderboard/beginner", json=_body(make_claim(), username=username))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_USERNAME"

    @pytest.mark.parametrize("time", [0, 12.5, "fast", 10_000])
    async def test_invalid_time(self, client: AsyncClient, make_claim, time: object) -> None:
        body = {"username": "alice", "time": time, "gameData": make_claim()}
        response = await client.post("/api/leaderboard/beginner", json=body)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_TIME"

    async def test_unknown_difficulty(self, client: AsyncClient, make_claim) -> None:
        response = await client.post("/api/leaderboard/nightmare", json=_body(make_claim()))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_DIFFICULTY"

    async def test_invalid_json(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/leaderboard/beginner",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    async def test_duplicate_game(self, client: AsyncClient, make_claim) -> None:
        claim = make_claim()
        await client.post("/api/leaderboard/beginner", json=_body(claim, "alice"))
        response = await client.post("/api/leaderboard/beginner", json=_body(claim, "bob"))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "DUPLICATE_GAME"

    async def test_slower_time_not_improved(self, client: AsyncClient, make_claim) -> None:
        await client.post("/api/leaderboard/beginner", json=_body(make_claim(time=45)))
        response = await client.post("/api/leaderboard/beginner", json=_body(make_claim(time=60)))
        assert response.status_code == 200
        submitted = response.json()["meta"]["submitted"]
        assert submitted["improved"] is False
        assert submitted["currentBest"] == 45
        assert submitted["rank"] == 1
        assert "security" not in response.json()["meta"]

    async def test_rapid_submissions_blocked(self, client: AsyncClient, make_claim) -> None:
        statuses = []
        for t in (60, 59, 58, 57, 56):
            response = await client.post("/api/leaderboard/beginner", json=_body(make_claim(time=t)))
            statuses.append(response.status_code)
        assert statuses == [200, 200, 200, 200, 429]
        assert response.json()["error"]["code"] == "SUSPICIOUS_BEHAVIOR"

        board = (await client.get("/api/leaderboard/beginner")).json()["data"]
        assert board[0]["time"] == 57

    async def test_rate_limited_submission_writes_nothing(
        self, client: AsyncClient, make_claim, fake_redis
    ) -> None:
        for _ in range(15):
            await client.get("/api/leaderboard/beginner")
        response = await client.post("/api/leaderboard/beginner", json=_body(make_claim()))
        assert response.status_code == 429
        assert response.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"
        assert fake_redis.keys_matching("leaderboard:") == []
        assert fake_redis.keys_matching("security:user_stats:") == []

    async def test_rejection_recorded_as_security_event(self, client: AsyncClient, make_claim) -> None:
        from sweeper.dependencies import get_security_events

        await client.post("/api/leaderboard/expert", json=_body(make_claim("expert", time=10, moves=30)))
        events = await get_security_events().recent()
        rejected = [e for e in events if e["type"] == "claim_rejected"]
        assert rejected[0]["details"]["reason"] == "beats_world_record"
        assert rejected[0]["severity"] == "critical"

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
    async def test_non_finite_claim_times_rejected(self, client: AsyncClient, make_claim, literal: str) -> None:
        claim = make_claim()
        claim["gameEndTime"] = "__END__"
        content = json.dumps(_body(claim)).replace('"__END__"', literal)
        response = await client.post(
            "/api/leaderboard/beginner",
            content=content.encode(),
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_GAME_DATA"

    async def test_huge_integer_time(self, client: AsyncClient, make_claim) -> None:
        body = {"username": "alice", "time": 10**400, "gameData": make_claim()}
        response = await client.post("/api/leaderboard/beginner", json=body)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_TIME"

    async def test_crashing_field_check_is_a_validation_failure(
        self, client: AsyncClient, make_claim, monkeypatch
    ) -> None:
        def explode(_value: object) -> None:
            raise RuntimeError("boom")

        monkeypatch.setattr("sweeper.leaderboard.router.validate_username", explode)
        response = await client.post("/api/leaderboard/beginner", json=_body(make_claim()))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_USERNAME"

    async def test_unsaved_score_is_not_reported_as_accepted(
        self, client: AsyncClient, make_claim, fake_redis
    ) -> None:
        fake_redis.failing = {"set"}
        response = await client.post("/api/leaderboard/beginner", json=_body(make_claim()))
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"

        fake_redis.failing = set()
        board = (await client.get("/api/leaderboard/beginner")).json()["data"]
        assert board == []
