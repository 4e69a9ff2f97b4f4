import json
from unittest.mock import AsyncMock, MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from botgate.api.deps import get_redis
from botgate.api.v1.system.router import router
from botgate.services.dead_letters import list_dead_letters


def _app(redis):
    app = FastAPI()
    app.include_router(router, prefix="/api/v1/system")
    app.dependency_overrides[get_redis] = lambda: redis
    return app


class TestDeadLetters:
    def test_lists_entries(self):
        redis = AsyncMock()
        redis.lrange.return_value = [
            json.dumps({"task_id": "t2", "error": "DeliveryError: blocked", "attempts": 3}),
            json.dumps({"task_id": "t1", "error": "OperationalError", "attempts": 3}),
        ]
        client = TestClient(_app(redis))

        response = client.get("/api/v1/system/dead-letters", params={"limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert [item["id"] for item in body["data"]] == ["t2", "t1"]
        assert body["meta"] == {"count": 2}
        redis.lrange.assert_awaited_once_with("botgate:dead_letter", 0, 1)

    async def test_unreadable_entries_are_skipped(self):
        redis = AsyncMock()
        redis.lrange.return_value = ["{broken", json.dumps({"task_id": "t1"})]

        entries = await list_dead_letters(redis, "botgate:dead_letter", 10)

        assert entries == [{"task_id": "t1"}]


class TestHealth:
    def test_degraded_when_redis_down(self):
        redis = AsyncMock()
        redis.ping.side_effect = ConnectionError("refused")
        session = AsyncMock()
        session_cm = MagicMock()
        session_cm.__aenter__ = AsyncMock(return_value=session)
        session_cm.__aexit__ = AsyncMock(return_value=False)
        app = _app(redis)
        app.state.redis = redis
        app.state.session_factory = MagicMock(return_value=session_cm)

        response = TestClient(app).get("/api/v1/system/health")

        attributes = response.json()["data"]["attributes"]
        assert attributes == {"status": "degraded", "database": "connected", "redis": "disconnected"}
