"""
Tests for the HTTP surface of the gateway.
"""

import asyncio
import time
from typing import Any, Dict, Iterator, List, Optional

import jwt
import pytest
from dependency_injector import providers
from starlette.testclient import TestClient

from fitai_gateway import __version__
from fitai_gateway.di import Container
from fitai_gateway.server import create_app

SECRET = "server-test-secret-that-is-long-enough"


class FakeModelClient:
    def __init__(self) -> None:
        self.reply = '{"name": "Huevo", "calories": 78}'
        self.calls: List[Optional[str]] = []
        self.closed = False

    async def complete(
        self, system_prompt: str, user_prompt: str, image: Optional[str] = None
    ) -> str:
        self.calls.append(image)
        return self.reply

    async def close(self) -> None:
        self.closed = True


def auth_header(user_id: str) -> Dict[str, str]:
    token = jwt.encode(
        {"sub": user_id, "exp": int(time.time()) + 3600}, SECRET, algorithm="HS256"
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def model() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture
def container(model: FakeModelClient) -> Container:
    container = Container()
    container.config.from_dict(
        {
            "log_level": "DEBUG",
            "auth": {"jwt_secret": SECRET},
            "quota": {
                "backend": "memory",
                "free_tier_limits": {"generateRoutine": 3},
            },
            "rate_limits": {},
            "default_rate_limit": {"window_ms": 60000, "max_requests": 5},
        }
    )
    container.default_model_client.override(providers.Object(model))
    container.vision_model_client.override(providers.Object(model))
    return container


@pytest.fixture
def client(container: Container) -> Iterator[TestClient]:
    with TestClient(create_app(container)) as test_client:
        yield test_client


def call(
    client: TestClient, action: str, data: Dict[str, Any], user_id: str = "ana"
) -> Any:
    return client.post(
        "/", json={"action": action, "data": data}, headers=auth_header(user_id)
    )


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": __version__}


def test_preflight_returns_204_with_cors_headers(client: TestClient) -> None:
    response = client.options("/")

    assert response.status_code == 204
    assert response.headers["access-control-allow-origin"] == "*"
    assert "POST" in response.headers["access-control-allow-methods"]
    assert "Authorization" in response.headers["access-control-allow-headers"]


@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
def test_other_methods_are_not_allowed(client: TestClient, method: str) -> None:
    response = client.request(method, "/")

    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}


def test_success_envelope(client: TestClient, model: FakeModelClient) -> None:
    response = call(client, "calculateMacros", {"foodDescription": "1 huevo"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "result": {"name": "Huevo", "calories": 78},
    }
    assert response.headers["access-control-allow-origin"] == "*"


def test_legacy_path_is_served(client: TestClient) -> None:
    response = client.post(
        "/aiProxy",
        json={"action": "calculateMacros", "data": {"foodDescription": "pan"}},
        headers=auth_header("ana"),
    )

    assert response.status_code == 200


def test_missing_credential_is_401(client: TestClient) -> None:
    response = client.post("/", json={"action": "calculateMacros", "data": {}})

    assert response.status_code == 401
    assert "error" in response.json()


def test_invalid_credential_is_401(client: TestClient) -> None:
    response = client.post(
        "/",
        json={"action": "calculateMacros", "data": {}},
        headers={"Authorization": "Bearer not-a-token"},
    )

    assert response.status_code == 401


def test_missing_action_is_400(client: TestClient) -> None:
    response = client.post("/", json={"data": {}}, headers=auth_header("ana"))

    assert response.status_code == 400
    assert response.json() == {"error": "Action is required"}


def test_invalid_json_is_400(client: TestClient) -> None:
    response = client.post(
        "/",
        content=b"{not json",
        headers={**auth_header("ana"), "Content-Type": "application/json"},
    )

    assert response.status_code == 400


def test_unknown_action_is_400(client: TestClient) -> None:
    response = call(client, "launchRocket", {})

    assert response.status_code == 400
    assert response.json() == {"error": "Unknown action: launchRocket"}


def test_rate_limited_is_429_with_retry_after(client: TestClient) -> None:
    responses = [call(client, "generateDiet", {}) for _ in range(4)]

    assert [r.status_code for r in responses] == [200, 200, 200, 429]
    limited = responses[-1]
    assert limited.json()["retryAfter"] == 60
    assert limited.headers["retry-after"] == "60"
    assert "error" in limited.json()


def test_quota_exceeded_is_403(client: TestClient, container: Container) -> None:
    # Arrange
    store = container.quota_store()
    ledger = container.quota_ledger()

    async def exhaust() -> None:
        await store.set_premium("ana", False)
        await store.increment(
            "ana", "routinesGenerated", ledger.current_month_key(), amount=3
        )

    asyncio.run(exhaust())

    # Act
    response = call(client, "generateRoutine", {})

    # Assert
    assert response.status_code == 403
    assert response.json() == {
        "error": "Free tier limit reached",
        "code": "PREMIUM_LIMIT_REACHED",
        "limit": 3,
    }


def test_unparseable_completion_is_500(
    client: TestClient, model: FakeModelClient
) -> None:
    model.reply = "I am not able to do that."

    response = call(client, "calculateMacros", {"foodDescription": "pizza"})

    assert response.status_code == 500
    assert "error" in response.json()


def test_unexpected_failure_is_generic_500(
    client: TestClient, model: FakeModelClient
) -> None:
    async def explode(*args: Any, **kwargs: Any) -> str:
        raise RuntimeError("connection pool exhausted at 10.0.0.3")

    model.complete = explode  # type: ignore

    response = call(client, "calculateMacros", {"foodDescription": "pizza"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_model_clients_are_closed_on_shutdown(
    container: Container, model: FakeModelClient
) -> None:
    with TestClient(create_app(container)):
        pass

    assert model.closed is True


def test_identity_verifier_client_is_closed_on_shutdown(container: Container) -> None:
    verifier = container.identity_verifier()

    with TestClient(create_app(container)):
        assert verifier.client.is_closed is False

    assert verifier.client.is_closed is True
