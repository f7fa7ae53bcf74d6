"""
tests.test_smoke

Minimal smoke tests to validate the reference registry can boot and serve core endpoints.
"""

from __future__ import annotations

import httpx
import pytest

from land_registry.api.__main__ import insecure_prod_fields
from land_registry.api.app import create_app
from land_registry.settings import Settings


@pytest.mark.asyncio
async def test_health_endpoints(tmp_path) -> None:
    app = create_app(
        settings=Settings(env="test", database_url=f"sqlite+aiosqlite:///{tmp_path / 'smoke.db'}")
    )

    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            r = await client.get("/healthz")
            assert r.status_code == 200
            assert r.json()["status"] == "ok"

            r = await client.get("/readyz")
            assert r.status_code == 200
            assert r.json()["status"] == "ready"

            r = await client.get("/api/v2/status")
            assert r.status_code == 200
            assert r.json()["service_id"] == "land-registry-backend"


@pytest.mark.asyncio
async def test_status_and_dev_tokens_are_hidden_in_prod(tmp_path) -> None:
    app = create_app(
        settings=Settings(env="prod", database_url=f"sqlite+aiosqlite:///{tmp_path / 'prod.db'}")
    )

    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            assert (await client.get("/api/v2/status")).status_code == 404
            r = await client.post("/v1/dev/token", json={"seed": "someone"})
            assert r.status_code == 404


@pytest.mark.asyncio
async def test_request_id_is_echoed(app) -> None:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        r = await client.get("/healthz", headers={"x-request-id": "req-123"})
    assert r.headers["x-request-id"] == "req-123"


def test_prod_refuses_development_secrets() -> None:
    assert insecure_prod_fields(Settings(env="dev")) == []
    assert insecure_prod_fields(Settings(env="prod")) == ["jwt_secret", "registry_root_key"]
    hardened = Settings(
        env="prod",
        jwt_secret="a-real-secret-from-the-vault-000000000",
        registry_root_key="a-real-root-key-from-the-vault-0000000",
    )
    assert insecure_prod_fields(hardened) == []
