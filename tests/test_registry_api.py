"""
tests.test_registry_api

Reference registry HTTP surface: identity tokens, certificates and error bodies.
"""

from __future__ import annotations

import httpx
import pytest

from conftest import principal_for
from land_registry.certification import CERTIFICATE_HEADER, verify


@pytest.mark.asyncio
async def test_dev_token_identifies_the_seeded_principal(transport, settings) -> None:
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        r = await http.post("/v1/dev/token", json={"seed": "alice", "ttl_minutes": 5})
        assert r.status_code == 200
        body = r.json()
        assert body["principal"] == principal_for("alice").text
        assert body["token_type"] == "bearer"

        headers = {"Authorization": f"Bearer {body['access_token']}"}
        r = await http.put("/v1/users/me/profile", json={"name": "Alice"}, headers=headers)
        assert r.status_code == 200
        assert r.json()["id"] == principal_for("alice").text


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(transport) -> None:
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        r = await http.get(
            "/v1/transfers/pending", headers={"Authorization": "Bearer not-a-jwt"}
        )
    assert r.status_code == 401
    assert r.json()["detail"]["kind"] == "SessionExpired"


@pytest.mark.asyncio
async def test_queries_carry_a_verifiable_certificate(transport, settings) -> None:
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        r = await http.get(f"/v1/users/{principal_for('alice').text}/roles")
    assert r.status_code == 200
    assert r.json() == {"principal": principal_for("alice").text, "roles": []}
    assert verify(r.content, r.headers[CERTIFICATE_HEADER], root_key=settings.registry_root_key)


@pytest.mark.asyncio
async def test_rule_violations_carry_their_kind(transport) -> None:
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        r = await http.post("/v1/parcels/1/approve")
        assert r.status_code == 403
        assert r.json()["detail"]["kind"] == "Unauthorized"

        r = await http.get("/v1/owners/not-a-principal/parcels")
        assert r.status_code == 400
        assert r.json()["detail"]["kind"] == "ValidationFailed"
