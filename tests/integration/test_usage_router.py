"""Integration tests for usage status and provisioning endpoints."""

import pytest


class TestUsageStatusRouter:
    async def test_my_usage(self, client, user_headers):
        await client.post("/admission/ai_search", headers=user_headers)
        resp = await client.get("/usage/me", headers=user_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["user_id"] == "user-123"
        assert data["access_type"] == "free"
        assert data["usage"]["ai_search"]["used"] == 1
        assert data["usage"]["ai_search"]["remaining"] == 19
        assert data["rate_limits"]["hourly"]["used"] == 1

    async def test_my_usage_requires_user(self, client):
        resp = await client.get("/usage/me")
        assert resp.status_code == 401

    async def test_dangling_partnership_is_not_found(self, client, user_headers, admin_headers):
        from sqlalchemy import update

        from usage_governor.deps import get_db
        from usage_governor.usage.models import UsageRecordModel

        await client.post("/admission/ai_search", headers=user_headers)
        async with get_db().get_session() as session:
            await session.execute(
                update(UsageRecordModel)
                .where(UsageRecordModel.user_id == "user-123")
                .values(partnership_id="deleted-partnership")
            )

        resp = await client.get("/usage/me", headers=user_headers)
        assert resp.status_code == 404
        resp = await client.get("/usage/user-123", headers=admin_headers)
        assert resp.status_code == 404

    async def test_admin_lookup(self, client, admin_headers):
        resp = await client.get("/usage/someone-else", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["user_id"] == "someone-else"
        assert resp.json()["credits"]["available"] == 0


class TestGrandfatherRouter:
    async def test_grandfather(self, client, admin_headers, user_headers):
        resp = await client.post(
            "/usage/user-123/grandfather", json={"grandfathered": True},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["access_type"] == "grandfathered"
        assert resp.json()["is_unlimited"] is True

        resp = await client.post("/admission/ai_analysis", headers=user_headers)
        assert resp.json()["source"] == "grandfathered"

    async def test_revoke_is_conflict(self, client, admin_headers):
        await client.post(
            "/usage/user-123/grandfather", json={"grandfathered": True},
            headers=admin_headers,
        )
        resp = await client.post(
            "/usage/user-123/grandfather", json={"grandfathered": False},
            headers=admin_headers,
        )
        assert resp.status_code == 409


class TestPartnershipRouter:
    async def test_create_and_assign(self, client, admin_headers, user_headers):
        resp = await client.post("/partnerships", json={
            "name": "Tidewater University", "ai_search_limit": 2,
        }, headers=admin_headers)
        assert resp.status_code == 201
        partnership = resp.json()
        assert partnership["ai_search_limit"] == 2
        assert partnership["ai_analysis_limit"] == -1

        resp = await client.put(
            "/usage/user-123/partnership",
            json={"partnership_id": partnership["id"]},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["access_type"] == "institutional"
        assert resp.json()["partnership_id"] == partnership["id"]

        await client.post("/admission/ai_search", headers=user_headers)
        await client.post("/admission/ai_search", headers=user_headers)
        resp = await client.post("/admission/ai_search", headers=user_headers)
        assert resp.status_code == 403
        data = resp.json()
        assert data["error"] == "Institutional quota exceeded"
        assert data["credits_needed"] is None

    async def test_duplicate_name(self, client, admin_headers):
        await client.post("/partnerships", json={"name": "Dup"}, headers=admin_headers)
        resp = await client.post("/partnerships", json={"name": "Dup"}, headers=admin_headers)
        assert resp.status_code == 409

    async def test_invalid_limit(self, client, admin_headers):
        resp = await client.post("/partnerships", json={
            "name": "Bad", "ai_search_limit": -5,
        }, headers=admin_headers)
        assert resp.status_code == 422

    async def test_list_and_get(self, client, admin_headers):
        created = await client.post(
            "/partnerships", json={"name": "Harbor College"}, headers=admin_headers,
        )
        resp = await client.get("/partnerships", headers=admin_headers)
        assert [p["name"] for p in resp.json()] == ["Harbor College"]

        resp = await client.get(
            f"/partnerships/{created.json()['id']}", headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Harbor College"

    async def test_get_missing(self, client, admin_headers):
        resp = await client.get("/partnerships/missing", headers=admin_headers)
        assert resp.status_code == 404

    async def test_assign_missing(self, client, admin_headers):
        resp = await client.put(
            "/usage/user-123/partnership", json={"partnership_id": "missing"},
            headers=admin_headers,
        )
        assert resp.status_code == 404


class TestResetRouter:
    async def test_reset_monthly_usage(self, client, admin_headers, user_headers):
        await client.post("/admission/ai_search", headers=user_headers)
        resp = await client.post("/usage/user-123/reset", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["usage"]["ai_search"]["used"] == 0
