"""Integration tests for credit endpoints."""


class TestPricingRouter:
    async def test_pricing_is_public(self, client):
        resp = await client.get("/credits/pricing")
        assert resp.status_code == 200
        pricing = {p["feature"]: p for p in resp.json()}
        assert set(pricing) == {"ai_search", "ai_analysis", "ai_grant_writing", "ai_synthesis"}
        assert pricing["ai_search"]["credit_cost"] == 1
        assert pricing["ai_analysis"]["cooldown_seconds"] == 120
        assert pricing["ai_grant_writing"]["credit_cost"] == 5
        assert pricing["ai_grant_writing"]["free_quota"] == 3


class TestBalanceRouter:
    async def test_balance_requires_user(self, client):
        resp = await client.get("/credits/balance")
        assert resp.status_code == 401

    async def test_fresh_balance(self, client, user_headers):
        resp = await client.get("/credits/balance", headers=user_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["user_id"] == "user-123"
        assert data["available_credits"] == 0
        assert data["is_grandfathered"] is False
        assert data["current_period"]["counts"]["ai_search"] == 0
        assert data["recent_transactions"] == []

    async def test_balance_after_grant_and_spend(self, client, admin_headers, user_headers):
        await client.post("/credits/user-123/grant", json={"amount": 10}, headers=admin_headers)
        for _ in range(20):
            await client.post("/admission/ai_search", headers=user_headers)
        resp = await client.post("/admission/ai_search", headers=user_headers)
        assert resp.json()["credits_charged"] == 1

        data = (await client.get("/credits/balance", headers=user_headers)).json()
        assert data["available_credits"] == 9
        assert data["lifetime_credits_purchased"] == 10
        assert data["current_period"]["counts"]["ai_search"] == 20
        amounts = sorted(t["amount"] for t in data["recent_transactions"])
        assert amounts == [-1, 10]


class TestGrantRouter:
    async def test_grant(self, client, admin_headers):
        resp = await client.post(
            "/credits/user-123/grant",
            json={"amount": 25, "description": "Starter pack"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["available_credits"] == 25
        assert data["transaction"]["transaction_type"] == "purchase"
        assert data["transaction"]["balance_after"] == 25

    async def test_bonus_grant(self, client, admin_headers, user_headers):
        resp = await client.post(
            "/credits/user-123/grant",
            json={"amount": 5, "purchased": False},
            headers=admin_headers,
        )
        assert resp.json()["transaction"]["transaction_type"] == "grant"
        data = (await client.get("/credits/balance", headers=user_headers)).json()
        assert data["lifetime_credits_purchased"] == 0

    async def test_non_positive_amount(self, client, admin_headers):
        resp = await client.post(
            "/credits/user-123/grant", json={"amount": 0}, headers=admin_headers,
        )
        assert resp.status_code == 422

    async def test_grant_requires_admin(self, client, user_headers):
        resp = await client.post(
            "/credits/user-123/grant", json={"amount": 5}, headers=user_headers,
        )
        assert resp.status_code == 422
