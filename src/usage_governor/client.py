"""
GovernorClient SDK: sync client for Usage-Governor.

Used by AI feature backends to ask for admission before doing metered work,
and by admin tooling to read usage and grant credits.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx


@dataclass
class ClientDecision:
    """Admission decision returned by admit()."""

    allowed: bool
    status: str
    feature: str = ""
    error: Optional[str] = None
    message: str = ""
    source: Optional[str] = None
    used: Optional[int] = None
    limit: Optional[int] = None
    credits_charged: int = 0
    credits_remaining: Optional[int] = None
    retry_after_seconds: Optional[int] = None
    scope: Optional[str] = None
    credits_needed: Optional[int] = None
    credits_available: Optional[int] = None
    reference: Optional[str] = None


@dataclass
class ClientFeatureUsage:
    """Monthly usage of one feature."""

    used: int = 0
    limit: Optional[int] = None
    remaining: Optional[int] = None
    unlimited: bool = False
    credit_cost: int = 0
    cooldown_seconds: int = 0


@dataclass
class ClientUsageStatus:
    """Result of usage_status() call."""

    success: bool
    user_id: str = ""
    access_type: str = ""
    is_unlimited: bool = False
    credits_available: int = 0
    usage: dict[str, ClientFeatureUsage] = field(default_factory=dict)
    rate_limits: dict[str, Any] = field(default_factory=dict)
    code: str = ""


@dataclass
class ClientCreditBalance:
    """Result of credit_balance() and grant_credits() calls."""

    success: bool
    available_credits: int = 0
    lifetime_credits_purchased: int = 0
    is_grandfathered: bool = False
    code: str = ""


class GovernorClient:
    """
    Synchronous HTTP client for Usage-Governor.

    ``admit()`` is sent exactly once: a repeated admission would be metered
    as a second use. Read and admin calls retry on timeouts and 5xx.
    """

    def __init__(
        self,
        server_url: str = "http://localhost:8080",
        user_id: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 3,
        retry_backoff_base: float = 0.5,
    ):
        self.server_url = server_url.rstrip("/")
        self.user_id = user_id
        self.api_key = api_key
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base
        self._http = httpx.Client(
            base_url=self.server_url,
            timeout=timeout,
        )

    def _admin_headers(self) -> dict[str, str]:
        headers = {}
        if self.api_key:
            headers["X-Governor-Api-Key"] = self.api_key
        return headers

    def _user_headers(self, user_id: Optional[str]) -> dict[str, str]:
        user_id = user_id or self.user_id
        return {"X-User-Id": user_id} if user_id else {}

    def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Central HTTP method with retry and structured error handling.

        Retries on:
        - httpx.TimeoutException
        - 5xx status codes

        No retry on 4xx errors.

        Returns parsed JSON on success, or structured error dict on failure.
        """
        last_error = None
        for attempt in range(self.max_retries):
            try:
                resp = getattr(self._http, method)(path, **kwargs)
                if resp.status_code >= 500:
                    last_error = f"HTTP {resp.status_code}"
                    if attempt < self.max_retries - 1:
                        time.sleep(self.retry_backoff_base * (2 ** attempt))
                        continue
                    return {
                        "error": f"Server error: {resp.status_code}",
                        "code": "SERVER_ERROR",
                    }
                if resp.status_code >= 400:
                    return {
                        "error": f"Client error: {resp.status_code}",
                        "code": "CLIENT_ERROR",
                    }
                return resp.json()
            except httpx.TimeoutException:
                last_error = "timeout"
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_backoff_base * (2 ** attempt))
                    continue
            except httpx.HTTPError as e:
                last_error = str(e)
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_backoff_base * (2 ** attempt))
                    continue
            except json.JSONDecodeError:
                return {"error": "Invalid JSON response", "code": "JSON_ERROR"}

        return {"error": f"All {self.max_retries} retries exhausted: {last_error}", "code": "CONNECTION_ERROR"}

    # ── Admission ──

    def admit(self, feature: str, user_id: Optional[str] = None) -> ClientDecision:
        """Ask whether the user may use ``feature`` now.

        Denials come back as decisions, never as exceptions. Transport
        failures are reported as ``system_failure`` without retrying.
        """
        try:
            resp = self._http.post(f"/admission/{feature}", headers=self._user_headers(user_id))
            data = resp.json()
        except httpx.HTTPError as e:
            return ClientDecision(
                allowed=False, status="system_failure", feature=feature,
                error="CONNECTION_ERROR", message=str(e),
            )
        except json.JSONDecodeError:
            return ClientDecision(
                allowed=False, status="system_failure", feature=feature,
                error="JSON_ERROR", message="Invalid JSON response",
            )

        if "status" not in data:
            return ClientDecision(
                allowed=False, status="error", feature=feature,
                error=f"HTTP {resp.status_code}", message=str(data.get("detail", "")),
            )

        return ClientDecision(
            allowed=data.get("allowed", False),
            status=data["status"],
            feature=data.get("feature", feature),
            error=data.get("error"),
            message=data.get("message", ""),
            source=data.get("source"),
            used=data.get("used"),
            limit=data.get("limit"),
            credits_charged=data.get("credits_charged", 0),
            credits_remaining=data.get("credits_remaining"),
            retry_after_seconds=data.get("retry_after_seconds"),
            scope=data.get("scope"),
            credits_needed=data.get("credits_needed"),
            credits_available=data.get("credits_available"),
            reference=data.get("reference"),
        )

    # ── Usage ──

    def usage_status(self, user_id: Optional[str] = None) -> ClientUsageStatus:
        """Usage of the configured user, or of ``user_id`` with the admin key."""
        if user_id is not None:
            data = self._request("get", f"/usage/{user_id}", headers=self._admin_headers())
        else:
            data = self._request("get", "/usage/me", headers=self._user_headers(None))

        if "error" in data:
            return ClientUsageStatus(success=False, code=data.get("code", "ERROR"))

        usage = {
            name: ClientFeatureUsage(
                used=u.get("used", 0),
                limit=u.get("limit"),
                remaining=u.get("remaining"),
                unlimited=u.get("unlimited", False),
                credit_cost=u.get("credit_cost", 0),
                cooldown_seconds=u.get("cooldown_seconds", 0),
            )
            for name, u in data.get("usage", {}).items()
        }
        return ClientUsageStatus(
            success=True,
            user_id=data.get("user_id", ""),
            access_type=data.get("access_type", ""),
            is_unlimited=data.get("is_unlimited", False),
            credits_available=data.get("credits", {}).get("available", 0),
            usage=usage,
            rate_limits=data.get("rate_limits", {}),
        )

    # ── Credits ──

    def pricing(self) -> list[dict[str, Any]]:
        """Per-feature free quota, credit cost and cooldown."""
        data = self._request("get", "/credits/pricing")
        if isinstance(data, dict) and "error" in data:
            return []
        return data

    def credit_balance(self, user_id: Optional[str] = None) -> ClientCreditBalance:
        data = self._request("get", "/credits/balance", headers=self._user_headers(user_id))
        if "error" in data:
            return ClientCreditBalance(success=False, code=data.get("code", "ERROR"))
        return ClientCreditBalance(
            success=True,
            available_credits=data.get("available_credits", 0),
            lifetime_credits_purchased=data.get("lifetime_credits_purchased", 0),
            is_grandfathered=data.get("is_grandfathered", False),
        )

    def grant_credits(
        self,
        user_id: str,
        amount: int,
        description: str = "",
        purchased: bool = True,
    ) -> ClientCreditBalance:
        """Add credits to a user (admin key required)."""
        body = {"amount": amount, "description": description, "purchased": purchased}
        data = self._request(
            "post", f"/credits/{user_id}/grant",
            json=body, headers=self._admin_headers(),
        )
        if "error" in data:
            return ClientCreditBalance(success=False, code=data.get("code", "ERROR"))
        return ClientCreditBalance(
            success=True,
            available_credits=data.get("available_credits", 0),
        )

    # ── Lifecycle ──

    def close(self) -> None:
        """Close the HTTP client."""
        self._http.close()

    def __enter__(self) -> "GovernorClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
