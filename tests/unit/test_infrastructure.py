"""Unit tests for the infrastructure layer (HTTP, email delivery, Redis)."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from config import EmailSettings
from infrastructure.cache.issue_limiter import IssueRateLimiter
from infrastructure.cache.redis_client import create_redis_client
from infrastructure.email.brevo import BrevoEmailProvider
from infrastructure.email.protocol import CodeDelivery
from infrastructure.http_client import HttpClient


# ── Helpers ───────────────────────────────────────────────────────────────────


def _delivery(purpose="email_verify", code="482913"):
    return CodeDelivery(
        purpose=purpose,
        code=code,
        expires_at=datetime(2026, 1, 1, 12, 10, tzinfo=timezone.utc),
        ttl_minutes=10,
    )


def _fake_redis(incr_returns=1):
    """Return a mock async Redis client."""
    r = AsyncMock()
    r.incr.return_value = incr_returns
    r.expire.return_value = True
    return r


# ── HttpClient ────────────────────────────────────────────────────────────────


class TestHttpClient:
    async def test_post_json_delegates_to_httpx(self, mocker):
        client = HttpClient()
        fake_resp = MagicMock(status_code=200)
        post = mocker.patch.object(client._client, "post", return_value=fake_resp)
        resp = await client.post_json("http://example.com", {"a": 1}, headers={"x": "y"})
        assert resp is fake_resp
        post.assert_awaited_once_with(
            "http://example.com", json={"a": 1}, headers={"x": "y"}
        )

    async def test_post_json_propagates_errors(self, mocker):
        client = HttpClient()
        mocker.patch.object(client._client, "post", side_effect=Exception("timeout"))
        with pytest.raises(Exception, match="timeout"):
            await client.post_json("http://example.com", {})

    async def test_context_manager(self):
        async with HttpClient() as client:
            assert client is not None


# ── BrevoEmailProvider ────────────────────────────────────────────────────────


class TestBrevoEmailProvider:
    def _make(self, api_key="test-key", sender="noreply@example.com", real_templates=False):
        settings = EmailSettings(
            brevo_api_key=api_key,
            brevo_sender_email=sender,
            brevo_sender_name="Account Security",
        )
        http = MagicMock()
        provider = BrevoEmailProvider(settings=settings, http_client=http, app_name="Acme")
        if not real_templates:
            jinja = MagicMock()
            jinja.get_template.return_value.render.return_value = "<html>test</html>"
            provider._jinja = jinja
        return provider, http

    async def test_send_makes_post(self):
        provider, http = self._make()
        http.post_json = AsyncMock(return_value=MagicMock(status_code=201))
        assert await provider.send("alice@example.com", _delivery()) is True
        http.post_json.assert_awaited_once()

    async def test_payload_and_headers(self):
        provider, http = self._make(api_key="rawkey")
        http.post_json = AsyncMock(return_value=MagicMock(status_code=201))
        await provider.send("alice@example.com", _delivery(purpose="password_reset"))
        args, kwargs = http.post_json.call_args
        url, payload = args
        assert url == "https://api.brevo.com/v3/smtp/email"
        assert kwargs["headers"]["api-key"] == "rawkey"
        assert payload["to"] == [{"email": "alice@example.com"}]
        assert payload["sender"]["email"] == "noreply@example.com"
        assert payload["subject"].startswith("Reset your password")
        assert "482913" in payload["textContent"]

    async def test_renders_real_template(self):
        provider, http = self._make(real_templates=True)
        http.post_json = AsyncMock(return_value=MagicMock(status_code=201))
        await provider.send("alice@example.com", _delivery(code="730155"))
        (_, payload), _ = http.post_json.call_args
        assert "730155" in payload["htmlContent"]
        assert "10" in payload["htmlContent"]

    @pytest.mark.parametrize(
        "api_key, sender",
        [("", "noreply@example.com"), ("key", "")],
        ids=["no_api_key", "no_sender"],
    )
    async def test_returns_false_when_not_configured(self, api_key, sender):
        provider, http = self._make(api_key=api_key, sender=sender)
        http.post_json = AsyncMock()
        assert await provider.send("alice@example.com", _delivery()) is False
        http.post_json.assert_not_awaited()

    async def test_returns_false_on_non_2xx(self):
        provider, http = self._make()
        http.post_json = AsyncMock(
            return_value=MagicMock(status_code=401, text="Unauthorized")
        )
        assert await provider.send("alice@example.com", _delivery()) is False

    async def test_returns_false_on_exception(self):
        provider, http = self._make()
        http.post_json = AsyncMock(side_effect=Exception("timeout"))
        assert await provider.send("alice@example.com", _delivery()) is False

    async def test_unknown_purpose(self):
        provider, http = self._make()
        http.post_json = AsyncMock()
        assert await provider.send("alice@example.com", _delivery(purpose="login")) is False
        http.post_json.assert_not_awaited()


# ── IssueRateLimiter ──────────────────────────────────────────────────────────


class TestIssueRateLimiter:
    async def test_allows_when_redis_none(self):
        limiter = IssueRateLimiter(redis_client=None, max_issues=1)
        assert await limiter.hit("alice@example.com", "email_verify") is True
        assert await limiter.hit("alice@example.com", "email_verify") is True

    async def test_first_hit_sets_window(self):
        r = _fake_redis(incr_returns=1)
        limiter = IssueRateLimiter(r, max_issues=3, window_seconds=3600)
        assert await limiter.hit("alice@example.com", "email_verify") is True
        r.incr.assert_awaited_once_with("otp_issue:email_verify:alice@example.com")
        r.expire.assert_awaited_once_with("otp_issue:email_verify:alice@example.com", 3600)

    async def test_later_hits_do_not_extend_window(self):
        r = _fake_redis(incr_returns=2)
        await IssueRateLimiter(r).hit("alice@example.com", "email_verify")
        r.expire.assert_not_awaited()

    @pytest.mark.parametrize(
        "count, allowed", [(3, True), (4, False)], ids=["at_limit", "over_limit"]
    )
    async def test_budget(self, count, allowed):
        limiter = IssueRateLimiter(_fake_redis(incr_returns=count), max_issues=3)
        assert await limiter.hit("alice@example.com", "password_reset") is allowed

    async def test_redis_error_allows(self):
        r = _fake_redis()
        r.incr.side_effect = RedisConnectionError("down")
        assert await IssueRateLimiter(r).hit("alice@example.com", "email_verify") is True


# ── create_redis_client ───────────────────────────────────────────────────────


class TestCreateRedisClient:
    async def test_none_when_unset(self):
        assert await create_redis_client(None) is None

    async def test_none_when_ping_fails(self, mocker):
        client = AsyncMock()
        client.ping.side_effect = RedisConnectionError("refused")
        mocker.patch(
            "infrastructure.cache.redis_client.aioredis.from_url", return_value=client
        )
        assert await create_redis_client("redis://localhost:6379") is None
        client.aclose.assert_awaited_once()

    async def test_returns_client(self, mocker):
        client = AsyncMock()
        mocker.patch(
            "infrastructure.cache.redis_client.aioredis.from_url", return_value=client
        )
        assert await create_redis_client("redis://:pw@localhost:6379") is client
