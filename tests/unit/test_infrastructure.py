"""Unit tests for the infrastructure layer: attempt counters, email, Redis."""

import os
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from config import EmailSettings
from infrastructure.attempts.memory import InMemoryAttemptCounter
from infrastructure.attempts.protocol import (
    LOCKOUT_WINDOW_SECONDS,
    MAX_VERIFICATION_ATTEMPTS,
    AttemptStatus,
)
from infrastructure.attempts.redis_counter import RedisAttemptCounter
from infrastructure.email.resend import _DEFAULT_TEMPLATE_DIR, ResendEmailProvider
from infrastructure.redis_client import create_redis_client


# ── Helpers ───────────────────────────────────────────────────────────────────


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _fake_redis(execute_returns):
    """Return a mock async Redis client whose pipeline yields *execute_returns*."""
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=execute_returns)
    redis = MagicMock()
    redis.pipeline.return_value.__aenter__.return_value = pipe
    redis.delete = AsyncMock(return_value=1)
    return redis, pipe


# ── InMemoryAttemptCounter ────────────────────────────────────────────────────


class TestInMemoryAttemptCounter:
    async def test_fresh_key_allowed_with_full_budget(self):
        counter = InMemoryAttemptCounter()
        assert await counter.check("u1") == AttemptStatus(
            allowed=True, remaining=MAX_VERIFICATION_ATTEMPTS
        )

    async def test_record_failure_decrements(self):
        counter = InMemoryAttemptCounter()
        assert await counter.record_failure("u1") == 4
        assert await counter.record_failure("u1") == 3
        assert (await counter.check("u1")).remaining == 3

    async def test_locked_after_five_failures(self):
        counter = InMemoryAttemptCounter()
        for _ in range(5):
            await counter.record_failure("u1")
        status = await counter.check("u1")
        assert status.allowed is False
        assert status.remaining == 0

    async def test_reset_restores_budget(self):
        counter = InMemoryAttemptCounter()
        for _ in range(5):
            await counter.record_failure("u1")
        await counter.reset("u1")
        assert await counter.check("u1") == AttemptStatus(allowed=True, remaining=5)

    async def test_old_attempts_pruned(self):
        clock = FakeClock()
        counter = InMemoryAttemptCounter(clock=clock)
        for _ in range(5):
            await counter.record_failure("u1")
        clock.advance(LOCKOUT_WINDOW_SECONDS + 1)
        assert (await counter.check("u1")).allowed is True
        # Read with nothing recent drops the entry
        assert "u1" not in counter

    async def test_window_is_rolling(self):
        clock = FakeClock()
        counter = InMemoryAttemptCounter(clock=clock)
        for _ in range(3):
            await counter.record_failure("u1")
        clock.advance(10 * 60)
        for _ in range(2):
            await counter.record_failure("u1")
        assert (await counter.check("u1")).allowed is False
        clock.advance(5 * 60 + 1)
        # The first three have aged out
        assert (await counter.check("u1")).remaining == 3

    async def test_keys_independent(self):
        counter = InMemoryAttemptCounter()
        for _ in range(5):
            await counter.record_failure("u1")
        assert (await counter.check("u2")).allowed is True


# ── RedisAttemptCounter ───────────────────────────────────────────────────────


class TestRedisAttemptCounter:
    async def test_check_prunes_then_counts(self):
        redis, pipe = _fake_redis([0, 2])
        counter = RedisAttemptCounter(redis, clock=lambda: 10_000.0)
        status = await counter.check("u1")
        assert status == AttemptStatus(allowed=True, remaining=3)
        pipe.zremrangebyscore.assert_called_once_with(
            "otp_attempts:u1", "-inf", 10_000.0 - LOCKOUT_WINDOW_SECONDS
        )
        pipe.zcard.assert_called_once_with("otp_attempts:u1")

    async def test_check_locked_at_limit(self):
        redis, _ = _fake_redis([0, 5])
        counter = RedisAttemptCounter(redis)
        assert (await counter.check("u1")).allowed is False

    async def test_record_failure_adds_and_expires(self):
        redis, pipe = _fake_redis([0, 1, 4, True])
        counter = RedisAttemptCounter(redis, clock=lambda: 500.0)
        remaining = await counter.record_failure("u1")
        assert remaining == 1
        pipe.zadd.assert_called_once()
        key, mapping = pipe.zadd.call_args.args
        assert key == "otp_attempts:u1"
        assert list(mapping.values()) == [500.0]
        pipe.expire.assert_called_once_with("otp_attempts:u1", LOCKOUT_WINDOW_SECONDS)

    async def test_reset_deletes_key(self):
        redis, _ = _fake_redis([])
        counter = RedisAttemptCounter(redis)
        await counter.reset("u1")
        redis.delete.assert_awaited_once_with("otp_attempts:u1")

    async def test_redis_errors_propagate(self):
        redis, pipe = _fake_redis([])
        pipe.execute = AsyncMock(side_effect=RedisConnectionError("down"))
        counter = RedisAttemptCounter(redis)
        with pytest.raises(RedisConnectionError):
            await counter.check("u1")


# ── create_redis_client ───────────────────────────────────────────────────────


class TestCreateRedisClient:
    async def test_none_when_not_configured(self):
        assert await create_redis_client(None) is None

    async def test_none_when_ping_fails(self, mocker):
        client = MagicMock()
        client.ping = AsyncMock(side_effect=RedisConnectionError("refused"))
        client.aclose = AsyncMock()
        mocker.patch("infrastructure.redis_client.aioredis.from_url", return_value=client)
        assert await create_redis_client("redis://localhost:6379") is None
        client.aclose.assert_awaited_once()

    async def test_returns_client_when_ping_ok(self, mocker):
        client = MagicMock()
        client.ping = AsyncMock(return_value=True)
        mocker.patch("infrastructure.redis_client.aioredis.from_url", return_value=client)
        assert await create_redis_client("redis://localhost:6379") is client


# ── ResendEmailProvider ───────────────────────────────────────────────────────


class TestResendEmailProvider:
    def _make(self, api_key="re_test", delays=(1.0, 2.0), **kwargs):
        settings = EmailSettings(
            resend_api_key=api_key,
            resend_from_email="noreply@instaclone.test",
            email_retry_delays=list(delays),
            reset_email_timeout_seconds=0.5,
        )
        http = MagicMock()
        sleep = AsyncMock()
        provider = ResendEmailProvider(
            settings=settings,
            http_client=http,
            app_name="InstaClone",
            sleep=sleep,
            **kwargs,
        )
        return provider, http, sleep

    async def test_send_verification_posts_to_resend(self):
        provider, http, sleep = self._make()
        http.post = AsyncMock(
            return_value=httpx.Response(200, json={"id": "msg_1"})
        )
        result = await provider.send_verification_email(
            "alice@example.com", "alice", "012345", 15
        )
        assert result is True
        http.post.assert_awaited_once()
        url = http.post.call_args.args[0]
        kwargs = http.post.call_args.kwargs
        assert url == "https://api.resend.com/emails"
        assert kwargs["headers"]["Authorization"] == "Bearer re_test"
        assert kwargs["json"]["to"] == ["alice@example.com"]
        assert kwargs["json"]["from"] == "noreply@instaclone.test"
        assert "012345" in kwargs["json"]["html"]
        assert "15 minutes" in kwargs["json"]["html"]
        sleep.assert_not_awaited()

    async def test_reset_email_contains_link(self):
        provider, http, _ = self._make()
        http.post = AsyncMock(return_value=httpx.Response(200, json={"id": "m"}))
        link = "http://localhost:3000/reset-password?token=" + "a" * 64
        assert await provider.send_password_reset_email(
            "alice@example.com", "alice", link, 60
        )
        assert link in http.post.call_args.kwargs["json"]["html"]

    async def test_username_is_escaped(self):
        provider, http, _ = self._make()
        http.post = AsyncMock(return_value=httpx.Response(200, json={}))
        await provider.send_verification_email("a@b.co", "<script>", "123456", 15)
        assert "<script>" not in http.post.call_args.kwargs["json"]["html"]

    async def test_returns_false_when_api_key_empty(self):
        provider, http, _ = self._make(api_key="")
        http.post = AsyncMock()
        assert (
            await provider.send_verification_email("u@e.com", "u", "000000", 15)
            is False
        )
        http.post.assert_not_awaited()

    async def test_retries_5xx_with_backoff_then_succeeds(self):
        provider, http, sleep = self._make()
        http.post = AsyncMock(
            side_effect=[
                httpx.Response(500),
                httpx.Response(502),
                httpx.Response(200, json={"id": "ok"}),
            ]
        )
        assert await provider.send_verification_email("u@e.com", "u", "1", 15)
        assert http.post.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    async def test_gives_up_after_three_attempts(self):
        provider, http, sleep = self._make()
        http.post = AsyncMock(side_effect=httpx.ConnectError("boom"))
        assert (
            await provider.send_verification_email("u@e.com", "u", "1", 15) is False
        )
        assert http.post.await_count == 3
        assert sleep.await_count == 2

    @pytest.mark.parametrize("status", [400, 401, 422, 429])
    async def test_no_retry_on_4xx(self, status):
        provider, http, sleep = self._make()
        http.post = AsyncMock(return_value=httpx.Response(status, text="nope"))
        assert (
            await provider.send_verification_email("u@e.com", "u", "1", 15) is False
        )
        http.post.assert_awaited_once()
        sleep.assert_not_awaited()

    async def test_no_delays_means_single_attempt(self):
        provider, http, sleep = self._make(delays=())
        http.post = AsyncMock(return_value=httpx.Response(503))
        assert (
            await provider.send_verification_email("u@e.com", "u", "1", 15) is False
        )
        http.post.assert_awaited_once()
        sleep.assert_not_awaited()

    async def test_reset_email_single_short_attempt(self):
        provider, http, sleep = self._make()
        http.post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        link = "http://localhost:3000/reset-password?token=" + "a" * 64
        assert (
            await provider.send_password_reset_email("u@e.com", "u", link, 60)
            is False
        )
        http.post.assert_awaited_once()
        assert http.post.call_args.kwargs["timeout"] == 0.5
        sleep.assert_not_awaited()

    @pytest.mark.parametrize("send", ["verification", "reset"])
    async def test_missing_templates_report_failure(self, tmp_path, send):
        provider, http, _ = self._make(template_dir=str(tmp_path / "missing"))
        http.post = AsyncMock()
        if send == "verification":
            result = await provider.send_verification_email("u@e.com", "u", "1", 15)
        else:
            result = await provider.send_password_reset_email(
                "u@e.com", "u", "http://x/reset-password?token=t", 60
            )
        assert result is False
        http.post.assert_not_awaited()

    def test_templates_ship_with_the_module(self):
        for name in ("verification.html", "password_reset.html"):
            assert os.path.isfile(os.path.join(_DEFAULT_TEMPLATE_DIR, name))
        # Inside the package, so wheels carry them as package data
        assert os.path.basename(os.path.dirname(_DEFAULT_TEMPLATE_DIR)) == "email"
