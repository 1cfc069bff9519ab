#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
测试 Gemini 补全管线：重试与指数退避、不可重试错误、限流、熔断、超时、历史上限与输入清洗。
"""
from __future__ import annotations

import asyncio
import sys
import unittest
from pathlib import Path

_ROOT = Path(__file__).resolve().parent.parent
_TESTS = Path(__file__).resolve().parent
for _p in (_ROOT, _TESTS):
    if str(_p) not in sys.path:
        sys.path.insert(0, str(_p))

from assistant.gemini_service import GeminiService
from assistant.rate_limit import CircuitState
from assistant.schemas import PlatformContext
from core.config import Settings
from core.errors import ApiError, NetworkError, RateLimitError, ValidationError

from fakes import FakeClock, FakeLLM, RecordingSleep


class TestGeminiService(unittest.IsolatedAsyncioTestCase):
    def _service(self, llm: FakeLLM, **overrides) -> GeminiService:
        self.sleep = RecordingSleep()
        self.clock = FakeClock()
        return GeminiService(
            llm=llm,
            settings=Settings(**overrides),
            sleep=self.sleep,
            clock=self.clock,
        )

    async def test_reply_and_history(self) -> None:
        llm = FakeLLM(["Try the biryani!"])
        service = self._service(llm)
        reply = await service.send_message("What's good?", PlatformContext(), "s1")

        self.assertEqual(reply, "Try the biryani!")
        history = service.get_conversation_history("s1")
        self.assertEqual([m.content for m in history], ["What's good?", "Try the biryani!"])
        self.assertEqual(service.get_conversation_history("other"), [])

    async def test_retries_overload_with_exponential_backoff(self) -> None:
        llm = FakeLLM([ApiError(status=503), ApiError(status=503), ApiError(status=503), "finally"])
        service = self._service(llm)
        reply = await service.send_message("hi", None, "s1")

        self.assertEqual(reply, "finally")
        self.assertEqual(len(llm.calls), 4)
        self.assertEqual(self.sleep.delays, [0.8, 1.6, 3.2])
        # 一条消息只计一次
        self.assertEqual(service.rate_limiter.minute_count, 1)
        self.assertIs(service.circuit_breaker.state, CircuitState.CLOSED)
        self.assertEqual(service.circuit_breaker.failure_count, 0)

    async def test_gives_up_after_max_retries(self) -> None:
        llm = FakeLLM([ApiError(status=500)] * 4)
        service = self._service(llm)

        with self.assertRaises(ApiError) as ctx:
            await service.send_message("hi", None, "s1")

        self.assertEqual(ctx.exception.status, 500)
        self.assertEqual(len(llm.calls), 4)
        self.assertEqual(self.sleep.delays, [0.8, 1.6, 3.2])
        self.assertEqual(service.get_conversation_history("s1"), [])

    async def test_non_retryable_error_fails_immediately(self) -> None:
        llm = FakeLLM([ApiError(status=400)])
        service = self._service(llm)

        with self.assertRaises(ApiError) as ctx:
            await service.send_message("hi", None, "s1")

        self.assertEqual(ctx.exception.status, 400)
        self.assertEqual(len(llm.calls), 1)
        self.assertEqual(self.sleep.delays, [])

    async def test_sdk_errors_are_classified(self) -> None:
        class QuotaError(Exception):
            code = 429

        llm = FakeLLM([QuotaError("quota"), ConnectionError("reset"), "ok"])
        service = self._service(llm)
        self.assertEqual(await service.send_message("hi", None, "s1"), "ok")
        self.assertEqual(len(llm.calls), 3)

    async def test_timeout_is_network_error(self) -> None:
        llm = FakeLLM(["late"], delay=0.5)
        service = self._service(llm, request_timeout=0.01, max_retries=0)

        with self.assertRaises(NetworkError) as ctx:
            await service.send_message("hi", None, "s1")
        self.assertEqual(ctx.exception.message, "Request timeout")

    async def test_empty_reply_is_error(self) -> None:
        llm = FakeLLM(["   "])
        service = self._service(llm, max_retries=0)
        with self.assertRaises(ApiError):
            await service.send_message("hi", None, "s1")

    async def test_rate_limit_rejects_without_calling_model(self) -> None:
        llm = FakeLLM()
        service = self._service(llm, max_requests_per_minute=60)
        for i in range(60):
            await service.send_message(f"m{i}", None, "s1")

        with self.assertRaises(RateLimitError):
            await service.send_message("one more", None, "s1")
        self.assertEqual(len(llm.calls), 60)
        self.assertFalse(service.get_rate_limit_status()["can_make_request"])

        self.clock.advance(61)
        self.assertEqual(await service.send_message("later", None, "s1"), "ok")

    async def test_open_breaker_rejects_without_calling_model(self) -> None:
        llm = FakeLLM()
        service = self._service(llm)
        for _ in range(5):
            service.circuit_breaker.record_overload()

        with self.assertRaises(ApiError) as ctx:
            await service.send_message("hi", None, "s1")
        self.assertEqual(ctx.exception.details["status"], "CIRCUIT_BREAKER_OPEN")
        self.assertEqual(llm.calls, [])
        self.assertEqual(service.rate_limiter.minute_count, 0)

        service.reset_circuit_breaker()
        self.assertEqual(await service.send_message("hi", None, "s1"), "ok")

    async def test_history_capped(self) -> None:
        llm = FakeLLM()
        service = self._service(llm, max_requests_per_minute=1000)
        for i in range(60):
            await service.send_message(f"m{i}", None, "s1")

        history = service.get_conversation_history("s1")
        self.assertEqual(len(history), 50)
        self.assertEqual(history[-2].content, "m59")

    async def test_prompt_uses_recent_history_only(self) -> None:
        llm = FakeLLM()
        service = self._service(llm)
        for i in range(6):
            await service.send_message(f"q{i}", None, "s1")
        await service.send_message("latest", None, "s1")

        body = llm.calls[-1][1].content
        self.assertNotIn("user: q0\n", body)
        self.assertIn("user: q1\n", body)
        self.assertIn("user: latest", body)

    async def test_input_sanitized_before_model(self) -> None:
        llm = FakeLLM()
        service = self._service(llm)
        await service.send_message("hello <script>alert(1)</script>", None, "s1")

        body = llm.calls[0][1].content
        self.assertIn("hello", body)
        self.assertNotIn("<script>", body)

    async def test_empty_after_sanitizing_rejected(self) -> None:
        llm = FakeLLM()
        service = self._service(llm)
        with self.assertRaises(ValidationError):
            await service.send_message("<script>x()</script>", None, "s1")
        self.assertEqual(llm.calls, [])
        self.assertEqual(service.rate_limiter.minute_count, 0)

    async def test_concurrent_sends_respect_rate_limit(self) -> None:
        llm = FakeLLM(delay=0.01)
        service = self._service(llm, max_requests_per_minute=3)

        results = await asyncio.gather(
            *(service.send_message(f"m{i}", None, f"s{i}") for i in range(6)),
            return_exceptions=True,
        )

        replies = [r for r in results if r == "ok"]
        rejected = [r for r in results if isinstance(r, RateLimitError)]
        self.assertEqual(len(replies), 3)
        self.assertEqual(len(rejected), 3)
        self.assertEqual(len(llm.calls), 3)
        self.assertEqual(service.rate_limiter.minute_count, 3)

    async def test_clear_history(self) -> None:
        service = self._service(FakeLLM())
        await service.send_message("hi", None, "s1")
        service.clear_conversation_history("s1")
        self.assertEqual(service.get_conversation_history("s1"), [])


if __name__ == "__main__":
    unittest.main()
