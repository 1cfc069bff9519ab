# -*- coding: utf-8 -*-
"""
Gemini 服务：持有补全管线、限流器、熔断器与按会话划分的对话历史（仅内存）。
send_message 失败时抛出 FoodifyError 子类，由 ChatProvider 转成对话中的错误消息。
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

from langchain_core.messages import BaseMessage

from core.config import Settings, get_settings
from core.errors import ApiError, FoodifyError, NetworkError
from core.llm import get_llm

from .pipeline import build_completion_graph
from .prompt import get_fallback_response
from .rate_limit import CircuitBreaker, RateLimiter
from .schemas import PlatformContext

logger = logging.getLogger(__name__)


def _content_text(resp: Any) -> str:
    content = resp.content if hasattr(resp, "content") else resp
    if isinstance(content, list):
        parts = []
        for p in content:
            if isinstance(p, str):
                parts.append(p)
            elif isinstance(p, dict) and p.get("type", "text") == "text":
                parts.append(p.get("text", ""))
        content = "".join(parts)
    return content if isinstance(content, str) else str(content or "")


def _classify_llm_error(e: Exception) -> FoodifyError:
    """SDK 异常 → 统一错误类型；带数字状态码的视为 ApiError。"""
    code = getattr(e, "code", None)
    if not isinstance(code, int):
        code = getattr(e, "status_code", None)
    if isinstance(code, int):
        return ApiError(str(e), status=int(code), details={"message": str(e)})
    if isinstance(e, (ConnectionError, OSError)):
        return NetworkError(f"Network error: {e}")
    return ApiError(f"Gemini API error: {e}", details={"message": str(e)})


class GeminiService:
    def __init__(
        self,
        llm=None,
        settings: Settings | None = None,
        rate_limiter: RateLimiter | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or get_settings()
        self._llm = llm
        self.sleep = sleep
        self.rate_limiter = rate_limiter or RateLimiter(
            self.settings.max_requests_per_minute,
            self.settings.max_requests_per_hour,
            clock=clock,
        )
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            self.settings.breaker_max_failures,
            self.settings.breaker_reset_timeout,
            clock=clock,
        )
        self.conversation_history: dict[str, list[BaseMessage]] = {}
        self._graph = build_completion_graph(self)

    @property
    def llm(self):
        if self._llm is None:
            try:
                self._llm = get_llm(model=self.settings.gemini_model)
            except RuntimeError as e:
                raise ApiError(str(e), status=401) from e
        return self._llm

    async def generate(self, prompt: list[BaseMessage]) -> str:
        """单次调用 Gemini（带超时）；超时视为可重试的网络错误。"""
        llm = self.llm
        try:
            resp = await asyncio.wait_for(llm.ainvoke(prompt), timeout=self.settings.request_timeout)
        except asyncio.TimeoutError as e:
            raise NetworkError("Request timeout") from e
        except FoodifyError:
            raise
        except Exception as e:
            raise _classify_llm_error(e) from e

        text = _content_text(resp).strip()
        if not text:
            raise ApiError("Invalid response format from Gemini API")
        return text

    async def send_message(
        self,
        message: str,
        platform_context: PlatformContext | None = None,
        session_id: str = "default",
    ) -> str:
        started = time.monotonic()
        try:
            result = await self._graph.ainvoke(
                {
                    "message": message,
                    "session_id": session_id,
                    "platform_context": platform_context,
                },
                config={"recursion_limit": 10 + 2 * self.settings.max_retries},
            )
        except FoodifyError as e:
            logger.error(
                "Gemini 请求失败（%s，%.0fms）：%s",
                e.kind, (time.monotonic() - started) * 1000, e.message,
            )
            raise
        logger.info("Gemini 响应耗时 %.0fms", (time.monotonic() - started) * 1000)
        return result["reply"]

    # ---------- 对话历史 ----------

    def get_conversation_history(self, session_id: str) -> list[BaseMessage]:
        return list(self.conversation_history.get(session_id, []))

    def update_conversation_history(self, session_id: str, messages: list[BaseMessage]) -> None:
        history = self.conversation_history.get(session_id, []) + list(messages)
        limit = self.settings.history_limit
        self.conversation_history[session_id] = history[-limit:]

    def clear_conversation_history(self, session_id: str) -> None:
        self.conversation_history.pop(session_id, None)

    # ---------- 状态查询 ----------

    def get_rate_limit_status(self) -> dict:
        return self.rate_limiter.status()

    def get_circuit_breaker_status(self) -> dict:
        return self.circuit_breaker.status()

    def reset_circuit_breaker(self) -> None:
        self.circuit_breaker.reset()
        logger.info("熔断器已手动重置")

    @staticmethod
    def get_fallback_response(error: Exception) -> str:
        return get_fallback_response(error)
