# -*- coding: utf-8 -*-
"""
聊天补全管线 - LangGraph 状态图。
流程：validate（清洗）-> admit（限流/熔断）-> compose（拼提示词）-> generate（调用 Gemini）
      generate 失败且可重试 -> backoff（指数退避）-> generate；成功 -> remember（写入历史）。
校验与限流错误直接抛出，不进入重试。
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal, Optional

from typing_extensions import TypedDict

from langgraph.graph import END, START, StateGraph

from core.errors import ApiError, FoodifyError, RateLimitError, ValidationError

from .prompt import compose_messages, history_pair, sanitize_user_input

if TYPE_CHECKING:
    from .gemini_service import GeminiService

logger = logging.getLogger(__name__)


class CompletionState(TypedDict, total=False):
    """单条消息的补全状态。"""
    message: str
    session_id: str
    platform_context: Any           # PlatformContext | None
    sanitized: str
    prompt: list[Any]               # [SystemMessage, HumanMessage]
    attempt: int                    # 已完成的重试次数
    reply: Optional[str]
    error: Optional[FoodifyError]   # 最近一次可重试的失败


def build_completion_graph(service: "GeminiService"):
    settings = service.settings

    async def validate_node(state: CompletionState) -> dict:
        sanitized = sanitize_user_input(state.get("message"), settings.max_input_length)
        if not sanitized:
            raise ValidationError("Message cannot be empty after sanitization")
        return {"sanitized": sanitized, "attempt": 0, "reply": None, "error": None}

    async def admit_node(state: CompletionState) -> dict:
        # 检查与计数之间不能有 await，并发请求才不会一起越过上限
        if not service.rate_limiter.allow():
            logger.warning("会话 %s 触发限流", state.get("session_id"))
            raise RateLimitError()
        if not service.circuit_breaker.allow():
            raise ApiError(
                "Service temporarily unavailable due to overload. Please try again in a minute.",
                status=503,
                details={"status": "CIRCUIT_BREAKER_OPEN"},
            )
        # 每条消息只计数一次，重试不重复计数
        service.rate_limiter.record()
        return {}

    async def compose_node(state: CompletionState) -> dict:
        history = service.get_conversation_history(state["session_id"])
        prompt = compose_messages(
            state["sanitized"],
            state.get("platform_context"),
            history,
            max_history=settings.prompt_history,
        )
        return {"prompt": prompt}

    async def generate_node(state: CompletionState) -> dict:
        attempt = state.get("attempt", 0)
        try:
            reply = await service.generate(state["prompt"])
        except FoodifyError as e:
            if isinstance(e, ApiError) and e.is_overload:
                service.circuit_breaker.record_overload()
            if not e.retryable:
                raise
            logger.warning("Gemini 调用失败（第 %d 次）：%s", attempt + 1, e.message)
            return {"error": e}
        return {"reply": reply, "error": None}

    def _route_after_generate(state: CompletionState) -> Literal["done", "retry", "fail"]:
        if state.get("reply") is not None:
            return "done"
        if state.get("attempt", 0) < settings.max_retries:
            return "retry"
        return "fail"

    async def backoff_node(state: CompletionState) -> dict:
        attempt = state.get("attempt", 0)
        delay = settings.base_delay * (2 ** attempt)
        logger.info("%.2fs 后重试（%d/%d）", delay, attempt + 1, settings.max_retries)
        await service.sleep(delay)
        return {"attempt": attempt + 1}

    async def fail_node(state: CompletionState) -> dict:
        error = state.get("error") or ApiError()
        logger.error("重试 %d 次后仍失败：%s", state.get("attempt", 0), error.message)
        raise error

    async def remember_node(state: CompletionState) -> dict:
        service.circuit_breaker.record_success()
        service.update_conversation_history(
            state["session_id"],
            history_pair(state["sanitized"], state["reply"]),
        )
        return {}

    workflow = StateGraph(CompletionState)
    workflow.add_node("validate", validate_node)
    workflow.add_node("admit", admit_node)
    workflow.add_node("compose", compose_node)
    workflow.add_node("generate", generate_node)
    workflow.add_node("backoff", backoff_node)
    workflow.add_node("fail", fail_node)
    workflow.add_node("remember", remember_node)

    workflow.add_edge(START, "validate")
    workflow.add_edge("validate", "admit")
    workflow.add_edge("admit", "compose")
    workflow.add_edge("compose", "generate")
    workflow.add_conditional_edges(
        "generate",
        _route_after_generate,
        {"done": "remember", "retry": "backoff", "fail": "fail"},
    )
    workflow.add_edge("backoff", "generate")
    workflow.add_edge("remember", END)
    workflow.add_edge("fail", END)
    return workflow.compile()
