# -*- coding: utf-8 -*-
"""
Foodify 聊天助手 Foodie：
平台上下文汇总 + 限流/熔断 + LangGraph 补全管线（Gemini）+ 有界会话历史。
"""
from .context import QUICK_ACTION_PHRASES, ChatProvider
from .gemini_service import GeminiService
from .pipeline import CompletionState, build_completion_graph
from .platform_context import PlatformContextService
from .prompt import format_system_prompt, get_fallback_response, sanitize_user_input
from .rate_limit import CircuitBreaker, CircuitState, RateLimiter
from .schemas import ChatMessage, PlatformContext, QuickAction

__all__ = [
    "ChatProvider",
    "QUICK_ACTION_PHRASES",
    "GeminiService",
    "CompletionState",
    "build_completion_graph",
    "PlatformContextService",
    "format_system_prompt",
    "get_fallback_response",
    "sanitize_user_input",
    "RateLimiter",
    "CircuitBreaker",
    "CircuitState",
    "ChatMessage",
    "PlatformContext",
    "QuickAction",
]
