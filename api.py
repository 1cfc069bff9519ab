# -*- coding: utf-8 -*-
"""
FastAPI 后端：Foodie 聊天助手。
每个会话对应一个 ChatProvider；GeminiService（限流/熔断/历史）全进程共享一份。
"""
import logging
import os
from collections import OrderedDict
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from api_schemas import ChatRequest, ChatResponse, QuickActionRequest, SessionResponse, StatusResponse
from assistant import ChatProvider, GeminiService, PlatformContextService
from core.api_client import ApiClient, RestaurantApi
from core.config import get_settings
from core.logging import setup_logging
from core.storage import MemoryStorage

logger = logging.getLogger(__name__)

# ---------- 单例 ----------
_service: GeminiService | None = None
_api_client: ApiClient | None = None


def _get_service() -> GeminiService:
    global _service
    if _service is None:
        _service = GeminiService()
    return _service


def _get_api_client() -> ApiClient:
    global _api_client
    if _api_client is None:
        _api_client = ApiClient()
    return _api_client


# ---------- 内存 Session Store（按最近使用淘汰） ----------
MAX_SESSIONS = get_settings().max_sessions
_sessions: "OrderedDict[str, ChatProvider]" = OrderedDict()


async def _evict_sessions() -> None:
    while len(_sessions) > MAX_SESSIONS:
        session_id, provider = _sessions.popitem(last=False)
        await provider.aclose()
        _get_service().clear_conversation_history(session_id)
        logger.info("会话 %s 已淘汰", session_id)


async def _new_session() -> ChatProvider:
    # 服务端看不到浏览器存储，每个会话用独立的内存存储承载上下文缓存
    context_service = PlatformContextService(
        MemoryStorage(),
        restaurant_api=RestaurantApi(_get_api_client()),
    )
    provider = ChatProvider(_get_service(), context_service)
    _sessions[provider.session_id] = provider
    await _evict_sessions()
    return provider


async def _get_session(session_id: str | None) -> ChatProvider:
    if session_id and session_id in _sessions:
        _sessions.move_to_end(session_id)
        return _sessions[session_id]
    return await _new_session()


def _response(provider: ChatProvider, reply=None) -> ChatResponse:
    return ChatResponse(
        session_id=provider.session_id,
        reply=reply,
        is_typing=provider.is_typing,
        error=provider.error,
        quick_actions=provider.quick_actions,
        route=provider.platform_context.page.route,
    )


# ---------- FastAPI App ----------

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(get_settings().log_level)
    yield
    for provider in _sessions.values():
        await provider.aclose()
    _sessions.clear()
    if _api_client is not None:
        await _api_client.aclose()


app = FastAPI(
    title="Foodify Assistant API",
    description="Foodie 聊天助手 Web 服务（Gemini）",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.post("/api/chat", response_model=ChatResponse)
async def chat(req: ChatRequest):
    """发送一条消息；空白消息不产生任何回复。"""
    provider = await _get_session(req.session_id)
    if req.route:
        provider.context_service.set_location(req.route)
    reply = await provider.send_message(req.message)
    return _response(provider, reply)


@app.post("/api/chat/quick-action", response_model=ChatResponse)
async def quick_action(req: QuickActionRequest):
    provider = await _get_session(req.session_id)
    if req.route:
        provider.context_service.set_location(req.route)
    reply = await provider.handle_quick_action(req.action)
    return _response(provider, reply)


@app.get("/api/chat/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
    provider = _sessions.get(session_id)
    if provider is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return SessionResponse(
        session_id=session_id,
        messages=provider.messages,
        quick_actions=provider.quick_actions,
        error=provider.error,
    )


@app.delete("/api/chat/{session_id}", response_model=SessionResponse)
async def clear_session(session_id: str):
    provider = _sessions.get(session_id)
    if provider is None:
        raise HTTPException(status_code=404, detail="Session not found")
    provider.clear_conversation()
    return SessionResponse(
        session_id=session_id,
        messages=provider.messages,
        quick_actions=provider.quick_actions,
        error=provider.error,
    )


@app.get("/api/chat-status", response_model=StatusResponse)
async def status():
    service = _get_service()
    return StatusResponse(
        rate_limit=service.get_rate_limit_status(),
        circuit_breaker=service.get_circuit_breaker_status(),
    )


@app.get("/api/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8080))
    uvicorn.run("api:app", host="0.0.0.0", port=port, reload=True)
