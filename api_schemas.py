# -*- coding: utf-8 -*-
"""FastAPI 请求/响应模型（Foodie 聊天助手 Web API）。"""
from typing import Optional

from pydantic import BaseModel

from assistant.schemas import ChatMessage, QuickAction


class ChatRequest(BaseModel):
    session_id: Optional[str] = None
    message: str
    route: Optional[str] = None


class QuickActionRequest(BaseModel):
    session_id: Optional[str] = None
    action: QuickAction
    route: Optional[str] = None


class ChatResponse(BaseModel):
    session_id: str
    reply: Optional[ChatMessage] = None
    is_typing: bool = False
    error: Optional[str] = None
    quick_actions: list[QuickAction] = []
    route: str = "/"


class SessionResponse(BaseModel):
    session_id: str
    messages: list[ChatMessage]
    quick_actions: list[QuickAction]
    error: Optional[str] = None


class StatusResponse(BaseModel):
    rate_limit: dict
    circuit_breaker: dict
