# -*- coding: utf-8 -*-
"""
聊天会话协调器：管理会话消息、输入中状态、快捷操作与平台上下文。
所有对话都经 send_message 进入管线；管线的任何失败都转成一条 type="error" 的机器人消息，不向调用方抛出。
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from core.errors import FoodifyError

from .gemini_service import GeminiService
from .platform_context import PlatformContextService
from .prompt import WELCOME_TEXT, get_fallback_response
from .schemas import ChatMessage, PlatformContext, QuickAction

logger = logging.getLogger(__name__)

# 快捷操作 → 预设发言（navigate / search / 默认 另行处理）
QUICK_ACTION_PHRASES: dict[str, str] = {
    "show_filters": "Show me the available filter options",
    "location_search": "Find restaurants near my location",
    "menu_help": "Can you recommend some popular items from this menu?",
    "delivery_info": "What are the delivery details for this restaurant?",
    "checkout_help": "I need help with the checkout process",
    "modify_order": "I want to modify my current order",
    "track_order": "Help me track my order",
    "contact_delivery": "I need to contact the delivery person",
    "login_help": "I need help logging into my account",
    "register_help": "I need help creating a new account",
    "account_help": "I need help with my account settings",
    "order_history": "Show me my recent orders",
    "contact_support": "I need to contact customer support",
    "faq": "Show me frequently asked questions",
}


class ChatProvider:
    def __init__(
        self,
        service: GeminiService,
        context_service: PlatformContextService,
        navigator: Callable[[str], Any] | None = None,
    ):
        self.service = service
        self.context_service = context_service
        self.navigator = navigator
        self.session_id = str(uuid.uuid4())
        self.messages: list[ChatMessage] = []
        self.quick_actions: list[QuickAction] = []
        self.platform_context: PlatformContext = context_service.get_quick_context()
        self.error: str | None = None
        self.is_open = False
        self.last_activity: datetime | None = None
        self._pending = 0
        self._active = True

        self._add_message(self._welcome_message())
        self.update_quick_actions()

    @property
    def is_typing(self) -> bool:
        return self._pending > 0

    @staticmethod
    def _welcome_message() -> ChatMessage:
        return ChatMessage(text=WELCOME_TEXT, sender="bot")

    def _add_message(self, message: ChatMessage) -> None:
        if not self._active:
            return
        self.messages.append(message)
        self.last_activity = datetime.now(timezone.utc)

    def _set_context(self, context: PlatformContext) -> None:
        if self._active:
            self.platform_context = context

    # ---------- 生命周期 ----------

    async def mount(self) -> None:
        await self.refresh_context()

    async def aclose(self) -> None:
        """卸载后仍在进行中的请求不再修改会话。"""
        self._active = False

    async def refresh_context(self) -> PlatformContext:
        context = await self.context_service.get_full_platform_context()
        self._set_context(context)
        self.update_quick_actions()
        return self.platform_context

    # ---------- 窗口开关 ----------

    def open_chat(self) -> None:
        self.is_open = True

    def close_chat(self) -> None:
        self.is_open = False
        self.error = None

    def toggle_chat(self) -> None:
        if self.is_open:
            self.close_chat()
        else:
            self.open_chat()

    # ---------- 发送消息 ----------

    async def send_message(self, text: str) -> ChatMessage | None:
        """空白输入直接忽略；否则追加用户消息并请求回复。返回追加的机器人消息。"""
        if not isinstance(text, str) or not text.strip():
            return None

        text = text.strip()
        self.error = None
        self._add_message(ChatMessage(text=text, sender="user"))
        self._pending += 1
        try:
            context = await self.context_service.get_full_platform_context()
            self._set_context(context)
            reply = await self.service.send_message(text, context, self.session_id)
        except FoodifyError as e:
            return self._fail(e, e.message)
        except Exception as e:
            logger.exception("发送消息时出现未预期错误")
            return self._fail(e, str(e) or "Failed to send message")
        finally:
            self._pending -= 1

        if not self._active:
            return None
        bot_message = ChatMessage(text=reply, sender="bot")
        self._add_message(bot_message)
        self.update_quick_actions()
        return bot_message

    def _fail(self, error: Exception, description: str) -> ChatMessage | None:
        if not self._active:
            return None
        message = ChatMessage(text=get_fallback_response(error), sender="bot", type="error")
        self._add_message(message)
        self.error = description
        return message

    # ---------- 快捷操作 ----------

    def update_quick_actions(self) -> None:
        if self._active:
            self.quick_actions = self.context_service.get_contextual_quick_actions(self.platform_context)

    async def navigate(self, route: str) -> None:
        self.context_service.set_location(route)
        if self.navigator is not None:
            self.navigator(route)
        await self.refresh_context()

    async def handle_quick_action(self, action: QuickAction | dict) -> ChatMessage | None:
        if isinstance(action, dict):
            action = QuickAction.model_validate(action)

        if action.action == "navigate":
            await self.navigate(action.data or "/")
            return None
        if action.action == "search":
            return await self.send_message(f"Help me find {action.data or ''}")
        phrase = QUICK_ACTION_PHRASES.get(action.action)
        return await self.send_message(phrase or action.label)

    # ---------- 会话管理 ----------

    def clear_conversation(self) -> None:
        self.messages = []
        self.last_activity = None
        self.service.clear_conversation_history(self.session_id)
        self._add_message(self._welcome_message())
        self.update_quick_actions()

    async def update_platform_context(self, updates: dict | None = None) -> PlatformContext:
        """重新汇总上下文并合并局部更新（例如路由或购物车变化后）。"""
        updates = updates or {}
        context = await self.context_service.get_full_platform_context()
        merged = context.merge(updates)
        self.context_service.update_context(updates)
        self._set_context(merged)
        self.update_quick_actions()
        return self.platform_context

    def update_message(self, message_id: str, **changes) -> ChatMessage | None:
        """整条替换指定消息。"""
        for i, m in enumerate(self.messages):
            if m.id == message_id:
                self.messages[i] = m.model_copy(update=changes)
                return self.messages[i]
        return None

    # ---------- 只读工具 ----------

    def get_message_count(self) -> int:
        return len(self.messages)

    def has_user_messages(self) -> bool:
        return any(m.sender == "user" for m in self.messages)

    def get_last_message(self) -> ChatMessage | None:
        return self.messages[-1] if self.messages else None
