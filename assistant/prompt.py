# -*- coding: utf-8 -*-
"""
提示词构建：输入清洗、系统提示词（按平台上下文）、对话拼接，以及失败时的兜底回复。
"""
import re

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from core.errors import ApiError, FoodifyError

from .schemas import PlatformContext

MAX_INPUT_LENGTH = 1000

WELCOME_TEXT = "Hello! I'm Foodie, your virtual assistant. How can I help you today?"
APOLOGY_TEXT = (
    "I'm sorry, I'm having trouble processing your request right now. "
    "Please try again in a moment, or contact our support team at support@foodify.com for immediate assistance."
)

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_JS_URI_RE = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"on\w+\s*=", re.IGNORECASE)


def sanitize_user_input(text, max_length: int = MAX_INPUT_LENGTH) -> str:
    """去掉 <script> 块、javascript: 与 onXxx= 事件属性，截断后去首尾空白。"""
    if not isinstance(text, str):
        return ""
    cleaned = _SCRIPT_RE.sub("", text)
    cleaned = _JS_URI_RE.sub("", cleaned)
    cleaned = _EVENT_HANDLER_RE.sub("", cleaned)
    return cleaned[:max_length].strip()


def format_system_prompt(context: PlatformContext | None = None) -> str:
    context = context or PlatformContext()
    lines = [
        "You are Foodie, a helpful AI assistant for the Foodify food delivery platform. You help customers with:",
        "- Finding restaurants and menu items",
        "- Placing orders and managing cart",
        "- Order tracking and support",
        "- General platform navigation",
        "- Account management",
        "",
        "Current context:",
    ]
    page = context.page
    lines.append(f"- User is on: {page.route} ({page.title})")

    user = context.user
    if user.is_authenticated:
        lines.append(f"- User: {user.name or 'Authenticated user'}")
    else:
        lines.append("- User: Not logged in")

    cart = context.cart
    if cart.item_count > 0:
        cart_line = f"- Cart: {cart.item_count} items, Total: Rs. {cart.total}"
        if cart.restaurant_name:
            cart_line += f" from {cart.restaurant_name}"
        lines.append(cart_line)

    restaurant = context.current_restaurant
    if restaurant is not None:
        lines.append(f"- Viewing restaurant: {restaurant.name} ({restaurant.cuisine or 'various'})")

    if context.recent_orders:
        lines.append(f"- Recent orders: {len(context.recent_orders)} orders")

    lines.append("")
    lines.append(
        "Be helpful, friendly, and concise. Provide specific assistance based on the current context. "
        "If you can't help with something, suggest contacting support."
    )
    return "\n".join(lines)


def compose_messages(
    message: str,
    context: PlatformContext | None,
    history: list[BaseMessage],
    max_history: int = 10,
) -> list[BaseMessage]:
    """系统提示词 + 最近 max_history 条历史 + 本轮用户发言。"""
    conv_lines = ["Conversation:"]
    recent = history[-max_history:] if max_history > 0 else []
    for m in recent:
        role = "user" if isinstance(m, HumanMessage) else "assistant"
        conv_lines.append(f"{role}: {m.content}")
    conv_lines.append(f"user: {message}")
    conv_lines.append("assistant:")
    return [
        SystemMessage(content=format_system_prompt(context)),
        HumanMessage(content="\n".join(conv_lines)),
    ]


def history_pair(message: str, reply: str) -> list[BaseMessage]:
    return [HumanMessage(content=message), AIMessage(content=reply)]


# ---------- 失败兜底回复 ----------

_FALLBACK_BY_KIND = {
    "network": "I'm having trouble connecting right now. Please check your internet connection and try again.",
    "api": "I'm experiencing some technical difficulties. Please try asking your question again in a few seconds.",
    "rate_limit": "I'm receiving too many requests right now. Please wait a moment before trying again.",
    "validation": "I didn't understand that message. Could you please rephrase your question?",
}


def get_fallback_response(error: Exception) -> str:
    """按错误类别给出面向用户的致歉回复。"""
    if isinstance(error, ApiError):
        if error.details.get("status") == "CIRCUIT_BREAKER_OPEN":
            return "I'm temporarily pausing requests due to service overload. Please try again in 30 seconds - I'll be back to help you soon!"
        if error.is_overload:
            return (
                "I'm experiencing high demand right now! The AI service is temporarily overloaded. "
                "Please try your question again in a few seconds."
            )
        if error.status == 429:
            return "I've reached my usage limit for now. Please try again in a few minutes, and I'll be happy to help you find great food options!"
        if error.status == 400:
            return "I had trouble understanding your request. Could you please rephrase your question? I'm here to help with restaurants, orders, and food delivery!"
        if error.status in (401, 403):
            return "I'm having authentication issues with my AI service. Please try again in a moment, or contact support if this continues."
    if isinstance(error, FoodifyError):
        return _FALLBACK_BY_KIND.get(error.kind, APOLOGY_TEXT)
    return APOLOGY_TEXT
