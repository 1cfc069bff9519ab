# -*- coding: utf-8 -*-
"""
聊天助手数据模型（Pydantic）：消息、快捷操作与平台上下文快照。
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

MAX_RECENT_ORDERS = 5


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ChatMessage(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    text: str
    sender: Literal["user", "bot"]
    timestamp: datetime = Field(default_factory=_now)
    type: Literal["text", "error"] = "text"


class QuickAction(BaseModel):
    """快捷操作：action 决定导航还是转为一句预设消息，data 为导航目标或搜索词。"""
    id: str
    label: str
    action: str
    data: str | None = None


# ---------- 平台上下文（只读快照，由外部提供方汇总） ----------

class PageContext(BaseModel):
    route: str = "/"
    title: str = "Home"
    type: str = "home"
    params: dict[str, str] = Field(default_factory=dict)
    restaurant_id: str | None = None


class UserContext(BaseModel):
    is_authenticated: bool = False
    id: Any = None
    name: str | None = None
    email: str | None = None
    role: str = "guest"


class CartSummary(BaseModel):
    item_count: int = 0
    total: int = 0
    restaurant_name: str | None = None
    is_empty: bool = True


class RestaurantContext(BaseModel):
    id: Any
    name: str = ""
    cuisine: str | None = None
    rating: float | None = None
    delivery_time: str | None = None
    minimum_order: float | None = None
    is_open: bool | None = None
    categories: list[Any] = Field(default_factory=list)


class OrderSummary(BaseModel):
    id: Any
    status: str | None = None
    total: float | None = None
    restaurant: Any = None
    created_at: str | None = None
    estimated_delivery: str | None = None


class PlatformContext(BaseModel):
    page: PageContext = Field(default_factory=PageContext)
    user: UserContext = Field(default_factory=UserContext)
    cart: CartSummary = Field(default_factory=CartSummary)
    current_restaurant: RestaurantContext | None = None
    recent_orders: list[OrderSummary] = Field(default_factory=list, max_length=MAX_RECENT_ORDERS)
    timestamp: datetime = Field(default_factory=_now)

    def merge(self, updates: dict) -> "PlatformContext":
        """合并局部更新（嵌套字段按字段合并），返回新快照。"""
        data = self.model_dump()
        for key, value in (updates or {}).items():
            if isinstance(value, BaseModel):
                value = value.model_dump()
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key] = {**data[key], **value}
            else:
                data[key] = value
        if isinstance(data.get("recent_orders"), list):
            data["recent_orders"] = data["recent_orders"][:MAX_RECENT_ORDERS]
        data["timestamp"] = _now()
        return PlatformContext.model_validate(data)
