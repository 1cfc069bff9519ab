# -*- coding: utf-8 -*-
"""
平台上下文汇总：当前页面、登录用户、购物车摘要、正在浏览的餐厅、最近订单。
页面来自 set_location，用户与购物车来自本地存储，餐厅与订单优先读缓存、未命中再请求后端。
"""
import logging
import time
from typing import Any, Callable
from urllib.parse import parse_qsl, urlsplit

from core.errors import FoodifyError
from core.storage import (
    CART_STORAGE_KEY,
    USER_STORAGE_KEY,
    KeyValueStorage,
    read_json,
    write_json,
)

from .schemas import (
    MAX_RECENT_ORDERS,
    CartSummary,
    OrderSummary,
    PageContext,
    PlatformContext,
    QuickAction,
    RestaurantContext,
    UserContext,
)

logger = logging.getLogger(__name__)

MAX_QUICK_ACTIONS = 6
ORDERS_CACHE_TTL = 60 * 60

# 路由 → (标题, 页面类型)
ROUTE_MAP: dict[str, tuple[str, str]] = {
    "/": ("Home", "home"),
    "/browse": ("Browse Restaurants", "browse"),
    "/cart": ("Shopping Cart", "cart"),
    "/checkout": ("Checkout", "checkout"),
    "/login": ("Login", "auth"),
    "/register": ("Register", "auth"),
    "/restaurant-register": ("Restaurant Registration", "restaurant-auth"),
    "/track-order": ("Track Order", "order-tracking"),
    "/admin": ("Admin Dashboard", "admin"),
    "/restaurant-dashboard": ("Restaurant Dashboard", "restaurant-dashboard"),
}


def _pick(data: dict, *keys: str, default=None):
    for k in keys:
        if data.get(k) is not None:
            return data[k]
    return default


def _restaurant_from_raw(raw: dict) -> RestaurantContext:
    return RestaurantContext(
        id=raw.get("id"),
        name=raw.get("name") or "",
        cuisine=raw.get("cuisine"),
        rating=_pick(raw, "rating"),
        delivery_time=_pick(raw, "delivery_time", "deliveryTime"),
        minimum_order=_pick(raw, "minimum_order", "minimumOrder"),
        is_open=_pick(raw, "is_open", "isOpen"),
        categories=raw.get("categories") or [],
    )


def _order_from_raw(raw: dict) -> OrderSummary:
    return OrderSummary(
        id=raw.get("id"),
        status=raw.get("status"),
        total=_pick(raw, "total"),
        restaurant=raw.get("restaurant"),
        created_at=_pick(raw, "created_at", "createdAt"),
        estimated_delivery=_pick(raw, "estimated_delivery", "estimatedDelivery"),
    )


class PlatformContextService:
    def __init__(
        self,
        storage: KeyValueStorage,
        restaurant_api=None,
        order_api=None,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage
        self.restaurant_api = restaurant_api
        self.order_api = order_api
        self.clock = clock
        self.route = "/"
        self.params: dict[str, str] = {}
        self.current_context = PlatformContext()

    def set_location(self, location: str) -> None:
        """记录当前路由（可带查询串），相当于前端的路由变化。"""
        parts = urlsplit(location or "/")
        self.route = parts.path or "/"
        self.params = dict(parse_qsl(parts.query))

    # ---------- 同步部分 ----------

    def get_current_page_context(self) -> PageContext:
        route = self.route
        restaurant_id = None
        if route in ROUTE_MAP:
            title, page_type = ROUTE_MAP[route]
        elif route.startswith("/restaurant/"):
            title, page_type = "Restaurant Menu", "restaurant-menu"
            restaurant_id = route.split("/")[2] or None
        else:
            title, page_type = "Unknown Page", "unknown"
        return PageContext(
            route=route,
            title=title,
            type=page_type,
            params=dict(self.params),
            restaurant_id=restaurant_id,
        )

    def get_user_context(self) -> UserContext:
        user = read_json(self.storage, USER_STORAGE_KEY)
        if isinstance(user, dict) and user.get("token"):
            return UserContext(
                is_authenticated=True,
                id=user.get("id"),
                name=user.get("name"),
                email=user.get("email"),
                role=user.get("role") or "customer",
            )
        return UserContext()

    def get_cart_context(self) -> CartSummary:
        cart = read_json(self.storage, CART_STORAGE_KEY)
        if not isinstance(cart, dict):
            return CartSummary()
        items = cart.get("items") or []
        restaurant_name = None
        if items and isinstance(items[0], dict):
            restaurant_name = items[0].get("restaurant_name") or None
        return CartSummary(
            item_count=len(items),
            total=int(cart.get("total") or 0),
            restaurant_name=restaurant_name,
            is_empty=not items,
        )

    # ---------- 需访问后端的部分（失败返回空） ----------

    async def get_restaurant_context(self, restaurant_id: Any = None) -> RestaurantContext | None:
        if restaurant_id is None:
            restaurant_id = self.get_current_page_context().restaurant_id
        if restaurant_id is None:
            return None

        cache_key = f"restaurant_{restaurant_id}"
        cached = read_json(self.storage, cache_key)
        if isinstance(cached, dict):
            return _restaurant_from_raw(cached)

        if self.restaurant_api is None:
            return None
        try:
            raw = await self.restaurant_api.get(restaurant_id)
        except FoodifyError as e:
            logger.warning("获取餐厅 %s 信息失败: %s", restaurant_id, e.message)
            return None
        if not raw:
            return None
        write_json(self.storage, cache_key, raw)
        return _restaurant_from_raw(raw)

    async def get_recent_orders_context(self) -> list[OrderSummary]:
        user = self.get_user_context()
        if not user.is_authenticated:
            return []

        cache_key = f"recent_orders_{user.id}"
        cached = read_json(self.storage, cache_key)
        if isinstance(cached, dict) and self.clock() - float(cached.get("timestamp") or 0) < ORDERS_CACHE_TTL:
            return [_order_from_raw(o) for o in (cached.get("data") or [])[:MAX_RECENT_ORDERS]]

        if self.order_api is None:
            return []
        try:
            orders = await self.order_api.recent()
        except FoodifyError as e:
            logger.warning("获取最近订单失败: %s", e.message)
            return []
        write_json(self.storage, cache_key, {"data": orders, "timestamp": self.clock()})
        return [_order_from_raw(o) for o in orders[:MAX_RECENT_ORDERS]]

    async def get_full_platform_context(
        self,
        include_orders: bool = True,
        include_restaurant: bool = True,
    ) -> PlatformContext:
        context = self.get_quick_context()
        if include_restaurant:
            context.current_restaurant = await self.get_restaurant_context()
        if include_orders and context.user.is_authenticated:
            context.recent_orders = await self.get_recent_orders_context()
        self.current_context = context
        return context

    def get_quick_context(self) -> PlatformContext:
        return PlatformContext(
            page=self.get_current_page_context(),
            user=self.get_user_context(),
            cart=self.get_cart_context(),
        )

    def update_context(self, updates: dict) -> PlatformContext:
        self.current_context = self.current_context.merge(updates)
        return self.current_context

    def clear_context(self) -> None:
        self.current_context = PlatformContext()

    # ---------- 快捷操作 ----------

    def get_contextual_quick_actions(self, context: PlatformContext | None = None) -> list[QuickAction]:
        """按页面类型与登录状态生成快捷操作，最多 6 个。"""
        context = context or self.get_quick_context()
        actions: list[QuickAction] = []
        page_type = context.page.type

        if page_type == "home":
            actions += [
                QuickAction(id="browse", label="Find Restaurants", action="navigate", data="/browse"),
                QuickAction(id="popular", label="Popular Dishes", action="search", data="popular"),
            ]
        elif page_type == "browse":
            actions += [
                QuickAction(id="filter", label="Filter Options", action="show_filters"),
                QuickAction(id="nearby", label="Nearby Restaurants", action="location_search"),
            ]
        elif page_type == "restaurant-menu":
            actions += [
                QuickAction(id="menu_help", label="Menu Recommendations", action="menu_help"),
                QuickAction(id="delivery_info", label="Delivery Info", action="delivery_info"),
            ]
        elif page_type == "cart":
            if not context.cart.is_empty:
                actions += [
                    QuickAction(id="checkout_help", label="Checkout Help", action="checkout_help"),
                    QuickAction(id="modify_order", label="Modify Order", action="modify_order"),
                ]
        elif page_type == "order-tracking":
            actions += [
                QuickAction(id="track_order", label="Track My Order", action="track_order"),
                QuickAction(id="contact_delivery", label="Contact Delivery", action="contact_delivery"),
            ]

        if context.user.is_authenticated:
            actions += [
                QuickAction(id="account_help", label="Account Help", action="account_help"),
                QuickAction(id="order_history", label="Order History", action="order_history"),
            ]
        else:
            actions += [
                QuickAction(id="login_help", label="Login Help", action="login_help"),
                QuickAction(id="register_help", label="Sign Up Help", action="register_help"),
            ]

        actions += [
            QuickAction(id="contact_support", label="Contact Support", action="contact_support"),
            QuickAction(id="faq", label="FAQ", action="faq"),
        ]
        return actions[:MAX_QUICK_ACTIONS]
