#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
测试平台上下文汇总：路由映射、本地存储中的用户与购物车、餐厅与订单缓存、快捷操作。
"""
from __future__ import annotations

import json
import sys
import unittest
from pathlib import Path

_ROOT = Path(__file__).resolve().parent.parent
_TESTS = Path(__file__).resolve().parent
for _p in (_ROOT, _TESTS):
    if str(_p) not in sys.path:
        sys.path.insert(0, str(_p))

from assistant.platform_context import MAX_QUICK_ACTIONS, ORDERS_CACHE_TTL, PlatformContextService
from core.errors import NetworkError
from core.storage import CART_STORAGE_KEY, USER_STORAGE_KEY, MemoryStorage

from fakes import FakeClock

USER = {"id": 9, "name": "Asha", "email": "asha@example.com", "role": "customer", "token": "t0k"}


class FakeRestaurantApi:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = 0

    async def get(self, restaurant_id):
        self.calls += 1
        if self.fail:
            raise NetworkError()
        return {"id": int(restaurant_id), "name": "Spice Hub", "cuisine": "Indian", "deliveryTime": "30 min"}


class FakeOrderApi:
    def __init__(self):
        self.calls = 0

    async def recent(self):
        self.calls += 1
        return [{"id": i, "status": "delivered", "total": 500} for i in range(8)]


class TestPlatformContextService(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.storage = MemoryStorage()
        self.clock = FakeClock()
        self.restaurants = FakeRestaurantApi()
        self.orders = FakeOrderApi()
        self.service = PlatformContextService(
            self.storage,
            restaurant_api=self.restaurants,
            order_api=self.orders,
            clock=self.clock,
        )

    def _login(self) -> None:
        self.storage.set_item(USER_STORAGE_KEY, json.dumps(USER))

    def test_known_routes(self) -> None:
        self.service.set_location("/checkout?step=2")
        page = self.service.get_current_page_context()
        self.assertEqual(page.title, "Checkout")
        self.assertEqual(page.type, "checkout")
        self.assertEqual(page.params, {"step": "2"})

    def test_restaurant_and_unknown_routes(self) -> None:
        self.service.set_location("/restaurant/12")
        page = self.service.get_current_page_context()
        self.assertEqual(page.type, "restaurant-menu")
        self.assertEqual(page.restaurant_id, "12")

        self.service.set_location("/nowhere")
        self.assertEqual(self.service.get_current_page_context().type, "unknown")

    def test_guest_and_authenticated_user(self) -> None:
        self.assertFalse(self.service.get_user_context().is_authenticated)
        self.assertEqual(self.service.get_user_context().role, "guest")
        self._login()
        user = self.service.get_user_context()
        self.assertTrue(user.is_authenticated)
        self.assertEqual(user.name, "Asha")

    def test_cart_summary_from_storage(self) -> None:
        self.assertTrue(self.service.get_cart_context().is_empty)
        self.storage.set_item(CART_STORAGE_KEY, json.dumps({
            "items": [{"id": "1", "restaurant_name": "Spice Hub", "quantity": 3}],
            "total": 1050,
        }))
        cart = self.service.get_cart_context()
        self.assertEqual(cart.item_count, 1)
        self.assertEqual(cart.total, 1050)
        self.assertEqual(cart.restaurant_name, "Spice Hub")
        self.assertFalse(cart.is_empty)

    async def test_restaurant_context_cached(self) -> None:
        self.service.set_location("/restaurant/5")
        first = await self.service.get_restaurant_context()
        second = await self.service.get_restaurant_context()
        self.assertEqual(first.name, "Spice Hub")
        self.assertEqual(first.delivery_time, "30 min")
        self.assertEqual(second, first)
        self.assertEqual(self.restaurants.calls, 1)

    async def test_restaurant_failure_returns_none(self) -> None:
        self.service.restaurant_api = FakeRestaurantApi(fail=True)
        self.service.set_location("/restaurant/5")
        self.assertIsNone(await self.service.get_restaurant_context())

    async def test_orders_only_for_authenticated_users(self) -> None:
        self.assertEqual(await self.service.get_recent_orders_context(), [])
        self.assertEqual(self.orders.calls, 0)

    async def test_orders_limited_and_cached_with_ttl(self) -> None:
        self._login()
        orders = await self.service.get_recent_orders_context()
        self.assertEqual(len(orders), 5)
        await self.service.get_recent_orders_context()
        self.assertEqual(self.orders.calls, 1)

        self.clock.advance(ORDERS_CACHE_TTL + 1)
        await self.service.get_recent_orders_context()
        self.assertEqual(self.orders.calls, 2)

    async def test_full_context(self) -> None:
        self._login()
        self.service.set_location("/restaurant/5")
        context = await self.service.get_full_platform_context()
        self.assertEqual(context.page.type, "restaurant-menu")
        self.assertEqual(context.current_restaurant.id, 5)
        self.assertEqual(len(context.recent_orders), 5)

        quick = self.service.get_quick_context()
        self.assertIsNone(quick.current_restaurant)
        self.assertEqual(quick.recent_orders, [])

    def test_quick_actions_by_page_and_auth(self) -> None:
        actions = self.service.get_contextual_quick_actions()
        self.assertEqual(len(actions), MAX_QUICK_ACTIONS)
        self.assertEqual(actions[0].action, "navigate")
        self.assertIn("login_help", [a.action for a in actions])

        self._login()
        self.service.set_location("/track-order")
        actions = [a.action for a in self.service.get_contextual_quick_actions()]
        self.assertEqual(actions[:2], ["track_order", "contact_delivery"])
        self.assertIn("order_history", actions)
        self.assertNotIn("login_help", actions)

    def test_empty_cart_page_has_no_checkout_help(self) -> None:
        self.service.set_location("/cart")
        actions = [a.action for a in self.service.get_contextual_quick_actions()]
        self.assertNotIn("checkout_help", actions)
        self.assertEqual(len(actions), 4)

    def test_update_and_clear_context(self) -> None:
        updated = self.service.update_context({"page": {"route": "/cart", "type": "cart"}})
        self.assertEqual(updated.page.type, "cart")
        self.assertEqual(updated.page.title, "Home")
        self.service.clear_context()
        self.assertEqual(self.service.current_context.page.route, "/")


if __name__ == "__main__":
    unittest.main()
