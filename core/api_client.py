# -*- coding: utf-8 -*-
"""
Foodify 后端 REST 客户端（httpx 异步）：购物车、餐厅、最近订单。
携带本地存储中的登录 token；非 2xx 响应转为 ApiError，连接/超时转为 NetworkError。
"""
import logging
from typing import Any

import httpx

from .config import Settings, get_settings
from .errors import ApiError, NetworkError, message_for_status
from .storage import USER_STORAGE_KEY, KeyValueStorage, read_json

logger = logging.getLogger(__name__)


class ApiClient:
    def __init__(
        self,
        settings: Settings | None = None,
        storage: KeyValueStorage | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.storage = storage
        self._client = httpx.AsyncClient(
            base_url=self.settings.api_base_url,
            timeout=self.settings.api_timeout,
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            transport=transport,
        )

    def _auth_headers(self) -> dict[str, str]:
        if self.storage is None:
            return {}
        user = read_json(self.storage, USER_STORAGE_KEY)
        if isinstance(user, dict) and user.get("token"):
            return {"Authorization": f"Bearer {user['token']}"}
        return {}

    async def request(self, method: str, path: str, json: dict | None = None) -> Any:
        try:
            resp = await self._client.request(method, path, json=json, headers=self._auth_headers())
        except httpx.TimeoutException as e:
            logger.warning("%s %s 超时: %s", method, path, e)
            raise NetworkError("Request timed out. Please try again.") from e
        except httpx.TransportError as e:
            logger.warning("%s %s 连接失败: %s", method, path, e)
            raise NetworkError() from e

        if resp.is_error:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            details = body if isinstance(body, dict) else {}
            logger.warning("%s %s 返回 %s: %s", method, path, resp.status_code, details)
            raise ApiError(
                message_for_status(resp.status_code, details.get("message", "")),
                status=resp.status_code,
                details=details,
            )

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError("Invalid response format from server") from e

    async def aclose(self) -> None:
        await self._client.aclose()


class CartApi:
    """GET/POST/PUT/DELETE /cart。"""

    def __init__(self, client: ApiClient):
        self.client = client

    async def get_cart(self) -> dict:
        return await self.client.request("GET", "/cart") or {}

    async def add_item(self, menu_item_id, quantity: int = 1, special_instructions: str = "") -> Any:
        return await self.client.request("POST", "/cart", json={
            "menu_item_id": menu_item_id,
            "quantity": quantity,
            "special_instructions": special_instructions,
        })

    async def update_item(self, item_id, quantity: int) -> Any:
        return await self.client.request("PUT", f"/cart/{item_id}", json={"quantity": quantity})

    async def remove_item(self, item_id) -> Any:
        return await self.client.request("DELETE", f"/cart/{item_id}")

    async def clear_cart(self) -> Any:
        return await self.client.request("DELETE", "/cart")


class RestaurantApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def get(self, restaurant_id) -> dict:
        return await self.client.request("GET", f"/restaurants/{restaurant_id}") or {}


class OrderApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def recent(self) -> list[dict]:
        data = await self.client.request("GET", "/orders/recent")
        if isinstance(data, dict):
            data = data.get("orders") or data.get("data") or []
        return list(data or [])
