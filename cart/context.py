# -*- coding: utf-8 -*-
"""
购物车协调器：先乐观更新，再与服务端对账。
每个变更操作：① 本地立即生效 ② 写入本地存储 ③ 调用远端 ④ 无论成败都重新拉取服务端购物车覆盖本地。
跨餐厅校验是唯一在乐观更新之前执行的校验。
"""
import logging
import uuid
from typing import Any, Awaitable

from core.config import Settings, get_settings
from core.errors import ApiError, CrossRestaurantError, FoodifyError, ValidationError
from core.storage import CART_STORAGE_KEY, KeyValueStorage, read_json, remove_key, write_json

from .reducer import (
    AddItem,
    CartRules,
    ClearCart,
    RemoveItem,
    SetError,
    SetFromRemote,
    SetLoading,
    SetQuantity,
    reduce_cart,
)
from .schemas import CartLineItem, CartState, line_item_from_remote, parse_amount

logger = logging.getLogger(__name__)


class CartProvider:
    """购物车的唯一状态源。state 只经 dispatch 变化；卸载（aclose）后不再接受任何状态变更。"""

    def __init__(self, api, storage: KeyValueStorage, settings: Settings | None = None):
        settings = settings or get_settings()
        self.api = api
        self.storage = storage
        self.rules = CartRules(
            delivery_fee=settings.delivery_fee,
            free_delivery_threshold=settings.free_delivery_threshold,
        )
        self.state = CartState()
        self._active = True

    # ---------- 状态与持久化 ----------

    @property
    def active(self) -> bool:
        return self._active

    def dispatch(self, action) -> CartState:
        # await 之后恢复执行的分支都经过这里，卸载后直接丢弃
        if not self._active:
            logger.debug("购物车已卸载，忽略动作 %s", getattr(action, "kind", action))
            return self.state
        self.state = reduce_cart(self.state, action, self.rules)
        return self.state

    def _persist(self) -> None:
        if self._active:
            write_json(self.storage, CART_STORAGE_KEY, self.state.to_storage())

    def _load_persisted(self) -> CartState | None:
        data = read_json(self.storage, CART_STORAGE_KEY)
        if not isinstance(data, dict):
            return None
        try:
            return CartState.model_validate(data)
        except ValueError as e:
            logger.warning("本地购物车快照无效，忽略: %s", e)
            return None

    def _snapshot_action(self, snapshot: CartState) -> SetFromRemote:
        return SetFromRemote(
            items=snapshot.items,
            delivery_fee=snapshot.delivery_fee,
            restaurant_id=snapshot.restaurant_id,
        )

    @staticmethod
    def _remote_action(data: dict) -> SetFromRemote:
        try:
            items = [line_item_from_remote(it) for it in data.get("cart_items") or data.get("items") or []]
            fee = data.get("delivery_fee")
            delivery_fee = parse_amount(fee) if fee is not None else None
        except (ValueError, TypeError) as e:
            raise ApiError("Invalid cart data received from server") from e
        return SetFromRemote(
            items=items,
            delivery_fee=delivery_fee,
            restaurant_id=data.get("restaurant_id"),
        )

    # ---------- 生命周期 ----------

    async def mount(self) -> CartState:
        """先用本地快照填充，再与服务端对账。"""
        snapshot = self._load_persisted()
        if snapshot is not None:
            self.dispatch(self._snapshot_action(snapshot))
        return await self.fetch_cart()

    async def aclose(self) -> None:
        self._active = False

    def reset(self) -> None:
        """登出时仅清空本地状态与快照，不调用远端。"""
        self.dispatch(ClearCart())
        remove_key(self.storage, CART_STORAGE_KEY)

    # ---------- 远端对账 ----------

    async def fetch_cart(self) -> CartState:
        """拉取服务端购物车；失败时回退到本地快照（有商品时），否则清空。不抛出。"""
        self.dispatch(SetLoading(loading=True))
        try:
            data = await self.api.get_cart()
            action = self._remote_action(data or {})
        except FoodifyError as e:
            logger.error("拉取购物车失败: %s", e.message)
            snapshot = self._load_persisted()
            if snapshot is not None and snapshot.items:
                self.dispatch(self._snapshot_action(snapshot))
            else:
                self.dispatch(ClearCart())
            self.dispatch(SetError(message=e.message))
            self._persist()
            return self.state

        self.dispatch(action)
        self._persist()
        return self.state

    async def _reconcile(self, label: str, remote_call: Awaitable[Any]) -> CartState:
        self.dispatch(SetLoading(loading=True))
        try:
            await remote_call
        except FoodifyError as e:
            logger.error("%s失败，回滚到服务端状态: %s", label, e.message)
            await self.fetch_cart()
            self.dispatch(SetError(message=e.message))
            raise
        return await self.fetch_cart()

    # ---------- 变更操作 ----------

    async def add_to_cart(
        self,
        menu_item_id,
        quantity: int = 1,
        special_instructions: str = "",
        item_data: dict | None = None,
    ) -> CartState:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        item_data = item_data or {}
        restaurant_id = item_data.get("restaurant_id")
        if (
            not self.state.is_empty
            and restaurant_id is not None
            and restaurant_id != self.state.restaurant_id
        ):
            raise CrossRestaurantError(self.state.restaurant_id, restaurant_id)

        price = None
        if "price" in item_data:
            try:
                price = parse_amount(item_data["price"])
            except ValueError as e:
                raise ValidationError(f"Invalid price: {item_data['price']!r}") from e

        # 没有菜品信息时无法计算金额，跳过乐观更新，直接以服务端为准
        if price is not None:
            line = CartLineItem(
                id=f"tmp-{uuid.uuid4().hex}",
                menu_item_id=menu_item_id,
                name=item_data.get("name") or "",
                price=price,
                quantity=quantity,
                special_instructions=special_instructions,
                restaurant_id=restaurant_id,
                restaurant_name=item_data.get("restaurant_name") or "",
                image_url=item_data.get("image_url") or "",
            )
            self.dispatch(AddItem(item=line))
            self._persist()

        return await self._reconcile(
            "加入购物车",
            self.api.add_item(menu_item_id, quantity, special_instructions),
        )

    async def remove_from_cart(self, item_id: str) -> CartState:
        self.dispatch(RemoveItem(item_id=item_id))
        self._persist()
        return await self._reconcile("移除购物车商品", self.api.remove_item(item_id))

    async def update_quantity(self, item_id: str, quantity: int) -> CartState:
        self.dispatch(SetQuantity(item_id=item_id, quantity=quantity))
        self._persist()
        if quantity <= 0:
            remote_call = self.api.remove_item(item_id)
        else:
            remote_call = self.api.update_item(item_id, quantity)
        return await self._reconcile("修改数量", remote_call)

    async def clear_cart(self) -> CartState:
        """清空属于确认操作：远端成功后才清空本地。"""
        self.dispatch(SetLoading(loading=True))
        try:
            await self.api.clear_cart()
        except FoodifyError as e:
            logger.error("清空购物车失败: %s", e.message)
            self.dispatch(SetError(message=e.message))
            raise
        self.dispatch(ClearCart())
        self.dispatch(SetLoading(loading=False))
        if self._active:
            remove_key(self.storage, CART_STORAGE_KEY)
        return self.state

    # ---------- 只读派生 ----------

    def get_cart_total(self) -> int:
        return self.state.total

    def get_cart_item_count(self) -> int:
        return self.state.item_count
