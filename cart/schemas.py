# -*- coding: utf-8 -*-
"""
购物车数据模型（Pydantic）。
金额均为整数（后端单位：卢比），total 恒等于 subtotal + delivery_fee。
"""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, Field


class CartLineItem(BaseModel):
    """购物车中的一行。确认前 id 为客户端临时 id（tmp-...），确认后为服务端 id。"""
    id: str
    menu_item_id: Any
    name: str = ""
    price: int = Field(ge=0, description="单价")
    quantity: int = Field(ge=1)
    special_instructions: str = ""
    restaurant_id: Any = None
    restaurant_name: str = ""
    image_url: str = ""

    @property
    def line_total(self) -> int:
        return self.price * self.quantity

    @property
    def is_temporary(self) -> bool:
        return self.id.startswith("tmp-")


class CartState(BaseModel):
    items: list[CartLineItem] = Field(default_factory=list)
    subtotal: int = 0
    delivery_fee: int = 0
    total: int = 0
    restaurant_id: Any = None
    loading: bool = False
    error: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def item_count(self) -> int:
        return sum(it.quantity for it in self.items)

    @property
    def restaurant_name(self) -> str:
        return self.items[0].restaurant_name if self.items else ""

    def find(self, item_id: str) -> CartLineItem | None:
        return next((it for it in self.items if it.id == item_id), None)

    def to_storage(self) -> dict:
        """本地存储快照（不含 loading/error）。"""
        return self.model_dump(mode="json", exclude={"loading", "error"})


def parse_amount(value) -> int:
    """
    金额 → 整数卢比。后端 decimal:2 字段以字符串返回（如 "850.00"），按四舍五入取整。
    无法解析时抛出 ValueError，由调用方转成对应的业务错误。
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"无效金额: {value!r}")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"无效金额: {value!r}") from e
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"无效金额: {value!r}")
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def compute_delivery_fee(subtotal: int, fee: int = 200, free_threshold: int = 1500) -> int:
    if subtotal <= 0:
        return 0
    return 0 if subtotal > free_threshold else fee


def line_item_from_remote(data: dict) -> CartLineItem:
    """后端 cart_items 条目 → CartLineItem（字段名按 GET /cart 的返回）。"""
    menu_item_id = data.get("menu_item_id", data.get("id"))
    return CartLineItem(
        id=str(data.get("cart_item_id") or data.get("id")),
        menu_item_id=menu_item_id,
        name=data.get("name") or "",
        price=parse_amount(data.get("price") or 0),
        quantity=max(1, int(data.get("quantity") or 1)),
        special_instructions=data.get("special_instructions") or "",
        restaurant_id=data.get("restaurant_id"),
        restaurant_name=data.get("restaurant") or data.get("restaurant_name") or "",
        image_url=data.get("image") or data.get("image_url") or "",
    )
