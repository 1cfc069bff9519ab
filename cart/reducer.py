# -*- coding: utf-8 -*-
"""
购物车状态机：封闭的动作集合 + 穷尽式归约。
所有状态变化都只能经过 reduce_cart，金额在每次归约后重新计算。
"""
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from .schemas import CartLineItem, CartState, compute_delivery_fee


class AddItem(BaseModel):
    kind: Literal["add"] = "add"
    item: CartLineItem


class RemoveItem(BaseModel):
    kind: Literal["remove"] = "remove"
    item_id: str


class SetQuantity(BaseModel):
    kind: Literal["set_quantity"] = "set_quantity"
    item_id: str
    quantity: int


class ClearCart(BaseModel):
    kind: Literal["clear"] = "clear"


class SetFromRemote(BaseModel):
    """以服务端（或本地快照）数据整体替换。delivery_fee 为 None 时按本地规则计算。"""
    kind: Literal["set_from_remote"] = "set_from_remote"
    items: list[CartLineItem] = Field(default_factory=list)
    delivery_fee: int | None = None
    restaurant_id: Any = None


class SetError(BaseModel):
    kind: Literal["set_error"] = "set_error"
    message: str | None = None


class SetLoading(BaseModel):
    kind: Literal["set_loading"] = "set_loading"
    loading: bool = True


CartAction = Annotated[
    Union[AddItem, RemoveItem, SetQuantity, ClearCart, SetFromRemote, SetError, SetLoading],
    Field(discriminator="kind"),
]


class CartRules(BaseModel):
    delivery_fee: int = 200
    free_delivery_threshold: int = 1500


def _with_items(
    state: CartState,
    items: list[CartLineItem],
    rules: CartRules,
    delivery_fee: int | None = None,
    restaurant_id: Any = None,
) -> CartState:
    subtotal = sum(it.line_total for it in items)
    if delivery_fee is None or not items:
        delivery_fee = compute_delivery_fee(subtotal, rules.delivery_fee, rules.free_delivery_threshold)
    if items:
        restaurant_id = items[0].restaurant_id if restaurant_id is None else restaurant_id
    else:
        restaurant_id = None
    return state.model_copy(update={
        "items": items,
        "subtotal": subtotal,
        "delivery_fee": delivery_fee,
        "total": subtotal + delivery_fee,
        "restaurant_id": restaurant_id,
    })


def reduce_cart(state: CartState, action, rules: CartRules | None = None) -> CartState:
    rules = rules or CartRules()

    if isinstance(action, AddItem):
        items = list(state.items)
        for i, it in enumerate(items):
            if it.menu_item_id == action.item.menu_item_id:
                items[i] = it.model_copy(update={"quantity": it.quantity + action.item.quantity})
                break
        else:
            items.append(action.item)
        return _with_items(state, items, rules, restaurant_id=state.restaurant_id)

    if isinstance(action, RemoveItem):
        items = [it for it in state.items if it.id != action.item_id]
        return _with_items(state, items, rules, restaurant_id=state.restaurant_id)

    if isinstance(action, SetQuantity):
        if action.quantity <= 0:
            items = [it for it in state.items if it.id != action.item_id]
        else:
            items = [
                it.model_copy(update={"quantity": action.quantity}) if it.id == action.item_id else it
                for it in state.items
            ]
        return _with_items(state, items, rules, restaurant_id=state.restaurant_id)

    if isinstance(action, ClearCart):
        return _with_items(state, [], rules).model_copy(update={"error": None})

    if isinstance(action, SetFromRemote):
        new_state = _with_items(
            state, list(action.items), rules,
            delivery_fee=action.delivery_fee,
            restaurant_id=action.restaurant_id,
        )
        return new_state.model_copy(update={"loading": False, "error": None})

    if isinstance(action, SetError):
        return state.model_copy(update={"error": action.message, "loading": False})

    if isinstance(action, SetLoading):
        return state.model_copy(update={"loading": action.loading})

    raise TypeError(f"未知的购物车动作: {action!r}")
