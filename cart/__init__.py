# -*- coding: utf-8 -*-
"""
Foodify 购物车：乐观更新 + 服务端对账的状态机。
"""
from .context import CartProvider
from .reducer import (
    AddItem,
    CartAction,
    CartRules,
    ClearCart,
    RemoveItem,
    SetError,
    SetFromRemote,
    SetLoading,
    SetQuantity,
    reduce_cart,
)
from .schemas import CartLineItem, CartState, compute_delivery_fee, parse_amount

__all__ = [
    "CartProvider",
    "CartState",
    "CartLineItem",
    "CartAction",
    "CartRules",
    "AddItem",
    "RemoveItem",
    "SetQuantity",
    "ClearCart",
    "SetFromRemote",
    "SetError",
    "SetLoading",
    "reduce_cart",
    "compute_delivery_fee",
    "parse_amount",
]
