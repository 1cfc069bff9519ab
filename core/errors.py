# -*- coding: utf-8 -*-
"""
错误分类：校验 / 限流 / 网络 / 接口 / 本地存储。
购物车与聊天管线共用，retryable 决定聊天管线是否重试。
"""

# HTTP 状态码 → 面向用户的提示
_STATUS_MESSAGES: dict[int, str] = {
    400: "Invalid request. Please check your input and try again.",
    401: "You need to log in to access this feature.",
    403: "You don't have permission to perform this action.",
    404: "The requested resource was not found.",
    422: "Please check your input and try again.",
    429: "Too many requests. Please wait a moment and try again.",
    500: "Server error. Please try again later.",
    502: "Service temporarily unavailable. Please try again later.",
    503: "Service temporarily unavailable. Please try again later.",
    504: "Service temporarily unavailable. Please try again later.",
}


def message_for_status(status: int | None, default: str = "") -> str:
    if status in _STATUS_MESSAGES:
        return _STATUS_MESSAGES[status]
    return default or "An unexpected error occurred. Please try again."


class FoodifyError(Exception):
    """所有业务错误的基类。"""
    kind = "error"
    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(FoodifyError):
    kind = "validation"


class CrossRestaurantError(ValidationError):
    """购物车非空时加入其他餐厅的菜品。"""

    def __init__(self, cart_restaurant_id, item_restaurant_id):
        super().__init__("Cannot add items from different restaurants to the same cart")
        self.cart_restaurant_id = cart_restaurant_id
        self.item_restaurant_id = item_restaurant_id


class RateLimitError(FoodifyError):
    kind = "rate_limit"

    def __init__(self, message: str = "Rate limit exceeded. Please wait before sending another message."):
        super().__init__(message)


class NetworkError(FoodifyError):
    """连接失败或超时。"""
    kind = "network"
    retryable = True

    def __init__(self, message: str = "Unable to connect to the server. Please check your internet connection and try again."):
        super().__init__(message)


class ApiError(FoodifyError):
    """远端返回非成功状态或无效响应。status 为 None 表示响应格式错误。"""
    kind = "api"

    def __init__(self, message: str = "", status: int | None = None, details: dict | None = None):
        super().__init__(message or message_for_status(status))
        self.status = status
        self.details = details or {}

    @property
    def retryable(self) -> bool:
        # 4xx 中只有 429 属于暂时性错误
        if self.status is None:
            return True
        return self.status == 429 or self.status >= 500

    @property
    def is_overload(self) -> bool:
        if self.status == 503:
            return True
        text = str(self.details.get("message", "")).lower()
        return self.details.get("status") == "UNAVAILABLE" or "overloaded" in text


class StorageError(FoodifyError):
    kind = "storage"
