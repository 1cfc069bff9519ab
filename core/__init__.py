# -*- coding: utf-8 -*-
"""核心：配置、错误类型、LLM 工厂、本地存储与后端客户端。"""
from .config import Settings, get_settings
from .errors import (
    ApiError,
    CrossRestaurantError,
    FoodifyError,
    NetworkError,
    RateLimitError,
    StorageError,
    ValidationError,
)
from .llm import get_llm
from .storage import JsonFileStorage, KeyValueStorage, MemoryStorage

__all__ = [
    "Settings",
    "get_settings",
    "FoodifyError",
    "ValidationError",
    "CrossRestaurantError",
    "RateLimitError",
    "NetworkError",
    "ApiError",
    "StorageError",
    "get_llm",
    "KeyValueStorage",
    "MemoryStorage",
    "JsonFileStorage",
]
