# -*- coding: utf-8 -*-
"""
统一配置：从环境变量（及 .env）读取，供购物车客户端与聊天管线使用。
"""
import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

DEFAULT_API_BASE_URL = "http://127.0.0.1:8000/api"
DEFAULT_STORAGE_PATH = "data/local_storage.json"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    return float(raw) if raw else default


class Settings(BaseModel):
    """运行配置。字段均有默认值，测试中可直接构造。"""
    api_base_url: str = DEFAULT_API_BASE_URL
    api_timeout: float = Field(default=10.0, gt=0)
    storage_path: str = DEFAULT_STORAGE_PATH
    log_level: str = "INFO"

    # 购物车：运费规则（与后端一致，单位为卢比）
    delivery_fee: int = 200
    free_delivery_threshold: int = 1500

    # 聊天管线
    gemini_model: str | None = None
    max_requests_per_minute: int = Field(default=60, ge=1)
    max_requests_per_hour: int = Field(default=1000, ge=1)
    max_retries: int = Field(default=3, ge=0)
    base_delay: float = Field(default=0.8, ge=0)
    request_timeout: float = Field(default=15.0, gt=0)
    history_limit: int = Field(default=50, ge=2)
    prompt_history: int = Field(default=10, ge=0)
    max_input_length: int = Field(default=1000, ge=1)
    max_sessions: int = Field(default=1000, ge=1)

    # 熔断：仅统计过载类失败
    breaker_max_failures: int = Field(default=5, ge=1)
    breaker_reset_timeout: float = Field(default=30.0, ge=0)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_base_url=os.environ.get("FOODIFY_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
            api_timeout=_env_float("API_TIMEOUT", 10.0),
            storage_path=os.environ.get("FOODIFY_STORAGE_PATH", DEFAULT_STORAGE_PATH),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            gemini_model=os.environ.get("GEMINI_MODEL") or None,
            max_requests_per_minute=_env_int("CHAT_MAX_REQUESTS_PER_MINUTE", 60),
            max_requests_per_hour=_env_int("CHAT_MAX_REQUESTS_PER_HOUR", 1000),
            max_retries=_env_int("CHAT_MAX_RETRIES", 3),
            base_delay=_env_float("CHAT_BASE_DELAY", 0.8),
            request_timeout=_env_float("CHAT_REQUEST_TIMEOUT", 15.0),
            history_limit=_env_int("CHAT_HISTORY_LIMIT", 50),
            prompt_history=_env_int("CHAT_PROMPT_HISTORY", 10),
            max_sessions=_env_int("CHAT_MAX_SESSIONS", 1000),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
