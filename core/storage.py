# -*- coding: utf-8 -*-
"""
本地持久化键值存储（等价于浏览器 localStorage）：同步的字符串 get/set/remove。
读写失败一律记录日志并视为缓存未命中，不向上抛出。
"""
import json
import logging
from pathlib import Path
from typing import Any, Protocol

from .errors import StorageError

logger = logging.getLogger(__name__)

CART_STORAGE_KEY = "foodify_cart"
USER_STORAGE_KEY = "foodify-user"


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """进程内存储，测试与无状态服务端会话使用。"""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStorage:
    """单个 JSON 文件承载全部键值；每次写入整体落盘，后写覆盖先写。"""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"无法读取本地存储 {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"本地存储格式错误: {self.path}")
        return data

    def _dump(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise StorageError(f"无法写入本地存储 {self.path}: {e}") from e

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)


# ---------- JSON 读写辅助：失败视为未命中 ----------

def read_json(storage: KeyValueStorage, key: str) -> Any | None:
    try:
        raw = storage.get_item(key)
        if raw is None:
            return None
        return json.loads(raw)
    except (StorageError, ValueError) as e:
        logger.warning("读取本地存储 %s 失败，按未命中处理: %s", key, e)
        return None


def write_json(storage: KeyValueStorage, key: str, value: Any) -> bool:
    try:
        storage.set_item(key, json.dumps(value, ensure_ascii=False, default=str))
        return True
    except (StorageError, TypeError) as e:
        logger.warning("写入本地存储 %s 失败: %s", key, e)
        return False


def remove_key(storage: KeyValueStorage, key: str) -> None:
    try:
        storage.remove_item(key)
    except StorageError as e:
        logger.warning("删除本地存储 %s 失败: %s", key, e)
