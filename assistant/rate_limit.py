# -*- coding: utf-8 -*-
"""
请求准入控制：滚动窗口限流（每分钟 / 每小时）+ 过载熔断。
两者都由 GeminiService 实例持有，时钟可注入，便于测试中控制时间。
"""
import logging
import time
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)

MINUTE = 60.0
HOUR = 60.0 * 60.0


class RateLimiter:
    """
    两个计数器：距上一次计数请求超过对应窗口即归零。
    只有两个计数器都低于上限才放行；计数只在请求真正发出时增加（record），被拒绝的尝试不计数。
    """

    def __init__(
        self,
        max_per_minute: int = 60,
        max_per_hour: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_per_minute = max_per_minute
        self.max_per_hour = max_per_hour
        self.clock = clock
        self.minute_count = 0
        self.hour_count = 0
        self.last_request_time: float | None = None

    def _roll(self, now: float) -> None:
        if self.last_request_time is None:
            return
        elapsed = now - self.last_request_time
        if elapsed > MINUTE:
            self.minute_count = 0
        if elapsed > HOUR:
            self.hour_count = 0

    def allow(self) -> bool:
        self._roll(self.clock())
        return self.minute_count < self.max_per_minute and self.hour_count < self.max_per_hour

    def record(self) -> None:
        now = self.clock()
        self._roll(now)
        self.minute_count += 1
        self.hour_count += 1
        self.last_request_time = now

    def status(self) -> dict:
        return {
            "requests_this_minute": self.minute_count,
            "requests_this_hour": self.hour_count,
            "max_per_minute": self.max_per_minute,
            "max_per_hour": self.max_per_hour,
            "can_make_request": self.allow(),
        }


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """仅统计过载类失败（503 / UNAVAILABLE）；打开后经过 reset_timeout 进入半开，半开成功即关闭。"""

    def __init__(
        self,
        max_failures: int = 5,
        reset_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_failures = max_failures
        self.reset_timeout = reset_timeout
        self.clock = clock
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time: float | None = None

    def _timeout_elapsed(self) -> bool:
        return self.clock() - (self.last_failure_time or 0.0) > self.reset_timeout

    def allow(self) -> bool:
        if self.state is CircuitState.OPEN:
            if self._timeout_elapsed():
                self.state = CircuitState.HALF_OPEN
                logger.info("熔断器进入 HALF_OPEN")
                return True
            return False
        return True

    def record_success(self) -> None:
        if self.state is CircuitState.HALF_OPEN:
            logger.info("熔断器恢复 CLOSED")
        self.state = CircuitState.CLOSED
        self.failure_count = 0

    def record_overload(self) -> None:
        self.failure_count += 1
        self.last_failure_time = self.clock()
        if self.state is CircuitState.HALF_OPEN or self.failure_count >= self.max_failures:
            if self.state is not CircuitState.OPEN:
                logger.warning("连续 %d 次过载失败，熔断器 OPEN", self.failure_count)
            self.state = CircuitState.OPEN

    def reset(self) -> None:
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time = None

    def status(self) -> dict:
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "max_failures": self.max_failures,
            "reset_timeout": self.reset_timeout,
            # 只读：不触发 OPEN -> HALF_OPEN
            "can_make_request": self.state is not CircuitState.OPEN or self._timeout_elapsed(),
        }
