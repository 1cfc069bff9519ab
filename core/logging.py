# -*- coding: utf-8 -*-
"""日志配置：控制台输出，入口脚本（api.py / main.py）启动时调用一次。"""
import logging
import logging.config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "simple": {"format": LOG_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"level": level.upper(), "handlers": ["console"]},
        "loggers": {
            # 第三方 HTTP 客户端日志过多，仅保留警告
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
        },
    })
