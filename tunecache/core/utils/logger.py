"""日志工具模块

所有模块通过 setup_logger(name) 获取 logger：控制台 + 滚动文件双输出。
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from tunecache.config import (
    LOG_BACKUP_COUNT,
    LOG_FILE,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_MAX_BYTES,
)

_file_handler: Optional[RotatingFileHandler] = None


def _get_file_handler() -> RotatingFileHandler:
    """所有 logger 共享同一个文件 handler，避免多个句柄同时滚动同一文件"""
    global _file_handler
    if _file_handler is None:
        _file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        _file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return _file_handler


def setup_logger(
    name: str,
    level: int = LOG_LEVEL,
    log_to_file: bool = True,
) -> logging.Logger:
    """创建或获取命名 logger

    Args:
        name: logger 名称（通常为组件名）
        level: 日志级别
        log_to_file: 是否同时写入滚动日志文件

    Returns:
        配置好的 logging.Logger
    """
    logger = logging.getLogger(f"tunecache.{name}")
    logger.setLevel(level)

    # 重复调用时不再追加 handler
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)

    if log_to_file:
        logger.addHandler(_get_file_handler())

    logger.propagate = False
    return logger
