"""
日志配置 — 由 CLI 入口调用一次

库内各模块只使用 logging.getLogger(__name__), 不自行添加 handler。
"""

import logging
import os
import sys
from typing import Optional

LOG_LEVEL = logging.INFO
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(
    name: str = "novelreader",
    log_level: Optional[int] = None,
    log_file: Optional[str] = None,
    log_to_console: bool = True,
) -> logging.Logger:
    """
    配置并返回一个日志记录器

    Args:
        name: 日志记录器名称 (默认包名, 子模块日志都会汇总到这里)
        log_level: 日志级别, 默认 LOG_LEVEL
        log_file: 日志文件路径, None 则不写文件
        log_to_console: 是否输出到 stderr

    Returns:
        配置好的 logging.Logger
    """
    level = log_level if log_level is not None else LOG_LEVEL

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # 重复调用时先清掉旧 handler, 避免日志重复输出
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(level)
        logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger
