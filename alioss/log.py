#!/usr/bin/env python3
# encoding: utf-8

__all__ = ["logger", "log_request", "log_response"]

import logging

from collections.abc import Mapping
from typing import Any, Final


# NOTE: 初始化日志对象
logger = logging.Logger("alioss", level=logging.INFO)
handler = logging.StreamHandler()
handler.setFormatter(logging.Formatter(
    "[\x1b[1m%(asctime)s\x1b[0m] (\x1b[1;36m%(levelname)s\x1b[0m) "
    "\x1b[0m\x1b[1;35m%(name)s\x1b[0m \x1b[5;31m➜\x1b[0m %(message)s"
))
logger.addHandler(handler)

_MASKED_HEADERS: Final = frozenset(("authorization", "x-oss-security-token"))


def _mask(value: Any, /) -> str:
    value = str(value)
    return value[:3] + "***" if len(value) > 3 else "***"


def log_request(method: str, url: str, headers: Mapping[str, Any], /):
    """请求拦截：记录请求方法、链接和请求头，敏感的请求头会被打码
    """
    if not logger.isEnabledFor(logging.INFO):
        return
    logger.info(
        "[\x1b[1;34mSEND\x1b[0m] \x1b[1m%s\x1b[0m \x1b[4;34m%s\x1b[0m %r", 
        method, 
        url, 
        {k: _mask(v) if k.lower() in _MASKED_HEADERS else v for k, v in headers.items()}, 
    )


def log_response(
    method: str, 
    url: str, 
    status_code: int, 
    elapsed_ms: float, 
    content: bytes = b"", 
    /, 
):
    """响应拦截：记录状态码和耗时，XML 响应体记录在 DEBUG 级别
    """
    if 200 <= status_code < 300:
        tag = "\x1b[1;32mRECV\x1b[0m"
    else:
        tag = "\x1b[1;31mRECV\x1b[0m"
    logger.info(
        "[%s] \x1b[1m%s\x1b[0m \x1b[4;34m%s\x1b[0m -> \x1b[1m%d\x1b[0m (%.0fms)", 
        tag, method, url, status_code, elapsed_ms, 
    )
    if content[:5] == b"<?xml" or content[:1] == b"<":
        logger.debug("%s", content.decode("utf-8", "replace"))
