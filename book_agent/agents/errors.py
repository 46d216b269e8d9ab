"""异常到用户提示语的翻译。

沿异常链（__cause__ / __context__）从最深处向外逐个分类，第一个命中的规则生效。
每一层先看结构化信息（异常类型、http_status），再退回到错误文本匹配，
后者只用于只返回不透明错误信息的后端。
"""

import asyncio
import socket
from typing import List, Optional

import httpx

from book_agent.domain.exceptions import ApiError, BusinessError, NetworkError, RateLimitError


MSG_TIMEOUT = "Request timed out, please retry later"
MSG_CONNECTION_RESET = "Network connection was reset, please check proxy/network settings"
MSG_CONNECTION_REFUSED = "Cannot reach the AI service, please check network configuration"
MSG_NETWORK = "Network error, please retry"
MSG_SOCKET = "Network error: {detail}"
MSG_DNS = "Cannot resolve the server address"
MSG_UNAUTHORIZED = "Authentication failed, please check the API key"
MSG_RATE_LIMITED = "Rate limited, please retry later"
MSG_UNAVAILABLE = "AI service is temporarily unavailable"
MSG_GENERIC = "Error processing request: {detail}"

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "unknownhostexception",
)
_UNAVAILABLE_STATUSES = (500, 502, 503)


def translate_error(exc: BaseException) -> str:
    """把任意异常翻译成一条面向用户的提示语，不包含堆栈。"""

    chain = _cause_chain(exc)
    for err in chain:
        msg = _classify(err)
        if msg is not None:
            return msg
    root = chain[0] if chain else exc
    return MSG_GENERIC.format(detail=_detail(root))


def _cause_chain(exc: BaseException) -> List[BaseException]:
    """返回异常链，最深的原因在前，跳过取消信号。"""

    chain: List[BaseException] = []
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if not isinstance(current, asyncio.CancelledError):
            chain.append(current)
        current = current.__cause__ or current.__context__
    chain.reverse()
    return chain


def _classify(err: BaseException) -> Optional[str]:
    msg = _classify_structured(err)
    if msg is not None:
        return msg
    # 上游状态码已知但不在表中时，不再拿响应体做文本匹配
    if _upstream_status(err) is not None:
        return None
    return _classify_text(err)


def _upstream_status(err: BaseException) -> Optional[int]:
    if isinstance(err, httpx.HTTPStatusError):
        return err.response.status_code
    if isinstance(err, (ApiError, RateLimitError)):
        return err.http_status
    return None


def _classify_structured(err: BaseException) -> Optional[str]:
    if isinstance(err, (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
        return MSG_TIMEOUT
    if isinstance(err, ConnectionResetError):
        return MSG_CONNECTION_RESET
    if isinstance(err, ConnectionRefusedError):
        return MSG_CONNECTION_REFUSED
    if isinstance(err, socket.gaierror):
        return MSG_DNS
    if isinstance(err, (httpx.TransportError, NetworkError)):
        # 文本里可能带更具体的原因（DNS、refused 等）
        return _classify_text(err) or MSG_NETWORK
    if isinstance(err, OSError):
        lower = str(err).lower()
        if "connection reset" in lower:
            return MSG_CONNECTION_RESET
        if "connection refused" in lower:
            return MSG_CONNECTION_REFUSED
        return MSG_SOCKET.format(detail=_detail(err))

    status = _upstream_status(err)
    if isinstance(err, RateLimitError) or status == 429:
        return MSG_RATE_LIMITED
    if status == 401:
        return MSG_UNAUTHORIZED
    if status in _UNAVAILABLE_STATUSES:
        return MSG_UNAVAILABLE
    return None


def _classify_text(err: BaseException) -> Optional[str]:
    text = str(err)
    if isinstance(err, BusinessError):
        text = f"{err.code} {err.message}"
    lower = text.lower()
    if "timed out" in lower or "timeout" in lower:
        return MSG_TIMEOUT
    if "connection reset" in lower:
        return MSG_CONNECTION_RESET
    if "connection refused" in lower:
        return MSG_CONNECTION_REFUSED
    if any(marker in lower for marker in _DNS_MARKERS):
        return MSG_DNS
    if "401" in text or "unauthorized" in lower:
        return MSG_UNAUTHORIZED
    if "429" in text or "rate limit" in lower:
        return MSG_RATE_LIMITED
    if any(str(code) in text for code in _UNAVAILABLE_STATUSES):
        return MSG_UNAVAILABLE
    return None


def _detail(err: BaseException) -> str:
    if isinstance(err, BusinessError):
        return err.message or type(err).__name__
    return str(err) or type(err).__name__
