#!/usr/bin/env python3
# encoding: utf-8

__all__ = [
    "CancelToken", "OSSResponse", "OSSStreamResponse", "OSSRequestManager", 
    "OSSRequestHandler", "get_request", "parse_response", "iter_response_body", 
]
__doc__ = "这个模块提供了请求的取消登记表，以及执行请求的公共逻辑（日志、取消、错误转换、进度）"

from asyncio import ensure_future, CancelledError
from collections.abc import (
    AsyncIterable, AsyncIterator, Buffer, Callable, Iterable, Iterator, Mapping, 
)
from inspect import iscoroutinefunction, signature
from itertools import count
from time import perf_counter, time
from typing import Any, Literal, NamedTuple

from dicttools import iter_items
from http_response import get_status_code
from integer_tool import try_parse_int
from iterutils import run_gen_step

from .exception import (
    error, error_type_from_code, error_type_from_status, throw, 
    parse_oss_error_code, OSSErrorType, OSSOSError, 
)
from .log import logger, log_request, log_response
from .util import READ_CHUNK_SIZE


class CancelToken:
    """取消令牌，一旦取消就不能恢复

    .. note::
        通过 `add_callback` 注册的函数会在取消时被调用，如果令牌已经取消，则立即调用
    """
    def __init__(self, /):
        self._cancelled = False
        self._reason: None | str = None
        self._callbacks: list[Callable[[], Any]] = []

    def __repr__(self, /) -> str:
        return f"<{type(self).__qualname__} cancelled={self._cancelled} reason={self._reason!r}>"

    @property
    def cancelled(self, /) -> bool:
        return self._cancelled

    @property
    def reason(self, /) -> None | str:
        return self._reason

    def cancel(self, /, reason: None | str = None):
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], Any], /) -> Callable[[], None]:
        """注册取消时的回调

        :param callback: 无参函数

        :return: 用于撤销这次注册的无参函数
        """
        if self._cancelled:
            callback()
            return lambda: None
        self._callbacks.append(callback)
        def remove():
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass
        return remove

    def raise_if_cancelled(self, /):
        if self._cancelled:
            raise error(OSSErrorType.request_cancelled, self._reason or "")


class OSSResponse(NamedTuple):
    """响应：状态码、请求头（名字都是小写）和响应体
    """
    status_code: int
    headers: dict[str, str]
    content: bytes

    @property
    def ok(self, /) -> bool:
        return 200 <= self.status_code < 300


class OSSStreamResponse(NamedTuple):
    """流式响应：状态码、请求头（名字都是小写）和响应体的（异步）迭代器

    .. note::
        迭代结束（或中途关闭迭代器）时，底层的响应会被关闭
    """
    status_code: int
    headers: dict[str, str]
    stream: Iterator[bytes] | AsyncIterator[bytes]

    @property
    def ok(self, /) -> bool:
        return 200 <= self.status_code < 300


def _response_headers(resp, /) -> dict[str, str]:
    def to_str(s, /) -> str:
        if isinstance(s, (bytes, bytearray)):
            return s.decode("latin-1")
        return str(s)
    return {to_str(k).lower(): to_str(v) for k, v in iter_items(resp.headers or ())}


def _content_length(headers: Mapping[str, Any], /) -> int:
    length = try_parse_int(str(headers.get("content-length", "")))
    return length if isinstance(length, int) else -1


def parse_response(resp, content: bytes, /) -> OSSResponse:
    return OSSResponse(get_status_code(resp), _response_headers(resp), bytes(content or b""))


def iter_response_body(
    resp, 
    /, 
    on_receive_progress: None | Callable[[int, int], Any] = None, 
    check: None | Callable[[], Any] = None, 
    *, 
    async_: Literal[False, True] = False, 
) -> Iterator[bytes] | AsyncIterator[bytes]:
    """逐块读取还未读取的响应体，结束后关闭响应

    :param resp: 以 `parse=None` 请求得到的响应对象，需要有 `iter_stream` 和 `close`（异步时 `aiter_stream` 和 `aclose`）
    :param on_receive_progress: 进度回调，参数为 (已接收的字节数, 总字节数)，总字节数未知时为 -1
    :param check: 每读一块数据前调用，可以抛出异常以中止
    :param async_: 是否异步

    :return: 响应体的（异步）迭代器
    """
    total = _content_length(_response_headers(resp))
    if async_:
        async def aiter_body():
            received = 0
            try:
                async for chunk in resp.aiter_stream():
                    if check is not None:
                        check()
                    received += len(chunk)
                    if on_receive_progress is not None:
                        on_receive_progress(received, total)
                    yield chunk
            finally:
                await resp.aclose()
        return aiter_body()
    def iter_body():
        received = 0
        try:
            for chunk in resp.iter_stream():
                if check is not None:
                    check()
                received += len(chunk)
                if on_receive_progress is not None:
                    on_receive_progress(received, total)
                yield chunk
        finally:
            resp.close()
    return iter_body()


def _with_send_progress(
    data: Buffer | Iterable[Buffer] | AsyncIterable[Buffer], 
    total: int, 
    on_send_progress: Callable[[int, int], Any], 
    /, 
    async_: Literal[False, True] = False, 
) -> Iterator[bytes] | AsyncIterator[bytes]:
    if isinstance(data, Buffer):
        view = memoryview(data)
        data = (bytes(view[i:i+READ_CHUNK_SIZE]) for i in range(0, len(view), READ_CHUNK_SIZE))
    if async_:
        async def aiter_data():
            sent = 0
            if isinstance(data, AsyncIterable):
                async for chunk in data:
                    sent += len(chunk)
                    on_send_progress(sent, total)
                    yield chunk
            else:
                for chunk in data:
                    sent += len(chunk)
                    on_send_progress(sent, total)
                    yield chunk
        return aiter_data()
    if isinstance(data, AsyncIterable):
        throw(OSSErrorType.invalid_argument, "同步请求不能上传异步迭代器")
    def iter_data():
        sent = 0
        for chunk in data:
            sent += len(chunk)
            on_send_progress(sent, total)
            yield chunk
    return iter_data()


def get_request(
    request: None | Callable, 
    request_kwargs: dict, 
    async_: Literal[False, True] = False, 
) -> Callable:
    """确定实际执行 HTTP 请求的函数，为 None 时用 `httpcore_request.request`

    .. note::
        只有当 `request` 接受名为 `async_` 的关键字参数时，才会把 `async_` 传给它
    """
    if request is None:
        from httpcore_request import request
        request_kwargs["async_"] = async_
    else:
        def has_keyword_async(request: Callable, /) -> bool:
            try:
                sig = signature(request)
            except (ValueError, TypeError):
                return False
            params = sig.parameters
            if any(p.kind is p.VAR_KEYWORD for p in params.values()):
                return True
            param = params.get("async_")
            return bool(param and param.kind in (param.POSITIONAL_OR_KEYWORD, param.KEYWORD_ONLY))
        if iscoroutinefunction(request):
            async_ = True
        if has_keyword_async(request):
            request_kwargs["async_"] = async_
    return request


class OSSRequestManager:
    """请求取消登记表：请求键 -> 取消令牌

    .. note::
        同一个请求键，同时最多只有 1 个存活的令牌。这个对象需要显式地传给客户端，可以被多个客户端共享
    """
    def __init__(self, /):
        self._tokens: dict[str, CancelToken] = {}
        self._get_id = count(1).__next__

    def __contains__(self, key, /) -> bool:
        return key in self._tokens

    def __len__(self, /) -> int:
        return len(self._tokens)

    def __repr__(self, /) -> str:
        return f"<{type(self).__qualname__} active={list(self._tokens)!r}>"

    def new_key(self, prefix: str, /) -> str:
        """生成请求键 `{prefix}_{毫秒时间戳}_{序号}`，序号在这个登记表内唯一
        """
        return f"{prefix}_{int(time() * 1000)}_{self._get_id()}"

    def get_token(self, /, key: None | str = None) -> CancelToken:
        """获取请求键对应的令牌，不存在时创建

        :param key: 请求键，为 None 时自动生成 `request_{n}`

        :return: 取消令牌
        """
        if key is None:
            key = f"request_{self._get_id()}"
        tokens = self._tokens
        try:
            return tokens[key]
        except KeyError:
            token = tokens[key] = CancelToken()
            return token

    def cancel_request(self, key: str, /, reason: None | str = None) -> bool:
        """取消请求并移除令牌

        :return: 是否存在这个请求
        """
        token = self._tokens.pop(key, None)
        if token is None:
            return False
        token.cancel(reason or f"request {key!r} was cancelled")
        return True

    def remove_token(self, key: str, /) -> None | CancelToken:
        return self._tokens.pop(key, None)

    def cancel_all(self, /, reason: None | str = None):
        """取消所有请求，单个令牌出错只记录日志，最后总会清空登记表
        """
        tokens = self._tokens
        try:
            for key, token in tuple(tokens.items()):
                try:
                    token.cancel(reason or "all requests were cancelled")
                except Exception as e:
                    logger.warning("[\x1b[1;31mFAIL\x1b[0m] cancel %r: %r", key, e)
        finally:
            tokens.clear()

    def get_active_request_count(self, /) -> int:
        return len(self._tokens)

    def get_active_request_keys(self, /) -> list[str]:
        return list(self._tokens)

    def is_request_active(self, key: str, /) -> bool:
        return key in self._tokens


class OSSRequestHandler:
    """执行请求：登记取消令牌，记录日志，把非 2xx 的响应转换为异常

    :param manager: 请求取消登记表
    :param request: 执行 HTTP 请求的函数，为 None 时用 `httpcore_request.request`
    :param request_kwargs: 每次请求时都会传给 `request` 的其它关键字参数
    :param enable_log: 是否记录请求和响应的日志
    """
    def __init__(
        self, 
        /, 
        manager: OSSRequestManager, 
        request: None | Callable = None, 
        request_kwargs: None | Mapping[str, Any] = None, 
        enable_log: bool = True, 
    ):
        self.manager = manager
        self.request = request
        self.request_kwargs = dict(request_kwargs or ())
        self.enable_log = enable_log

    def execute_request(
        self, 
        /, 
        key: str, 
        executor: Callable[[CancelToken], Any], 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False, True] = False, 
    ):
        """在取消令牌的管理下执行 `executor`

        .. note::
            如果没有传入 `cancel_token`，则从登记表中获取（或创建）`key` 对应的令牌，结束后再移除；
            外部传入的令牌，由调用方负责

            异步时，令牌被取消会打断正在进行的请求，并抛出 request_cancelled 错误

        :param key: 请求键
        :param executor: 执行请求的函数，接受取消令牌作为参数，异步时返回可等待对象
        :param cancel_token: 外部的取消令牌
        :param async_: 是否异步

        :return: `executor` 的结果
        """
        manager = self.manager
        owned = cancel_token is None
        token = manager.get_token(key) if cancel_token is None else cancel_token
        enable_log = self.enable_log
        start_t = perf_counter()
        if enable_log:
            logger.debug("[\x1b[1;36mSTART\x1b[0m] %s", key)
        def on_success():
            if enable_log:
                logger.debug(
                    "[\x1b[1;32mGOOD\x1b[0m] %s (%.0fms)", 
                    key, (perf_counter() - start_t) * 1000, 
                )
        def on_failure(exc: BaseException, /):
            if enable_log:
                logger.error(
                    "[\x1b[1;31mFAIL\x1b[0m] %s (%.0fms): %s", 
                    key, (perf_counter() - start_t) * 1000, exc, 
                )
        def finish():
            if owned:
                manager.remove_token(key)
        if async_:
            async def request():
                try:
                    token.raise_if_cancelled()
                    future = ensure_future(executor(token))
                    remove = token.add_callback(future.cancel)
                    try:
                        result = await future
                    except CancelledError as e:
                        if token.cancelled:
                            raise error(
                                OSSErrorType.request_cancelled, 
                                token.reason or "", 
                                original_error=e, 
                            ) from e
                        raise
                    finally:
                        remove()
                except BaseException as e:
                    on_failure(e)
                    raise
                else:
                    on_success()
                    return result
                finally:
                    finish()
            return request()
        try:
            token.raise_if_cancelled()
            result = executor(token)
        except BaseException as e:
            on_failure(e)
            raise
        else:
            on_success()
            return result
        finally:
            finish()

    def send_request(
        self, 
        /, 
        url: str, 
        method: str = "GET", 
        headers: None | Mapping[str, Any] | Iterable[tuple[str, Any]] = None, 
        data: Any = None, 
        *, 
        default_error_type: OSSErrorType = OSSErrorType.network, 
        on_send_progress: None | Callable[[int, int], Any] = None, 
        on_receive_progress: None | Callable[[int, int], Any] = None, 
        stream: bool = False, 
        check: None | Callable[[], Any] = None, 
        async_: Literal[False, True] = False, 
        **request_kwargs, 
    ):
        """发送 HTTP 请求

        .. note::
            非 2xx 的响应会被转换为异常，优先根据响应体 `<Error><Code>` 的错误码，其次根据状态码，
            最后使用 `default_error_type`

            需要接收进度或者流式响应时，以 `parse=None` 调用 `request`，然后逐块读取响应体

        :param url: HTTP 请求链接
        :param method: HTTP 请求方法
        :param headers: 请求头
        :param data: 请求体，可以是 bytes 或者 bytes 的（异步）迭代器
        :param default_error_type: 无法推断错误种类时使用
        :param on_send_progress: 上传进度回调，参数为 (已发送的字节数, 总字节数)，总字节数取自 content-length，未知时为 -1
        :param on_receive_progress: 下载进度回调，参数为 (已接收的字节数, 总字节数)，总字节数未知时为 -1
        :param stream: 是否返回流式响应（`OSSStreamResponse`），不一次性读取响应体
        :param check: 流式读取时，每读一块数据前调用
        :param async_: 是否异步
        :param request_kwargs: 其它请求参数

        :return: 响应（`OSSResponse`），或者流式响应（`OSSStreamResponse`）
        """
        headers = dict(iter_items(headers or ()))
        request_kwargs = {**self.request_kwargs, **request_kwargs}
        request = get_request(request_kwargs.pop("request", self.request), request_kwargs, async_=async_)
        raw = stream or on_receive_progress is not None
        request_kwargs.update(
            url=url, 
            method=method, 
            headers=headers, 
            parse=None if raw else parse_response, 
            raise_for_status=False, 
        )
        if data is not None:
            if on_send_progress is not None:
                data = _with_send_progress(data, _content_length(headers), on_send_progress, async_=async_)
            request_kwargs["data"] = data
        enable_log = self.enable_log
        def gen_step():
            if enable_log:
                log_request(method, url, headers)
            start_t = perf_counter()
            try:
                resp = yield request(**request_kwargs)
                if raw:
                    status_code = get_status_code(resp)
                    if stream and 200 <= status_code < 300:
                        if enable_log:
                            log_response(method, url, status_code, (perf_counter() - start_t) * 1000, b"")
                        return OSSStreamResponse(
                            status_code, 
                            _response_headers(resp), 
                            iter_response_body(resp, on_receive_progress, check, async_=async_), 
                        )
                    body = iter_response_body(resp, on_receive_progress, check, async_=async_)
                    if async_:
                        async def read_all():
                            return b"".join([chunk async for chunk in body])
                        content = yield read_all()
                    else:
                        content = b"".join(body)
                    resp = parse_response(resp, content)
            except (OSSOSError, CancelledError):
                raise
            except Exception as e:
                raise error(default_error_type, str(e), original_error=e) from e
            if enable_log:
                log_response(method, url, resp.status_code, (perf_counter() - start_t) * 1000, resp.content)
            if not resp.ok:
                code = parse_oss_error_code(resp.content)
                type = error_type_from_code(code) or error_type_from_status(resp.status_code, default_error_type)
                raise error(
                    type, 
                    f"{method} {url} -> {resp.status_code}" + (f" [{code}]" if code else ""), 
                    response=resp, 
                    oss_error_code=code, 
                )
            return resp
        return run_gen_step(gen_step, async_)
