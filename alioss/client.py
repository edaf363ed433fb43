#!/usr/bin/env python3
# encoding: utf-8

__all__ = ["PartOutcome", "OSSClient"]

from asyncio import gather, to_thread, CancelledError
from collections.abc import (
    AsyncIterable, AsyncIterator, Buffer, Callable, Coroutine, Iterable, Iterator, Mapping, 
)
from datetime import datetime
from os import fsdecode, stat, PathLike
from stat import S_ISREG
from typing import overload, Any, Final, Literal, NamedTuple
from urllib.parse import quote

from iterutils import run_gen_step, run_gen_step_iter, Yield
from orjson import dumps

from .config import OSSConfig
from .exception import error, from_exception, throw, OSSErrorType, OSSOSError
from .log import logger
from .request import (
    CancelToken, OSSRequestHandler, OSSRequestManager, OSSResponse, OSSStreamResponse, 
)
from .sign import build_query_string, SignStrategy, V1SignStrategy, V4SignStrategy
from .type import (
    CompleteMultipartUploadResult, InitiateMultipartUploadResult, 
    ListBucketResultV2, ListMultipartUploadsResult, ListPartsResult, 
    ObjectMeta, PartInfo, UploadInfo, unquote_etag, 
)
from .util import (
    determine_part_plan, iter_part_ranges, read_file_range, read_file_range_async, 
    Lock, Semaphore, MAX_PART_COUNT, MAX_PART_SIZE, MIN_PART_SIZE, 
)


DEFAULT_CONTENT_TYPE: Final = "application/octet-stream"
#: 简单上传超过这个大小时，建议改用分片上传
LARGE_OBJECT_SIZE: Final = 100 * 1024 * 1024


def _param_value(value: Any, /) -> None | str:
    if value is None:
        return None
    elif isinstance(value, str):
        return value
    elif isinstance(value, bool):
        return "true" if value else "false"
    elif isinstance(value, (int, float)):
        return str(value)
    elif isinstance(value, (list, tuple, dict)):
        return dumps(value).decode("utf-8")
    return str(value)


def _call_quietly(callback: Callable, /, *args):
    # NOTE: 回调出错只记录日志，不影响上传
    try:
        callback(*args)
    except Exception as e:
        logger.warning("[\x1b[1;33mSKIP\x1b[0m] callback %r%r raised: %r", callback, args, e)


class PartOutcome(NamedTuple):
    """单个分片任务的结果：成功时有 `part`，失败时有 `error`，都没有则表示被跳过
    """
    part_number: int
    part: None | PartInfo = None
    error: None | OSSOSError = None

    @property
    def ok(self, /) -> bool:
        return self.part is not None

    @property
    def skipped(self, /) -> bool:
        return self.part is None and self.error is None


class OSSClient:
    """阿里云 OSS 客户端

    .. note::
        可以同时存在多个客户端，各自持有配置；请求取消登记表可以通过 `request_manager` 共享

    :param config: 客户端配置，构造时会检查必要的配置项
    :param request_manager: 请求取消登记表，为 None 时新建一个
    :param request: 执行 HTTP 请求的函数，为 None 时用 `config.request`，再为 None 时用 `httpcore_request.request`
    """
    def __init__(
        self, 
        /, 
        config: OSSConfig, 
        request_manager: None | OSSRequestManager = None, 
        request: None | Callable = None, 
    ):
        self.config = config.validate()
        if request_manager is None:
            request_manager = OSSRequestManager()
        self.request_manager = request_manager
        self.request_handler = OSSRequestHandler(
            request_manager, 
            request=request or config.request, 
            request_kwargs=config.request_kwargs, 
            enable_log=config.enable_log_interceptor, 
        )
        self.sign_strategies: dict[bool, SignStrategy] = {
            True: V1SignStrategy(config), 
            False: V4SignStrategy(config), 
        }

    def __repr__(self, /) -> str:
        cls = type(self)
        return f"{cls.__module__}.{cls.__qualname__}({self.config!r})"

    ########## 请求的公共部分 ##########

    def build_url(
        self, 
        /, 
        key: str = "", 
        bucket: None | str = None, 
        params: None | Mapping[str, Any] = None, 
    ) -> str:
        """构建请求链接

        :param key: 对象名，为空时表示存储空间本身
        :param bucket: 存储空间名，为 None 时用配置中的
        :param params: 查询参数，值为 None 的被忽略，值为空字符串的只保留键名

        :return: 请求链接
        """
        config = self.config
        if config.cname:
            host = config.endpoint
        else:
            host = f"{bucket or config.bucket_name}.{config.endpoint}"
        url = f"https://{host}/{quote(key.lstrip('/'), safe='/')}"
        if params:
            query = build_query_string({k: _param_value(v) for k, v in params.items()})
            if query:
                url += "?" + query
        return url

    def create_signed_headers(
        self, 
        /, 
        method: str, 
        key: str = "", 
        url: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        params: None | Mapping[str, Any] = None, 
        content_type: None | str = None, 
        content_length: None | int = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
    ) -> dict[str, Any]:
        """计算然后返回带认证信息的请求头

        :param method: HTTP 请求方法
        :param key: 对象名
        :param url: HTTP 请求链接，为 None 时根据 `key`、`bucket` 和 `params` 构建
        :param bucket: 存储空间名
        :param headers: 默认的请求头
        :param params: 查询参数
        :param content_type: 内容类型，默认为 `application/octet-stream`
        :param content_length: 内容长度
        :param is_v1_signature: 是否使用 V1 签名，否则使用 V4 签名
        :param dt: 签名时间，默认为当前时间

        :return: 带认证信息的请求头
        """
        bucket = bucket or self.config.bucket_name
        if url is None:
            url = self.build_url(key, bucket, params)
        headers = {k.lower(): v for k, v in (headers or {}).items()}
        if content_type is None:
            content_type = headers.pop("content-type", None) or DEFAULT_CONTENT_TYPE
        else:
            headers.pop("content-type", None)
        if content_length is None and "content-length" in headers:
            content_length = int(headers.pop("content-length"))
        else:
            headers.pop("content-length", None)
        return self.sign_strategies[is_v1_signature].sign_headers(
            method, 
            url, 
            bucket, 
            key, 
            headers, 
            content_type=content_type, 
            content_length=content_length, 
            dt=dt, 
        )

    def _request(
        self, 
        /, 
        method: str, 
        key: str, 
        request_key: str, 
        bucket: None | str = None, 
        params: None | Mapping[str, Any] = None, 
        headers: None | Mapping[str, Any] = None, 
        data: Any = None, 
        content_type: None | str = None, 
        content_length: None | int = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        default_error_type: OSSErrorType = OSSErrorType.network, 
        on_send_progress: None | Callable[[int, int], Any] = None, 
        on_receive_progress: None | Callable[[int, int], Any] = None, 
        stream: bool = False, 
        *, 
        async_: Literal[False, True] = False, 
    ):
        bucket = bucket or self.config.bucket_name
        url = self.build_url(key, bucket, params)
        handler = self.request_handler
        def executor(token: CancelToken, /):
            # NOTE: 在发送时才签名，以便每次都拿到最新的凭证
            signed_headers = self.create_signed_headers(
                method, 
                key, 
                url=url, 
                bucket=bucket, 
                headers=headers, 
                content_type=content_type, 
                content_length=content_length, 
                is_v1_signature=is_v1_signature, 
                dt=dt, 
            )
            return handler.send_request(
                url, 
                method, 
                signed_headers, 
                data, 
                default_error_type=default_error_type, 
                on_send_progress=on_send_progress, 
                on_receive_progress=on_receive_progress, 
                stream=stream, 
                check=token.raise_if_cancelled, 
                async_=async_, 
            )
        return handler.execute_request(request_key, executor, cancel_token, async_=async_)

    ########## 分片上传 ##########

    @overload
    def initiate_multipart_upload(
        self, 
        /, 
        key: str, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False] = False, 
    ) -> InitiateMultipartUploadResult:
        ...
    @overload
    def initiate_multipart_upload(
        self, 
        /, 
        key: str, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[True], 
    ) -> Coroutine[Any, Any, InitiateMultipartUploadResult]:
        ...
    def initiate_multipart_upload(
        self, 
        /, 
        key: str, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False, True] = False, 
    ) -> InitiateMultipartUploadResult | Coroutine[Any, Any, InitiateMultipartUploadResult]:
        """初始化分片上传，获取上传任务的 id

        .. note::
            响应中缺少 UploadId，或者 UploadId 为空，都会抛出 initiate_multipart_failed 错误

        :param key: 对象名
        :param bucket: 存储空间名
        :param headers: 其它请求头
        :param is_v1_signature: 是否使用 V1 签名
        :param dt: 签名时间
        :param cancel_token: 外部的取消令牌
        :param async_: 是否异步

        :return: `InitiateMultipartUploadResult`
        """
        if not key:
            throw(OSSErrorType.invalid_argument, "key 不能为空")
        def gen_step():
            resp = yield self._request(
                "POST", 
                key, 
                self.request_manager.new_key(f"initiateMultipartUpload_{key}"), 
                bucket=bucket, 
                params={"uploads": ""}, 
                headers=headers, 
                is_v1_signature=is_v1_signature, 
                dt=dt, 
                cancel_token=cancel_token, 
                default_error_type=OSSErrorType.initiate_multipart_failed, 
                async_=async_, 
            )
            try:
                result = InitiateMultipartUploadResult.parse(resp.content)
            except OSSOSError as e:
                if e.type is not OSSErrorType.invalid_response:
                    raise
                raise error(
                    OSSErrorType.initiate_multipart_failed, 
                    f"无法从响应中得到 UploadId：{e.message}", 
                    response=resp, 
                    original_error=e, 
                ) from e
            if not result.upload_id:
                throw(OSSErrorType.initiate_multipart_failed, "响应中的 UploadId 为空", response=resp)
            return result
        return run_gen_step(gen_step, async_)

    @overload
    def upload_part(
        self, 
        /, 
        key: str, 
        data: Buffer | Iterable[Buffer] | AsyncIterable[Buffer], 
        part_number: int, 
        upload_id: str, 
        content_length: None | int = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        on_send_progress: None | Callable[[int, int], Any] = None, 
        *, 
        async_: Literal[False] = False, 
    ) -> PartInfo:
        ...
    @overload
    def upload_part(
        self, 
        /, 
        key: str, 
        data: Buffer | Iterable[Buffer] | AsyncIterable[Buffer], 
        part_number: int, 
        upload_id: str, 
        content_length: None | int = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        on_send_progress: None | Callable[[int, int], Any] = None, 
        *, 
        async_: Literal[True], 
    ) -> Coroutine[Any, Any, PartInfo]:
        ...
    def upload_part(
        self, 
        /, 
        key: str, 
        data: Buffer | Iterable[Buffer] | AsyncIterable[Buffer], 
        part_number: int, 
        upload_id: str, 
        content_length: None | int = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        on_send_progress: None | Callable[[int, int], Any] = None, 
        *, 
        async_: Literal[False, True] = False, 
    ) -> PartInfo | Coroutine[Any, Any, PartInfo]:
        """上传一个分片

        :param key: 对象名
        :param data: 分片数据，可以是 bytes，或者 bytes 的（异步）迭代器（此时必须指定 `content_length`）
        :param part_number: 分片编号，从 1 开始
        :param upload_id: 上传任务 id
        :param content_length: 分片大小
        :param bucket: 存储空间名
        :param headers: 其它请求头
        :param is_v1_signature: 是否使用 V1 签名
        :param dt: 签名时间
        :param cancel_token: 外部的取消令牌
        :param on_send_progress: 上传进度回调，参数为 (已发送的字节数, 分片大小)
        :param async_: 是否异步

        :return: `PartInfo`，其中的 ETag 已经去掉了双引号
        """
        if not key:
            throw(OSSErrorType.invalid_argument, "key 不能为空")
        if not 1 <= part_number <= MAX_PART_COUNT:
            throw(OSSErrorType.invalid_argument, f"partNumber 必须在 1 到 {MAX_PART_COUNT} 之间：{part_number}")
        if not upload_id:
            throw(OSSErrorType.invalid_argument, "uploadId 不能为空")
        if isinstance(data, Buffer):
            data = bytes(data)
            content_length = len(data)
        elif content_length is None:
            throw(OSSErrorType.invalid_argument, "流式上传分片时必须指定 content_length")
        if not content_length:
            throw(OSSErrorType.invalid_argument, "分片数据不能为空")
        def gen_step():
            resp = yield self._request(
                "PUT", 
                key, 
                self.request_manager.new_key(f"uploadPart_{key}_{part_number}"), 
                bucket=bucket, 
                params={"partNumber": part_number, "uploadId": upload_id}, 
                headers=headers, 
                data=data, 
                content_length=content_length, 
                is_v1_signature=is_v1_signature, 
                dt=dt, 
                cancel_token=cancel_token, 
                default_error_type=OSSErrorType.upload_part_failed, 
                on_send_progress=on_send_progress, 
                async_=async_, 
            )
            etag = resp.headers.get("etag")
            if not etag:
                throw(OSSErrorType.upload_part_failed, f"分片 {part_number} 的响应中缺少 ETag", response=resp)
            return PartInfo(
                part_number=part_number, 
                etag=unquote_etag(etag), 
                size=content_length, 
                last_modified=resp.headers.get("last-modified") or resp.headers.get("date") or "", 
            )
        return run_gen_step(gen_step, async_)

    @overload
    def complete_multipart_upload(
        self, 
        /, 
        key: str, 
        upload_id: str, 
        parts: Iterable[PartInfo], 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False] = False, 
    ) -> CompleteMultipartUploadResult:
        ...
    @overload
    def complete_multipart_upload(
        self, 
        /, 
        key: str, 
        upload_id: str, 
        parts: Iterable[PartInfo], 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[True], 
    ) -> Coroutine[Any, Any, CompleteMultipartUploadResult]:
        ...
    def complete_multipart_upload(
        self, 
        /, 
        key: str, 
        upload_id: str, 
        parts: Iterable[PartInfo], 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False, True] = False, 
    ) -> CompleteMultipartUploadResult | Coroutine[Any, Any, CompleteMultipartUploadResult]:
        """完成分片上传

        :param key: 对象名
        :param upload_id: 上传任务 id
        :param parts: 已上传的分片，分片编号必须严格递增
        :param bucket: 存储空间名
        :param headers: 其它请求头
        :param is_v1_signature: 是否使用 V1 签名
        :param dt: 签名时间
        :param cancel_token: 外部的取消令牌
        :param async_: 是否异步

        :return: `CompleteMultipartUploadResult`
        """
        if not key:
            throw(OSSErrorType.invalid_argument, "key 不能为空")
        if not upload_id:
            throw(OSSErrorType.invalid_argument, "uploadId 不能为空")
        parts = list(parts)
        if not parts:
            throw(OSSErrorType.invalid_argument, "parts 不能为空")
        for prev, part in zip(parts, parts[1:]):
            if part.part_number <= prev.part_number:
                throw(
                    OSSErrorType.invalid_argument, 
                    f"分片编号必须严格递增：{prev.part_number} -> {part.part_number}", 
                )
        data = bytes("".join((
            "<CompleteMultipartUpload>", 
            *(part.to_xml() for part in parts), 
            "</CompleteMultipartUpload>", 
        )), "utf-8")
        def gen_step():
            resp = yield self._request(
                "POST", 
                key, 
                self.request_manager.new_key(f"completeMultipartUpload_{key}"), 
                bucket=bucket, 
                params={"uploadId": upload_id}, 
                headers=headers, 
                data=data, 
                content_type="application/xml", 
                content_length=len(data), 
                is_v1_signature=is_v1_signature, 
                dt=dt, 
                cancel_token=cancel_token, 
                default_error_type=OSSErrorType.complete_multipart_failed, 
                async_=async_, 
            )
            return CompleteMultipartUploadResult.parse(resp.content)
        return run_gen_step(gen_step, async_)

    @overload
    def abort_multipart_upload(
        self, 
        /, 
        key: str, 
        upload_id: str, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False] = False, 
    ) -> OSSResponse:
        ...
    @overload
    def abort_multipart_upload(
        self, 
        /, 
        key: str, 
        upload_id: str, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[True], 
    ) -> Coroutine[Any, Any, OSSResponse]:
        ...
    def abort_multipart_upload(
        self, 
        /, 
        key: str, 
        upload_id: str, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False, True] = False, 
    ) -> OSSResponse | Coroutine[Any, Any, OSSResponse]:
        """取消分片上传，失败时抛出 abort_multipart_failed 错误

        :param key: 对象名
        :param upload_id: 上传任务 id
        :param bucket: 存储空间名
        :param headers: 其它请求头
        :param is_v1_signature: 是否使用 V1 签名
        :param dt: 签名时间
        :param cancel_token: 外部的取消令牌
        :param async_: 是否异步

        :return: 响应（`OSSResponse`）
        """
        if not key:
            throw(OSSErrorType.invalid_argument, "key 不能为空")
        if not upload_id:
            throw(OSSErrorType.invalid_argument, "uploadId 不能为空")
        def gen_step():
            try:
                return (yield self._request(
                    "DELETE", 
                    key, 
                    self.request_manager.new_key(f"abortMultipartUpload_{key}"), 
                    bucket=bucket, 
                    params={"uploadId": upload_id}, 
                    headers=headers, 
                    is_v1_signature=is_v1_signature, 
                    dt=dt, 
                    cancel_token=cancel_token, 
                    default_error_type=OSSErrorType.abort_multipart_failed, 
                    async_=async_, 
                ))
            except OSSOSError as e:
                if e.type in (OSSErrorType.abort_multipart_failed, OSSErrorType.request_cancelled):
                    raise
                raise error(
                    OSSErrorType.abort_multipart_failed, 
                    f"取消分片上传失败：{e.message}", 
                    response=e.response, 
                    original_error=e, 
                    oss_error_code=e.oss_error_code, 
                ) from e
        return run_gen_step(gen_step, async_)

    @overload
    def list_parts(
        self, 
        /, 
        key: str, 
        upload_id: str, 
        max_parts: None | int = None, 
        part_number_marker: None | int = None, 
        encoding_type: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False] = False, 
    ) -> ListPartsResult:
        ...
    @overload
    def list_parts(
        self, 
        /, 
        key: str, 
        upload_id: str, 
        max_parts: None | int = None, 
        part_number_marker: None | int = None, 
        encoding_type: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[True], 
    ) -> Coroutine[Any, Any, ListPartsResult]:
        ...
    def list_parts(
        self, 
        /, 
        key: str, 
        upload_id: str, 
        max_parts: None | int = None, 
        part_number_marker: None | int = None, 
        encoding_type: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False, True] = False, 
    ) -> ListPartsResult | Coroutine[Any, Any, ListPartsResult]:
        """罗列某个分片上传任务已经上传的分片

        :param key: 对象名
        :param upload_id: 上传任务 id
        :param max_parts: 最多返回多少个分片，1 到 1000
        :param part_number_marker: 从这个分片编号之后开始罗列
        :param encoding_type: 编码方式，例如 "url"
        :param async_: 是否异步

        :return: `ListPartsResult`
        """
        if not key:
            throw(OSSErrorType.invalid_argument, "key 不能为空")
        if not upload_id:
            throw(OSSErrorType.invalid_argument, "uploadId 不能为空")
        if max_parts is not None and not 1 <= max_parts <= 1000:
            throw(OSSErrorType.invalid_argument, f"max_parts 必须在 1 到 1000 之间：{max_parts}")
        if part_number_marker is not None and part_number_marker < 0:
            throw(OSSErrorType.invalid_argument, f"part_number_marker 不能为负数：{part_number_marker}")
        def gen_step():
            resp = yield self._request(
                "GET", 
                key, 
                self.request_manager.new_key(f"listParts_{key}"), 
                bucket=bucket, 
                params={
                    "uploadId": upload_id, 
                    "max-parts": max_parts, 
                    "part-number-marker": part_number_marker, 
                    "encoding-type": encoding_type, 
                }, 
                headers=headers, 
                is_v1_signature=is_v1_signature, 
                dt=dt, 
                cancel_token=cancel_token, 
                async_=async_, 
            )
            return ListPartsResult.parse(resp.content)
        return run_gen_step(gen_step, async_)

    @overload
    def iter_parts(
        self, 
        /, 
        key: str, 
        upload_id: str, 
        max_parts: None | int = None, 
        *, 
        async_: Literal[False] = False, 
        **kwargs, 
    ) -> Iterator[PartInfo]:
        ...
    @overload
    def iter_parts(
        self, 
        /, 
        key: str, 
        upload_id: str, 
        max_parts: None | int = None, 
        *, 
        async_: Literal[True], 
        **kwargs, 
    ) -> AsyncIterator[PartInfo]:
        ...
    def iter_parts(
        self, 
        /, 
        key: str, 
        upload_id: str, 
        max_parts: None | int = None, 
        *, 
        async_: Literal[False, True] = False, 
        **kwargs, 
    ) -> Iterator[PartInfo] | AsyncIterator[PartInfo]:
        """罗列某个分片上传任务已经上传的分片，自动翻页

        :param key: 对象名
        :param upload_id: 上传任务 id
        :param max_parts: 每页最多返回多少个分片
        :param async_: 是否异步
        :param kwargs: 其它参数，传给 `list_parts`

        :return: 迭代器，产生 `PartInfo`
        """
        def gen_step():
            marker = kwargs.pop("part_number_marker", None)
            while True:
                result = yield self.list_parts(
                    key, 
                    upload_id, 
                    max_parts=max_parts, 
                    part_number_marker=marker, 
                    async_=async_, 
                    **kwargs, 
                )
                for part in result.parts:
                    yield Yield(part)
                if not result.is_truncated or result.next_part_number_marker in (None, marker):
                    break
                marker = result.next_part_number_marker
        return run_gen_step_iter(gen_step, async_)

    @overload
    def list_multipart_uploads(
        self, 
        /, 
        prefix: None | str = None, 
        delimiter: None | str = None, 
        key_marker: None | str = None, 
        upload_id_marker: None | str = None, 
        max_uploads: None | int = None, 
        encoding_type: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False] = False, 
    ) -> ListMultipartUploadsResult:
        ...
    @overload
    def list_multipart_uploads(
        self, 
        /, 
        prefix: None | str = None, 
        delimiter: None | str = None, 
        key_marker: None | str = None, 
        upload_id_marker: None | str = None, 
        max_uploads: None | int = None, 
        encoding_type: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[True], 
    ) -> Coroutine[Any, Any, ListMultipartUploadsResult]:
        ...
    def list_multipart_uploads(
        self, 
        /, 
        prefix: None | str = None, 
        delimiter: None | str = None, 
        key_marker: None | str = None, 
        upload_id_marker: None | str = None, 
        max_uploads: None | int = None, 
        encoding_type: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False, True] = False, 
    ) -> ListMultipartUploadsResult | Coroutine[Any, Any, ListMultipartUploadsResult]:
        """罗列存储空间中进行中的分片上传任务

        :param prefix: 对象名前缀
        :param delimiter: 分组用的字符
        :param key_marker: 从这个对象名之后开始罗列
        :param upload_id_marker: 和 `key_marker` 一起使用，从这个上传任务 id 之后开始罗列
        :param max_uploads: 最多返回多少个任务，1 到 1000
        :param encoding_type: 编码方式，例如 "url"
        :param async_: 是否异步

        :return: `ListMultipartUploadsResult`
        """
        if max_uploads is not None and not 1 <= max_uploads <= 1000:
            throw(OSSErrorType.invalid_argument, f"max_uploads 必须在 1 到 1000 之间：{max_uploads}")
        def gen_step():
            resp = yield self._request(
                "GET", 
                "", 
                self.request_manager.new_key(f"listMultipartUploads_{bucket or self.config.bucket_name}"), 
                bucket=bucket, 
                params={
                    "uploads": "", 
                    "prefix": prefix, 
                    "delimiter": delimiter, 
                    "key-marker": key_marker, 
                    "upload-id-marker": upload_id_marker, 
                    "max-uploads": max_uploads, 
                    "encoding-type": encoding_type, 
                }, 
                headers=headers, 
                is_v1_signature=is_v1_signature, 
                dt=dt, 
                cancel_token=cancel_token, 
                async_=async_, 
            )
            return ListMultipartUploadsResult.parse(resp.content)
        return run_gen_step(gen_step, async_)

    @overload
    def iter_multipart_uploads(
        self, 
        /, 
        prefix: None | str = None, 
        max_uploads: None | int = None, 
        *, 
        async_: Literal[False] = False, 
        **kwargs, 
    ) -> Iterator[UploadInfo]:
        ...
    @overload
    def iter_multipart_uploads(
        self, 
        /, 
        prefix: None | str = None, 
        max_uploads: None | int = None, 
        *, 
        async_: Literal[True], 
        **kwargs, 
    ) -> AsyncIterator[UploadInfo]:
        ...
    def iter_multipart_uploads(
        self, 
        /, 
        prefix: None | str = None, 
        max_uploads: None | int = None, 
        *, 
        async_: Literal[False, True] = False, 
        **kwargs, 
    ) -> Iterator[UploadInfo] | AsyncIterator[UploadInfo]:
        """罗列进行中的分片上传任务，自动翻页

        :return: 迭代器，产生 `UploadInfo`
        """
        def gen_step():
            key_marker = kwargs.pop("key_marker", None)
            upload_id_marker = kwargs.pop("upload_id_marker", None)
            while True:
                result = yield self.list_multipart_uploads(
                    prefix=prefix, 
                    key_marker=key_marker, 
                    upload_id_marker=upload_id_marker, 
                    max_uploads=max_uploads, 
                    async_=async_, 
                    **kwargs, 
                )
                for upload in result.uploads:
                    yield Yield(upload)
                if not result.is_truncated:
                    break
                if (result.next_key_marker, result.next_upload_id_marker) == (key_marker, upload_id_marker):
                    break
                key_marker = result.next_key_marker
                upload_id_marker = result.next_upload_id_marker
        return run_gen_step_iter(gen_step, async_)

    ########## 对象 ##########

    @overload
    def put_object(
        self, 
        /, 
        file: Buffer | str | PathLike | Any, 
        key: str, 
        acl: None | str = None, 
        storage_class: None | str = None, 
        forbid_overwrite: None | bool = None, 
        content_type: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        on_send_progress: None | Callable[[int, int], Any] = None, 
        *, 
        async_: Literal[False] = False, 
    ) -> OSSResponse:
        ...
    @overload
    def put_object(
        self, 
        /, 
        file: Buffer | str | PathLike | Any, 
        key: str, 
        acl: None | str = None, 
        storage_class: None | str = None, 
        forbid_overwrite: None | bool = None, 
        content_type: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        on_send_progress: None | Callable[[int, int], Any] = None, 
        *, 
        async_: Literal[True], 
    ) -> Coroutine[Any, Any, OSSResponse]:
        ...
    def put_object(
        self, 
        /, 
        file: Buffer | str | PathLike | Any, 
        key: str, 
        acl: None | str = None, 
        storage_class: None | str = None, 
        forbid_overwrite: None | bool = None, 
        content_type: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        on_send_progress: None | Callable[[int, int], Any] = None, 
        *, 
        async_: Literal[False, True] = False, 
    ) -> OSSResponse | Coroutine[Any, Any, OSSResponse]:
        """简单上传

        :param file: 待上传的数据

            - 如果是 `bytes`、`bytearray` 等，则直接上传
            - 如果是 `str`，则视为文本，以 utf-8 编码后上传
            - 如果是 `os.PathLike`，则视为文件路径，流式上传
            - 如果有 `read` 方法，则视为二进制文件对象，读取全部内容后上传

        :param key: 对象名，不能以 "/" 开头
        :param acl: 访问权限，例如 "private"、"public-read"
        :param storage_class: 存储类型，例如 "Standard"、"IA"
        :param forbid_overwrite: 是否禁止覆盖同名对象
        :param content_type: 内容类型
        :param bucket: 存储空间名
        :param headers: 其它请求头
        :param is_v1_signature: 是否使用 V1 签名
        :param dt: 签名时间
        :param cancel_token: 外部的取消令牌
        :param on_send_progress: 上传进度回调，参数为 (已发送的字节数, 总字节数)
        :param async_: 是否异步

        :return: 响应（`OSSResponse`）
        """
        if not key:
            throw(OSSErrorType.invalid_argument, "key 不能为空")
        if key.startswith("/"):
            throw(OSSErrorType.invalid_argument, f"key 不能以 '/' 开头：{key!r}")
        headers = {k.lower(): v for k, v in (headers or {}).items()}
        if acl is not None:
            headers["x-oss-object-acl"] = acl
        if storage_class is not None:
            headers["x-oss-storage-class"] = storage_class
        if forbid_overwrite is not None:
            headers["x-oss-forbid-overwrite"] = "true" if forbid_overwrite else "false"
        def gen_step():
            data: Any
            if isinstance(file, Buffer):
                data = bytes(file)
                size = len(data)
            elif isinstance(file, str):
                data = file.encode("utf-8")
                size = len(data)
            elif isinstance(file, PathLike):
                try:
                    if async_:
                        size = (yield to_thread(stat, file)).st_size
                    else:
                        size = stat(file).st_size
                except OSError as e:
                    throw(OSSErrorType.file_system, f"无法读取文件：{fsdecode(file)!r}", original_error=e)
                if async_:
                    data = read_file_range_async(file, 0, size)
                else:
                    data = read_file_range(file, 0, size)
            elif hasattr(file, "read"):
                if async_:
                    data = yield to_thread(file.read)
                else:
                    data = file.read()
                data = bytes(data)
                size = len(data)
            else:
                throw(OSSErrorType.invalid_argument, f"不支持的数据类型：{type(file).__qualname__}")
            if size > LARGE_OBJECT_SIZE:
                logger.warning(
                    "put_object %r: %d bytes exceeds %d bytes, consider multipart_upload", 
                    key, size, LARGE_OBJECT_SIZE, 
                )
            return (yield self._request(
                "PUT", 
                key, 
                self.request_manager.new_key(f"putObject_{key}"), 
                bucket=bucket, 
                headers=headers, 
                data=data, 
                content_type=content_type, 
                content_length=size, 
                is_v1_signature=is_v1_signature, 
                dt=dt, 
                cancel_token=cancel_token, 
                on_send_progress=on_send_progress, 
                async_=async_, 
            ))
        return run_gen_step(gen_step, async_)

    @overload
    def get_object(
        self, 
        /, 
        key: str, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        params: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        on_receive_progress: None | Callable[[int, int], Any] = None, 
        *, 
        async_: Literal[False] = False, 
    ) -> OSSResponse:
        ...
    @overload
    def get_object(
        self, 
        /, 
        key: str, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        params: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        on_receive_progress: None | Callable[[int, int], Any] = None, 
        *, 
        async_: Literal[True], 
    ) -> Coroutine[Any, Any, OSSResponse]:
        ...
    def get_object(
        self, 
        /, 
        key: str, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        params: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        on_receive_progress: None | Callable[[int, int], Any] = None, 
        *, 
        async_: Literal[False, True] = False, 
    ) -> OSSResponse | Coroutine[Any, Any, OSSResponse]:
        """下载对象

        :param on_receive_progress: 下载进度回调，参数为 (已接收的字节数, 总字节数)，总字节数未知时为 -1

        :return: 响应（`OSSResponse`），`content` 是对象的数据
        """
        if not key:
            throw(OSSErrorType.invalid_argument, "key 不能为空")
        return self._request(
            "GET", 
            key, 
            self.request_manager.new_key(f"getObject_{key}"), 
            bucket=bucket, 
            params=params, 
            headers=headers, 
            is_v1_signature=is_v1_signature, 
            dt=dt, 
            cancel_token=cancel_token, 
            on_receive_progress=on_receive_progress, 
            async_=async_, 
        )

    @overload
    def get_object_stream(
        self, 
        /, 
        key: str, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        params: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        on_receive_progress: None | Callable[[int, int], Any] = None, 
        *, 
        async_: Literal[False] = False, 
    ) -> OSSStreamResponse:
        ...
    @overload
    def get_object_stream(
        self, 
        /, 
        key: str, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        params: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        on_receive_progress: None | Callable[[int, int], Any] = None, 
        *, 
        async_: Literal[True], 
    ) -> Coroutine[Any, Any, OSSStreamResponse]:
        ...
    def get_object_stream(
        self, 
        /, 
        key: str, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        params: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        on_receive_progress: None | Callable[[int, int], Any] = None, 
        *, 
        async_: Literal[False, True] = False, 
    ) -> OSSStreamResponse | Coroutine[Any, Any, OSSStreamResponse]:
        """流式下载对象，响应体不会一次性读入内存

        .. note::
            返回时只收到了响应头，数据需要迭代 `stream` 来读取，读完（或关闭迭代器）后连接被释放。
            如果传入了 `cancel_token`，迭代过程中取消会抛出 request_cancelled 错误

        :param key: 对象名
        :param bucket: 存储空间名
        :param headers: 其它请求头
        :param params: 查询参数，例如 `{"x-oss-process": "image/resize,w_100"}`
        :param is_v1_signature: 是否使用 V1 签名
        :param dt: 签名时间
        :param cancel_token: 外部的取消令牌
        :param on_receive_progress: 下载进度回调，参数为 (已接收的字节数, 总字节数)，总字节数未知时为 -1
        :param async_: 是否异步

        :return: 流式响应（`OSSStreamResponse`），`stream` 是数据块的（异步）迭代器
        """
        if not key:
            throw(OSSErrorType.invalid_argument, "key 不能为空")
        headers = {
            "accept": "application/octet-stream", 
            "cache-control": "no-cache", 
            **{k.lower(): v for k, v in (headers or {}).items()}, 
        }
        return self._request(
            "GET", 
            key, 
            self.request_manager.new_key(f"getObjectStream_{key}"), 
            bucket=bucket, 
            params=params, 
            headers=headers, 
            is_v1_signature=is_v1_signature, 
            dt=dt, 
            cancel_token=cancel_token, 
            on_receive_progress=on_receive_progress, 
            stream=True, 
            async_=async_, 
        )

    @overload
    def head_object(
        self, 
        /, 
        key: str, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False] = False, 
    ) -> ObjectMeta:
        ...
    @overload
    def head_object(
        self, 
        /, 
        key: str, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[True], 
    ) -> Coroutine[Any, Any, ObjectMeta]:
        ...
    def head_object(
        self, 
        /, 
        key: str, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False, True] = False, 
    ) -> ObjectMeta | Coroutine[Any, Any, ObjectMeta]:
        """获取对象的元数据

        :return: `ObjectMeta`
        """
        if not key:
            throw(OSSErrorType.invalid_argument, "key 不能为空")
        def gen_step():
            resp = yield self._request(
                "HEAD", 
                key, 
                self.request_manager.new_key(f"headObject_{key}"), 
                bucket=bucket, 
                headers=headers, 
                is_v1_signature=is_v1_signature, 
                dt=dt, 
                cancel_token=cancel_token, 
                async_=async_, 
            )
            return ObjectMeta.from_headers(resp.headers)
        return run_gen_step(gen_step, async_)

    @overload
    def delete_object(
        self, 
        /, 
        key: str, 
        version_id: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False] = False, 
    ) -> OSSResponse:
        ...
    @overload
    def delete_object(
        self, 
        /, 
        key: str, 
        version_id: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[True], 
    ) -> Coroutine[Any, Any, OSSResponse]:
        ...
    def delete_object(
        self, 
        /, 
        key: str, 
        version_id: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False, True] = False, 
    ) -> OSSResponse | Coroutine[Any, Any, OSSResponse]:
        """删除对象

        :return: 响应（`OSSResponse`）
        """
        if not key:
            throw(OSSErrorType.invalid_argument, "key 不能为空")
        return self._request(
            "DELETE", 
            key, 
            self.request_manager.new_key(f"deleteObject_{key}"), 
            bucket=bucket, 
            params={"versionId": version_id}, 
            headers=headers, 
            is_v1_signature=is_v1_signature, 
            dt=dt, 
            cancel_token=cancel_token, 
            async_=async_, 
        )

    @overload
    def list_objects_v2(
        self, 
        /, 
        prefix: None | str = None, 
        delimiter: None | str = "/", 
        start_after: None | str = None, 
        continuation_token: None | str = None, 
        max_keys: None | int = None, 
        fetch_owner: bool = False, 
        encoding_type: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False] = False, 
    ) -> ListBucketResultV2:
        ...
    @overload
    def list_objects_v2(
        self, 
        /, 
        prefix: None | str = None, 
        delimiter: None | str = "/", 
        start_after: None | str = None, 
        continuation_token: None | str = None, 
        max_keys: None | int = None, 
        fetch_owner: bool = False, 
        encoding_type: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[True], 
    ) -> Coroutine[Any, Any, ListBucketResultV2]:
        ...
    def list_objects_v2(
        self, 
        /, 
        prefix: None | str = None, 
        delimiter: None | str = "/", 
        start_after: None | str = None, 
        continuation_token: None | str = None, 
        max_keys: None | int = None, 
        fetch_owner: bool = False, 
        encoding_type: None | str = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
        dt: None | datetime = None, 
        cancel_token: None | CancelToken = None, 
        *, 
        async_: Literal[False, True] = False, 
    ) -> ListBucketResultV2 | Coroutine[Any, Any, ListBucketResultV2]:
        """罗列存储空间中的对象（ListObjectsV2）

        :param prefix: 对象名前缀，不能以 "/" 开头，长度小于 1024
        :param delimiter: 分组用的字符
        :param start_after: 从这个对象名之后开始罗列，长度小于 1024
        :param continuation_token: 翻页的令牌
        :param max_keys: 最多返回多少个对象，1 到 1000
        :param fetch_owner: 是否返回对象的所有者
        :param encoding_type: 编码方式，例如 "url"
        :param async_: 是否异步

        :return: `ListBucketResultV2`
        """
        if prefix:
            if prefix.startswith("/"):
                throw(OSSErrorType.invalid_argument, f"prefix 不能以 '/' 开头：{prefix!r}")
            if len(prefix) >= 1024:
                throw(OSSErrorType.invalid_argument, "prefix 的长度必须小于 1024")
        if start_after and len(start_after) >= 1024:
            throw(OSSErrorType.invalid_argument, "start_after 的长度必须小于 1024")
        if max_keys is not None and not 1 <= max_keys <= 1000:
            throw(OSSErrorType.invalid_argument, f"max_keys 必须在 1 到 1000 之间：{max_keys}")
        def gen_step():
            resp = yield self._request(
                "GET", 
                "", 
                self.request_manager.new_key(f"listObjectsV2_{bucket or self.config.bucket_name}"), 
                bucket=bucket, 
                params={
                    "list-type": 2, 
                    "prefix": prefix, 
                    "delimiter": delimiter, 
                    "start-after": start_after, 
                    "continuation-token": continuation_token, 
                    "max-keys": max_keys, 
                    "fetch-owner": fetch_owner or None, 
                    "encoding-type": encoding_type, 
                }, 
                headers=headers, 
                is_v1_signature=is_v1_signature, 
                dt=dt, 
                cancel_token=cancel_token, 
                async_=async_, 
            )
            return ListBucketResultV2.parse(resp.content)
        return run_gen_step(gen_step, async_)

    def signed_url(
        self, 
        /, 
        key: str, 
        method: str = "GET", 
        bucket: None | str = None, 
        expires: int = 3600, 
        headers: None | Mapping[str, Any] = None, 
        additional_headers: None | Iterable[str] = None, 
        params: None | Mapping[str, Any] = None, 
        dt: None | datetime = None, 
        is_v1_signature: bool = True, 
    ) -> str:
        """生成签名链接，不需要请求头就可以访问

        :param key: 对象名
        :param method: HTTP 请求方法
        :param bucket: 存储空间名
        :param expires: 有效期（秒）
        :param headers: 参与签名的请求头
        :param additional_headers: 额外参与签名的请求头名（仅 V4）
        :param params: 自定义查询参数
        :param dt: 签名时间
        :param is_v1_signature: 是否使用 V1 签名，否则使用 V4 签名（要求配置了 region）

        :return: 签名链接
        """
        if params:
            params = {k: v for k, v in ((k, _param_value(v)) for k, v in params.items()) if v is not None}
        return self.sign_strategies[is_v1_signature].sign_url(
            method, 
            bucket or self.config.bucket_name, 
            key, 
            expires=expires, 
            headers=headers, 
            additional_headers=additional_headers, 
            params=params, 
            dt=dt, 
        )

    ########## 分片上传的编排 ##########

    async def multipart_upload(
        self, 
        /, 
        file: str | PathLike, 
        key: str, 
        max_concurrency: None | int = None, 
        number_of_parts: None | int = None, 
        on_progress: None | Callable[[int, int], Any] = None, 
        on_part_progress: None | Callable[[int, int, int], Any] = None, 
        cancel_token: None | CancelToken = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
    ) -> CompleteMultipartUploadResult:
        """分片上传本地文件：初始化，并发上传各个分片，最后完成；任何失败都会取消这次上传任务

        .. note::
            请求键为 `multipartUpload_{key}_{毫秒时间戳}_{序号}`，可以用 `cancel_request` 取消。
            取消只在检查点生效：开始上传分片前、每读一块数据前，以及正在进行的请求

            进度回调抛出的异常只会被记录到日志，不影响上传

        :param file: 本地文件路径
        :param key: 对象名
        :param max_concurrency: 最大并发数，为 None 时用配置中的
        :param number_of_parts: 期望的分片个数，为 None 时根据文件大小自适应
        :param on_progress: 进度回调，参数为 (已完成的字节数, 总字节数)，只统计完成的分片
        :param on_part_progress: 分片进度回调，参数为 (分片编号, 这个分片已发送的字节数, 分片大小)
        :param cancel_token: 外部的取消令牌
        :param bucket: 存储空间名
        :param headers: 初始化时的其它请求头
        :param is_v1_signature: 是否使用 V1 签名

        :return: `CompleteMultipartUploadResult`
        """
        manager = self.request_manager
        request_key = manager.new_key(f"multipartUpload_{key}")
        owned = cancel_token is None
        token = manager.get_token(request_key) if cancel_token is None else cancel_token
        try:
            return await self._multipart_upload(
                file, 
                key, 
                token, 
                max_concurrency=max_concurrency, 
                number_of_parts=number_of_parts, 
                on_progress=on_progress, 
                on_part_progress=on_part_progress, 
                bucket=bucket, 
                headers=headers, 
                is_v1_signature=is_v1_signature, 
            )
        finally:
            if owned:
                manager.remove_token(request_key)

    async def _multipart_upload(
        self, 
        /, 
        file: str | PathLike, 
        key: str, 
        token: CancelToken, 
        max_concurrency: None | int = None, 
        number_of_parts: None | int = None, 
        on_progress: None | Callable[[int, int], Any] = None, 
        on_part_progress: None | Callable[[int, int, int], Any] = None, 
        bucket: None | str = None, 
        headers: None | Mapping[str, Any] = None, 
        is_v1_signature: bool = False, 
    ) -> CompleteMultipartUploadResult:
        if not key:
            throw(OSSErrorType.invalid_argument, "key 不能为空")
        try:
            st = await to_thread(stat, file)
        except OSError as e:
            throw(OSSErrorType.file_system, f"文件不存在或无法访问：{fsdecode(file)!r}", original_error=e)
        if not S_ISREG(st.st_mode):
            throw(OSSErrorType.file_system, f"不是普通文件：{fsdecode(file)!r}")
        total_size = st.st_size
        if total_size == 0:
            throw(OSSErrorType.invalid_argument, "文件为空，不能使用分片上传")
        if max_concurrency is None:
            max_concurrency = self.config.max_concurrency
        if max_concurrency < 1:
            throw(OSSErrorType.invalid_argument, f"max_concurrency 必须大于 0：{max_concurrency}")
        part_count, part_size = determine_part_plan(total_size, number_of_parts)
        if not (
            1 <= part_count <= MAX_PART_COUNT and
            part_size <= MAX_PART_SIZE and
            (part_count == 1 or part_size >= MIN_PART_SIZE) and
            part_count * part_size >= total_size
        ):
            throw(OSSErrorType.invalid_argument, f"无效的分片方案：{part_count} 个分片，每个 {part_size} 字节")
        if on_progress is not None:
            _call_quietly(on_progress, 0, total_size)
        logger.info(
            "[\x1b[1;34mMULTIPART\x1b[0m] %r: %d bytes, %d parts of %d bytes, concurrency=%d", 
            key, total_size, part_count, part_size, max_concurrency, 
        )
        init = await self.initiate_multipart_upload(
            key, 
            bucket=bucket, 
            headers=headers, 
            is_v1_signature=is_v1_signature, 
            cancel_token=token, 
            async_=True, 
        )
        upload_id = init.upload_id
        try:
            token.raise_if_cancelled()
            semaphore = Semaphore(max_concurrency)
            lock = Lock()
            parts: dict[int, PartInfo] = {}
            failed = False
            first_error: None | OSSOSError = None
            uploaded_size = 0

            def record_success(part: PartInfo, /):
                nonlocal uploaded_size
                parts[part.part_number] = part
                uploaded_size += part.size
                if on_progress is not None:
                    _call_quietly(on_progress, uploaded_size, total_size)

            def record_failure(exc: OSSOSError, /):
                nonlocal failed, first_error
                if not failed:
                    failed = True
                    first_error = exc

            async def upload(part_number: int, offset: int, length: int, /) -> PartOutcome:
                await semaphore.acquire()
                try:
                    if failed or token.cancelled:
                        return PartOutcome(part_number)
                    on_send_progress = None
                    if on_part_progress is not None:
                        def on_send_progress(sent: int, _: int, /):
                            _call_quietly(on_part_progress, part_number, sent, length)
                    try:
                        part = await self.upload_part(
                            key, 
                            read_file_range_async(file, offset, length, check=token.raise_if_cancelled), 
                            part_number, 
                            upload_id, 
                            content_length=length, 
                            bucket=bucket, 
                            is_v1_signature=is_v1_signature, 
                            cancel_token=token, 
                            on_send_progress=on_send_progress, 
                            async_=True, 
                        )
                    except Exception as e:
                        exc = from_exception(e, default=OSSErrorType.upload_part_failed)
                        if exc.type is not OSSErrorType.request_cancelled:
                            logger.error("[\x1b[1;31mFAIL\x1b[0m] part %d of %r: %s", part_number, key, exc)
                            await lock.run_exclusive(record_failure, exc)
                        return PartOutcome(part_number, error=exc)
                    await lock.run_exclusive(record_success, part)
                    return PartOutcome(part_number, part=part)
                finally:
                    semaphore.release()

            ranges = list(iter_part_ranges(total_size, part_size, part_count))
            # NOTE: 等所有分片任务都结束，才能决定完成还是取消
            results = await gather(
                *(upload(part_number, offset, length) for part_number, offset, length in ranges), 
                return_exceptions=True, 
            )
            outcomes: list[PartOutcome] = []
            for (part_number, _, _), result in zip(ranges, results):
                if isinstance(result, PartOutcome):
                    outcomes.append(result)
                    continue
                if not isinstance(result, (Exception, CancelledError)):
                    raise result
                exc = from_exception(result, default=OSSErrorType.upload_part_failed)
                if exc.type is not OSSErrorType.request_cancelled:
                    record_failure(exc)
                outcomes.append(PartOutcome(part_number, error=exc))
            if token.cancelled:
                throw(OSSErrorType.request_cancelled, token.reason or "")
            if failed:
                failed_numbers = [o.part_number for o in outcomes if o.error is not None]
                throw(
                    OSSErrorType.upload_part_failed, 
                    f"上传分片失败：{failed_numbers}", 
                    original_error=first_error, 
                )
            if len(parts) != part_count:
                throw(
                    OSSErrorType.upload_part_failed, 
                    f"分片数量不一致：预期 {part_count} 个，实际完成 {len(parts)} 个", 
                )
            return await self.complete_multipart_upload(
                key, 
                upload_id, 
                sorted(parts.values(), key=lambda p: p.part_number), 
                bucket=bucket, 
                is_v1_signature=is_v1_signature, 
                cancel_token=token, 
                async_=True, 
            )
        except BaseException as e:
            try:
                await self.abort_multipart_upload(
                    key, 
                    upload_id, 
                    bucket=bucket, 
                    is_v1_signature=is_v1_signature, 
                    async_=True, 
                )
            except Exception as exc:
                logger.warning("[\x1b[1;33mSKIP\x1b[0m] abort %r (upload_id=%s): %s", key, upload_id, exc)
            if isinstance(e, Exception) and not isinstance(e, OSSOSError):
                raise from_exception(e) from e
            raise

    ########## 取消 ##########

    def cancel_request(self, key: str, /, reason: None | str = None) -> bool:
        return self.request_manager.cancel_request(key, reason)

    def cancel_all(self, /, reason: None | str = None):
        self.request_manager.cancel_all(reason)
