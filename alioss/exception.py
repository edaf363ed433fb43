#!/usr/bin/env python3
# encoding: utf-8

__all__ = [
    "OSSErrorType", "OSSError", "OSSOSError", 
    "OSSAbortMultipartFailed", "OSSAccessDeniedError", "OSSCompleteMultipartFailed", 
    "OSSFileSystemError", "OSSInitiateMultipartFailed", "OSSInvalidArgumentError", 
    "OSSInvalidResponseError", "OSSNetworkError", "OSSNotFoundError", 
    "OSSRequestCancelledError", "OSSServerError", "OSSSignatureMismatchError", 
    "OSSUnknownError", "OSSUploadPartFailed", "error", "throw", 
    "parse_oss_error_code", "error_type_from_code", "error_type_from_status", 
    "from_exception", 
]

from asyncio import CancelledError
from enum import Enum
from functools import cached_property
from re import compile as re_compile
from typing import Any, Final, Never
from xml.etree.ElementTree import ParseError

from errno2 import errno


CRE_ERROR_CODE_search: Final = re_compile(r"<Code>(.*?)</Code>").search


class OSSErrorType(Enum):
    """错误种类（不是异常类型名），决定了面向用户的提示和能否重试
    """
    abort_multipart_failed = "abortMultipartFailed"
    access_denied = "accessDenied"
    complete_multipart_failed = "completeMultipartFailed"
    file_system = "fileSystem"
    initiate_multipart_failed = "initiateMultipartFailed"
    invalid_argument = "invalidArgument"
    invalid_response = "invalidResponse"
    network = "network"
    not_found = "notFound"
    request_cancelled = "requestCancelled"
    server_error = "serverError"
    signature_mismatch = "signatureMismatch"
    unknown = "unknown"
    upload_part_failed = "uploadPartFailed"

    @property
    def user_friendly_message(self, /) -> str:
        return _USER_FRIENDLY_MESSAGES[self]

    @property
    def retryable(self, /) -> bool:
        """临时性的错误可以重试，客户端或配置问题导致的错误重试也没用
        """
        return self in _RETRYABLE_TYPES


_USER_FRIENDLY_MESSAGES: Final[dict[OSSErrorType, str]] = {
    OSSErrorType.abort_multipart_failed: "取消分片上传失败", 
    OSSErrorType.access_denied: "访问被拒绝，请检查权限设置", 
    OSSErrorType.complete_multipart_failed: "完成分片上传失败", 
    OSSErrorType.file_system: "文件系统错误，请检查文件路径和权限", 
    OSSErrorType.initiate_multipart_failed: "初始化分片上传失败", 
    OSSErrorType.invalid_argument: "请求参数错误，请检查输入", 
    OSSErrorType.invalid_response: "服务器响应无效，请稍后重试", 
    OSSErrorType.network: "网络错误，请检查网络连接", 
    OSSErrorType.not_found: "请求的资源不存在", 
    OSSErrorType.request_cancelled: "请求已取消", 
    OSSErrorType.server_error: "服务器错误，请稍后重试", 
    OSSErrorType.signature_mismatch: "签名验证失败，请检查访问凭证", 
    OSSErrorType.unknown: "未知错误，请查看日志获取详情", 
    OSSErrorType.upload_part_failed: "上传分片失败，请重试", 
}
_RETRYABLE_TYPES: Final = frozenset((
    OSSErrorType.network, 
    OSSErrorType.server_error, 
    OSSErrorType.upload_part_failed, 
    OSSErrorType.complete_multipart_failed, 
    OSSErrorType.initiate_multipart_failed, 
    OSSErrorType.invalid_response, 
))


class OSSError(Exception):
    """本模块的最基础异常类
    """


class OSSOSError(OSSError, OSError):
    """本模块的最基础输入输出异常类

    .. note::
        构造方式和 `OSError` 一致，即 `(errno, message)`，另外可以用关键字参数传入

        - type: 错误种类，若不提供则用类属性 `default_type`
        - response: 出错时的响应（如果有的话）
        - original_error: 被转换的原始异常
        - oss_error_code: 响应体 `<Error><Code>...</Code></Error>` 里的错误码
    """
    default_type: OSSErrorType = OSSErrorType.unknown
    default_errno: int = errno.EIO

    def __init__(
        self, 
        /, 
        *args, 
        type: None | OSSErrorType = None, 
        response: Any = None, 
        original_error: None | BaseException = None, 
        oss_error_code: None | str = None, 
    ):
        super().__init__(*args)
        self.type = type or self.default_type
        self.response = response
        self.original_error = original_error
        self.oss_error_code = oss_error_code

    def __str__(self, /) -> str:
        s = f"OSSException [{self.type.value}]"
        if (status_code := self.status_code) is not None:
            s += f" (Status: {status_code}"
            if self.oss_error_code:
                s += f", Code: {self.oss_error_code}"
            s += ")"
        s += f": {self.message}"
        if (original_error := self.original_error) is not None:
            s += f"\n  Original Error: {type(original_error).__qualname__}"
        return s

    @cached_property
    def message(self, /):
        if args := self.args:
            if len(args) >= 2 and isinstance(args[0], int):
                return args[1]
            return args[0]
        return self.type.user_friendly_message

    @property
    def status_code(self, /) -> None | int:
        return getattr(self.response, "status_code", None)

    @property
    def retryable(self, /) -> bool:
        return self.type.retryable


class OSSAbortMultipartFailed(OSSOSError):
    """取消（中止）分片上传失败
    """
    default_type = OSSErrorType.abort_multipart_failed


class OSSAccessDeniedError(OSSOSError, PermissionError):
    """访问被拒绝
    """
    default_type = OSSErrorType.access_denied
    default_errno = errno.EACCES


class OSSCompleteMultipartFailed(OSSOSError):
    """完成分片上传失败
    """
    default_type = OSSErrorType.complete_multipart_failed


class OSSFileSystemError(OSSOSError):
    """本地文件读取出错
    """
    default_type = OSSErrorType.file_system


class OSSInitiateMultipartFailed(OSSOSError):
    """初始化分片上传失败
    """
    default_type = OSSErrorType.initiate_multipart_failed


class OSSInvalidArgumentError(OSSOSError, ValueError):
    """参数错误，不可重试
    """
    default_type = OSSErrorType.invalid_argument
    default_errno = errno.EINVAL


class OSSInvalidResponseError(OSSOSError):
    """响应数据无法解析，或者缺少必要的字段
    """
    default_type = OSSErrorType.invalid_response
    default_errno = errno.ENODATA


class OSSNetworkError(OSSOSError, ConnectionError):
    """网络错误
    """
    default_type = OSSErrorType.network


class OSSNotFoundError(OSSOSError, FileNotFoundError):
    """资源不存在
    """
    default_type = OSSErrorType.not_found
    default_errno = errno.ENOENT


class OSSRequestCancelledError(OSSOSError):
    """请求被调用方取消
    """
    default_type = OSSErrorType.request_cancelled


class OSSServerError(OSSOSError):
    """服务端 5xx 错误
    """
    default_type = OSSErrorType.server_error


class OSSSignatureMismatchError(OSSOSError, PermissionError):
    """签名不匹配或者 AccessKeyId 无效
    """
    default_type = OSSErrorType.signature_mismatch
    default_errno = errno.EACCES


class OSSUnknownError(OSSOSError):
    """兜底的错误
    """


class OSSUploadPartFailed(OSSOSError):
    """上传分片失败
    """
    default_type = OSSErrorType.upload_part_failed


#: 错误种类到异常类的映射
type2error: Final[dict[OSSErrorType, type[OSSOSError]]] = {
    OSSErrorType.abort_multipart_failed: OSSAbortMultipartFailed, 
    OSSErrorType.access_denied: OSSAccessDeniedError, 
    OSSErrorType.complete_multipart_failed: OSSCompleteMultipartFailed, 
    OSSErrorType.file_system: OSSFileSystemError, 
    OSSErrorType.initiate_multipart_failed: OSSInitiateMultipartFailed, 
    OSSErrorType.invalid_argument: OSSInvalidArgumentError, 
    OSSErrorType.invalid_response: OSSInvalidResponseError, 
    OSSErrorType.network: OSSNetworkError, 
    OSSErrorType.not_found: OSSNotFoundError, 
    OSSErrorType.request_cancelled: OSSRequestCancelledError, 
    OSSErrorType.server_error: OSSServerError, 
    OSSErrorType.signature_mismatch: OSSSignatureMismatchError, 
    OSSErrorType.unknown: OSSUnknownError, 
    OSSErrorType.upload_part_failed: OSSUploadPartFailed, 
}


def error(
    type: OSSErrorType = OSSErrorType.unknown, 
    /, 
    message: str = "", 
    **kwds, 
) -> OSSOSError:
    """构建异常

    :param type: 错误种类，会据此选择异常类，以及 errno
    :param message: 错误信息，为空时使用面向用户的提示
    :param kwds: 其它关键字参数，传给异常类的构造器

    :return: 异常对象
    """
    exctype = type2error[type]
    return exctype(exctype.default_errno, message or type.user_friendly_message, type=type, **kwds)


def throw(
    type: OSSErrorType = OSSErrorType.unknown, 
    /, 
    message: str = "", 
    **kwds, 
) -> Never:
    """抛出异常，参数同 `error`
    """
    raise error(type, message, **kwds)


def parse_oss_error_code(content: bytes | str, /) -> None | str:
    """从 `<Error>` 响应体中提取 `<Code>` 的值
    """
    if isinstance(content, (bytes, bytearray, memoryview)):
        content = str(content, "utf-8", "replace")
    if "<Error>" in content and (match := CRE_ERROR_CODE_search(content)):
        return match[1]
    return None


def error_type_from_code(code: None | str, /) -> None | OSSErrorType:
    match code:
        case "AccessDenied":
            return OSSErrorType.access_denied
        case "NoSuchKey" | "NoSuchBucket" | "NoSuchUpload":
            return OSSErrorType.not_found
        case "InvalidAccessKeyId" | "SignatureDoesNotMatch":
            return OSSErrorType.signature_mismatch
        case "InvalidArgument" | "InvalidPart" | "InvalidPartOrder":
            return OSSErrorType.invalid_argument
        case "RequestTimeout":
            return OSSErrorType.network
        case "InternalError":
            return OSSErrorType.server_error
    return None


def error_type_from_status(
    status_code: None | int, 
    /, 
    default: OSSErrorType = OSSErrorType.network, 
) -> OSSErrorType:
    if status_code == 403:
        return OSSErrorType.access_denied
    elif status_code == 404:
        return OSSErrorType.not_found
    elif status_code is not None and status_code >= 500:
        return OSSErrorType.server_error
    return default


def from_exception(
    exc: BaseException, 
    /, 
    message: str = "", 
    default: OSSErrorType = OSSErrorType.unknown, 
) -> OSSOSError:
    """把任意异常转换为本模块的异常，本模块的异常原样返回

    :param exc: 原始异常
    :param message: 错误信息，为空时使用原始异常的字符串表示
    :param default: 无法推断时所用的错误种类

    :return: 转换后的异常
    """
    if isinstance(exc, OSSOSError):
        return exc
    if isinstance(exc, CancelledError):
        type = OSSErrorType.request_cancelled
    elif isinstance(exc, ParseError):
        type = OSSErrorType.invalid_response
    elif isinstance(exc, (ConnectionError, TimeoutError)):
        type = OSSErrorType.network
    elif isinstance(exc, OSError):
        type = OSSErrorType.file_system
    elif isinstance(exc, ValueError):
        type = OSSErrorType.invalid_argument
    else:
        type = default
    return error(type, message or str(exc) or type.user_friendly_message, original_error=exc)
