#!/usr/bin/env python3
# encoding: utf-8

__all__ = ["OSSConfig"]

from collections.abc import Callable, Mapping
from typing import Any, Self

from orjson import loads

from .exception import throw, OSSErrorType


class OSSConfig:
    """客户端配置

    .. note::
        访问凭证通过无参函数获取，每次签名时都会重新调用，以便外部刷新 STS 临时凭证

    :param access_key_id_provider: 返回 AccessKeyId 的函数
    :param access_key_secret_provider: 返回 AccessKeySecret 的函数
    :param security_token_provider: 返回 STS 安全令牌的函数，可以为 None
    :param bucket_name: 默认的存储空间名
    :param endpoint: 访问域名，例如 `oss-cn-hangzhou.aliyuncs.com`，如果 `cname` 为 True，则是自定义域名
    :param region: 区域，例如 `cn-hangzhou`，V4 签名必需
    :param cname: 是否使用自定义域名
    :param enable_log_interceptor: 是否记录请求和响应的日志
    :param max_concurrency: 分片上传时默认的最大并发数
    :param request: 执行 HTTP 请求的函数，为 None 时用 `httpcore_request.request`
    :param request_kwargs: 每次请求时都会传给 `request` 的其它关键字参数
    """
    def __init__(
        self, 
        /, 
        access_key_id_provider: Callable[[], str], 
        access_key_secret_provider: Callable[[], str], 
        security_token_provider: None | Callable[[], None | str] = None, 
        *, 
        bucket_name: str, 
        endpoint: str, 
        region: str, 
        cname: bool = False, 
        enable_log_interceptor: bool = True, 
        max_concurrency: int = 5, 
        request: None | Callable = None, 
        request_kwargs: None | Mapping[str, Any] = None, 
    ):
        self.access_key_id_provider = access_key_id_provider
        self.access_key_secret_provider = access_key_secret_provider
        self.security_token_provider = security_token_provider
        self.bucket_name = bucket_name
        self.endpoint = endpoint
        self.region = region
        self.cname = cname
        self.enable_log_interceptor = enable_log_interceptor
        self.max_concurrency = max_concurrency
        self.request = request
        self.request_kwargs = dict(request_kwargs or ())

    def __eq__(self, other, /) -> bool:
        if self is other:
            return True
        if not isinstance(other, OSSConfig):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self, /) -> int:
        return hash(self._key())

    def __repr__(self, /) -> str:
        def mask(s: str, /) -> str:
            return s[:3] + "***"
        cls = type(self)
        parts = [
            f"access_key_id={mask(self.access_key_id)!r}", 
            f"access_key_secret={mask(self.access_key_secret)!r}", 
            f"bucket_name={self.bucket_name!r}", 
            f"endpoint={self.endpoint!r}", 
            f"region={self.region!r}", 
            f"cname={self.cname!r}", 
        ]
        if (security_token := self.security_token) is not None:
            parts.append(f"security_token={mask(security_token)!r}")
        parts.append(f"enable_log_interceptor={self.enable_log_interceptor!r}")
        parts.append(f"max_concurrency={self.max_concurrency!r}")
        return f"{cls.__module__}.{cls.__qualname__}({', '.join(parts)})"

    def _key(self, /) -> tuple:
        return (
            self.access_key_id, 
            self.access_key_secret, 
            self.bucket_name, 
            self.endpoint, 
            self.region, 
            self.cname, 
            self.security_token, 
            self.enable_log_interceptor, 
            self.max_concurrency, 
        )

    @property
    def access_key_id(self, /) -> str:
        return self.access_key_id_provider()

    @property
    def access_key_secret(self, /) -> str:
        return self.access_key_secret_provider()

    @property
    def security_token(self, /) -> None | str:
        if (provider := self.security_token_provider) is None:
            return None
        return provider()

    @classmethod
    def static(
        cls, 
        /, 
        access_key_id: str, 
        access_key_secret: str, 
        security_token: None | str = None, 
        **kwargs, 
    ) -> Self:
        """用固定的访问凭证构建配置
        """
        return cls(
            lambda: access_key_id, 
            lambda: access_key_secret, 
            None if security_token is None else (lambda: security_token), 
            **kwargs, 
        )

    @classmethod
    def from_json(cls, data: Mapping[str, Any] | bytes | str, /) -> Self:
        """从 JSON（或者已经解析的字典）构建配置，键名采用驼峰式
        """
        if isinstance(data, (bytes, bytearray, memoryview, str)):
            data = loads(data)
        data = dict(data)
        return cls.static(
            data["accessKeyId"], 
            data["accessKeySecret"], 
            data.get("securityToken"), 
            bucket_name=data["bucketName"], 
            endpoint=data["endpoint"], 
            region=data["region"], 
            cname=data.get("cname", False), 
            enable_log_interceptor=data.get("enableLogInterceptor", True), 
            max_concurrency=data.get("maxConcurrency", 5), 
        )

    @classmethod
    def for_test(
        cls, 
        /, 
        access_key_id: str = "test_key_id", 
        access_key_secret: str = "test_key_secret", 
        bucket_name: str = "test-bucket", 
        endpoint: str = "oss-cn-hangzhou.aliyuncs.com", 
        region: str = "cn-hangzhou", 
        security_token: None | str = None, 
        cname: bool = False, 
        **kwargs, 
    ) -> Self:
        kwargs.setdefault("max_concurrency", 3)
        return cls.static(
            access_key_id, 
            access_key_secret, 
            security_token, 
            bucket_name=bucket_name, 
            endpoint=endpoint, 
            region=region, 
            cname=cname, 
            **kwargs, 
        )

    def to_json(self, /) -> dict[str, Any]:
        data: dict[str, Any] = {
            "accessKeyId": self.access_key_id, 
            "accessKeySecret": self.access_key_secret, 
            "bucketName": self.bucket_name, 
            "endpoint": self.endpoint, 
            "region": self.region, 
            "cname": self.cname, 
            "enableLogInterceptor": self.enable_log_interceptor, 
            "maxConcurrency": self.max_concurrency, 
        }
        if (security_token := self.security_token) is not None:
            data["securityToken"] = security_token
        return data

    def replace(self, /, **changes) -> Self:
        """返回一个新配置，未指定的字段沿用当前值（凭证函数也原样沿用）
        """
        kwargs: dict[str, Any] = {
            "access_key_id_provider": self.access_key_id_provider, 
            "access_key_secret_provider": self.access_key_secret_provider, 
            "security_token_provider": self.security_token_provider, 
            "bucket_name": self.bucket_name, 
            "endpoint": self.endpoint, 
            "region": self.region, 
            "cname": self.cname, 
            "enable_log_interceptor": self.enable_log_interceptor, 
            "max_concurrency": self.max_concurrency, 
            "request": self.request, 
            "request_kwargs": self.request_kwargs, 
        }
        for key in ("access_key_id", "access_key_secret", "security_token"):
            if key in changes:
                value = changes.pop(key)
                kwargs[key + "_provider"] = None if value is None else (lambda value=value: value)
        kwargs.update(changes)
        return type(self)(**kwargs)

    def validate(self, /) -> Self:
        """检查必要的配置项，不满足时抛出参数错误
        """
        if not self.access_key_id:
            throw(OSSErrorType.invalid_argument, "accessKeyId 不能为空")
        if not self.access_key_secret:
            throw(OSSErrorType.invalid_argument, "accessKeySecret 不能为空")
        if not self.endpoint:
            throw(OSSErrorType.invalid_argument, "endpoint 不能为空")
        if not self.bucket_name:
            throw(OSSErrorType.invalid_argument, "bucketName 不能为空")
        if self.max_concurrency < 1:
            throw(OSSErrorType.invalid_argument, "maxConcurrency 必须大于 0")
        return self
