#!/usr/bin/env python3
# encoding: utf-8

__all__ = [
    "V4_ALGORITHM", "UNSIGNED_PAYLOAD", "V4_RESERVED_QUERY_KEYS", 
    "V1_RESERVED_QUERY_KEYS", "SUBRESOURCE_KEYS", "SignStrategy", 
    "V1SignStrategy", "V4SignStrategy", "build_query_string", 
    "v1_canonical_headers", "v1_canonical_resource", "v1_signature", 
    "v1_signed_headers", "v1_signed_url", "v4_canonical_uri", 
    "v4_canonical_query", "v4_canonical_headers", "v4_additional_headers", 
    "v4_canonical_request", "v4_string_to_sign", "v4_signing_key", 
    "v4_signature", "v4_signed_headers", "v4_signed_url", 
]
__doc__ = "这个模块提供了阿里云 OSS 的 V1（HMAC-SHA1）和 V4（HMAC-SHA256）签名"

from base64 import b64encode
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from hashlib import sha256
from hmac import digest as hmac_digest
from typing import TYPE_CHECKING, Any, Final
from urllib.parse import parse_qsl, quote, unquote, urlsplit

from .exception import throw, OSSErrorType
from .util import gmt_date, v4_date, v4_timestamp

if TYPE_CHECKING:
    from .config import OSSConfig


OSS_HEADER_PREFIX: Final = "x-oss-"
V4_ALGORITHM: Final = "OSS4-HMAC-SHA256"
UNSIGNED_PAYLOAD: Final = "UNSIGNED-PAYLOAD"
V4_DEFAULT_SIGN_HEADERS: Final = frozenset(("x-oss-date", "x-oss-content-sha256", "content-type"))
#: V4 签名链接中保留的查询参数，自定义参数不得与之同名
V4_RESERVED_QUERY_KEYS: Final = frozenset((
    "x-oss-credential", "x-oss-date", "x-oss-expires", "x-oss-signature-version", 
    "x-oss-additional-headers", "x-oss-security-token", "x-oss-signature", 
))
#: V1 签名链接中保留的查询参数，自定义参数不得与之同名
V1_RESERVED_QUERY_KEYS: Final = frozenset(("ossaccesskeyid", "expires", "signature", "security-token"))
#: 需要参与 V1 签名链接计算的子资源
SUBRESOURCE_KEYS: Final = frozenset((
    "accessPoint", "accessPointPolicy", "acl", "append", "asyncFetch", "bucketArchiveDirectRead", 
    "bucketInfo", "callback", "callback-var", "cname", "comp", "continuation-token", "cors", 
    "delete", "encryption", "endTime", "group", "httpsConfig", "inventory", "inventoryId", 
    "lifecycle", "link", "live", "location", "logging", "metaQuery", "objectInfo", "objectMeta", 
    "partNumber", "policy", "position", "publicAccessBlock", "qos", "qosInfo", "qosRequester", 
    "redundancyTransition", "referer", "regionList", "replication", "replicationLocation", 
    "replicationProgress", "requestPayment", "requesterQosInfo", "resourceGroup", "resourcePool", 
    "resourcePoolBuckets", "resourcePoolInfo", "response-cache-control", "response-content-disposition", 
    "response-content-encoding", "response-content-language", "response-content-type", "response-expires", 
    "restore", "security-token", "sequential", "startTime", "stat", "status", "style", "styleName", 
    "symlink", "tagging", "transferAcceleration", "uploadId", "uploads", "versionId", "versioning", 
    "versions", "vod", "website", "worm", "wormExtend", "wormId", "x-oss-ac-forward-allow", 
    "x-oss-ac-source-ip", "x-oss-ac-subnet-mask", "x-oss-ac-vpc-id", "x-oss-access-point-name", 
    "x-oss-async-process", "x-oss-process", "x-oss-redundancy-transition-taskid", "x-oss-request-payer", 
    "x-oss-target-redundancy-type", "x-oss-traffic-limit", "x-oss-write-get-object-response", 
))


def _quote(s: Any, /, safe: str = "-_.~") -> str:
    return quote(str(s), safe=safe)


def _to_base64(b: bytes, /) -> str:
    return str(b64encode(b), "ascii")


def _items(m: None | Mapping[str, Any] | Iterable[tuple[str, Any]], /) -> Iterable[tuple[str, Any]]:
    if not m:
        return ()
    if isinstance(m, Mapping):
        return m.items()
    return m


def build_query_string(
    params: None | Mapping[str, Any] | Iterable[tuple[str, Any]], 
    /, 
) -> str:
    """构建查询字符串，保持参数顺序，空字符串的值只保留键名（例如 `?uploads`）
    """
    return "&".join(
        _quote(k) if v == "" else f"{_quote(k)}={_quote(v)}"
        for k, v in _items(params)
        if v is not None
    )


def _host(bucket: str, endpoint: str, cname: bool = False, /) -> str:
    return endpoint if cname else f"{bucket}.{endpoint}"


def _object_url(host: str, key: str, query: str = "", /) -> str:
    url = f"https://{host}/{_quote(key.lstrip('/'), safe='-_.~/')}"
    if query:
        url += "?" + query
    return url


########## V1 (HMAC-SHA1) ##########

def v1_canonical_headers(headers: Mapping[str, Any], /) -> str:
    """把 `x-oss-` 开头的请求头，名字转小写、值去掉首尾空白、按名字排序，拼成 `name:value` 行
    """
    return "\n".join(sorted(
        f"{k.lower()}:{str(v or '').strip()}"
        for k, v in headers.items()
        if k.lower().startswith(OSS_HEADER_PREFIX)
    ))


def v1_canonical_resource(url: str, bucket: str, /, cname: bool = False) -> str:
    """规范资源：`/{bucket}{path}[?{query}]` 整体 URL 解码

    .. note::
        如果路径已经以 `/{bucket}/` 开头，则不再重复添加；使用自定义域名时，不包含存储空间名
    """
    urlp = urlsplit(url)
    path = urlp.path or "/"
    if cname or path.startswith(f"/{bucket}/"):
        resource = path
    else:
        resource = f"/{bucket}{path}"
    if urlp.query:
        resource += "?" + urlp.query
    return unquote(resource)


def v1_signature(
    access_key_secret: str, 
    method: str, 
    url: str, 
    bucket: str, 
    headers: Mapping[str, Any], 
    /, 
    content_md5: str = "", 
    content_type: str = "", 
    date: str = "", 
    cname: bool = False, 
) -> str:
    """计算 V1 签名，即 base64(HMAC-SHA1(secret, string_to_sign))
    """
    string_to_sign = "\n".join((
        method.upper(), 
        content_md5, 
        content_type, 
        date, 
        v1_canonical_headers(headers), 
        v1_canonical_resource(url, bucket, cname=cname), 
    ))
    return _to_base64(hmac_digest(
        bytes(access_key_secret, "utf-8"), 
        bytes(string_to_sign, "utf-8"), 
        "sha1", 
    ))


def v1_signed_headers(
    access_key_id: str, 
    access_key_secret: str, 
    method: str, 
    url: str, 
    bucket: str, 
    /, 
    headers: None | Mapping[str, Any] = None, 
    content_type: None | str = None, 
    content_length: None | int = None, 
    security_token: None | str = None, 
    dt: None | datetime = None, 
    cname: bool = False, 
) -> dict[str, Any]:
    """计算然后返回带认证信息的请求头（V1）

    :param access_key_id: AccessKeyId
    :param access_key_secret: AccessKeySecret
    :param method: HTTP 请求方法
    :param url: HTTP 请求链接
    :param bucket: 存储空间名
    :param headers: 默认的请求头
    :param content_type: 内容类型
    :param content_length: 内容长度
    :param security_token: STS 安全令牌，会作为 `x-oss-security-token` 请求头参与签名
    :param dt: 签名时间，默认为当前时间
    :param cname: 是否使用自定义域名（规范资源不包含存储空间名）

    :return: 带认证信息的请求头
    """
    oss_headers: dict[str, Any] = {}
    other_headers: dict[str, Any] = {}
    for k, v in _items(headers):
        if k.lower().startswith(OSS_HEADER_PREFIX):
            oss_headers[k.lower()] = v
        else:
            other_headers[k] = v
    if security_token:
        oss_headers["x-oss-security-token"] = security_token
    date = gmt_date(dt)
    content_md5 = ""
    for k, v in other_headers.items():
        if k.lower() == "content-md5":
            content_md5 = v
    signature = v1_signature(
        access_key_secret, 
        method, 
        url, 
        bucket, 
        oss_headers, 
        content_md5=content_md5, 
        content_type=content_type or "", 
        date=date, 
        cname=cname, 
    )
    result: dict[str, Any] = dict(oss_headers)
    if content_type is not None:
        result["content-type"] = content_type
    if content_length is not None:
        result["content-length"] = content_length
    result["date"] = date
    result["authorization"] = f"OSS {access_key_id}:{signature}"
    for k, v in other_headers.items():
        result[k.lower()] = v
    # NOTE: 上面的其它请求头可能覆盖了 date，以签名用的为准
    result["date"] = date
    return result


def v1_signed_url(
    access_key_id: str, 
    access_key_secret: str, 
    endpoint: str, 
    method: str, 
    bucket: str, 
    key: str, 
    /, 
    expires: int = 3600, 
    headers: None | Mapping[str, Any] = None, 
    params: None | Mapping[str, Any] = None, 
    content_md5: str = "", 
    content_type: str = "", 
    security_token: None | str = None, 
    dt: None | datetime = None, 
    cname: bool = False, 
) -> str:
    """生成 V1 签名链接

    .. note::
        待签名字符串为 `METHOD\\nContentMD5\\nContentType\\nExpires\\n{resource}`，
        其中 `resource` 为 `/{bucket}/{key}`（自定义域名时为 `/{key}`），附带参与签名的子资源

    :param access_key_id: AccessKeyId
    :param access_key_secret: AccessKeySecret
    :param endpoint: 访问域名（或自定义域名）
    :param method: HTTP 请求方法
    :param bucket: 存储空间名
    :param key: 对象名
    :param expires: 有效期（秒）
    :param headers: `x-oss-` 开头的请求头会作为查询参数附带
    :param params: 自定义查询参数，不能与 `OSSAccessKeyId`、`Expires`、`Signature`、`security-token` 同名
    :param content_md5: 内容的 MD5
    :param content_type: 内容类型
    :param security_token: STS 安全令牌
    :param dt: 签名时间，默认为当前时间
    :param cname: 是否使用自定义域名

    :return: 签名链接
    """
    if not key:
        throw(OSSErrorType.invalid_argument, "key 不能为空")
    if not method:
        throw(OSSErrorType.invalid_argument, "method 不能为空")
    if expires < 1:
        throw(OSSErrorType.invalid_argument, "expires 必须大于 0")
    query: dict[str, str] = {}
    for k, v in _items(params):
        if k.lower() in V1_RESERVED_QUERY_KEYS:
            throw(OSSErrorType.invalid_argument, f"自定义查询参数 {k!r} 与 OSS 保留参数冲突，请使用其他参数名")
        if v is not None:
            query[k] = str(v)
    for k, v in _items(headers):
        if k.lower().startswith(OSS_HEADER_PREFIX) and v is not None:
            query[k.lower()] = str(v)
    if dt is None:
        dt = datetime.now(timezone.utc)
    elif dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    expires_at = str(int(dt.timestamp()) + expires)
    key = key.lstrip("/")
    resource = f"/{key}" if cname else f"/{bucket}/{key}"
    subresources = sorted((k, v) for k, v in query.items() if k in SUBRESOURCE_KEYS)
    if security_token:
        subresources = sorted((*subresources, ("security-token", security_token)))
    if subresources:
        resource += "?" + "&".join(f"{k}={v}" if v else k for k, v in subresources)
    string_to_sign = "\n".join((method.upper(), content_md5, content_type, expires_at, resource))
    signature = _to_base64(hmac_digest(
        bytes(access_key_secret, "utf-8"), 
        bytes(string_to_sign, "utf-8"), 
        "sha1", 
    ))
    query_string = build_query_string({
        **query, 
        "OSSAccessKeyId": access_key_id, 
        "Expires": expires_at, 
        "Signature": signature, 
        "security-token": security_token or None, 
    })
    return _object_url(_host(bucket, endpoint, cname), key, query_string)


########## V4 (HMAC-SHA256) ##########

def v4_canonical_uri(bucket: str, key: str, /, cname: bool = False) -> str:
    """规范 URI：`/{bucket}/{key}`（自定义域名的签名链接为 `/{key}`），对象名编码但保留 `/`
    """
    if not bucket:
        throw(OSSErrorType.invalid_argument, "bucket 不能为空")
    path = "/" if cname else f"/{bucket}/"
    if key:
        path += _quote(key, safe="-_.~/")
    while "//" in path:
        path = path.replace("//", "/")
    return path


def v4_canonical_query(
    params: str | Mapping[str, Any] | Iterable[tuple[str, Any]], 
    /, 
) -> str:
    """规范查询字符串：先按键再按值排序，键和值都编码，值为空时只保留键名
    """
    if isinstance(params, str):
        pairs = parse_qsl(params, keep_blank_values=True)
    else:
        pairs = [(k, "" if v is None else str(v)) for k, v in _items(params)]
    return "&".join(
        f"{_quote(k)}={_quote(v)}" if v else _quote(k)
        for k, v in sorted(pairs)
    )


def v4_canonical_headers(
    headers: Mapping[str, Any], 
    /, 
    additional_headers: Iterable[str] = (), 
) -> str:
    """规范请求头：默认签名头和额外签名头中，实际存在的那些，渲染为 `name:value\\n`

    .. note::
        末尾总是有一个换行符
    """
    sign_headers = V4_DEFAULT_SIGN_HEADERS.union(h.lower() for h in additional_headers)
    lines = sorted(
        f"{k}:{v}"
        for k, v in ((k.lower(), str("" if v is None else v).strip()) for k, v in headers.items())
        if k in sign_headers
    )
    return "\n".join(lines) + "\n"


def v4_additional_headers(additional_headers: Iterable[str], /) -> str:
    """额外签名头：去掉默认签名头（`x-oss-` 开头、`content-type`、`content-md5`）后排序，用 `;` 连接
    """
    return ";".join(sorted({
        h for h in map(str.lower, additional_headers)
        if not (h.startswith(OSS_HEADER_PREFIX) or h in ("content-type", "content-md5"))
    }))


def v4_canonical_request(
    method: str, 
    canonical_uri: str, 
    canonical_query: str, 
    canonical_headers: str, 
    additional_headers: str, 
    /, 
    hashed_payload: str = UNSIGNED_PAYLOAD, 
) -> str:
    return "\n".join((
        method.upper(), 
        canonical_uri, 
        canonical_query, 
        canonical_headers, 
        additional_headers, 
        hashed_payload, 
    ))


def v4_string_to_sign(timestamp: str, scope: str, canonical_request: str, /) -> str:
    return "\n".join((
        V4_ALGORITHM, 
        timestamp, 
        scope, 
        sha256(bytes(canonical_request, "utf-8")).hexdigest(), 
    ))


def v4_signing_key(access_key_secret: str, date: str, region: str, /) -> bytes:
    """派生签名密钥：4 次嵌套的 HMAC-SHA256
    """
    key = hmac_digest(bytes("aliyun_v4" + access_key_secret, "utf-8"), bytes(date, "utf-8"), "sha256")
    for msg in (region, "oss", "aliyun_v4_request"):
        key = hmac_digest(key, bytes(msg, "utf-8"), "sha256")
    return key


def v4_signature(
    access_key_secret: str, 
    date: str, 
    region: str, 
    string_to_sign: str, 
    /, 
) -> str:
    return hmac_digest(
        v4_signing_key(access_key_secret, date, region), 
        bytes(string_to_sign, "utf-8"), 
        "sha256", 
    ).hex()


def v4_signed_headers(
    access_key_id: str, 
    access_key_secret: str, 
    region: str, 
    method: str, 
    url: str, 
    bucket: str, 
    key: str, 
    /, 
    headers: None | Mapping[str, Any] = None, 
    additional_headers: Iterable[str] = (), 
    security_token: None | str = None, 
    dt: None | datetime = None, 
) -> dict[str, Any]:
    """计算然后返回带认证信息的请求头（V4）

    :param access_key_id: AccessKeyId
    :param access_key_secret: AccessKeySecret
    :param region: 区域
    :param method: HTTP 请求方法
    :param url: HTTP 请求链接（只用到其中的查询参数）
    :param bucket: 存储空间名
    :param key: 对象名
    :param headers: 默认的请求头
    :param additional_headers: 额外参与签名的请求头名
    :param security_token: STS 安全令牌
    :param dt: 签名时间，默认为当前时间

    :return: 带认证信息的请求头
    """
    result = {k.lower(): v for k, v in _items(headers)}
    timestamp = v4_timestamp(dt)
    date = v4_date(dt)
    result["x-oss-content-sha256"] = UNSIGNED_PAYLOAD
    result["x-oss-date"] = timestamp
    result["date"] = gmt_date(dt)
    if security_token:
        result["x-oss-security-token"] = security_token
    headers_to_sign = dict(result)
    for name in V4_DEFAULT_SIGN_HEADERS:
        headers_to_sign.setdefault(name, "")
    additional = v4_additional_headers(additional_headers)
    canonical_request = v4_canonical_request(
        method, 
        v4_canonical_uri(bucket, key), 
        v4_canonical_query(urlsplit(url).query), 
        v4_canonical_headers(headers_to_sign, additional_headers), 
        additional, 
    )
    scope = f"{date}/{region}/oss/aliyun_v4_request"
    signature = v4_signature(
        access_key_secret, 
        date, 
        region, 
        v4_string_to_sign(timestamp, scope, canonical_request), 
    )
    components = [f"{V4_ALGORITHM} Credential={access_key_id}/{scope}"]
    if additional:
        components.append(f"AdditionalHeaders={additional}")
    components.append(f"Signature={signature}")
    result["authorization"] = ",".join(components)
    return result


def v4_signed_url(
    access_key_id: str, 
    access_key_secret: str, 
    endpoint: str, 
    region: str, 
    method: str, 
    bucket: str, 
    key: str, 
    /, 
    expires: int = 3600, 
    headers: None | Mapping[str, Any] = None, 
    additional_headers: None | Iterable[str] = None, 
    params: None | Mapping[str, Any] = None, 
    security_token: None | str = None, 
    dt: None | datetime = None, 
    cname: bool = False, 
) -> str:
    """生成 V4 签名链接

    .. note::
        先合并自定义查询参数（不能与保留参数同名），再依次添加 `x-oss-credential`、`x-oss-date`、
        `x-oss-expires`、`x-oss-signature-version`、`x-oss-additional-headers`（可选）、
        `x-oss-security-token`（可选），最后是 `x-oss-signature`

    :param access_key_id: AccessKeyId
    :param access_key_secret: AccessKeySecret
    :param endpoint: 访问域名（或自定义域名）
    :param region: 区域
    :param method: HTTP 请求方法
    :param bucket: 存储空间名
    :param key: 对象名
    :param expires: 有效期（秒）
    :param headers: 参与签名的请求头
    :param additional_headers: 额外参与签名的请求头名，默认为 `{"host"}`
    :param params: 自定义查询参数
    :param security_token: STS 安全令牌
    :param dt: 签名时间，默认为当前时间
    :param cname: 是否使用自定义域名

    :return: 签名链接
    """
    if not bucket:
        throw(OSSErrorType.invalid_argument, "bucket 不能为空")
    if not key:
        throw(OSSErrorType.invalid_argument, "key 不能为空")
    if not method:
        throw(OSSErrorType.invalid_argument, "method 不能为空")
    if not region:
        throw(OSSErrorType.invalid_argument, "region 不能为空，V4 签名必须指定区域")
    if expires < 1:
        throw(OSSErrorType.invalid_argument, "expires 必须大于 0")
    query: dict[str, str] = {}
    for k, v in _items(params):
        if k.lower() in V4_RESERVED_QUERY_KEYS:
            throw(OSSErrorType.invalid_argument, f"自定义查询参数 {k!r} 与 OSS 保留参数冲突，请使用其他参数名")
        if v is not None:
            query[k] = str(v)
    timestamp = v4_timestamp(dt)
    date = v4_date(dt)
    scope = f"{date}/{region}/oss/aliyun_v4_request"
    host = _host(bucket, endpoint, cname)
    sign_headers = {k.lower(): v for k, v in _items(headers)}
    sign_headers["host"] = host
    if additional_headers is None:
        additional_headers = ("host",)
    else:
        additional_headers = tuple(additional_headers)
    query.update({
        "x-oss-credential": f"{access_key_id}/{scope}", 
        "x-oss-date": timestamp, 
        "x-oss-expires": str(expires), 
        "x-oss-signature-version": V4_ALGORITHM, 
    })
    if additional_headers:
        query["x-oss-additional-headers"] = ";".join(sorted({h.lower() for h in additional_headers}))
    if security_token:
        query["x-oss-security-token"] = security_token
    canonical_request = v4_canonical_request(
        method, 
        v4_canonical_uri(bucket, key, cname=cname), 
        v4_canonical_query(query), 
        v4_canonical_headers(sign_headers, additional_headers), 
        v4_additional_headers(additional_headers), 
        sign_headers.get("x-oss-content-sha256") or UNSIGNED_PAYLOAD, 
    )
    query["x-oss-signature"] = v4_signature(
        access_key_secret, 
        date, 
        region, 
        v4_string_to_sign(timestamp, scope, canonical_request), 
    )
    return _object_url(host, key, build_query_string(query))


########## 签名策略 ##########

class SignStrategy:
    """签名策略的公共接口，访问凭证在每次签名时都从配置中重新获取
    """
    def __init__(self, /, config: "OSSConfig"):
        self.config = config

    def sign_headers(
        self, 
        /, 
        method: str, 
        url: str, 
        bucket: str, 
        key: str, 
        headers: Mapping[str, Any], 
        content_type: None | str = None, 
        content_length: None | int = None, 
        dt: None | datetime = None, 
    ) -> dict[str, Any]:
        raise NotImplementedError

    def sign_url(
        self, 
        /, 
        method: str, 
        bucket: str, 
        key: str, 
        expires: int = 3600, 
        headers: None | Mapping[str, Any] = None, 
        additional_headers: None | Iterable[str] = None, 
        params: None | Mapping[str, Any] = None, 
        dt: None | datetime = None, 
    ) -> str:
        raise NotImplementedError


class V1SignStrategy(SignStrategy):

    def sign_headers(
        self, 
        /, 
        method: str, 
        url: str, 
        bucket: str, 
        key: str, 
        headers: Mapping[str, Any], 
        content_type: None | str = None, 
        content_length: None | int = None, 
        dt: None | datetime = None, 
    ) -> dict[str, Any]:
        config = self.config
        return v1_signed_headers(
            config.access_key_id, 
            config.access_key_secret, 
            method, 
            url, 
            bucket, 
            headers=headers, 
            content_type=content_type, 
            content_length=content_length, 
            security_token=config.security_token, 
            dt=dt, 
            cname=config.cname, 
        )

    def sign_url(
        self, 
        /, 
        method: str, 
        bucket: str, 
        key: str, 
        expires: int = 3600, 
        headers: None | Mapping[str, Any] = None, 
        additional_headers: None | Iterable[str] = None, 
        params: None | Mapping[str, Any] = None, 
        dt: None | datetime = None, 
    ) -> str:
        config = self.config
        return v1_signed_url(
            config.access_key_id, 
            config.access_key_secret, 
            config.endpoint, 
            method, 
            bucket, 
            key, 
            expires=expires, 
            headers=headers, 
            params=params, 
            security_token=config.security_token, 
            dt=dt, 
            cname=config.cname, 
        )


class V4SignStrategy(SignStrategy):

    def sign_headers(
        self, 
        /, 
        method: str, 
        url: str, 
        bucket: str, 
        key: str, 
        headers: Mapping[str, Any], 
        content_type: None | str = None, 
        content_length: None | int = None, 
        dt: None | datetime = None, 
    ) -> dict[str, Any]:
        config = self.config
        headers = dict(headers)
        if content_type is not None:
            headers["content-type"] = content_type
        if content_length is not None:
            headers["content-length"] = content_length
        return v4_signed_headers(
            config.access_key_id, 
            config.access_key_secret, 
            config.region, 
            method, 
            url, 
            bucket, 
            key, 
            headers=headers, 
            security_token=config.security_token, 
            dt=dt, 
        )

    def sign_url(
        self, 
        /, 
        method: str, 
        bucket: str, 
        key: str, 
        expires: int = 3600, 
        headers: None | Mapping[str, Any] = None, 
        additional_headers: None | Iterable[str] = None, 
        params: None | Mapping[str, Any] = None, 
        dt: None | datetime = None, 
    ) -> str:
        config = self.config
        if not config.region:
            throw(OSSErrorType.invalid_argument, "使用 V4 签名时，config.region 不能为空")
        return v4_signed_url(
            config.access_key_id, 
            config.access_key_secret, 
            config.endpoint, 
            config.region, 
            method, 
            bucket, 
            key, 
            expires=expires, 
            headers=headers, 
            additional_headers=additional_headers, 
            params=params, 
            security_token=config.security_token, 
            dt=dt, 
            cname=config.cname, 
        )
