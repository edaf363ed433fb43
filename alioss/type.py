#!/usr/bin/env python3
# encoding: utf-8

__all__ = [
    "PartInfo", "InitiateMultipartUploadResult", "CompleteMultipartUploadResult", 
    "ListPartsResult", "UploadInfo", "ListMultipartUploadsResult", "Owner", 
    "ObjectSummary", "ListBucketResultV2", "ObjectMeta", "quote_etag", "unquote_etag", 
]
__doc__ = "这个模块定义了 OSS 的 XML 响应所对应的数据类型"

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Self
from xml.etree.ElementTree import fromstring, Element, ParseError

from integer_tool import try_parse_int

from .exception import throw, OSSErrorType, OSSOSError
from .log import logger


def unquote_etag(etag: str, /) -> str:
    """去掉 ETag 两边的双引号
    """
    etag = etag.strip()
    if len(etag) >= 2 and etag[0] == etag[-1] == '"':
        return etag[1:-1]
    return etag


def quote_etag(etag: str, /) -> str:
    return '"%s"' % unquote_etag(etag)


def _xml_escape(s: str, /) -> str:
    return s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _parse_xml(content: bytes | str, root_tag: str, /) -> Element:
    try:
        root = fromstring(content)
    except ParseError as e:
        throw(OSSErrorType.invalid_response, f"无法解析 XML 响应：{e}", original_error=e)
    if root.tag != root_tag:
        throw(OSSErrorType.invalid_response, f"XML 根元素应该是 <{root_tag}>，实际是 <{root.tag}>")
    return root


def _text(el: Element, tag: str, /) -> None | str:
    sub = el.find(tag)
    if sub is None:
        return None
    return sub.text or ""


def _required(el: Element, tag: str, /) -> str:
    text = _text(el, tag)
    if text is None:
        throw(OSSErrorType.invalid_response, f"<{el.tag}> 中缺少必需的元素 <{tag}>")
    return text


def _required_int(el: Element, tag: str, /) -> int:
    text = _required(el, tag)
    try:
        return int(text)
    except ValueError as e:
        throw(OSSErrorType.invalid_response, f"<{tag}> 的值不是整数：{text!r}", original_error=e)


def _optional_int(el: Element, tag: str, /) -> None | int:
    text = _text(el, tag)
    if not text:
        return None
    try:
        return int(text)
    except ValueError as e:
        throw(OSSErrorType.invalid_response, f"<{tag}> 的值不是整数：{text!r}", original_error=e)


def _required_bool(el: Element, tag: str, /) -> bool:
    return _required(el, tag).strip().lower() == "true"


def _optional_bool(el: Element, tag: str, /) -> None | bool:
    text = _text(el, tag)
    if text is None:
        return None
    return text.strip().lower() == "true"


def _permissive[T](el: Element, tag: str, parse: Callable[[Element], T], /) -> list[T]:
    """解析重复的元素，单个元素出错时跳过并记录警告
    """
    items: list[T] = []
    for i, sub in enumerate(el.iterfind(tag)):
        try:
            items.append(parse(sub))
        except (OSSOSError, ValueError) as e:
            logger.warning("[\x1b[1;33mSKIP\x1b[0m] malformed <%s> #%d in <%s>: %s", tag, i, el.tag, e)
    return items


def _common_prefixes(el: Element, /) -> list[str]:
    return [
        text for sel in el.iterfind("CommonPrefixes")
        if (text := _text(sel, "Prefix")) is not None
    ]


@dataclass(frozen=True)
class PartInfo:
    """已上传的分片

    .. note::
        `etag` 保存的是去掉双引号后的值，只在生成 XML 时重新加上
    """
    part_number: int
    etag: str
    size: int = 0
    last_modified: str = ""

    def to_xml(self, /) -> str:
        return (
            f"<Part><PartNumber>{self.part_number}</PartNumber>"
            f"<ETag>{_xml_escape(quote_etag(self.etag))}</ETag></Part>"
        )

    @classmethod
    def from_element(cls, el: Element, /) -> Self:
        part_number = _required_int(el, "PartNumber")
        if not 1 <= part_number <= 10_000:
            throw(OSSErrorType.invalid_response, f"分片编号超出范围：{part_number}")
        return cls(
            part_number=part_number, 
            etag=unquote_etag(_required(el, "ETag")), 
            size=_optional_int(el, "Size") or 0, 
            last_modified=_text(el, "LastModified") or "", 
        )


@dataclass(frozen=True)
class InitiateMultipartUploadResult:
    bucket: str
    key: str
    upload_id: str

    @classmethod
    def parse(cls, content: bytes | str, /) -> Self:
        root = _parse_xml(content, "InitiateMultipartUploadResult")
        return cls(
            bucket=_required(root, "Bucket"), 
            key=_required(root, "Key"), 
            upload_id=_required(root, "UploadId"), 
        )


@dataclass(frozen=True)
class CompleteMultipartUploadResult:
    location: str
    bucket: str
    key: str
    etag: str
    encoding_type: None | str = None

    @classmethod
    def parse(cls, content: bytes | str, /) -> Self:
        root = _parse_xml(content, "CompleteMultipartUploadResult")
        return cls(
            location=_required(root, "Location"), 
            bucket=_required(root, "Bucket"), 
            key=_required(root, "Key"), 
            etag=unquote_etag(_required(root, "ETag")), 
            encoding_type=_text(root, "EncodingType"), 
        )


@dataclass(frozen=True)
class ListPartsResult:
    """罗列分片的结果，其中 `parts` 的解析是宽松的：单个分片格式有误只会被跳过
    """
    bucket: str
    key: str
    upload_id: str
    max_parts: int
    is_truncated: bool
    part_number_marker: None | int = None
    next_part_number_marker: None | int = None
    encoding_type: None | str = None
    parts: list[PartInfo] = field(default_factory=list)

    @classmethod
    def parse(cls, content: bytes | str, /) -> Self:
        root = _parse_xml(content, "ListPartsResult")
        return cls(
            bucket=_required(root, "Bucket"), 
            key=_required(root, "Key"), 
            upload_id=_required(root, "UploadId"), 
            max_parts=_required_int(root, "MaxParts"), 
            is_truncated=_required_bool(root, "IsTruncated"), 
            part_number_marker=_optional_int(root, "PartNumberMarker"), 
            next_part_number_marker=_optional_int(root, "NextPartNumberMarker"), 
            encoding_type=_text(root, "EncodingType"), 
            parts=_permissive(root, "Part", PartInfo.from_element), 
        )


@dataclass(frozen=True)
class UploadInfo:
    key: str
    upload_id: str
    initiated: str = ""

    @classmethod
    def from_element(cls, el: Element, /) -> Self:
        return cls(
            key=_required(el, "Key"), 
            upload_id=_required(el, "UploadId"), 
            initiated=_text(el, "Initiated") or "", 
        )


@dataclass(frozen=True)
class ListMultipartUploadsResult:
    bucket: str
    max_uploads: int
    is_truncated: bool
    key_marker: None | str = None
    upload_id_marker: None | str = None
    next_key_marker: None | str = None
    next_upload_id_marker: None | str = None
    delimiter: None | str = None
    prefix: None | str = None
    encoding_type: None | str = None
    uploads: list[UploadInfo] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, content: bytes | str, /) -> Self:
        root = _parse_xml(content, "ListMultipartUploadsResult")
        return cls(
            bucket=_required(root, "Bucket"), 
            max_uploads=_required_int(root, "MaxUploads"), 
            is_truncated=_required_bool(root, "IsTruncated"), 
            key_marker=_text(root, "KeyMarker"), 
            upload_id_marker=_text(root, "UploadIdMarker"), 
            next_key_marker=_text(root, "NextKeyMarker"), 
            next_upload_id_marker=_text(root, "NextUploadIdMarker"), 
            delimiter=_text(root, "Delimiter"), 
            prefix=_text(root, "Prefix"), 
            encoding_type=_text(root, "EncodingType"), 
            uploads=_permissive(root, "Upload", UploadInfo.from_element), 
            common_prefixes=_common_prefixes(root), 
        )


@dataclass(frozen=True)
class Owner:
    id: str
    display_name: str = ""


@dataclass(frozen=True)
class ObjectSummary:
    key: str
    last_modified: str = ""
    etag: str = ""
    size: int = 0
    storage_class: str = ""
    type: None | str = None
    restore_info: None | str = None
    owner: None | Owner = None

    @classmethod
    def from_element(cls, el: Element, /) -> Self:
        size = try_parse_int(_text(el, "Size") or "0")
        if not isinstance(size, int):
            raise ValueError(f"<Size> 的值不是整数：{size!r}")
        owner = None
        if (owner_el := el.find("Owner")) is not None:
            owner = Owner(
                id=_text(owner_el, "ID") or "", 
                display_name=_text(owner_el, "DisplayName") or "", 
            )
        return cls(
            key=_required(el, "Key"), 
            last_modified=_text(el, "LastModified") or "", 
            etag=unquote_etag(_text(el, "ETag") or ""), 
            size=size, 
            storage_class=_text(el, "StorageClass") or "", 
            type=_text(el, "Type"), 
            restore_info=_text(el, "RestoreInfo"), 
            owner=owner, 
        )


@dataclass(frozen=True)
class ListBucketResultV2:
    name: str
    prefix: None | str = None
    max_keys: None | int = None
    delimiter: None | str = None
    is_truncated: None | bool = None
    start_after: None | str = None
    key_count: None | int = None
    continuation_token: None | str = None
    next_continuation_token: None | str = None
    encoding_type: None | str = None
    contents: list[ObjectSummary] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, content: bytes | str, /) -> Self:
        root = _parse_xml(content, "ListBucketResult")
        return cls(
            name=_required(root, "Name"), 
            prefix=_text(root, "Prefix"), 
            max_keys=_optional_int(root, "MaxKeys"), 
            delimiter=_text(root, "Delimiter"), 
            is_truncated=_optional_bool(root, "IsTruncated"), 
            start_after=_text(root, "StartAfter"), 
            key_count=_optional_int(root, "KeyCount"), 
            continuation_token=_text(root, "ContinuationToken"), 
            next_continuation_token=_text(root, "NextContinuationToken"), 
            encoding_type=_text(root, "EncodingType"), 
            contents=_permissive(root, "Contents", ObjectSummary.from_element), 
            common_prefixes=_common_prefixes(root), 
        )


@dataclass(frozen=True)
class ObjectMeta:
    """`HEAD` 对象时，从响应头中得到的元数据
    """
    content_length: int
    etag: str
    last_modified: str
    transition_time: None | str = None
    last_access_time: None | str = None
    version_id: None | str = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, Any], /) -> Self:
        headers = {k.lower(): v for k, v in headers.items()}
        content_length = try_parse_int(headers.get("content-length") or "0")
        if not isinstance(content_length, int):
            throw(OSSErrorType.invalid_response, f"content-length 不是整数：{content_length!r}")
        etag = headers.get("etag")
        if etag is None:
            throw(OSSErrorType.invalid_response, "响应头中缺少 ETag")
        return cls(
            content_length=content_length, 
            etag=unquote_etag(etag), 
            last_modified=headers.get("last-modified") or "", 
            transition_time=headers.get("x-oss-transition-time"), 
            last_access_time=headers.get("x-oss-last-access-time"), 
            version_id=headers.get("x-oss-version-id"), 
        )
