"""Tests for XML result records."""

import pytest

from alioss import (
    CompleteMultipartUploadResult, InitiateMultipartUploadResult, ListBucketResultV2,
    ListMultipartUploadsResult, ListPartsResult, ObjectMeta, OSSInvalidResponseError,
    PartInfo, quote_etag, unquote_etag,
)

LIST_PARTS_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<ListPartsResult xmlns="">
  <Bucket>multipart_upload</Bucket>
  <Key>multipart.data</Key>
  <UploadId>0004B999EF5A239BB9138C6227D6****</UploadId>
  <NextPartNumberMarker>5</NextPartNumberMarker>
  <MaxParts>1000</MaxParts>
  <IsTruncated>false</IsTruncated>
  <Part>
    <PartNumber>1</PartNumber>
    <LastModified>2012-02-23T07:01:34.000Z</LastModified>
    <ETag>"3349DC700140D7F86A0784842780****"</ETag>
    <Size>6291456</Size>
  </Part>
  <Part>
    <PartNumber>2</PartNumber>
    <LastModified>2012-02-23T07:01:12.000Z</LastModified>
    <ETag>"3349DC700140D7F86A0784842780****"</ETag>
    <Size>6291456</Size>
  </Part>
  <Part>
    <PartNumber>not-a-number</PartNumber>
    <ETag>"AAAA"</ETag>
    <Size>1</Size>
  </Part>
  <Part>
    <PartNumber>5</PartNumber>
    <LastModified>2012-02-23T07:02:03.000Z</LastModified>
    <ETag>"7265F4D211B56873A381D321F586****"</ETag>
    <Size>1024</Size>
  </Part>
</ListPartsResult>"""


def test_etag_quoting():
    assert unquote_etag('"abc"') == "abc"
    assert unquote_etag("abc") == "abc"
    assert quote_etag("abc") == '"abc"'
    assert quote_etag('"abc"') == '"abc"'


def test_part_info_to_xml_quotes_etag():
    assert PartInfo(3, "abc").to_xml() == '<Part><PartNumber>3</PartNumber><ETag>"abc"</ETag></Part>'


def test_initiate_result():
    result = InitiateMultipartUploadResult.parse(
        b"<InitiateMultipartUploadResult><Bucket>b</Bucket><Key>k</Key>"
        b"<UploadId>u-1</UploadId></InitiateMultipartUploadResult>"
    )
    assert result == InitiateMultipartUploadResult("b", "k", "u-1")


def test_list_parts_is_permissive():
    result = ListPartsResult.parse(LIST_PARTS_XML)
    assert [p.part_number for p in result.parts] == [1, 2, 5]
    assert result.parts[0].etag == "3349DC700140D7F86A0784842780****"
    assert result.parts[2].size == 1024
    assert result.next_part_number_marker == 5
    assert result.part_number_marker is None
    assert result.is_truncated is False
    assert result.max_parts == 1000


def test_list_parts_missing_required_scalar():
    broken = LIST_PARTS_XML.replace(b"<MaxParts>1000</MaxParts>", b"")
    with pytest.raises(OSSInvalidResponseError):
        ListPartsResult.parse(broken)


def test_complete_result_missing_bucket():
    with pytest.raises(OSSInvalidResponseError):
        CompleteMultipartUploadResult.parse(
            b"<CompleteMultipartUploadResult><Location>l</Location><Key>k</Key>"
            b"<ETag>\"e\"</ETag></CompleteMultipartUploadResult>"
        )


def test_complete_result():
    result = CompleteMultipartUploadResult.parse(
        b"<CompleteMultipartUploadResult><EncodingType>url</EncodingType><Location>l</Location>"
        b"<Bucket>b</Bucket><Key>k</Key><ETag>\"B864DB6A936D376F9F8D3ED3BBE5****\"</ETag>"
        b"</CompleteMultipartUploadResult>"
    )
    assert result.etag == "B864DB6A936D376F9F8D3ED3BBE5****"
    assert result.encoding_type == "url"


@pytest.mark.parametrize("content", [b"", b"<not-closed", b"<Error><Code>X</Code></Error>"])
def test_malformed_xml(content):
    with pytest.raises(OSSInvalidResponseError):
        InitiateMultipartUploadResult.parse(content)


def test_list_multipart_uploads():
    result = ListMultipartUploadsResult.parse(b"""
<ListMultipartUploadsResult>
  <Bucket>oss-example</Bucket>
  <KeyMarker></KeyMarker>
  <UploadIdMarker></UploadIdMarker>
  <NextKeyMarker>oss.avi</NextKeyMarker>
  <NextUploadIdMarker>89F0105AA66942638E35300618DF****</NextUploadIdMarker>
  <Delimiter>/</Delimiter>
  <Prefix></Prefix>
  <MaxUploads>1000</MaxUploads>
  <IsTruncated>false</IsTruncated>
  <Upload>
    <Key>multipart.data</Key>
    <UploadId>0004B999EF518A1FE585B0C9360D****</UploadId>
    <Initiated>2012-02-23T04:18:23.000Z</Initiated>
  </Upload>
  <Upload>
    <Key>broken-entry-without-upload-id</Key>
  </Upload>
  <CommonPrefixes><Prefix>photos/</Prefix></CommonPrefixes>
</ListMultipartUploadsResult>""")
    assert [u.key for u in result.uploads] == ["multipart.data"]
    assert result.common_prefixes == ["photos/"]
    assert result.next_key_marker == "oss.avi"
    assert result.key_marker == ""
    assert result.max_uploads == 1000


def test_list_bucket_result_v2():
    result = ListBucketResultV2.parse(b"""
<ListBucketResult>
  <Name>examplebucket</Name>
  <Prefix>a/</Prefix>
  <MaxKeys>100</MaxKeys>
  <Delimiter>/</Delimiter>
  <IsTruncated>true</IsTruncated>
  <NextContinuationToken>CgJiYw--</NextContinuationToken>
  <KeyCount>2</KeyCount>
  <Contents>
    <Key>a/b.txt</Key>
    <LastModified>2020-06-22T11:42:32.000Z</LastModified>
    <ETag>"5B3C1A2E053D763E1B002CC607C5A0FE1****"</ETag>
    <Type>Normal</Type>
    <Size>344606</Size>
    <StorageClass>Standard</StorageClass>
    <Owner><ID>0022012****</ID><DisplayName>user-example</DisplayName></Owner>
  </Contents>
  <Contents>
    <Key>a/bad-size</Key>
    <Size>lots</Size>
  </Contents>
  <CommonPrefixes><Prefix>a/c/</Prefix></CommonPrefixes>
</ListBucketResult>""")
    assert result.name == "examplebucket"
    assert result.is_truncated is True
    assert result.key_count == 2
    assert [o.key for o in result.contents] == ["a/b.txt"]
    summary = result.contents[0]
    assert summary.size == 344606
    assert summary.owner is not None and summary.owner.display_name == "user-example"
    assert result.common_prefixes == ["a/c/"]


def test_object_meta_from_headers():
    meta = ObjectMeta.from_headers({
        "Content-Length": "344606",
        "ETag": '"fba9dede5f27731c9771645a3986****"',
        "Last-Modified": "Fri, 24 Feb 2012 06:07:48 GMT",
        "x-oss-version-id": "CAEQNhiBgM",
    })
    assert meta.content_length == 344606
    assert meta.etag == "fba9dede5f27731c9771645a3986****"
    assert meta.version_id == "CAEQNhiBgM"
    assert meta.transition_time is None
