"""Tests for V1 and V4 request signing."""

import base64
import hashlib
import hmac
from datetime import datetime, timezone
from urllib.parse import parse_qsl, urlsplit

import pytest

from alioss import OSSConfig, OSSInvalidArgumentError, V1SignStrategy, V4SignStrategy
from alioss.sign import (
    v1_canonical_headers, v1_canonical_resource, v1_signature, v1_signed_headers,
    v1_signed_url, v4_additional_headers, v4_canonical_headers, v4_canonical_query,
    v4_canonical_uri, v4_signed_headers, v4_signed_url, v4_signing_key,
)

DT = datetime(2025, 3, 1, 8, 30, 0, tzinfo=timezone.utc)
ENDPOINT = "oss-cn-hangzhou.aliyuncs.com"


def _query(url: str) -> list[tuple[str, str]]:
    return parse_qsl(urlsplit(url).query, keep_blank_values=True)


class TestV1:

    def test_canonical_headers(self):
        headers = {"X-OSS-Meta-B": " 2 ", "x-oss-meta-a": "1", "Content-Type": "text/plain"}
        assert v1_canonical_headers(headers) == "x-oss-meta-a:1\nx-oss-meta-b:2"
        assert v1_canonical_headers({"content-type": "x"}) == ""

    def test_canonical_resource(self):
        url = "https://bkt.oss.example.com/dir/a%20b.txt?uploads"
        assert v1_canonical_resource(url, "bkt") == "/bkt/dir/a b.txt?uploads"
        assert v1_canonical_resource(url, "bkt", cname=True) == "/dir/a b.txt?uploads"
        assert v1_canonical_resource("https://h/bkt/obj", "bkt") == "/bkt/obj"

    def test_signature_matches_string_to_sign(self):
        string_to_sign = (
            "PUT\n\ntext/html\nThu, 17 Nov 2005 18:49:58 GMT\n"
            "x-oss-magic:abracadabra\nx-oss-meta-author:foo@example.com\n/examplebucket/nelson"
        )
        expected = base64.b64encode(
            hmac.digest(b"secret", string_to_sign.encode(), "sha1")
        ).decode()
        assert v1_signature(
            "secret",
            "put",
            "https://examplebucket.oss-cn-hangzhou.aliyuncs.com/nelson",
            "examplebucket",
            {"X-OSS-Meta-Author": "foo@example.com", "X-OSS-Magic": "abracadabra"},
            content_type="text/html",
            date="Thu, 17 Nov 2005 18:49:58 GMT",
        ) == expected

    def test_signed_headers_format_and_determinism(self):
        kwargs = dict(headers={"x-oss-meta-a": "1"}, content_type="text/plain", dt=DT)
        url = f"https://bkt.{ENDPOINT}/obj"
        first = v1_signed_headers("AKID", "secret", "GET", url, "bkt", **kwargs)
        second = v1_signed_headers("AKID", "secret", "GET", url, "bkt", **kwargs)
        assert first == second
        assert first["authorization"].startswith("OSS AKID:")
        assert first["date"] == "Sat, 01 Mar 2025 08:30:00 GMT"
        assert first["content-type"] == "text/plain"

    def test_security_token_is_signed_as_header(self):
        url = f"https://bkt.{ENDPOINT}/obj"
        with_token = v1_signed_headers("AKID", "secret", "GET", url, "bkt", security_token="tok", dt=DT)
        without = v1_signed_headers("AKID", "secret", "GET", url, "bkt", dt=DT)
        assert with_token["x-oss-security-token"] == "tok"
        assert with_token["authorization"] != without["authorization"]

    def test_signed_url(self):
        url = v1_signed_url(
            "AKID", "secret", ENDPOINT, "GET", "bkt", "dir/file.txt",
            expires=60, params={"response-content-type": "text/plain"}, dt=DT,
        )
        parts = urlsplit(url)
        assert parts.netloc == f"bkt.{ENDPOINT}"
        assert parts.path == "/dir/file.txt"
        query = _query(url)
        assert [k for k, _ in query] == ["response-content-type", "OSSAccessKeyId", "Expires", "Signature"]
        expires = str(int(DT.timestamp()) + 60)
        assert dict(query)["Expires"] == expires
        string_to_sign = f"GET\n\n\n{expires}\n/bkt/dir/file.txt?response-content-type=text/plain"
        expected = base64.b64encode(hmac.digest(b"secret", string_to_sign.encode(), "sha1")).decode()
        assert dict(query)["Signature"] == expected

    def test_signed_url_with_token_and_cname(self):
        url = v1_signed_url(
            "AKID", "secret", "img.example.com", "GET", "bkt", "a.png",
            security_token="tok", dt=DT, cname=True,
        )
        assert urlsplit(url).netloc == "img.example.com"
        query = _query(url)
        assert query[-1] == ("security-token", "tok")
        expires = dict(query)["Expires"]
        string_to_sign = f"GET\n\n\n{expires}\n/a.png?security-token=tok"
        expected = base64.b64encode(hmac.digest(b"secret", string_to_sign.encode(), "sha1")).decode()
        assert dict(query)["Signature"] == expected

    @pytest.mark.parametrize("name", ["OSSAccessKeyId", "Expires", "Signature", "security-token"])
    def test_signed_url_reserved_params(self, name):
        with pytest.raises(OSSInvalidArgumentError):
            v1_signed_url("AKID", "secret", ENDPOINT, "GET", "bkt", "obj", params={name: "x"})


class TestV4:

    def test_canonical_uri(self):
        assert v4_canonical_uri("bkt", "a b/c.txt") == "/bkt/a%20b/c.txt"
        assert v4_canonical_uri("bkt", "") == "/bkt/"
        assert v4_canonical_uri("bkt", "/lead") == "/bkt/lead"
        assert v4_canonical_uri("bkt", "obj", cname=True) == "/obj"

    def test_canonical_query(self):
        assert v4_canonical_query("b=2&a=1&a=&c") == "a&a=1&b=2&c"
        assert v4_canonical_query({"x-oss-date": "1", "k": "a b"}) == "k=a%20b&x-oss-date=1"
        assert v4_canonical_query("") == ""

    def test_canonical_headers_trailing_newline(self):
        headers = {
            "x-oss-date": "20250301T083000Z",
            "x-oss-content-sha256": "UNSIGNED-PAYLOAD",
            "content-type": "text/plain",
            "host": "bkt.example.com",
        }
        rendered = v4_canonical_headers(headers)
        assert rendered.endswith("\n")
        assert rendered == (
            "content-type:text/plain\n"
            "x-oss-content-sha256:UNSIGNED-PAYLOAD\n"
            "x-oss-date:20250301T083000Z\n"
        )
        with_host = v4_canonical_headers(headers, ["Host"])
        assert "host:bkt.example.com\n" in with_host
        assert with_host.endswith("\n")

    def test_additional_headers(self):
        assert v4_additional_headers(["Host", "x-oss-meta-a", "content-md5", "range"]) == "host;range"
        assert v4_additional_headers([]) == ""

    def test_signing_key_chain(self):
        k = hmac.digest(b"aliyun_v4secret", b"20250301", "sha256")
        for msg in (b"cn-hangzhou", b"oss", b"aliyun_v4_request"):
            k = hmac.digest(k, msg, "sha256")
        assert v4_signing_key("secret", "20250301", "cn-hangzhou") == k

    def test_signed_headers(self):
        args = ("AKID", "secret", "cn-hangzhou", "PUT", f"https://bkt.{ENDPOINT}/obj?partNumber=1&uploadId=u", "bkt", "obj")
        first = v4_signed_headers(*args, headers={"content-type": "application/octet-stream"}, dt=DT)
        second = v4_signed_headers(*args, headers={"content-type": "application/octet-stream"}, dt=DT)
        assert first == second
        assert first["x-oss-date"] == "20250301T083000Z"
        assert first["x-oss-content-sha256"] == "UNSIGNED-PAYLOAD"
        auth = first["authorization"]
        assert auth.startswith("OSS4-HMAC-SHA256 Credential=AKID/20250301/cn-hangzhou/oss/aliyun_v4_request,")
        assert "AdditionalHeaders" not in auth
        signature = auth.rsplit("Signature=", 1)[1]
        assert len(signature) == 64 and int(signature, 16) >= 0

    def test_signed_headers_reproduce_canonical_request(self):
        url = f"https://bkt.{ENDPOINT}/obj?uploads"
        headers = v4_signed_headers("AKID", "secret", "cn-hangzhou", "POST", url, "bkt", "obj", dt=DT)
        canonical_request = "\n".join((
            "POST",
            "/bkt/obj",
            "uploads",
            "content-type:\nx-oss-content-sha256:UNSIGNED-PAYLOAD\nx-oss-date:20250301T083000Z\n",
            "",
            "UNSIGNED-PAYLOAD",
        ))
        scope = "20250301/cn-hangzhou/oss/aliyun_v4_request"
        string_to_sign = "\n".join((
            "OSS4-HMAC-SHA256",
            "20250301T083000Z",
            scope,
            hashlib.sha256(canonical_request.encode()).hexdigest(),
        ))
        expected = hmac.digest(
            v4_signing_key("secret", "20250301", "cn-hangzhou"), string_to_sign.encode(), "sha256"
        ).hex()
        assert headers["authorization"] == f"OSS4-HMAC-SHA256 Credential=AKID/{scope},Signature={expected}"

    def test_signed_headers_with_additional(self):
        headers = v4_signed_headers(
            "AKID", "secret", "cn-hangzhou", "GET", f"https://bkt.{ENDPOINT}/obj", "bkt", "obj",
            headers={"host": f"bkt.{ENDPOINT}"}, additional_headers=["host"], dt=DT,
        )
        assert ",AdditionalHeaders=host," in headers["authorization"]

    def test_signed_url_param_order(self):
        url = v4_signed_url(
            "AKID", "secret", ENDPOINT, "cn-hangzhou", "GET", "bkt", "dir/obj.txt",
            expires=600, params={"versionId": "v1"}, security_token="tok", dt=DT,
        )
        assert urlsplit(url).netloc == f"bkt.{ENDPOINT}"
        keys = [k for k, _ in _query(url)]
        assert keys == [
            "versionId", "x-oss-credential", "x-oss-date", "x-oss-expires",
            "x-oss-signature-version", "x-oss-additional-headers",
            "x-oss-security-token", "x-oss-signature",
        ]
        query = dict(_query(url))
        assert query["x-oss-credential"] == "AKID/20250301/cn-hangzhou/oss/aliyun_v4_request"
        assert query["x-oss-expires"] == "600"
        assert query["x-oss-signature-version"] == "OSS4-HMAC-SHA256"
        assert query["x-oss-additional-headers"] == "host"

    def test_signed_url_cname(self):
        url = v4_signed_url("AKID", "secret", "img.example.com", "cn-hangzhou", "GET", "bkt", "a.png", dt=DT, cname=True)
        assert urlsplit(url).netloc == "img.example.com"
        assert urlsplit(url).path == "/a.png"

    def test_signed_url_reserved_collision(self):
        with pytest.raises(OSSInvalidArgumentError):
            v4_signed_url(
                "AKID", "secret", ENDPOINT, "cn-hangzhou", "GET", "bkt", "obj",
                params={"x-oss-signature": "forged"},
            )

    @pytest.mark.parametrize("kwargs", [
        {"region": ""}, {"bucket": ""}, {"key": ""}, {"method": ""}, {"expires": 0},
    ])
    def test_signed_url_validation(self, kwargs):
        args = {
            "region": "cn-hangzhou", "method": "GET", "bucket": "bkt", "key": "obj", "expires": 60,
        } | kwargs
        with pytest.raises(OSSInvalidArgumentError):
            v4_signed_url(
                "AKID", "secret", ENDPOINT, args["region"], args["method"],
                args["bucket"], args["key"], expires=args["expires"],
            )


class TestStrategies:

    def test_credentials_are_read_on_every_signing(self):
        keys = iter(["first-id", "second-id"])
        config = OSSConfig(
            lambda: next(keys),
            lambda: "secret",
            bucket_name="bkt",
            endpoint=ENDPOINT,
            region="cn-hangzhou",
        )
        strategy = V4SignStrategy(config)
        url = f"https://bkt.{ENDPOINT}/obj"
        first = strategy.sign_headers("GET", url, "bkt", "obj", {}, dt=DT)
        second = strategy.sign_headers("GET", url, "bkt", "obj", {}, dt=DT)
        assert "Credential=first-id/" in first["authorization"]
        assert "Credential=second-id/" in second["authorization"]

    def test_v1_strategy_uses_security_token(self):
        config = OSSConfig.for_test(security_token="sts-token")
        headers = V1SignStrategy(config).sign_headers(
            "GET", f"https://test-bucket.{ENDPOINT}/obj", "test-bucket", "obj", {}, dt=DT,
        )
        assert headers["x-oss-security-token"] == "sts-token"
        assert headers["authorization"].startswith("OSS test_key_id:")

    def test_v4_sign_url_requires_region(self):
        config = OSSConfig.for_test(region="")
        with pytest.raises(OSSInvalidArgumentError):
            V4SignStrategy(config).sign_url("GET", "test-bucket", "obj")
