"""Tests for the cancellation registry and the request handler."""

import asyncio

import pytest

from alioss import (
    CancelToken, OSSAccessDeniedError, OSSNetworkError, OSSNotFoundError,
    OSSRequestCancelledError, OSSRequestHandler, OSSRequestManager, OSSServerError,
)

from conftest import FakeTransport


class TestCancelToken:

    def test_callbacks_fire_once(self):
        token = CancelToken()
        fired = []
        token.add_callback(lambda: fired.append(1))
        remove = token.add_callback(lambda: fired.append(2))
        remove()
        token.cancel("stop")
        token.cancel("again")
        assert fired == [1]
        assert token.cancelled
        assert token.reason == "stop"

    def test_callback_after_cancel_runs_immediately(self):
        token = CancelToken()
        token.cancel()
        fired = []
        token.add_callback(lambda: fired.append(1))
        assert fired == [1]
        with pytest.raises(OSSRequestCancelledError):
            token.raise_if_cancelled()


class TestOSSRequestManager:

    def test_get_token_is_idempotent_per_key(self):
        manager = OSSRequestManager()
        assert manager.get_token("a") is manager.get_token("a")
        assert manager.get_active_request_count() == 1
        assert manager.is_request_active("a")

    def test_generated_keys(self):
        manager = OSSRequestManager()
        manager.get_token()
        manager.get_token()
        assert manager.get_active_request_keys() == ["request_1", "request_2"]

    def test_new_key_is_unique_within_a_millisecond(self, monkeypatch):
        monkeypatch.setattr("alioss.request.time", lambda: 1_700_000_000.0)
        manager = OSSRequestManager()
        keys = [manager.new_key("getObject_a.txt") for _ in range(3)]
        assert len(set(keys)) == 3
        assert keys[0] == "getObject_a.txt_1700000000000_1"

    def test_cancel_request_removes(self):
        manager = OSSRequestManager()
        token = manager.get_token("a")
        assert manager.cancel_request("a")
        assert token.cancelled
        assert not manager.is_request_active("a")
        assert not manager.cancel_request("a")

    def test_remove_token_does_not_cancel(self):
        manager = OSSRequestManager()
        token = manager.get_token("a")
        assert manager.remove_token("a") is token
        assert not token.cancelled

    def test_cancel_all_swallows_errors(self):
        manager = OSSRequestManager()
        bad = manager.get_token("bad")
        good = manager.get_token("good")

        def explode():
            raise RuntimeError("boom")

        bad.add_callback(explode)
        manager.cancel_all()
        assert good.cancelled
        assert manager.get_active_request_count() == 0


class TestOSSRequestHandler:

    def test_owned_token_is_removed(self):
        manager = OSSRequestManager()
        handler = OSSRequestHandler(manager, enable_log=False)
        seen = []
        assert handler.execute_request("k", lambda token: seen.append(token) or 42) == 42
        assert seen and not manager.is_request_active("k")

    def test_external_token_is_left_alone(self):
        manager = OSSRequestManager()
        handler = OSSRequestHandler(manager, enable_log=False)
        token = manager.get_token("external")
        handler.execute_request("k", lambda token: None, token)
        assert manager.is_request_active("external")

    def test_cancelled_token_fails_fast(self):
        manager = OSSRequestManager()
        handler = OSSRequestHandler(manager, enable_log=False)
        token = CancelToken()
        token.cancel()
        with pytest.raises(OSSRequestCancelledError):
            handler.execute_request("k", lambda token: None, token)

    @pytest.mark.asyncio
    async def test_cancel_interrupts_inflight_call(self):
        manager = OSSRequestManager()
        handler = OSSRequestHandler(manager, enable_log=False)
        started = asyncio.Event()

        async def slow(token):
            started.set()
            await asyncio.sleep(10)

        task = asyncio.ensure_future(handler.execute_request("slow", slow, async_=True))
        await started.wait()
        assert manager.cancel_request("slow")
        with pytest.raises(OSSRequestCancelledError):
            await task

    @pytest.mark.parametrize("status, body, exctype", [
        (403, b"<Error><Code>AccessDenied</Code></Error>", OSSAccessDeniedError),
        (404, b"", OSSNotFoundError),
        (400, b"<Error><Code>NoSuchUpload</Code></Error>", OSSNotFoundError),
        (503, b"", OSSServerError),
        (400, b"", OSSNetworkError),
    ])
    def test_send_request_maps_errors(self, status, body, exctype):
        transport = FakeTransport(lambda call: (status, {}, body))
        handler = OSSRequestHandler(OSSRequestManager(), request=transport, enable_log=False)
        with pytest.raises(exctype) as excinfo:
            handler.send_request("https://b.example.com/k", "GET", {})
        assert excinfo.value.status_code == status

    def test_send_request_lowercases_headers(self):
        transport = FakeTransport(lambda call: (200, {"ETag": '"x"', "X-Oss-Request-Id": "r"}, b"ok"))
        handler = OSSRequestHandler(OSSRequestManager(), request=transport)
        resp = handler.send_request("https://b.example.com/k", "PUT", {"authorization": "OSS a:b"}, b"data")
        assert resp.headers == {"etag": '"x"', "x-oss-request-id": "r"}
        assert resp.content == b"ok"
        assert transport.calls[0].body == b"data"

    def test_send_request_wraps_transport_errors(self):
        def handler(call):
            raise ConnectionError("reset")

        transport = FakeTransport(handler)
        request_handler = OSSRequestHandler(OSSRequestManager(), request=transport, enable_log=False)
        with pytest.raises(OSSNetworkError) as excinfo:
            request_handler.send_request("https://b.example.com/k")
        assert isinstance(excinfo.value.original_error, ConnectionError)
