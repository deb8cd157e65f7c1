"""Tests for response <-> stored entry conversion."""

from __future__ import annotations

import httpx
import pytest

from apicache.engine.serialization import (
    entry_to_response,
    extract_response_data,
    response_to_entry,
)
from apicache.exceptions import CacheDecodeError


REQUEST = httpx.Request("GET", "https://api.example.com/users")


def _response(content: bytes, content_type: str | None, status_code: int = 200) -> httpx.Response:
    headers = {"content-type": content_type} if content_type else {}
    response = httpx.Response(status_code, headers=headers, content=content, request=REQUEST)
    response.read()
    return response


class TestResponseToEntry:
    def test_json_body_is_stored_parsed(self) -> None:
        entry = response_to_entry(_response(b'{"id": 1}', "application/json"))
        assert entry["format"] == "json"
        assert entry["body"] == {"id": 1}
        assert entry["status_code"] == 200

    def test_text_body(self) -> None:
        entry = response_to_entry(_response(b"<p>hi</p>", "text/html; charset=utf-8"))
        assert entry["format"] == "text"
        assert entry["body"] == "<p>hi</p>"

    def test_invalid_json_falls_back_to_text(self) -> None:
        entry = response_to_entry(_response(b"{oops", "application/json"))
        assert entry["format"] == "text"
        assert entry["body"] == "{oops"

    def test_binary_body_is_base64(self) -> None:
        entry = response_to_entry(_response(b"\x89PNG\x00", "image/png"))
        assert entry["format"] == "base64"

    def test_empty_body(self) -> None:
        entry = response_to_entry(_response(b"", None, status_code=204))
        assert entry["format"] == "empty"
        assert entry["body"] is None

    def test_length_headers_dropped(self) -> None:
        entry = response_to_entry(_response(b'{"id": 1}', "application/json"))
        assert "content-length" not in {k.lower() for k in entry["headers"]}


class TestEntryToResponse:
    def test_rebuilds_json_response(self) -> None:
        original = _response(b'{"id": 1, "name": "x"}', "application/json")
        rebuilt = entry_to_response(response_to_entry(original), REQUEST)
        assert rebuilt.status_code == 200
        assert rebuilt.json() == {"id": 1, "name": "x"}
        assert rebuilt.request is REQUEST

    def test_rebuilds_binary_response(self) -> None:
        original = _response(b"\x89PNG\x00\xff", "image/png")
        rebuilt = entry_to_response(response_to_entry(original), REQUEST)
        assert rebuilt.content == b"\x89PNG\x00\xff"

    def test_entry_without_format_is_json(self) -> None:
        rebuilt = entry_to_response({"status_code": 200, "body": {"ok": True}}, REQUEST)
        assert rebuilt.json() == {"ok": True}
        assert rebuilt.headers["content-type"] == "application/json"

    @pytest.mark.parametrize("entry", [[1, 2], "text", 42, None])
    def test_non_object_entry_is_a_decode_error(self, entry: object) -> None:
        with pytest.raises(CacheDecodeError) as exc_info:
            entry_to_response(entry, REQUEST, "https://api.example.com/users")
        assert exc_info.value.key == "https://api.example.com/users"

    def test_bad_base64_is_a_decode_error(self) -> None:
        with pytest.raises(CacheDecodeError) as exc_info:
            entry_to_response({"format": "base64", "body": "not base64!"}, REQUEST)
        assert exc_info.value.key == str(REQUEST.url)

    def test_bad_status_is_a_decode_error(self) -> None:
        with pytest.raises(CacheDecodeError):
            entry_to_response({"status_code": "teapot", "body": {}}, REQUEST)


class TestExtractResponseData:
    def test_json(self) -> None:
        assert extract_response_data(_response(b"[1, 2]", "application/json")) == [1, 2]

    def test_text(self) -> None:
        assert extract_response_data(_response(b"hello", "text/plain")) == "hello"

    def test_empty(self) -> None:
        assert extract_response_data(_response(b"", None)) is None
