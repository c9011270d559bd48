"""Unit tests for linkdeco.errors."""

from __future__ import annotations

import json

import pytest

from linkdeco.errors import (
    CacheStorageError,
    CrossOriginError,
    EndpointNotFoundError,
    ErrorCode,
    FetchCancelledError,
    FetchError,
    FetchTimeoutError,
    InvalidUrlError,
    LinkDecoError,
    format_error_info,
    is_cross_origin_error,
    status_from_error,
)


class TestErrorHierarchy:
    @pytest.mark.parametrize(
        "error",
        [
            FetchTimeoutError("slow"),
            FetchCancelledError(),
            CrossOriginError("blocked"),
        ],
    )
    def test_fetch_error_subclasses(self, error: FetchError) -> None:
        assert isinstance(error, FetchError)
        assert isinstance(error, LinkDecoError)

    def test_codes(self) -> None:
        assert FetchError("x").code == ErrorCode.FETCH_FAILED
        assert FetchTimeoutError("x").code == ErrorCode.FETCH_TIMEOUT
        assert FetchCancelledError().code == ErrorCode.FETCH_CANCELLED
        assert EndpointNotFoundError("u").code == ErrorCode.ENDPOINT_NOT_FOUND
        assert CacheStorageError("x").code == ErrorCode.CACHE_STORAGE_ERROR
        assert InvalidUrlError("u").code == ErrorCode.INVALID_URL

    def test_endpoint_not_found_message(self) -> None:
        error = EndpointNotFoundError("https://example.com/a")
        assert str(error) == "No oEmbed provider found for URL: https://example.com/a"
        assert error.url == "https://example.com/a"

    def test_to_dict_is_json_serialisable(self) -> None:
        payload = json.loads(json.dumps(FetchError("HTTP error, status: 404", status=404).to_dict()))
        assert payload["error"]["code"] == "FETCH_FAILED"
        assert payload["error"]["message"] == "HTTP error, status: 404"
        assert payload["error"]["recoverable"] is True


class TestStatusFromError:
    def test_attribute(self) -> None:
        assert status_from_error(FetchError("whatever", status=503)) == 503

    def test_message(self) -> None:
        assert status_from_error(RuntimeError("HTTP error, status: 429")) == 429

    def test_absent(self) -> None:
        assert status_from_error(RuntimeError("connection reset")) is None


class TestHelpers:
    def test_is_cross_origin_error(self) -> None:
        assert is_cross_origin_error(CrossOriginError("blocked")) is True
        assert is_cross_origin_error(FetchError("blocked")) is False

    def test_format_error_info(self) -> None:
        assert format_error_info(None) is None
        assert format_error_info(FetchError("HTTP error, status: 404")) == (
            "FetchError[HTTP error, status: 404]"
        )
        assert format_error_info(ValueError()) == "ValueError"
