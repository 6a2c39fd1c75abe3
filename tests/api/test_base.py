"""Tests for api/base.py - Unified API response format."""

from datetime import timezone

from api.base import (
    success_response,
    error_response,
    ErrorCodes,
)


class TestSuccessResponse:
    """Tests for success_response()."""

    def test_structure(self):
        resp = success_response({"foo": "bar"})
        assert resp.success is True
        assert resp.data == {"foo": "bar"}
        assert resp.error is None

    def test_request_id_generated(self):
        resp = success_response({})
        assert resp.meta.request_id is not None
        assert len(resp.meta.request_id) > 0

    def test_request_id_passed_through(self):
        resp = success_response({}, request_id="req-1")
        assert resp.meta.request_id == "req-1"

    def test_timestamp_is_utc(self):
        resp = success_response({})
        assert resp.meta.timestamp.tzinfo == timezone.utc


class TestErrorResponse:
    """Tests for error_response()."""

    def test_structure(self):
        resp = error_response("TEST_ERROR", "Something went wrong")
        assert resp.success is False
        assert resp.data is None
        assert resp.error.code == "TEST_ERROR"
        assert resp.error.message == "Something went wrong"
        assert resp.error.retryable is False

    def test_retryable_flag(self):
        resp = error_response(ErrorCodes.SERVICE_UNAVAILABLE, "Try again", retryable=True)
        assert resp.error.retryable is True

    def test_request_id_generated(self):
        resp = error_response("ERR", "msg")
        assert resp.meta.request_id is not None
        assert len(resp.meta.request_id) > 0

    def test_timestamp_is_utc(self):
        resp = error_response("ERR", "msg")
        assert resp.meta.timestamp.tzinfo == timezone.utc

    def test_json_dump(self):
        body = error_response("ERR", "msg", request_id="req-2").model_dump(mode="json")
        assert body["meta"]["request_id"] == "req-2"
        assert isinstance(body["meta"]["timestamp"], str)


class TestErrorCodes:
    """Error codes are their own names, so clients can match on them."""

    def test_codes_equal_names(self):
        codes = {name: value for name, value in vars(ErrorCodes).items() if name.isupper()}
        assert codes
        for name, value in codes.items():
            assert name == value

    def test_has_auth_codes(self):
        assert ErrorCodes.BAD_CREDENTIALS == "BAD_CREDENTIALS"
        assert ErrorCodes.SESSION_EXPIRED == "SESSION_EXPIRED"
        assert ErrorCodes.INVALID_TWO_FACTOR_CODE == "INVALID_TWO_FACTOR_CODE"

    def test_has_rate_limited(self):
        assert ErrorCodes.RATE_LIMITED == "RATE_LIMITED"

    def test_has_service_unavailable(self):
        assert ErrorCodes.SERVICE_UNAVAILABLE == "SERVICE_UNAVAILABLE"
