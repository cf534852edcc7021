"""
Error Handling Tests for ContentSync
====================================

Tests for the exception hierarchy, failure classification and the
conversion helpers used at the CLI boundary.
"""

import asyncio
from unittest.mock import Mock

import aiohttp
import pytest

from contentsync.ingestion.http_client import network_error
from contentsync.utils.exceptions import (
    AuthorizationError,
    ConfigurationError,
    ContentSyncError,
    ErrorCode,
    FailureKind,
    PersistenceError,
    UpstreamFetchError,
    classify_error,
    handle_exception,
    is_retryable_error,
)


class TestClassification:

    @pytest.mark.parametrize(
        "error, kind",
        [
            (ConfigurationError("x", config_key="RAWG_API_KEY"), FailureKind.NOT_CONFIGURED),
            (AuthorizationError("no credentials"), FailureKind.UNAUTHORIZED),
            (UpstreamFetchError("x", status=500), FailureKind.UPSTREAM),
            (PersistenceError("x"), FailureKind.PERSISTENCE),
            (ConnectionError("reset"), FailureKind.UPSTREAM),
            (TimeoutError(), FailureKind.UPSTREAM),
            (KeyError("boom"), FailureKind.UNKNOWN),
        ],
    )
    def test_classify_error(self, error, kind):
        assert classify_error(error) == kind

    def test_network_error_wrapping(self):
        timeout = network_error("igdb", asyncio.TimeoutError(), "https://api.test")
        reset = network_error("igdb", aiohttp.ClientConnectionError("reset"))

        assert timeout.error_code == ErrorCode.UPSTREAM_TIMEOUT
        assert timeout.context["url"] == "https://api.test"
        assert reset.error_code == ErrorCode.UPSTREAM_NETWORK_ERROR
        assert classify_error(reset) == FailureKind.UPSTREAM


class TestExceptionDetails:

    def test_to_dict(self):
        error = UpstreamFetchError("catalog down", source="igdb", status=503, body="x" * 900)

        data = error.to_dict()

        assert data["error_type"] == "UpstreamFetchError"
        assert data["error_code"] == "U001"
        assert data["failure_kind"] == "upstream"
        assert data["context"]["status"] == 503
        assert len(data["context"]["body"]) == 500
        assert str(error) == "[U001] catalog down"

    def test_authorization_message_is_generic(self):
        error = AuthorizationError("cron secret mismatch")
        assert error.user_message == "Unauthorized"
        assert "mismatch" not in error.user_message
        assert error.reason == "cron secret mismatch"

    def test_configuration_error_names_setting(self):
        error = ConfigurationError("Set TWITCH_CLIENT_ID", config_key="TWITCH_CLIENT_ID")
        assert error.config_key == "TWITCH_CLIENT_ID"
        assert error.context["config_key"] == "TWITCH_CLIENT_ID"
        assert error.error_code == ErrorCode.CONFIG_NOT_CONFIGURED


class TestHandleException:

    def test_passes_contentsync_errors_through(self):
        logger = Mock()
        original = PersistenceError("disk full")

        assert handle_exception(original, logger, "sync") is original
        logger.error.assert_called_once()

    def test_wraps_timeout(self):
        error = handle_exception(TimeoutError("slow"), Mock(), "sync releases")

        assert isinstance(error, UpstreamFetchError)
        assert error.error_code == ErrorCode.UPSTREAM_TIMEOUT
        assert error.context["operation"] == "sync releases"

    def test_wraps_unknown(self):
        error = handle_exception(ValueError("bad"), Mock(), "sync clips")

        assert type(error) is ContentSyncError
        assert error.user_message == "An unexpected error occurred"
        assert error.context["original_exception_type"] == "ValueError"


class TestRetryable:

    def test_transient_upstream_errors(self):
        assert is_retryable_error(UpstreamFetchError("x", status=503))
        assert is_retryable_error(UpstreamFetchError("x", status=429))
        assert is_retryable_error(UpstreamFetchError("x", error_code=ErrorCode.UPSTREAM_TIMEOUT))

    def test_permanent_errors(self):
        assert not is_retryable_error(UpstreamFetchError("x", status=404))
        assert not is_retryable_error(ConfigurationError("x"))
        assert not is_retryable_error(AuthorizationError())


class TestErrorCodes:

    def test_store_failures_have_one_exception_type(self):
        from contentsync.utils import exceptions

        assert not hasattr(exceptions, "DatabaseError")
        assert PersistenceError("x").error_code == ErrorCode.DATABASE_ERROR
        assert classify_error(PersistenceError("x")) == FailureKind.PERSISTENCE
