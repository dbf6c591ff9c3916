"""Tests for error classification and retry predicates."""

from __future__ import annotations

import errno

import pytest

from timecardpilot.evaluation.error_classifier import build_should_retry, classify, is_retryable
from timecardpilot.exceptions import (
    ElementNotFoundError,
    ErrorKind,
    LoginFailedError,
    NetworkError,
    ProcessingError,
)


class _HttpError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class _CodedError(Exception):
    def __init__(self, code: str) -> None:
        super().__init__(f"socket failure {code}")
        self.code = code


@pytest.mark.parametrize(
    "message",
    ["net::ERR_CONNECTION_REFUSED at https://x", "NS_ERROR_FAILURE"],
)
def test_network_markers_retryable(message):
    exc = RuntimeError(message)
    assert is_retryable(exc)
    assert classify(exc).kind is ErrorKind.NETWORK_ERROR


@pytest.mark.parametrize("message", ["Request timeout", "Timeout 30000ms exceeded."])
def test_timeouts_retryable(message):
    assert is_retryable(RuntimeError(message))


def test_status_codes():
    assert is_retryable(_HttpError(500))
    assert is_retryable(_HttpError(503))
    assert is_retryable(_HttpError(429))
    assert not is_retryable(_HttpError(404))


def test_connection_codes():
    assert is_retryable(_CodedError("ECONNRESET"))
    assert is_retryable(_CodedError("ECONNREFUSED"))
    assert not is_retryable(_CodedError("ENOENT"))
    assert is_retryable(OSError(errno.ECONNRESET, "reset by peer"))
    assert is_retryable(ConnectionRefusedError("refused"))


def test_structural_failures_not_retryable():
    assert not is_retryable(ValueError("bad value"))
    assert not is_retryable(LoginFailedError("Login ID and password must be configured."))
    assert not is_retryable(ElementNotFoundError("#button_01"))


def test_classify_passes_domain_errors_through():
    err = ElementNotFoundError("select.htBlock-selectOther", step="select application type")
    assert classify(err) is err
    assert err.context == {"selector": "select.htBlock-selectOther", "step": "select application type"}


def test_classify_unknown_failure_is_processing_error():
    raw = KeyError("boom")
    err = classify(raw)
    assert isinstance(err, ProcessingError)
    assert err.__cause__ is raw
    assert err.context["error_type"] == "KeyError"


def test_classify_transient_failure_is_network_error():
    assert isinstance(classify(_HttpError(502)), NetworkError)


def test_missing_element_retry_is_opt_in():
    missing = ElementNotFoundError("#recording_type_code_1")
    assert build_should_retry(allow_missing_element=True)(missing)
    assert not build_should_retry(allow_missing_element=False)(missing)


def test_should_retry_keeps_general_rules():
    predicate = build_should_retry(allow_missing_element=False)
    assert predicate(RuntimeError("net::ERR_NAME_NOT_RESOLVED"))
    assert not predicate(ValueError("logic"))
