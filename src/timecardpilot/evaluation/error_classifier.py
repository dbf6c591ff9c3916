"""Chain of Responsibility classification of raw automation failures."""

from __future__ import annotations

import errno
import logging
from abc import ABC, abstractmethod
from typing import Callable

from timecardpilot.exceptions import DomainError, ErrorKind, NetworkError, ProcessingError

logger = logging.getLogger(__name__)

_NETWORK_MARKERS = ("net::", "NS_ERROR_")
_RETRYABLE_CONNECTION_CODES = frozenset({"ECONNRESET", "ECONNREFUSED"})
_STATUS_ATTRS = ("status_code", "statusCode", "status")


class ErrorRule(ABC):
    """Abstract base for a single rule in the classification chain."""

    def __init__(self) -> None:
        self._next: ErrorRule | None = None

    def set_next(self, handler: ErrorRule) -> ErrorRule:
        self._next = handler
        return handler

    def evaluate(self, exc: BaseException) -> ErrorKind | None:
        """Return the transient kind *exc* maps to, or ``None`` if no rule matches.

        If this rule does not match, delegates to the next rule in the chain.
        """
        kind = self._check(exc)
        if kind is not None:
            return kind
        if self._next:
            return self._next.evaluate(exc)
        return None

    @abstractmethod
    def _check(self, exc: BaseException) -> ErrorKind | None:
        ...


class NetworkMarkerRule(ErrorRule):
    """Browser network failures (``net::ERR_*``, ``NS_ERROR_*``) and OS socket errors."""

    def _check(self, exc: BaseException) -> ErrorKind | None:
        if isinstance(exc, ConnectionError):
            return ErrorKind.NETWORK_ERROR
        message = str(exc)
        if any(marker in message for marker in _NETWORK_MARKERS):
            return ErrorKind.NETWORK_ERROR
        return None


class TimeoutRule(ErrorRule):
    """Anything that mentions a timeout, whatever kind it already carries."""

    def _check(self, exc: BaseException) -> ErrorKind | None:
        if isinstance(exc, TimeoutError) or "timeout" in str(exc).lower():
            if isinstance(exc, DomainError):
                return exc.kind
            return ErrorKind.NETWORK_ERROR
        return None


class StatusCodeRule(ErrorRule):
    """Server errors (5xx) and rate limiting (429)."""

    def _check(self, exc: BaseException) -> ErrorKind | None:
        for attr in _STATUS_ATTRS:
            status = getattr(exc, attr, None)
            if isinstance(status, int) and (500 <= status < 600 or status == 429):
                return ErrorKind.NETWORK_ERROR
        return None


class ConnectionCodeRule(ErrorRule):
    """Connection reset / refused codes reported as ``code`` or ``errno``."""

    def _check(self, exc: BaseException) -> ErrorKind | None:
        code = getattr(exc, "code", None)
        if isinstance(code, str) and code in _RETRYABLE_CONNECTION_CODES:
            return ErrorKind.NETWORK_ERROR
        err = getattr(exc, "errno", None)
        if isinstance(err, int) and errno.errorcode.get(err) in _RETRYABLE_CONNECTION_CODES:
            return ErrorKind.NETWORK_ERROR
        return None


def build_rule_chain() -> ErrorRule:
    """Assemble the rules in priority order and return the head."""
    rules: list[ErrorRule] = [
        NetworkMarkerRule(),
        TimeoutRule(),
        StatusCodeRule(),
        ConnectionCodeRule(),
    ]
    for i in range(len(rules) - 1):
        rules[i].set_next(rules[i + 1])
    return rules[0]


_CHAIN = build_rule_chain()


def is_retryable(exc: BaseException) -> bool:
    """Return ``True`` if *exc* is a transient infrastructure failure."""
    return _CHAIN.evaluate(exc) is not None


def classify(exc: BaseException) -> DomainError:
    """Map *exc* onto the domain taxonomy.

    :class:`DomainError` instances pass through unchanged. Transient failures
    become :class:`NetworkError`; everything else is a :class:`ProcessingError`.
    """
    if isinstance(exc, DomainError):
        return exc
    context = {"error_type": type(exc).__name__, "original_message": str(exc)}
    if _CHAIN.evaluate(exc) is not None:
        error: DomainError = NetworkError(f"Network connection error: {exc}", context)
    else:
        error = ProcessingError(f"Unexpected automation failure: {exc}", context)
    error.__cause__ = exc
    return error


def build_should_retry(
    allow_missing_element: bool = False,
) -> Callable[[BaseException], bool]:
    """Return the retry predicate for a policy.

    With *allow_missing_element* a missing page element is retried too, since
    a row's controls may still be rendering. Login never allows it.
    """

    def should_retry(exc: BaseException) -> bool:
        if is_retryable(exc):
            return True
        if allow_missing_element and classify(exc).kind is ErrorKind.ELEMENT_NOT_FOUND:
            logger.debug("Retrying missing element: %s", exc)
            return True
        return False

    return should_retry
