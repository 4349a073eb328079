from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines custom exceptions for error handling in the llms package.
"""


class ProviderError(Exception):
    """Base exception for all provider-related errors."""

    pass


class ProviderConfigurationError(ProviderError):
    pass


class ProviderRetryableError(ProviderError):
    """
    Network-level failures: timeouts, refused or reset connections.
    """

    pass


class ProviderTimeoutError(ProviderRetryableError):
    """Raised when one attempt exceeds its timeout budget."""

    pass


class ProviderTransportError(ProviderRetryableError):
    """Network-level failure (connection refused/reset, DNS, broken stream)."""

    pass


class ProviderHTTPError(ProviderError):
    """
    The provider answered with a non-2xx status. Any status is retried
    while attempts remain.
    """

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Provider API error: {status_code}")


class ProviderInvalidResponseError(ProviderError):
    """
    The provider returned a 2xx response we couldn't parse or validate.
    It counts as a failed attempt.
    """

    pass


class ProviderCancelledError(ProviderError):
    """Raised when an in-flight request is cancelled by the caller."""

    pass


class SessionError(Exception):
    """Raised for invalid session lifecycle operations."""

    pass


class SessionNotFoundError(SessionError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class AdmissionDeniedError(Exception):
    """Raised when an admission gate refuses a call."""

    def __init__(self, wait_time_s: int, *, action: str | None = None) -> None:
        self.wait_time_s = wait_time_s
        self.action = action
        super().__init__(f"Admission denied; retry in {wait_time_s}s")


class ProcessingError(Exception):
    """Local formatting/validation failure while processing streamed content."""

    pass


def is_retryable(error: Exception) -> bool:
    """
    Return True when `error` is worth another attempt.

    Every provider failure is retried; only bad configuration and
    cancellation stop the loop early.
    """
    if isinstance(error, (ProviderConfigurationError, ProviderCancelledError)):
        return False
    return isinstance(error, ProviderError)


def user_message(error: BaseException) -> str:
    """
    Map an exception to the text shown to an end user.

    Provider internals are never leaked; cancellation produces no message.
    """
    if isinstance(error, AdmissionDeniedError):
        return (
            f"Too many attempts. Please try again in {error.wait_time_s} seconds."
        )
    if isinstance(error, ProviderCancelledError):
        return ""
    if isinstance(error, SessionNotFoundError):
        return "This conversation is no longer available. Please start a new one."
    return "The tutor is unavailable right now. Please try again."
