"""Exceptions raised by the Web Risk cache."""

from __future__ import annotations

from typing import Sequence


class WebRiskCacheError(Exception):
    """Base class for every error raised by webrisk_cache."""


class InvalidArgumentError(WebRiskCacheError, ValueError):
    """Raised when a public operation receives input it cannot interpret."""


class RemoteServiceError(WebRiskCacheError):
    """A call to the remote Web Risk service failed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class RetryExhaustedError(WebRiskCacheError):
    """Every attempt allowed by a retry policy failed."""

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        super().__init__(f"gave up after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class SyncExhaustedError(WebRiskCacheError):
    """A caller-initiated diff request could not reach the service."""

    def __init__(self, categories: Sequence[object], message: str) -> None:
        super().__init__(message)
        self.categories = tuple(categories)


class ChecksumMismatchError(WebRiskCacheError):
    """The local database never converged on the server-declared checksum."""

    def __init__(self, category: object, expected: bytes, actual: bytes) -> None:
        super().__init__(
            f"{category}: checksum {actual.hex()} does not match server {expected.hex()}"
        )
        self.category = category
        self.expected = expected
        self.actual = actual


class VerificationExhaustedError(WebRiskCacheError):
    """Full-hash verification for a prefix could not be completed."""

    def __init__(self, prefix: bytes, cause: BaseException | None = None) -> None:
        super().__init__(f"verification of prefix {prefix.hex()} failed: {cause}")
        self.prefix = prefix
        self.cause = cause
