"""webrisk-cache package initialization."""

from __future__ import annotations

from .cache import WebRiskCache
from .errors import (
    ChecksumMismatchError,
    InvalidArgumentError,
    RemoteServiceError,
    RetryExhaustedError,
    SyncExhaustedError,
    VerificationExhaustedError,
    WebRiskCacheError,
)
from .threats import HashLocation, ThreatCategory

__all__ = [
    "__version__",
    "ChecksumMismatchError",
    "HashLocation",
    "InvalidArgumentError",
    "RemoteServiceError",
    "RetryExhaustedError",
    "SyncExhaustedError",
    "ThreatCategory",
    "VerificationExhaustedError",
    "WebRiskCache",
    "WebRiskCacheError",
    "get_version",
]

__version__ = "0.3.0"


def get_version() -> str:
    """Return the current package version."""
    return __version__
