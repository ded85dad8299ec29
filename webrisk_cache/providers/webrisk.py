"""Web Risk API backend built on google-cloud-webrisk."""

from __future__ import annotations

from typing import Mapping, Sequence

from dotenv import load_dotenv
from google.api_core import exceptions as google_exceptions
from google.cloud import webrisk_v1

from ..config import resolve_api_key
from ..errors import RemoteServiceError
from ..text import Messages
from ..threats import (
    DiffKind,
    DiffRequest,
    DiffResponse,
    RawHashes,
    SearchResult,
    ThreatCategory,
    ThreatRecord,
)

_THREAT_TYPES = {
    ThreatCategory.MALWARE: webrisk_v1.ThreatType.MALWARE,
    ThreatCategory.SOCIAL_ENGINEERING: webrisk_v1.ThreatType.SOCIAL_ENGINEERING,
    ThreatCategory.UNWANTED_SOFTWARE: webrisk_v1.ThreatType.UNWANTED_SOFTWARE,
}
_CATEGORIES_BY_TYPE = {value: key for key, value in _THREAT_TYPES.items()}

_RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}
_RETRYABLE_GRPC_CODES = {
    "UNAVAILABLE",
    "DEADLINE_EXCEEDED",
    "RESOURCE_EXHAUSTED",
    "INTERNAL",
    "ABORTED",
}


class WebRiskBackend:
    """Threat list client that calls the Web Risk API via the async gRPC client."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        client: object | None = None,
    ) -> None:
        load_dotenv()
        self.api_key = resolve_api_key(api_key)
        if client is None and (
            not self.api_key or self.api_key.strip().lower() == "your_api_key_here"
        ):
            raise RuntimeError(Messages.ERROR_API_KEY_MISSING)
        self._client = client

    def _get_client(self):
        # The async transport must be created inside the running event loop.
        if self._client is None:
            self._client = webrisk_v1.WebRiskServiceAsyncClient(
                client_options={"api_key": self.api_key}
            )
        return self._client

    async def compute_diff(self, request: DiffRequest) -> DiffResponse:
        proto_request = webrisk_v1.ComputeThreatListDiffRequest(
            threat_type=_THREAT_TYPES[request.category],
            version_token=request.version_token or b"",
            constraints=build_constraints(request.constraint),
        )
        try:
            response = await self._get_client().compute_threat_list_diff(
                request=proto_request
            )
        except google_exceptions.GoogleAPICallError as exc:
            raise _wrap_google_error(exc) from exc
        return diff_response_from_proto(response)

    async def search_hashes(
        self, prefix: bytes, categories: Sequence[ThreatCategory]
    ) -> SearchResult:
        proto_request = webrisk_v1.SearchHashesRequest(
            hash_prefix=prefix,
            threat_types=[_THREAT_TYPES[category] for category in categories],
        )
        try:
            response = await self._get_client().search_hashes(request=proto_request)
        except google_exceptions.GoogleAPICallError as exc:
            raise _wrap_google_error(exc) from exc
        return search_result_from_proto(response)

    async def aclose(self) -> None:
        if self._client is None:
            return
        transport = getattr(self._client, "transport", None)
        close = getattr(transport, "close", None)
        if close is not None:
            await close()


def build_constraints(
    constraint: Mapping[str, object] | None,
) -> webrisk_v1.ComputeThreatListDiffRequest.Constraints:
    values = dict(constraint or {})
    values.setdefault("supported_compressions", [webrisk_v1.CompressionType.RAW])
    return webrisk_v1.ComputeThreatListDiffRequest.Constraints(**values)


def diff_response_from_proto(response) -> DiffResponse:
    response_types = webrisk_v1.ComputeThreatListDiffResponse.ResponseType
    if response.response_type == response_types.RESET:
        kind = DiffKind.RESET
    elif response.response_type == response_types.DIFF:
        kind = DiffKind.DIFF
    else:
        raise RemoteServiceError(
            Messages.ERROR_RESPONSE_TYPE_UNKNOWN.format(value=response.response_type),
            retryable=True,
        )
    if response.additions.rice_hashes.encoded_data or response.removals.rice_indices.encoded_data:
        raise RemoteServiceError(Messages.ERROR_RICE_UNSUPPORTED, retryable=False)
    additions = [
        RawHashes(prefix_size=raw.prefix_size, raw_hashes=bytes(raw.raw_hashes))
        for raw in response.additions.raw_hashes
    ]
    return DiffResponse(
        kind=kind,
        new_version_token=bytes(response.new_version_token),
        checksum=bytes(response.checksum.sha256),
        recommended_next_diff=_timestamp_seconds(response.recommended_next_diff),
        additions=additions,
        removal_indices=list(response.removals.raw_indices.indices),
    )


def search_result_from_proto(response) -> SearchResult:
    threats = []
    for threat in response.threats:
        categories = frozenset(
            _CATEGORIES_BY_TYPE[threat_type]
            for threat_type in threat.threat_types
            if threat_type in _CATEGORIES_BY_TYPE
        )
        threats.append(
            ThreatRecord(
                full_hash=bytes(threat.hash_),
                categories=categories,
                expire_time=_timestamp_seconds(threat.expire_time) or 0.0,
            )
        )
    negative_expire_time = None
    if "negative_expire_time" in response:
        negative_expire_time = _timestamp_seconds(response.negative_expire_time)
    return SearchResult(threats=threats, negative_expire_time=negative_expire_time)


def _timestamp_seconds(value) -> float | None:
    if value is None:
        return None
    timestamp = getattr(value, "timestamp", None)
    if callable(timestamp):
        return float(timestamp())
    seconds = getattr(value, "seconds", None)
    if seconds is None:
        return None
    return float(seconds) + getattr(value, "nanos", 0) / 1e9


def _extract_status_code(exc: Exception) -> int | None:
    for attr in ("code", "status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    if response is not None:
        value = getattr(response, "status_code", None)
        if isinstance(value, int):
            return value
    return None


def _should_retry_google_error(exc: google_exceptions.GoogleAPICallError) -> bool:
    grpc_status = getattr(exc, "grpc_status_code", None)
    if grpc_status is not None and getattr(grpc_status, "name", None) in _RETRYABLE_GRPC_CODES:
        return True
    status = _extract_status_code(exc)
    if status in _RETRYABLE_STATUS_CODES:
        return True
    name = exc.__class__.__name__.lower()
    return any(token in name for token in ("unavailable", "timeout", "deadline", "toomany"))


def _wrap_google_error(exc: google_exceptions.GoogleAPICallError) -> RemoteServiceError:
    message = getattr(exc, "message", None) or str(exc)
    if "API key" in message:
        message = Messages.ERROR_API_KEY_INVALID
    else:
        message = f"{Messages.ERROR_WEBRISK_PREFIX}{message}"
    return RemoteServiceError(
        message,
        status_code=_extract_status_code(exc),
        retryable=_should_retry_google_error(exc),
    )
