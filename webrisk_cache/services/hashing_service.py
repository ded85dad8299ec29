"""URL canonicalization and the hash expressions looked up for a URL."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from urllib.parse import unquote_to_bytes

from ..errors import InvalidArgumentError
from ..text import Messages

_SCHEME_RE = re.compile(r"^([A-Za-z][A-Za-z0-9+.-]*)://")
_PORT_RE = re.compile(r":\d*$")
_IP_PART_RE = re.compile(r"0x[0-9a-f]*|[0-9]+")
_MAX_HOST_SUFFIXES = 5
_MAX_PATH_PREFIXES = 4
_MAX_UNESCAPE_ROUNDS = 1024


@dataclass(frozen=True, slots=True)
class CanonicalURL:
    scheme: str
    host: str
    path: str
    query: str | None
    is_ip: bool = False

    def __str__(self) -> str:
        url = f"{self.scheme}://{self.host}{self.path}"
        if self.query is not None:
            url += f"?{self.query}"
        return url


def canonicalize(uri: str) -> CanonicalURL:
    raw = uri.strip()
    for char in ("\t", "\r", "\n"):
        raw = raw.replace(char, "")
    raw = raw.split("#", 1)[0]
    if not raw:
        raise InvalidArgumentError(Messages.ERROR_URI_EMPTY)
    text = _unescape(raw)

    match = _SCHEME_RE.match(text)
    if match:
        scheme = match.group(1).lower()
        rest = text[match.end() :]
    else:
        scheme = "http"
        rest = text

    split_at = len(rest)
    for marker in ("/", "?"):
        idx = rest.find(marker)
        if idx != -1:
            split_at = min(split_at, idx)
    authority, remainder = rest[:split_at], rest[split_at:]
    if "?" in remainder:
        path, query = remainder.split("?", 1)
    else:
        path, query = remainder, None

    host = authority.rsplit("@", 1)[-1]
    host = _PORT_RE.sub("", host)
    host = re.sub(r"\.{2,}", ".", host.strip(".")).lower()
    if not host:
        raise InvalidArgumentError(Messages.ERROR_URI_HOST_MISSING.format(uri=uri))
    ip = _normalize_ipv4(host)

    return CanonicalURL(
        scheme=scheme,
        host=_escape(ip or host),
        path=_escape(_normalize_path(path)),
        query=None if query is None else _escape(query),
        is_ip=ip is not None,
    )


def host_suffixes(url: CanonicalURL) -> list[str]:
    if url.is_ip:
        return [url.host]
    parts = url.host.split(".")
    hosts = [url.host]
    start = max(1, len(parts) - _MAX_HOST_SUFFIXES)
    for idx in range(start, len(parts) - 1):
        hosts.append(".".join(parts[idx:]))
    return _unique(hosts)


def path_prefixes(url: CanonicalURL) -> list[str]:
    paths = []
    if url.query is not None:
        paths.append(f"{url.path}?{url.query}")
    paths.append(url.path)
    current = "/"
    paths.append(current)
    for component in url.path.split("/")[1:-1][: _MAX_PATH_PREFIXES - 1]:
        current = f"{current}{component}/"
        paths.append(current)
    return _unique(paths)


def url_expressions(uri: str) -> list[str]:
    """Host-suffix/path-prefix expressions for ``uri``, most specific first."""
    url = canonicalize(uri)
    return _unique(
        f"{host}{path}" for host in host_suffixes(url) for path in path_prefixes(url)
    )


def derive_candidate_hashes(uri: str) -> list[bytes]:
    return [
        hashlib.sha256(expression.encode("latin-1")).digest()
        for expression in url_expressions(uri)
    ]


def _unescape(text: str) -> str:
    data = text.encode("utf-8")
    for _ in range(_MAX_UNESCAPE_ROUNDS):
        unescaped = unquote_to_bytes(data)
        if unescaped == data:
            break
        data = unescaped
    # latin-1 keeps a one-to-one mapping between bytes and characters.
    return data.decode("latin-1")


def _escape(text: str) -> str:
    out = []
    for char in text:
        code = ord(char)
        if code <= 32 or code >= 127 or char in "#%":
            out.append(f"%{code:02X}")
        else:
            out.append(char)
    return "".join(out)


def _normalize_path(path: str) -> str:
    trailing = path.endswith(("/", "/.", "/.."))
    segments: list[str] = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)
    normalized = "/" + "/".join(segments)
    if trailing and segments:
        normalized += "/"
    return normalized


def _normalize_ipv4(host: str) -> str | None:
    parts = host.split(".")
    if not 1 <= len(parts) <= 4:
        return None
    values = []
    for part in parts:
        if not _IP_PART_RE.fullmatch(part):
            return None
        try:
            if part.startswith("0x"):
                values.append(int(part[2:] or "0", 16))
            elif len(part) > 1 and part.startswith("0"):
                values.append(int(part, 8))
            else:
                values.append(int(part))
        except ValueError:
            return None
    head, last = values[:-1], values[-1]
    if any(value > 255 for value in head) or last >= 256 ** (5 - len(values)):
        return None
    number = last
    for idx, value in enumerate(head):
        number += value << (8 * (3 - idx))
    return ".".join(str((number >> shift) & 0xFF) for shift in (24, 16, 8, 0))


def _unique(items) -> list[str]:
    seen: set[str] = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result
