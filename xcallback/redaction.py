"""Redaction utilities for logging x-callback-url traffic.

Request URLs nest other URLs (``x-success``, ``x-error``, ``x-cancel``) inside
their query, so redaction recurses into values that are URLs themselves.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from .query import decode_pairs, encode

REDACTED = "<redacted>"
_MAX_DEPTH = 3

# Credential-bearing names that show up in OAuth-style callbacks and API hand-offs.
_SENSITIVE_KEY_RE = re.compile(r"token|secret|passw(?:or)?d|pwd|authorization|cookie|session|jwt|bearer|api[-_]?key")
# Matched whole only, so "author", "codec" or "keyword" stay readable.
_SENSITIVE_KEYS = frozenset({"auth", "code", "key", "sig", "signature"})


def is_sensitive_key(key: str) -> bool:
    k = (key or "").strip().lower()
    return bool(k) and (k in _SENSITIVE_KEYS or _SENSITIVE_KEY_RE.search(k) is not None)


def _looks_like_url(value: str) -> bool:
    head, sep, _rest = value.partition("://")
    return bool(sep) and head.isascii() and head[:1].isalpha() and all(c.isalnum() or c in "+-." for c in head)


def _redact_pairs(pairs: list[tuple[str, str]], depth: int) -> tuple[list[tuple[str, str]], bool]:
    out: list[tuple[str, str]] = []
    changed = False
    for k, v in pairs:
        if is_sensitive_key(k) and v:
            out.append((k, REDACTED))
            changed = True
        elif depth < _MAX_DEPTH and _looks_like_url(v):
            inner = _redact_url(v, depth + 1)
            changed = changed or inner != v
            out.append((k, inner))
        else:
            out.append((k, v))
    return out, changed


def _redact_url(url: str, depth: int) -> str:
    try:
        parts = urlsplit(url)
    except ValueError:
        return url

    changed = False
    netloc = parts.netloc
    query = parts.query
    fragment = parts.fragment

    if "@" in netloc:
        netloc = netloc.split("@", 1)[1]
        changed = True

    if query:
        pairs, redacted_any = _redact_pairs(decode_pairs(query), depth)
        if redacted_any:
            query = encode(pairs)
            changed = True

    if fragment and "=" in fragment:
        pairs, redacted_any = _redact_pairs(decode_pairs(fragment), depth)
        if redacted_any:
            fragment = encode(pairs)
            changed = True

    if not changed:
        return url
    return urlunsplit((parts.scheme, netloc, parts.path, query, fragment))


def redact_url(url: str) -> str:
    """Mask sensitive query values, including inside nested callback URLs.

    Returns the original URL unchanged when nothing needs redaction.
    """
    if not isinstance(url, str) or not url:
        return url
    return _redact_url(url, 0)


def redact_parameters(parameters: Mapping[str, Any] | None) -> dict[str, Any]:
    """Copy of a parameter map safe for logs."""
    out: dict[str, Any] = {}
    for k, v in (parameters or {}).items():
        if is_sensitive_key(str(k)) and v:
            out[k] = REDACTED
        elif isinstance(v, str) and _looks_like_url(v):
            out[k] = redact_url(v)
        else:
            out[k] = v
    return out


__all__ = ["REDACTED", "is_sensitive_key", "redact_parameters", "redact_url"]
