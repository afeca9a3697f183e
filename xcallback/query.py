"""Query-string codec for x-callback-url parameters.

Parameters travel as a flat ``str -> str`` mapping. Encoding keeps only the
RFC 3986 unreserved characters literal, so nested callback URLs survive being
carried as a single query value (``me://x`` becomes ``me%3A%2F%2Fx``).

Decoding is lenient by contract: malformed pairs are skipped, never raised.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from urllib.parse import quote, unquote

# Mapping used for action arguments and response payloads.
Parameters = dict[str, str]

_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def _encode_component(value: str) -> str:
    return quote(str(value), safe="")


def _decode_component(raw: str) -> str | None:
    if _BAD_ESCAPE_RE.search(raw):
        return None
    try:
        return unquote(raw, encoding="utf-8", errors="strict")
    except UnicodeDecodeError:
        return None


def encode(parameters: Mapping[str, str] | Iterable[tuple[str, str]] | None) -> str:
    """Encode parameters as ``k1=v1&k2=v2`` (insertion order kept)."""
    if not parameters:
        return ""
    items = parameters.items() if isinstance(parameters, Mapping) else parameters
    return "&".join(f"{_encode_component(k)}={_encode_component(v)}" for k, v in items)


def decode_pairs(query: str | None) -> list[tuple[str, str]]:
    """Decode a query string into ordered pairs, skipping malformed ones."""
    if not query:
        return []
    if query.startswith("?"):
        query = query[1:]

    pairs: list[tuple[str, str]] = []
    for chunk in query.split("&"):
        if not chunk or "=" not in chunk:
            continue
        raw_key, raw_value = chunk.split("=", 1)
        key = _decode_component(raw_key)
        value = _decode_component(raw_value)
        if not key or value is None:
            continue
        pairs.append((key, value))
    return pairs


def decode(query: str | None) -> Parameters:
    """Decode a query string into parameters; the last duplicate key wins."""
    return dict(decode_pairs(query))


__all__ = ["Parameters", "decode", "decode_pairs", "encode"]
