"""Immutable URL values for x-callback-url requests and responses."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from .errors import RequestURLConstructionFailed
from .protocol import XCU_HOST
from .query import Parameters, decode_pairs, encode

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")
_HOST_FORBIDDEN = frozenset("/?#@ \t\r\n")
_PATH_FORBIDDEN = frozenset("?# \t\r\n")


def is_valid_scheme(scheme: str) -> bool:
    return bool(scheme) and _SCHEME_RE.match(scheme) is not None


@dataclass(frozen=True, slots=True)
class CallbackURL:
    """``scheme://host/path?query`` with the query kept as ordered pairs.

    Values are never mutated; ``with_parameters`` returns a new URL.
    """

    scheme: str
    host: str
    path: str = ""
    query: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    @classmethod
    def build(
        cls,
        scheme: str,
        host: str,
        path: str = "",
        parameters: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
    ) -> CallbackURL:
        """Validate components and build a URL.

        Raises:
            RequestURLConstructionFailed: invalid scheme or host
        """
        scheme = (scheme or "").strip()
        if not is_valid_scheme(scheme):
            raise RequestURLConstructionFailed(f"invalid scheme {scheme!r}", scheme=scheme, action=host)
        if not host:
            raise RequestURLConstructionFailed("empty host", scheme=scheme, action=host)
        if any(ch in _HOST_FORBIDDEN for ch in host):
            raise RequestURLConstructionFailed(f"invalid host {host!r}", scheme=scheme, action=host)
        if any(ch in _PATH_FORBIDDEN for ch in path):
            raise RequestURLConstructionFailed(f"invalid path {path!r}", scheme=scheme, action=host)
        if path and not path.startswith("/"):
            path = "/" + path
        items = parameters.items() if isinstance(parameters, Mapping) else (parameters or ())
        return cls(scheme=scheme, host=host, path=path, query=tuple((str(k), str(v)) for k, v in items))

    @classmethod
    def parse(cls, url: str) -> CallbackURL | None:
        """Parse a URL string; returns None when it has no scheme."""
        if not isinstance(url, str) or not url.strip():
            return None
        try:
            parts = urlsplit(url.strip())
        except ValueError:
            return None
        if not is_valid_scheme(parts.scheme):
            return None
        return cls(
            scheme=parts.scheme,
            host=parts.netloc,
            path=parts.path,
            query=tuple(decode_pairs(parts.query)),
        )

    @property
    def parameters(self) -> Parameters:
        return dict(self.query)

    @property
    def is_callback_host(self) -> bool:
        return self.host.lower() == XCU_HOST

    @property
    def last_path_component(self) -> str:
        segments = [seg for seg in self.path.split("/") if seg]
        return segments[-1] if segments else ""

    def get(self, key: str, default: str | None = None) -> str | None:
        # Last occurrence wins, like decode().
        for k, v in reversed(self.query):
            if k == key:
                return v
        return default

    def with_parameters(self, parameters: Mapping[str, str] | None) -> CallbackURL:
        """Return a copy with parameters appended (existing keys replaced)."""
        if not parameters:
            return self
        extra = {str(k): str(v) for k, v in parameters.items()}
        kept = tuple((k, v) for k, v in self.query if k not in extra)
        return CallbackURL(self.scheme, self.host, self.path, kept + tuple(extra.items()))

    def __str__(self) -> str:
        base = f"{self.scheme}://{self.host}{self.path}"
        query = encode(self.query)
        return f"{base}?{query}" if query else base


__all__ = ["CallbackURL", "is_valid_scheme"]
