from __future__ import annotations

import os
from dataclasses import dataclass


def _env_float(name: str, default: float | None) -> float | None:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = (os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return default


@dataclass
class CallbackConfig:
    # Scheme other apps use to call back into this process (e.g. "myapp").
    callback_scheme: str | None = None
    # Friendly name sent as x-source.
    source_name: str | None = None
    # None/0 keeps pending requests until answered.
    pending_ttl_s: float | None = None
    # Dispatch requests aimed at our own scheme without the launcher.
    loopback: bool = True
    launch_timeout_s: float = 5.0
    bridge_url: str | None = None

    def __post_init__(self) -> None:
        self.callback_scheme = self.normalize_scheme(self.callback_scheme)
        self.source_name = (self.source_name or "").strip() or None
        if self.pending_ttl_s is not None and self.pending_ttl_s <= 0:
            self.pending_ttl_s = None

    @staticmethod
    def normalize_scheme(raw: str | None) -> str | None:
        scheme = (raw or "").strip()
        if scheme.endswith("://"):
            scheme = scheme[:-3]
        elif scheme.endswith(":"):
            scheme = scheme[:-1]
        return scheme.lower() or None

    @classmethod
    def from_env(cls) -> CallbackConfig:
        return cls(
            callback_scheme=os.environ.get("XCU_CALLBACK_SCHEME"),
            source_name=os.environ.get("XCU_SOURCE_NAME"),
            pending_ttl_s=_env_float("XCU_PENDING_TTL", None),
            loopback=_env_flag("XCU_LOOPBACK", True),
            launch_timeout_s=_env_float("XCU_LAUNCH_TIMEOUT", 5.0) or 5.0,
            bridge_url=(os.environ.get("XCU_BRIDGE_URL") or "").strip() or None,
        )

    def is_own_scheme(self, scheme: str | None) -> bool:
        return bool(self.callback_scheme) and (scheme or "").lower() == self.callback_scheme


__all__ = ["CallbackConfig"]
