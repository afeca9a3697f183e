"""Pending request table: request id -> completion callbacks.

An entry is inserted before its request URL is launched and popped exactly
once when the matching response arrives. ``pop`` is atomic, so two threads
delivering the same response URL cannot both receive the entry.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from .errors import FailureInfo
from .query import Parameters
from .registry import CancelCallback, FailureCallback, SuccessCallback

logger = logging.getLogger("xcallback.pending")


def _noop_success(_parameters: Parameters | None) -> None:
    return None


def _noop_failure(_failure: FailureInfo) -> None:
    return None


def _noop_cancel() -> None:
    return None


@dataclass(slots=True)
class PendingRequest:
    request_id: str
    action: str
    on_success: SuccessCallback = _noop_success
    on_failure: FailureCallback = _noop_failure
    on_cancel: CancelCallback = _noop_cancel
    created_at: float = field(default_factory=time.monotonic)

    @classmethod
    def create(
        cls,
        request_id: str,
        action: str,
        *,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        on_cancel: CancelCallback | None = None,
        created_at: float | None = None,
    ) -> PendingRequest:
        return cls(
            request_id=request_id,
            action=action,
            on_success=on_success or _noop_success,
            on_failure=on_failure or _noop_failure,
            on_cancel=on_cancel or _noop_cancel,
            created_at=time.monotonic() if created_at is None else created_at,
        )


class PendingRequestTable:
    """Outstanding requests awaiting a response.

    Entries never expire unless ``ttl_s`` is set; expired entries are purged
    lazily on access and their callbacks are not invoked.
    """

    def __init__(self, *, ttl_s: float | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, PendingRequest] = {}
        self._ttl_s = ttl_s if ttl_s and ttl_s > 0 else None
        self._clock = clock

    @property
    def ttl_s(self) -> float | None:
        return self._ttl_s

    def add(self, entry: PendingRequest) -> None:
        with self._lock:
            self._purge_locked()
            if entry.request_id in self._entries:
                raise KeyError(f"Duplicate pending request id: {entry.request_id}")
            self._entries[entry.request_id] = entry

    def create(
        self,
        request_id: str,
        action: str,
        *,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        on_cancel: CancelCallback | None = None,
    ) -> PendingRequest:
        """Build an entry stamped with this table's clock and insert it."""
        entry = PendingRequest.create(
            request_id,
            action,
            on_success=on_success,
            on_failure=on_failure,
            on_cancel=on_cancel,
            created_at=self._clock(),
        )
        self.add(entry)
        return entry

    def pop(self, request_id: str) -> PendingRequest | None:
        """Remove and return the entry, or None if unknown or already resolved."""
        with self._lock:
            self._purge_locked()
            return self._entries.pop(request_id, None)

    def discard(self, request_id: str) -> bool:
        return self.pop(request_id) is not None

    def get(self, request_id: str) -> PendingRequest | None:
        with self._lock:
            self._purge_locked()
            return self._entries.get(request_id)

    def request_ids(self) -> list[str]:
        with self._lock:
            self._purge_locked()
            return list(self._entries.keys())

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_locked()

    def __contains__(self, request_id: object) -> bool:
        return isinstance(request_id, str) and self.get(request_id) is not None

    def __len__(self) -> int:
        with self._lock:
            self._purge_locked()
            return len(self._entries)

    def _purge_locked(self) -> int:
        if self._ttl_s is None or not self._entries:
            return 0
        cutoff = self._clock() - self._ttl_s
        expired = [rid for rid, entry in self._entries.items() if entry.created_at <= cutoff]
        for rid in expired:
            entry = self._entries.pop(rid)
            logger.info("pending_expired request_id=%s action=%s", rid, entry.action)
        return len(expired)


__all__ = ["PendingRequest", "PendingRequestTable"]
