from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from .launcher import LaunchResult
from .redaction import redact_url

logger = logging.getLogger("xcallback.bridge")

HOST_BRIDGE_PROTOCOL_VERSION = "2026-10-01"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _import_websockets():
    try:
        import websockets  # type: ignore[import-not-found]

        return websockets
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError(
            "The WebSocket host bridge requires the 'websockets' Python package. "
            "Install it (pip install websockets) or use the system launcher."
        ) from exc


class WebSocketHostBridge:
    """Client side of a host environment reachable over a WebSocket.

    The host owns real URL launching. Messages (JSON text frames):

    - out ``{"type": "open", "id": n, "url": u}``; in ``{"type": "openResult", "id": n, "ok": bool, "error"?: str}``
    - in ``{"type": "openURL", "url": u}``: this process was opened with ``u``

    The asyncio loop runs on a daemon thread; ``open`` is a blocking call usable
    from any other thread. Inbound URLs are handed to ``on_open_url`` on a
    single worker thread so handlers may call ``open`` without deadlocking.
    """

    def __init__(
        self,
        url: str,
        *,
        on_open_url: Callable[[str], Any] | None = None,
        source_name: str | None = None,
        open_timeout: float = 5.0,
    ) -> None:
        self.url = url
        self.source_name = source_name
        self.open_timeout = max(0.1, float(open_timeout))
        self._on_open_url = on_open_url

        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._connected = threading.Event()

        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._inbound: ThreadPoolExecutor | None = None

        self._ws: Any | None = None
        self._last_error: str | None = None
        self._connected_at_ms: int | None = None
        self._opened_count = 0
        self._received_count = 0

        self._next_id = 1
        self._pending: dict[int, Future] = {}

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def set_on_open_url(self, callback: Callable[[str], Any] | None) -> None:
        with self._lock:
            self._on_open_url = callback

    def start(self, *, wait_timeout: float = 2.0) -> bool:
        """Start the bridge thread; returns whether it connected within wait_timeout."""
        if self._thread is not None and self._thread.is_alive():
            return self.is_connected()
        _import_websockets()

        self._stop.clear()
        self._connected.clear()
        self._inbound = ThreadPoolExecutor(max_workers=1, thread_name_prefix="xcallback-inbound")

        t = threading.Thread(target=self._run_thread, name="xcallback-host-bridge", daemon=True)
        self._thread = t
        t.start()
        return self.wait_for_connection(timeout=wait_timeout)

    def stop(self, *, timeout: float = 2.0) -> None:
        self._stop.set()
        loop = self._loop
        if loop is not None:
            with contextlib.suppress(Exception):
                asyncio.run_coroutine_threadsafe(self._shutdown_async(), loop).result(timeout=timeout)
        t = self._thread
        if t is not None:
            t.join(timeout=timeout)
        inbound = self._inbound
        if inbound is not None:
            inbound.shutdown(wait=False)

    def status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "url": self.url,
                "connected": self._ws is not None and self._connected.is_set(),
                "pending": len(self._pending),
                "opened": self._opened_count,
                "received": self._received_count,
                **({"connectedAtMs": self._connected_at_ms} if self._connected_at_ms else {}),
                **({"lastError": self._last_error} if self._last_error else {}),
            }

    def is_connected(self) -> bool:
        with self._lock:
            return self._ws is not None and self._connected.is_set()

    def wait_for_connection(self, *, timeout: float = 5.0) -> bool:
        try:
            return bool(self._connected.wait(timeout=max(0.0, float(timeout))))
        except Exception:
            return False

    # ─────────────────────────────────────────────────────────────────────────
    # URLLauncher
    # ─────────────────────────────────────────────────────────────────────────

    def open(self, url: str) -> LaunchResult:
        with self._lock:
            ws = self._ws
            loop = self._loop
            if ws is None or loop is None:
                return LaunchResult.missing("host bridge is not connected")
            req_id = self._next_id
            self._next_id += 1
            fut: Future = Future()
            self._pending[req_id] = fut

        msg = {"type": "open", "id": req_id, "url": url}
        try:
            asyncio.run_coroutine_threadsafe(self._ws_send_json(ws, msg), loop).result(timeout=self.open_timeout)
            ok, error = fut.result(timeout=self.open_timeout)
        except Exception as exc:  # noqa: BLE001
            logger.info("bridge_open_failed url=%s error=%s", redact_url(url), str(exc) or type(exc).__name__)
            return LaunchResult.missing(f"host bridge open failed: {str(exc) or type(exc).__name__}")
        finally:
            with self._lock:
                self._pending.pop(req_id, None)

        if not ok:
            return LaunchResult.missing(error or "host could not open URL")
        with self._lock:
            self._opened_count += 1
        return LaunchResult.ok("opened via host bridge")

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    def _run_thread(self) -> None:
        asyncio.run(self._run_async())

    async def _run_async(self) -> None:
        websockets = _import_websockets()
        backoff_s = 0.25
        max_backoff_s = 5.0
        self._loop = asyncio.get_running_loop()

        while not self._stop.is_set():
            try:
                async with websockets.connect(self.url, ping_interval=None, open_timeout=2.0) as ws:
                    with self._lock:
                        self._ws = ws
                        self._last_error = None
                        self._connected_at_ms = _now_ms()
                    backoff_s = 0.25

                    hello: dict[str, Any] = {
                        "type": "hello",
                        "protocolVersion": HOST_BRIDGE_PROTOCOL_VERSION,
                        "pid": int(os.getpid()),
                    }
                    if self.source_name:
                        hello["source"] = self.source_name
                    await self._ws_send_json(ws, hello)
                    self._connected.set()
                    logger.info("bridge_connected url=%s", self.url)

                    async for raw in ws:
                        try:
                            msg = json.loads(raw)
                        except ValueError:
                            continue
                        self._on_message(msg)
            except Exception as exc:  # noqa: BLE001
                with self._lock:
                    self._last_error = str(exc) or type(exc).__name__
            self._disconnect()
            if self._stop.is_set():
                break
            await asyncio.sleep(backoff_s)
            backoff_s = min(backoff_s * 1.6, max_backoff_s)

    async def _shutdown_async(self) -> None:
        with self._lock:
            ws = self._ws
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()
        self._disconnect()

    def _disconnect(self) -> None:
        with self._lock:
            was_connected = self._ws is not None
            self._ws = None
            self._connected.clear()
            pending = list(self._pending.items())
            self._pending.clear()
        for _req_id, fut in pending:
            with contextlib.suppress(Exception):
                if not fut.done():
                    fut.set_exception(ConnectionError("host bridge disconnected"))
        if was_connected:
            logger.info("bridge_disconnected url=%s", self.url)

    def _on_message(self, msg: Any) -> None:
        if not isinstance(msg, dict):
            return
        mtype = msg.get("type")

        if mtype == "openResult":
            raw_id = msg.get("id")
            try:
                req_id = int(raw_id)
            except (TypeError, ValueError):
                return
            with self._lock:
                fut = self._pending.get(req_id)
            if fut is None:
                return
            err = msg.get("error")
            with contextlib.suppress(Exception):
                fut.set_result((bool(msg.get("ok")), err if isinstance(err, str) else None))
            return

        if mtype == "openURL":
            url = msg.get("url")
            if not isinstance(url, str) or not url:
                return
            with self._lock:
                callback = self._on_open_url
                inbound = self._inbound
                self._received_count += 1
            if callback is None or inbound is None:
                logger.warning("bridge_inbound_dropped reason=no_handler url=%s", redact_url(url))
                return
            inbound.submit(self._deliver, callback, url)
            return

    @staticmethod
    def _deliver(callback: Callable[[str], Any], url: str) -> None:
        try:
            callback(url)
        except Exception:
            logger.exception("bridge_inbound_failed url=%s", redact_url(url))

    async def _ws_send_json(self, ws, payload: dict[str, Any]) -> None:  # type: ignore[no-untyped-def]
        await ws.send(json.dumps(payload, ensure_ascii=False))


__all__ = ["HOST_BRIDGE_PROTOCOL_VERSION", "WebSocketHostBridge"]
