"""
Manager: composition root for x-callback-url.

Owns the action registry, the pending request table, the request builder and
the inbound dispatcher for one process identity. A lazily created default
manager backs the module-level ``perform_action`` / ``register_action``
helpers; tests and embedders build their own instances.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping

from .builder import OutboundRequest, RequestBuilder
from .config import CallbackConfig
from .dispatcher import InboundDispatcher
from .errors import TargetNotInstalled
from .launcher import LaunchResult, SystemURLLauncher, URLLauncher
from .pending import PendingRequestTable
from .protocol import RESPONSE_CANCEL, RESPONSE_ERROR, RESPONSE_SUCCESS
from .redaction import redact_url
from .registry import ActionHandler, ActionRegistry, CancelCallback, FailureCallback, SuccessCallback

logger = logging.getLogger("xcallback.manager")


class Manager:
    """Public entry point: ``perform_action``, ``register_action``, ``handle_open_url``."""

    def __init__(
        self,
        config: CallbackConfig | None = None,
        *,
        launcher: URLLauncher | None = None,
        registry: ActionRegistry | None = None,
        pending: PendingRequestTable | None = None,
        builder: RequestBuilder | None = None,
    ) -> None:
        self.config = config or CallbackConfig.from_env()
        self.launcher: URLLauncher = launcher or SystemURLLauncher(timeout=self.config.launch_timeout_s)
        self.registry = registry if registry is not None else ActionRegistry()
        self.pending = pending if pending is not None else PendingRequestTable(ttl_s=self.config.pending_ttl_s)
        self.builder = builder or RequestBuilder(
            callback_scheme=self.config.callback_scheme,
            source_name=self.config.source_name,
        )
        self.dispatcher = InboundDispatcher(
            self.registry,
            self.pending,
            self.open_url,
            source_name=self.config.source_name,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Actions
    # ─────────────────────────────────────────────────────────────────────────

    def register_action(self, action: str, handler: ActionHandler) -> None:
        self.registry.register(action, handler)

    def unregister_action(self, action: str) -> None:
        self.registry.unregister(action)

    def perform_action(
        self,
        action: str,
        scheme: str,
        parameters: Mapping[str, str] | None = None,
        *,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        on_cancel: CancelCallback | None = None,
    ) -> str | None:
        """
        Ask the application behind ``scheme`` to perform ``action``.

        Args:
            action: Action to perform (request URL host)
            scheme: URL scheme of the target application
            parameters: Action arguments
            on_success: Called with returned parameters (or None)
            on_failure: Called with a FailureInfo
            on_cancel: Called when the user cancels in the target

        Returns:
            The request id when a response is expected, None for fire-and-forget.

        Raises:
            CallbackSchemeNotDefined: callbacks given but no callback scheme configured
            RequestURLConstructionFailed: invalid action or scheme
            TargetNotInstalled: nothing could open the request URL
        """
        response_types = [
            rt
            for rt, cb in (
                (RESPONSE_SUCCESS, on_success),
                (RESPONSE_ERROR, on_failure),
                (RESPONSE_CANCEL, on_cancel),
            )
            if cb is not None
        ]
        request = self.builder.build(
            action,
            scheme,
            parameters,
            response_types=response_types,
            taken_ids=self.pending.request_ids() if response_types else (),
        )

        # Insert before launching: the response may arrive on another thread
        # before open_url returns.
        if request.expects_response:
            self.pending.create(
                request.request_id,
                request.action,
                on_success=on_success,
                on_failure=on_failure,
                on_cancel=on_cancel,
            )

        url = str(request.url)
        try:
            result = self.open_url(url)
        except Exception:
            self.pending.discard(request.request_id)
            raise

        if not result.opened:
            self.pending.discard(request.request_id)
            logger.info("perform_failed action=%s scheme=%s reason=%s", request.action, scheme, result.message)
            raise TargetNotInstalled(request.url.scheme, result.message or None)

        logger.info(
            "perform action=%s scheme=%s request_id=%s callbacks=%s",
            request.action,
            request.url.scheme,
            request.request_id if request.expects_response else "-",
            ",".join(response_types) or "-",
        )
        return request.request_id if request.expects_response else None

    def build_request(
        self,
        action: str,
        scheme: str,
        parameters: Mapping[str, str] | None = None,
    ) -> OutboundRequest:
        """Build a fire-and-forget request without launching it."""
        return self.builder.build(action, scheme, parameters)

    # ─────────────────────────────────────────────────────────────────────────
    # URL plumbing
    # ─────────────────────────────────────────────────────────────────────────

    def open_url(self, url: str) -> LaunchResult:
        """Launch a URL, short-circuiting URLs aimed at this process."""
        if self.config.loopback and self.config.is_own_scheme(url.split(":", 1)[0]):
            logger.debug("loopback url=%s", redact_url(url))
            self.dispatcher.handle_open_url(url)
            return LaunchResult.ok("loopback")
        return self.launcher.open(url)

    def handle_open_url(self, url: str) -> bool:
        """Entry point for the host: this process was opened with ``url``."""
        return self.dispatcher.handle_open_url(url)


_default_lock = threading.Lock()
_default_manager: Manager | None = None


def get_default_manager() -> Manager:
    global _default_manager
    with _default_lock:
        if _default_manager is None:
            _default_manager = Manager()
        return _default_manager


def set_default_manager(manager: Manager | None) -> None:
    global _default_manager
    with _default_lock:
        _default_manager = manager


def perform_action(
    action: str,
    scheme: str,
    parameters: Mapping[str, str] | None = None,
    *,
    on_success: SuccessCallback | None = None,
    on_failure: FailureCallback | None = None,
    on_cancel: CancelCallback | None = None,
) -> str | None:
    return get_default_manager().perform_action(
        action,
        scheme,
        parameters,
        on_success=on_success,
        on_failure=on_failure,
        on_cancel=on_cancel,
    )


def register_action(action: str, handler: ActionHandler) -> None:
    get_default_manager().register_action(action, handler)


def unregister_action(action: str) -> None:
    get_default_manager().unregister_action(action)


def handle_open_url(url: str) -> bool:
    return get_default_manager().handle_open_url(url)


__all__ = [
    "Manager",
    "get_default_manager",
    "handle_open_url",
    "perform_action",
    "register_action",
    "set_default_manager",
    "unregister_action",
]
