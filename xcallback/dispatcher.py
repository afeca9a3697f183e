"""
Inbound URL dispatch.

Every URL this process is opened with lands in ``InboundDispatcher.handle_open_url``:

- host ``x-callback-url``: a response to one of our requests; it is correlated
  through the pending table and exactly one completion callback runs.
- any other host: a request for a local action; it is routed through the
  action registry and the handler answers via the caller's callback URLs.

Unroutable or malformed URLs are logged and dropped, never raised.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from .errors import CallbackError, ErrorCode, FailureInfo, as_failure, error_parameters
from .launcher import LaunchResult
from .pending import PendingRequestTable
from .protocol import (
    CANCEL_KEY,
    ERROR_CODE_KEY,
    ERROR_KEY,
    ERROR_MESSAGE_KEY,
    LEGACY_REQUEST_ID_KEY,
    REQUEST_ID_KEY,
    RESPONSE_CANCEL,
    RESPONSE_ERROR,
    RESPONSE_SUCCESS,
    RESPONSE_TYPE_KEY,
    RESPONSE_TYPES,
    SOURCE_KEY,
    SUCCESS_KEY,
    is_reserved_key,
)
from .query import Parameters
from .redaction import redact_parameters, redact_url
from .registry import ActionRegistry
from .urls import CallbackURL

logger = logging.getLogger("xcallback.dispatcher")

URLOpener = Callable[[str], LaunchResult]


@dataclass(frozen=True, slots=True)
class InboundResponse:
    url: CallbackURL
    response_type: str
    request_id: str | None
    parameters: Parameters = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class InboundRequest:
    url: CallbackURL
    action: str
    parameters: Parameters = field(default_factory=dict)
    source: str | None = None
    success_url: CallbackURL | None = None
    error_url: CallbackURL | None = None
    cancel_url: CallbackURL | None = None


def visible_parameters(parameters: Parameters) -> Parameters:
    """Parameters minus reserved x-callback-url keys."""
    return {k: v for k, v in parameters.items() if not is_reserved_key(k)}


def _response_type(url: CallbackURL) -> str:
    # An explicit responseType outranks the path, which may just echo the action name.
    declared = (url.get(RESPONSE_TYPE_KEY) or "").strip().lower()
    if declared in RESPONSE_TYPES:
        return declared
    last = url.last_path_component.lower()
    if last in RESPONSE_TYPES:
        return last
    return RESPONSE_SUCCESS


def _action_name(url: CallbackURL) -> str:
    path = url.path.strip("/")
    if url.host and path:
        return f"{url.host}/{path}"
    return url.host or path


def _callback_url(parameters: Parameters, key: str) -> CallbackURL | None:
    raw = parameters.get(key)
    if not raw:
        return None
    parsed = CallbackURL.parse(raw)
    if parsed is None:
        logger.warning("callback_url_invalid key=%s url=%s", key, redact_url(raw))
    return parsed


def parse_inbound(url: str) -> InboundResponse | InboundRequest | None:
    """Classify an inbound URL; None when it cannot be parsed."""
    parsed = CallbackURL.parse(url)
    if parsed is None:
        return None
    params = parsed.parameters

    if parsed.is_callback_host:
        request_id = params.get(REQUEST_ID_KEY) or params.get(LEGACY_REQUEST_ID_KEY) or None
        return InboundResponse(
            url=parsed,
            response_type=_response_type(parsed),
            request_id=request_id,
            parameters=params,
        )

    return InboundRequest(
        url=parsed,
        action=_action_name(parsed),
        parameters=visible_parameters(params),
        source=params.get(SOURCE_KEY),
        success_url=_callback_url(params, SUCCESS_KEY),
        error_url=_callback_url(params, ERROR_KEY),
        cancel_url=_callback_url(params, CANCEL_KEY),
    )


def failure_from_response(parameters: Parameters) -> FailureInfo:
    raw_code = (parameters.get(ERROR_CODE_KEY) or "").strip()
    message = parameters.get(ERROR_MESSAGE_KEY) or ""
    try:
        code = int(raw_code)
    except ValueError:
        logger.warning("error_response_missing_code raw=%r", raw_code[:32])
        return CallbackError.with_code(
            ErrorCode.MISSING_ERROR_CODE,
            message or f"Error response without a valid {ERROR_CODE_KEY}",
        )
    return CallbackError(code=code, message=message)


class InboundDispatcher:
    """Routes inbound URLs to pending callbacks or registered action handlers."""

    def __init__(
        self,
        registry: ActionRegistry,
        pending: PendingRequestTable,
        opener: URLOpener,
        *,
        source_name: str | None = None,
    ) -> None:
        self.registry = registry
        self.pending = pending
        self._opener = opener
        self.source_name = source_name

    def handle_open_url(self, url: str) -> bool:
        """Dispatch a URL this process was opened with.

        Returns:
            True if a callback or handler was invoked, False if dropped.
        """
        inbound = parse_inbound(url)
        if inbound is None:
            logger.warning("inbound_dropped reason=unparseable url=%s", redact_url(str(url)))
            return False
        if isinstance(inbound, InboundResponse):
            return self.dispatch_response(inbound)
        return self.dispatch_request(inbound)

    # ─────────────────────────────────────────────────────────────────────────
    # Responses
    # ─────────────────────────────────────────────────────────────────────────

    def dispatch_response(self, response: InboundResponse) -> bool:
        if not response.request_id:
            logger.warning("response_dropped reason=missing_request_id url=%s", redact_url(str(response.url)))
            return False

        # Pop before invoking: a callback that triggers another response for
        # the same id must find nothing.
        entry = self.pending.pop(response.request_id)
        if entry is None:
            logger.debug("response_dropped reason=unknown_request_id request_id=%s", response.request_id)
            return False

        logger.info(
            "response request_id=%s action=%s type=%s",
            entry.request_id,
            entry.action,
            response.response_type,
        )
        try:
            if response.response_type == RESPONSE_ERROR:
                entry.on_failure(failure_from_response(response.parameters))
            elif response.response_type == RESPONSE_CANCEL:
                entry.on_cancel()
            else:
                entry.on_success(visible_parameters(response.parameters) or None)
        except Exception:
            logger.exception("response_callback_failed request_id=%s", entry.request_id)
        return True

    # ─────────────────────────────────────────────────────────────────────────
    # Action requests
    # ─────────────────────────────────────────────────────────────────────────

    def dispatch_request(self, request: InboundRequest) -> bool:
        handler = self.registry.get(request.action)
        logger.info(
            "action_request action=%s source=%s params=%s",
            request.action,
            request.source or "-",
            redact_parameters(request.parameters),
        )

        if handler is None:
            if request.error_url is None:
                logger.info("action_dropped reason=not_supported action=%s", request.action)
                return False
            app = self.source_name or "this application"
            failure = CallbackError.with_code(
                ErrorCode.NOT_SUPPORTED_ACTION,
                f"{request.action} not supported by {app}",
            )
            self._respond(request.error_url, error_parameters(failure))
            return False

        replied = threading.Event()
        on_success, on_failure, on_cancel = self._reply_callbacks(request, replied)
        try:
            handler(dict(request.parameters), on_success, on_failure, on_cancel)
        except Exception as exc:
            logger.exception("action_handler_failed action=%s replied=%s", request.action, replied.is_set())
            if not replied.is_set():
                on_failure(as_failure(exc))
        return True

    def _reply_callbacks(self, request: InboundRequest, replied: threading.Event):  # noqa: ANN202
        def on_success(parameters: Parameters | None = None) -> None:
            replied.set()
            if request.success_url is not None:
                self._respond(request.success_url, parameters)

        def on_failure(failure: FailureInfo) -> None:
            replied.set()
            if request.error_url is not None:
                self._respond(request.error_url, error_parameters(as_failure(failure)))

        def on_cancel() -> None:
            replied.set()
            if request.cancel_url is not None:
                self._respond(request.cancel_url, None)

        return on_success, on_failure, on_cancel

    def _respond(self, target: CallbackURL, parameters: Parameters | None) -> None:
        url = str(target.with_parameters(parameters))
        try:
            result = self._opener(url)
        except Exception:
            logger.exception("respond_failed url=%s", redact_url(url))
            return
        if not result.opened:
            logger.warning("respond_not_delivered url=%s reason=%s", redact_url(url), result.message)


__all__ = [
    "InboundDispatcher",
    "InboundRequest",
    "InboundResponse",
    "failure_from_response",
    "parse_inbound",
    "visible_parameters",
]
