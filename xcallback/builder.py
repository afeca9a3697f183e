"""Outbound request construction.

A request URL looks like::

    target://auth?user=a%20b&x-success=me%3A%2F%2Fx-callback-url%2Fauth%3Fx-requestID%3D<id>&x-source=Me

Callback URLs are only embedded for the completion callbacks the caller
actually supplied. ``x-success`` carries just the request id; ``x-error`` and
``x-cancel`` also name their response type so the dispatcher can tell the
three apart when the target appends nothing distinctive. An action whose last
segment is itself ``success``, ``error`` or ``cancel`` gets an explicit
``responseType=success`` on its success URL too.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass, field

from .errors import CallbackSchemeNotDefined, RequestURLConstructionFailed
from .protocol import (
    CALLBACK_KEYS,
    REQUEST_ID_KEY,
    RESPONSE_SUCCESS,
    RESPONSE_TYPE_KEY,
    RESPONSE_TYPES,
    SOURCE_KEY,
    XCU_HOST,
)
from .urls import CallbackURL


def new_request_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class OutboundRequest:
    request_id: str
    action: str
    url: CallbackURL
    # response type -> callback URL embedded in the request
    callback_urls: dict[str, CallbackURL] = field(default_factory=dict)

    @property
    def expects_response(self) -> bool:
        return bool(self.callback_urls)


class RequestBuilder:
    """Builds request URLs for one process identity (own scheme + x-source)."""

    def __init__(
        self,
        *,
        callback_scheme: str | None = None,
        source_name: str | None = None,
        id_factory: Callable[[], str] = new_request_id,
    ) -> None:
        self.callback_scheme = callback_scheme
        self.source_name = source_name
        self._id_factory = id_factory

    def callback_url(self, action: str, request_id: str, response_type: str) -> CallbackURL:
        if not self.callback_scheme:
            raise CallbackSchemeNotDefined()
        params: dict[str, str] = {REQUEST_ID_KEY: request_id}
        # A success URL whose path ends in "cancel" or "error" must still read as success.
        if response_type != RESPONSE_SUCCESS or action.rsplit("/", 1)[-1].lower() in RESPONSE_TYPES:
            params[RESPONSE_TYPE_KEY] = response_type
        return CallbackURL.build(self.callback_scheme, XCU_HOST, f"/{action}", params)

    def fresh_request_id(self, taken: Collection[str] = ()) -> str:
        for _ in range(16):
            rid = self._id_factory()
            if rid and rid not in taken:
                return rid
        raise RuntimeError("Could not generate a unique request id")

    def build(
        self,
        action: str,
        scheme: str,
        parameters: Mapping[str, str] | None = None,
        *,
        response_types: Collection[str] = (),
        taken_ids: Collection[str] = (),
    ) -> OutboundRequest:
        """Build the request URL and its callback URLs.

        Args:
            action: Action name (URL host)
            scheme: Target application scheme
            parameters: Caller parameters
            response_types: Subset of success/error/cancel the caller handles
            taken_ids: Request ids already pending

        Raises:
            CallbackSchemeNotDefined: callbacks requested without own scheme
            RequestURLConstructionFailed: empty or invalid action/scheme
        """
        action = (action or "").strip()
        scheme = (scheme or "").strip()
        if not action:
            raise RequestURLConstructionFailed("action is required", scheme=scheme)
        if not scheme:
            raise RequestURLConstructionFailed("target scheme is required", action=action)

        wanted = [rt for rt in RESPONSE_TYPES if rt in set(response_types)]
        if wanted and not self.callback_scheme:
            raise CallbackSchemeNotDefined()

        request_id = self.fresh_request_id(taken_ids)
        callback_urls = {rt: self.callback_url(action, request_id, rt) for rt in wanted}

        merged: dict[str, str] = {str(k): str(v) for k, v in (parameters or {}).items()}
        for rt, cb_url in callback_urls.items():
            merged[CALLBACK_KEYS[rt]] = str(cb_url)
        if self.source_name:
            merged[SOURCE_KEY] = self.source_name

        host, _sep, path = action.partition("/")
        url = CallbackURL.build(scheme, host, path, merged)
        return OutboundRequest(request_id=request_id, action=action, url=url, callback_urls=callback_urls)


__all__ = ["OutboundRequest", "RequestBuilder", "new_request_id"]
