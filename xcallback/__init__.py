"""x-callback-url for Python processes.

Keep this package import light: the WebSocket bridge and the system launcher
are only imported when their names are first accessed.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "ActionRegistry",
    "CallbackConfig",
    "CallbackError",
    "CallbackSchemeNotDefined",
    "CallbackURL",
    "CallbackURLKitError",
    "ErrorCode",
    "FailureInfo",
    "LaunchResult",
    "Manager",
    "PendingRequestTable",
    "RequestURLConstructionFailed",
    "SystemURLLauncher",
    "TargetNotInstalled",
    "WebSocketHostBridge",
    "handle_open_url",
    "perform_action",
    "register_action",
    "unregister_action",
]

_EXPORTS = {
    "ActionRegistry": "registry",
    "CallbackConfig": "config",
    "CallbackError": "errors",
    "CallbackSchemeNotDefined": "errors",
    "CallbackURL": "urls",
    "CallbackURLKitError": "errors",
    "ErrorCode": "errors",
    "FailureInfo": "errors",
    "LaunchResult": "launcher",
    "Manager": "manager",
    "PendingRequestTable": "pending",
    "RequestURLConstructionFailed": "errors",
    "SystemURLLauncher": "launcher",
    "TargetNotInstalled": "errors",
    "WebSocketHostBridge": "bridge",
    "handle_open_url": "manager",
    "perform_action": "manager",
    "register_action": "manager",
    "unregister_action": "manager",
}


def __getattr__(name: str) -> Any:  # pragma: no cover
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(name)
    from importlib import import_module

    return getattr(import_module(f".{module_name}", __name__), name)
