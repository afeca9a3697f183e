"""
Command-line entry point for x-callback-url.

Commands:
- build: print a fire-and-forget request URL
- parse: describe an inbound URL as JSON
- open: perform an action through the system URL opener
- serve: dispatch URLs delivered by a WebSocket host bridge
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from typing import Any

from .config import CallbackConfig
from .dispatcher import InboundResponse, parse_inbound, visible_parameters
from .errors import CallbackURLKitError, TargetNotInstalled
from .manager import Manager
from .query import Parameters
from .registry import CancelCallback, FailureCallback, SuccessCallback

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(message)s",
)
logger = logging.getLogger("xcallback")

EXIT_USAGE = 1
EXIT_NOT_INSTALLED = 2


def _parse_assignments(items: list[str]) -> Parameters:
    params: Parameters = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got {item!r}")
        params[key] = value
    return params


def describe_url(url: str) -> dict[str, Any]:
    """JSON-friendly description of an inbound URL."""
    inbound = parse_inbound(url)
    if inbound is None:
        return {"kind": "invalid", "url": url}
    if isinstance(inbound, InboundResponse):
        return {
            "kind": "response",
            "responseType": inbound.response_type,
            "requestId": inbound.request_id,
            "parameters": visible_parameters(inbound.parameters),
        }
    out: dict[str, Any] = {"kind": "request", "action": inbound.action, "parameters": inbound.parameters}
    if inbound.source:
        out["source"] = inbound.source
    for key, cb_url in (("success", inbound.success_url), ("error", inbound.error_url), ("cancel", inbound.cancel_url)):
        if cb_url is not None:
            out[key] = str(cb_url)
    return out


def ping_action(
    parameters: Parameters,
    on_success: SuccessCallback,
    _on_failure: FailureCallback,
    _on_cancel: CancelCallback,
) -> None:
    """Built-in liveness action: answers success, echoing parameters back."""
    on_success({"pong": "1", **parameters})


def _cmd_build(config: CallbackConfig, args: argparse.Namespace) -> int:
    manager = Manager(config)
    request = manager.build_request(args.action, args.scheme, _parse_assignments(args.params))
    print(str(request.url))
    return 0


def _cmd_parse(_config: CallbackConfig, args: argparse.Namespace) -> int:
    print(json.dumps(describe_url(args.url), ensure_ascii=False, indent=2))
    return 0


def _cmd_open(config: CallbackConfig, args: argparse.Namespace) -> int:
    manager = Manager(config)
    try:
        manager.perform_action(args.action, args.scheme, _parse_assignments(args.params))
    except TargetNotInstalled as exc:
        logger.error("%s", exc)
        return EXIT_NOT_INSTALLED
    return 0


def _cmd_serve(config: CallbackConfig, args: argparse.Namespace) -> int:
    from .bridge import WebSocketHostBridge

    bridge_url = args.bridge_url or config.bridge_url
    if not bridge_url:
        logger.error("serve requires --bridge-url or XCU_BRIDGE_URL")
        return EXIT_USAGE

    bridge = WebSocketHostBridge(bridge_url, source_name=config.source_name, open_timeout=config.launch_timeout_s)
    manager = Manager(config, launcher=bridge)
    manager.register_action("ping", ping_action)
    bridge.set_on_open_url(manager.handle_open_url)

    if not bridge.start(wait_timeout=args.connect_timeout):
        logger.info("bridge_not_connected_yet url=%s status=%s", bridge_url, bridge.status())

    stop = threading.Event()
    try:
        stop.wait()
    except KeyboardInterrupt:
        pass
    finally:
        bridge.stop()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="xcallback", description="x-callback-url toolkit")
    parser.add_argument("--callback-scheme", help="Own URL scheme (overrides XCU_CALLBACK_SCHEME)")
    parser.add_argument("--source", help="x-source display name (overrides XCU_SOURCE_NAME)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_build = sub.add_parser("build", help="Print a request URL")
    p_build.add_argument("action")
    p_build.add_argument("scheme")
    p_build.add_argument("params", nargs="*", metavar="key=value")
    p_build.set_defaults(func=_cmd_build)

    p_parse = sub.add_parser("parse", help="Describe an inbound URL")
    p_parse.add_argument("url")
    p_parse.set_defaults(func=_cmd_parse)

    p_open = sub.add_parser("open", help="Perform an action (fire-and-forget)")
    p_open.add_argument("action")
    p_open.add_argument("scheme")
    p_open.add_argument("params", nargs="*", metavar="key=value")
    p_open.set_defaults(func=_cmd_open)

    p_serve = sub.add_parser("serve", help="Dispatch URLs delivered by a WebSocket host bridge")
    p_serve.add_argument("--bridge-url", help="ws:// endpoint (overrides XCU_BRIDGE_URL)")
    p_serve.add_argument("--connect-timeout", type=float, default=2.0)
    p_serve.set_defaults(func=_cmd_serve)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)
    config = CallbackConfig.from_env()
    if args.callback_scheme:
        config.callback_scheme = CallbackConfig.normalize_scheme(args.callback_scheme)
    if args.source:
        config.source_name = args.source.strip() or None

    try:
        return int(args.func(config, args))
    except (CallbackURLKitError, ValueError) as exc:
        logger.error("%s", exc)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
