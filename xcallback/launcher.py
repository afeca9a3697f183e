from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from urllib.parse import urlsplit

from .redaction import redact_url

logger = logging.getLogger("xcallback.launcher")


@dataclass
class LaunchResult:
    opened: bool
    message: str = ""
    command: list[str] | None = None

    @property
    def not_installed(self) -> bool:
        return not self.opened

    @classmethod
    def ok(cls, message: str = "opened", command: list[str] | None = None) -> LaunchResult:
        return cls(True, message, command)

    @classmethod
    def missing(cls, message: str, command: list[str] | None = None) -> LaunchResult:
        return cls(False, message, command)


@runtime_checkable
class URLLauncher(Protocol):
    """Opens a URL in another (or the same) process."""

    def open(self, url: str) -> LaunchResult: ...


def _platform_kind() -> str:
    if sys.platform == "darwin":
        return "macos"
    if sys.platform.startswith("win"):
        return "windows"
    return "xdg"


class SystemURLLauncher:
    """Hand URLs to the desktop's scheme handler.

    - macOS: ``open <url>`` (exits non-zero when no app claims the scheme)
    - Linux/BSD: ``xdg-mime`` handler check, then ``xdg-open <url>``
    - Windows: ``cmd /c start "" <url>``
    """

    def __init__(self, *, timeout: float = 5.0, platform: str | None = None) -> None:
        self.timeout = max(0.1, float(timeout))
        self.platform = platform or _platform_kind()

    def build_open_command(self, url: str) -> list[str]:
        if self.platform == "macos":
            return ["open", url]
        if self.platform == "windows":
            return ["cmd", "/c", "start", "", url]
        return ["xdg-open", url]

    def has_handler(self, scheme: str) -> bool | None:
        """Return whether a handler is registered for scheme (None = unknown)."""
        if self.platform != "xdg" or not shutil.which("xdg-mime"):
            return None
        try:
            proc = subprocess.run(
                ["xdg-mime", "query", "default", f"x-scheme-handler/{scheme}"],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.debug("xdg_mime_failed scheme=%s error=%s", scheme, exc)
            return None
        return bool((proc.stdout or "").strip())

    def open(self, url: str) -> LaunchResult:
        scheme = urlsplit(url).scheme
        if self.has_handler(scheme) is False:
            return LaunchResult.missing(f"no handler for x-scheme-handler/{scheme}")

        command = self.build_open_command(url)
        try:
            proc = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError:
            return LaunchResult.missing(f"opener not found: {command[0]}", command)
        except subprocess.TimeoutExpired:
            # Some openers block until the target app exits; the URL was handed off.
            logger.info("open_timeout url=%s", redact_url(url))
            return LaunchResult.ok("opener still running", command)
        except OSError as exc:
            return LaunchResult.missing(str(exc), command)

        if proc.returncode != 0:
            detail = (proc.stderr or proc.stdout or "").strip()[:500]
            return LaunchResult.missing(detail or f"{command[0]} exited with {proc.returncode}", command)
        logger.info("opened url=%s", redact_url(url))
        return LaunchResult.ok(command=command)


__all__ = ["LaunchResult", "SystemURLLauncher", "URLLauncher"]
