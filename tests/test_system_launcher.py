from __future__ import annotations

import subprocess
from typing import Any

import pytest


class _Runner:
    def __init__(self, *results: Any) -> None:
        self.results = list(results)
        self.calls: list[list[str]] = []

    def __call__(self, cmd: list[str], **_kwargs: Any) -> subprocess.CompletedProcess:
        self.calls.append(list(cmd))
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


def _done(cmd: list[str], rc: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(cmd, rc, stdout, stderr)


@pytest.fixture()
def launcher_mod(monkeypatch: pytest.MonkeyPatch):  # noqa: ANN201
    import xcallback.launcher as mod

    monkeypatch.setattr(mod.shutil, "which", lambda name: f"/usr/bin/{name}")
    return mod


def test_open_commands_per_platform() -> None:
    from xcallback.launcher import SystemURLLauncher

    url = "target://auth?x=1"
    assert SystemURLLauncher(platform="macos").build_open_command(url) == ["open", url]
    assert SystemURLLauncher(platform="windows").build_open_command(url) == ["cmd", "/c", "start", "", url]
    assert SystemURLLauncher(platform="xdg").build_open_command(url) == ["xdg-open", url]


def test_xdg_open_when_handler_registered(launcher_mod, monkeypatch: pytest.MonkeyPatch) -> None:  # noqa: ANN001
    runner = _Runner(_done([], stdout="target.desktop\n"), _done([]))
    monkeypatch.setattr(launcher_mod.subprocess, "run", runner)

    result = launcher_mod.SystemURLLauncher(platform="xdg").open("target://auth")
    assert result.opened
    assert runner.calls == [
        ["xdg-mime", "query", "default", "x-scheme-handler/target"],
        ["xdg-open", "target://auth"],
    ]


def test_xdg_missing_handler_is_not_installed(launcher_mod, monkeypatch: pytest.MonkeyPatch) -> None:  # noqa: ANN001
    runner = _Runner(_done([], stdout=""))
    monkeypatch.setattr(launcher_mod.subprocess, "run", runner)

    result = launcher_mod.SystemURLLauncher(platform="xdg").open("nothing://auth")
    assert result.not_installed
    assert "x-scheme-handler/nothing" in result.message
    assert len(runner.calls) == 1


def test_macos_nonzero_exit_is_not_installed(launcher_mod, monkeypatch: pytest.MonkeyPatch) -> None:  # noqa: ANN001
    runner = _Runner(_done([], rc=1, stderr="No application knows how to open URL target://auth"))
    monkeypatch.setattr(launcher_mod.subprocess, "run", runner)

    result = launcher_mod.SystemURLLauncher(platform="macos").open("target://auth")
    assert not result.opened
    assert "No application" in result.message
    assert runner.calls == [["open", "target://auth"]]


def test_missing_opener_binary(launcher_mod, monkeypatch: pytest.MonkeyPatch) -> None:  # noqa: ANN001
    runner = _Runner(FileNotFoundError("open"))
    monkeypatch.setattr(launcher_mod.subprocess, "run", runner)

    result = launcher_mod.SystemURLLauncher(platform="macos").open("target://auth")
    assert not result.opened
    assert result.command == ["open", "target://auth"]


def test_timeout_counts_as_handed_off(launcher_mod, monkeypatch: pytest.MonkeyPatch) -> None:  # noqa: ANN001
    runner = _Runner(subprocess.TimeoutExpired(["open"], 0.1))
    monkeypatch.setattr(launcher_mod.subprocess, "run", runner)

    assert launcher_mod.SystemURLLauncher(platform="macos", timeout=0.1).open("target://auth").opened


def test_manager_maps_launch_failure_to_target_not_installed(launcher_mod, monkeypatch: pytest.MonkeyPatch) -> None:  # noqa: ANN001
    from xcallback.config import CallbackConfig
    from xcallback.errors import TargetNotInstalled
    from xcallback.manager import Manager

    monkeypatch.setattr(launcher_mod.subprocess, "run", _Runner(_done([], stdout="")))
    manager = Manager(
        CallbackConfig(callback_scheme="me"),
        launcher=launcher_mod.SystemURLLauncher(platform="xdg"),
    )
    with pytest.raises(TargetNotInstalled):
        manager.perform_action("auth", "nothing", on_success=lambda _p: None)
    assert len(manager.pending) == 0
