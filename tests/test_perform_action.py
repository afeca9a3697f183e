from __future__ import annotations

import re

import pytest


class _RecordingLauncher:
    def __init__(self, *, installed: bool = True) -> None:
        self.installed = installed
        self.urls: list[str] = []

    def open(self, url: str):  # noqa: ANN201
        from xcallback.launcher import LaunchResult

        self.urls.append(url)
        if not self.installed:
            return LaunchResult.missing("no handler")
        return LaunchResult.ok()


def _manager(*, scheme: str | None = "me", source: str | None = "Me App", installed: bool = True):  # noqa: ANN202
    from xcallback.config import CallbackConfig
    from xcallback.manager import Manager

    launcher = _RecordingLauncher(installed=installed)
    manager = Manager(CallbackConfig(callback_scheme=scheme, source_name=source), launcher=launcher)
    return manager, launcher


def test_fire_and_forget_creates_no_pending_entry() -> None:
    manager, launcher = _manager()
    request_id = manager.perform_action("open", "target", {"path": "/tmp"})

    assert request_id is None
    assert len(manager.pending) == 0
    assert launcher.urls == ["target://open?path=%2Ftmp&x-source=Me%20App"]


def test_fire_and_forget_works_without_own_scheme() -> None:
    manager, launcher = _manager(scheme=None, source=None)
    manager.perform_action("open", "target")
    assert launcher.urls == ["target://open"]


def test_callbacks_without_own_scheme_fail_before_launch() -> None:
    from xcallback.errors import CallbackSchemeNotDefined

    manager, launcher = _manager(scheme=None)
    with pytest.raises(CallbackSchemeNotDefined):
        manager.perform_action("auth", "target", on_failure=lambda _f: None)
    assert len(manager.pending) == 0
    assert launcher.urls == []


def test_success_entry_keyed_by_embedded_request_id() -> None:
    from xcallback.query import decode
    from xcallback.urls import CallbackURL

    manager, launcher = _manager()
    request_id = manager.perform_action("auth", "target", {"user": "a b"}, on_success=lambda _p: None)

    assert request_id is not None
    assert manager.pending.request_ids() == [request_id]

    sent = CallbackURL.parse(launcher.urls[0])
    assert sent is not None
    success_url = CallbackURL.parse(sent.parameters["x-success"])
    assert success_url is not None
    assert success_url.get("x-requestID") == request_id
    assert "x-error" not in sent.parameters
    assert "x-cancel" not in sent.parameters
    assert decode(launcher.urls[0].split("?", 1)[1])["user"] == "a b"


def test_auth_scenario_exact_url_shape() -> None:
    manager, launcher = _manager()
    request_id = manager.perform_action("auth", "target", {"user": "a b"}, on_success=lambda _p: None)

    expected = (
        "target://auth?user=a%20b"
        f"&x-success=me%3A%2F%2Fx-callback-url%2Fauth%3Fx-requestID%3D{request_id}"
        "&x-source=Me%20App"
    )
    assert launcher.urls == [expected]
    assert request_id in manager.pending


def test_error_and_cancel_urls_name_their_response_type() -> None:
    from xcallback.urls import CallbackURL

    manager, launcher = _manager()
    request_id = manager.perform_action(
        "auth",
        "target",
        on_success=lambda _p: None,
        on_failure=lambda _f: None,
        on_cancel=lambda: None,
    )
    sent = CallbackURL.parse(launcher.urls[0])
    assert sent is not None
    params = sent.parameters
    assert list(params) == ["x-success", "x-error", "x-cancel", "x-source"]
    assert params["x-error"] == f"me://x-callback-url/auth?x-requestID={request_id}&responseType=error"
    assert params["x-cancel"] == f"me://x-callback-url/auth?x-requestID={request_id}&responseType=cancel"
    assert len(manager.pending) == 1


def test_target_not_installed_removes_pending_entry() -> None:
    from xcallback.errors import TargetNotInstalled

    manager, launcher = _manager(installed=False)
    with pytest.raises(TargetNotInstalled) as excinfo:
        manager.perform_action("auth", "target", on_success=lambda _p: None)
    assert excinfo.value.scheme == "target"
    assert len(launcher.urls) == 1
    assert len(manager.pending) == 0


def test_invalid_components_raise_construction_error() -> None:
    from xcallback.errors import RequestURLConstructionFailed

    manager, launcher = _manager()
    for action, scheme in (("", "target"), ("auth", ""), ("a b", "target"), ("auth", "not a scheme")):
        with pytest.raises(RequestURLConstructionFailed):
            manager.perform_action(action, scheme, on_success=lambda _p: None)
    assert launcher.urls == []
    assert len(manager.pending) == 0


def test_request_ids_are_unique_and_regenerated_on_collision() -> None:
    from xcallback.builder import RequestBuilder

    ids = iter(["dup", "dup", "fresh"])
    builder = RequestBuilder(callback_scheme="me", id_factory=lambda: next(ids))
    first = builder.build("auth", "target", response_types=["success"])
    second = builder.build("auth", "target", response_types=["success"], taken_ids={first.request_id})
    assert first.request_id == "dup"
    assert second.request_id == "fresh"


def test_default_request_id_is_uuid_hex() -> None:
    from xcallback.builder import new_request_id

    rid = new_request_id()
    assert re.fullmatch(r"[0-9a-f]{32}", rid)
    assert rid != new_request_id()


def test_loopback_dispatches_to_own_handler_without_launcher() -> None:
    manager, launcher = _manager()
    seen: list[dict] = []
    results: list[object] = []

    def _echo(params, on_success, _on_failure, _on_cancel) -> None:  # noqa: ANN001
        seen.append(params)
        on_success({"echo": params.get("msg", "")})

    manager.register_action("echo", _echo)
    manager.perform_action("echo", "me", {"msg": "hi there"}, on_success=results.append)

    assert launcher.urls == []
    assert seen == [{"msg": "hi there"}]
    assert results == [{"echo": "hi there"}]
    assert len(manager.pending) == 0


def test_loopback_disabled_uses_launcher() -> None:
    from xcallback.config import CallbackConfig
    from xcallback.manager import Manager

    launcher = _RecordingLauncher()
    manager = Manager(CallbackConfig(callback_scheme="me", loopback=False), launcher=launcher)
    manager.perform_action("echo", "me", on_success=lambda _p: None)
    assert len(launcher.urls) == 1
    assert len(manager.pending) == 1


def test_module_level_helpers_use_default_manager() -> None:
    from xcallback.manager import perform_action, register_action, set_default_manager

    manager, launcher = _manager()
    set_default_manager(manager)
    try:
        register_action("ping", lambda *_a: None)
        assert manager.registry.has("ping")
        rid = perform_action("auth", "target", on_cancel=lambda: None)
        assert rid in manager.pending
        assert len(launcher.urls) == 1
    finally:
        set_default_manager(None)


def test_action_with_path_is_split_into_host_and_path() -> None:
    manager, launcher = _manager()
    manager.perform_action("files/open", "target", {"path": "/tmp"})
    assert launcher.urls == ["target://files/open?path=%2Ftmp&x-source=Me%20App"]


def test_action_with_invalid_path_is_rejected() -> None:
    from xcallback.errors import RequestURLConstructionFailed

    manager, launcher = _manager()
    with pytest.raises(RequestURLConstructionFailed):
        manager.perform_action("files/a b", "target")
    assert launcher.urls == []
