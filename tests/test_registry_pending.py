from __future__ import annotations

import threading

import pytest


def _handler(*_args) -> None:  # noqa: ANN002
    return None


def _other_handler(*_args) -> None:  # noqa: ANN002
    return None


def test_registry_register_overwrite_unregister() -> None:
    from xcallback.registry import ActionRegistry

    registry = ActionRegistry()
    assert registry.get("ping") is None
    registry.register("ping", _handler)
    registry.register("ping", _other_handler)
    assert registry.get("ping") is _other_handler
    assert "ping" in registry
    assert registry.actions == ["ping"]
    assert len(registry) == 1

    registry.unregister("ping")
    registry.unregister("ping")
    assert registry.get("ping") is None
    assert len(registry) == 0


def test_registry_rejects_non_callable() -> None:
    from xcallback.registry import ActionRegistry

    with pytest.raises(TypeError):
        ActionRegistry().register("ping", "not callable")  # type: ignore[arg-type]


def test_pending_pop_is_at_most_once() -> None:
    from xcallback.pending import PendingRequestTable

    table = PendingRequestTable()
    table.create("r1", "auth")
    assert "r1" in table
    assert table.pop("r1") is not None
    assert table.pop("r1") is None
    assert len(table) == 0


def test_pending_absent_callbacks_default_to_noops() -> None:
    from xcallback.errors import CallbackError
    from xcallback.pending import PendingRequestTable

    entry = PendingRequestTable().create("r1", "auth")
    entry.on_success(None)
    entry.on_failure(CallbackError(code=1, message="x"))
    entry.on_cancel()


def test_pending_rejects_duplicate_ids() -> None:
    from xcallback.pending import PendingRequestTable

    table = PendingRequestTable()
    table.create("r1", "auth")
    with pytest.raises(KeyError):
        table.create("r1", "auth")


def test_pending_concurrent_pop_delivers_once() -> None:
    from xcallback.pending import PendingRequestTable

    table = PendingRequestTable()
    table.create("r1", "auth")
    winners: list[object] = []
    barrier = threading.Barrier(8)

    def _worker() -> None:
        barrier.wait()
        entry = table.pop("r1")
        if entry is not None:
            winners.append(entry)

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(winners) == 1


def test_pending_without_ttl_never_expires() -> None:
    from xcallback.pending import PendingRequestTable

    now = [0.0]
    table = PendingRequestTable(clock=lambda: now[0])
    table.create("r1", "auth")
    now[0] = 10_000_000.0
    assert table.ttl_s is None
    assert table.get("r1") is not None


def test_pending_ttl_expires_lazily() -> None:
    from xcallback.pending import PendingRequestTable

    now = [100.0]
    table = PendingRequestTable(ttl_s=30.0, clock=lambda: now[0])
    table.create("old", "auth")
    now[0] = 120.0
    table.create("new", "auth")
    now[0] = 131.0
    assert table.request_ids() == ["new"]
    assert table.pop("old") is None
    now[0] = 200.0
    assert table.purge_expired() == 1
    assert len(table) == 0
