import contextlib
import threading

import pytest

from glint.core.lifecycle import (
    DeferredRebuild,
    ImmediateRebuild,
    ReentrantReplaceError,
    ResourceError,
    ResourceLifecycleManager,
    SceneContainer,
)


class FakeResource:
    def __init__(self, name: str) -> None:
        self.name = name
        self.dispose_calls = 0

    @property
    def disposed(self) -> bool:
        return self.dispose_calls > 0

    def dispose(self) -> None:
        if self.dispose_calls:
            raise ResourceError(f"{self.name} already disposed")
        self.dispose_calls += 1


class Factory:
    def __init__(self) -> None:
        self.built: list[FakeResource] = []

    def __call__(self) -> FakeResource:
        res = FakeResource(f"r{len(self.built)}")
        self.built.append(res)
        return res


def test_container_slots_are_reused_and_membership_is_strict():
    container = SceneContainer()
    a, b, c = object(), object(), object()
    assert container.add(a) == 0
    assert container.add(b) == 1
    container.remove(a)
    assert container.add(c) == 0
    assert container.items() == [c, b]
    assert len(container) == 2

    with pytest.raises(ValueError):
        container.add(b)
    with pytest.raises(KeyError):
        container.remove(a)


def test_replace_detaches_and_disposes_previous():
    container = SceneContainer()
    manager = ResourceLifecycleManager(container)
    factory = Factory()

    first = manager.replace(factory)
    second = manager.replace(factory)

    assert manager.current() is second
    assert first.dispose_calls == 1
    assert not container.contains(first)
    assert container.items() == [second]
    assert not second.disposed


def test_ten_rebuild_requests_yield_ten_replaces_with_one_attached():
    container = SceneContainer()
    manager = ResourceLifecycleManager(container)
    factory = Factory()
    manager.replace(factory)

    attached_counts: list[int] = []

    def observed_build() -> FakeResource:
        attached_counts.append(len(container))
        return factory()

    for _ in range(10):
        manager.request_rebuild(observed_build)
        attached_counts.append(len(container))

    assert manager.replace_count == 11
    assert set(attached_counts) == {1}
    assert len(container) == 1
    assert all(r.dispose_calls == 1 for r in factory.built[:-1])
    assert factory.built[-1].dispose_calls == 0


def test_failed_build_leaves_previous_instance_intact():
    container = SceneContainer()
    manager = ResourceLifecycleManager(container)
    original = manager.replace(Factory())

    def broken() -> FakeResource:
        raise ValueError("bad glyph")

    with pytest.raises(ValueError, match="bad glyph"):
        manager.replace(broken)

    assert manager.current() is original
    assert container.items() == [original]
    assert not original.disposed
    assert manager.replace_count == 1


def test_replace_from_inside_builder_is_rejected():
    manager = ResourceLifecycleManager(SceneContainer())
    factory = Factory()

    def nested() -> FakeResource:
        manager.replace(factory)
        return factory()

    with pytest.raises(ReentrantReplaceError):
        manager.replace(nested)
    assert manager.current() is None

    # 失敗後も通常の replace は使える。
    assert manager.replace(factory) is manager.current()


def test_deferred_policy_runs_one_replace_per_request_on_flush():
    container = SceneContainer()
    policy = DeferredRebuild()
    manager = ResourceLifecycleManager(container, policy=policy)
    factory = Factory()
    manager.replace(factory)

    for _ in range(10):
        manager.request_rebuild(factory)
    assert policy.pending == 10
    assert manager.replace_count == 1

    manager.flush()
    assert policy.pending == 0
    assert manager.replace_count == 11
    assert len(factory.built) == 11
    assert container.items() == [factory.built[-1]]
    assert all(r.dispose_calls == 1 for r in factory.built[:-1])

    manager.flush()
    assert manager.replace_count == 11


def test_deferred_flush_stops_at_failure_and_keeps_the_rest():
    container = SceneContainer()
    policy = DeferredRebuild()
    manager = ResourceLifecycleManager(container, policy=policy)
    factory = Factory()
    first = manager.replace(factory)

    def broken() -> FakeResource:
        raise ValueError("bad glyph")

    manager.request_rebuild(broken)
    manager.request_rebuild(factory)

    with pytest.raises(ValueError, match="bad glyph"):
        manager.flush()
    assert manager.current() is first
    assert policy.pending == 1

    manager.flush()
    assert manager.replace_count == 2
    assert first.disposed


def test_immediate_policy_wraps_every_replace_in_scope():
    events: list[str] = []

    @contextlib.contextmanager
    def scope():
        events.append("enter")
        try:
            yield
        finally:
            events.append("exit")

    manager = ResourceLifecycleManager(SceneContainer(), policy=ImmediateRebuild(scope=scope))
    factory = Factory()
    manager.replace(factory)

    def traced() -> FakeResource:
        events.append("build")
        return factory()

    for _ in range(3):
        manager.request_rebuild(traced)

    assert events == ["enter", "build", "exit"] * 3
    assert manager.replace_count == 4


def test_immediate_policy_propagates_build_failure_and_leaves_scope():
    events: list[str] = []

    @contextlib.contextmanager
    def scope():
        events.append("enter")
        try:
            yield
        finally:
            events.append("exit")

    manager = ResourceLifecycleManager(SceneContainer(), policy=ImmediateRebuild(scope=scope))
    original = manager.replace(Factory())

    def broken() -> FakeResource:
        raise ValueError("bad glyph")

    with pytest.raises(ValueError, match="bad glyph"):
        manager.request_rebuild(broken)
    assert events == ["enter", "exit"]
    assert manager.current() is original


def test_replace_disposes_previous_even_if_detached_elsewhere():
    container = SceneContainer()
    manager = ResourceLifecycleManager(container)
    factory = Factory()
    old = manager.replace(factory)
    container.remove(old)

    new = manager.replace(factory)

    assert old.dispose_calls == 1
    assert container.items() == [new]
    assert manager.current() is new


def test_close_disposes_current_even_if_detached_elsewhere():
    container = SceneContainer()
    manager = ResourceLifecycleManager(container)
    res = manager.replace(Factory())
    container.remove(res)

    manager.close()

    assert res.dispose_calls == 1
    assert len(container) == 0


def test_replace_from_another_thread_during_build_is_not_reentrant():
    manager = ResourceLifecycleManager(SceneContainer())
    factory = Factory()
    errors: list[BaseException] = []

    def other_thread() -> None:
        try:
            manager.replace(factory)
        except Exception as exc:
            errors.append(exc)

    def slow_build() -> FakeResource:
        worker = threading.Thread(target=other_thread)
        worker.start()
        worker.join()
        return factory()

    last = manager.replace(slow_build)

    assert errors == []
    assert manager.replace_count == 2
    assert manager.current() is last
    assert factory.built[0].dispose_calls == 1


def test_close_disposes_current_exactly_once():
    container = SceneContainer()
    manager = ResourceLifecycleManager(container)
    res = manager.replace(Factory())

    manager.close()
    manager.close()

    assert res.dispose_calls == 1
    assert manager.current() is None
    assert len(container) == 0
