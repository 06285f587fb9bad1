import pytest

from glint.core.assets.barrier import (
    AssetBarrier,
    AssetLoadError,
    BarrierState,
    DoubleSignalError,
)


def _counting_barrier():
    calls: list[str] = []
    barrier = AssetBarrier(lambda: calls.append("ready"))
    return barrier, calls


def test_ready_fires_once_on_the_last_signal():
    barrier, calls = _counting_barrier()
    barrier.register(4)

    for _ in range(3):
        barrier.signal()
        assert calls == []
        assert barrier.state is BarrierState.PENDING

    barrier.signal()
    assert calls == ["ready"]
    assert barrier.is_ready
    assert barrier.received == 4
    assert barrier.expected == 4


def test_signal_beyond_count_raises_and_does_not_refire():
    barrier, calls = _counting_barrier()
    barrier.register(2)
    barrier.signal()
    barrier.signal()

    with pytest.raises(DoubleSignalError):
        barrier.signal()

    assert calls == ["ready"]
    assert barrier.state is BarrierState.READY


def test_same_slot_twice_is_rejected_and_not_counted():
    barrier, calls = _counting_barrier()
    barrier.register(2)
    barrier.signal("font")

    with pytest.raises(DoubleSignalError):
        barrier.signal("font")

    assert barrier.received == 1
    barrier.signal("env_map")
    assert calls == ["ready"]


def test_register_is_single_use_and_requires_positive_count():
    barrier, _ = _counting_barrier()
    with pytest.raises(ValueError):
        barrier.register(0)
    barrier.register(1)
    with pytest.raises(RuntimeError):
        barrier.register(1)


def test_signal_before_register_is_an_error():
    barrier, _ = _counting_barrier()
    with pytest.raises(RuntimeError):
        barrier.signal()


def test_fail_reports_once_and_ignores_later_signals():
    errors: list[AssetLoadError] = []
    calls: list[str] = []
    barrier = AssetBarrier(lambda: calls.append("ready"), on_error=errors.append)
    barrier.register(2)

    returned = barrier.fail("font", OSError("missing"))
    barrier.fail("env_map", "also missing")
    barrier.signal("vertex_shader")
    barrier.signal("fragment_shader")

    assert barrier.state is BarrierState.FAILED
    assert len(errors) == 1
    assert errors[0] is returned
    assert errors[0].slot == "font"
    assert "missing" in str(errors[0])
    assert calls == []


def test_fail_after_ready_is_an_error():
    barrier, _ = _counting_barrier()
    barrier.register(1)
    barrier.signal()
    with pytest.raises(RuntimeError):
        barrier.fail("font", "late")
