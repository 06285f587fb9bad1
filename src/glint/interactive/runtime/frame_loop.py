"""
どこで: `src/glint/interactive/runtime/frame_loop.py`。
何を: 1 フレーム分の更新（連続状態の積分 → 入力 → 保留再構築 → 描画）を行う FrameLoop を提供する。
なぜ: ウィンドウ実装から 1 フレームの順序を切り離し、GPU なしでも検証できるようにするため。
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Protocol

from glint.core.continuous_state import ContinuousState
from glint.interactive.runtime.frame_clock import DeltaClock

_logger = logging.getLogger(__name__)


class Renderer(Protocol):
    def render(self, dt: float) -> None: ...


class InputController(Protocol):
    def update(self) -> None: ...


class Flushable(Protocol):
    def flush(self) -> None: ...


class FrameLoop:
    """フレームごとの更新処理。

    Parameters
    ----------
    renderer : Renderer
        `render(dt)` を持つ描画先。
    states : Iterable[ContinuousState]
        毎フレーム `rate * dt` で積分する状態。
    controls : InputController | None
        `update()` を持つ入力コントローラ（OrbitController 等）。
    lifecycle : Flushable | None
        保留中の再構築を流す `flush()` を持つもの。
    clock : DeltaClock | None
        経過時間の取得元。None なら `DeltaClock()`。
    """

    def __init__(
        self,
        renderer: Renderer,
        *,
        states: Iterable[ContinuousState],
        controls: InputController | None = None,
        lifecycle: Flushable | None = None,
        clock: DeltaClock | None = None,
    ) -> None:
        self._renderer = renderer
        self._states = list(states)
        self._controls = controls
        self._lifecycle = lifecycle
        self._clock = clock if clock is not None else DeltaClock()
        self._running = True
        self._on_stop: list[Callable[[], None]] = []
        self._frame_count = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def frame_count(self) -> int:
        return int(self._frame_count)

    def on_stop(self, callback: Callable[[], None]) -> None:
        """`stop()` 時に 1 回だけ呼ぶ後始末を登録する（登録順に実行）。"""

        self._on_stop.append(callback)

    def tick(self) -> float:
        """1 フレーム進め、使った delta 秒を返す。停止後は何もしない。"""

        if not self._running:
            return 0.0

        dt = self._clock.delta()
        for state in self._states:
            state.advance(dt)

        if self._controls is not None:
            self._controls.update()
        if self._lifecycle is not None:
            try:
                self._lifecycle.flush()
            except Exception:
                # 保留再構築の失敗。旧インスタンスはそのまま残る。
                _logger.exception("Deferred rebuild failed (frame=%d)", self._frame_count)

        try:
            self._renderer.render(dt)
        except Exception:
            # 描画の失敗でループは止めない。
            _logger.exception("Frame render failed (frame=%d)", self._frame_count)

        self._frame_count += 1
        return dt

    def stop(self) -> None:
        """ループを止め、登録済みの後始末を 1 回だけ実行する。"""

        if not self._running:
            return
        self._running = False
        callbacks = list(self._on_stop)
        self._on_stop.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception:
                _logger.exception("Frame loop stop callback failed: %r", callback)
        _logger.info("Frame loop stopped after %d frames", self._frame_count)


__all__ = ["FrameLoop"]
