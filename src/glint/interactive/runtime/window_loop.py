# どこで: `src/glint/interactive/runtime/window_loop.py`。
# 何を: シーンとコントロールパネルの各ウィンドウを pyglet の単一イベントループで駆動する SceneWindowLoop。
# なぜ: アセット完了通知・編集・描画をすべて同じスレッドの同じフレーム内で順に処理するため。

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

import pyglet

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WindowTask:
    """ウィンドウと、その back buffer へ 1 フレーム描く関数の組（flip は pyglet 側）。"""

    window: Any
    draw_frame: Callable[[], None]


class SceneWindowLoop:
    """登録ウィンドウを一定間隔で再描画するイベントループ。

    1 回のスケジュール呼び出しで
    `on_frame_start()`（アセット完了のポーリング）→ 各ウィンドウの `draw()` の順に進む。
    どれか 1 つのウィンドウが閉じられるか `stop()` が呼ばれるとループを抜ける。
    """

    def __init__(
        self,
        tasks: list[WindowTask],
        *,
        fps: float,
        on_frame_start: Callable[[], None] | None = None,
    ) -> None:
        self._tasks = tuple(tasks)
        self._interval = 0.0 if float(fps) <= 0 else 1.0 / float(fps)
        self._on_frame_start = on_frame_start

    def stop(self) -> None:
        """実行中の `run()` を次のイベント処理後に戻す。"""

        pyglet.app.exit()

    def _step(self, dt: float) -> None:
        if self._on_frame_start is not None:
            self._on_frame_start()
        open_windows = pyglet.app.windows
        for task in self._tasks:
            # 閉じ済みウィンドウへの draw は GL エラーになる。
            if task.window in open_windows:
                task.window.draw(dt)

    def run(self) -> None:
        """ループを開始し、終了条件を満たすまでブロックする。"""

        for task in self._tasks:
            task.window.push_handlers(
                on_close=lambda *_args: self.stop(),
                on_draw=task.draw_frame,
            )

        if self._interval > 0:
            pyglet.clock.schedule_interval(self._step, self._interval)
        else:
            pyglet.clock.schedule(self._step)
        _logger.info("Window loop started (%d windows)", len(self._tasks))
        try:
            pyglet.app.run(interval=None)
        finally:
            pyglet.clock.unschedule(self._step)
            _logger.info("Window loop exited")


__all__ = ["SceneWindowLoop", "WindowTask"]
