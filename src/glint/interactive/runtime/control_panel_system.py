# どこで: `src/glint/interactive/runtime/control_panel_system.py`。
# 何を: コントロールパネルを「1フレーム描画できるサブシステム」として提供する。
# なぜ: `src/glint/api/runner.py` の `run()` から GUI 初期化/描画/後始末を分離するため。

from __future__ import annotations

import logging

from glint.core.scene import CONTROL_LAYOUT, TextScene
from glint.interactive.control_panel import ControlPanel
from glint.interactive.pyglet_backend import create_control_panel_window

_logger = logging.getLogger(__name__)


class ControlPanelWindowSystem:
    """コントロールパネル（別ウィンドウ）のサブシステム。

    パネル自体はシーン構築後に作る。それまでは空ウィンドウをクリアするだけ。
    """

    def __init__(
        self,
        *,
        size: tuple[int, int],
        position: tuple[int, int] | None = None,
    ) -> None:
        self.window = create_control_panel_window(size=size, position=position)
        self._panel: ControlPanel | None = None
        self._closed = False

    def on_scene_ready(self, scene: TextScene) -> ControlPanel:
        """CONTROL_LAYOUT に従って項目を並べたパネルを作る。"""

        self.window.switch_to()
        panel = ControlPanel(self.window, scene.registry)
        for spec in CONTROL_LAYOUT:
            panel.add_control(
                spec.label,
                scene.handle(spec.param),
                display_range=spec.display_range,
                folder=spec.folder,
            )
        self._panel = panel
        _logger.info("Control panel ready (%d controls)", len(panel.entries))
        return panel

    def draw_frame(self) -> None:
        """1 フレーム分の GUI を描画する（`flip()` は呼ばない）。"""

        panel = self._panel
        if panel is None:
            import pyglet

            pyglet.gl.glClearColor(0.12, 0.12, 0.12, 1.0)
            self.window.clear()
            return
        panel.draw_frame()

    def close(self) -> None:
        """GUI を終了し、ウィンドウを破棄する。"""

        if self._closed:
            return
        self._closed = True
        panel = self._panel
        if panel is not None:
            panel.close()  # window も閉じる
        else:
            self.window.close()


__all__ = ["ControlPanelWindowSystem"]
