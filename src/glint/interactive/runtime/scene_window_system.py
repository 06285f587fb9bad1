# どこで: `src/glint/interactive/runtime/scene_window_system.py`。
# 何を: シーンウィンドウを所有し、アセット完了後にレンダラー/TextScene/FrameLoop を組み立てるサブシステム。
# なぜ: `src/glint/api/runner.py` の `run()` を「配線」に寄せ、描画責務を独立させるため。

from __future__ import annotations

import contextlib
import logging
from typing import Iterator

import pyglet

from glint.core.assets.bundle import AssetBundle
from glint.core.lifecycle import ImmediateRebuild
from glint.core.scene import TextScene
from glint.interactive.gl.scene_renderer import SceneRenderer
from glint.interactive.orbit import OrbitController
from glint.interactive.pyglet_backend import create_scene_window
from glint.interactive.runtime.frame_loop import FrameLoop

_logger = logging.getLogger(__name__)

CAMERA_DISTANCE = 400.0


class SceneWindowSystem:
    """シーン描画（メインウィンドウ）のサブシステム。

    Notes
    -----
    - アセットが揃うまではクリアするだけ。
    - 再構築は編集 1 回につき即座に 1 回。パネル側から呼ばれても、このウィンドウの GL コンテキスト上で行う。
    """

    def __init__(
        self,
        *,
        size: tuple[int, int],
        position: tuple[int, int] | None = None,
        caption: str = "glint",
    ) -> None:
        self.window = create_scene_window(size=size, position=position, caption=caption)
        self.scene: TextScene | None = None
        self._renderer: SceneRenderer | None = None
        self._loop: FrameLoop | None = None
        self._closed = False

    @property
    def ready(self) -> bool:
        return self._loop is not None

    def on_assets_ready(self, bundle: AssetBundle) -> TextScene:
        """レンダラー → TextScene → オービット → FrameLoop の順に組み立てる。"""

        if self.scene is not None:
            raise RuntimeError("scene は既に構築済み")

        renderer = SceneRenderer(self.window, bundle)
        scene = TextScene(
            bundle,
            uploader=renderer.upload,
            policy=ImmediateRebuild(scope=self.gl_context),
        )
        orbit = OrbitController(distance=CAMERA_DISTANCE, viewport_height=self.window.height)
        orbit.attach(self.window)
        renderer.attach(scene, orbit)

        loop = FrameLoop(
            renderer,
            states=[scene.container.rotation],
            controls=orbit,
            lifecycle=scene.lifecycle,
        )
        # 後始末は「テキスト解放 → レンダラー解放」の順。
        loop.on_stop(scene.close)
        loop.on_stop(renderer.release)

        self.scene = scene
        self._renderer = renderer
        self._loop = loop
        _logger.info("Scene window ready")
        return scene

    @contextlib.contextmanager
    def gl_context(self) -> Iterator[None]:
        """このウィンドウの GL コンテキストを一時的に current にする（抜けると元へ戻す）。"""

        previous = pyglet.gl.current_context
        self.window.switch_to()
        try:
            yield
        finally:
            if previous is not None and previous is not self.window.context:
                previous.set_current()

    def draw_frame(self) -> None:
        """1 フレーム分の描画を行う（`flip()` は呼ばない）。"""

        loop = self._loop
        if loop is None:
            self._clear()
            return
        loop.tick()

    def _clear(self) -> None:
        pyglet.gl.glClearColor(0.0, 0.0, 0.0, 1.0)
        self.window.clear()

    def close(self) -> None:
        """ループを止め（テキスト/レンダラーを解放）、ウィンドウを破棄する。"""

        if self._closed:
            return
        self._closed = True
        loop = self._loop
        if loop is not None:
            # GPU の解放はこのウィンドウのコンテキスト上で行う。
            self.window.switch_to()
            loop.stop()
        self.window.close()


__all__ = ["SceneWindowSystem"]
