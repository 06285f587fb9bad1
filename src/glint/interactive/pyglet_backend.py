# どこで: `src/glint/interactive/pyglet_backend.py`。
# 何を: pyglet のウィンドウ生成と、pyimgui の pyglet backend（renderer 作成 / IO 同期）を提供する。
# なぜ: backend 固有の処理を描画ループやコントロールパネルから分離するため。

from __future__ import annotations

from typing import Any

import pyglet


def create_scene_window(
    *,
    size: tuple[int, int],
    position: tuple[int, int] | None = None,
    caption: str = "glint",
) -> Any:
    """シーン描画用の pyglet ウィンドウを生成する。"""

    config = pyglet.gl.Config(  # type: ignore[abstract]
        double_buffer=True,
        depth_size=24,
        sample_buffers=1,
        samples=4,
        major_version=4,
        minor_version=1,
        forward_compatible=True,
    )
    w, h = size
    window = pyglet.window.Window(  # type: ignore[abstract]
        width=int(w),
        height=int(h),
        caption=str(caption),
        resizable=True,
        config=config,
    )
    if position is not None:
        window.set_location(int(position[0]), int(position[1]))
    return window


def create_control_panel_window(
    *,
    size: tuple[int, int],
    position: tuple[int, int] | None = None,
    caption: str = "Controls",
    vsync: bool = False,
) -> Any:
    """コントロールパネル用の pyglet ウィンドウを生成する。"""

    gl_cfg = pyglet.gl.Config(  # type: ignore[abstract]
        double_buffer=True,
        sample_buffers=1,
        samples=4,
    )
    w, h = size
    window = pyglet.window.Window(  # type: ignore[abstract]
        width=int(w),
        height=int(h),
        caption=str(caption),
        resizable=False,
        vsync=bool(vsync),
        config=gl_cfg,
    )
    if position is not None:
        window.set_location(int(position[0]), int(position[1]))
    return window


def create_imgui_pyglet_renderer(imgui_pyglet_mod: Any, gui_window: Any) -> Any:
    """pyglet 用の ImGui renderer を作成する。"""

    factory = getattr(imgui_pyglet_mod, "create_renderer", None)
    if callable(factory):
        return factory(gui_window)
    renderer_type = getattr(imgui_pyglet_mod, "PygletRenderer", None)
    if renderer_type is None:
        raise RuntimeError("imgui.integrations.pyglet renderer is unavailable")
    return renderer_type(gui_window)


def sync_imgui_io_for_window(imgui_mod: Any, gui_window: Any, *, dt: float) -> None:
    """ImGui IO をウィンドウ状態（サイズ/Retina スケール/Δt）に同期する。"""

    io = imgui_mod.get_io()
    io.delta_time = max(float(dt), 1e-4)

    fb_w, fb_h = gui_window.get_framebuffer_size()
    win_w, win_h = gui_window.width, gui_window.height
    io.display_size = (float(win_w), float(win_h))
    io.display_fb_scale = (
        float(fb_w) / float(max(1, win_w)),
        float(fb_h) / float(max(1, win_h)),
    )


__all__ = [
    "create_control_panel_window",
    "create_imgui_pyglet_renderer",
    "create_scene_window",
    "sync_imgui_io_for_window",
]
