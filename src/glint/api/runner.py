"""
どこで: `src/glint/api/runner.py`。公開 API のランナー実装。
何を: 設定 → アセットロード → barrier → ウィンドウ → ループ → 後始末 を配線する `run()` を提供する。
なぜ: `main.py` を実行して押し出しテキストのシーンを操作できる経路を用意するため。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import pyglet

from glint.core.assets.barrier import AssetBarrier, AssetLoadError
from glint.core.assets.bundle import (
    ALL_SLOTS,
    ENV_MAP,
    FONT,
    FRAGMENT_SHADER,
    VERTEX_SHADER,
    AssetBundle,
)
from glint.core.assets.loaders import AssetLoadQueue, FontLoader, ImageLoader, TextLoader
from glint.core.runtime_config import packaged_shader_path, runtime_config, set_config_path
from glint.interactive.runtime.control_panel_system import ControlPanelWindowSystem
from glint.interactive.runtime.scene_window_system import SceneWindowSystem
from glint.interactive.runtime.window_loop import SceneWindowLoop, WindowTask

_logger = logging.getLogger(__name__)


def run(*, config_path: str | Path | None = None) -> None:
    """シーンウィンドウとコントロールパネルを開き、閉じられるまで描画する。

    Parameters
    ----------
    config_path : str | Path | None
        設定ファイル（config.yaml）のパス。指定した場合は探索より優先する。

    Raises
    ------
    AssetLoadError
        アセットのロードが失敗/タイムアウトした場合（ウィンドウを閉じた後に送出する）。
    """

    set_config_path(config_path)
    cfg = runtime_config()

    # True にするとコントロールパネルのクリックやドラッグが抜ける事がある。
    pyglet.options["vsync"] = False

    # --- サブシステムの組み立て ---
    scene_window = SceneWindowSystem(
        size=cfg.scene_window_size,
        position=cfg.window_pos_scene,
    )
    # `closers` は teardown 用（作成順に積み、逆順で閉じる）。
    closers: list[Callable[[], None]] = [scene_window.close]

    panel = ControlPanelWindowSystem(
        size=cfg.control_panel_window_size,
        position=cfg.window_pos_control_panel,
    )
    closers.append(panel.close)

    tasks = [
        WindowTask(window=scene_window.window, draw_frame=scene_window.draw_frame),
        WindowTask(window=panel.window, draw_frame=panel.draw_frame),
    ]

    failures: list[AssetLoadError] = []

    def on_ready() -> None:
        bundle = AssetBundle.from_results(load_queue.results())
        scene = scene_window.on_assets_ready(bundle)
        panel.on_scene_ready(scene)

    def on_error(error: AssetLoadError) -> None:
        _logger.error("Asset loading failed: %s", error)
        failures.append(error)
        window_loop.stop()

    # --- アセットのロード開始 ---
    barrier = AssetBarrier(on_ready, on_error=on_error)
    barrier.register(len(ALL_SLOTS))
    load_queue = AssetLoadQueue(barrier, timeout=cfg.load_timeout_sec)
    closers.append(load_queue.close)

    text_loader = TextLoader()
    load_queue.submit(VERTEX_SHADER, text_loader, cfg.vertex_shader or packaged_shader_path("text.vert"))
    load_queue.submit(
        FRAGMENT_SHADER, text_loader, cfg.fragment_shader or packaged_shader_path("text.frag")
    )
    load_queue.submit(FONT, FontLoader(), cfg.font)
    load_queue.submit(ENV_MAP, ImageLoader(filter=cfg.env_map_filter), cfg.env_map)

    # --- ループの実行 ---
    # 完了通知はフレーム冒頭（このスレッド）で barrier へ届ける。
    window_loop = SceneWindowLoop(tasks, fps=cfg.fps, on_frame_start=load_queue.poll_pending)
    try:
        window_loop.run()
    finally:
        for close in reversed(closers):
            close()

    if failures:
        raise failures[0]
