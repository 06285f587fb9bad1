# どこで: `src/glint/interactive/orbit.py`。
# 何を: マウスドラッグでターゲット周りを周回するカメラ（OrbitController）を提供する。
# なぜ: 入力イベントの受け取りと、フレーム毎のカメラ更新（`update()`）を分離するため。

from __future__ import annotations

import math
from typing import Any

import numpy as np

from glint.interactive.gl import utils as gl_utils

_EPS = 1e-6


class OrbitController:
    """ターゲットを中心に周回するカメラ。

    Notes
    -----
    - ドラッグ量はイベント受信時にためておき、`update()` でまとめて反映する。
    - ズーム/パン/キー操作は無効（距離は固定）。
    - ドラッグ 1 画面高さぶんで 1 周（2π）回る。
    """

    def __init__(
        self,
        *,
        distance: float = 400.0,
        target: tuple[float, float, float] = (0.0, 0.0, 0.0),
        viewport_height: int = 720,
        rotate_speed: float = 1.0,
    ) -> None:
        if float(distance) <= 0:
            raise ValueError(f"distance は正の値である必要がある: got={distance!r}")
        self.distance = float(distance)
        self.target = np.asarray(target, dtype=np.float64)
        self.viewport_height = max(1, int(viewport_height))
        self.rotate_speed = float(rotate_speed)
        # 初期位置は +z 軸上（ターゲットを正面から見る）。
        self.azimuth = 0.0
        self.polar = math.pi / 2.0
        self._pending_dx = 0.0
        self._pending_dy = 0.0

    def attach(self, window: Any) -> None:
        """pyglet window のマウス/リサイズイベントを購読する。"""

        window.push_handlers(on_mouse_drag=self.on_mouse_drag, on_resize=self.on_resize)
        self.viewport_height = max(1, int(window.height))

    def on_mouse_drag(self, x: int, y: int, dx: int, dy: int, buttons: int, modifiers: int) -> None:
        self._pending_dx += float(dx)
        self._pending_dy += float(dy)

    def on_resize(self, width: int, height: int) -> None:
        self.viewport_height = max(1, int(height))

    def update(self) -> None:
        """ためたドラッグ量をカメラ角度へ反映する。"""

        dx, dy = self._pending_dx, self._pending_dy
        self._pending_dx = 0.0
        self._pending_dy = 0.0
        if dx == 0.0 and dy == 0.0:
            return
        scale = 2.0 * math.pi * self.rotate_speed / float(self.viewport_height)
        self.azimuth -= dx * scale
        # pyglet の y は上向き。上へドラッグでカメラが下へ回る。
        self.polar = min(max(self.polar + dy * scale, _EPS), math.pi - _EPS)

    @property
    def eye(self) -> np.ndarray:
        """カメラ位置（ワールド座標）。"""

        sin_p = math.sin(self.polar)
        offset = np.array(
            [
                self.distance * sin_p * math.sin(self.azimuth),
                self.distance * math.cos(self.polar),
                self.distance * sin_p * math.cos(self.azimuth),
            ]
        )
        return self.target + offset

    def view_matrix(self) -> np.ndarray:
        return gl_utils.build_look_at(self.eye, self.target)


__all__ = ["OrbitController"]
