from __future__ import annotations

# どこで: `src/glint/interactive/gl/utils.py`。
# 何を: 描画で使う小さなユーティリティ（投影/視点/回転行列の生成）を提供する。
# なぜ: renderer と orbit で共有し、座標系の定義を一箇所に集約するため。

import math

import numpy as np


def build_perspective(fov_y_deg: float, aspect: float, near: float, far: float) -> "np.ndarray":
    """透視投影行列（ModernGL 用の転置済み）を返す。"""
    f = 1.0 / math.tan(math.radians(float(fov_y_deg)) / 2.0)
    a = float(aspect) if aspect > 0 else 1.0
    n, fa = float(near), float(far)
    proj = np.array(
        [
            [f / a, 0, 0, 0],
            [0, f, 0, 0],
            [0, 0, (fa + n) / (n - fa), 2 * fa * n / (n - fa)],
            [0, 0, -1, 0],
        ],
        dtype="f4",
    ).T
    return proj


def build_look_at(eye: "np.ndarray", target: "np.ndarray", up=(0.0, 1.0, 0.0)) -> "np.ndarray":
    """視点行列（ModernGL 用の転置済み）を返す。"""
    eye = np.asarray(eye, dtype=np.float64)
    target = np.asarray(target, dtype=np.float64)
    f = target - eye
    f = f / max(np.linalg.norm(f), 1e-12)
    s = np.cross(f, np.asarray(up, dtype=np.float64))
    s = s / max(np.linalg.norm(s), 1e-12)
    u = np.cross(s, f)
    view = np.array(
        [
            [s[0], s[1], s[2], -float(np.dot(s, eye))],
            [u[0], u[1], u[2], -float(np.dot(u, eye))],
            [-f[0], -f[1], -f[2], float(np.dot(f, eye))],
            [0, 0, 0, 1],
        ],
        dtype="f4",
    ).T
    return view


def build_rotation_y(angle: float) -> "np.ndarray":
    """y 軸回転のモデル行列（ModernGL 用の転置済み）を返す。"""
    c = math.cos(float(angle))
    s = math.sin(float(angle))
    rot = np.array(
        [
            [c, 0, s, 0],
            [0, 1, 0, 0],
            [-s, 0, c, 0],
            [0, 0, 0, 1],
        ],
        dtype="f4",
    ).T
    return rot
