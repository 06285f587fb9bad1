"""
どこで: `src/glint/core/text_geometry.py`。
何を: メッセージ文字列から押し出し（ベベル付き）テキストの三角形メッシュを生成し、
      それを保持する DerivedResource（TextObject）を提供する。
なぜ: パラメータ編集ごとに丸ごと再生成される派生リソースの実体として使うため。

- 前面/背面キャップは `GlyphShape.triangles` を流用する。
- 側面はベベル段ごとのリングを四角形（2 三角形）で接続する。
- 頂点法線は面法線の面積加重和を正規化して求める。
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np

from glint.core.glyph_font import GlyphFont
from glint.core.lifecycle import ResourceError

TEXT_SIZE = 100.0
_EPS = 1e-12


@dataclass(frozen=True, slots=True)
class TextGeometry:
    """押し出しテキストの三角形メッシュ。

    Parameters
    ----------
    positions : np.ndarray
        float32 shape (N, 3) の頂点座標。
    normals : np.ndarray
        float32 shape (N, 3) の頂点法線。
    indices : np.ndarray
        uint32 shape (M, 3) の三角形インデックス（CCW が表）。

    Notes
    -----
    配列は writeable=False に固定する。
    """

    positions: np.ndarray
    normals: np.ndarray
    indices: np.ndarray

    def __post_init__(self) -> None:
        positions = np.asarray(self.positions, dtype=np.float32)
        normals = np.asarray(self.normals, dtype=np.float32)
        indices = np.asarray(self.indices, dtype=np.uint32)

        if positions.ndim != 2 or positions.shape[1] != 3:
            raise ValueError("positions は shape (N,3) の 2 次元配列である必要がある")
        if normals.shape != positions.shape:
            raise ValueError("normals は positions と同じ shape である必要がある")
        if indices.ndim != 2 or indices.shape[1] != 3:
            raise ValueError("indices は shape (M,3) の 2 次元配列である必要がある")
        if indices.size and int(indices.max()) >= positions.shape[0]:
            raise ValueError("indices が頂点数の範囲外を参照している")

        positions.setflags(write=False)
        normals.setflags(write=False)
        indices.setflags(write=False)
        object.__setattr__(self, "positions", positions)
        object.__setattr__(self, "normals", normals)
        object.__setattr__(self, "indices", indices)

    @classmethod
    def empty(cls) -> "TextGeometry":
        return cls(
            positions=np.zeros((0, 3), dtype=np.float32),
            normals=np.zeros((0, 3), dtype=np.float32),
            indices=np.zeros((0, 3), dtype=np.uint32),
        )

    @property
    def vertex_count(self) -> int:
        return int(self.positions.shape[0])

    @property
    def triangle_count(self) -> int:
        return int(self.indices.shape[0])

    def bounding_box(self) -> tuple[np.ndarray, np.ndarray]:
        """(min xyz, max xyz) を返す。空なら原点 2 つ。"""
        if self.vertex_count == 0:
            zero = np.zeros(3, dtype=np.float32)
            return zero, zero.copy()
        return self.positions.min(axis=0), self.positions.max(axis=0)

    def centered(self) -> "TextGeometry":
        """バウンディングボックス中心が原点に来るよう平行移動したコピーを返す。"""
        lo, hi = self.bounding_box()
        center = (lo + hi) * 0.5
        return TextGeometry(
            positions=self.positions - center,
            normals=self.normals,
            indices=self.indices,
        )


def _unit_rows(v: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    norm = np.linalg.norm(v, axis=1)
    ok = norm > _EPS
    out = np.zeros_like(v)
    out[ok] = v[ok] / norm[ok, None]
    return out, ok


def _bevel_vectors(contour: np.ndarray) -> np.ndarray:
    """各頂点の外向きオフセット方向（マイター長込み）を返す。"""

    prev = np.roll(contour, 1, axis=0)
    nxt = np.roll(contour, -1, axis=0)
    e_in = contour - prev
    e_out = nxt - contour
    n_in, _ = _unit_rows(np.stack([e_in[:, 1], -e_in[:, 0]], axis=1))
    n_out, _ = _unit_rows(np.stack([e_out[:, 1], -e_out[:, 0]], axis=1))

    miter, ok = _unit_rows(n_in + n_out)
    # 折り返し（180°）では辺法線をそのまま使う。
    miter[~ok] = n_in[~ok]
    cos_half = np.sum(miter * n_in, axis=1)
    scale = 1.0 / np.maximum(cos_half, 0.25)
    return miter * scale[:, None]


def extrusion_layers(
    height: float,
    *,
    bevel_thickness: float,
    bevel_size: float,
    bevel_offset: float,
    bevel_segments: int,
) -> list[tuple[float, float]]:
    """押し出しリングの (z, 外向きオフセット) 列を前面から背面の順に返す。"""

    h = float(height)
    n = int(bevel_segments)
    if n <= 0:
        return [(0.0, 0.0), (h, 0.0)]

    t_bev = float(bevel_thickness)
    s_bev = float(bevel_size)
    o_bev = float(bevel_offset)

    layers: list[tuple[float, float]] = []
    for b in range(n + 1):
        t = b / n
        z = t_bev * math.cos(t * math.pi / 2)
        layers.append((-z, s_bev * math.sin(t * math.pi / 2) + o_bev))
    layers.append((h, s_bev + o_bev))
    for b in range(n - 1, -1, -1):
        t = b / n
        z = t_bev * math.cos(t * math.pi / 2)
        layers.append((h + z, s_bev * math.sin(t * math.pi / 2) + o_bev))
    return layers


def _extrude_shape(
    contours: tuple[np.ndarray, ...],
    triangles: np.ndarray,
    layers: list[tuple[float, float]],
) -> tuple[np.ndarray, np.ndarray]:
    """1 シェイプを押し出し、(positions (N,3), indices (M,3)) を返す。"""

    pts = np.concatenate(contours, axis=0)
    vecs = np.concatenate([_bevel_vectors(c) for c in contours], axis=0)
    n_pts = int(pts.shape[0])
    n_layers = len(layers)

    def ring(z: float, offset: float) -> np.ndarray:
        xy = pts + vecs * float(offset)
        return np.concatenate([xy, np.full((n_pts, 1), float(z))], axis=1)

    # --- キャップ（前面は裏返し、背面はそのまま）---
    z_front, o_front = layers[0]
    z_back, o_back = layers[-1]
    front = ring(z_front, o_front)
    back = ring(z_back, o_back)
    cap_tris = [triangles[:, [0, 2, 1]], triangles + n_pts]

    # --- 側面リング ---
    side_base = 2 * n_pts
    rings = np.concatenate([ring(z, o) for z, o in layers], axis=0)

    side_tris: list[np.ndarray] = []
    start = 0
    layer_idx = np.arange(n_layers - 1, dtype=np.int64)[:, None] * n_pts
    for contour in contours:
        count = int(contour.shape[0])
        i = np.arange(count, dtype=np.int64) + start
        j = (np.arange(count, dtype=np.int64) + 1) % count + start
        a = (side_base + layer_idx + i).ravel()
        b = (side_base + layer_idx + j).ravel()
        c = (side_base + layer_idx + n_pts + j).ravel()
        d = (side_base + layer_idx + n_pts + i).ravel()
        side_tris.append(np.stack([a, b, c], axis=1))
        side_tris.append(np.stack([a, c, d], axis=1))
        start += count

    positions = np.concatenate([front, back, rings], axis=0)
    indices = np.concatenate(cap_tris + side_tris, axis=0)
    return positions, indices


def compute_vertex_normals(positions: np.ndarray, indices: np.ndarray) -> np.ndarray:
    """面法線の面積加重和から頂点法線を求める。"""

    normals = np.zeros_like(positions, dtype=np.float64)
    if indices.size == 0:
        return normals
    p0 = positions[indices[:, 0]]
    p1 = positions[indices[:, 1]]
    p2 = positions[indices[:, 2]]
    face = np.cross(p1 - p0, p2 - p0)
    for k in range(3):
        np.add.at(normals, indices[:, k], face)
    unit, _ = _unit_rows(normals)
    return unit


def build_text_geometry(
    font: GlyphFont,
    message: str,
    *,
    size: float = TEXT_SIZE,
    height: float = 50.0,
    curve_segments: int = 8,
    bevel_enabled: bool = True,
    bevel_thickness: float = 3.0,
    bevel_size: float = 3.0,
    bevel_offset: float = 0.0,
    bevel_segments: int = 4,
) -> TextGeometry:
    """メッセージを押し出した三角形メッシュを、バウンディングボックス中心で返す。

    Parameters
    ----------
    font : GlyphFont
        グリフ輪郭の供給元。
    message : str
        表示文字列。`\\n` で改行する。
    size : float
        1 em のワールド寸法。
    height : float
        押し出しの奥行き。
    curve_segments : int
        曲線 1 区間あたりのサンプル数。
    bevel_enabled : bool
        False の場合、ベベルの厚み/幅/オフセット/段数をすべて 0 とする。
    bevel_thickness, bevel_size, bevel_offset : float
        ベベルの奥行き方向の厚み、外向きの幅、輪郭のオフセット。
    bevel_segments : int
        ベベルの段数。

    Returns
    -------
    TextGeometry
        空文字列（または描画可能なグリフ無し）の場合は空のジオメトリ。
    """

    if not bevel_enabled:
        bevel_thickness = 0.0
        bevel_size = 0.0
        bevel_offset = 0.0
        bevel_segments = 0

    layers = extrusion_layers(
        height,
        bevel_thickness=bevel_thickness,
        bevel_size=bevel_size,
        bevel_offset=bevel_offset,
        bevel_segments=bevel_segments,
    )

    scale = float(size) / float(font.units_per_em)
    line_advance = float(font.line_height) * scale

    positions_parts: list[np.ndarray] = []
    index_parts: list[np.ndarray] = []
    base = 0
    x = 0.0
    y = 0.0
    for char in str(message):
        if char == "\n":
            x = 0.0
            y -= line_advance
            continue

        origin = np.array([x, y], dtype=np.float64)
        for shape in font.shapes(char, curve_segments):
            contours = tuple(c * scale + origin for c in shape.contours)
            positions, indices = _extrude_shape(contours, shape.triangles, layers)
            positions_parts.append(positions)
            index_parts.append(indices + base)
            base += int(positions.shape[0])
        x += font.advance(char) * scale

    if not positions_parts:
        return TextGeometry.empty()

    positions = np.concatenate(positions_parts, axis=0)
    indices = np.concatenate(index_parts, axis=0)
    normals = compute_vertex_normals(positions, indices)
    return TextGeometry(positions=positions, normals=normals, indices=indices).centered()


class TextObject:
    """押し出しテキストの DerivedResource。

    `gpu` は `release()` を持つ GPU 側メッシュ（ヘッドレス時は None）。
    """

    def __init__(self, message: str, geometry: TextGeometry, gpu: Any | None = None) -> None:
        self.message = str(message)
        self.geometry = geometry
        self.gpu = gpu
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """GPU バッファを解放する。2 回目は `ResourceError`。"""

        if self._disposed:
            raise ResourceError(f"TextObject already disposed: message={self.message!r}")
        self._disposed = True
        gpu = self.gpu
        self.gpu = None
        if gpu is not None:
            gpu.release()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "live"
        return f"TextObject(message={self.message!r}, triangles={self.geometry.triangle_count}, {state})"


TEXT_PARAMETER_NAMES = (
    "message",
    "height",
    "curve_segments",
    "bevel_enabled",
    "bevel_thickness",
    "bevel_size",
    "bevel_offset",
    "bevel_segments",
)


def build_text_object(
    font: GlyphFont,
    params: Mapping[str, Any],
    uploader: Callable[[TextGeometry], Any] | None = None,
) -> TextObject:
    """パラメータのスナップショットから TextObject を構築する。"""

    message = str(params["message"])
    geometry = build_text_geometry(
        font,
        message,
        height=float(params["height"]),
        curve_segments=int(params["curve_segments"]),
        bevel_enabled=bool(params["bevel_enabled"]),
        bevel_thickness=float(params["bevel_thickness"]),
        bevel_size=float(params["bevel_size"]),
        bevel_offset=float(params["bevel_offset"]),
        bevel_segments=int(params["bevel_segments"]),
    )
    gpu = uploader(geometry) if uploader is not None else None
    return TextObject(message, geometry, gpu)


__all__ = [
    "TEXT_PARAMETER_NAMES",
    "TextGeometry",
    "TextObject",
    "build_text_geometry",
    "build_text_object",
    "compute_vertex_normals",
    "extrusion_layers",
]
