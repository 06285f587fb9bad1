"""
どこで: `src/glint/core/glyph_font.py`。
何を: fontTools の TTFont をラップし、文字ごとの輪郭（サンプリング済み）と三角形分割を提供する。
なぜ: 押し出しテキストの生成をフォント形式の詳細から切り離すため。
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
from fontTools.pens.basePen import BasePen  # type: ignore[import-untyped]

from glint.core.triangulate import point_in_polygon, signed_area, triangulate_shape

_logger = logging.getLogger(__name__)

_MIN_CONTOUR_AREA = 1e-9


class _SamplingPen(BasePen):
    """曲線を `curve_segments` 分割でサンプリングし、閉輪郭の点列として記録する。"""

    def __init__(self, glyph_set: Any, curve_segments: int) -> None:
        super().__init__(glyph_set)
        self._segments = max(1, int(curve_segments))
        self._current: list[tuple[float, float]] | None = None
        self.contours: list[np.ndarray] = []

    def _moveTo(self, pt):
        self._flush()
        self._current = [(float(pt[0]), float(pt[1]))]

    def _lineTo(self, pt):
        assert self._current is not None
        self._current.append((float(pt[0]), float(pt[1])))

    def _curveToOne(self, pt1, pt2, pt3):
        assert self._current is not None
        x0, y0 = self._getCurrentPoint()
        n = self._segments
        for i in range(1, n + 1):
            t = i / n
            u = 1.0 - t
            x = u * u * u * x0 + 3 * u * u * t * pt1[0] + 3 * u * t * t * pt2[0] + t * t * t * pt3[0]
            y = u * u * u * y0 + 3 * u * u * t * pt1[1] + 3 * u * t * t * pt2[1] + t * t * t * pt3[1]
            self._current.append((float(x), float(y)))

    def _qCurveToOne(self, pt1, pt2):
        assert self._current is not None
        x0, y0 = self._getCurrentPoint()
        n = self._segments
        for i in range(1, n + 1):
            t = i / n
            u = 1.0 - t
            x = u * u * x0 + 2 * u * t * pt1[0] + t * t * pt2[0]
            y = u * u * y0 + 2 * u * t * pt1[1] + t * t * pt2[1]
            self._current.append((float(x), float(y)))

    def _closePath(self):
        self._flush()

    def _endPath(self):
        self._flush()

    def _flush(self) -> None:
        points = self._current
        self._current = None
        if not points:
            return
        arr = np.asarray(points, dtype=np.float64)
        # 連続重複点と、始点へ戻る終点を落とす。
        keep = np.ones(arr.shape[0], dtype=bool)
        keep[1:] = np.any(np.diff(arr, axis=0) != 0.0, axis=1)
        arr = arr[keep]
        if arr.shape[0] > 1 and np.all(arr[0] == arr[-1]):
            arr = arr[:-1]
        if arr.shape[0] >= 3:
            self.contours.append(arr)


@dataclass(frozen=True, slots=True)
class GlyphShape:
    """1 つの外周と 0 個以上の穴、およびキャップ用の三角形。

    Notes
    -----
    outer は CCW、holes は CW に正規化済み。
    triangles は `np.concatenate([outer, *holes])` に対するインデックス。
    """

    outer: np.ndarray
    holes: tuple[np.ndarray, ...]
    triangles: np.ndarray

    @property
    def contours(self) -> tuple[np.ndarray, ...]:
        return (self.outer, *self.holes)


def group_contours(contours: list[np.ndarray]) -> list[GlyphShape]:
    """輪郭列を「外周 + 穴」の組へまとめ、三角形分割して返す。

    巻き方向はフォント形式（TrueType/CFF）で逆になるため、
    最大面積の輪郭と同じ向きを外周、逆向きを穴とみなす。
    """

    items = [(c, signed_area(c)) for c in contours]
    items = [(c, a) for c, a in items if abs(a) > _MIN_CONTOUR_AREA]
    if not items:
        return []

    outer_sign = np.sign(max(items, key=lambda it: abs(it[1]))[1])
    outers = [(c, a) for c, a in items if np.sign(a) == outer_sign]
    holes = [(c, a) for c, a in items if np.sign(a) != outer_sign]

    hole_lists: list[list[np.ndarray]] = [[] for _ in outers]
    for hole, _area in holes:
        owner = None
        owner_area = float("inf")
        for k, (outer, outer_area) in enumerate(outers):
            if abs(outer_area) < owner_area and point_in_polygon(hole[0], outer):
                owner = k
                owner_area = abs(outer_area)
        if owner is None:
            # どの外周にも含まれない穴は独立した外周として扱う。
            outers.append((hole[::-1].copy(), -_area))
            hole_lists.append([])
            continue
        hole_lists[owner].append(hole)

    shapes: list[GlyphShape] = []
    for (outer, area), hs in zip(outers, hole_lists):
        outer_ccw = outer if area > 0 else outer[::-1].copy()
        holes_cw = tuple(h if signed_area(h) < 0 else h[::-1].copy() for h in hs)
        triangles = triangulate_shape(outer_ccw, holes_cw)
        shapes.append(GlyphShape(outer=outer_ccw, holes=holes_cw, triangles=triangles))
    return shapes


class GlyphFont:
    """グリフ輪郭の供給元。`FontLoader` が生成する。"""

    def __init__(self, tt_font: Any, *, source: str | None = None, cache_size: int = 512) -> None:
        self._font = tt_font
        self._glyph_set = tt_font.getGlyphSet()
        self._cmap: dict[int, str] = dict(tt_font.getBestCmap() or {})
        self._hmtx = tt_font["hmtx"]
        self.source = source
        self.units_per_em = int(tt_font["head"].unitsPerEm)

        hhea = tt_font["hhea"] if "hhea" in tt_font else None
        if hhea is not None:
            self.line_height = float(hhea.ascent - hhea.descent + hhea.lineGap)
        else:
            self.line_height = float(self.units_per_em) * 1.2

        self._shape_cache: OrderedDict[tuple[str, int], tuple[GlyphShape, ...]] = OrderedDict()
        self._cache_size = int(cache_size)

    @classmethod
    def from_path(cls, path: str | Path) -> "GlyphFont":
        from fontTools.ttLib import TTFont  # type: ignore[import-untyped]

        p = Path(path)
        return cls(TTFont(str(p)), source=str(p))

    def _glyph_name(self, char: str) -> str | None:
        name = self._cmap.get(ord(char))
        if name is None and char in self._glyph_set:
            name = char
        return name

    def has_glyph(self, char: str) -> bool:
        return self._glyph_name(char) is not None

    def advance(self, char: str) -> float:
        """文字送り幅（フォント単位）を返す。未収録文字は `.notdef` の幅。"""

        name = self._glyph_name(char)
        if name is None:
            name = ".notdef"
        try:
            width, _lsb = self._hmtx[name]
        except KeyError:
            return 0.0
        return float(width)

    def contours(self, char: str, curve_segments: int) -> list[np.ndarray]:
        """文字の輪郭（float64 shape (N, 2) の閉ポリライン、終点重複なし）を返す。"""

        name = self._glyph_name(char)
        if name is None:
            if not char.isspace():
                _logger.warning(
                    "Character '%s' (U+%04X) not found in font '%s'",
                    char,
                    ord(char),
                    self.source,
                )
            return []
        pen = _SamplingPen(self._glyph_set, curve_segments)
        self._glyph_set[name].draw(pen)
        return pen.contours

    def shapes(self, char: str, curve_segments: int) -> tuple[GlyphShape, ...]:
        """文字の `GlyphShape` 列を返す（キャッシュ）。"""

        key = (char, max(1, int(curve_segments)))
        cached = self._shape_cache.get(key)
        if cached is not None:
            self._shape_cache.move_to_end(key)
            return cached

        shapes = tuple(group_contours(self.contours(char, key[1])))
        self._shape_cache[key] = shapes
        while len(self._shape_cache) > self._cache_size:
            self._shape_cache.popitem(last=False)
        return shapes


__all__ = ["GlyphFont", "GlyphShape", "group_contours"]
