"""
どこで: `src/glint/core/triangulate.py`。
何を: 穴付き多角形（グリフ輪郭）を三角形分割する関数群を提供する。
なぜ: 押し出しテキストの前面/背面キャップを面として描くため。

- 外周は CCW、穴は CW に正規化してから扱う。
- 穴は「ブリッジ辺」で外周へ連結し、1 本の単純多角形として ear clipping する。
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numba import njit  # type: ignore[import-untyped]


def signed_area(points: np.ndarray) -> float:
    """多角形の符号付き面積を返す（CCW で正）。"""
    if points.shape[0] < 3:
        return 0.0
    x = points[:, 0]
    y = points[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def point_in_polygon(point: np.ndarray, polygon: np.ndarray) -> bool:
    """偶奇規則で点の内外判定を行う。"""
    px = float(point[0])
    py = float(point[1])
    x0 = polygon[:, 0]
    y0 = polygon[:, 1]
    x1 = np.roll(x0, -1)
    y1 = np.roll(y0, -1)
    crosses = (y0 > py) != (y1 > py)
    with np.errstate(divide="ignore", invalid="ignore"):
        x_at = x0 + (py - y0) * (x1 - x0) / (y1 - y0)
    hits = crosses & (px < x_at)
    return bool(np.count_nonzero(hits) % 2 == 1)


@njit(cache=True)
def _is_ear(points: np.ndarray, nxt: np.ndarray, a: int, b: int, c: int) -> bool:
    ax = points[a, 0]
    ay = points[a, 1]
    bx = points[b, 0]
    by = points[b, 1]
    cx = points[c, 0]
    cy = points[c, 1]

    # CCW 前提で凸頂点のみ ear 候補とする。
    cross = (bx - ax) * (cy - by) - (by - ay) * (cx - bx)
    if cross <= 0.0:
        return False

    p = nxt[c]
    while p != a:
        px = points[p, 0]
        py = points[p, 1]
        # ブリッジで複製された頂点（座標一致）は判定から除く。
        same_a = px == ax and py == ay
        same_b = px == bx and py == by
        same_c = px == cx and py == cy
        if not (same_a or same_b or same_c):
            d1 = (bx - ax) * (py - ay) - (by - ay) * (px - ax)
            d2 = (cx - bx) * (py - by) - (cy - by) * (px - bx)
            d3 = (ax - cx) * (py - cy) - (ay - cy) * (px - cx)
            if d1 >= 0.0 and d2 >= 0.0 and d3 >= 0.0:
                return False
        p = nxt[p]
    return True


@njit(cache=True)
def _ear_clip(points: np.ndarray) -> np.ndarray:
    n = points.shape[0]
    if n < 3:
        return np.empty((0, 3), dtype=np.int64)

    out = np.empty((n - 2, 3), dtype=np.int64)
    prev = np.empty(n, dtype=np.int64)
    nxt = np.empty(n, dtype=np.int64)
    for i in range(n):
        prev[i] = (i - 1 + n) % n
        nxt[i] = (i + 1) % n

    remaining = n
    count = 0
    i = 0
    misses = 0
    while remaining > 3:
        a = prev[i]
        c = nxt[i]
        if _is_ear(points, nxt, a, i, c) or misses > remaining:
            # ear が一巡しても見つからない場合（縮退入力）は現在の頂点を強制的に切る。
            out[count, 0] = a
            out[count, 1] = i
            out[count, 2] = c
            count += 1
            nxt[a] = c
            prev[c] = a
            remaining -= 1
            misses = 0
            i = a
        else:
            misses += 1
            i = nxt[i]

    out[count, 0] = prev[i]
    out[count, 1] = i
    out[count, 2] = nxt[i]
    count += 1
    return out[:count]


def _segment_is_clear(
    start: np.ndarray,
    end: np.ndarray,
    edges_a: np.ndarray,
    edges_b: np.ndarray,
) -> bool:
    """線分 start-end が、端点を共有しない辺と交差しなければ True。"""

    touches = (
        np.all(edges_a == start, axis=1)
        | np.all(edges_b == start, axis=1)
        | np.all(edges_a == end, axis=1)
        | np.all(edges_b == end, axis=1)
    )

    def orient(p: np.ndarray, q: np.ndarray, r: np.ndarray) -> np.ndarray:
        return (q[..., 0] - p[..., 0]) * (r[..., 1] - p[..., 1]) - (
            q[..., 1] - p[..., 1]
        ) * (r[..., 0] - p[..., 0])

    d1 = orient(edges_a, edges_b, start)
    d2 = orient(edges_a, edges_b, end)
    d3 = orient(start, end, edges_a)
    d4 = orient(start, end, edges_b)
    hits = (d1 * d2 < 0.0) & (d3 * d4 < 0.0) & ~touches
    return not bool(np.any(hits))


def _bridge_hole(
    points: np.ndarray,
    ring: list[int],
    hole: Sequence[int],
    all_edges: tuple[np.ndarray, np.ndarray],
) -> list[int]:
    """穴 `hole` を外周 `ring` へブリッジで連結したインデックス列を返す。"""

    hole_idx = np.asarray(hole, dtype=np.int64)
    ring_idx = np.asarray(ring, dtype=np.int64)
    hole_pts = points[hole_idx]
    start_local = int(np.argmax(hole_pts[:, 0]))
    m = hole_pts[start_local]

    ring_pts = points[ring_idx]
    dist = np.sum((ring_pts - m) ** 2, axis=1)
    order = np.argsort(dist, kind="stable")
    right = [int(i) for i in order[ring_pts[order, 0] >= m[0]]]
    right_set = set(right)
    candidates = right + [int(i) for i in order if int(i) not in right_set]

    edges_a, edges_b = all_edges
    chosen = int(order[0])
    for ci in candidates:
        if _segment_is_clear(m, ring_pts[ci], edges_a, edges_b):
            chosen = int(ci)
            break

    rotated = [int(hole_idx[(start_local + k) % len(hole_idx)]) for k in range(len(hole_idx))]
    return (
        ring[: chosen + 1]
        + rotated
        + [int(hole_idx[start_local]), ring[chosen]]
        + ring[chosen + 1 :]
    )


def triangulate_shape(outer: np.ndarray, holes: Sequence[np.ndarray] = ()) -> np.ndarray:
    """外周 + 穴の多角形を三角形分割する。

    Parameters
    ----------
    outer : np.ndarray
        shape (N, 2) の外周（CCW）。
    holes : Sequence[np.ndarray]
        shape (M, 2) の穴（CW）の列。

    Returns
    -------
    np.ndarray
        int64 shape (T, 3)。`np.concatenate([outer, *holes])` に対するインデックス。
        各三角形は CCW。
    """

    contours = [np.asarray(outer, dtype=np.float64)] + [
        np.asarray(h, dtype=np.float64) for h in holes if len(h) >= 3
    ]
    points = np.concatenate(contours, axis=0)

    starts = np.cumsum([0] + [len(c) for c in contours])
    spans = [list(range(int(starts[k]), int(starts[k + 1]))) for k in range(len(contours))]

    edge_a: list[np.ndarray] = []
    edge_b: list[np.ndarray] = []
    for c in contours:
        edge_a.append(c)
        edge_b.append(np.roll(c, -1, axis=0))
    all_edges = (np.concatenate(edge_a, axis=0), np.concatenate(edge_b, axis=0))

    ring = spans[0]
    hole_spans = sorted(spans[1:], key=lambda s: float(points[s, 0].max()), reverse=True)
    for span in hole_spans:
        ring = _bridge_hole(points, ring, span, all_edges)

    merged = np.asarray(ring, dtype=np.int64)
    local = _ear_clip(np.ascontiguousarray(points[merged]))
    if local.size == 0:
        return np.zeros((0, 3), dtype=np.int64)
    return merged[local]


__all__ = ["point_in_polygon", "signed_area", "triangulate_shape"]
