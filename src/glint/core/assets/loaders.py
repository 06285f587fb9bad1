"""
どこで: `src/glint/core/assets/loaders.py`。
何を: 各種アセット（テキスト/フォント/画像）のローダと、ワーカースレッドで並行ロードする AssetLoadQueue を提供する。
なぜ: ロード自体は並行に進めつつ、完了通知は単一の実行系列（フレームループ側）で 1 件ずつ処理するため。

- 完了はワーカースレッドから `queue.Queue` へ積むだけにする。
- `poll_pending()` を呼んだスレッドで barrier へ signal / fail を届ける。
"""

from __future__ import annotations

import logging
import queue
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Protocol, TypeVar

import numpy as np

from glint.core.assets.barrier import AssetBarrier, AssetLoadError, DoubleSignalError
from glint.core.glyph_font import GlyphFont

_logger = logging.getLogger(__name__)

T_co = TypeVar("T_co", covariant=True)

FILTER_MODES = ("nearest", "linear")


class AssetLoader(Protocol[T_co]):
    def load(self, path: str | Path) -> T_co: ...


@dataclass(frozen=True, slots=True)
class SampledImage:
    """サンプリング設定付きの画像。

    Parameters
    ----------
    pixels : np.ndarray
        uint8 shape (H, W, 4) の RGBA。GL の原点（左下）に合わせて上下反転済み。
    filter : str
        "nearest" | "linear"。縮小/拡大フィルタ。
    """

    pixels: np.ndarray
    filter: str = "linear"

    def __post_init__(self) -> None:
        pixels = np.ascontiguousarray(self.pixels, dtype=np.uint8)
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError("pixels は shape (H,W,4) の RGBA 配列である必要がある")
        if self.filter not in FILTER_MODES:
            raise ValueError(f"未対応の filter です: {self.filter!r}")
        pixels.setflags(write=False)
        object.__setattr__(self, "pixels", pixels)

    @property
    def size(self) -> tuple[int, int]:
        """(width, height) を返す。"""
        return int(self.pixels.shape[1]), int(self.pixels.shape[0])


class TextLoader:
    """UTF-8 テキスト（シェーダソース等）を読む。"""

    def load(self, path: str | Path) -> str:
        return Path(path).read_text(encoding="utf-8")


class FontLoader:
    """TrueType/OpenType フォントを `GlyphFont` として読む。"""

    def load(self, path: str | Path) -> GlyphFont:
        return GlyphFont.from_path(path)


class ImageLoader:
    """画像を RGBA の `SampledImage` として読む。"""

    def __init__(self, *, filter: str = "nearest") -> None:
        if filter not in FILTER_MODES:
            raise ValueError(f"未対応の filter です: {filter!r}")
        self.filter = filter

    def load(self, path: str | Path) -> SampledImage:
        from PIL import Image

        with Image.open(Path(path)) as image:
            rgba = image.convert("RGBA")
            pixels = np.asarray(rgba, dtype=np.uint8)
        return SampledImage(pixels=np.flipud(pixels), filter=self.filter)


@dataclass
class _Pending:
    slot: str
    future: Future
    started_at: float


class AssetLoadQueue:
    """アセットをワーカースレッドでロードし、完了を barrier へ届ける。

    Notes
    -----
    ロードはキャンセルできない。タイムアウトしたロードは失敗として報告するが、
    ワーカー側の処理は放置する（結果は破棄される）。
    """

    def __init__(
        self,
        barrier: AssetBarrier,
        *,
        max_workers: int = 4,
        timeout: float | None = None,
        time_fn: Callable[[], float] = time.monotonic,
    ) -> None:
        if timeout is not None and float(timeout) <= 0:
            raise ValueError(f"timeout は正の値である必要がある: got={timeout!r}")
        self._barrier = barrier
        self._executor = ThreadPoolExecutor(
            max_workers=int(max_workers), thread_name_prefix="glint-asset"
        )
        self._timeout = None if timeout is None else float(timeout)
        self._time_fn = time_fn
        self._completed: "queue.Queue[tuple[str, Any, BaseException | None]]" = queue.Queue()
        self._pending: dict[str, _Pending] = {}
        self._results: dict[str, Any] = {}

    def submit(self, slot: str, loader: AssetLoader[Any], path: str | Path) -> Future:
        """`loader.load(path)` をワーカーで開始する。"""

        if slot in self._pending or slot in self._results:
            raise ValueError(f"slot '{slot}' は既に投入済み")

        def on_done(fut: Future) -> None:
            # ワーカースレッドから呼ばれる。ここでは queue へ積むだけ。
            if fut.cancelled():
                self._completed.put((slot, None, AssetLoadError(slot, "cancelled")))
                return
            exc = fut.exception()
            self._completed.put((slot, None if exc is not None else fut.result(), exc))

        future = self._executor.submit(loader.load, path)
        self._pending[slot] = _Pending(slot=slot, future=future, started_at=self._time_fn())
        _logger.info("Loading asset '%s' from %s", slot, path)
        future.add_done_callback(on_done)
        return future

    def poll_pending(self) -> int:
        """完了済みロードを barrier へ届け、処理件数を返す。

        呼び出し元スレッド（フレームループ）で signal / fail が実行される。
        """

        handled = 0
        while True:
            try:
                slot, value, exc = self._completed.get_nowait()
            except queue.Empty:
                break
            handled += 1
            if self._pending.pop(slot, None) is None:
                # タイムアウト扱い済みのロードが後から完了した。
                _logger.warning("Discarding late completion for asset '%s'", slot)
                continue
            if exc is not None:
                self._barrier.fail(slot, AssetLoadError(slot, f"{type(exc).__name__}: {exc}"))
                continue
            self._results[slot] = value
            try:
                self._barrier.signal(slot)
            except DoubleSignalError:
                _logger.exception("Duplicate completion for asset '%s'", slot)

        self._check_timeouts()
        return handled

    def _check_timeouts(self) -> None:
        if self._timeout is None or not self._pending:
            return
        now = self._time_fn()
        expired = [p for p in self._pending.values() if now - p.started_at > self._timeout]
        for p in expired:
            self._pending.pop(p.slot, None)
            self._barrier.fail(
                p.slot, AssetLoadError(p.slot, f"timed out after {self._timeout:.1f}s")
            )

    @property
    def pending_slots(self) -> tuple[str, ...]:
        return tuple(self._pending)

    def results(self) -> dict[str, Any]:
        return dict(self._results)

    def close(self) -> None:
        """ワーカープールを停止する（実行中のロードは待たない）。"""

        self._executor.shutdown(wait=False, cancel_futures=True)


__all__ = [
    "AssetLoadQueue",
    "AssetLoader",
    "FILTER_MODES",
    "FontLoader",
    "ImageLoader",
    "SampledImage",
    "TextLoader",
]
