# どこで: `src/glint/interactive/runtime/frame_clock.py`。
# 何を: フレーム間の経過時間（delta 秒）を返す時計を提供する。
# なぜ: 連続状態の積分を実測の経過時間に基づかせ、フレームレート非依存にするため。

from __future__ import annotations

import time
from typing import Callable


class DeltaClock:
    """前回呼び出しからの経過秒を返す時計。

    Notes
    -----
    初回の `delta()` は 0.0 を返す（基準時刻を記録するだけ）。
    """

    def __init__(self, time_fn: Callable[[], float] = time.perf_counter) -> None:
        self._time_fn = time_fn
        self._last: float | None = None

    def delta(self) -> float:
        """前回の `delta()` からの経過秒を返す。"""

        now = float(self._time_fn())
        last = self._last
        self._last = now
        if last is None:
            return 0.0
        # 時計が巻き戻った場合は 0 とみなす。
        return max(0.0, now - last)

    def reset(self) -> None:
        """次の `delta()` を初回扱い（0.0）に戻す。"""

        self._last = None


__all__ = ["DeltaClock"]
