# どこで: `src/glint/core/assets/barrier.py`。
# 何を: N 個の非同期ロード完了を数え、ready コールバックを 1 回だけ発火する AssetBarrier を提供する。
# なぜ: シーン初期化を「全アセットが揃った後」に限定するため。

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

_logger = logging.getLogger(__name__)


class DoubleSignalError(RuntimeError):
    """期待数を超える signal、または同一スロットの二重 signal。"""


class AssetLoadError(RuntimeError):
    """アセットのロード失敗（タイムアウトを含む）。"""

    def __init__(self, slot: str, message: str) -> None:
        super().__init__(f"asset '{slot}' failed to load: {message}")
        self.slot = str(slot)


class BarrierState(Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class AssetBarrier:
    """ロード完了を数え、全件揃った瞬間に `on_ready` を同期的に呼ぶ。

    Notes
    -----
    - `on_ready` は PENDING → READY の遷移時にだけ 1 回呼ばれる。
    - READY 後の signal は `DoubleSignalError` を送出し、再発火しない。
    - `slot` を渡した場合、同一スロットの二重完了も `DoubleSignalError` とする。
    """

    def __init__(
        self,
        on_ready: Callable[[], None],
        *,
        on_error: Callable[[AssetLoadError], None] | None = None,
    ) -> None:
        self._on_ready = on_ready
        self._on_error = on_error
        self._expected: int | None = None
        self._received = 0
        self._signalled: set[str] = set()
        self._state = BarrierState.PENDING

    @property
    def state(self) -> BarrierState:
        return self._state

    @property
    def expected(self) -> int | None:
        return self._expected

    @property
    def received(self) -> int:
        return int(self._received)

    @property
    def is_ready(self) -> bool:
        return self._state is BarrierState.READY

    def register(self, count: int) -> None:
        """待ち合わせる完了数を設定する。"""

        if self._expected is not None:
            raise RuntimeError("AssetBarrier.register は 1 回だけ呼べる")
        n = int(count)
        if n < 1:
            raise ValueError(f"count は 1 以上である必要がある: got={count!r}")
        self._expected = n

    def signal(self, slot: str | None = None) -> None:
        """完了を 1 件記録する。最後の 1 件で `on_ready` を呼ぶ。"""

        if self._expected is None:
            raise RuntimeError("signal の前に register(count) が必要")

        if self._state is BarrierState.FAILED:
            _logger.warning("Ignoring completion after failure: slot=%s", slot)
            return

        if self._state is BarrierState.READY:
            raise DoubleSignalError(
                f"signal beyond expected count ({self._expected}): slot={slot}"
            )

        if slot is not None:
            if slot in self._signalled:
                raise DoubleSignalError(f"slot '{slot}' signalled twice")
            self._signalled.add(slot)

        self._received += 1
        if self._received < self._expected:
            return

        self._state = BarrierState.READY
        _logger.info("All %d assets loaded", self._expected)
        self._on_ready()

    def fail(self, slot: str, error: BaseException | str) -> AssetLoadError:
        """ロード失敗を記録し、FAILED へ遷移して `on_error` を 1 回だけ呼ぶ。"""

        if self._state is BarrierState.READY:
            raise RuntimeError(f"READY 後に失敗は記録できない: slot={slot}")

        load_error = (
            error
            if isinstance(error, AssetLoadError)
            else AssetLoadError(slot, str(error))
        )
        if self._state is BarrierState.FAILED:
            _logger.warning("Additional load failure after barrier failed: %s", load_error)
            return load_error

        self._state = BarrierState.FAILED
        if self._on_error is not None:
            self._on_error(load_error)
        return load_error


__all__ = ["AssetBarrier", "AssetLoadError", "BarrierState", "DoubleSignalError"]
