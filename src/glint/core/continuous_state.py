# どこで: `src/glint/core/continuous_state.py`。
# 何を: 毎フレーム rate × dt で積分される量（回転角など）を表す ContinuousState を提供する。
# なぜ: 実測の経過時間で積分し、フレームレートに依存しない動きにするため。

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ContinuousState:
    """時間積分される値。`rate` は単位時間あたりの変化量。"""

    value: float = 0.0
    rate: float = 0.0

    def advance(self, dt: float) -> float:
        """`dt` 秒ぶん進め、更新後の値を返す。"""

        _dt = float(dt)
        if _dt < 0.0:
            raise ValueError(f"dt は 0 以上である必要がある: got={dt!r}")
        self.value += float(self.rate) * _dt
        return self.value
