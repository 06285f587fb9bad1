# どこで: `src/glint/core/parameters/meta.py`。
# 何を: ParamMeta（型と数値制約のメタ情報）を提供する。
# なぜ: 値検証と GUI 生成に必要な型・レンジ情報を一元管理するため。

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

KINDS = ("str", "float", "int", "bool", "rgb", "choice")


@dataclass(frozen=True, slots=True)
class ParamMeta:
    """パラメータの型と制約。

    min/max は実値をクランプし、step は量子化の刻みとして扱う。
    """

    kind: str  # "str" | "float" | "int" | "bool" | "rgb" | "choice"
    min: Any | None = None
    max: Any | None = None
    step: float | None = None
    choices: Sequence[str] | None = None

    def __post_init__(self) -> None:
        if self.kind not in KINDS:
            raise ValueError(f"未知の kind です: {self.kind!r}")
        if self.step is not None and float(self.step) <= 0:
            raise ValueError(f"step は正の値である必要があります: got={self.step!r}")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"min <= max である必要があります: min={self.min!r}, max={self.max!r}")
        if self.kind == "choice":
            if not self.choices:
                raise ValueError("kind='choice' には choices が必要です")
            object.__setattr__(self, "choices", tuple(str(c) for c in self.choices))

    @property
    def is_numeric(self) -> bool:
        return self.kind in ("float", "int")


__all__ = ["KINDS", "ParamMeta"]
