# どこで: `src/glint/core/parameters/key.py`。
# 何を: 登録済みパラメータを指す ParamHandle を定義する。
# なぜ: 名前文字列ではなく登録時に払い出したハンドルで書き込み先を特定するため。

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ParamHandle:
    """ParameterRegistry が払い出すハンドル。"""

    name: str
    index: int
