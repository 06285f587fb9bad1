# どこで: `src/glint/core/parameters/binding.py`。
# 何を: パラメータとシンクを結ぶ Binding レコードと伝播モードを定義する。
# なぜ: 変更通知の登録を型付きの明示的なレコード列として保持するため。

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Union

from .key import ParamHandle

DirectSink = Callable[[Any], None]
RebuildSink = Callable[[], None]


class BindingMode(Enum):
    """編集の伝播方法。"""

    DIRECT = "direct"  # 値をそのままライブ状態へ書き込む
    REBUILD = "rebuild"  # 派生リソースの再構築を要求する


@dataclass(frozen=True, slots=True)
class Binding:
    """1 パラメータ・1 モード・1 シンクの組。"""

    handle: ParamHandle
    mode: BindingMode
    sink: Union[DirectSink, RebuildSink]

    def deliver(self, value: Any) -> None:
        """モードに従ってシンクへ伝播する。"""

        if self.mode is BindingMode.DIRECT:
            self.sink(value)  # type: ignore[call-arg]
        else:
            self.sink()  # type: ignore[call-arg]


__all__ = ["Binding", "BindingMode", "DirectSink", "RebuildSink"]
