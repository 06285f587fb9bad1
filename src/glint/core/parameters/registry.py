# どこで: `src/glint/core/parameters/registry.py`。
# 何を: 名前付き・型付き・制約付きのパラメータ値と、そのバインディング列を保持する ParameterRegistry。
# なぜ: 値の書き込み経路を `set_value` に固定し、検証 → 保存 → 伝播の順序を保証するため。

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from .binding import Binding, BindingMode, DirectSink, RebuildSink
from .key import ParamHandle
from .meta import ParamMeta
from .normalize import require_valid


@dataclass
class _Entry:
    handle: ParamHandle
    meta: ParamMeta
    value: Any
    bindings: list[Binding] = field(default_factory=list)


class ParameterRegistry:
    """ParamHandle -> (meta, value, bindings) を保持するストア。

    Notes
    -----
    - 値の変更は `set_value` だけが行う。
    - 型不一致の `set_value` は `ConstraintViolation` を送出し、状態を変えない。
    - 伝播はバインディング登録順。Direct は値を渡し、Rebuild は 1 回ずつ再構築を要求する。
    - シンク側の例外（再構築失敗など）は呼び出し元へそのまま伝播する。
    """

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}

    def register(self, name: str, initial_value: Any, meta: ParamMeta) -> ParamHandle:
        """パラメータを登録し、ハンドルを返す。初期値も制約で正規化する。"""

        key = str(name)
        if key in self._entries:
            raise ValueError(f"パラメータ名が重複しています: {key!r}")
        value = require_valid(key, initial_value, meta)
        handle = ParamHandle(name=key, index=len(self._entries))
        self._entries[key] = _Entry(handle=handle, meta=meta, value=value)
        return handle

    def _entry(self, handle: ParamHandle) -> _Entry:
        entry = self._entries.get(handle.name)
        if entry is None or entry.handle != handle:
            raise KeyError(f"未登録のハンドルです: {handle!r}")
        return entry

    def bind(
        self,
        handle: ParamHandle,
        mode: BindingMode,
        sink: DirectSink | RebuildSink,
    ) -> Binding:
        """バインディングを追加する。同一パラメータへ複数登録できる。"""

        if not callable(sink):
            raise TypeError(f"sink は callable である必要があります: got={sink!r}")
        entry = self._entry(handle)
        binding = Binding(handle=handle, mode=BindingMode(mode), sink=sink)
        entry.bindings.append(binding)
        return binding

    def set_value(self, handle: ParamHandle, value: Any) -> Any:
        """値を検証・正規化して保存し、全バインディングへ伝播する。保存値を返す。"""

        entry = self._entry(handle)
        normalized = require_valid(handle.name, value, entry.meta)
        entry.value = normalized
        for binding in tuple(entry.bindings):
            binding.deliver(normalized)
        return normalized

    def get_value(self, handle: ParamHandle) -> Any:
        return self._entry(handle).value

    def meta(self, handle: ParamHandle) -> ParamMeta:
        return self._entry(handle).meta

    def handle(self, name: str) -> ParamHandle:
        entry = self._entries.get(str(name))
        if entry is None:
            raise KeyError(f"未登録のパラメータ名です: {name!r}")
        return entry.handle

    def handles(self) -> list[ParamHandle]:
        return [e.handle for e in self._entries.values()]

    def bindings(self, handle: ParamHandle) -> tuple[Binding, ...]:
        return tuple(self._entry(handle).bindings)

    def snapshot(self, names: Iterable[str] | None = None) -> dict[str, Any]:
        """name -> 現在値 のコピーを返す。"""

        if names is None:
            return {name: e.value for name, e in self._entries.items()}
        return {str(n): self._entry(self.handle(n)).value for n in names}

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["ParameterRegistry"]
