# どこで: `src/glint/core/lifecycle.py`。
# 何を: 派生リソース（押し出しテキスト等）の唯一の現行インスタンスを所有し、build-then-swap で差し替える。
# なぜ: 再構築のたびに旧インスタンスを確実に 1 回だけ解放し、コンテナに 0/1 個だけ保つため。

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from typing import Any, ContextManager, Generic, Iterator, Protocol, TypeVar

from glint.core.continuous_state import ContinuousState

_logger = logging.getLogger(__name__)


class ResourceError(RuntimeError):
    """派生リソースの二重解放など、所有権の契約違反。"""


class ReentrantReplaceError(RuntimeError):
    """builder の内側から `replace` が呼ばれた。"""


class DerivedResource(Protocol):
    @property
    def disposed(self) -> bool: ...

    def dispose(self) -> None: ...


class SceneContainer:
    """スロット単位で子を所有するコンテナ。

    子はコンテナへの参照を持たない。`rotation` はコンテナ全体の回転（y 軸）。
    """

    def __init__(self, *, rotation: ContinuousState | None = None) -> None:
        self._slots: list[Any | None] = []
        self.rotation = rotation if rotation is not None else ContinuousState()

    def _find(self, obj: Any) -> int | None:
        for i, item in enumerate(self._slots):
            if item is obj:
                return i
        return None

    def add(self, obj: Any) -> int:
        """子を空きスロットへ追加し、スロット番号を返す。"""

        if self._find(obj) is not None:
            raise ValueError(f"already attached: {obj!r}")
        for i, item in enumerate(self._slots):
            if item is None:
                self._slots[i] = obj
                return i
        self._slots.append(obj)
        return len(self._slots) - 1

    def remove(self, obj: Any) -> None:
        """子を外す。未接続なら KeyError。"""

        slot = self._find(obj)
        if slot is None:
            raise KeyError(f"not attached: {obj!r}")
        self._slots[slot] = None

    def contains(self, obj: Any) -> bool:
        return self._find(obj) is not None

    def items(self) -> list[Any]:
        return [item for item in self._slots if item is not None]

    def __iter__(self) -> Iterator[Any]:
        return iter(self.items())

    def __len__(self) -> int:
        return sum(1 for item in self._slots if item is not None)


R = TypeVar("R", bound=DerivedResource)
Builder = Callable[[], R]
Scope = Callable[[], ContextManager[Any]]


class ImmediateRebuild:
    """要求ごとに即座に 1 回 `replace` する（既定）。

    `scope` を渡すと各 `replace` をその context manager の内側で実行する
    （GPU コンテキストの切り替えなど）。
    """

    def __init__(self, *, scope: Scope | None = None) -> None:
        self._scope = scope

    def request(self, manager: "ResourceLifecycleManager[Any]", builder: Builder[Any]) -> None:
        if self._scope is None:
            manager.replace(builder)
            return
        with self._scope():
            manager.replace(builder)

    def flush(self, manager: "ResourceLifecycleManager[Any]") -> None:
        return


class DeferredRebuild:
    """要求を順に積み、`flush()` で 1 要求につき 1 回 `replace` する。

    失敗した要求で flush は止まり、残りは次の `flush()` に持ち越す。
    """

    def __init__(self) -> None:
        self._pending: deque[Builder[Any]] = deque()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def request(self, manager: "ResourceLifecycleManager[Any]", builder: Builder[Any]) -> None:
        self._pending.append(builder)

    def flush(self, manager: "ResourceLifecycleManager[Any]") -> None:
        while self._pending:
            manager.replace(self._pending.popleft())


class ResourceLifecycleManager(Generic[R]):
    """派生リソースの現行インスタンスを 1 つだけ所有する。

    Notes
    -----
    - `replace` は build-then-swap。builder が失敗しても旧インスタンスとコンテナは無傷。
    - swap と `current()` の読み出しは同じロックで排他する。
    - `replace` は再入不可（同じスレッドの builder 内からの呼び出しは `ReentrantReplaceError`）。
    - 旧インスタンスがコンテナから外部で外されていても、解放は必ず行う。
    """

    def __init__(
        self,
        container: SceneContainer,
        *,
        policy: ImmediateRebuild | DeferredRebuild | None = None,
    ) -> None:
        self._container = container
        self._policy = policy if policy is not None else ImmediateRebuild()
        self._current: R | None = None
        self._lock = threading.Lock()
        # builder 実行中フラグはスレッドごと（別スレッドの replace は再入ではない）。
        self._local = threading.local()
        self._replace_count = 0

    @property
    def container(self) -> SceneContainer:
        return self._container

    @property
    def policy(self) -> ImmediateRebuild | DeferredRebuild:
        return self._policy

    @property
    def replace_count(self) -> int:
        return int(self._replace_count)

    def current(self) -> R | None:
        with self._lock:
            return self._current

    def replace(self, builder: Builder[R]) -> R:
        """新しいインスタンスを構築し、成功したら旧インスタンスと差し替える。"""

        local = self._local
        if getattr(local, "building", False):
            raise ReentrantReplaceError("replace は builder の内側から呼べない")

        local.building = True
        try:
            new = builder()
        finally:
            local.building = False

        with self._lock:
            old = self._current
            try:
                if old is not None:
                    self._detach(old)
                    old.dispose()
            finally:
                self._container.add(new)
                self._current = new
                self._replace_count += 1

        _logger.debug("Replaced derived resource: %r -> %r", old, new)
        return new

    def _detach(self, old: R) -> None:
        # 外部で既に外されていても旧インスタンスの解放は行う。
        if self._container.contains(old):
            self._container.remove(old)
        else:
            _logger.warning("Derived resource was detached outside the manager: %r", old)

    def request_rebuild(self, builder: Builder[R]) -> None:
        """Rebuild バインディングからの再構築要求。実行タイミングはポリシーに従う。"""

        self._policy.request(self, builder)

    def flush(self) -> None:
        """保留中の再構築があれば実行する（フレーム毎に呼ばれる）。"""

        self._policy.flush(self)

    def close(self) -> None:
        """現行インスタンスを外して解放する。"""

        with self._lock:
            old = self._current
            self._current = None
            if old is None:
                return
            self._detach(old)
            old.dispose()


__all__ = [
    "DeferredRebuild",
    "DerivedResource",
    "ImmediateRebuild",
    "ReentrantReplaceError",
    "ResourceError",
    "ResourceLifecycleManager",
    "SceneContainer",
]
