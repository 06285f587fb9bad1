# どこで: `src/glint/__init__.py`。
# 何を: ルート `glint` パッケージを定義する。
# なぜ: import 起点を `glint` に統一するため。

from __future__ import annotations

from glint.api import run

__all__ = ["run"]
