# どこで: `src/glint/core/parameters/__init__.py`。
# 何を: パラメータ登録/バインディングの公開エイリアスをまとめる。
# なぜ: 利用側から最小インポートで使えるようにするため。

from .binding import Binding, BindingMode, DirectSink, RebuildSink
from .key import ParamHandle
from .meta import KINDS, ParamMeta
from .normalize import ConstraintViolation, normalize_value
from .registry import ParameterRegistry

__all__ = [
    "Binding",
    "BindingMode",
    "ConstraintViolation",
    "DirectSink",
    "KINDS",
    "ParamHandle",
    "ParamMeta",
    "ParameterRegistry",
    "RebuildSink",
    "normalize_value",
]
