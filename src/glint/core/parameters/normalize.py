# どこで: `src/glint/core/parameters/normalize.py`。
# 何を: 入力値を kind に応じて検証・正規化（クランプ/量子化を含む）する純粋関数群を提供する。
# なぜ: レジストリの書き込み経路から型変換・検証を切り離し、単体テスト可能に保つため。

from __future__ import annotations

import math
from numbers import Integral, Real
from typing import Any

from .meta import ParamMeta


class ConstraintViolation(ValueError):
    """型不一致・不正値による書き込み拒否。`code` はエラー種別。"""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = str(code)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def snap_to_step(value: float, step: float) -> float:
    """step の倍数へ丸める（有効数字 15 桁で誤差を落とす）。"""

    snapped = round(float(value) / float(step)) * float(step)
    return float(f"{snapped:.15g}")


def clamp(value: float, lo: Any | None, hi: Any | None) -> float:
    out = float(value)
    if lo is not None:
        out = max(float(lo), out)
    if hi is not None:
        out = min(float(hi), out)
    return out


def _normalize_number(value: Any, meta: ParamMeta) -> tuple[Any | None, str | None]:
    code = "invalid_int" if meta.kind == "int" else "invalid_float"
    if not _is_number(value):
        return None, code
    v = float(value)
    if not math.isfinite(v):
        return None, code
    if meta.step is not None:
        v = snap_to_step(v, meta.step)
    v = clamp(v, meta.min, meta.max)
    if meta.kind == "int":
        return int(round(v)), None
    return v, None


def _parse_hex_rgb(text: str) -> tuple[int, int, int] | None:
    s = text.strip()
    if s.startswith("#"):
        s = s[1:]
    elif s.lower().startswith("0x"):
        s = s[2:]
    if len(s) != 6:
        return None
    try:
        packed = int(s, 16)
    except ValueError:
        return None
    return (packed >> 16) & 0xFF, (packed >> 8) & 0xFF, packed & 0xFF


def _normalize_rgb(value: Any) -> tuple[Any | None, str | None]:
    if isinstance(value, str):
        parsed = _parse_hex_rgb(value)
        return (parsed, None) if parsed is not None else (None, "invalid_rgb")

    if isinstance(value, Integral) and not isinstance(value, bool):
        packed = int(value)
        if packed < 0 or packed > 0xFFFFFF:
            return None, "invalid_rgb"
        return ((packed >> 16) & 0xFF, (packed >> 8) & 0xFF, packed & 0xFF), None

    try:
        seq = list(value)
    except TypeError:
        return None, "invalid_rgb"
    if len(seq) != 3 or not all(_is_number(v) for v in seq):
        return None, "invalid_rgb"
    out: list[int] = []
    for v in seq:
        if not math.isfinite(float(v)):
            return None, "invalid_rgb"
        out.append(max(0, min(255, int(round(float(v))))))
    return (out[0], out[1], out[2]), None


def normalize_value(value: Any, meta: ParamMeta) -> tuple[Any | None, str | None]:
    """kind に応じて値を正規化し、(正規化値, エラー種別) を返す。"""

    kind = meta.kind

    if kind in ("float", "int"):
        return _normalize_number(value, meta)

    if kind == "bool":
        if isinstance(value, bool):
            return value, None
        return None, "invalid_bool"

    if kind == "str":
        if isinstance(value, str):
            return value, None
        return None, "invalid_string"

    if kind == "choice":
        choices = tuple(meta.choices or ())
        if isinstance(value, str) and value in choices:
            return value, None
        return None, "invalid_choice"

    if kind == "rgb":
        return _normalize_rgb(value)

    return None, "unknown_kind"


def require_valid(name: str, value: Any, meta: ParamMeta) -> Any:
    """`normalize_value` の結果を返す。エラー時は `ConstraintViolation`。"""

    normalized, err = normalize_value(value, meta)
    if err is not None:
        raise ConstraintViolation(
            err,
            f"parameter '{name}' ({meta.kind}) rejected value {value!r}: {err}",
        )
    return normalized


__all__ = [
    "ConstraintViolation",
    "clamp",
    "normalize_value",
    "require_valid",
    "snap_to_step",
]
