# どこで: `src/glint/core/assets/bundle.py`。
# 何を: barrier 完了後にまとめて渡す読み込み済みアセットの束（AssetBundle）を定義する。
# なぜ: ロード結果をグローバル変数ではなく明示的な不変値としてシーン初期化へ渡すため。

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from glint.core.assets.loaders import SampledImage
from glint.core.glyph_font import GlyphFont

VERTEX_SHADER = "vertex_shader"
FRAGMENT_SHADER = "fragment_shader"
FONT = "font"
ENV_MAP = "env_map"

ALL_SLOTS: tuple[str, ...] = (VERTEX_SHADER, FRAGMENT_SHADER, FONT, ENV_MAP)


@dataclass(frozen=True, slots=True)
class AssetBundle:
    """シーン構築に必要な 4 つのアセット。"""

    vertex_shader: str
    fragment_shader: str
    font: GlyphFont
    env_map: SampledImage

    @classmethod
    def from_results(cls, results: Mapping[str, Any]) -> "AssetBundle":
        """slot -> 値 の dict から束を作る。

        Raises
        ------
        KeyError
            欠けている slot がある場合（全件を列挙する）。
        """

        missing = [slot for slot in ALL_SLOTS if slot not in results]
        if missing:
            raise KeyError(f"アセットが揃っていません: missing={missing}")
        return cls(
            vertex_shader=str(results[VERTEX_SHADER]),
            fragment_shader=str(results[FRAGMENT_SHADER]),
            font=results[FONT],
            env_map=results[ENV_MAP],
        )


__all__ = [
    "ALL_SLOTS",
    "AssetBundle",
    "ENV_MAP",
    "FONT",
    "FRAGMENT_SHADER",
    "VERTEX_SHADER",
]
