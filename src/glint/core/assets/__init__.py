# どこで: `src/glint/core/assets/__init__.py`。
# 何を: アセットのロード/待ち合わせ API の公開エイリアスをまとめる。
# なぜ: 利用側から最小インポートで使えるようにするため。

from .barrier import AssetBarrier, AssetLoadError, BarrierState, DoubleSignalError
from .bundle import ALL_SLOTS, ENV_MAP, FONT, FRAGMENT_SHADER, VERTEX_SHADER, AssetBundle
from .loaders import (
    AssetLoader,
    AssetLoadQueue,
    FontLoader,
    ImageLoader,
    SampledImage,
    TextLoader,
)

__all__ = [
    "ALL_SLOTS",
    "AssetBarrier",
    "AssetBundle",
    "AssetLoadError",
    "AssetLoadQueue",
    "AssetLoader",
    "BarrierState",
    "DoubleSignalError",
    "ENV_MAP",
    "FONT",
    "FRAGMENT_SHADER",
    "FontLoader",
    "ImageLoader",
    "SampledImage",
    "TextLoader",
    "VERTEX_SHADER",
]
