"""
どこで: `src/glint/core/scene.py`。
何を: アセット完了後のシーン初期化（パラメータ登録 → 初回構築 → バインディング）を行う TextScene を提供する。
なぜ: 初期化順序とパラメータごとの伝播モードを 1 か所に固定し、ウィンドウ/GPU なしでも検証できるようにするため。

- テキスト形状のパラメータは Rebuild（押し出しメッシュを作り直す）。
- 薄膜/回転/光色は Direct（ライブ状態へ直接書き込む）。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from glint.core.assets.bundle import AssetBundle
from glint.core.lifecycle import (
    DeferredRebuild,
    ImmediateRebuild,
    ResourceLifecycleManager,
    SceneContainer,
)
from glint.core.parameters import BindingMode, ParameterRegistry, ParamHandle, ParamMeta
from glint.core.text_geometry import (
    TEXT_PARAMETER_NAMES,
    TextGeometry,
    TextObject,
    build_text_object,
)

_logger = logging.getLogger(__name__)

Uploader = Callable[[TextGeometry], Any]

# (name, default, meta)
PARAMETER_DEFAULTS: tuple[tuple[str, Any, ParamMeta], ...] = (
    ("message", "lil-gui", ParamMeta(kind="str")),
    ("height", 50.0, ParamMeta(kind="float", min=0.0, max=200.0)),
    ("curve_segments", 8, ParamMeta(kind="int", min=1, max=12, step=1)),
    ("bevel_enabled", True, ParamMeta(kind="bool")),
    ("bevel_thickness", 3.0, ParamMeta(kind="float", min=-10.0, max=10.0)),
    ("bevel_size", 3.0, ParamMeta(kind="float", min=0.0, max=10.0)),
    ("bevel_offset", 0.0, ParamMeta(kind="float", min=-5.0, max=5.0)),
    ("bevel_segments", 4, ParamMeta(kind="int", min=1, max=5, step=1)),
    ("thin_film_thickness", 880.0, ParamMeta(kind="float", min=100.0, max=2000.0)),
    ("thin_film_index", 1.75, ParamMeta(kind="float", min=1.0, max=2.0)),
    ("thin_film_polarization", 1.5, ParamMeta(kind="float", min=0.0, max=2.0)),
    ("rotation_speed", 0.15, ParamMeta(kind="float", min=0.0, max=1.0)),
    ("light_color", 0xE5C8FF, ParamMeta(kind="rgb")),
)

# parameter -> uniform 名
THIN_FILM_UNIFORMS: dict[str, str] = {
    "thin_film_thickness": "thinFilmThickness",
    "thin_film_index": "thinFilmIndex",
    "thin_film_polarization": "thinFilmPolarization",
}

SUN_COLOR_UNIFORM = "sunColor"


@dataclass(frozen=True, slots=True)
class ControlSpec:
    """コントロールパネルに並べる 1 項目（表示専用の情報）。"""

    label: str
    param: str
    display_range: tuple[float, float] | None = None
    folder: str | None = None  # None はルート


CONTROL_LAYOUT: tuple[ControlSpec, ...] = (
    ControlSpec("message", "message"),
    ControlSpec("depth", "height", (0.0, 200.0), "Geometry"),
    ControlSpec("curveSegments", "curve_segments", (1, 12), "Geometry"),
    ControlSpec("enabled", "bevel_enabled", None, "Bevel"),
    ControlSpec("depth", "bevel_thickness", (-10.0, 10.0), "Bevel"),
    ControlSpec("size", "bevel_size", (0.0, 10.0), "Bevel"),
    ControlSpec("offset", "bevel_offset", (-5.0, 5.0), "Bevel"),
    ControlSpec("segments", "bevel_segments", (1, 5), "Bevel"),
    ControlSpec("thickness", "thin_film_thickness", (100.0, 2000.0), "Thin Film"),
    ControlSpec("index", "thin_film_index", (1.0, 2.0), "Thin Film"),
    ControlSpec("polarization", "thin_film_polarization", (0.0, 2.0), "Thin Film"),
    ControlSpec("rotationSpeed", "rotation_speed", (0.0, 1.0), "Misc"),
    ControlSpec("light", "light_color", None, "Misc"),
)


def rgb_to_unit(rgb: tuple[int, int, int]) -> tuple[float, float, float]:
    """0..255 の RGB を 0..1 の float3 へ変換する。"""

    r, g, b = rgb
    return (r / 255.0, g / 255.0, b / 255.0)


class UniformBlock:
    """シェーダへ毎フレーム渡す名前付き uniform 値。

    Direct バインディングが書き込み、レンダラーが読む。
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = {
            "thinFilmOuterIndex": 1.0,
            "thinFilmInnerIndex": 1.0,
        }
        if initial:
            self._values.update(initial)

    def get(self, name: str) -> Any:
        return self._values[name]

    def set(self, name: str, value: Any) -> None:
        self._values[str(name)] = value

    def items(self) -> list[tuple[str, Any]]:
        return list(self._values.items())

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)


class TextScene:
    """押し出しテキストのシーン。

    Parameters
    ----------
    bundle : AssetBundle
        ロード済みアセット。フォントはメッシュ構築、シェーダ/環境マップはレンダラーが使う。
    uploader : Callable[[TextGeometry], Any] | None
        ジオメトリを GPU メッシュへ転送する関数。None ならヘッドレス（GPU なし）。
    policy : ImmediateRebuild | DeferredRebuild | None
        Rebuild 要求の実行タイミング。既定は即時。

    Notes
    -----
    初期化順序は「パラメータ登録 → 初回構築（`replace`）→ バインディング登録」。
    バインディングは初回構築より後なので、初期値の登録で再構築は走らない。
    """

    def __init__(
        self,
        bundle: AssetBundle,
        *,
        uploader: Uploader | None = None,
        policy: ImmediateRebuild | DeferredRebuild | None = None,
    ) -> None:
        self.bundle = bundle
        self._uploader = uploader
        self.registry = ParameterRegistry()
        self.container = SceneContainer()
        self.uniforms = UniformBlock()
        self.lifecycle: ResourceLifecycleManager[TextObject] = ResourceLifecycleManager(
            self.container, policy=policy
        )

        self._register_parameters()
        self._apply_direct_defaults()
        self.lifecycle.replace(self._build_text)
        self._bind()
        _logger.info("Text scene initialised: %r", self.lifecycle.current())

    # ---------- 初期化 ----------
    def _register_parameters(self) -> None:
        for name, default, meta in PARAMETER_DEFAULTS:
            self.registry.register(name, default, meta)

    def _apply_direct_defaults(self) -> None:
        for name, uniform in THIN_FILM_UNIFORMS.items():
            self.uniforms.set(uniform, float(self.value(name)))
        self.uniforms.set(SUN_COLOR_UNIFORM, rgb_to_unit(self.value("light_color")))
        self.container.rotation.rate = float(self.value("rotation_speed"))

    def _build_text(self) -> TextObject:
        params = self.registry.snapshot(TEXT_PARAMETER_NAMES)
        return build_text_object(self.bundle.font, params, self._uploader)

    def _bind(self) -> None:
        registry = self.registry

        def request_rebuild() -> None:
            self.lifecycle.request_rebuild(self._build_text)

        for name in TEXT_PARAMETER_NAMES:
            registry.bind(registry.handle(name), BindingMode.REBUILD, request_rebuild)

        for name, uniform in THIN_FILM_UNIFORMS.items():
            registry.bind(
                registry.handle(name),
                BindingMode.DIRECT,
                lambda v, _u=uniform: self.uniforms.set(_u, float(v)),
            )

        registry.bind(
            registry.handle("rotation_speed"),
            BindingMode.DIRECT,
            lambda v: setattr(self.container.rotation, "rate", float(v)),
        )
        registry.bind(
            registry.handle("light_color"),
            BindingMode.DIRECT,
            lambda v: self.uniforms.set(SUN_COLOR_UNIFORM, rgb_to_unit(v)),
        )

    # ---------- 参照/編集 ----------
    @property
    def text(self) -> TextObject | None:
        """現在コンテナに付いているテキスト。"""

        return self.lifecycle.current()

    def handle(self, name: str) -> ParamHandle:
        return self.registry.handle(name)

    def value(self, name: str) -> Any:
        return self.registry.get_value(self.registry.handle(name))

    def set(self, name: str, value: Any) -> Any:
        """名前で値を設定する（`registry.set_value` の薄いラッパ）。"""

        return self.registry.set_value(self.registry.handle(name), value)

    def close(self) -> None:
        """現在のテキストを外して解放する。"""

        self.lifecycle.close()


__all__ = [
    "CONTROL_LAYOUT",
    "ControlSpec",
    "PARAMETER_DEFAULTS",
    "SUN_COLOR_UNIFORM",
    "THIN_FILM_UNIFORMS",
    "TextScene",
    "UniformBlock",
    "rgb_to_unit",
]
