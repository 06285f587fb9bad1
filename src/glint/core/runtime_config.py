# どこで: `src/glint/core/runtime_config.py`。
# 何を: config.yaml による実行時設定（探索・ロード・キャッシュ）を提供する。
# なぜ: アセットの配置やウィンドウ配置をコードを書き換えずに指定できるようにするため。

from __future__ import annotations

import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    """glint の実行時設定。"""

    config_path: Path | None
    vertex_shader: Path | None
    fragment_shader: Path | None
    font: Path
    env_map: Path
    env_map_filter: str
    load_timeout_sec: float | None
    fps: float
    scene_window_size: tuple[int, int]
    window_pos_scene: tuple[int, int]
    window_pos_control_panel: tuple[int, int]
    control_panel_window_size: tuple[int, int]


_EXPLICIT_CONFIG_PATH: Path | None = None
_CONFIG_CACHE: RuntimeConfig | None = None


def set_config_path(path: str | Path | None) -> None:
    """以降の設定探索で使う明示 config パスを設定する（None で解除）。キャッシュは破棄する。"""

    global _EXPLICIT_CONFIG_PATH, _CONFIG_CACHE
    _EXPLICIT_CONFIG_PATH = None if path is None else Path(str(path)).expanduser()
    _CONFIG_CACHE = None


def _default_config_candidates() -> tuple[Path, ...]:
    return (
        Path.cwd() / ".glint" / "config.yaml",
        Path.home() / ".config" / "glint" / "config.yaml",
    )


class _Section:
    """config の 1 階層ぶんの mapping。エラーメッセージ用にドット区切りのキーを持つ。"""

    def __init__(self, data: Any, key: str) -> None:
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise RuntimeError(f"{key} は mapping である必要があります: got={data!r}")
        self._data = data
        self._key = key

    def _name(self, field: str) -> str:
        return f"{self._key}.{field}" if self._key else field

    def child(self, field: str) -> "_Section":
        return _Section(self._data.get(field), self._name(field))

    def raw(self, field: str, default: Any = None) -> Any:
        return self._data.get(field, default)

    def path(self, field: str) -> Path | None:
        value = self._data.get(field)
        text = "" if value is None else str(value).strip()
        if not text:
            return None
        return Path(os.path.expandvars(os.path.expanduser(text)))

    def required_path(self, field: str) -> Path:
        p = self.path(field)
        if p is None:
            raise RuntimeError(f"{self._name(field)} が未設定です（同梱 default_config.yaml を確認してください）")
        return p

    def number(self, field: str) -> float | None:
        value = self._data.get(field)
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise RuntimeError(f"{self._name(field)} は数値である必要があります: got={value!r}") from exc

    def int_pair(self, field: str) -> tuple[int, int]:
        value = self._data.get(field)
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise RuntimeError(f"{self._name(field)} は [x, y] の配列である必要があります: got={value!r}")
        try:
            return int(value[0]), int(value[1])
        except (TypeError, ValueError) as exc:
            raise RuntimeError(
                f"{self._name(field)} は [x, y] の整数配列である必要があります: got={value!r}"
            ) from exc


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """mapping 同士は再帰的に、それ以外は後勝ちで上書きする。"""

    out = dict(base)
    for key, value in override.items():
        prev = out.get(key)
        out[key] = _merge(prev, value) if isinstance(prev, dict) and isinstance(value, dict) else value
    return out


def _load_yaml_text(text: str, *, source: str) -> dict[str, Any]:
    import yaml

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise RuntimeError(f"config.yaml の読み込みに失敗しました: source={source}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise RuntimeError(f"config.yaml は mapping である必要があります: source={source}")
    return dict(data)


def _load_packaged_default_config() -> dict[str, Any]:
    try:
        blob = resources.files("glint").joinpath("resource", "default_config.yaml").read_text(encoding="utf-8")
    except OSError as exc:  # pragma: no cover
        raise RuntimeError(
            "同梱 default_config.yaml の読み込みに失敗しました（package-data を確認してください）"
        ) from exc
    return _load_yaml_text(blob, source="glint/resource/default_config.yaml")


def _check_version(payload: dict[str, Any]) -> None:
    version = payload.get("version")
    try:
        version_i = int(version)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise RuntimeError(f"config.yaml の version は整数である必要があります: got={version!r}") from exc
    if version_i != 1:
        raise RuntimeError(f"未対応の config.yaml version です: got={version_i}")


def runtime_config() -> RuntimeConfig:
    """実行時設定をロードして返す（キャッシュ）。

    上書き順（後勝ち、mapping はキー単位でマージ）:
    1) 同梱 default_config.yaml
    2) `./.glint/config.yaml` / `~/.config/glint/config.yaml`（最初に見つかった 1 つ）
    3) `run(config_path=...)` / `set_config_path()` の明示パス
    """

    global _CONFIG_CACHE
    if _CONFIG_CACHE is not None:
        return _CONFIG_CACHE

    explicit_path = _EXPLICIT_CONFIG_PATH
    if explicit_path is not None and not explicit_path.is_file():
        raise FileNotFoundError(f"config.yaml が見つかりません: {explicit_path}")
    discovered_path = next((p for p in _default_config_candidates() if p.is_file()), None)

    payload = _load_packaged_default_config()
    for source in (discovered_path, explicit_path):
        if source is not None:
            payload = _merge(payload, _load_yaml_text(source.read_text(encoding="utf-8"), source=str(source)))
    _check_version(payload)

    root = _Section(payload, "")
    assets = root.child("assets")
    ui = root.child("ui")

    env_map_filter = str(assets.raw("env_map_filter", "nearest")).strip().lower()
    if env_map_filter not in ("nearest", "linear"):
        raise RuntimeError(f"assets.env_map_filter は nearest/linear のいずれかです: got={env_map_filter!r}")

    load_timeout_sec = assets.number("load_timeout_sec")
    if load_timeout_sec is not None and load_timeout_sec <= 0:
        raise RuntimeError(f"assets.load_timeout_sec は正の値である必要があります: got={load_timeout_sec}")

    fps = ui.number("fps")
    if fps is None or fps <= 0:
        raise RuntimeError(f"ui.fps は正の値である必要があります: got={fps!r}")

    positions = ui.child("window_positions")
    cfg = RuntimeConfig(
        config_path=explicit_path or discovered_path,
        vertex_shader=assets.path("vertex_shader"),
        fragment_shader=assets.path("fragment_shader"),
        font=assets.required_path("font"),
        env_map=assets.required_path("env_map"),
        env_map_filter=env_map_filter,
        load_timeout_sec=load_timeout_sec,
        fps=fps,
        scene_window_size=ui.child("scene").int_pair("window_size"),
        window_pos_scene=positions.int_pair("scene"),
        window_pos_control_panel=positions.int_pair("control_panel"),
        control_panel_window_size=ui.child("control_panel").int_pair("window_size"),
    )
    _CONFIG_CACHE = cfg
    return cfg


def packaged_shader_path(name: str) -> Path:
    """同梱シェーダ（`glint/resource/shader/<name>`）のパスを返す。"""

    return Path(str(resources.files("glint").joinpath("resource", "shader", name)))


__all__ = ["RuntimeConfig", "packaged_shader_path", "runtime_config", "set_config_path"]
