from pathlib import Path

import pytest

from glint.core.runtime_config import packaged_shader_path, runtime_config, set_config_path


@pytest.fixture(autouse=True)
def _reset_runtime_config() -> None:
    set_config_path(None)
    yield
    set_config_path(None)


def _isolate_config_discovery(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))


def _write_discovered(tmp_path: Path, text: str) -> Path:
    discovered = tmp_path / ".glint" / "config.yaml"
    discovered.parent.mkdir(parents=True, exist_ok=True)
    discovered.write_text(text, encoding="utf-8")
    return discovered


def test_packaged_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _isolate_config_discovery(tmp_path, monkeypatch)

    cfg = runtime_config()
    assert cfg.config_path is None
    assert cfg.vertex_shader is None
    assert cfg.fragment_shader is None
    assert cfg.font == Path("data") / "input" / "font" / "font.ttf"
    assert cfg.env_map == Path("data") / "input" / "envmap.png"
    assert cfg.env_map_filter == "nearest"
    assert cfg.load_timeout_sec == 30.0
    assert cfg.fps == 60.0
    assert cfg.scene_window_size == (1280, 720)
    assert cfg.window_pos_scene == (25, 25)
    assert cfg.window_pos_control_panel == (1320, 25)
    assert cfg.control_panel_window_size == (420, 640)


def test_runtime_config_is_cached_until_path_changes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _isolate_config_discovery(tmp_path, monkeypatch)

    assert runtime_config() is runtime_config()


def test_discovered_config_is_merged_per_key(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _isolate_config_discovery(tmp_path, monkeypatch)
    discovered = _write_discovered(
        tmp_path,
        'assets:\n  font: "./fonts/other.ttf"\nui:\n  window_positions:\n    scene: [0, 0]\n',
    )

    cfg = runtime_config()
    assert cfg.config_path == discovered
    assert cfg.font == Path("fonts") / "other.ttf"
    # 上書きしていない兄弟キーは同梱値のまま
    assert cfg.env_map == Path("data") / "input" / "envmap.png"
    assert cfg.window_pos_scene == (0, 0)
    assert cfg.window_pos_control_panel == (1320, 25)


def test_explicit_config_overrides_discovered_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _isolate_config_discovery(tmp_path, monkeypatch)
    _write_discovered(tmp_path, "ui:\n  fps: 30\n")

    explicit = tmp_path / "explicit.yaml"
    explicit.write_text(
        'ui:\n  fps: 120\nassets:\n  env_map_filter: "LINEAR"\n  vertex_shader: "./my.vert"\n',
        encoding="utf-8",
    )
    set_config_path(explicit)

    cfg = runtime_config()
    assert cfg.config_path == explicit
    assert cfg.fps == 120.0
    assert cfg.env_map_filter == "linear"
    assert cfg.vertex_shader == Path("my.vert")


def test_missing_explicit_config_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _isolate_config_discovery(tmp_path, monkeypatch)
    set_config_path(tmp_path / "nope.yaml")

    with pytest.raises(FileNotFoundError):
        runtime_config()


@pytest.mark.parametrize(
    "text",
    [
        "version: 2\n",
        "assets:\n  env_map_filter: cubic\n",
        "assets:\n  load_timeout_sec: 0\n",
        "ui:\n  fps: -1\n",
        "ui:\n  scene:\n    window_size: [1280]\n",
        'assets:\n  font: ""\n',
        "- not\n- a mapping\n",
    ],
)
def test_invalid_config_raises_runtime_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, text: str
):
    _isolate_config_discovery(tmp_path, monkeypatch)
    _write_discovered(tmp_path, text)

    with pytest.raises(RuntimeError):
        runtime_config()


def test_packaged_shaders_exist():
    assert packaged_shader_path("text.vert").is_file()
    assert packaged_shader_path("text.frag").is_file()
