import contextlib
import time
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from glint.core.assets.barrier import AssetBarrier
from glint.core.assets.bundle import ALL_SLOTS, ENV_MAP, FONT, FRAGMENT_SHADER, VERTEX_SHADER, AssetBundle
from glint.core.assets.loaders import AssetLoadQueue, FontLoader, ImageLoader, SampledImage, TextLoader
from glint.core.lifecycle import DeferredRebuild, ImmediateRebuild
from glint.core.parameters import BindingMode, ConstraintViolation
from glint.core.scene import CONTROL_LAYOUT, PARAMETER_DEFAULTS, SUN_COLOR_UNIFORM, TextScene, UniformBlock
from glint.core.text_geometry import TEXT_PARAMETER_NAMES


@pytest.fixture
def bundle(glyph_font) -> AssetBundle:
    image = SampledImage(pixels=np.zeros((2, 4, 4), dtype=np.uint8), filter="nearest")
    return AssetBundle(vertex_shader="vs", fragment_shader="fs", font=glyph_font, env_map=image)


def test_defaults_build_one_text_and_seed_live_state(bundle):
    scene = TextScene(bundle)

    assert len(scene.container) == 1
    assert scene.text is not None and scene.text.message == "lil-gui"
    assert scene.lifecycle.replace_count == 1
    assert scene.value("curve_segments") == 8
    assert scene.value("light_color") == (0xE5, 0xC8, 0xFF)
    assert scene.uniforms.get("thinFilmThickness") == 880.0
    assert scene.uniforms.get("thinFilmIndex") == 1.75
    assert scene.uniforms.get("thinFilmPolarization") == 1.5
    assert scene.uniforms.get("thinFilmOuterIndex") == 1.0
    assert scene.uniforms.get("thinFilmInnerIndex") == 1.0
    assert scene.uniforms.get(SUN_COLOR_UNIFORM) == pytest.approx((229 / 255, 200 / 255, 1.0))
    assert scene.container.rotation.rate == pytest.approx(0.15)


def test_binding_modes_follow_parameter_roles(bundle):
    scene = TextScene(bundle)
    registry = scene.registry
    for name in TEXT_PARAMETER_NAMES:
        modes = {b.mode for b in registry.bindings(registry.handle(name))}
        assert modes == {BindingMode.REBUILD}
    for name in ("thin_film_thickness", "thin_film_index", "thin_film_polarization", "rotation_speed", "light_color"):
        modes = {b.mode for b in registry.bindings(registry.handle(name))}
        assert modes == {BindingMode.DIRECT}


def test_message_edit_replaces_and_disposes_previous(bundle):
    released: list[int] = []

    class Mesh:
        def __init__(self, n: int) -> None:
            self.n = n

        def release(self) -> None:
            released.append(self.n)

    counter = iter(range(100))
    scene = TextScene(bundle, uploader=lambda geometry: Mesh(next(counter)))
    first = scene.text

    scene.set("message", "OC")

    assert scene.lifecycle.replace_count == 2
    assert first.disposed
    assert released == [0]
    assert len(scene.container) == 1
    assert scene.text.message == "OC"
    assert scene.container.items() == [scene.text]


def test_direct_edits_do_not_rebuild(bundle):
    scene = TextScene(bundle)
    scene.set("thin_film_thickness", 5000)
    scene.set("rotation_speed", 0.5)
    scene.set("light_color", "#ff0000")

    assert scene.lifecycle.replace_count == 1
    assert scene.uniforms.get("thinFilmThickness") == 2000.0
    assert scene.container.rotation.rate == 0.5
    assert scene.uniforms.get(SUN_COLOR_UNIFORM) == (1.0, 0.0, 0.0)


def test_rejected_edit_keeps_text_and_value(bundle):
    scene = TextScene(bundle)
    text = scene.text
    with pytest.raises(ConstraintViolation):
        scene.set("height", "deep")
    assert scene.value("height") == 50.0
    assert scene.text is text


def test_deferred_policy_builds_each_edit_on_flush(bundle):
    scene = TextScene(bundle, policy=DeferredRebuild())
    scene.set("message", "A")
    scene.set("height", 10)
    assert scene.text.message == "lil-gui"

    scene.lifecycle.flush()
    assert scene.lifecycle.replace_count == 3
    assert scene.text.message == "A"


class SwitchingScope:
    """GPU コンテキスト切り替えの代わりに出入りを数える。"""

    def __init__(self) -> None:
        self.entered = 0
        self.active = False

    @contextlib.contextmanager
    def __call__(self):
        self.entered += 1
        self.active = True
        try:
            yield
        finally:
            self.active = False


def test_scoped_immediate_policy_rebuilds_once_per_edit(bundle):
    scope = SwitchingScope()
    uploads: list[bool] = []

    def uploader(geometry):
        uploads.append(scope.active)
        return None

    scene = TextScene(bundle, uploader=uploader, policy=ImmediateRebuild(scope=scope))
    for i in range(10):
        scene.set("message", "A" * (i % 3 + 1))

    assert scene.lifecycle.replace_count == 11
    assert scope.entered == 10
    # 初回構築以外のアップロードはすべてスコープの内側
    assert uploads == [False] + [True] * 10
    assert len(scene.container) == 1


def test_failed_rebuild_reaches_the_editor(bundle):
    failing = {"on": False}

    def uploader(geometry):
        if failing["on"]:
            raise RuntimeError("GPU upload failed")
        return None

    scene = TextScene(bundle, uploader=uploader, policy=ImmediateRebuild(scope=SwitchingScope()))
    text = scene.text
    failing["on"] = True

    with pytest.raises(RuntimeError, match="GPU upload failed"):
        scene.set("height", 10.0)

    assert scene.value("height") == 10.0
    assert scene.text is text
    assert not text.disposed
    assert len(scene.container) == 1


def test_close_disposes_the_text(bundle):
    scene = TextScene(bundle)
    text = scene.text
    scene.close()
    assert text.disposed
    assert len(scene.container) == 0


def test_control_layout_covers_every_parameter_once():
    names = [spec.param for spec in CONTROL_LAYOUT]
    assert sorted(names) == sorted(name for name, _, _ in PARAMETER_DEFAULTS)
    folders = []
    for spec in CONTROL_LAYOUT:
        if spec.folder not in folders:
            folders.append(spec.folder)
    assert folders == [None, "Geometry", "Bevel", "Thin Film", "Misc"]


def test_uniform_block_starts_with_fixed_indices():
    block = UniformBlock()
    assert dict(block.items()) == {"thinFilmOuterIndex": 1.0, "thinFilmInnerIndex": 1.0}
    block.set("x", 2)
    assert "x" in block


def test_scene_initialises_only_after_all_four_assets(bundle):
    scenes: list[TextScene] = []
    results = {
        VERTEX_SHADER: bundle.vertex_shader,
        FRAGMENT_SHADER: bundle.fragment_shader,
        FONT: bundle.font,
        ENV_MAP: bundle.env_map,
    }
    barrier = AssetBarrier(lambda: scenes.append(TextScene(AssetBundle.from_results(results))))
    barrier.register(len(ALL_SLOTS))

    for slot in ALL_SLOTS[:3]:
        barrier.signal(slot)
        assert scenes == []
    barrier.signal(ALL_SLOTS[3])

    assert len(scenes) == 1
    scene = scenes[0]
    assert len(scene.container) == 1

    old = scene.text
    scene.set("message", "CO")
    assert old.disposed
    assert len(scene.container) == 1
    assert scene.text.message == "CO"


def test_scene_from_files_through_the_load_queue(tmp_path: Path, font_path: Path):
    vs = tmp_path / "text.vert"
    fs = tmp_path / "text.frag"
    env = tmp_path / "env.png"
    vs.write_text("// vs", encoding="utf-8")
    fs.write_text("// fs", encoding="utf-8")
    Image.fromarray(np.zeros((4, 8, 3), dtype=np.uint8)).save(env)

    scenes: list[TextScene] = []
    barrier = AssetBarrier(lambda: scenes.append(TextScene(AssetBundle.from_results(queue.results()))))
    barrier.register(len(ALL_SLOTS))
    queue = AssetLoadQueue(barrier)
    try:
        queue.submit(VERTEX_SHADER, TextLoader(), vs)
        queue.submit(FRAGMENT_SHADER, TextLoader(), fs)
        queue.submit(FONT, FontLoader(), font_path)
        queue.submit(ENV_MAP, ImageLoader(filter="nearest"), env)

        deadline = time.monotonic() + 5.0
        while not barrier.is_ready and time.monotonic() < deadline:
            queue.poll_pending()
            time.sleep(0.005)
    finally:
        queue.close()

    assert len(scenes) == 1
    assert scenes[0].bundle.vertex_shader == "// vs"
    assert scenes[0].bundle.env_map.filter == "nearest"
