# どこで: `src/glint/interactive/gl/scene_renderer.py`。
# 何を: 押し出しテキスト（薄膜シェーダ）と太陽ディスクを描く ModernGL レンダラーをカプセル化する。
# なぜ: コンテキスト生成・シェーダ設定・メッシュ転送をシーン配線から分離し、責務を明確にするため。

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

import moderngl
import numpy as np

from glint.core.assets.bundle import AssetBundle
from glint.core.assets.loaders import SampledImage
from glint.core.text_geometry import TextGeometry
from glint.interactive.gl import utils as gl_utils
from glint.interactive.gl.text_mesh import TextMesh

if TYPE_CHECKING:
    from glint.core.scene import TextScene
    from glint.interactive.orbit import OrbitController

_logger = logging.getLogger(__name__)

FOV_Y_DEG = 60.0
NEAR = 1.0
FAR = 10000.0

# 太陽はカメラ座標系に固定したディスク。
SUN_RADIUS = 160.0
SUN_DISTANCE = 800.0
SUN_SEGMENTS = 48

_SUN_VERTEX_SHADER = """
#version 410
uniform mat4 projection;
uniform vec3 center;
uniform float radius;
in vec2 in_vert;
out vec2 v_local;
void main() {
    v_local = in_vert;
    gl_Position = projection * vec4(center + vec3(in_vert * radius, 0.0), 1.0);
}
"""

_SUN_FRAGMENT_SHADER = """
#version 410
uniform vec3 color;
in vec2 v_local;
out vec4 f_color;
void main() {
    float r = length(v_local);
    float alpha = 1.0 - smoothstep(0.96, 1.0, r);
    f_color = vec4(color, alpha);
}
"""


def _sun_disc_vertices(segments: int) -> np.ndarray:
    """単位円の三角形リスト（中心 + 周）を返す。"""
    angles = np.linspace(0.0, 2.0 * math.pi, int(segments) + 1)
    rim = np.stack([np.cos(angles), np.sin(angles)], axis=1)
    tris = np.empty((int(segments), 3, 2), dtype=np.float32)
    tris[:, 0] = 0.0
    tris[:, 1] = rim[:-1]
    tris[:, 2] = rim[1:]
    return tris.reshape(-1, 2)


class SceneRenderer:
    """テキストシーンを描くレンダラー。

    生成は「アセット完了後、シーンウィンドウのコンテキストが current の状態」で行う。
    `upload()` は TextScene の uploader として渡す。
    """

    def __init__(self, window: Any, bundle: AssetBundle) -> None:
        window.switch_to()
        self._window = window
        self.ctx = moderngl.create_context(require=410)
        self.program = self.ctx.program(
            vertex_shader=bundle.vertex_shader,
            fragment_shader=bundle.fragment_shader,
        )
        self.env_texture = self._create_env_texture(bundle.env_map)

        self._sun_program = self.ctx.program(
            vertex_shader=_SUN_VERTEX_SHADER,
            fragment_shader=_SUN_FRAGMENT_SHADER,
        )
        self._sun_vbo = self.ctx.buffer(_sun_disc_vertices(SUN_SEGMENTS).tobytes())
        self._sun_vao = self.ctx.simple_vertex_array(self._sun_program, self._sun_vbo, "in_vert")
        self._sun_vertex_count = SUN_SEGMENTS * 3

        self._scene: TextScene | None = None
        self._camera: OrbitController | None = None
        self._released = False

    def _create_env_texture(self, image: SampledImage) -> Any:
        w, h = image.size
        texture = self.ctx.texture((w, h), 4, image.pixels.tobytes())
        flt = moderngl.NEAREST if image.filter == "nearest" else moderngl.LINEAR
        texture.filter = (flt, flt)
        texture.repeat_x = True
        texture.repeat_y = False
        return texture

    def attach(self, scene: TextScene, camera: OrbitController) -> None:
        """描画対象のシーンとカメラを設定する。"""
        self._scene = scene
        self._camera = camera

    def upload(self, geometry: TextGeometry) -> TextMesh:
        """ジオメトリを GPU メッシュへ転送する。"""
        return TextMesh(self.ctx, self.program, geometry)

    def viewport(self, width: int, height: int) -> None:
        """ビューポートをウィンドウサイズに合わせて更新する。"""
        self.ctx.viewport = (0, 0, int(width), int(height))

    def _framebuffer_size(self) -> tuple[int, int]:
        getter = getattr(self._window, "get_framebuffer_size", None)
        if callable(getter):
            w, h = getter()
            return int(w), int(h)
        return int(self._window.width), int(self._window.height)

    def _write_uniform(self, program: Any, name: str, value: Any) -> None:
        # コンパイラが最適化で消した uniform は存在しない。
        uniform = program.get(name, None)
        if uniform is None:
            return
        if isinstance(value, np.ndarray):
            uniform.write(value.astype("f4").tobytes())
        else:
            uniform.value = value

    def render(self, dt: float) -> None:
        """1 フレーム描画する（`flip()` は呼ばない）。"""
        if self._released:
            return
        fb_w, fb_h = self._framebuffer_size()
        self.viewport(fb_w, fb_h)
        self.ctx.clear(0.0, 0.0, 0.0, 1.0)

        scene = self._scene
        camera = self._camera
        if scene is None or camera is None:
            return

        projection = gl_utils.build_perspective(FOV_Y_DEG, fb_w / max(1, fb_h), NEAR, FAR)
        view = camera.view_matrix()
        model = gl_utils.build_rotation_y(scene.container.rotation.value)

        self.ctx.enable(moderngl.DEPTH_TEST)
        self.ctx.disable(moderngl.BLEND)
        program = self.program
        self._write_uniform(program, "projection", projection)
        self._write_uniform(program, "view", view)
        self._write_uniform(program, "model", model)
        self._write_uniform(program, "cameraPosition", tuple(float(v) for v in camera.eye))
        for name, value in scene.uniforms.items():
            if name == "sunColor":
                continue
            self._write_uniform(program, name, value)
        self.env_texture.use(location=0)
        self._write_uniform(program, "envMap", 0)

        for obj in scene.container:
            gpu = getattr(obj, "gpu", None)
            if gpu is not None:
                gpu.render()

        # 太陽はカメラに付いているので view を掛けない。
        self.ctx.enable(moderngl.BLEND)
        self.ctx.blend_func = moderngl.SRC_ALPHA, moderngl.ONE_MINUS_SRC_ALPHA
        sun = self._sun_program
        self._write_uniform(sun, "projection", projection)
        self._write_uniform(sun, "center", (0.0, 0.0, -SUN_DISTANCE))
        self._write_uniform(sun, "radius", SUN_RADIUS)
        self._write_uniform(sun, "color", tuple(scene.uniforms.get("sunColor")))
        self._sun_vao.render(mode=moderngl.TRIANGLES, vertices=self._sun_vertex_count)

    def release(self) -> None:
        """GPU リソースを解放する。テキストメッシュは TextObject.dispose が解放する。"""
        if self._released:
            return
        self._released = True
        self._sun_vao.release()
        self._sun_vbo.release()
        self._sun_program.release()
        self.env_texture.release()
        self.program.release()
        _logger.info("Scene renderer released")
