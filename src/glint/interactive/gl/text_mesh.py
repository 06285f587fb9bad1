"""
どこで: `src/glint/interactive/gl/text_mesh.py`。
何を: 押し出しテキスト 1 つ分の VBO/IBO/VAO を確保・解放する TextMesh。
なぜ: GPU 転送の詳細を Renderer から切り離し、TextObject の dispose と GPU 解放を 1 対 1 にするため。
"""

from __future__ import annotations

from typing import Any

import numpy as np

from glint.core.text_geometry import TextGeometry


class TextMesh:
    """
    1 つの TextGeometry を GPU に載せたもの。

    VBO は position(3f) + normal(3f) のインターリーブ、IBO は uint32 の三角形インデックス。
    ジオメトリは不変なので再確保はしない（作り直すときは TextMesh ごと差し替える）。
    """

    def __init__(self, ctx: Any, program: Any, geometry: TextGeometry) -> None:
        self.ctx = ctx
        self.program = program

        interleaved = np.hstack([geometry.positions, geometry.normals]).astype(np.float32)
        indices = np.ascontiguousarray(geometry.indices, dtype=np.uint32).reshape(-1)
        self.index_count: int = int(indices.size)

        # 空メッシュでも buffer は 1 byte 以上必要。
        self.vbo = ctx.buffer(interleaved.tobytes() or b"\x00" * 4)
        self.ibo = ctx.buffer(indices.tobytes() or b"\x00" * 4)
        self.vao = ctx.vertex_array(
            program,
            [(self.vbo, "3f 3f", "in_position", "in_normal")],
            index_buffer=self.ibo,
            index_element_size=4,
        )
        self._released = False

    def render(self) -> None:
        if self._released or self.index_count == 0:
            return
        self.vao.render(mode=self.ctx.TRIANGLES, vertices=self.index_count)

    def release(self) -> None:
        """GPU のメモリを解放する"""
        if self._released:
            return
        self._released = True
        self.vao.release()
        self.vbo.release()
        self.ibo.release()
