"""
どこで: `src/glint/interactive/control_panel.py`。
何を: 登録済みパラメータを pyimgui で編集するコントロールパネル（初期化/1フレーム描画/破棄）を提供する。
なぜ: 編集を必ず `ParameterRegistry.set_value` 経由で流し、パネル自体は表示だけに責務を絞るため。

- フォルダは表示上のグルーピングのみ（値の意味には関与しない）。
- 編集の失敗（制約違反/再構築失敗）はログに残し、パネルは動き続ける。
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable

from glint.core.parameters import ConstraintViolation, ParameterRegistry, ParamHandle, ParamMeta

from .pyglet_backend import create_imgui_pyglet_renderer, sync_imgui_io_for_window

_logger = logging.getLogger(__name__)

_FALLBACK_FLOAT_RANGE = (0.0, 1.0)
_FALLBACK_INT_RANGE = (0, 10)
_MESSAGE_BUFFER_LENGTH = 256


@dataclass(frozen=True, slots=True)
class ControlEntry:
    """パネル上の 1 項目。"""

    label: str
    handle: ParamHandle
    display_range: tuple[float, float] | None = None
    folder: str | None = None


def group_controls(
    entries: Iterable[ControlEntry],
) -> list[tuple[str | None, list[ControlEntry]]]:
    """フォルダ単位にまとめる。

    ルート（folder=None）を先頭に置き、以降は各フォルダの初出順。フォルダ内は追加順。
    """

    order: list[str | None] = []
    groups: dict[str | None, list[ControlEntry]] = {}
    for entry in entries:
        if entry.folder not in groups:
            groups[entry.folder] = []
            order.append(entry.folder)
        groups[entry.folder].append(entry)
    if None in groups:
        order.remove(None)
        order.insert(0, None)
    return [(folder, groups[folder]) for folder in order]


def slider_range(meta: ParamMeta, display_range: tuple[float, float] | None) -> tuple[float, float]:
    """スライダーの表示レンジを決める（display_range → meta の min/max → 既定値）。"""

    if display_range is not None:
        lo, hi = display_range
        return float(lo), float(hi)
    fallback = _FALLBACK_INT_RANGE if meta.kind == "int" else _FALLBACK_FLOAT_RANGE
    lo = fallback[0] if meta.min is None else meta.min
    hi = fallback[1] if meta.max is None else meta.max
    return float(lo), float(hi)


class ControlSet:
    """パネルに並べる項目と、編集の書き込み経路。

    imgui に依存しない部分。`ControlPanel` が描画を担当する。
    """

    def __init__(self, registry: ParameterRegistry) -> None:
        self._registry = registry
        self._entries: list[ControlEntry] = []

    @property
    def registry(self) -> ParameterRegistry:
        return self._registry

    @property
    def entries(self) -> tuple[ControlEntry, ...]:
        return tuple(self._entries)

    def add_control(
        self,
        label: str,
        handle: ParamHandle,
        display_range: tuple[float, float] | None = None,
        folder: str | None = None,
    ) -> ControlEntry:
        """項目を追加する。ハンドルが未登録なら KeyError。"""

        self._registry.meta(handle)
        entry = ControlEntry(
            label=str(label),
            handle=handle,
            display_range=None if display_range is None else (display_range[0], display_range[1]),
            folder=None if folder is None else str(folder),
        )
        self._entries.append(entry)
        return entry

    def apply_edit(self, entry: ControlEntry, value: Any) -> bool:
        """編集値をレジストリへ書き込む。成功なら True。"""

        try:
            self._registry.set_value(entry.handle, value)
        except ConstraintViolation as exc:
            _logger.warning("Rejected edit for '%s': %s", entry.handle.name, exc)
            return False
        except Exception:
            # 再構築の失敗。旧インスタンスは残っているのでパネルは続行する。
            _logger.exception("Rebuild failed after editing '%s'", entry.handle.name)
            return False
        return True


def render_control_widget(imgui: Any, entry: ControlEntry, meta: ParamMeta, value: Any) -> tuple[bool, Any]:
    """kind に応じたウィジェットを描き、(changed, value) を返す。"""

    widget_id = f"{entry.label}##{entry.handle.name}"
    kind = meta.kind

    if kind == "float":
        lo, hi = slider_range(meta, entry.display_range)
        return imgui.slider_float(widget_id, float(value), lo, hi)

    if kind == "int":
        lo, hi = slider_range(meta, entry.display_range)
        return imgui.slider_int(widget_id, int(value), int(lo), int(hi))

    if kind == "bool":
        clicked, state = imgui.checkbox(widget_id, bool(value))
        return clicked, bool(state)

    if kind == "str":
        return imgui.input_text(widget_id, str(value), _MESSAGE_BUFFER_LENGTH)

    if kind == "rgb":
        r, g, b = value
        flags = imgui.COLOR_EDIT_UINT8 | imgui.COLOR_EDIT_DISPLAY_RGB
        changed, out = imgui.color_edit3(widget_id, r / 255.0, g / 255.0, b / 255.0, flags=flags)
        if not changed:
            return False, value
        return True, tuple(int(round(float(c) * 255.0)) for c in out)

    if kind == "choice":
        choices = list(meta.choices or ())
        current = choices.index(value) if value in choices else 0
        changed, index = imgui.combo(widget_id, current, choices)
        return changed, choices[int(index)]

    imgui.text(f"{entry.label}: {value!r}")
    return False, value


class ControlPanel(ControlSet):
    """pyimgui でパラメータを編集するパネル。

    `draw_frame()` を呼ぶことで 1 フレーム分の UI を描画する。
    """

    def __init__(self, window: Any, registry: ParameterRegistry, *, title: str = "Controls") -> None:
        """GUI の初期化（ImGui コンテキスト / renderer 作成）。"""

        super().__init__(registry)

        import imgui  # type: ignore[import-untyped]

        try:
            from imgui.integrations import pyglet as imgui_pyglet  # type: ignore[import-untyped]
        except ImportError as exc:
            raise RuntimeError(f"imgui.integrations.pyglet を import できない: {exc}") from exc

        self._window = window
        self._title = str(title)

        # ImGui はグローバルな current context 前提なので、自前のコンテキストへ切り替えて使う。
        self._imgui = imgui
        self._context = imgui.create_context()
        imgui.set_current_context(self._context)
        imgui.style_colors_dark()
        self._renderer = create_imgui_pyglet_renderer(imgui_pyglet, window)

        self._prev_time = time.monotonic()
        self._closed = False

    def draw_frame(self) -> bool:
        """1 フレーム分の GUI を描画し、編集があれば反映する。変更があれば True。

        `flip()` は呼ばない。呼び出し側（pyglet の `Window.draw`）が担当する。
        """

        if self._closed:
            return False

        now = time.monotonic()
        dt = now - self._prev_time
        self._prev_time = now

        imgui = self._imgui
        imgui.set_current_context(self._context)

        # 注: process_inputs() は内部で pyglet.clock.tick() を呼ぶため、app.run() 駆動では呼ばない。
        imgui.new_frame()
        sync_imgui_io_for_window(imgui, self._window, dt=dt)

        imgui.set_next_window_position(0, 0)
        imgui.set_next_window_size(self._window.width, self._window.height)
        imgui.begin(
            self._title,
            flags=imgui.WINDOW_NO_RESIZE | imgui.WINDOW_NO_COLLAPSE | imgui.WINDOW_NO_TITLE_BAR,
        )
        changed = False
        try:
            for folder, entries in group_controls(self._entries):
                if folder is not None:
                    expanded, _visible = imgui.collapsing_header(
                        f"{folder}##folder", flags=imgui.TREE_NODE_DEFAULT_OPEN
                    )
                    if not expanded:
                        continue
                for entry in entries:
                    registry = self._registry
                    edited, value = render_control_widget(
                        imgui, entry, registry.meta(entry.handle), registry.get_value(entry.handle)
                    )
                    if edited:
                        changed = self.apply_edit(entry, value) or changed
        finally:
            imgui.end()

        imgui.render()

        import pyglet

        pyglet.gl.glClearColor(0.12, 0.12, 0.12, 1.0)
        self._window.clear()
        self._renderer.render(imgui.get_draw_data())
        return changed

    def close(self) -> None:
        """GUI を終了し、コンテキストとウィンドウを破棄する。二重 close は無視する。"""

        if self._closed:
            return
        self._closed = True
        shutdown = getattr(self._renderer, "shutdown", None)
        if callable(shutdown):
            shutdown()
        self._imgui.destroy_context(self._context)
        self._window.close()


__all__ = [
    "ControlEntry",
    "ControlPanel",
    "ControlSet",
    "group_controls",
    "render_control_widget",
    "slider_range",
]
