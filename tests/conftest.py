from __future__ import annotations

from pathlib import Path

import pytest
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen

from glint.core.glyph_font import GlyphFont

UNITS_PER_EM = 1000


def _rect(pen: TTGlyphPen, x0: float, y0: float, x1: float, y1: float, *, clockwise: bool) -> None:
    pts = [(x0, y0), (x0, y1), (x1, y1), (x1, y0)]
    if not clockwise:
        pts = pts[::-1]
    pen.moveTo(pts[0])
    for p in pts[1:]:
        pen.lineTo(p)
    pen.closePath()


def _glyph_square() -> object:
    pen = TTGlyphPen(None)
    _rect(pen, 100, 0, 600, 700, clockwise=True)
    return pen.glyph()


def _glyph_ring() -> object:
    # 外周 CW（TrueType の外周）+ 内周 CCW（穴）
    pen = TTGlyphPen(None)
    _rect(pen, 100, 0, 700, 700, clockwise=True)
    _rect(pen, 250, 150, 550, 550, clockwise=False)
    return pen.glyph()


def _glyph_round() -> object:
    # 2 次ベジエを含む輪郭
    pen = TTGlyphPen(None)
    pen.moveTo((100, 350))
    pen.qCurveTo((100, 700), (400, 700))
    pen.qCurveTo((700, 700), (700, 350))
    pen.qCurveTo((700, 0), (400, 0))
    pen.qCurveTo((100, 0), (100, 350))
    pen.closePath()
    return pen.glyph()


def _empty_glyph() -> object:
    return TTGlyphPen(None).glyph()


def build_test_font(path: Path) -> Path:
    """".notdef / space / A（正方形）/ O（穴付き）/ C（曲線）" だけのフォントを書き出す。"""

    fb = FontBuilder(UNITS_PER_EM, isTTF=True)
    order = [".notdef", "space", "A", "O", "C"]
    fb.setupGlyphOrder(order)
    fb.setupCharacterMap({0x20: "space", ord("A"): "A", ord("O"): "O", ord("C"): "C"})
    fb.setupGlyf(
        {
            ".notdef": _empty_glyph(),
            "space": _empty_glyph(),
            "A": _glyph_square(),
            "O": _glyph_ring(),
            "C": _glyph_round(),
        }
    )
    fb.setupHorizontalMetrics(
        {
            ".notdef": (500, 0),
            "space": (300, 0),
            "A": (700, 100),
            "O": (800, 100),
            "C": (800, 100),
        }
    )
    fb.setupHorizontalHeader(ascent=800, descent=-200)
    fb.setupNameTable({"familyName": "GlintTest", "styleName": "Regular"})
    fb.setupOS2(sTypoAscender=800, sTypoDescender=-200, usWinAscent=800, usWinDescent=200)
    fb.setupPost()
    fb.save(str(path))
    return path


@pytest.fixture(scope="session")
def font_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return build_test_font(tmp_path_factory.mktemp("font") / "glint-test.ttf")


@pytest.fixture(scope="session")
def glyph_font(font_path: Path) -> GlyphFont:
    return GlyphFont.from_path(font_path)
