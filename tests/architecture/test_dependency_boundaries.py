"""依存境界（core → interactive/api の逆流禁止）の破りを検出するテスト。"""

from __future__ import annotations

import ast
from pathlib import Path

_SRC_ROOT = Path(__file__).resolve().parents[2] / "src"


def _repo_root() -> Path:
    return _SRC_ROOT.parent


def _module_of(path: Path) -> tuple[str, bool]:
    """src 相対パスから (モジュール名, パッケージか) を返す。"""

    parts = list(path.relative_to(_SRC_ROOT).with_suffix("").parts)
    is_package = parts[-1] == "__init__"
    if is_package:
        parts.pop()
    if not parts:
        raise ValueError(f"モジュール名にできないパス: {path}")
    return ".".join(parts), is_package


def _resolve_importfrom_targets(
    *,
    current_module: str,
    is_package: bool,
    node: ast.ImportFrom,
) -> set[str]:
    """`from X import a, b` が参照しうるモジュール名（X, X.a, X.b）を返す。"""

    if node.level:
        package = current_module.split(".")
        if not is_package:
            package = package[:-1]
        keep = len(package) - (node.level - 1)
        if keep <= 0:
            raise ValueError(
                f"相対 import の解決に失敗: module={current_module!r}, level={node.level}, from={node.module!r}"
            )
        base = ".".join(package[:keep] + ([node.module] if node.module else []))
    elif node.module is None:
        return set()
    else:
        base = node.module

    return {base} | {f"{base}.{alias.name}" for alias in node.names if alias.name != "*"}


def _imported_modules(path: Path) -> set[str]:
    module, is_package = _module_of(path)
    found: set[str] = set()
    for node in ast.walk(ast.parse(path.read_text(encoding="utf-8"))):
        if isinstance(node, ast.Import):
            found.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom):
            found |= _resolve_importfrom_targets(current_module=module, is_package=is_package, node=node)
    return found


def _assert_no_forbidden_imports(*, root: Path, forbidden_prefixes: tuple[str, ...]) -> None:
    violations = []
    for path in sorted(root.rglob("*.py")):
        bad = sorted(m for m in _imported_modules(path) if m.startswith(forbidden_prefixes))
        if bad:
            violations.append(f"{path.relative_to(_repo_root())}: {', '.join(bad)}")
    assert not violations, "依存境界違反の import を検出:\n" + "\n".join(violations)


_GUI_PREFIXES = ("pyglet", "moderngl", "imgui")


def test_core_does_not_depend_on_interactive_or_gui_stack() -> None:
    root = _repo_root()
    _assert_no_forbidden_imports(
        root=root / "src" / "glint" / "core",
        forbidden_prefixes=("glint.interactive", "glint.api", *_GUI_PREFIXES),
    )


def test_interactive_does_not_depend_on_api() -> None:
    root = _repo_root()
    _assert_no_forbidden_imports(
        root=root / "src" / "glint" / "interactive",
        forbidden_prefixes=("glint.api",),
    )


def _parse_single_stmt(source: str) -> ast.stmt:
    tree = ast.parse(source)
    assert len(tree.body) == 1
    return tree.body[0]


def test__resolve_importfrom_targets_handles_relative_imports() -> None:
    node = _parse_single_stmt("from ..interactive import orbit\n")
    assert isinstance(node, ast.ImportFrom)
    got = _resolve_importfrom_targets(current_module="glint.core.scene", is_package=False, node=node)
    assert {"glint.interactive", "glint.interactive.orbit"} <= got

    node = _parse_single_stmt("from .binding import Binding\n")
    assert isinstance(node, ast.ImportFrom)
    got = _resolve_importfrom_targets(
        current_module="glint.core.parameters",
        is_package=True,
        node=node,
    )
    assert "glint.core.parameters.binding" in got

    node = _parse_single_stmt("from ..assets import *\n")
    assert isinstance(node, ast.ImportFrom)
    got = _resolve_importfrom_targets(
        current_module="glint.core.parameters.registry",
        is_package=False,
        node=node,
    )
    assert got == {"glint.core.assets"}


def test__resolve_importfrom_targets_rejects_unresolvable_relative_imports() -> None:
    node = _parse_single_stmt("from ....api import run\n")
    assert isinstance(node, ast.ImportFrom)
    try:
        _resolve_importfrom_targets(current_module="glint.core", is_package=True, node=node)
    except ValueError:
        return
    raise AssertionError("解決不能な相対 import は ValueError にする")
