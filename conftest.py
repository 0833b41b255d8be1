"""Root conftest.py for the kel103 driver.

Puts ``src/`` on the import path so the tests run from a plain checkout,
registers the custom markers, and marks tests that replace pyserial or
pyvisa with mocks.
"""

from __future__ import annotations

import ast
import inspect
import os
import sys
import textwrap
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.nodes import Item


PROJECT_ROOT = Path(__file__).parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


def pytest_configure(config: Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "uses_mock: Test uses mocking (auto-detected or manually marked)",
    )
    config.addinivalue_line(
        "markers",
        "hardware: Test requires a KEL103 on KEL103_TEST_PORT",
    )


class MockDetector(ast.NodeVisitor):
    """AST visitor that finds mock usage and the module helpers a test calls."""

    MOCK_PATTERNS = frozenset({
        "MagicMock",
        "Mock",
        "patch",
        "create_autospec",
        "PropertyMock",
        "mocker",
    })

    def __init__(self) -> None:
        self.uses_mock = False
        self.helpers: set[str] = set()

    def visit_Call(self, node: ast.Call) -> None:
        """Check calls such as ``MagicMock()``, ``patch(...)`` and ``patch.dict(...)``."""
        func = node.func
        if isinstance(func, ast.Name):
            if func.id in self.MOCK_PATTERNS:
                self.uses_mock = True
            else:
                self.helpers.add(func.id)
        elif isinstance(func, ast.Attribute):
            if func.attr in self.MOCK_PATTERNS:
                self.uses_mock = True
            elif isinstance(func.value, ast.Name) and func.value.id in self.MOCK_PATTERNS:
                self.uses_mock = True
        self.generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        """Check for the pytest-mock ``mocker`` fixture."""
        if node.id == "mocker":
            self.uses_mock = True
        self.generic_visit(node)


def _scan(obj: Any) -> MockDetector | None:
    try:
        source = textwrap.dedent(inspect.getsource(obj))
        tree = ast.parse(source)
    except (OSError, TypeError, SyntaxError):
        return None
    detector = MockDetector()
    detector.visit(tree)
    return detector


def _uses_mock(item: Item) -> bool:
    """Check the test and the module-level helpers it calls, transitively."""
    if item.get_closest_marker("uses_mock"):
        return True
    obj = getattr(item, "obj", None)
    if obj is None:
        return False
    module = getattr(item, "module", None)

    pending = [obj]
    seen: set[int] = set()
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        detector = _scan(current)
        if detector is None:
            continue
        if detector.uses_mock:
            return True
        if module is None:
            continue
        for name in detector.helpers:
            helper = getattr(module, name, None)
            # Only follow code defined in the test module itself
            if (inspect.isfunction(helper) or inspect.isclass(helper)) and (
                getattr(helper, "__module__", None) == module.__name__
            ):
                pending.append(helper)
    return False


def pytest_collection_modifyitems(config: Config, items: list[Item]) -> None:
    """Auto-mark mocked tests and skip hardware tests without a port."""
    skip_hardware = pytest.mark.skip(reason="KEL103_TEST_PORT not set")
    port = os.environ.get("KEL103_TEST_PORT")
    for item in items:
        if _uses_mock(item):
            item.add_marker(pytest.mark.uses_mock)
        if item.get_closest_marker("hardware") and not port:
            item.add_marker(skip_hardware)


def pytest_report_header(config: Config) -> list[str]:
    """Add coverage mode info to pytest header."""
    lines = ["kel103 driver test suite"]
    if getattr(config.option, "cov_source", None):
        lines.append("Coverage: enabled with mock detection")
    return lines
