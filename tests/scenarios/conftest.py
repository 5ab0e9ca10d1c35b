"""
Golden-file helper for end-to-end governance scenarios.

A scenario serializes evaluate_governance(...).to_dict() and compares it
with tests/scenarios/golden/<name>.json.
"""

import difflib
import json
from pathlib import Path
from typing import Any

import pytest

GOLDEN_DIR = Path(__file__).parent / "golden"


def _dump(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2, sort_keys=True) + "\n"


def compare_golden(name: str, actual: dict[str, Any], update: bool = False) -> None:
    """Fail with a unified diff when actual differs; update=True rewrites the golden file."""
    path = GOLDEN_DIR / f"{name}.json"
    actual_text = _dump(actual)
    if update:
        path.write_text(actual_text)
        return

    expected_text = _dump(json.loads(path.read_text()))
    if expected_text != actual_text:
        diff = "".join(
            difflib.unified_diff(
                expected_text.splitlines(keepends=True),
                actual_text.splitlines(keepends=True),
                fromfile=f"golden/{name}.json",
                tofile="actual",
            )
        )
        pytest.fail(f"Golden mismatch for {name}; regenerate with UPDATE_GOLDEN=1 pytest tests/scenarios\n\n{diff}")
