"""Approximate structural equality for JSON output.

Strings support the ``[..]`` wildcard from :mod:`outmatch.matching` (useful
for paths and other platform dependent values). The string literal
``"{...}"`` on the expected side matches any value, including whole nested
objects emitted by other programs. Arrays are compared without regard to
order. Objects must have the same keys.
"""

from __future__ import annotations

import json
from typing import Any

from outmatch.matching import lines_match, split_lines

ANY_VALUE = "{...}"

Mismatch = tuple[Any, Any]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def find_mismatch(expected: Any, actual: Any) -> Mismatch | None:
    """Return ``None`` if *actual* matches *expected*, else the smallest
    ``(expected_part, actual_part)`` pair that disagrees."""
    if _is_number(expected) and _is_number(actual):
        if expected == actual:
            return None
    elif isinstance(expected, bool) and isinstance(actual, bool):
        if expected is actual:
            return None
    elif expected is None and actual is None:
        return None
    elif isinstance(expected, str) and expected == ANY_VALUE:
        return None
    elif isinstance(expected, str) and isinstance(actual, str):
        if lines_match(expected, actual):
            return None
    elif isinstance(expected, list) and isinstance(actual, list):
        return _array_mismatch(expected, actual)
    elif isinstance(expected, dict) and isinstance(actual, dict):
        return _object_mismatch(expected, actual)
    return expected, actual


def _array_mismatch(expected: list, actual: list) -> Mismatch | None:
    if len(expected) != len(actual):
        return expected, actual

    remaining = list(actual)
    unmatched = []
    for e in expected:
        index = next(
            (i for i, a in enumerate(remaining) if find_mismatch(e, a) is None), None
        )
        if index is None:
            unmatched.append(e)
        else:
            del remaining[index]

    if unmatched:
        return unmatched[0], remaining[0]
    return None


def _object_mismatch(expected: dict, actual: dict) -> Mismatch | None:
    if expected.keys() != actual.keys():
        return expected, actual

    for key in sorted(expected):
        mismatch = find_mismatch(expected[key], actual[key])
        if mismatch is not None:
            return mismatch
    return None


def parse_json_fragments(text: str) -> list[Any]:
    """Parse blank-line separated JSON documents.

    Raises ValueError naming the fragment that is not valid JSON.
    """
    fragments = []
    for chunk in text.split("\n\n"):
        try:
            fragments.append(json.loads(chunk))
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid expected json, {e}:\n`{chunk}`") from e
    return fragments


def json_lines(stdout: str) -> list[str]:
    """The lines of *stdout* that hold a JSON object."""
    return [line for line in split_lines(stdout) if line.startswith("{")]


def _pretty(value: Any) -> str:
    return json.dumps(value, indent=2)


def match_json_line(expected: Any, line: str) -> str | None:
    """Compare one line of output against one expected document.

    Returns ``None`` on a match, otherwise the failure text.
    """
    try:
        actual = json.loads(line)
    except json.JSONDecodeError as e:
        return f"invalid json, {e}:\n`{line}`"

    mismatch = find_mismatch(expected, actual)
    if mismatch is None:
        return None
    expected_part, actual_part = mismatch
    return (
        "JSON mismatch\n"
        f"Expected:\n{_pretty(expected)}\n"
        f"Was:\n{_pretty(actual)}\n"
        f"Expected part:\n{_pretty(expected_part)}\n"
        f"Actual part:\n{_pretty(actual_part)}\n"
    )


def match_json_output(expected: list[Any], stdout: str) -> str | None:
    """Match every JSON line of *stdout*, in order, against *expected*."""
    lines = json_lines(stdout)
    if len(lines) != len(expected):
        return f"expected {len(expected)} json lines, got {len(lines)}, stdout:\n{stdout}"
    for obj, line in zip(expected, lines):
        failure = match_json_line(obj, line)
        if failure is not None:
            return failure
    return None
