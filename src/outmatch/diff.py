"""Line-sequence comparison of captured output against expected patterns."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from outmatch.matching import lines_match, split_lines

TAB_PLACEHOLDER = "<tab>"


class MatchKind(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    PARTIAL_N = "partial_n"
    NOT_PRESENT = "not_present"
    UNORDERED = "unordered"


class DiffKind(str, Enum):
    LINE_DIFFERS = "line_differs"
    EXTRA_ACTUAL = "extra_actual"
    MISSING_EXPECTED = "missing_expected"


@dataclass(frozen=True)
class LineDiff:
    """One discrepancy between the actual and expected line at ``index``."""

    index: int
    kind: DiffKind
    expected: str | None = None
    actual: str | None = None

    def render(self) -> str:
        if self.kind is DiffKind.LINE_DIFFERS:
            return f"{self.index:3} - |{self.expected}|\n    + |{self.actual}|\n"
        if self.kind is DiffKind.EXTRA_ACTUAL:
            return f"{self.index:3} -\n    + |{self.actual}|\n"
        return f"{self.index:3} - |{self.expected}|\n    +\n"


def prepare_actual(text: str) -> str:
    """Drop carriage returns and make tabs visible before comparing."""
    return text.replace("\r", "").replace("\t", TAB_PLACEHOLDER)


def diff_lines(
    actual: Sequence[str], expected: Sequence[str], partial: bool
) -> list[LineDiff]:
    """Pair actual and expected lines by position and report discrepancies.

    With ``partial`` the actual lines are first cut down to the length of the
    expectation, so only a window of that size is compared. A length mismatch
    shows up as extra or missing lines.
    """
    if partial:
        actual = actual[: len(expected)]

    diffs: list[LineDiff] = []
    for i in range(max(len(actual), len(expected))):
        a = actual[i] if i < len(actual) else None
        e = expected[i] if i < len(expected) else None
        if a is not None and e is not None:
            if not lines_match(e, a):
                diffs.append(LineDiff(i, DiffKind.LINE_DIFFERS, expected=e, actual=a))
        elif a is not None:
            diffs.append(LineDiff(i, DiffKind.EXTRA_ACTUAL, actual=a))
        else:
            diffs.append(LineDiff(i, DiffKind.MISSING_EXPECTED, expected=e))
    return diffs


def _window_offsets(actual: Sequence[str]) -> range:
    # The offset just past the last line is tried too (an empty window).
    return range(len(actual) + 1)


def find_window(actual: Sequence[str], expected: Sequence[str]) -> int | None:
    """Return the first offset where *expected* occurs as a contiguous run."""
    for offset in _window_offsets(actual):
        if not diff_lines(actual[offset:], expected, partial=True):
            return offset
    return None


def count_windows(actual: Sequence[str], expected: Sequence[str]) -> int:
    """Count offsets where *expected* occurs; overlapping runs count separately."""
    return sum(
        1
        for offset in _window_offsets(actual)
        if not diff_lines(actual[offset:], expected, partial=True)
    )


def _unordered_mismatch(actual: Sequence[str], expected: Sequence[str]) -> str | None:
    pool = list(actual)
    for e_line in expected:
        index = next(
            (i for i, a_line in enumerate(pool) if lines_match(e_line, a_line)), None
        )
        if index is None:
            remaining = "\n".join(pool)
            return (
                f"Did not find expected line:\n{e_line}\n"
                f"Remaining available output:\n{remaining}\n"
            )
        del pool[index]
    if pool:
        extra = "\n".join(pool)
        return f"Output included extra lines:\n{extra}\n"
    return None


def match_lines(
    actual_text: str,
    expected_text: str,
    kind: MatchKind,
    *,
    count: int | None = None,
    other: str | None = None,
) -> str | None:
    """Compare a whole captured stream against a multi-line pattern.

    Returns ``None`` when the stream satisfies the pattern under ``kind``,
    otherwise a human-readable explanation. ``other`` is the content of the
    other stream; when given it is appended as context.
    """
    actual_text = prepare_actual(actual_text)
    actual = split_lines(actual_text)
    expected = split_lines(expected_text)

    if kind is MatchKind.EXACT:
        diffs = diff_lines(actual, expected, partial=False)
        if not diffs:
            return None
        rendered = "\n".join(d.render() for d in diffs)
        message = f"differences:\n{rendered}"
    elif kind is MatchKind.PARTIAL:
        if find_window(actual, expected) is not None:
            return None
        message = (
            f"expected to find:\n{expected_text}\n\n"
            f"did not find in output:\n{actual_text}"
        )
    elif kind is MatchKind.PARTIAL_N:
        if count is None:
            raise ValueError("PARTIAL_N matching requires a count")
        found = count_windows(actual, expected)
        if found == count:
            return None
        message = (
            f"expected to find {count} occurrences:\n{expected_text}\n\n"
            f"found {found} in output:\n{actual_text}"
        )
    elif kind is MatchKind.NOT_PRESENT:
        if find_window(actual, expected) is None:
            return None
        message = (
            f"expected not to find:\n{expected_text}\n\n"
            f"but found in output:\n{actual_text}"
        )
    elif kind is MatchKind.UNORDERED:
        mismatch = _unordered_mismatch(actual, expected)
        if mismatch is None:
            return None
        message = mismatch
    else:
        raise ValueError(f"Unknown match kind: {kind!r}")

    if other is not None:
        message = f"{message}\n\nother output:\n`{other}`"
    return message
