"""Single-line wildcard matching for expected output patterns.

Patterns are plain text with two additions:

* ``[..]`` matches any run of characters (including none) within one line,
  much like ``.*`` in a regex.
* Status macros such as ``[COMPILING]`` or ``[EXE]`` are expanded first, see
  :mod:`outmatch.macros`.

Backslashes are treated as forward slashes on both sides so that patterns
written with ``/`` also match Windows paths.
"""

from __future__ import annotations

from outmatch.macros import substitute_macros

WILDCARD = "[..]"


def normalize_separators(text: str) -> str:
    return text.replace("\\", "/")


def lines_match(expected: str, actual: str) -> bool:
    """Return True if the *actual* line satisfies the *expected* pattern.

    The pattern is anchored at the start of the line. Each literal segment
    after a wildcard binds to its first occurrence in the remaining text, and
    trailing text is only allowed when the pattern ends with a wildcard.
    """
    expected = substitute_macros(normalize_separators(expected))
    remaining = normalize_separators(actual)

    for i, part in enumerate(expected.split(WILDCARD)):
        j = remaining.find(part)
        if j == -1:
            return False
        if i == 0 and j != 0:
            return False
        remaining = remaining[j + len(part):]

    return not remaining or expected.endswith(WILDCARD)


def split_lines(text: str) -> list[str]:
    """Split *text* into lines the way the captured output is compared.

    Lines are separated by ``\\n``; a trailing ``\\r`` on a line is dropped and
    a final line terminator does not produce an empty trailing line.
    """
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]
