"""Status-token macros understood by expected output patterns."""

from __future__ import annotations

import sys

# Each token stands for the right-aligned status word the tool prints, so
# patterns stay readable regardless of column alignment.
_STATUS_MACROS: tuple[tuple[str, str], ...] = (
    ("[RUNNING]", "     Running"),
    ("[COMPILING]", "   Compiling"),
    ("[CHECKING]", "    Checking"),
    ("[CREATED]", "     Created"),
    ("[FINISHED]", "    Finished"),
    ("[ERROR]", "error:"),
    ("[WARNING]", "warning:"),
    ("[DOCUMENTING]", " Documenting"),
    ("[FRESH]", "       Fresh"),
    ("[UPDATING]", "    Updating"),
    ("[ADDING]", "      Adding"),
    ("[REMOVING]", "    Removing"),
    ("[DOCTEST]", "   Doc-tests"),
    ("[PACKAGING]", "   Packaging"),
    ("[DOWNLOADING]", " Downloading"),
    ("[UPLOADING]", "   Uploading"),
    ("[VERIFYING]", "   Verifying"),
    ("[ARCHIVING]", "   Archiving"),
    ("[INSTALLING]", "  Installing"),
    ("[REPLACING]", "   Replacing"),
    ("[UNPACKING]", "   Unpacking"),
    ("[SUMMARY]", "     Summary"),
    ("[FIXING]", "      Fixing"),
)

EXE_MACRO = "[EXE]"


def exe_suffix(windows: bool | None = None) -> str:
    """Return the executable file suffix for the current (or given) platform."""
    if windows is None:
        windows = sys.platform == "win32"
    return ".exe" if windows else ""


def macro_table(windows: bool | None = None) -> list[tuple[str, str]]:
    """All (token, literal) pairs, including the platform-dependent ``[EXE]``."""
    return [*_STATUS_MACROS, (EXE_MACRO, exe_suffix(windows))]


def substitute_macros(pattern: str, *, windows: bool | None = None) -> str:
    """Replace every macro token in *pattern* with its literal text.

    Tokens never overlap, so the replacement order is irrelevant. There is no
    escape syntax: a literal ``[COMPILING]`` cannot be expressed.
    """
    result = pattern
    for token, literal in macro_table(windows):
        result = result.replace(token, literal)
    return result
