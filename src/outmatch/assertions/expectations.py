"""Declarative expectations on the exit code and output of a process.

Build an :class:`Expectations` by chaining ``with_*`` calls, then evaluate it
against a :class:`~outmatch.process.CapturedResult`::

    result = (
        execs()
        .with_stdout("hi!")
        .with_stderr_contains("[COMPILING] foo [..]")
        .evaluate(captured)
    )

Every declared expectation must hold. Checks run in a fixed order and the
first failing one decides the diagnostic. See :func:`outmatch.matching.lines_match`
for the pattern syntax.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Iterator

from outmatch.assertions.base import (
    AssertionResult,
    ExpectationError,
    OutputEncodingError,
)
from outmatch.diff import MatchKind, match_lines
from outmatch.json_match import match_json_output, parse_json_fragments
from outmatch.process import CapturedResult, ProcessBuilder, ProcessError

CheckOutcome = tuple[str, str | None]


def _decode(data: bytes, stream: str) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise OutputEncodingError(stream) from e


def _lossy(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _match_std(
    expected: str,
    actual: bytes,
    stream: str,
    kind: MatchKind,
    *,
    other: bytes | None = None,
    count: int | None = None,
) -> str | None:
    return match_lines(
        _decode(actual, stream),
        expected,
        kind,
        count=count,
        other=None if other is None else _lossy(other),
    )


def _stream_contains(expected: str, actual: bytes, stream: str) -> bool:
    # A stream that is not valid UTF-8 counts as not containing the lines
    try:
        return _match_std(expected, actual, stream, MatchKind.PARTIAL) is None
    except OutputEncodingError:
        return False


class Expectations:
    """The full set of expectations for one process run.

    An instance with nothing declared accepts any output. Use :func:`execs`
    for the usual starting point, which also expects a zero exit code.
    """

    def __init__(self) -> None:
        self.expect_stdout: str | None = None
        self.expect_stderr: str | None = None
        self.expect_exit_code: int | None = None
        self.expect_stdout_contains: list[str] = []
        self.expect_stderr_contains: list[str] = []
        self.expect_either_contains: list[str] = []
        self.expect_stdout_contains_n: list[tuple[str, int]] = []
        self.expect_stdout_not_contains: list[str] = []
        self.expect_stderr_not_contains: list[str] = []
        self.expect_stderr_unordered: list[str] = []
        self.expect_neither_contains: list[str] = []
        self.expect_json: list[Any] | None = None

    # --- builder -----------------------------------------------------------

    def with_stdout(self, expected: Any) -> Expectations:
        """Stdout must equal the given lines."""
        self.expect_stdout = str(expected)
        return self

    def with_stderr(self, expected: Any) -> Expectations:
        """Stderr must equal the given lines."""
        self.expect_stderr = str(expected)
        return self

    def with_status(self, expected: int) -> Expectations:
        self.expect_exit_code = expected
        return self

    def with_any_status(self) -> Expectations:
        """Drop the exit code check."""
        self.expect_exit_code = None
        return self

    def with_stdout_contains(self, expected: Any) -> Expectations:
        """Stdout must contain the given lines as a contiguous run."""
        self.expect_stdout_contains.append(str(expected))
        return self

    def with_stderr_contains(self, expected: Any) -> Expectations:
        """Stderr must contain the given lines as a contiguous run."""
        self.expect_stderr_contains.append(str(expected))
        return self

    def with_either_contains(self, expected: Any) -> Expectations:
        """Stdout or stderr must contain the given lines as a contiguous run."""
        self.expect_either_contains.append(str(expected))
        return self

    def with_stdout_contains_n(self, expected: Any, number: int) -> Expectations:
        """Stdout must contain the given run of lines exactly ``number`` times.

        Overlapping occurrences are counted separately.
        """
        self.expect_stdout_contains_n.append((str(expected), number))
        return self

    def with_stdout_does_not_contain(self, expected: Any) -> Expectations:
        self.expect_stdout_not_contains.append(str(expected))
        return self

    def with_stderr_does_not_contain(self, expected: Any) -> Expectations:
        """Stderr must not contain the given lines as a contiguous run.

        There is no end of things that won't appear, and a typo makes this
        pass without checking anything. Prefer writing the test so it fails
        first.
        """
        self.expect_stderr_not_contains.append(str(expected))
        return self

    def with_stderr_unordered(self, expected: Any) -> Expectations:
        """Stderr must consist of exactly the given lines, in any order.

        Each expected line consumes the first remaining output line it
        matches; there is no longest-match search, so overlapping wildcard
        patterns can pair up the wrong way.
        """
        self.expect_stderr_unordered.append(str(expected))
        return self

    def with_neither_contains(self, expected: Any) -> Expectations:
        """Neither stdout nor stderr may contain the given run of lines."""
        self.expect_neither_contains.append(str(expected))
        return self

    def with_json(self, expected: str) -> Expectations:
        """Stdout's JSON lines must match the given documents, in order.

        Documents are separated by a blank line. Array order is ignored,
        strings take ``[..]`` wildcards and ``"{...}"`` matches any value.
        Raises ValueError if a document is not valid JSON.
        """
        self.expect_json = parse_json_fragments(expected)
        return self

    # --- evaluation --------------------------------------------------------

    def __repr__(self) -> str:
        declared = []
        if self.expect_exit_code is not None:
            declared.append(f"status={self.expect_exit_code}")
        for name in ("stdout", "stderr"):
            if getattr(self, f"expect_{name}") is not None:
                declared.append(name)
        for name in (
            "stdout_contains",
            "stderr_contains",
            "either_contains",
            "stdout_contains_n",
            "stdout_not_contains",
            "stderr_not_contains",
            "stderr_unordered",
            "neither_contains",
        ):
            entries = getattr(self, f"expect_{name}")
            if entries:
                declared.append(f"{name}={len(entries)}")
        if self.expect_json is not None:
            declared.append(f"json={len(self.expect_json)}")
        return f"Expectations({', '.join(declared)})"

    def _match_status(self, result: CapturedResult) -> str | None:
        if result.exit_code == self.expect_exit_code:
            return None
        status = (
            f"exit code {result.exit_code}"
            if result.exit_code is not None
            else "no exit code"
        )
        return (
            f"exited with {status}, expected {self.expect_exit_code}\n"
            f"--- stdout\n{_lossy(result.stdout)}\n"
            f"--- stderr\n{_lossy(result.stderr)}"
        )

    def _checks(self, result: CapturedResult) -> Iterator[CheckOutcome]:
        """Yield ``(check name, failure or None)`` lazily, in evaluation order."""
        out, err = result.stdout, result.stderr

        if self.expect_exit_code is not None:
            yield "status", self._match_status(result)
        if self.expect_stdout is not None:
            yield "stdout", _match_std(
                self.expect_stdout, out, "stdout", MatchKind.EXACT, other=err
            )
        if self.expect_stderr is not None:
            yield "stderr", _match_std(
                self.expect_stderr, err, "stderr", MatchKind.EXACT, other=out
            )
        for expect in self.expect_stdout_contains:
            yield "stdout_contains", _match_std(
                expect, out, "stdout", MatchKind.PARTIAL, other=err
            )
        for expect in self.expect_stderr_contains:
            yield "stderr_contains", _match_std(
                expect, err, "stderr", MatchKind.PARTIAL, other=out
            )
        for expect, number in self.expect_stdout_contains_n:
            yield "stdout_contains_n", _match_std(
                expect, out, "stdout", MatchKind.PARTIAL_N, other=err, count=number
            )
        for expect in self.expect_stdout_not_contains:
            yield "stdout_not_contains", _match_std(
                expect, out, "stdout", MatchKind.NOT_PRESENT, other=err
            )
        for expect in self.expect_stderr_not_contains:
            yield "stderr_not_contains", _match_std(
                expect, err, "stderr", MatchKind.NOT_PRESENT, other=out
            )
        for expect in self.expect_stderr_unordered:
            yield "stderr_unordered", _match_std(
                expect, err, "stderr", MatchKind.UNORDERED, other=out
            )
        for expect in self.expect_neither_contains:
            yield "neither_contains", _match_std(
                expect, out, "stdout", MatchKind.NOT_PRESENT
            )
            yield "neither_contains", _match_std(
                expect, err, "stderr", MatchKind.NOT_PRESENT
            )
        for expect in self.expect_either_contains:
            found = any(
                _stream_contains(expect, data, stream)
                for data, stream in ((out, "stdout"), (err, "stderr"))
            )
            failure = None
            if not found:
                failure = (
                    f"expected to find:\n{expect}\n\n"
                    "did not find in either output."
                )
            yield "either_contains", failure
        if self.expect_json is not None:
            yield "json", match_json_output(
                self.expect_json, _decode(out, "stdout")
            )

    def evaluate(
        self, result: CapturedResult, logger: logging.Logger | None = None
    ) -> AssertionResult:
        """Check every declared expectation against *result*.

        Stops at the first failing check. A stream that is not valid UTF-8
        fails immediately without any matching being attempted.
        """
        if logger is None:
            logger = logging.getLogger(__name__)

        checked = 0
        try:
            for name, failure in self._checks(result):
                checked += 1
                logger.info(f"Check {name} passed={failure is None}")
                if failure is not None:
                    logger.warning(f"Check {name} failed:\n{failure}")
                    return AssertionResult(name=name, passed=False, message=failure)
        except OutputEncodingError as e:
            logger.warning(str(e))
            return AssertionResult(name="encoding", passed=False, message=str(e))

        return AssertionResult(
            name="expectations",
            passed=True,
            message=f"{checked} check(s) passed",
        )

    def assert_matches(self, result: CapturedResult) -> None:
        """Like :meth:`evaluate`, but raise ExpectationError on failure."""
        verdict = self.evaluate(result)
        if not verdict.passed:
            raise ExpectationError(verdict)

    def matches(
        self,
        process: ProcessBuilder,
        *,
        stream: bool = False,
        logger: logging.Logger | None = None,
    ) -> AssertionResult:
        """Run *process* and evaluate its output.

        A process that exits unsuccessfully still has its captured output
        checked (the expected status may well be non-zero). Only when nothing
        was captured is the run itself reported as the failure.

        ``stream`` echoes output lines to the terminal as they arrive. It is
        meant for local debugging and is refused when the ``CI`` environment
        variable is set.
        """
        if logger is None:
            logger = logging.getLogger(__name__)

        logger.info(f"running {process}")
        try:
            if stream:
                if "CI" in os.environ:
                    raise RuntimeError("streaming output is for local debugging only")
                output = process.exec_with_streaming(
                    lambda line: print(line),
                    lambda line: print(line, file=sys.stderr),
                )
            else:
                output = process.exec_with_output()
        except ProcessError as e:
            if e.output is not None:
                logger.debug(f"{e}; checking captured output")
                return self.evaluate(e.output, logger=logger)
            message = f"could not exec process {process}: {e}"
            cause = e.__cause__
            while cause is not None:
                message += f"\ncaused by: {cause}"
                cause = cause.__cause__
            logger.error(message)
            return AssertionResult(name="exec", passed=False, message=message)

        return self.evaluate(output, logger=logger)

    def assert_process(self, process: ProcessBuilder, *, stream: bool = False) -> None:
        """Like :meth:`matches`, but raise ExpectationError on failure."""
        verdict = self.matches(process, stream=stream)
        if not verdict.passed:
            raise ExpectationError(verdict)


def execs() -> Expectations:
    """Expectations for a process that should exit successfully."""
    return Expectations().with_status(0)
