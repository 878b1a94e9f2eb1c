"""Assertions on the exit code and output of external processes."""

from outmatch.assertions import AssertionResult, ExpectationError, Expectations, execs
from outmatch.json_match import find_mismatch
from outmatch.matching import lines_match
from outmatch.process import CapturedResult, ProcessBuilder, ProcessError

__all__ = [
    "AssertionResult",
    "CapturedResult",
    "ExpectationError",
    "Expectations",
    "ProcessBuilder",
    "ProcessError",
    "execs",
    "find_mismatch",
    "lines_match",
]
