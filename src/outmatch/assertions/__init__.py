"""Assertion system for checking the output of finished processes."""

from outmatch.assertions.base import AssertionResult, ExpectationError
from outmatch.assertions.expectations import Expectations, execs

__all__ = ["AssertionResult", "ExpectationError", "Expectations", "execs"]
