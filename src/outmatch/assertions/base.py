"""Base data structures for the assertion system."""

from dataclasses import dataclass


@dataclass
class AssertionResult:
    """Result of evaluating a set of expectations against one process run.

    Attributes:
        name: The check that decided the verdict (e.g. "stdout_contains"),
            or "expectations" when every check passed.
        passed: Whether all declared expectations held.
        message: Human-readable detail; on failure this is the diagnostic
            showing expected against actual output.
    """

    name: str
    passed: bool
    message: str


class ExpectationError(AssertionError):
    """Raised by ``Expectations.assert_matches`` when output does not match."""

    def __init__(self, result: AssertionResult):
        super().__init__(f"{result.name}: {result.message}")
        self.result = result


class OutputEncodingError(ValueError):
    """A captured stream is not valid UTF-8."""

    def __init__(self, stream: str):
        super().__init__(f"{stream} was not utf8 encoded")
        self.stream = stream
