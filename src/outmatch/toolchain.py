"""Facts about the compiler toolchain a test suite runs against."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass

_NIGHTLY_MARKERS = ("-nightly", "-dev")


@dataclass(frozen=True)
class Toolchain:
    """Host triple and verbose version string of a toolchain.

    Build one with :meth:`probe` at the start of a run and pass it to
    whatever needs it.
    """

    host: str
    verbose_version: str

    @property
    def is_nightly(self) -> bool:
        return any(marker in self.verbose_version for marker in _NIGHTLY_MARKERS)

    @classmethod
    def from_verbose_version(cls, text: str) -> Toolchain:
        """Parse ``<compiler> -vV`` output, which lists ``host: <triple>``."""
        for line in text.splitlines():
            key, sep, value = line.partition(":")
            if sep and key.strip() == "host":
                return cls(host=value.strip(), verbose_version=text)
        raise ValueError(f"verbose version output has no `host:` line:\n{text}")

    @classmethod
    def probe(cls, program: str = "rustc", logger: logging.Logger | None = None) -> Toolchain:
        """Run ``<program> -vV`` and parse its output.

        Raises RuntimeError if the program cannot be run or fails.
        """
        if logger is None:
            logger = logging.getLogger(__name__)

        logger.info(f"Probing toolchain: {program} -vV")
        try:
            result = subprocess.run(
                [program, "-vV"], capture_output=True, text=True, timeout=30
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise RuntimeError(f"could not probe toolchain `{program}`: {e}") from e

        if result.returncode != 0:
            raise RuntimeError(
                f"`{program} -vV` exited with code {result.returncode}:\n{result.stderr}"
            )

        toolchain = cls.from_verbose_version(result.stdout)
        logger.info(f"Toolchain host={toolchain.host} nightly={toolchain.is_nightly}")
        return toolchain
