"""Running the process under test and capturing what it printed."""

from __future__ import annotations

import asyncio
import gc
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

LineCallback = Callable[[str], None]

# Longest single output line streaming can read; JSON lines get large
STREAM_LINE_LIMIT = 16 * 1024 * 1024


@dataclass(frozen=True)
class CapturedResult:
    """Exit code and raw output of a finished process.

    ``exit_code`` is None when the process did not exit normally (for
    example it was killed by a signal or timed out).
    """

    exit_code: int | None
    stdout: bytes = b""
    stderr: bytes = b""


class ProcessError(Exception):
    """The process could not be run, or did not exit successfully.

    ``output`` holds whatever was captured before the failure, if anything.
    """

    def __init__(self, message: str, output: CapturedResult | None = None):
        super().__init__(message)
        self.output = output


def _exit_code(returncode: int) -> int | None:
    # Negative return codes are signals on POSIX
    return returncode if returncode >= 0 else None


class ProcessBuilder:
    """Incrementally describes a command to run.

    Every setter returns the builder so calls can be chained::

        ProcessBuilder("cargo").arg("build").cwd(root).env("CARGO_INCREMENTAL", "0")
    """

    def __init__(self, program: str | Path):
        self.program = str(program)
        self._args: list[str] = []
        self._cwd: Path | None = None
        self._env: dict[str, str | None] = {}
        self._timeout: float | None = None

    def arg(self, value: str | Path) -> ProcessBuilder:
        self._args.append(str(value))
        return self

    def args(self, values: Iterable[str | Path]) -> ProcessBuilder:
        for value in values:
            self.arg(value)
        return self

    def cwd(self, path: str | Path) -> ProcessBuilder:
        self._cwd = Path(path)
        return self

    def env(self, key: str, value: str) -> ProcessBuilder:
        self._env[key] = str(value)
        return self

    def env_remove(self, key: str) -> ProcessBuilder:
        self._env[key] = None
        return self

    def timeout(self, seconds: float | None) -> ProcessBuilder:
        self._timeout = seconds
        return self

    def get_cwd(self) -> Path | None:
        return self._cwd

    def get_env(self, key: str) -> str | None:
        """Value *key* will have in the child, after overrides and removals."""
        if key in self._env:
            return self._env[key]
        return os.environ.get(key)

    def command(self) -> list[str]:
        return [self.program, *self._args]

    def build_env(self) -> dict[str, str]:
        env = dict(os.environ)
        for key, value in self._env.items():
            if value is None:
                env.pop(key, None)
            else:
                env[key] = value
        return env

    def __str__(self) -> str:
        return "`" + " ".join(self.command()) + "`"

    def _finish(self, returncode: int, stdout: bytes, stderr: bytes) -> CapturedResult:
        result = CapturedResult(_exit_code(returncode), stdout, stderr)
        if returncode != 0:
            status = (
                f"exit code: {returncode}"
                if returncode >= 0
                else f"signal: {-returncode}"
            )
            raise ProcessError(
                f"process didn't exit successfully: {self} ({status})", result
            )
        return result

    def exec_with_output(self) -> CapturedResult:
        """Run to completion and capture stdout and stderr.

        Raises ProcessError when the process cannot be started, times out, or
        exits unsuccessfully; in the latter two cases the error carries the
        captured output.
        """
        try:
            completed = subprocess.run(
                self.command(),
                cwd=self._cwd,
                env=self.build_env(),
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            partial = CapturedResult(None, e.stdout or b"", e.stderr or b"")
            raise ProcessError(
                f"process {self} timed out after {self._timeout}s", partial
            ) from e
        except OSError as e:
            raise ProcessError(f"could not execute process {self}") from e

        return self._finish(completed.returncode, completed.stdout, completed.stderr)

    def exec_with_streaming(
        self,
        on_stdout: LineCallback,
        on_stderr: LineCallback,
    ) -> CapturedResult:
        """Run to completion, handing each output line to a callback as it
        arrives while still capturing everything.

        Error handling is the same as :meth:`exec_with_output`.
        """
        asyncio_logger = logging.getLogger("asyncio")
        original_level = asyncio_logger.level
        asyncio_logger.setLevel(logging.CRITICAL)
        try:
            returncode, stdout, stderr, timed_out = asyncio.run(
                self._stream(on_stdout, on_stderr)
            )
            # Collect subprocess transports while asyncio is still quiet
            gc.collect()
        except OSError as e:
            raise ProcessError(f"could not execute process {self}") from e
        finally:
            asyncio_logger.setLevel(original_level)

        if timed_out:
            raise ProcessError(
                f"process {self} timed out after {self._timeout}s",
                CapturedResult(None, stdout, stderr),
            )
        return self._finish(returncode, stdout, stderr)

    async def _stream(
        self, on_stdout: LineCallback, on_stderr: LineCallback
    ) -> tuple[int, bytes, bytes, bool]:
        proc = await asyncio.create_subprocess_exec(
            *self.command(),
            cwd=self._cwd,
            env=self.build_env(),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=STREAM_LINE_LIMIT,
        )

        stdout_chunks: list[bytes] = []
        stderr_chunks: list[bytes] = []

        async def read_stream(stream, chunks, callback):
            while True:
                line = await stream.readline()
                if not line:
                    break
                chunks.append(line)
                callback(line.decode("utf-8", errors="replace").rstrip("\r\n"))

        timed_out = False
        try:
            await asyncio.wait_for(
                asyncio.gather(
                    read_stream(proc.stdout, stdout_chunks, on_stdout),
                    read_stream(proc.stderr, stderr_chunks, on_stderr),
                    proc.wait(),
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            timed_out = True
            proc.kill()
            await proc.wait()
        except ValueError as e:
            # readline gives up on a line longer than the stream limit
            if proc.returncode is None:
                proc.kill()
            await proc.wait()
            raise ProcessError(
                f"process {self} printed a line longer than {STREAM_LINE_LIMIT} bytes",
                CapturedResult(None, b"".join(stdout_chunks), b"".join(stderr_chunks)),
            ) from e

        returncode = proc.returncode
        assert returncode is not None
        return returncode, b"".join(stdout_chunks), b"".join(stderr_chunks), timed_out


def process(program: str | Path, cwd: str | Path | None = None) -> ProcessBuilder:
    """A builder for *program*, optionally rooted at *cwd*."""
    builder = ProcessBuilder(program)
    if cwd is not None:
        builder.cwd(cwd)
    return builder


def split_and_add_args(builder: ProcessBuilder, text: str) -> ProcessBuilder:
    """Add whitespace separated arguments from *text*.

    Quoting is not understood; arguments containing quotes are rejected.
    """
    for arg in text.split():
        if '"' in arg or "'" in arg:
            raise ValueError("shell-style argument parsing is not supported")
        builder.arg(arg)
    return builder
