"""Tests for running processes and capturing their output."""

import sys

import pytest

from outmatch import process as process_module
from outmatch.process import (
    CapturedResult,
    ProcessBuilder,
    ProcessError,
    process,
    split_and_add_args,
)


def _python(code: str) -> ProcessBuilder:
    return ProcessBuilder(sys.executable).arg("-c").arg(code)


def test_builder_chains_and_renders():
    builder = ProcessBuilder("cargo").arg("build").args(["--release", "-v"])
    assert builder.command() == ["cargo", "build", "--release", "-v"]
    assert str(builder) == "`cargo build --release -v`"


def test_process_sets_cwd(tmp_path):
    assert process("ls", cwd=tmp_path).get_cwd() == tmp_path
    assert process("ls").get_cwd() is None


def test_env_overrides_and_removal(monkeypatch):
    monkeypatch.setenv("OUTMATCH_KEEP", "1")
    monkeypatch.setenv("OUTMATCH_DROP", "1")
    builder = ProcessBuilder("x").env("OUTMATCH_NEW", "v").env_remove("OUTMATCH_DROP")
    assert builder.get_env("OUTMATCH_NEW") == "v"
    assert builder.get_env("OUTMATCH_DROP") is None
    assert builder.get_env("OUTMATCH_KEEP") == "1"
    env = builder.build_env()
    assert env["OUTMATCH_NEW"] == "v"
    assert "OUTMATCH_DROP" not in env


def test_exec_with_output_captures_both_streams():
    result = _python(
        "import sys; print('out'); sys.stderr.write('err\\n')"
    ).exec_with_output()
    assert result == CapturedResult(0, b"out\n", b"err\n")


def test_exec_passes_environment(monkeypatch):
    monkeypatch.delenv("OUTMATCH_VALUE", raising=False)
    builder = _python("import os; print(os.environ['OUTMATCH_VALUE'])")
    result = builder.env("OUTMATCH_VALUE", "hello").exec_with_output()
    assert result.stdout.strip() == b"hello"


def test_exec_runs_in_cwd(tmp_path):
    (tmp_path / "marker.txt").write_text("here")
    result = _python("print(open('marker.txt').read())").cwd(tmp_path).exec_with_output()
    assert result.stdout.strip() == b"here"


def test_nonzero_exit_raises_with_output():
    with pytest.raises(ProcessError) as exc_info:
        _python("import sys; print('partial'); sys.exit(4)").exec_with_output()
    err = exc_info.value
    assert "didn't exit successfully" in str(err)
    assert "exit code: 4" in str(err)
    assert err.output is not None
    assert err.output.exit_code == 4
    assert err.output.stdout.strip() == b"partial"


def test_missing_program_raises_without_output(tmp_path):
    with pytest.raises(ProcessError) as exc_info:
        ProcessBuilder(tmp_path / "missing").exec_with_output()
    assert exc_info.value.output is None
    assert isinstance(exc_info.value.__cause__, OSError)


def test_timeout_raises_with_partial_output():
    builder = _python("import time; time.sleep(10)").timeout(0.5)
    with pytest.raises(ProcessError, match="timed out") as exc_info:
        builder.exec_with_output()
    assert exc_info.value.output is not None
    assert exc_info.value.output.exit_code is None


def test_streaming_reports_each_line():
    seen_out: list[str] = []
    seen_err: list[str] = []
    result = _python(
        "import sys; print('a'); print('b'); sys.stderr.write('c\\n')"
    ).exec_with_streaming(seen_out.append, seen_err.append)
    assert seen_out == ["a", "b"]
    assert seen_err == ["c"]
    assert result.exit_code == 0
    assert result.stdout.replace(b"\r", b"") == b"a\nb\n"


def test_streaming_nonzero_exit_raises_with_output():
    with pytest.raises(ProcessError) as exc_info:
        _python("import sys; print('x'); sys.exit(2)").exec_with_streaming(
            lambda line: None, lambda line: None
        )
    assert exc_info.value.output.exit_code == 2


def test_streaming_missing_program(tmp_path):
    with pytest.raises(ProcessError) as exc_info:
        ProcessBuilder(tmp_path / "missing").exec_with_streaming(
            lambda line: None, lambda line: None
        )
    assert exc_info.value.output is None


def test_split_and_add_args():
    builder = split_and_add_args(ProcessBuilder("cargo"), "  build  --lib ")
    assert builder.command() == ["cargo", "build", "--lib"]


def test_split_and_add_args_rejects_quotes():
    with pytest.raises(ValueError, match="not supported"):
        split_and_add_args(ProcessBuilder("cargo"), 'run -- "two words"')


def test_streaming_handles_lines_longer_than_default_buffer():
    seen: list[str] = []
    result = _python("print('x' * 200000)").exec_with_streaming(
        seen.append, lambda line: None
    )
    assert seen == ["x" * 200000]
    assert len(result.stdout.rstrip()) == 200000


def test_streaming_line_over_limit_raises_process_error(monkeypatch):
    monkeypatch.setattr(process_module, "STREAM_LINE_LIMIT", 1024)
    with pytest.raises(ProcessError, match="longer than 1024 bytes") as exc_info:
        _python("print('x' * 5000)").exec_with_streaming(
            lambda line: None, lambda line: None
        )
    assert exc_info.value.output is not None
    assert exc_info.value.output.exit_code is None
