import json
import sys
import textwrap

from typer.testing import CliRunner

from outmatch.cli import app

runner = CliRunner()


def _write_suite(tmp_path, body: str):
    path = tmp_path / "suite.yaml"
    path.write_text(textwrap.dedent(body))
    return path


def test_run_missing_suite():
    result = runner.invoke(app, ["run", "nonexistent.yaml"])
    assert result.exit_code != 0


def test_run_invalid_suite(tmp_path):
    path = _write_suite(tmp_path, """\
        cases: []
    """)
    result = runner.invoke(app, ["run", str(path)])
    assert result.exit_code == 1


def test_run_passing_suite(tmp_path):
    script = tmp_path / "hello.py"
    script.write_text("print('hi!')\n")
    path = _write_suite(tmp_path, f"""\
        cases:
          - name: hello
            command: {sys.executable} {script}
            expect:
              stdout: "hi!"
    """)
    result = runner.invoke(
        app, ["run", str(path), "--output-dir", str(tmp_path / "runs")]
    )
    assert result.exit_code == 0, result.output
    assert "Run complete:" in result.output
    assert "1 passed, 0 failed, 0 skipped" in result.output


def test_run_failing_suite_prints_diagnostic(tmp_path):
    script = tmp_path / "hello.py"
    script.write_text("print('hi!')\n")
    path = _write_suite(tmp_path, f"""\
        cases:
          - name: hello
            command: {sys.executable} {script}
            expect:
              stdout_contains: ["bye!"]
    """)
    result = runner.invoke(
        app, ["run", str(path), "--output-dir", str(tmp_path / "runs")]
    )
    assert result.exit_code == 1
    assert "--- hello failed (stdout_contains) ---" in result.output
    assert "expected to find:\nbye!" in result.output
    assert "0 passed, 1 failed, 0 skipped" in result.output


def test_run_unknown_case(tmp_path):
    path = _write_suite(tmp_path, """\
        cases:
          - name: a
            command: ls
    """)
    result = runner.invoke(
        app,
        ["run", str(path), "--case", "b", "--output-dir", str(tmp_path / "runs")],
    )
    assert result.exit_code == 1


def test_match_ok(tmp_path):
    stdout = tmp_path / "out.txt"
    stderr = tmp_path / "err.txt"
    stdout.write_text("hi!\n")
    stderr.write_text("   Compiling foo v0.0.1\n")
    result = runner.invoke(
        app,
        [
            "match",
            "--stdout-file", str(stdout),
            "--stderr-file", str(stderr),
            "--exit-code", "0",
            "--status", "0",
            "--expect-stdout", "hi!",
            "--stderr-contains", "[COMPILING] foo [..]",
        ],
    )
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "ok"


def test_match_failure_prints_check(tmp_path):
    stdout = tmp_path / "out.txt"
    stdout.write_text("hi!\n")
    result = runner.invoke(
        app,
        ["match", "--stdout-file", str(stdout), "--stdout-not-contains", "hi[..]"],
    )
    assert result.exit_code == 1
    assert "stdout_not_contains failed:" in result.output


def test_match_json(tmp_path):
    stdout = tmp_path / "out.txt"
    stdout.write_text(json.dumps({"deps": ["b", "a"], "id": 7}) + "\n")
    expected = tmp_path / "expected.json"
    expected.write_text('{"deps": ["a", "b"], "id": "{...}"}\n')
    result = runner.invoke(
        app, ["match", "--stdout-file", str(stdout), "--json", str(expected)]
    )
    assert result.exit_code == 0, result.output


def test_match_missing_file():
    result = runner.invoke(app, ["match", "--stdout-file", "/nonexistent/out.txt"])
    assert result.exit_code == 1


def test_lines_match_command():
    result = runner.invoke(app, ["lines-match", "a[..]c", "abc"])
    assert result.exit_code == 0
    assert result.output.strip() == "true"
    result = runner.invoke(app, ["lines-match", "a[..]c", "abcd"])
    assert result.exit_code == 1
    assert result.output.strip() == "false"


def test_schema_generate_command_writes_files(tmp_path):
    out = tmp_path / "schema.json"
    doc = tmp_path / "schema.md"
    result = runner.invoke(
        app, ["schema", "generate", "--out", str(out), "--doc", str(doc)]
    )
    assert result.exit_code == 0
    assert out.exists()
    assert doc.exists()
