from __future__ import annotations

from pathlib import Path

import typer

app = typer.Typer(name="outmatch", help="Check process output against expected patterns")
schema_app = typer.Typer(name="schema", help="Generate schema tooling for suite files")
app.add_typer(schema_app, name="schema")


@app.command()
def run(
    suite: str = typer.Argument(help="Path to suite YAML file"),
    case: str | None = typer.Option(None, help="Run only this case"),
    output_dir: str = typer.Option("runs", help="Output directory for run results"),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output to terminal"
    ),
    parallel: int = typer.Option(
        1, "--parallel", "-p", min=1, max=100, help="Number of cases to run at once"
    ),
):
    """Run every case of a suite and check its output."""
    from pydantic import ValidationError

    from outmatch.config import load_suite
    from outmatch.reporting.junit import read_junit_summary
    from outmatch.runner import Runner

    suite_path = Path(suite)
    if not suite_path.exists():
        typer.echo(f"Error: suite file not found: {suite}", err=True)
        raise typer.Exit(1)

    try:
        suite_config = load_suite(suite_path)
    except ValidationError as e:
        typer.echo(f"Error: invalid suite {suite}:\n{e}", err=True)
        raise typer.Exit(1)

    runner = Runner(
        config=suite_config,
        output_dir=Path(output_dir),
        case_filter=case,
        verbose=verbose,
        parallel=parallel,
        suite_name=suite_path.stem,
    )

    try:
        run_dir = runner.execute()
    except (ValueError, RuntimeError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    for result in runner.results:
        if not result.passed:
            typer.echo(f"\n--- {result.name} failed ({result.check}) ---")
            typer.echo(result.message)

    if runner.interrupted:
        typer.echo(f"Partial run saved: {run_dir}")
    else:
        typer.echo(f"Run complete: {run_dir}")
    if not verbose:
        typer.echo(f"Debug log: {run_dir / 'debug.log'}")

    # Exit with non-zero if any case failed or run was interrupted
    if runner.interrupted:
        raise typer.Exit(1)

    tests, failures, skipped = read_junit_summary(run_dir / "junit.xml")
    typer.echo(f"{tests - failures - skipped} passed, {failures} failed, {skipped} skipped")
    if failures:
        raise typer.Exit(1)


def _read_bytes(path: str | None) -> bytes:
    return Path(path).read_bytes() if path is not None else b""


@app.command()
def match(
    stdout_file: str | None = typer.Option(None, help="File holding captured stdout"),
    stderr_file: str | None = typer.Option(None, help="File holding captured stderr"),
    exit_code: int | None = typer.Option(None, help="Captured exit code"),
    status: int | None = typer.Option(None, help="Expected exit code"),
    expect_stdout: str | None = typer.Option(None, help="Expected stdout (exact)"),
    expect_stderr: str | None = typer.Option(None, help="Expected stderr (exact)"),
    stdout_contains: list[str] = typer.Option([], help="Lines stdout must contain"),
    stderr_contains: list[str] = typer.Option([], help="Lines stderr must contain"),
    stdout_not_contains: list[str] = typer.Option(
        [], help="Lines stdout must not contain"
    ),
    stderr_not_contains: list[str] = typer.Option(
        [], help="Lines stderr must not contain"
    ),
    stderr_unordered: str | None = typer.Option(
        None, help="Lines stderr must consist of, in any order"
    ),
    json_file: str | None = typer.Option(
        None, "--json", help="File of blank-line separated expected JSON documents"
    ),
):
    """Check previously captured output against expectations."""
    from outmatch.assertions import Expectations
    from outmatch.process import CapturedResult

    for path in (stdout_file, stderr_file, json_file):
        if path is not None and not Path(path).exists():
            typer.echo(f"Error: file not found: {path}", err=True)
            raise typer.Exit(1)

    expectations = Expectations()
    if status is not None:
        expectations.with_status(status)
    if expect_stdout is not None:
        expectations.with_stdout(expect_stdout)
    if expect_stderr is not None:
        expectations.with_stderr(expect_stderr)
    for pattern in stdout_contains:
        expectations.with_stdout_contains(pattern)
    for pattern in stderr_contains:
        expectations.with_stderr_contains(pattern)
    for pattern in stdout_not_contains:
        expectations.with_stdout_does_not_contain(pattern)
    for pattern in stderr_not_contains:
        expectations.with_stderr_does_not_contain(pattern)
    if stderr_unordered is not None:
        expectations.with_stderr_unordered(stderr_unordered)
    if json_file is not None:
        try:
            expectations.with_json(Path(json_file).read_text())
        except ValueError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)

    captured = CapturedResult(
        exit_code=exit_code,
        stdout=_read_bytes(stdout_file),
        stderr=_read_bytes(stderr_file),
    )
    verdict = expectations.evaluate(captured)
    if verdict.passed:
        typer.echo("ok")
        return

    typer.echo(f"{verdict.name} failed:\n{verdict.message}")
    raise typer.Exit(1)


@app.command("lines-match")
def lines_match_command(
    pattern: str = typer.Argument(help="Expected line pattern"),
    actual: str = typer.Argument(help="Actual line"),
):
    """Print whether a single line matches a pattern."""
    from outmatch.matching import lines_match

    matched = lines_match(pattern, actual)
    typer.echo("true" if matched else "false")
    if not matched:
        raise typer.Exit(1)


@schema_app.command("generate")
def schema_generate(
    out: str = typer.Option(
        "schemas/outmatch.schema.json", help="Output path for JSON Schema"
    ),
    doc: str = typer.Option("docs/schema.md", help="Output path for schema docs"),
):
    """Generate JSON Schema and docs for the suite YAML format."""
    from outmatch.schema import write_json_schema, write_schema_doc

    out_path = Path(out)
    doc_path = Path(doc)
    write_json_schema(out_path)
    write_schema_doc(doc_path)
    typer.echo(f"Wrote schema: {out_path}")
    typer.echo(f"Wrote docs: {doc_path}")
