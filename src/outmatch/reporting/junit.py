from __future__ import annotations

from pathlib import Path
from typing import Any

from junitparser import Failure, JUnitXml, Skipped, TestCase, TestSuite


def write_junit(
    run_dir: Path,
    suite_name: str,
    results: list[dict[str, Any]],
    properties: dict[str, str] | None = None,
) -> Path:
    """Write junit.xml with one test case per suite case, return path."""
    xml = JUnitXml()
    suite = TestSuite(suite_name)

    for key, value in (properties or {}).items():
        suite.add_property(key, value)

    for result in results:
        case = TestCase(result["name"])
        case.classname = suite_name
        if result.get("skipped"):
            case.result = Skipped(result.get("message", ""))
        elif not result.get("passed", True):
            failure = Failure(result.get("check", ""), type_=result.get("check"))
            failure.text = result.get("message", "")
            case.result = failure
        case.time = float(result.get("duration") or 0.0)
        suite.add_testcase(case)

    # Set time after add_testcase (add_testcase resets it via update_statistics)
    suite.time = sum(float(r.get("duration") or 0.0) for r in results)

    xml.append(suite)

    junit_path = run_dir / "junit.xml"
    xml.write(str(junit_path), pretty=True)
    return junit_path


def read_junit_summary(junit_path: Path) -> tuple[int, int, int]:
    """Return (tests, failures, skipped) totals from a junit.xml file."""
    xml = JUnitXml.fromfile(str(junit_path))
    tests = failures = skipped = 0
    for suite in xml:
        tests += suite.tests
        failures += suite.failures + suite.errors
        skipped += suite.skipped
    return tests, failures, skipped
