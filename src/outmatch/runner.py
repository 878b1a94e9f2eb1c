from __future__ import annotations

import importlib.metadata
import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from outmatch.config import CaseConfig, SuiteConfig
from outmatch.toolchain import Toolchain
from outmatch.verbose import close_logger, setup_logger


@dataclass
class CaseResult:
    name: str
    passed: bool
    check: str
    message: str
    duration: float = 0.0
    skipped: bool = False

    @property
    def status(self) -> str:
        if self.skipped:
            return "SKIP"
        return "PASS" if self.passed else "FAIL"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _safe_name(name: str) -> str:
    return re.sub(r"[^\w.-]", "_", name)


class Runner:
    """Runs every case of a suite and checks its output."""

    def __init__(
        self,
        config: SuiteConfig,
        output_dir: Path,
        case_filter: str | None = None,
        verbose: bool = False,
        parallel: int = 1,
        toolchain: Toolchain | None = None,
        suite_name: str = "outmatch",
    ):
        self.config = config
        self.output_dir = output_dir
        self.case_filter = case_filter
        self.verbose = verbose
        self.parallel = parallel
        self.toolchain = toolchain
        self.suite_name = suite_name
        self.interrupted = False
        self.results: list[CaseResult] = []

    def execute(self) -> Path:
        """Run the selected cases. Returns the run directory."""
        cases = self.config.cases
        if self.case_filter:
            cases = [c for c in cases if c.name == self.case_filter]
            if not cases:
                raise ValueError(f"No case named '{self.case_filter}'")

        run_id = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H%M%S")
        run_dir = self.output_dir / run_id
        run_dir.mkdir(parents=True, exist_ok=True)

        logger = setup_logger(
            run_dir / "debug.log", verbose=self.verbose, logger_name="outmatch_main"
        )
        try:
            logger.debug(f"Starting run of {len(cases)} case(s)")
            toolchain = self._resolve_toolchain(cases, logger)
            results = self._run_all(run_dir, cases, toolchain, logger)
            order = {case.name: i for i, case in enumerate(cases)}
            self.results = sorted(results, key=lambda r: order[r.name])
            self._write_results(run_dir, toolchain)
        finally:
            close_logger(logger)

        return run_dir

    def _resolve_toolchain(
        self, cases: list[CaseConfig], logger: logging.Logger
    ) -> Toolchain | None:
        if self.toolchain is not None:
            return self.toolchain
        if self.config.toolchain and any(case.nightly for case in cases):
            return Toolchain.probe(self.config.toolchain, logger=logger)
        return None

    def _run_all(
        self,
        run_dir: Path,
        cases: list[CaseConfig],
        toolchain: Toolchain | None,
        logger: logging.Logger,
    ) -> list[CaseResult]:
        print(f"Running {len(cases)} case(s) with parallelism {self.parallel}...")
        results: list[CaseResult] = []

        with ThreadPoolExecutor(max_workers=self.parallel) as executor:
            future_to_case = {
                executor.submit(self._run_case, run_dir, i, case, toolchain): case
                for i, case in enumerate(cases)
            }
            try:
                for future in as_completed(future_to_case):
                    case = future_to_case[future]
                    try:
                        result = future.result()
                    except Exception as e:
                        print(f"  [{len(results) + 1}/{len(cases)}] ERROR  {case.name}: {e}")
                        logger.error(f"Case '{case.name}' raised: {e}")
                        raise
                    results.append(result)
                    print(
                        f"  [{len(results)}/{len(cases)}] {result.status}  "
                        f"{case.name} ({result.duration:.1f}s)"
                    )
                    logger.debug(f"Case '{case.name}': {result.status} ({result.check})")
            except KeyboardInterrupt:
                self.interrupted = True
                logger.warning(
                    "Run interrupted by user (Ctrl+C). Cancelling pending cases, and saving partial results..."
                )
                cancelled = sum(1 for future in future_to_case if future.cancel())
                logger.info(f"Cancelled {cancelled} pending case(s).")

        return results

    def _run_case(
        self, run_dir: Path, index: int, case: CaseConfig, toolchain: Toolchain | None
    ) -> CaseResult:
        """Run a single case and evaluate its expectations."""
        if case.nightly and (toolchain is None or not toolchain.is_nightly):
            return CaseResult(
                name=case.name,
                passed=True,
                check="nightly",
                message="requires a nightly toolchain",
                skipped=True,
            )

        # Distinct names can share a safe name, the index keeps loggers apart
        log_name = f"{index}_{_safe_name(case.name)}"
        case_logger = setup_logger(
            run_dir / "cases" / f"{log_name}.log",
            verbose=self.verbose,
            logger_name=f"outmatch_case_{log_name}",
        )
        try:
            start = time.monotonic()
            verdict = case.expect.to_expectations().matches(
                case.build_process(), stream=case.stream, logger=case_logger
            )
            duration = time.monotonic() - start
        finally:
            close_logger(case_logger)

        return CaseResult(
            name=case.name,
            passed=verdict.passed,
            check=verdict.name,
            message=verdict.message,
            duration=duration,
        )

    def _write_results(self, run_dir: Path, toolchain: Toolchain | None) -> None:
        """Write junit.xml and meta.yaml to the run directory."""
        from outmatch.reporting.junit import write_junit

        properties = {}
        if toolchain is not None:
            properties["toolchain_host"] = toolchain.host
            properties["toolchain_nightly"] = str(toolchain.is_nightly).lower()

        write_junit(
            run_dir,
            self.suite_name,
            [r.to_dict() for r in self.results],
            properties=properties,
        )

        try:
            outmatch_version = importlib.metadata.version("outmatch")
        except importlib.metadata.PackageNotFoundError:
            outmatch_version = "unknown"

        meta: dict[str, Any] = {
            "run_id": run_dir.name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "suite": self.suite_name,
            "cases": [r.name for r in self.results],
            "passed": sum(1 for r in self.results if r.passed and not r.skipped),
            "failed": sum(1 for r in self.results if not r.passed),
            "skipped": sum(1 for r in self.results if r.skipped),
            "outmatch_version": outmatch_version,
        }
        if toolchain is not None:
            meta["toolchain"] = {"host": toolchain.host, "nightly": toolchain.is_nightly}
        if self.interrupted:
            meta["interrupted"] = True

        (run_dir / "meta.yaml").write_text(yaml.dump(meta, default_flow_style=False))
