from __future__ import annotations

from pathlib import Path

import yaml
from expandvars import expandvars
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from outmatch.assertions.expectations import Expectations
from outmatch.json_match import parse_json_fragments
from outmatch.process import ProcessBuilder, split_and_add_args


class ContainsNSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")
    pattern: str
    count: int = Field(ge=0)


class ExpectConfig(BaseModel):
    """Expectations for one case, mirroring the ``Expectations`` builder."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)
    status: int | None = 0
    stdout: str | None = None
    stderr: str | None = None
    stdout_contains: list[str] = []
    stderr_contains: list[str] = []
    either_contains: list[str] = []
    stdout_contains_n: list[ContainsNSpec] = []
    stdout_not_contains: list[str] = []
    stderr_not_contains: list[str] = []
    stderr_unordered: list[str] = []
    neither_contains: list[str] = []
    json_documents: str | None = Field(default=None, alias="json")

    @field_validator("json_documents")
    @classmethod
    def json_must_parse(cls, v: str | None) -> str | None:
        if v is not None:
            parse_json_fragments(v)
        return v

    def to_expectations(self) -> Expectations:
        expectations = Expectations()
        if self.status is not None:
            expectations.with_status(self.status)
        if self.stdout is not None:
            expectations.with_stdout(self.stdout)
        if self.stderr is not None:
            expectations.with_stderr(self.stderr)
        for pattern in self.stdout_contains:
            expectations.with_stdout_contains(pattern)
        for pattern in self.stderr_contains:
            expectations.with_stderr_contains(pattern)
        for pattern in self.either_contains:
            expectations.with_either_contains(pattern)
        for entry in self.stdout_contains_n:
            expectations.with_stdout_contains_n(entry.pattern, entry.count)
        for pattern in self.stdout_not_contains:
            expectations.with_stdout_does_not_contain(pattern)
        for pattern in self.stderr_not_contains:
            expectations.with_stderr_does_not_contain(pattern)
        for pattern in self.stderr_unordered:
            expectations.with_stderr_unordered(pattern)
        for pattern in self.neither_contains:
            expectations.with_neither_contains(pattern)
        if self.json_documents is not None:
            expectations.with_json(self.json_documents)
        return expectations


class CaseConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: str
    command: str
    cwd: str = "."
    env: dict[str, str] = {}
    env_remove: list[str] = []
    timeout: int | None = 60
    nightly: bool = False
    stream: bool = False
    expect: ExpectConfig = ExpectConfig()

    @field_validator("command")
    @classmethod
    def command_must_split(cls, v: str) -> str:
        if not v.split():
            raise ValueError("command must not be empty")
        split_and_add_args(ProcessBuilder("check"), v)
        return v

    @model_validator(mode="after")
    def validate_env_variables(self) -> "CaseConfig":
        """Validate that all ${VAR} references without defaults are set.

        Raises ValueError listing every missing variable.
        """
        missing: list[str] = []
        for key, value in self.env.items():
            try:
                expandvars(value, nounset=True)
            except Exception:
                # Variable is missing and has no default
                missing.append(f"  {key}={value}")

        if missing:
            details = "\n".join(missing)
            raise ValueError(
                f"Case '{self.name}' has missing environment variables:\n{details}"
            )

        return self

    def expanded_env(self) -> dict[str, str]:
        return {key: expandvars(value, nounset=True) for key, value in self.env.items()}

    def build_process(self) -> ProcessBuilder:
        """The process this case runs, with its environment applied."""
        program, *args = self.command.split()
        builder = ProcessBuilder(program).cwd(self.cwd).timeout(self.timeout)
        split_and_add_args(builder, " ".join(args))
        for key in self.env_remove:
            builder.env_remove(key)
        for key, value in self.expanded_env().items():
            builder.env(key, value)
        return builder


class SuiteConfig(BaseModel):
    toolchain: str | None = None
    cases: list[CaseConfig]

    @field_validator("cases")
    @classmethod
    def cases_must_be_unique(cls, v: list[CaseConfig]) -> list[CaseConfig]:
        if not v:
            raise ValueError("cases must not be empty")
        seen: set[str] = set()
        for case in v:
            if case.name in seen:
                raise ValueError(f"Duplicate case name '{case.name}'")
            seen.add(case.name)
        return v


def load_suite(path: Path) -> SuiteConfig:
    """Load and validate a suite config from a YAML file."""
    suite_dir = path.parent.resolve()

    with open(path) as f:
        raw = yaml.safe_load(f)

    suite = SuiteConfig(**raw)

    # Resolve relative cwd paths relative to suite file location
    for case in suite.cases:
        cwd_path = Path(case.cwd)
        if not cwd_path.is_absolute():
            case.cwd = str((suite_dir / cwd_path).resolve())

    return suite
