"""Generate JSON Schema and docs for the suite YAML format."""

from __future__ import annotations

import json
from pathlib import Path

from outmatch.config import SuiteConfig
from outmatch.macros import macro_table

SCHEMA_DIALECT = "https://json-schema.org/draft/2020-12/schema"

# Models in the order the docs describe them, outermost first
_DOC_SECTIONS = (
    ("Case", "CaseConfig"),
    ("Expect", "ExpectConfig"),
    ("Occurrence count", "ContainsNSpec"),
)


def generate_json_schema() -> dict:
    """JSON Schema for suite files, usable by YAML language servers."""
    schema = SuiteConfig.model_json_schema()
    return {"$schema": SCHEMA_DIALECT, **schema, "title": "outmatch suite"}


def write_json_schema(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(generate_json_schema(), indent=2) + "\n")


def _field_type(prop: dict) -> str:
    if "$ref" in prop:
        return prop["$ref"].removeprefix("#/$defs/")
    if "allOf" in prop:
        return " & ".join(_field_type(p) for p in prop["allOf"])
    if "anyOf" in prop:
        return " | ".join(_field_type(p) for p in prop["anyOf"])
    if prop.get("type") == "array" and "items" in prop:
        return f"list[{_field_type(prop['items'])}]"
    if prop.get("type") == "object" and "additionalProperties" in prop:
        return f"map[{_field_type(prop['additionalProperties'])}]"
    return prop.get("type", "any")


def generate_schema_doc() -> str:
    defs = generate_json_schema().get("$defs", {})

    lines = [
        "# outmatch YAML Schema",
        "",
        "This doc is generated from the Pydantic models.",
        "",
        "## Top-level keys",
        "- `toolchain`: string (optional) - compiler probed with `-vV`",
        "- `cases`: list of case definitions.",
        "",
    ]
    for title, model_name in _DOC_SECTIONS:
        lines.append(f"## {title}")
        model = defs.get(model_name, {})
        required = set(model.get("required", []))
        for key, prop in model.get("properties", {}).items():
            line = f"- `{key}`: {_field_type(prop)}"
            if key in required:
                line += " (required)"
            elif isinstance(prop.get("default"), (str, int, float)):
                line += f", default `{json.dumps(prop['default'])}`"
            lines.append(line)
        lines.append("")

    lines.append("## Patterns")
    lines.append("- `[..]`: matches any text within one line")
    lines.append('- `"{...}"`: in JSON expectations, matches any value')
    for token, literal in macro_table():
        lines.append(f"- `{token}`: `{literal}`")
    lines.append("")
    return "\n".join(lines)


def write_schema_doc(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(generate_schema_doc())
