"""Validate definition CLI command.

Evaluates local definition files (for example pipeline definitions) against
policy rule bundles. No signature verification is involved.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click
import yaml

from image_contract.cli.utils import ExitCode, error_exit, exit_code_for
from image_contract.definition.validate import validate_definition
from image_contract.errors import ImageContractError
from image_contract.output import Output
from image_contract.policy.context import PolicyContext
from image_contract.schemas.policy import PolicySource, PolicySpec

OUTPUT_FORMATS = ("json", "yaml")


def definition_entry(path: str, output: Output) -> dict[str, Any]:
    """Report entry for one evaluated definition file."""
    violations = output.violations()
    return {
        "filename": path,
        "violations": [r.to_wire() for r in violations],
        "warnings": [r.to_wire() for r in output.warnings()],
        "successes": output.success_count(),
        "success": not violations,
    }


def _render(entries: list[dict[str, Any]], fmt: str) -> str:
    document = {
        "success": all(entry["success"] for entry in entries),
        "definitions": entries,
    }
    if fmt == "yaml":
        return yaml.safe_dump(document, sort_keys=False)
    return json.dumps(document)


@click.command(
    name="definition",
    help="""\b
Evaluate definition files against policy rules.

Examples:
    $ image-contract validate definition --file pipeline.yaml \\
        --policy-source ./policy

    $ image-contract validate definition --file a.yaml --file b.yaml \\
        --policy-source quay.io/org/policy:latest --data-source ./data \\
        --output yaml=report.yaml
""",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "--file",
    "-f",
    "files",
    type=str,
    multiple=True,
    required=True,
    help="Definition file to evaluate (repeatable).",
)
@click.option(
    "--policy-source",
    "-p",
    "policy_sources",
    type=str,
    multiple=True,
    required=True,
    help="Rule bundle location: local path or conftest pull URL (repeatable).",
)
@click.option(
    "--data-source",
    "-d",
    "data_sources",
    type=str,
    multiple=True,
    help="Data bundle location (repeatable).",
)
@click.option(
    "--output",
    "-o",
    "output",
    type=str,
    default="json",
    show_default=True,
    help="Report target FORMAT or FORMAT=PATH (json or yaml).",
)
@click.option(
    "--strict/--no-strict",
    default=False,
    help="Exit non-zero when any definition has violations [default: no-strict].",
)
def definition_command(
    files: tuple[str, ...],
    policy_sources: tuple[str, ...],
    data_sources: tuple[str, ...],
    output: str,
    strict: bool,
) -> None:
    """Evaluate definition files and write the report."""
    fmt, _, target = output.partition("=")
    if fmt not in OUTPUT_FORMATS:
        error_exit(
            f"Unsupported output format '{fmt}'. Allowed: {', '.join(OUTPUT_FORMATS)}",
            exit_code=ExitCode.USAGE_ERROR,
        )

    spec = PolicySpec(
        sources=[PolicySource(policy=list(policy_sources), data=list(data_sources))]
    )
    entries: list[dict[str, Any]] = []
    try:
        for path in files:
            result = validate_definition(path, None, PolicyContext(spec))
            entries.append(definition_entry(path, result))
    except ImageContractError as e:
        error_exit(str(e), exit_code=exit_code_for(e))

    content = _render(entries, fmt)
    if target:
        Path(target).write_text(content + "\n", encoding="utf-8")
    else:
        sys.stdout.write(content + "\n")

    if strict and not all(entry["success"] for entry in entries):
        sys.exit(ExitCode.GENERAL_ERROR)


__all__: list[str] = ["definition_command", "definition_entry"]
