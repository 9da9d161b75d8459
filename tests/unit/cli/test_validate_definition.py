"""Tests for the ``validate definition`` command."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import yaml
from click.testing import CliRunner

from image_contract.cli.main import cli
from image_contract.cli.utils import ExitCode
from image_contract.cli.validate.definition import definition_entry
from image_contract.output import Output
from image_contract.schemas.results import CheckResult, Result

VALIDATE_DEFINITION = "image_contract.cli.validate.definition.validate_definition"


def _output(*failures: str, successes: int = 2) -> Output:
    return Output(
        policy_check=[
            CheckResult(
                successes=successes,
                failures=[Result(msg=m) for m in failures],
                warnings=[Result(msg="careful")],
            )
        ]
    )


class TestDefinitionEntry:
    """Tests for the per-file report entry."""

    def test_entry(self) -> None:
        """Violations, warnings and successes are reported per file."""
        entry = definition_entry("pipeline.yaml", _output("bad"))

        assert entry == {
            "filename": "pipeline.yaml",
            "violations": [{"msg": "bad"}],
            "warnings": [{"msg": "careful"}],
            "successes": 2,
            "success": False,
        }


class TestValidateDefinitionCommand:
    """Tests for the definition command."""

    @patch(VALIDATE_DEFINITION)
    def test_json_report(self, mock_validate: MagicMock) -> None:
        """Each file is evaluated with the given sources."""
        mock_validate.return_value = _output()

        result = CliRunner().invoke(
            cli,
            [
                "validate", "definition",
                "-f", "a.yaml", "-f", "b.yaml",
                "-p", "./policy", "-d", "./data",
            ],
        )

        assert result.exit_code == 0, result.output
        document = json.loads(result.output)
        assert document["success"] is True
        assert [d["filename"] for d in document["definitions"]] == ["a.yaml", "b.yaml"]
        path, evaluator, policy = mock_validate.call_args.args
        assert path == "b.yaml"
        assert evaluator is None
        assert policy.spec.sources[0].policy == ["./policy"]
        assert policy.spec.sources[0].data == ["./data"]

    @patch(VALIDATE_DEFINITION)
    def test_yaml_report_to_file(self, mock_validate: MagicMock, tmp_path: Path) -> None:
        """yaml=PATH writes a YAML report to the file."""
        mock_validate.return_value = _output("bad")
        report_path = tmp_path / "report.yaml"

        result = CliRunner().invoke(
            cli,
            ["validate", "definition", "-f", "a.yaml", "-p", "./policy", "--output", f"yaml={report_path}"],
        )

        assert result.exit_code == 0
        assert yaml.safe_load(report_path.read_text())["success"] is False

    @patch(VALIDATE_DEFINITION)
    def test_strict(self, mock_validate: MagicMock) -> None:
        """Violations exit 1 with --strict."""
        mock_validate.return_value = _output("bad")

        result = CliRunner().invoke(
            cli, ["validate", "definition", "-f", "a.yaml", "-p", "./policy", "--strict"]
        )

        assert result.exit_code == ExitCode.GENERAL_ERROR

    def test_unsupported_format(self) -> None:
        """Only json and yaml reports are supported."""
        result = CliRunner().invoke(
            cli, ["validate", "definition", "-f", "a.yaml", "-p", "./policy", "--output", "summary"]
        )

        assert result.exit_code == ExitCode.USAGE_ERROR
        assert "Unsupported output format 'summary'" in result.output

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing definition file exits with FILE_NOT_FOUND."""
        missing = tmp_path / "missing.yaml"

        result = CliRunner().invoke(
            cli, ["validate", "definition", "-f", str(missing), "-p", "./policy"]
        )

        assert result.exit_code == ExitCode.FILE_NOT_FOUND
        assert f"definition file `{missing}` does not exist" in result.output

    def test_sources_required(self) -> None:
        """--policy-source is required."""
        result = CliRunner().invoke(cli, ["validate", "definition", "-f", "a.yaml"])

        assert result.exit_code == ExitCode.USAGE_ERROR
