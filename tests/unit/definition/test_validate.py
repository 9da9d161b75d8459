"""Unit tests for definition file validation."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from image_contract.definition.validate import validate_definition
from image_contract.errors import DefinitionFileError, EvaluatorError
from image_contract.policy.context import PolicyContext
from image_contract.schemas.results import CheckResult, Result

MakePolicy = Callable[..., PolicyContext]


@pytest.fixture
def definition_file(tmp_path: Path) -> Path:
    """A pipeline definition on disk."""
    path = tmp_path / "pipeline.yaml"
    path.write_text("kind: Pipeline\nmetadata:\n  name: build\n")
    return path


class TestValidateDefinition:
    """Tests for validate_definition."""

    def test_raw_results(
        self, definition_file: Path, fake_evaluator_factory, make_policy: MakePolicy
    ) -> None:
        """Results are returned unclassified, including future-dated failures."""
        failure = Result(msg="later", metadata={"effective_on": "2999-01-01T00:00:00Z"})
        fake_evaluator_factory.results = [[CheckResult(successes=1, failures=[failure])]]
        evaluator = fake_evaluator_factory(make_policy())[0]
        policy = make_policy(effective_time=datetime(2022, 1, 1, tzinfo=timezone.utc))

        output = validate_definition(definition_file, evaluator, policy)

        assert output.policy_check[0].failures == [failure]
        assert output.effective_time == datetime(2022, 1, 1, tzinfo=timezone.utc)
        assert output.image_signature_check is None
        assert evaluator.inputs == [[definition_file]]
        assert evaluator.released is True

    def test_cancel_forwarded(
        self, definition_file: Path, fake_evaluator_factory, make_policy: MakePolicy
    ) -> None:
        """The cancel event reaches the evaluator."""
        evaluator = fake_evaluator_factory(make_policy())[0]
        cancel = threading.Event()

        validate_definition(str(definition_file), evaluator, make_policy(), cancel)

        assert evaluator.cancels == [cancel]

    def test_released_on_error(
        self, definition_file: Path, fake_evaluator_factory, make_policy: MakePolicy
    ) -> None:
        """The evaluator is released when evaluation fails."""
        fake_evaluator_factory.errors = [EvaluatorError("conftest broke")]
        evaluator = fake_evaluator_factory(make_policy())[0]

        with pytest.raises(EvaluatorError, match="conftest broke"):
            validate_definition(definition_file, evaluator, make_policy())

        assert evaluator.released is True

    def test_default_evaluators(
        self, definition_file: Path, fake_evaluator_factory, make_policy: MakePolicy
    ) -> None:
        """Without an evaluator, one is created per policy source."""
        fake_evaluator_factory.results = [[CheckResult(successes=1)], [CheckResult(successes=2)]]
        policy = make_policy()

        with patch(
            "image_contract.definition.validate.conftest_evaluators",
            side_effect=fake_evaluator_factory,
        ):
            output = validate_definition(definition_file, None, policy)

        assert output.success_count() == 3
        assert fake_evaluator_factory.policies[-1] is policy
        assert all(e.released for e in fake_evaluator_factory.created)

    def test_missing_file(self, tmp_path: Path, fake_evaluator_factory, make_policy: MakePolicy) -> None:
        """A missing definition file is rejected before evaluation."""
        evaluator = fake_evaluator_factory(make_policy())[0]

        with pytest.raises(DefinitionFileError) as exc_info:
            validate_definition(tmp_path / "missing.yaml", evaluator, make_policy())

        assert exc_info.value.exit_code == 3
        assert "does not exist" in str(exc_info.value)
        assert evaluator.inputs == []
