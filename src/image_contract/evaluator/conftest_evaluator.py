"""Rule evaluation with conftest.

Each ConftestEvaluator owns a work directory:

    <workdir>/
        policy/     rule bundles (copied local sources or ``conftest pull``)
        data/       data bundles plus config.json

``data/config.json`` exposes the policy configuration to the rules:

    {"config": {"policy": {"include": [...], "exclude": [...],
                           "collections": [...], "non_blocking_checks": [...],
                           "when_ns": 1672531200000000000}}}

``when_ns`` is the effective time of the run in nanoseconds, written at
evaluation time so that the attestation-derived time is used when present.

Environment Variables:
    IMAGE_CONTRACT_CONFTEST: conftest binary (default: ``conftest``)
    IMAGE_CONTRACT_DEBUG: keep work directories after release
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from pydantic import ValidationError

from image_contract.errors import EvaluatorError
from image_contract.process import run_command
from image_contract.schemas.results import CheckResult
from image_contract.telemetry.sanitization import sanitize_error_message

if TYPE_CHECKING:
    from image_contract.evaluator.base import TestRunner
    from image_contract.policy.context import PolicyContext
    from image_contract.schemas.policy import PolicySource

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

CONFTEST_ENV = "IMAGE_CONTRACT_CONFTEST"
DEBUG_ENV = "IMAGE_CONTRACT_DEBUG"
WORKDIR_PREFIX = "image-contract-"


def conftest_binary() -> str:
    """Return the conftest binary to run."""
    return os.environ.get(CONFTEST_ENV, "conftest")


def debug_enabled() -> bool:
    """Return whether work directories should be kept for inspection."""
    return bool(os.environ.get(DEBUG_ENV))


def parse_conftest_output(output: str) -> list[CheckResult]:
    """Parse ``conftest test --output json`` output.

    Args:
        output: Raw stdout.

    Returns:
        One CheckResult per input file and namespace.

    Raises:
        EvaluatorError: If the output is not the expected JSON list.
    """
    try:
        data: Any = json.loads(output or "[]")
    except json.JSONDecodeError as e:
        raise EvaluatorError(f"unable to parse conftest output: {e}") from e
    if not isinstance(data, list):
        raise EvaluatorError("unable to parse conftest output: expected a list of results")
    try:
        return [CheckResult.model_validate(item) for item in data]
    except ValidationError as e:
        raise EvaluatorError(f"unexpected conftest result: {e}") from e


class ConftestRunner:
    """Runs ``conftest test`` against prepared policy and data directories.

    Args:
        policy_dirs: Directories holding rule bundles.
        data_dirs: Directories holding data bundles.
        binary: conftest executable (default from IMAGE_CONTRACT_CONFTEST).
    """

    def __init__(
        self,
        policy_dirs: list[Path],
        data_dirs: list[Path],
        binary: str | None = None,
    ) -> None:
        self.policy_dirs = policy_dirs
        self.data_dirs = data_dirs
        self.binary = binary or conftest_binary()

    def build_command(self, inputs: list[Path]) -> list[str]:
        """Build the conftest command line for the given inputs."""
        cmd = [self.binary, "test", "--all-namespaces", "--no-fail", "--output", "json"]
        for policy_dir in self.policy_dirs:
            cmd.extend(["--policy", str(policy_dir)])
        for data_dir in self.data_dirs:
            cmd.extend(["--data", str(data_dir)])
        cmd.extend(str(path) for path in inputs)
        return cmd

    def run(
        self,
        inputs: list[Path],
        cancel: threading.Event | None = None,
    ) -> list[CheckResult]:
        """Run conftest and parse its JSON output.

        Raises:
            EvaluatorError: If conftest is missing, fails, or prints bad output.
            OperationCancelledError: If ``cancel`` is set.
        """
        cmd = self.build_command(inputs)
        try:
            result = run_command(cmd, operation="conftest test", cancel=cancel)
        except FileNotFoundError as e:
            raise EvaluatorError(f"conftest CLI not found: {self.binary}") from e

        if result.returncode != 0:
            raise EvaluatorError(
                f"conftest test failed (exit code {result.returncode}): "
                f"{sanitize_error_message(result.stderr.strip())}"
            )
        return parse_conftest_output(result.stdout)


class ConftestEvaluator:
    """Evaluator backed by conftest for one policy source.

    Args:
        source: Rule and data bundle locations.
        policy: Policy context of the current run.
        runner: Optional runner strategy. Defaults to a ConftestRunner over
            the evaluator's own policy and data directories.

    Example:
        >>> evaluator = ConftestEvaluator(PolicySource(policy=["./policy"]), ctx)
        >>> try:
        ...     results = evaluator.evaluate([Path("input.json")])
        ... finally:
        ...     evaluator.release()
    """

    def __init__(
        self,
        source: PolicySource,
        policy: PolicyContext,
        runner: TestRunner | None = None,
    ) -> None:
        self.source = source
        self.policy = policy
        self.work_dir = Path(tempfile.mkdtemp(prefix=WORKDIR_PREFIX))
        self.policy_dir = self.work_dir / "policy"
        self.data_dir = self.work_dir / "data"
        try:
            self.policy_dir.mkdir()
            self.data_dir.mkdir()
        except OSError:
            shutil.rmtree(self.work_dir, ignore_errors=True)
            raise
        self._runner = runner
        self._log = logger.bind(component="ConftestEvaluator", work_dir=str(self.work_dir))
        self._log.debug("work_dir_created")

    @property
    def runner(self) -> TestRunner:
        """The runner used for evaluation."""
        if self._runner is None:
            self._runner = ConftestRunner([self.policy_dir], [self.data_dir])
        return self._runner

    def policy_config(self) -> dict[str, Any]:
        """Build the ``config.json`` document for the rules."""
        spec = self.policy.spec
        policy_config: dict[str, Any] = {}
        if spec.exceptions is not None:
            policy_config["non_blocking_checks"] = list(spec.exceptions.non_blocking)
        if spec.configuration is not None:
            policy_config["include"] = list(spec.configuration.include)
            policy_config["exclude"] = list(spec.configuration.exclude)
            policy_config["collections"] = list(spec.configuration.collections)
        policy_config["when_ns"] = _unix_nanos(self.policy)
        return {"config": {"policy": policy_config}}

    def write_config(self) -> Path:
        """Write ``data/config.json``, replacing any existing file."""
        config_path = self.data_dir / "config.json"
        if config_path.exists():
            config_path.chmod(0o644)
            config_path.unlink()
        config_path.write_text(json.dumps(self.policy_config(), indent=4), encoding="utf-8")
        config_path.chmod(0o444)
        self._log.debug("config_written", path=str(config_path))
        return config_path

    def fetch_sources(self, cancel: threading.Event | None = None) -> None:
        """Place every policy and data bundle into the work directory.

        Raises:
            EvaluatorError: If a bundle cannot be fetched.
        """
        for url in self.source.policy:
            _fetch(url, self.policy_dir, cancel)
        for url in self.source.data:
            _fetch(url, self.data_dir, cancel)

    def evaluate(
        self,
        inputs: list[Path],
        cancel: threading.Event | None = None,
    ) -> list[CheckResult]:
        """Fetch sources, write the config and run the rules.

        Args:
            inputs: Input documents to evaluate.
            cancel: Optional cancellation signal.

        Returns:
            Raw (unclassified) results.

        Raises:
            EvaluatorError: If evaluation cannot run.
            OperationCancelledError: If ``cancel`` is set.
        """
        with tracer.start_as_current_span("image_contract.evaluate") as span:
            span.set_attribute("image_contract.evaluator.inputs", len(inputs))
            span.set_attribute("image_contract.evaluator.sources", len(self.source.policy))
            try:
                self.fetch_sources(cancel)
                self.write_config()
                results = self.runner.run(inputs, cancel)
            except Exception as e:
                sanitized = sanitize_error_message(str(e))
                span.set_attribute("exception.type", type(e).__name__)
                span.set_status(trace.Status(trace.StatusCode.ERROR, sanitized))
                self._log.debug("evaluation_failed", error=sanitized)
                raise

            span.set_attribute("image_contract.evaluator.groups", len(results))
            self._log.debug("evaluation_completed", groups=len(results))
            return results

    def release(self) -> None:
        """Remove the work directory unless IMAGE_CONTRACT_DEBUG is set."""
        if debug_enabled():
            self._log.info("work_dir_kept")
            return
        shutil.rmtree(self.work_dir, ignore_errors=True)
        self._log.debug("work_dir_removed")


def conftest_evaluators(policy: PolicyContext) -> list[ConftestEvaluator]:
    """Create one ConftestEvaluator per policy source.

    If any construction fails, the evaluators already created are released
    before the error propagates.
    """
    evaluators: list[ConftestEvaluator] = []
    try:
        for source in policy.spec.sources:
            evaluators.append(ConftestEvaluator(source, policy))
    except Exception:
        for evaluator in evaluators:
            evaluator.release()
        raise
    return evaluators


def _unix_nanos(policy: PolicyContext) -> int:
    when = policy.effective_time
    return int(when.timestamp()) * 1_000_000_000 + when.microsecond * 1_000


def _fetch(url: str, destination: Path, cancel: threading.Event | None) -> None:
    local = Path(url)
    if local.exists():
        target = destination / local.name
        if local.is_dir():
            shutil.copytree(local, target, dirs_exist_ok=True)
        else:
            shutil.copy2(local, target)
        logger.debug("source_copied", source=url, destination=str(target))
        return

    binary = conftest_binary()
    try:
        result = run_command(
            [binary, "pull", "--policy", str(destination), url],
            operation="conftest pull",
            cancel=cancel,
        )
    except FileNotFoundError as e:
        raise EvaluatorError(f"conftest CLI not found: {binary}") from e
    if result.returncode != 0:
        raise EvaluatorError(
            f"unable to download source from {url}: "
            f"{sanitize_error_message(result.stderr.strip())}"
        )
    logger.debug("source_pulled", source=url, destination=str(destination))


__all__ = [
    "CONFTEST_ENV",
    "ConftestEvaluator",
    "ConftestRunner",
    "DEBUG_ENV",
    "conftest_binary",
    "conftest_evaluators",
    "debug_enabled",
    "parse_conftest_output",
]
