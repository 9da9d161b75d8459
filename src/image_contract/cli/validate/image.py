"""Validate image CLI command.

Verifies every component image of an application snapshot (or a single
image) and writes the application snapshot report.

Input errors in the snapshot and in the policy are reported together::

    2 errors occurred:
        * unable to parse Snapshot specification from input: ...
        * unable to parse policy specification: ...
"""

from __future__ import annotations

import sys
import threading

import click
import structlog

from image_contract.cli.utils import ExitCode, error_exit, exit_code_for
from image_contract.errors import (
    ImageContractError,
    InvalidInputError,
    PolicyConfigurationError,
    SnapshotInputError,
)
from image_contract.image.cosign_verifier import CosignVerifier
from image_contract.image.validate import ImageValidator
from image_contract.policy.context import PolicyContext
from image_contract.policy.loader import load_policy
from image_contract.snapshot.input import SnapshotSpec, determine_input_spec
from image_contract.snapshot.report import Report
from image_contract.snapshot.validate import validate_snapshot

logger = structlog.get_logger(__name__)


def build_validator() -> ImageValidator:
    """Create the image validator backed by cosign and conftest."""
    return ImageValidator(CosignVerifier())


def _load_inputs(
    *,
    image: str | None,
    json_input: str | None,
    file_path: str | None,
    policy_ref: str,
    public_key: str,
    rekor_url: str,
    effective_time: str,
) -> tuple[SnapshotSpec, PolicyContext]:
    errors: list[str] = []
    spec: SnapshotSpec | None = None
    policy: PolicyContext | None = None

    try:
        spec = determine_input_spec(image=image, json_input=json_input, file_path=file_path)
    except SnapshotInputError as e:
        errors.append(str(e))

    try:
        policy = load_policy(
            policy_ref,
            public_key=public_key,
            rekor_url=rekor_url,
            effective_time=effective_time,
        )
    except PolicyConfigurationError as e:
        errors.append(str(e))

    if errors:
        raise InvalidInputError(errors)
    assert spec is not None and policy is not None  # Guaranteed when no errors
    return spec, policy


@click.command(
    name="image",
    help="""\b
Verify the signatures, attestations and policy compliance of images.

The images to verify are given as a single --image reference or as an
application snapshot (--json-input text or --file-path):

    {"application": "app1",
     "components": [{"name": "nodejs", "containerImage": "quay.io/org/app:v1"}]}

Report formats for --output: json, yaml, summary, appstudio (alias hacbs).
Each --output is FORMAT or FORMAT=PATH; without one, json goes to stdout.

Examples:
    $ image-contract validate image --image quay.io/org/app:v1 \\
        --policy policy.yaml --public-key cosign.pub

    $ image-contract validate image --file-path snapshot.json \\
        --policy '{"publicKey": "k8s://ns/key"}' \\
        --output summary --output appstudio=hacbs.json --strict
""",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--image", "-i", type=str, default=None, help="Image reference to verify.")
@click.option(
    "--json-input",
    "-j",
    type=str,
    default=None,
    help="Application snapshot as JSON or YAML text.",
)
@click.option(
    "--file-path",
    "-f",
    type=str,
    default=None,
    help="Path to an application snapshot JSON or YAML file.",
)
@click.option(
    "--policy",
    "-p",
    "policy_ref",
    type=str,
    default="",
    help="Policy as JSON/YAML text or a path to a policy file.",
)
@click.option(
    "--public-key",
    "-k",
    type=str,
    default="",
    help="Public key (PEM text, path or key reference), overrides the policy.",
)
@click.option(
    "--rekor-url",
    "-r",
    type=str,
    default="",
    help="Transparency log URL, overrides the policy.",
)
@click.option(
    "--effective-time",
    type=str,
    default="now",
    show_default=True,
    help="Time for rule effective dates: 'now', 'attestation' or RFC3339.",
)
@click.option(
    "--output",
    "-o",
    "outputs",
    type=str,
    multiple=True,
    help="Report target FORMAT or FORMAT=PATH (repeatable).",
)
@click.option(
    "--strict/--no-strict",
    default=False,
    help="Exit non-zero when the report does not pass [default: no-strict].",
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=4,
    show_default=True,
    help="Number of images verified in parallel.",
)
def image_command(
    image: str | None,
    json_input: str | None,
    file_path: str | None,
    policy_ref: str,
    public_key: str,
    rekor_url: str,
    effective_time: str,
    outputs: tuple[str, ...],
    strict: bool,
    workers: int,
) -> None:
    """Verify images against a policy and write the report."""
    cancel = threading.Event()
    try:
        spec, policy = _load_inputs(
            image=image,
            json_input=json_input,
            file_path=file_path,
            policy_ref=policy_ref,
            public_key=public_key,
            rekor_url=rekor_url,
            effective_time=effective_time,
        )
        components = validate_snapshot(
            spec, policy, build_validator(), max_workers=workers, cancel=cancel
        )
        report = Report(components, policy.public_key)
        report.write_all(list(outputs), sys.stdout)
    except KeyboardInterrupt:
        cancel.set()
        error_exit("Interrupted", exit_code=ExitCode.CANCELLED)
    except ImageContractError as e:
        error_exit(str(e), exit_code=exit_code_for(e))

    logger.info("report_complete", components=len(components), success=report.success)
    if strict and not report.success:
        sys.exit(ExitCode.GENERAL_ERROR)


__all__: list[str] = ["build_validator", "image_command"]
