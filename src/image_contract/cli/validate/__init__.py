"""Validation CLI commands.

    image-contract validate image: Verify images of a snapshot against a policy
    image-contract validate definition: Evaluate definition files against rules

Example:
    $ image-contract validate image --image quay.io/org/app:v1 --policy policy.yaml
    $ image-contract validate definition --file pipeline.yaml --policy-source ./policy
"""

from __future__ import annotations

import click

from image_contract.cli.validate.definition import definition_command
from image_contract.cli.validate.image import image_command


@click.group(
    name="validate",
    help="Validate images and definition files against a policy.",
)
def validate() -> None:
    """Validate command group."""
    pass


validate.add_command(image_command)
validate.add_command(definition_command)


__all__: list[str] = ["validate"]
