"""Main entry point for the image-contract CLI.

Command Groups:
    image-contract validate: Verify images and definitions against a policy

Example:
    $ image-contract --help
    $ image-contract validate image --image quay.io/org/app:v1 --policy policy.yaml
    $ image-contract --debug validate definition --file pipeline.yaml --policy-source ./policy
"""

from __future__ import annotations

import sys
from importlib.metadata import version as get_version

import click

from image_contract.cli.utils import ExitCode, error, exit_code_for
from image_contract.cli.validate import validate
from image_contract.telemetry.logging import configure_logging


def _get_version() -> str:
    """Get the installed package version, or 'unknown'."""
    try:
        return get_version("image-contract")
    except Exception:
        return "unknown"


@click.group(
    name="image-contract",
    help="image-contract - Verify container image signatures and attestations against policy.",
    epilog="Use 'image-contract <command> --help' for command-specific help.",
    context_settings={
        "help_option_names": ["-h", "--help"],
    },
)
@click.version_option(
    version=_get_version(),
    prog_name="image-contract",
    message="%(prog)s %(version)s",
)
@click.option("--debug", is_flag=True, default=False, help="Log at DEBUG level.")
@click.option("--verbose", is_flag=True, default=False, help="Log at INFO level.")
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Render log lines as JSON.",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, verbose: bool, log_json: bool) -> None:
    """Root command group for the image-contract CLI."""
    ctx.ensure_object(dict)
    level = None
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    configure_logging(log_level=level, json_output=log_json)


cli.add_command(validate)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the image-contract CLI.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(ExitCode.CANCELLED)
    except Exception as e:
        error(str(e))
        sys.exit(exit_code_for(e))


if __name__ == "__main__":
    main()
