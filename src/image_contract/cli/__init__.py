"""Command-line interface for image-contract.

Example:
    $ image-contract --help
    $ image-contract validate image --image quay.io/org/app:v1 --policy policy.yaml

Exit Codes:
    0: Success
    1: General error, or a failed report with --strict
    2: Usage error (invalid arguments)
    3: File not found
    5: Validation error (policy, snapshot or image reference)
    7: Rule evaluation error
    8: Registry or signing tool error
    130: Cancelled
"""

from __future__ import annotations

from image_contract.cli.main import cli, main
from image_contract.cli.utils import ExitCode, error, error_exit

__all__ = ["ExitCode", "cli", "error", "error_exit", "main"]
