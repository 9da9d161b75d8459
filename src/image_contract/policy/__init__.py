"""Policy configuration for verification runs.

Example:
    >>> from image_contract.policy import load_policy
    >>> ctx = load_policy('{"publicKey": "k8s://ns/key"}')
"""

from __future__ import annotations

from image_contract.policy.context import PolicyContext
from image_contract.policy.loader import (
    load_policy,
    parse_effective_time,
    parse_policy_spec,
    read_policy_spec,
)

__all__ = [
    "PolicyContext",
    "load_policy",
    "parse_effective_time",
    "parse_policy_spec",
    "read_policy_spec",
]
