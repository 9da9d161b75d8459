"""Logging configuration and message sanitization."""

from __future__ import annotations

from image_contract.telemetry.logging import add_trace_context, configure_logging
from image_contract.telemetry.sanitization import sanitize_error_message

__all__ = [
    "add_trace_context",
    "configure_logging",
    "sanitize_error_message",
]
