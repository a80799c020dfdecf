"""Utility modules for Tutorial Runner.

This package provides common utilities for:
- Resource names and generated passwords
- JMESPath extraction from AWS responses
- Logging configuration and the audit trail
- Markdown transcripts of a run
"""

from tutorial_runner.utils.audit_logger import AuditLogger, get_audit_logger, sanitize_parameters
from tutorial_runner.utils.extract import find_all, find_key, is_empty, query, require
from tutorial_runner.utils.logging_setup import configure_logging
from tutorial_runner.utils.naming import (
    ResourceNamer,
    generate_hex_suffix,
    generate_password,
    generate_suffix,
)
from tutorial_runner.utils.transcript import render_transcript, write_transcript

__all__ = [
    "AuditLogger",
    "ResourceNamer",
    "configure_logging",
    "find_all",
    "find_key",
    "generate_hex_suffix",
    "generate_password",
    "generate_suffix",
    "get_audit_logger",
    "is_empty",
    "query",
    "render_transcript",
    "require",
    "sanitize_parameters",
    "write_transcript",
]
