"""Structured logging configuration with structlog.

Production emits one JSON object per line; development uses the coloured
console renderer. Call configure_logging() once at process start, then use
structlog normally:

    log = structlog.get_logger(__name__)
    log.info("submission_accepted", bucket="2:2")

Log events never carry plaintext figures or ciphertexts. Identities are
logged through identity_digest() only.
"""

from __future__ import annotations

import hashlib
import logging
import os
import sys
from typing import List, Optional

import structlog
from structlog.typing import Processor

LOG_LEVEL_ENV = "SALARY_REVEAL_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.getenv(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)).upper()
    return getattr(logging, name, logging.INFO)


def configure_logging(environment: str = "production", level: Optional[str] = None) -> None:
    """Configure structlog for the process.

    Args:
        environment: 'production' for JSON output, anything else for console.
        level: log level name; falls back to $SALARY_REVEAL_LOG_LEVEL, then INFO.
    """
    shared_processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if environment == "production":
        final_processor: Processor = structlog.processors.JSONRenderer()
    else:
        final_processor = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [final_processor],
        wrapper_class=structlog.make_filtering_bound_logger(_resolve_level(level)),
        context_class=dict,
        # stdout is reserved for CLI payloads; stderr is looked up per logger
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def _stderr_logger(*args) -> structlog.PrintLogger:
    return structlog.PrintLogger(sys.stderr)


def identity_digest(identity: str) -> str:
    """Short, stable pseudonym for an identity, for log correlation only."""
    return hashlib.sha256(identity.encode("utf-8")).hexdigest()[:12]
