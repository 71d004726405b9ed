"""
Engine config loading for salary_reveal.

Loads a YAML/JSON deployment file and returns typed config objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError


class RevealPolicy(str, Enum):
    FRESH = "fresh"      # decrypt on every reveal
    CACHED = "cached"    # reuse the last disclosure while the count is unchanged
    FROZEN = "frozen"    # first disclosure is final


@dataclass(frozen=True)
class SubmissionConfig:
    """Accepted range for submitted figures, in whole currency units."""

    min_value: int = 1
    max_value: int = 10_000_000

    def __post_init__(self) -> None:
        if self.min_value < 1:
            raise ValueError("submission.min_value must be >= 1")
        if self.max_value < self.min_value:
            raise ValueError("submission.max_value must be >= submission.min_value")


@dataclass(frozen=True)
class RevealConfig:
    """Disclosure rules applied by the reveal gate."""

    threshold_k: int = 3
    hide_count: bool = True
    policy: RevealPolicy = RevealPolicy.FRESH

    def __post_init__(self) -> None:
        if self.threshold_k < 1:
            raise ValueError("reveal.threshold_k must be >= 1")
        if not isinstance(self.hide_count, bool):
            raise ValueError("reveal.hide_count must be true or false")


@dataclass(frozen=True)
class StorageConfig:
    path: Optional[str] = None  # None => in-memory ledger


@dataclass(frozen=True)
class CryptoConfig:
    key_path: str = "salary_reveal_keys.json"
    n_length: int = 2048


@dataclass(frozen=True)
class LoggingConfig:
    environment: str = "production"  # "production" (JSON) | "development" (console)
    level: str = "INFO"


@dataclass(frozen=True)
class EngineConfig:
    """Loaded deployment configuration."""

    submission: SubmissionConfig = field(default_factory=SubmissionConfig)
    reveal: RevealConfig = field(default_factory=RevealConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    crypto: CryptoConfig = field(default_factory=CryptoConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> EngineConfig:
        sub = _section(d, "submission")
        rev = _section(d, "reveal")
        sto = _section(d, "storage")
        cry = _section(d, "crypto")
        log = _section(d, "logging")
        try:
            policy_raw = str(rev.get("policy", RevealPolicy.FRESH.value)).lower()
            return cls(
                submission=SubmissionConfig(
                    min_value=int(sub.get("min_value", 1)),
                    max_value=int(sub.get("max_value", 10_000_000)),
                ),
                reveal=RevealConfig(
                    threshold_k=int(rev.get("threshold_k", 3)),
                    hide_count=rev.get("hide_count", True),
                    policy=RevealPolicy(policy_raw),
                ),
                storage=StorageConfig(path=sto.get("path")),
                crypto=CryptoConfig(
                    key_path=str(cry.get("key_path", "salary_reveal_keys.json")),
                    n_length=int(cry.get("n_length", 2048)),
                ),
                logging=LoggingConfig(
                    environment=str(log.get("environment", "production")),
                    level=str(log.get("level", "INFO")),
                ),
                raw=d,
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(
                "SR_CONFIG_INVALID_VALUE",
                f"Invalid configuration value: {e}",
                details={"error": str(e)},
                remediation="Fix the offending key in the config file.",
                cause=e,
            )


def _section(d: Dict[str, Any], name: str) -> Dict[str, Any]:
    sec = d.get(name) or {}
    if not isinstance(sec, dict):
        raise ConfigError(
            "SR_CONFIG_SECTION_NOT_OBJECT",
            f"Config section '{name}' must be a mapping",
            details={"section": name, "type": type(sec).__name__},
            remediation=f"Write '{name}' as a YAML mapping.",
        )
    return sec


def load_engine_config(path: str) -> EngineConfig:
    """
    Load an engine configuration from a YAML or JSON file.

    The file must contain a mapping. Every section is optional; missing keys
    take the defaults above.
    """
    p = Path(path)
    if not p.exists():
        raise ConfigError(
            "SR_CONFIG_NOT_FOUND",
            f"Config not found: {path}",
            details={"path": path},
            remediation="Verify the path is correct and the file exists.",
        )
    try:
        obj = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(
            "SR_CONFIG_PARSE_ERROR",
            f"Failed to parse config: {path}",
            details={"path": path, "error": repr(e)},
            remediation="Ensure the file is valid YAML or JSON encoded in UTF-8.",
            cause=e,
        )
    if obj is None:
        obj = {}
    if not isinstance(obj, dict):
        raise ConfigError(
            "SR_CONFIG_TOPLEVEL_NOT_OBJECT",
            f"Config must be a YAML/JSON object, got {type(obj).__name__}",
            details={"path": path, "type": type(obj).__name__},
            remediation="Wrap the config in a mapping at the top level.",
        )
    return EngineConfig.from_dict(obj)
