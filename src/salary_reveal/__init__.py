"""Encrypted, k-anonymous compensation aggregation per (role, experience) bucket."""

from .config import EngineConfig, RevealPolicy, load_engine_config
from .crypto import PaillierCapability, load_keypair, save_keypair
from .engine import SalaryRevealEngine, StaticIdentity, build_engine
from .errors import (
    AlreadySubmitted,
    BelowThreshold,
    DecryptionFailure,
    EncryptionFailure,
    InvalidBucket,
    SalaryRevealException,
    ValueOutOfRange,
)
from .types import Aggregate, BucketKey, ExperienceLevel, RoleCategory

__all__ = [
    "EngineConfig",
    "RevealPolicy",
    "load_engine_config",
    "PaillierCapability",
    "load_keypair",
    "save_keypair",
    "SalaryRevealEngine",
    "StaticIdentity",
    "build_engine",
    "AlreadySubmitted",
    "BelowThreshold",
    "DecryptionFailure",
    "EncryptionFailure",
    "InvalidBucket",
    "SalaryRevealException",
    "ValueOutOfRange",
    "Aggregate",
    "BucketKey",
    "ExperienceLevel",
    "RoleCategory",
]
