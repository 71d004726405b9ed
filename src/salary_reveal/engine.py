from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Protocol

import structlog

from .config import EngineConfig
from .crypto import EncryptionCapability, PaillierCapability, load_keypair
from .errors import ConfigError
from .ledger import BucketLedger, JsonFileLedgerStore, LedgerStore, MemoryLedgerStore
from .reveal import RevealGate
from .submission import SubmissionGate
from .types import Aggregate, BucketKey, BucketStatus, Identity, Submission

logger = structlog.get_logger(__name__)


class IdentityProvider(Protocol):
    def current_identity(self) -> Identity: ...


@dataclass(frozen=True)
class StaticIdentity:
    """Identity asserted by an already-authenticated caller."""
    identity: Identity

    def __post_init__(self) -> None:
        if not isinstance(self.identity, str) or not self.identity.strip():
            raise ValueError("identity must be a non-empty string")

    def current_identity(self) -> Identity:
        return self.identity


class SalaryRevealEngine:
    """
    Submission gate -> bucket ledger -> reveal gate, wired around one ledger.

    The ledger is the only state; both gates read and write through it.
    """

    def __init__(
        self,
        capability: EncryptionCapability,
        config: EngineConfig = EngineConfig(),
        *,
        store: Optional[LedgerStore] = None,
        identity_provider: Optional[IdentityProvider] = None,
    ) -> None:
        self.config = config
        self.ledger = BucketLedger(capability, store)
        self.submissions = SubmissionGate(self.ledger, capability, config.submission)
        self.reveals = RevealGate(self.ledger, capability, config.reveal)
        self._identity_provider = identity_provider

    def _caller(self, identity: Optional[Identity]) -> Identity:
        if identity is not None:
            return StaticIdentity(identity).current_identity()
        if self._identity_provider is None:
            raise ValueError("No identity given and no identity provider configured")
        return self._identity_provider.current_identity()

    def submit(self, value: Any, role: Any, experience: Any, *, identity: Optional[Identity] = None) -> Submission:
        return self.submissions.submit(self._caller(identity), value, role, experience)

    def check_submission(self, identity: Identity) -> bool:
        return self.ledger.has_submitted(identity)

    def reveal(self, role: Any, experience: Any) -> Aggregate:
        """Reveal with the deployment threshold; callers cannot lower it."""
        return self.reveals.reveal(BucketKey.of(role, experience))

    def bucket_overview(self) -> List[BucketStatus]:
        k = self.config.reveal.threshold_k
        hide = self.config.reveal.hide_count
        return [
            BucketStatus(
                bucket=st.bucket,
                revealable=st.count >= k,
                participants=None if hide else st.count,
            )
            for st in self.ledger.buckets()
        ]


def build_capability(config: EngineConfig) -> PaillierCapability:
    key_path = Path(config.crypto.key_path)
    if not key_path.exists():
        raise ConfigError(
            "SR_CONFIG_KEY_NOT_FOUND",
            f"Key file not found: {key_path}",
            details={"path": str(key_path)},
            remediation="Run `salary-reveal keygen` or point crypto.key_path at an existing key file.",
        )
    try:
        return load_keypair(key_path)
    except (OSError, KeyError, TypeError, ValueError) as e:
        raise ConfigError(
            "SR_CONFIG_KEY_INVALID",
            f"Key file could not be loaded: {key_path}",
            details={"path": str(key_path), "error_type": type(e).__name__},
            remediation="Regenerate the key file with `salary-reveal keygen`.",
            cause=e,
        )


def build_engine(
    config: EngineConfig,
    *,
    capability: Optional[EncryptionCapability] = None,
    identity_provider: Optional[IdentityProvider] = None,
) -> SalaryRevealEngine:
    """
    Wire an engine from a loaded EngineConfig.

    Without an explicit capability the Paillier key file named in the config
    is loaded. With file storage the capability must also act as the
    ciphertext codec.
    """
    cap = capability if capability is not None else build_capability(config)
    store: LedgerStore
    if config.storage.path:
        store = JsonFileLedgerStore(config.storage.path, cap)
    else:
        store = MemoryLedgerStore()
    engine = SalaryRevealEngine(cap, config, store=store, identity_provider=identity_provider)
    logger.debug(
        "engine_ready",
        storage=config.storage.path or "memory",
        threshold_k=config.reveal.threshold_k,
        policy=config.reveal.policy.value,
    )
    return engine
