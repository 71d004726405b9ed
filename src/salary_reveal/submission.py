"""
Submission gate.

Accepts one compensation figure per identity, encrypts it through the
injected capability and hands the ciphertext to the ledger. Holds no state
of its own.
"""

from __future__ import annotations

from datetime import datetime, timezone
from numbers import Integral
from typing import Any

import structlog

from .config import SubmissionConfig
from .crypto import EncryptionCapability
from .errors import AlreadySubmitted, EncryptionFailure, SalaryRevealException, ValueOutOfRange
from .ledger import BucketLedger
from .observability import identity_digest
from .types import BucketKey, Identity, Submission

logger = structlog.get_logger(__name__)


class SubmissionGate:
    def __init__(
        self,
        ledger: BucketLedger,
        capability: EncryptionCapability,
        config: SubmissionConfig = SubmissionConfig(),
    ) -> None:
        self._ledger = ledger
        self._capability = capability
        self._config = config

    def validate_value(self, value: Any) -> int:
        """Return value as int, or raise ValueOutOfRange."""
        lo, hi = self._config.min_value, self._config.max_value
        if isinstance(value, (bool, str, bytes)):
            raise ValueOutOfRange("not a number", min_value=lo, max_value=hi)
        if isinstance(value, Integral):
            v = int(value)
        else:
            try:
                as_int = int(value)
            except (TypeError, ValueError, OverflowError):
                raise ValueOutOfRange("not a number", min_value=lo, max_value=hi) from None
            if as_int != value:
                raise ValueOutOfRange("not a whole number", min_value=lo, max_value=hi)
            v = as_int
        if v < lo:
            raise ValueOutOfRange("below minimum", min_value=lo, max_value=hi)
        if v > hi:
            raise ValueOutOfRange("above maximum", min_value=lo, max_value=hi)
        return v

    def submit(self, identity: Identity, value: Any, role: Any, experience: Any) -> Submission:
        """
        Record identity's single contribution to the (role, experience) bucket.

        Checks, in order: prior submission, bucket membership, value range.
        The duplicate check runs before any cryptographic work. Raises
        AlreadySubmitted, InvalidBucket, ValueOutOfRange or EncryptionFailure;
        on any of them the ledger is unchanged.
        """
        who = identity_digest(identity)
        try:
            if self._ledger.has_submitted(identity):
                raise AlreadySubmitted()
            bucket = BucketKey.of(role, experience)
            plaintext = self.validate_value(value)
        except SalaryRevealException as e:
            logger.info("submission_rejected", identity=who, code=e.code)
            raise

        try:
            ciphertext = self._capability.encrypt(plaintext)
        except Exception as e:
            logger.error("encryption_failed", identity=who, bucket=str(bucket), error_type=type(e).__name__)
            raise EncryptionFailure(e)

        submission = Submission(
            identity=identity,
            bucket=bucket,
            ciphertext=ciphertext,
            submitted_at=datetime.now(timezone.utc),
        )
        try:
            state = self._ledger.commit(submission)
        except AlreadySubmitted as e:
            # lost a race against a concurrent submission by the same identity
            logger.info("submission_rejected", identity=who, code=e.code)
            raise

        logger.info("submission_accepted", identity=who, bucket=str(bucket), participants=state.count)
        return submission
