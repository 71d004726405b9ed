"""
Fail-closed reveal gate for salary_reveal.

A bucket's aggregate is decrypted only when at least k participants stand
behind it. Below k the gate refuses, and by default does not say how far
below. Any failure of the decryption backend is surfaced as
DecryptionFailure; nothing is cached on that path.

Reveals never change counts or accumulators. Under the "cached" and "frozen"
policies the gate stores the disclosed aggregate as a RevealRecord.
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal, localcontext
from typing import Optional

import structlog

from .config import RevealConfig, RevealPolicy
from .crypto import EncryptionCapability
from .errors import BelowThreshold, DecryptionFailure
from .ledger import BucketLedger
from .types import Aggregate, BucketKey, RevealAuthorization, RevealRecord

logger = structlog.get_logger(__name__)


def integer_average(total: int, count: int) -> int:
    """total / count rounded half-even to a whole unit, without floats."""
    if count <= 0:
        raise ValueError("count must be positive")
    with localcontext() as ctx:
        ctx.prec = max(28, len(str(abs(total))) + 4)
        return int((Decimal(total) / Decimal(count)).quantize(Decimal(1), rounding=ROUND_HALF_EVEN))


class RevealGate:
    def __init__(
        self,
        ledger: BucketLedger,
        capability: EncryptionCapability,
        config: RevealConfig = RevealConfig(),
    ) -> None:
        self._ledger = ledger
        self._capability = capability
        self._config = config

    def _refuse(self, bucket: BucketKey, threshold_k: int, participants: int) -> BelowThreshold:
        logger.info("reveal_refused", bucket=str(bucket), threshold_k=threshold_k)
        shown: Optional[int] = None if self._config.hide_count else participants
        return BelowThreshold(str(bucket), threshold_k, shown)

    def reveal(self, bucket: BucketKey, threshold_k: Optional[int] = None) -> Aggregate:
        """
        Disclose sum, count and average for bucket if count >= threshold_k.

        threshold_k defaults to the configured deployment threshold.
        Raises BelowThreshold or DecryptionFailure.
        """
        k = self._config.threshold_k if threshold_k is None else int(threshold_k)
        if k < 1:
            raise ValueError("threshold_k must be >= 1")

        state = self._ledger.read(bucket)
        count = state.count if state is not None else 0
        if state is None or count < k:
            raise self._refuse(bucket, k, count)

        policy = self._config.policy
        record = self._ledger.reveal_record(bucket) if policy is not RevealPolicy.FRESH else None
        if record is not None:
            if policy is RevealPolicy.FROZEN:
                if record.count < k:
                    raise self._refuse(bucket, k, count)
                logger.debug("reveal_cache_hit", bucket=str(bucket), policy=policy.value)
                return record.aggregate
            if policy is RevealPolicy.CACHED and record.count == count:
                logger.debug("reveal_cache_hit", bucket=str(bucket), policy=policy.value)
                return record.aggregate

        authorization = RevealAuthorization(bucket=bucket, participants=count, threshold_k=k)
        try:
            total = int(self._capability.decrypt(state.ciphertext, authorization))
        except Exception as e:
            logger.error("decryption_failed", bucket=str(bucket), error_type=type(e).__name__)
            raise DecryptionFailure(str(bucket), e)

        aggregate = Aggregate(bucket=bucket, sum=total, count=count, average=integer_average(total, count))
        if policy is not RevealPolicy.FRESH:
            self._ledger.store_reveal(RevealRecord(bucket=bucket, aggregate=aggregate, count=count))

        logger.info("reveal_disclosed", bucket=str(bucket), participants=count, threshold_k=k)
        return aggregate
