"""
Bucket ledger: the only stateful component of salary_reveal.

Holds, per (role, experience) bucket, the homomorphic running sum of every
ciphertext routed there and the number of participants behind it, plus the
global identity -> submission log. The log is append-only.

Invariant kept across every mutation: for each bucket, count equals the number
of logged submissions for that bucket and the accumulator decrypts to the sum
of exactly those submissions. commit() is the only mutator and applies the
record, the accumulation and the increment as one step.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import structlog

from .crypto import CiphertextCodec, EncryptionCapability
from .errors import AlreadySubmitted, InvalidBucket, LedgerCorrupted
from .types import Aggregate, BucketKey, BucketState, Identity, RevealRecord, Submission

logger = structlog.get_logger(__name__)

LEDGER_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class LedgerSnapshot:
    submissions: Dict[Identity, Submission] = field(default_factory=dict)
    buckets: Dict[BucketKey, BucketState] = field(default_factory=dict)
    reveals: Dict[BucketKey, RevealRecord] = field(default_factory=dict)


class LedgerStore(Protocol):
    def load(self) -> Optional[LedgerSnapshot]: ...
    def save(self, snapshot: LedgerSnapshot) -> None: ...


# =============================================================================
# Stores
# =============================================================================

class MemoryLedgerStore:
    """Keeps the latest snapshot in process memory. Lost on restart."""

    def __init__(self) -> None:
        self._snapshot: Optional[LedgerSnapshot] = None

    def load(self) -> Optional[LedgerSnapshot]:
        return self._snapshot

    def save(self, snapshot: LedgerSnapshot) -> None:
        self._snapshot = snapshot


class JsonFileLedgerStore:
    """
    Durable store: one JSON document, rewritten atomically on every commit.

    Ciphertexts go through the codec; the store never interprets them.
    """

    def __init__(self, path: str | Path, codec: CiphertextCodec) -> None:
        self.path = Path(path)
        self._codec = codec

    def load(self) -> Optional[LedgerSnapshot]:
        if not self.path.exists():
            return None
        try:
            obj = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise LedgerCorrupted(
                f"Ledger file unreadable: {self.path}",
                details={"path": str(self.path), "error_type": type(e).__name__},
                cause=e,
            )
        if not isinstance(obj, dict) or obj.get("schema_version") != LEDGER_SCHEMA_VERSION:
            raise LedgerCorrupted(
                f"Unsupported ledger document: {self.path}",
                details={"path": str(self.path), "expected_schema_version": LEDGER_SCHEMA_VERSION},
            )
        try:
            snapshot = self._from_json_dict(obj)
        except (AttributeError, KeyError, TypeError, ValueError, InvalidBucket) as e:
            raise LedgerCorrupted(
                f"Ledger document malformed: {self.path}",
                details={"path": str(self.path), "error": str(e)},
                cause=e,
            )
        _verify_counts(snapshot, where=str(self.path))
        logger.info(
            "ledger_loaded",
            path=str(self.path),
            submissions=len(snapshot.submissions),
            buckets=len(snapshot.buckets),
        )
        return snapshot

    def save(self, snapshot: LedgerSnapshot) -> None:
        text = json.dumps(self._to_json_dict(snapshot), sort_keys=True, indent=2, ensure_ascii=False) + "\n"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=self.path.name + ".", suffix=".tmp", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.debug("ledger_persisted", path=str(self.path), submissions=len(snapshot.submissions))

    def _to_json_dict(self, snapshot: LedgerSnapshot) -> Dict[str, Any]:
        enc = self._codec.encode
        return {
            "schema_version": LEDGER_SCHEMA_VERSION,
            "submissions": {
                ident: {
                    "bucket": str(s.bucket),
                    "submitted_at": s.submitted_at.isoformat(),
                    "ciphertext": enc(s.ciphertext),
                }
                for ident, s in snapshot.submissions.items()
            },
            "buckets": {
                str(k): {"count": st.count, "ciphertext": enc(st.ciphertext)}
                for k, st in snapshot.buckets.items()
            },
            "reveals": {
                str(k): {"count": r.count, "sum": r.aggregate.sum, "average": r.aggregate.average}
                for k, r in snapshot.reveals.items()
            },
        }

    def _from_json_dict(self, obj: Dict[str, Any]) -> LedgerSnapshot:
        dec = self._codec.decode
        submissions: Dict[Identity, Submission] = {}
        for ident, s in _section(obj, "submissions").items():
            submissions[ident] = Submission(
                identity=ident,
                bucket=BucketKey.from_str(s["bucket"]),
                ciphertext=dec(s["ciphertext"]),
                submitted_at=datetime.fromisoformat(s["submitted_at"]),
            )
        buckets: Dict[BucketKey, BucketState] = {}
        for key, st in _section(obj, "buckets").items():
            bk = BucketKey.from_str(key)
            buckets[bk] = BucketState(bucket=bk, ciphertext=dec(st["ciphertext"]), count=int(st["count"]))
        reveals: Dict[BucketKey, RevealRecord] = {}
        for key, r in _section(obj, "reveals").items():
            bk = BucketKey.from_str(key)
            count = int(r["count"])
            agg = Aggregate(bucket=bk, sum=int(r["sum"]), count=count, average=int(r["average"]))
            reveals[bk] = RevealRecord(bucket=bk, aggregate=agg, count=count)
        return LedgerSnapshot(submissions=submissions, buckets=buckets, reveals=reveals)


def _section(obj: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = obj.get(name) or {}
    if not isinstance(value, dict):
        raise TypeError(f"section '{name}' must be an object, got {type(value).__name__}")
    return value


def _verify_counts(snapshot: LedgerSnapshot, *, where: str) -> None:
    logged = Counter(s.bucket for s in snapshot.submissions.values())
    recorded = {k: st.count for k, st in snapshot.buckets.items()}
    if dict(logged) != recorded:
        mismatched = sorted(str(k) for k in set(logged) | set(recorded) if logged.get(k, 0) != recorded.get(k, 0))
        raise LedgerCorrupted(
            "Bucket counts disagree with the submission log",
            details={"where": where, "buckets": mismatched},
        )


# =============================================================================
# Ledger
# =============================================================================

class BucketLedger:
    """
    Serialized state machine over buckets.

    One re-entrant lock covers every mutation and every consistent read, so a
    reader never sees a count without its matching accumulator.
    """

    def __init__(self, capability: EncryptionCapability, store: Optional[LedgerStore] = None) -> None:
        self._capability = capability
        self._store: LedgerStore = store if store is not None else MemoryLedgerStore()
        self._lock = threading.RLock()
        self._state = self._store.load() or LedgerSnapshot()

    # -- reads ---------------------------------------------------------------

    def has_submitted(self, identity: Identity) -> bool:
        with self._lock:
            return identity in self._state.submissions

    def count(self, bucket: BucketKey) -> int:
        with self._lock:
            st = self._state.buckets.get(bucket)
            return st.count if st is not None else 0

    def snapshot(self, bucket: BucketKey) -> Optional[Any]:
        """Current accumulated ciphertext for bucket, or None if never touched."""
        with self._lock:
            st = self._state.buckets.get(bucket)
            return st.ciphertext if st is not None else None

    def read(self, bucket: BucketKey) -> Optional[BucketState]:
        """Consistent (count, accumulator) pair for bucket."""
        with self._lock:
            return self._state.buckets.get(bucket)

    def buckets(self) -> List[BucketState]:
        with self._lock:
            return sorted(self._state.buckets.values(), key=lambda st: (int(st.bucket.role), int(st.bucket.experience)))

    def submission_count(self) -> int:
        with self._lock:
            return len(self._state.submissions)

    def reveal_record(self, bucket: BucketKey) -> Optional[RevealRecord]:
        with self._lock:
            return self._state.reveals.get(bucket)

    # -- mutations -----------------------------------------------------------

    def accumulate(self, bucket: BucketKey, ciphertext: Any) -> BucketState:
        """
        Homomorphically add ciphertext into bucket's running sum.

        Returns the resulting state with the count unchanged (a fresh bucket
        starts at count 0). Nothing is committed here; commit() pairs the
        result with its increment and the submission record.
        """
        with self._lock:
            current = self._state.buckets.get(bucket)
            if current is None:
                return BucketState(bucket=bucket, ciphertext=ciphertext, count=0)
            return BucketState(
                bucket=bucket,
                ciphertext=self._capability.homomorphic_add(current.ciphertext, ciphertext),
                count=current.count,
            )

    def commit(self, submission: Submission) -> BucketState:
        """
        Append submission, fold its ciphertext into its bucket and bump the
        count, all or nothing. The new state is persisted before it becomes
        visible; if the store raises, the ledger is unchanged.
        """
        with self._lock:
            if submission.identity in self._state.submissions:
                raise AlreadySubmitted()

            accumulated = self.accumulate(submission.bucket, submission.ciphertext)
            updated = BucketState(
                bucket=submission.bucket,
                ciphertext=accumulated.ciphertext,
                count=accumulated.count + 1,
            )

            submissions = dict(self._state.submissions)
            submissions[submission.identity] = submission
            buckets = dict(self._state.buckets)
            buckets[submission.bucket] = updated
            reveals = self._state.reveals

            pending = LedgerSnapshot(submissions=submissions, buckets=buckets, reveals=reveals)
            self._store.save(pending)
            self._state = pending
            return updated

    def store_reveal(self, record: RevealRecord) -> None:
        """Remember a disclosed aggregate. Counts and accumulators are untouched."""
        with self._lock:
            reveals = dict(self._state.reveals)
            reveals[record.bucket] = record
            pending = LedgerSnapshot(
                submissions=self._state.submissions,
                buckets=self._state.buckets,
                reveals=reveals,
            )
            self._store.save(pending)
            self._state = pending
