from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional


class ExitCode(int, Enum):
    OK = 0
    CONFIG_INVALID = 10
    POLICY_REJECTED = 20
    RUNTIME_ERROR = 30
    DEPENDENCY_ERROR = 40
    INTERNAL_ERROR = 50


@dataclass(frozen=True)
class SalaryRevealProblem:
    code: str                 # stable machine code, e.g. "SR_BELOW_THRESHOLD"
    category: str             # "config" | "policy" | "runtime" | "dependency" | "internal"
    message: str              # short human message
    details: Dict[str, Any]   # structured details for audit/debug; never plaintext values
    remediation: Optional[str] = None  # actionable next step


class SalaryRevealException(Exception):
    def __init__(
        self,
        problem: SalaryRevealProblem,
        exit_code: ExitCode,
        *,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(problem.message)
        self.problem = problem
        self.exit_code = exit_code
        self.__cause__ = cause

    @property
    def code(self) -> str:
        return self.problem.code


def problem_to_dict(p: SalaryRevealProblem) -> Dict[str, Any]:
    d = asdict(p)
    if d.get("remediation") is None:
        d.pop("remediation", None)
    return d


# =============================================================================
# Submission errors
# =============================================================================

class AlreadySubmitted(SalaryRevealException):
    def __init__(self) -> None:
        super().__init__(
            SalaryRevealProblem(
                code="SR_ALREADY_SUBMITTED",
                category="policy",
                message="This identity has already submitted a figure.",
                details={},
                remediation="Each identity may contribute once; submissions cannot be altered.",
            ),
            ExitCode.POLICY_REJECTED,
        )


class InvalidBucket(SalaryRevealException):
    def __init__(self, field: str, received: Any, allowed: list) -> None:
        super().__init__(
            SalaryRevealProblem(
                code="SR_INVALID_BUCKET",
                category="policy",
                message=f"Unknown {field}: {received!r}",
                details={"field": field, "allowed": allowed},
                remediation=f"Use one of the configured {field} values.",
            ),
            ExitCode.POLICY_REJECTED,
        )


class ValueOutOfRange(SalaryRevealException):
    def __init__(self, reason: str, *, min_value: int, max_value: int) -> None:
        # never echo the rejected value
        super().__init__(
            SalaryRevealProblem(
                code="SR_VALUE_OUT_OF_RANGE",
                category="policy",
                message=f"Compensation figure rejected: {reason}",
                details={"reason": reason, "min_value": min_value, "max_value": max_value},
                remediation="Submit a whole-unit figure within the accepted range.",
            ),
            ExitCode.POLICY_REJECTED,
        )


class EncryptionFailure(SalaryRevealException):
    def __init__(self, cause: BaseException) -> None:
        super().__init__(
            SalaryRevealProblem(
                code="SR_ENCRYPTION_FAILURE",
                category="dependency",
                message="Encryption backend failed; nothing was recorded.",
                details={"error_type": type(cause).__name__},
                remediation="Check the encryption backend and resubmit.",
            ),
            ExitCode.DEPENDENCY_ERROR,
            cause=cause,
        )


# =============================================================================
# Reveal errors
# =============================================================================

class BelowThreshold(SalaryRevealException):
    def __init__(self, bucket: str, threshold_k: int, participants: Optional[int] = None) -> None:
        details: Dict[str, Any] = {"bucket": bucket, "threshold_k": threshold_k}
        if participants is not None:
            details["participants"] = participants
        super().__init__(
            SalaryRevealProblem(
                code="SR_BELOW_THRESHOLD",
                category="policy",
                message="Not enough participants in this bucket to disclose an aggregate.",
                details=details,
                remediation="Wait for more submissions to this bucket.",
            ),
            ExitCode.POLICY_REJECTED,
        )


class DecryptionFailure(SalaryRevealException):
    def __init__(self, bucket: str, cause: BaseException) -> None:
        super().__init__(
            SalaryRevealProblem(
                code="SR_DECRYPTION_FAILURE",
                category="dependency",
                message="Decryption backend failed; no aggregate disclosed.",
                details={"bucket": bucket, "error_type": type(cause).__name__},
                remediation="Check the decryption key and backend, then retry the reveal.",
            ),
            ExitCode.DEPENDENCY_ERROR,
            cause=cause,
        )


# =============================================================================
# Storage / configuration errors
# =============================================================================

class LedgerCorrupted(SalaryRevealException):
    def __init__(self, message: str, *, details: Dict[str, Any], cause: Optional[BaseException] = None) -> None:
        super().__init__(
            SalaryRevealProblem(
                code="SR_LEDGER_CORRUPTED",
                category="runtime",
                message=message,
                details=details,
                remediation="Restore the ledger file from a known-good copy.",
            ),
            ExitCode.RUNTIME_ERROR,
            cause=cause,
        )


class ConfigError(SalaryRevealException):
    def __init__(
        self,
        code: str,
        message: str,
        *,
        details: Dict[str, Any],
        remediation: str,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            SalaryRevealProblem(
                code=code,
                category="config",
                message=message,
                details=details,
                remediation=remediation,
            ),
            ExitCode.CONFIG_INVALID,
            cause=cause,
        )
