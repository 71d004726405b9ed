from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import InvalidBucket


Identity = str


class _CodedEnum(int, Enum):
    """
    Closed enumeration with an integer wire code and a human label.

    parse() accepts a member, its integer code, its name or its label
    (case-insensitive). Anything else raises InvalidBucket.
    """

    def __new__(cls, code: int, label: str):
        obj = int.__new__(cls, code)
        obj._value_ = code
        obj.label = label
        return obj

    @classmethod
    def _field_name(cls) -> str:
        raise NotImplementedError

    @classmethod
    def allowed(cls) -> List[str]:
        return [m.name for m in cls]

    @classmethod
    def parse(cls, raw: Any):
        if isinstance(raw, cls):
            return raw
        # bool is an int subclass; True must not silently mean code 1
        if isinstance(raw, int) and not isinstance(raw, bool):
            try:
                return cls(raw)
            except ValueError:
                raise InvalidBucket(cls._field_name(), raw, cls.allowed()) from None
        if isinstance(raw, str):
            text = raw.strip()
            if text.isdecimal():
                return cls.parse(int(text))
            folded = text.casefold()
            for m in cls:
                if folded in (m.name.casefold(), m.label.casefold()):
                    return m
        raise InvalidBucket(cls._field_name(), raw, cls.allowed())


class RoleCategory(_CodedEnum):
    JUNIOR = (1, "Junior")
    MID = (2, "Mid-level")
    SENIOR = (3, "Senior")
    LEAD = (4, "Lead")

    @classmethod
    def _field_name(cls) -> str:
        return "role"


class ExperienceLevel(_CodedEnum):
    Y0_2 = (1, "0-2 years")
    Y2_5 = (2, "2-5 years")
    Y5_10 = (3, "5-10 years")
    Y10_15 = (4, "10-15 years")
    Y15_PLUS = (5, "15+ years")

    @classmethod
    def _field_name(cls) -> str:
        return "experience"


@dataclass(frozen=True)
class BucketKey:
    role: RoleCategory
    experience: ExperienceLevel

    @classmethod
    def of(cls, role: Any, experience: Any) -> BucketKey:
        return cls(RoleCategory.parse(role), ExperienceLevel.parse(experience))

    @classmethod
    def from_str(cls, s: str) -> BucketKey:
        role, sep, exp = s.partition(":")
        if not sep:
            raise InvalidBucket("bucket", s, ["<role>:<experience>"])
        return cls.of(role, exp)

    def __str__(self) -> str:
        return f"{int(self.role)}:{int(self.experience)}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": str(self),
            "role": self.role.label,
            "experience": self.experience.label,
        }


@dataclass(frozen=True)
class Submission:
    identity: Identity
    bucket: BucketKey
    ciphertext: Any  # opaque, owned by the encryption capability
    submitted_at: datetime


@dataclass(frozen=True)
class BucketState:
    bucket: BucketKey
    ciphertext: Any  # homomorphic running sum
    count: int


@dataclass(frozen=True)
class Aggregate:
    bucket: BucketKey
    sum: int
    count: int
    average: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bucket": self.bucket.to_dict(),
            "sum": self.sum,
            "count": self.count,
            "average": self.average,
        }


@dataclass(frozen=True)
class RevealRecord:
    bucket: BucketKey
    aggregate: Aggregate
    count: int  # participants at disclosure time


@dataclass(frozen=True)
class RevealAuthorization:
    """Handed to the decryption capability alongside the ciphertext it may open."""
    bucket: BucketKey
    participants: int
    threshold_k: int


@dataclass(frozen=True)
class BucketStatus:
    bucket: BucketKey
    revealable: bool
    participants: Optional[int] = None  # omitted when counts are hidden

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"bucket": self.bucket.to_dict(), "revealable": self.revealable}
        if self.participants is not None:
            d["participants"] = self.participants
        return d
