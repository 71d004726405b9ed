from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List

import pytest

from salary_reveal.config import EngineConfig, RevealConfig, RevealPolicy
from salary_reveal.engine import SalaryRevealEngine
from salary_reveal.types import RevealAuthorization


@dataclass(frozen=True)
class Sealed:
    """Stand-in ciphertext. The engine must never read .plaintext itself."""
    plaintext: int
    key_id: str = "stub"


class StubCapability:
    """Additive 'encryption' with call bookkeeping, for testing the engine alone."""

    def __init__(self) -> None:
        self.encrypt_calls = 0
        self.decrypt_calls: List[RevealAuthorization] = []
        self.fail_encrypt = False
        self.fail_decrypt = False

    def encrypt(self, plaintext: int) -> Sealed:
        self.encrypt_calls += 1
        if self.fail_encrypt:
            raise RuntimeError("backend unavailable")
        return Sealed(plaintext)

    def homomorphic_add(self, a: Sealed, b: Sealed) -> Sealed:
        if a.key_id != b.key_id:
            raise ValueError("mixed keys")
        return Sealed(a.plaintext + b.plaintext, a.key_id)

    def decrypt(self, ciphertext: Sealed, authorization: RevealAuthorization) -> int:
        self.decrypt_calls.append(authorization)
        if self.fail_decrypt:
            raise RuntimeError("hsm offline")
        return ciphertext.plaintext

    def encode(self, ciphertext: Sealed) -> Any:
        return {"p": ciphertext.plaintext, "k": ciphertext.key_id}

    def decode(self, obj: Any) -> Sealed:
        return Sealed(int(obj["p"]), obj["k"])


def make_config(threshold_k: int = 3, hide_count: bool = True, policy: RevealPolicy = RevealPolicy.FRESH) -> EngineConfig:
    return EngineConfig(reveal=RevealConfig(threshold_k=threshold_k, hide_count=hide_count, policy=policy))


@pytest.fixture
def stub() -> StubCapability:
    return StubCapability()


@pytest.fixture
def engine(stub: StubCapability) -> SalaryRevealEngine:
    return SalaryRevealEngine(stub, make_config())
