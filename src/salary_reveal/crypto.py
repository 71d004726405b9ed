"""
Encryption capability for salary_reveal.

The engine never looks inside a ciphertext. It only needs three operations:

- encrypt(plaintext) -> ciphertext
- homomorphic_add(a, b) -> ciphertext whose decryption is dec(a) + dec(b)
- decrypt(ciphertext, authorization) -> plaintext

plus a codec so that ciphertexts can be written to durable storage.

PaillierCapability is the production backend, built on python-paillier (phe).
Paillier is additively homomorphic over the integers, which is exactly the
sum-per-bucket shape this engine needs.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Tuple

from phe import paillier

from .types import RevealAuthorization


DEFAULT_N_LENGTH = 2048
KEY_FILE_SCHEMA = "salary_reveal.paillier/1"


class EncryptionCapability(Protocol):
    def encrypt(self, plaintext: int) -> Any: ...
    def homomorphic_add(self, a: Any, b: Any) -> Any: ...
    def decrypt(self, ciphertext: Any, authorization: RevealAuthorization) -> int: ...


class CiphertextCodec(Protocol):
    def encode(self, ciphertext: Any) -> Any: ...
    def decode(self, obj: Any) -> Any: ...


# =============================================================================
# Paillier backend
# =============================================================================

def generate_keypair(
    n_length: int = DEFAULT_N_LENGTH,
) -> Tuple[paillier.PaillierPublicKey, paillier.PaillierPrivateKey]:
    """Generate a Paillier public/private keypair."""
    pub, priv = paillier.generate_paillier_keypair(n_length=n_length)
    return pub, priv


@dataclass
class PaillierCapability:
    """
    Additive-homomorphic capability backed by phe.

    A capability built without a private key can encrypt and accumulate but
    refuses to decrypt; that is the shape a submission-only node runs with.
    """
    public_key: paillier.PaillierPublicKey
    private_key: Optional[paillier.PaillierPrivateKey] = None

    @classmethod
    def generate(cls, n_length: int = DEFAULT_N_LENGTH) -> PaillierCapability:
        pub, priv = generate_keypair(n_length)
        return cls(public_key=pub, private_key=priv)

    @property
    def max_plaintext(self) -> int:
        return int(self.public_key.max_int)

    def encrypt(self, plaintext: int) -> paillier.EncryptedNumber:
        if not isinstance(plaintext, int) or isinstance(plaintext, bool):
            raise TypeError("Paillier plaintexts must be integers")
        return self.public_key.encrypt(plaintext)

    def homomorphic_add(self, a: paillier.EncryptedNumber, b: paillier.EncryptedNumber) -> paillier.EncryptedNumber:
        # phe raises ValueError when the operands were encrypted under different keys
        return a + b

    def decrypt(self, ciphertext: paillier.EncryptedNumber, authorization: RevealAuthorization) -> int:
        if self.private_key is None:
            raise PermissionError("No private key loaded; this capability cannot decrypt")
        if not isinstance(authorization, RevealAuthorization):
            raise PermissionError("Decryption requires a RevealAuthorization")
        if authorization.participants < authorization.threshold_k:
            raise PermissionError("Authorization does not meet its own disclosure threshold")
        return int(self.private_key.decrypt(ciphertext))

    # -- codec ---------------------------------------------------------------

    def encode(self, ciphertext: paillier.EncryptedNumber) -> Dict[str, Any]:
        return {"c": str(ciphertext.ciphertext()), "e": int(ciphertext.exponent)}

    def decode(self, obj: Any) -> paillier.EncryptedNumber:
        if not isinstance(obj, dict) or "c" not in obj:
            raise ValueError(f"Not a serialized Paillier ciphertext: {type(obj).__name__}")
        return paillier.EncryptedNumber(self.public_key, int(obj["c"]), int(obj.get("e", 0)))


# =============================================================================
# Key files
# =============================================================================

def save_keypair(path: str | Path, capability: PaillierCapability, *, include_private: bool = True) -> Path:
    """
    Write the keypair as JSON. The file holds the private primes when
    include_private is set, so it must be stored with the same care as any
    other decryption key.
    """
    obj: Dict[str, Any] = {
        "schema": KEY_FILE_SCHEMA,
        "public": {"n": str(capability.public_key.n)},
    }
    if include_private and capability.private_key is not None:
        obj["private"] = {
            "p": str(capability.private_key.p),
            "q": str(capability.private_key.q),
        }
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(obj, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return p


def load_keypair(path: str | Path) -> PaillierCapability:
    p = Path(path)
    obj = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(obj, dict) or obj.get("schema") != KEY_FILE_SCHEMA:
        raise ValueError(f"Unrecognised key file: {path}")
    pub = paillier.PaillierPublicKey(int(obj["public"]["n"]))
    priv = None
    if "private" in obj:
        priv = paillier.PaillierPrivateKey(pub, int(obj["private"]["p"]), int(obj["private"]["q"]))
    return PaillierCapability(public_key=pub, private_key=priv)
