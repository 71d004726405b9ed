import json
from pathlib import Path

import pytest

from salary_reveal.config import CryptoConfig, EngineConfig, RevealConfig, StorageConfig
from salary_reveal.crypto import PaillierCapability, load_keypair, save_keypair
from salary_reveal.engine import build_engine
from salary_reveal.errors import DecryptionFailure
from salary_reveal.types import BucketKey, RevealAuthorization

# small modulus keeps the suite fast; production default is 2048 bits
N_LENGTH = 512


@pytest.fixture(scope="module")
def cap() -> PaillierCapability:
    return PaillierCapability.generate(n_length=N_LENGTH)


def _auth(participants=3, k=3):
    return RevealAuthorization(bucket=BucketKey.of(2, 2), participants=participants, threshold_k=k)


def test_homomorphic_sum(cap):
    total = cap.encrypt(80000)
    for v in (90000, 100000):
        total = cap.homomorphic_add(total, cap.encrypt(v))
    assert cap.decrypt(total, _auth()) == 270000


def test_ciphertexts_differ_for_equal_plaintexts(cap):
    assert cap.encode(cap.encrypt(5)) != cap.encode(cap.encrypt(5))


def test_decrypt_refuses_under_threshold_authorization(cap):
    with pytest.raises(PermissionError):
        cap.decrypt(cap.encrypt(1), _auth(participants=2, k=3))


def test_public_only_capability_cannot_decrypt(cap):
    public = PaillierCapability(public_key=cap.public_key)
    with pytest.raises(PermissionError):
        public.decrypt(public.encrypt(1), _auth())


def test_mixing_keys_fails(cap):
    other = PaillierCapability.generate(n_length=N_LENGTH)
    with pytest.raises(ValueError):
        cap.homomorphic_add(cap.encrypt(1), other.encrypt(1))


def test_encrypt_rejects_non_integers(cap):
    with pytest.raises(TypeError):
        cap.encrypt(1.5)


def test_codec_round_trip(cap):
    ct = cap.homomorphic_add(cap.encrypt(40), cap.encrypt(2))
    assert cap.decrypt(cap.decode(cap.encode(ct)), _auth()) == 42
    with pytest.raises(ValueError):
        cap.decode("garbage")


def test_key_file_round_trip(cap, tmp_path: Path):
    full = load_keypair(save_keypair(tmp_path / "keys.json", cap))
    assert full.decrypt(cap.encrypt(7), _auth()) == 7

    public = load_keypair(save_keypair(tmp_path / "pub.json", cap, include_private=False))
    assert public.private_key is None
    assert full.decrypt(public.encrypt(9), _auth()) == 9


def test_end_to_end_with_paillier_and_file_ledger(cap, tmp_path: Path):
    key_path = save_keypair(tmp_path / "keys.json", cap)
    cfg = EngineConfig(
        reveal=RevealConfig(threshold_k=3),
        storage=StorageConfig(path=str(tmp_path / "ledger.json")),
        crypto=CryptoConfig(key_path=str(key_path), n_length=N_LENGTH),
    )

    eng = build_engine(cfg)
    for ident, v in [("I1", 80000), ("I2", 90000), ("I3", 100000)]:
        eng.submit(v, "Mid", 2, identity=ident)

    doc = json.loads((tmp_path / "ledger.json").read_text(encoding="utf-8"))
    assert all(set(s) == {"bucket", "submitted_at", "ciphertext"} for s in doc["submissions"].values())
    assert doc["reveals"] == {}

    restarted = build_engine(cfg)
    agg = restarted.reveal("Mid", 2)
    assert (agg.sum, agg.count, agg.average) == (270000, 3, 90000)


def test_missing_private_key_surfaces_as_decryption_failure(cap):
    cfg = EngineConfig(reveal=RevealConfig(threshold_k=1))
    eng = build_engine(cfg, capability=PaillierCapability(public_key=cap.public_key))
    eng.submit(123456, 1, 1, identity="solo")
    with pytest.raises(DecryptionFailure):
        eng.reveal(1, 1)
    assert eng.ledger.count(BucketKey.of(1, 1)) == 1
