from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from jsonfile_proxy import (
    CipherCodec,
    ConfigurationError,
    DecryptionError,
    FilesystemError,
    FormatError,
    LockHeldError,
    LockManager,
    decrypt,
    encrypt,
    ensure_directory,
    resolve_target,
)
from jsonfile_proxy.locking import NO_OWNER
from jsonfile_proxy.serialization import to_envelope_json


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def test_resolve_target_splits_relative_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    target = resolve_target("data/db.json")

    assert target.full_path == (tmp_path / "data" / "db.json").resolve()
    assert target.directory == (tmp_path / "data").resolve()
    assert target.filename == "db.json"
    assert target.lock_path.name == "db.json.lock"
    assert target.lock_path.parent == target.directory


def test_resolve_target_rejects_empty_path() -> None:
    with pytest.raises(ValueError):
        resolve_target("  ")


def test_ensure_directory_creates_nested_and_is_idempotent(tmp_path: Path) -> None:
    deep = tmp_path.joinpath(*[f"level{idx}" for idx in range(40)])
    ensure_directory(deep)
    assert deep.is_dir()

    ensure_directory(deep)
    assert deep.is_dir()


def test_ensure_directory_fails_when_file_occupies_segment(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(FilesystemError, match="not a directory"):
        ensure_directory(blocker / "nested" / "dir")


# ---------------------------------------------------------------------------
# Cipher
# ---------------------------------------------------------------------------


def test_cipher_round_trip_preserves_utf8() -> None:
    plaintext = json.dumps({"data": {"firstname": "The", "lastname": "Doctor", "note": "Allons-y ✓ ü"}})
    ciphertext = encrypt(plaintext, "t3stK3y")

    assert ciphertext != plaintext
    assert all(ch in "0123456789abcdef" for ch in ciphertext)
    assert decrypt(ciphertext, "t3stK3y") == plaintext


def test_cipher_is_deterministic_for_same_key() -> None:
    codec = CipherCodec("t3stK3y")
    assert codec.encrypt("payload") == codec.encrypt("payload")
    assert CipherCodec("other").encrypt("payload") != codec.encrypt("payload")


def test_cipher_wrong_key_never_returns_plaintext() -> None:
    plaintext = '{"data":{"lastname":"Doctor"}}'
    ciphertext = encrypt(plaintext, "right-key")
    try:
        recovered = decrypt(ciphertext, "wrong-key")
    except DecryptionError:
        return
    assert recovered != plaintext


@pytest.mark.parametrize("ciphertext", ["zz-not-hex", "", "abcd"])
def test_cipher_rejects_malformed_ciphertext(ciphertext: str) -> None:
    with pytest.raises(DecryptionError):
        decrypt(ciphertext, "t3stK3y")


def test_cipher_rejects_truncated_ciphertext() -> None:
    ciphertext = encrypt("some longer payload for truncation", "t3stK3y")
    with pytest.raises(DecryptionError):
        decrypt(ciphertext[:-2], "t3stK3y")


def test_cipher_requires_key() -> None:
    with pytest.raises(ConfigurationError):
        CipherCodec("")


# ---------------------------------------------------------------------------
# Lock files
# ---------------------------------------------------------------------------


def test_lock_acquire_records_pid_and_release_removes(tmp_path: Path) -> None:
    target = resolve_target(tmp_path / "db.json")
    locks = LockManager(pid=4242)

    assert not locks.is_locked(target)
    assert locks.lock_owner(target) == NO_OWNER

    lock = locks.acquire(target)
    assert lock.owner_pid == 4242
    assert target.lock_path.read_text(encoding="utf-8") == "4242"
    assert locks.is_locked(target)
    assert locks.lock_owner(target) == "4242"

    locks.release(lock)
    assert not target.lock_path.exists()
    assert locks.lock_owner(target) == "None"


def test_lock_second_acquire_fails_immediately(tmp_path: Path) -> None:
    target = resolve_target(tmp_path / "db.json")
    first = LockManager(pid=1111)
    lock = first.acquire(target)

    with pytest.raises(LockHeldError, match="Process ID 1111") as excinfo:
        LockManager(pid=2222).acquire(target)
    assert excinfo.value.owner == "1111"
    assert excinfo.value.path == str(target.full_path)
    assert target.lock_path.read_text(encoding="utf-8") == "1111"

    first.release(lock)


def test_lock_release_fails_when_lock_file_vanished(tmp_path: Path) -> None:
    target = resolve_target(tmp_path / "db.json")
    locks = LockManager()
    lock = locks.acquire(target)
    os.unlink(target.lock_path)

    with pytest.raises(FilesystemError, match="removed by another actor"):
        locks.release(lock)


# ---------------------------------------------------------------------------
# Envelope text
# ---------------------------------------------------------------------------


def test_envelope_json_keeps_insertion_order_and_is_compact() -> None:
    text = to_envelope_json({"b": 2, "a": [1, "x", None, True]})
    assert text == '{"data":{"b":2,"a":[1,"x",null,true]}}'


def test_envelope_json_keeps_large_integers_and_float_type() -> None:
    text = to_envelope_json({"big": 2**60, "price": 3.0})
    assert text == '{"data":{"big":1152921504606846976,"price":3.0}}'
    assert json.loads(text)["data"] == {"big": 2**60, "price": 3.0}


@pytest.mark.parametrize("value", [float("nan"), float("inf"), object()])
def test_envelope_json_rejects_unserializable_values(value: object) -> None:
    with pytest.raises(FormatError, match="cannot serialize"):
        to_envelope_json({"value": value})
