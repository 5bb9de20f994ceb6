"""Reversible obfuscation of data at rest.

The codec scrambles the persisted file so it is unreadable to a person without
the key. It is NOT cryptographic protection: the IV is derived from the key,
so equal plaintexts produce equal ciphertexts, and nothing authenticates the
payload. Treat it as obfuscation only.

Key and IV come from OpenSSL's ``EVP_BytesToKey`` (MD5, one round, no salt),
which is what ``crypto.createCipher('aes-256-cbc', key)`` used, so files
written by earlier JSON file proxies remain readable.
"""

from __future__ import annotations

import hashlib

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import ConfigurationError, DecryptionError

_KEY_SIZE = 32
_BLOCK_SIZE = algorithms.AES.block_size // 8


def _evp_bytes_to_key(secret: bytes, key_len: int = _KEY_SIZE, iv_len: int = _BLOCK_SIZE) -> tuple[bytes, bytes]:
    derived = b""
    block = b""
    while len(derived) < key_len + iv_len:
        block = hashlib.md5(block + secret).digest()
        derived += block
    return derived[:key_len], derived[key_len : key_len + iv_len]


class CipherCodec:
    """AES-256-CBC codec producing lowercase hex text."""

    def __init__(self, key: str) -> None:
        if not key:
            raise ConfigurationError("encryption key must be non-empty")
        self._key, self._iv = _evp_bytes_to_key(key.encode("utf-8"))

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CBC(self._iv))

    def encrypt(self, plaintext: str) -> str:
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = self._cipher().encryptor()
        return (encryptor.update(padded) + encryptor.finalize()).hex()

    def decrypt(self, ciphertext: str) -> str:
        """Invert :meth:`encrypt`.

        Raises:
            DecryptionError: If the input is not hex, is truncated, or does not
                unpad/decode cleanly (almost always a wrong key).
        """
        try:
            raw = bytes.fromhex(ciphertext.strip())
        except ValueError as exc:
            raise DecryptionError("ciphertext is not valid hex") from exc
        if not raw or len(raw) % _BLOCK_SIZE:
            raise DecryptionError("ciphertext is truncated or empty")

        decryptor = self._cipher().decryptor()
        padded = decryptor.update(raw) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            data = unpadder.update(padded) + unpadder.finalize()
        except ValueError as exc:
            raise DecryptionError("bad decrypt: wrong encryption key or corrupt content") from exc
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError("decrypted content is not UTF-8: wrong encryption key") from exc


def encrypt(plaintext: str, key: str) -> str:
    return CipherCodec(key).encrypt(plaintext)


def decrypt(ciphertext: str, key: str) -> str:
    return CipherCodec(key).decrypt(ciphertext)
