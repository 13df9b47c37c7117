from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

RECORD_MAGIC = b"DVP1"
NONCE_SIZE = 12
TAG_SIZE = 16
HEADER_SIZE = len(RECORD_MAGIC) + NONCE_SIZE + TAG_SIZE


def seal_record(key: bytes, plaintext: bytes, *, aad: bytes) -> bytes:
    """Encrypts a record with AES-256-GCM.

    Returns magic | nonce | tag | ciphertext, ready to be written to disk.
    """
    if len(key) != 32:
        raise ValueError("key must be 32 bytes")

    nonce = os.urandom(NONCE_SIZE)
    encryptor = Cipher(algorithms.AES(key), modes.GCM(nonce)).encryptor()
    encryptor.authenticate_additional_data(aad)
    ct = encryptor.update(plaintext) + encryptor.finalize()
    return RECORD_MAGIC + nonce + encryptor.tag + ct


def open_record(key: bytes, blob: bytes, *, aad: bytes) -> bytes:
    """Verifies and decrypts a blob produced by seal_record.

    Raises ValueError on any framing or authentication failure.
    """
    if len(key) != 32:
        raise ValueError("key must be 32 bytes")
    if len(blob) < HEADER_SIZE or not blob.startswith(RECORD_MAGIC):
        raise ValueError("Record header is missing or truncated")

    offset = len(RECORD_MAGIC)
    nonce = blob[offset : offset + NONCE_SIZE]
    tag = blob[offset + NONCE_SIZE : HEADER_SIZE]
    ct = blob[HEADER_SIZE:]

    decryptor = Cipher(algorithms.AES(key), modes.GCM(nonce, tag)).decryptor()
    decryptor.authenticate_additional_data(aad)
    plain = decryptor.update(ct)
    try:
        return plain + decryptor.finalize()
    except InvalidTag as exc:
        raise ValueError("Decryption failed (invalid tag)") from exc
