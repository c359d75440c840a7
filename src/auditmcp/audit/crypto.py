"""Field-level AES-GCM encryption of audit ``details`` payloads."""

from __future__ import annotations

import json
import os
import re
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import ValidationError

from auditmcp.audit.errors import DecryptionError
from auditmcp.audit.errors import EncryptionError
from auditmcp.audit.schemas import EncryptedPayload

_IV_BYTES = 12  # 96-bit nonce for GCM
_TAG_BYTES = 16
_VALID_KEY_LENGTHS = (16, 24, 32)
_HEX_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def parse_key(raw: str | bytes) -> bytes:
    """Turn a configured key into AES key bytes.

    Accepts raw bytes, a 64-character hex string (256-bit key), or a text
    key whose UTF-8 encoding is 16, 24 or 32 bytes long.
    """
    if isinstance(raw, bytes):
        key = raw
    elif _HEX_KEY_RE.match(raw):
        key = bytes.fromhex(raw)
    else:
        key = raw.encode("utf-8")

    if len(key) not in _VALID_KEY_LENGTHS:
        raise ValueError(
            "encryption key must be 16, 24 or 32 bytes "
            f"(or 64 hex characters), got {len(key)} bytes"
        )
    return key


class FieldEncryptor:
    """Authenticated encryption of JSON-serializable mappings.

    Each call to :meth:`encrypt` uses a fresh random IV.  The ciphertext,
    IV and authentication tag are hex-encoded separately in the envelope.
    """

    def __init__(self, key: str | bytes) -> None:
        self._aesgcm = AESGCM(parse_key(key))

    def encrypt(self, details: dict[str, Any]) -> EncryptedPayload:
        try:
            plaintext = json.dumps(details, default=str).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"details are not serializable: {exc}") from exc

        iv = os.urandom(_IV_BYTES)
        sealed = self._aesgcm.encrypt(iv, plaintext, None)
        ciphertext, tag = sealed[:-_TAG_BYTES], sealed[-_TAG_BYTES:]
        return EncryptedPayload(
            data=ciphertext.hex(),
            iv=iv.hex(),
            tag=tag.hex(),
        )

    def decrypt(self, payload: EncryptedPayload | dict[str, Any]) -> dict[str, Any]:
        """Return the plaintext mapping, or raise :class:`DecryptionError`."""
        try:
            envelope = (
                payload
                if isinstance(payload, EncryptedPayload)
                else EncryptedPayload.model_validate(payload)
            )
            iv = bytes.fromhex(envelope.iv)
            tag = bytes.fromhex(envelope.tag)
            ciphertext = bytes.fromhex(envelope.data)
            plaintext = self._aesgcm.decrypt(iv, ciphertext + tag, None)
            details = json.loads(plaintext.decode("utf-8"))
        except InvalidTag as exc:
            raise DecryptionError("authentication tag mismatch") from exc
        except (ValidationError, ValueError, UnicodeDecodeError) as exc:
            raise DecryptionError(f"malformed encrypted payload: {exc}") from exc

        if not isinstance(details, dict):
            raise DecryptionError("decrypted payload is not a mapping")
        return details
