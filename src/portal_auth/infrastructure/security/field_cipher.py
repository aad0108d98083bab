"""Field-level authenticated encryption for regulated personal data.

Values are stored as ``enc:<nonce>:<tag>:<ciphertext>`` (lowercase hex) using
AES-256-GCM with a key derived from the operator secret by SHA-256. Values
without the ``enc:`` prefix are legacy plaintext and pass through ``decrypt``
unchanged. ``blind_index`` gives a keyed HMAC-SHA256 digest for equality
lookups over encrypted columns (for example TFN uniqueness).

Two modes exist and call sites can check ``cipher.mode``:

* ``ConfiguredFieldCipher`` encrypts and decrypts with the derived key.
* ``UnconfiguredFieldCipher`` is used when no key is set. It stores values in
  plaintext. This is a rollout compatibility compromise, not a security
  control: deployments holding TFN/ABN data must configure a key.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import os
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from enum import StrEnum
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from portal_auth.config.policy import require_secret
from portal_auth.domain.auth.errors import ConfigurationError, IntegrityError

ENCRYPTED_PREFIX = "enc:"
NONCE_BYTES = 16
TAG_BYTES = 16
_HEX_SEGMENT = re.compile(r"[0-9a-f]+")
logger = logging.getLogger(__name__)


class FieldCipherMode(StrEnum):
    """Whether field encryption is active."""

    CONFIGURED = "configured"
    UNCONFIGURED = "unconfigured"


def derive_key(secret: str | None) -> bytes:
    """Normalize an operator secret of any length into a 32-byte AES key."""

    if not secret:
        raise ConfigurationError("field encryption key is not configured")
    return hashlib.sha256(secret.encode("utf-8")).digest()


def is_encrypted(value: str | None) -> bool:
    """Return whether a stored value is in envelope form."""

    return value is not None and value.startswith(ENCRYPTED_PREFIX)


def _parse_envelope(envelope: str) -> tuple[bytes, bytes, bytes]:
    segments = envelope[len(ENCRYPTED_PREFIX):].split(":")
    if len(segments) != 3 or not all(_HEX_SEGMENT.fullmatch(segment) for segment in segments):
        raise IntegrityError("encrypted field envelope is malformed")
    try:
        nonce, tag, ciphertext = (bytes.fromhex(segment) for segment in segments)
    except ValueError as error:
        raise IntegrityError("encrypted field envelope is malformed") from error
    if len(nonce) != NONCE_BYTES or len(tag) != TAG_BYTES:
        raise IntegrityError("encrypted field envelope is malformed")
    return nonce, tag, ciphertext


class FieldCipher(ABC):
    """Encrypt, decrypt, index and mask sensitive string fields."""

    mode: FieldCipherMode

    @property
    def is_configured(self) -> bool:
        return self.mode is FieldCipherMode.CONFIGURED

    @abstractmethod
    def encrypt(self, plaintext: str) -> str:
        """Return the envelope for a value; envelopes and empty input pass through."""

    @abstractmethod
    def decrypt(self, value: str) -> str:
        """Return plaintext for an envelope; legacy plaintext passes through."""

    @abstractmethod
    def blind_index(self, plaintext: str) -> str:
        """Return a deterministic keyed digest for equality lookups."""

    def safe_encrypt(self, plaintext: str | None) -> str | None:
        """Encrypt when possible, otherwise keep the value as stored."""

        if not plaintext:
            return plaintext
        return self.encrypt(plaintext)

    def safe_decrypt(self, value: str | None) -> str | None:
        """Decrypt when possible, otherwise keep the value as stored."""

        if not value:
            return value
        return self.decrypt(value)

    def safe_blind_index(self, plaintext: str | None) -> str | None:
        """Return a blind index, or None when input is empty or no key is set."""

        if not plaintext:
            return None
        return self.blind_index(plaintext)

    def mask(self, value: str, *, visible: int = 3) -> str:
        """Redact all but the last ``visible`` characters for display."""

        if not value:
            return value
        plain = self.decrypt(value)
        shown = plain[-visible:] if visible > 0 else ""
        return "*" * max(0, len(plain) - len(shown)) + shown

    def mask_tfn(self, value: str) -> str:
        """Display a Tax File Number as ``***-***-NNN``."""

        if not value:
            return value
        return "***-***-" + self.decrypt(value)[-3:]

    def mask_abn(self, value: str) -> str:
        return self.mask(value, visible=3)

    def encrypt_fields(self, data: Mapping[str, Any], field_names: Iterable[str]) -> dict[str, Any]:
        """Return a copy of ``data`` with the named non-empty string fields encrypted."""

        result = dict(data)
        for name in field_names:
            value = result.get(name)
            if isinstance(value, str) and value:
                result[name] = self.encrypt(value)
        return result

    def decrypt_fields(self, data: Mapping[str, Any], field_names: Iterable[str]) -> dict[str, Any]:
        """Return a copy of ``data`` with the named non-empty string fields decrypted."""

        result = dict(data)
        for name in field_names:
            value = result.get(name)
            if isinstance(value, str) and value:
                result[name] = self.decrypt(value)
        return result


class ConfiguredFieldCipher(FieldCipher):
    """AES-256-GCM field cipher bound to one derived key."""

    mode = FieldCipherMode.CONFIGURED

    def __init__(self, key: bytes) -> None:
        if len(key) != 32:
            raise ConfigurationError("field encryption key must be 32 bytes")
        self._key = key
        self._aead = AESGCM(key)

    @classmethod
    def from_secret(cls, secret: str) -> ConfiguredFieldCipher:
        return cls(derive_key(secret))

    def encrypt(self, plaintext: str) -> str:
        if not plaintext or is_encrypted(plaintext):
            return plaintext

        nonce = os.urandom(NONCE_BYTES)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return f"{ENCRYPTED_PREFIX}{nonce.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, value: str) -> str:
        if not is_encrypted(value):
            return value

        nonce, tag, ciphertext = _parse_envelope(value)
        try:
            plaintext = self._aead.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as error:
            raise IntegrityError() from error
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as error:
            raise IntegrityError() from error

    def blind_index(self, plaintext: str) -> str:
        if not plaintext:
            return plaintext
        return hmac.new(self._key, plaintext.encode("utf-8"), hashlib.sha256).hexdigest()


class UnconfiguredFieldCipher(FieldCipher):
    """Pass-through cipher used while no encryption key is configured.

    ``encrypt`` is the identity function. Envelopes written by a configured
    deployment cannot be read here: ``decrypt`` raises ``ConfigurationError``
    for them while ``safe_decrypt`` returns them unchanged.
    """

    mode = FieldCipherMode.UNCONFIGURED

    def encrypt(self, plaintext: str) -> str:
        return plaintext

    def decrypt(self, value: str) -> str:
        if is_encrypted(value):
            raise ConfigurationError("field encryption key is not configured")
        return value

    def blind_index(self, plaintext: str) -> str:
        raise ConfigurationError("field encryption key is not configured")

    def safe_decrypt(self, value: str | None) -> str | None:
        if is_encrypted(value):
            return value
        return super().safe_decrypt(value)

    def safe_blind_index(self, plaintext: str | None) -> str | None:
        return None


def build_field_cipher(secret: str | None) -> FieldCipher:
    """Return the configured cipher for a secret, or pass-through when unset."""

    if not secret:
        logger.warning("field_encryption_unconfigured mode=%s", FieldCipherMode.UNCONFIGURED)
        return UnconfiguredFieldCipher()
    require_secret(name="field encryption key", value=secret)
    return ConfiguredFieldCipher.from_secret(secret)
