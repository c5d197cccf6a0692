# phimask/security/field_cipher.py

"""AES-GCM encryption of individual record fields."""

import base64
import binascii
import logging
import secrets
from typing import Any, MutableMapping, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from phimask.core.domain import EncryptedField
from phimask.core.exceptions import (
    DecryptFailure,
    InvalidInput,
    MissingKeyMaterial,
    UnwrapFailure,
)
from phimask.security.keys import KeyWrapper

logger = logging.getLogger(__name__)

AES_KEY_BYTES = 32
IV_BYTES = 12


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode(data: str) -> bytes:
    return base64.b64decode(data, validate=True)


class FieldCipher:
    """Encrypts and decrypts text fields with a per-record AES-256 key.

    The record key arrives wrapped; it is unwrapped on every call and never
    cached. Every encryption draws a fresh 12-byte IV. The field name is
    bound as associated data, so ciphertext cannot be moved between fields.
    """

    def __init__(self, key_wrapper: KeyWrapper) -> None:
        self._key_wrapper = key_wrapper

    def generate_wrapped_key(self) -> str:
        """Creates a new record key and returns it wrapped."""
        return self._key_wrapper.wrap(AESGCM.generate_key(bit_length=AES_KEY_BYTES * 8))

    def _unwrap(self, wrapped_key: Optional[str]) -> bytes:
        if not wrapped_key:
            raise MissingKeyMaterial("No wrapped AES key supplied for record")

        key = self._key_wrapper.unwrap(wrapped_key)
        if len(key) != AES_KEY_BYTES:
            raise UnwrapFailure(
                f"Unwrapped key has {len(key)} bytes, expected {AES_KEY_BYTES}"
            )
        return key

    def encrypt_text(
        self,
        plaintext: str,
        wrapped_key: Optional[str],
        associated_data: Optional[bytes] = None,
    ) -> EncryptedField:
        """Encrypts ``plaintext`` under a fresh IV.

        Raises:
            MissingKeyMaterial: If no wrapped key is given
            UnwrapFailure: If the key cannot be unwrapped
        """
        key = self._unwrap(wrapped_key)
        iv = secrets.token_bytes(IV_BYTES)
        ciphertext = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), associated_data)
        return EncryptedField(ciphertext=_b64encode(ciphertext), iv=_b64encode(iv))

    def decrypt_text(
        self,
        encrypted: EncryptedField,
        wrapped_key: Optional[str],
        associated_data: Optional[bytes] = None,
    ) -> str:
        """Decrypts a field produced by :meth:`encrypt_text`.

        Raises:
            MissingKeyMaterial: If the key, IV or ciphertext is absent
            UnwrapFailure: If the key cannot be unwrapped
            DecryptFailure: On tag mismatch or corrupt ciphertext/IV
        """
        if not encrypted.iv:
            raise MissingKeyMaterial("No IV stored for encrypted field")
        if not encrypted.ciphertext:
            raise MissingKeyMaterial("No ciphertext stored for encrypted field")

        key = self._unwrap(wrapped_key)

        try:
            iv = _b64decode(encrypted.iv)
            ciphertext = _b64decode(encrypted.ciphertext)
            plaintext = AESGCM(key).decrypt(iv, ciphertext, associated_data)
            return plaintext.decode("utf-8")
        except (InvalidTag, binascii.Error, ValueError) as e:
            raise DecryptFailure("Ciphertext failed authentication or is corrupt") from e

    def encrypt_field(
        self,
        record: MutableMapping[str, Any],
        field_name: str,
        wrapped_key: Optional[str],
        iv_field: str = "iv",
    ) -> EncryptedField:
        """Encrypts ``record[field_name]`` in place.

        Stores ``encrypted_<field_name>`` and the IV (under ``iv_field``) on
        the record and removes the plaintext value. The record is untouched
        if encryption fails.

        Raises:
            InvalidInput: If the field is absent or not text
            MissingKeyMaterial: If no wrapped key is given
            UnwrapFailure: If the key cannot be unwrapped
        """
        value = record.get(field_name)
        if not isinstance(value, str):
            raise InvalidInput(f"Record field '{field_name}' must be a string to encrypt")

        encrypted = self.encrypt_text(value, wrapped_key, field_name.encode("utf-8"))

        record[f"encrypted_{field_name}"] = encrypted.ciphertext
        record[iv_field] = encrypted.iv
        del record[field_name]

        logger.debug(
            "Encrypted record field",
            extra={"field": field_name, "ciphertext_length": len(encrypted.ciphertext)},
        )
        return encrypted

    def decrypt_field(
        self,
        record: MutableMapping[str, Any],
        field_name: str,
        wrapped_key: Optional[str],
        iv_field: str = "iv",
    ) -> str:
        """Decrypts ``encrypted_<field_name>`` and stores the plaintext on the record.

        Raises:
            MissingKeyMaterial: If the key, IV or ciphertext is absent
            UnwrapFailure: If the key cannot be unwrapped
            DecryptFailure: On tag mismatch or corrupt ciphertext/IV
        """
        encrypted = EncryptedField(
            ciphertext=record.get(f"encrypted_{field_name}") or "",
            iv=record.get(iv_field) or "",
        )
        plaintext = self.decrypt_text(encrypted, wrapped_key, field_name.encode("utf-8"))
        record[field_name] = plaintext
        return plaintext
