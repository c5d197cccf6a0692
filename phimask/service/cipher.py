# phimask/service/cipher.py

"""Field encryption entry points backed by the configured master key."""

import logging
import threading
from typing import Any, MutableMapping, Optional

from phimask.service.config import Settings, settings
from phimask.core.domain import EncryptedField
from phimask.core.exceptions import ConfigurationError, PhiMaskError
from phimask.security.field_cipher import FieldCipher
from phimask.security.keys import FernetKeyWrapper, KeyWrapper, RsaKeyWrapper

logger = logging.getLogger(__name__)


def create_key_wrapper(config: Settings) -> KeyWrapper:
    """Builds the key wrapper named in ``config``.

    Raises:
        ConfigurationError: If the required key material is not configured
    """
    if config.key_wrap_backend == "rsa":
        return RsaKeyWrapper(
            public_key_pem=(
                config.rsa_public_key.get_secret_value() if config.rsa_public_key else None
            ),
            private_key_pem=(
                config.rsa_private_key.get_secret_value() if config.rsa_private_key else None
            ),
        )

    if config.master_key is None:
        raise ConfigurationError("PHIMASK_MASTER_KEY is not set")
    return FernetKeyWrapper(config.master_key.get_secret_value())


class CipherService:
    """Singleton holder for the process-wide FieldCipher."""

    _instance: Optional[FieldCipher] = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> FieldCipher:
        """Returns the shared FieldCipher, building it on first use.

        Raises:
            ConfigurationError: If key material is missing or invalid
        """
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = FieldCipher(create_key_wrapper(settings))
                    logger.info(
                        "Field cipher initialized",
                        extra={"key_wrap_backend": settings.key_wrap_backend},
                    )
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None


def generate_wrapped_key() -> str:
    """Creates a new per-record AES key wrapped under the master key."""
    return CipherService.get_instance().generate_wrapped_key()


def encrypt_field(
    record: MutableMapping[str, Any],
    field_name: str,
    wrapped_key: Optional[str],
    iv_field: str = "iv",
) -> EncryptedField:
    """Encrypts ``record[field_name]`` in place; see FieldCipher.encrypt_field."""
    try:
        return CipherService.get_instance().encrypt_field(
            record, field_name, wrapped_key, iv_field=iv_field
        )
    except PhiMaskError as e:
        logger.error(
            f"Failed to encrypt field: {type(e).__name__}",
            extra={"field": field_name},
        )
        raise


def decrypt_field(
    record: MutableMapping[str, Any],
    field_name: str,
    wrapped_key: Optional[str],
    iv_field: str = "iv",
) -> str:
    """Decrypts ``encrypted_<field_name>``; see FieldCipher.decrypt_field."""
    try:
        return CipherService.get_instance().decrypt_field(
            record, field_name, wrapped_key, iv_field=iv_field
        )
    except PhiMaskError as e:
        logger.error(
            f"Failed to decrypt field: {type(e).__name__}",
            extra={"field": field_name, "record_id": record.get("id")},
        )
        raise
