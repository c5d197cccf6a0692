# phimask/security/keys.py

"""Wrapping and unwrapping of per-record AES keys."""

import base64
import binascii
import logging
from typing import Optional, Protocol, Union, runtime_checkable

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from phimask.core.exceptions import ConfigurationError, UnwrapFailure

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyWrapper(Protocol):
    """Protects per-record keys with an outer key."""

    def wrap(self, key: bytes) -> str:
        """Return the wrapped form of ``key`` as text safe to store."""

    def unwrap(self, wrapped_key: str) -> bytes:
        """Return the raw key; raise UnwrapFailure if it cannot be recovered."""


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


class FernetKeyWrapper:
    """Wraps record keys with a symmetric Fernet master key."""

    def __init__(self, master_key: Union[str, bytes, None]) -> None:
        if not master_key:
            raise ConfigurationError("Master key is not set")
        try:
            self._fernet = Fernet(_to_bytes(master_key))
        except (TypeError, ValueError) as e:
            raise ConfigurationError("Master key is not a valid Fernet key") from e

    def wrap(self, key: bytes) -> str:
        return self._fernet.encrypt(key).decode("ascii")

    def unwrap(self, wrapped_key: str) -> bytes:
        try:
            return self._fernet.decrypt(_to_bytes(wrapped_key))
        except (InvalidToken, TypeError) as e:
            raise UnwrapFailure("Wrapped key does not match the master key or is corrupt") from e


class RsaKeyWrapper:
    """Wraps record keys with an RSA public key (OAEP, SHA-256).

    Wrapping needs only the public key, so key generation can happen on
    hosts that never see the private key.
    """

    def __init__(
        self,
        public_key_pem: Optional[Union[str, bytes]] = None,
        private_key_pem: Optional[Union[str, bytes]] = None,
    ) -> None:
        if not public_key_pem and not private_key_pem:
            raise ConfigurationError("RSA key wrapping needs a public or private key")

        try:
            self._private_key = (
                serialization.load_pem_private_key(_to_bytes(private_key_pem), password=None)
                if private_key_pem
                else None
            )
            if public_key_pem:
                self._public_key = serialization.load_pem_public_key(_to_bytes(public_key_pem))
            else:
                self._public_key = self._private_key.public_key()
        except (TypeError, ValueError, UnsupportedAlgorithm) as e:
            raise ConfigurationError("RSA key material could not be loaded") from e

        self._padding = padding.OAEP(
            mgf=padding.MGF1(algorithm=hashes.SHA256()),
            algorithm=hashes.SHA256(),
            label=None,
        )

    def wrap(self, key: bytes) -> str:
        wrapped = self._public_key.encrypt(key, self._padding)
        return base64.b64encode(wrapped).decode("ascii")

    def unwrap(self, wrapped_key: str) -> bytes:
        if self._private_key is None:
            raise ConfigurationError("RSA private key is required to unwrap record keys")
        try:
            wrapped = base64.b64decode(_to_bytes(wrapped_key), validate=True)
            return self._private_key.decrypt(wrapped, self._padding)
        except (binascii.Error, TypeError, ValueError) as e:
            raise UnwrapFailure("Wrapped key does not match the private key or is corrupt") from e
