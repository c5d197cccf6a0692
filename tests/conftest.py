"""Shared fixtures for phimask tests."""

from typing import List, Tuple

import pytest
from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from phimask.core.domain import Entity
from phimask.security.field_cipher import FieldCipher
from phimask.security.keys import FernetKeyWrapper
from tests.helpers import LiteralDetector


@pytest.fixture
def literal_detector():
    return LiteralDetector(
        [
            ("NAME", "John Doe", 0.9),
            ("DATE", "2023-01-05", 0.8),
            ("PROFESSION", "plumber", 0.1),
        ]
    )


@pytest.fixture
def example_text() -> str:
    return "John Doe visited on 2023-01-05."


@pytest.fixture
def example_entities() -> List[Entity]:
    return [
        Entity("NAME", "John Doe", 0, 8, 0.9, 1),
        Entity("DATE", "2023-01-05", 20, 30, 0.8, 2),
    ]


@pytest.fixture
def master_key() -> bytes:
    return Fernet.generate_key()


@pytest.fixture
def field_cipher(master_key) -> FieldCipher:
    return FieldCipher(FernetKeyWrapper(master_key))


@pytest.fixture(scope="session")
def rsa_key_pems() -> Tuple[str, str]:
    """(public PEM, private PEM) for a throwaway 2048-bit key."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("ascii")
    )
    return public_pem, private_pem
