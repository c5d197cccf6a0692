# phimask/service/config.py

"""Application configuration using Pydantic Settings.

Manages environment variables, defaults, and validation rules.
"""

from typing import Literal, Optional
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from phimask.core.definitions import (
    DEFAULT_MASK_THRESHOLD,
    DEFAULT_MAX_CHUNK_CHARS,
    DEFAULT_CHUNK_LOOKBACK,
    DETECTOR_MAX_CHARS,
    ID_NAMESPACE_STRIDE,
)


class Settings(BaseSettings):
    """Global application settings.

    Loads values from environment variables (prefix 'PHIMASK_') or .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="PHIMASK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Masking
    mask_threshold: float = Field(
        default=DEFAULT_MASK_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Minimum confidence score (0.0-1.0) for an entity to be masked.",
    )

    max_chunk_chars: int = Field(
        default=DEFAULT_MAX_CHUNK_CHARS,
        gt=0,
        description="Largest chunk sent to the detector.",
    )

    chunk_lookback: int = Field(
        default=DEFAULT_CHUNK_LOOKBACK,
        ge=0,
        description="How far back from a chunk boundary to look for whitespace.",
    )

    id_namespace_stride: int = Field(
        default=ID_NAMESPACE_STRIDE,
        gt=0,
        description="Entity id range reserved for each chunk.",
    )

    # Detection
    detector_backend: Literal["comprehend_medical", "presidio"] = Field(
        default="comprehend_medical", description="PHI detection backend."
    )

    detector_max_chars: int = Field(
        default=DETECTOR_MAX_CHARS,
        gt=0,
        description="Hard input limit of the detection backend.",
    )

    detection_max_workers: int = Field(
        default=4, ge=1, description="Concurrent detector calls per request."
    )

    detection_timeout: Optional[float] = Field(
        default=None, gt=0, description="Seconds to wait for all chunks to be detected."
    )

    aws_region: str = Field(default="us-east-1", description="Comprehend Medical region.")
    aws_access_key_id: Optional[SecretStr] = None
    aws_secret_access_key: Optional[SecretStr] = None

    spacy_model: str = Field(
        default="en_core_web_lg", description="SpaCy model name for the Presidio backend."
    )

    # Encryption
    key_wrap_backend: Literal["fernet", "rsa"] = Field(
        default="fernet", description="How per-record AES keys are wrapped."
    )
    master_key: Optional[SecretStr] = Field(
        default=None, description="Fernet master key wrapping per-record keys."
    )
    rsa_public_key: Optional[SecretStr] = None
    rsa_private_key: Optional[SecretStr] = None

    log_level: str = Field(default="INFO", description="Root logging level.")

    @field_validator("spacy_model")
    @classmethod
    def validate_model_name(cls, v: str) -> str:
        """Ensure model name is not empty."""
        if not v.strip():
            raise ValueError("SpaCy model name cannot be empty")
        return v

    @model_validator(mode="after")
    def validate_chunking(self) -> "Settings":
        """Chunks must fit the detector and leave room for a look-back."""
        if self.max_chunk_chars > self.detector_max_chars:
            raise ValueError(
                "max_chunk_chars cannot exceed detector_max_chars "
                f"({self.max_chunk_chars} > {self.detector_max_chars})"
            )
        if self.chunk_lookback >= self.max_chunk_chars:
            raise ValueError("chunk_lookback must be smaller than max_chunk_chars")
        return self


# Singleton settings instance
settings = Settings()
