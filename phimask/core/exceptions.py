# phimask/core/exceptions.py

"""Custom exception hierarchy for the PHI masking system.

This module defines the specific error types used throughout the application
to differentiate between configuration, detection, masking and encryption
failures. Masking errors abort the whole operation; unmask anomalies are
reported as diagnostics and never raised.
"""


class PhiMaskError(Exception):
    """Base exception for all application-specific errors."""

    pass


class ConfigurationError(PhiMaskError):
    """Raised when configuration loading or validation fails."""

    pass


class InitializationError(PhiMaskError):
    """Raised when a detector or external resource fails to initialize."""

    pass


class InvalidInput(PhiMaskError):
    """Raised for missing or non-string text and malformed thresholds."""

    pass


class PipelineError(PhiMaskError):
    """Raised when a processing step produces inconsistent data."""

    pass


class OverlappingEntitiesError(PipelineError):
    """Raised when entities handed to the masker claim the same characters."""

    pass


class DetectionUnavailable(PhiMaskError):
    """Raised when the external detector fails for any chunk.

    Fatal to the masking operation: partial results are never returned.
    """

    pass


class KeyMaterialError(PhiMaskError):
    """Base class for missing or corrupt encryption keys and IVs."""

    pass


class MissingKeyMaterial(KeyMaterialError):
    """Raised when a record carries no wrapped key, IV or ciphertext."""

    pass


class UnwrapFailure(KeyMaterialError):
    """Raised when the per-record key cannot be unwrapped."""

    pass


class DecryptionIntegrityError(PhiMaskError):
    """Base class for ciphertext, IV and key mismatches."""

    pass


class DecryptFailure(DecryptionIntegrityError):
    """Raised on authentication tag mismatch or corrupt ciphertext/IV."""

    pass
