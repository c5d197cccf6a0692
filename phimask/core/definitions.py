# phimask/core/definitions.py

"""PHI entity types, token grammar and pipeline defaults."""

import re


class PhiType:
    """PHI categories reported by AWS Comprehend Medical ``DetectPHI``."""

    NAME = "NAME"
    AGE = "AGE"
    DATE = "DATE"
    ID = "ID"
    ADDRESS = "ADDRESS"
    PROFESSION = "PROFESSION"
    PHONE_OR_FAX = "PHONE_OR_FAX"
    EMAIL = "EMAIL"
    URL = "URL"

    @classmethod
    def all(cls):
        return [
            cls.NAME,
            cls.AGE,
            cls.DATE,
            cls.ID,
            cls.ADDRESS,
            cls.PROFESSION,
            cls.PHONE_OR_FAX,
            cls.EMAIL,
            cls.URL,
        ]


DEFAULT_MASK_THRESHOLD = 0.15

# Comprehend Medical rejects text over 20,000 characters
DETECTOR_MAX_CHARS = 20000
DEFAULT_MAX_CHUNK_CHARS = 19000
DEFAULT_CHUNK_LOOKBACK = 500

# Must exceed the largest entity count a single chunk can produce
ID_NAMESPACE_STRIDE = 1000

# Interior excludes both braces so a match starts at the innermost "{{"
TOKEN_PATTERN = re.compile(r"\{\{([^{}]+)\}\}")
TOKEN_GRAMMAR = re.compile(r"^([A-Za-z0-9]+)_(\d+)$")
TOKEN_TYPE_INVALID_CHARS = re.compile(r"[^A-Za-z0-9]")
FALLBACK_TOKEN_TYPE = "PHI"
