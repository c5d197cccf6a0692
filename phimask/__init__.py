# phimask/__init__.py

"""PHI de-identification and re-identification for clinical transcripts.

Detected PHI spans are replaced with ``{{TYPE_ID}}`` tokens and later
restored from the side-table of masked entities. Masked text is persisted
with a per-record AES key through :mod:`phimask.security`.
"""

__version__ = "0.1.0"
