# phimask/engine/detector.py

"""Detector Adapter interface."""

from typing import List, Protocol, runtime_checkable

from phimask.core.domain import Entity


@runtime_checkable
class PhiDetector(Protocol):
    """Abstraction for PHI span detection over a bounded-length text."""

    def detect(self, chunk_text: str) -> List[Entity]:
        """Return entities with offsets relative to ``chunk_text``.

        Ids may be left as ``None``; the merger numbers them. Any failure
        must raise :class:`~phimask.core.exceptions.DetectionUnavailable`
        without returning partial results.
        """
