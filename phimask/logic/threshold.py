# phimask/logic/threshold.py

"""Confidence-threshold partitioning of detected entities."""

import math
from typing import Any, Iterable, List, Optional, Tuple

from phimask.core.definitions import DEFAULT_MASK_THRESHOLD
from phimask.core.domain import Entity
from phimask.core.exceptions import InvalidInput


def resolve_threshold(value: Optional[Any], default: float = DEFAULT_MASK_THRESHOLD) -> float:
    """Returns the explicit threshold if given, else ``default``.

    Numeric strings are accepted, as the HTTP layer passes them through.

    Raises:
        InvalidInput: If the value is not a number in [0, 1]
    """
    if value is None:
        value = default

    if isinstance(value, bool):
        raise InvalidInput("Mask threshold must be a number, got a boolean")

    try:
        threshold = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Mask threshold must be a number, got {value!r}") from e

    if math.isnan(threshold) or not 0.0 <= threshold <= 1.0:
        raise InvalidInput(f"Mask threshold must be between 0 and 1, got {value!r}")

    return threshold


def filter_entities(
    entities: Iterable[Entity], threshold: float
) -> Tuple[List[Entity], List[Entity]]:
    """Partitions entities into (masked, skipped) by ``score >= threshold``."""
    masked: List[Entity] = []
    skipped: List[Entity] = []
    for entity in entities:
        if entity.score >= threshold:
            masked.append(entity)
        else:
            skipped.append(entity)
    return masked, skipped
