# phimask/logic/masker.py

"""Replaces PHI spans with ``{{TYPE_ID}}`` tokens."""

import logging
from dataclasses import replace
from typing import Iterable, List, Sequence, Tuple

from phimask.core.domain import Entity
from phimask.core.exceptions import InvalidInput, OverlappingEntitiesError

logger = logging.getLogger(__name__)


def _by_position(entities: Iterable[Entity]) -> List[Entity]:
    return sorted(entities, key=lambda e: (e.begin_offset, e.end_offset))


def check_overlaps(entities: Sequence[Entity]) -> None:
    """Ensures no two entities claim the same characters.

    Adjacent spans (one ends where the next begins) are allowed.

    Raises:
        OverlappingEntitiesError: If any pair of spans overlaps
    """
    ordered = _by_position(entities)
    for previous, current in zip(ordered, ordered[1:]):
        if current.begin_offset < previous.end_offset:
            raise OverlappingEntitiesError(
                f"Entity spans overlap: {previous.token_key} "
                f"[{previous.begin_offset}, {previous.end_offset}) and "
                f"{current.token_key} [{current.begin_offset}, {current.end_offset})"
            )


def _group_overlapping(entities: Sequence[Entity]) -> List[List[Entity]]:
    groups: List[List[Entity]] = []
    group_end = -1
    for entity in _by_position(entities):
        if groups and entity.begin_offset < group_end:
            groups[-1].append(entity)
            group_end = max(group_end, entity.end_offset)
        else:
            groups.append([entity])
            group_end = entity.end_offset
    return groups


def coalesce_overlaps(
    original_text: str, entities: Sequence[Entity]
) -> Tuple[List[Entity], List[Entity]]:
    """Collapses each cluster of overlapping spans into one covering span.

    The covering entity keeps the type, id and score of the cluster's
    highest-scoring member (ties go to the longer, then earlier span) and
    spans the union of the cluster, so no detected character is left
    unmasked.

    Returns:
        Tuple of (entities to mask, entities absorbed into a covering span)
    """
    kept: List[Entity] = []
    absorbed: List[Entity] = []

    for group in _group_overlapping(entities):
        if len(group) == 1:
            kept.append(group[0])
            continue

        winner = max(group, key=lambda e: (e.score, e.length, -e.begin_offset))
        begin = min(e.begin_offset for e in group)
        end = max(e.end_offset for e in group)
        kept.append(
            replace(winner, begin_offset=begin, end_offset=end, text=original_text[begin:end])
        )
        absorbed.extend(e for e in group if e is not winner)

        logger.warning(
            "Coalesced overlapping entities",
            extra={
                "token": winner.token_key,
                "begin_offset": begin,
                "end_offset": end,
                "absorbed": [e.token_key for e in group if e is not winner],
            },
        )

    return kept, absorbed


def mask(original_text: str, entities: Sequence[Entity]) -> str:
    """Returns ``original_text`` with every entity span replaced by its token.

    Entities are applied in descending ``begin_offset`` order (ties: larger
    ``end_offset`` first), so each replacement only touches text to the
    right of every span still pending. The output is assembled from
    untouched slices of the input; the input is never modified.

    Raises:
        InvalidInput: If an entity has no id or lies outside the text
        OverlappingEntitiesError: If two spans overlap
    """
    length = len(original_text)
    for entity in entities:
        if entity.id is None:
            raise InvalidInput(f"Entity of type {entity.type} has no id")
        if not 0 <= entity.begin_offset < entity.end_offset <= length:
            raise InvalidInput(
                f"Entity {entity.token_key} span [{entity.begin_offset}, "
                f"{entity.end_offset}) is outside text of length {length}"
            )

    check_overlaps(entities)

    ordered = sorted(
        entities, key=lambda e: (e.begin_offset, e.end_offset), reverse=True
    )

    pieces: List[str] = []
    cursor = length
    for entity in ordered:
        pieces.append(original_text[entity.end_offset : cursor])
        pieces.append(entity.token)
        cursor = entity.begin_offset
    pieces.append(original_text[:cursor])

    return "".join(reversed(pieces))
