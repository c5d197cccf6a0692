# phimask/logic/merger.py

"""Runs detection per chunk and merges results into original coordinates."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Set

from phimask.core.definitions import ID_NAMESPACE_STRIDE
from phimask.core.domain import Chunk, Entity
from phimask.core.exceptions import DetectionUnavailable, PipelineError
from phimask.engine.detector import PhiDetector

logger = logging.getLogger(__name__)


def _detect_one(detector: PhiDetector, chunk: Chunk) -> List[Entity]:
    """Calls the detector for one chunk, classifying any failure."""
    try:
        entities = detector.detect(chunk.text)
    except DetectionUnavailable:
        logger.error(
            "Detection unavailable for chunk",
            extra={"chunk_index": chunk.chunk_index, "chunk_length": len(chunk.text)},
        )
        raise
    except Exception as e:
        logger.error(
            "Detector raised unexpectedly",
            exc_info=True,
            extra={"chunk_index": chunk.chunk_index},
        )
        raise DetectionUnavailable(
            f"Detector failed on chunk {chunk.chunk_index}: {e}"
        ) from e

    return list(entities or [])


def detect_chunks(
    detector: PhiDetector,
    chunks: Sequence[Chunk],
    max_workers: int = 4,
    timeout: Optional[float] = None,
) -> List[List[Entity]]:
    """Detects entities in every chunk, possibly concurrently.

    Results are returned in ``chunk_index`` order regardless of completion
    order. A failure or timeout on any chunk cancels outstanding calls and
    aborts the whole operation. Calls already running when the request is
    aborted cannot be interrupted; their threads finish in the background
    and their results are discarded, so a slow backend call may outlive
    the request.

    Args:
        detector: Detection backend
        chunks: Chunks to analyse
        max_workers: Upper bound on concurrent detector calls
        timeout: Overall seconds to wait for concurrent calls (None waits forever)

    Returns:
        Per-chunk entity lists, aligned with ``chunks``

    Raises:
        DetectionUnavailable: If any chunk fails or the timeout expires
    """
    if len(chunks) <= 1 or max_workers <= 1:
        return [_detect_one(detector, c) for c in chunks]

    results: Dict[int, List[Entity]] = {}
    executor = ThreadPoolExecutor(
        max_workers=min(max_workers, len(chunks)), thread_name_prefix="phi-detect"
    )
    try:
        futures = {executor.submit(_detect_one, detector, c): c for c in chunks}
        for future in as_completed(futures, timeout=timeout):
            results[futures[future].chunk_index] = future.result()
    except FuturesTimeoutError as e:
        logger.error(
            "Detection timed out",
            extra={"timeout": timeout, "completed": len(results), "chunk_count": len(chunks)},
        )
        raise DetectionUnavailable(f"Detection timed out after {timeout} seconds") from e
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return [results[c.chunk_index] for c in chunks]


def _validate_span(chunk: Chunk, entity: Entity) -> None:
    if not 0 <= entity.begin_offset < entity.end_offset <= len(chunk.text):
        raise PipelineError(
            f"Detector returned span [{entity.begin_offset}, {entity.end_offset}) "
            f"outside chunk {chunk.chunk_index} of length {len(chunk.text)}"
        )


def _assign_local_ids(chunk: Chunk, entities: List[Entity], stride: int) -> List[Entity]:
    """Validates detector ids and numbers the entities that have none.

    Missing ids are assigned sequentially from 1 in offset order, skipping
    ids the detector already used in this chunk.
    """
    used: Set[int] = set()
    for entity in entities:
        if entity.id is None:
            continue
        if entity.id in used:
            raise PipelineError(
                f"Duplicate entity id {entity.id} in chunk {chunk.chunk_index}"
            )
        if not 0 <= entity.id < stride:
            raise PipelineError(
                f"Entity id {entity.id} in chunk {chunk.chunk_index} "
                f"is outside the namespace stride {stride}"
            )
        used.add(entity.id)

    assigned: Dict[int, int] = {}
    next_id = 1
    unnumbered = [i for i, e in enumerate(entities) if e.id is None]
    for i in sorted(unnumbered, key=lambda i: (entities[i].begin_offset, entities[i].end_offset)):
        while next_id in used:
            next_id += 1
        if next_id >= stride:
            raise PipelineError(
                f"Chunk {chunk.chunk_index} has more entities than the "
                f"namespace stride {stride} allows"
            )
        assigned[i] = next_id
        used.add(next_id)

    return [
        replace(e, id=assigned[i]) if i in assigned else e
        for i, e in enumerate(entities)
    ]


def merge(
    chunks: Sequence[Chunk],
    per_chunk_entities: Sequence[Sequence[Entity]],
    stride: int = ID_NAMESPACE_STRIDE,
) -> List[Entity]:
    """Moves chunk-local entities into the original text's coordinates.

    Offsets are shifted by each chunk's ``start_in_original`` and ids by
    ``chunk_index * stride``. Entity text is re-read from the chunk so that
    it always equals the span it will be restored into.

    Args:
        chunks: Chunks in order
        per_chunk_entities: Detector output aligned with ``chunks``
        stride: Id namespace width per chunk

    Returns:
        Merged entities (order unspecified)

    Raises:
        PipelineError: On misaligned input, out-of-range spans or colliding ids
    """
    if len(chunks) != len(per_chunk_entities):
        raise PipelineError(
            f"Got entities for {len(per_chunk_entities)} chunks, expected {len(chunks)}"
        )

    merged: List[Entity] = []
    for chunk, entities in zip(chunks, per_chunk_entities):
        entities = list(entities)
        for entity in entities:
            _validate_span(chunk, entity)

        for entity in _assign_local_ids(chunk, entities, stride):
            span_text = chunk.text[entity.begin_offset : entity.end_offset]
            if entity.text and entity.text != span_text:
                logger.warning(
                    "Detector text does not match its span, using span text",
                    extra={
                        "chunk_index": chunk.chunk_index,
                        "begin_offset": entity.begin_offset,
                        "end_offset": entity.end_offset,
                    },
                )
            merged.append(
                replace(entity, text=span_text).shifted(
                    chunk.start_in_original, entity.id + chunk.chunk_index * stride
                )
            )

    logger.debug(
        "Merged chunk entities",
        extra={"chunk_count": len(chunks), "entity_count": len(merged)},
    )
    return merged
