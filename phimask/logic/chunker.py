# phimask/logic/chunker.py

"""Splits long transcripts into detector-sized chunks."""

import logging
from typing import Iterator, List

from phimask.core.definitions import DEFAULT_MAX_CHUNK_CHARS, DEFAULT_CHUNK_LOOKBACK
from phimask.core.domain import Chunk
from phimask.core.exceptions import InvalidInput

logger = logging.getLogger(__name__)


def _find_cut(text: str, start: int, end: int, lookback: int) -> int:
    """Returns the position just after the last whitespace before ``end``.

    Only ``[max(start, end - lookback), end)`` is searched. Falls back to
    ``end`` (a hard cut) when no whitespace is found there.
    """
    floor = max(start, end - lookback)
    for i in range(end - 1, floor - 1, -1):
        if text[i].isspace():
            return i + 1
    return end


def chunk(
    text: str,
    max_chars: int = DEFAULT_MAX_CHUNK_CHARS,
    lookback: int = DEFAULT_CHUNK_LOOKBACK,
) -> Iterator[Chunk]:
    """Lazily splits ``text`` into chunks of at most ``max_chars`` characters.

    Cuts prefer the nearest preceding whitespace within ``lookback``
    characters of the window end, so words are not split. The whitespace
    stays with the earlier chunk. Concatenating the chunk texts reproduces
    ``text`` exactly.

    Args:
        text: Input text
        max_chars: Upper bound on chunk length
        lookback: How far back from a window end to look for whitespace

    Yields:
        Chunk objects in order

    Raises:
        InvalidInput: If ``max_chars`` is not positive or ``lookback`` is negative
    """
    if not isinstance(max_chars, int) or max_chars <= 0:
        raise InvalidInput(f"max_chars must be a positive integer, got {max_chars!r}")
    if not isinstance(lookback, int) or lookback < 0:
        raise InvalidInput(f"lookback must be a non-negative integer, got {lookback!r}")

    return _iter_chunks(text, max_chars, lookback)


def _iter_chunks(text: str, max_chars: int, lookback: int) -> Iterator[Chunk]:
    start = 0
    index = 0
    length = len(text)

    while start < length:
        end = min(start + max_chars, length)
        if end < length:
            end = _find_cut(text, start, end, lookback)

        yield Chunk(text=text[start:end], chunk_index=index, start_in_original=start)

        start = end
        index += 1


def split_text(
    text: str,
    max_chars: int = DEFAULT_MAX_CHUNK_CHARS,
    lookback: int = DEFAULT_CHUNK_LOOKBACK,
) -> List[Chunk]:
    """Eager variant of :func:`chunk`."""
    chunks = list(chunk(text, max_chars=max_chars, lookback=lookback))
    if len(chunks) > 1:
        logger.info(
            "Text exceeds chunk limit, split into chunks",
            extra={
                "text_length": len(text),
                "chunk_count": len(chunks),
                "max_chars": max_chars,
            },
        )
    return chunks
