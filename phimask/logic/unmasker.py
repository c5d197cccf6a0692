# phimask/logic/unmasker.py

"""Restores original PHI text from ``{{TYPE_ID}}`` tokens."""

import logging
from typing import Dict, Iterable, List, Mapping

from phimask.core.definitions import TOKEN_PATTERN, TOKEN_GRAMMAR
from phimask.core.domain import Entity, UnmaskingResult

logger = logging.getLogger(__name__)


def build_token_map(entities: Iterable[Entity]) -> Dict[str, str]:
    """Maps each entity's token key (``TYPE_ID``) to its original text."""
    return {entity.token_key: entity.text for entity in entities}


def unmask_tokens(masked_text: str, tokens: Mapping[str, str]) -> UnmaskingResult:
    """Replaces every resolvable token in ``masked_text``.

    Each ``{{...}}`` match whose interior fails the TYPE_ID grammar is left
    in place and reported under ``invalid_tokens``; well-formed tokens
    missing from ``tokens`` are left in place and reported under
    ``unresolved_tokens``. Restored text is never re-scanned. This function
    does not raise on token problems.

    Args:
        masked_text: De-identified text
        tokens: Token key -> original text

    Returns:
        UnmaskingResult with the reconstruction and diagnostics
    """
    invalid_tokens: List[str] = []
    unresolved_tokens: List[str] = []

    def _restore(match) -> str:
        token = match.group(0)
        parts = TOKEN_GRAMMAR.match(match.group(1))
        if not parts:
            invalid_tokens.append(token)
            logger.warning("Token does not match TYPE_ID format", extra={"token": token})
            return token

        replacement = tokens.get(f"{parts.group(1)}_{parts.group(2)}")
        if replacement is None:
            unresolved_tokens.append(token)
            logger.warning("Token has no matching entity", extra={"token": token})
            return token

        return replacement

    unmasked = TOKEN_PATTERN.sub(_restore, masked_text)

    return UnmaskingResult(
        unmasked_text=unmasked,
        invalid_tokens=invalid_tokens,
        unresolved_tokens=unresolved_tokens,
    )


def unmask(masked_text: str, entities: Iterable[Entity]) -> UnmaskingResult:
    """Restores ``masked_text`` using the masked-entity side-table."""
    return unmask_tokens(masked_text, build_token_map(entities))
