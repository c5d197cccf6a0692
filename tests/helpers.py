"""Deterministic detectors used across the test suite."""

import threading
from typing import Dict, List, Optional, Sequence, Tuple

from phimask.core.domain import Entity


class LiteralDetector:
    """Deterministic detector that reports every occurrence of known strings.

    Ids are left unset so the merger numbers them, mirroring a backend
    that does not supply ids.
    """

    def __init__(self, rules: Sequence[Tuple[str, str, float]]):
        self.rules = list(rules)
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def detect(self, chunk_text: str) -> List[Entity]:
        with self._lock:
            self.calls.append(chunk_text)

        entities = []
        for entity_type, literal, score in self.rules:
            start = chunk_text.find(literal)
            while start != -1:
                entities.append(
                    Entity(
                        type=entity_type,
                        text=literal,
                        begin_offset=start,
                        end_offset=start + len(literal),
                        score=score,
                    )
                )
                start = chunk_text.find(literal, start + len(literal))
        return entities


class ScriptedDetector:
    """Returns pre-baked entities keyed by the exact chunk text."""

    def __init__(self, responses: Dict[str, List[Entity]], default: Optional[List[Entity]] = None):
        self.responses = responses
        self.default = default or []

    def detect(self, chunk_text: str) -> List[Entity]:
        return [
            Entity(e.type, e.text, e.begin_offset, e.end_offset, e.score, e.id)
            for e in self.responses.get(chunk_text, self.default)
        ]
