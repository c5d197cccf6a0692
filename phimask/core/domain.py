# phimask/core/domain.py

"""Domain models for masking, unmasking and encrypted fields."""

from dataclasses import dataclass, field, replace
from typing import List, Dict, Any, Optional, Mapping

from phimask.core.definitions import TOKEN_TYPE_INVALID_CHARS, FALLBACK_TOKEN_TYPE
from phimask.core.exceptions import InvalidInput

# Detector wire keys (Comprehend Medical) -> dataclass field names
_PASCAL_KEYS = {
    "Type": "type",
    "Text": "text",
    "BeginOffset": "begin_offset",
    "EndOffset": "end_offset",
    "Score": "score",
    "Id": "id",
}


def token_type(entity_type: str) -> str:
    """Reduces an entity type to the ``[A-Za-z0-9]+`` token alphabet."""
    cleaned = TOKEN_TYPE_INVALID_CHARS.sub("", entity_type or "")
    return cleaned or FALLBACK_TOKEN_TYPE


@dataclass
class Entity:
    """A single detected PHI span.

    Attributes:
        type: PHI category (e.g., NAME, DATE)
        text: Original text of the span
        begin_offset: Start position (inclusive) in the original text
        end_offset: End position (exclusive) in the original text
        score: Detector confidence (0.0 to 1.0)
        id: Identifier, unique within one masking operation once merged
    """

    type: str
    text: str
    begin_offset: int
    end_offset: int
    score: float
    id: Optional[int] = None

    @property
    def length(self) -> int:
        return self.end_offset - self.begin_offset

    @property
    def token_key(self) -> str:
        return f"{token_type(self.type)}_{self.id}"

    @property
    def token(self) -> str:
        return "{{" + self.token_key + "}}"

    def overlaps(self, other: "Entity") -> bool:
        return (
            self.begin_offset < other.end_offset
            and other.begin_offset < self.end_offset
        )

    def shifted(self, offset: int, new_id: Optional[int] = None) -> "Entity":
        """Returns a copy moved by ``offset`` characters, optionally re-numbered."""
        return replace(
            self,
            begin_offset=self.begin_offset + offset,
            end_offset=self.end_offset + offset,
            id=self.id if new_id is None else new_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "text": self.text,
            "begin_offset": self.begin_offset,
            "end_offset": self.end_offset,
            "score": self.score,
            "id": self.id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Entity":
        """Builds an entity from a stored or detector-shaped mapping.

        Accepts snake_case keys (as written by :meth:`to_dict`) and the
        PascalCase keys returned by Comprehend Medical.

        Raises:
            InvalidInput: If a required key is missing or malformed.
        """
        values: Dict[str, Any] = {}
        for key, value in data.items():
            name = _PASCAL_KEYS.get(key, key)
            if name in _PASCAL_KEYS.values():
                values[name] = value

        missing = [
            name
            for name in ("type", "begin_offset", "end_offset", "score")
            if values.get(name) is None
        ]
        if missing:
            raise InvalidInput(f"Entity is missing required fields: {missing}")

        try:
            raw_id = values.get("id")
            return cls(
                type=str(values["type"]),
                text=str(values.get("text") or ""),
                begin_offset=int(values["begin_offset"]),
                end_offset=int(values["end_offset"]),
                score=float(values["score"]),
                id=None if raw_id is None else int(raw_id),
            )
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"Malformed entity field: {e}") from e


@dataclass(frozen=True)
class Chunk:
    """A bounded-length slice of the original text.

    Attributes:
        text: Slice content
        chunk_index: Position of the slice in the chunk sequence
        start_in_original: Offset of the slice's first character
    """

    text: str
    chunk_index: int
    start_in_original: int

    @property
    def end_in_original(self) -> int:
        return self.start_in_original + len(self.text)


@dataclass
class MaskingResult:
    """Result object returned by the masking pipeline.

    Attributes:
        masked_text: Text with each masked span replaced by its token
        masked_entities: Side-table required to unmask ``masked_text``
        skipped_entities: Entities scored below the threshold (audit only)
        threshold: Threshold applied to this operation
        chunk_count: Number of chunks sent to the detector
        coalesced_entities: Entities absorbed into an overlapping span
    """

    masked_text: str
    masked_entities: List[Entity] = field(default_factory=list)
    skipped_entities: List[Entity] = field(default_factory=list)
    threshold: float = 0.0
    chunk_count: int = 0
    coalesced_entities: List[Entity] = field(default_factory=list)

    @property
    def tokens(self) -> Dict[str, str]:
        """Maps each token key (``TYPE_ID``) to the text it replaced."""
        return {e.token_key: e.text for e in self.masked_entities}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "masked_text": self.masked_text,
            "masked_entities": [e.to_dict() for e in self.masked_entities],
            "skipped_entities": [e.to_dict() for e in self.skipped_entities],
            "coalesced_entities": [e.to_dict() for e in self.coalesced_entities],
            "threshold": self.threshold,
            "chunk_count": self.chunk_count,
            "tokens": self.tokens,
        }


@dataclass
class UnmaskingResult:
    """Result object returned by the unmasker.

    Attributes:
        unmasked_text: Best-effort reconstruction of the original text
        invalid_tokens: ``{{...}}`` matches failing the TYPE_ID grammar
        unresolved_tokens: Well-formed tokens with no matching entity
    """

    unmasked_text: str
    invalid_tokens: List[str] = field(default_factory=list)
    unresolved_tokens: List[str] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return bool(self.invalid_tokens or self.unresolved_tokens)


@dataclass(frozen=True)
class EncryptedField:
    """Ciphertext and IV of one encrypted record field, base64 encoded."""

    ciphertext: str
    iv: str
