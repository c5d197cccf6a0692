# phimask/service/pipeline.py

"""Main masking service pipeline."""

import logging
import threading
from typing import Any, Iterable, List, Mapping, Optional, Union

from phimask.service.config import Settings, settings
from phimask.engine.detector import PhiDetector
from phimask.core.domain import Entity, MaskingResult, UnmaskingResult
from phimask.core.exceptions import InitializationError, InvalidInput, PhiMaskError, PipelineError
from phimask.logic.chunker import split_text
from phimask.logic.merger import detect_chunks, merge
from phimask.logic.threshold import filter_entities, resolve_threshold
from phimask.logic.masker import coalesce_overlaps, mask
from phimask.logic.unmasker import unmask, unmask_tokens

logger = logging.getLogger(__name__)


def create_detector(config: Settings) -> PhiDetector:
    """Builds the detection backend named in ``config``."""
    if config.detector_backend == "presidio":
        from phimask.engine.presidio_wrapper import PresidioDetector

        return PresidioDetector(config.spacy_model)

    from phimask.engine.comprehend import ComprehendMedicalDetector

    return ComprehendMedicalDetector(
        region_name=config.aws_region,
        aws_access_key_id=(
            config.aws_access_key_id.get_secret_value() if config.aws_access_key_id else None
        ),
        aws_secret_access_key=(
            config.aws_secret_access_key.get_secret_value()
            if config.aws_secret_access_key
            else None
        ),
        max_chars=config.detector_max_chars,
        timeout=config.detection_timeout,
    )


class DetectorService:
    """Singleton holder for the configured detection backend.

    Manages detector lifecycle and provides thread-safe access to it.
    """

    _instance: Optional[PhiDetector] = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> PhiDetector:
        """Returns singleton detector instance.

        Raises:
            InitializationError: If detector initialization fails
        """
        if cls._instance is None:
            with cls._lock:
                # Double-checked locking pattern
                if cls._instance is None:
                    try:
                        logger.info(
                            "Initializing detector",
                            extra={"backend": settings.detector_backend},
                        )
                        cls._instance = create_detector(settings)
                        logger.info("Detector initialized successfully")

                    except Exception as e:
                        logger.error("Failed to initialize detector", exc_info=True)
                        if isinstance(e, InitializationError):
                            raise
                        raise InitializationError("Detector initialization failed") from e

        return cls._instance

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None


class PhiMaskingPipeline:
    """Chunks, detects, merges, filters and masks one text at a time.

    Holds no per-request state, so one instance may serve concurrent
    requests.
    """

    def __init__(
        self,
        detector: PhiDetector,
        max_chars: int = settings.max_chunk_chars,
        lookback: int = settings.chunk_lookback,
        id_stride: int = settings.id_namespace_stride,
        max_workers: int = settings.detection_max_workers,
        detection_timeout: Optional[float] = settings.detection_timeout,
        default_threshold: float = settings.mask_threshold,
    ) -> None:
        self.detector = detector
        self.max_chars = max_chars
        self.lookback = lookback
        self.id_stride = id_stride
        self.max_workers = max_workers
        self.detection_timeout = detection_timeout
        self.default_threshold = default_threshold

    @classmethod
    def from_settings(
        cls, detector: PhiDetector, config: Optional[Settings] = None
    ) -> "PhiMaskingPipeline":
        config = config or settings
        return cls(
            detector,
            max_chars=config.max_chunk_chars,
            lookback=config.chunk_lookback,
            id_stride=config.id_namespace_stride,
            max_workers=config.detection_max_workers,
            detection_timeout=config.detection_timeout,
            default_threshold=config.mask_threshold,
        )

    def mask(self, text: str, threshold: Optional[Any] = None) -> MaskingResult:
        """Masks every PHI entity scoring at or above the threshold.

        Args:
            text: Clinical text to de-identify
            threshold: Override for the configured mask threshold

        Returns:
            MaskingResult with masked text and the entity side-table

        Raises:
            InvalidInput: If text is empty or not a string, or threshold is malformed
            DetectionUnavailable: If detection fails for any chunk
            PipelineError: If detector output is inconsistent
        """
        if not isinstance(text, str) or not text:
            logger.warning("Invalid text provided for masking")
            raise InvalidInput("Text is required and must be a string")

        resolved = resolve_threshold(threshold, self.default_threshold)

        try:
            chunks = split_text(text, max_chars=self.max_chars, lookback=self.lookback)

            logger.info(
                "Starting masking request",
                extra={
                    "text_length": len(text),
                    "threshold": resolved,
                    "chunk_count": len(chunks),
                },
            )

            per_chunk = detect_chunks(
                self.detector,
                chunks,
                max_workers=self.max_workers,
                timeout=self.detection_timeout,
            )
            entities = merge(chunks, per_chunk, stride=self.id_stride)

            masked, skipped = filter_entities(entities, resolved)
            masked, coalesced = coalesce_overlaps(text, masked)

            masked.sort(key=_by_offset)
            skipped.sort(key=_by_offset)

            masked_text = mask(text, masked)

        except PhiMaskError:
            raise
        except Exception as e:
            logger.error(
                "Masking failed",
                exc_info=True,
                extra={"text_length": len(text), "threshold": resolved},
            )
            raise PipelineError(f"Failed to mask text: {e}") from e

        logger.info(
            "Masking completed",
            extra={
                "masked_count": len(masked),
                "skipped_count": len(skipped),
                "coalesced_count": len(coalesced),
                "chunk_count": len(chunks),
                "entity_types": sorted(set(e.type for e in masked)),
            },
        )

        return MaskingResult(
            masked_text=masked_text,
            masked_entities=masked,
            skipped_entities=skipped,
            threshold=resolved,
            chunk_count=len(chunks),
            coalesced_entities=coalesced,
        )

    def unmask(self, masked_text: str, entities: Iterable[Entity]) -> UnmaskingResult:
        """Restores ``masked_text`` from the entities of an earlier :meth:`mask` call."""
        return unmask(masked_text, entities)


def _by_offset(entity: Entity):
    return (entity.begin_offset, entity.end_offset)


def _parse_entities(entities: Iterable[Any]) -> List[Entity]:
    try:
        items = list(entities)
    except TypeError as e:
        raise InvalidInput("Entities must be a list of entities or a token map") from e

    parsed = []
    for item in items:
        if isinstance(item, Entity):
            parsed.append(item)
        elif isinstance(item, Mapping):
            parsed.append(Entity.from_dict(item))
        else:
            raise InvalidInput(f"Unsupported entity value of type {type(item).__name__}")
    return parsed


def mask_phi(
    text: str, threshold: Optional[Any] = None, detector: Optional[PhiDetector] = None
) -> MaskingResult:
    """Main entry point for PHI masking.

    Args:
        text: Clinical text to de-identify
        threshold: Optional mask threshold override
        detector: Detection backend; defaults to the configured singleton

    Returns:
        MaskingResult. Failures raise; a partial result is never returned.
    """
    pipeline = PhiMaskingPipeline.from_settings(detector or DetectorService.get_instance())
    return pipeline.mask(text, threshold)


def unmask_phi(
    masked_text: str,
    entities: Union[Iterable[Any], Mapping[str, str], None] = None,
) -> UnmaskingResult:
    """Main entry point for PHI unmasking.

    Args:
        masked_text: De-identified text
        entities: Stored masked entities (``Entity`` objects or dicts), or a
            token map such as :attr:`MaskingResult.tokens`

    Returns:
        UnmaskingResult; unresolvable tokens are reported, never raised.

    Raises:
        InvalidInput: If the text is not a string or entities are malformed
    """
    if not isinstance(masked_text, str):
        raise InvalidInput("Masked text is required and must be a string")

    if entities is None:
        entities = []
    if isinstance(entities, (str, bytes)):
        raise InvalidInput("Entities must be a list of entities or a token map")

    if isinstance(entities, Mapping):
        result = unmask_tokens(masked_text, {str(k): str(v) for k, v in entities.items()})
    else:
        result = unmask(masked_text, _parse_entities(entities))

    logger.info(
        "Unmasking completed",
        extra={
            "text_length": len(masked_text),
            "invalid_count": len(result.invalid_tokens),
            "unresolved_count": len(result.unresolved_tokens),
        },
    )
    return result
