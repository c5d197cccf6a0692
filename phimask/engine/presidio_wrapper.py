# phimask/engine/presidio_wrapper.py

"""Presidio-based local PHI detector with YAML-configured recognizers."""

import logging
from typing import Dict, List, Optional, Tuple

import spacy
from presidio_analyzer import AnalyzerEngine, Pattern, PatternRecognizer, RecognizerRegistry
from presidio_analyzer.nlp_engine import NerModelConfiguration, SpacyNlpEngine

from phimask.core.domain import Entity
from phimask.core.loader import PatternLoader
from phimask.core.exceptions import DetectionUnavailable, InitializationError

logger = logging.getLogger(__name__)


def create_pattern_recognizers(loader: PatternLoader) -> List[PatternRecognizer]:
    """Builds one PatternRecognizer per entity type in patterns.yaml."""
    recognizers = []
    for entity_type in loader.get_pattern_entity_types():
        patterns = [
            Pattern(name=p["name"], regex=p["regex"], score=p["score"])
            for p in loader.get_patterns(entity_type)
        ]
        if not patterns:
            continue
        recognizers.append(
            PatternRecognizer(
                supported_entity=entity_type,
                name=f"{entity_type}_Recognizer",
                patterns=patterns,
                context=loader.get_context(entity_type),
            )
        )
    return recognizers


class PresidioDetector:
    """Local detector backed by Presidio's analyzer and a spaCy model.

    Presidio entity types are translated to PHI categories through the
    ``entity_mapping`` section of patterns.yaml; types without a mapping
    are discarded. No score threshold is applied here.
    """

    def __init__(
        self,
        spacy_model_name: str = "en_core_web_lg",
        analyzer: Optional[AnalyzerEngine] = None,
        loader: Optional[PatternLoader] = None,
        language: str = "en",
    ) -> None:
        """Initialize the detector.

        Args:
            spacy_model_name: SpaCy model to use for NER
            analyzer: Pre-built analyzer (skips model loading)
            loader: Pattern source, defaults to the packaged patterns.yaml
            language: Analysis language code

        Raises:
            InitializationError: If model loading or engine setup fails.
        """
        self.spacy_model = spacy_model_name
        self.language = language
        self._loader = loader or PatternLoader.get_instance()
        self._entity_mapping: Dict[str, str] = self._loader.get_entity_mapping()
        self._analyzer: AnalyzerEngine = analyzer or self._initialize()

    def _initialize(self) -> AnalyzerEngine:
        """Sets up the spaCy NLP engine, registry and analyzer.

        Raises:
            InitializationError: If components cannot be initialized.
        """
        if not spacy.util.is_package(self.spacy_model):
            logger.critical(
                f"SpaCy model '{self.spacy_model}' not found. "
                "Ensure it is installed in the environment."
            )
            raise InitializationError(
                f"Missing required SpaCy model '{self.spacy_model}'."
            )

        ner_mapping = NerModelConfiguration(
            labels_to_ignore=[
                "CARDINAL",
                "ORDINAL",
                "LAW",
                "PERCENT",
                "QUANTITY",
                "MONEY",
                "WORK_OF_ART",
                "PRODUCT",
                "EVENT",
                "LANGUAGE",
            ],
            model_to_presidio_entity_mapping={
                "PER": "PERSON",
                "PERSON": "PERSON",
                "LOC": "LOCATION",
                "GPE": "LOCATION",
                "FAC": "LOCATION",
                "ORG": "ORGANIZATION",
                "DATE": "DATE_TIME",
                "TIME": "DATE_TIME",
            },
        )

        logger.info(f"Initializing NLP engine with model: {self.spacy_model}")

        try:
            nlp_engine = SpacyNlpEngine(
                models=[{"lang_code": self.language, "model_name": self.spacy_model}],
                ner_model_configuration=ner_mapping,
            )
            nlp_engine.load()
        except OSError as e:
            logger.critical(f"Failed to load spaCy model '{self.spacy_model}'")
            raise InitializationError(
                f"Could not load spaCy model '{self.spacy_model}'"
            ) from e

        try:
            registry = RecognizerRegistry(supported_languages=[self.language])
            registry.load_predefined_recognizers(
                languages=[self.language], nlp_engine=nlp_engine
            )
            recognizers = create_pattern_recognizers(self._loader)
            for rec in recognizers:
                registry.add_recognizer(rec)

            analyzer = AnalyzerEngine(
                registry=registry,
                nlp_engine=nlp_engine,
                supported_languages=[self.language],
            )
        except Exception as e:
            logger.error("Engine initialization failed", exc_info=True)
            raise InitializationError("Failed to initialize Presidio engine") from e

        logger.info(
            "Presidio engine initialized successfully",
            extra={"custom_recognizer_count": len(recognizers)},
        )
        return analyzer

    def detect(self, chunk_text: str) -> List[Entity]:
        """Returns PHI entities for ``chunk_text``.

        Raises:
            DetectionUnavailable: If analysis fails
        """
        try:
            results = self._analyzer.analyze(
                text=chunk_text, language=self.language, score_threshold=0.0
            )
        except Exception as e:
            logger.error(
                "Presidio analysis failed",
                exc_info=True,
                extra={"text_length": len(chunk_text)},
            )
            raise DetectionUnavailable(f"Presidio analysis failed: {e}") from e

        # Several Presidio types can map onto one PHI type for the same span
        best: Dict[Tuple[str, int, int], Entity] = {}
        for r in results:
            phi_type = self._entity_mapping.get(r.entity_type)
            if phi_type is None:
                continue
            key = (phi_type, r.start, r.end)
            if key in best and best[key].score >= r.score:
                continue
            best[key] = Entity(
                type=phi_type,
                text=chunk_text[r.start : r.end],
                begin_offset=r.start,
                end_offset=r.end,
                score=float(r.score),
            )

        entities = sorted(best.values(), key=lambda e: (e.begin_offset, e.end_offset))

        logger.debug(
            "Presidio detection complete",
            extra={
                "raw_count": len(results),
                "entity_count": len(entities),
                "text_length": len(chunk_text),
            },
        )
        return entities
