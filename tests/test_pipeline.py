"""End-to-end tests for the masking pipeline and service entry points."""

import pytest

from phimask.core.domain import Entity, MaskingResult
from phimask.core.exceptions import (
    DetectionUnavailable,
    InitializationError,
    InvalidInput,
    PipelineError,
)
from phimask.service import pipeline as pipeline_module
from phimask.service.config import settings
from phimask.service.pipeline import (
    DetectorService,
    PhiMaskingPipeline,
    mask_phi,
    unmask_phi,
)
from tests.helpers import LiteralDetector, ScriptedDetector


@pytest.fixture
def scripted_detector(example_text, example_entities):
    return ScriptedDetector({example_text: example_entities})


@pytest.fixture
def pipeline(literal_detector):
    return PhiMaskingPipeline(literal_detector, default_threshold=0.15, max_workers=2)


class UnavailableDetector:
    def detect(self, chunk_text):
        raise DetectionUnavailable("service unreachable")


class TestMasking:
    """Masking is all-or-nothing and reversible."""

    def test_end_to_end_example(self, scripted_detector, example_text):
        pipeline = PhiMaskingPipeline(scripted_detector, default_threshold=0.15)
        result = pipeline.mask(example_text)

        assert result.masked_text == "{{NAME_1}} visited on {{DATE_2}}."
        assert result.chunk_count == 1
        assert result.threshold == 0.15
        assert pipeline.unmask(result.masked_text, result.masked_entities).unmasked_text == example_text

    def test_low_score_entities_skipped(self, pipeline):
        text = "John Doe, a plumber, visited on 2023-01-05."

        result = pipeline.mask(text)

        assert result.masked_text == "{{NAME_1}}, a plumber, visited on {{DATE_3}}."
        assert [e.text for e in result.skipped_entities] == ["plumber"]
        assert [e.id for e in result.masked_entities] == [1, 3]

    def test_threshold_override(self, pipeline):
        result = pipeline.mask("John Doe, a plumber, visited on 2023-01-05.", threshold=0.05)

        assert result.masked_text == "{{NAME_1}}, a {{PROFESSION_2}}, visited on {{DATE_3}}."
        assert result.skipped_entities == []
        assert result.threshold == 0.05

    def test_threshold_one_masks_nothing_below(self, pipeline):
        result = pipeline.mask("John Doe visited.", threshold=1.0)
        assert result.masked_text == "John Doe visited."
        assert len(result.skipped_entities) == 1

    @pytest.mark.parametrize("threshold", ["abc", 1.5, -0.1, True])
    def test_malformed_threshold(self, pipeline, threshold):
        with pytest.raises(InvalidInput):
            pipeline.mask("John Doe", threshold=threshold)

    @pytest.mark.parametrize("text", ["", None, 42])
    def test_invalid_text(self, pipeline, text):
        with pytest.raises(InvalidInput):
            pipeline.mask(text)

    def test_no_entities(self, pipeline):
        result = pipeline.mask("Nothing identifying here.")
        assert result.masked_text == "Nothing identifying here."
        assert result.masked_entities == []

    def test_repeated_entity_gets_distinct_tokens(self, pipeline):
        result = pipeline.mask("John Doe met John Doe.")
        assert result.masked_text == "{{NAME_1}} met {{NAME_2}}."

    def test_overlaps_coalesced(self):
        """Test overlapping detections collapse to one token over their union."""
        text = "Dr John Doe Smith"
        detector = ScriptedDetector(
            {
                text: [
                    Entity("NAME", "John Doe", 3, 11, 0.9, 1),
                    Entity("NAME", "Doe Smith", 8, 17, 0.7, 2),
                ]
            }
        )

        result = PhiMaskingPipeline(detector).mask(text)

        assert result.masked_text == "Dr {{NAME_1}}"
        assert [e.id for e in result.coalesced_entities] == [2]
        assert result.masked_entities[0].text == "John Doe Smith"
        assert unmask_phi(result.masked_text, result.masked_entities).unmasked_text == text

    def test_detection_failure_aborts(self):
        with pytest.raises(DetectionUnavailable):
            PhiMaskingPipeline(UnavailableDetector()).mask("John Doe")

    def test_inconsistent_detector_output(self):
        detector = ScriptedDetector({}, default=[Entity("NAME", "x", 0, 50, 0.9, 1)])
        with pytest.raises(PipelineError):
            PhiMaskingPipeline(detector).mask("short")

    def test_long_text_round_trip(self):
        """Test a 40,000 character transcript is chunked three ways and restored."""
        unit = "Patient Jane Roe reports pain. "
        text = (unit * 1300)[:40000]
        detector = LiteralDetector([("NAME", "Jane Roe", 0.95)])
        pipeline = PhiMaskingPipeline(detector, max_chars=19000, lookback=500, max_workers=3)

        result = pipeline.mask(text)

        assert result.chunk_count == 3
        assert len(detector.calls) == 3
        assert all(len(call) <= 19000 for call in detector.calls)
        assert "Jane Roe" not in result.masked_text[:18000]
        assert max(e.id for e in result.masked_entities) >= 2000

        ids = [e.id for e in result.masked_entities]
        assert len(ids) == len(set(ids))
        assert unmask_phi(result.masked_text, result.masked_entities).unmasked_text == text

    def test_result_serialization(self, scripted_detector, example_text):
        result = PhiMaskingPipeline(scripted_detector).mask(example_text)

        data = result.to_dict()

        assert data["masked_text"] == result.masked_text
        assert data["tokens"] == {"NAME_1": "John Doe", "DATE_2": "2023-01-05"}
        assert data["masked_entities"][0]["begin_offset"] == 0
        assert data["chunk_count"] == 1


class TestUnmaskPhi:
    """Stored entities come back in whichever shape they were persisted."""

    @pytest.fixture
    def masked(self, scripted_detector, example_text) -> MaskingResult:
        return PhiMaskingPipeline(scripted_detector).mask(example_text)

    def test_from_dicts(self, masked, example_text):
        stored = [e.to_dict() for e in masked.masked_entities]
        assert unmask_phi(masked.masked_text, stored).unmasked_text == example_text

    def test_from_detector_shaped_dicts(self, masked, example_text):
        stored = [
            {
                "Type": e.type,
                "Text": e.text,
                "BeginOffset": e.begin_offset,
                "EndOffset": e.end_offset,
                "Score": e.score,
                "Id": e.id,
            }
            for e in masked.masked_entities
        ]
        assert unmask_phi(masked.masked_text, stored).unmasked_text == example_text

    def test_from_token_map(self, masked, example_text):
        assert unmask_phi(masked.masked_text, masked.tokens).unmasked_text == example_text

    def test_edited_text(self, masked):
        edited = masked.masked_text.replace("visited on", "was seen on") + " {{NAME_9}}"

        result = unmask_phi(edited, masked.masked_entities)

        assert result.unmasked_text == "John Doe was seen on 2023-01-05. {{NAME_9}}"
        assert result.unresolved_tokens == ["{{NAME_9}}"]

    def test_no_entities(self):
        result = unmask_phi("{{NAME_1}} visited.")
        assert result.unmasked_text == "{{NAME_1}} visited."
        assert result.has_warnings

    def test_empty_text_allowed(self):
        assert unmask_phi("", []).unmasked_text == ""

    @pytest.mark.parametrize(
        "masked_text,entities",
        [
            (None, []),
            ("{{NAME_1}}", "NAME_1"),
            ("{{NAME_1}}", [42]),
            ("{{NAME_1}}", [{"type": "NAME"}]),
            ("{{NAME_1}}", 7),
        ],
    )
    def test_bad_input(self, masked_text, entities):
        with pytest.raises(InvalidInput):
            unmask_phi(masked_text, entities)


class TestServiceEntryPoints:
    def test_mask_phi_with_injected_detector(self, scripted_detector, example_text):
        result = mask_phi(example_text, detector=scripted_detector)
        assert result.masked_text == "{{NAME_1}} visited on {{DATE_2}}."

    def test_mask_phi_uses_shared_detector(self, monkeypatch, scripted_detector, example_text):
        monkeypatch.setattr(DetectorService, "_instance", scripted_detector)
        assert mask_phi(example_text).masked_text == "{{NAME_1}} visited on {{DATE_2}}."

    def test_detector_initialization_failure(self, monkeypatch):
        monkeypatch.setattr(settings, "detector_backend", "presidio")
        monkeypatch.setattr(settings, "spacy_model", "not_a_model")
        monkeypatch.setattr("spacy.util.is_package", lambda name: False)
        DetectorService.reset()
        try:
            with pytest.raises(InitializationError):
                mask_phi("John Doe")
        finally:
            DetectorService.reset()

    def test_create_detector_comprehend(self, monkeypatch):
        monkeypatch.setattr(settings, "detector_backend", "comprehend_medical")
        monkeypatch.setattr(settings, "aws_region", "us-west-2")

        detector = pipeline_module.create_detector(settings)

        assert type(detector).__name__ == "ComprehendMedicalDetector"
        assert detector.max_chars == settings.detector_max_chars
