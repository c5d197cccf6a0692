"""Tests for settings validation and the pattern loader."""

import pytest
from pydantic import ValidationError

from phimask.core.exceptions import ConfigurationError
from phimask.core.loader import PatternLoader
from phimask.service.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("PHIMASK_MASK_THRESHOLD", "PHIMASK_MAX_CHUNK_CHARS", "PHIMASK_CHUNK_LOOKBACK"):
            monkeypatch.delenv(name, raising=False)

        config = Settings(_env_file=None)

        assert config.mask_threshold == 0.15
        assert config.max_chunk_chars == 19000
        assert config.chunk_lookback == 500
        assert config.id_namespace_stride == 1000
        assert config.detector_max_chars == 20000

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("PHIMASK_MASK_THRESHOLD", "0.4")
        monkeypatch.setenv("PHIMASK_DETECTOR_BACKEND", "presidio")

        config = Settings(_env_file=None)

        assert config.mask_threshold == 0.4
        assert config.detector_backend == "presidio"

    def test_secrets_not_echoed(self, monkeypatch):
        monkeypatch.setenv("PHIMASK_MASTER_KEY", "super-secret-value")
        config = Settings(_env_file=None)
        assert "super-secret-value" not in repr(config)
        assert config.master_key.get_secret_value() == "super-secret-value"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"mask_threshold": 1.5},
            {"mask_threshold": -0.1},
            {"max_chunk_chars": 0},
            {"max_chunk_chars": 25000},
            {"chunk_lookback": 19000},
            {"spacy_model": "   "},
            {"detector_backend": "regex"},
            {"detection_timeout": 0},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)


class TestPatternLoader:
    def test_packaged_patterns(self):
        loader = PatternLoader.get_instance()

        assert "MEDICAL_RECORD_NUMBER" in loader.get_pattern_entity_types()
        assert loader.get_entity_mapping()["PERSON"] == "NAME"
        assert all({"name", "regex", "score"} <= set(p) for p in loader.get_patterns("CLINICAL_DATE"))
        assert loader.get_patterns("UNKNOWN") == []
        assert "mrn" in loader.get_context("MEDICAL_RECORD_NUMBER")

    def test_singleton(self):
        assert PatternLoader.get_instance() is PatternLoader()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            PatternLoader.from_file(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "patterns.yaml"
        path.write_text("patterns: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            PatternLoader.from_file(path)

    def test_missing_section(self, tmp_path):
        path = tmp_path / "patterns.yaml"
        path.write_text("patterns: {}\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="entity_mapping"):
            PatternLoader.from_file(path)

    def test_incomplete_pattern(self, tmp_path):
        path = tmp_path / "patterns.yaml"
        path.write_text(
            "patterns:\n  MRN:\n    - name: mrn\n      regex: '\\d+'\n" "entity_mapping: {}\n",
            encoding="utf-8",
        )
        with pytest.raises(ConfigurationError, match="score"):
            PatternLoader.from_file(path)

    def test_failed_reload_keeps_loaded_config(self, tmp_path):
        loader = PatternLoader.get_instance()
        with pytest.raises(ConfigurationError):
            PatternLoader.from_file(tmp_path / "missing.yaml")
        assert PatternLoader.get_instance() is loader
        assert loader.get_entity_mapping()["PERSON"] == "NAME"
