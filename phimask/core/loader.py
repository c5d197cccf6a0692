# phimask/core/loader.py

"""Pattern and entity-mapping loader for the local Presidio detector."""

import yaml
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional

from phimask.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class PatternLoader:
    """Singleton loader for detection patterns and entity mappings.

    Loads configuration once from patterns.yaml and caches it for the
    application lifecycle.
    """

    _instance: Optional["PatternLoader"] = None
    _config: Dict[str, Any] = {}
    _loaded: bool = False

    def __new__(cls) -> "PatternLoader":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if not PatternLoader._loaded:
            self._load_config(Path(__file__).parent / "patterns.yaml")

    def _load_config(self, config_path: Path) -> None:
        """Loads and validates a patterns file.

        Raises:
            ConfigurationError: If file is missing, invalid, or empty.
        """
        if not config_path.exists():
            error_msg = f"Configuration file not found: {config_path}"
            logger.error(error_msg)
            raise ConfigurationError(error_msg)

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"YAML parsing error: {e}", exc_info=True)
            raise ConfigurationError(f"Failed to parse {config_path.name}: {e}") from e
        except OSError as e:
            logger.error(f"Configuration loading failed: {e}", exc_info=True)
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

        if not config or not isinstance(config, dict):
            raise ConfigurationError("Configuration file is empty or invalid")

        self._validate_config(config)

        PatternLoader._config = config
        PatternLoader._loaded = True
        logger.info(
            "Configuration loaded successfully",
            extra={
                "config_path": str(config_path),
                "pattern_count": len(config.get("patterns", {})),
                "mapping_count": len(config.get("entity_mapping", {})),
            },
        )

    @staticmethod
    def _validate_config(config: Dict[str, Any]) -> None:
        """Validates required configuration sections exist.

        Raises:
            ConfigurationError: If required sections are missing or malformed.
        """
        required_sections = ["patterns", "entity_mapping"]
        missing = [s for s in required_sections if s not in config]

        if missing:
            error_msg = f"Missing required configuration sections: {missing}"
            logger.error(error_msg)
            raise ConfigurationError(error_msg)

        for entity_type, patterns in (config.get("patterns") or {}).items():
            for pattern in patterns or []:
                absent = [k for k in ("name", "regex", "score") if k not in pattern]
                if absent:
                    raise ConfigurationError(
                        f"Pattern for {entity_type} is missing keys: {absent}"
                    )

    @classmethod
    def get_instance(cls) -> "PatternLoader":
        """Returns the singleton instance of PatternLoader."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def from_file(cls, config_path: Path) -> "PatternLoader":
        """Reloads the singleton from an alternative patterns file."""
        loader = super().__new__(cls)
        loader._load_config(Path(config_path))
        cls._instance = loader
        return loader

    def get_pattern_entity_types(self) -> List[str]:
        """Returns the entity types that have regex patterns configured."""
        return list((self._config.get("patterns") or {}).keys())

    def get_patterns(self, entity_type: str) -> List[Dict[str, Any]]:
        """Returns regex patterns for a specific entity type.

        Args:
            entity_type: Presidio entity type (e.g., 'MEDICAL_RECORD_NUMBER')

        Returns:
            List of pattern dictionaries with 'name', 'regex', 'score' keys
        """
        patterns = (self._config.get("patterns") or {}).get(entity_type, [])
        return patterns if patterns else []

    def get_context(self, entity_type: str) -> List[str]:
        """Returns context words that boost matches of an entity type."""
        context = (self._config.get("context") or {}).get(entity_type, [])
        return context if context else []

    def get_entity_mapping(self) -> Dict[str, str]:
        """Returns the Presidio entity type -> PHI type mapping."""
        return dict(self._config.get("entity_mapping") or {})
