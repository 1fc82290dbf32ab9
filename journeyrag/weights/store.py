"""
Weight Store
============

Loads the scoring configuration with YAML as the source of defaults.

The WeightStore handles:
1. Loading values from YAML (default)
2. Runtime overrides (without restart)

Architecture:
    YAML (default) -> WeightStore -> Runtime overrides
                          |
                     Runtime Cache
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml

from journeyrag.weights.config import ScoringConfig, WeightCategory

log = structlog.get_logger()


class WeightStore:
    """
    Central storage for the scoring configuration.

    Loading priority:
    1. Runtime overrides (if applied)
    2. YAML config
    3. In-code defaults

    Example:
        >>> store = WeightStore()
        >>> config = store.get_config()
        >>> config.fusion.similarity
        0.6
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialise the WeightStore.

        Args:
            config_path: Path to the YAML config. Defaults to the packaged file.
        """
        self.config_path = config_path or self._get_default_config_path()
        self._cached: Optional[ScoringConfig] = None
        self._yaml_config: Optional[Dict] = None
        self._overrides: Dict[str, Dict[str, Any]] = {}

        log.info("WeightStore initialized", config_path=str(self.config_path))

    def _get_default_config_path(self) -> Path:
        return Path(__file__).parent / "config" / "weights.yaml"

    def _load_yaml_config(self) -> Dict:
        """Load configuration from YAML."""
        if self._yaml_config is not None:
            return self._yaml_config

        try:
            with open(self.config_path, "r") as f:
                self._yaml_config = yaml.safe_load(f) or {}
                log.debug("Loaded weights from YAML", path=str(self.config_path))
                return self._yaml_config
        except FileNotFoundError:
            log.warning("Weights config not found, using defaults", path=str(self.config_path))
            return self._get_default_config()
        except yaml.YAMLError as e:
            log.error("Error parsing weights config", path=str(self.config_path), error=str(e))
            return self._get_default_config()

    def _get_default_config(self) -> Dict:
        """Defaults used when the YAML file is unavailable."""
        return ScoringConfig().model_dump(exclude={"created_at", "updated_at"})

    def get_config(self) -> ScoringConfig:
        """
        Returns the effective scoring configuration.

        Raises:
            pydantic.ValidationError: If the YAML or the overrides hold
                out-of-range values.
        """
        if self._cached is not None:
            return self._cached

        data = dict(self._load_yaml_config())
        for category, updates in self._overrides.items():
            section = dict(data.get(category) or {})
            section.update(updates)
            data[category] = section

        config = ScoringConfig(**data)
        config.created_at = datetime.now().isoformat()
        self._cached = config
        return config

    def update_runtime(
        self,
        category: WeightCategory,
        updates: Dict[str, Any]
    ) -> ScoringConfig:
        """
        Apply runtime overrides (no persistence).

        Useful for tests and quick tuning. The new configuration is validated
        before it replaces the previous one.

        Args:
            category: Category to update
            updates: Mapping field name -> new value
        """
        merged = dict(self._overrides.get(category.value, {}))
        merged.update(updates)

        previous_overrides = self._overrides
        self._overrides = {**self._overrides, category.value: merged}
        self._cached = None
        try:
            config = self.get_config()
        except ValueError:
            self._overrides = previous_overrides
            self._cached = None
            raise

        config.updated_at = datetime.now().isoformat()
        log.info("Runtime weight update applied", category=category.value, updates=updates)
        return config

    def reset_runtime(self) -> None:
        """Drop every runtime override."""
        self._overrides = {}
        self._cached = None


_default_store: Optional[WeightStore] = None


def get_weight_store() -> WeightStore:
    """Returns the singleton WeightStore instance."""
    global _default_store
    if _default_store is None:
        _default_store = WeightStore()
    return _default_store
