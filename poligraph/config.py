"""Configuration management for the affair discovery pipeline."""

import copy
import os
import json
import logging
from pathlib import Path
from typing import Optional, Dict, Any

from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError

from .error_handling import ConfigurationError
from .models import Config

logger = logging.getLogger(__name__)

_TRUTHY = ("true", "1", "yes")


class ConfigManager:
    """Loads configuration from defaults, a JSON file and the environment."""

    DEFAULT_CONFIG = {
        "scoring": {
            "ecli_score": 100,
            "pourvoi_score": 95,
            "case_number_weight": 40,
            "title_min_ratio": 0.30,
            "title_weight": 50,
            "category_weight": 15,
            "source_overlap_weight": 15,
            "match_floor": 40,
            "high_threshold": 75,
            "certain_threshold": 100,
        },
        "pipeline": {
            "conviction_confidence": 95,
            "charge_confidence": 75,
            "min_text_confidence": 40,
            "max_slug_length": 120,
            "ai_call_interval": 1.0,
            "rate_limit_backoff_seconds": 60.0,
            "max_rate_limit_retries": 3,
            "dry_run": False,
            "verbose": False,
        },
        "ai": {
            "provider": "claude",
            "model": "claude-sonnet-4-5-20250929",
            "max_tokens": 2000,
            "temperature": 0.0,
            "max_section_chars": 8000,
        },
        "knowledge_graph": {
            "requests_per_second": 5.0,
            "burst_size": 5,
            "timeout": 30.0,
            "retry_attempts": 3,
        },
        "storage": {
            "db_path": "poligraph.db",
        },
    }

    def __init__(self, config_path: Optional[str] = None, load_env_file: bool = True):
        """Initialize config manager.

        Args:
            config_path: Path to a JSON config file. If None, uses defaults + env vars
            load_env_file: Whether to read a ``.env`` file into the environment
        """
        self.config_path = Path(config_path) if config_path else None
        self._config: Optional[Config] = None
        if load_env_file:
            load_dotenv()

    def load(self) -> Config:
        """Load configuration from file and environment.

        Raises:
            ConfigurationError: If the file is unreadable or values are invalid
        """
        if self._config:
            return self._config

        config_dict = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path:
            if not self.config_path.exists():
                raise ConfigurationError(
                    f"Config file not found: {self.config_path}", config_key="config_path"
                )
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in {self.config_path}: {e}") from e
            config_dict = self._deep_merge(config_dict, file_config)

        config_dict = self._apply_env_overrides(config_dict)

        try:
            self._config = Config(**config_dict)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
        return self._config

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in update.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides."""
        if not config.get("ai", {}).get("api_key"):
            api_key = os.getenv("ANTHROPIC_API_KEY")
            if api_key:
                config.setdefault("ai", {})["api_key"] = api_key

        model = os.getenv("POLIGRAPH_AI_MODEL")
        if model:
            config.setdefault("ai", {})["model"] = model

        db_path = os.getenv("POLIGRAPH_DB_PATH")
        if db_path:
            config.setdefault("storage", {})["db_path"] = db_path

        if os.getenv("POLIGRAPH_DRY_RUN", "").lower() in _TRUTHY:
            config.setdefault("pipeline", {})["dry_run"] = True

        if os.getenv("POLIGRAPH_VERBOSE", "").lower() in _TRUTHY:
            config.setdefault("pipeline", {})["verbose"] = True

        rate_limit = os.getenv("WIKIDATA_RATE_LIMIT")
        if rate_limit:
            try:
                config.setdefault("knowledge_graph", {})["requests_per_second"] = float(rate_limit)
            except ValueError:
                raise ConfigurationError(
                    f"WIKIDATA_RATE_LIMIT must be a number, got {rate_limit!r}",
                    config_key="knowledge_graph.requests_per_second",
                )

        return config

    def save_template(self, path: str) -> Path:
        """Save a configuration template file."""
        template = copy.deepcopy(self.DEFAULT_CONFIG)
        template["ai"]["api_key"] = "YOUR_ANTHROPIC_API_KEY"

        target = Path(path)
        with open(target, "w", encoding="utf-8") as f:
            json.dump(template, f, indent=2, ensure_ascii=False)

        logger.info(f"Configuration template saved to: {target}")
        return target

    def validate(self, require_ai: bool = True) -> bool:
        """Validate the current configuration.

        Args:
            require_ai: Whether the text phase will run (needs an API key)

        Raises:
            ConfigurationError: If a required setting is missing
        """
        config = self.load()

        if require_ai and not config.ai.api_key:
            raise ConfigurationError(
                "AI API key not configured (set ANTHROPIC_API_KEY)", config_key="ai.api_key"
            )

        if config.knowledge_graph.requests_per_second <= 0:
            raise ConfigurationError(
                "requests_per_second must be positive",
                config_key="knowledge_graph.requests_per_second",
            )

        if config.scoring.high_threshold > config.scoring.certain_threshold:
            raise ConfigurationError(
                "high_threshold cannot exceed certain_threshold",
                config_key="scoring.high_threshold",
            )

        return True

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            self._config = self.load()
        return self._config
