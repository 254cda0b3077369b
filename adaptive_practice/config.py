"""
Centralized Configuration for the Adaptive Practice Engine

This module holds the tunable parameters of the difficulty tracker and the
candidate scorer, along with logging settings. Configuration is read from
defaults, an optional YAML or JSON file and environment variables (highest
priority), and is validated when it is loaded so that a bad threshold or a
negative weight fails fast instead of silently skewing the adaptive loop.
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from adaptive_practice.common.exceptions import ConfigurationError
from adaptive_practice.common.logger import configure_logger

logger = logging.getLogger(__name__)

WEIGHT_SUM_TOLERANCE = 1e-6


class AdaptiveConfig(BaseModel):
    """Difficulty tracker configuration"""
    model_config = ConfigDict(frozen=True)

    increase_threshold: float = Field(default=0.75, ge=0.0, le=1.0)
    decrease_threshold: float = Field(default=0.45, ge=0.0, le=1.0)
    window_size: int = Field(default=5, ge=1)
    cooldown_questions: int = Field(default=3, ge=0)
    min_questions_before_adjust: int = Field(default=3, ge=0)

    @model_validator(mode="after")
    def validate_band(self) -> "AdaptiveConfig":
        """Validate that the hold band between the thresholds is non-empty"""
        if self.decrease_threshold >= self.increase_threshold:
            raise ValueError(
                f"decrease_threshold ({self.decrease_threshold}) must be lower than "
                f"increase_threshold ({self.increase_threshold})"
            )
        return self


class SelectionSettings(BaseModel):
    """Candidate scorer weights as loaded from configuration"""
    model_config = ConfigDict(frozen=True)

    difficulty_match: float = Field(default=0.40, ge=0.0)
    topic_coverage: float = Field(default=0.25, ge=0.0)
    recency_avoidance: float = Field(default=0.20, ge=0.0)
    weak_area_focus: float = Field(default=0.15, ge=0.0)
    default_limit: int = Field(default=5, ge=1)

    @model_validator(mode="after")
    def check_weight_sum(self) -> "SelectionSettings":
        """Warn when the weights are not a convex combination"""
        total = (
            self.difficulty_match + self.topic_coverage +
            self.recency_avoidance + self.weak_area_focus
        )
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            logger.warning(
                f"Selection weights sum to {total:.4f}, not 1.0; scores will fall outside [0, 1]"
            )
        return self

    def to_weights(self):
        """Build the SelectionWeights record passed to the scorer"""
        from adaptive_practice.engine.models import SelectionWeights

        return SelectionWeights(
            difficulty_match=self.difficulty_match,
            topic_coverage=self.topic_coverage,
            recency_avoidance=self.recency_avoidance,
            weak_area_focus=self.weak_area_focus
        )


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = "INFO"
    json_output: bool = False
    file_path: Optional[str] = None

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class StoreConfig(BaseModel):
    """Tracker store configuration"""
    database_url: str = "sqlite:///:memory:"
    max_retries: int = Field(default=5, ge=1)


class EngineSettings(BaseSettings):
    """
    Main engine configuration.

    Environment variables use the ``PRACTICE_`` prefix and ``__`` for nesting,
    e.g. ``PRACTICE_TRACKER__WINDOW_SIZE=7``.
    """
    model_config = SettingsConfigDict(
        env_prefix="PRACTICE_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore"
    )

    tracker: AdaptiveConfig = Field(default_factory=AdaptiveConfig)
    selection: SelectionSettings = Field(default_factory=SelectionSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings
    ):
        # Environment beats values handed in from a config file
        return env_settings, dotenv_settings, init_settings, file_secret_settings


class ConfigLoader:
    """
    Configuration loader for the engine.

    Loads configuration from:
    1. Default values
    2. Config file (YAML or JSON)
    3. Environment variables (highest priority)
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the config loader.

        Args:
            config_path: Path to config file (YAML or JSON)
        """
        self.config_path = config_path or os.environ.get("PRACTICE_CONFIG_PATH")
        self._config: Optional[EngineSettings] = None

    def load(self) -> EngineSettings:
        """
        Load configuration from all sources.

        Returns:
            Loaded configuration

        Raises:
            ConfigurationError: If the file cannot be parsed or a value is invalid
        """
        if self._config is not None:
            return self._config

        file_config: Dict[str, Any] = {}
        if self.config_path:
            file_config = self._load_from_file(self.config_path)

        try:
            self._config = EngineSettings(**file_config)
        except ValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            key = ".".join(str(part) for part in first.get("loc", ()))
            raise ConfigurationError(str(e), config_key=key or None, original_exception=e) from e
        return self._config

    def _load_from_file(self, path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            path: Path to config file

        Returns:
            Loaded configuration dictionary
        """
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return {}

        try:
            if path.suffix.lower() in ['.yaml', '.yml']:
                with open(path, 'r') as f:
                    data = yaml.safe_load(f)
            elif path.suffix.lower() == '.json':
                with open(path, 'r') as f:
                    data = json.load(f)
            else:
                logger.warning(f"Unsupported config file format: {path.suffix}")
                return {}
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Could not parse {path}: {e}", original_exception=e) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Top level of {path} must be a mapping")
        return data


_config_loader: Optional[ConfigLoader] = None


def get_settings() -> EngineSettings:
    """
    Get the loaded configuration, loading it on first use.

    Returns:
        Loaded configuration
    """
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader.load()


def reload_settings(config_path: Optional[str] = None) -> EngineSettings:
    """
    Reload the configuration.

    Args:
        config_path: Path to config file

    Returns:
        Reloaded configuration
    """
    global _config_loader
    _config_loader = ConfigLoader(config_path)
    return _config_loader.load()


def configure_logging(settings: Optional[EngineSettings] = None) -> logging.Logger:
    """Apply the logging section of the settings to the application logger"""
    settings = settings or get_settings()
    return configure_logger(
        level=settings.logging.level,
        use_json=settings.logging.json_output,
        log_file=settings.logging.file_path
    )
