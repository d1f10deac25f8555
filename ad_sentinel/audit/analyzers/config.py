"""Configuration system for ad-loading analyzers.

This module provides configuration management for analyzer thresholds and the
bidder pattern table, including YAML loading, validation, and environment
variable overrides.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from ..models.trace import ResourceType
from .classification import BidderPattern, ResourceClassifier
from .bidders import DEFAULT_BIDDER_PATTERNS


logger = logging.getLogger(__name__)


class IdleNetworkConfig(BaseModel):
    """Thresholds for idle network detection and cause attribution."""

    noteworthy_gap_ms: float = Field(
        default=150,
        ge=0,
        description="Idle gaps longer than this are reported"
    )
    failing_gap_ms: float = Field(
        default=400,
        ge=0,
        description="A single gap longer than this fails the check"
    )
    failing_total_idle_ms: float = Field(
        default=1500,
        ge=0,
        description="Total idle time above this fails the check"
    )
    overlap_threshold: float = Field(
        default=0.80,
        ge=0.0,
        le=1.0,
        description="Fraction of a gap a cause must cover"
    )
    proximity_ms: float = Field(
        default=50,
        ge=0,
        description="Max distance between a gap's end and a timer or lifecycle event"
    )
    long_task_ms: float = Field(
        default=100,
        ge=0,
        description="Tasks longer than this are long tasks"
    )
    blocking_resource_types: List[ResourceType] = Field(
        default_factory=lambda: [
            ResourceType.SCRIPT,
            ResourceType.XHR,
            ResourceType.FETCH,
            ResourceType.EVENTSTREAM,
            ResourceType.EVENTSOURCE,
            ResourceType.DOCUMENT,
        ],
        description="Resource types that can hold up ad loading"
    )


class ClassifierConfig(BaseModel):
    """Configuration for resource classification."""

    use_default_bidders: bool = Field(
        default=True,
        description="Include the bundled bidder pattern table"
    )
    bidders: List[BidderPattern] = Field(
        default_factory=list,
        description="Additional bidder patterns, checked before the defaults"
    )

    def bidder_table(self) -> List[BidderPattern]:
        table = list(self.bidders)
        if self.use_default_bidders:
            table.extend(BidderPattern(**b) for b in DEFAULT_BIDDER_PATTERNS)
        return table

    def build_classifier(self) -> ResourceClassifier:
        return ResourceClassifier(self.bidder_table())


class AnalysisConfig(BaseModel):
    """Root configuration for all analyzers."""

    environment: str = Field(
        default="production",
        description="Environment name"
    )
    idle_network: IdleNetworkConfig = Field(default_factory=IdleNetworkConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        """Validate environment name."""
        allowed_envs = ['development', 'staging', 'production', 'test']
        if v not in allowed_envs:
            raise ValueError(f"Environment must be one of: {allowed_envs}")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


class ConfigurationError(Exception):
    """Configuration-related errors."""
    pass


class ConfigManager:
    """Manages analyzer configuration loading and validation."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        self.config_path = Path(config_path) if config_path else None
        self._config: Optional[AnalysisConfig] = None

    def load_config(self, config_path: Optional[Union[str, Path]] = None) -> AnalysisConfig:
        """Load configuration from file and environment.

        Args:
            config_path: Optional override for config file path

        Returns:
            Loaded and validated configuration

        Raises:
            ConfigurationError: If the file cannot be read or fails validation
        """
        if config_path:
            self.config_path = Path(config_path)

        config_data: Dict[str, Any] = {}

        if self.config_path:
            if not self.config_path.exists():
                raise ConfigurationError(f"Config file not found: {self.config_path}")
            try:
                with open(self.config_path, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(f"Failed to load config from {self.config_path}: {e}")
            if not isinstance(config_data, dict):
                raise ConfigurationError("Config file must contain a YAML dictionary")

        self._merge_config(config_data, self._load_environment_variables())

        try:
            self._config = AnalysisConfig(**config_data)
        except Exception as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

        logger.info(f"Loaded analysis config (environment={self._config.environment})")
        return self._config

    def get_config(self) -> AnalysisConfig:
        """Get current configuration, loading default if needed."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def validate_config(self, config_data: Dict[str, Any]) -> List[str]:
        """Validate configuration data without loading.

        Returns:
            List of validation errors
        """
        errors = []
        try:
            AnalysisConfig(**config_data)
        except Exception as e:
            errors.append(str(e))
        return errors

    def create_default_config(self, output_path: Union[str, Path]) -> None:
        """Write the default configuration as YAML."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w') as f:
            yaml.safe_dump(AnalysisConfig().model_dump(mode="json"), f,
                           default_flow_style=False, indent=2, sort_keys=False)

    def _load_environment_variables(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        env_config: Dict[str, Any] = {}

        if env_name := os.getenv('AD_SENTINEL_ENVIRONMENT'):
            env_config['environment'] = env_name

        numeric_overrides = {
            'AD_SENTINEL_NOTEWORTHY_GAP_MS': 'noteworthy_gap_ms',
            'AD_SENTINEL_FAILING_GAP_MS': 'failing_gap_ms',
            'AD_SENTINEL_FAILING_TOTAL_IDLE_MS': 'failing_total_idle_ms',
        }
        for env_var, key in numeric_overrides.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            try:
                env_config.setdefault('idle_network', {})[key] = float(value)
            except ValueError:
                raise ConfigurationError(f"{env_var} must be a number, got {value!r}")

        return env_config

    def _merge_config(self, base_config: Dict[str, Any], override_config: Dict[str, Any]) -> None:
        """Deep merge configuration dictionaries."""
        for key, value in override_config.items():
            if key in base_config and isinstance(base_config[key], dict) and isinstance(value, dict):
                self._merge_config(base_config[key], value)
            else:
                base_config[key] = value


# Global configuration manager instance
config_manager = ConfigManager()


def get_config() -> AnalysisConfig:
    """Get current analysis configuration."""
    return config_manager.get_config()


def load_config(config_path: Union[str, Path]) -> AnalysisConfig:
    """Load configuration from specified path."""
    return config_manager.load_config(config_path)
