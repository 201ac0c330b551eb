"""Configuration persistence manager for the Cleave converter.

This module handles loading and saving of application configuration to/from JSON files.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional, Tuple

from .errors import InvalidParameter
from .models import APP_NAME, CONFIG_FILE, ConversionSettings, QuantizationMethod

logger = logging.getLogger(__name__)

ENDPOINT_ENV = "CLEAVE_ANNOTATION_ENDPOINT"


@dataclass
class AppConfig:
    """Application-level settings surrounding a conversion run."""

    app_name: str = APP_NAME

    # AI annotation service
    annotation_endpoint: Optional[str] = None
    annotation_timeout: float = 30.0  # seconds
    annotation_api_key_env: str = "CLEAVE_ANNOTATION_API_KEY"

    # Vector pipeline
    quantization_method: str = QuantizationMethod.KMEANS.value
    kmeans_sample_size: int = 20_000  # pixels sampled to fit K-means

    # Allow Complete items to be picked up again by the next batch run
    reconvert_completed: bool = False

    log_level: str = "INFO"

    # Initial conversion settings
    defaults: ConversionSettings = field(default_factory=ConversionSettings)

    def to_dict(self) -> "dict[str, Any]":
        data = asdict(self)
        data["defaults"] = self.defaults.to_dict()
        return data


class ConfigManager:
    """Handles loading and saving of application configuration."""

    def __init__(self, config_path: Path = CONFIG_FILE):
        """Initialize config manager.

        Args:
            config_path: Path to configuration file (defaults to ~/.cleave_config.json)
        """
        self.config_path = Path(config_path)

    def load(self) -> AppConfig:
        """Load configuration from file, returning defaults if not found.

        Returns:
            AppConfig with loaded or default values
        """
        config = AppConfig()

        try:
            if self.config_path.exists():
                with open(self.config_path, "r") as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise TypeError("top-level JSON value is not an object")
                # Update config with loaded values (fallback to defaults)
                config.app_name = data.get("app_name", config.app_name)
                config.annotation_endpoint = data.get(
                    "annotation_endpoint", config.annotation_endpoint
                )
                config.annotation_timeout = float(
                    data.get("annotation_timeout", config.annotation_timeout)
                )
                config.annotation_api_key_env = data.get(
                    "annotation_api_key_env", config.annotation_api_key_env
                )
                config.quantization_method = QuantizationMethod(
                    data.get("quantization_method", config.quantization_method)
                ).value
                config.kmeans_sample_size = int(
                    data.get("kmeans_sample_size", config.kmeans_sample_size)
                )
                config.reconvert_completed = bool(
                    data.get("reconvert_completed", config.reconvert_completed)
                )
                config.log_level = data.get("log_level", config.log_level)
                if isinstance(data.get("defaults"), dict):
                    config.defaults = ConversionSettings.from_dict(data["defaults"])
                logger.info("Loaded configuration from %s", self.config_path)
        except (OSError, ValueError, TypeError, InvalidParameter) as e:
            logger.warning("Could not load config file %s: %s", self.config_path, e)
            config = AppConfig()

        endpoint = os.getenv(ENDPOINT_ENV)
        if endpoint:
            config.annotation_endpoint = endpoint

        return config

    def save(self, config: AppConfig) -> Tuple[bool, Optional[str]]:
        """Save configuration to file.

        Args:
            config: AppConfig to save

        Returns:
            Tuple of (success: bool, error_message: Optional[str])
        """
        try:
            with open(self.config_path, "w") as f:
                json.dump(config.to_dict(), f, indent=2)
            return True, None
        except (OSError, TypeError) as e:
            return False, str(e)
