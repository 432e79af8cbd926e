"""
Configuration module for the PhosphoRS scorer.

This module contains the PhosphoRSConfig class, which manages configuration
settings for site localization: tolerances, fragment ion settings, window
reduction parameters and cache sizing.
"""

import copy
import json
import logging
from typing import Dict, Any, Optional

from .constants import DEFAULT_CONFIG
from .errors import InvalidInput

logger = logging.getLogger(__name__)


class PhosphoRSConfig:
    """
    Configuration class for the PhosphoRS scorer.

    Values start from DEFAULT_CONFIG and are overridden by the given dictionary.
    Unknown keys are ignored with a warning.
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        """
        Initialize a new PhosphoRSConfig instance.

        Args:
            config_dict: Optional dictionary containing configuration settings
        """
        self.config = copy.deepcopy(DEFAULT_CONFIG)

        if config_dict:
            self.update(config_dict)

    @classmethod
    def from_json(cls, path: str) -> "PhosphoRSConfig":
        """
        Load a configuration from a JSON file.

        Args:
            path: Path of a JSON object with configuration keys

        Returns:
            PhosphoRSConfig instance
        """
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise InvalidInput(f"Configuration file {path} must contain a JSON object")
        logger.debug(f"Loaded configuration from {path}: {data}")
        return cls(data)

    def update(self, config_dict: Dict[str, Any]) -> None:
        """
        Update configuration with new settings.

        Args:
            config_dict: Dictionary containing new configuration settings
        """
        for key, value in config_dict.items():
            if key in self.config:
                self.config[key] = value
            else:
                logger.warning(f"Unknown configuration key: {key}")

    def validate(self) -> "PhosphoRSConfig":
        """Check value ranges, raising InvalidInput on the first violation."""
        if self.config["fragment_mass_tolerance"] <= 0:
            raise InvalidInput("Fragment mass tolerance must be positive.")
        if self.config["fragment_mass_unit"] not in ("Da", "ppm"):
            raise InvalidInput(
                f"Unsupported fragment mass unit: {self.config['fragment_mass_unit']}"
            )
        if self.config["window_size"] <= 0:
            raise InvalidInput("Window size must be positive.")
        if not 1 <= self.config["min_depth"] <= self.config["max_depth"]:
            raise InvalidInput(
                f"Depth bounds must satisfy 1 <= min_depth <= max_depth, "
                f"got {self.config['min_depth']} and {self.config['max_depth']}"
            )
        if self.config["distribution_cache_size"] < 1:
            raise InvalidInput("Distribution cache size must be at least 1.")
        if not self.config["ion_types"]:
            raise InvalidInput("At least one fragment ion type is required.")
        if not self.config["fragment_charges"] or min(self.config["fragment_charges"]) < 1:
            raise InvalidInput("Fragment charges must be positive integers.")
        return self

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to dictionary.

        Returns:
            Dictionary containing all configuration settings
        """
        return copy.deepcopy(self.config)

    def __getitem__(self, key: str) -> Any:
        return self.config[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.config[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self.config

    def __str__(self) -> str:
        return f"PhosphoRSConfig({self.config})"
