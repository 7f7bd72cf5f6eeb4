"""
Configuration management for stack utilities.

Handles defaults for region/profile, event tailing and SSH settings, loaded
from a YAML file and overridden by environment variables.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from jsonschema import ValidationError, validate

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "STACK_UTILS_CONFIG"
CONFIG_FILE_NAME = "stack-utils.yaml"

CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "aws_region": {"type": "string", "minLength": 1},
        "aws_profile": {"type": ["string", "null"]},
        "poll_interval": {"type": "number", "exclusiveMinimum": 0},
        "max_polls": {"type": ["integer", "null"], "minimum": 1},
        "tail_timeout": {"type": ["number", "null"], "exclusiveMinimum": 0},
        "max_fetch_errors": {"type": "integer", "minimum": 0},
        "show_timestamps": {"type": "boolean"},
        "capabilities": {"type": "array", "items": {"type": "string"}},
        "default_tags": {
            "type": "object",
            "additionalProperties": {"type": "string"},
        },
        "ssh_user": {"type": "string", "minLength": 1},
        "ssh_key_file": {"type": ["string", "null"]},
        "ssh_use_private_ip": {"type": "boolean"},
    },
}


@dataclass
class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    message: str
    details: Optional[str] = None

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


@dataclass
class ToolConfig:
    """Settings shared by every stack-utils command."""

    # AWS session
    aws_region: str = "us-east-1"
    aws_profile: Optional[str] = None

    # Event tailing
    poll_interval: float = 1.0
    max_polls: Optional[int] = None
    tail_timeout: Optional[float] = None
    max_fetch_errors: int = 3
    show_timestamps: bool = False

    # Stack creation/update
    capabilities: List[str] = field(
        default_factory=lambda: ["CAPABILITY_IAM", "CAPABILITY_NAMED_IAM"]
    )
    default_tags: Dict[str, str] = field(default_factory=dict)

    # SSH
    ssh_user: str = "ec2-user"
    ssh_key_file: Optional[str] = None
    ssh_use_private_ip: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolConfig":
        """Create config from dictionary."""
        return cls(**data)


class ConfigManager:
    """Loads, validates and caches the tool configuration."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize config manager.

        Args:
            config_path: Explicit YAML file. When omitted the usual locations
                are searched and defaults are used if none exists.
        """
        self.config_path = Path(config_path) if config_path else self._find_config_file()
        self.config = self._load_config()

    def _find_config_file(self) -> Optional[Path]:
        """Find the configuration file."""
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path)

        for candidate in [
            Path.cwd() / CONFIG_FILE_NAME,
            Path.home() / f".{CONFIG_FILE_NAME}",
        ]:
            if candidate.exists():
                return candidate

        return None

    def _load_config(self) -> ToolConfig:
        """Load defaults, merge the YAML file and apply environment overrides."""
        data: Dict[str, Any] = {}

        if self.config_path is not None:
            if not self.config_path.exists():
                raise ConfigurationError(
                    "Configuration file not found", str(self.config_path)
                )

            logger.debug(f"Loading configuration: {self.config_path}")
            try:
                with open(self.config_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError("Failed to parse configuration", str(e))

            try:
                validate(instance=data, schema=CONFIG_SCHEMA)
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid configuration in {self.config_path}", e.message
                )

        defaults = ToolConfig().to_dict()
        # File plus defaults, without environment overrides
        self.file_config = ToolConfig.from_dict({**defaults, **data})

        merged = {**defaults, **data}
        merged.update(self._env_overrides())

        return ToolConfig.from_dict(merged)

    def _env_overrides(self) -> Dict[str, Any]:
        """Collect overrides from the environment."""
        overrides: Dict[str, Any] = {}

        region = os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION")
        if region:
            overrides["aws_region"] = region

        profile = os.environ.get("AWS_PROFILE")
        if profile:
            overrides["aws_profile"] = profile

        interval = os.environ.get("STACK_UTILS_POLL_INTERVAL")
        if interval:
            try:
                overrides["poll_interval"] = float(interval)
            except ValueError:
                raise ConfigurationError(
                    "STACK_UTILS_POLL_INTERVAL must be a number", interval
                )
            if overrides["poll_interval"] <= 0:
                raise ConfigurationError(
                    "STACK_UTILS_POLL_INTERVAL must be positive", interval
                )

        return overrides

    def save_config(
        self, path: Optional[Union[str, Path]] = None, overwrite: bool = False
    ) -> Path:
        """Save the configuration to a YAML file.

        Environment overrides are not written, only the loaded file and
        defaults.
        """
        target = Path(path) if path else Path.cwd() / CONFIG_FILE_NAME
        if target.exists() and not overwrite:
            raise ConfigurationError("Configuration file already exists", str(target))

        with open(target, "w") as f:
            yaml.dump(self.file_config.to_dict(), f, default_flow_style=False)
        return target


# Singleton instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager(config_path: Optional[Union[str, Path]] = None) -> ConfigManager:
    """Get or create the config manager instance."""
    global _config_manager
    if _config_manager is None or config_path is not None:
        _config_manager = ConfigManager(config_path)
    return _config_manager


def get_config(config_path: Optional[Union[str, Path]] = None) -> ToolConfig:
    """Get the active tool configuration."""
    return get_config_manager(config_path).config


def reset_config() -> None:
    """Drop the cached configuration."""
    global _config_manager
    _config_manager = None
