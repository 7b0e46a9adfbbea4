"""Configuration loading and setup validation for lambda-http-bridge.

Configuration is fixed once at setup time. It comes from the
``BRIDGE_CONFIG`` environment variable (JSON) or a ``config.yaml`` file.
Every failure here is a setup-time ``ConfigurationError``, never a
per-invocation error.
"""

import importlib
import json
import logging
import os
from typing import Any, Callable, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from bridge.http import ResponseType

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "BRIDGE_CONFIG"
DEFAULT_CONFIG_PATH = "config.yaml"


class ConfigurationError(Exception):
    """Raised when configuration or application setup is invalid."""

    pass


class LoggingConfig(BaseModel):
    """Logging section of the configuration."""

    level: str = Field("INFO", description="Root log level")
    pretty: bool = Field(False, description="Indented JSON for local runs")

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level '{value}'")
        return level


class BridgeConfig(BaseModel):
    """Bridge configuration."""

    application: Optional[str] = Field(
        None, description="Application import path, 'package.module:attribute'"
    )
    include_base_path: bool = Field(
        True, description="Detect the gateway base path and strip it"
    )
    default_response_type: ResponseType = Field(
        ResponseType.TEXT,
        description="Body encoding for responses without a Content-Type",
    )
    response_types: Dict[str, ResponseType] = Field(
        default_factory=dict,
        description="Body encoding overrides keyed by media type",
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("response_types")
    @classmethod
    def _lowercase_media_types(
        cls, value: Dict[str, ResponseType]
    ) -> Dict[str, ResponseType]:
        return {key.strip().lower(): response_type for key, response_type in value.items()}

    def get_response_type(self, media_type: Optional[str]) -> Optional[ResponseType]:
        """Return the configured override for a media type, if any."""
        if not media_type:
            return None
        return self.response_types.get(media_type.lower())


def validate_config(config: Any) -> BridgeConfig:
    """Validate a parsed configuration mapping.

    Raises:
        ConfigurationError: If the structure or values are invalid
    """
    if config is None:
        return BridgeConfig()
    if not isinstance(config, dict):
        raise ConfigurationError("Configuration must be a dictionary")

    try:
        return BridgeConfig.model_validate(config)
    except ValidationError as e:
        raise ConfigurationError(f"❌ Configuration Error: Invalid settings\n\n{e}") from e


def load_and_validate_config(config_path: str = DEFAULT_CONFIG_PATH) -> BridgeConfig:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to config.yaml

    Returns:
        Validated BridgeConfig

    Raises:
        ConfigurationError: If the YAML or its values are invalid
        FileNotFoundError: If the file doesn't exist
    """
    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")

    validated = validate_config(config)
    logger.info(
        f"Configuration loaded from {config_path}",
        extra={"include_base_path": validated.include_base_path},
    )
    return validated


def load_config_from_env(env_var: str = CONFIG_ENV_VAR) -> Optional[BridgeConfig]:
    """Load configuration from a JSON environment variable, if set."""
    config_json = os.environ.get(env_var)
    if not config_json:
        return None
    try:
        config = json.loads(config_json)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {env_var}: {e}") from e
    return validate_config(config)


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> BridgeConfig:
    """Load configuration from the environment, then YAML, then defaults."""
    config = load_config_from_env()
    if config is not None:
        logger.info(f"Loaded configuration from {CONFIG_ENV_VAR}")
        return config

    try:
        return load_and_validate_config(config_path)
    except FileNotFoundError:
        logger.info("No configuration found, using defaults")
        return BridgeConfig()


def get_logging_config(config: BridgeConfig) -> Dict[str, Any]:
    """Return the logging section as a plain dictionary."""
    return config.logging.model_dump()


def resolve_application(application: Any) -> Callable[..., Any]:
    """Return the callable that handles canonical requests.

    Accepts a plain callable or an object exposing a callable ``handle``.

    Raises:
        ConfigurationError: If neither form is present
    """
    handle = getattr(application, "handle", None)
    if callable(handle):
        return handle
    if callable(application):
        return application
    raise ConfigurationError(
        f"Application must be callable or define handle(request), "
        f"got {type(application).__name__}"
    )


def load_application(import_path: Optional[str]) -> Callable[..., Any]:
    """Import an application from ``package.module:attribute``.

    Raises:
        ConfigurationError: If the path is missing, malformed or unresolvable
    """
    if not import_path:
        raise ConfigurationError(
            "❌ Configuration Error: No Application Configured\n\n"
            "Set 'application: package.module:attribute' in config.yaml or "
            f"in the {CONFIG_ENV_VAR} environment variable."
        )

    module_path, _, attribute = import_path.partition(":")
    if not module_path or not attribute:
        raise ConfigurationError(
            f"Application path '{import_path}' must look like 'package.module:attribute'"
        )

    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise ConfigurationError(f"Failed to import application module {module_path}: {e}") from e

    target: Any = module
    for name in attribute.split("."):
        try:
            target = getattr(target, name)
        except AttributeError:
            raise ConfigurationError(
                f"Module {module_path} has no attribute '{attribute}'"
            ) from None

    return resolve_application(target)
