"""
Configuration for the Consultation Rendering Pipeline

This module defines the configuration dataclass used to build the pipeline
context and the generation backend. Configuration is:
    1. Loaded from environment variables (with .env support)
    2. Range-checked at startup (validate())
    3. Not required to be complete for the backend: missing backend settings
       surface per request as ConfigurationError, before any network call

Configuration Hierarchy:
    PipelineConfiguration
    ├── Generation backend (endpoint, deployment, API version, credentials)
    ├── Generation parameters (temperature, max tokens, timeout)
    ├── Resources (schema path, template path, additional fields policy)
    └── Service (environment, logging, host, port)

Usage:
    from consultologist.core.config import PipelineConfiguration

    config = PipelineConfiguration.from_environment()
    print(config.to_dict())
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from consultologist.core import constants
from consultologist.core.enums import (
    AdditionalFieldsPolicy,
    AuthMode,
    DeploymentEnvironment,
)
from consultologist.core.exceptions import ConfigurationError
from consultologist.core.models import GenerationParameters


# =============================================================================
# STAGE 1: DEFAULT VALUES
# =============================================================================


class ConfigDefaults:
    """Default configuration values."""

    # -------------------------------------------------------------------------
    # 1.1 Generation Defaults
    # -------------------------------------------------------------------------
    DEFAULT_TEMPERATURE = 0.7
    DEFAULT_MAX_TOKENS = 4096
    DEFAULT_TIMEOUT_SECONDS = 60.0

    # -------------------------------------------------------------------------
    # 1.2 Service Defaults
    # -------------------------------------------------------------------------
    DEFAULT_HOST = "0.0.0.0"
    DEFAULT_PORT = 4321
    DEFAULT_LOG_LEVEL = "INFO"


_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUE_VALUES


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_number(name: str, default, cast):
    raw = _env_optional(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(
            f"Setting {name} must be a {cast.__name__}, got '{raw}'",
            context={"setting": name},
        )


def _env_enum(name: str, enum_cls, default):
    raw = _env_optional(name)
    if raw is None:
        return default
    try:
        return enum_cls.from_string(raw)
    except ValueError as e:
        raise ConfigurationError(str(e), context={"setting": name})


# =============================================================================
# STAGE 2: CONFIGURATION DATACLASS
# =============================================================================


@dataclass
class PipelineConfiguration:
    """
    Configuration for the consultation rendering service.

    What it does:
        Holds every setting needed to build the pipeline context, select a
        generation backend strategy and run the HTTP service.

    Example:
        >>> config = PipelineConfiguration.from_environment()
        >>> config.auth_mode
        <AuthMode.API_KEY: 'api_key'>
    """

    # -------------------------------------------------------------------------
    # 2.1 Generation Backend
    # -------------------------------------------------------------------------
    azure_endpoint: Optional[str] = None
    """Azure OpenAI resource endpoint (https://<name>.openai.azure.com/)."""

    deployment_name: Optional[str] = None
    """Azure OpenAI deployment that serves the model."""

    api_version: Optional[str] = None
    """Azure OpenAI REST API version (e.g. '2024-10-21')."""

    api_key: Optional[str] = None
    """Static API key. Required in API_KEY mode only."""

    auth_mode: AuthMode = AuthMode.API_KEY
    """How the backend authenticates: static key or managed identity."""

    token_scope: str = constants.COGNITIVE_SERVICES_SCOPE
    """Token scope requested from the Azure credential."""

    # -------------------------------------------------------------------------
    # 2.2 Generation Parameters
    # -------------------------------------------------------------------------
    temperature: float = ConfigDefaults.DEFAULT_TEMPERATURE
    max_tokens: int = ConfigDefaults.DEFAULT_MAX_TOKENS
    timeout_seconds: float = ConfigDefaults.DEFAULT_TIMEOUT_SECONDS
    """Upper bound on one generation call; expiry raises GenerationTimeoutError."""

    # -------------------------------------------------------------------------
    # 2.3 Resources
    # -------------------------------------------------------------------------
    schema_path: str = str(constants.DEFAULT_SCHEMA_PATH)
    template_path: str = str(constants.DEFAULT_TEMPLATE_PATH)
    additional_fields_policy: AdditionalFieldsPolicy = AdditionalFieldsPolicy.STRICT

    # -------------------------------------------------------------------------
    # 2.4 Service
    # -------------------------------------------------------------------------
    environment: DeploymentEnvironment = DeploymentEnvironment.DEVELOPMENT
    log_level: str = ConfigDefaults.DEFAULT_LOG_LEVEL
    log_json: bool = False
    host: str = ConfigDefaults.DEFAULT_HOST
    port: int = ConfigDefaults.DEFAULT_PORT

    # -------------------------------------------------------------------------
    # 2.5 Validation Methods
    # -------------------------------------------------------------------------

    def validate(self) -> None:
        """
        Range-check settings that have no safe fallback.

        Backend completeness is NOT checked here; see missing_backend_settings().

        Raises:
            ConfigurationError: If a setting is out of range
        """
        if not (0.0 <= self.temperature <= 2.0):
            raise ConfigurationError(
                f"Temperature must be 0.0-2.0, got {self.temperature}",
                context={"setting": "GENERATION_TEMPERATURE"},
            )

        if self.max_tokens <= 0:
            raise ConfigurationError(
                f"Max tokens must be positive, got {self.max_tokens}",
                context={"setting": "GENERATION_MAX_TOKENS"},
            )

        if self.timeout_seconds <= 0:
            raise ConfigurationError(
                f"Generation timeout must be positive, got {self.timeout_seconds}",
                context={"setting": "GENERATION_TIMEOUT_SECONDS"},
            )

        if not (0 < self.port < 65536):
            raise ConfigurationError(
                f"Port must be 1-65535, got {self.port}", context={"setting": "PORT"}
            )

    def missing_backend_settings(self) -> List[str]:
        """
        Names of mandatory backend settings that are absent.

        Endpoint, deployment and API version are always required; the key is
        required only in API_KEY mode.
        """
        required: Dict[str, Optional[str]] = {
            constants.ENV_AZURE_ENDPOINT: self.azure_endpoint,
            constants.ENV_AZURE_DEPLOYMENT: self.deployment_name,
            constants.ENV_AZURE_API_VERSION: self.api_version,
        }
        if self.auth_mode is AuthMode.API_KEY:
            required[constants.ENV_API_KEY] = self.api_key
        return [name for name, value in required.items() if not value]

    @property
    def is_production(self) -> bool:
        return self.environment is DeploymentEnvironment.PRODUCTION

    def generation_parameters(self) -> GenerationParameters:
        """Sampling parameters for every generation call."""
        return GenerationParameters(temperature=self.temperature, max_tokens=self.max_tokens)

    # -------------------------------------------------------------------------
    # 2.6 Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def from_environment(
        cls, env_file: Optional[str] = None, validate_on_load: bool = True
    ) -> "PipelineConfiguration":
        """
        Load configuration from environment variables.

        STAGE 1: Load .env file (if specified or found in the working directory)
        STAGE 2: Read environment variables
        STAGE 3: Resolve the auth strategy
        STAGE 4: Validate ranges (optional)

        Args:
            env_file: Path to .env file (optional)
            validate_on_load: Whether to run validate() after loading

        Raises:
            ConfigurationError: If a setting cannot be parsed or is out of range
        """
        # STAGE 1: Load .env file
        if env_file:
            load_dotenv(env_file)
        else:
            default_env = Path.cwd() / ".env"
            if default_env.exists():
                load_dotenv(default_env)

        # STAGE 2: Read environment variables
        api_key = _env_optional(constants.ENV_API_KEY) or _env_optional("AZURE_OPENAI_API_KEY")

        # STAGE 3: Resolve auth strategy. Without an explicit mode, a present
        # key selects key auth and its absence selects managed identity.
        default_mode = AuthMode.API_KEY if api_key else AuthMode.MANAGED_IDENTITY
        auth_mode = _env_enum(constants.ENV_AUTH_MODE, AuthMode, default_mode)

        config = cls(
            azure_endpoint=_env_optional(constants.ENV_AZURE_ENDPOINT),
            deployment_name=_env_optional(constants.ENV_AZURE_DEPLOYMENT),
            api_version=_env_optional(constants.ENV_AZURE_API_VERSION),
            api_key=api_key,
            auth_mode=auth_mode,
            token_scope=os.getenv(constants.ENV_TOKEN_SCOPE, constants.COGNITIVE_SERVICES_SCOPE),
            temperature=_env_number(
                "GENERATION_TEMPERATURE", ConfigDefaults.DEFAULT_TEMPERATURE, float
            ),
            max_tokens=_env_number("GENERATION_MAX_TOKENS", ConfigDefaults.DEFAULT_MAX_TOKENS, int),
            timeout_seconds=_env_number(
                "GENERATION_TIMEOUT_SECONDS", ConfigDefaults.DEFAULT_TIMEOUT_SECONDS, float
            ),
            schema_path=os.getenv("CONSULTOLOGIST_SCHEMA_PATH", str(constants.DEFAULT_SCHEMA_PATH)),
            template_path=os.getenv(
                "CONSULTOLOGIST_TEMPLATE_PATH", str(constants.DEFAULT_TEMPLATE_PATH)
            ),
            additional_fields_policy=_env_enum(
                "ADDITIONAL_FIELDS_POLICY", AdditionalFieldsPolicy, AdditionalFieldsPolicy.STRICT
            ),
            environment=_env_enum(
                "CONSULTOLOGIST_ENVIRONMENT",
                DeploymentEnvironment,
                DeploymentEnvironment.DEVELOPMENT,
            ),
            log_level=os.getenv("LOG_LEVEL", ConfigDefaults.DEFAULT_LOG_LEVEL).upper(),
            log_json=_env_flag("LOG_JSON"),
            host=os.getenv("HOST", ConfigDefaults.DEFAULT_HOST),
            port=_env_number("PORT", ConfigDefaults.DEFAULT_PORT, int),
        )

        # STAGE 4: Validate
        if validate_on_load:
            config.validate()

        return config

    def to_dict(self) -> dict:
        """Convert configuration to dictionary (for logging/debugging)."""
        return {
            "azure_endpoint": self.azure_endpoint,
            "deployment_name": self.deployment_name,
            "api_version": self.api_version,
            "api_key": "***" if self.api_key else None,
            "auth_mode": self.auth_mode.value,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "timeout_seconds": self.timeout_seconds,
            "schema_path": self.schema_path,
            "template_path": self.template_path,
            "additional_fields_policy": self.additional_fields_policy.value,
            "environment": self.environment.value,
            "log_level": self.log_level,
        }
