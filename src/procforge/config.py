"""Configuration management for Procforge.

This module defines the configuration schema using Pydantic settings,
supporting TOML files, environment variables, and programmatic overrides.

Configuration loading priority (highest to lowest):
1. Programmatic overrides (passed to ProcforgeConfig constructor)
2. Environment variables (PROCFORGE_* prefix)
3. TOML configuration file
4. Default values defined in this module

Example TOML configuration:
    [output]
    base_dir = "build/generated"

    [bonita]
    model_package = "org.acme.model"

Example environment variable override:
    PROCFORGE_LOGGING__LEVEL="DEBUG"
    PROCFORGE_CAMUNDA__HISTORY_TIME_TO_LIVE="P30D"
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import tomli
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ISO_DURATION_PATTERN = re.compile(
    r"^P(?:\d+Y)?(?:\d+M)?(?:\d+D)?(?:T(?:\d+H)?(?:\d+M)?(?:\d+(?:\.\d+)?S)?)?$|^P\d+W$"
)


def is_iso_duration(value: str) -> bool:
    """Check an ISO-8601 duration, rejecting the empty forms P and PT."""
    if value in ("P", "PT") or value.endswith("T"):
        return False
    return ISO_DURATION_PATTERN.match(value) is not None


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Log format (json or console)
        file: Optional log file path (None for stdout only)
        rotation_size_mb: Log file rotation size in megabytes
        retention_count: Number of rotated log files to keep
    """

    model_config = SettingsConfigDict(
        env_prefix="PROCFORGE_LOGGING__",
        extra="forbid",
    )

    level: str = Field(default="INFO")
    format: str = Field(default="console")
    file: Path | None = Field(default=None)
    rotation_size_mb: int = Field(default=10, ge=1, le=1000)
    retention_count: int = Field(default=5, ge=1, le=100)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level is recognized."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format is recognized."""
        valid_formats = {"json", "console"}
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Invalid log format: {v}. Must be one of {valid_formats}")
        return v_lower


class BpmnConfig(BaseSettings):
    """BPMN loading profile.

    Attributes:
        require_collaboration: Reject documents without a collaboration element
    """

    model_config = SettingsConfigDict(
        env_prefix="PROCFORGE_BPMN__",
        extra="forbid",
    )

    require_collaboration: bool = Field(default=False)


class OutputConfig(BaseSettings):
    """Output directory layout.

    Attributes:
        base_dir: Root directory for generated artifacts
        camunda_dir: Subdirectory for Camunda output
        bonita_dir: Subdirectory for Bonita output
    """

    model_config = SettingsConfigDict(
        env_prefix="PROCFORGE_OUTPUT__",
        extra="forbid",
    )

    base_dir: Path = Field(default=Path("out"))
    camunda_dir: str = Field(default="camunda")
    bonita_dir: str = Field(default="bonita")


class CamundaConfig(BaseSettings):
    """Camunda generator settings.

    Attributes:
        history_time_to_live: ISO duration set on processes and decisions
        exporter: Exporter name written on definitions
        exporter_version: Exporter version written on definitions
        execution_platform_version: Camunda platform version
        email_delegate: Delegate expression for email service tasks
        rest_delegate: Delegate expression for REST service tasks
    """

    model_config = SettingsConfigDict(
        env_prefix="PROCFORGE_CAMUNDA__",
        extra="forbid",
    )

    history_time_to_live: str = Field(default="P180D")
    exporter: str = Field(default="Camunda Modeler")
    exporter_version: str = Field(default="5.27.0")
    execution_platform_version: str = Field(default="7.24.0")
    email_delegate: str = Field(default="${sendEmailDelegate}")
    rest_delegate: str = Field(default="${restCallDelegate}")

    @field_validator("history_time_to_live")
    @classmethod
    def validate_history_time_to_live(cls, v: str) -> str:
        """Validate the history TTL is an ISO-8601 duration."""
        if not is_iso_duration(v):
            raise ValueError(f"Invalid ISO-8601 duration: {v}")
        return v


class BonitaConfig(BaseSettings):
    """Bonita generator settings.

    Attributes:
        model_package: Java package for generated business objects
        default_password: Password assigned to generated organization users
        default_group: Single group every membership belongs to
        fallback_username: Configuration user when no actor exists
        configuration_version: Version attribute of the process configuration
    """

    model_config = SettingsConfigDict(
        env_prefix="PROCFORGE_BONITA__",
        extra="forbid",
    )

    model_package: str = Field(default="com.company.model")
    default_password: str = Field(default="bpm")
    default_group: str = Field(default="Default")
    fallback_username: str = Field(default="walter.bates")
    configuration_version: str = Field(default="9")

    @field_validator("model_package")
    @classmethod
    def validate_model_package(cls, v: str) -> str:
        """Validate the package is a dotted Java identifier."""
        if not re.fullmatch(r"[A-Za-z_]\w*(\.[A-Za-z_]\w*)*", v):
            raise ValueError(f"Invalid Java package name: {v}")
        return v


class ProcforgeConfig(BaseSettings):
    """Root configuration for Procforge.

    Environment variable format for nested config:
        PROCFORGE_<SECTION>__<KEY>=value
    """

    model_config = SettingsConfigDict(
        env_prefix="PROCFORGE_",
        env_nested_delimiter="__",
        extra="forbid",
    )

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    bpmn: BpmnConfig = Field(default_factory=BpmnConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    camunda: CamundaConfig = Field(default_factory=CamundaConfig)
    bonita: BonitaConfig = Field(default_factory=BonitaConfig)


def load_config(config_path: Path | None = None) -> ProcforgeConfig:
    """Load configuration from TOML file with environment variable overrides.

    Configuration search order (first found is used):
    1. config_path if explicitly provided
    2. ./procforge.toml (current directory)
    3. ~/.config/procforge/config.toml (user config directory)

    Args:
        config_path: Explicit path to TOML config file. If None, searches
                    default locations.

    Returns:
        ProcforgeConfig: Fully resolved configuration instance.

    Raises:
        FileNotFoundError: If config_path is explicitly provided but doesn't exist.
        ValueError: If TOML file contains invalid configuration.
    """
    toml_data: dict[str, Any] = {}

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        selected_path: Path | None = config_path
    else:
        search_paths = [
            Path.cwd() / "procforge.toml",
            Path.home() / ".config" / "procforge" / "config.toml",
        ]
        selected_path = next((path for path in search_paths if path.exists()), None)

    try:
        if selected_path is not None:
            with open(selected_path, "rb") as f:
                toml_data = tomli.load(f)
        return ProcforgeConfig(**toml_data)
    except Exception as e:
        if selected_path:
            raise ValueError(f"Invalid configuration in {selected_path}: {e}") from e
        raise ValueError(f"Invalid configuration: {e}") from e
