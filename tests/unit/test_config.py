"""Unit tests for configuration management.

Tests cover:
- Default configuration values
- TOML file loading
- Environment variable overrides
- Nested configuration resolution
- Validation errors for invalid configurations
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from procforge.config import (
    BonitaConfig,
    BpmnConfig,
    CamundaConfig,
    LoggingConfig,
    OutputConfig,
    ProcforgeConfig,
    is_iso_duration,
    load_config,
)


class TestLoggingConfig:
    """Test LoggingConfig defaults and validation."""

    def test_default_values(self) -> None:
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.format == "console"
        assert config.file is None
        assert config.rotation_size_mb == 10
        assert config.retention_count == 5

    def test_level_validation(self) -> None:
        """Test that log level is validated case-insensitively."""
        assert LoggingConfig(level="debug").level == "DEBUG"
        with pytest.raises(ValidationError, match="Invalid log level"):
            LoggingConfig(level="INVALID")

    def test_format_validation(self) -> None:
        assert LoggingConfig(format="JSON").format == "json"
        with pytest.raises(ValidationError, match="Invalid log format"):
            LoggingConfig(format="xml")

    def test_rotation_bounds(self) -> None:
        with pytest.raises(ValidationError):
            LoggingConfig(rotation_size_mb=0)
        with pytest.raises(ValidationError):
            LoggingConfig(retention_count=101)


class TestGeneratorConfigs:
    """Test backend settings."""

    def test_camunda_defaults(self) -> None:
        config = CamundaConfig()
        assert config.history_time_to_live == "P180D"
        assert config.email_delegate == "${sendEmailDelegate}"
        assert config.rest_delegate == "${restCallDelegate}"

    @pytest.mark.parametrize("value", ["P30D", "PT12H", "P1Y2M", "P2W", "P1DT0.5S"])
    def test_valid_history_time_to_live(self, value: str) -> None:
        assert CamundaConfig(history_time_to_live=value).history_time_to_live == value

    @pytest.mark.parametrize("value", ["", "P", "PT", "P1DT", "180", "P1.5D"])
    def test_invalid_history_time_to_live(self, value: str) -> None:
        assert not is_iso_duration(value)
        with pytest.raises(ValidationError, match="ISO-8601"):
            CamundaConfig(history_time_to_live=value)

    def test_bonita_defaults(self) -> None:
        config = BonitaConfig()
        assert config.model_package == "com.company.model"
        assert config.default_group == "Default"

    def test_model_package_validation(self) -> None:
        assert BonitaConfig(model_package="org.acme.hr").model_package == "org.acme.hr"
        with pytest.raises(ValidationError, match="Java package"):
            BonitaConfig(model_package="org..acme")

    def test_unknown_key_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            BpmnConfig(strict=True)


class TestProcforgeConfig:
    """Test ProcforgeConfig integration."""

    def test_default_values(self) -> None:
        config = ProcforgeConfig()
        assert isinstance(config.logging, LoggingConfig)
        assert isinstance(config.bpmn, BpmnConfig)
        assert isinstance(config.output, OutputConfig)
        assert isinstance(config.camunda, CamundaConfig)
        assert isinstance(config.bonita, BonitaConfig)
        assert config.output.base_dir == Path("out")

    def test_nested_override(self) -> None:
        config = ProcforgeConfig(
            output=OutputConfig(camunda_dir="engine"),
            bpmn=BpmnConfig(require_collaboration=True),
        )
        assert config.output.camunda_dir == "engine"
        assert config.output.bonita_dir == "bonita"
        assert config.bpmn.require_collaboration is True


class TestLoadConfig:
    """Test TOML configuration loading."""

    def test_explicit_path_not_found(self) -> None:
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_config(Path("/nonexistent/procforge.toml"))

    def test_load_from_toml_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "test.toml"
        config_file.write_text("""
[output]
base_dir = "build/generated"

[camunda]
history_time_to_live = "P30D"

[bonita]
model_package = "org.acme.model"

[logging]
level = "DEBUG"
format = "json"
""")

        config = load_config(config_file)
        assert config.output.base_dir == Path("build/generated")
        assert config.camunda.history_time_to_live == "P30D"
        assert config.bonita.model_package == "org.acme.model"
        assert config.logging.level == "DEBUG"
        assert config.logging.format == "json"
        # Unspecified values stay at their defaults
        assert config.camunda.exporter == "Camunda Modeler"

    def test_invalid_value_raises_error(self, tmp_path: Path) -> None:
        config_file = tmp_path / "invalid.toml"
        config_file.write_text("""
[camunda]
history_time_to_live = "half a year"
""")

        with pytest.raises(ValueError, match="Invalid configuration"):
            load_config(config_file)

    def test_unknown_section_raises_error(self, tmp_path: Path) -> None:
        config_file = tmp_path / "unknown.toml"
        config_file.write_text("[database]\nurl = 'x'\n")

        with pytest.raises(ValueError, match="Invalid configuration"):
            load_config(config_file)

    def test_malformed_toml_raises_error(self, tmp_path: Path) -> None:
        config_file = tmp_path / "broken.toml"
        config_file.write_text("[output\n")

        with pytest.raises(ValueError, match="Invalid configuration"):
            load_config(config_file)

    def test_search_current_directory(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that load_config finds procforge.toml in the working directory."""
        (tmp_path / "procforge.toml").write_text('[output]\ncamunda_dir = "c7"\n')

        monkeypatch.chdir(tmp_path)
        config = load_config()
        assert config.output.camunda_dir == "c7"

    def test_environment_variables_merge_with_toml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that environment variables fill sections the TOML file leaves out."""
        config_file = tmp_path / "test.toml"
        config_file.write_text('[camunda]\nhistory_time_to_live = "P30D"\n')

        monkeypatch.setenv("PROCFORGE_LOGGING__LEVEL", "WARNING")
        monkeypatch.setenv("PROCFORGE_BONITA__MODEL_PACKAGE", "org.env.model")

        config = load_config(config_file)
        assert config.camunda.history_time_to_live == "P30D"
        assert config.logging.level == "WARNING"
        assert config.bonita.model_package == "org.env.model"
