"""Unit tests for configuration loading and env substitution."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import pytest
import yaml

from topoforge.config import find_config, load_config, substitute_env_vars, validate_config
from topoforge.errors import ConfigurationError
from topoforge.topology import ProjectConfig


class TestSubstituteEnvVars:
    """Tests for ${VAR} substitution."""

    def test_required_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REGISTRY", "ghcr.io/acme")
        assert substitute_env_vars("registry: ${REGISTRY}") == "registry: ghcr.io/acme"

    def test_missing_required_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("REGISTRY", raising=False)
        with pytest.raises(ValueError, match="REGISTRY not set"):
            substitute_env_vars("registry: ${REGISTRY}")

    def test_default_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TAG", raising=False)
        assert substitute_env_vars("${TAG:-latest}") == "latest"

    def test_custom_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TOKEN", raising=False)
        with pytest.raises(ValueError, match="set the deploy token"):
            substitute_env_vars("${TOKEN:?set the deploy token}")

    def test_escaped_placeholder(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """$${VAR} survives as a literal ${VAR}."""
        monkeypatch.delenv("DB_PASSWORD", raising=False)
        assert substitute_env_vars("password: $${DB_PASSWORD}") == "password: ${DB_PASSWORD}"


class TestLoadConfig:
    """Tests for load_config()."""

    def write_yaml(self, path: Path, data: dict[str, Any]) -> Path:
        path.write_text(yaml.safe_dump(data))
        return path

    def test_load_yaml(self, tmp_path: Path, sample_config_data: dict[str, Any]) -> None:
        """A YAML file validates into a ProjectConfig."""
        config_file = self.write_yaml(tmp_path / "topoforge.yaml", sample_config_data)

        config = load_config(config_file)

        assert isinstance(config, ProjectConfig)
        assert config.project == "shop"
        assert set(config.services) == {"api", "web", "db"}

    def test_env_substitution(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Placeholders are resolved before parsing."""
        monkeypatch.setenv("PROJECT_NAME", "billing")
        monkeypatch.delenv("API_IMAGE", raising=False)
        config_file = tmp_path / "topoforge.yaml"
        config_file.write_text(
            "project: ${PROJECT_NAME}\n"
            "regions:\n  us: example.com\nnamespaces:\n  dev: {region: us}\n"
            "services:\n  api:\n    image: ${API_IMAGE:-api:1}\n"
        )

        config = load_config(config_file)

        assert config.project == "billing"
        assert config.services["api"].image == "api:1"

    def test_dotenv_is_loaded(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Values from the neighbouring .env file are available to placeholders."""
        monkeypatch.delenv("FROM_DOTENV", raising=False)
        (tmp_path / ".env").write_text("FROM_DOTENV=dotenv-project\n")
        config_file = tmp_path / "topoforge.yaml"
        config_file.write_text(
            "project: ${FROM_DOTENV}\n"
            "regions: {us: example.com}\n"
            "namespaces: {dev: {region: us}}\n"
            "services: {api: {image: api:1}}\n"
        )

        try:
            config = load_config(config_file)
        finally:
            os.environ.pop("FROM_DOTENV", None)

        assert config.project == "dotenv-project"

    def test_python_config(self, tmp_path: Path) -> None:
        """A Python module exposes its config as ``config``."""
        config_file = tmp_path / "topoforge_config.py"
        config_file.write_text(
            "config = {\n"
            "    'project': 'shop',\n"
            "    'regions': {'us': 'example.com'},\n"
            "    'namespaces': {'dev': {'region': 'us'}},\n"
            "    'services': {'api': {'image': 'api:1', 'env': lambda ctx: {'NS': ctx.namespace}}},\n"
            "}\n"
        )

        config = load_config(config_file)

        assert config.project == "shop"
        assert callable(config.services["api"].env)

    def test_python_config_without_variable(self, tmp_path: Path) -> None:
        config_file = tmp_path / "empty.py"
        config_file.write_text("value = 1\n")

        with pytest.raises(ConfigurationError, match="does not define a 'config'"):
            load_config(config_file)

    def test_python_config_that_raises(self, tmp_path: Path) -> None:
        config_file = tmp_path / "broken.py"
        config_file.write_text("raise RuntimeError('boom')\n")

        with pytest.raises(ConfigurationError) as excinfo:
            load_config(config_file)

        assert excinfo.value.details == "boom"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "topoforge.yaml"
        config_file.write_text("project: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Error parsing YAML"):
            load_config(config_file)

    def test_yaml_must_be_mapping(self, tmp_path: Path) -> None:
        config_file = tmp_path / "topoforge.yaml"
        config_file.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError, match="expected a mapping"):
            load_config(config_file)

    def test_missing_variable(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("UNSET_VAR", raising=False)
        config_file = tmp_path / "topoforge.yaml"
        config_file.write_text("project: ${UNSET_VAR}\n")

        with pytest.raises(ConfigurationError, match="UNSET_VAR"):
            load_config(config_file)

    def test_unsupported_suffix(self, tmp_path: Path) -> None:
        config_file = tmp_path / "topoforge.toml"
        config_file.write_text("project = 'shop'\n")

        with pytest.raises(ConfigurationError, match="Unsupported config format"):
            load_config(config_file)


class TestValidateConfig:
    """Tests for validate_config()."""

    def test_validation_details(self) -> None:
        """Pydantic errors are flattened into the error details."""
        with pytest.raises(ConfigurationError) as excinfo:
            validate_config({"namespaces": {"dev": {}}}, source="inline")

        assert "inline" in excinfo.value.message
        assert "project" in (excinfo.value.details or "")

    def test_valid_data(self, sample_config_data: dict[str, Any]) -> None:
        assert validate_config(sample_config_data).project == "shop"


class TestFindConfig:
    """Tests for find_config()."""

    def test_walks_up(self, tmp_path: Path) -> None:
        """The nearest config in a parent directory is found."""
        config_file = tmp_path / "topoforge.yaml"
        config_file.write_text("project: shop\n")
        nested = tmp_path / "services" / "api"
        nested.mkdir(parents=True)

        assert find_config(nested) == config_file.resolve()

    def test_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="No topoforge.yaml"):
            find_config(tmp_path)
