"""
Unit tests for backend configuration and backend selection.
"""

import json
import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from lakekit.backends import InMemoryBackend, UnityCatalogBackend, create_backend
from lakekit.config import BackendConfig, BackendKind, backend_config_from_env, load_backend_config


class TestBackendConfig:
    """Tests for BackendConfig validation."""

    def test_defaults(self) -> None:
        """The default backend is the emulator."""
        config = BackendConfig()
        assert config.backend == BackendKind.EMULATOR
        assert config.max_retries == 3
        assert config.continue_on_error is False

    def test_unity_catalog_requires_catalog(self) -> None:
        """unity_catalog without a catalog is rejected."""
        with pytest.raises(ValidationError):
            BackendConfig(backend="unity_catalog")

    def test_max_retries_positive(self) -> None:
        """At least one attempt is required."""
        with pytest.raises(ValidationError):
            BackendConfig(max_retries=0)


class TestEnvironment:
    """Tests for configuration from environment variables."""

    def test_empty_environment(self, clean_environment) -> None:
        """No variables means an emulator without a state file."""
        config = backend_config_from_env()
        assert config.backend == BackendKind.EMULATOR
        assert config.state_file is None

    def test_unity_catalog_from_env(self, clean_environment) -> None:
        """All Unity Catalog settings are read."""
        os.environ["LAKEKIT_BACKEND"] = "UNITY_CATALOG"
        os.environ["LAKEKIT_CATALOG"] = "analytics"
        os.environ["DATABRICKS_CONFIG_PROFILE"] = "dev"
        config = backend_config_from_env()
        assert config.backend == BackendKind.UNITY_CATALOG
        assert config.catalog == "analytics"
        assert config.profile == "dev"

    def test_invalid_backend_falls_back(self, clean_environment) -> None:
        """An unknown backend name falls back to the emulator."""
        os.environ["LAKEKIT_BACKEND"] = "mainframe"
        assert backend_config_from_env().backend == BackendKind.EMULATOR


class TestConfigFile:
    """Tests for JSON configuration files."""

    def test_load(self, tmp_path: Path) -> None:
        """A valid file loads."""
        path = tmp_path / "lakekit.json"
        path.write_text(json.dumps({"backend": "unity_catalog", "catalog": "analytics", "max_retries": 5}))
        config = load_backend_config(path)
        assert config.backend == BackendKind.UNITY_CATALOG
        assert config.max_retries == 5

    def test_missing_file(self, tmp_path: Path) -> None:
        """Missing files raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_backend_config(tmp_path / "missing.json")

    def test_invalid_file(self, tmp_path: Path) -> None:
        """Invalid settings fail fast."""
        path = tmp_path / "lakekit.json"
        path.write_text(json.dumps({"backend": "unity_catalog"}))
        with pytest.raises(ValidationError):
            load_backend_config(path)


class TestCreateBackend:
    """Tests for backend selection."""

    def test_default_is_emulator(self) -> None:
        """No config gives an in-memory backend."""
        assert isinstance(create_backend(), InMemoryBackend)

    def test_emulator_with_state_file(self, state_file: Path) -> None:
        """The state file is wired into the emulator."""
        backend = create_backend(BackendConfig(state_file=str(state_file)))
        backend.execute_statement("CREATE ROLE analyst")
        assert state_file.exists()

    def test_unity_catalog_with_client(self) -> None:
        """A supplied client is used as-is."""
        client = MagicMock()
        config = BackendConfig(backend="unity_catalog", catalog="analytics", max_retries=2, continue_on_error=True)
        backend = create_backend(config, client=client)
        assert isinstance(backend, UnityCatalogBackend)
        assert backend.client is client
        assert backend.catalog == "analytics"
        assert backend.max_retries == 2
        assert backend.continue_on_error is True
