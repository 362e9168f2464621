"""
Backend configuration.

The backend is always chosen from explicit configuration, either a JSON
file or environment variables:

    LAKEKIT_BACKEND            emulator | unity_catalog (default: emulator)
    LAKEKIT_STATE_FILE         JSON state file for the emulator
    LAKEKIT_CATALOG            Unity Catalog catalog that databases map to
    DATABRICKS_HOST            Workspace URL
    DATABRICKS_CONFIG_PROFILE  Profile from ~/.databrickscfg

Example config file:
    {
        "backend": "unity_catalog",
        "catalog": "analytics",
        "profile": "DEFAULT",
        "max_retries": 5
    }
"""

from __future__ import annotations

import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from pydantic import Field, model_validator

from lakekit.models.base import BaseGovernanceModel

logger = logging.getLogger(__name__)


class BackendKind(str, Enum):
    """Available backend strategies."""
    EMULATOR = "emulator"
    UNITY_CATALOG = "unity_catalog"


class BackendConfig(BaseGovernanceModel):
    """Settings for selecting and constructing a backend."""

    backend: BackendKind = Field(BackendKind.EMULATOR, description="Backend strategy")
    state_file: Optional[str] = Field(None, description="Emulator state file")
    catalog: Optional[str] = Field(None, description="Unity Catalog catalog name")
    host: Optional[str] = Field(None, description="Databricks workspace URL")
    profile: Optional[str] = Field(None, description="Databricks config profile")
    max_retries: int = Field(3, ge=1, description="Attempts for transient SDK failures")
    continue_on_error: bool = Field(False, description="Return error outcomes instead of raising")

    @model_validator(mode="after")
    def validate_catalog(self) -> "BackendConfig":
        """The Unity Catalog backend needs a catalog to map databases into."""
        if self.backend == BackendKind.UNITY_CATALOG and not self.catalog:
            raise ValueError("The unity_catalog backend requires 'catalog'")
        return self


def backend_config_from_env() -> BackendConfig:
    """
    Build a BackendConfig from environment variables.

    An invalid LAKEKIT_BACKEND falls back to the emulator.
    """
    backend_str = os.getenv("LAKEKIT_BACKEND", "emulator").lower()
    try:
        backend = BackendKind(backend_str)
    except ValueError:
        logger.warning(f"Invalid LAKEKIT_BACKEND='{backend_str}', defaulting to emulator")
        backend = BackendKind.EMULATOR

    return BackendConfig(
        backend=backend,
        state_file=os.getenv("LAKEKIT_STATE_FILE"),
        catalog=os.getenv("LAKEKIT_CATALOG"),
        host=os.getenv("DATABRICKS_HOST"),
        profile=os.getenv("DATABRICKS_CONFIG_PROFILE"),
    )


def load_backend_config(path: Union[str, Path]) -> BackendConfig:
    """
    Load a BackendConfig from a JSON file.

    Fails fast on any validation error.

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError: If the file contains invalid JSON
        pydantic.ValidationError: If the configuration is invalid
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Backend config not found: {path}")

    content = path.read_text(encoding="utf-8")
    config = BackendConfig.model_validate(json.loads(content))
    logger.info(f"Loaded backend config from {path}: {config.backend.value}")
    return config
