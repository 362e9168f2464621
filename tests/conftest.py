"""
Shared pytest fixtures for lakekit tests.

Provides environment isolation, stores, backends and state files.
"""

import os
import uuid
from datetime import datetime
from pathlib import Path
from typing import Generator

import pytest

from lakekit.backends import InMemoryBackend
from lakekit.store import PermissionStore

LAKEKIT_ENV_VARS = (
    "LAKEKIT_BACKEND",
    "LAKEKIT_STATE_FILE",
    "LAKEKIT_CATALOG",
    "DATABRICKS_HOST",
    "DATABRICKS_CONFIG_PROFILE",
)


def generate_test_prefix() -> str:
    """
    Generate a unique prefix for test resources.

    Format: lakekit_test_{timestamp}_{short_uuid}
    Example: lakekit_test_20240127_143052_abc123
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    short_uuid = uuid.uuid4().hex[:6]
    return f"lakekit_test_{timestamp}_{short_uuid}"


@pytest.fixture(scope="session")
def test_prefix() -> str:
    """
    Session-scoped unique prefix for test resources.

    Use this to create resource names that won't collide with
    existing resources or parallel test runs.
    """
    return generate_test_prefix()


@pytest.fixture
def clean_environment() -> Generator[None, None, None]:
    """
    Fixture that clears lakekit and Databricks settings for the test duration.

    Restores the original values after the test completes.
    """
    original = {name: os.environ.get(name) for name in LAKEKIT_ENV_VARS}
    for name in LAKEKIT_ENV_VARS:
        os.environ.pop(name, None)
    yield
    for name, value in original.items():
        if value is not None:
            os.environ[name] = value
        else:
            os.environ.pop(name, None)


@pytest.fixture
def store() -> PermissionStore:
    """Empty permission store."""
    return PermissionStore()


@pytest.fixture
def backend() -> InMemoryBackend:
    """Empty in-memory backend without persistence."""
    return InMemoryBackend()


@pytest.fixture
def analyst_backend() -> InMemoryBackend:
    """
    Backend with role analyst (members alice, bob) holding SELECT on sales.orders.
    """
    backend = InMemoryBackend()
    backend.execute_statement("CREATE ROLE analyst")
    backend.execute_statement("ALTER ROLE analyst ADD USER 'alice'")
    backend.execute_statement("ALTER ROLE analyst ADD USER 'bob'")
    backend.execute_statement("GRANT SELECT ON sales.orders TO ROLE analyst")
    return backend


@pytest.fixture
def state_file(tmp_path: Path) -> Path:
    """Path for a JSON state file inside a not-yet-existing directory."""
    return tmp_path / "state" / "lakekit.json"
