"""
Integration test fixtures for lakekit.

Provides a workspace client, a Unity Catalog backend bound to a test
catalog, and cleanup of groups and schemas created by tests.

Requires a reachable workspace (DATABRICKS_HOST/DATABRICKS_TOKEN or a CLI
profile) and LAKEKIT_TEST_CATALOG naming a catalog the caller can manage.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Generator, List

import pytest
from databricks.sdk import WorkspaceClient
from databricks.sdk.errors import NotFound, ResourceDoesNotExist

from lakekit.backends import UnityCatalogBackend

logger = logging.getLogger(__name__)


@dataclass
class ResourceTracker:
    """
    Tracks created workspace objects for cleanup after tests.

    Cleanup order: custom cleanups, schemas, then groups.
    """

    schemas: List[str] = field(default_factory=list)  # Full names (catalog.schema)
    groups: List[str] = field(default_factory=list)
    custom_cleanups: List[Callable[[], None]] = field(default_factory=list)

    def add_schema(self, full_name: str) -> None:
        """Track a schema for cleanup (full_name = catalog.schema)."""
        if full_name not in self.schemas:
            self.schemas.append(full_name)

    def add_group(self, name: str) -> None:
        """Track a group for cleanup."""
        if name not in self.groups:
            self.groups.append(name)

    def add_custom_cleanup(self, cleanup_fn: Callable[[], None]) -> None:
        self.custom_cleanups.append(cleanup_fn)


@pytest.fixture(scope="session")
def workspace_client() -> WorkspaceClient:
    """
    Session-scoped WorkspaceClient using SDK auto-configuration.

    Skips the integration tests when no workspace is reachable.
    """
    try:
        client = WorkspaceClient()
        current_user = client.current_user.me()
        logger.info(f"Connected to Databricks as {current_user.user_name}")
    except Exception as e:
        pytest.skip(f"Could not connect to Databricks: {e}")
    return client


@pytest.fixture(scope="session")
def test_catalog_name() -> str:
    """Catalog the tests create schemas in."""
    name = os.getenv("LAKEKIT_TEST_CATALOG")
    if not name:
        pytest.skip("LAKEKIT_TEST_CATALOG is not set")
    return name


@pytest.fixture
def resource_tracker() -> ResourceTracker:
    """Fixture that provides a resource tracker for the test."""
    return ResourceTracker()


@pytest.fixture
def uc_backend(workspace_client: WorkspaceClient, test_catalog_name: str) -> UnityCatalogBackend:
    """Unity Catalog backend bound to the test catalog."""
    return UnityCatalogBackend(workspace_client, catalog=test_catalog_name)


@pytest.fixture
def test_database(
    workspace_client: WorkspaceClient,
    test_catalog_name: str,
    test_prefix: str,
    resource_tracker: ResourceTracker,
) -> str:
    """
    Create a schema in the test catalog and return its name.

    The schema is what lakekit calls a database.
    """
    name = f"{test_prefix}_db"
    schema = workspace_client.schemas.create(name=name, catalog_name=test_catalog_name)
    resource_tracker.add_schema(schema.full_name or f"{test_catalog_name}.{name}")
    return name


@pytest.fixture(autouse=True)
def cleanup_resources(
    workspace_client: WorkspaceClient,
    resource_tracker: ResourceTracker,
) -> Generator[None, None, None]:
    """
    Autouse fixture that cleans up tracked resources after each test.

    Failed cleanups are logged but don't fail the test.
    """
    yield

    for cleanup_fn in reversed(resource_tracker.custom_cleanups):
        try:
            cleanup_fn()
        except Exception as e:
            logger.warning(f"Custom cleanup failed: {e}")

    for schema_name in reversed(resource_tracker.schemas):
        try:
            workspace_client.schemas.delete(schema_name, force=True)
            logger.info(f"Cleaned up schema: {schema_name}")
        except (NotFound, ResourceDoesNotExist):
            pass  # Already gone
        except Exception as e:
            logger.warning(f"Failed to cleanup schema {schema_name}: {e}")

    for group_name in reversed(resource_tracker.groups):
        try:
            groups = list(workspace_client.groups.list(filter=f'displayName eq "{group_name}"'))
            if groups and groups[0].id:
                workspace_client.groups.delete(groups[0].id)
                logger.info(f"Cleaned up group: {group_name}")
        except (NotFound, ResourceDoesNotExist):
            pass
        except Exception as e:
            logger.warning(f"Failed to cleanup group {group_name}: {e}")
