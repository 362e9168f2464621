"""
Permission backends.

Both backends implement AuthorizationBackend; ``create_backend`` picks one
from an explicit BackendConfig.
"""

import logging
from typing import Optional

from databricks.sdk import WorkspaceClient

from lakekit.config import BackendConfig, BackendKind

from .base import AuthorizationBackend, Outcome
from .emulator import InMemoryBackend
from .unity_catalog import UnityCatalogBackend

logger = logging.getLogger(__name__)


def create_backend(
    config: Optional[BackendConfig] = None,
    client: Optional[WorkspaceClient] = None,
) -> AuthorizationBackend:
    """
    Construct the backend named by ``config``.

    Args:
        config: Backend settings (defaults to an in-memory emulator)
        client: Optional pre-built workspace client for the Unity Catalog backend

    Returns:
        The configured backend
    """
    config = config or BackendConfig()

    if config.backend == BackendKind.EMULATOR:
        logger.info("Using in-memory backend" + (f" with state file {config.state_file}" if config.state_file else ""))
        return InMemoryBackend(state_file=config.state_file)

    if client is None:
        client = WorkspaceClient(host=config.host, profile=config.profile)
    logger.info(f"Using Unity Catalog backend on catalog {config.catalog}")
    return UnityCatalogBackend(
        client,
        catalog=config.catalog,
        max_retries=config.max_retries,
        continue_on_error=config.continue_on_error,
    )


__all__ = [
    "AuthorizationBackend",
    "Outcome",
    "InMemoryBackend",
    "UnityCatalogBackend",
    "create_backend",
]
