"""
Base classes for lakekit domain models.

This module contains the shared Pydantic configuration used by every
principal, resource, permission and store model.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


# =============================================================================
# BASE CONFIGURATION
# =============================================================================

class BaseGovernanceModel(BaseModel):
    """
    Base model for all lakekit objects with common configuration.

    This provides standard Pydantic v2 configuration and common patterns
    used across principals, resources, permissions and store snapshots.
    """

    model_config = ConfigDict(
        validate_assignment=False,  # Disabled for performance
        validate_default=True,  # Validate defaults once
        populate_by_name=True,  # Allow field population by name
        use_enum_values=False,  # Keep enums as enum objects
        str_strip_whitespace=True,  # Strip whitespace from strings
        json_schema_extra={
            "title": "Lake Permission Model",
            "description": "Base model for data lake access-control objects"
        }
    )


class FrozenGovernanceModel(BaseGovernanceModel):
    """
    Immutable, hashable variant of BaseGovernanceModel.

    Principals and resources are identities: they are compared by value and
    used as keys, so they must never change after construction.
    """

    model_config = ConfigDict(frozen=True)
