"""
Grant models for lakekit.

This module contains the stored permission record, its optional row
filter, and the declarative tag definition.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional, Set, Tuple

from pydantic import Field, field_validator

from .base import BaseGovernanceModel
from .enums import Action
from .principals import Principal
from .resources import Resource

logger = logging.getLogger(__name__)

TAG_KEY_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")


# =============================================================================
# ROW FILTER
# =============================================================================

class RowFilter(BaseGovernanceModel):
    """
    Row-level security filter attached to a permission.

    The expression is evaluated against row data and the store's session
    context at check time. ``session_context`` is a static snapshot kept
    for forward compatibility; the evaluator does not read it.
    """
    expression: str = Field(..., min_length=1, description="Filter expression text")
    session_context: Optional[Dict[str, str]] = Field(
        None,
        description="Static session context captured with the filter (unused)"
    )


# =============================================================================
# PERMISSION
# =============================================================================

class Permission(BaseGovernanceModel):
    """
    A stored grant of actions to a principal on a resource.

    At most one permission exists per ``key`` (principal, resource); a new
    grant for the same key replaces the old one wholesale.
    """
    principal: Principal = Field(..., description="Grantee")
    resource: Resource = Field(..., description="Protected object")
    actions: List[Action] = Field(..., min_length=1, description="Granted actions")
    grant_option: bool = Field(False, description="Whether the grantee may grant onwards")
    row_filter: Optional[RowFilter] = Field(None, description="Optional row-level filter")

    @field_validator("actions", mode="after")
    @classmethod
    def dedupe_actions(cls, v: List[Action]) -> List[Action]:
        """Drop repeated actions, keeping first occurrence order."""
        seen: Set[Action] = set()
        result = []
        for action in v:
            if action not in seen:
                seen.add(action)
                result.append(action)
        return result

    @property
    def key(self) -> Tuple[Principal, Resource]:
        """Uniqueness key: actions are not part of it."""
        return (self.principal, self.resource)

    def has_action(self, action: Action) -> bool:
        """Exact membership test; there is no action hierarchy."""
        return action in self.actions

    def intersects(self, actions: Iterable[Action]) -> bool:
        """True if any of ``actions`` is granted by this permission."""
        return any(action in self.actions for action in actions)


# =============================================================================
# TAGS
# =============================================================================

class LakeTag(BaseGovernanceModel):
    """
    Declared tag key with its allowed values.

    Tags are purely declarative: deleting one does not touch permissions,
    and tagged principals/resources are not checked against them.
    """
    key: str = Field(..., min_length=1, description="Tag key (e.g. 'department')")
    values: List[str] = Field(default_factory=list, description="Allowed values")
    description: Optional[str] = Field(None, description="Optional description")

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        if not TAG_KEY_PATTERN.match(v):
            raise ValueError(
                f"Tag key '{v}' must start with a letter and contain only "
                "alphanumeric characters and underscores"
            )
        return v

    @field_validator("values")
    @classmethod
    def dedupe_values(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))
