"""
Data lake access-control models.

This package provides all Pydantic models for the permission system.

Module organization:
- enums: All enumerations (Action, OutcomeKind)
- base: Base classes (BaseGovernanceModel, FrozenGovernanceModel)
- principals: Principal variants and principal resolution
- resources: Resource variants and coverage
- grants: Permission, RowFilter, LakeTag
"""

from .base import BaseGovernanceModel, FrozenGovernanceModel
from .enums import Action, OutcomeKind
from .grants import LakeTag, Permission, RowFilter
from .principals import (
    PRINCIPAL_TYPES,
    ExternalAccountPrincipal,
    Principal,
    RolePrincipal,
    SamlGroupPrincipal,
    TaggedPrincipal,
    UserPrincipal,
    resolve_principal,
)
from .resources import (
    RESOURCE_TYPES,
    DataLocationResource,
    DatabaseResource,
    Resource,
    TableResource,
    TaggedResource,
)

__all__ = [
    # Base
    "BaseGovernanceModel",
    "FrozenGovernanceModel",
    # Enums
    "Action",
    "OutcomeKind",
    # Principals
    "Principal",
    "PRINCIPAL_TYPES",
    "UserPrincipal",
    "RolePrincipal",
    "SamlGroupPrincipal",
    "ExternalAccountPrincipal",
    "TaggedPrincipal",
    "resolve_principal",
    # Resources
    "Resource",
    "RESOURCE_TYPES",
    "DatabaseResource",
    "TableResource",
    "DataLocationResource",
    "TaggedResource",
    # Grants
    "Permission",
    "RowFilter",
    "LakeTag",
]

# Rebuild models to resolve forward references
Permission.model_rebuild()
