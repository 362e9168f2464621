"""
Lakekit - Fine-grained permissions for data lakes.

This library grants, revokes and checks access permissions
(principal x resource x action) with optional row-level filtering,
driven by textual permission statements.

Key Features:
- Statement language (GRANT/REVOKE/CREATE ROLE/CREATE TAG/SHOW ...)
- Role-based indirection (users inherit the permissions of their roles)
- Database-to-table and location-prefix coverage
- Fail-closed row filters with SESSION_CONTEXT() lookups
- In-memory emulator with JSON state persistence
- Unity Catalog backend through databricks-sdk

Quick Start:
    from lakekit import InMemoryBackend, UserPrincipal, TableResource, Action

    backend = InMemoryBackend()
    backend.execute_statement("CREATE ROLE analyst")
    backend.execute_statement("ALTER ROLE analyst ADD USER 'alice'")
    backend.execute_statement(
        "GRANT SELECT ON sales.orders TO ROLE analyst "
        "WHERE region = SESSION_CONTEXT('user_region')"
    )

    backend.set_session_context({"user_region": "west"})
    backend.check_permission(
        UserPrincipal(identifier="alice"),
        TableResource(database="sales", name="orders"),
        Action.SELECT,
    )  # True

    print(backend.export_ddl())
"""

__version__ = "0.1.0"

# =============================================================================
# Errors
# =============================================================================

from lakekit.errors import (
    EvaluationError,
    ExportError,
    FilterParseError,
    InvalidNameError,
    LakekitError,
    MissingSessionContextKeyError,
    ParseError,
    PrincipalNotFoundError,
    RoleNotFoundError,
    SecurableNotFoundError,
    StatementParseError,
    StatementUsageError,
    UnknownActionError,
    UnknownPrincipalKindError,
    UnknownResourceKindError,
    UnsupportedFeatureError,
)

# =============================================================================
# Models
# =============================================================================
from lakekit.models import (
    Action,
    DatabaseResource,
    DataLocationResource,
    ExternalAccountPrincipal,
    LakeTag,
    OutcomeKind,
    Permission,
    Principal,
    Resource,
    RolePrincipal,
    RowFilter,
    SamlGroupPrincipal,
    TableResource,
    TaggedPrincipal,
    TaggedResource,
    UserPrincipal,
    resolve_principal,
)

# =============================================================================
# Languages
# =============================================================================
from lakekit.language import (
    Statement,
    evaluate_filter,
    parse_filter,
    parse_script,
    parse_statement,
)

# =============================================================================
# Store, Engine, Persistence
# =============================================================================
from lakekit.store import PermissionStore, StoreSnapshot
from lakekit.engine import CheckTrace, EntryTrace, check_permission, explain_permission, representative_row
from lakekit.storage import FileStorage
from lakekit.export import format_grant, format_principal, format_resource, to_ddl, to_summary

# =============================================================================
# Backends and Configuration
# =============================================================================
from lakekit.config import BackendConfig, BackendKind, backend_config_from_env, load_backend_config
from lakekit.backends import (
    AuthorizationBackend,
    InMemoryBackend,
    Outcome,
    UnityCatalogBackend,
    create_backend,
)

__all__ = [
    # Errors
    "LakekitError",
    "ParseError",
    "StatementParseError",
    "FilterParseError",
    "UnknownActionError",
    "UnknownPrincipalKindError",
    "UnknownResourceKindError",
    "StatementUsageError",
    "UnsupportedFeatureError",
    "RoleNotFoundError",
    "InvalidNameError",
    "ExportError",
    "PrincipalNotFoundError",
    "SecurableNotFoundError",
    "EvaluationError",
    "MissingSessionContextKeyError",
    # Models
    "Action",
    "OutcomeKind",
    "Principal",
    "UserPrincipal",
    "RolePrincipal",
    "SamlGroupPrincipal",
    "ExternalAccountPrincipal",
    "TaggedPrincipal",
    "Resource",
    "DatabaseResource",
    "TableResource",
    "DataLocationResource",
    "TaggedResource",
    "Permission",
    "RowFilter",
    "LakeTag",
    "resolve_principal",
    # Languages
    "Statement",
    "parse_statement",
    "parse_script",
    "parse_filter",
    "evaluate_filter",
    # Store and engine
    "PermissionStore",
    "StoreSnapshot",
    "check_permission",
    "explain_permission",
    "representative_row",
    "CheckTrace",
    "EntryTrace",
    # Persistence and export
    "FileStorage",
    "to_ddl",
    "to_summary",
    "format_grant",
    "format_principal",
    "format_resource",
    # Backends and configuration
    "AuthorizationBackend",
    "Outcome",
    "InMemoryBackend",
    "UnityCatalogBackend",
    "create_backend",
    "BackendConfig",
    "BackendKind",
    "backend_config_from_env",
    "load_backend_config",
]
