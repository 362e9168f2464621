"""
In-memory backend.

Applies statements to a PermissionStore and answers checks with the
authorization engine. Optionally persists every mutation to a JSON state
file through FileStorage.
"""

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Set, Union

from lakekit.engine import CheckTrace, check_permission, explain_permission
from lakekit.export import to_ddl, to_summary
from lakekit.language.statements import (
    AlterRoleStatement,
    CreateRoleStatement,
    CreateTagStatement,
    DropRoleStatement,
    DropTagStatement,
    GrantStatement,
    RevokeStatement,
    ShowPermissionsStatement,
    ShowRolesStatement,
    ShowTagsStatement,
    Statement,
    parse_statement,
)
from lakekit.models import Action, LakeTag, Permission, Principal, Resource
from lakekit.storage import FileStorage
from lakekit.store import PermissionStore, StoreSnapshot

from .base import AuthorizationBackend, Outcome

logger = logging.getLogger(__name__)


class InMemoryBackend(AuthorizationBackend):
    """
    Local emulation of a managed data-lake permissions service.

    Parse errors and mutation errors (e.g. RoleNotFoundError) propagate
    unchanged; nothing is retried.
    """

    def __init__(self, state_file: Optional[Union[str, Path]] = None, store: Optional[PermissionStore] = None):
        """
        Initialize the backend.

        Args:
            state_file: Optional JSON file loaded at startup and rewritten after every mutation
            store: Optional pre-built store (a fresh one is created otherwise)
        """
        self.store = store or PermissionStore()
        self.storage: Optional[FileStorage] = None
        if state_file is not None:
            self.storage = FileStorage(state_file)
            if self.storage.exists():
                self.store.restore(self.storage.load())
            self.store.add_listener(self.storage.save)

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def execute_statement(self, text: str) -> Outcome:
        statement = parse_statement(text)
        return self.apply(statement)

    def apply(self, statement: Statement) -> Outcome:
        """Apply an already-parsed statement."""
        if isinstance(statement, GrantStatement):
            return self.grant(statement.to_permission())

        if isinstance(statement, RevokeStatement):
            return self.revoke(statement.principal, statement.resource, statement.actions)

        if isinstance(statement, CreateRoleStatement):
            return self.create_role(statement.name)

        if isinstance(statement, DropRoleStatement):
            return self.drop_role(statement.name)

        if isinstance(statement, AlterRoleStatement):
            if statement.operation == "ADD":
                return self.add_member(statement.name, statement.user)
            return self.remove_member(statement.name, statement.user)

        if isinstance(statement, CreateTagStatement):
            return self.create_tag(statement.to_tag())

        if isinstance(statement, DropTagStatement):
            return self.delete_tag(statement.name)

        if isinstance(statement, ShowPermissionsStatement):
            if statement.principal is not None:
                permissions = self.list_permissions_for_principal(statement.principal)
            else:
                permissions = self.store.permissions()
            return Outcome.success(f"Found {len(permissions)} permissions")

        if isinstance(statement, ShowRolesStatement):
            return Outcome.success(f"Roles: {sorted(self.store.roles())}")

        if isinstance(statement, ShowTagsStatement):
            return Outcome.success(f"Tags: {sorted(self.store.tags())}")

        raise TypeError(f"Unsupported statement: {statement!r}")

    # -------------------------------------------------------------------------
    # Permissions
    # -------------------------------------------------------------------------

    def grant(self, permission: Permission) -> Outcome:
        self.store.grant(permission)
        actions = [action.value for action in permission.actions]
        return Outcome.success(f"Granted {actions} on {permission.resource} to {permission.principal}")

    def revoke(self, principal: Principal, resource: Resource, actions: Sequence[Action]) -> Outcome:
        removed = self.store.revoke(principal, resource, actions)
        return Outcome.success(f"Revoked {removed} permission(s) for {principal} on {resource}")

    def check_permission(
        self,
        principal: Principal,
        resource: Resource,
        action: Action,
        row: Optional[Mapping[str, str]] = None,
    ) -> bool:
        return check_permission(self.store.snapshot(), principal, resource, action, row)

    def explain_permission(
        self,
        principal: Principal,
        resource: Resource,
        action: Action,
        row: Optional[Mapping[str, str]] = None,
    ) -> CheckTrace:
        return explain_permission(self.store.snapshot(), principal, resource, action, row)

    def check_with_context(
        self,
        principal: Principal,
        resource: Resource,
        action: Action,
        session_context: Mapping[str, str],
    ) -> bool:
        """Replace the session context, then check. The new context stays in effect."""
        self.set_session_context(session_context)
        return self.check_permission(principal, resource, action)

    def list_permissions_for_principal(self, principal: Principal) -> List[Permission]:
        return self.store.permissions_for_principal(principal)

    def list_permissions_for_resource(self, resource: Resource) -> List[Permission]:
        return self.store.permissions_for_resource(resource)

    # -------------------------------------------------------------------------
    # Roles, tags, session context
    # -------------------------------------------------------------------------

    def create_role(self, name: str) -> Outcome:
        if self.store.create_role(name):
            return Outcome.success(f"Created role: {name}")
        return Outcome.success(f"Role already exists: {name}")

    def drop_role(self, name: str) -> Outcome:
        removed = self.store.drop_role(name)
        return Outcome.success(f"Dropped role: {name} ({removed} permission(s) removed)")

    def add_member(self, role: str, user: str) -> Outcome:
        self.store.add_member(role, user)
        return Outcome.success(f"Added {user} to role {role}")

    def remove_member(self, role: str, user: str) -> Outcome:
        self.store.remove_member(role, user)
        return Outcome.success(f"Removed {user} from role {role}")

    def roles(self) -> Dict[str, Set[str]]:
        return self.store.roles()

    def create_tag(self, tag: LakeTag) -> Outcome:
        self.store.create_tag(tag)
        return Outcome.success(f"Created tag: {tag.key} with values {tag.values}")

    def delete_tag(self, key: str) -> Outcome:
        if self.store.delete_tag(key):
            return Outcome.success(f"Deleted tag: {key}")
        return Outcome.success(f"Tag not found: {key}")

    def set_session_context(self, context: Mapping[str, str]) -> None:
        self.store.set_session_context(context)

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def snapshot(self) -> StoreSnapshot:
        return self.store.snapshot()

    def export_ddl(self) -> str:
        return to_ddl(self.store.snapshot())

    def summary(self) -> str:
        return to_summary(self.store.snapshot())
