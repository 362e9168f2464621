"""
Unity Catalog backend.

Re-expresses the backend operations against a Databricks workspace through
the Databricks SDK. The mapping is lossy in places:

- Databases map to schemas of one configured catalog, tables to tables in
  that catalog, data locations to the external location whose URL covers
  the path.
- INSERT, UPDATE and DELETE all map to MODIFY; DROP_TABLE, ALTER_TABLE and
  GRANT_WITH_GRANT_OPTION map to MANAGE.
- Roles map to workspace groups; tags map to governed tag policies.
- Row filters, tagged principals and tagged resources are rejected with
  UnsupportedFeatureError. The session context does not apply and is ignored.
"""

import logging
import re
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from databricks.sdk import WorkspaceClient
from databricks.sdk.errors import (
    AlreadyExists,
    BadRequest,
    DatabricksError,
    InternalError,
    InvalidParameterValue,
    NotFound,
    NotImplemented,
    PermissionDenied,
    ResourceAlreadyExists,
    ResourceConflict,
    ResourceDoesNotExist,
    ResourceExhausted,
    TemporarilyUnavailable,
    Unauthenticated,
)
from databricks.sdk.service.catalog import PermissionsChange
from databricks.sdk.service.iam import Group as SdkGroup
from databricks.sdk.service.iam import Patch, PatchOp, PatchSchema

from lakekit.errors import (
    LakekitError,
    PrincipalNotFoundError,
    RoleNotFoundError,
    SecurableNotFoundError,
    UnsupportedFeatureError,
)
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
    parse_statement,
)
from lakekit.models import (
    Action,
    DatabaseResource,
    DataLocationResource,
    ExternalAccountPrincipal,
    LakeTag,
    Permission,
    Principal,
    Resource,
    RolePrincipal,
    SamlGroupPrincipal,
    TableResource,
    TaggedPrincipal,
    TaggedResource,
    UserPrincipal,
)

from .base import AuthorizationBackend, Outcome

logger = logging.getLogger(__name__)

_UUID = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")

# Action -> Unity Catalog privilege name
PRIVILEGE_MAP: Dict[Action, str] = {
    Action.SELECT: "SELECT",
    Action.INSERT: "MODIFY",
    Action.UPDATE: "MODIFY",
    Action.DELETE: "MODIFY",
    Action.CREATE_TABLE: "CREATE_TABLE",
    Action.DROP_TABLE: "MANAGE",
    Action.ALTER_TABLE: "MANAGE",
    Action.DESCRIBE: "BROWSE",
    Action.DATA_LOCATION_ACCESS: "READ_FILES",
    Action.GRANT_WITH_GRANT_OPTION: "MANAGE",
}

ALL_PRIVILEGES = "ALL_PRIVILEGES"


def _get_enum_value(val) -> str:
    """Safely get value from enum or return string as-is."""
    return val.value if hasattr(val, "value") else val


def privileges_for(actions: Sequence[Action], grant_option: bool = False) -> List[str]:
    """Unity Catalog privileges for a set of actions, de-duplicated in order."""
    privileges = [PRIVILEGE_MAP[action] for action in actions]
    if grant_option:
        privileges.append("MANAGE")
    return list(dict.fromkeys(privileges))


def actions_for(privileges: Sequence[str]) -> List[Action]:
    """Actions implied by a set of Unity Catalog privileges (reverse of the lossy mapping)."""
    names = set(privileges)
    if ALL_PRIVILEGES in names:
        return list(Action)
    return [action for action in Action if PRIVILEGE_MAP[action] in names]


class UnityCatalogBackend(AuthorizationBackend):
    """
    Backend that applies permissions to a Databricks Unity Catalog metastore.

    Example:
        ```python
        backend = UnityCatalogBackend(WorkspaceClient(), catalog="analytics")
        backend.execute_statement("GRANT SELECT ON sales.orders TO ROLE analysts")
        ```
    """

    def __init__(
        self,
        client: WorkspaceClient,
        catalog: str,
        max_retries: int = 3,
        continue_on_error: bool = False,
    ):
        """
        Initialize the backend.

        Args:
            client: Databricks SDK client
            catalog: Catalog that holds the schemas databases map to
            max_retries: Maximum retry attempts for transient failures
            continue_on_error: Return error outcomes instead of raising on SDK failures
        """
        self.client = client
        self.catalog = catalog
        self.max_retries = max_retries
        self.continue_on_error = continue_on_error

    # -------------------------------------------------------------------------
    # Error handling
    # -------------------------------------------------------------------------

    def execute_with_retry(self, operation: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Execute an SDK call, retrying transient failures with exponential backoff.

        Raises:
            DatabricksError: Non-transient errors immediately, transient ones
                once all attempts are exhausted
        """
        last_error = None

        for attempt in range(self.max_retries):
            try:
                return operation(*args, **kwargs)
            except (ResourceDoesNotExist, ResourceAlreadyExists, PermissionDenied,
                    InvalidParameterValue, NotFound, AlreadyExists, BadRequest,
                    Unauthenticated, NotImplemented):
                # Not transient
                raise
            except (TemporarilyUnavailable, InternalError, ResourceExhausted) as e:
                last_error = e
                if attempt < self.max_retries - 1:
                    wait_time = 2 ** attempt
                    logger.warning(
                        f"Attempt {attempt + 1} failed: {e}. "
                        f"Retrying in {wait_time} seconds..."
                    )
                    time.sleep(wait_time)
                else:
                    logger.error(f"All {self.max_retries} attempts failed")

        if last_error:
            raise last_error

    def _handle_error(self, description: str, error: Exception) -> Outcome:
        """
        Turn an SDK failure into an error outcome, or re-raise it.

        Raises:
            Exception: ``error`` itself unless continue_on_error is set
        """
        if isinstance(error, PermissionDenied):
            message = f"Permission denied: {error}. Check that the caller has the required Unity Catalog privileges."
        elif isinstance(error, (ResourceDoesNotExist, NotFound)):
            message = f"Resource not found: {error}"
        elif isinstance(error, (InvalidParameterValue, BadRequest)):
            message = f"Invalid parameter: {error}"
        elif isinstance(error, Unauthenticated):
            message = f"Authentication failed: {error}. Check credentials and workspace URL."
        elif isinstance(error, TemporarilyUnavailable):
            message = f"Service temporarily unavailable: {error}. Try again later."
        else:
            message = str(error)

        logger.error(f"{description} failed: {message}")
        if not self.continue_on_error:
            raise error
        return Outcome.failure(f"{description} failed: {message}", error=error)

    # -------------------------------------------------------------------------
    # Mapping
    # -------------------------------------------------------------------------

    def securable_for(self, resource: Resource) -> Tuple[str, str]:
        """
        Map a resource to a (securable_type, full_name) pair.

        Raises:
            UnsupportedFeatureError: For tagged resources
            SecurableNotFoundError: If no external location covers a data location path
        """
        if isinstance(resource, DatabaseResource):
            return "schema", f"{self.catalog}.{resource.name}"
        if isinstance(resource, TableResource):
            if resource.columns:
                logger.warning(f"Column subset of {resource} is not enforced; granting on the whole table")
            return "table", f"{self.catalog}.{resource.database}.{resource.name}"
        if isinstance(resource, DataLocationResource):
            return "external_location", self._external_location_for(resource.path)
        if isinstance(resource, TaggedResource):
            raise UnsupportedFeatureError("Tag-based resources are not supported by Unity Catalog grants")
        raise UnsupportedFeatureError(f"Unsupported resource: {resource!r}")

    def principal_name(self, principal: Principal) -> str:
        """
        Map a principal to the name Unity Catalog grants use.

        Raises:
            UnsupportedFeatureError: For tagged principals
        """
        if isinstance(principal, UserPrincipal):
            return principal.identifier
        if isinstance(principal, (RolePrincipal, SamlGroupPrincipal)):
            return principal.name
        if isinstance(principal, ExternalAccountPrincipal):
            # Service principals are granted by application id
            return principal.account_id
        if isinstance(principal, TaggedPrincipal):
            raise UnsupportedFeatureError("Tag-based principals are not supported by Unity Catalog grants")
        raise UnsupportedFeatureError(f"Unsupported principal: {principal!r}")

    def _principal_from_name(self, name: str) -> Principal:
        if "@" in name:
            return UserPrincipal(identifier=name)
        if _UUID.match(name):
            return ExternalAccountPrincipal(account_id=name)
        return RolePrincipal(name=name)

    def _external_location_for(self, path: str) -> str:
        """Name of the external location with the longest URL that prefixes ``path``."""
        best_name: Optional[str] = None
        best_length = -1
        for location in self.execute_with_retry(lambda: list(self.client.external_locations.list())):
            url = (location.url or "").rstrip("/")
            if url and path.startswith(url) and len(url) > best_length:
                best_name, best_length = location.name, len(url)
        if best_name is None:
            raise SecurableNotFoundError("external_location", path)
        return best_name

    def _current_privileges(self, securable_type: str, full_name: str, principal: str) -> Set[str]:
        grants = self.execute_with_retry(
            self.client.grants.get,
            securable_type=securable_type,
            full_name=full_name,
            principal=principal,
        )
        current: Set[str] = set()
        for assignment in grants.privilege_assignments or []:
            if assignment.principal == principal:
                current.update(_get_enum_value(p) for p in assignment.privileges or [])
        return current

    def _update(self, securable_type: str, full_name: str, principal: str, add: List[str], remove: List[str]) -> None:
        # SDK expects Privilege enum objects, not strings
        from databricks.sdk.service.catalog import Privilege as SDKPrivilege

        change = PermissionsChange(
            principal=principal,
            add=[SDKPrivilege(p) for p in add] or None,
            remove=[SDKPrivilege(p) for p in remove] or None,
        )
        self.execute_with_retry(
            self.client.grants.update,
            securable_type=securable_type,
            full_name=full_name,
            changes=[change],
        )

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def execute_statement(self, text: str) -> Outcome:
        statement = parse_statement(text)

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
            if statement.principal is None:
                raise UnsupportedFeatureError("SHOW PERMISSIONS without FOR is not supported against Unity Catalog")
            permissions = self.list_permissions_for_principal(statement.principal)
            return Outcome.success(f"Found {len(permissions)} permissions")
        if isinstance(statement, ShowRolesStatement):
            names = sorted(g.display_name for g in self.client.groups.list(attributes="displayName") if g.display_name)
            return Outcome.success(f"Roles: {names}")
        if isinstance(statement, ShowTagsStatement):
            raise UnsupportedFeatureError("SHOW TAGS is not supported against Unity Catalog")

        raise TypeError(f"Unsupported statement: {statement!r}")

    # -------------------------------------------------------------------------
    # Permissions
    # -------------------------------------------------------------------------

    def grant(self, permission: Permission) -> Outcome:
        """
        Make the principal's privileges on the securable match ``permission``.

        Privileges the principal held on the securable that the new
        permission does not carry are removed, so a grant replaces the
        previous one.

        Raises:
            UnsupportedFeatureError: For row filters and tagged principals/resources
        """
        if permission.row_filter is not None:
            raise UnsupportedFeatureError("Row filters cannot be expressed as Unity Catalog grants")

        securable_type, full_name = self.securable_for(permission.resource)
        principal = self.principal_name(permission.principal)
        desired = privileges_for(permission.actions, permission.grant_option)
        description = f"Grant {desired} on {securable_type} {full_name} to {principal}"

        try:
            current = self._current_privileges(securable_type, full_name, principal)
            stale = sorted(current - set(desired))
            logger.info(f"Granting {desired} on {securable_type} {full_name} to {principal}")
            self._update(securable_type, full_name, principal, add=desired, remove=stale)
        except DatabricksError as e:
            return self._handle_error(description, e)

        return Outcome.success(f"Granted {desired} on {full_name} to {principal}")

    def revoke(self, principal: Principal, resource: Resource, actions: Sequence[Action]) -> Outcome:
        """
        Remove all of the principal's privileges on the securable when any of
        ``actions`` is among them.
        """
        securable_type, full_name = self.securable_for(resource)
        name = self.principal_name(principal)
        requested = set(privileges_for(actions))
        description = f"Revoke on {securable_type} {full_name} from {name}"

        try:
            current = self._current_privileges(securable_type, full_name, name)
            if not current & requested:
                return Outcome.success(f"Revoked 0 permission(s) for {name} on {full_name}")
            logger.info(f"Revoking {sorted(current)} on {securable_type} {full_name} from {name}")
            self._update(securable_type, full_name, name, add=[], remove=sorted(current))
        except DatabricksError as e:
            return self._handle_error(description, e)

        return Outcome.success(f"Revoked 1 permission(s) for {name} on {full_name}")

    def check_permission(self, principal: Principal, resource: Resource, action: Action) -> bool:
        """
        Check effective (inherited and group-derived) privileges.

        Any mapping or SDK failure yields False.
        """
        try:
            securable_type, full_name = self.securable_for(resource)
            name = self.principal_name(principal)
            effective = self.execute_with_retry(
                self.client.grants.get_effective,
                securable_type=securable_type,
                full_name=full_name,
                principal=name,
            )
        except (LakekitError, DatabricksError) as e:
            logger.warning(f"Permission check failed, denying: {e}")
            return False

        wanted = PRIVILEGE_MAP[action]
        for assignment in effective.privilege_assignments or []:
            if assignment.principal != name:
                continue
            for privilege in assignment.privileges or []:
                value = _get_enum_value(privilege.privilege)
                if value in (wanted, ALL_PRIVILEGES):
                    return True
        return False

    def list_permissions_for_resource(self, resource: Resource) -> List[Permission]:
        securable_type, full_name = self.securable_for(resource)
        grants = self.execute_with_retry(self.client.grants.get, securable_type=securable_type, full_name=full_name)
        return self._to_permissions(grants, resource)

    def list_permissions_for_principal(self, principal: Principal) -> List[Permission]:
        """
        Schema-level permissions of a principal across the configured catalog.

        Table- and location-level grants are not walked.
        """
        name = self.principal_name(principal)
        permissions = []
        for schema in self.execute_with_retry(lambda: list(self.client.schemas.list(catalog_name=self.catalog))):
            grants = self.execute_with_retry(
                self.client.grants.get,
                securable_type="schema",
                full_name=schema.full_name,
                principal=name,
            )
            permissions.extend(self._to_permissions(grants, DatabaseResource(name=schema.name)))
        return permissions

    def _to_permissions(self, grants, resource: Resource) -> List[Permission]:
        permissions = []
        for assignment in grants.privilege_assignments or []:
            actions = actions_for([_get_enum_value(p) for p in assignment.privileges or []])
            if not actions or not assignment.principal:
                continue
            permissions.append(Permission(
                principal=self._principal_from_name(assignment.principal),
                resource=resource,
                actions=actions,
            ))
        return permissions

    # -------------------------------------------------------------------------
    # Roles (workspace groups)
    # -------------------------------------------------------------------------

    def _get_group(self, name: str) -> Optional[SdkGroup]:
        """Find group by display name."""
        try:
            groups = list(self.client.groups.list(filter=f'displayName eq "{name}"'))
            return groups[0] if groups else None
        except (NotFound, ResourceDoesNotExist):
            return None

    def _get_user_id(self, user: str) -> str:
        users = list(self.client.users.list(filter=f'userName eq "{user}"'))
        for candidate in users:
            if candidate.user_name == user and candidate.id:
                return candidate.id
        raise PrincipalNotFoundError(user)

    def create_role(self, name: str) -> Outcome:
        try:
            if self._get_group(name) is not None:
                return Outcome.success(f"Role already exists: {name}")
            self.execute_with_retry(self.client.groups.create, display_name=name)
        except (ResourceConflict, AlreadyExists):
            # Created between our check and create
            return Outcome.success(f"Role already exists: {name}")
        except DatabricksError as e:
            return self._handle_error(f"Create role {name}", e)
        logger.info(f"Created group {name}")
        return Outcome.success(f"Created role: {name}")

    def drop_role(self, name: str) -> Outcome:
        """Delete the group. Unity Catalog drops the group's grants with it."""
        existing = self._get_group(name)
        if existing is None or not existing.id:
            raise RoleNotFoundError(name)
        try:
            self.execute_with_retry(self.client.groups.delete, existing.id)
        except DatabricksError as e:
            return self._handle_error(f"Drop role {name}", e)
        logger.info(f"Deleted group {name}")
        return Outcome.success(f"Dropped role: {name}")

    def _patch_members(self, role: str, user: str, op: PatchOp) -> None:
        existing = self._get_group(role)
        if existing is None or not existing.id:
            raise RoleNotFoundError(role)
        user_id = self._get_user_id(user)
        if op == PatchOp.ADD:
            operation = Patch(op=PatchOp.ADD, path="members", value=[{"value": user_id}])
        else:
            operation = Patch(op=PatchOp.REMOVE, path=f'members[value eq "{user_id}"]')
        self.execute_with_retry(
            self.client.groups.patch,
            id=existing.id,
            operations=[operation],
            schemas=[PatchSchema.URN_IETF_PARAMS_SCIM_API_MESSAGES_2_0_PATCH_OP],
        )

    def add_member(self, role: str, user: str) -> Outcome:
        try:
            self._patch_members(role, user, PatchOp.ADD)
        except DatabricksError as e:
            return self._handle_error(f"Add {user} to role {role}", e)
        return Outcome.success(f"Added {user} to role {role}")

    def remove_member(self, role: str, user: str) -> Outcome:
        try:
            self._patch_members(role, user, PatchOp.REMOVE)
        except DatabricksError as e:
            return self._handle_error(f"Remove {user} from role {role}", e)
        return Outcome.success(f"Removed {user} from role {role}")

    # -------------------------------------------------------------------------
    # Tags (governed tag policies)
    # -------------------------------------------------------------------------

    def create_tag(self, tag: LakeTag) -> Outcome:
        from databricks.sdk.service.tags import TagPolicy, Value

        policy = TagPolicy(
            tag_key=tag.key,
            description=tag.description,
            values=[Value(name=value) for value in tag.values],
        )
        try:
            self.execute_with_retry(self.client.tag_policies.create_tag_policy, tag_policy=policy)
        except DatabricksError as e:
            return self._handle_error(f"Create tag {tag.key}", e)
        logger.info(f"Created tag policy {tag.key}")
        return Outcome.success(f"Created tag: {tag.key} with values {tag.values}")

    def delete_tag(self, key: str) -> Outcome:
        try:
            self.execute_with_retry(self.client.tag_policies.delete_tag_policy, tag_key=key)
        except (NotFound, ResourceDoesNotExist):
            return Outcome.success(f"Tag not found: {key}")
        except DatabricksError as e:
            return self._handle_error(f"Delete tag {key}", e)
        logger.info(f"Deleted tag policy {key}")
        return Outcome.success(f"Deleted tag: {key}")

    def set_session_context(self, context: Mapping[str, str]) -> None:
        logger.warning(
            f"Session context has no Unity Catalog equivalent; ignoring {len(context)} key(s)"
        )
