"""
Permission store.

Holds the authoritative state: the ordered permission list, roles and
their members, declared tags and the session context. All access goes
through one re-entrant lock; readers work on snapshots.
"""

import logging
import threading
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set

from pydantic import Field

from lakekit.errors import InvalidNameError, RoleNotFoundError
from lakekit.language.tokens import is_identifier
from lakekit.models import (
    Action,
    BaseGovernanceModel,
    LakeTag,
    Permission,
    Principal,
    Resource,
    RolePrincipal,
    TaggedPrincipal,
    TaggedResource,
    resolve_principal,
)

logger = logging.getLogger(__name__)


class StoreSnapshot(BaseGovernanceModel):
    """
    Point-in-time copy of the store state.

    Snapshots are detached from the store: mutating one has no effect on
    the store, and later store mutations do not show up in it.
    """
    permissions: List[Permission] = Field(default_factory=list, description="Permissions in grant order")
    roles: Dict[str, Set[str]] = Field(default_factory=dict, description="Role name to member identifiers")
    tags: Dict[str, LakeTag] = Field(default_factory=dict, description="Tag key to declaration")
    session_context: Dict[str, str] = Field(default_factory=dict, description="Session context")

    @property
    def is_empty(self) -> bool:
        return not (self.permissions or self.roles or self.tags or self.session_context)


StoreListener = Callable[[StoreSnapshot], None]


class PermissionStore:
    """
    Thread-safe in-memory permission state.

    Mutations notify registered listeners with a fresh snapshot while the
    lock is still held, so listeners observe mutations in order. Listener
    exceptions propagate to the caller of the mutation; the mutation itself
    has already been applied at that point.
    """

    def __init__(self, snapshot: Optional[StoreSnapshot] = None):
        self._lock = threading.RLock()
        self._permissions: List[Permission] = []
        self._roles: Dict[str, Set[str]] = {}
        self._tags: Dict[str, LakeTag] = {}
        self._session_context: Dict[str, str] = {}
        self._listeners: List[StoreListener] = []
        if snapshot is not None:
            self._apply(snapshot)

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def add_listener(self, listener: StoreListener) -> None:
        """Register a callable invoked with a snapshot after every mutation."""
        with self._lock:
            self._listeners.append(listener)

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self._take_snapshot()
        for listener in self._listeners:
            listener(snapshot)

    # -------------------------------------------------------------------------
    # Permissions
    # -------------------------------------------------------------------------

    def grant(self, permission: Permission) -> None:
        """
        Store a permission, replacing any entry with the same principal and resource.

        The replacement is wholesale: actions of the previous entry are not merged.
        """
        if isinstance(permission.principal, TaggedPrincipal) or isinstance(permission.resource, TaggedResource):
            logger.warning(f"Storing tag-based permission that will never match a check: {permission.key}")

        with self._lock:
            replaced = len(self._permissions)
            self._permissions = [p for p in self._permissions if p.key != permission.key]
            replaced -= len(self._permissions)
            self._permissions.append(permission.model_copy(deep=True))
            logger.info(
                f"Granted {[a.value for a in permission.actions]} on {permission.resource} "
                f"to {permission.principal}" + (" (replaced existing entry)" if replaced else "")
            )
            self._notify()

    def revoke(self, principal: Principal, resource: Resource, actions: Iterable[Action]) -> int:
        """
        Remove every entry for exactly this principal and resource whose actions
        intersect ``actions``.

        Removal is whole-entry: revoking one action of a multi-action grant
        removes the grant entirely, including its other actions.

        Returns:
            Number of entries removed
        """
        requested = list(actions)
        with self._lock:
            kept = [
                p for p in self._permissions
                if not (p.principal == principal and p.resource == resource and p.intersects(requested))
            ]
            removed = len(self._permissions) - len(kept)
            self._permissions = kept
            logger.info(f"Revoked {removed} permission(s) for {principal} on {resource}")
            self._notify()
            return removed

    def permissions(self) -> List[Permission]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self._permissions]

    def permissions_for_principal(self, principal: Principal) -> List[Permission]:
        """Permissions that apply to a principal, including those held through a role."""
        with self._lock:
            return [
                p.model_copy(deep=True) for p in self._permissions
                if resolve_principal(principal, p.principal, self._roles)
            ]

    def permissions_for_resource(self, resource: Resource) -> List[Permission]:
        """Permissions on resources that cover ``resource``."""
        with self._lock:
            return [p.model_copy(deep=True) for p in self._permissions if resource.is_covered_by(p.resource)]

    # -------------------------------------------------------------------------
    # Roles
    # -------------------------------------------------------------------------

    def create_role(self, name: str) -> bool:
        """
        Create an empty role.

        Role names must be statement identifiers so exported state parses back.

        Returns:
            False if the role already existed (its members are left untouched)

        Raises:
            InvalidNameError: If the name is not an identifier
        """
        if not is_identifier(name):
            raise InvalidNameError("role", name)
        with self._lock:
            if name in self._roles:
                logger.info(f"Role '{name}' already exists")
                return False
            self._roles[name] = set()
            logger.info(f"Created role '{name}'")
            self._notify()
            return True

    def drop_role(self, name: str) -> int:
        """
        Delete a role and every permission granted to it.

        Returns:
            Number of permissions removed along with the role

        Raises:
            RoleNotFoundError: If the role does not exist
        """
        with self._lock:
            if name not in self._roles:
                raise RoleNotFoundError(name)
            del self._roles[name]
            role = RolePrincipal(name=name)
            kept = [p for p in self._permissions if p.principal != role]
            removed = len(self._permissions) - len(kept)
            self._permissions = kept
            logger.info(f"Dropped role '{name}' and {removed} of its permission(s)")
            self._notify()
            return removed

    def add_member(self, role: str, user: str) -> None:
        """Add a user identifier to a role. Raises RoleNotFoundError for an unknown role."""
        with self._lock:
            if role not in self._roles:
                raise RoleNotFoundError(role)
            self._roles[role].add(user)
            logger.info(f"Added '{user}' to role '{role}'")
            self._notify()

    def remove_member(self, role: str, user: str) -> None:
        """Remove a user identifier from a role. Raises RoleNotFoundError for an unknown role."""
        with self._lock:
            if role not in self._roles:
                raise RoleNotFoundError(role)
            self._roles[role].discard(user)
            logger.info(f"Removed '{user}' from role '{role}'")
            self._notify()

    def roles(self) -> Dict[str, Set[str]]:
        with self._lock:
            return {name: set(members) for name, members in self._roles.items()}

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    def create_tag(self, tag: LakeTag) -> None:
        """Declare a tag, replacing any previous declaration with the same key."""
        with self._lock:
            self._tags[tag.key] = tag.model_copy(deep=True)
            logger.info(f"Created tag '{tag.key}' with values {tag.values}")
            self._notify()

    def delete_tag(self, key: str) -> bool:
        """
        Remove a tag declaration. Permissions referencing the tag are kept.

        Returns:
            True if the tag existed
        """
        with self._lock:
            existed = self._tags.pop(key, None) is not None
            if existed:
                logger.info(f"Deleted tag '{key}'")
            else:
                logger.info(f"Tag '{key}' does not exist, nothing deleted")
            self._notify()
            return existed

    def tags(self) -> Dict[str, LakeTag]:
        with self._lock:
            return {key: tag.model_copy(deep=True) for key, tag in self._tags.items()}

    # -------------------------------------------------------------------------
    # Session context
    # -------------------------------------------------------------------------

    def set_session_context(self, context: Mapping[str, str]) -> None:
        """Replace the whole session context."""
        with self._lock:
            self._session_context = dict(context)
            logger.info(f"Session context set ({len(self._session_context)} keys)")
            self._notify()

    def session_context(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._session_context)

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def _take_snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            permissions=[p.model_copy(deep=True) for p in self._permissions],
            roles={name: set(members) for name, members in self._roles.items()},
            tags={key: tag.model_copy(deep=True) for key, tag in self._tags.items()},
            session_context=dict(self._session_context),
        )

    def _apply(self, snapshot: StoreSnapshot) -> None:
        self._permissions = [p.model_copy(deep=True) for p in snapshot.permissions]
        self._roles = {name: set(members) for name, members in snapshot.roles.items()}
        self._tags = {key: tag.model_copy(deep=True) for key, tag in snapshot.tags.items()}
        self._session_context = dict(snapshot.session_context)

    def snapshot(self) -> StoreSnapshot:
        """Consistent copy of the whole state, taken under the lock."""
        with self._lock:
            return self._take_snapshot()

    def restore(self, snapshot: StoreSnapshot) -> None:
        """Replace the whole state with ``snapshot``."""
        with self._lock:
            self._apply(snapshot)
            logger.info(
                f"Restored store: {len(self._permissions)} permissions, "
                f"{len(self._roles)} roles, {len(self._tags)} tags"
            )
            self._notify()
